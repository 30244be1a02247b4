"""
Admin API: customer and employee management plus the audit trail.

Every route requires an admin session.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, EmailStr, Field, StrictBool

from accounts.app import AccountsApp
from accounts.models.account import Account, AuditLogEntry, ProfileInput, Role, SessionClaims
from accounts.utils.exceptions import ValidationError
from .auth_middleware import actor_name, get_accounts, require_admin


router = APIRouter(prefix="/api", tags=["admin"])


class AccountUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[EmailStr] = None
    contact: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    position: Optional[str] = None
    is_active: Optional[StrictBool] = Field(default=None, alias="isActive")
    action: Optional[str] = None


class EmployeeCreate(ProfileInput):
    password: str = Field(min_length=6)
    position: str = Field(min_length=1)
    role: Role = Role.ADMIN


def _log_entry(entry: AuditLogEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "action": entry.action,
        "adminName": entry.admin_name,
        "targetEmail": entry.target_email,
        "targetName": entry.target_name,
        "createdAt": entry.created_at.isoformat(),
    }


def _page(accounts: List[Account]) -> List[Dict[str, Any]]:
    return [a.public() for a in accounts]


@router.get("/users")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = "",
    status_filter: str = Query("all", alias="status"),
    role: Optional[Role] = None,
    accounts: AccountsApp = Depends(get_accounts),
    admin: SessionClaims = Depends(require_admin),
) -> Dict[str, Any]:
    users, total_pages = await run_in_threadpool(
        accounts.store.list_accounts, search, status_filter, role, page, limit
    )
    return {"users": _page(users), "totalPages": total_pages, "page": page}


@router.patch("/users/{account_id}")
@router.patch("/employees/{account_id}")
async def update_account(
    account_id: str,
    body: AccountUpdate,
    accounts: AccountsApp = Depends(get_accounts),
    admin: SessionClaims = Depends(require_admin),
) -> Dict[str, Any]:
    """
    Edit profile fields and/or flip isActive.

    A request that does both writes two audit entries: profile first, then
    the flag change.
    """
    actor = actor_name(admin)
    profile_fields = body.model_dump(exclude={"is_active", "action"}, exclude_none=True)

    def apply() -> Account:
        updated = None
        if profile_fields:
            updated = accounts.store.update_profile(account_id, profile_fields, actor_name=actor, action=body.action)
        if body.is_active is not None:
            flag_action = None if profile_fields else body.action
            updated = accounts.store.set_active_flag(account_id, body.is_active, actor_name=actor, action=flag_action)
        if updated is None:
            raise ValidationError("Nothing to update")
        return updated

    account = await run_in_threadpool(apply)
    return {"message": "Account updated successfully", "user": account.public()}


@router.post("/employees", status_code=status.HTTP_201_CREATED)
async def create_employee(
    body: EmployeeCreate,
    accounts: AccountsApp = Depends(get_accounts),
    admin: SessionClaims = Depends(require_admin),
) -> Dict[str, Any]:
    profile = ProfileInput.model_validate(body.model_dump(include=set(ProfileInput.model_fields)))
    employee = await run_in_threadpool(
        accounts.store.create_employee,
        profile,
        body.password,
        body.position,
        body.role,
        actor_name(admin),
    )
    return {"message": "Employee created successfully", "employee": employee.public()}


@router.get("/employees")
async def list_employees(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = "",
    status_filter: str = Query("all", alias="status"),
    accounts: AccountsApp = Depends(get_accounts),
    admin: SessionClaims = Depends(require_admin),
) -> Dict[str, Any]:
    employees, total_pages = await run_in_threadpool(
        accounts.store.list_accounts, search, status_filter, Role.ADMIN, page, limit
    )
    return {"employees": _page(employees), "totalPages": total_pages, "page": page}


@router.get("/logs")
async def recent_logs(
    accounts: AccountsApp = Depends(get_accounts),
    admin: SessionClaims = Depends(require_admin),
) -> Dict[str, Any]:
    entries = await run_in_threadpool(accounts.audit_log.recent)
    return {"logs": [_log_entry(e) for e in entries]}
