"""
FastAPI routes for registration, verification and sessions.

Bodies are JSON and accept the storefront's camelCase field names.
Failures are AccountsError subclasses rendered by the app's error handler.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field

from accounts.app import AccountsApp
from accounts.models.account import ProfileInput
from accounts.utils.exceptions import DuplicateEmail, TokenInvalidOrExpired
from .auth_middleware import cookie_name_for, extract_token, get_accounts


router = APIRouter(tags=["auth"])


class RegisterRequest(ProfileInput):
    password: str = Field(min_length=6)


class ConfirmRequest(BaseModel):
    email: EmailStr
    otp: str = Field(min_length=1)


class EmailRequest(BaseModel):
    email: EmailStr


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


def _set_session_cookie(response: JSONResponse, accounts: AccountsApp, token: str) -> None:
    response.set_cookie(
        key=cookie_name_for(accounts),
        value=token,
        max_age=accounts.tokens.max_age_seconds,
        path="/",
        httponly=True,
        secure=accounts.settings.is_production,
        samesite="strict",
    )


@router.post("/register")
async def register(body: RegisterRequest, accounts: AccountsApp = Depends(get_accounts)) -> Dict[str, Any]:
    """
    Start a registration: store it as pending and email a 6-digit code.

    Response:
        {"message": "OTP sent successfully", "email": "...", "expiresIn": 600, "otpExpiry": "..."}
    """
    profile = ProfileInput.model_validate(body.model_dump(exclude={"password"}))
    pending = await run_in_threadpool(accounts.auth.register, profile, body.password)
    return {
        "message": "OTP sent successfully",
        "email": pending.account.email,
        "expiresIn": pending.expires_in,
        "otpExpiry": pending.otp_expiry.isoformat(),
    }


@router.post("/register/confirm")
async def confirm_registration(body: ConfirmRequest, accounts: AccountsApp = Depends(get_accounts)) -> Dict[str, Any]:
    account = await run_in_threadpool(accounts.auth.confirm, body.email, body.otp)
    return {
        "status": "activated",
        "message": "Account verified successfully. Please login to continue.",
        "accountId": account.account_id,
    }


@router.post("/register/resend")
async def resend_code(body: EmailRequest, accounts: AccountsApp = Depends(get_accounts)) -> Dict[str, Any]:
    pending = await run_in_threadpool(accounts.auth.resend, body.email)
    return {
        "message": "OTP resent successfully",
        "expiresIn": pending.expires_in,
        "otpExpiry": pending.otp_expiry.isoformat(),
    }


@router.post("/check-email")
async def check_email(body: EmailRequest, accounts: AccountsApp = Depends(get_accounts)) -> Dict[str, Any]:
    available = await run_in_threadpool(accounts.store.email_available, body.email)
    if not available:
        raise DuplicateEmail(available=False)
    return {"available": True}


@router.post("/login")
async def login(body: LoginRequest, accounts: AccountsApp = Depends(get_accounts)) -> Any:
    """
    Exchange email/password for a signed session.

    The token is returned in the body and as an HTTP-only cookie.
    """
    result = await run_in_threadpool(accounts.auth.login, body.email, body.password)
    response = JSONResponse(
        content={"success": True, "token": result.token, "user": result.claims.public()}
    )
    _set_session_cookie(response, accounts, result.token)
    return response


@router.post("/logout")
async def logout(accounts: AccountsApp = Depends(get_accounts)) -> Any:
    """
    Tell the client to drop its session cookie.

    Nothing is revoked server-side: a copied token stays valid until it expires.
    """
    response = JSONResponse(
        {"message": "Logged out successfully"},
        headers={"Cache-Control": "no-store, max-age=0"},
    )
    response.delete_cookie(
        cookie_name_for(accounts),
        path="/",
        secure=accounts.settings.is_production,
        httponly=True,
        samesite="strict",
    )
    return response


@router.get("/session")
async def session(request: Request, accounts: AccountsApp = Depends(get_accounts)) -> Dict[str, Any]:
    token = extract_token(request, cookie_name_for(accounts))
    if not token:
        raise TokenInvalidOrExpired()
    claims = await run_in_threadpool(accounts.auth.verify_session, token)
    return {"authenticated": True, "user": claims.public()}
