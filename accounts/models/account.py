"""Account data models shared by the store, the auth service and the web layer"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..utils.clock import utcnow


class Role(str, Enum):
    """Closed set of roles consumed by the session guard"""
    STANDARD = "standard"
    ADMIN = "admin"


class Account(BaseModel):
    """
    Persisted customer or employee record.

    A pending registration carries an OTP and a pending password hash and
    cannot log in. Activation moves the hash to password_hash, assigns the
    human-readable account_id and clears the OTP fields.
    """

    id: str
    account_id: Optional[str] = None  # e.g. ABCD-1234, set on activation
    email: EmailStr
    email_key: str  # lower-cased email, unique index
    first_name: str
    last_name: str
    contact: str
    gender: Optional[str] = None
    address: Optional[str] = None
    position: Optional[str] = None  # employees only
    role: Role = Role.STANDARD
    is_active: bool = False
    pending_registration: bool = True
    password_hash: Optional[str] = None
    pending_password_hash: Optional[str] = None
    otp_code: Optional[str] = None
    otp_expiry: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_document(self) -> dict:
        return self.model_dump(mode="json")

    def public(self) -> dict:
        """Client-facing view; never includes hashes or OTP fields"""
        return {
            "id": self.id,
            "accountId": self.account_id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "contact": self.contact,
            "gender": self.gender or "",
            "address": self.address or "",
            "position": self.position,
            "role": self.role.value,
            "isActive": self.is_active,
            "pendingRegistration": self.pending_registration,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


class ProfileInput(BaseModel):
    """Profile fields submitted at registration or employee creation"""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    first_name: str = Field(alias="firstName", min_length=1)
    last_name: str = Field(alias="lastName", min_length=1)
    email: EmailStr
    contact: str = Field(min_length=1)
    gender: Optional[str] = None
    address: Optional[str] = None


class AuditLogEntry(BaseModel):
    """Append-only record of an administrative change"""

    id: str
    action: str
    admin_name: str
    target_email: str
    target_name: str
    created_at: datetime = Field(default_factory=utcnow)


class SessionClaims(BaseModel):
    """Claim set embedded in a signed session token"""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    account_id: Optional[str] = Field(default=None, alias="accountId")
    email: str
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    role: Role
    contact: Optional[str] = ""
    address: Optional[str] = ""
    gender: Optional[str] = ""
    is_active: bool = Field(alias="isActive")
    issued_at: int = Field(alias="iat")
    expires_at: int = Field(alias="exp")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def public(self) -> dict:
        """camelCase view returned to clients"""
        return self.model_dump(mode="json", by_alias=True)
