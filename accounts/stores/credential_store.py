"""
Credential store: customer and employee account records.

Pending registrations and active accounts share one collection with a
unique index on the lower-cased email, so a pending signup can be resumed
(resend) but never duplicated.
"""

from __future__ import annotations

import math
import secrets
import uuid
from typing import Any, Dict, List, Optional, Tuple

from ..auth.otp import OtpIssuer
from ..auth.passwords import PasswordHasher
from ..core.database import DocumentStore, DuplicateKeyError
from ..models.account import Account, ProfileInput, Role
from ..utils.clock import Clock, utcnow
from ..utils.exceptions import (
    AccountNotFound,
    AlreadyVerified,
    DuplicateEmail,
    InvalidOrExpiredOtp,
    NoPendingRegistration,
    ValidationError,
)
from ..utils.ids import generate_unique_account_id
from ..utils.logger import get_logger
from .audit_log import AuditLog

logger = get_logger(__name__)

COLLECTION = "accounts"
PROFILE_FIELDS = ("first_name", "last_name", "email", "contact", "gender", "address", "position")
ACCOUNT_STATUSES = ("all", "active", "inactive")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class CredentialStore:
    def __init__(
        self,
        db: DocumentStore,
        hasher: PasswordHasher,
        otp: OtpIssuer,
        audit_log: AuditLog,
        clock: Clock = utcnow,
    ):
        self.collection = db.collection(COLLECTION, unique=("email_key", "account_id"))
        self.hasher = hasher
        self.otp = otp
        self.audit_log = audit_log
        self.clock = clock

    # -- lookups ---------------------------------------------------------

    def find_by_email(self, email: str) -> Optional[Account]:
        """Case-insensitive exact match"""
        doc = self.collection.find_one({"email_key": normalize_email(email)})
        return Account(**doc) if doc else None

    def find_by_id(self, account_id: str) -> Optional[Account]:
        doc = self.collection.find_one({"id": account_id})
        return Account(**doc) if doc else None

    def email_available(self, email: str) -> bool:
        return self.find_by_email(email) is None

    def _get(self, account_id: str) -> Account:
        account = self.find_by_id(account_id)
        if account is None:
            raise AccountNotFound()
        return account

    def _account_id_taken(self, candidate: str) -> bool:
        return self.collection.find_one({"account_id": candidate}) is not None

    def _insert(self, account: Account) -> Account:
        try:
            doc = self.collection.insert_one(account.to_document())
        except DuplicateKeyError as e:
            if e.field == "email_key":
                # lost a race with a concurrent registration
                raise DuplicateEmail()
            raise
        return Account(**doc)

    def _update(self, filter: Dict[str, Any], changes: Dict[str, Any]) -> Optional[Account]:
        if "role" in changes and isinstance(changes["role"], Role):
            changes["role"] = changes["role"].value
        for key in ("otp_expiry", "updated_at"):
            if changes.get(key) is not None:
                changes[key] = changes[key].isoformat()
        try:
            doc = self.collection.update_one(filter, changes)
        except DuplicateKeyError as e:
            if e.field == "email_key":
                raise DuplicateEmail()
            raise
        return Account(**doc) if doc else None

    # -- registration ----------------------------------------------------

    def create_pending(self, profile: ProfileInput, password: str) -> Account:
        """
        Store a pending registration with a fresh OTP.

        The password is hashed here and parked in pending_password_hash;
        the record never holds the plaintext.
        """
        if self.find_by_email(profile.email) is not None:
            raise DuplicateEmail()
        now = self.clock()
        account = Account(
            id=uuid.uuid4().hex,
            email=profile.email,
            email_key=normalize_email(profile.email),
            first_name=profile.first_name,
            last_name=profile.last_name,
            contact=profile.contact,
            gender=profile.gender,
            address=profile.address,
            role=Role.STANDARD,
            is_active=False,
            pending_registration=True,
            pending_password_hash=self.hasher.hash(password),
            otp_code=self.otp.generate(),
            otp_expiry=self.otp.expiry_from_now(),
            created_at=now,
            updated_at=now,
        )
        created = self._insert(account)
        logger.info("Pending registration created", email=created.email_key)
        return created

    def activate(self, email: str, otp_code: str) -> Account:
        account = self.find_by_email(email)
        if account is None:
            raise NoPendingRegistration()
        if not account.pending_registration:
            raise NoPendingRegistration("Account already verified")

        now = self.clock()
        if not account.otp_code or account.otp_expiry is None:
            raise InvalidOrExpiredOtp("No verification code found, request a new one", expired=True, expires_in=0)
        if now > account.otp_expiry:
            raise InvalidOrExpiredOtp("Verification code has expired", expired=True, expires_in=0)
        expires_in = int((account.otp_expiry - now).total_seconds())
        if not secrets.compare_digest(str(otp_code).strip(), account.otp_code):
            raise InvalidOrExpiredOtp("Invalid verification code", expired=False, expires_in=expires_in)

        password_hash = account.pending_password_hash
        if not password_hash:
            raise NoPendingRegistration("Registration is incomplete, please register again")

        for _ in range(3):
            new_id = generate_unique_account_id(self._account_id_taken)
            try:
                updated = self._update(
                    {"id": account.id, "pending_registration": True},
                    {
                        "account_id": new_id,
                        "password_hash": password_hash,
                        "pending_password_hash": None,
                        "otp_code": None,
                        "otp_expiry": None,
                        "is_active": True,
                        "pending_registration": False,
                        "updated_at": now,
                    },
                )
            except DuplicateKeyError:
                continue
            if updated is None:
                # confirmed concurrently by another request
                raise NoPendingRegistration("Account already verified")
            logger.info("Account activated", email=updated.email_key, account_id=updated.account_id)
            return updated
        raise RuntimeError("Could not assign a unique account id")

    def reissue_otp(self, email: str) -> Account:
        """Replace the OTP and restart its window; the old code stops working"""
        account = self.find_by_email(email)
        if account is None:
            raise NoPendingRegistration("No user found with this email")
        if not account.pending_registration:
            raise AlreadyVerified()
        new_code = self.otp.generate()
        while new_code == account.otp_code:
            new_code = self.otp.generate()
        updated = self._update(
            {"id": account.id},
            {
                "otp_code": new_code,
                "otp_expiry": self.otp.expiry_from_now(),
                "updated_at": self.clock(),
            },
        )
        if updated is None:
            raise NoPendingRegistration("No user found with this email")
        logger.info("Verification code reissued", email=updated.email_key)
        return updated

    def delete_pending(self, account_id: str) -> bool:
        """Roll back a pending registration (used when its OTP could not be sent)"""
        removed = self.collection.delete_one({"id": account_id, "pending_registration": True})
        if removed:
            logger.warning("Pending registration rolled back", id=account_id)
        return removed

    # -- administration --------------------------------------------------

    @staticmethod
    def _kind(account: Account) -> str:
        return "Employee" if account.position else "User"

    def create_employee(
        self,
        profile: ProfileInput,
        password: str,
        position: str,
        role: Role = Role.ADMIN,
        actor_name: str = "System",
    ) -> Account:
        """Admin-created account: active immediately, no OTP round trip"""
        if not (position or "").strip():
            raise ValidationError("Position is required")
        if self.find_by_email(profile.email) is not None:
            raise DuplicateEmail()
        now = self.clock()
        account = Account(
            id=uuid.uuid4().hex,
            account_id=generate_unique_account_id(self._account_id_taken),
            email=profile.email,
            email_key=normalize_email(profile.email),
            first_name=profile.first_name,
            last_name=profile.last_name,
            contact=profile.contact,
            gender=profile.gender,
            address=profile.address,
            position=position.strip(),
            role=role,
            is_active=True,
            pending_registration=False,
            password_hash=self.hasher.hash(password),
            created_at=now,
            updated_at=now,
        )
        created = self._insert(account)
        self.audit_log.record(
            action=f"Employee {created.full_name} created as {role.value} by {actor_name}",
            admin_name=actor_name,
            target_email=created.email,
            target_name=created.full_name,
        )
        logger.info("Employee created", email=created.email_key, role=role.value, actor=actor_name)
        return created

    def set_active_flag(self, account_id: str, active: bool, actor_name: str = "System", action: Optional[str] = None) -> Account:
        account = self._get(account_id)
        if active and account.pending_registration:
            raise ValidationError("Account has not completed email verification")
        updated = self._update({"id": account.id}, {"is_active": bool(active), "updated_at": self.clock()})
        if updated is None:
            raise AccountNotFound()
        verb = "activated" if active else "deactivated"
        self.audit_log.record(
            action=action or f"{self._kind(account)} {account.full_name} {verb} by {actor_name}",
            admin_name=actor_name,
            target_email=account.email,
            target_name=account.full_name,
        )
        logger.info("Account active flag changed", id=account.id, active=bool(active), actor=actor_name)
        return updated

    def update_profile(self, account_id: str, fields: Dict[str, Any], actor_name: str = "System", action: Optional[str] = None) -> Account:
        account = self._get(account_id)
        changes: Dict[str, Any] = {}
        for key in PROFILE_FIELDS:
            if key not in fields or fields[key] is None:
                continue
            value = fields[key]
            if isinstance(value, str):
                value = value.strip()
            if key in ("first_name", "last_name", "email", "contact", "position") and not value:
                continue
            changes[key] = value
        if "email" in changes:
            email_key = normalize_email(changes["email"])
            other = self.find_by_email(email_key)
            if other is not None and other.id != account.id:
                raise DuplicateEmail()
            changes["email_key"] = email_key
        if not changes:
            raise ValidationError("No profile fields to update")
        changes["updated_at"] = self.clock()

        updated = self._update({"id": account.id}, changes)
        if updated is None:
            raise AccountNotFound()
        self.audit_log.record(
            action=action or f"{self._kind(account)} {account.full_name} updated by {actor_name}",
            admin_name=actor_name,
            target_email=account.email,
            target_name=account.full_name,
        )
        logger.info("Account profile updated", id=account.id, fields=sorted(changes), actor=actor_name)
        return updated

    def list_accounts(
        self,
        search: str = "",
        status: str = "all",
        role: Optional[Role] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Account], int]:
        """Paginated listing; returns (accounts, total_pages)"""
        if status not in ACCOUNT_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(ACCOUNT_STATUSES)}")
        page = max(1, page)
        limit = max(1, min(limit, 100))
        needle = (search or "").strip().lower()

        def where(doc: Dict[str, Any]) -> bool:
            if status == "active" and not doc.get("is_active"):
                return False
            if status == "inactive" and doc.get("is_active"):
                return False
            if role is not None and doc.get("role") != role.value:
                return False
            if needle:
                haystack = (doc.get("first_name") or "", doc.get("last_name") or "", doc.get("email") or "")
                return any(needle in value.lower() for value in haystack)
            return True

        total = self.collection.count(where=where)
        docs = self.collection.find(where=where, sort=("created_at", False), skip=(page - 1) * limit, limit=limit)
        total_pages = max(1, math.ceil(total / limit))
        return [Account(**d) for d in docs], total_pages
