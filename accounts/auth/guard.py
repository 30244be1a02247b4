"""
Routing decisions for page navigations.

The web middleware feeds these functions the path and whatever session it
could verify; they answer with a redirect target or None (let it through).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from ..models.account import Role, SessionClaims


class RouteKind(str, Enum):
    PROTECTED = "protected"
    AUTH_ONLY = "auth_only"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class RouteRules:
    protected_prefixes: Tuple[str, ...] = ("/dashboard", "/profile", "/admin")
    auth_only_paths: Tuple[str, ...] = ("/login", "/signup")
    login_path: str = "/login"
    landing_path: str = "/dashboard"
    admin_prefix: str = "/admin"
    admin_home_path: str = "/admin"

    def home_for(self, role: Role) -> str:
        return self.admin_home_path if role == Role.ADMIN else self.landing_path


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def classify(path: str, rules: RouteRules) -> RouteKind:
    if any(_under(path, p) for p in rules.protected_prefixes):
        return RouteKind.PROTECTED
    if path in rules.auth_only_paths:
        return RouteKind.AUTH_ONLY
    return RouteKind.UNCLASSIFIED


def session_redirect(path: str, claims: Optional[SessionClaims], rules: RouteRules) -> Optional[str]:
    """
    First guard: logged-out callers cannot reach protected pages and
    logged-in callers do not see login/signup pages.

    `claims` is None when there is no cookie or it failed verification.
    """
    kind = classify(path, rules)
    if kind == RouteKind.PROTECTED and claims is None:
        return rules.login_path
    if kind == RouteKind.AUTH_ONLY and claims is not None:
        return rules.home_for(claims.role)
    return None


def role_redirect(path: str, claims: Optional[SessionClaims], rules: RouteRules) -> Optional[str]:
    """
    Second guard: each role has exactly one home. Non-admins are sent away
    from the admin area; admins are sent from the standard dashboard to the
    admin dashboard.
    """
    if claims is None:
        return None
    if _under(path, rules.admin_prefix) and claims.role != Role.ADMIN:
        return rules.home_for(claims.role)
    if _under(path, rules.landing_path) and claims.role == Role.ADMIN:
        return rules.home_for(Role.ADMIN)
    return None
