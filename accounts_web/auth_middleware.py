"""
Session helpers for the web layer.

- extract_token(): cookie first (browsers), then Authorization: Bearer
- current_claims / require_admin: FastAPI dependencies for JSON APIs
- SessionGuardMiddleware: redirects page navigations by session and role
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Receive, Scope, Send

from accounts.app import AccountsApp
from accounts.auth.guard import RouteKind, RouteRules, classify, role_redirect, session_redirect
from accounts.models.account import Role, SessionClaims
from accounts.utils.exceptions import DatabaseUnavailable, PermissionDenied, TokenInvalidOrExpired
from accounts.utils.logger import get_logger

logger = get_logger(__name__)

PAGE_METHODS = {"GET", "HEAD"}


def get_accounts(request: Request) -> AccountsApp:
    return request.app.state.accounts


def cookie_name_for(accounts: AccountsApp) -> str:
    return accounts.settings.auth.cookie_name


def extract_token(conn: HTTPConnection, cookie_name: str, allow_bearer: bool = True) -> Optional[str]:
    token = conn.cookies.get(cookie_name)
    if token:
        return token
    if not allow_bearer:
        return None
    auth_header = conn.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return None


async def current_claims(request: Request) -> SessionClaims:
    """
    Dependency for protected JSON routes.

    Raises TokenInvalidOrExpired (401) when the session is missing, forged,
    expired, or belongs to an account that is gone or deactivated.
    """
    accounts = get_accounts(request)
    token = extract_token(request, cookie_name_for(accounts))
    if not token:
        raise TokenInvalidOrExpired()
    return await run_in_threadpool(accounts.auth.verify_session, token)


async def require_admin(claims: SessionClaims = Depends(current_claims)) -> SessionClaims:
    if claims.role != Role.ADMIN:
        raise PermissionDenied()
    return claims


def actor_name(claims: SessionClaims) -> str:
    return claims.full_name or claims.email or "System"


class SessionGuardMiddleware:
    """Raw ASGI guard for page routes; JSON APIs use the dependencies above"""

    def __init__(self, app: ASGIApp, accounts: AccountsApp, rules: RouteRules):
        self.app = app
        self.accounts = accounts
        self.rules = rules

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http" or scope.get("method") not in PAGE_METHODS:
            await self.app(scope, receive, send)
            return
        path = scope.get("path") or ""
        if classify(path, self.rules) == RouteKind.UNCLASSIFIED:
            await self.app(scope, receive, send)
            return

        cookie_name = cookie_name_for(self.accounts)
        token = extract_token(HTTPConnection(scope), cookie_name, allow_bearer=False)
        claims: Optional[SessionClaims] = None
        if token:
            try:
                claims = await run_in_threadpool(self.accounts.auth.verify_session, token)
            except TokenInvalidOrExpired:
                claims = None
            except DatabaseUnavailable as e:
                response = JSONResponse(status_code=e.status_code, content=e.to_dict())
                await response(scope, receive, send)
                return

        target = session_redirect(path, claims, self.rules) or role_redirect(path, claims, self.rules)
        if target is None or target == path:
            await self.app(scope, receive, send)
            return

        logger.debug("Guard redirect", path=path, target=target, authenticated=claims is not None)
        response = RedirectResponse(url=target, status_code=302)
        if token and claims is None:
            # stale or forged cookie
            response.delete_cookie(cookie_name, path="/")
        await response(scope, receive, send)
