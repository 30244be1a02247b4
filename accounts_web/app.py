"""
FastAPI application factory for the storefront accounts service.

create_app() builds every service up front; a missing signing secret or
database URL raises ConfigError here, before anything is served.
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from accounts.app import AccountsApp
from accounts.auth.guard import RouteRules
from accounts.services.mailer import MailTransport
from accounts.utils.clock import Clock, utcnow
from accounts.utils.config import Settings
from accounts.utils.exceptions import AccountsError, TooManyAttempts
from accounts.utils.logger import get_logger

from .admin_routes import router as admin_router
from .auth_middleware import SessionGuardMiddleware
from .auth_routes import router as auth_router
from .pages import router as pages_router

logger = get_logger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = [str(item) for item in error.get("loc", ()) if item != "body"]
        field = ".".join(loc)
        parts.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    return "; ".join(parts) or "All fields are required"


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AccountsError)
    async def accounts_error_handler(request: Request, exc: AccountsError):
        headers = None
        if isinstance(exc, TooManyAttempts):
            headers = {"Retry-After": str(exc.retry_after)}
        if exc.status_code >= 500:
            logger.error("Request failed", path=request.url.path, code=exc.code, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": _validation_message(exc), "code": "validation_error"},
        )


def create_app(
    settings: Optional[Settings] = None,
    mail_transport: Optional[MailTransport] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    accounts = AccountsApp(settings, mail_transport=mail_transport, clock=clock or utcnow).initialize()
    s = accounts.settings

    app = FastAPI(
        title=s.app.name,
        description="Registration, email verification and sessions for the storefront",
        version="1.0.0",
    )
    app.state.accounts = accounts

    rules = RouteRules(
        login_path=s.auth.login_path,
        landing_path=s.auth.landing_path,
        admin_home_path=s.auth.admin_home_path,
    )
    app.state.route_rules = rules

    # Raw ASGI guard (avoids BaseHTTPMiddleware cancellation issues on disconnect)
    app.add_middleware(SessionGuardMiddleware, accounts=accounts, rules=rules)
    if s.app.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=s.app.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_error_handlers(app)
    app.include_router(auth_router)
    app.include_router(admin_router)
    app.include_router(pages_router)

    @app.on_event("startup")
    async def startup_event():
        """Probe the database; requests reconnect on demand if it is down"""
        await run_in_threadpool(accounts.connect)

    return app
