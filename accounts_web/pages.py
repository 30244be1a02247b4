"""Minimal HTML pages behind the session guard"""

from fastapi import APIRouter
from fastapi.responses import HTMLResponse


router = APIRouter(tags=["pages"], include_in_schema=False)


def _page(title: str, body: str = "") -> HTMLResponse:
    html = (
        "<!DOCTYPE html>\n"
        f"<html><head><meta charset=\"utf-8\"><title>{title}</title></head>\n"
        f"<body><h1>{title}</h1>{body}</body></html>\n"
    )
    return HTMLResponse(html)


@router.get("/")
async def home():
    return _page("Storefront", '<a href="/login">Sign in</a> | <a href="/signup">Create account</a>')


@router.get("/login")
async def login_page():
    return _page("Sign in")


@router.get("/signup")
async def signup_page():
    return _page("Create account")


@router.get("/dashboard")
async def dashboard_page():
    return _page("Dashboard")


@router.get("/profile")
async def profile_page():
    return _page("Profile")


@router.get("/admin")
@router.get("/admin/{section:path}")
async def admin_page(section: str = ""):
    return _page("Admin" if not section else f"Admin / {section}")
