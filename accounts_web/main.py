"""ASGI entry point: uvicorn accounts_web.main:app"""

from .app import create_app

app = create_app()
