"""HTTP layer for the storefront accounts service"""

from .app import create_app

__all__ = ["create_app"]
