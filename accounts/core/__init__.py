"""Persistence primitives for the accounts system"""

from .database import Collection, DocumentStore, DuplicateKeyError

__all__ = [
    "Collection",
    "DocumentStore",
    "DuplicateKeyError",
]
