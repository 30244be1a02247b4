"""Append-only audit log of administrative account changes"""

from __future__ import annotations

import uuid
from typing import List

from ..core.database import DocumentStore
from ..models.account import AuditLogEntry
from ..utils.clock import Clock, utcnow

COLLECTION = "logs"
DEFAULT_LIMIT = 50


class AuditLog:
    def __init__(self, db: DocumentStore, clock: Clock = utcnow):
        self.collection = db.collection(COLLECTION)
        self.clock = clock

    def record(self, action: str, admin_name: str, target_email: str, target_name: str) -> AuditLogEntry:
        entry = AuditLogEntry(
            id=uuid.uuid4().hex,
            action=action,
            admin_name=admin_name,
            target_email=target_email,
            target_name=target_name,
            created_at=self.clock(),
        )
        self.collection.insert_one(entry.model_dump(mode="json"))
        return entry

    def recent(self, limit: int = DEFAULT_LIMIT) -> List[AuditLogEntry]:
        """Newest first"""
        docs = self.collection.find(sort=("created_at", True), limit=limit)
        return [AuditLogEntry(**d) for d in docs]
