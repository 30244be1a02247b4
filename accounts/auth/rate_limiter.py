"""Failed-login tracking with a cooldown after repeated failures"""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from threading import Lock
from typing import Dict, Optional, Tuple

from ..utils.clock import Clock, utcnow
from ..utils.logger import get_logger

logger = get_logger(__name__)


class LimiterState(str, Enum):
    CLEAN = "clean"
    WARMING = "warming"
    COOLING = "cooling"


@dataclass
class AttemptRecord:
    attempt_count: int
    last_attempt: datetime


class LoginRateLimiter:
    """
    Per-email failure counter kept in process memory.

    Clean (no entry) -> Warming (1..max-1 failures) -> Cooling (>= max).
    While cooling and inside the window every attempt is refused without
    touching the record, so refused attempts never extend the cooldown.
    A failure arriving more than one window after the previous one starts
    the count again at 1, whatever state the record was in.
    Not shared between processes and never evicted; a multi-instance
    deployment needs an external counter store instead.
    """

    def __init__(self, max_attempts: int = 3, cooldown_seconds: float = 60.0, clock: Clock = utcnow):
        self.max_attempts = max_attempts
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock
        self._records: Dict[str, AttemptRecord] = {}
        self.lock = Lock()

    @staticmethod
    def _key(email: str) -> str:
        return email.strip().lower()

    def _elapsed(self, record: AttemptRecord) -> float:
        return (self.clock() - record.last_attempt).total_seconds()

    def state(self, email: str) -> LimiterState:
        with self.lock:
            record = self._records.get(self._key(email))
            if record is None:
                return LimiterState.CLEAN
            if record.attempt_count >= self.max_attempts:
                return LimiterState.COOLING
            return LimiterState.WARMING

    def check(self, email: str) -> Tuple[bool, int]:
        """
        Returns (allowed, seconds_until_allowed).
        """
        with self.lock:
            record = self._records.get(self._key(email))
            if record is None or record.attempt_count < self.max_attempts:
                return True, 0
            elapsed = self._elapsed(record)
            if elapsed < self.cooldown_seconds:
                return False, max(1, math.ceil(self.cooldown_seconds - elapsed))
            return True, 0

    def record_failure(self, email: str) -> int:
        """Count a failed credential check; returns the new attempt count"""
        key = self._key(email)
        with self.lock:
            now = self.clock()
            record = self._records.get(key)
            if record is None:
                record = AttemptRecord(attempt_count=0, last_attempt=now)
            elif self._elapsed(record) >= self.cooldown_seconds:
                # last failure is outside the window; start over
                record.attempt_count = 0
            record.attempt_count += 1
            record.last_attempt = now
            self._records[key] = record
            count = record.attempt_count
        if count >= self.max_attempts:
            logger.warning("Login cooldown started", email=key, attempts=count)
        return count

    def reset(self, email: str) -> None:
        with self.lock:
            self._records.pop(self._key(email), None)

    def attempts(self, email: str) -> Optional[int]:
        with self.lock:
            record = self._records.get(self._key(email))
            return record.attempt_count if record else None
