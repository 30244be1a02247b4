"""
Named write locks for the JSON document store.

Each collection file gets a sibling lock file created with O_EXCL, so
several worker processes pointed at the same directory serialize their
read-modify-write cycles. No Redis required.
"""

from __future__ import annotations

import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

LOCK_POLL_INTERVAL = 0.05


def lock_path(directory: Path, key: str) -> Path:
    safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
    return directory / f".{safe}.lock"


@contextmanager
def acquire_lock(path: Path, timeout_seconds: float) -> Generator[None, None, None]:
    """
    Hold the lock file at `path` for the duration of the block.

    Raises TimeoutError if it cannot be created within timeout_seconds.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    start = time.monotonic()
    while True:
        try:
            fd = os.open(str(path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            if (time.monotonic() - start) >= timeout_seconds:
                raise TimeoutError(f"Could not acquire lock {path.name} within {timeout_seconds}s")
            time.sleep(LOCK_POLL_INTERVAL)
            continue
        try:
            os.write(fd, str(os.getpid()).encode())
        finally:
            os.close(fd)
        break
    try:
        yield
    finally:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
