"""Human-readable account identifiers"""

import secrets
import string
from typing import Callable

LETTERS = string.ascii_uppercase
DIGITS = string.digits
MAX_TRIES = 50


def random_account_id() -> str:
    """Format ABCD-1234"""
    letters = "".join(secrets.choice(LETTERS) for _ in range(4))
    digits = "".join(secrets.choice(DIGITS) for _ in range(4))
    return f"{letters}-{digits}"


def generate_unique_account_id(exists: Callable[[str], bool]) -> str:
    for _ in range(MAX_TRIES):
        candidate = random_account_id()
        if not exists(candidate):
            return candidate
    raise RuntimeError("Could not generate a unique account id")
