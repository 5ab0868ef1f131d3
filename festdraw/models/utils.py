"""Utility helpers for the models package."""

from __future__ import annotations

import secrets
import string
from typing import Container, Optional

BASE62_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase


def generate_prize_id(
    taken: Optional[Container[str]] = None,
    prefix: str = "prize",
    length: int = 12,
    max_attempts: int = 32,
) -> str:
    """Return a unique prize identifier made of base62 random characters.

    When ``taken`` is provided, the helper retries if the generated value is
    already present in it.
    """

    attempts = 0
    while attempts < max_attempts:
        suffix = "".join(secrets.choice(BASE62_ALPHABET) for _ in range(length))
        candidate = f"{prefix}-{suffix}"
        if taken is not None and candidate in taken:
            attempts += 1
            continue
        return candidate

    raise RuntimeError("Unable to generate a unique prize identifier after multiple attempts")
