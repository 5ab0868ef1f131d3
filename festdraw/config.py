"""Environment driven settings for the lottery services."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

# Project root directory (repo root)
ROOT_DIR = Path(__file__).resolve().parents[1]

DEFAULT_DB_URL = "sqlite:///./dev.db"
DEFAULT_DOC_KEY = "lottery_state"
DEFAULT_CACHE_DIR = "./.lottery_cache"


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable '{name}' must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"Environment variable '{name}' must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    """Resolved configuration.

    Attributes
    ----------
    database_url : str
        SQLAlchemy URL of the authoritative store when the SQL backend is used.
    doc_key : str
        Fixed logical key of the lottery document.
    cache_dir : Path
        Directory holding the local JSON cache.
    remote_url : Optional[str]
        Base URL of a REST document store. When set it replaces the SQL backend.
    remote_auth : Optional[str]
        Token appended as ``?auth=`` to REST requests.
    poll_interval : float
        Seconds between remote change checks.
    http_timeout : float
        Timeout in seconds for REST requests.
    """

    database_url: str = DEFAULT_DB_URL
    doc_key: str = DEFAULT_DOC_KEY
    cache_dir: Path = ROOT_DIR / ".lottery_cache"
    remote_url: Optional[str] = None
    remote_auth: Optional[str] = None
    poll_interval: float = 1.0
    http_timeout: float = 15.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Read settings from ``environ`` (default: ``os.environ`` after loading ``.env``)."""
        if environ is None:
            load_dotenv()
            environ = os.environ

        cache_dir = Path(environ.get("LOTTERY_CACHE_DIR") or DEFAULT_CACHE_DIR)
        if not cache_dir.is_absolute():
            cache_dir = (ROOT_DIR / cache_dir).resolve()

        return cls(
            database_url=environ.get("DB_URL") or DEFAULT_DB_URL,
            doc_key=environ.get("LOTTERY_DOC_KEY") or DEFAULT_DOC_KEY,
            cache_dir=cache_dir,
            remote_url=(environ.get("LOTTERY_REMOTE_URL") or None),
            remote_auth=(environ.get("LOTTERY_REMOTE_AUTH") or None),
            poll_interval=_float_env(environ, "LOTTERY_POLL_INTERVAL", 1.0),
            http_timeout=_float_env(environ, "LOTTERY_HTTP_TIMEOUT", 15.0),
        )


__all__ = ["ROOT_DIR", "Settings"]
