from pathlib import Path
from datetime import datetime, timezone
from typing import Optional


def resolve_sqlite_url(url: str, project_root: Path) -> str:
    """Resolve 'sqlite:///./relative/path' to an absolute sqlite:/// URL.

    Keeps other URL forms unchanged.
    """
    prefix = "sqlite:///./"
    if not url.startswith(prefix):
        return url
    rel = url[len(prefix) :]
    return f"sqlite:///{(project_root / rel).resolve()}"


def now_millis(now: Optional[datetime] = None) -> int:
    """Return ``now`` (default: current UTC time) as integer epoch milliseconds."""
    if now is None:
        now = datetime.now(timezone.utc)
    return int(now.timestamp() * 1000)
