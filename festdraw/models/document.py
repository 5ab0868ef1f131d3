"""Database model backing the authoritative lottery document."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base


class LotteryDocument(Base):
    """One JSON document per logical key, with a monotonically rising revision."""

    __tablename__ = "lottery_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Surrogate primary key."""

    key: Mapped[str] = mapped_column(String(100), nullable=False)
    """Fixed logical name of the document (one per deployment)."""

    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    """The serialised :class:`~festdraw.models.prize.LotteryAggregate`."""

    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    """Bumped on every write; watchers compare it to detect changes."""

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    """Timestamp of the last write."""

    __table_args__ = (UniqueConstraint("key", name="lottery_documents_key_key"),)

    def __init__(
        self,
        *,
        key: str,
        payload: dict[str, Any],
        revision: int = 1,
        updated_at: Optional[datetime] = None,
    ) -> None:
        self.key = key
        self.payload = payload
        self.revision = revision
        if updated_at is not None:
            self.updated_at = updated_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<LotteryDocument(id={id}, key={key}, revision={rev})>".format(
            id=self.id,
            key=self.key,
            rev=self.revision,
        )

    @classmethod
    def get_by_key(cls, session: Session, key: str) -> Optional["LotteryDocument"]:
        """Return the document stored under ``key`` if it exists."""

        return session.scalar(select(cls).where(cls.key == key))

    @classmethod
    def upsert(
        cls, session: Session, key: str, payload: dict[str, Any]
    ) -> "LotteryDocument":
        """Replace the payload stored under ``key``, creating the row if needed."""

        document = cls.get_by_key(session, key)
        if document is None:
            document = cls(key=key, payload=payload)
            session.add(document)
        else:
            document.payload = payload
            document.revision = (document.revision or 0) + 1
        session.flush()
        return document


__all__ = ["LotteryDocument"]
