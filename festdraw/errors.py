"""Exception hierarchy shared by the registry, engine, store and controller."""

from __future__ import annotations

from typing import Optional


class LotteryError(Exception):
    """Base class for every error raised on purpose by ``festdraw``."""


class ValidationError(LotteryError, ValueError):
    """Caller input was rejected before any state was touched.

    Attributes
    ----------
    reason : str
        Stable machine readable code naming the violated rule, e.g.
        ``"name_empty"`` or ``"count_too_large"``.
    field : Optional[str]
        Name of the offending argument, when there is one.
    """

    def __init__(self, reason: str, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.field = field


class NotFoundError(LotteryError, LookupError):
    """The referenced prize id does not exist."""

    def __init__(self, prize_id: str) -> None:
        super().__init__(f"Prize with ID {prize_id} not found")
        self.prize_id = prize_id


class DepletedError(LotteryError):
    """A decrement was requested on a prize with nothing left."""

    def __init__(self, prize_id: str, name: str) -> None:
        super().__init__(f"Prize {name} has no remaining count")
        self.prize_id = prize_id
        self.name = name


class PersistenceError(LotteryError, RuntimeError):
    """The authoritative (remote) tier could not be written or read."""


__all__ = [
    "DepletedError",
    "LotteryError",
    "NotFoundError",
    "PersistenceError",
    "ValidationError",
]
