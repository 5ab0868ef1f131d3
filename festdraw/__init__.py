"""Weighted prize draw with replicated state for live events."""

from .errors import (
    DepletedError,
    LotteryError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from .models.prize import DrawHistoryEntry, LotteryAggregate, Prize
from .prize_draw import DrawEngine, PrizeRegistry
from .session import DEFAULT_PRIZES, LotteryController, PrizeSeed
from .storage import StateStore

__all__ = [
    "DEFAULT_PRIZES",
    "DepletedError",
    "DrawEngine",
    "DrawHistoryEntry",
    "LotteryAggregate",
    "LotteryController",
    "LotteryError",
    "NotFoundError",
    "PersistenceError",
    "Prize",
    "PrizeRegistry",
    "PrizeSeed",
    "StateStore",
    "ValidationError",
]
