from .base import Base

# import models so metadata.create_all can discover mappers
from .document import LotteryDocument  # noqa: F401
from .prize import DrawHistoryEntry, LotteryAggregate, Prize  # noqa: F401

__all__ = [
    "Base",
    "DrawHistoryEntry",
    "LotteryAggregate",
    "LotteryDocument",
    "Prize",
]
