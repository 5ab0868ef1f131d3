"""Prize registry and weighted draw engine."""

from .engine import DrawEngine, weighted_pick
from .registry import MAX_COUNT, MAX_NAME_LENGTH, PrizeRegistry, validate_prize_id

__all__ = [
    "DrawEngine",
    "MAX_COUNT",
    "MAX_NAME_LENGTH",
    "PrizeRegistry",
    "validate_prize_id",
    "weighted_pick",
]
