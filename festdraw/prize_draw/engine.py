"""Weighted random selection over the prize pool."""

from __future__ import annotations

import random
from typing import Iterable, Optional, Sequence

from ..errors import DepletedError, NotFoundError
from ..models.prize import Prize
from .registry import validate_prize_id


def weighted_pick(available: Sequence[Prize], rng: random.Random) -> Prize:
    """Pick one prize with probability proportional to ``remaining_count``.

    A single value ``r`` is drawn uniformly from ``[0, total_weight)`` and the
    first prize whose cumulative weight exceeds ``r`` wins. When rounding
    leaves nothing selected the last prize is returned.

    Parameters
    ----------
    available : Sequence[Prize]
        Non-empty sequence of prizes with ``remaining_count > 0``.
    rng : random.Random
        Source of randomness.
    """
    if not available:
        raise ValueError("available must not be empty")

    total_weight = sum(prize.remaining_count for prize in available)
    target = rng.random() * total_weight

    cumulative = 0
    for prize in available:
        cumulative += prize.remaining_count
        if target < cumulative:
            return prize
    return available[-1]


class DrawEngine:
    """Draws from, decrements and restocks a snapshot of the prize pool.

    The engine owns a private copy of the prizes it was given. Every
    operation replaces that copy in one assignment, so :attr:`prizes` never
    exposes a half-applied change.
    """

    def __init__(
        self,
        prizes: Iterable[Prize] = (),
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Create an engine over ``prizes``.

        Parameters
        ----------
        prizes : Iterable[Prize]
            Full prize pool, in display order.
        rng : Optional[random.Random], default: None
            Random source. A fresh :class:`random.Random` is used when omitted;
            tests pass a seeded instance.
        """
        self._prizes: tuple[Prize, ...] = tuple(prizes)
        self._rng = rng or random.Random()

    @property
    def prizes(self) -> tuple[Prize, ...]:
        return self._prizes

    def has_available(self) -> bool:
        return any(prize.is_available for prize in self._prizes)

    def draw(self) -> Optional[Prize]:
        """Select a prize by remaining inventory and take one unit of it.

        Returns
        -------
        Optional[Prize]
            The selected prize with its decremented ``remaining_count``, or
            ``None`` when nothing is left to draw.
        """
        available = [prize for prize in self._prizes if prize.is_available]
        if not available:
            return None

        chosen = weighted_pick(available, self._rng)
        drawn = chosen.with_remaining(chosen.remaining_count - 1)
        self._prizes = tuple(
            drawn if prize.id == chosen.id else prize for prize in self._prizes
        )
        return drawn

    def decrement(self, prize_id: str) -> Prize:
        """Take one unit of ``prize_id`` outside of a weighted draw.

        Raises
        ------
        NotFoundError
            If no prize has ``prize_id``.
        DepletedError
            If the prize has no remaining units.
        """
        validate_prize_id(prize_id)
        for index, prize in enumerate(self._prizes):
            if prize.id != prize_id:
                continue
            if not prize.is_available:
                raise DepletedError(prize.id, prize.name)
            updated = prize.with_remaining(prize.remaining_count - 1)
            self._prizes = self._prizes[:index] + (updated,) + self._prizes[index + 1 :]
            return updated
        raise NotFoundError(prize_id)

    def reset_all(self) -> None:
        """Restore every prize to its ``total_count``."""
        self._prizes = tuple(
            prize.with_remaining(prize.total_count) for prize in self._prizes
        )


__all__ = ["DrawEngine", "weighted_pick"]
