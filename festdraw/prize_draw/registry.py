"""Prize registry: creation, administrative updates and removal of prizes."""

from __future__ import annotations

import math
from typing import Any, Iterable, Optional

from ..errors import NotFoundError, ValidationError
from ..models.prize import Prize
from ..models.utils import generate_prize_id

MAX_NAME_LENGTH = 50
MAX_COUNT = 10000


def validate_prize_id(prize_id: Any) -> str:
    """Return ``prize_id`` if it is a non-empty string, else raise."""
    if not isinstance(prize_id, str) or not prize_id.strip():
        raise ValidationError("id_empty", "Prize ID must be a non-empty string", field="prize_id")
    return prize_id


def _validate_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name_empty", "Prize name must be a non-empty string", field="name")
    trimmed = name.strip()
    if len(trimmed) > MAX_NAME_LENGTH:
        raise ValidationError(
            "name_too_long",
            f"Prize name must not exceed {MAX_NAME_LENGTH} characters",
            field="name",
        )
    return trimmed


def _validate_count(count: Any, *, allow_zero: bool) -> int:
    """Apply the count rules shared by :meth:`PrizeRegistry.add` and ``update``.

    ``bool`` is rejected even though it subclasses ``int``. Integral floats
    such as ``5.0`` are accepted and converted.
    """
    if isinstance(count, bool) or not isinstance(count, (int, float)):
        raise ValidationError("count_not_number", "Prize count must be a number", field="count")
    if isinstance(count, float):
        if not math.isfinite(count) or not count.is_integer():
            raise ValidationError(
                "count_not_integer", "Prize count must be an integer", field="count"
            )
        count = int(count)
    if allow_zero and count < 0:
        raise ValidationError(
            "count_negative", "Prize count must be non-negative", field="count"
        )
    if not allow_zero and count <= 0:
        raise ValidationError(
            "count_not_positive", "Prize count must be a positive integer", field="count"
        )
    if count > MAX_COUNT:
        raise ValidationError(
            "count_too_large", f"Prize count must not exceed {MAX_COUNT}", field="count"
        )
    return count


def _validate_description(description: Any) -> Optional[str]:
    if description is None:
        return None
    if not isinstance(description, str):
        raise ValidationError(
            "description_not_string",
            "Prize description must be a string",
            field="description",
        )
    return description.strip() or None


class PrizeRegistry:
    """Ordered, validated collection of prizes.

    The registry works on its own list; callers hand it the current prize
    tuple and read the result back through :meth:`list`. Nothing returned by
    the registry aliases its internal storage.
    """

    def __init__(self, prizes: Iterable[Prize] = ()) -> None:
        self._prizes: list[Prize] = list(prizes)

    def add(self, name: Any, count: Any, description: Any = None) -> Prize:
        """Validate the input and append a new prize at the tail.

        Parameters
        ----------
        name : str
            Prize name; trimmed, 1-50 characters.
        count : int
            Initial inventory, 1-10000. Becomes both ``total_count`` and
            ``remaining_count``.
        description : Optional[str], default: None
            Optional text; empty after trimming is treated as absent.

        Returns
        -------
        Prize
            The newly created prize.

        Raises
        ------
        ValidationError
            On the first violated rule, checked in the order name, count,
            description.
        """
        clean_name = _validate_name(name)
        clean_count = _validate_count(count, allow_zero=False)
        clean_description = _validate_description(description)

        prize = Prize(
            id=generate_prize_id(taken={p.id for p in self._prizes}),
            name=clean_name,
            total_count=clean_count,
            remaining_count=clean_count,
            description=clean_description,
        )
        self._prizes.append(prize)
        return prize

    def update(self, prize_id: Any, new_remaining_count: Any) -> Prize:
        """Set ``remaining_count`` of an existing prize.

        ``total_count`` is left untouched and the new value is not clamped to
        it, so an update can raise the remaining count above the total.
        """
        index = self._index_of(prize_id)
        clean_count = _validate_count(new_remaining_count, allow_zero=True)
        updated = self._prizes[index].with_remaining(clean_count)
        self._prizes[index] = updated
        return updated

    def remove(self, prize_id: Any) -> Prize:
        index = self._index_of(prize_id)
        return self._prizes.pop(index)

    def get(self, prize_id: Any) -> Prize:
        return self._prizes[self._index_of(prize_id)]

    def list(self) -> tuple[Prize, ...]:
        return tuple(self._prizes)

    def list_available(self) -> tuple[Prize, ...]:
        return tuple(prize for prize in self._prizes if prize.is_available)

    def _index_of(self, prize_id: Any) -> int:
        validate_prize_id(prize_id)
        for index, prize in enumerate(self._prizes):
            if prize.id == prize_id:
                return index
        raise NotFoundError(prize_id)


__all__ = ["MAX_COUNT", "MAX_NAME_LENGTH", "PrizeRegistry", "validate_prize_id"]
