"""Schema-checked deserialisation of stored lottery documents.

Untrusted input (the local cache, remote snapshots) goes through
:func:`parse_aggregate`, which returns either :class:`Accepted` carrying a
:class:`~festdraw.models.prize.LotteryAggregate` or :class:`Rejected` naming
the first rule that failed. Nothing here raises on bad data.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional, Union

from ..models.prize import LotteryAggregate


@dataclass(frozen=True)
class Accepted:
    aggregate: LotteryAggregate
    ok = True


@dataclass(frozen=True)
class Rejected:
    reason: str
    ok = False


ParseResult = Union[Accepted, Rejected]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and len(value) > 0


def _prize_problem(prize: Any, where: str) -> Optional[str]:
    """Return a description of what is wrong with ``prize``, or ``None``."""
    if not isinstance(prize, dict):
        return f"{where} is not an object"
    if not _non_empty_str(prize.get("id")):
        return f"{where}.id must be a non-empty string"
    if not _non_empty_str(prize.get("name")):
        return f"{where}.name must be a non-empty string"
    for key in ("totalCount", "remainingCount"):
        value = prize.get(key)
        if not _is_number(value) or value < 0:
            return f"{where}.{key} must be a non-negative number"
    if "description" in prize and prize["description"] is not None:
        if not isinstance(prize["description"], str):
            return f"{where}.description must be a string"
    return None


def _history_problem(history: Any) -> Optional[str]:
    if not isinstance(history, list):
        return "history must be an array"
    for index, entry in enumerate(history):
        where = f"history[{index}]"
        if not isinstance(entry, dict):
            return f"{where} is not an object"
        if not _is_number(entry.get("timestamp")):
            return f"{where}.timestamp must be a number"
        if not isinstance(entry.get("prizeName"), str):
            return f"{where}.prizeName must be a string"
        inventory = entry.get("remainingInventory")
        if not isinstance(inventory, dict):
            return f"{where}.remainingInventory must be an object"
        if not all(_is_number(count) for count in inventory.values()):
            return f"{where}.remainingInventory values must be numbers"
    return None


def validate_document(raw: Any) -> Optional[str]:
    """Return the first structural problem found in ``raw`` or ``None`` if valid."""
    if not isinstance(raw, dict):
        return "document must be an object"

    prizes = raw.get("prizes")
    if not isinstance(prizes, list):
        return "prizes must be an array"
    for index, prize in enumerate(prizes):
        problem = _prize_problem(prize, f"prizes[{index}]")
        if problem:
            return problem

    if not isinstance(raw.get("isDrawing"), bool):
        return "isDrawing must be a boolean"
    if not _is_number(raw.get("totalDrawn")):
        return "totalDrawn must be a number"

    current = raw.get("currentResult")
    if current is not None:
        problem = _prize_problem(current, "currentResult")
        if problem:
            return problem

    # Documents written before history existed are still accepted.
    if raw.get("history") is not None:
        problem = _history_problem(raw["history"])
        if problem:
            return problem
    return None


def parse_aggregate(raw: Any) -> ParseResult:
    """Validate ``raw`` (decoded JSON) and build an aggregate from it."""
    problem = validate_document(raw)
    if problem is not None:
        return Rejected(problem)
    return Accepted(LotteryAggregate.from_json(raw))


def parse_aggregate_text(text: str) -> ParseResult:
    """Decode ``text`` as JSON, then defer to :func:`parse_aggregate`."""
    try:
        raw = json.loads(text)
    except (TypeError, ValueError):
        return Rejected("invalid_json")
    return parse_aggregate(raw)


__all__ = [
    "Accepted",
    "ParseResult",
    "Rejected",
    "parse_aggregate",
    "parse_aggregate_text",
    "validate_document",
]
