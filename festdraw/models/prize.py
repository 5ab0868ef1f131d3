"""Value objects describing the prize pool and the persisted lottery state."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class Prize:
    """A named, countable reward with total and remaining inventory.

    Attributes
    ----------
    id : str
        Opaque identifier assigned by :func:`festdraw.models.utils.generate_prize_id`.
    name : str
        Display name, trimmed, 1-50 characters.
    total_count : int
        Inventory the prize was created with. Never changes after creation.
    remaining_count : int
        Units still available to be drawn.
    description : Optional[str]
        Free form description shown next to the name.
    """

    id: str
    name: str
    total_count: int
    remaining_count: int
    description: Optional[str] = None

    @property
    def is_available(self) -> bool:
        return self.remaining_count > 0

    def with_remaining(self, remaining_count: int) -> "Prize":
        """Return a copy with ``remaining_count`` replaced."""
        return replace(self, remaining_count=remaining_count)

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "totalCount": self.total_count,
            "remainingCount": self.remaining_count,
        }
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "Prize":
        """Build a prize from an already validated document fragment."""
        return cls(
            id=data["id"],
            name=data["name"],
            total_count=data["totalCount"],
            remaining_count=data["remainingCount"],
            description=data.get("description"),
        )


@dataclass(frozen=True)
class DrawHistoryEntry:
    """Record of one successful draw.

    ``remaining_inventory`` maps each prize name to its remaining count right
    after the draw. It is exposed read-only.
    """

    timestamp: int
    prize_name: str
    remaining_inventory: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "remaining_inventory",
            MappingProxyType(dict(self.remaining_inventory)),
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "prizeName": self.prize_name,
            "remainingInventory": dict(self.remaining_inventory),
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "DrawHistoryEntry":
        return cls(
            timestamp=data["timestamp"],
            prize_name=data["prizeName"],
            remaining_inventory=data["remainingInventory"],
        )


@dataclass(frozen=True)
class LotteryAggregate:
    """The single unit of persistence and synchronisation.

    Instances are immutable; every mutation produces a new aggregate which
    replaces the previous one wholesale.

    Attributes
    ----------
    prizes : tuple[Prize, ...]
        Prize pool in insertion order.
    current_result : Optional[Prize]
        Prize returned by the most recent draw, if any.
    is_drawing : bool
        ``True`` while a draw is being performed (drives the UI animation).
    total_drawn : int
        Number of successful draws since the last reset.
    history : tuple[DrawHistoryEntry, ...]
        Draw history, oldest first.
    """

    prizes: tuple[Prize, ...] = ()
    current_result: Optional[Prize] = None
    is_drawing: bool = False
    total_drawn: int = 0
    history: tuple[DrawHistoryEntry, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "prizes", tuple(self.prizes))
        object.__setattr__(self, "history", tuple(self.history))

    @classmethod
    def empty(cls) -> "LotteryAggregate":
        """Return the canonical empty aggregate."""
        return cls()

    def find_prize(self, prize_id: str) -> Optional[Prize]:
        for prize in self.prizes:
            if prize.id == prize_id:
                return prize
        return None

    def inventory(self) -> dict[str, int]:
        """Map prize names to remaining counts (later duplicates win)."""
        return {prize.name: prize.remaining_count for prize in self.prizes}

    def evolve(self, **changes: Any) -> "LotteryAggregate":
        return replace(self, **changes)

    def to_json(self) -> dict[str, Any]:
        return {
            "prizes": [prize.to_json() for prize in self.prizes],
            "currentResult": (
                self.current_result.to_json()
                if self.current_result is not None
                else None
            ),
            "isDrawing": self.is_drawing,
            "totalDrawn": self.total_drawn,
            "history": [entry.to_json() for entry in self.history],
        }

    def to_json_str(self) -> str:
        return json.dumps(self.to_json(), ensure_ascii=False)

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "LotteryAggregate":
        """Build an aggregate from a document that already passed validation.

        Use :func:`festdraw.storage.schema.parse_aggregate` for untrusted
        input; this constructor assumes the structure is correct.
        """
        current = data.get("currentResult")
        return cls(
            prizes=tuple(Prize.from_json(item) for item in data["prizes"]),
            current_result=Prize.from_json(current) if current else None,
            is_drawing=data["isDrawing"],
            total_drawn=data["totalDrawn"],
            history=tuple(
                DrawHistoryEntry.from_json(item) for item in data.get("history") or ()
            ),
        )


__all__ = ["DrawHistoryEntry", "LotteryAggregate", "Prize"]
