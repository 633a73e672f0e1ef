# ═══════════════════════════════════════════════════════════════════════════════
# PART 4: OCCURRENCES & ABOUTNESS RELATIONS
# Design: H4 (Semiotics) | Implementation: I3 (State Management)
# ═══════════════════════════════════════════════════════════════════════════════

"""
H4: "An occurrence is an event, not a thing. It can be about another
occurrence, never about itself directly - self-reference has to go the long
way round, through a loop."
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


# ── Exceptions ───────────────────────────────────────────────────────────────


class WavemindError(Exception):
    """Base class for wavemind errors."""
    pass


class ValidationError(WavemindError, ValueError):
    """Raised when a graph or state mutation would break an invariant."""
    pass


# ── Types ───────────────────────────────────────────────────────────────────


class OccurrenceMode(Enum):
    """Triune occurrence modes."""
    UNITY = "U"
    DUALITY = "D"
    RELATION = "R"


@dataclass
class Occurrence:
    """A discrete event node. Only metadata is mutable after creation."""
    id: str
    mode: OccurrenceMode = OccurrenceMode.UNITY
    payload: Any = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.mode, OccurrenceMode):
            self.mode = OccurrenceMode(self.mode)

    def clone_with_mode(self, mode: OccurrenceMode) -> Occurrence:
        return Occurrence(
            id=self.id,
            mode=mode,
            payload=self.payload,
            metadata=dict(self.metadata),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "mode": self.mode.value,
            "payload": self.payload,
            "metadata": self.metadata,
        }


@dataclass
class AboutnessRelation:
    """Directed 'is about' edge. from_id must differ from to_id."""
    from_id: str
    to_id: str
    weight: float = 1.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.from_id == self.to_id:
            raise ValidationError(
                f"No direct self-reference allowed: '{self.from_id}' -> '{self.to_id}'"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_id,
            "to": self.to_id,
            "weight": self.weight,
            "metadata": self.metadata,
        }


def create_triune_occurrences(
    base_id: str,
    payload: Any,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[OccurrenceMode, Occurrence]:
    """One occurrence per mode, ids suffixed ':U', ':D', ':R', sharing the payload."""
    metadata = metadata or {}
    return {
        mode: Occurrence(
            id=f"{base_id}:{mode.value}",
            mode=mode,
            payload=payload,
            metadata=dict(metadata),
        )
        for mode in OccurrenceMode
    }
