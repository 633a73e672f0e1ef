# ═══════════════════════════════════════════════════════════════════════════════
# PART 5: ABOUTNESS GRAPH
# Design: H4 (Semiotics) + S2 (Distributed Systems)
# Implementation: I3 (State Management)
# ═══════════════════════════════════════════════════════════════════════════════

"""
S2: "Relations live in an arena and the adjacency lists hold indices into it.
Removal is then a question of which slots to clear, not which object handle
happens to compare equal."

I3: "Outgoing and incoming must agree after every mutation. If they ever
drift, every loop and curvature number built on top is garbage."
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from wavemind.core.occurrences import AboutnessRelation, Occurrence, ValidationError

logger = logging.getLogger(__name__)


class AboutnessGraph:
    """
    Directed graph of occurrences joined by aboutness relations.

    Relations are stored in an index-addressed arena; removed slots become
    None and are never reused, so indices stay stable for the graph's life.
    """

    def __init__(self) -> None:
        self.occurrences: Dict[str, Occurrence] = {}
        self._relations: List[Optional[AboutnessRelation]] = []
        self._outgoing: Dict[str, List[int]] = {}
        self._incoming: Dict[str, List[int]] = {}

    # ── Properties ───────────────────────────────────────────────────────────

    @property
    def n_occurrences(self) -> int:
        return len(self.occurrences)

    @property
    def n_relations(self) -> int:
        return sum(len(indices) for indices in self._outgoing.values())

    # ── Occurrences ──────────────────────────────────────────────────────────

    def add_occurrence(self, occurrence: Occurrence) -> Occurrence:
        """Add (or replace) an occurrence. Existing relations are kept."""
        self.occurrences[occurrence.id] = occurrence
        self._outgoing.setdefault(occurrence.id, [])
        self._incoming.setdefault(occurrence.id, [])
        return occurrence

    def get_occurrence(self, occ_id: str) -> Optional[Occurrence]:
        return self.occurrences.get(occ_id)

    def has_occurrence(self, occ_id: str) -> bool:
        return occ_id in self.occurrences

    def get_all_occurrences(self) -> List[Occurrence]:
        return list(self.occurrences.values())

    def remove_occurrence(self, occ_id: str) -> bool:
        """
        Remove an occurrence and every relation touching it.

        Returns False if the id is unknown.
        """
        if occ_id not in self.occurrences:
            return False

        removed = 0
        for index in list(self._outgoing.get(occ_id, [])):
            self._drop_relation(index)
            removed += 1
        for index in list(self._incoming.get(occ_id, [])):
            self._drop_relation(index)
            removed += 1

        del self.occurrences[occ_id]
        self._outgoing.pop(occ_id, None)
        self._incoming.pop(occ_id, None)
        logger.debug("Removed occurrence %s with %d relations", occ_id, removed)
        return True

    # ── Relations ────────────────────────────────────────────────────────────

    def add_relation(
        self,
        from_id: str,
        to_id: str,
        weight: float = 1.0,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Add a directed relation and return its arena index.

        Raises:
            ValidationError: endpoint missing, or from_id == to_id.
        """
        if from_id not in self.occurrences:
            raise ValidationError(f"Occurrence '{from_id}' not found")
        if to_id not in self.occurrences:
            raise ValidationError(f"Occurrence '{to_id}' not found")

        relation = AboutnessRelation(from_id, to_id, weight, metadata or {})
        index = len(self._relations)
        self._relations.append(relation)
        self._outgoing[from_id].append(index)
        self._incoming[to_id].append(index)
        return index

    def get_relation(self, index: int) -> Optional[AboutnessRelation]:
        if 0 <= index < len(self._relations):
            return self._relations[index]
        return None

    def get_outgoing(self, from_id: str) -> List[AboutnessRelation]:
        return [self._relations[i] for i in self._outgoing.get(from_id, [])]

    def get_incoming(self, to_id: str) -> List[AboutnessRelation]:
        return [self._relations[i] for i in self._incoming.get(to_id, [])]

    def successors(self, occ_id: str) -> List[str]:
        return [rel.to_id for rel in self.get_outgoing(occ_id)]

    def remove_relation(self, from_id: str, to_id: str) -> int:
        """Remove every relation from_id -> to_id. Returns how many were removed."""
        doomed = [
            i for i in self._outgoing.get(from_id, [])
            if self._relations[i].to_id == to_id
        ]
        for index in doomed:
            self._drop_relation(index)
        return len(doomed)

    def get_all_relations(self) -> List[AboutnessRelation]:
        """Live relations in insertion order."""
        return [rel for rel in self._relations if rel is not None]

    # ── Serialization ────────────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "occurrences": [occ.to_dict() for occ in self.get_all_occurrences()],
            "relations": [rel.to_dict() for rel in self.get_all_relations()],
        }

    # ── Internal ─────────────────────────────────────────────────────────────

    def _drop_relation(self, index: int) -> None:
        relation = self._relations[index]
        if relation is None:
            return
        out_list = self._outgoing.get(relation.from_id)
        if out_list is not None and index in out_list:
            out_list.remove(index)
        in_list = self._incoming.get(relation.to_id)
        if in_list is not None and index in in_list:
            in_list.remove(index)
        self._relations[index] = None
