# ═══════════════════════════════════════════════════════════════════════════════
# PART 6: STATES, PATHS & CAUSAL ORDER
# Design: H4 (Semiotics) + P1 (Dynamical Systems)
# Implementation: I3 (State Management)
# ═══════════════════════════════════════════════════════════════════════════════

"""
H4: "Two occurrences with the same content play the same role. A state is
that role: the equivalence class, not the event."

P1: "Path enumeration explodes with branching factor. Every walk here is
depth-capped; the caps are part of the contract, not a tuning knob."
"""

from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

import numpy as np

from wavemind.core.aboutness_graph import AboutnessGraph
from wavemind.core.occurrences import Occurrence, ValidationError


# ── Paths ───────────────────────────────────────────────────────────────────


@dataclass
class GraphPath:
    """A simple path through the graph."""
    id: str
    node_ids: List[str]

    @property
    def length(self) -> int:
        return len(self.node_ids) - 1


def generate_path_id(node_ids: List[str]) -> str:
    return "path:" + "->".join(node_ids)


def find_all_simple_paths(
    graph: AboutnessGraph,
    start_id: str,
    max_depth: int = 4,
) -> List[GraphPath]:
    """
    Every simple path starting at start_id, up to max_depth edges.

    The single-node path [start_id] is included. No node repeats in a path.
    """
    paths: List[GraphPath] = []

    def dfs(current_id: str, current_path: List[str], visited: Set[str], depth: int) -> None:
        paths.append(GraphPath(generate_path_id(current_path), list(current_path)))
        if depth >= max_depth:
            return
        for next_id in graph.successors(current_id):
            if next_id in visited:
                continue
            visited.add(next_id)
            current_path.append(next_id)
            dfs(next_id, current_path, visited, depth + 1)
            current_path.pop()
            visited.discard(next_id)

    dfs(start_id, [start_id], {start_id}, 0)
    return paths


def is_reachable(
    graph: AboutnessGraph,
    from_id: str,
    to_id: str,
    max_depth: int = 10,
) -> bool:
    """BFS reachability within max_depth edges. A node always reaches itself."""
    if from_id == to_id:
        return True

    visited = {from_id}
    queue = deque([(from_id, 0)])
    while queue:
        node_id, depth = queue.popleft()
        if depth >= max_depth:
            continue
        for next_id in graph.successors(node_id):
            if next_id == to_id:
                return True
            if next_id not in visited:
                visited.add(next_id)
                queue.append((next_id, depth + 1))
    return False


def get_causal_order(
    graph: AboutnessGraph,
    root_id: str,
    max_depth: int = 10,
) -> List[str]:
    """Nodes in BFS order of increasing distance from root_id."""
    order: List[str] = []
    visited = {root_id}
    queue = deque([(root_id, 0)])
    while queue:
        node_id, depth = queue.popleft()
        order.append(node_id)
        if depth >= max_depth:
            continue
        for next_id in graph.successors(node_id):
            if next_id not in visited:
                visited.add(next_id)
                queue.append((next_id, depth + 1))
    return order


# ── States ──────────────────────────────────────────────────────────────────


@dataclass
class State:
    """Equivalence class of occurrence ids."""
    id: str
    occurrence_ids: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def add_occurrence(self, occ_id: str) -> None:
        if occ_id not in self.occurrence_ids:
            self.occurrence_ids.append(occ_id)

    def remove_occurrence(self, occ_id: str) -> None:
        if occ_id in self.occurrence_ids:
            self.occurrence_ids.remove(occ_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "occurrenceIds": list(self.occurrence_ids),
            "metadata": self.metadata,
        }


class StateSpace:
    """States plus the occurrence -> state mapping."""

    def __init__(self, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.states: Dict[str, State] = {}
        self.occurrence_to_state: Dict[str, str] = {}
        self.metadata: Dict[str, Any] = metadata or {}

    def create_state(
        self,
        state_id: str,
        occurrence_ids: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> State:
        state = State(state_id, list(occurrence_ids or []), dict(metadata or {}))
        self.states[state_id] = state
        for occ_id in state.occurrence_ids:
            self.occurrence_to_state[occ_id] = state_id
        return state

    def assign_occurrence_to_state(self, occ_id: str, state_id: str) -> None:
        """Move an occurrence into state_id, leaving its previous state."""
        state = self.states.get(state_id)
        if state is None:
            raise ValidationError(f"State '{state_id}' not found")

        previous_id = self.occurrence_to_state.get(occ_id)
        if previous_id is not None and previous_id != state_id:
            previous = self.states.get(previous_id)
            if previous is not None:
                previous.remove_occurrence(occ_id)

        state.add_occurrence(occ_id)
        self.occurrence_to_state[occ_id] = state_id

    def get_state(self, state_id: str) -> Optional[State]:
        return self.states.get(state_id)

    def get_state_of_occurrence(self, occ_id: str) -> Optional[State]:
        state_id = self.occurrence_to_state.get(occ_id)
        return self.states.get(state_id) if state_id is not None else None

    def get_all_states(self) -> List[State]:
        return list(self.states.values())

    def __len__(self) -> int:
        return len(self.states)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "states": [s.to_dict() for s in self.get_all_states()],
            "occurrenceToState": dict(self.occurrence_to_state),
            "metadata": self.metadata,
        }


# ── Equivalence grouping ────────────────────────────────────────────────────


def canonical_payload_key(occurrence: Occurrence, mode_sensitive: bool = False) -> str:
    """
    Structural key for grouping.

    Two payloads share a key exactly when they are equal value for value
    and type for type: {1: "x"} and {"1": "x"} differ, as do a tuple and a
    list with the same items. Dict and set order never matters. Values with
    no structural form fall back to their type name and repr(), so every
    payload has a key.
    """
    value = _canonical(occurrence.payload)
    if mode_sensitive:
        value = ["mode", occurrence.mode.value, value]
    return json.dumps(value)


def _canonical(value: Any) -> Any:
    """Type-tagged, JSON-encodable form of a payload."""
    if isinstance(value, np.generic):
        value = value.item()
    if value is None or isinstance(value, (bool, int, float, str)):
        return [type(value).__name__, value]
    if isinstance(value, Mapping):
        items = [[_canonical(k), _canonical(v)] for k, v in value.items()]
        items.sort(key=lambda item: json.dumps(item[0]))
        return ["dict", items]
    if isinstance(value, np.ndarray):
        return ["ndarray", _canonical(value.tolist())]
    if isinstance(value, (list, tuple)):
        return [type(value).__name__, [_canonical(v) for v in value]]
    if isinstance(value, (set, frozenset)):
        return [type(value).__name__, sorted((_canonical(v) for v in value), key=json.dumps)]
    return [type(value).__name__, repr(value)]


def build_state_space_from_graph(
    graph: AboutnessGraph,
    mode_sensitive: bool = False,
    key_fn: Optional[Callable[[Occurrence], str]] = None,
) -> StateSpace:
    """
    Group occurrences with structurally equal payloads into states.

    State ids are 'state:0', 'state:1', ... in first-seen order of the
    graph's occurrences. key_fn overrides the canonical serialization.
    """
    if key_fn is None:
        def key_fn(occ: Occurrence) -> str:
            return canonical_payload_key(occ, mode_sensitive)

    groups: Dict[str, List[str]] = {}
    for occ in graph.get_all_occurrences():
        groups.setdefault(key_fn(occ), []).append(occ.id)

    space = StateSpace()
    for index, (key, occ_ids) in enumerate(groups.items()):
        space.create_state(f"state:{index}", occ_ids, {"equivalence_key": key})
    return space
