# ═══════════════════════════════════════════════════════════════════════════════
# PART 14: SYMMETRY QUERY ENGINE
# Design: P2 (Symmetry Groups) + C2 (Merkle/Provenance)
# Implementation: I3 (State Management)
# ═══════════════════════════════════════════════════════════════════════════════

"""
P2: "If you know how cat became animal, you know how animal becomes cat:
run the steps backwards and invert each one. Understanding is the ability
to undo."

C2: "Every concept has a lineage. Walk back along recorded transformations
and you get a replay plan - a description, never a mutation."
"""

from __future__ import annotations

import logging
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

from wavemind.core.operators import inverse_operator

logger = logging.getLogger(__name__)

PathKey = Tuple[str, str]


# ── Steps & paths ───────────────────────────────────────────────────────────


@dataclass
class SymmetryStep:
    """One operator application, with optional numeric delta."""
    operator: str
    params: Dict[str, Any] = field(default_factory=dict)
    delta: Optional[List[float]] = None
    timestamp: float = 0.0

    def inverse(self, timestamp: float) -> SymmetryStep:
        delta = [-v for v in self.delta] if self.delta is not None else None
        return SymmetryStep(inverse_operator(self.operator), dict(self.params), delta, timestamp)


StepLike = Union[str, Mapping[str, Any], SymmetryStep]


class SymmetryPath:
    """An ordered chain of operator steps from start_id to end_id."""

    def __init__(self, start_id: str, end_id: str, clock: Callable[[], float] = time.time) -> None:
        self.start_id = start_id
        self.end_id = end_id
        self.clock = clock
        self.steps: List[SymmetryStep] = []

    def add_step(
        self,
        operator: str,
        params: Optional[Dict[str, Any]] = None,
        delta: Optional[Sequence[float]] = None,
    ) -> SymmetryStep:
        step = SymmetryStep(
            operator,
            dict(params or {}),
            list(delta) if delta is not None else None,
            self.clock(),
        )
        self.steps.append(step)
        return step

    @property
    def operators(self) -> List[str]:
        return [s.operator for s in self.steps]

    @property
    def operator_sequence(self) -> str:
        return " → ".join(self.operators)

    def __len__(self) -> int:
        return len(self.steps)

    def inverse(self) -> SymmetryPath:
        """Reversed path: steps in reverse order, each operator inverted, deltas negated."""
        inv = SymmetryPath(self.end_id, self.start_id, self.clock)
        for step in reversed(self.steps):
            inv.steps.append(step.inverse(self.clock()))
        return inv

    def is_similar_to(self, other: SymmetryPath, threshold: float = 0.8) -> bool:
        """
        Prefix match ratio over the shorter path, gated by the length ratio.
        Two empty paths are similar.
        """
        n_self, n_other = len(self.steps), len(other.steps)
        shorter, longer = min(n_self, n_other), max(n_self, n_other)
        if n_self != n_other and shorter / longer < threshold:
            return False
        if shorter == 0:
            return longer == 0
        matches = sum(
            1 for a, b in zip(self.steps, other.steps) if a.operator == b.operator
        )
        return matches / shorter >= threshold

    def similarity(self, other: SymmetryPath) -> float:
        """Prefix matches over the longer length; 1.0 for two empty paths."""
        longer = max(len(self.steps), len(other.steps))
        if longer == 0:
            return 1.0
        matches = sum(
            1 for a, b in zip(self.steps, other.steps) if a.operator == b.operator
        )
        return matches / longer

    def to_dict(self) -> Dict[str, Any]:
        return {
            "startId": self.start_id,
            "endId": self.end_id,
            "steps": [{"operator": s.operator, "timestamp": s.timestamp} for s in self.steps],
            "sequence": self.operator_sequence,
        }

    def __repr__(self) -> str:
        return f"SymmetryPath({self.start_id!r} -> {self.end_id!r}: {self.operator_sequence})"


# ── Engine ──────────────────────────────────────────────────────────────────


@dataclass
class SymmetryEngineConfig:
    """Configuration for the symmetry query engine."""
    max_history: int = 200
    indirect_search_depth: int = 3
    walk_back_steps: int = 10
    similarity_threshold: float = 0.6
    signature_overlap: float = 0.5      # strictly greater than this is kept
    reachable_depth: int = 5

    def __post_init__(self) -> None:
        if self.max_history <= 0:
            raise ValueError("max_history must be positive")


@dataclass
class WalkBackLink:
    from_id: str
    to_id: str
    operators: str
    inverse: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "from": self.from_id,
            "to": self.to_id,
            "operators": self.operators,
            "inverse": self.inverse,
        }


@dataclass
class WalkBackResult:
    """Lineage of a label, oldest link first."""
    label: str
    chain: List[WalkBackLink] = field(default_factory=list)

    @property
    def depth(self) -> int:
        return len(self.chain)

    @property
    def can_reproduce(self) -> bool:
        return len(self.chain) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "chain": [link.to_dict() for link in self.chain],
            "depth": self.depth,
            "canReproduce": self.can_reproduce,
        }


class SymmetryQueryEngine:
    """
    Index of recorded operator chains between labels.

    Paths are cached per (from, to) pair; recording the same pair again
    appends steps to the cached path. Queries never mutate the cache.
    """

    def __init__(
        self,
        config: Optional[SymmetryEngineConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or SymmetryEngineConfig()
        self.clock = clock
        self.paths: Dict[PathKey, SymmetryPath] = {}
        self.operator_index: Dict[str, Set[str]] = {}
        self.history: Deque[Dict[str, Any]] = deque(maxlen=self.config.max_history)

    # ── Recording ────────────────────────────────────────────────────────────

    def record_transformation(
        self,
        from_id: str,
        to_id: str,
        steps: Iterable[StepLike],
    ) -> SymmetryPath:
        """
        Append steps to the path from_id -> to_id, creating it if needed.

        Steps may be operator tags, mappings with 'type' (plus optional
        'params' and 'delta'), or SymmetryStep instances.
        """
        parsed = [_parse_step(s) for s in steps]

        key = (from_id, to_id)
        path = self.paths.get(key)
        if path is None:
            path = SymmetryPath(from_id, to_id, self.clock)
            self.paths[key] = path

        for operator, params, delta in parsed:
            path.add_step(operator, params, delta)

        operators = [op for op, _, _ in parsed]
        if operators:
            dominant = dominant_operator(operators)
            labels = self.operator_index.setdefault(dominant, set())
            labels.add(from_id)
            labels.add(to_id)

        self.history.append({
            "from": from_id,
            "to": to_id,
            "operators": operators,
            "timestamp": self.clock(),
        })
        logger.debug("Recorded %s -> %s: %s", from_id, to_id, " → ".join(operators))
        return path

    # ── Path queries ─────────────────────────────────────────────────────────

    def find_path(self, from_id: str, to_id: str) -> Optional[SymmetryPath]:
        """Direct path, else the inverted reverse path, else a combined indirect path."""
        direct = self.paths.get((from_id, to_id))
        if direct is not None:
            return direct

        reverse = self.paths.get((to_id, from_id))
        if reverse is not None:
            return reverse.inverse()

        return self._find_indirect_path(from_id, to_id, self.config.indirect_search_depth)

    def _find_indirect_path(self, from_id: str, to_id: str, max_depth: int) -> Optional[SymmetryPath]:
        visited = {from_id}
        queue: Deque[Tuple[str, List[SymmetryPath]]] = deque([(from_id, [])])
        while queue:
            label, chain = queue.popleft()
            if len(chain) >= max_depth:
                continue
            for (start, end), stored in self.paths.items():
                if start != label or end in visited:
                    continue
                extended = chain + [stored]
                if end == to_id:
                    return self._combine(from_id, to_id, extended)
                visited.add(end)
                queue.append((end, extended))
        return None

    def _combine(self, from_id: str, to_id: str, chain: List[SymmetryPath]) -> SymmetryPath:
        combined = SymmetryPath(from_id, to_id, self.clock)
        for path in chain:
            for step in path.steps:
                combined.add_step(step.operator, step.params, step.delta)
        return combined

    def find_similar_by_operator(
        self,
        label: str,
        threshold: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """
        Labels whose paths look like the paths touching `label`.

        Sorted by similarity, best first, one entry per label.
        """
        if threshold is None:
            threshold = self.config.similarity_threshold

        own = [p for (start, end), p in self.paths.items() if label in (start, end)]
        if not own:
            return []

        results = []
        for (start, end), other in self.paths.items():
            if label in (start, end):
                continue
            for mine in own:
                if mine.is_similar_to(other, threshold):
                    results.append({
                        "label": start,
                        "other_label": end,
                        "similarity": mine.similarity(other),
                        "matching_path": other.operator_sequence,
                    })

        results.sort(key=lambda r: r["similarity"], reverse=True)
        seen: Set[str] = set()
        unique = []
        for result in results:
            if result["label"] in seen:
                continue
            seen.add(result["label"])
            unique.append(result)
        return unique

    def query_by_operator_signature(self, operators: Iterable[str]) -> List[Dict[str, Any]]:
        """Paths whose operator set overlaps the query set, best first."""
        target = set(operators)
        results = []
        for (start, end), path in self.paths.items():
            path_ops = set(path.operators)
            denom = max(len(target), len(path_ops))
            if denom == 0:
                continue
            overlap = len(target & path_ops) / denom
            if overlap > self.config.signature_overlap:
                results.append({
                    "from": start,
                    "to": end,
                    "sequence": path.operator_sequence,
                    "similarity": overlap,
                })
        results.sort(key=lambda r: r["similarity"], reverse=True)
        return results

    def get_labels_for_operator(self, operator: str) -> Set[str]:
        return set(self.operator_index.get(operator, set()))

    # ── Lineage ──────────────────────────────────────────────────────────────

    def walk_back(self, label: str, max_steps: Optional[int] = None) -> WalkBackResult:
        """Follow recorded paths backwards from label until a dead end, a cycle, or max_steps."""
        if max_steps is None:
            max_steps = self.config.walk_back_steps

        result = WalkBackResult(label)
        visited: Set[str] = set()
        current = label
        while len(result.chain) < max_steps and current not in visited:
            visited.add(current)
            predecessor = None
            for (start, end), path in self.paths.items():
                if end == current and start not in visited:
                    predecessor = (start, path)
                    break
            if predecessor is None:
                break
            start, path = predecessor
            result.chain.insert(0, WalkBackLink(
                from_id=start,
                to_id=current,
                operators=path.operator_sequence,
                inverse=path.inverse().operator_sequence,
            ))
            current = start
        return result

    def reproduce(self, label: str) -> Dict[str, Any]:
        """Forward replay plan for label. Describes the steps; applies nothing."""
        walk = self.walk_back(label)
        if not walk.can_reproduce:
            return {"success": False, "reason": "No transformation path found"}
        return {
            "success": True,
            "label": label,
            "steps": [
                {"from": link.from_id, "to": link.to_id, "applied_operators": link.operators}
                for link in walk.chain
            ],
            "total_steps": walk.depth,
        }

    def find_reachable(self, label: str, max_depth: Optional[int] = None) -> Dict[str, Dict[str, Any]]:
        """Every label reachable from `label`, with its depth and the operator chain used."""
        if max_depth is None:
            max_depth = self.config.reachable_depth

        reachable: Dict[str, Dict[str, Any]] = {}
        queue: Deque[Tuple[str, int, List[str]]] = deque([(label, 0, [])])
        while queue:
            current, depth, chain = queue.popleft()
            if depth > max_depth:
                continue
            known = reachable.get(current)
            if known is not None and known["depth"] <= depth:
                continue
            reachable[current] = {"depth": depth, "path": " → ".join(chain)}
            for (start, end), path in self.paths.items():
                if start == current:
                    queue.append((end, depth + 1, chain + [path.operator_sequence]))
        return reachable

    # ── Summary ──────────────────────────────────────────────────────────────

    def get_statistics(self) -> Dict[str, Any]:
        counts: Counter = Counter()
        for path in self.paths.values():
            counts.update(path.operators)
        return {
            "total_paths": len(self.paths),
            "total_steps": sum(counts.values()),
            "operator_distribution": dict(counts),
            "labels_by_operator": {op: len(labels) for op, labels in self.operator_index.items()},
            "history_length": len(self.history),
        }

    def to_dict(self, max_paths: int = 20) -> Dict[str, Any]:
        paths = []
        for (start, end), path in list(self.paths.items())[:max_paths]:
            entry = {"key": f"{start}:{end}"}
            entry.update(path.to_dict())
            paths.append(entry)
        return {"statistics": self.get_statistics(), "paths": paths}


# ── Helpers ─────────────────────────────────────────────────────────────────


def dominant_operator(operators: Sequence[str]) -> str:
    """Most frequent operator; the first seen wins ties."""
    counts = Counter(operators)
    best = operators[0]
    for op in counts:
        if counts[op] > counts[best]:
            best = op
    return best


def _parse_step(step: StepLike) -> Tuple[str, Dict[str, Any], Optional[List[float]]]:
    if isinstance(step, SymmetryStep):
        return step.operator, dict(step.params), step.delta
    if isinstance(step, str):
        return step, {}, None
    if isinstance(step, Mapping):
        if "type" not in step:
            raise ValueError(f"Step mapping needs a 'type' key: {step!r}")
        delta = step.get("delta")
        return str(step["type"]), dict(step.get("params") or {}), list(delta) if delta is not None else None
    raise TypeError(f"Unsupported step type: {type(step).__name__}")
