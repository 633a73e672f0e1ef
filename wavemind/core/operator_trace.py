# ═══════════════════════════════════════════════════════════════════════════════
# PART 11: OPERATOR TRACING
# Design: P2 (Symmetry Groups) + I3 (State Management)
# Implementation: I3 (State Management)
# ═══════════════════════════════════════════════════════════════════════════════

"""
P2: "Reasoning leaves a trail of operators. Record the trail, and the common
prefixes tell you which moves the system actually relies on."
"""

from __future__ import annotations

import logging
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from wavemind.core.channels import MultiChannelWaveform
from wavemind.core.operators import QUARK_OPERATORS

logger = logging.getLogger(__name__)


@dataclass
class TraceStep:
    operator: str
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = 0.0


@dataclass
class OperatorTrace:
    """One recorded reasoning episode."""
    query: Any
    started_at: float
    steps: List[TraceStep] = field(default_factory=list)
    result: Any = None
    ended_at: Optional[float] = None

    @property
    def operators(self) -> List[str]:
        return [s.operator for s in self.steps]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "operators": self.operators,
            "result": self.result,
            "startedAt": self.started_at,
            "endedAt": self.ended_at,
        }


# Minimum channel norm change for each operator to count as applied.
# Signed channels only fire on increase; unsigned ones on any change.
_DELTA_RULES: List[Tuple[str, str, float, bool]] = [
    ("u", "up", 0.1, True),
    ("d", "down", 0.1, True),
    ("s", "strange", 0.1, False),
    ("c", "charm", 0.1, True),
    ("t", "top", 0.05, False),
    ("b", "bottom", 0.1, False),
]


class OperatorTracer:
    """Records operator sequences applied during reasoning."""

    def __init__(
        self,
        max_history: int = 100,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_history <= 0:
            raise ValueError("max_history must be positive")
        self.clock = clock
        self.history: Deque[OperatorTrace] = deque(maxlen=max_history)
        self.current: Optional[OperatorTrace] = None

    def start_trace(self, query: Any) -> OperatorTrace:
        self.current = OperatorTrace(query=query, started_at=self.clock())
        return self.current

    def record(self, operator: str, context: Optional[Dict[str, Any]] = None) -> bool:
        """Append an operator to the open trace. Unknown operators are ignored."""
        if self.current is None:
            return False
        if operator not in QUARK_OPERATORS:
            logger.warning("Ignoring unknown operator %r", operator)
            return False
        self.current.steps.append(TraceStep(operator, dict(context or {}), self.clock()))
        return True

    def end_trace(self, result: Any = None) -> Optional[OperatorTrace]:
        trace = self.current
        if trace is None:
            return None
        trace.result = result
        trace.ended_at = self.clock()
        self.history.append(trace)
        self.current = None
        logger.debug("Trace closed with %d operators", len(trace.steps))
        return trace

    @staticmethod
    def infer_operators_from_delta(
        before: MultiChannelWaveform,
        after: MultiChannelWaveform,
    ) -> List[Dict[str, Any]]:
        """Operators implied by per-channel norm changes, strongest first."""
        before_norms = before.channel_norms()
        after_norms = after.channel_norms()

        inferred = []
        for channel, operator, minimum, signed in _DELTA_RULES:
            delta = after_norms.get(channel, 0.0) - before_norms.get(channel, 0.0)
            fired = delta > minimum if signed else abs(delta) > minimum
            if fired:
                inferred.append({"operator": operator, "strength": abs(delta), "delta": delta})
        inferred.sort(key=lambda entry: entry["strength"], reverse=True)
        return inferred

    def get_statistics(self) -> Dict[str, Any]:
        traces = list(self.history)
        operator_counts: Counter = Counter()
        sequences: Counter = Counter()
        for trace in traces:
            operator_counts.update(trace.operators)
            if trace.operators:
                sequences["-".join(trace.operators[:3])] += 1

        total_ops = sum(len(t.steps) for t in traces)
        return {
            "total_traces": len(traces),
            "total_operators": total_ops,
            "operator_counts": dict(operator_counts),
            "avg_trace_length": total_ops / len(traces) if traces else 0.0,
            "common_sequences": sequences.most_common(5),
        }
