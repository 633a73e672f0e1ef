# ═══════════════════════════════════════════════════════════════════════════════
# PART 13: EMERGENT CONNECTOR FIELD
# Design: N3 (Predictive Coding) + P2 (Symmetry Groups)
# Implementation: I3 (State Management)
# ═══════════════════════════════════════════════════════════════════════════════

"""
P2: "Relation types are spin patterns, learned from usage. 'is', 'has',
'causes' - none of them are built in. Each is just the shape of the change
it keeps describing."

N3: "Repetition doesn't average spins, it settles them. Undecided channels
take the observed spin; decided channels hold."
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence, Union

import numpy as np

from wavemind.core.channels import MultiChannelWaveform
from wavemind.core.pattern_field import EmergentPatternField, PatternFieldConfig
from wavemind.core.spins import SpinPattern, transformation_pattern

SpinSignature = Union[SpinPattern, Sequence[float]]


@dataclass
class ConnectorFieldConfig(PatternFieldConfig):
    """
    Configuration for the connector field.

    Merging is explicit (merge_similar / restructure): the weight view is
    non-negative, so connectors one decided channel apart still clear the
    merge cosine.
    """
    auto_merge: bool = False
    label_prefix: str = "link_"     # generated labels are <prefix><n>


@dataclass
class ConnectorPattern:
    """A learned connector: its spin pattern plus usage bookkeeping."""
    label: str
    spins: SpinPattern
    count: int = 1
    last_seen: float = 0.0
    history: Deque[np.ndarray] = field(default_factory=deque)
    examples: List[Any] = field(default_factory=list)

    @property
    def signature(self) -> np.ndarray:
        """Continuous weight view of the spins."""
        return np.array(self.spins.to_weights(), dtype=float)

    def semantic_role(self) -> str:
        return self.spins.semantic_role()

    def to_operator_sequence(self) -> List[str]:
        return self.spins.to_operator_sequence()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signature": self.signature.tolist(),
            "count": self.count,
            "lastSeen": self.last_seen,
            "spins": self.spins.pattern_string(),
            "role": self.semantic_role(),
        }


@dataclass
class ConnectorMatch:
    """Connector inference result. is_new marks a proposed, unlearned label."""
    label: str
    similarity: float
    is_new: bool
    pattern: Optional[SpinPattern] = None


class EmergentConnectorField(EmergentPatternField):
    """
    Pattern field over spin patterns.

    Learning and merging collapse spins instead of averaging them; the
    generic cosine inference runs on the weight view.
    """

    def __init__(
        self,
        config: Optional[ConnectorFieldConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(config or ConnectorFieldConfig(), clock)

    # ── Learning ─────────────────────────────────────────────────────────────

    def learn(
        self,
        label: str,
        signature: SpinSignature,
        example: Any = None,
    ) -> Optional[ConnectorPattern]:
        return super().learn(label, _as_weights(signature), example)

    def learn_from_waveforms(
        self,
        label: str,
        before: MultiChannelWaveform,
        after: MultiChannelWaveform,
        example: Any = None,
    ) -> Optional[ConnectorPattern]:
        """Learn the spin pattern of the change from before to after."""
        return self.learn(label, transformation_pattern(before, after), example)

    def _create(self, key: str, vector: np.ndarray, now: float) -> ConnectorPattern:
        return ConnectorPattern(
            label=key,
            spins=SpinPattern.from_weights(vector),
            count=1,
            last_seen=now,
            history=deque([vector.copy()], maxlen=self.config.pattern_history),
        )

    def _reinforce(self, pattern: ConnectorPattern, vector: np.ndarray, now: float) -> None:
        pattern.spins.collapse_towards(SpinPattern.from_weights(vector))
        pattern.count += 1
        pattern.last_seen = now
        pattern.history.append(vector.copy())

    def _absorb(self, keep: ConnectorPattern, absorbed: ConnectorPattern) -> None:
        keep.spins.collapse_towards(absorbed.spins)
        keep.count += absorbed.count
        self._merge_buffers(keep, absorbed)

    def _recentre(self, pattern: ConnectorPattern, vector: np.ndarray) -> None:
        pattern.spins = SpinPattern.from_weights(vector)

    # ── Inference ────────────────────────────────────────────────────────────

    def infer_connector(
        self,
        signature: SpinSignature,
        fallback_word: Optional[str] = None,
    ) -> ConnectorMatch:
        """
        Closest learned connector, or a proposed label on a miss.

        The proposal is fallback_word if given, else '<prefix><n+1>'.
        """
        match = self.infer(_as_weights(signature))
        if match.label is not None:
            return ConnectorMatch(
                match.label, match.similarity, False, self.patterns[match.label].spins.clone()
            )

        label = fallback_word or self._generate_label()
        observed = signature.clone() if isinstance(signature, SpinPattern) else SpinPattern.from_weights(signature)
        return ConnectorMatch(label, match.similarity, True, observed)

    def _generate_label(self) -> str:
        return f"{self.config.label_prefix}{len(self.patterns) + 1}"

    # ── Access ───────────────────────────────────────────────────────────────

    def get_learned_connectors(self) -> List[str]:
        return self.get_learned_labels()

    def get_spin_pattern(self, label: str) -> Optional[SpinPattern]:
        pattern = self.get_pattern(label)
        return pattern.spins if pattern is not None else None


def _as_weights(signature: SpinSignature) -> List[float]:
    if isinstance(signature, SpinPattern):
        return signature.to_weights()
    return list(signature)
