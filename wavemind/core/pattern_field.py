# ═══════════════════════════════════════════════════════════════════════════════
# PART 9: EMERGENT PATTERN FIELD
# Design: N3 (Predictive Coding) + H2 (Phenomenology)
# Implementation: I2 (Numerics) + I3 (State Management)
# ═══════════════════════════════════════════════════════════════════════════════

"""
N3: "No category is hardcoded. A label is whatever the caller kept calling a
signature; the field just remembers the running mean and matches against it."

H2: "The more categories you know, the pickier you get. The match threshold
climbs with the log of the vocabulary, and it is computed fresh every time."

I3: "Merges are one-at-a-time. Call again to converge. No hidden loops."
"""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from wavemind.core.aboutness_graph import AboutnessGraph
from wavemind.core.channels import CHANNELS, MultiChannelWaveform

logger = logging.getLogger(__name__)


# ── Similarity & threshold ──────────────────────────────────────────────────


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of two vectors. 0.0 for mismatched lengths or a zero vector."""
    va = np.asarray(a, dtype=float).ravel()
    vb = np.asarray(b, dtype=float).ravel()
    if va.shape != vb.shape:
        return 0.0
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom <= 0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def adaptive_threshold(
    n_patterns: int,
    base: float = 0.5,
    growth: float = 0.1,
    cap: float = 0.95,
) -> float:
    """Match threshold for a field holding n_patterns categories."""
    if n_patterns <= 1:
        return base
    return min(cap, base + math.log(n_patterns) * growth)


# ── Types ───────────────────────────────────────────────────────────────────


@dataclass
class PatternFieldConfig:
    """Configuration for an emergent pattern field."""
    # Threshold curve
    base_threshold: float = 0.5
    max_threshold: float = 0.95
    threshold_growth: float = 0.1

    # Merging
    merge_similarity: float = 0.95      # strictly greater than this merges
    auto_merge: bool = True             # one merge pass after every learn

    # Bounded buffers (all FIFO)
    max_examples: int = 5
    pattern_history: int = 10
    global_history: int = 50
    min_restructure_history: int = 5

    normalize_labels: bool = True

    def __post_init__(self) -> None:
        for name in ("max_examples", "pattern_history", "global_history"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")


@dataclass
class LearnedPattern:
    """A label and the running mean of the signatures taught under it."""
    label: str
    signature: np.ndarray
    count: int = 1
    last_seen: float = 0.0
    history: Deque[np.ndarray] = field(default_factory=deque)
    examples: List[Any] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signature": self.signature.tolist(),
            "count": self.count,
            "lastSeen": self.last_seen,
        }


@dataclass
class PatternMatch:
    """Inference result. label is None on a miss; similarity is still the best seen."""
    label: Optional[str]
    similarity: float
    signature: np.ndarray

    @property
    def matched(self) -> bool:
        return self.label is not None


# ── Field ───────────────────────────────────────────────────────────────────


class EmergentPatternField:
    """
    Online label <-> signature learner with similarity inference.

    Each label keeps a running mean of its signatures. Inference returns the
    closest label if it clears the adaptive threshold. Near-duplicate labels
    are merged one pair at a time.
    """

    def __init__(
        self,
        config: Optional[PatternFieldConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or PatternFieldConfig()
        self.clock = clock
        self.patterns: Dict[str, Any] = {}
        self.history: Deque[Tuple[str, np.ndarray, float]] = deque(
            maxlen=self.config.global_history
        )
        self.last_signature: Optional[np.ndarray] = None

    # ── Properties ───────────────────────────────────────────────────────────

    @property
    def similarity_threshold(self) -> float:
        cfg = self.config
        return adaptive_threshold(
            len(self.patterns), cfg.base_threshold, cfg.threshold_growth, cfg.max_threshold
        )

    def __len__(self) -> int:
        return len(self.patterns)

    def __contains__(self, label: object) -> bool:
        return isinstance(label, str) and self._key(label) in self.patterns

    # ── Learning ─────────────────────────────────────────────────────────────

    def learn(
        self,
        label: str,
        signature: Sequence[float],
        example: Any = None,
    ) -> Optional[LearnedPattern]:
        """
        Teach one observation of `label`.

        Returns the pattern now holding the label, or None if the auto-merge
        pass absorbed it into another label.
        """
        key = self._key(label)
        vector = np.array(signature, dtype=float)
        now = self.clock()
        self.history.append((key, vector.copy(), now))

        pattern = self.patterns.get(key)
        if pattern is None:
            pattern = self._create(key, vector, now)
            self.patterns[key] = pattern
            logger.debug("New pattern %r", key)
        else:
            self._reinforce(pattern, vector, now)
            logger.debug("Reinforced pattern %r (count=%d)", key, pattern.count)

        if example is not None and len(pattern.examples) < self.config.max_examples:
            pattern.examples.append(example)

        if self.config.auto_merge:
            self.merge_similar()
        return self.patterns.get(key)

    def _create(self, key: str, vector: np.ndarray, now: float) -> Any:
        return LearnedPattern(
            label=key,
            signature=vector.copy(),
            count=1,
            last_seen=now,
            history=deque([vector.copy()], maxlen=self.config.pattern_history),
        )

    def _reinforce(self, pattern: Any, vector: np.ndarray, now: float) -> None:
        if vector.shape != pattern.signature.shape:
            raise ValueError(
                f"Signature for {pattern.label!r} has shape {vector.shape}, "
                f"expected {pattern.signature.shape}"
            )
        alpha = 1.0 / (pattern.count + 1)
        pattern.signature = pattern.signature * (1 - alpha) + vector * alpha
        pattern.count += 1
        pattern.last_seen = now
        pattern.history.append(vector.copy())

    # ── Inference ────────────────────────────────────────────────────────────

    def infer(self, signature: Sequence[float]) -> PatternMatch:
        vector = np.array(signature, dtype=float)
        self.last_signature = vector
        if not self.patterns:
            return PatternMatch(None, 0.0, vector)

        best_label: Optional[str] = None
        best_similarity = -1.0
        for label, pattern in self.patterns.items():
            similarity = cosine_similarity(vector, pattern.signature)
            if similarity > best_similarity:
                best_similarity = similarity
                best_label = label

        if best_similarity >= self.similarity_threshold:
            return PatternMatch(best_label, best_similarity, vector)
        return PatternMatch(None, best_similarity, vector)

    # ── Restructuring ────────────────────────────────────────────────────────

    def merge_similar(self) -> Optional[Tuple[str, str]]:
        """
        Merge the first pair whose signatures are nearly parallel.

        Pairs are scanned in insertion order. The pattern with the higher
        count keeps its label (the earlier one on ties). Returns
        (kept, absorbed) or None if nothing merged.
        """
        labels = list(self.patterns)
        for i, first in enumerate(labels):
            for second in labels[i + 1:]:
                a = self.patterns[first]
                b = self.patterns[second]
                if cosine_similarity(a.signature, b.signature) <= self.config.merge_similarity:
                    continue
                keep, absorbed = (a, b) if a.count >= b.count else (b, a)
                self._absorb(keep, absorbed)
                del self.patterns[absorbed.label]
                logger.info("Merged pattern %r into %r", absorbed.label, keep.label)
                return keep.label, absorbed.label
        return None

    def _absorb(self, keep: Any, absorbed: Any) -> None:
        total = keep.count + absorbed.count
        keep.signature = (
            keep.signature * keep.count + absorbed.signature * absorbed.count
        ) / total
        keep.count = total
        self._merge_buffers(keep, absorbed)

    def _merge_buffers(self, keep: Any, absorbed: Any) -> None:
        keep.history = deque(
            list(keep.history) + list(absorbed.history),
            maxlen=self.config.pattern_history,
        )
        room = self.config.max_examples - len(keep.examples)
        if room > 0:
            keep.examples.extend(absorbed.examples[:room])
        keep.last_seen = max(keep.last_seen, absorbed.last_seen)

    def restructure(self) -> Dict[str, Any]:
        """Re-centre every pattern on its retained history, then merge once."""
        if len(self.history) < self.config.min_restructure_history:
            return {"restructured": False, "reason": "insufficient history"}

        for pattern in self.patterns.values():
            if pattern.history:
                self._recentre(pattern, np.mean(np.stack(list(pattern.history)), axis=0))

        merged = self.merge_similar()
        logger.info("Restructured field: %d patterns", len(self.patterns))
        return {
            "restructured": True,
            "pattern_count": len(self.patterns),
            "merged": merged,
        }

    def _recentre(self, pattern: Any, vector: np.ndarray) -> None:
        pattern.signature = vector

    # ── Access ───────────────────────────────────────────────────────────────

    def forget(self, label: str) -> bool:
        removed = self.patterns.pop(self._key(label), None)
        if removed is not None:
            logger.info("Forgot pattern %r", removed.label)
        return removed is not None

    def get_learned_labels(self) -> List[str]:
        return list(self.patterns)

    def get_pattern(self, label: str) -> Optional[Any]:
        return self.patterns.get(self._key(label))

    def get_examples(self, label: str) -> List[Any]:
        pattern = self.get_pattern(label)
        return list(pattern.examples) if pattern is not None else []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "learnedLabels": self.get_learned_labels(),
            "patternCount": len(self.patterns),
            "patterns": {label: p.to_dict() for label, p in self.patterns.items()},
        }

    def _key(self, label: str) -> str:
        return label.strip().lower() if self.config.normalize_labels else label


# ── Emotion field ───────────────────────────────────────────────────────────


class EmergentEmotionField(EmergentPatternField):
    """Pattern field over attention-state signatures that remembers its last reading."""

    def __init__(
        self,
        config: Optional[PatternFieldConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(config, clock)
        self.last_emotion: Optional[str] = None

    def infer(self, signature: Sequence[float]) -> PatternMatch:
        match = super().infer(signature)
        self.last_emotion = match.label
        return match

    def get_learned_emotions(self) -> List[str]:
        return self.get_learned_labels()

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["lastEmotion"] = self.last_emotion
        return data


ValueSource = Union[Mapping[Any, float], Iterable[float]]


def compute_state_signature(
    waveform: Optional[MultiChannelWaveform],
    graph: AboutnessGraph,
    values: Optional[ValueSource] = None,
) -> List[float]:
    """
    12-dimensional relative signature of an attention state.

    [0:6]   share of total norm per channel (uniform if all empty)
    [6:8]   graph density, squashed connectivity c / (c + 1)
    [8:10]  value mean, squashed coefficient of variation (0.5, 0.5 if none)
    [10:12] squashed phase variance, focus ratio max / total
    """
    signature: List[float] = []
    uniform = 1.0 / len(CHANNELS)

    # Channel balance
    if waveform is not None:
        norms = np.array([waveform.read_channel(ch).norm_squared() for ch in CHANNELS])
        total = float(norms.sum())
        if total > 0:
            signature.extend(float(n) for n in norms / total)
        else:
            signature.extend([uniform] * len(CHANNELS))
    else:
        signature.extend([uniform] * len(CHANNELS))

    # Graph shape
    n_occ = graph.n_occurrences
    n_rel = graph.n_relations
    max_relations = n_occ * (n_occ - 1) if n_occ > 1 else 1
    connectivity = n_rel / n_occ if n_occ > 0 else 0.0
    signature.append(n_rel / max_relations)
    signature.append(connectivity / (connectivity + 1))

    # Value field
    mean, spread = 0.5, 0.5
    if values is not None:
        raw = values.values() if isinstance(values, Mapping) else values
        arr = np.array(list(raw), dtype=float)
        if arr.size > 0:
            mean = float(arr.mean())
            if arr.size > 1:
                std = float(arr.std())
                cv = std / mean if mean > 0 else std
                spread = cv / (cv + 1)
    signature.extend([mean, spread])

    # Dynamics
    change_rate, focus_ratio = 0.5, 0.5
    if waveform is not None:
        mags = []
        phases = []
        for ch in CHANNELS:
            wf = waveform.read_channel(ch)
            for amp_id in wf.keys():
                amp = wf.get(amp_id)
                mags.append(amp.abs_sq())
                phases.append(amp.phase)
        total_amp = float(sum(mags))
        focus_ratio = max(mags) / total_amp if total_amp > 0 else 0.5
        variance = float(np.var(phases)) if len(phases) > 1 else 0.0
        change_rate = variance / (variance + 1)
    signature.extend([change_rate, focus_ratio])

    return signature
