# ═══════════════════════════════════════════════════════════════════════════════
# PART 12: SPIN PATTERNS
# Design: P2 (Symmetry Groups) + N3 (Predictive Coding)
# Implementation: I1 (Core Types)
# ═══════════════════════════════════════════════════════════════════════════════

"""
P2: "A spin pattern is a six-slot ternary signature: up, down, or undecided
per channel. Discrete on purpose. You can't average your way from 'is' to
'is not'."

N3: "Undecided channels are where prediction happens. Context collapses them;
already-decided channels stay put."
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from wavemind.core.channels import CHANNELS, MultiChannelWaveform
from wavemind.core.operators import CHANNEL_TO_OPERATOR, QUARK_OPERATORS

SPIN_UP = 0.5
SPIN_DOWN = -0.5
SPIN_ZERO = 0.0

# Quark charges: u, c, t are up-type; d, s, b are down-type.
_CHARGES: Dict[str, float] = {
    "u": 2 / 3, "c": 2 / 3, "t": 2 / 3,
    "d": -1 / 3, "s": -1 / 3, "b": -1 / 3,
}


def quantize_spin(value: float) -> float:
    """Snap a real value to the nearest spin state."""
    if value > 0.25:
        return SPIN_UP
    if value < -0.25:
        return SPIN_DOWN
    return SPIN_ZERO


def spin_to_weight(spin: float) -> float:
    return spin + 0.5


def weight_to_spin(weight: float) -> float:
    return quantize_spin(weight - 0.5)


class SpinPattern:
    """Ternary spin per channel; unset channels are in superposition."""

    def __init__(
        self,
        spins: Optional[Mapping[str, float]] = None,
        channel_names: Sequence[str] = CHANNELS,
    ) -> None:
        self.channel_names = tuple(channel_names)
        self.spins: Dict[str, float] = {ch: SPIN_ZERO for ch in self.channel_names}
        for channel, value in (spins or {}).items():
            self.set_spin(channel, value)

    @classmethod
    def from_string(cls, pattern: str, channel_names: Sequence[str] = CHANNELS) -> SpinPattern:
        """Parse '+-0...' into a pattern, one character per channel."""
        lookup = {"+": SPIN_UP, "-": SPIN_DOWN}
        return cls(
            {ch: lookup.get(char, SPIN_ZERO) for ch, char in zip(channel_names, pattern)},
            channel_names,
        )

    @classmethod
    def from_weights(cls, weights: Iterable[float], channel_names: Sequence[str] = CHANNELS) -> SpinPattern:
        return cls(
            {ch: weight_to_spin(w) for ch, w in zip(channel_names, weights)},
            channel_names,
        )

    # ── Access ───────────────────────────────────────────────────────────────

    def set_spin(self, channel: str, value: float) -> SpinPattern:
        """Set a channel's spin (quantized). Unknown channels are ignored."""
        if channel in self.spins:
            self.spins[channel] = quantize_spin(value)
        return self

    def get_spin(self, channel: str) -> float:
        return self.spins.get(channel, SPIN_ZERO)

    def clone(self) -> SpinPattern:
        return SpinPattern(dict(self.spins), self.channel_names)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SpinPattern):
            return NotImplemented
        return self.spins == other.spins

    def __repr__(self) -> str:
        return f"SpinPattern({self.pattern_string()!r})"

    # ── Summary values ───────────────────────────────────────────────────────

    def total_spin(self) -> float:
        return sum(self.spins.values())

    def pattern_string(self) -> str:
        chars = []
        for channel in self.channel_names:
            spin = self.spins[channel]
            chars.append("+" if spin > 0 else "-" if spin < 0 else "0")
        return "".join(chars)

    def _pair_products(self) -> List[float]:
        values = [self.spins[ch] for ch in self.channel_names]
        return [
            values[i] * values[j]
            for i in range(len(values))
            for j in range(i + 1, len(values))
        ]

    def count_aligned_pairs(self) -> int:
        return sum(1 for p in self._pair_products() if p > 0)

    def count_anti_aligned_pairs(self) -> int:
        return sum(1 for p in self._pair_products() if p < 0)

    def effective_charge(self) -> float:
        return sum(spin * _CHARGES.get(ch, 0.0) for ch, spin in self.spins.items())

    def uncertainty(self) -> float:
        """Fraction of channels in superposition."""
        if not self.spins:
            return 0.0
        undecided = sum(1 for spin in self.spins.values() if spin == SPIN_ZERO)
        return undecided / len(self.spins)

    # ── Comparison ───────────────────────────────────────────────────────────

    def similarity(self, other: SpinPattern) -> float:
        """
        Fraction of channels with equal spin, counting only channels where
        both spins are decided. 0.5 when no channel qualifies.
        """
        matches = 0
        total = 0
        for channel in self.channel_names:
            mine = self.spins[channel]
            theirs = other.get_spin(channel)
            if mine == SPIN_ZERO or theirs == SPIN_ZERO:
                continue
            total += 1
            if mine == theirs:
                matches += 1
        return matches / total if total > 0 else 0.5

    def is_opposite_of(self, other: SpinPattern) -> bool:
        for channel in self.channel_names:
            mine = self.spins[channel]
            theirs = other.get_spin(channel)
            if mine != SPIN_ZERO and theirs != SPIN_ZERO and mine != -theirs:
                return False
        return True

    def collapse_towards(self, context: SpinPattern) -> SpinPattern:
        """Fill undecided channels from context. Decided channels are kept."""
        for channel in self.channel_names:
            if self.spins[channel] == SPIN_ZERO:
                value = context.get_spin(channel)
                if value != SPIN_ZERO:
                    self.spins[channel] = value
        return self

    # ── Views ────────────────────────────────────────────────────────────────

    def to_weights(self) -> List[float]:
        """Continuous view: down -> 0.0, undecided -> 0.5, up -> 1.0."""
        return [spin_to_weight(self.spins[ch]) for ch in self.channel_names]

    def to_operator_sequence(self) -> List[str]:
        """Operators for every decided channel, in channel order."""
        return [
            CHANNEL_TO_OPERATOR[ch]
            for ch in self.channel_names
            if self.spins[ch] != SPIN_ZERO and ch in CHANNEL_TO_OPERATOR
        ]

    def semantic_role(self) -> str:
        """
        Role of the active operators. 'undefined' with none active, the
        operator's role with one, 'composite:<roles>' with several.
        """
        roles = [QUARK_OPERATORS[op].role for op in self.to_operator_sequence()]
        if not roles:
            return "undefined"
        if len(roles) == 1:
            return roles[0]
        return "composite:" + "+".join(roles)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "spins": dict(self.spins),
            "pattern": self.pattern_string(),
            "totalSpin": self.total_spin(),
            "uncertainty": self.uncertainty(),
            "effectiveCharge": self.effective_charge(),
        }


# ── Waveform analysis ───────────────────────────────────────────────────────


def waveform_to_spin_pattern(waveform: Optional[MultiChannelWaveform]) -> SpinPattern:
    """
    Spin per channel from its norm relative to the mean channel norm:
    above 1.3x is up, below 0.7x is down, otherwise undecided.
    """
    pattern = SpinPattern()
    if waveform is None:
        return pattern

    norms = {ch: waveform.read_channel(ch).norm_squared() for ch in CHANNELS}
    total = sum(norms.values())
    if total == 0:
        return pattern

    mean_norm = total / len(CHANNELS)
    for channel, norm in norms.items():
        ratio = norm / mean_norm
        if ratio > 1.3:
            pattern.set_spin(channel, SPIN_UP)
        elif ratio < 0.7:
            pattern.set_spin(channel, SPIN_DOWN)
    return pattern


def transformation_pattern(before: MultiChannelWaveform, after: MultiChannelWaveform) -> SpinPattern:
    """
    Spin pattern of the change from before to after: a channel whose norm
    grows past 1.2x is up, one that shrinks below 0.8x is down.
    """
    pattern = SpinPattern()
    for channel in CHANNELS:
        old = before.read_channel(channel).norm_squared()
        new = after.read_channel(channel).norm_squared()
        if new > old * 1.2:
            pattern.set_spin(channel, SPIN_UP)
        elif new < old * 0.8:
            pattern.set_spin(channel, SPIN_DOWN)
    return pattern


def detect_uncertainty(waveform: Optional[MultiChannelWaveform]) -> Dict[str, Any]:
    """
    Combine spin superposition with amplitude spread.

    Spread is the mean absolute deviation of every squared amplitude,
    squashed to [0, 1) by s / (s + 0.1). The result is confident below 0.4.
    """
    pattern = waveform_to_spin_pattern(waveform)
    spin_uncertainty = pattern.uncertainty()

    spread = 0.0
    if waveform is not None:
        amps = np.array([
            waveform.read_channel(ch).get(amp_id).abs_sq()
            for ch in CHANNELS
            for amp_id in waveform.read_channel(ch).keys()
        ], dtype=float)
        if amps.size > 1:
            spread = float(np.mean(np.abs(amps - amps.mean())))

    normalized_spread = spread / (spread + 0.1)
    combined = (spin_uncertainty + normalized_spread) / 2
    return {
        "uncertainty": combined,
        "confident": combined < 0.4,
        "pattern": pattern,
        "spin_uncertainty": spin_uncertainty,
        "amplitude_spread": normalized_spread,
    }
