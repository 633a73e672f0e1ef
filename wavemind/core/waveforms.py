# ═══════════════════════════════════════════════════════════════════════════════
# PART 1: COMPLEX WAVEFORM ALGEBRA
# Design: P1 (Dynamical Systems) | Implementation: I2 (Numerics)
# ═══════════════════════════════════════════════════════════════════════════════

"""
P1: "Attention is an amplitude over things, not a pointer to one thing.
Every id gets a complex number; phase carries the relation, magnitude the
salience."

I2: "Keep it sparse. Most ids are absent most of the time, and absent means
zero. Normalization is the only invariant worth enforcing."
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

import numpy as np


@dataclass(frozen=True)
class Complex:
    """
    Immutable complex amplitude.

    Stored as (re, im) for the {re, im} serialization; arithmetic runs on
    the built-in complex value.
    """
    re: float
    im: float = 0.0

    @classmethod
    def of(cls, z: complex) -> Complex:
        return cls(float(z.real), float(z.imag))

    @classmethod
    def from_polar(cls, theta: float, magnitude: float = 1.0) -> Complex:
        """magnitude * e^{i theta}."""
        return cls.of(magnitude * np.exp(1j * theta))

    @classmethod
    def from_mapping(cls, value: Mapping[str, float]) -> Complex:
        return cls(float(value.get("re", 0.0)), float(value.get("im", 0.0)))

    @property
    def value(self) -> complex:
        return complex(self.re, self.im)

    def add(self, other: Complex) -> Complex:
        return Complex.of(self.value + other.value)

    def sub(self, other: Complex) -> Complex:
        return Complex.of(self.value - other.value)

    def mul(self, other: Complex) -> Complex:
        return Complex.of(self.value * other.value)

    def conjugate(self) -> Complex:
        return Complex.of(self.value.conjugate())

    def scale(self, factor: float) -> Complex:
        return Complex(self.re * factor, self.im * factor)

    def abs_sq(self) -> float:
        return (self.value * self.value.conjugate()).real

    @property
    def phase(self) -> float:
        return float(np.angle(self.value))

    def to_dict(self) -> Dict[str, float]:
        return {"re": self.re, "im": self.im}


ZERO = Complex(0.0, 0.0)


# ── Functional forms ────────────────────────────────────────────────────────


def c_add(a: Complex, b: Complex) -> Complex:
    return a.add(b)


def c_sub(a: Complex, b: Complex) -> Complex:
    return a.sub(b)


def c_mul(a: Complex, b: Complex) -> Complex:
    return a.mul(b)


def c_conj(a: Complex) -> Complex:
    return a.conjugate()


def c_scale(a: Complex, factor: float) -> Complex:
    return a.scale(factor)


def c_abs_sq(a: Complex) -> float:
    return a.abs_sq()


# ── Waveform ────────────────────────────────────────────────────────────────


class Waveform:
    """
    Sparse assignment of complex amplitudes to string ids.

    Ids that were never set read as zero. After normalize() the squared
    magnitudes sum to 1, unless every amplitude is zero, in which case
    normalize() leaves the waveform untouched.
    """

    def __init__(self, initial: Optional[Mapping[str, object]] = None) -> None:
        self.amplitudes: Dict[str, Complex] = {}
        for amp_id, value in (initial or {}).items():
            self.set(amp_id, value)

    # ── Access ──────────────────────────────────────────────────────────────

    def set(self, amp_id: str, value: object) -> None:
        """Set amplitude. Accepts Complex, {re, im} mappings or Python numbers."""
        self.amplitudes[amp_id] = _as_complex(value)

    def get(self, amp_id: str) -> Complex:
        return self.amplitudes.get(amp_id, ZERO)

    def keys(self) -> List[str]:
        return list(self.amplitudes.keys())

    def __contains__(self, amp_id: object) -> bool:
        return amp_id in self.amplitudes

    def __len__(self) -> int:
        return len(self.amplitudes)

    # ── Algebra ─────────────────────────────────────────────────────────────

    def clone(self) -> Waveform:
        copy = Waveform()
        copy.amplitudes = dict(self.amplitudes)
        return copy

    def norm_squared(self) -> float:
        """Sum of |amplitude|^2."""
        return float(sum(amp.abs_sq() for amp in self.amplitudes.values()))

    def normalize(self) -> None:
        """Scale to unit norm in place. Zero-norm waveforms are left as is."""
        norm_sq = self.norm_squared()
        if norm_sq > 0:
            norm = math.sqrt(norm_sq)
            self.amplitudes = {
                amp_id: Complex.of(amp.value / norm)
                for amp_id, amp in self.amplitudes.items()
            }

    def scale(self, factor: float) -> None:
        self.amplitudes = {
            amp_id: amp.scale(factor) for amp_id, amp in self.amplitudes.items()
        }

    def add(self, other: Waveform) -> None:
        """Accumulate another waveform in place."""
        for amp_id, amp in other.amplitudes.items():
            self.amplitudes[amp_id] = self.get(amp_id).add(amp)

    def inner_product(self, other: Waveform) -> Complex:
        """<self|other> = sum over the union of ids of conj(self[id]) * other[id]."""
        total = sum(
            self.get(amp_id).value.conjugate() * other.get(amp_id).value
            for amp_id in union_keys(self.keys(), other.keys())
        )
        return Complex.of(complex(total))

    def magnitudes(self) -> np.ndarray:
        """|amplitude|^2 per id, in key order."""
        return np.array([amp.abs_sq() for amp in self.amplitudes.values()], dtype=float)

    def phases(self) -> np.ndarray:
        return np.array([amp.phase for amp in self.amplitudes.values()], dtype=float)

    # ── Serialization ───────────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {amp_id: amp.to_dict() for amp_id, amp in self.amplitudes.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, float]]) -> Waveform:
        return cls({amp_id: Complex.from_mapping(v) for amp_id, v in data.items()})

    def __repr__(self) -> str:
        return f"Waveform({len(self.amplitudes)} ids, norm²={self.norm_squared():.4f})"


# ── Internal ────────────────────────────────────────────────────────────────


def _as_complex(value: object) -> Complex:
    if isinstance(value, Complex):
        return value
    if isinstance(value, Mapping):
        return Complex.from_mapping(value)
    if isinstance(value, (complex, np.complexfloating)):
        return Complex.of(complex(value))
    if isinstance(value, (int, float, np.floating, np.integer)):
        return Complex(float(value), 0.0)
    raise TypeError(f"Cannot interpret {type(value).__name__} as a complex amplitude")


def union_keys(first: Iterable[str], second: Iterable[str]) -> List[str]:
    seen = dict.fromkeys(first)
    seen.update(dict.fromkeys(second))
    return list(seen)
