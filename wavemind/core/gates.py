# ═══════════════════════════════════════════════════════════════════════════════
# PART 3: GATE OPERATORS
# Design: P1 (Dynamical Systems) + A3 (ML Integration)
# Implementation: I2 (Numerics)
# ═══════════════════════════════════════════════════════════════════════════════

"""
P1: "Gates are the only way the waveform changes. Swap mixes flavours,
Phase rotates, Hadamard superposes two channels, Transfer leaks amplitude."

I2: "Every gate returns a fresh container. Nobody gets to mutate the input,
so a gate sequence can be replayed or inverted without surprises."
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from wavemind.core.channels import MultiChannelWaveform
from wavemind.core.waveforms import Complex, Waveform, union_keys

_SQRT2_INV = 1.0 / math.sqrt(2.0)


class Gate(ABC):
    """A pure transformation of a MultiChannelWaveform."""

    def __init__(self, name: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.name = name
        self.metadata = metadata or {}

    @abstractmethod
    def apply(self, mcw: MultiChannelWaveform) -> MultiChannelWaveform:
        """Return a new container; the input is left untouched."""

    def then(self, other: Gate) -> ComposedGate:
        """This gate first, then other."""
        return ComposedGate([self, other])

    def __call__(self, mcw: MultiChannelWaveform) -> MultiChannelWaveform:
        return self.apply(mcw)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.metadata})"


class ComposedGate(Gate):
    """Fixed-order pipeline. Nested compositions are flattened."""

    def __init__(self, gates: Sequence[Gate]) -> None:
        flat: List[Gate] = []
        for gate in gates:
            if isinstance(gate, ComposedGate):
                flat.extend(gate.gates)
            else:
                flat.append(gate)
        super().__init__("Composed", {"gates": [g.name for g in flat]})
        self.gates = flat

    def apply(self, mcw: MultiChannelWaveform) -> MultiChannelWaveform:
        result = mcw.clone()
        for gate in self.gates:
            result = gate.apply(result)
        return result


class IdentityGate(Gate):
    def __init__(self) -> None:
        super().__init__("Identity")

    def apply(self, mcw: MultiChannelWaveform) -> MultiChannelWaveform:
        return mcw.clone()


class SwapGate(Gate):
    """Exchange two channels wholesale."""

    def __init__(self, channel1: str, channel2: str) -> None:
        super().__init__("Swap", {"channel1": channel1, "channel2": channel2})
        self.channel1 = channel1
        self.channel2 = channel2

    def apply(self, mcw: MultiChannelWaveform) -> MultiChannelWaveform:
        result = mcw.clone()
        wf1 = result.channels.get(self.channel1)
        wf2 = result.channels.get(self.channel2)
        result.channels[self.channel1] = wf2 if wf2 is not None else Waveform()
        result.channels[self.channel2] = wf1 if wf1 is not None else Waveform()
        return result


class PhaseGate(Gate):
    """Multiply every amplitude in a channel by e^{i theta}."""

    def __init__(self, channel: str, theta: float) -> None:
        super().__init__("Phase", {"channel": channel, "theta": theta})
        self.channel = channel
        self.theta = theta

    def apply(self, mcw: MultiChannelWaveform) -> MultiChannelWaveform:
        result = mcw.clone()
        wf = result.get_channel(self.channel)
        factor = Complex.from_polar(self.theta)
        for amp_id in wf.keys():
            wf.set(amp_id, wf.get(amp_id).mul(factor))
        return result


class HadamardGate(Gate):
    """
    Superpose two channels:
        c1' = (c1 + c2) / sqrt(2)
        c2' = (c1 - c2) / sqrt(2)

    Applied twice it restores the pair. Per-channel norms change, so callers
    re-normalize afterwards if they need unit channels.
    """

    def __init__(self, channel1: str, channel2: str) -> None:
        super().__init__("Hadamard", {"channel1": channel1, "channel2": channel2})
        self.channel1 = channel1
        self.channel2 = channel2

    def apply(self, mcw: MultiChannelWaveform) -> MultiChannelWaveform:
        result = mcw.clone()
        wf1 = result.get_channel(self.channel1)
        wf2 = result.get_channel(self.channel2)

        new_wf1 = Waveform()
        new_wf2 = Waveform()
        for amp_id in union_keys(wf1.keys(), wf2.keys()):
            a = wf1.get(amp_id)
            b = wf2.get(amp_id)
            new_wf1.set(amp_id, a.add(b).scale(_SQRT2_INV))
            new_wf2.set(amp_id, a.sub(b).scale(_SQRT2_INV))

        result.channels[self.channel1] = new_wf1
        result.channels[self.channel2] = new_wf2
        return result


class ScaleGate(Gate):
    """Multiply a channel by a real factor."""

    def __init__(self, channel: str, factor: float) -> None:
        super().__init__("Scale", {"channel": channel, "factor": factor})
        self.channel = channel
        self.factor = factor

    def apply(self, mcw: MultiChannelWaveform) -> MultiChannelWaveform:
        result = mcw.clone()
        result.get_channel(self.channel).scale(self.factor)
        return result


class ControlledGate(Gate):
    """Apply target_gate only when the control channel's norm² exceeds threshold."""

    def __init__(self, control_channel: str, target_gate: Gate, threshold: float = 1e-10) -> None:
        super().__init__(
            "Controlled",
            {"control_channel": control_channel, "target_gate": target_gate.name, "threshold": threshold},
        )
        self.control_channel = control_channel
        self.target_gate = target_gate
        self.threshold = threshold

    def apply(self, mcw: MultiChannelWaveform) -> MultiChannelWaveform:
        control = mcw.channels.get(self.control_channel)
        control_norm = control.norm_squared() if control is not None else 0.0
        if control_norm > self.threshold:
            return self.target_gate.apply(mcw)
        return mcw.clone()


class TransferGate(Gate):
    """
    Move `fraction` of every source amplitude into the destination channel.

    The source keeps (1 - fraction); the destination accumulates by complex
    addition, starting from zero for ids it does not hold yet.
    """

    def __init__(self, from_channel: str, to_channel: str, fraction: float = 1.0) -> None:
        super().__init__(
            "Transfer",
            {"from_channel": from_channel, "to_channel": to_channel, "fraction": fraction},
        )
        self.from_channel = from_channel
        self.to_channel = to_channel
        self.fraction = fraction

    def apply(self, mcw: MultiChannelWaveform) -> MultiChannelWaveform:
        result = mcw.clone()
        source = result.get_channel(self.from_channel)
        dest = result.get_channel(self.to_channel)

        for amp_id in source.keys():
            amp = source.get(amp_id)
            source.set(amp_id, amp.scale(1.0 - self.fraction))
            dest.set(amp_id, dest.get(amp_id).add(amp.scale(self.fraction)))
        return result


# ── Factories ───────────────────────────────────────────────────────────────


def identity() -> IdentityGate:
    return IdentityGate()


def swap(c1: str, c2: str) -> SwapGate:
    return SwapGate(c1, c2)


def phase(channel: str, theta: float) -> PhaseGate:
    return PhaseGate(channel, theta)


def hadamard(c1: str, c2: str) -> HadamardGate:
    return HadamardGate(c1, c2)


def scale(channel: str, factor: float) -> ScaleGate:
    return ScaleGate(channel, factor)


def controlled(control_channel: str, target: Gate, threshold: float = 1e-10) -> ControlledGate:
    return ControlledGate(control_channel, target, threshold)


def transfer(from_channel: str, to_channel: str, fraction: float = 1.0) -> TransferGate:
    return TransferGate(from_channel, to_channel, fraction)


def compose(*gates: Gate) -> ComposedGate:
    return ComposedGate(gates)
