# ═══════════════════════════════════════════════════════════════════════════════
# PART 2: MULTI-CHANNEL CONTAINER
# Design: P1 (Dynamical Systems) | Implementation: I2 (Numerics)
# ═══════════════════════════════════════════════════════════════════════════════

"""
P1: "Six flavours, six independent amplitude subspaces. Channels are not
jointly normalized - a loud 'up' channel says nothing about 'down'."
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple

from wavemind.core.waveforms import Waveform

# Quark-flavoured channel names: up, down, strange, charm, top, bottom.
CHANNELS: Tuple[str, ...] = ("u", "d", "s", "c", "t", "b")


class MultiChannelWaveform:
    """
    Named channels, each holding one Waveform.

    Unknown channel names are created empty on first access.
    """

    def __init__(
        self,
        initial: Optional[Mapping[str, Waveform]] = None,
        channel_names: Iterable[str] = CHANNELS,
    ) -> None:
        self.channel_names: Tuple[str, ...] = tuple(channel_names)
        self.channels: Dict[str, Waveform] = {}
        for name, waveform in (initial or {}).items():
            self.channels[name] = waveform

    def get_channel(self, name: str) -> Waveform:
        if name not in self.channels:
            self.channels[name] = Waveform()
        return self.channels[name]

    def read_channel(self, name: str) -> Waveform:
        """Like get_channel, but a missing channel reads as empty and is not created."""
        waveform = self.channels.get(name)
        return waveform if waveform is not None else Waveform()

    def set_channel(self, name: str, waveform: Waveform) -> None:
        self.channels[name] = waveform

    def clone(self) -> MultiChannelWaveform:
        copy = MultiChannelWaveform(channel_names=self.channel_names)
        for name, waveform in self.channels.items():
            copy.channels[name] = waveform.clone()
        return copy

    def normalize_all(self) -> None:
        """Normalize each channel on its own; no cross-channel norm relation."""
        for waveform in self.channels.values():
            waveform.normalize()

    def apply_per_channel(self, fn: Callable[[Waveform, str], None]) -> None:
        for name, waveform in self.channels.items():
            fn(waveform, name)

    def channel_norms(self) -> Dict[str, float]:
        """Squared norm of every declared channel (0.0 for empty ones)."""
        norms = {
            name: (self.channels[name].norm_squared() if name in self.channels else 0.0)
            for name in self.channel_names
        }
        for name, waveform in self.channels.items():
            norms.setdefault(name, waveform.norm_squared())
        return norms

    def total_norm_squared(self) -> float:
        return sum(w.norm_squared() for w in self.channels.values())

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, float]]]:
        return {name: waveform.to_dict() for name, waveform in self.channels.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping]) -> MultiChannelWaveform:
        return cls({name: Waveform.from_dict(wf) for name, wf in data.items()})
