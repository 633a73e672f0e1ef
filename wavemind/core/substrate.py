# ═══════════════════════════════════════════════════════════════════════════════
# PART 15: ATTENTION SUBSTRATE (putting it all together)
# Design: Full team
# Implementation: I1 (Systems Architect)
# ═══════════════════════════════════════════════════════════════════════════════

"""
I1: "One owner per instance. The substrate builds its own waveform, graph,
fields and engine; nothing is shared behind the caller's back."
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from wavemind.core.aboutness_graph import AboutnessGraph
from wavemind.core.channels import CHANNELS, MultiChannelWaveform
from wavemind.core.collapse import CollapseDetector, CollapseRegion
from wavemind.core.connector_field import ConnectorFieldConfig, EmergentConnectorField
from wavemind.core.gates import Gate
from wavemind.core.geometry import build_curvature_map
from wavemind.core.occurrences import Occurrence, OccurrenceMode, ValidationError
from wavemind.core.operator_trace import OperatorTracer
from wavemind.core.pattern_field import (
    EmergentEmotionField,
    PatternFieldConfig,
    PatternMatch,
    compute_state_signature,
)
from wavemind.core.spins import detect_uncertainty
from wavemind.core.states import StateSpace, build_state_space_from_graph
from wavemind.core.symmetry import StepLike, SymmetryEngineConfig, SymmetryPath, SymmetryQueryEngine

logger = logging.getLogger(__name__)


@dataclass
class SubstrateConfig:
    """Top-level configuration aggregating all component configs."""
    name: str = "substrate"
    channel_names: Tuple[str, ...] = CHANNELS

    # Component configs (optional - defaults used if None)
    emotion_config: Optional[PatternFieldConfig] = None
    connector_config: Optional[ConnectorFieldConfig] = None
    symmetry_config: Optional[SymmetryEngineConfig] = None

    # State grouping
    mode_sensitive: bool = False

    # Geometry
    loop_depth: int = 6


class AttentionSubstrate:
    """
    Attention waveform over an event graph, with learned emotions,
    learned connectors and a symmetry index.
    """

    def __init__(self, config: Optional[SubstrateConfig] = None) -> None:
        self.config = config or SubstrateConfig()
        self.name = self.config.name

        self.waveform = MultiChannelWaveform(channel_names=self.config.channel_names)
        self.graph = AboutnessGraph()
        self.emotions = EmergentEmotionField(self.config.emotion_config)
        self.connectors = EmergentConnectorField(self.config.connector_config)
        self.symmetry = SymmetryQueryEngine(self.config.symmetry_config)
        self.tracer = OperatorTracer()
        self.collapse_detector = CollapseDetector()

        # Scalar value per occurrence, feeds the emotion signature
        self.values: Dict[str, float] = {}

    # ── Waveform ─────────────────────────────────────────────────────────────

    def apply_gates(self, *gates: Gate, normalize: bool = True) -> MultiChannelWaveform:
        """Run gates in order on the attention waveform, then renormalize each channel."""
        waveform = self.waveform
        for gate in gates:
            waveform = gate.apply(waveform)
        if normalize:
            waveform.normalize_all()
        self.waveform = waveform
        return waveform

    # ── Graph ────────────────────────────────────────────────────────────────

    def add_occurrence(
        self,
        occ_id: str,
        payload: Any = None,
        mode: OccurrenceMode = OccurrenceMode.UNITY,
        metadata: Optional[Dict[str, Any]] = None,
        value: Optional[float] = None,
    ) -> Occurrence:
        occurrence = Occurrence(occ_id, mode, payload, dict(metadata or {}))
        self.graph.add_occurrence(occurrence)
        if value is not None:
            self.values[occ_id] = value
        return occurrence

    def relate(
        self,
        from_id: str,
        to_id: str,
        weight: float = 1.0,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[int]:
        """
        Add an aboutness relation. Invalid relations are skipped and logged;
        returns the relation index or None.
        """
        try:
            return self.graph.add_relation(from_id, to_id, weight, metadata)
        except ValidationError as e:
            logger.debug("Skipped relation %s -> %s: %s", from_id, to_id, e)
            return None

    def remove_occurrence(self, occ_id: str) -> bool:
        self.values.pop(occ_id, None)
        return self.graph.remove_occurrence(occ_id)

    # ── Geometry ─────────────────────────────────────────────────────────────

    def build_state_space(self) -> StateSpace:
        return build_state_space_from_graph(self.graph, self.config.mode_sensitive)

    def curvature_map(self, state_space: Optional[StateSpace] = None) -> Dict[str, float]:
        space = state_space or self.build_state_space()
        return build_curvature_map(self.graph, space, self.config.loop_depth)

    def collapse_regions(self, threshold: float, min_cluster_size: int = 2) -> List[CollapseRegion]:
        return self.collapse_detector.identify_collapse_regions(
            self.curvature_map(), threshold, min_cluster_size
        )

    # ── Emotions ─────────────────────────────────────────────────────────────

    def emotion_signature(self) -> List[float]:
        return compute_state_signature(self.waveform, self.graph, self.values)

    def learn_emotion(self, label: str, example: Any = None):
        """Teach the current attention state under `label`."""
        return self.emotions.learn(label, self.emotion_signature(), example)

    def infer_emotion(self) -> PatternMatch:
        return self.emotions.infer(self.emotion_signature())

    def uncertainty(self) -> Dict[str, Any]:
        return detect_uncertainty(self.waveform)

    # ── Transformations ──────────────────────────────────────────────────────

    def teach_transformation(
        self,
        from_id: str,
        to_id: str,
        steps: Optional[Iterable[StepLike]] = None,
        connector_label: Optional[str] = None,
        before: Optional[MultiChannelWaveform] = None,
        after: Optional[MultiChannelWaveform] = None,
    ) -> SymmetryPath:
        """
        Record a transformation in the symmetry index and the operator trace.

        Without steps, the operators are inferred from the channel norm
        change between before and after, strongest first. With a connector
        label and both waveforms, the connector field also learns the spin
        pattern of the change.
        """
        if steps is None:
            if before is None or after is None:
                raise ValueError("teach_transformation needs steps or both waveforms")
            inferred = OperatorTracer.infer_operators_from_delta(before, after)
            steps = [
                {"type": entry["operator"], "params": {"strength": entry["strength"]}}
                for entry in inferred
            ]

        path = self.symmetry.record_transformation(from_id, to_id, steps)

        self.tracer.start_trace(f"{from_id} -> {to_id}")
        for operator in self.symmetry.history[-1]["operators"]:
            self.tracer.record(operator)
        self.tracer.end_trace(to_id)

        if connector_label is not None and before is not None and after is not None:
            self.connectors.learn_from_waveforms(
                connector_label, before, after, example=f"{from_id} -> {to_id}"
            )
        return path

    # ── State ────────────────────────────────────────────────────────────────

    def get_state(self) -> Dict[str, Any]:
        """Full state serialization."""
        return {
            "name": self.name,
            "waveform": self.waveform.to_dict(),
            "graph": self.graph.to_dict(),
            "emotions": self.emotions.to_dict(),
            "connectors": self.connectors.to_dict(),
            "symmetry": self.symmetry.to_dict(),
        }

    def witness(self) -> str:
        """Generate human-readable status display."""
        stats = self.symmetry.get_statistics()
        norms = self.waveform.channel_norms()
        channels = " ".join(f"{ch}={norms.get(ch, 0.0):.2f}" for ch in self.config.channel_names)
        emotion = self.emotions.last_emotion or "-"

        return f"""
═══════════════════════════════════════════════════════════════════
SUBSTRATE: {self.name}
═══════════════════════════════════════════════════════════════════

ATTENTION
  Channels: {channels}

GRAPH
  Occurrences: {self.graph.n_occurrences} | Relations: {self.graph.n_relations}

FIELDS
  Emotions: {len(self.emotions)} learned | Last: {emotion}
  Connectors: {len(self.connectors)} learned

SYMMETRY
  Paths: {stats['total_paths']} | Steps: {stats['total_steps']}

═══════════════════════════════════════════════════════════════════
"""


def create_substrate(name: str = "substrate") -> AttentionSubstrate:
    return AttentionSubstrate(SubstrateConfig(name=name))
