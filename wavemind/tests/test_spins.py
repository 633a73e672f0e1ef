"""Tests for spin patterns and the connector field."""

import math

import numpy as np
import pytest

from wavemind.core.channels import MultiChannelWaveform
from wavemind.core.connector_field import ConnectorFieldConfig, EmergentConnectorField
from wavemind.core.spins import (
    SPIN_DOWN,
    SPIN_UP,
    SPIN_ZERO,
    SpinPattern,
    detect_uncertainty,
    quantize_spin,
    transformation_pattern,
    waveform_to_spin_pattern,
)
from wavemind.core.waveforms import Waveform


# ── Helpers ──────────────────────────────────────────────────────────────────


def sp(pattern: str) -> SpinPattern:
    return SpinPattern.from_string(pattern)


def make_waveform(norms) -> MultiChannelWaveform:
    """One amplitude per channel with the given squared magnitude."""
    return MultiChannelWaveform({
        ch: Waveform({"x": math.sqrt(n)}) for ch, n in norms.items()
    })


def create_test_field(**overrides) -> EmergentConnectorField:
    return EmergentConnectorField(ConnectorFieldConfig(**overrides), clock=lambda: 7.0)


# ── SpinPattern ──────────────────────────────────────────────────────────────


def test_quantize_spin():
    assert quantize_spin(0.3) == SPIN_UP
    assert quantize_spin(-0.3) == SPIN_DOWN
    assert quantize_spin(0.25) == SPIN_ZERO
    assert quantize_spin(-0.1) == SPIN_ZERO


def test_pattern_string_and_accessors():
    pattern = SpinPattern({"u": 0.5, "d": -0.5, "nope": 0.5})
    assert pattern.pattern_string() == "+-0000"
    assert pattern.get_spin("u") == SPIN_UP
    assert pattern.get_spin("nope") == SPIN_ZERO
    assert pattern.total_spin() == 0.0


def test_pair_alignment_counts():
    pattern = sp("++-000")
    assert pattern.count_aligned_pairs() == 1
    assert pattern.count_anti_aligned_pairs() == 2


def test_effective_charge():
    assert sp("+00000").effective_charge() == pytest.approx(1 / 3)
    assert sp("0+0000").effective_charge() == pytest.approx(-1 / 6)


def test_spin_similarity():
    """Only channels decided on both sides count; none decided gives 0.5."""
    assert sp("+-0000").similarity(sp("+-0000")) == 1.0
    assert sp("+-0000").similarity(sp("++0000")) == 0.5
    assert sp("+00000").similarity(sp("0+0000")) == 0.5
    assert sp("+00000").similarity(sp("-00000")) == 0.0


def test_is_opposite_of():
    assert sp("+-0000").is_opposite_of(sp("-+0000"))
    assert sp("+-0000").is_opposite_of(sp("-00000"))
    assert not sp("+-0000").is_opposite_of(sp("++0000"))


def test_uncertainty_is_fraction_undecided():
    assert sp("000000").uncertainty() == 1.0
    assert sp("+00000").uncertainty() == pytest.approx(5 / 6)
    assert sp("+-+-+-").uncertainty() == 0.0


def test_collapse_towards_fills_only_undecided():
    pattern = sp("+00000")
    pattern.collapse_towards(sp("-+0000"))
    assert pattern.pattern_string() == "++0000"


def test_weight_view():
    pattern = sp("+-0000")
    assert pattern.to_weights() == [1.0, 0.0, 0.5, 0.5, 0.5, 0.5]
    assert SpinPattern.from_weights(pattern.to_weights()) == pattern


def test_operator_sequence_and_role():
    assert sp("+0-000").to_operator_sequence() == ["up", "strange"]
    assert sp("000000").semantic_role() == "undefined"
    assert sp("+00000").semantic_role() == "assertion"
    assert sp("00000-").semantic_role() == "grounding"
    assert sp("+0-000").semantic_role() == "composite:assertion+context-switch"


def test_spin_pattern_serialization():
    data = sp("+-0000").to_dict()
    assert data["pattern"] == "+-0000"
    assert data["spins"]["u"] == SPIN_UP
    assert data["uncertainty"] == pytest.approx(4 / 6)


# ── Waveform analysis ────────────────────────────────────────────────────────


def test_waveform_to_spin_pattern():
    """Channels well above the mean norm spin up, well below spin down."""
    waveform = make_waveform({"u": 4.0, "d": 1.0, "s": 1.0, "c": 1.0, "t": 1.0, "b": 1.0})
    assert waveform_to_spin_pattern(waveform).pattern_string() == "+-----"


def test_waveform_to_spin_pattern_empty():
    assert waveform_to_spin_pattern(MultiChannelWaveform()).pattern_string() == "000000"
    assert waveform_to_spin_pattern(None).pattern_string() == "000000"


def test_transformation_pattern():
    before = make_waveform({"u": 1.0, "d": 1.0, "s": 1.0})
    after = make_waveform({"u": 4.0, "d": 0.25, "s": 1.1})
    assert transformation_pattern(before, after).pattern_string() == "+-0000"


def test_detect_uncertainty_empty_waveform():
    result = detect_uncertainty(MultiChannelWaveform())
    assert result["spin_uncertainty"] == 1.0
    assert result["amplitude_spread"] == 0.0
    assert result["uncertainty"] == pytest.approx(0.5)
    assert result["confident"] is False


def test_detect_uncertainty_confident():
    """Every channel decided and a small amplitude spread reads as confident."""
    waveform = make_waveform({"u": 0.02, "c": 0.02, "t": 0.02, "d": 0.001, "s": 0.001, "b": 0.001})
    result = detect_uncertainty(waveform)

    assert result["pattern"].pattern_string() == "+--++-"
    assert result["spin_uncertainty"] == 0.0
    assert result["confident"] is True


# ── Connector field ──────────────────────────────────────────────────────────


def test_connector_repeat_collapses_spins():
    """Repeated labels settle undecided channels and keep decided ones."""
    field = create_test_field()
    field.learn("is", sp("+00000"), example="cat is animal")
    field.learn("is", sp("-+0000"))

    pattern = field.get_pattern("is")
    assert pattern.spins.pattern_string() == "++0000"
    assert pattern.count == 2
    assert field.get_examples("is") == ["cat is animal"]


def test_connector_signature_is_weight_view():
    field = create_test_field()
    field.learn("is", sp("+-0000"))
    np.testing.assert_allclose(field.get_pattern("is").signature, [1, 0, 0.5, 0.5, 0.5, 0.5])


def test_connector_infer_known():
    field = create_test_field()
    field.learn("is", sp("+0-000"))
    match = field.infer_connector(sp("+0-000"))

    assert match.label == "is"
    assert match.is_new is False
    assert match.similarity == pytest.approx(1.0)
    assert match.pattern.pattern_string() == "+0-000"


def test_connector_infer_empty_uses_fallback():
    field = create_test_field()
    match = field.infer_connector(sp("+00000"), fallback_word="causes")
    assert match.label == "causes"
    assert match.is_new is True
    assert match.similarity == 0.0


def test_connector_infer_generates_label_on_miss():
    """All-down weights are the zero vector, so nothing matches."""
    field = create_test_field()
    field.learn("is", sp("+00000"))
    match = field.infer_connector(sp("------"))

    assert match.label == "link_2"
    assert match.is_new is True
    assert match.pattern.pattern_string() == "------"


def test_connector_merge_collapses_absorbed_spins():
    field = create_test_field(auto_merge=False)
    field.learn("is", sp("+++++0"))
    field.learn("is", sp("+++++0"))
    field.learn("are", sp("+++++-"))

    assert field.merge_similar() == ("is", "are")
    pattern = field.get_pattern("is")
    assert pattern.spins.pattern_string() == "+++++-"
    assert pattern.count == 3
    assert field.get_learned_connectors() == ["is"]


def test_connector_learn_from_waveforms():
    field = create_test_field()
    before = make_waveform({"u": 1.0, "c": 1.0})
    after = make_waveform({"u": 2.0, "c": 0.1})
    field.learn_from_waveforms("abstracts", before, after)

    assert field.get_spin_pattern("abstracts").pattern_string() == "+00-00"
    assert field.get_pattern("abstracts").to_operator_sequence() == ["up", "charm"]
    assert field.get_pattern("abstracts").semantic_role() == "composite:assertion+abstraction"


def test_connector_serialization():
    field = create_test_field()
    field.learn("is", sp("+00000"))
    data = field.to_dict()

    assert data["learnedLabels"] == ["is"]
    entry = data["patterns"]["is"]
    assert entry["count"] == 1
    assert entry["lastSeen"] == 7.0
    assert entry["spins"] == "+00000"
    assert entry["role"] == "assertion"


def test_waveform_analysis_does_not_create_channels():
    """Reading spins and uncertainty leaves the waveform's channels as they were."""
    waveform = make_waveform({"u": 1.0})
    before = make_waveform({"u": 0.5})

    waveform_to_spin_pattern(waveform)
    detect_uncertainty(waveform)
    transformation_pattern(before, waveform)

    assert list(waveform.channels) == ["u"]
    assert list(before.channels) == ["u"]
    assert waveform.to_dict() == {"u": {"x": {"re": 1.0, "im": 0.0}}}


def test_connectors_one_channel_apart_stay_distinct():
    """Learning never merges connectors on its own."""
    field = create_test_field()
    assert field.learn("is", sp("++++++")) is not None
    assert field.learn("has", sp("+++++0")) is not None

    assert field.get_learned_connectors() == ["is", "has"]
    assert field.get_spin_pattern("has").pattern_string() == "+++++0"


def test_connector_auto_merge_is_opt_in():
    field = create_test_field(auto_merge=True)
    field.learn("is", sp("++++++"))
    assert field.learn("has", sp("+++++0")) is None
    assert field.get_learned_connectors() == ["is"]
