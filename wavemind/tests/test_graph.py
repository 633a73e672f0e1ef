"""Tests for occurrences, the aboutness graph and state spaces."""

import pytest

from wavemind.core.aboutness_graph import AboutnessGraph
from wavemind.core.occurrences import (
    AboutnessRelation,
    Occurrence,
    OccurrenceMode,
    ValidationError,
    WavemindError,
    create_triune_occurrences,
)
from wavemind.core.states import (
    StateSpace,
    build_state_space_from_graph,
    canonical_payload_key,
    find_all_simple_paths,
    get_causal_order,
    is_reachable,
)


# ── Helpers ──────────────────────────────────────────────────────────────────


def make_graph(edges, payloads=None) -> AboutnessGraph:
    """Graph whose occurrences are the edge endpoints; payload defaults to the id."""
    graph = AboutnessGraph()
    payloads = payloads or {}
    for a, b in edges:
        for occ_id in (a, b):
            if not graph.has_occurrence(occ_id):
                graph.add_occurrence(Occurrence(occ_id, payload=payloads.get(occ_id, occ_id)))
    for a, b in edges:
        graph.add_relation(a, b)
    return graph


# ── Occurrences & relations ──────────────────────────────────────────────────


def test_self_relation_always_fails():
    """from == to is rejected at construction."""
    with pytest.raises(ValidationError):
        AboutnessRelation("a", "a")


def test_validation_error_hierarchy():
    """ValidationError is both a WavemindError and a ValueError."""
    assert issubclass(ValidationError, WavemindError)
    assert issubclass(ValidationError, ValueError)


def test_occurrence_mode_coerced_from_value():
    occ = Occurrence("x", mode="D", payload=1)
    assert occ.mode is OccurrenceMode.DUALITY
    assert occ.to_dict() == {"id": "x", "mode": "D", "payload": 1, "metadata": {}}


def test_relation_serialization_shape():
    rel = AboutnessRelation("a", "b", 0.5, {"connector": "is"})
    assert rel.to_dict() == {"from": "a", "to": "b", "weight": 0.5, "metadata": {"connector": "is"}}


def test_triune_occurrences():
    """One occurrence per mode, sharing payload, metadata copied."""
    meta = {"source": "test"}
    triune = create_triune_occurrences("cat", {"word": "cat"}, meta)

    assert set(triune) == set(OccurrenceMode)
    assert triune[OccurrenceMode.UNITY].id == "cat:U"
    assert triune[OccurrenceMode.RELATION].id == "cat:R"
    assert all(o.payload == {"word": "cat"} for o in triune.values())

    triune[OccurrenceMode.DUALITY].metadata["x"] = 1
    assert "x" not in meta


# ── Graph ────────────────────────────────────────────────────────────────────


def test_add_relation_rejects_missing_endpoint():
    graph = make_graph([("a", "b")])
    with pytest.raises(ValidationError):
        graph.add_relation("a", "ghost")
    with pytest.raises(ValidationError):
        graph.add_relation("ghost", "a")


def test_add_relation_rejects_self_reference():
    graph = make_graph([("a", "b")])
    with pytest.raises(ValidationError):
        graph.add_relation("a", "a")
    assert graph.n_relations == 1


def test_adjacency_sides_agree():
    graph = make_graph([("a", "b"), ("a", "c"), ("c", "b")])
    assert graph.successors("a") == ["b", "c"]
    assert [r.from_id for r in graph.get_incoming("b")] == ["a", "c"]
    assert graph.n_relations == 3


def test_remove_occurrence_drops_every_touching_relation():
    """After removal no relation references the id on either side."""
    graph = make_graph([("a", "b"), ("b", "c"), ("c", "a"), ("b", "a"), ("c", "b")])

    assert graph.remove_occurrence("b") is True
    assert not graph.has_occurrence("b")
    for rel in graph.get_all_relations():
        assert "b" not in (rel.from_id, rel.to_id)
    for occ_id in ("a", "c"):
        assert all(r.to_id != "b" for r in graph.get_outgoing(occ_id))
        assert all(r.from_id != "b" for r in graph.get_incoming(occ_id))
    assert graph.n_relations == 1  # c -> a


def test_remove_unknown_occurrence_returns_false():
    assert AboutnessGraph().remove_occurrence("nope") is False


def test_remove_relation_counts_removed():
    graph = make_graph([("a", "b"), ("a", "b"), ("b", "a")])
    assert graph.remove_relation("a", "b") == 2
    assert graph.successors("a") == []
    assert graph.successors("b") == ["a"]


def test_relation_indices_stay_stable():
    """Removed arena slots are never reused."""
    graph = make_graph([("a", "b")])
    graph.add_occurrence(Occurrence("c"))
    first = graph.add_relation("b", "c")
    graph.remove_relation("b", "c")
    second = graph.add_relation("c", "a")

    assert second == first + 1
    assert graph.get_relation(first) is None
    assert graph.get_relation(second).to_id == "a"


def test_graph_serialization_shape():
    graph = make_graph([("a", "b")])
    data = graph.to_dict()
    assert [o["id"] for o in data["occurrences"]] == ["a", "b"]
    assert data["relations"][0]["from"] == "a"


# ── Paths & reachability ─────────────────────────────────────────────────────


def test_simple_paths_include_start_and_never_repeat():
    graph = make_graph([("a", "b"), ("b", "c"), ("c", "a")])
    paths = find_all_simple_paths(graph, "a")

    assert [p.node_ids for p in paths] == [["a"], ["a", "b"], ["a", "b", "c"]]
    for path in paths:
        assert len(set(path.node_ids)) == len(path.node_ids)


def test_simple_paths_respect_depth():
    graph = make_graph([("a", "b"), ("b", "c"), ("c", "d")])
    paths = find_all_simple_paths(graph, "a", max_depth=1)
    assert max(p.length for p in paths) == 1


def test_reachability_and_causal_order():
    graph = make_graph([("a", "b"), ("b", "c"), ("a", "d")])
    assert is_reachable(graph, "a", "c")
    assert not is_reachable(graph, "c", "a")
    assert not is_reachable(graph, "a", "c", max_depth=1)
    assert is_reachable(graph, "c", "c")
    assert get_causal_order(graph, "a") == ["a", "b", "d", "c"]


# ── States ───────────────────────────────────────────────────────────────────


def test_states_group_equal_payloads():
    """Structurally equal payloads share a state regardless of key order."""
    graph = AboutnessGraph()
    graph.add_occurrence(Occurrence("o1", payload={"word": "cat", "n": 1}))
    graph.add_occurrence(Occurrence("o2", payload={"word": "dog"}))
    graph.add_occurrence(Occurrence("o3", payload={"n": 1, "word": "cat"}))

    space = build_state_space_from_graph(graph)

    assert len(space) == 2
    assert space.get_state("state:0").occurrence_ids == ["o1", "o3"]
    assert space.get_state("state:1").occurrence_ids == ["o2"]
    assert space.get_state_of_occurrence("o3").id == "state:0"


def test_mode_sensitive_grouping_splits_modes():
    graph = AboutnessGraph()
    for occ in create_triune_occurrences("cat", "cat").values():
        graph.add_occurrence(occ)

    assert len(build_state_space_from_graph(graph)) == 1
    assert len(build_state_space_from_graph(graph, mode_sensitive=True)) == 3


def test_custom_key_function():
    graph = make_graph([("Cat", "cat")])
    space = build_state_space_from_graph(graph, key_fn=lambda o: str(o.payload).lower())
    assert len(space) == 1


def test_canonical_key_handles_unserializable_payloads():
    """Values JSON cannot encode still produce a key."""
    occ = Occurrence("x", payload={"when": object})
    assert isinstance(canonical_payload_key(occ), str)


def test_states_keep_key_types_apart():
    """Int and str keys, and tuples and lists, are different payloads."""
    graph = AboutnessGraph()
    graph.add_occurrence(Occurrence("o1", payload={1: "x"}))
    graph.add_occurrence(Occurrence("o2", payload={"1": "x"}))
    graph.add_occurrence(Occurrence("o3", payload=(1, 2)))
    graph.add_occurrence(Occurrence("o4", payload=[1, 2]))
    graph.add_occurrence(Occurrence("o5", payload={1: "x"}))

    space = build_state_space_from_graph(graph)

    assert len(space) == 4
    assert space.get_state_of_occurrence("o5").id == space.get_state_of_occurrence("o1").id


def test_states_accept_mixed_and_tuple_keys():
    """Dicts with mixed-type or tuple keys group by content, whatever their order."""
    graph = AboutnessGraph()
    graph.add_occurrence(Occurrence("o1", payload={1: "x", "k": 2}))
    graph.add_occurrence(Occurrence("o2", payload={"k": 2, 1: "x"}))
    graph.add_occurrence(Occurrence("o3", payload={(1, 2): "x"}))
    graph.add_occurrence(Occurrence("o4", payload={(1, 2): "x"}))

    space = build_state_space_from_graph(graph)

    assert len(space) == 2
    assert space.get_state("state:0").occurrence_ids == ["o1", "o2"]
    assert space.get_state("state:1").occurrence_ids == ["o3", "o4"]


def test_canonical_key_ignores_set_order():
    a = Occurrence("a", payload={"tags": {"x", "y", "z"}})
    b = Occurrence("b", payload={"tags": {"z", "x", "y"}})
    assert canonical_payload_key(a) == canonical_payload_key(b)
    assert canonical_payload_key(a) != canonical_payload_key(Occurrence("c", payload={"tags": ["x", "y", "z"]}))


def test_assign_occurrence_moves_between_states():
    space = StateSpace()
    space.create_state("s1", ["o1", "o2"])
    space.create_state("s2")

    space.assign_occurrence_to_state("o1", "s2")

    assert space.get_state("s1").occurrence_ids == ["o2"]
    assert space.get_state("s2").occurrence_ids == ["o1"]
    assert space.get_state_of_occurrence("o1").id == "s2"


def test_assign_to_unknown_state_fails():
    with pytest.raises(ValidationError):
        StateSpace().assign_occurrence_to_state("o1", "nowhere")


def test_state_space_serialization():
    space = StateSpace()
    space.create_state("s1", ["o1"], {"k": "v"})
    data = space.to_dict()
    assert data["states"] == [{"id": "s1", "occurrenceIds": ["o1"], "metadata": {"k": "v"}}]
    assert data["occurrenceToState"] == {"o1": "s1"}
