# ═══════════════════════════════════════════════════════════════════════════════
# PART 7: STATE GEOMETRY
# Design: P1 (Dynamical Systems) | Implementation: I2 (Numerics)
# ═══════════════════════════════════════════════════════════════════════════════

"""
P1: "Curvature here is a loop-density heuristic: how many ways can you leave
a state and come back, per step of the trip. Many short loops = tightly
curved region = things becoming indistinguishable."
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from typing import Dict, List

import numpy as np

from wavemind.core.aboutness_graph import AboutnessGraph
from wavemind.core.states import StateSpace, find_all_simple_paths


@dataclass
class StateLoop:
    """A simple path from an occurrence that closes back on it."""
    state_id: str
    occurrence_id: str
    node_ids: List[str]

    @property
    def length(self) -> int:
        return len(self.node_ids) - 1


def compute_shortest_path_length(
    graph: AboutnessGraph,
    start_id: str,
    end_id: str,
    max_depth: int = 10,
) -> float:
    """Edge count of the shortest path, or math.inf if none within max_depth."""
    if start_id == end_id:
        return 0

    visited = {start_id}
    queue = deque([(start_id, 0)])
    while queue:
        node_id, depth = queue.popleft()
        if depth >= max_depth:
            continue
        for next_id in graph.successors(node_id):
            if next_id == end_id:
                return depth + 1
            if next_id not in visited:
                visited.add(next_id)
                queue.append((next_id, depth + 1))
    return math.inf


def build_state_distance_matrix(
    graph: AboutnessGraph,
    state_space: StateSpace,
    max_depth: int = 10,
) -> Dict[str, Dict[str, float]]:
    """
    Pairwise state distances using each state's first occurrence as its
    representative. Empty states are infinitely far from everything.
    """
    states = state_space.get_all_states()
    reps = {s.id: s.occurrence_ids[0] for s in states if s.occurrence_ids}

    distances: Dict[str, Dict[str, float]] = {}
    for state_a in states:
        row: Dict[str, float] = {}
        rep_a = reps.get(state_a.id)
        for state_b in states:
            rep_b = reps.get(state_b.id)
            if rep_a is None or rep_b is None:
                row[state_b.id] = math.inf
            else:
                row[state_b.id] = compute_shortest_path_length(graph, rep_a, rep_b, max_depth)
        distances[state_a.id] = row
    return distances


def find_state_loops(
    graph: AboutnessGraph,
    state_space: StateSpace,
    max_depth: int = 6,
) -> List[StateLoop]:
    """
    Loops for every occurrence of every state: a simple path of at least one
    edge whose last node has an edge back to the start.
    """
    loops: List[StateLoop] = []
    for state in state_space.get_all_states():
        for occ_id in state.occurrence_ids:
            for path in find_all_simple_paths(graph, occ_id, max_depth):
                if len(path.node_ids) < 2:
                    continue
                last_id = path.node_ids[-1]
                for next_id in graph.successors(last_id):
                    if next_id == occ_id:
                        loops.append(StateLoop(state.id, occ_id, path.node_ids + [occ_id]))
    return loops


def estimate_curvature(loops: List[StateLoop]) -> float:
    """Loop count divided by mean loop length; 0.0 with no loops."""
    if not loops:
        return 0.0
    avg_length = float(np.mean([loop.length for loop in loops]))
    if avg_length == 0:
        return 0.0
    return len(loops) / avg_length


def build_curvature_map(
    graph: AboutnessGraph,
    state_space: StateSpace,
    max_depth: int = 6,
) -> Dict[str, float]:
    """Curvature for every state (0.0 for loop-free states)."""
    by_state: Dict[str, List[StateLoop]] = {s.id: [] for s in state_space.get_all_states()}
    for loop in find_state_loops(graph, state_space, max_depth):
        if loop.state_id in by_state:
            by_state[loop.state_id].append(loop)
    return {state_id: estimate_curvature(loops) for state_id, loops in by_state.items()}
