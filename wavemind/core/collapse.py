# ═══════════════════════════════════════════════════════════════════════════════
# PART 8: COLLAPSE REGIONS
# Design: P1 (Dynamical Systems) + C6 (Cryptography)
# Implementation: I2 (Numerics)
# ═══════════════════════════════════════════════════════════════════════════════

"""
P1: "High curvature means states stop being distinguishable - a collapse.
Cluster the collapsed states, summarize each cluster, and the summary seeds
a fresh state space."

C6: "The summary is a canonical string. Same region, same signature, every
time, regardless of iteration order."
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import numpy as np

from wavemind.core.states import StateSpace

logger = logging.getLogger(__name__)


@dataclass
class CurvatureStats:
    mean: float
    min: float
    max: float
    count: int


@dataclass
class CollapseRegion:
    """A cluster of high-curvature states."""
    id: str
    state_ids: List[str]
    curvature_stats: CurvatureStats
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        stats = self.curvature_stats
        return {
            "id": self.id,
            "stateIds": list(self.state_ids),
            "curvatureStats": {
                "mean": stats.mean,
                "min": stats.min,
                "max": stats.max,
                "count": stats.count,
            },
        }


class CollapseDetector:
    """Finds collapse regions in a curvature map."""

    def __init__(self, id_prefix: str = "collapse") -> None:
        self.id_prefix = id_prefix

    def identify_collapse_regions(
        self,
        curvature_map: Mapping[str, float],
        threshold: float,
        min_cluster_size: int,
    ) -> List[CollapseRegion]:
        """
        Cluster states whose curvature is at least `threshold`.

        States are sorted by curvature, highest first. A state joins the
        current cluster while its curvature differs from the previous one by
        less than half the threshold; otherwise the cluster is closed and
        emitted if it has at least min_cluster_size members. If nothing was
        emitted but enough states qualified, they all form one region.
        """
        qualifying: List[Tuple[str, float]] = [
            (state_id, curvature)
            for state_id, curvature in curvature_map.items()
            if curvature >= threshold
        ]
        if len(qualifying) < min_cluster_size:
            return []

        qualifying.sort(key=lambda entry: entry[1], reverse=True)

        regions: List[CollapseRegion] = []
        cluster: List[Tuple[str, float]] = []
        last_curvature: Optional[float] = None
        max_gap = threshold * 0.5

        for entry in qualifying:
            if last_curvature is None or abs(entry[1] - last_curvature) < max_gap:
                cluster.append(entry)
            else:
                if len(cluster) >= min_cluster_size:
                    regions.append(self._build_region(len(regions), cluster))
                cluster = [entry]
            last_curvature = entry[1]

        if len(cluster) >= min_cluster_size:
            regions.append(self._build_region(len(regions), cluster))

        if not regions:
            regions.append(self._build_region(0, qualifying))

        for region in regions:
            logger.debug("Collapse region %s: %d states", region.id, len(region.state_ids))
        return regions

    def _build_region(self, index: int, cluster: List[Tuple[str, float]]) -> CollapseRegion:
        curvatures = np.array([c for _, c in cluster], dtype=float)
        return CollapseRegion(
            id=f"{self.id_prefix}:{index}",
            state_ids=[state_id for state_id, _ in cluster],
            curvature_stats=CurvatureStats(
                mean=float(np.mean(curvatures)),
                min=float(np.min(curvatures)),
                max=float(np.max(curvatures)),
                count=len(cluster),
            ),
        )


def collapse_region_to_signature(region: CollapseRegion) -> str:
    """Canonical JSON summary: sorted state ids plus rounded curvature stats."""
    stats = region.curvature_stats
    signature = {
        "states": "|".join(sorted(region.state_ids)),
        "curvature": {
            "mean": f"{stats.mean:.4f}",
            "range": f"{stats.min:.4f}-{stats.max:.4f}",
            "count": stats.count,
        },
    }
    return json.dumps(signature)


def spawn_derived_state_space(
    parent: StateSpace,
    signature: str,
    parent_id: Optional[str] = None,
    clock: Callable[[], float] = time.time,
) -> StateSpace:
    """
    Clone a state space into a new one seeded by a collapse signature.

    States and the occurrence mapping are copied; the child records where it
    came from in its metadata.
    """
    child = StateSpace(metadata={
        "origin_signature": signature,
        "parent": parent_id,
        "spawned_at": clock(),
    })
    for state in parent.get_all_states():
        child.create_state(state.id, list(state.occurrence_ids), dict(state.metadata))
    logger.info("Spawned derived state space with %d states", len(child))
    return child
