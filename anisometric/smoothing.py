"""Smoothing of vertex metric fields."""

from __future__ import annotations

import logging
from typing import Sequence

from .mesh import SimplexMesh
from .metric import Metric

_log = logging.getLogger(__name__)


def smooth_metric(mesh: SimplexMesh, metrics: Sequence[Metric]) -> list[Metric]:
    """Smooth a vertex metric field to remove isolated extreme values.

    For each vertex, the metrics of the vertex and of its neighbours are
    averaged with equal weights, leaving out the ones with the smallest and
    the largest volume.
    """
    _log.debug("Apply metric smoothing")
    metrics = list(metrics)
    if len(metrics) != mesh.n_verts:
        raise ValueError(f"expected {mesh.n_verts} vertex metrics, got {len(metrics)}")
    if not metrics:
        return []
    cls = type(metrics[0])

    result = []
    for i_vert, neighbors in enumerate(mesh.vertex_to_vertices()):
        vol = metrics[i_vert].vol()
        min_vol = max_vol = vol
        # None stands for the vertex itself
        min_idx: int | None = None
        max_idx: int | None = None
        for i_neigh in neighbors:
            vol = metrics[i_neigh].vol()
            if vol < min_vol:
                min_vol, min_idx = vol, i_neigh
            elif vol > max_vol:
                max_vol, max_idx = vol, i_neigh

        n = len(neighbors) if min_idx == max_idx else len(neighbors) - 1
        w = 1.0 / n if n else 0.0

        selected = []
        if min_idx is not None and max_idx is not None:
            selected.append(metrics[i_vert])
        selected += [metrics[i] for i in neighbors if i != min_idx and i != max_idx]

        result.append(cls.interpolate((w, m) for m in selected))
    return result