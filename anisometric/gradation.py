"""Metric gradation: measure it on a mesh, enforce it, and extend metrics with it."""

from __future__ import annotations

import logging
import math
from typing import MutableSequence, Sequence

import numpy as np

from .mesh import SimplexMesh
from .metric import Metric

_log = logging.getLogger(__name__)


def edge_gradation(m0: Metric, m1: Metric, e) -> float:
    """Gradation of the metric along edge ``e`` going from ``m0`` to ``m1``."""
    e = np.asarray(e, dtype=float)
    l0 = m0.length(e)
    l1 = m1.length(e)
    a = l0 / l1
    if abs(a - 1.0) < 1e-3:
        length = l0
    else:
        length = l0 * math.log(a) / (a - 1.0)
    return max(a, 1.0 / a) ** (1.0 / length)


def gradation(mesh: SimplexMesh, metrics: Sequence[Metric], target: float) -> tuple[float, float]:
    """Maximum gradation over the mesh edges, and the fraction of edges above ``target``.

    The fraction is NaN for a mesh without edges.
    """
    if len(metrics) != mesh.n_verts:
        raise ValueError(f"expected {mesh.n_verts} vertex metrics, got {len(metrics)}")
    edges = mesh.edges()
    count = 0
    max_gradation = 0.0
    for i0, i1 in edges:
        g = edge_gradation(metrics[i0], metrics[i1], mesh.vert(i1) - mesh.vert(i0))
        if g > target:
            count += 1
        max_gradation = max(max_gradation, g)
    fraction = count / len(edges) if edges else math.nan
    return max_gradation, fraction


def apply_metric_gradation(
    mesh: SimplexMesh, metrics: MutableSequence[Metric], beta: float, t: float, max_iter: int
) -> int:
    """Enforce a maximum gradation ``beta`` on the metric field, in place.

    Each pass limits every vertex metric by the metrics spanned from its
    neighbours, as they were at the start of the pass. Returns the number of
    vertices still modified in the last pass (0 when the target is reached).
    """
    if len(metrics) != mesh.n_verts:
        raise ValueError(f"expected {mesh.n_verts} vertex metrics, got {len(metrics)}")
    _log.debug("Apply metric gradation (beta = %s, max_iter = %s)", beta, max_iter)

    v2v = mesh.vertex_to_vertices()
    n = 0
    for _ in range(max_iter):
        previous = list(metrics)
        n = 0
        for i_vert, neighbors in enumerate(v2v):
            v0 = mesh.vert(i_vert)
            m_new = previous[i_vert]
            fixed = False
            for i_neigh in neighbors:
                e = mesh.vert(i_neigh) - v0
                m_neigh = previous[i_neigh]
                if edge_gradation(m_new, m_neigh, e) < 1.01 * beta:
                    continue
                fixed = True
                m_new = m_new.intersect(m_neigh.span(e, beta, t))
            metrics[i_vert] = m_new
            if fixed:
                n += 1
        if n == 0:
            break

    if n > 0:
        c_max, frac = gradation(mesh, metrics, beta)
        _log.warning(
            "gradation: target not achieved: max gradation: %.2f, %.2e%% of edges have a gradation > %s",
            c_max,
            frac * 100.0,
            beta,
        )
    return n


def extend_metric(
    mesh: SimplexMesh,
    metrics: MutableSequence[Metric],
    flags: MutableSequence[bool],
    beta: float,
    t: float,
) -> None:
    """Extend a metric known at the flagged vertices to the whole mesh, in place.

    At each pass, every unflagged vertex with flagged neighbours receives the
    intersection of the metrics spanned from those neighbours and is flagged.
    Stops when all vertices are flagged or when a pass fixes nothing.
    """
    n_verts = mesh.n_verts
    if len(metrics) != n_verts or len(flags) != n_verts:
        raise ValueError(f"expected {n_verts} vertex metrics and flags")
    _log.debug("Extend the metric into the domain using gradation = %s", beta)
    _log.debug("%d / %d internal vertices to fix", sum(not f for f in flags), n_verts)

    v2v = mesh.vertex_to_vertices()
    n_iter = 0
    while True:
        updates: dict[int, Metric] = {}
        for i_vert, neighbors in enumerate(v2v):
            if flags[i_vert]:
                continue
            pt = mesh.vert(i_vert)
            m_new = None
            for i in neighbors:
                if not flags[i]:
                    continue
                spanned = metrics[i].span(pt - mesh.vert(i), beta, t)
                m_new = spanned if m_new is None else m_new.intersect(spanned)
            if m_new is not None:
                updates[i_vert] = m_new

        for i_vert, m_new in updates.items():
            flags[i_vert] = True
            metrics[i_vert] = m_new

        to_fix = sum(not f for f in flags)
        if to_fix == 0:
            break
        if not updates:
            _log.warning("stop at iteration %d, %d elements cannot be fixed", n_iter + 1, to_fix)
            break
        n_iter += 1
        _log.debug("iteration %d: %d / %d vertices remain to be fixed", n_iter, to_fix, n_verts)