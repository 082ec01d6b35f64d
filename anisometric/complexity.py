"""Metric field statistics, complexity and P0/P1 conversions on a mesh."""

from __future__ import annotations

import sys
from typing import Iterable, Sequence

import numpy as np

from .mesh import SimplexMesh, ideal_volume
from .metric import Metric, edge_length

_F64_MAX = sys.float_info.max


def _size_rows(mesh: SimplexMesh, metrics: Iterable[Metric]) -> np.ndarray:
    rows = []
    for m in metrics:
        s = m.sizes()
        if len(s) != mesh.dim:
            raise ValueError(f"metric of dimension {len(s)} on a mesh of dimension {mesh.dim}")
        rows.append(s)
    return np.array(rows, dtype=float).reshape(-1, mesh.dim)


def _complexity_of_sizes(mesh: SimplexMesh, sizes: np.ndarray, h_min: float, h_max: float) -> float:
    if sizes.shape[0] != mesh.n_verts:
        raise ValueError(f"expected {mesh.n_verts} vertex values, got {sizes.shape[0]}")
    clipped = np.minimum(h_max, np.maximum(h_min, sizes))
    vols = mesh.vertex_volumes()
    ideal = ideal_volume(mesh.elem_dim)
    return float(np.sum(vols / (ideal * np.prod(clipped, axis=1))))


def complexity_from_sizes(
    mesh: SimplexMesh, sizes: Sequence[float], h_min: float = 0.0, h_max: float = _F64_MAX
) -> float:
    """Ideal number of elements for D sizes per vertex, bounded by h_min/h_max.

    ``sizes`` holds the D sizes of vertex 0, then those of vertex 1, and so on.
    """
    flat = np.asarray(sizes, dtype=float).ravel()
    if flat.size != mesh.n_verts * mesh.dim:
        raise ValueError(f"expected {mesh.n_verts * mesh.dim} sizes, got {flat.size}")
    return _complexity_of_sizes(mesh, flat.reshape(-1, mesh.dim), h_min, h_max)


def complexity(
    mesh: SimplexMesh, metrics: Iterable[Metric], h_min: float = 0.0, h_max: float = _F64_MAX
) -> float:
    """Ideal number of elements of a vertex metric field, with size bounds.

    This is the integral of 1 / (v_ideal * V(M)) over the domain, where V(M)
    is the product of the bounded characteristic sizes.
    """
    return _complexity_of_sizes(mesh, _size_rows(mesh, metrics), h_min, h_max)


def metric_info(mesh: SimplexMesh, metrics: Sequence[Metric]) -> tuple[float, float, float, float]:
    """Minimum size, maximum size, maximum anisotropy and complexity."""
    metrics = list(metrics)
    h_min, h_max, aniso_max = _F64_MAX, 0.0, 0.0
    for m in metrics:
        s = m.sizes()
        h_min = min(h_min, s[0])
        h_max = max(h_max, s[-1])
        aniso_max = max(aniso_max, s[-1] / s[0])
    return h_min, h_max, aniso_max, complexity(mesh, metrics, 0.0, _F64_MAX)


def edge_lengths(mesh: SimplexMesh, metrics: Sequence[Metric]) -> list[float]:
    """Metric-space length of every mesh edge, in the order of ``mesh.edges()``."""
    if len(metrics) != mesh.n_verts:
        raise ValueError(f"expected {mesh.n_verts} vertex metrics, got {len(metrics)}")
    return [
        edge_length(mesh.vert(i0), metrics[i0], mesh.vert(i1), metrics[i1])
        for i0, i1 in mesh.edges()
    ]


def elem_to_vertex_metric(mesh: SimplexMesh, metrics: Sequence[Metric]) -> list[Metric]:
    """Convert element (P0) metrics to vertex (P1) metrics, weighting by volume."""
    metrics = list(metrics)
    if len(metrics) != mesh.n_elems:
        raise ValueError(f"expected {mesh.n_elems} element metrics, got {len(metrics)}")
    if not metrics:
        raise ValueError("cannot interpolate metrics on a mesh without elements")
    cls = type(metrics[0])
    elem_vol = mesh.elem_volumes()
    vert_vol = mesh.vertex_volumes()
    n = mesh.verts_per_elem
    return [
        cls.interpolate(
            (float(elem_vol[e]) / n / float(vert_vol[i_vert]), metrics[e]) for e in elems
        )
        for i_vert, elems in enumerate(mesh.vertex_to_elems())
    ]


def vertex_to_elem_metric(mesh: SimplexMesh, metrics: Sequence[Metric]) -> list[Metric]:
    """Convert vertex (P1) metrics to element (P0) metrics with equal weights."""
    metrics = list(metrics)
    if len(metrics) != mesh.n_verts:
        raise ValueError(f"expected {mesh.n_verts} vertex metrics, got {len(metrics)}")
    if not metrics:
        return []
    cls = type(metrics[0])
    w = 1.0 / mesh.verts_per_elem
    return [cls.interpolate((w, metrics[int(i)]) for i in elem) for elem in mesh.elems]