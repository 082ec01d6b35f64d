"""Scaling of metric fields to reach a target number of elements."""

from __future__ import annotations

import copy
import logging
import sys
from typing import MutableSequence, Sequence

import numpy as np

from .complexity import complexity, complexity_from_sizes
from .mesh import SimplexMesh
from .metric import H_MAX, IsoMetric, Metric

_log = logging.getLogger(__name__)

_F64_MAX = sys.float_info.max
_DEFAULT_STEP = 4.0


class ScalingError(RuntimeError):
    """Raised when a metric field cannot be scaled to the target complexity."""


def _default_like(ref: Metric) -> Metric:
    if isinstance(ref, IsoMetric):
        return IsoMetric(H_MAX, ref.dim)
    return type(ref).default()


def _close_to_target(c: float, n_elems: int) -> bool:
    return abs(c - n_elems) < 0.05 * n_elems


def scale_metric_simple(
    mesh: SimplexMesh,
    metrics: Sequence[Metric],
    h_min: float,
    h_max: float,
    n_elems: int,
    max_iter: int,
) -> float:
    """Scaling factor alpha such that the bounded field alpha * M has ``n_elems`` elements.

    The first iteration ignores the size bounds. Raises ScalingError if the
    target is not reached within ``max_iter`` iterations.
    """
    sizes = np.array([m.sizes() for m in metrics], dtype=float).reshape(-1, mesh.dim)
    fac = 1.0
    scale = 1.0
    for it in range(max_iter):
        sizes *= fac
        if it == 0:
            c = complexity_from_sizes(mesh, sizes, 0.0, _F64_MAX)
        else:
            c = complexity_from_sizes(mesh, sizes, h_min, h_max)
        _log.debug("Iteration %d, complexity = %.2e, scale = %.2e", it, c, scale)
        if _close_to_target(c, n_elems):
            return scale
        if it == max_iter - 1:
            _log.warning("Target complexity %s not reached: complexity %.2e", n_elems, c)
            break
        fac = (n_elems / c) ** (-1.0 / mesh.elem_dim)
        scale *= fac
    raise ScalingError("Unable to scale the metric (simple)")


def bounded_metric(
    alpha: float,
    h_min: float,
    h_max: float,
    m: Metric | None,
    m_fixed: Metric | None,
    step: float | None,
    m_implied: Metric | None,
) -> Metric:
    """The metric alpha * m bounded in size, intersected with ``m_fixed`` and
    with its step from ``m_implied`` limited to ``step`` (4 by default).

    The inputs are left unchanged.
    """
    if m is not None:
        res = copy.copy(m)
        res.scale_with_bounds(alpha, h_min, h_max)
        if m_fixed is not None:
            res = res.intersect(m_fixed)
    elif m_fixed is not None:
        res = copy.copy(m_fixed)
    elif m_implied is not None:
        res = _default_like(m_implied)
    else:
        raise ValueError("bounded_metric() needs at least one metric")
    if m_implied is not None:
        res.control_step(m_implied, _DEFAULT_STEP if step is None else step)
    res.scale_with_bounds(1.0, h_min, h_max)
    return res


def scale_metric(
    mesh: SimplexMesh,
    metrics: MutableSequence[Metric],
    h_min: float,
    h_max: float,
    n_elems: int,
    fixed_m: Sequence[Metric] | None = None,
    implied_m: Sequence[Metric] | None = None,
    step: float | None = None,
    max_iter: int = 10,
) -> float:
    """Scale a vertex metric field in place so that its complexity is ``n_elems``.

    The field becomes the bounded, scaled metric intersected with ``fixed_m``
    and step-limited with respect to ``implied_m``. Returns the scaling
    factor. Raises ScalingError if the target cannot be reached, including
    when the constraint metrics alone exceed it.
    """
    n_verts = mesh.n_verts
    if len(metrics) != n_verts:
        raise ValueError(f"expected {n_verts} vertex metrics, got {len(metrics)}")
    for name, field in (("fixed", fixed_m), ("implied", implied_m)):
        if field is not None and len(field) != n_verts:
            raise ValueError(f"expected {n_verts} {name} metrics, got {len(field)}")

    _log.debug(
        "Scaling the metric (h_min = %s, h_max = %s, n_elems = %s, max_iter = %s)",
        h_min,
        h_max,
        n_elems,
        max_iter,
    )
    if fixed_m is not None:
        _log.debug("Using a fixed metric")
    if implied_m is not None:
        _log.debug(
            "Using the implied metric with step = %s", _DEFAULT_STEP if step is None else step
        )

    scale = 1.0
    if max_iter > 0:
        scale = scale_metric_simple(mesh, metrics, h_min, h_max, n_elems, max_iter)

    if fixed_m is None and implied_m is None:
        for m in metrics:
            m.scale_with_bounds(scale, h_min, h_max)
        return scale

    fixed = list(fixed_m) if fixed_m is not None else [None] * n_verts
    implied = list(implied_m) if implied_m is not None else [None] * n_verts

    def scaled(s: float) -> list[Metric]:
        return [
            bounded_metric(s, h_min, h_max, m, m_f, step, m_i)
            for m, m_f, m_i in zip(metrics, fixed, implied)
        ]

    if max_iter > 0:
        constrain = [
            bounded_metric(0.0, h_min, h_max, None, m_f, step, m_i)
            for m_f, m_i in zip(fixed, implied)
        ]
        constrain_c = complexity(mesh, constrain, h_min, h_max)
        _log.debug("Complexity of the constrain metric: %s", constrain_c)
        if constrain_c > n_elems:
            raise ScalingError(
                f"The complexity of the constrain metric is {constrain_c:.2e} > n_elems = {n_elems}"
            )

        scale_high = 1.5 * scale
        for it in range(max_iter):
            c = complexity(mesh, scaled(scale_high), h_min, h_max)
            _log.debug("Iteration %d: scale_high = %.2e, complexity = %.2e", it, scale_high, c)
            if it == max_iter - 1:
                raise ScalingError("Unable to scale the metric (bisection)")
            if c < n_elems:
                break
            scale_high *= 1.5

        scale_low = scale / 1.5
        for it in range(max_iter):
            c = complexity(mesh, scaled(scale_low), h_min, h_max)
            _log.debug("Iteration %d: scale_low = %.2e, complexity = %.2e", it, scale_low, c)
            if it == max_iter - 1:
                raise ScalingError("Unable to scale the metric (bisection)")
            if c > n_elems:
                break
            scale_low /= 1.5

        for it in range(max_iter):
            scale = 0.5 * (scale_low + scale_high)
            c = complexity(mesh, scaled(scale), h_min, h_max)
            _log.debug("Iteration %d: scale = %.2e, complexity = %.2e", it, scale, c)
            if _close_to_target(c, n_elems):
                break
            if it == max_iter - 1:
                raise ScalingError("Unable to scale the metric (bisection)")
            if c < n_elems:
                scale_high = scale
            else:
                scale_low = scale

    metrics[:] = scaled(scale)
    return scale