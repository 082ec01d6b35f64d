"""Metric fields: the common interface and the isotropic metric."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

import numpy as np

H_MIN = 1e-8
H_MAX = 1e8
ANISO_MAX = 1e5
S_MIN = 1.0 / (H_MAX * H_MAX)
S_MAX = 1.0 / (H_MIN * H_MIN)
S_RATIO_MAX = ANISO_MAX * ANISO_MAX


class MetricError(ValueError):
    """Raised when a metric is not valid."""


class Metric(ABC):
    """A metric in D dimensions, isotropic or anisotropic.

    ``scale``, ``scale_with_bounds`` and ``control_step`` modify the metric in
    place; all other operations return new metrics.
    """

    @classmethod
    @abstractmethod
    def default(cls) -> "Metric":
        """The default (coarsest) metric."""

    @classmethod
    @abstractmethod
    def from_slice(cls, m: Sequence[float]) -> "Metric":
        """Create a metric from its stored components."""

    @classmethod
    @abstractmethod
    def interpolate(cls, weights_and_metrics: Iterable[tuple[float, "Metric"]]) -> "Metric":
        """Interpolate between weighted metrics, returning a valid metric."""

    @abstractmethod
    def check(self) -> None:
        """Raise MetricError if the metric is not valid."""

    @abstractmethod
    def length(self, e) -> float:
        """Length of edge ``e`` in metric space."""

    @abstractmethod
    def vol(self) -> float:
        """Volume associated with the metric."""

    @abstractmethod
    def sizes(self) -> tuple[float, ...]:
        """The D characteristic sizes, sorted."""

    @abstractmethod
    def scale(self, s: float) -> None:
        """Scale the metric in place."""

    @abstractmethod
    def scale_with_bounds(self, s: float, h_min: float, h_max: float) -> None:
        """Scale in place, bounding the characteristic sizes."""

    @abstractmethod
    def intersect(self, other: "Metric") -> "Metric":
        """Largest metric smaller than both ``self`` and ``other``."""

    @abstractmethod
    def span(self, e, beta: float, t: float) -> "Metric":
        """Metric spanned at offset ``e`` with maximum gradation ``beta``."""

    @abstractmethod
    def differs_from(self, other: "Metric", tol: float) -> bool:
        """Whether the metrics differ by more than a relative tolerance."""

    @abstractmethod
    def step(self, other: "Metric") -> tuple[float, float]:
        """Min and max of the length ratio other/self over all directions."""

    @abstractmethod
    def control_step(self, other: "Metric", f: float) -> None:
        """Limit the sizes in place to between 1/f and f times those of ``other``."""


def edge_length(p0, m0: Metric, p1, m1: Metric) -> float:
    """Metric-space length of edge p0-p1, assuming a geometric size variation."""
    e = np.asarray(p1, dtype=float) - np.asarray(p0, dtype=float)
    l0 = m0.length(e)
    l1 = m1.length(e)
    r = l0 / l1
    if abs(r - 1.0) > 0.01:
        return l0 * (r - 1.0) / r / math.log(r)
    return l0


def min_metric(metrics: Iterable[Metric]) -> Metric:
    """The metric with the smallest volume (the first one on ties)."""
    it = iter(metrics)
    try:
        best = next(it)
    except StopIteration:
        raise ValueError("min_metric() requires at least one metric") from None
    best_vol = best.vol()
    for m in it:
        vol = m.vol()
        if vol < best_vol:
            best, best_vol = m, vol
    return best


@dataclass
class IsoMetric(Metric):
    """Isotropic metric: a single characteristic size ``h`` in every direction."""

    h: float
    dim: int = 3

    @classmethod
    def default(cls) -> "IsoMetric":
        return cls(H_MAX)

    @classmethod
    def from_slice(cls, m: Sequence[float]) -> "IsoMetric":
        return cls(float(m[0]))

    @classmethod
    def interpolate(cls, weights_and_metrics: Iterable[tuple[float, "IsoMetric"]]) -> "IsoMetric":
        """Linear interpolation of the sizes."""
        total = 0.0
        dim = None
        for w, m in weights_and_metrics:
            total += w * m.h
            if dim is None:
                dim = m.dim
        return cls(total) if dim is None else cls(total, dim)

    def check(self) -> None:
        if self.h < 0.0:
            raise MetricError("Negative metric")

    def length(self, e) -> float:
        return float(np.linalg.norm(np.asarray(e, dtype=float))) / self.h

    def vol(self) -> float:
        return self.h**self.dim

    def sizes(self) -> tuple[float, ...]:
        return (self.h,) * self.dim

    def scale(self, s: float) -> None:
        self.h *= s

    def scale_with_bounds(self, s: float, h_min: float, h_max: float) -> None:
        self.h = min(h_max, max(h_min, s * self.h))

    def intersect(self, other: "IsoMetric") -> "IsoMetric":
        return IsoMetric(min(self.h, other.h), self.dim)

    def span(self, e, beta: float, t: float) -> "IsoMetric":
        # Linear variation of h along e; t has no effect for isotropic metrics.
        f = 1.0 + self.length(e) * math.log(beta)
        return IsoMetric(self.h * f, self.dim)

    def differs_from(self, other: "IsoMetric", tol: float) -> bool:
        return abs(self.h - other.h) > tol * self.h

    def step(self, other: "IsoMetric") -> tuple[float, float]:
        r = self.h / other.h
        return r, r

    def control_step(self, other: "IsoMetric", f: float) -> None:
        self.h = max(min(self.h, other.h * f), other.h / f)

    def __iter__(self) -> Iterator[float]:
        yield self.h

    def __str__(self) -> str:
        return f"h = {self.h!r}\n"