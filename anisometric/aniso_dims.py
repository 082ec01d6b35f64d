"""Anisotropic metrics of fixed dimension, in 2D and 3D."""

from __future__ import annotations

from itertools import combinations
from typing import ClassVar, Sequence

import numpy as np

from .aniso import AnisoMetric


class _FixedDimAnisoMetric(AnisoMetric):
    """Anisotropic metric whose dimension is fixed by the class."""

    DIM: ClassVar[int]

    def __init__(self, m: Sequence[float], v: float) -> None:
        super().__init__(m, v)
        if self.dim != self.DIM:
            raise ValueError(
                f"{type(self).__name__} needs {self.DIM * (self.DIM + 1) // 2} components"
            )

    @classmethod
    def _from_axes(cls, axes) -> "_FixedDimAnisoMetric":
        vectors = [np.asarray(a, dtype=float).ravel() for a in axes]
        if any(v.size != cls.DIM for v in vectors):
            raise ValueError(f"size vectors must have {cls.DIM} components")
        norms = [float(np.linalg.norm(v)) for v in vectors]
        units = [v / n for v, n in zip(vectors, norms)]
        for a, b in combinations(units, 2):
            if not float(a @ b) < 1e-12:
                raise ValueError("size vectors must be orthogonal")
        eigvals = cls.bound_eigenvalues([1.0 / (n * n) for n in norms])
        basis = np.vstack(units)
        mat = basis.T @ (eigvals[:, None] * basis)
        return cls.from_mat(mat)


class AnisoMetric2d(_FixedDimAnisoMetric):
    """2D anisotropic metric stored as ``(m00, m11, m01)``."""

    DIM = 2

    @classmethod
    def from_sizes(cls, s0, s1) -> "AnisoMetric2d":
        """Build a metric from 2 orthogonal vectors whose lengths are the sizes."""
        return cls._from_axes((s0, s1))


class AnisoMetric3d(_FixedDimAnisoMetric):
    """3D anisotropic metric stored as ``(m00, m11, m22, m01, m12, m02)``."""

    DIM = 3

    @classmethod
    def from_sizes(cls, s0, s1, s2) -> "AnisoMetric3d":
        """Build a metric from 3 orthogonal vectors whose lengths are the sizes."""
        return cls._from_axes((s0, s1, s2))