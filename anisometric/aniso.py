"""Anisotropic metrics stored as the packed components of a symmetric matrix.

The storage follows the VTK layout: the diagonal terms first, then the
off-diagonal terms by increasing distance from the diagonal. In 2D this is
``(m00, m11, m01)`` and in 3D ``(m00, m11, m22, m01, m12, m02)``.
"""

from __future__ import annotations

import math
import sys
from typing import ClassVar, Iterable, Iterator, Sequence

import numpy as np

from .metric import S_MAX, S_MIN, S_RATIO_MAX, IsoMetric, Metric, MetricError


def _dim_from_count(n: int) -> int:
    d = (math.isqrt(8 * n + 1) - 1) // 2
    if d < 1 or d * (d + 1) // 2 != n:
        raise ValueError(f"{n} components do not describe a symmetric matrix")
    return d


def _off_diagonal(dim: int) -> list[tuple[int, int]]:
    return [(i, i + k) for k in range(1, dim) for i in range(dim - k)]


def _inv_square(h: float) -> float:
    return math.inf if h == 0.0 else 1.0 / (h * h)


def _eigh(mat) -> tuple[np.ndarray, np.ndarray]:
    return np.linalg.eigh(np.asarray(mat, dtype=float))


def _recompose(values: np.ndarray, vectors: np.ndarray) -> np.ndarray:
    return (vectors * values) @ vectors.T


def _simultaneous_reduction(a: np.ndarray, b: np.ndarray) -> tuple[np.ndarray, float]:
    values, vectors = _eigh(b)
    det = float(np.prod(values))
    inv_sqrt = 1.0 / np.sqrt(values)
    b_inv_sqrt = _recompose(inv_sqrt, vectors)
    _, p = _eigh(b_inv_sqrt @ a @ b_inv_sqrt)
    basis = b_inv_sqrt @ p
    diag = np.zeros_like(a)
    for i, v in enumerate(basis.T):
        s_i = max(float(v @ (a @ v)), float(v @ (b @ v)))
        diag[i, i] = s_i
        det *= s_i
    tmp = p.T @ _recompose(1.0 / inv_sqrt, vectors)
    return tmp.T @ diag @ tmp, det


def _step(mat_a: np.ndarray, mat_b: np.ndarray) -> tuple[float, float]:
    values, vectors = _eigh(mat_a)
    a_inv_sqrt = _recompose(1.0 / np.sqrt(values), vectors)
    eigs, _ = _eigh(a_inv_sqrt @ mat_b @ a_inv_sqrt)
    return float(np.sqrt(eigs.min())), float(np.sqrt(eigs.max()))


def _control_step(mat_a: np.ndarray, mat_b: np.ndarray, f: float) -> np.ndarray | None:
    f2 = f * f
    values, vectors = _eigh(mat_a)
    inv_sqrt = 1.0 / np.sqrt(values)
    a_inv_sqrt = _recompose(inv_sqrt, vectors)
    eigs, eig_vectors = _eigh(a_inv_sqrt @ mat_b @ a_inv_sqrt)
    if np.all((eigs > 1.0 / f2) & (eigs < f2)):
        return None
    eigs = np.maximum(np.minimum(eigs, f2), 1.0 / f2)
    a_sqrt = _recompose(1.0 / inv_sqrt, vectors)
    return a_sqrt @ _recompose(eigs, eig_vectors) @ a_sqrt


class AnisoMetric(Metric):
    """Anisotropic metric given by a symmetric positive definite matrix.

    The dimension is taken from the number of stored components. Subclasses
    may fix it with ``DIM``, which is needed to build metrics from nothing
    (``default``, empty interpolation).
    """

    DIM: ClassVar[int | None] = None

    def __init__(self, m: Sequence[float], v: float) -> None:
        comps = np.array(m, dtype=float).ravel()
        _dim_from_count(comps.size)
        self._m = comps
        self._v = float(v)

    @property
    def dim(self) -> int:
        return _dim_from_count(self._m.size)

    # -- construction -----------------------------------------------------

    @staticmethod
    def bound_eigenvalues(eigs) -> np.ndarray:
        """Clip eigenvalues to [S_MIN, S_MAX] and bound the anisotropy ratio."""
        bounded = np.clip(np.asarray(eigs, dtype=float), S_MIN, S_MAX)
        s_min = bounded.max(initial=0.0) / S_RATIO_MAX
        return np.maximum(bounded, s_min)

    @classmethod
    def slice_to_mat(cls, m: Sequence[float]) -> np.ndarray:
        """Unpack stored components into a symmetric matrix."""
        comps = np.asarray(m, dtype=float).ravel()
        dim = _dim_from_count(comps.size)
        mat = np.diag(comps[:dim])
        for value, (i, j) in zip(comps[dim:], _off_diagonal(dim)):
            mat[i, j] = mat[j, i] = value
        return mat

    @classmethod
    def mat_to_slice(cls, mat) -> np.ndarray:
        """Pack a symmetric matrix into stored components."""
        mat = np.asarray(mat, dtype=float)
        dim = mat.shape[0]
        return np.array([mat[i, i] for i in range(dim)] + [mat[i, j] for i, j in _off_diagonal(dim)])

    @classmethod
    def from_mat_and_vol(cls, mat, vol: float) -> "AnisoMetric":
        return cls(cls.mat_to_slice(mat), vol)

    @classmethod
    def from_mat(cls, mat) -> "AnisoMetric":
        """Build the metric |mat|, with bounded eigenvalues."""
        values, vectors = _eigh(mat)
        values = cls.bound_eigenvalues(np.abs(values))
        vol = 1.0 / math.sqrt(float(np.prod(values)))
        return cls.from_mat_and_vol(_recompose(values, vectors), vol)

    @classmethod
    def from_iso(cls, iso: IsoMetric) -> "AnisoMetric":
        dim = cls.DIM if cls.DIM is not None else iso.dim
        s = 1.0 / (iso.h * iso.h)
        return cls([s] * dim + [0.0] * (dim * (dim - 1) // 2), iso.h**dim)

    @classmethod
    def from_diagonal(cls, s: Sequence[float]) -> "AnisoMetric":
        diag = [float(x) for x in s]
        dim = len(diag)
        return cls(diag + [0.0] * (dim * (dim - 1) // 2), 1.0 / math.sqrt(math.prod(diag)))

    @classmethod
    def _fixed_dim(cls) -> int:
        if cls.DIM is None:
            raise TypeError(f"{cls.__name__} has no fixed dimension")
        return cls.DIM

    @classmethod
    def default(cls) -> "AnisoMetric":
        dim = cls._fixed_dim()
        return cls([S_MIN] * dim + [0.0] * (dim * (dim - 1) // 2), S_MIN**dim)

    @classmethod
    def from_slice(cls, m: Sequence[float]) -> "AnisoMetric":
        return cls.from_mat(cls.slice_to_mat(m))

    @classmethod
    def interpolate(cls, weights_and_metrics: Iterable[tuple[float, "AnisoMetric"]]) -> "AnisoMetric":
        """Log-Euclidean interpolation: exp(sum w_i log(M_i))."""
        mat = None
        for w, m in weights_and_metrics:
            values, vectors = _eigh(m.as_mat())
            logs = w * np.log(np.maximum(values, S_MIN))
            if not np.all(np.isfinite(logs)):
                raise MetricError("Non-finite metric logarithm in interpolation")
            term = _recompose(logs, vectors)
            mat = term if mat is None else mat + term
        if mat is None:
            dim = cls._fixed_dim()
            mat = np.zeros((dim, dim))
        values, vectors = _eigh(mat)
        values = cls.bound_eigenvalues(np.exp(values))
        if not np.all(np.isfinite(values)) or not np.all(values > 0.0):
            raise MetricError(f"Invalid interpolated eigenvalues {values}")
        vol = 1.0 / math.sqrt(float(np.prod(values)))
        return cls.from_mat_and_vol(_recompose(values, vectors), vol)

    # -- queries ----------------------------------------------------------

    def as_mat(self) -> np.ndarray:
        return self.slice_to_mat(self._m)

    def is_diagonal(self, tol: float) -> bool:
        dim = self.dim
        on_diag = float(np.abs(self._m[:dim]).sum())
        off_diag = float(np.abs(self._m[dim:]).sum())
        return off_diag < 1e10 * sys.float_info.min or tol * on_diag > off_diag

    def is_near_zero(self, tol: float) -> bool:
        return float(np.abs(self._m).sum()) < tol

    def check(self) -> None:
        values, _ = _eigh(self.as_mat())
        eps = 1e-8
        for s in values:
            if not s > (1.0 - eps) * S_MIN:
                raise MetricError("s < S_MIN")
            if not s < (1.0 + eps) * S_MAX:
                raise MetricError("s > S_MAX")
        if not values.max() / values.min() < (1.0 + eps) * S_RATIO_MAX:
            raise MetricError("aniso > ANISO_MAX")

    def length(self, e) -> float:
        e = np.asarray(e, dtype=float)
        return math.sqrt(float(e @ (self.as_mat() @ e)))

    def vol(self) -> float:
        return self._v

    def sizes(self) -> tuple[float, ...]:
        values, _ = _eigh(self.as_mat())
        return tuple(sorted(1.0 / math.sqrt(max(float(x), S_MIN)) for x in values))

    # -- in-place updates -------------------------------------------------

    def _set(self, other: "AnisoMetric") -> None:
        self._m = other._m.copy()
        self._v = other._v

    def scale(self, s: float) -> None:
        self._m = self._m * s
        self._v /= math.sqrt(s**self.dim)

    def scale_with_bounds(self, s: float, h_min: float, h_max: float) -> None:
        factor = _inv_square(s)
        s_min = _inv_square(h_max)
        s_max = _inv_square(h_min)
        values, vectors = _eigh(self.as_mat())
        values = np.minimum(s_max, np.maximum(s_min, factor * values))
        self._m = self.mat_to_slice(_recompose(values, vectors))
        self._v = 1.0 / math.sqrt(float(np.prod(values)))

    def control_step(self, other: "AnisoMetric", f: float) -> None:
        res = _control_step(other.as_mat(), self.as_mat(), f)
        if res is not None:
            self._set(self.from_mat(res))

    # -- combinations -----------------------------------------------------

    def _copy(self) -> "AnisoMetric":
        return type(self)(self._m.copy(), self._v)

    def intersect(self, other: "AnisoMetric") -> "AnisoMetric":
        tol = 1e-8
        if self.is_diagonal(tol) and other.is_diagonal(tol):
            dim = self.dim
            return self.from_diagonal(np.maximum(self._m[:dim], other._m[:dim]))
        if self.is_near_zero(1e-16):
            return other._copy()
        if other.is_near_zero(1e-16):
            return self._copy()
        res, det = _simultaneous_reduction(self.as_mat(), other.as_mat())
        return self.from_mat_and_vol(res, 1.0 / math.sqrt(det))

    def span(self, e, beta: float, t: float) -> "AnisoMetric":
        e = np.asarray(e, dtype=float)
        nrm = float(np.linalg.norm(e))
        log_beta = math.log(beta)
        eta_0 = (1.0 + self.length(e) * log_beta) ** (1.0 - t)
        values, vectors = _eigh(self.as_mat())
        eta = eta_0 * (1.0 + np.sqrt(values) * nrm * log_beta) ** t
        values = self.bound_eigenvalues(values / (eta * eta))
        vol = 1.0 / math.sqrt(float(np.prod(values)))
        return self.from_mat_and_vol(_recompose(values, vectors), vol)

    def differs_from(self, other: "AnisoMetric", tol: float) -> bool:
        return any(abs(x - y) > tol * x for x, y in zip(self, other))

    def step(self, other: "AnisoMetric") -> tuple[float, float]:
        return _step(self.as_mat(), other.as_mat())

    # -- container protocol -----------------------------------------------

    def __getitem__(self, index: int) -> float:
        return float(self._m[index])

    def __iter__(self) -> Iterator[float]:
        return (float(x) for x in self._m)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(m={list(self)!r}, v={self._v!r})"

    def __str__(self) -> str:
        mat = self.as_mat()
        values, vectors = _eigh(mat)
        lines = [f"M = {mat.tolist()}"]
        lines += [f"--> h = {1.0 / math.sqrt(v)}, {vectors[i].tolist()}" for i, v in enumerate(values)]
        lines.append(f"vol = {1.0 / math.sqrt(float(np.prod(values)))}")
        return "\n".join(lines) + "\n"