"""A minimal simplex mesh: vertex coordinates and element connectivity."""

from __future__ import annotations

import math
from functools import cached_property
from itertools import combinations

import numpy as np


def ideal_volume(dim: int) -> float:
    """Volume of the unit-edge regular simplex in dimension ``dim``."""
    if dim < 1:
        raise ValueError("dimension must be at least 1")
    return math.sqrt((dim + 1) / 2.0**dim) / math.factorial(dim)


class SimplexMesh:
    """A mesh of simplices in D dimensions.

    ``verts`` is an (n_verts, D) array of coordinates and ``elems`` an
    (n_elems, k + 1) array of vertex indices, with 1 <= k <= D.
    """

    def __init__(self, verts, elems) -> None:
        coords = np.array(verts, dtype=float)
        if coords.ndim != 2 or coords.shape[1] < 1:
            raise ValueError("vertices must be an (n_verts, dim) array")
        dim = coords.shape[1]

        conn = np.array(elems, dtype=np.int64)
        if conn.size == 0:
            conn = conn.reshape(0, dim + 1)
        if conn.ndim != 2:
            raise ValueError("elements must be an (n_elems, n_verts_per_elem) array")
        if not 2 <= conn.shape[1] <= dim + 1:
            raise ValueError(f"elements must have between 2 and {dim + 1} vertices")
        if conn.size and (conn.min() < 0 or conn.max() >= coords.shape[0]):
            raise ValueError("element refers to a vertex that does not exist")

        coords.setflags(write=False)
        conn.setflags(write=False)
        self._verts = coords
        self._elems = conn

    @property
    def dim(self) -> int:
        """Dimension of the space."""
        return self._verts.shape[1]

    @property
    def elem_dim(self) -> int:
        """Dimension of the elements."""
        return self._elems.shape[1] - 1

    @property
    def verts_per_elem(self) -> int:
        return self._elems.shape[1]

    @property
    def n_verts(self) -> int:
        return self._verts.shape[0]

    @property
    def n_elems(self) -> int:
        return self._elems.shape[0]

    @property
    def verts(self) -> np.ndarray:
        return self._verts

    @property
    def elems(self) -> np.ndarray:
        return self._elems

    def vert(self, i: int) -> np.ndarray:
        """Coordinates of vertex ``i``."""
        return self._verts[i].copy()

    @cached_property
    def _edges(self) -> tuple[tuple[int, int], ...]:
        pairs = {
            (min(a, b), max(a, b))
            for elem in self._elems.tolist()
            for a, b in combinations(elem, 2)
        }
        return tuple(sorted(pairs))

    def edges(self) -> tuple[tuple[int, int], ...]:
        """Unique edges as sorted ``(i0, i1)`` pairs with ``i0 < i1``."""
        return self._edges

    @cached_property
    def _vertex_to_vertices(self) -> tuple[tuple[int, ...], ...]:
        neighbors: list[list[int]] = [[] for _ in range(self.n_verts)]
        for i0, i1 in self._edges:
            neighbors[i0].append(i1)
            neighbors[i1].append(i0)
        return tuple(tuple(sorted(n)) for n in neighbors)

    def vertex_to_vertices(self) -> tuple[tuple[int, ...], ...]:
        """For each vertex, the sorted indices of the vertices sharing an edge."""
        return self._vertex_to_vertices

    @cached_property
    def _vertex_to_elems(self) -> tuple[tuple[int, ...], ...]:
        elems: list[list[int]] = [[] for _ in range(self.n_verts)]
        for i_elem, elem in enumerate(self._elems.tolist()):
            for i in elem:
                elems[i].append(i_elem)
        return tuple(tuple(e) for e in elems)

    def vertex_to_elems(self) -> tuple[tuple[int, ...], ...]:
        """For each vertex, the indices of the elements that contain it."""
        return self._vertex_to_elems

    @cached_property
    def _elem_volumes(self) -> np.ndarray:
        k = self.elem_dim
        pts = self._verts[self._elems]
        e = pts[:, 1:, :] - pts[:, :1, :]
        if k == self.dim:
            vols = np.linalg.det(e) if len(e) else np.zeros(0)
        else:
            gram = e @ np.transpose(e, (0, 2, 1))
            dets = np.linalg.det(gram) if len(e) else np.zeros(0)
            vols = np.sqrt(np.maximum(dets, 0.0))
        vols = vols / math.factorial(k)
        vols.setflags(write=False)
        return vols

    def elem_volumes(self) -> np.ndarray:
        """Element volumes (signed when the elements fill the space)."""
        return self._elem_volumes

    @cached_property
    def _vertex_volumes(self) -> np.ndarray:
        n = self.verts_per_elem
        vols = np.zeros(self.n_verts)
        np.add.at(vols, self._elems.ravel(), np.repeat(self._elem_volumes / n, n))
        vols.setflags(write=False)
        return vols

    def vertex_volumes(self) -> np.ndarray:
        """Volume attached to each vertex: an equal share of each element it belongs to."""
        return self._vertex_volumes