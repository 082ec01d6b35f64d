from itertools import permutations, product

import numpy as np
import pytest

from anisometric.aniso_dims import AnisoMetric2d, AnisoMetric3d
from anisometric.complexity import complexity
from anisometric.mesh import SimplexMesh
from anisometric.metric import IsoMetric
from anisometric.scaling import (
    ScalingError,
    bounded_metric,
    scale_metric,
    scale_metric_simple,
)


def square_mesh(n=8):
    verts = [(i / n, j / n) for j in range(n + 1) for i in range(n + 1)]

    def idx(i, j):
        return j * (n + 1) + i

    elems = []
    for i, j in product(range(n), range(n)):
        a, b, c, d = idx(i, j), idx(i + 1, j), idx(i + 1, j + 1), idx(i, j + 1)
        elems += [(a, b, c), (a, c, d)]
    return SimplexMesh(verts, elems)


def cube_mesh(n=4):
    verts = [(i / n, j / n, k / n) for k in range(n + 1) for j in range(n + 1) for i in range(n + 1)]
    coords = np.array(verts)

    def idx(p):
        i, j, k = p
        return (k * (n + 1) + j) * (n + 1) + i

    elems = []
    for cell in product(range(n), repeat=3):
        for perm in permutations(range(3)):
            p = list(cell)
            tet = [idx(p)]
            for axis in perm:
                p[axis] += 1
                tet.append(idx(p))
            pts = coords[tet]
            if np.linalg.det(pts[1:] - pts[0]) < 0:
                tet[2], tet[3] = tet[3], tet[2]
            elems.append(tet)
    return SimplexMesh(verts, elems)


def test_scaling_2d_iso():
    mesh = square_mesh()
    m = [IsoMetric(0.1, 2) for _ in range(mesh.n_verts)]
    c0 = scale_metric(mesh, m, 0.0, 0.05, 1000, None, None, None, 10)
    assert c0 > 0.0
    c1 = complexity(mesh, m, 0.0, 0.05)
    assert abs(c1 - 1000.0) < 100.0


def test_scaling_2d_aniso():
    mesh = square_mesh()
    m = [AnisoMetric2d.from_sizes((0.5, 0.0), (0.0, 4.0)) for _ in range(mesh.n_verts)]
    c0 = scale_metric(mesh, m, 0.0, 0.05, 1000, None, None, None, 10)
    assert c0 > 0.0
    c1 = complexity(mesh, m, 0.0, 0.05)
    assert abs(c1 - 1000.0) < 100.0


def test_scaling_3d_iso():
    mesh = cube_mesh()
    m = [IsoMetric(0.1, 3) for _ in range(mesh.n_verts)]

    with pytest.raises(ScalingError):
        scale_metric(mesh, m, 0.0, 0.05, 1000, None, None, None, 10)

    n_target = int(1.0 / 0.05**3 * 15.0)
    c0 = scale_metric(mesh, m, 0.0, 0.05, n_target, None, None, None, 10)
    assert c0 > 0.0
    c1 = complexity(mesh, m, 0.0, 0.05)
    assert abs(c1 - n_target) < 0.1 * n_target


def test_scaling_3d_aniso():
    mesh = cube_mesh()
    m = [
        AnisoMetric3d.from_sizes((0.5, 0.0, 0.0), (0.0, 4.0, 0.0), (0.0, 0.0, 6.0))
        for _ in range(mesh.n_verts)
    ]

    with pytest.raises(ScalingError):
        scale_metric(mesh, m, 0.0, 0.05, 1000, None, None, None, 10)

    n_target = int(1.0 / 0.05**3 * 50.0)
    c0 = scale_metric(mesh, m, 0.0, 0.05, n_target, None, None, None, 10)
    assert c0 > 0.0
    c1 = complexity(mesh, m, 0.0, 0.05)
    assert abs(c1 - n_target) < 0.1 * n_target


def test_scaling_3d_fixed():
    mesh = cube_mesh()
    m = [IsoMetric(0.1, 3) for _ in range(mesh.n_verts)]
    fixed_m = [IsoMetric(0.1 + p[0] + p[1], 3) for p in mesh.verts]

    n_target = int(1.0 / 0.05**3 * 15.0)
    c0 = scale_metric(mesh, m, 0.0, 0.05, n_target, fixed_m, None, None, 10)
    assert c0 > 0.0
    c1 = complexity(mesh, m, 0.0, 0.05)
    assert abs(c1 - n_target) < 0.1 * n_target


def test_scaling_failure_leaves_metrics_unchanged():
    mesh = cube_mesh(2)
    m = [IsoMetric(0.1, 3) for _ in range(mesh.n_verts)]
    with pytest.raises(ScalingError):
        scale_metric(mesh, m, 0.0, 0.05, 1000, None, None, None, 10)
    assert all(x.h == 0.1 for x in m)


def test_constraint_too_fine_raises():
    mesh = square_mesh(4)
    m = [IsoMetric(0.1, 2) for _ in range(mesh.n_verts)]
    fixed_m = [IsoMetric(0.01, 2) for _ in range(mesh.n_verts)]
    with pytest.raises(ScalingError, match="constrain"):
        scale_metric(mesh, m, 0.0, 1.0, 200, fixed_m, None, None, 10)


def test_scale_metric_simple_uniform_2d():
    mesh = square_mesh(4)
    m = [IsoMetric(0.1, 2) for _ in range(mesh.n_verts)]
    scale = scale_metric_simple(mesh, m, 0.0, 1.0, 1000, 10)
    # complexity scales as scale^-2 for a uniform 2D field
    c = complexity(mesh, [IsoMetric(0.1 * scale, 2) for _ in m], 0.0, 1.0)
    assert abs(c - 1000.0) < 50.0
    assert m[0].h == 0.1


def test_scale_metric_simple_raises():
    mesh = cube_mesh(2)
    m = [IsoMetric(0.1, 3) for _ in range(mesh.n_verts)]
    with pytest.raises(ScalingError):
        scale_metric_simple(mesh, m, 0.0, 0.05, 1000, 10)


def test_no_iterations_only_bounds():
    mesh = square_mesh(2)
    m = [IsoMetric(0.1, 2) for _ in range(mesh.n_verts)]
    scale = scale_metric(mesh, m, 0.0, 0.05, 1000, None, None, None, 0)
    assert scale == 1.0
    assert all(x.h == pytest.approx(0.05) for x in m)


def test_wrong_number_of_metrics():
    mesh = square_mesh(2)
    with pytest.raises(ValueError):
        scale_metric(mesh, [IsoMetric(0.1, 2)], 0.0, 1.0, 100, None, None, None, 10)


def test_wrong_number_of_fixed_metrics():
    mesh = square_mesh(2)
    m = [IsoMetric(0.1, 2) for _ in range(mesh.n_verts)]
    with pytest.raises(ValueError):
        scale_metric(mesh, m, 0.0, 1.0, 100, [IsoMetric(0.1, 2)], None, None, 10)


def test_bounded_metric_scales_and_bounds():
    m = IsoMetric(0.1, 2)
    res = bounded_metric(2.0, 0.0, 1.0, m, None, None, None)
    assert res.h == pytest.approx(0.2)
    assert m.h == 0.1


def test_bounded_metric_applies_bounds():
    res = bounded_metric(20.0, 0.0, 1.0, IsoMetric(0.1, 2), None, None, None)
    assert res.h == pytest.approx(1.0)


def test_bounded_metric_intersects_fixed():
    res = bounded_metric(2.0, 0.0, 1.0, IsoMetric(0.1, 2), IsoMetric(0.15, 2), None, None)
    assert res.h == pytest.approx(0.15)


def test_bounded_metric_step_control():
    res = bounded_metric(2.0, 0.0, 1.0, IsoMetric(0.1, 2), None, 2.0, IsoMetric(1.0, 2))
    assert res.h == pytest.approx(0.5)


def test_bounded_metric_default_step():
    res = bounded_metric(2.0, 0.0, 1.0, IsoMetric(0.1, 2), None, None, IsoMetric(1.0, 2))
    assert res.h == pytest.approx(0.25)


def test_bounded_metric_fixed_only():
    fixed = IsoMetric(0.3, 2)
    res = bounded_metric(0.0, 0.0, 1.0, None, fixed, None, None)
    assert res.h == pytest.approx(0.3)
    assert res.dim == 2


def test_bounded_metric_implied_only():
    res = bounded_metric(0.0, 0.0, 10.0, None, None, None, IsoMetric(1.0, 2))
    assert res.h == pytest.approx(4.0)
    assert res.dim == 2


def test_bounded_metric_aniso_bounds():
    m = AnisoMetric3d.from_sizes((0.5, 0.0, 0.0), (0.0, 4.0, 0.0), (0.0, 0.0, 6.0))
    res = bounded_metric(1.0, 0.0, 1.0, m, None, None, None)
    assert res.sizes() == pytest.approx((0.5, 1.0, 1.0))


def test_bounded_metric_needs_a_metric():
    with pytest.raises(ValueError):
        bounded_metric(1.0, 0.0, 1.0, None, None, None, None)