# anisometric

Riemannian metric fields for mesh adaptation on simplex meshes (triangles in
2D, tetrahedra in 3D).

A metric prescribes the desired element size at a point. `IsoMetric` gives the
same size in every direction. `AnisoMetric2d` and `AnisoMetric3d` give a size
for each direction. The package provides the metric algebra and the operations
on a field that has one metric per mesh vertex.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Metrics

```python
import numpy as np
from anisometric.metric import IsoMetric
from anisometric.aniso_dims import AnisoMetric2d

iso = IsoMetric(0.1, dim=2)                # size 0.1 in every direction (dim defaults to 3)
m = AnisoMetric2d.from_sizes(np.array([1.0, 0.0]), np.array([0.0, 0.1]))

m.length(np.array([0.0, 1.0]))             # 10.0, the length in metric space
m.sizes()                                  # sorted sizes: (0.1, 1.0)
m.vol()                                    # 0.1

both = m.intersect(AnisoMetric2d.from_sizes(np.array([0.5, 0.0]), np.array([0.0, 1.0])))
spanned = m.span(np.array([1.0, 0.0]), 1.2, 1.0)   # grow the metric along an edge, gradation 1.2
```

Every metric follows the interface of `anisometric.metric.Metric`: `length`,
`vol`, `sizes`, `intersect`, `span`, `step`, `differs_from`, `check`, and the
class methods `default`, `from_slice` and `interpolate`. The methods `scale`,
`scale_with_bounds` and `control_step` change the metric in place. `check`
raises `MetricError` for a metric that is not valid. The module also has
`edge_length` and `min_metric`.

Anisotropic metrics (`anisometric.aniso.AnisoMetric`) are symmetric
positive-definite matrices. They are stored in VTK order: `(m00, m11, m01)` in
2D and `(m00, m11, m22, m01, m12, m02)` in 3D. Indexing a metric or iterating
over it gives these components. They can be built with `from_mat`,
`from_diagonal`, `from_iso` or `from_slice`. The eigenvalues are kept within
fixed bounds on size and anisotropy. Intersection uses simultaneous reduction.
Interpolation is log-Euclidean.

## Metric fields on a mesh

`anisometric.mesh.SimplexMesh(verts, elems)` holds the vertex coordinates and
the element connectivity. It computes `edges()`, `vertex_to_vertices()`,
`vertex_to_elems()`, `elem_volumes()` and `vertex_volumes()` when they are
first needed. `ideal_volume(dim)` gives the volume of the regular simplex with
unit edges.

The field operations take a mesh and a list of metrics:

- `anisometric.complexity`: `complexity`, `complexity_from_sizes`,
  `metric_info`, `edge_lengths`, `elem_to_vertex_metric`,
  `vertex_to_elem_metric`.
- `anisometric.gradation`: `edge_gradation`, `gradation`,
  `apply_metric_gradation` (enforces a maximum gradation in place) and
  `extend_metric` (spreads metrics from flagged vertices to the rest of the
  mesh).
- `anisometric.smoothing`: `smooth_metric`, which averages each vertex with
  its neighbours and leaves out the metrics with the smallest and the largest
  volume.
- `anisometric.scaling`: `scale_metric_simple`, `bounded_metric` and
  `scale_metric`.

The complexity of a field is the number of ideal elements needed to fill the
domain. An ideal element is equilateral in metric space. `scale_metric` scales
a field in place to reach a target complexity. It can also intersect the field
with a fixed metric and limit its step relative to an implied metric. It raises
`ScalingError` when the target cannot be reached.

## What it does not do

The package works only on metric fields. It does not read or write mesh files.
It does not compute metrics from geometry, curvature or element shapes. It
does not remesh.