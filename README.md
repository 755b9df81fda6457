# balbundle

balbundle is a library for bundle adjustment with the camera model used by
BAL ("Bundle Adjustment in the Large") datasets. You build a graph of camera
vertices, point vertices and observation edges. A small sparse optimiser then
refines the graph with Levenberg–Marquardt or Powell's dogleg. The Jacobians
of the reprojection error come from dual-number automatic differentiation.

## Installation

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

## Example

```python
from balbundle.graph import VertexCameraBAL, VertexPointBAL, EdgeObservationBAL
from balbundle.optimizer import SparseOptimizer, TrustRegionStrategy, LinearSolverKind

optimizer = SparseOptimizer(
    TrustRegionStrategy.LEVENBERG_MARQUARDT,
    LinearSolverKind.DENSE_SCHUR,
    verbose=True,
)

# camera: angle-axis (3), translation (3), focal length, k1, k2
camera = VertexCameraBAL(0, [0.0, 0.0, 0.0, 0.0, 0.0, -10.0, 500.0, 0.0, 0.0])
point = VertexPointBAL(1, [0.1, -0.2, 0.3], marginalized=True)
optimizer.add_vertex(camera)
optimizer.add_vertex(point)
optimizer.add_edge(
    EdgeObservationBAL(camera, point, [-5.0, 10.0], robust_kernel_delta=1.0)
)

iterations_done = optimizer.optimize(10)
print(optimizer.chi2(), point.estimate)
```

Every vertex needs a unique id. Points flagged `marginalized=True` are
eliminated with the Schur complement. Vertices flagged `fixed=True` are not
updated. An edge may connect at most one marginalized vertex.

## Modules

- `balbundle.jet.Jet`: a first-order dual number. Build one with
  `Jet.constant(value, n)` or `Jet.variable(value, k, n)`. Arithmetic and
  comparisons work on jets and on plain numbers.
- `balbundle.jet_math`: `sqrt`, `exp`, `log`, `sin`, `cos`, `tan`, `asin`,
  `acos`, `atan`, `sinh`, `cosh`, `tanh`, `atan2`, `power`, and the checks
  `is_finite`, `is_infinite`, `is_nan`, `is_normal`. Each works on floats
  and on jets.
- `balbundle.autodiff.differentiate(functor, parameters, num_outputs)`:
  calls `functor` with one list of jets per parameter block and returns
  `(value, jacobians)`. It raises `DifferentiationError` if the functor
  returns `None` or `False`.
- `balbundle.rotation`: `dot_product`, `cross_product`,
  `angle_axis_to_quaternion`, `quaternion_to_angle_axis` and
  `angle_axis_rotate_point`.
- `balbundle.projection.cam_projection_with_distortion(camera, point)`:
  projects a point through a nine-parameter camera with radial distortion.
- `balbundle.graph`: `VertexCameraBAL`, `VertexPointBAL` and
  `EdgeObservationBAL`. An edge has `compute_error()` and
  `linearize_oplus()`, which fills `jacobian_oplus_xi` and
  `jacobian_oplus_xj`.
- `balbundle.optimizer`: `SparseOptimizer` (`add_vertex`, `add_edge`,
  `vertex`, `chi2`, `optimize`), the enums `TrustRegionStrategy` and
  `LinearSolverKind`, and `huber_weight(squared_error, delta)`.

## What it does not do

balbundle has no command-line program. It does not read or write BAL files,
export PLY point clouds, normalise a scene, or add random noise to one. To
run it on a dataset, load the cameras, points and observations yourself and
build the graph as in the example above.