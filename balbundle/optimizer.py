"""A small graph optimizer for bundle adjustment.

Vertices carry estimates that are updated additively.  Edges carry a
residual, its Jacobians and an information matrix.  Vertices flagged as
marginalized (the points) are eliminated with the Schur complement.  The
reduced system over the remaining vertices (the cameras) is solved densely
or by Cholesky factorisation.  Steps are controlled by either a
Levenberg-Marquardt or a Powell dogleg trust region.
"""

from __future__ import annotations

import enum
import math
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np

__all__ = [
    "TrustRegionStrategy",
    "LinearSolverKind",
    "SparseOptimizer",
    "huber_weight",
]

_LM_TAU = 1e-5
_LM_GOOD_STEP_LOWER_SCALE = 1.0 / 3.0
_LM_GOOD_STEP_UPPER_SCALE = 2.0 / 3.0
_MAX_TRIALS_AFTER_FAILURE = 10
_DOGLEG_INITIAL_DELTA = 1e4
_DOGLEG_INITIAL_DAMPING = 1e-7


class TrustRegionStrategy(enum.Enum):
    """How the size of each step is controlled."""

    LEVENBERG_MARQUARDT = "levenberg_marquardt"
    DOGLEG = "dogleg"


class LinearSolverKind(enum.Enum):
    """How the reduced camera system is solved."""

    DENSE_SCHUR = "dense_schur"
    SPARSE_SCHUR = "sparse_schur"


def huber_weight(squared_error: float, delta: float) -> float:
    """Weight the Huber kernel applies to an edge with this squared error."""
    if delta <= 0.0:
        raise ValueError("Huber delta must be positive")
    if squared_error < 0.0:
        raise ValueError("squared error must be non-negative")
    if squared_error <= delta * delta:
        return 1.0
    return delta / math.sqrt(squared_error)


def _huber_cost(squared_error: float, delta: float) -> float:
    if squared_error <= delta * delta:
        return squared_error
    return 2.0 * math.sqrt(squared_error) * delta - delta * delta


@dataclass
class _System:
    """Normal equations H dx = b split into camera and point blocks."""

    hessian_pp: np.ndarray
    gradient: np.ndarray
    landmark_blocks: dict
    coupling: dict


class SparseOptimizer:
    """Non-linear least squares over a graph of vertices and edges."""

    def __init__(
        self,
        strategy=TrustRegionStrategy.LEVENBERG_MARQUARDT,
        linear_solver=LinearSolverKind.DENSE_SCHUR,
        verbose: bool = False,
    ) -> None:
        self.strategy = TrustRegionStrategy(strategy)
        self.linear_solver = LinearSolverKind(linear_solver)
        self.verbose = verbose
        self._vertices: dict = {}
        self._edges: list = []
        self._offsets: dict = {}
        self._landmarks: list = []
        self._pose_size = 0
        self._total_size = 0

    # Graph construction

    @property
    def vertices(self) -> list:
        return [self._vertices[k] for k in sorted(self._vertices)]

    @property
    def edges(self) -> list:
        return list(self._edges)

    def add_vertex(self, vertex) -> None:
        """Add a vertex; its id must be unique."""
        if vertex.id in self._vertices:
            raise ValueError(f"a vertex with id {vertex.id} is already in the graph")
        self._vertices[vertex.id] = vertex

    def add_edge(self, edge) -> None:
        """Add an edge whose vertices are already in the graph."""
        for v in edge.vertices:
            if self._vertices.get(v.id) is not v:
                raise ValueError(f"edge vertex {v.id} is not in the graph")
        self._edges.append(edge)

    def vertex(self, vertex_id: int):
        """Return the vertex with this id; KeyError if there is none."""
        return self._vertices[vertex_id]

    # Costs

    def chi2(self) -> float:
        """Sum of e' Ω e over all edges, without robust kernels."""
        total = 0.0
        for edge in self._edges:
            error = edge.compute_error()
            total += float(error @ edge.information @ error)
        return total

    def _robust_chi2(self) -> float:
        total = 0.0
        for edge in self._edges:
            error = edge.compute_error()
            squared = float(error @ edge.information @ error)
            delta = edge.robust_kernel_delta
            total += squared if delta is None else _huber_cost(squared, delta)
        return total

    @staticmethod
    def _edge_weight(edge, error: np.ndarray) -> float:
        delta = edge.robust_kernel_delta
        if delta is None:
            return 1.0
        return huber_weight(float(error @ edge.information @ error), delta)

    # Layout and linear algebra

    def _prepare(self) -> None:
        free = [self._vertices[k] for k in sorted(self._vertices) if not self._vertices[k].fixed]
        poses = [v for v in free if not v.marginalized]
        landmarks = [v for v in free if v.marginalized]
        if not self._edges or not free:
            raise ValueError("nothing to optimize: the graph has no free vertices or no edges")
        for edge in self._edges:
            marginal = {v.id for v in edge.vertices if v.marginalized and not v.fixed}
            if len(marginal) > 1:
                raise ValueError("an edge may connect at most one marginalized vertex")
        offsets = {}
        position = 0
        for v in poses:
            offsets[v.id] = (position, v.DIMENSION)
            position += v.DIMENSION
        self._pose_size = position
        for v in landmarks:
            offsets[v.id] = (position, v.DIMENSION)
            position += v.DIMENSION
        self._total_size = position
        self._offsets = offsets
        self._landmarks = landmarks

    def _build_system(self) -> _System:
        n = self._pose_size
        h_pp = np.zeros((n, n))
        gradient = np.zeros(self._total_size)
        h_ll = {v.id: np.zeros((v.DIMENSION, v.DIMENSION)) for v in self._landmarks}
        coupling: dict = {v.id: {} for v in self._landmarks}
        for edge in self._edges:
            error = edge.compute_error()
            edge.linearize_oplus()
            omega = self._edge_weight(edge, error) * edge.information
            jacobians = (edge.jacobian_oplus_xi, edge.jacobian_oplus_xj)
            active = [
                (v, jac) for v, jac in zip(edge.vertices, jacobians) if v.id in self._offsets
            ]
            for v, jac in active:
                start, dim = self._offsets[v.id]
                gradient[start:start + dim] -= jac.T @ omega @ error
            for vi, ji in active:
                si, di = self._offsets[vi.id]
                for vj, jj in active:
                    sj, dj = self._offsets[vj.id]
                    block = ji.T @ omega @ jj
                    if not vi.marginalized and not vj.marginalized:
                        h_pp[si:si + di, sj:sj + dj] += block
                    elif vi.marginalized and vj.marginalized:
                        h_ll[vi.id] += block
                    elif not vi.marginalized:
                        existing = coupling[vj.id].get(vi.id)
                        coupling[vj.id][vi.id] = block if existing is None else existing + block
        return _System(h_pp, gradient, h_ll, coupling)

    def _solve_reduced(self, matrix: np.ndarray, rhs: np.ndarray) -> np.ndarray:
        if rhs.size == 0:
            return np.zeros(0)
        if self.linear_solver is LinearSolverKind.SPARSE_SCHUR:
            lower = np.linalg.cholesky(matrix)
            return np.linalg.solve(lower.T, np.linalg.solve(lower, rhs))
        return np.linalg.solve(matrix, rhs)

    def _solve(self, system: _System, damping: float) -> np.ndarray:
        """Solve (H + damping I) dx = b, eliminating the marginalized vertices."""
        n = self._pose_size
        reduced = system.hessian_pp + damping * np.eye(n)
        rhs = system.gradient[:n].copy()
        inverses = {}
        for v in self._landmarks:
            start, dim = self._offsets[v.id]
            inverse = np.linalg.inv(system.landmark_blocks[v.id] + damping * np.eye(dim))
            inverses[v.id] = inverse
            b_l = system.gradient[start:start + dim]
            blocks = list(system.coupling[v.id].items())
            for pid, w in blocks:
                ps, pd = self._offsets[pid]
                w_inv = w @ inverse
                rhs[ps:ps + pd] -= w_inv @ b_l
                for qid, w2 in blocks:
                    qs, qd = self._offsets[qid]
                    reduced[ps:ps + pd, qs:qs + qd] -= w_inv @ w2.T
        dx = np.zeros(self._total_size)
        dx[:n] = self._solve_reduced(reduced, rhs)
        for v in self._landmarks:
            start, dim = self._offsets[v.id]
            residual = system.gradient[start:start + dim].copy()
            for pid, w in system.coupling[v.id].items():
                ps, pd = self._offsets[pid]
                residual -= w.T @ dx[ps:ps + pd]
            dx[start:start + dim] = inverses[v.id] @ residual
        if not np.all(np.isfinite(dx)):
            raise np.linalg.LinAlgError("linear system produced a non-finite step")
        return dx

    def _quadratic(self, system: _System, x: np.ndarray) -> float:
        """Return x' H x."""
        n = self._pose_size
        xp = x[:n]
        total = float(xp @ system.hessian_pp @ xp)
        for v in self._landmarks:
            start, dim = self._offsets[v.id]
            xl = x[start:start + dim]
            total += float(xl @ system.landmark_blocks[v.id] @ xl)
            for pid, w in system.coupling[v.id].items():
                ps, pd = self._offsets[pid]
                total += 2.0 * float(x[ps:ps + pd] @ w @ xl)
        return total

    def _max_diagonal(self, system: _System) -> float:
        values = [0.0]
        if system.hessian_pp.size:
            values.append(float(np.max(np.abs(np.diag(system.hessian_pp)))))
        values.extend(float(np.max(np.abs(np.diag(h)))) for h in system.landmark_blocks.values())
        return max(values)

    def _apply(self, dx: np.ndarray) -> None:
        for vid, (start, dim) in self._offsets.items():
            self._vertices[vid].oplus(dx[start:start + dim])

    def _backup(self) -> dict:
        return {vid: self._vertices[vid].estimate.copy() for vid in self._offsets}

    def _restore(self, saved: dict) -> None:
        for vid, estimate in saved.items():
            self._vertices[vid].estimate = estimate.copy()

    def _report(self, iteration, chi2, started, iteration_start, extra) -> None:
        if not self.verbose:
            return
        now = time.perf_counter()
        print(
            f"iteration= {iteration}\t chi2= {chi2:.6f}\t time= {now - iteration_start:.6g}"
            f"\t cumTime= {now - started:.6g}\t edges= {len(self._edges)}"
            f"\t schur= {1 if self._landmarks else 0}\t {extra}"
        )

    # Optimization

    def optimize(self, iterations: int) -> int:
        """Run up to ``iterations`` iterations; return how many were done."""
        if iterations < 0:
            raise ValueError("iterations must be non-negative")
        self._prepare()
        if self.strategy is TrustRegionStrategy.DOGLEG:
            return self._optimize_dogleg(iterations)
        return self._optimize_levenberg(iterations)

    def _optimize_levenberg(self, iterations: int) -> int:
        started = time.perf_counter()
        current = self._robust_chi2()
        damping: Optional[float] = None
        ni = 2.0
        done = 0
        for iteration in range(iterations):
            iteration_start = time.perf_counter()
            system = self._build_system()
            if damping is None:
                max_diagonal = self._max_diagonal(system)
                damping = _LM_TAU * max_diagonal if max_diagonal > 0.0 else _LM_TAU
            accepted = False
            trials = 0
            while trials < _MAX_TRIALS_AFTER_FAILURE:
                trials += 1
                saved = self._backup()
                try:
                    dx = self._solve(system, damping)
                except np.linalg.LinAlgError:
                    dx = None
                if dx is not None:
                    self._apply(dx)
                    new = self._robust_chi2()
                    scale = float(dx @ (damping * dx + system.gradient)) + 1e-3
                    rho = (current - new) / scale
                    if rho > 0.0 and math.isfinite(new):
                        alpha = min(1.0 - (2.0 * rho - 1.0) ** 3, _LM_GOOD_STEP_UPPER_SCALE)
                        damping *= max(_LM_GOOD_STEP_LOWER_SCALE, alpha)
                        ni = 2.0
                        current = new
                        accepted = True
                        break
                self._restore(saved)
                damping *= ni
                ni *= 2.0
            done += 1
            self._report(
                iteration, current, started, iteration_start,
                f"lambda= {damping:.6f}\t levenbergIter= {trials}",
            )
            if not accepted:
                break
        return done

    def _gauss_newton_step(self, system: _System) -> Optional[np.ndarray]:
        try:
            return self._solve(system, 0.0)
        except np.linalg.LinAlgError:
            pass
        damping = _DOGLEG_INITIAL_DAMPING
        for _ in range(_MAX_TRIALS_AFTER_FAILURE):
            try:
                return self._solve(system, damping)
            except np.linalg.LinAlgError:
                damping *= 10.0
        return None

    def _optimize_dogleg(self, iterations: int) -> int:
        started = time.perf_counter()
        current = self._robust_chi2()
        delta = _DOGLEG_INITIAL_DELTA
        done = 0
        for iteration in range(iterations):
            iteration_start = time.perf_counter()
            system = self._build_system()
            gradient = system.gradient
            step_gn = self._gauss_newton_step(system)
            if step_gn is None:
                break
            curvature = self._quadratic(system, gradient)
            gradient_norm2 = float(gradient @ gradient)
            step_sd = None
            if curvature > 0.0:
                step_sd = (gradient_norm2 / curvature) * gradient

            accepted = False
            trials = 0
            while trials < _MAX_TRIALS_AFTER_FAILURE:
                trials += 1
                step = self._dogleg_step(step_gn, step_sd, delta)
                saved = self._backup()
                self._apply(step)
                new = self._robust_chi2()
                predicted = 2.0 * float(gradient @ step) - self._quadratic(system, step)
                rho = (current - new) / predicted if predicted > 0.0 else -1.0
                if rho > 0.75:
                    delta = max(delta, 3.0 * float(np.linalg.norm(step)))
                elif rho < 0.25:
                    delta *= 0.5
                if rho > 0.0 and math.isfinite(new):
                    current = new
                    accepted = True
                    break
                self._restore(saved)
            done += 1
            self._report(
                iteration, current, started, iteration_start,
                f"Delta= {delta:.6g}\t trials= {trials}",
            )
            if not accepted:
                break
        return done

    @staticmethod
    def _dogleg_step(step_gn: np.ndarray, step_sd: Optional[np.ndarray], delta: float):
        gn_norm = float(np.linalg.norm(step_gn))
        if gn_norm <= delta or step_sd is None:
            if gn_norm <= delta:
                return step_gn
            return step_gn * (delta / gn_norm)
        sd_norm = float(np.linalg.norm(step_sd))
        if sd_norm >= delta:
            return step_sd * (delta / sd_norm)
        a = step_sd
        diff = step_gn - a
        c = float(a @ diff)
        diff_norm2 = float(diff @ diff)
        slack = delta * delta - float(a @ a)
        root = math.sqrt(c * c + diff_norm2 * slack)
        if c <= 0.0:
            beta = (-c + root) / diff_norm2
        else:
            beta = slack / (c + root)
        return a + beta * diff