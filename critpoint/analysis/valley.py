"""Valley walking from degenerate minima.

A minimum whose Hessian has near-zero eigenvalues may lie on a connected
set of minima (a valley) rather than being isolated. Starting from such a
point, the walkers below step along a Hessian null-space direction and
project each step back onto the level set of the starting value, tracing
the valley in both directions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from ..logging import get_logger
from ..optimize import Problem, as_problem
from ..optimize.core import Objective
from ..optimize.derivatives import GRADIENT_METHODS, gradient_function, hessian_function
from .classification import CriticalPointKind, HessianClassification

logger = get_logger(__name__)

# Smallest step before a walker gives up on a direction.
_MIN_STEP = 1e-8


class WalkMethod(Enum):
    NEWTON_PROJECTION = "newton_projection"
    PREDICTOR_CORRECTOR = "predictor_corrector"


@dataclass(frozen=True)
class ValleyWalkConfig:
    """
    Settings for valley detection and walking.

    Attributes:
        gradient_tolerance: Largest gradient norm of a point treated as critical.
        eigenvalue_threshold: Hessian eigenvalues with ``|lambda|`` below this
            span the valley directions.
        initial_step_size: First tangent step length.
        max_steps: Step attempts per direction.
        max_projection_iter: Newton iterations when projecting onto the valley.
        projection_tol: Projection stops once ``|f(x) - level|`` is below this.
        method: Walking scheme, see :class:`WalkMethod`.
        derivative_method: ``"finite_diff"``, ``"autodiff"`` or ``"analytic"``.
    """

    gradient_tolerance: float = 1e-4
    eigenvalue_threshold: float = 1e-3
    initial_step_size: float = 0.05
    max_steps: int = 200
    max_projection_iter: int = 10
    projection_tol: float = 1e-10
    method: WalkMethod = WalkMethod.NEWTON_PROJECTION
    derivative_method: str = "finite_diff"

    def __post_init__(self) -> None:
        for name in ("gradient_tolerance", "eigenvalue_threshold", "initial_step_size", "projection_tol"):
            value = getattr(self, name)
            if not value > 0:
                raise ValueError(f"{name} must be positive, got {value}")
        for name in ("max_steps", "max_projection_iter"):
            value = getattr(self, name)
            if value < 1:
                raise ValueError(f"{name} must be >= 1, got {value}")
        object.__setattr__(self, "method", WalkMethod(self.method))
        if self.derivative_method not in GRADIENT_METHODS:
            raise ValueError(
                f"Unknown derivative method {self.derivative_method!r}; expected one of {GRADIENT_METHODS}"
            )


@dataclass(frozen=True)
class ValleyTraceResult:
    """
    Paths traced from ``start_point`` along both valley directions.

    Each path has shape ``(k, d)`` and starts at ``start_point``.
    ``n_points`` counts distinct path points, so the shared start is counted
    once. ``converged`` is False when the start is not a valley point.
    """

    start_point: np.ndarray
    path_positive: np.ndarray
    path_negative: np.ndarray
    arc_length: float
    n_points: int
    method: WalkMethod
    converged: bool

    def __post_init__(self) -> None:
        for name in ("start_point", "path_positive", "path_negative"):
            value = np.array(getattr(self, name), dtype=float, copy=True)
            value.setflags(write=False)
            object.__setattr__(self, name, value)

    @property
    def points(self) -> np.ndarray:
        """Whole valley path from the negative end to the positive end."""
        return np.vstack([self.path_negative[::-1], self.path_positive[1:]])


class _Derivatives:
    def __init__(self, objective: Union[Problem, Objective], method: str):
        problem = as_problem(objective)
        self.fun = problem.fun
        self.grad = gradient_function(problem, method)
        self.hess = hessian_function(problem, method)


def _as_point(point) -> np.ndarray:
    x = np.asarray(point, dtype=float)
    if x.ndim != 1 or x.size == 0:
        raise ValueError(f"point must be a non-empty vector, got shape {x.shape}")
    if not np.all(np.isfinite(x)):
        raise ValueError("point must be finite")
    return x


def _null_directions(hess: np.ndarray, threshold: float) -> np.ndarray:
    eigenvalues, eigenvectors = np.linalg.eigh(0.5 * (hess + hess.T))
    return eigenvectors[:, np.abs(eigenvalues) < threshold]


def detect_valley(
    objective: Union[Problem, Objective],
    point,
    config: Optional[ValleyWalkConfig] = None,
) -> Tuple[bool, Optional[np.ndarray]]:
    """
    Decide whether ``point`` lies on a valley.

    Returns:
        ``(True, directions)`` where the columns of ``directions`` span the
        near-null space of the Hessian, or ``(False, None)`` when the point is
        not critical or its Hessian has no near-zero eigenvalue.
    """
    config = config or ValleyWalkConfig()
    derivs = _Derivatives(objective, config.derivative_method)
    return _detect(derivs, _as_point(point), config)


def _detect(derivs: _Derivatives, x: np.ndarray, config: ValleyWalkConfig):
    if not np.linalg.norm(derivs.grad(x)) < config.gradient_tolerance:
        return False, None
    directions = _null_directions(derivs.hess(x), config.eigenvalue_threshold)
    if directions.shape[1] == 0:
        return False, None
    return True, directions


def project_to_valley(
    objective: Union[Problem, Objective],
    point,
    level: float = 0.0,
    max_iter: int = 10,
    tol: float = 1e-10,
    derivative_method: str = "finite_diff",
) -> np.ndarray:
    """
    Newton-project ``point`` onto the level set ``f(x) = level``.

    Each iteration moves along the gradient by ``(f(x) - level) / ||g||^2``.
    Iteration stops after ``max_iter`` steps, once the residual is below
    ``tol``, or when the gradient vanishes.
    """
    derivs = _Derivatives(objective, derivative_method)
    return _project(derivs, _as_point(point), level, max_iter, tol)


def _project(derivs: _Derivatives, x: np.ndarray, level: float, max_iter: int, tol: float) -> np.ndarray:
    x = np.array(x, dtype=float, copy=True)
    for _ in range(max_iter):
        residual = float(derivs.fun(x)) - level
        if abs(residual) < tol:
            break
        g = derivs.grad(x)
        gnorm2 = float(np.dot(g, g))
        if gnorm2 < 1e-20:
            break
        x -= (residual / gnorm2) * g
    return x


def valley_tangent(
    objective: Union[Problem, Objective],
    point,
    previous_direction,
    config: Optional[ValleyWalkConfig] = None,
) -> Optional[np.ndarray]:
    """
    Unit valley tangent at ``point`` continuing ``previous_direction``.

    Picks the near-null Hessian eigenvector most aligned with
    ``previous_direction`` and orients it the same way. Returns None when the
    Hessian has no near-zero eigenvalue at ``point``.
    """
    config = config or ValleyWalkConfig()
    x = _as_point(point)
    previous = np.asarray(previous_direction, dtype=float)
    if previous.shape != x.shape:
        raise ValueError(
            f"Vector dimension mismatch: direction has shape {previous.shape}, point has shape {x.shape}"
        )
    return _tangent(_Derivatives(objective, config.derivative_method), x, previous, config)


def _tangent(derivs: _Derivatives, x: np.ndarray, previous: np.ndarray, config: ValleyWalkConfig):
    directions = _null_directions(derivs.hess(x), config.eigenvalue_threshold)
    if directions.shape[1] == 0:
        return None
    alignment = directions.T @ previous
    best = int(np.argmax(np.abs(alignment)))
    tangent = directions[:, best]
    if alignment[best] < 0:
        tangent = -tangent
    return tangent / np.linalg.norm(tangent)


def _walk(
    derivs: _Derivatives,
    start: np.ndarray,
    direction: np.ndarray,
    level: float,
    config: ValleyWalkConfig,
) -> np.ndarray:
    current = np.array(start, dtype=float, copy=True)
    direction = direction / np.linalg.norm(direction)
    step = config.initial_step_size
    path: List[np.ndarray] = [current.copy()]
    for _ in range(config.max_steps):
        tangent = _tangent(derivs, current, direction, config)
        if tangent is None:
            break
        direction = tangent
        predicted = current + step * direction
        corrected = _project(derivs, predicted, level, config.max_projection_iter, config.projection_tol)
        correction = float(np.linalg.norm(corrected - predicted))

        if config.method is WalkMethod.PREDICTOR_CORRECTOR:
            if correction < 0.5 * step:
                accepted, next_step = True, min(step * 1.2, 0.3)
            elif correction < step:
                accepted, next_step = True, step * 0.8
            else:
                accepted, next_step = False, step * 0.5
        elif correction < step:
            accepted, next_step = True, min(step * 1.1, 0.2)
        else:
            accepted, next_step = False, step * 0.5

        step = next_step
        if accepted:
            current = corrected
            path.append(current.copy())
        elif step < _MIN_STEP:
            break
    return np.array(path)


def walk_valley(
    objective: Union[Problem, Objective],
    start_point,
    direction,
    config: Optional[ValleyWalkConfig] = None,
    level: Optional[float] = None,
) -> np.ndarray:
    """
    Walk one way along a valley from ``start_point``.

    Each attempt takes a tangent step and projects it back onto the level set
    ``f(x) = level`` (``f(start_point)`` by default). A step is accepted when
    the projection moved less than the step itself; otherwise the step is
    halved. Newton projection grows accepted steps by 10% up to 0.2. The
    predictor-corrector scheme grows small corrections by 20% up to 0.3 and
    shrinks moderate ones by 20%.

    Returns:
        Accepted points, shape ``(k, d)``, starting with ``start_point``.
    """
    config = config or ValleyWalkConfig()
    x = _as_point(start_point)
    direction = np.asarray(direction, dtype=float)
    if direction.shape != x.shape:
        raise ValueError(
            f"Vector dimension mismatch: direction has shape {direction.shape}, point has shape {x.shape}"
        )
    if not np.linalg.norm(direction) > 0:
        raise ValueError("direction must be non-zero")
    derivs = _Derivatives(objective, config.derivative_method)
    if level is None:
        level = float(derivs.fun(x))
    return _walk(derivs, x, direction, level, config)


def _arc_length(path: np.ndarray) -> float:
    if len(path) < 2:
        return 0.0
    return float(np.sum(np.linalg.norm(np.diff(path, axis=0), axis=1)))


def trace_valley(
    objective: Union[Problem, Objective],
    start_point,
    config: Optional[ValleyWalkConfig] = None,
) -> ValleyTraceResult:
    """
    Trace the valley through ``start_point`` in both directions.

    The walk follows the first near-null Hessian direction at the start and
    stays on the level set of ``f(start_point)``. A start that is not a valley
    point yields one-point paths, zero arc length and ``converged=False``.

    Example:
        >>> import numpy as np
        >>> ring = lambda x: float((x[0] ** 2 + x[1] ** 2 - 1.0) ** 2)
        >>> trace = trace_valley(ring, [1.0, 0.0], ValleyWalkConfig(max_steps=5))
        >>> trace.converged
        True
    """
    config = config or ValleyWalkConfig()
    x = _as_point(start_point)
    derivs = _Derivatives(objective, config.derivative_method)
    is_valley, directions = _detect(derivs, x, config)
    if not is_valley:
        single = x.reshape(1, -1)
        return ValleyTraceResult(x, single, single, 0.0, 1, config.method, False)

    level = float(derivs.fun(x))
    initial = directions[:, 0]
    positive = _walk(derivs, x, initial, level, config)
    negative = _walk(derivs, x, -initial, level, config)
    logger.debug(
        "Traced valley from %s: %d + %d points", x.tolist(), len(positive) - 1, len(negative) - 1
    )
    return ValleyTraceResult(
        start_point=x,
        path_positive=positive,
        path_negative=negative,
        arc_length=_arc_length(positive) + _arc_length(negative),
        n_points=len(positive) + len(negative) - 1,
        method=config.method,
        converged=True,
    )


def trace_valleys(
    objective: Union[Problem, Objective],
    points,
    config: Optional[ValleyWalkConfig] = None,
) -> List[ValleyTraceResult]:
    """Trace from every row of ``points`` (shape ``(n, d)``); keep only valley points."""
    points = np.asarray(points, dtype=float)
    if points.ndim != 2:
        raise ValueError(f"points must have shape (n, d), got {points.shape}")
    traces = [trace_valley(objective, x, config) for x in points]
    return [trace for trace in traces if trace.converged]


def valley_starts(points, kinds: Sequence) -> np.ndarray:
    """Rows of ``points`` whose classification is degenerate."""
    points = np.asarray(points, dtype=float)
    if points.ndim != 2 or len(kinds) != points.shape[0]:
        raise ValueError(
            f"Vector dimension mismatch: {len(kinds)} classifications for points of shape {points.shape}"
        )
    mask = [
        (k.kind if isinstance(k, HessianClassification) else CriticalPointKind(k)) is CriticalPointKind.DEGENERATE
        for k in kinds
    ]
    return points[np.asarray(mask, dtype=bool)] if points.shape[0] else points


__all__ = [
    "ValleyTraceResult",
    "ValleyWalkConfig",
    "WalkMethod",
    "detect_valley",
    "project_to_valley",
    "trace_valley",
    "trace_valleys",
    "valley_starts",
    "valley_tangent",
    "walk_valley",
]
