"""
Challenge scoring - Distance from the observed state to a challenge goal.

Every scorer is a pure function (ObservedState, props) -> distance >= 0;
a challenge is won once the distance drops to its threshold. Scorers live
in a closed table keyed by module id then challenge id, because challenge
ids repeat across modules. Unknown ids score UNREACHED_DISTANCE.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np

from aiplayground.schemas import Challenge, CompletionCriteria


logger = logging.getLogger(__name__)

UNREACHED_DISTANCE = 999.0

# Threshold when the criteria target isn't numeric
DEFAULT_THRESHOLDS = {
    "threshold": 0.3,
    "distance": 0.3,
    "custom": 0.3,
    "exact": 1e-6,
}

IDENTITY = (1.0, 0.0, 0.0, 1.0)


@dataclass
class ObservedState:
    """
    Latest interactive state pushed by a visualization.

    vectors: draggable vector tips, in order (a, b, ...)
    params:  scalar controls (scalar, c1, c2, x, y, loss, step, ...)
    matrix:  2x2 matrix as (a, b, c, d) = [[a, b], [c, d]]
    """
    vectors: list[tuple[float, float]] = field(default_factory=list)
    params: dict = field(default_factory=dict)
    matrix: tuple[float, float, float, float] = IDENTITY

    def vector(self, i: int) -> np.ndarray:
        if i < len(self.vectors):
            return np.asarray(self.vectors[i], dtype=float)
        return np.zeros(2)

    def as_matrix(self) -> np.ndarray:
        return np.asarray(self.matrix, dtype=float).reshape(2, 2)

    def param(self, name: str, default: float) -> float:
        value = self.params.get(name)
        return default if value is None else float(value)


Scorer = Callable[[ObservedState, dict], float]


def resolve_threshold(criteria: CompletionCriteria) -> float:
    """Numeric target, else the default for the criteria type."""
    target = criteria.target
    if isinstance(target, (int, float)) and not isinstance(target, bool):
        return float(target)
    return DEFAULT_THRESHOLDS.get(criteria.type, 0.3)


def _target(props: dict) -> np.ndarray:
    target = props.get("target")
    if isinstance(target, dict):
        return np.array([target.get("x", 0.0), target.get("y", 0.0)], dtype=float)
    return np.zeros(2)


def _real_eigenvalues(m: np.ndarray) -> Optional[tuple[float, float]]:
    """(larger, smaller) real eigenvalues, or None when they are complex."""
    tr = m[0, 0] + m[1, 1]
    det = np.linalg.det(m)
    disc = tr * tr - 4 * det
    if disc < 0:
        return None
    s = math.sqrt(disc)
    return (tr + s) / 2, (tr - s) / 2


# -----------------------------------------------------------------------------
# Vectors
# -----------------------------------------------------------------------------

def reach_the_target(state: ObservedState, props: dict) -> float:
    total = state.vector(0) + state.vector(1)
    return float(np.linalg.norm(total - _target(props)))


def scalar_sniper(state: ObservedState, props: dict) -> float:
    scaled = state.vector(0) * state.param("scalar", 1.0)
    return float(np.linalg.norm(scaled - _target(props)))


def right_angle(state: ObservedState, props: dict) -> float:
    return abs(float(np.dot(state.vector(0), state.vector(1))))


def basis_builder(state: ObservedState, props: dict) -> float:
    combination = (
        state.vector(0) * state.param("c1", 1.0)
        + state.vector(1) * state.param("c2", 1.0)
    )
    return float(np.linalg.norm(combination - _target(props)))


# -----------------------------------------------------------------------------
# Matrices
# -----------------------------------------------------------------------------

ROTATION_90 = np.array([[0.0, -1.0], [1.0, 0.0]])


def rotation_90(state: ObservedState, props: dict) -> float:
    return float(np.linalg.norm(state.as_matrix() - ROTATION_90))


def zero_determinant(state: ObservedState, props: dict) -> float:
    return abs(float(np.linalg.det(state.as_matrix())))


def double_area(state: ObservedState, props: dict) -> float:
    return abs(float(np.linalg.det(state.as_matrix())) - 2.0)


# -----------------------------------------------------------------------------
# Eigenvalues
# -----------------------------------------------------------------------------

def _eigenvector(m: np.ndarray, lam: float) -> np.ndarray:
    ax, bx = m[0, 0] - lam, m[0, 1]
    if abs(bx) > 0.001:
        return np.array([-bx, ax])
    if abs(ax) > 0.001:
        return np.array([0.0, 1.0])
    return np.array([1.0, 0.0])


def _angle_error(a: np.ndarray, b: np.ndarray) -> float:
    """|sin| of the angle between two directions."""
    na, nb = np.linalg.norm(a), np.linalg.norm(b)
    if na <= 0.01 or nb <= 0.01:
        return UNREACHED_DISTANCE
    cross = abs(a[0] * b[1] - a[1] * b[0])
    return float(cross / (na * nb))


def find_eigenvectors(state: ObservedState, props: dict) -> float:
    m = state.as_matrix()
    eig = _real_eigenvalues(m)
    if eig is None or abs(eig[0] - eig[1]) < 0.01:
        return UNREACHED_DISTANCE

    v1, v2 = _eigenvector(m, eig[0]), _eigenvector(m, eig[1])
    t1, t2 = np.array([1.0, 1.0]), np.array([1.0, -1.0])
    return min(
        _angle_error(v1, t1) + _angle_error(v2, t2),
        _angle_error(v1, t2) + _angle_error(v2, t1),
    )


def complex_eigenvalues(state: ObservedState, props: dict) -> float:
    """
    Zero once the discriminant is negative.

    Real eigenvalues (a zero discriminant included) score 1 + discriminant,
    which stays above any default threshold.
    """
    m = state.as_matrix()
    tr = m[0, 0] + m[1, 1]
    disc = tr * tr - 4 * float(np.linalg.det(m))
    return 0.0 if disc < 0 else 1.0 + float(disc)


def positive_definite(state: ObservedState, props: dict) -> float:
    eig = _real_eigenvalues(state.as_matrix())
    if eig is None:
        return UNREACHED_DISTANCE
    smallest = min(eig)
    return 0.0 if smallest > 0.1 else 0.1 - smallest


def fast_convergence(state: ObservedState, props: dict) -> float:
    """How far |λ1/λ2| is below props['minRatio'] (default 5)."""
    eig = _real_eigenvalues(state.as_matrix())
    if eig is None:
        return UNREACHED_DISTANCE
    small, large = sorted(abs(v) for v in eig)
    if small < 0.001:
        return 0.0
    min_ratio = float(props.get("minRatio", 5))
    return max(0.0, min_ratio - large / small)


# -----------------------------------------------------------------------------
# Optimization
# -----------------------------------------------------------------------------

# Derivatives of the 1-D curves
CURVE_SLOPES: dict[str, Callable[[float], float]] = {
    "parabola": lambda x: 2 * x,
    "bumpy": lambda x: 2 * x + 5 * math.cos(2.5 * x),
    "sine": lambda x: -math.cos(x) + 0.2 * x,
}

# (loss, gradient) of the 2-D landscapes
LANDSCAPES: dict[str, tuple[Callable[[float, float], float], Callable[[float, float], np.ndarray]]] = {
    "bowl": (
        lambda x, y: x * x + y * y,
        lambda x, y: np.array([2 * x, 2 * y]),
    ),
    "ravine": (
        lambda x, y: 10 * x * x + y * y,
        lambda x, y: np.array([20 * x, 2 * y]),
    ),
    "rosenbrock": (
        lambda x, y: (1 - x) ** 2 + 100 * (y - x * x) ** 2,
        lambda x, y: np.array([-2 * (1 - x) - 400 * x * (y - x * x), 200 * (y - x * x)]),
    ),
}

# Optimizer runs must take more steps than this before a loss counts
MIN_OPTIMIZER_STEPS = 5


def tangent_hunter(state: ObservedState, props: dict) -> float:
    slope = CURVE_SLOPES.get(props.get("curve", "parabola"))
    if slope is None or "x" not in state.params:
        return UNREACHED_DISTANCE
    return abs(slope(state.param("x", 0.0)))


def gradient_stopper(state: ObservedState, props: dict) -> float:
    landscape = LANDSCAPES.get(props.get("landscape", "bowl"))
    if landscape is None or "x" not in state.params or "y" not in state.params:
        return UNREACHED_DISTANCE
    _, grad = landscape
    return float(np.linalg.norm(grad(state.param("x", 0.0), state.param("y", 0.0))))


def final_loss(state: ObservedState, props: dict) -> float:
    """
    Loss reported by the optimizer run.

    Needs more than MIN_OPTIMIZER_STEPS steps, and no more than
    props['maxSteps'] when set.
    """
    step = state.param("step", 0)
    if step <= MIN_OPTIMIZER_STEPS:
        return UNREACHED_DISTANCE
    max_steps = props.get("maxSteps")
    if max_steps is not None and step > max_steps:
        return UNREACHED_DISTANCE

    loss = state.params.get("loss")
    if loss is None:
        landscape = LANDSCAPES.get(props.get("landscape", "bowl"))
        if landscape is None or "x" not in state.params or "y" not in state.params:
            return UNREACHED_DISTANCE
        f, _ = landscape
        loss = f(state.param("x", 0.0), state.param("y", 0.0))
    return max(0.0, float(loss))


# -----------------------------------------------------------------------------
# Chain rule
# -----------------------------------------------------------------------------

# (f, f') of the single-variable building blocks
CHAIN_FUNCTIONS: dict[str, tuple[Callable[[float], float], Callable[[float], float]]] = {
    "double": (lambda x: 2 * x, lambda x: 2.0),
    "square": (lambda x: x * x, lambda x: 2 * x),
    "sinx": (math.sin, math.cos),
    "expx": (math.exp, math.exp),
    "linear": (lambda x: 3 * x + 2, lambda x: 3.0),
    "power4": (lambda x: x ** 4, lambda x: 4 * x ** 3),
    "xSquaredPlus1": (lambda x: x * x + 1, lambda x: 2 * x),
}


def chain_derivative(chain: list[str], x: float) -> Optional[float]:
    """
    d/dx of the composition, innermost function first.

    Returns None if the chain is empty or names an unknown function.
    """
    if not chain:
        return None
    derivative, value = 1.0, x
    for name in chain:
        fns = CHAIN_FUNCTIONS.get(name)
        if fns is None:
            return None
        f, df = fns
        derivative *= df(value)
        value = f(value)
    return derivative


def _chain_error(state: ObservedState, props: dict, param: str) -> float:
    if param not in state.params:
        return UNREACHED_DISTANCE
    x = state.param("x", float(props.get("x", 0.0)))
    expected = chain_derivative(props.get("chain", []), x)
    if expected is None:
        return UNREACHED_DISTANCE
    return abs(state.param(param, 0.0) - expected)


def chain_answer(state: ObservedState, props: dict) -> float:
    """Typed-in derivative against the true value at props['x']."""
    return _chain_error(state, props, "answer")


def chain_gradient(state: ObservedState, props: dict) -> float:
    """Gradient read off a built computation graph against the true value."""
    return _chain_error(state, props, "gradient")


def weight_gradient(state: ObservedState, props: dict) -> float:
    """|dL/dw| for L = (w*x - y)^2."""
    if "w" not in state.params:
        return UNREACHED_DISTANCE
    x = float(props.get("x", 1.0))
    y = float(props.get("y", 1.0))
    w = state.param("w", 0.0)
    return abs(2 * (w * x - y) * x)


# -----------------------------------------------------------------------------
# Table
# -----------------------------------------------------------------------------

SCORERS: dict[str, dict[str, Scorer]] = {
    "vectors": {
        "reach-the-target": reach_the_target,
        "scalar-sniper": scalar_sniper,
        "right-angle": right_angle,
        "basis-builder": basis_builder,
    },
    "vector-spaces": {
        "span-builder": basis_builder,
        "independence-check": right_angle,
        "basis-finder": reach_the_target,
    },
    "matrices": {
        "make-rotation": rotation_90,
        "zero-determinant": zero_determinant,
        "double-area": double_area,
    },
    "eigenvalues": {
        "find-eigenvectors": find_eigenvectors,
        "make-rotation": complex_eigenvalues,
        "positive-definite-challenge": positive_definite,
        "fast-convergence": fast_convergence,
    },
    "optimization": {
        "tangent-hunter": tangent_hunter,
        "gradient-stopper": gradient_stopper,
        "reach-valley-floor": final_loss,
        "tame-the-ravine": final_loss,
    },
    "chain-rule": {
        "chain-it": chain_answer,
        "graph-the-gradient": chain_gradient,
        "neural-gradient": weight_gradient,
    },
}


def get_scorer(module_id: str, challenge_id: str) -> Optional[Scorer]:
    return SCORERS.get(module_id, {}).get(challenge_id)


def score(module_id: str, challenge: Challenge, state: ObservedState) -> float:
    """
    Distance of the state from the challenge goal; never negative.

    State or props that cannot be scored (non-numeric params, bad shapes)
    count as UNREACHED_DISTANCE.
    """
    scorer = get_scorer(module_id, challenge.id)
    if scorer is None:
        return UNREACHED_DISTANCE
    try:
        distance = float(scorer(state, challenge.props))
    except (TypeError, ValueError, OverflowError) as e:
        logger.warning(f"Cannot score {module_id}/{challenge.id}: {e}")
        return UNREACHED_DISTANCE
    if not math.isfinite(distance):
        return UNREACHED_DISTANCE
    return max(0.0, distance)
