"""Bi-objective decomposition on top of a single-objective oracle.

All functions drive an already opened oracle session and return the raw
candidate points in discovery order; ``run`` opens the session, dispatches on
the run mode and applies the dominance filter.
"""
import logging
import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, List, Optional, Set, Tuple

from .errors import ConfigurationError
from .options import Mode, RunOptions
from .oracle import Oracle
from .pareto import Point, filter_dominated
from .problem import Problem


logger = logging.getLogger(__name__)

Triangle = Tuple[Point, Point]


def evaluate(oracle: Oracle, solution) -> Point:
    return Point(oracle.objective_value(solution, 0), oracle.objective_value(solution, 1))


def weighted_sum(oracle: Oracle, lam: float) -> Optional[Point]:
    """Minimize (1 - lam) * main + lam * other; None if infeasible."""
    if math.isnan(lam) or not (0.0 <= lam <= 1.0):
        raise ConfigurationError(f"Weighted-sum lambda must lie in [0, 1], got {lam!r}")
    weights = [0.0, 0.0]
    weights[oracle.main_objective] = 1.0 - lam
    weights[oracle.secondary_objective] = lam
    oracle.configure_weighted_objective(weights)
    solution = oracle.solve()
    if solution is None:
        logger.debug('weighted sum lambda=%g: no solution', lam)
        return None
    return evaluate(oracle, solution)


def lexicographic(oracle: Oracle, objective: Optional[int] = None) -> List[Point]:
    """Optimize one objective (or each in turn, main first) with weight 1."""
    if objective is None:
        objectives = [oracle.main_objective, oracle.secondary_objective]
    elif objective in (0, 1):
        objectives = [objective]
    else:
        raise ConfigurationError(f"Objective index must be 0 or 1, got {objective!r}")
    points = []
    for k in objectives:
        y = weighted_sum(oracle, 0.0 if k == oracle.main_objective else 1.0)
        if y is not None:
            logger.info('lexicographic optimum of z%d: %s', k, y)
            points.append(y)
    return points


def triangle_weight(oracle: Oracle, y1: Point, y2: Point) -> Optional[float]:
    """Weight making the weighted-sum objective constant along the segment y1-y2.

    Returns None for a degenerate triangle (identical endpoints).
    """
    a, b = oracle.main_objective, oracle.secondary_objective
    da = y2[a] - y1[a]
    db = y1[b] - y2[b]
    denom = db + da
    if not denom > 0:
        return None
    return min(1.0, max(0.0, da / denom))


def _same(p: Point, q: Point, tolerance: float) -> bool:
    if tolerance <= 0:
        return p == q
    return all(abs(pk - qk) <= tolerance for pk, qk in zip(p, q))


def dichotomic_method(oracle: Oracle, tolerance: float = 0.0) -> List[Point]:
    """Aneja-Nair search for the supported points.

    Triangles are kept in a FIFO worklist; each one is solved once with the
    weight of its hypotenuse and split when a new point appears below it.
    """
    points: List[Point] = []
    y1 = weighted_sum(oracle, 0.0)
    if y1 is None:
        logger.info('no feasible solution')
        return points
    y2 = weighted_sum(oracle, 1.0)
    if y2 is None:
        # The same feasible set answered lambda = 0, so this is a solver anomaly
        logger.warning('second extreme point not found, returning the first one only')
        return [y1]
    points.extend((y1, y2))
    logger.info('supported: %s', y1)
    logger.info('supported: %s', y2)

    triangles: Deque[Triangle] = deque()
    solved: Set[Triangle] = set()
    if not _same(y1, y2, tolerance):
        triangles.append((y1, y2))

    while triangles:
        y1, y2 = triangles.popleft()
        lam = triangle_weight(oracle, y1, y2)
        if lam is None:
            logger.debug('degenerate triangle %s / %s skipped', y1, y2)
            continue
        if (y1, y2) in solved:
            # A tie broken differently re-created an already solved triangle
            logger.debug('triangle %s / %s already solved', y1, y2)
            continue
        solved.add((y1, y2))
        logger.debug('triangle %s / %s, lambda=%.12g', y1, y2, lam)
        y = weighted_sum(oracle, lam)
        if y is None:
            continue
        points.append(y)
        if _same(y, y1, tolerance) or _same(y, y2, tolerance):
            continue
        logger.info('supported: %s', y)
        triangles.append((y1, y))
        triangles.append((y, y2))
    return points


def epsilon_constraint(
    oracle: Oracle,
    main_objective: int = 0,
    start: float = math.inf,
    step: float = 1.0,
) -> List[Point]:
    """Scan the efficient points by tightening a bound on the other objective.

    The bound moves to ``y[l] - step`` after every solution, so ``step`` must be
    small enough not to jump over an efficient point; 1 assumes integer values
    of the bounded objective.
    """
    if not math.isfinite(step) or step <= 0:
        raise ConfigurationError(f"Epsilon step must be strictly positive, got {step!r}")
    if math.isnan(start):
        raise ConfigurationError('Epsilon start value must be a number or inf')
    oracle.set_main_objective(main_objective)
    l = oracle.secondary_objective
    points: List[Point] = []
    epsilon = start
    while True:
        oracle.bound_secondary_objective(epsilon)
        solution = oracle.solve()
        if solution is None:
            break
        y = evaluate(oracle, solution)
        points.append(y)
        logger.info('efficient: %s (z%d <= %g)', y, l, epsilon)
        epsilon = y[l] - step
    return points


@dataclass
class FrontierResult:
    mode: Mode
    candidates: List[Point] = field(default_factory=list)
    front: List[Point] = field(default_factory=list)
    num_solves: int = 0
    elapsed: float = 0.0

    def to_dict(self) -> dict:
        return {
            'mode': self.mode.value,
            'candidates': [list(p) for p in self.candidates],
            'front': [list(p) for p in self.front],
            'num_solves': self.num_solves,
            'elapsed': self.elapsed,
        }


def run(
    problem: Problem,
    options: RunOptions,
    oracle_factory: Optional[Callable[[Problem, RunOptions], Oracle]] = None,
) -> FrontierResult:
    """Open one oracle session, run the selected method and filter the result."""
    options.validate()
    if oracle_factory is None:
        from .ortools_solver import create_oracle
        oracle_factory = create_oracle

    t_start = time.process_time()
    with oracle_factory(problem, options) as oracle:
        oracle.set_main_objective(options.main_objective)
        if options.mode == Mode.LEXICOGRAPHIC:
            candidates = lexicographic(oracle, options.objective)
        elif options.mode == Mode.WEIGHTED_SUM:
            y = weighted_sum(oracle, options.weight)
            candidates = [y] if y is not None else []
        elif options.mode == Mode.SUPPORTED:
            candidates = dichotomic_method(oracle, tolerance=options.tolerance)
        else:
            candidates = epsilon_constraint(
                oracle,
                main_objective=options.main_objective,
                start=options.epsilon_start,
                step=options.epsilon_step,
            )
        num_solves = oracle.num_solves
    elapsed = time.process_time() - t_start

    logger.info('filtering %d candidate points', len(candidates))
    front = filter_dominated(candidates)
    logger.info('elapsed time: %.3fs, %d solves', elapsed, num_solves)
    return FrontierResult(
        mode=options.mode,
        candidates=candidates,
        front=front,
        num_solves=num_solves,
        elapsed=elapsed,
    )
