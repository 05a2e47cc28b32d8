"""Single-objective optimization oracle consumed by the frontier algorithms.

An oracle session is bound to one Problem and owned by one algorithm at a time.
Weights, the main objective and the bound on the secondary objective are
changed between ``solve()`` calls only.
"""
import abc
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .errors import ConfigurationError
from .problem import NUM_OBJECTIVES, Problem


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Solution:
    """Primal values of one solve: opening y[j] and assignment x[i][j]."""
    opening: List[float]
    assignment: List[List[float]]

    def open_facilities(self, threshold: float = 0.5) -> List[int]:
        return [j for j, v in enumerate(self.opening) if v >= threshold]


class Oracle(abc.ABC):
    """Base class keeping the scalarization state of a session.

    Subclasses implement ``_apply_weights``, ``_apply_bound`` and ``_solve``.
    """

    def __init__(self, problem: Optional[Problem]) -> None:
        self.problem = problem
        self.num_solves = 0
        self._main = 0
        self._weights = [1.0, 0.0]
        self._epsilon = math.inf

    @property
    def main_objective(self) -> int:
        return self._main

    @property
    def secondary_objective(self) -> int:
        return 1 - self._main

    @property
    def weights(self) -> List[float]:
        return list(self._weights)

    @property
    def epsilon(self) -> float:
        return self._epsilon

    def configure_weighted_objective(self, weights: Sequence[float]) -> None:
        """Minimize ``w0 * z0 + w1 * z1`` on the next solves."""
        if len(weights) != NUM_OBJECTIVES:
            raise ConfigurationError(f"Expected {NUM_OBJECTIVES} weights, got {len(weights)}")
        if any(math.isnan(w) or math.isinf(w) or w < 0 for w in weights):
            raise ConfigurationError(f"Objective weights must be finite and non-negative, got {list(weights)}")
        self._weights = [float(w) for w in weights]
        self._apply_weights()

    def set_main_objective(self, k: int) -> None:
        """Minimize objective k directly; the other one becomes the bounded objective."""
        if k not in range(NUM_OBJECTIVES):
            raise ConfigurationError(f"Objective index must be 0 or 1, got {k!r}")
        self._main = k
        self._epsilon = math.inf
        self._apply_bound()
        weights = [0.0] * NUM_OBJECTIVES
        weights[k] = 1.0
        self.configure_weighted_objective(weights)

    def bound_secondary_objective(self, epsilon: float) -> None:
        """Constrain the secondary objective to ``<= epsilon`` (inf: unconstrained)."""
        if math.isnan(epsilon):
            raise ConfigurationError('Epsilon bound must be a number or inf')
        self._epsilon = float(epsilon)
        self._apply_bound()

    def solve(self) -> Optional[Solution]:
        """Run the solver; returns None when no feasible solution exists."""
        self.num_solves += 1
        logger.debug(
            'solve #%d: weights=%s, z%d <= %g',
            self.num_solves, self._weights, self.secondary_objective, self._epsilon,
        )
        return self._solve()

    def objective_value(self, solution: Solution, k: int) -> float:
        return self.problem.evaluate(k, solution.opening, solution.assignment)

    def close(self) -> None:
        pass

    def __enter__(self) -> 'Oracle':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @abc.abstractmethod
    def _apply_weights(self) -> None:
        ...

    @abc.abstractmethod
    def _apply_bound(self) -> None:
        ...

    @abc.abstractmethod
    def _solve(self) -> Optional[Solution]:
        ...
