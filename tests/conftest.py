import itertools
from typing import Optional, Sequence, Tuple

import pytest

from biflp.oracle import Oracle, Solution
from biflp.problem import Problem


class BruteForceOracle(Oracle):
    """Exact single-sourcing oracle enumerating every assignment.

    Only meant for tiny instances; ties go to the first assignment in
    lexicographic order of facility indices.
    """

    def __init__(self, problem: Problem) -> None:
        super().__init__(problem)
        self.closed = False
        self.calls = []

    def _apply_weights(self) -> None:
        pass

    def _apply_bound(self) -> None:
        pass

    def _solve(self) -> Optional[Solution]:
        p = self.problem
        best = None
        best_value = None
        for choice in itertools.product(range(p.num_facilities), repeat=p.num_customers):
            load = [0.0] * p.num_facilities
            for i, j in enumerate(choice):
                load[j] += p.d[i]
            if any(load[j] > p.q[j] for j in range(p.num_facilities)):
                continue
            opening = [1.0 if j in choice else 0.0 for j in range(p.num_facilities)]
            assignment = [[1.0 if j == choice[i] else 0.0 for j in range(p.num_facilities)] for i in range(p.num_customers)]
            z = [p.evaluate(k, opening, assignment) for k in range(2)]
            if z[self.secondary_objective] > self.epsilon:
                continue
            value = self.weights[0] * z[0] + self.weights[1] * z[1]
            if best_value is None or value < best_value:
                best_value = value
                best = Solution(opening=opening, assignment=assignment)
        self.calls.append((tuple(self.weights), self.epsilon, best))
        return best

    def close(self) -> None:
        self.closed = True


def points_problem(points: Sequence[Tuple[float, float]]) -> Problem:
    """One customer, one facility per point: the feasible objective set is exactly ``points``."""
    return Problem(
        c=[[[float(p[0]) for p in points]], [[float(p[1]) for p in points]]],
        f=[[0.0] * len(points), [0.0] * len(points)],
        single_sourcing=True,
    )


@pytest.fixture
def small_problem() -> Problem:
    # 2 customers, 2 facilities, crossed assignment costs
    return Problem(
        c=[[[1.0, 4.0], [4.0, 1.0]], [[4.0, 1.0], [1.0, 4.0]]],
        f=[[0.0, 0.0], [0.0, 0.0]],
        single_sourcing=True,
    )


SMALL_INSTANCE_TEXT = """2
2

1 4
4 1

4 1
1 4

0 0

0 0
"""


@pytest.fixture
def small_instance_file(tmp_path):
    path = tmp_path / 'small.txt'
    path.write_text(SMALL_INSTANCE_TEXT)
    return path


# Convex front plus one unsupported efficient point (5, 2) and a dominated one
SUPPORTED = [(0, 10), (1, 6), (3, 3), (6, 1), (10, 0)]
UNSUPPORTED = (5, 2)
DOMINATED = (7, 7)


@pytest.fixture
def synthetic_oracle() -> BruteForceOracle:
    return BruteForceOracle(points_problem(SUPPORTED + [UNSUPPORTED, DOMINATED]))
