import math

import pytest

from biflp import frontier
from biflp.errors import ConfigurationError, OracleError
from biflp.frontier import (
    dichotomic_method,
    epsilon_constraint,
    lexicographic,
    run,
    triangle_weight,
    weighted_sum,
)
from biflp.options import Mode, RunOptions
from biflp.oracle import Solution
from biflp.pareto import Point, dominates, unique
from biflp.problem import Problem

from conftest import DOMINATED, SUPPORTED, UNSUPPORTED, BruteForceOracle, points_problem


def _factory(problem, options):
    return BruteForceOracle(problem)


def test_weighted_sum_extremes(small_problem):
    oracle = BruteForceOracle(small_problem)
    assert weighted_sum(oracle, 0.0) == Point(2, 8)
    assert weighted_sum(oracle, 1.0) == Point(8, 2)
    assert oracle.num_solves == 2


def test_weighted_sum_uses_main_objective(small_problem):
    oracle = BruteForceOracle(small_problem)
    oracle.set_main_objective(1)
    # lambda = 0 now minimizes z1 alone
    assert weighted_sum(oracle, 0.0) == Point(8, 2)
    assert oracle.weights == [0.0, 1.0]


def test_weighted_sum_rejects_bad_lambda(small_problem):
    oracle = BruteForceOracle(small_problem)
    with pytest.raises(ConfigurationError):
        weighted_sum(oracle, 1.5)
    with pytest.raises(ConfigurationError):
        weighted_sum(oracle, math.nan)
    assert oracle.num_solves == 0


def test_lexicographic_matches_weighted_sum_extremes(small_problem):
    oracle = BruteForceOracle(small_problem)
    both = lexicographic(oracle)
    assert both == [weighted_sum(oracle, 0.0), weighted_sum(oracle, 1.0)]
    assert both == [Point(2, 8), Point(8, 2)]


def test_lexicographic_single_objective(small_problem):
    oracle = BruteForceOracle(small_problem)
    assert lexicographic(oracle, objective=1) == [Point(8, 2)]
    assert oracle.num_solves == 1


def test_triangle_weight_levels_the_segment(synthetic_oracle):
    y1, y2 = Point(1, 6), Point(6, 1)
    lam = triangle_weight(synthetic_oracle, y1, y2)
    assert lam == pytest.approx(0.5)
    value = lambda y: (1 - lam) * y[0] + lam * y[1]
    assert value(y1) == pytest.approx(value(y2))


def test_triangle_weight_degenerate(synthetic_oracle):
    assert triangle_weight(synthetic_oracle, Point(3, 3), Point(3, 3)) is None


def test_dichotomic_finds_exactly_the_supported_points(synthetic_oracle):
    points = dichotomic_method(synthetic_oracle)
    assert points[:2] == [Point(0, 10), Point(10, 0)]
    assert sorted(unique(points)) == sorted(Point(*p) for p in SUPPORTED)
    assert Point(*UNSUPPORTED) not in points
    assert Point(*DOMINATED) not in points


def test_dichotomic_points_lie_below_parent_segment(synthetic_oracle, monkeypatch):
    seen = []
    real = frontier.weighted_sum

    def spy(oracle, lam):
        y = real(oracle, lam)
        seen.append((lam, y))
        return y

    monkeypatch.setattr(frontier, 'weighted_sum', spy)
    points = dichotomic_method(synthetic_oracle)
    # every weighted-sum answer is at least as good as every candidate under its weight
    for lam, y in seen[2:]:
        value = lambda p: (1 - lam) * p[0] + lam * p[1]
        assert all(value(y) <= value(p) + 1e-9 for p in points)


def test_dichotomic_two_by_two(small_problem):
    points = dichotomic_method(BruteForceOracle(small_problem))
    assert Point(2, 8) in points and Point(8, 2) in points
    # (5, 5) ties with both extremes under lambda = 0.5
    assert set(points) <= {Point(2, 8), Point(5, 5), Point(8, 2)}


def test_dichotomic_splits_point_tied_with_seed():
    # lambda = 0 ties (2, 10) with (2, 9); the next answer shares z0 with the seed
    oracle = BruteForceOracle(points_problem([(2, 10), (2, 9), (4, 6.5), (8, 2)]))
    points = dichotomic_method(oracle)
    assert points[:3] == [Point(2, 10), Point(8, 2), Point(2, 9)]
    assert Point(4, 6.5) in points
    assert set(points) == {Point(2, 10), Point(2, 9), Point(4, 6.5), Point(8, 2)}


def test_dichotomic_solves_each_triangle_once(small_problem):
    class CyclingOracle(BruteForceOracle):
        # (2, 8), (5, 5) and (8, 2) tie at lambda = 0.5; answer (5, 5), (8, 2), (5, 5), ...
        ANSWERS = [[[1.0, 0.0], [1.0, 0.0]], [[0.0, 1.0], [1.0, 0.0]], [[1.0, 0.0], [1.0, 0.0]]]

        def _solve(self):
            if self.weights != [0.5, 0.5]:
                return super()._solve()
            count = sum(1 for w, _, _ in self.calls if w == (0.5, 0.5))
            self.calls.append(((0.5, 0.5), self.epsilon, None))
            return Solution(opening=[1.0, 1.0], assignment=self.ANSWERS[count % 3])

    oracle = CyclingOracle(small_problem)
    points = dichotomic_method(oracle)
    assert set(points) == {Point(2, 8), Point(5, 5), Point(8, 2)}
    # (2, 8) / (8, 2) comes back from the (2, 8) / (5, 5) triangle and is not solved again
    assert oracle.num_solves == 5


def test_dichotomic_infeasible_instance():
    problem = Problem(
        c=[[[1.0]], [[1.0]]], f=[[0.0], [0.0]],
        capacitated=True, single_sourcing=True, d=[5.0], q=[1.0],
    )
    assert dichotomic_method(BruteForceOracle(problem)) == []


def test_dichotomic_single_point():
    oracle = BruteForceOracle(points_problem([(2, 2), (3, 4)]))
    assert dichotomic_method(oracle) == [Point(2, 2), Point(2, 2)]
    assert oracle.num_solves == 2


def test_epsilon_constraint_enumerates_unsupported(synthetic_oracle):
    points = epsilon_constraint(synthetic_oracle)
    assert points == [Point(0, 10), Point(1, 6), Point(3, 3), Point(5, 2), Point(6, 1), Point(10, 0)]
    # last solve is the infeasible one
    assert synthetic_oracle.num_solves == 7


def test_epsilon_constraint_is_strictly_decreasing(synthetic_oracle):
    points = epsilon_constraint(synthetic_oracle, main_objective=1)
    z0 = [p[0] for p in points]
    assert z0 == sorted(z0, reverse=True)
    assert len(set(z0)) == len(z0)
    assert Point(*UNSUPPORTED) in points


def test_epsilon_constraint_start_value(synthetic_oracle):
    points = epsilon_constraint(synthetic_oracle, start=2)
    assert points == [Point(5, 2), Point(6, 1), Point(10, 0)]


def test_epsilon_constraint_two_by_two(small_problem):
    points = epsilon_constraint(BruteForceOracle(small_problem))
    assert points == [Point(2, 8), Point(5, 5), Point(8, 2)]


@pytest.mark.parametrize('step', [0, -1, math.inf, math.nan])
def test_epsilon_constraint_rejects_step(synthetic_oracle, step):
    with pytest.raises(ConfigurationError):
        epsilon_constraint(synthetic_oracle, step=step)
    assert synthetic_oracle.num_solves == 0


def test_run_filters_weakly_dominated():
    # (0, 10) ties with (0, 8) on z0 and is found first
    problem = points_problem([(0, 10), (0, 8), (4, 4)])
    result = run(problem, RunOptions(mode=Mode.EFFICIENT), oracle_factory=_factory)
    assert result.candidates == [Point(0, 10), Point(0, 8), Point(4, 4)]
    assert result.front == [Point(0, 8), Point(4, 4)]
    for a in result.front:
        assert not any(b != a and dominates(b, a) for b in result.front)


@pytest.mark.parametrize('mode, expected', [
    (Mode.LEXICOGRAPHIC, [Point(2, 8), Point(8, 2)]),
    (Mode.EFFICIENT, [Point(2, 8), Point(5, 5), Point(8, 2)]),
])
def test_run_modes(small_problem, mode, expected):
    result = run(small_problem, RunOptions(mode=mode, capacitated=False), oracle_factory=_factory)
    assert result.mode == mode
    assert result.front == expected
    assert result.num_solves >= len(expected)


def test_run_weighted_sum(small_problem):
    result = run(small_problem, RunOptions(mode=Mode.WEIGHTED_SUM, weight=0.25), oracle_factory=_factory)
    assert result.front == [Point(2, 8)]
    assert result.num_solves == 1


def test_run_supported_contains_extremes(synthetic_oracle):
    result = run(
        synthetic_oracle.problem, RunOptions(mode=Mode.SUPPORTED), oracle_factory=_factory,
    )
    assert sorted(unique(result.front)) == sorted(Point(*p) for p in SUPPORTED)


def test_run_empty_front_is_not_an_error():
    problem = Problem(
        c=[[[1.0]], [[1.0]]], f=[[0.0], [0.0]],
        capacitated=True, single_sourcing=True, d=[5.0], q=[1.0],
    )
    for mode in Mode:
        result = run(problem, RunOptions(mode=mode, single_sourcing=True), oracle_factory=_factory)
        assert result.front == []


def test_run_closes_oracle(small_problem):
    oracles = []

    def factory(problem, options):
        oracles.append(BruteForceOracle(problem))
        return oracles[-1]

    run(small_problem, RunOptions(mode=Mode.LEXICOGRAPHIC), oracle_factory=factory)
    assert len(oracles) == 1
    assert oracles[0].closed


def test_run_rejects_bad_options_before_solving(small_problem):
    oracles = []

    def factory(problem, options):
        oracles.append(BruteForceOracle(problem))
        return oracles[-1]

    with pytest.raises(ConfigurationError):
        run(small_problem, RunOptions(epsilon_step=0), oracle_factory=factory)
    assert oracles == []


def test_oracle_failure_aborts_run(small_problem):
    class BrokenOracle(BruteForceOracle):
        def _solve(self):
            raise OracleError('numerical trouble')

    with pytest.raises(OracleError):
        run(small_problem, RunOptions(mode=Mode.SUPPORTED), oracle_factory=lambda p, o: BrokenOracle(p))
