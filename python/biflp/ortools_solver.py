import datetime
import logging
import math
from dataclasses import dataclass
from fractions import Fraction
from typing import List, Optional, Sequence

from ortools.math_opt.python import mathopt
from ortools.sat.python import cp_model

from .errors import ConfigurationError, OracleError
from .options import RunOptions
from .oracle import Oracle, Solution
from .problem import Problem


logger = logging.getLogger(__name__)


def _round_binary(values: Sequence[float]) -> List[float]:
    return [1.0 if v >= 0.5 else 0.0 for v in values]


################################################################################
# MathOpt oracle: one model, re-weighted and re-bounded between solves
################################################################################


def mathopt_solver_type(name: str) -> mathopt.SolverType:
    try:
        return mathopt.SolverType[name.upper()]
    except KeyError:
        available = ', '.join(t.name.lower() for t in mathopt.SolverType)
        raise ConfigurationError(f"Unknown MathOpt solver {name!r}", f"available: {available}") from None


class MathOptOracle(Oracle):
    """[U|C]FLP model solved incrementally through OR-Tools MathOpt.

      min  sum(w_k f[k][j] y[j]) + sum(w_k c[k][i][j] x[i][j])
      s.t. sum(j) x[i][j] = 1                     for all i
           x[i][j] <= y[j]                        for all i, j
           sum(i) d[i] x[i][j] <= q[j] y[j]       for all j with finite q[j]
           sum(j) q[j] y[j] >= D                  (capacitated, finite Q)
           sum(i, j) d[i] x[i][j] <= D            (capacitated)
           z_l(x, y) <= epsilon                   on the secondary objective l
    """

    def __init__(
        self,
        problem: Problem,
        relaxation: bool = False,
        solver: str = 'gscip',
        time_limit: Optional[float] = None,
        solver_output: bool = False,
    ) -> None:
        super().__init__(problem)
        self._solver_type = mathopt_solver_type(solver)
        self._integer_y = not relaxation
        self._integer_x = not relaxation and problem.single_sourcing
        self._params = mathopt.SolveParameters(
            enable_output=solver_output,
            time_limit=datetime.timedelta(seconds=time_limit) if time_limit else None,
        )
        self._build_model()
        self._apply_weights()
        self._solver = mathopt.IncrementalSolver(self._model, self._solver_type)

    def _build_model(self) -> None:
        p = self.problem
        m, n = p.num_customers, p.num_facilities
        model = mathopt.Model(name='flp')

        self._y: List[mathopt.Variable] = [
            model.add_variable(lb=0.0, ub=1.0, is_integer=self._integer_y, name=f"y[{j}]")
            for j in range(n)
        ]
        self._x: List[List[mathopt.Variable]] = [
            [
                model.add_variable(lb=0.0, ub=1.0, is_integer=self._integer_x, name=f"x[{i},{j}]")
                for j in range(n)
            ]
            for i in range(m)
        ]

        # Assignment and opening constraints
        for i in range(m):
            model.add_linear_constraint(sum(self._x[i]) == 1.0, name=f"assign_{i}")
            for j in range(n):
                model.add_linear_constraint(self._x[i][j] - self._y[j] <= 0.0, name=f"open_{i}_{j}")

        if p.capacitated:
            for j in range(n):
                if math.isinf(p.q[j]):
                    continue
                load = sum(p.d[i] * self._x[i][j] for i in range(m))
                model.add_linear_constraint(load - p.q[j] * self._y[j] <= 0.0, name=f"cap_{j}")
            # Valid inequalities: open capacity covers the demand, assigned demand is the demand
            if math.isfinite(p.Q):
                model.add_linear_constraint(sum(p.q[j] * self._y[j] for j in range(n)) >= p.D, name='cover')
            total_load = sum(p.d[i] * self._x[i][j] for i in range(m) for j in range(n))
            model.add_linear_constraint(total_load <= p.D, name='limit')

        # One epsilon constraint per objective, only the secondary one is ever tightened
        self._epsilon_cons: List[mathopt.LinearConstraint] = []
        for k in range(p.num_objectives):
            expr = sum(p.f[k][j] * self._y[j] for j in range(n)) + sum(
                p.c[k][i][j] * self._x[i][j] for i in range(m) for j in range(n)
            )
            self._epsilon_cons.append(
                model.add_linear_constraint(lb=-math.inf, ub=math.inf, expr=expr, name=f"epsilon_{k}")
            )
        self._model = model

    def _apply_weights(self) -> None:
        p = self.problem
        w0, w1 = self._weights
        objective = self._model.objective
        objective.is_maximize = False
        for j in range(p.num_facilities):
            objective.set_linear_coefficient(self._y[j], w0 * p.f[0][j] + w1 * p.f[1][j])
        for i in range(p.num_customers):
            for j in range(p.num_facilities):
                objective.set_linear_coefficient(self._x[i][j], w0 * p.c[0][i][j] + w1 * p.c[1][i][j])

    def _apply_bound(self) -> None:
        for k, cons in enumerate(self._epsilon_cons):
            cons.upper_bound = self._epsilon if k == self.secondary_objective else math.inf

    def _solve(self) -> Optional[Solution]:
        try:
            result = self._solver.solve(params=self._params)
        except (RuntimeError, ValueError) as exc:
            raise OracleError(f"{self._solver_type.name} failed: {exc}") from exc
        reason = result.termination.reason
        if reason in (mathopt.TerminationReason.OPTIMAL, mathopt.TerminationReason.FEASIBLE):
            if result.has_primal_feasible_solution():
                if reason == mathopt.TerminationReason.FEASIBLE:
                    logger.warning('Solution not proven optimal: %s', result.termination)
                return self._extract(result)
        if reason in (
            mathopt.TerminationReason.INFEASIBLE,
            mathopt.TerminationReason.INFEASIBLE_OR_UNBOUNDED,
            mathopt.TerminationReason.NO_SOLUTION_FOUND,
        ):
            return None
        raise OracleError(f"{self._solver_type.name} terminated abnormally: {result.termination}")

    def _extract(self, result: mathopt.SolveResult) -> Solution:
        opening = result.variable_values(self._y)
        if self._integer_y:
            opening = _round_binary(opening)
        assignment = []
        for row in self._x:
            values = result.variable_values(row)
            assignment.append(_round_binary(values) if self._integer_x else list(values))
        return Solution(opening=list(opening), assignment=assignment)

    def close(self) -> None:
        self._solver.close()
        super().close()


################################################################################
# CP-SAT oracle: integer-scaled model rebuilt for every solve
################################################################################


@dataclass
class Scale:  # For decimal precision in the optimizer
    cost: int = 100     # cost units -> hundredths
    demand: int = 100   # demand and capacity units -> hundredths
    weight_denominator: int = 10 ** 6  # largest denominator kept for objective weights


def scale_values(values: Sequence[float], factor: int) -> List[int]:
    return [int(round(v * factor)) for v in values]


def integer_weights(weights: Sequence[float], max_denominator: int) -> List[int]:
    """Smallest non-negative integers in the ratio of ``weights``.

    Each weight is read as a fraction with denominator at most
    ``max_denominator``, so weights like 1/10001 and 10000/10001 give (1, 10000)
    instead of rounding the small one away.
    """
    fractions = [Fraction(w).limit_denominator(max_denominator) for w in weights]
    common = 1
    for fr in fractions:
        common = common * fr.denominator // math.gcd(common, fr.denominator)
    ints = [int(fr * common) for fr in fractions]
    divisor = 0
    for v in ints:
        divisor = math.gcd(divisor, v)
    return [v // divisor for v in ints] if divisor > 1 else ints


def build_model(problem: Problem, scale: Scale):
    """Build a CP-SAT model assigning every customer to exactly one open facility.

    Returns (model, x_vars, y_vars, cost_exprs) with one scaled cost
    expression per objective.
    """
    model = cp_model.CpModel()
    m, n = problem.num_customers, problem.num_facilities

    y_vars = [model.NewBoolVar(f"y{j}") for j in range(n)]
    x_vars: List[List[cp_model.IntVar]] = []
    for i in range(m):
        xi = [model.NewBoolVar(f"x{i}_{j}") for j in range(n)]
        model.Add(sum(xi) == 1)
        for j in range(n):
            model.AddImplication(xi[j], y_vars[j])
        x_vars.append(xi)

    if problem.capacitated:
        d_int = scale_values(problem.d, scale.demand)
        for j in range(n):
            if math.isinf(problem.q[j]):
                continue
            q_int = int(round(problem.q[j] * scale.demand))
            model.Add(sum(d_int[i] * x_vars[i][j] for i in range(m)) <= q_int * y_vars[j])
        if math.isfinite(problem.Q):
            q_ints = scale_values(problem.q, scale.demand)
            model.Add(sum(q_ints[j] * y_vars[j] for j in range(n)) >= sum(d_int))

    cost_exprs = []
    for k in range(problem.num_objectives):
        terms = []
        f_int = scale_values(problem.f[k], scale.cost)
        for j in range(n):
            terms.append(f_int[j] * y_vars[j])
        for i in range(m):
            c_int = scale_values(problem.c[k][i], scale.cost)
            for j in range(n):
                terms.append(c_int[j] * x_vars[i][j])
        cost_exprs.append(sum(terms))

    return model, x_vars, y_vars, cost_exprs


def _solve(
    model: cp_model.CpModel,
    x_vars: Sequence[Sequence[cp_model.IntVar]],
    y_vars: Sequence[cp_model.IntVar],
    time_limit: Optional[float],
    workers: int,
    solver_output: bool,
) -> Optional[Solution]:
    solver = cp_model.CpSolver()
    if time_limit:
        solver.parameters.max_time_in_seconds = time_limit
    solver.parameters.num_workers = workers
    solver.parameters.log_search_progress = solver_output
    status = solver.Solve(model)
    if status == cp_model.MODEL_INVALID:
        raise OracleError(f"CP-SAT rejected the model: {model.Validate()}")
    if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
        return None
    if status == cp_model.FEASIBLE:
        logger.warning('CP-SAT stopped before proving optimality')
    opening = [float(solver.Value(y)) for y in y_vars]
    assignment = [[float(solver.Value(x)) for x in xi] for xi in x_vars]
    return Solution(opening=opening, assignment=assignment)


class CpSatOracle(Oracle):
    """Integer single-sourcing oracle on CP-SAT.

    Costs, demands and weights are scaled to integers; objective values are
    evaluated on the unscaled problem.
    """

    def __init__(
        self,
        problem: Problem,
        scale: Optional[Scale] = None,
        time_limit: Optional[float] = None,
        workers: int = 8,
        solver_output: bool = False,
    ) -> None:
        if problem.capacitated and not problem.single_sourcing:
            raise ConfigurationError('CP-SAT needs single-sourcing for capacitated instances')
        super().__init__(problem)
        self.scale = scale or Scale()
        self._time_limit = time_limit
        self._workers = workers
        self._solver_output = solver_output

    def _apply_weights(self) -> None:
        # Rebuilt in _solve
        pass

    def _apply_bound(self) -> None:
        pass

    def _solve(self) -> Optional[Solution]:
        model, x, y, cost_exprs = build_model(self.problem, self.scale)
        w_int = integer_weights(self._weights, self.scale.weight_denominator)
        model.Minimize(w_int[0] * cost_exprs[0] + w_int[1] * cost_exprs[1])
        if math.isfinite(self._epsilon):
            bound = math.floor(self._epsilon * self.scale.cost + 1e-9)
            model.Add(cost_exprs[self.secondary_objective] <= bound)
        return _solve(model, x, y, self._time_limit, self._workers, self._solver_output)


def create_oracle(problem: Problem, options: RunOptions) -> Oracle:
    """Open the oracle session selected by the run options."""
    if options.backend == 'cpsat':
        return CpSatOracle(
            problem,
            time_limit=options.time_limit,
            workers=options.workers,
            solver_output=options.solver_output,
        )
    return MathOptOracle(
        problem,
        relaxation=options.relaxation,
        solver=options.solver_name(),
        time_limit=options.time_limit,
        solver_output=options.solver_output,
    )
