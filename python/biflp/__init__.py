"""Bi-objective facility location: Pareto front by scalarization.

Modules:
- problem: instance data model and objective evaluation.
- data: instance text format reader and writer.
- options: run configuration.
- oracle: single-objective oracle session interface.
- ortools_solver: OR-Tools oracles (MathOpt incremental, CP-SAT).
- pareto: objective points and dominance filtering.
- frontier: weighted sum, lexicographic, dichotomic and epsilon-constraint methods.
- cli: command-line entry point.
"""
