import argparse
import json
import logging
import math
import os
import sys
from typing import List, Optional, Sequence

from .data import load_problem, write_problem
from .errors import ConfigurationError, InstanceFormatError, OracleError
from .frontier import run
from .options import BACKENDS, Mode, RunOptions
from .pareto import Point, format_point, unique


logger = logging.getLogger(__name__)


def write_csv(out_path: str, points: Sequence[Point]) -> None:
    parent = os.path.dirname(out_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(out_path, 'w') as f:
        f.write('z0,z1\n')
        for z0, z1 in points:
            f.write(f"{z0:.6f},{z1:.6f}\n")


def _json_safe(value):
    # Unbounded capacities and epsilon bounds are written as "inf"
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def display(points: Sequence[Point], stream=None) -> None:
    stream = stream or sys.stdout
    for p in points:
        stream.write(format_point(p) + '\n')


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog='biflp',
        description='Compute the Pareto front of a bi-objective facility location instance.',
    )
    ap.add_argument('instance', help='Instance file (m, n, cost matrices, opening costs[, demands, capacities])')

    # Problem family, capacitated unless -u
    family = ap.add_mutually_exclusive_group()
    family.add_argument('-u', '--uncapacitated', dest='capacitated', action='store_false', help='Uncapacitated facility location')
    family.add_argument('-c', '--capacitated', dest='capacitated', action='store_true', help='Capacitated facility location (default)')
    ap.set_defaults(capacitated=True)
    ap.add_argument('--single-sourcing', action='store_true', help='Binary assignments (default: fractional)')
    ap.add_argument('--relaxation', action='store_true', help='Solve the continuous relaxation')

    # Method; precedence lexicographic > weighted-sum > supported > efficient
    ap.add_argument('-l', '--lexicographic', action='store_true', help='Lexicographic solutions only')
    ap.add_argument('--objective', type=int, choices=[0, 1], default=None, help='With -l, optimize this objective only')
    ap.add_argument('-w', '--weighted-sum', type=float, default=None, metavar='LAMBDA',
                    help='Single weighted-sum solve: (1-LAMBDA) * main + LAMBDA * other')
    ap.add_argument('-s', '--supported', action='store_true', help='Supported solutions (dichotomic search)')
    ap.add_argument('-e', '--efficient', action='store_true', help='Efficient solutions (epsilon-constraint, default)')
    ap.add_argument('--from', dest='epsilon_start', type=float, default=math.inf, help='First epsilon bound (default: inf)')
    ap.add_argument('--step', dest='epsilon_step', type=float, default=1.0, help='Epsilon decrement (default: 1)')
    ap.add_argument('--main-objective', type=int, choices=[0, 1], default=0, help='Objective minimized directly')
    ap.add_argument('--tolerance', type=float, default=0.0, help='Point equality tolerance in the dichotomic search')

    # Oracle
    ap.add_argument('--backend', choices=BACKENDS, default='mathopt')
    ap.add_argument('--solver', default=None, help='MathOpt solver (gscip, highs, glop, cp_sat, ...)')
    ap.add_argument('--time-limit', type=float, default=None, help='Seconds per solve')
    ap.add_argument('--workers', type=int, default=8, help='CP-SAT search workers')
    ap.add_argument('--solver-output', action='store_true', help='Show solver logs')

    # Output
    ap.add_argument('--unique', action='store_true', help='Drop duplicate points from the front')
    ap.add_argument('--out', default=None, help='Optional CSV with the front')
    ap.add_argument('--report-out', default=None, help='Optional JSON with run metadata and all candidate points')
    ap.add_argument('--instance-out', default=None, help='Optional copy of the parsed instance')
    ap.add_argument('-v', '--verbose', action='count', default=0, help='Progress on stderr (-vv for every solve)')
    ap.add_argument('-q', '--quiet', action='store_true', help='Errors only')
    return ap


def options_from_args(args: argparse.Namespace) -> RunOptions:
    if args.lexicographic:
        mode = Mode.LEXICOGRAPHIC
    elif args.weighted_sum is not None:
        mode = Mode.WEIGHTED_SUM
    elif args.supported:
        mode = Mode.SUPPORTED
    else:
        mode = Mode.EFFICIENT
    return RunOptions(
        mode=mode,
        capacitated=args.capacitated,
        single_sourcing=args.single_sourcing,
        relaxation=args.relaxation,
        weight=args.weighted_sum if args.weighted_sum is not None else 0.5,
        objective=args.objective,
        main_objective=args.main_objective,
        epsilon_start=args.epsilon_start,
        epsilon_step=args.epsilon_step,
        tolerance=args.tolerance,
        backend=args.backend,
        solver=args.solver,
        time_limit=args.time_limit,
        workers=args.workers,
        solver_output=args.solver_output,
    ).validate()


def _configure_logging(verbose: int, quiet: bool) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, stream=sys.stderr, format='%(levelname)s %(name)s: %(message)s')


def main(argv: Optional[List[str]] = None) -> None:
    ap = build_parser()
    args = ap.parse_args(argv)
    _configure_logging(args.verbose, args.quiet)

    try:
        options = options_from_args(args)
    except ConfigurationError as e:
        ap.error(str(e))
    logger.info('file: %s', args.instance)
    logger.info('options: %s', options.to_dict())

    try:
        problem = load_problem(args.instance, options.capacitated, options.single_sourcing)
    except (OSError, InstanceFormatError) as e:
        raise SystemExit(f"Error: unable to read '{args.instance}': {e}")
    if args.instance_out:
        write_problem(args.instance_out, problem)

    try:
        result = run(problem, options)
    except ConfigurationError as e:
        ap.error(str(e))
    except OracleError as e:
        raise SystemExit(f"Solver failure: {e}")

    front = unique(result.front) if args.unique else result.front
    display(front)

    if args.out:
        write_csv(args.out, front)
    if args.report_out:
        parent = os.path.dirname(args.report_out)
        if parent:
            os.makedirs(parent, exist_ok=True)
        meta = {
            'instance': args.instance,
            'options': options.to_dict(),
            'problem': problem.summary(),
        }
        meta.update(result.to_dict())
        meta['front'] = [list(p) for p in front]
        with open(args.report_out, 'w') as f:
            json.dump(_json_safe(meta), f, indent=2, allow_nan=False)


if __name__ == '__main__':
    main()
