import math
import os
from typing import Iterator, List

from .errors import InstanceFormatError
from .problem import NUM_OBJECTIVES, Problem


class _Tokens:
    """Whitespace token reader with positional error messages."""

    def __init__(self, text: str, source: str) -> None:
        self._tokens: Iterator[str] = iter(text.split())
        self._source = source
        self._count = 0

    def next_float(self, what: str) -> float:
        try:
            tok = next(self._tokens)
        except StopIteration:
            raise InstanceFormatError(
                f"{self._source}: unexpected end of data while reading {what}",
                "check the customer/facility counts and the capacitated flag",
            ) from None
        self._count += 1
        try:
            return float(tok)
        except ValueError:
            raise InstanceFormatError(f"{self._source}: token #{self._count} {tok!r} in {what} is not a number") from None

    def next_int(self, what: str) -> int:
        v = self.next_float(what)
        if not math.isfinite(v) or v != int(v) or v < 0:
            raise InstanceFormatError(f"{self._source}: {what} must be a non-negative integer, got {v!r}")
        return int(v)

    def vector(self, size: int, what: str) -> List[float]:
        return [self.next_float(f"{what}[{i}]") for i in range(size)]


def parse_problem(text: str, capacitated: bool, single_sourcing: bool = False, source: str = '<string>') -> Problem:
    """Parse an instance from its text form.

    Layout (whitespace separated): m, n, then for each objective an m x n
    assignment cost matrix, then for each objective n opening costs, then if
    capacitated m demands and n capacities. Trailing tokens are ignored.
    """
    tokens = _Tokens(text, source)
    m = tokens.next_int('num_customers')
    n = tokens.next_int('num_facilities')
    c = [
        [tokens.vector(n, f"c[{k}][{i}]") for i in range(m)]
        for k in range(NUM_OBJECTIVES)
    ]
    f = [tokens.vector(n, f"f[{k}]") for k in range(NUM_OBJECTIVES)]
    d = q = None
    if capacitated:
        d = tokens.vector(m, 'd')
        q = tokens.vector(n, 'q')
    return Problem(c=c, f=f, capacitated=capacitated, single_sourcing=single_sourcing, d=d, q=q)


def load_problem(path: str, capacitated: bool, single_sourcing: bool = False) -> Problem:
    """Read an instance file; raises FileNotFoundError if it is missing."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Instance file not found: {path}")
    with open(path, 'r') as fh:
        text = fh.read()
    return parse_problem(text, capacitated, single_sourcing, source=path)


def _fmt(v: float) -> str:
    return f"{v:g}"


def format_problem(problem: Problem) -> str:
    """Serialize a Problem back to the instance text format."""
    lines = [str(problem.num_customers), str(problem.num_facilities), '']
    for k in range(problem.num_objectives):
        for row in problem.c[k]:
            lines.append(' '.join(_fmt(v) for v in row))
        lines.append('')
    for k in range(problem.num_objectives):
        lines.append(' '.join(_fmt(v) for v in problem.f[k]))
        lines.append('')
    if problem.capacitated:
        lines.append(' '.join(_fmt(v) for v in problem.d))
        lines.append('')
        lines.append(' '.join(_fmt(v) for v in problem.q))
        lines.append('')
    return '\n'.join(lines)


def write_problem(out_path: str, problem: Problem) -> None:
    parent = os.path.dirname(out_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(out_path, 'w') as fh:
        fh.write(format_problem(problem))
