"""Objective points and the dominance filter applied to a candidate list."""
from typing import Iterable, List, NamedTuple, Sequence


class Point(NamedTuple):
    """Objective vector (z0, z1) of one feasible solution."""
    z0: float
    z1: float

    def __str__(self) -> str:
        return format_point(self)


def dominates(b: Sequence[float], a: Sequence[float]) -> bool:
    """True if b is no worse than a in every objective (weak dominance)."""
    return all(bk <= ak for ak, bk in zip(a, b))


def filter_dominated(points: Sequence[Point]) -> List[Point]:
    """Return the points not weakly dominated by another point of the list.

    Exact duplicates do not remove each other: both copies stay unless a third
    point dominates them. Input order is preserved. Use ``unique`` on the result
    to get a value-distinct front.
    """
    front: List[Point] = []
    for a in points:
        if not any(b != a and dominates(b, a) for b in points):
            front.append(a)
    return front


def unique(points: Iterable[Point]) -> List[Point]:
    """Drop exact value duplicates, keeping the first occurrence."""
    seen = set()
    out: List[Point] = []
    for p in points:
        if p not in seen:
            seen.add(p)
            out.append(p)
    return out


def format_point(point: Sequence[float]) -> str:
    return ' '.join(f"{v:g}" for v in point)
