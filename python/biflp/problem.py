import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .errors import InstanceFormatError


NUM_OBJECTIVES = 2


@dataclass(frozen=True)
class Problem:
    # Assignment costs c[k][i][j] and opening costs f[k][j], per objective k
    c: List[List[List[float]]]
    f: List[List[float]]
    capacitated: bool = False
    single_sourcing: bool = False
    # Demands d[i] and capacities q[j]; defaulted for uncapacitated instances
    d: Optional[List[float]] = None
    q: Optional[List[float]] = None
    num_objectives: int = field(default=NUM_OBJECTIVES, init=False)
    D: float = field(default=0.0, init=False)
    Q: float = field(default=math.inf, init=False)

    def __post_init__(self) -> None:
        if len(self.c) != NUM_OBJECTIVES or len(self.f) != NUM_OBJECTIVES:
            raise InstanceFormatError(
                f"Expected costs for {NUM_OBJECTIVES} objectives, got {len(self.c)} assignment "
                f"and {len(self.f)} opening matrices"
            )
        m = len(self.c[0])
        n = len(self.f[0])
        for k in range(NUM_OBJECTIVES):
            if len(self.c[k]) != m or any(len(row) != n for row in self.c[k]):
                raise InstanceFormatError(f"Assignment costs of objective {k} are not a {m}x{n} matrix")
            if len(self.f[k]) != n:
                raise InstanceFormatError(f"Opening costs of objective {k} must have {n} entries")
            _check_values(f"c[{k}]", (v for row in self.c[k] for v in row))
            _check_values(f"f[{k}]", self.f[k])

        d = list(self.d) if self.d is not None else [0.0] * m
        q = list(self.q) if self.q is not None else [math.inf] * n
        if len(d) != m:
            raise InstanceFormatError(f"Demand vector must have {m} entries, got {len(d)}")
        if len(q) != n:
            raise InstanceFormatError(f"Capacity vector must have {n} entries, got {len(q)}")
        _check_values('d', d)
        _check_values('q', q, allow_inf=True)
        # frozen: populate derived fields through object.__setattr__
        object.__setattr__(self, 'd', d)
        object.__setattr__(self, 'q', q)
        object.__setattr__(self, 'D', float(sum(d)))
        object.__setattr__(self, 'Q', float(sum(q)) if self.capacitated else math.inf)

    @property
    def num_customers(self) -> int:
        return len(self.c[0])

    @property
    def num_facilities(self) -> int:
        return len(self.f[0])

    def evaluate(self, k: int, opening: Sequence[float], assignment: Sequence[Sequence[float]]) -> float:
        """Return objective k for opening values y[j] and assignment values x[i][j].

        Fractional values (relaxation, multi-sourcing) contribute fractionally.
        """
        total = 0.0
        for j, yj in enumerate(opening):
            total += yj * self.f[k][j]
        for i, row in enumerate(assignment):
            cost_row = self.c[k][i]
            for j, xij in enumerate(row):
                total += xij * cost_row[j]
        return total

    def summary(self) -> dict:
        return {
            'num_customers': self.num_customers,
            'num_facilities': self.num_facilities,
            'capacitated': self.capacitated,
            'single_sourcing': self.single_sourcing,
            'total_demand': self.D,
            'total_capacity': self.Q,
        }


def _check_values(name: str, values, allow_inf: bool = False) -> None:
    for v in values:
        if math.isnan(v) or v < 0 or (math.isinf(v) and not allow_inf):
            raise InstanceFormatError(f"Invalid value {v!r} in {name}: values must be finite and non-negative")
