import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

from .errors import ConfigurationError


class Mode(str, Enum):
    LEXICOGRAPHIC = 'lexicographic'
    WEIGHTED_SUM = 'weighted-sum'
    SUPPORTED = 'supported'
    EFFICIENT = 'efficient'


BACKENDS = ('mathopt', 'cpsat')


@dataclass(frozen=True)
class RunOptions:
    mode: Mode = Mode.EFFICIENT
    # Instance semantics
    capacitated: bool = True
    single_sourcing: bool = False
    relaxation: bool = False
    # Weighted-sum lambda and lexicographic objective (None: both)
    weight: float = 0.5
    objective: Optional[int] = None
    # Epsilon-constraint scan on the non-main objective
    main_objective: int = 0
    epsilon_start: float = math.inf
    epsilon_step: float = 1.0
    # Dichotomic equality tolerance, 0 means exact
    tolerance: float = 0.0
    # Oracle
    backend: str = 'mathopt'
    solver: Optional[str] = None
    time_limit: Optional[float] = None
    workers: int = 8
    solver_output: bool = False

    def validate(self) -> 'RunOptions':
        """Reject inconsistent options; returns self so calls can be chained."""
        if not isinstance(self.mode, Mode):
            raise ConfigurationError(f"Unknown mode {self.mode!r}", f"use one of {', '.join(m.value for m in Mode)}")
        if self.main_objective not in (0, 1):
            raise ConfigurationError(f"Main objective must be 0 or 1, got {self.main_objective!r}")
        if self.objective is not None and self.objective not in (0, 1):
            raise ConfigurationError(f"Lexicographic objective must be 0 or 1, got {self.objective!r}")
        if not (0.0 <= self.weight <= 1.0):
            raise ConfigurationError(f"Weighted-sum lambda must lie in [0, 1], got {self.weight!r}")
        if math.isnan(self.epsilon_start):
            raise ConfigurationError('Epsilon start value must be a number or inf')
        if not math.isfinite(self.epsilon_step) or self.epsilon_step <= 0:
            raise ConfigurationError(
                f"Epsilon step must be strictly positive, got {self.epsilon_step!r}",
                'the default 1 suits integer-valued objectives',
            )
        if not math.isfinite(self.tolerance) or self.tolerance < 0:
            raise ConfigurationError(f"Tolerance must be a non-negative number, got {self.tolerance!r}")
        if self.time_limit is not None and not self.time_limit > 0:
            raise ConfigurationError(f"Time limit must be positive, got {self.time_limit!r}")
        if self.workers < 1:
            raise ConfigurationError(f"Worker count must be at least 1, got {self.workers!r}")
        if self.backend not in BACKENDS:
            raise ConfigurationError(f"Unknown backend {self.backend!r}", f"use one of {', '.join(BACKENDS)}")
        if self.backend == 'cpsat':
            if self.relaxation:
                raise ConfigurationError('The cpsat backend cannot solve the continuous relaxation', 'use --backend mathopt')
            if self.capacitated and not self.single_sourcing:
                raise ConfigurationError(
                    'The cpsat backend needs integer assignments for capacitated instances',
                    'add --single-sourcing or use --backend mathopt',
                )
        return self

    def solver_name(self) -> str:
        """Solver used by the backend; defaults depend on the relaxation flag."""
        if self.solver:
            return self.solver.lower()
        if self.backend == 'cpsat':
            return 'cp_sat'
        return 'glop' if self.relaxation else 'gscip'

    def to_dict(self) -> dict:
        out = asdict(self)
        out['mode'] = self.mode.value
        out['solver'] = self.solver_name()
        return out
