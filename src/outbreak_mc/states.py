"""Shared dataclasses and constants for outbreak chain states and traces."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

# Marker stored in ``ChainState.alpha`` for cases without an infector.
NO_INFECTOR = -1

MOVE_TYPES = ("mu", "t_inf", "alpha")


class ChainStateError(ValueError):
    """Raised when a chain state does not match the outbreak it describes."""


@dataclass
class ChainState:
    """Current value of the chain.

    Cases are 0-based internally; ``alpha[i]`` is the index of the infector of
    case ``i`` or ``NO_INFECTOR``. Use :meth:`from_cases` and :meth:`infectors`
    to go through the 1..N case ids used by observed data.
    """

    mu: float
    t_inf: np.ndarray  # (N,)
    alpha: np.ndarray  # (N,) int, NO_INFECTOR for roots

    @staticmethod
    def from_cases(
        mu: float, t_inf: Sequence, alpha: Sequence[Optional[int]]
    ) -> "ChainState":
        N = len(t_inf)
        for i, a in enumerate(alpha):
            if a is not None and not 1 <= int(a) <= N:
                raise ChainStateError(
                    f"infector of case {i + 1} is {a}, not a case id in [1, {N}]"
                )
        alpha_idx = np.array(
            [NO_INFECTOR if a is None else int(a) - 1 for a in alpha], dtype=np.int64
        )
        return ChainState(mu=float(mu), t_inf=np.array(t_inf), alpha=alpha_idx)

    def infectors(self) -> List[Optional[int]]:
        """Infector of each case as a 1-based case id, ``None`` for roots."""

        return [None if a == NO_INFECTOR else int(a) + 1 for a in self.alpha]

    def copy(self) -> "ChainState":
        return ChainState(
            mu=float(self.mu),
            t_inf=np.array(self.t_inf, copy=True),
            alpha=np.array(self.alpha, copy=True),
        )


@dataclass(frozen=True)
class OutbreakData:
    """Observed outbreak data.

    ``w_dens`` and ``f_dens`` are the generation time and collection delay
    distributions, entry ``k`` being the probability of a delay of ``k + 1``
    time units. ``dist`` holds pairwise SNP distances between sequences of
    length ``n_sites``; without it the genetic likelihood is flat. The
    reference timing likelihood works on whole time units: states scored
    against it must hold integral ``t_inf`` values.
    """

    N: int
    dates: np.ndarray  # (N,) int
    w_dens: np.ndarray
    f_dens: np.ndarray
    dist: Optional[np.ndarray] = None  # (N, N)
    n_sites: int = 0


def n_cases(data) -> int:
    """Number of cases in *data*, given as attribute or mapping key ``N``."""

    if isinstance(data, Mapping):
        return int(data["N"])
    return int(data.N)


def check_state(state: ChainState, N: int) -> None:
    """Raise :class:`ChainStateError` if *state* cannot describe *N* cases."""

    if np.ndim(state.t_inf) != 1 or len(state.t_inf) != N:
        raise ChainStateError(
            f"t_inf has shape {np.shape(state.t_inf)}, expected ({N},)"
        )
    if np.ndim(state.alpha) != 1 or len(state.alpha) != N:
        raise ChainStateError(
            f"alpha has shape {np.shape(state.alpha)}, expected ({N},)"
        )
    alpha = np.asarray(state.alpha)
    bad = (alpha < NO_INFECTOR) | (alpha >= N)
    if np.any(bad):
        i = int(np.flatnonzero(bad)[0])
        raise ChainStateError(
            f"alpha[{i}] = {int(alpha[i])} is not a case index in [0, {N - 1}]"
        )


@dataclass
class ChainConfig:
    """Settings for the moves and the sweep driver."""

    sd_mu: float = 1e-4
    n_iter: int = 10_000
    sample_every: int = 50
    move_mu: bool = True
    move_t_inf: bool = True
    move_alpha: bool = True

    def __post_init__(self):
        if self.sd_mu < 0:
            raise ValueError(f"sd_mu must be >= 0, got {self.sd_mu}")
        if self.n_iter < 1:
            raise ValueError(f"n_iter must be >= 1, got {self.n_iter}")
        if self.sample_every < 1:
            raise ValueError(f"sample_every must be >= 1, got {self.sample_every}")


# f(data, state[, cases]) -> log-likelihood
LogLik = Callable[..., float]


@dataclass
class Likelihoods:
    """Log-likelihood evaluators consumed by the moves.

    ``genetic`` and ``timing`` are called as ``f(data, state)``; ``joint`` as
    ``f(data, state, cases)`` where ``cases`` is ``None`` or an array of
    0-based case indices restricting the sum.
    """

    genetic: LogLik
    timing: LogLik
    joint: LogLik


@dataclass
class MoveEvent:
    """Metropolis–Hastings proposal record."""

    move_type: str
    case: int  # 0-based; -1 for mu
    accepted: bool
    log_ratio: float
    local_log_ratio: Optional[float] = None  # alpha only, not used for the decision


@dataclass
class EventLog:
    """Container for proposal records."""

    events: List[MoveEvent] = field(default_factory=list)

    def record(self, event: MoveEvent) -> None:
        self.events.append(event)

    def acceptance_rates(self) -> Dict[str, float]:
        rates = {}
        for move_type in MOVE_TYPES:
            acc = [ev.accepted for ev in self.events if ev.move_type == move_type]
            if acc:
                rates[move_type] = float(np.mean(acc))
        return rates


@dataclass
class ChainTrace:
    """Thinned samples of the chain."""

    N: int
    steps: List[int] = field(default_factory=list)
    loglik: List[float] = field(default_factory=list)
    mu: List[float] = field(default_factory=list)
    t_inf: List[np.ndarray] = field(default_factory=list)
    alpha: List[np.ndarray] = field(default_factory=list)

    def add(self, step: int, state: ChainState, loglik: float):
        self.steps.append(int(step))
        self.loglik.append(float(loglik))
        self.mu.append(float(state.mu))
        self.t_inf.append(np.array(state.t_inf, copy=True))
        self.alpha.append(np.array(state.alpha, copy=True))

    def __len__(self) -> int:
        return len(self.steps)

    def as_arrays(self) -> Dict[str, np.ndarray]:
        """Stack the samples; ``t_inf`` and ``alpha`` come out as (S, N)."""

        return {
            "step": np.asarray(self.steps, dtype=np.int64),
            "loglik": np.asarray(self.loglik, dtype=np.float64),
            "mu": np.asarray(self.mu, dtype=np.float64),
            "t_inf": np.stack(self.t_inf) if self.t_inf else np.empty((0, self.N)),
            "alpha": (
                np.stack(self.alpha)
                if self.alpha
                else np.empty((0, self.N), dtype=np.int64)
            ),
        }


__all__ = [name for name in globals() if not name.startswith("_")]
