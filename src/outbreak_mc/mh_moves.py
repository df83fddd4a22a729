"""Metropolis–Hastings move kernels for transmission tree reconstruction.

Each move takes a generator, the data, the current :class:`ChainState` and the
log-likelihood it needs, and returns a new state. The input state is never
modified: a move copies it once, applies proposals in place on the copy and
restores the single changed value when a proposal is rejected, so every
likelihood evaluation sees either the full current or the full proposed state.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from .states import (
    NO_INFECTOR,
    ChainConfig,
    ChainState,
    EventLog,
    LogLik,
    MoveEvent,
    check_state,
    n_cases,
)

logger = logging.getLogger(__name__)


def _log_ratio(ll_cur: float, ll_prop: float) -> float:
    # -inf - (-inf) is nan; left to the caller
    return float(ll_prop) - float(ll_cur)


def mh_accept_np(rng: np.random.Generator, ll_cur: float, ll_prop: float) -> bool:
    """Accept iff ``exp(ll_prop - ll_cur) >= u`` for ``u ~ U(0, 1)``.

    Exactly one uniform is drawn per call whatever the outcome. A log-ratio of
    ``-inf`` or ``nan`` (both log-likelihoods ``-inf``, or an evaluator
    returning ``nan``) is always rejected.
    """

    u = rng.random()
    delta = _log_ratio(ll_cur, ll_prop)
    if np.isnan(delta) or delta == -np.inf:
        return False
    if delta >= 0.0:
        return True
    return bool(np.exp(delta) >= u)


def pick_possible_ancestor(rng: np.random.Generator, t_inf: np.ndarray, i: int) -> int:
    """Uniformly pick a case infected strictly before case *i*.

    Returns ``NO_INFECTOR`` without drawing when there is no such case.
    """

    candidates = np.flatnonzero(np.asarray(t_inf) < t_inf[i])
    if candidates.size == 0:
        return NO_INFECTOR
    return int(candidates[rng.integers(0, candidates.size)])


def _record(event_log: Optional[EventLog], **kwargs):
    if event_log is not None:
        event_log.record(MoveEvent(**kwargs))


def move_mu(
    rng: np.random.Generator,
    data,
    state: ChainState,
    config: ChainConfig,
    loglik_genetic: LogLik,
    event_log: Optional[EventLog] = None,
) -> ChainState:
    """Normal random walk on the mutation rate.

    Only the genetic log-likelihood depends on ``mu``, so it is the only term
    evaluated. No bounds are imposed here: the likelihood is expected to return
    ``-inf`` for rates outside its support.
    """

    check_state(state, n_cases(data))
    new_state = state.copy()

    mu_cur = new_state.mu
    ll_cur = loglik_genetic(data, new_state)

    new_state.mu = mu_cur + float(rng.normal(0.0, config.sd_mu))
    ll_prop = loglik_genetic(data, new_state)

    accept = mh_accept_np(rng, ll_cur, ll_prop)
    if not accept:
        new_state.mu = mu_cur
    _record(
        event_log,
        move_type="mu",
        case=-1,
        accepted=accept,
        log_ratio=_log_ratio(ll_cur, ll_prop),
    )
    logger.debug("move_mu: mu=%g accepted=%s", new_state.mu, accept)
    return new_state


def move_t_inf(
    rng: np.random.Generator,
    data,
    state: ChainState,
    loglik_timing: LogLik,
    event_log: Optional[EventLog] = None,
) -> ChainState:
    """Sequential +/-1 random walk on every infection time.

    Cases are visited in index order and each step starts from the outcome of
    the previous one. The timing log-likelihood of the whole outbreak is
    recomputed for every case; restricting it to the moved case and its
    infectees would change the acceptance ratio.
    """

    N = n_cases(data)
    check_state(state, N)
    new_state = state.copy()
    t_inf = new_state.t_inf

    n_acc = 0
    for i in range(N):
        ll_cur = loglik_timing(data, new_state)

        t_old = t_inf[i]
        t_inf[i] = t_old + (1 if rng.random() > 0.5 else -1)
        ll_prop = loglik_timing(data, new_state)

        accept = mh_accept_np(rng, ll_cur, ll_prop)
        if accept:
            n_acc += 1
        else:
            t_inf[i] = t_old
        _record(
            event_log,
            move_type="t_inf",
            case=i,
            accepted=accept,
            log_ratio=_log_ratio(ll_cur, ll_prop),
        )

    logger.debug("move_t_inf: %d/%d accepted", n_acc, N)
    return new_state


def move_alpha(
    rng: np.random.Generator,
    data,
    state: ChainState,
    loglik_all: LogLik,
    event_log: Optional[EventLog] = None,
) -> ChainState:
    """Sequential reassignment of infectors.

    For every case with an infector and at least one case infected before it,
    a new infector is drawn uniformly among the cases infected strictly
    earlier (the current one included). Acceptance uses the joint
    log-likelihood of the whole outbreak. The log-ratio restricted to the moved
    case is also computed and stored in the event log, but it does not enter
    the decision.
    """

    N = n_cases(data)
    check_state(state, N)
    new_state = state.copy()
    t_inf = new_state.t_inf
    alpha = new_state.alpha

    n_prop = n_acc = 0
    for i in range(N):
        if alpha[i] == NO_INFECTOR or not np.any(t_inf < t_inf[i]):
            continue
        case_i = np.array([i])

        ll_cur = loglik_all(data, new_state, None)
        ll_cur_i = loglik_all(data, new_state, case_i)

        a_old = int(alpha[i])
        alpha[i] = pick_possible_ancestor(rng, t_inf, i)
        ll_prop = loglik_all(data, new_state, None)
        ll_prop_i = loglik_all(data, new_state, case_i)

        accept = mh_accept_np(rng, ll_cur, ll_prop)
        n_prop += 1
        if accept:
            n_acc += 1
        else:
            alpha[i] = a_old
        _record(
            event_log,
            move_type="alpha",
            case=i,
            accepted=accept,
            log_ratio=_log_ratio(ll_cur, ll_prop),
            local_log_ratio=_log_ratio(ll_cur_i, ll_prop_i),
        )

    logger.debug("move_alpha: %d/%d accepted", n_acc, n_prop)
    return new_state


__all__ = [name for name in globals() if not name.startswith("_")]
