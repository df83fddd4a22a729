"""Reference log-likelihoods of the outbreak model, compiled with JAX.

Every likelihood is a sum of per-case terms. The terms are computed by a
jitted JAX function and summed on the NumPy side, optionally over a subset of
cases, which gives the ``f(data, state, cases=None) -> float`` evaluators the
moves consume.

Terms are evaluated in double precision: log-likelihood totals grow with the
genome length while ``move_mu`` decides on their small differences.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence, Tuple

import numpy as np
import jax

jax.config.update("jax_enable_x64", True)

import jax.numpy as jnp  # noqa: E402
from jax.scipy.special import xlog1py, xlogy  # noqa: E402

from .states import ChainState, ChainStateError, Likelihoods, OutbreakData  # noqa: E402


def _log_dens(dens) -> np.ndarray:
    with np.errstate(divide="ignore"):
        return np.log(np.asarray(dens, dtype=np.float64))


def _log_pmf_at(log_dens: jnp.ndarray, delay: jnp.ndarray) -> jnp.ndarray:
    # log_dens[k] is the log-probability of a delay of k + 1
    k = log_dens.shape[0]
    inside = (delay >= 1) & (delay <= k)
    return jnp.where(inside, log_dens[jnp.clip(delay - 1, 0, k - 1)], -jnp.inf)


def genetic_terms_jax(
    mu: jnp.ndarray,
    alpha: jnp.ndarray,
    dist: jnp.ndarray,
    n_sites: jnp.ndarray,
) -> jnp.ndarray:
    """Per-case log-probability of the mutations from infector to infectee.

    ``dist[i, j]`` substitutions out of ``n_sites`` with per-site rate ``mu``;
    roots contribute 0. Every term is ``-inf`` when ``mu`` is outside [0, 1].
    """

    N = alpha.shape[0]
    has_inf = alpha >= 0
    j = jnp.where(has_inf, alpha, 0)
    d = dist[jnp.arange(N), j]
    term = xlogy(d, mu) + xlog1py(n_sites - d, -mu)
    term = jnp.where(has_inf, term, 0.0)
    return jnp.where((mu >= 0.0) & (mu <= 1.0), term, -jnp.inf)


def timing_terms_jax(
    t_inf: jnp.ndarray,
    alpha: jnp.ndarray,
    dates: jnp.ndarray,
    log_w: jnp.ndarray,
    log_f: jnp.ndarray,
) -> jnp.ndarray:
    """Per-case log-density of the generation time and the collection delay."""

    has_inf = alpha >= 0
    j = jnp.where(has_inf, alpha, 0)
    infection = jnp.where(has_inf, _log_pmf_at(log_w, t_inf - t_inf[j]), 0.0)
    collection = _log_pmf_at(log_f, dates - t_inf)
    return infection + collection


def make_case_loglik(
    case_terms_jax: Callable[..., jnp.ndarray],
    get_args: Callable[[object, ChainState], Tuple],
):
    """Return a NumPy-side evaluator ``f(data, state, cases=None) -> float``.

    ``get_args(data, state)`` builds the positional arguments of
    ``case_terms_jax``, which must return one term per case.
    """

    f = jax.jit(case_terms_jax)

    def loglik(data, state: ChainState, cases: Optional[Sequence[int]] = None) -> float:
        args = get_args(data, state)
        terms = np.asarray(f(*(jnp.asarray(a) for a in args)), dtype=np.float64)
        if cases is not None:
            terms = terms[np.asarray(cases, dtype=np.int64)]
        return float(terms.sum())

    return loglik


def _genetic_args(data: OutbreakData, state: ChainState):
    N = data.N
    if data.dist is None:
        dist = np.zeros((N, N), dtype=np.float64)
        n_sites = 0.0
    else:
        dist = np.asarray(data.dist, dtype=np.float64)
        n_sites = float(data.n_sites)
    return (
        np.float64(state.mu),
        np.asarray(state.alpha, dtype=np.int64),
        dist,
        np.float64(n_sites),
    )


def _timing_args(data: OutbreakData, state: ChainState):
    # delays index the discrete w_dens / f_dens, so times must be whole units
    t_inf = np.asarray(state.t_inf)
    if not np.all(np.mod(t_inf, 1) == 0):
        raise ChainStateError(f"t_inf must hold whole time units, got {t_inf}")
    return (
        t_inf.astype(np.int64),
        np.asarray(state.alpha, dtype=np.int64),
        np.asarray(data.dates, dtype=np.int64),
        _log_dens(data.w_dens),
        _log_dens(data.f_dens),
    )


ll_genetic = make_case_loglik(genetic_terms_jax, _genetic_args)
ll_timing = make_case_loglik(timing_terms_jax, _timing_args)


def ll_all(
    data: OutbreakData, state: ChainState, cases: Optional[Sequence[int]] = None
) -> float:
    """Joint log-likelihood: genetic plus timing."""

    return ll_genetic(data, state, cases) + ll_timing(data, state, cases)


def default_likelihoods() -> Likelihoods:
    return Likelihoods(genetic=ll_genetic, timing=ll_timing, joint=ll_all)


__all__ = [name for name in globals() if not name.startswith("_")]
