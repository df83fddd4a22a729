from __future__ import annotations

import logging
from typing import Tuple

import numpy as np
from tqdm.auto import tqdm

from .mh_moves import move_alpha, move_mu, move_t_inf
from .states import (
    ChainConfig,
    ChainState,
    ChainTrace,
    EventLog,
    Likelihoods,
    check_state,
    n_cases,
)

logger = logging.getLogger(__name__)


def run_mcmc(
    *,
    # RNG seed
    seed: int,
    data,
    state_init: ChainState,
    likelihoods: Likelihoods,
    config: ChainConfig,
    progress: bool = True,
) -> Tuple[ChainState, ChainTrace, EventLog]:
    """
    Plain sweep sampler:
     - each iteration applies move_mu -> move_t_inf -> move_alpha (those enabled
       in ``config``), threading one generator through all of them;
     - the initial state and every ``config.sample_every``-th state are stored
       in the trace together with their joint log-likelihood.
    """

    N = n_cases(data)
    check_state(state_init, N)

    rng = np.random.default_rng(seed)
    state = state_init.copy()
    events = EventLog()
    trace = ChainTrace(N=N)
    trace.add(0, state, likelihoods.joint(data, state, None))

    logger.debug(
        "run_mcmc: N=%d n_iter=%d sample_every=%d sd_mu=%g",
        N,
        config.n_iter,
        config.sample_every,
        config.sd_mu,
    )

    with tqdm(total=config.n_iter, desc="MCMC", unit="iter", disable=not progress) as pbar:
        for step in range(1, config.n_iter + 1):
            if config.move_mu:
                state = move_mu(rng, data, state, config, likelihoods.genetic, events)
            if config.move_t_inf:
                state = move_t_inf(rng, data, state, likelihoods.timing, events)
            if config.move_alpha:
                state = move_alpha(rng, data, state, likelihoods.joint, events)

            if step % config.sample_every == 0:
                trace.add(step, state, likelihoods.joint(data, state, None))
            pbar.update(1)

    rates = events.acceptance_rates()
    logger.info(
        "run_mcmc: %d samples, acceptance %s",
        len(trace),
        ", ".join(f"{k}={v:.3f}" for k, v in rates.items()) or "n/a",
    )
    return state, trace, events


__all__ = [name for name in globals() if not name.startswith("_")]
