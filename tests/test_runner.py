import logging

import numpy as np

from outbreak_mc import ChainConfig, default_likelihoods, run_mcmc


def _run(outbreak, seed=1, **kwargs):
    data, state = outbreak
    config = ChainConfig(sd_mu=0.005, n_iter=20, sample_every=5, **kwargs)
    return run_mcmc(
        seed=seed,
        data=data,
        state_init=state,
        likelihoods=default_likelihoods(),
        config=config,
        progress=False,
    )


def test_run_mcmc_trace_shapes(outbreak):
    state, trace, events = _run(outbreak)
    arrays = trace.as_arrays()

    assert len(trace) == 5
    np.testing.assert_array_equal(arrays["step"], [0, 5, 10, 15, 20])
    assert arrays["t_inf"].shape == (5, 3)
    assert arrays["alpha"].shape == (5, 3)
    assert np.all(np.isfinite(arrays["loglik"]))
    np.testing.assert_array_equal(arrays["t_inf"][-1], state.t_inf)

    counts = {k: sum(ev.move_type == k for ev in events.events) for k in ("mu", "t_inf", "alpha")}
    assert counts["mu"] == 20
    assert counts["t_inf"] == 60
    assert counts["alpha"] <= 40
    assert set(events.acceptance_rates()) <= {"mu", "t_inf", "alpha"}


def test_run_mcmc_keeps_tree_ordering(outbreak):
    _, trace, _ = _run(outbreak, seed=4)
    arrays = trace.as_arrays()
    for t_inf, alpha in zip(arrays["t_inf"], arrays["alpha"]):
        for i, j in enumerate(alpha):
            if j >= 0:
                assert t_inf[j] < t_inf[i]


def test_run_mcmc_is_reproducible(outbreak):
    a = _run(outbreak, seed=3)[1].as_arrays()
    b = _run(outbreak, seed=3)[1].as_arrays()
    for key in a:
        np.testing.assert_array_equal(a[key], b[key])


def test_run_mcmc_disabled_moves(outbreak):
    _, init = outbreak
    state, trace, events = _run(outbreak, move_mu=False, move_alpha=False)
    assert state.mu == init.mu
    np.testing.assert_array_equal(state.alpha, init.alpha)
    assert {ev.move_type for ev in events.events} == {"t_inf"}


def test_run_mcmc_logs_acceptance(outbreak, caplog):
    with caplog.at_level(logging.INFO, logger="outbreak_mc.runner"):
        _run(outbreak)
    assert "acceptance" in caplog.text
