import numpy as np
import pytest

from outbreak_mc import ChainState, OutbreakData


@pytest.fixture
def outbreak():
    """Three cases, case 1 infecting case 2 infecting case 3."""

    data = OutbreakData(
        N=3,
        dates=np.array([2, 3, 5]),
        w_dens=np.array([0.5, 0.3, 0.2]),
        f_dens=np.array([0.6, 0.4]),
        dist=np.array([[0, 1, 2], [1, 0, 3], [2, 3, 0]]),
        n_sites=100,
    )
    state = ChainState.from_cases(0.01, [0, 1, 3], [None, 1, 2])
    return data, state
