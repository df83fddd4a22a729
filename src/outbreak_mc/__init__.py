"""OUTBREAK-MC transmission tree Markov chain Monte Carlo moves."""

from .states import *
from .likelihoods import *
from .mh_moves import *
from .runner import run_mcmc

__all__ = [name for name in globals() if not name.startswith("_")]
