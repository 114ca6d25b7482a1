"""
das-sim: data availability sampling over erasure-coded grids.

This package simulates light clients sampling an erasure-coded matrix
while a publisher withholds some of its cells, to measure:
1. How much of the grid the clients' samples make provably available
2. How often full availability is reached despite censorship
3. How often clients detect that data is being withheld
"""

__version__ = "0.1.0"

from das_sim.grid import Grid
from das_sim.sampling import Box, RandomPoints, Selection, select, parse_strategy
from das_sim.config import ExperimentConfig
from das_sim.reconstruction import (
    reconstruction_threshold,
    propagate,
    can_reconstruct,
)
from das_sim.metrics import (
    TrialResult,
    ExperimentSummary,
    SummaryAccumulator,
    summarize,
)
from das_sim.simulate import (
    run,
    run_one_trial,
    run_sweep,
    trial_rng,
)

__all__ = [
    "Grid",
    "Box",
    "RandomPoints",
    "Selection",
    "select",
    "parse_strategy",
    "ExperimentConfig",
    "reconstruction_threshold",
    "propagate",
    "can_reconstruct",
    "TrialResult",
    "ExperimentSummary",
    "SummaryAccumulator",
    "summarize",
    "run",
    "run_one_trial",
    "run_sweep",
    "trial_rng",
]
