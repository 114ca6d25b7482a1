"""
Experiment runners for data availability sampling.

This module provides:
1. run_one_trial: one randomized trial (censor, sample, reconstruct)
2. run: many independent trials of one configuration, folded into a summary
3. run_sweep and the sweep builders: parameter grids over many configurations

Every trial owns a PCG64 stream derived from (seed, trial_index), so the
outcome of a run does not depend on how trials are spread across workers.
"""

from concurrent.futures import ThreadPoolExecutor
import logging
from typing import Iterable, Optional, Sequence
import numpy as np
from numpy.random import Generator, PCG64, SeedSequence

from das_sim.censorship import select_censored
from das_sim.config import DEFAULT_TRIALS, ExperimentConfig
from das_sim.grid import Grid
from das_sim.metrics import ExperimentSummary, SummaryAccumulator, TrialResult
from das_sim.reconstruction import propagate, seed_sampled
from das_sim.sampling import Box, RandomPoints, select


logger = logging.getLogger(__name__)


def trial_rng(seed: int, trial_index: int) -> Generator:
    """Independent random stream for one trial of a seeded run."""
    return np.random.Generator(PCG64(SeedSequence(seed, spawn_key=(trial_index,))))


def run_one_trial(
    config: ExperimentConfig,
    rng: Generator,
    trial_index: int = 0,
) -> TrialResult:
    """
    Run a single trial.

    Steps:
    1. Build a fresh grid and withhold the censored cells
    2. Let every client draw its queries with the configured strategy
    3. Confirm the union of served queries
    4. Propagate row/column reconstruction to a fixpoint

    Only the grid and generator passed in are touched, so independent
    callers may run trials concurrently.

    Args:
        config: Validated configuration
        rng: Generator owned by this trial
        trial_index: Label recorded in the result

    Returns:
        TrialResult for the trial
    """
    grid = Grid(config.n, config.dims)

    n_censored = grid.apply_censorship(select_censored(config.n, config.percent_censored, rng))

    selections = [select(client_id, config, rng) for client_id in range(config.n_clients)]
    clients_satisfied = sum(1 for s in selections if grid.all_served(s.cells))

    seed_confirmed = seed_sampled(grid, (s.cells for s in selections))
    outcome = propagate(grid)

    return TrialResult(
        trial_index=trial_index,
        n=config.n,
        dims=config.dims,
        n_clients=config.n_clients,
        n_censored=n_censored,
        samples_requested=config.n_samples * config.n_clients,
        samples_taken=sum(s.taken for s in selections),
        seed_confirmed=seed_confirmed,
        confirmed=outcome.confirmed,
        total_cells=outcome.total_cells,
        reconstructed_fraction=outcome.fraction,
        available=outcome.is_available(config.availability_threshold),
        clients_satisfied=clients_satisfied,
        passes=outcome.passes,
        censored_recovered=grid.recovered_count(),
    )


def _run_chunk(
    config: ExperimentConfig,
    seed: int,
    trial_indices: Sequence[int],
) -> tuple[SummaryAccumulator, list[TrialResult]]:
    acc = SummaryAccumulator()
    results = []
    for i in trial_indices:
        result = run_one_trial(config, trial_rng(seed, i), trial_index=i)
        acc.add(result)
        results.append(result)
    return acc, results


def run(
    config: ExperimentConfig,
    n_trials: int = DEFAULT_TRIALS,
    seed: Optional[int] = None,
    n_workers: int = 1,
    keep_trials: bool = False,
) -> ExperimentSummary:
    """
    Run independent trials of one configuration and aggregate them.

    Trial indices are split into n_workers contiguous chunks; each worker
    folds its chunk into a partial accumulator and the partials are merged
    once all workers finish.

    Args:
        config: Validated configuration
        n_trials: Number of trials (>= 1)
        seed: Master seed; drawn from OS entropy when None
        n_workers: Worker threads (1 = run in the calling thread)
        keep_trials: Attach every TrialResult to the summary

    Returns:
        ExperimentSummary over all trials
    """
    if n_trials < 1:
        raise ValueError(f"n_trials must be >= 1, got {n_trials}")
    if n_workers < 1:
        raise ValueError(f"n_workers must be >= 1, got {n_workers}")
    if seed is None:
        seed = int(SeedSequence().entropy)

    logger.info(
        "running %d trials of %s (seed=%d, workers=%d)", n_trials, config, seed, n_workers
    )
    n_workers = min(n_workers, n_trials)
    chunks = [chunk.tolist() for chunk in np.array_split(np.arange(n_trials), n_workers)]

    if n_workers == 1:
        partials = [_run_chunk(config, seed, chunks[0])]
    else:
        with ThreadPoolExecutor(max_workers=n_workers) as pool:
            partials = list(pool.map(lambda chunk: _run_chunk(config, seed, chunk), chunks))

    acc = SummaryAccumulator()
    trials: list[TrialResult] = []
    for partial, results in partials:
        acc = acc.merge(partial)
        trials.extend(results)

    summary = acc.summary(trials if keep_trials else ())
    logger.info(
        "mean reconstructed fraction %.4f (std %.4f), success rate %.3f",
        summary.mean_fraction, summary.std_fraction, summary.success_rate,
    )
    return summary


def run_sweep(
    configs: Iterable[ExperimentConfig],
    n_trials: int = DEFAULT_TRIALS,
    seed: int = 42,
    n_workers: int = 1,
) -> list[tuple[ExperimentConfig, ExperimentSummary]]:
    """
    Run several configurations with the same master seed.

    Sharing the seed gives every configuration the same trial streams, so
    differences between cells of the sweep come from the parameters.
    """
    results = []
    for config in configs:
        results.append((config, run(config, n_trials=n_trials, seed=seed, n_workers=n_workers)))
    return results


def small_grid_configs(
    n_samples_values: Sequence[int] = (10, 15, 20, 25, 30, 35, 40),
    n_clients_values: Sequence[int] = tuple(range(50, 1001, 50)),
    percent_censored_values: Sequence[float] = (0.0, 0.2, 0.4, 0.6, 0.8, 0.9),
    sizes: Sequence[int] = (32, 64, 128, 256),
    dims_values: Sequence[int] = (1, 2),
) -> list[ExperimentConfig]:
    """Random-point sampling over several small grids."""
    configs = []
    for n_samples in n_samples_values:
        for n_clients in n_clients_values:
            for percent_censored in percent_censored_values:
                for n in sizes:
                    for dims in dims_values:
                        configs.append(ExperimentConfig(
                            n=n,
                            dims=dims,
                            n_clients=n_clients,
                            percent_censored=percent_censored,
                            n_samples=n_samples,
                            sample_strategy=RandomPoints(),
                        ))
    return configs


def block_sampling_configs(
    n: int = 512,
    target_cells: int = 1024,
    n_clients_values: Sequence[int] = tuple(range(10, 301, 20)),
    percent_censored_values: Sequence[float] = (0.0, 0.2, 0.4, 0.6, 0.8, 0.9),
    box_sides: Sequence[int] = (1, 2, 4, 8, 16, 32, 64, 128),
    dims_values: Sequence[int] = (1, 2),
) -> list[ExperimentConfig]:
    """
    Box sampling where every client queries about target_cells cells.

    Tile shapes that are larger than target_cells, do not divide it, or do
    not fit the grid are skipped; n_samples is target_cells / tile area.
    """
    configs = []
    for n_clients in n_clients_values:
        for percent_censored in percent_censored_values:
            for width in box_sides:
                for height in box_sides:
                    area = width * height
                    if area > target_cells or target_cells % area or n % width or n % height:
                        continue
                    for dims in dims_values:
                        configs.append(ExperimentConfig(
                            n=n,
                            dims=dims,
                            n_clients=n_clients,
                            percent_censored=percent_censored,
                            n_samples=target_cells // area,
                            sample_strategy=Box(width=width, height=height),
                        ))
    return configs
