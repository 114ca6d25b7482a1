"""
Tests for das_sim.simulate.

These tests verify:
1. Determinism: the same seed produces identical trials
2. Worker independence: thread count does not change results
3. Degenerate inputs give trivial results
4. Known small scenarios behave as expected
"""

import numpy as np
import pytest

from das_sim.config import ExperimentConfig
from das_sim.sampling import Box
from das_sim.simulate import (
    block_sampling_configs,
    run,
    run_one_trial,
    run_sweep,
    small_grid_configs,
    trial_rng,
)


class TestRunOneTrial:
    """Tests for a single trial."""

    def test_determinism_same_seed(self):
        config = ExperimentConfig(n=16, dims=2, n_clients=20, percent_censored=0.3, n_samples=8)
        a = run_one_trial(config, trial_rng(123, 4), trial_index=4)
        b = run_one_trial(config, trial_rng(123, 4), trial_index=4)
        assert a == b

    def test_trial_streams_differ(self):
        config = ExperimentConfig(n=16, n_clients=5, percent_censored=0.5, n_samples=4)
        results = {run_one_trial(config, trial_rng(1, i)).seed_confirmed for i in range(20)}
        assert len(results) > 1

    def test_fully_censored_no_samples(self):
        """Everything withheld and nothing sampled: nothing is available."""
        config = ExperimentConfig(n=8, dims=2, n_clients=10, percent_censored=1.0, n_samples=0)
        for i in range(10):
            result = run_one_trial(config, trial_rng(0, i), trial_index=i)
            assert result.reconstructed_fraction == 0.0
            assert result.n_censored == 64
            assert not result.available

    def test_fully_censored_with_samples(self):
        config = ExperimentConfig(n=8, n_clients=10, percent_censored=1.0, n_samples=5)
        result = run_one_trial(config, trial_rng(0, 0))
        assert result.confirmed == 0
        assert result.clients_satisfied == 0

    def test_zero_clients_trivial(self):
        config = ExperimentConfig(n=8, n_clients=0, percent_censored=0.2, n_samples=5)
        result = run_one_trial(config, trial_rng(0, 0))
        assert result.confirmed == 0
        assert result.samples_taken == 0
        assert result.passes == 1

    def test_full_sampling_without_censorship(self):
        config = ExperimentConfig(n=4, n_clients=3, percent_censored=0.0, n_samples=16)
        result = run_one_trial(config, trial_rng(0, 0))
        assert result.reconstructed_fraction == 1.0
        assert result.available
        assert result.clients_satisfied == 3

    def test_censored_cells_recovered_in_2d(self):
        """With half the grid sampled, every censored cell comes back."""
        config = ExperimentConfig(n=8, dims=2, n_clients=1, percent_censored=0.25, n_samples=64)
        result = run_one_trial(config, trial_rng(9, 0))
        assert result.seed_confirmed == 64 - 16
        assert result.available
        assert result.censored_recovered == 16

    def test_single_sample_cannot_reconstruct(self):
        """n=4, half censored, one client with one sample: no line decodes."""
        config = ExperimentConfig(n=4, dims=2, n_clients=1, percent_censored=0.5, n_samples=1)
        for i in range(50):
            result = run_one_trial(config, trial_rng(2024, i), trial_index=i)
            assert result.n_censored == 8
            assert result.seed_confirmed <= 1
            assert result.confirmed == result.seed_confirmed

    def test_box_trial_records_truncation(self):
        with pytest.warns(RuntimeWarning):
            config = ExperimentConfig(
                n=4, n_clients=2, n_samples=5, sample_strategy=Box(width=4, height=2)
            )
        result = run_one_trial(config, trial_rng(0, 0))
        assert result.samples_requested == 10
        assert result.samples_taken == 4
        assert result.truncated


class TestRun:
    """Tests for aggregated runs."""

    def test_summary_deterministic(self):
        config = ExperimentConfig(n=8, n_clients=10, percent_censored=0.2, n_samples=4)
        a = run(config, n_trials=40, seed=7)
        b = run(config, n_trials=40, seed=7)
        assert a == b

    def test_workers_do_not_change_trials(self):
        config = ExperimentConfig(n=8, n_clients=10, percent_censored=0.3, n_samples=3)
        serial = run(config, n_trials=37, seed=11, n_workers=1, keep_trials=True)
        parallel = run(config, n_trials=37, seed=11, n_workers=4, keep_trials=True)

        assert serial.trials == parallel.trials
        assert [t.trial_index for t in parallel.trials] == list(range(37))
        assert parallel.mean_fraction == pytest.approx(serial.mean_fraction)
        assert parallel.var_fraction == pytest.approx(serial.var_fraction, abs=1e-12)
        assert parallel.success_rate == serial.success_rate

    def test_summary_matches_trials(self):
        config = ExperimentConfig(n=8, n_clients=6, percent_censored=0.1, n_samples=6)
        summary = run(config, n_trials=25, seed=3, keep_trials=True)
        fractions = np.array([t.reconstructed_fraction for t in summary.trials])

        assert summary.n_trials == 25
        assert summary.mean_fraction == pytest.approx(fractions.mean())
        assert summary.var_fraction == pytest.approx(fractions.var())
        assert summary.min_fraction == fractions.min()
        assert summary.max_fraction == fractions.max()
        assert summary.success_rate == pytest.approx(np.mean([t.available for t in summary.trials]))

    def test_mean_fraction_bounded_by_seed_when_sparse(self):
        """A single sample on a half-censored 4x4 grid never spreads."""
        config = ExperimentConfig(n=4, dims=2, n_clients=1, percent_censored=0.5, n_samples=1)
        summary = run(config, n_trials=200, seed=1)
        assert summary.mean_fraction == pytest.approx(summary.mean_seed_fraction)
        assert summary.mean_fraction <= 1 / 16
        # Roughly half the trials hit a censored cell
        assert 0.3 < summary.detection_rate < 0.7

    def test_fully_censored_summary(self):
        config = ExperimentConfig(n=8, n_clients=5, percent_censored=1.0, n_samples=0)
        summary = run(config, n_trials=10, seed=0)
        assert summary.mean_fraction == 0.0
        assert summary.max_fraction == 0.0
        assert summary.success_rate == 0.0
        assert summary.mean_recovered_censored == 0.0

    def test_more_clients_more_availability(self):
        base = ExperimentConfig(n=16, dims=2, n_clients=2, percent_censored=0.2, n_samples=10)
        few = run(base, n_trials=50, seed=5)
        many = run(base.with_changes(n_clients=40), n_trials=50, seed=5)
        assert many.mean_fraction > few.mean_fraction

    def test_two_dims_recover_more_than_one(self):
        base = ExperimentConfig(n=16, dims=1, n_clients=10, percent_censored=0.3, n_samples=10)
        one = run(base, n_trials=50, seed=5)
        two = run(base.with_changes(dims=2), n_trials=50, seed=5)
        assert two.mean_fraction >= one.mean_fraction

    def test_uncensored_recovery_undefined(self):
        config = ExperimentConfig(n=8, n_clients=2, percent_censored=0.0, n_samples=2)
        assert run(config, n_trials=5, seed=0).mean_recovered_censored is None

    @pytest.mark.parametrize("n_trials, n_workers", [(0, 1), (5, 0)])
    def test_invalid_run_arguments(self, n_trials, n_workers):
        with pytest.raises(ValueError):
            run(ExperimentConfig(), n_trials=n_trials, n_workers=n_workers)

    def test_unseeded_run(self):
        summary = run(ExperimentConfig(n=4, n_clients=1, n_samples=1), n_trials=3)
        assert summary.n_trials == 3


class TestSweeps:
    """Tests for the built-in sweep grids."""

    def test_small_grid_configs(self):
        configs = small_grid_configs(
            n_samples_values=(10,),
            n_clients_values=(50, 100),
            percent_censored_values=(0.0, 0.5),
            sizes=(16,),
        )
        assert len(configs) == 2 * 2 * 2
        assert {c.dims for c in configs} == {1, 2}

    def test_default_small_grid_size(self):
        assert len(small_grid_configs()) == 7 * 20 * 6 * 4 * 2

    def test_block_sampling_configs_skip_bad_tiles(self):
        configs = block_sampling_configs(
            n=16,
            target_cells=16,
            n_clients_values=(10,),
            percent_censored_values=(0.0,),
            box_sides=(1, 2, 3, 4, 8),
            dims_values=(2,),
        )
        for config in configs:
            box = config.sample_strategy
            assert box.width * box.height * config.n_samples == 16
            assert 3 not in (box.width, box.height)
        assert len(configs) == 13

    def test_run_sweep_shares_seed(self):
        configs = small_grid_configs(
            n_samples_values=(2,),
            n_clients_values=(3,),
            percent_censored_values=(0.5,),
            sizes=(8,),
            dims_values=(2, 2),
        )
        results = run_sweep(configs, n_trials=10, seed=17)
        assert len(results) == 2
        assert results[0][1] == results[1][1]
