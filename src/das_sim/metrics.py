"""
Trial records and their aggregation.

This module provides:
- TrialResult: the outcome of one randomized trial as named fields
- SummaryAccumulator: an associative fold of TrialResults, so partial
  accumulators built by different workers can be merged in any order
- ExperimentSummary: the aggregate statistics returned to callers

Means and variances use the pairwise (Chan et al.) update, which keeps
the fold associative up to floating-point summation order.
"""

from dataclasses import asdict, dataclass, field
from typing import Iterable, Optional
import numpy as np


@dataclass(frozen=True)
class TrialResult:
    """
    Outcome of a single trial.

    Attributes:
        trial_index: Position of the trial in the run (seeds its stream)
        n: Grid side
        dims: Encoding dimensions
        n_clients: Clients that sampled
        n_censored: Cells withheld by the publisher
        samples_requested: Sample units asked for across all clients
        samples_taken: Sample units actually drawn across all clients
        seed_confirmed: Cells confirmed directly by sampling
        confirmed: Cells confirmed after propagation
        total_cells: Cells in the grid
        reconstructed_fraction: confirmed / total_cells
        available: Whether the fraction reached the availability threshold
        clients_satisfied: Clients whose every query was served
        passes: Propagation passes until the fixpoint
        censored_recovered: Censored cells confirmed by reconstruction
    """
    trial_index: int
    n: int
    dims: int
    n_clients: int
    n_censored: int
    samples_requested: int
    samples_taken: int
    seed_confirmed: int
    confirmed: int
    total_cells: int
    reconstructed_fraction: float
    available: bool
    clients_satisfied: int
    passes: int
    censored_recovered: int = 0

    @property
    def seed_fraction(self) -> float:
        return self.seed_confirmed / self.total_cells

    @property
    def truncated(self) -> bool:
        return self.samples_taken < self.samples_requested

    def to_record(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ExperimentSummary:
    """
    Statistics folded over all trials of one configuration.

    Attributes:
        n_trials: Trials aggregated
        mean_fraction: Mean reconstructed fraction
        var_fraction: Population variance of the reconstructed fraction
        std_fraction: Standard deviation of the reconstructed fraction
        min_fraction: Smallest reconstructed fraction seen
        max_fraction: Largest reconstructed fraction seen
        success_rate: Fraction of trials classified available
        mean_seed_fraction: Mean fraction confirmed directly by sampling
        mean_clients_satisfied: Mean fraction of clients whose queries were all served
        detection_rate: Fraction of trials in which at least one client saw withholding
        mean_samples_taken: Mean sample units drawn per trial
        truncated_trials: Trials in which clients drew fewer units than requested
        mean_recovered_censored: Mean fraction of censored cells recovered
            (None when no trial censored anything)
        trials: Individual TrialResults, when kept
    """
    n_trials: int
    mean_fraction: float
    var_fraction: float
    std_fraction: float
    min_fraction: float
    max_fraction: float
    success_rate: float
    mean_seed_fraction: float
    mean_clients_satisfied: float
    detection_rate: float
    mean_samples_taken: float
    truncated_trials: int
    mean_recovered_censored: Optional[float] = None
    trials: tuple[TrialResult, ...] = field(default=(), repr=False, compare=False)

    def to_record(self) -> dict:
        record = asdict(self)
        record.pop("trials")
        return record


@dataclass
class SummaryAccumulator:
    """
    Mergeable running aggregate of TrialResults.

    ``add`` folds one trial; ``merge`` combines two accumulators. Both are
    order-independent apart from floating-point rounding.
    """
    count: int = 0
    mean: float = 0.0
    m2: float = 0.0
    min_fraction: float = float("inf")
    max_fraction: float = float("-inf")
    available: int = 0
    seed_fraction_sum: float = 0.0
    satisfied_fraction_sum: float = 0.0
    detected: int = 0
    samples_taken: int = 0
    truncated: int = 0
    censoring_trials: int = 0
    recovered_fraction_sum: float = 0.0

    def add(self, result: TrialResult) -> "SummaryAccumulator":
        x = result.reconstructed_fraction
        self.count += 1
        delta = x - self.mean
        self.mean += delta / self.count
        self.m2 += delta * (x - self.mean)
        self.min_fraction = min(self.min_fraction, x)
        self.max_fraction = max(self.max_fraction, x)
        self.available += int(result.available)
        self.seed_fraction_sum += result.seed_fraction
        if result.n_clients:
            self.satisfied_fraction_sum += result.clients_satisfied / result.n_clients
            self.detected += int(result.clients_satisfied < result.n_clients)
        else:
            self.satisfied_fraction_sum += 1.0
        self.samples_taken += result.samples_taken
        self.truncated += int(result.truncated)
        if result.n_censored:
            self.censoring_trials += 1
            self.recovered_fraction_sum += result.censored_recovered / result.n_censored
        return self

    def merge(self, other: "SummaryAccumulator") -> "SummaryAccumulator":
        """Combine two accumulators into a new one."""
        if other.count == 0:
            return SummaryAccumulator(**asdict(self))
        if self.count == 0:
            return SummaryAccumulator(**asdict(other))
        count = self.count + other.count
        delta = other.mean - self.mean
        return SummaryAccumulator(
            count=count,
            mean=self.mean + delta * other.count / count,
            m2=self.m2 + other.m2 + delta * delta * self.count * other.count / count,
            min_fraction=min(self.min_fraction, other.min_fraction),
            max_fraction=max(self.max_fraction, other.max_fraction),
            available=self.available + other.available,
            seed_fraction_sum=self.seed_fraction_sum + other.seed_fraction_sum,
            satisfied_fraction_sum=self.satisfied_fraction_sum + other.satisfied_fraction_sum,
            detected=self.detected + other.detected,
            samples_taken=self.samples_taken + other.samples_taken,
            truncated=self.truncated + other.truncated,
            censoring_trials=self.censoring_trials + other.censoring_trials,
            recovered_fraction_sum=self.recovered_fraction_sum + other.recovered_fraction_sum,
        )

    def summary(self, trials: Iterable[TrialResult] = ()) -> ExperimentSummary:
        if self.count == 0:
            raise ValueError("cannot summarize zero trials")
        var = max(0.0, self.m2 / self.count)
        return ExperimentSummary(
            n_trials=self.count,
            mean_fraction=self.mean,
            var_fraction=var,
            std_fraction=float(np.sqrt(var)),
            min_fraction=self.min_fraction,
            max_fraction=self.max_fraction,
            success_rate=self.available / self.count,
            mean_seed_fraction=self.seed_fraction_sum / self.count,
            mean_clients_satisfied=self.satisfied_fraction_sum / self.count,
            detection_rate=self.detected / self.count,
            mean_samples_taken=self.samples_taken / self.count,
            truncated_trials=self.truncated,
            mean_recovered_censored=(
                self.recovered_fraction_sum / self.censoring_trials
                if self.censoring_trials else None
            ),
            trials=tuple(trials),
        )


def summarize(results: Iterable[TrialResult], keep_trials: bool = False) -> ExperimentSummary:
    """Fold a sequence of TrialResults into an ExperimentSummary."""
    results = list(results)
    acc = SummaryAccumulator()
    for result in results:
        acc.add(result)
    return acc.summary(results if keep_trials else ())


def summary_header() -> list[str]:
    """Column names for one CSV row per configuration."""
    return [
        "dims", "n", "n_clients", "percent_censored", "n_samples", "strategy",
        "box_width", "box_height", "n_trials", "mean_fraction", "std_fraction",
        "success_rate", "mean_seed_fraction", "mean_clients_satisfied",
        "detection_rate", "mean_recovered_censored", "truncated_trials",
    ]


def summary_row(config, summary: ExperimentSummary) -> list[str]:
    """One CSV row for a configuration and its summary."""
    recovered = summary.mean_recovered_censored
    values = {
        **config.to_record(),
        "n_trials": summary.n_trials,
        "mean_fraction": f"{summary.mean_fraction:.10f}",
        "std_fraction": f"{summary.std_fraction:.10f}",
        "success_rate": f"{summary.success_rate:.10f}",
        "mean_seed_fraction": f"{summary.mean_seed_fraction:.10f}",
        "mean_clients_satisfied": f"{summary.mean_clients_satisfied:.10f}",
        "detection_rate": f"{summary.detection_rate:.10f}",
        "mean_recovered_censored": "" if recovered is None else f"{recovered:.10f}",
        "truncated_trials": summary.truncated_trials,
    }
    return [str(values[key]) for key in summary_header()]
