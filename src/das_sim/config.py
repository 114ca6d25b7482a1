"""
Experiment configuration.

ExperimentConfig is a frozen value object validated once at construction,
so every invalid parameter combination fails before any trial runs.
"""

from dataclasses import dataclass, field, replace
import warnings

from das_sim.sampling import Box, RandomPoints, SampleStrategy, available_units, require_int


# Default number of randomized trials per configuration
DEFAULT_TRIALS = 500


@dataclass(frozen=True)
class ExperimentConfig:
    """
    One data-availability sampling experiment.

    Attributes:
        n: Side of the extended (erasure-coded) square grid
        dims: Encoding dimensions, 1 (rows only) or 2 (rows and columns)
        n_clients: Number of sampling clients per trial
        percent_censored: Fraction of cells withheld from every client
        n_samples: Sample units per client (cells, or tiles for Box)
        sample_strategy: RandomPoints() or Box(width, height)
        availability_threshold: Reconstructed fraction at which a trial
            counts as available (1.0 = the whole grid)
    """
    n: int = 16
    dims: int = 2
    n_clients: int = 50
    percent_censored: float = 0.0
    n_samples: int = 10
    sample_strategy: SampleStrategy = field(default_factory=RandomPoints)
    availability_threshold: float = 1.0

    def __post_init__(self) -> None:
        for name in ("n", "dims", "n_clients", "n_samples"):
            require_int(getattr(self, name), name)
        if self.n < 1:
            raise ValueError(f"n must be a positive integer, got {self.n}")
        if self.dims not in (1, 2):
            raise ValueError(f"dims must be 1 or 2, got {self.dims}")
        if self.n_clients < 0:
            raise ValueError(f"n_clients must be >= 0, got {self.n_clients}")
        if self.n_samples < 0:
            raise ValueError(f"n_samples must be >= 0, got {self.n_samples}")
        if self.n_samples > self.total_cells:
            raise ValueError(
                f"n_samples ({self.n_samples}) exceeds total cells ({self.total_cells})"
            )
        if not 0.0 <= self.percent_censored <= 1.0:
            raise ValueError(
                f"percent_censored must be in [0, 1], got {self.percent_censored}"
            )
        if not 0.0 < self.availability_threshold <= 1.0:
            raise ValueError(
                f"availability_threshold must be in (0, 1], got {self.availability_threshold}"
            )
        if isinstance(self.sample_strategy, Box):
            self.sample_strategy.check_fits(self.n)
        elif not isinstance(self.sample_strategy, RandomPoints):
            raise ValueError(f"unknown sampling strategy: {self.sample_strategy!r}")

        units = available_units(self.sample_strategy, self.n)
        if self.n_samples > units:
            warnings.warn(
                f"n_samples={self.n_samples} exceeds the {units} distinct units of "
                f"{self.sample_strategy} on a {self.n}x{self.n} grid; "
                f"each client will take {units}",
                RuntimeWarning,
                stacklevel=3,
            )

    @property
    def total_cells(self) -> int:
        return self.n * self.n

    @property
    def samples_per_client(self) -> int:
        """Sample units each client can actually draw."""
        return min(self.n_samples, available_units(self.sample_strategy, self.n))

    def with_changes(self, **changes) -> "ExperimentConfig":
        """Copy with some fields replaced (re-validated)."""
        return replace(self, **changes)

    def to_record(self) -> dict:
        """Flat parameter record for tabular output."""
        if isinstance(self.sample_strategy, Box):
            box_width, box_height = self.sample_strategy.width, self.sample_strategy.height
        else:
            box_width, box_height = 1, 1
        return {
            "dims": self.dims,
            "n": self.n,
            "n_clients": self.n_clients,
            "percent_censored": self.percent_censored,
            "n_samples": self.n_samples,
            "strategy": "box" if isinstance(self.sample_strategy, Box) else "random",
            "box_width": box_width,
            "box_height": box_height,
        }
