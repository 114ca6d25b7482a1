"""
Client sampling strategies.

A strategy is one of a closed set of variants:
- RandomPoints: independent uniformly random cells
- Box(width, height): whole width x height tiles of a fixed partition,
  modelling spatially correlated queries

Every variant is served through the single ``select`` entry point.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Union
import numpy as np
from numpy.random import Generator

if TYPE_CHECKING:
    from das_sim.config import ExperimentConfig


def require_int(value: object, name: str) -> None:
    """Raise ValueError unless value is an integer (booleans rejected)."""
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class RandomPoints:
    """Query n_samples distinct cells drawn uniformly from the grid."""

    def __str__(self) -> str:
        return "random"


@dataclass(frozen=True)
class Box:
    """
    Query n_samples distinct whole tiles of a width x height partition.

    Attributes:
        width: Tile width in cells; must divide the grid side
        height: Tile height in cells; must divide the grid side
    """
    width: int
    height: int

    def __post_init__(self) -> None:
        require_int(self.width, "box width")
        require_int(self.height, "box height")
        if self.width < 1 or self.height < 1:
            raise ValueError(
                f"box dimensions must be positive, got {self.width}x{self.height}"
            )

    def __str__(self) -> str:
        return f"box:{self.width}x{self.height}"

    def check_fits(self, n: int) -> None:
        """Raise ValueError unless the tiles evenly partition an n x n grid."""
        if n % self.width or n % self.height:
            raise ValueError(
                f"box {self.width}x{self.height} does not evenly divide a {n}x{n} grid"
            )

    def tile_count(self, n: int) -> int:
        return (n // self.width) * (n // self.height)

    def tile_cells(self, n: int, tiles: np.ndarray) -> np.ndarray:
        """Flat indices of every cell covered by the given tile numbers."""
        tiles_per_row = n // self.width
        tile_rows, tile_cols = np.divmod(np.asarray(tiles, dtype=np.intp), tiles_per_row)
        starts = tile_rows * self.height * n + tile_cols * self.width
        offsets = (np.arange(self.height)[:, None] * n + np.arange(self.width)[None, :]).ravel()
        return (starts[:, None] + offsets[None, :]).ravel()


SampleStrategy = Union[RandomPoints, Box]


@dataclass(frozen=True)
class Selection:
    """
    Cells queried by one client.

    Cells are stored as flat indices ``row * n + col``; ``coordinates(n)``
    gives the same cells as (row, col) pairs.

    Attributes:
        cells: Flat indices of the queried cells
        requested: Sample units asked for (cells or tiles)
        taken: Sample units actually drawn; below requested when the grid
            has fewer distinct units than requested
    """
    cells: np.ndarray
    requested: int
    taken: int

    @property
    def truncated(self) -> bool:
        return self.taken < self.requested

    def coordinates(self, n: int) -> set[tuple[int, int]]:
        """Queried cells as (row, col) pairs of an n x n grid."""
        rows, cols = np.divmod(self.cells, n)
        return set(zip(rows.tolist(), cols.tolist()))


def available_units(strategy: SampleStrategy, n: int) -> int:
    """Distinct sample units (cells or tiles) a client can draw from."""
    if isinstance(strategy, Box):
        return strategy.tile_count(n)
    if isinstance(strategy, RandomPoints):
        return n * n
    raise TypeError(f"unknown sampling strategy: {strategy!r}")


def draw(strategy: SampleStrategy, n: int, n_samples: int, rng: Generator) -> Selection:
    """
    Draw one client's queries from an n x n grid.

    Units are drawn without replacement; when n_samples exceeds the number
    of distinct units every unit is returned.
    """
    units = available_units(strategy, n)
    taken = min(n_samples, units)
    picked = rng.choice(units, size=taken, replace=False) if taken else np.empty(0, dtype=np.intp)
    if isinstance(strategy, Box):
        cells = strategy.tile_cells(n, picked)
    else:
        cells = np.asarray(picked, dtype=np.intp)
    return Selection(cells=cells, requested=n_samples, taken=taken)


def select(client_id: int, config: "ExperimentConfig", rng: Generator) -> Selection:
    """
    Choose the cells queried by one client under the configured strategy.

    Clients draw independently from the shared trial generator, so two
    clients may overlap. ``client_id`` only labels the draw.

    Args:
        client_id: Index of the client within the trial
        config: Validated experiment configuration
        rng: Trial-local random generator

    Returns:
        Selection with the queried cells and the sample counts
    """
    if client_id < 0:
        raise ValueError(f"client_id must be non-negative, got {client_id}")
    return draw(config.sample_strategy, config.n, config.n_samples, rng)


def parse_strategy(text: str) -> SampleStrategy:
    """
    Parse a strategy name: ``random`` or ``box:WxH`` (e.g. ``box:4x2``).
    """
    text = text.strip().lower()
    if text in ("random", "random-points", "randompoints"):
        return RandomPoints()
    if text.startswith("box:"):
        dims = text[4:].split("x")
        if len(dims) == 2 and all(d.strip().isdigit() for d in dims):
            return Box(width=int(dims[0]), height=int(dims[1]))
    raise ValueError(f"unknown sampling strategy {text!r}; expected 'random' or 'box:WxH'")
