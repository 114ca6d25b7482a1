"""
Row/column reconstruction over an erasure-coded grid.

A line (row or column) of length L can be decoded once at least
ceil(L / 2) of its cells are confirmed: the code doubles the original
data, so any half of the extended line determines the rest. Decoding
confirms every cell in the line, censored cells included.

Propagation alternates a row pass and, in 2-D mode, a column pass until a
full pass confirms nothing new. Each productive pass completes at least
one of the 2n lines, so at most 2n productive passes can occur.
"""

from dataclasses import dataclass
import logging
import numpy as np

from das_sim.grid import Cell, Grid


logger = logging.getLogger(__name__)


def reconstruction_threshold(length: int) -> int:
    """Confirmed cells needed to decode a line of the given length."""
    if length < 1:
        raise ValueError(f"line length must be positive, got {length}")
    return (length + 1) // 2


@dataclass(frozen=True)
class ReconstructionOutcome:
    """
    Terminal state of one propagation run.

    Attributes:
        confirmed: Confirmed cells at the fixpoint
        total_cells: Cells in the grid
        passes: Propagation passes executed, including the final no-op pass
        fraction: confirmed / total_cells
    """
    confirmed: int
    total_cells: int
    passes: int
    fraction: float

    def is_available(self, threshold: float = 1.0) -> bool:
        return self.fraction >= threshold


def seed_sampled(grid: Grid, selections) -> int:
    """
    Sampling phase: confirm every served cell queried by any client.

    Args:
        grid: Grid with censorship already applied
        selections: Iterable of flat-index arrays, one per client

    Returns:
        Number of confirmed cells after seeding
    """
    for cells in selections:
        grid.mark_sampled(cells)
    return grid.confirmed_count()


def _reconstruct_rows(confirmed: np.ndarray) -> bool:
    """Decode every incomplete row at or above threshold. Returns whether anything changed."""
    length = confirmed.shape[1]
    counts = confirmed.sum(axis=1)
    decodable = (counts >= reconstruction_threshold(length)) & (counts < length)
    if not decodable.any():
        return False
    confirmed[decodable, :] = True
    return True


def row_pass(grid: Grid) -> bool:
    return _reconstruct_rows(grid.confirmed)


def column_pass(grid: Grid) -> bool:
    # Transposed view: writes land in grid.confirmed
    return _reconstruct_rows(grid.confirmed.T)


def propagate(grid: Grid) -> ReconstructionOutcome:
    """
    Run reconstruction passes to a fixpoint, mutating grid.confirmed.

    Returns:
        ReconstructionOutcome describing the fixpoint

    Raises:
        RuntimeError: if the grid is not square or the pass bound is exceeded
    """
    if grid.confirmed.shape != (grid.n, grid.n):
        raise RuntimeError(
            f"confirmed flags have shape {grid.confirmed.shape}, expected ({grid.n}, {grid.n})"
        )
    max_productive = 2 * grid.n
    passes = 0
    while True:
        passes += 1
        changed = row_pass(grid)
        if grid.dims == 2:
            changed = column_pass(grid) or changed
        if not changed:
            break
        if passes > max_productive:
            raise RuntimeError(
                f"reconstruction did not reach a fixpoint within {max_productive} passes"
            )

    confirmed = grid.confirmed_count()
    logger.debug("fixpoint after %d passes: %d/%d confirmed", passes, confirmed, grid.total_cells)
    return ReconstructionOutcome(
        confirmed=confirmed,
        total_cells=grid.total_cells,
        passes=passes,
        fraction=confirmed / grid.total_cells,
    )


def can_reconstruct(grid: Grid, cell: Cell) -> bool:
    """
    Whether a cell is known or recoverable from the grid's confirmed cells.

    Propagation runs on a copy; the grid itself is left untouched.
    """
    if grid.is_confirmed(cell):
        return True
    scratch = grid.copy()
    propagate(scratch)
    return scratch.is_confirmed(cell)
