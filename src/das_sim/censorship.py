"""
Censorship model: which cells the publisher withholds from every client.

The baseline policy withholds round(percent_censored * total_cells) cells
chosen uniformly at random without replacement.
"""

import numpy as np
from numpy.random import Generator


def n_censored_cells(percent_censored: float, total_cells: int) -> int:
    """
    Number of cells withheld for a censored fraction.

    Returns round(percent_censored * total_cells) clamped to [0, total_cells].
    """
    count = int(round(percent_censored * total_cells))
    return max(0, min(total_cells, count))


def select_censored(n: int, percent_censored: float, rng: Generator) -> np.ndarray:
    """
    Pick the censored cells of an n x n grid.

    Args:
        n: Grid side
        percent_censored: Fraction of cells to withhold in [0, 1]
        rng: Trial-local random generator

    Returns:
        Sorted flat indices of the censored cells
    """
    total = n * n
    count = n_censored_cells(percent_censored, total)
    if count == 0:
        return np.empty(0, dtype=np.intp)
    return np.sort(rng.choice(total, size=count, replace=False))
