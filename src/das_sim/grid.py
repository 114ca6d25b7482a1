"""
Erasure-coded grid model for data availability sampling.

The grid is the *extended* matrix: a square of side n whose rows (and, in
2-D mode, columns) are erasure-coded lines. Each cell carries two flags:
- available: the publisher serves the cell (false once censored)
- confirmed: a client sample or a line reconstruction has verified it

No symbols are stored; the engine only tracks which cells are known.
"""

from typing import Iterable, Sequence
import numpy as np


Cell = tuple[int, int]


class Grid:
    """
    Availability state of an n x n erasure-coded matrix.

    Cells are addressed as (row, col) pairs; batch operations also accept
    flat indices ``row * n + col``, which is what the sampling strategies
    produce.

    Parameters:
        n: Side length of the extended grid (positive)
        dims: Number of encoding dimensions (1 = rows only, 2 = rows and columns)
    """

    def __init__(self, n: int, dims: int = 2):
        if n < 1:
            raise ValueError(f"grid side n must be positive, got {n}")
        if dims not in (1, 2):
            raise ValueError(f"dims must be 1 or 2, got {dims}")
        self.n = n
        self.dims = dims
        self.available = np.ones((n, n), dtype=bool)
        self.confirmed = np.zeros((n, n), dtype=bool)

    @property
    def total_cells(self) -> int:
        return self.n * self.n

    def _check_cell(self, cell: Cell) -> Cell:
        row, col = cell
        if not (0 <= row < self.n and 0 <= col < self.n):
            raise IndexError(f"cell {cell} outside {self.n}x{self.n} grid")
        return row, col

    def apply_censorship(self, cells: Iterable[Cell] | np.ndarray) -> int:
        """
        Withhold cells from every client.

        Args:
            cells: (row, col) pairs or flat indices

        Returns:
            Number of cells that are censored after the call
        """
        flat = self._as_flat(cells)
        self.available.flat[flat] = False
        # A withheld cell cannot carry a sample-based confirmation
        self.confirmed.flat[flat] = False
        return int(np.count_nonzero(~self.available))

    def mark_confirmed(self, cell: Cell) -> bool:
        """
        Confirm a single queried cell.

        A censored cell is simply not served: the call is a no-op and the
        confirmed flag is left untouched.

        Returns:
            Whether the cell is confirmed after the call
        """
        row, col = self._check_cell(cell)
        if self.available[row, col]:
            self.confirmed[row, col] = True
        return bool(self.confirmed[row, col])

    def mark_sampled(self, flat_indices: np.ndarray) -> int:
        """
        Confirm every served cell among a batch of queried flat indices.

        Returns:
            Number of distinct queried cells that were served
        """
        flat = np.unique(self._check_flat(flat_indices))
        served = flat[self.available.flat[flat]]
        self.confirmed.flat[served] = True
        return int(served.size)

    def all_served(self, flat_indices: np.ndarray) -> bool:
        """Whether every queried cell is available."""
        flat = self._check_flat(flat_indices)
        return bool(self.available.flat[flat].all())

    def is_confirmed(self, cell: Cell) -> bool:
        row, col = self._check_cell(cell)
        return bool(self.confirmed[row, col])

    def row(self, i: int) -> list[tuple[bool, bool]]:
        """Ordered (available, confirmed) pairs along row i."""
        return list(zip(self.available[i, :].tolist(), self.confirmed[i, :].tolist()))

    def col(self, j: int) -> list[tuple[bool, bool]]:
        """Ordered (available, confirmed) pairs along column j."""
        return list(zip(self.available[:, j].tolist(), self.confirmed[:, j].tolist()))

    def line_counts(self) -> tuple[np.ndarray, np.ndarray]:
        """Confirmed-cell counts per row and per column."""
        return self.confirmed.sum(axis=1), self.confirmed.sum(axis=0)

    def confirmed_count(self) -> int:
        return int(np.count_nonzero(self.confirmed))

    def censored_count(self) -> int:
        return int(np.count_nonzero(~self.available))

    def recovered_count(self) -> int:
        """Censored cells that reconstruction has confirmed."""
        return int(np.count_nonzero(self.confirmed & ~self.available))

    def reconstructed_fraction(self) -> float:
        return self.confirmed_count() / self.total_cells

    def copy(self) -> "Grid":
        clone = Grid(self.n, self.dims)
        clone.available = self.available.copy()
        clone.confirmed = self.confirmed.copy()
        return clone

    def _check_flat(self, flat_indices) -> np.ndarray:
        flat = np.asarray(flat_indices)
        if flat.size == 0:
            return np.empty(0, dtype=np.intp)
        if flat.ndim != 1 or not np.issubdtype(flat.dtype, np.integer):
            raise TypeError(f"expected a 1-D sequence of integer indices, got {flat_indices!r}")
        bad = (flat < 0) | (flat >= self.total_cells)
        if bad.any():
            raise IndexError(
                f"flat index {int(flat[bad][0])} outside {self.n}x{self.n} grid"
            )
        return flat.astype(np.intp)

    def _as_flat(self, cells: Iterable[Cell] | np.ndarray) -> np.ndarray:
        arr = np.asarray(cells if isinstance(cells, np.ndarray) else list(cells))
        if arr.ndim == 2 and arr.shape[1] == 2:
            pairs = [self._check_cell((int(r), int(c))) for r, c in arr.tolist()]
            rows, cols = zip(*pairs)
            return np.ravel_multi_index((rows, cols), (self.n, self.n))
        return self._check_flat(arr)

    @classmethod
    def from_confirmed(
        cls,
        confirmed: Sequence[Sequence[bool]],
        dims: int = 2,
        available: Sequence[Sequence[bool]] | None = None,
    ) -> "Grid":
        """
        Build a grid from explicit flag matrices (mostly useful in tests).

        Confirmed flags are set directly, so a censored cell may start out
        confirmed as if it had already been reconstructed.
        """
        confirmed_arr = np.asarray(confirmed, dtype=bool)
        n = confirmed_arr.shape[0]
        if confirmed_arr.shape != (n, n):
            raise ValueError(f"grid must be square, got shape {confirmed_arr.shape}")
        grid = cls(n, dims)
        if available is not None:
            available_arr = np.asarray(available, dtype=bool)
            if available_arr.shape != (n, n):
                raise ValueError("available and confirmed must have the same shape")
            grid.available = available_arr.copy()
        grid.confirmed = confirmed_arr.copy()
        return grid

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return (
            self.n == other.n
            and self.dims == other.dims
            and np.array_equal(self.available, other.available)
            and np.array_equal(self.confirmed, other.confirmed)
        )

    def __repr__(self) -> str:
        lines = [f"Grid(n={self.n}, dims={self.dims})"]
        for i in range(self.n):
            lines.append(" ".join(
                "X" if not self.available[i, j] else ("1" if self.confirmed[i, j] else "0")
                for j in range(self.n)
            ))
        return "\n".join(lines)
