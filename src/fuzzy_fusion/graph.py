from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
import pandas as pd
from scipy import sparse


class InvalidGraphError(ValueError):
    """Raised when a coordinate list does not describe a valid graph."""


@dataclass
class SparseGraph:
    """Weighted directed graph over `n_rows` samples in coordinate-list form.

    rows, cols, vals are parallel arrays of length nnz. Values are membership
    strengths in [0,1]. Row-indexed operations require the list to be sorted
    by row.
    """

    rows: np.ndarray              # int32 source indices
    cols: np.ndarray              # int32 target indices
    vals: np.ndarray              # float64 weights
    n_rows: int

    def __post_init__(self) -> None:
        self.rows = np.asarray(self.rows, dtype=np.int32)
        self.cols = np.asarray(self.cols, dtype=np.int32)
        self.vals = np.asarray(self.vals, dtype=np.float64)
        self.n_rows = int(self.n_rows)

    @property
    def nnz(self) -> int:
        return int(self.vals.shape[0])

    @classmethod
    def empty(cls, n_rows: int) -> "SparseGraph":
        return cls(
            rows=np.array([], dtype=np.int32),
            cols=np.array([], dtype=np.int32),
            vals=np.array([], dtype=np.float64),
            n_rows=n_rows,
        )

    @classmethod
    def from_scipy(cls, matrix: sparse.spmatrix) -> "SparseGraph":
        """Build from any scipy sparse matrix; output is sorted by (row, col)."""
        n, m = matrix.shape
        if n != m:
            raise InvalidGraphError(f"Graph matrix must be square, got shape {matrix.shape}.")
        csr = sparse.csr_matrix(matrix)
        csr.sum_duplicates()
        coo = csr.tocoo()
        return cls(rows=coo.row, cols=coo.col, vals=coo.data, n_rows=n)

    def to_scipy(self) -> sparse.coo_matrix:
        return sparse.coo_matrix(
            (self.vals, (self.rows, self.cols)),
            shape=(self.n_rows, self.n_rows),
            dtype=np.float64,
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"row": self.rows, "col": self.cols, "value": self.vals})

    def copy(self) -> "SparseGraph":
        return SparseGraph(
            rows=self.rows.copy(), cols=self.cols.copy(), vals=self.vals.copy(), n_rows=self.n_rows
        )

    def validate(self, *, require_sorted: bool = False) -> "SparseGraph":
        """Fail fast on malformed coordinate lists.

        Checks array shapes and lengths, index bounds, and (optionally) that
        the list is sorted by row. Returns self so calls can be chained.
        """
        if self.n_rows < 0:
            raise InvalidGraphError(f"n_rows must be non-negative, got {self.n_rows}.")
        for name, arr in (("rows", self.rows), ("cols", self.cols), ("vals", self.vals)):
            if arr.ndim != 1:
                raise InvalidGraphError(f"{name} must be 1-D, got shape {arr.shape}.")
        if not (self.rows.shape[0] == self.cols.shape[0] == self.vals.shape[0]):
            raise InvalidGraphError(
                "rows, cols and vals must have identical length "
                f"(got {self.rows.shape[0]}, {self.cols.shape[0]}, {self.vals.shape[0]})."
            )
        if self.nnz == 0:
            return self
        for name, arr in (("rows", self.rows), ("cols", self.cols)):
            lo, hi = int(arr.min()), int(arr.max())
            if lo < 0 or hi >= self.n_rows:
                raise InvalidGraphError(
                    f"{name} index out of range [0, {self.n_rows}): min={lo}, max={hi}."
                )
        if require_sorted and np.any(np.diff(self.rows) < 0):
            raise InvalidGraphError("Coordinate list is not sorted by row.")
        return self

    def sort_by_row(self) -> "SparseGraph":
        """Return a copy sorted by (row, col); stable for duplicate coordinates."""
        order = np.lexsort((self.cols, self.rows))
        return SparseGraph(
            rows=self.rows[order], cols=self.cols[order], vals=self.vals[order], n_rows=self.n_rows
        )

    def row_index(self, *, check: bool = True) -> np.ndarray:
        """Offsets of each row's first entry, length n_rows + 1.

        Row r occupies [index[r], index[r+1]); the last offset equals nnz.
        check=False skips validation for graphs already validated upstream.
        """
        if check:
            self.validate(require_sorted=True)
        counts = np.bincount(self.rows, minlength=self.n_rows)
        index = np.zeros(self.n_rows + 1, dtype=np.int64)
        np.cumsum(counts, out=index[1:])
        return index

    def row_bounds(self, row: int, index: np.ndarray | None = None) -> Tuple[int, int]:
        if index is None:
            index = self.row_index()
        return int(index[int(row)]), int(index[int(row) + 1])

    def keys(self) -> np.ndarray:
        """Row-major linear key per entry (row * n_rows + col)."""
        return self.rows.astype(np.int64) * np.int64(self.n_rows) + self.cols.astype(np.int64)


def lookup_values(
    keys: np.ndarray,
    vals: np.ndarray,
    query: np.ndarray,
    default: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Look up `query` keys among (keys, vals); absent keys get `default`.

    When a key occurs more than once the last stored entry wins.

    Returns
    -------
    out: np.ndarray
        Values aligned with `query`.
    found: np.ndarray
        Boolean mask of the keys that were present.
    """
    query = np.asarray(query, dtype=np.int64)
    out = np.full(query.shape[0], float(default), dtype=np.float64)
    if keys.shape[0] == 0 or query.shape[0] == 0:
        return out, np.zeros(query.shape[0], dtype=bool)

    order = np.argsort(keys, kind="stable")
    sorted_keys = keys[order]
    pos = np.searchsorted(sorted_keys, query, side="right") - 1
    found = pos >= 0
    found[found] = sorted_keys[pos[found]] == query[found]
    out[found] = vals[order[pos[found]]]
    return out, found
