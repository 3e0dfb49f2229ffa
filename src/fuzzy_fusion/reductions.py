from __future__ import annotations

from typing import Optional
import numpy as np

from .graph import SparseGraph


def value_min(graph: SparseGraph, *, default: float = 0.0) -> float:
    """Global minimum over all stored values (`default` for an empty graph)."""
    if graph.nnz == 0:
        return float(default)
    return float(np.min(graph.vals))


def value_max(graph: SparseGraph, *, default: float = 0.0) -> float:
    """Global maximum over all stored values (`default` for an empty graph)."""
    if graph.nnz == 0:
        return float(default)
    return float(np.max(graph.vals))


def row_max_abs(graph: SparseGraph, index: Optional[np.ndarray] = None) -> np.ndarray:
    """Per-row maximum of |value|; rows without entries get 0."""
    if index is None:
        index = graph.row_index()
    out = np.zeros(graph.n_rows, dtype=np.float64)
    if graph.nnz == 0:
        return out

    starts = index[:-1]
    nonempty = index[1:] > starts
    # reduceat needs in-range offsets, so only reduce over rows with entries
    out[nonempty] = np.maximum.reduceat(np.abs(graph.vals), starts[nonempty])
    return out


def row_normalize_max(graph: SparseGraph, index: Optional[np.ndarray] = None) -> SparseGraph:
    """l_inf row normalization: divide each row by its max |value|.

    Rows that are empty or all zero are left unchanged, so every other row
    ends with a maximum of exactly 1.
    """
    if index is None:
        index = graph.row_index()
    out = graph.copy()
    if out.nnz == 0:
        return out

    row_max = row_max_abs(out, index)
    scale = row_max[out.rows]
    mask = scale > 0
    out.vals[mask] = out.vals[mask] / scale[mask]
    return out
