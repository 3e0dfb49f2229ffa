from __future__ import annotations

from typing import Callable, Iterator, Tuple
import numpy as np

from .graph import InvalidGraphError, SparseGraph, lookup_values
from .reductions import row_normalize_max

CombineFn = Callable[[np.ndarray, np.ndarray], np.ndarray]


def fuzzy_union(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Probabilistic OR of two membership strengths: a + b - a*b."""
    return a + b - a * b


def iter_chunks(n: int, chunk_size: int) -> Iterator[Tuple[int, int]]:
    """Yield [start, stop) ranges covering range(n) in blocks of `chunk_size`."""
    chunk_size = int(chunk_size)
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}.")
    for start in range(0, int(n), chunk_size):
        yield start, min(start + chunk_size, int(n))


def transpose(graph: SparseGraph) -> SparseGraph:
    return SparseGraph(
        rows=graph.cols.copy(), cols=graph.rows.copy(), vals=graph.vals.copy(), n_rows=graph.n_rows
    )


def _from_keys(keys: np.ndarray, vals: np.ndarray, n_rows: int) -> SparseGraph:
    n = np.int64(max(int(n_rows), 1))
    return SparseGraph(rows=keys // n, cols=keys % n, vals=vals, n_rows=n_rows)


def symmetrize(
    graph: SparseGraph,
    combine: CombineFn = fuzzy_union,
    *,
    check: bool = True,
) -> SparseGraph:
    """Combine `graph` with its transpose over the union of both patterns.

    For every coordinate (i, j) present in G or G^T the output holds
    combine(a, b), with a = G[i, j] and b = G[j, i] (0 where absent). With
    the default fuzzy union the output is symmetric and sorted by row.
    """
    if check:
        graph.validate()
    if graph.nnz == 0:
        return SparseGraph.empty(graph.n_rows)

    keys = graph.keys()
    keys_t = transpose(graph).keys()
    out_keys = np.unique(np.concatenate([keys, keys_t]))

    a, _ = lookup_values(keys, graph.vals, out_keys, 0.0)
    b, _ = lookup_values(keys_t, graph.vals, out_keys, 0.0)
    return _from_keys(out_keys, combine(a, b), graph.n_rows)


def remove_zeros(graph: SparseGraph, *, eps: float = 0.0) -> SparseGraph:
    """Drop entries with |value| <= eps (exact zeros by default).

    Relative order of the kept entries is preserved, so a row-sorted input
    stays row-sorted. Idempotent.
    """
    keep = np.abs(graph.vals) > float(eps)
    return SparseGraph(
        rows=graph.rows[keep], cols=graph.cols[keep], vals=graph.vals[keep], n_rows=graph.n_rows
    )


def structural_union(left: SparseGraph, right: SparseGraph, *, check: bool = True) -> SparseGraph:
    """Row-aligned union of the nonzero patterns of two graphs.

    Only the pattern is meaningful: values of the returned graph are all 0.
    Output is sorted by (row, col) with each coordinate once.
    """
    if left.n_rows != right.n_rows:
        raise InvalidGraphError(
            f"Cannot combine graphs of different sizes ({left.n_rows} vs {right.n_rows})."
        )
    if check:
        left.validate()
        right.validate()
    keys = np.unique(np.concatenate([left.keys(), right.keys()]))
    return _from_keys(keys, np.zeros(keys.shape[0], dtype=np.float64), left.n_rows)


def reset_local_connectivity(graph: SparseGraph, *, verbose: bool = False) -> SparseGraph:
    """Row-index build -> l_inf row normalization -> fuzzy-union symmetrization.

    The input is validated once, by the row-index build.
    """
    index = graph.row_index()
    normed = row_normalize_max(graph, index)
    out = symmetrize(normed, fuzzy_union, check=False)
    if verbose:
        print(f"  reset local connectivity: nnz {graph.nnz} -> {out.nnz}")
    return out
