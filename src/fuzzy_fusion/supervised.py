"""Fusion of a feature graph with label information.

Two entry points produce the supervised graph handed to the layout step:

- fuse_categorical: discrete labels (-1 = unknown) attenuate edges whose
  endpoints disagree or are unlabeled.
- fuse_continuous: continuous labels are turned into their own fuzzy graph,
  which is intersected with the feature graph by a weighted blend.

Both finish with reset_local_connectivity.
"""

from __future__ import annotations

from typing import Callable, Optional, Tuple
import numpy as np
import pandas as pd
from tqdm.auto import tqdm

from .config import FusionConfig
from .graph import SparseGraph, lookup_values
from .knn import fuzzy_simplicial_set, nearest_neighbors
from .ops import iter_chunks, remove_zeros, reset_local_connectivity, structural_union
from .reductions import value_min

UNKNOWN_LABEL = -1
MIN_FLOOR = 1e-8

KnnFn = Callable[..., Tuple[np.ndarray, np.ndarray]]
FuzzySetFn = Callable[..., SparseGraph]


def _check_categorical_labels(labels: np.ndarray, n_rows: int) -> np.ndarray:
    labels = np.asarray(labels)
    if labels.ndim != 1 or labels.shape[0] != int(n_rows):
        raise ValueError(
            f"Expected one label per sample ({n_rows}), got array of shape {labels.shape}."
        )
    if labels.shape[0] == 0:
        return labels.astype(np.int64)
    if not np.issubdtype(labels.dtype, np.integer):
        labels = np.asarray(labels, dtype=np.float64)
        if not np.all(np.isfinite(labels)) or np.any(labels != np.round(labels)):
            raise ValueError("Categorical labels must be integer codes.")
    labels = labels.astype(np.int64)
    if int(labels.min()) < UNKNOWN_LABEL:
        raise ValueError(
            "Categorical labels must be non-negative, with -1 reserved for unknown "
            f"(got min={int(labels.min())})."
        )
    return labels


def categorical_label_weighting(
    graph: SparseGraph,
    labels: np.ndarray,
    *,
    far_dist: float = FusionConfig.far_dist,
    unknown_dist: float = FusionConfig.unknown_dist,
    chunk_size: int = FusionConfig.chunk_size,
    verbose: bool = False,
) -> SparseGraph:
    """Scale each edge by the label agreement of its endpoints.

    Edges touching an unknown label (-1) are multiplied by exp(-unknown_dist),
    edges between different labels by exp(-far_dist); the rest are kept.
    Defaults are the FusionConfig baselines (far_dist=5, unknown_dist=1).
    Returns a new graph with the same coordinates.
    """
    graph.validate()
    labels = _check_categorical_labels(labels, graph.n_rows)
    out = graph.copy()

    unknown_factor = float(np.exp(-float(unknown_dist)))
    # float64 exp of a large negative argument underflows to exactly 0
    far_factor = float(np.exp(-float(far_dist)))

    chunks = list(iter_chunks(out.nnz, chunk_size))
    for start, stop in tqdm(chunks, desc="Label weighting", disable=not verbose):
        li = labels[out.rows[start:stop]]
        lj = labels[out.cols[start:stop]]
        unknown = (li == UNKNOWN_LABEL) | (lj == UNKNOWN_LABEL)
        factor = np.where(unknown, unknown_factor, np.where(li != lj, far_factor, 1.0))
        out.vals[start:stop] *= factor
    return out


def fuse_categorical(
    graph: SparseGraph,
    labels: np.ndarray,
    config: Optional[FusionConfig] = None,
) -> SparseGraph:
    """Supervised graph from categorical labels.

    far_dist is derived from config.target_weights (2.5 / (1 - w), or a
    saturating constant at w >= 1). Edges are attenuated by label agreement,
    zeros are pruned and local connectivity is reset.
    """
    if config is None:
        config = FusionConfig()
    graph.validate(require_sorted=True)
    far_dist = config.derived_far_dist()
    if config.verbose:
        print(f"Categorical fusion: nnz={graph.nnz}, far_dist={far_dist:g}, "
              f"unknown_dist={float(config.unknown_dist):g}")

    weighted = categorical_label_weighting(
        graph,
        labels,
        far_dist=far_dist,
        unknown_dist=float(config.unknown_dist),
        chunk_size=int(config.chunk_size),
        verbose=bool(config.verbose),
    )
    pruned = remove_zeros(weighted)
    if config.verbose:
        print(f"  pruned zero edges: {weighted.nnz} -> {pruned.nnz}")
    return reset_local_connectivity(pruned, verbose=bool(config.verbose))


def floor_values(left: SparseGraph, right: SparseGraph) -> Tuple[float, float]:
    """Implicit weights for edges missing on one side: max(min / 2, 1e-8)."""
    left_min = max(value_min(left) / 2.0, MIN_FLOOR)
    right_min = max(value_min(right) / 2.0, MIN_FLOOR)
    return left_min, right_min


def blend_intersection(
    left_val: np.ndarray,
    right_val: np.ndarray,
    left_min: float,
    right_min: float,
    mix_weight: float,
) -> np.ndarray:
    """Weighted blend of aligned left/right memberships.

    Coordinates where both sides sit at their floor stay 0. Otherwise
        w < 0.5: left * right ** (w / (1 - w))
        w > 0.5: left ** ((1 - w) / w) * right
    At exactly w == 0.5 neither rule applies and every value stays 0.
    """
    left_val = np.asarray(left_val, dtype=np.float64)
    right_val = np.asarray(right_val, dtype=np.float64)
    result = np.zeros(left_val.shape[0], dtype=np.float64)

    active = (left_val > left_min) | (right_val > right_min)
    w = float(mix_weight)
    if w < 0.5:
        result[active] = left_val[active] * np.power(right_val[active], w / (1.0 - w))
    elif w > 0.5:
        result[active] = np.power(left_val[active], (1.0 - w) / w) * right_val[active]
    return result


def general_intersection(
    left: SparseGraph,
    right: SparseGraph,
    mix_weight: float,
    *,
    chunk_size: int = FusionConfig.chunk_size,
    verbose: bool = False,
) -> SparseGraph:
    """Blend two fuzzy graphs over the union of their patterns.

    Both graphs must be sorted by row. The output has one entry per
    coordinate of the structural union, sorted by row, and may contain
    zeros (see blend_intersection).
    """
    if left.n_rows != right.n_rows:
        raise ValueError(
            f"Graphs must have the same number of rows ({left.n_rows} vs {right.n_rows})."
        )
    left_index = left.row_index()
    right_index = right.row_index()

    result = structural_union(left, right, check=False)
    result_index = result.row_index(check=False)
    left_min, right_min = floor_values(left, right)
    if verbose:
        print(f"General intersection: nnz {left.nnz} + {right.nnz} -> {result.nnz}, "
              f"left_min={left_min:.3g}, right_min={right_min:.3g}")

    left_keys, right_keys, result_keys = left.keys(), right.keys(), result.keys()
    chunks = list(iter_chunks(result.n_rows, chunk_size))
    for r0, r1 in tqdm(chunks, desc="Simplicial set intersection", disable=not verbose):
        u0, u1 = int(result_index[r0]), int(result_index[r1])
        if u0 == u1:
            continue
        a0, a1 = int(left_index[r0]), int(left_index[r1])
        b0, b1 = int(right_index[r0]), int(right_index[r1])
        query = result_keys[u0:u1]

        left_val, _ = lookup_values(left_keys[a0:a1], left.vals[a0:a1], query, left_min)
        right_val, _ = lookup_values(right_keys[b0:b1], right.vals[b0:b1], query, right_min)
        result.vals[u0:u1] = blend_intersection(left_val, right_val, left_min, right_min, mix_weight)
    return result


def _dump_knn(indices: np.ndarray, dists: np.ndarray, max_rows: int = 10) -> None:
    print("Target kNN Graph")
    print(pd.DataFrame(np.asarray(indices)[:max_rows]).to_string())
    print(pd.DataFrame(np.asarray(dists)[:max_rows]).to_string(float_format=lambda x: f"{x:.4f}"))


def fuse_continuous(
    graph: SparseGraph,
    target: np.ndarray,
    config: Optional[FusionConfig] = None,
    *,
    knn_fn: KnnFn = nearest_neighbors,
    fuzzy_set_fn: FuzzySetFn = fuzzy_simplicial_set,
) -> SparseGraph:
    """Supervised graph from continuous labels.

    Parameters
    ----------
    graph:
        Feature fuzzy graph, sorted by row.
    target:
        Label vectors, shape (n_rows,) or (n_rows, d).
    config:
        target_n_neighbors sets k for the label-space kNN graph,
        target_weights the blend (0 keeps the feature graph, 1 the label graph;
        exactly 0.5 blends nothing and yields an empty graph). target_metric
        is the label-space metric; "categorical" falls back to euclidean.
        Defaults to FusionConfig(target_weights=0.6, target_metric="euclidean").
    knn_fn:
        Neighbor-graph provider: (points, query_points, k, metric=...) ->
        (indices, distances), each of shape (n_rows, k).
    fuzzy_set_fn:
        Fuzzy-set constructor: (n_rows, indices, distances, k, config) ->
        row-sorted SparseGraph.

    Returns
    -------
    SparseGraph
        Symmetric, row-normalized fused graph.
    """
    if config is None:
        config = FusionConfig(target_weights=0.6, target_metric="euclidean")
    graph.validate(require_sorted=True)
    y = np.asarray(target, dtype=np.float64)
    if y.ndim == 1:
        y = y.reshape(-1, 1)
    if y.ndim != 2 or y.shape[0] != graph.n_rows:
        raise ValueError(
            f"Expected one target vector per sample ({graph.n_rows}), got shape {y.shape}."
        )

    k = int(config.target_n_neighbors)
    metric = config.target_metric
    if metric == "categorical":
        metric = "euclidean"
        if config.verbose:
            print("Continuous fusion: target_metric='categorical', using euclidean for the label kNN graph")
    if config.target_weights == 0.5:
        print("Continuous fusion: target_weights=0.5 has no blend rule; "
              "every edge stays 0 and the fused graph is empty")
    indices, dists = knn_fn(y, y, k, metric=metric)
    if config.verbose:
        _dump_knn(indices, dists)

    target_graph = fuzzy_set_fn(graph.n_rows, indices, dists, k, config)
    if config.verbose:
        print("Target Fuzzy Simplicial Set")
        print(target_graph.to_frame().head(20).to_string(index=False))

    target_graph = remove_zeros(target_graph)
    result = general_intersection(
        graph,
        target_graph,
        config.target_weights,
        chunk_size=int(config.chunk_size),
        verbose=bool(config.verbose),
    )
    result = remove_zeros(result)
    if config.verbose:
        print(f"  blended graph after pruning: nnz={result.nnz}")
    return reset_local_connectivity(result, verbose=bool(config.verbose))


def fuse_labels(
    graph: SparseGraph,
    y: np.ndarray,
    config: Optional[FusionConfig] = None,
) -> SparseGraph:
    """Dispatch on config.target_metric: categorical codes or continuous targets."""
    if config is None:
        config = FusionConfig()
    if config.target_metric == "categorical":
        return fuse_categorical(graph, y, config)
    return fuse_continuous(graph, y, config)
