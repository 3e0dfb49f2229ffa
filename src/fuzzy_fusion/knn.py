from __future__ import annotations

from typing import Optional, Tuple
import numpy as np
from scipy import sparse
from sklearn.neighbors import NearestNeighbors
from tqdm.auto import tqdm

from .config import FusionConfig
from .graph import SparseGraph

SMOOTH_K_TOLERANCE = 1e-5
MIN_K_DIST_SCALE = 1e-3


def nearest_neighbors(
    points: np.ndarray,
    query_points: np.ndarray,
    k: int,
    *,
    metric: str = "euclidean",
) -> Tuple[np.ndarray, np.ndarray]:
    """k nearest neighbors of each query point among `points`.

    When query_points is points, each point is its own first neighbor
    (distance 0); the membership constructor gives such self edges weight 0.

    Returns
    -------
    indices: np.ndarray
        int64 array of shape (n_query, k).
    distances: np.ndarray
        float64 array of shape (n_query, k), ascending per row.
    """
    points = _as_2d(points)
    query_points = _as_2d(query_points)
    k = int(k)
    if k <= 0:
        raise ValueError(f"k must be positive, got {k}.")
    if k > points.shape[0]:
        raise ValueError(f"k={k} exceeds the number of points ({points.shape[0]}).")

    nn = NearestNeighbors(n_neighbors=k, metric=metric).fit(points)
    distances, indices = nn.kneighbors(query_points, n_neighbors=k)
    return indices.astype(np.int64), distances.astype(np.float64)


def _as_2d(x: np.ndarray) -> np.ndarray:
    x = np.asarray(x, dtype=np.float64)
    if x.ndim == 1:
        return x.reshape(-1, 1)
    return x


def smooth_knn_dist(
    distances: np.ndarray,
    k: int,
    *,
    local_connectivity: float = 1.0,
    n_iter: int = 64,
    bandwidth: float = 1.0,
    verbose: bool = False,
) -> Tuple[np.ndarray, np.ndarray]:
    """Per-point normalisation of kNN distances.

    rho[i] is the distance to the `local_connectivity`-th nonzero neighbor
    (interpolated), sigma[i] is found by binary search so that
        sum_j exp(-max(d_ij - rho_i, 0) / sigma_i) = log2(k) * bandwidth
    over the neighbors j >= 1.

    Returns (sigmas, rhos).
    """
    distances = np.asarray(distances, dtype=np.float64)
    n = distances.shape[0]
    target = np.log2(k) * float(bandwidth)
    rho = np.zeros(n, dtype=np.float64)
    sigmas = np.zeros(n, dtype=np.float64)
    mean_distances = float(np.mean(distances)) if distances.size else 0.0

    index = int(np.floor(local_connectivity))
    interp = float(local_connectivity) - index

    for i in tqdm(range(n), desc="Smooth kNN distances", disable=not verbose):
        ith = distances[i]
        non_zero = ith[ith > 0.0]
        if non_zero.shape[0] >= local_connectivity:
            if index > 0:
                rho[i] = non_zero[index - 1]
                if interp > SMOOTH_K_TOLERANCE and index < non_zero.shape[0]:
                    rho[i] += interp * (non_zero[index] - non_zero[index - 1])
            else:
                rho[i] = interp * non_zero[0]
        elif non_zero.shape[0] > 0:
            rho[i] = float(np.max(non_zero))

        lo, hi, mid = 0.0, np.inf, 1.0
        d = ith[1:] - rho[i]
        for _ in range(int(n_iter)):
            psum = float(np.sum(np.where(d > 0, np.exp(-np.maximum(d, 0.0) / mid), 1.0)))
            if abs(psum - target) < SMOOTH_K_TOLERANCE:
                break
            if psum > target:
                hi = mid
                mid = (lo + hi) / 2.0
            else:
                lo = mid
                mid = mid * 2 if hi == np.inf else (lo + hi) / 2.0

        # sigma never drops below a fraction of the mean neighbor distance
        scale = float(np.mean(ith)) if rho[i] > 0.0 else mean_distances
        sigmas[i] = max(mid, MIN_K_DIST_SCALE * scale)

    return sigmas, rho


def compute_membership_strengths(
    knn_indices: np.ndarray,
    knn_dists: np.ndarray,
    sigmas: np.ndarray,
    rhos: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Directed membership strengths exp(-(d - rho) / sigma), clipped at 1.

    Self edges get 0; neighbor slots marked -1 are skipped.
    """
    knn_indices = np.asarray(knn_indices, dtype=np.int64)
    knn_dists = np.asarray(knn_dists, dtype=np.float64)
    n, k = knn_indices.shape

    rows = np.repeat(np.arange(n, dtype=np.int64), k)
    cols = knn_indices.reshape(-1)
    d = (knn_dists - rhos[:, None]).reshape(-1)
    sig = np.repeat(np.asarray(sigmas, dtype=np.float64), k)

    vals = np.ones(n * k, dtype=np.float64)
    decay = (d > 0.0) & (sig > 0.0)
    vals[decay] = np.exp(-d[decay] / sig[decay])
    vals[cols == rows] = 0.0

    valid = cols >= 0
    return rows[valid], cols[valid], vals[valid]


def fuzzy_simplicial_set(
    n_rows: int,
    knn_indices: np.ndarray,
    knn_dists: np.ndarray,
    k: int,
    config: Optional[FusionConfig] = None,
) -> SparseGraph:
    """Membership-strength graph from a kNN graph.

    The directed strengths A are combined with their transpose as
        mix * (A + A^T - A * A^T) + (1 - mix) * (A * A^T)
    where mix = config.set_op_mix_ratio (1 = pure fuzzy union). The result is
    sorted by row and carries no explicit zeros.
    """
    if config is None:
        config = FusionConfig()
    knn_indices = np.asarray(knn_indices)
    if knn_indices.shape[0] != int(n_rows):
        raise ValueError(
            f"knn_indices has {knn_indices.shape[0]} rows, expected n_rows={n_rows}."
        )

    sigmas, rhos = smooth_knn_dist(
        knn_dists,
        int(k),
        local_connectivity=float(config.local_connectivity),
        verbose=bool(config.verbose),
    )
    rows, cols, vals = compute_membership_strengths(knn_indices, knn_dists, sigmas, rhos)

    result = sparse.coo_matrix((vals, (rows, cols)), shape=(int(n_rows), int(n_rows))).tocsr()
    result.eliminate_zeros()

    mix = float(config.set_op_mix_ratio)
    transpose = result.transpose().tocsr()
    prod = result.multiply(transpose)
    result = mix * (result + transpose - prod) + (1.0 - mix) * prod
    result = sparse.csr_matrix(result)
    result.eliminate_zeros()
    return SparseGraph.from_scipy(result)


def build_fuzzy_graph(
    points: np.ndarray,
    n_neighbors: int,
    config: Optional[FusionConfig] = None,
    *,
    metric: str = "euclidean",
) -> SparseGraph:
    """kNN search + fuzzy simplicial set over a point cloud."""
    points = _as_2d(points)
    indices, dists = nearest_neighbors(points, points, n_neighbors, metric=metric)
    return fuzzy_simplicial_set(points.shape[0], indices, dists, n_neighbors, config)
