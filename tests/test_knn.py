import numpy as np
import pytest

from conftest import assert_symmetric
from fuzzy_fusion import FusionConfig, fuzzy_simplicial_set, nearest_neighbors
from fuzzy_fusion.knn import compute_membership_strengths, smooth_knn_dist


def _points():
    return np.array([[0.0], [1.0], [3.0], [7.0], [8.0]])


def test_nearest_neighbors_includes_self() -> None:
    indices, dists = nearest_neighbors(_points(), _points(), 2)
    assert indices.shape == (5, 2)
    assert indices[:, 0].tolist() == [0, 1, 2, 3, 4]
    assert dists[:, 0] == pytest.approx(np.zeros(5))
    assert indices[0, 1] == 1 and dists[0, 1] == pytest.approx(1.0)


def test_nearest_neighbors_accepts_1d_targets() -> None:
    indices, _ = nearest_neighbors(np.array([0.0, 5.0, 1.0]), np.array([0.0, 5.0, 1.0]), 2)
    assert indices[0].tolist() == [0, 2]


def test_nearest_neighbors_rejects_large_k() -> None:
    with pytest.raises(ValueError):
        nearest_neighbors(_points(), _points(), 6)


def test_smooth_knn_dist_hits_target() -> None:
    _, dists = nearest_neighbors(_points(), _points(), 3)
    sigmas, rhos = smooth_knn_dist(dists, 3)
    assert np.all(sigmas > 0)
    # rho is the distance to the nearest non-self neighbor
    assert rhos.tolist() == pytest.approx([1.0, 1.0, 2.0, 1.0, 1.0])
    for i in range(5):
        d = np.maximum(dists[i, 1:] - rhos[i], 0.0)
        assert np.sum(np.exp(-d / sigmas[i])) == pytest.approx(np.log2(3), abs=1e-3)


def test_membership_strengths_zero_self_and_one_nearest() -> None:
    indices, dists = nearest_neighbors(_points(), _points(), 3)
    sigmas, rhos = smooth_knn_dist(dists, 3)
    rows, cols, vals = compute_membership_strengths(indices, dists, sigmas, rhos)
    assert np.all(vals[rows == cols] == 0.0)
    assert np.all((vals >= 0.0) & (vals <= 1.0))
    nearest = (rows == 0) & (cols == 1)
    assert vals[nearest] == pytest.approx([1.0])


def test_fuzzy_simplicial_set_is_symmetric_and_sorted() -> None:
    indices, dists = nearest_neighbors(_points(), _points(), 3)
    g = fuzzy_simplicial_set(5, indices, dists, 3, FusionConfig())
    assert_symmetric(g)
    assert np.all(np.diff(g.rows) >= 0)
    assert np.all(g.rows != g.cols)
    assert np.all((g.vals > 0.0) & (g.vals <= 1.0))


def test_fuzzy_simplicial_set_intersection_mix_is_sparser() -> None:
    indices, dists = nearest_neighbors(_points(), _points(), 2)
    union = fuzzy_simplicial_set(5, indices, dists, 2, FusionConfig(set_op_mix_ratio=1.0))
    inter = fuzzy_simplicial_set(5, indices, dists, 2, FusionConfig(set_op_mix_ratio=0.0))
    assert inter.nnz <= union.nnz


def test_fuzzy_simplicial_set_row_mismatch() -> None:
    indices, dists = nearest_neighbors(_points(), _points(), 2)
    with pytest.raises(ValueError):
        fuzzy_simplicial_set(4, indices, dists, 2)
