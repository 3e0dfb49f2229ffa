import math

import numpy as np
import pytest

from conftest import as_dict, assert_symmetric
from fuzzy_fusion import FusionConfig, SparseGraph, fuse_categorical, fuse_labels
from fuzzy_fusion.graph import InvalidGraphError
from fuzzy_fusion.supervised import categorical_label_weighting

LABELS = np.array([0, 0, 1, -1])


def test_label_weighting_rules(four_point_graph) -> None:
    out = categorical_label_weighting(four_point_graph, LABELS, far_dist=25.0, unknown_dist=1.0)
    edges = as_dict(out)
    assert edges[(0, 1)] == pytest.approx(0.8)
    assert edges[(1, 0)] == pytest.approx(0.8)
    assert edges[(0, 2)] == pytest.approx(0.3 * math.exp(-25.0))
    assert edges[(2, 0)] == pytest.approx(0.3 * math.exp(-25.0))
    assert edges[(2, 3)] == pytest.approx(0.5 * math.exp(-1.0))
    assert edges[(3, 2)] == pytest.approx(0.5 * math.exp(-1.0))
    # input is not modified
    assert four_point_graph.vals[1] == pytest.approx(0.3)


def test_label_weighting_chunking_does_not_change_values(four_point_graph) -> None:
    a = categorical_label_weighting(four_point_graph, LABELS, far_dist=5.0, chunk_size=1)
    b = categorical_label_weighting(four_point_graph, LABELS, far_dist=5.0, chunk_size=1000)
    assert np.array_equal(a.vals, b.vals)


def test_label_weighting_accepts_integral_floats(four_point_graph) -> None:
    out = categorical_label_weighting(four_point_graph, LABELS.astype(float), far_dist=25.0)
    assert as_dict(out)[(2, 3)] == pytest.approx(0.5 * math.exp(-1.0))


@pytest.mark.parametrize(
    "labels",
    [np.array([0, 0, 1]), np.array([0, 0, 1, -2]), np.array([0.0, 0.5, 1.0, 1.0])],
)
def test_label_weighting_rejects_bad_labels(four_point_graph, labels) -> None:
    with pytest.raises(ValueError):
        categorical_label_weighting(four_point_graph, labels)


def test_end_to_end_example(four_point_graph) -> None:
    out = fuse_categorical(four_point_graph, LABELS, FusionConfig(target_weights=0.9))
    assert_symmetric(out)
    edges = as_dict(out)

    assert edges[(0, 1)] == pytest.approx(1.0)
    assert edges[(2, 3)] == pytest.approx(1.0)

    # row 0 is scaled by 1/0.8 and row 2 by 1/(0.5 e^-1) before the union
    a = 0.3 * math.exp(-25.0) / 0.8
    b = 0.3 * math.exp(-25.0) / (0.5 * math.exp(-1.0))
    assert edges[(0, 2)] == pytest.approx(a + b - a * b, rel=1e-9)

    index = out.row_index()
    for r in range(out.n_rows):
        lo, hi = out.row_bounds(r, index)
        assert np.max(out.vals[lo:hi]) <= 1.0 + 1e-12


def test_full_label_weight_drops_cross_label_edges(four_point_graph) -> None:
    out = fuse_categorical(four_point_graph, LABELS, FusionConfig(target_weights=1.0))
    edges = as_dict(out)
    assert (0, 2) not in edges and (2, 0) not in edges
    assert edges[(0, 1)] == pytest.approx(1.0)
    assert np.all(np.isfinite(out.vals))


def test_empty_graph_propagates() -> None:
    out = fuse_categorical(SparseGraph.empty(3), np.array([0, 1, -1]), FusionConfig(target_weights=0.5))
    assert out.nnz == 0
    assert out.n_rows == 3


def test_unsorted_graph_fails_fast() -> None:
    g = SparseGraph(rows=[1, 0], cols=[0, 1], vals=[0.5, 0.5], n_rows=2)
    with pytest.raises(InvalidGraphError):
        fuse_categorical(g, np.array([0, 1]))


def test_fuse_labels_dispatches_categorical(four_point_graph) -> None:
    cfg = FusionConfig(target_weights=0.9, target_metric="categorical")
    a = fuse_labels(four_point_graph, LABELS, cfg)
    b = fuse_categorical(four_point_graph, LABELS, cfg)
    assert as_dict(a) == pytest.approx(as_dict(b))


def test_verbose_prints(four_point_graph, capsys) -> None:
    fuse_categorical(four_point_graph, LABELS, FusionConfig(target_weights=0.9, verbose=True))
    assert "far_dist=25" in capsys.readouterr().out


def test_label_weighting_defaults_follow_config_baseline(four_point_graph) -> None:
    out = categorical_label_weighting(four_point_graph, LABELS)
    edges = as_dict(out)
    assert edges[(0, 2)] == pytest.approx(0.3 * math.exp(-FusionConfig.far_dist))
    assert edges[(2, 3)] == pytest.approx(0.5 * math.exp(-FusionConfig.unknown_dist))
