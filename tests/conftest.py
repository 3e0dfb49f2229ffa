from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest


def pytest_configure() -> None:
    src_root = Path(__file__).resolve().parents[1] / "src"
    src_path = str(src_root)
    if src_path not in sys.path:
        sys.path.insert(0, src_path)


def as_dict(graph) -> dict:
    return {(int(r), int(c)): float(v) for r, c, v in zip(graph.rows, graph.cols, graph.vals)}


def assert_symmetric(graph) -> None:
    edges = as_dict(graph)
    for (i, j), v in edges.items():
        assert (j, i) in edges
        assert edges[(j, i)] == pytest.approx(v)


@pytest.fixture
def four_point_graph():
    from fuzzy_fusion import SparseGraph

    # row-sorted neighbor graph over 4 points
    return SparseGraph(
        rows=np.array([0, 0, 1, 2, 2, 3]),
        cols=np.array([1, 2, 0, 0, 3, 2]),
        vals=np.array([0.8, 0.3, 0.8, 0.3, 0.5, 0.5]),
        n_rows=4,
    )
