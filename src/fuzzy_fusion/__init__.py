"""Supervised fusion of fuzzy neighbor graphs with label data.

This package provides a minimal implementation of:
- coordinate-list graphs with row-index construction,
- l_inf row normalization, fuzzy-union symmetrization and zero pruning,
- categorical-label fusion (attenuation of cross-label and unlabeled edges),
- continuous-label fusion (weighted intersection with a label-space fuzzy graph).
"""

from .config import FusionConfig
from .graph import InvalidGraphError, SparseGraph
from .reductions import row_normalize_max, value_max, value_min
from .ops import remove_zeros, reset_local_connectivity, structural_union, symmetrize
from .knn import build_fuzzy_graph, fuzzy_simplicial_set, nearest_neighbors
from .supervised import (
    categorical_label_weighting,
    fuse_categorical,
    fuse_continuous,
    fuse_labels,
    general_intersection,
)

__all__ = [
    "FusionConfig",
    "InvalidGraphError",
    "SparseGraph",
    "row_normalize_max",
    "value_min",
    "value_max",
    "remove_zeros",
    "reset_local_connectivity",
    "structural_union",
    "symmetrize",
    "build_fuzzy_graph",
    "fuzzy_simplicial_set",
    "nearest_neighbors",
    "categorical_label_weighting",
    "fuse_categorical",
    "fuse_continuous",
    "fuse_labels",
    "general_intersection",
]
