from __future__ import annotations

from dataclasses import dataclass

# far_dist used when labels fully dominate (target_weights >= 1); exp(-far) underflows to 0
FAR_DIST_SATURATED = 1.0e12


@dataclass
class FusionConfig:
    """Parameters shared by the label-fusion entry points.

    target_weights:
        0 ignores the labels entirely, 1 lets them dominate.
    target_n_neighbors:
        k for the label-space neighbor graph (continuous labels only).
    target_metric:
        "categorical" selects categorical fusion; anything else is passed to
        the neighbor search as the label-space metric.
    unknown_dist, far_dist:
        Attenuation distances for unlabeled and cross-label edges. far_dist
        is a baseline only: it is the default of categorical_label_weighting,
        while fuse_categorical always uses derived_far_dist() instead.
    local_connectivity, set_op_mix_ratio:
        Forwarded to the fuzzy simplicial set constructor.
    chunk_size:
        Edges (or rows, for the intersection blend) per block in chunked
        loops. Output does not depend on it.
    """

    target_weights: float = 0.5
    target_n_neighbors: int = 15
    target_metric: str = "categorical"
    unknown_dist: float = 1.0
    far_dist: float = 5.0
    local_connectivity: float = 1.0
    set_op_mix_ratio: float = 1.0
    chunk_size: int = 65536
    verbose: bool = False

    def __post_init__(self) -> None:
        self.target_weights = float(self.target_weights)
        if not (0.0 <= self.target_weights <= 1.0):
            raise ValueError(f"target_weights must lie in [0,1], got {self.target_weights}.")
        self.target_n_neighbors = int(self.target_n_neighbors)
        if self.target_n_neighbors <= 0:
            raise ValueError(f"target_n_neighbors must be positive, got {self.target_n_neighbors}.")
        if float(self.unknown_dist) < 0 or float(self.far_dist) < 0:
            raise ValueError("unknown_dist and far_dist must be non-negative.")
        if float(self.local_connectivity) < 0:
            raise ValueError("local_connectivity must be non-negative.")
        if not (0.0 <= float(self.set_op_mix_ratio) <= 1.0):
            raise ValueError("set_op_mix_ratio must lie in [0,1].")
        if int(self.chunk_size) <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}.")

    def derived_far_dist(self) -> float:
        """far_dist implied by target_weights: 2.5 / (1 - w), saturated at w >= 1."""
        if self.target_weights >= 1.0:
            return FAR_DIST_SATURATED
        return 2.5 * (1.0 / (1.0 - self.target_weights))
