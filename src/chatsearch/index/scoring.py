"""Distance metrics and their distance-to-score transforms."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict

import numpy as np

from chatsearch.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class ScoreTransform:
    """Maps a raw store distance to a caller-facing relevance score.

    ``monotonic`` must be True only when the transform is strictly
    decreasing in distance, so that ascending distance order already is
    descending score order.
    """

    metric: str
    transform: Callable[[float], float]
    monotonic: bool = True

    def __call__(self, distance: float) -> float:
        return float(self.transform(distance))


def _one_minus(distance: float) -> float:
    return 1.0 - distance


def _inverse(distance: float) -> float:
    return 1.0 / (1.0 + distance)


SCORE_TRANSFORMS: Dict[str, ScoreTransform] = {
    # cosine distance lives in [0, 2]
    "cosine": ScoreTransform("cosine", _one_minus),
    "ip": ScoreTransform("ip", _one_minus),
    # squared euclidean distance is unbounded above
    "l2": ScoreTransform("l2", _inverse),
}


def get_score_transform(metric: str) -> ScoreTransform:
    try:
        return SCORE_TRANSFORMS[metric]
    except KeyError:
        raise ConfigurationError(f"Unknown distance metric: {metric}") from None


def compute_distances(matrix: np.ndarray, query: np.ndarray, metric: str) -> np.ndarray:
    """Return the distance between every row of ``matrix`` and ``query``.

    Rows or queries with zero norm produce NaN under the cosine metric.
    """
    matrix = np.asarray(matrix, dtype="float32")
    query = np.asarray(query, dtype="float32")
    with np.errstate(divide="ignore", invalid="ignore"):
        if metric == "cosine":
            norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
            return 1.0 - (matrix @ query) / norms
        if metric == "ip":
            return 1.0 - matrix @ query
        if metric == "l2":
            diff = matrix - query
            return np.einsum("ij,ij->i", diff, diff)
    raise ConfigurationError(f"Unknown distance metric: {metric}")
