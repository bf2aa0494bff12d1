"""
Gaussian RBF kernel between projected samples and prototypes, and the
median heuristic that picks its bandwidth.

ProtoNN scores a projected sample ``w = W x`` against every prototype
column ``b_j`` of B with

    K_j(x) = exp(-gamma^2 * ||b_j - W x||^2)

so ``gamma`` is an inverse length scale. The median heuristic sets it to
``multiplier / median_ij ||b_j - W x_i||``, which makes the typical
prototype-sample pair sit at a kernel value of exp(-multiplier^2).

References:
    Gupta et al. (2017). ProtoNN: Compressed and Accurate kNN for
    Resource-scarce Devices. ICML.
    Garreau, Jitkrittum & Kanagawa (2017). Large sample analysis of the
    median heuristic.
"""

from __future__ import annotations
import warnings

import numpy as np
from scipy.spatial.distance import cdist

# pair count above which the heuristic works on a random subset of columns
MEDIAN_PAIR_LIMIT = 2_000_000_000
MEDIAN_SUBSAMPLE = 10_000


def squared_distances(B: np.ndarray, WX: np.ndarray) -> np.ndarray:
    """
    Squared Euclidean distances between prototypes and projected samples.

    Args:
        B: Prototypes (d, m)
        WX: Projected samples (d, n)

    Returns:
        (m, n) matrix with entry ``||b_j - W x_i||^2``
    """
    D2 = cdist(B.T, WX.T, metric="sqeuclidean")
    return np.maximum(D2, 0.0, out=D2)


def gaussian_kernel(D2: np.ndarray, gamma: float) -> np.ndarray:
    return np.exp(-(gamma * gamma) * D2)


def median_heuristic(B: np.ndarray, WX: np.ndarray, multiplier: float,
                     rng: np.random.Generator = None) -> float:
    """
    Kernel bandwidth from the median prototype-to-sample distance.

    Args:
        B: Prototypes (d, m)
        WX: Projected training samples (d, n)
        multiplier: ``gamma_numerator * 2.5``
        rng: Generator used when the pair count forces subsampling

    Returns:
        gamma = multiplier / median distance. Degenerate data (all
        prototypes on top of all samples) gives ``inf`` with a warning.
    """
    n = WX.shape[1]
    if n * B.shape[1] > MEDIAN_PAIR_LIMIT:
        rng = np.random.default_rng() if rng is None else rng
        cols = rng.choice(n, size=min(MEDIAN_SUBSAMPLE, n), replace=False)
        WX = WX[:, cols]

    dist = np.sqrt(squared_distances(B, WX))
    median = float(np.median(dist))
    if not median > 0.0:
        warnings.warn(f"median prototype distance is {median}; gamma is not finite")
        return float("inf")
    return float(multiplier) / median
