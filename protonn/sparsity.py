"""
Hard-thresholding projection onto a sparsity budget.

After every gradient step the active parameter is projected onto the set
of matrices with at most ``ceil(fraction * size)`` non-zeros by keeping
the largest-magnitude entries. This is the proximal operator of the
l0-ball indicator and is what makes the trained model small enough for
edge devices.

Reference: Blumensath & Davies (2009). Iterative hard thresholding for
compressed sensing.
"""

import math

import numpy as np


def keep_count(size: int, fraction: float) -> int:
    """Number of entries retained for a sparsity fraction in (0, 1]."""
    if fraction >= 1.0:
        return size
    return min(size, max(1, int(math.ceil(fraction * size))))


def hard_threshold(V: np.ndarray, fraction: float) -> np.ndarray:
    """
    Keep the ``keep_count(V.size, fraction)`` largest-magnitude entries of V.

    Ties at the threshold are broken by ``argpartition`` order, so the
    number of non-zeros never exceeds the budget.

    Returns:
        New array of V's shape
    """
    k = keep_count(V.size, fraction)
    if k >= V.size:
        return V.copy()
    flat = V.ravel()
    keep = np.argpartition(np.abs(flat), -k)[-k:]
    out = np.zeros_like(flat)
    out[keep] = flat[keep]
    return out.reshape(V.shape)
