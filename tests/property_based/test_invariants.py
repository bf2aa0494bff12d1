"""
Property-based tests for invariants of the ProtoNN building blocks.

Uses Hypothesis to generate inputs and checks properties that hold for
every input:
1. Hard thresholding never exceeds its budget and keeps the largest entries
2. Min-max normalization maps training rows into [0, 1]
3. L2 normalization gives unit (or zero) column norms
4. The median heuristic is positive and linear in its multiplier
5. Export sizes match the bytes produced
"""

import numpy as np
from hypothesis import given, settings, strategies as st
from hypothesis.extra.numpy import arrays

from protonn.export import dense_bytes, dense_export_size, sparse_bytes, sparse_export_size
from protonn.kernels import median_heuristic
from protonn.normalization import l2_normalize, min_max_normalize
from protonn.sparsity import hard_threshold, keep_count

# multiples of 1/8 keep feature ranges well above rounding noise
grid = st.integers(min_value=-8000, max_value=8000)


@st.composite
def matrices(draw, max_side=8):
    rows = draw(st.integers(min_value=1, max_value=max_side))
    cols = draw(st.integers(min_value=1, max_value=max_side))
    return draw(arrays(np.int64, (rows, cols), elements=grid)) / 8.0


@given(V=matrices(), fraction=st.floats(min_value=0.01, max_value=1.0))
def test_hard_threshold_budget(V, fraction):
    out = hard_threshold(V, fraction)
    k = keep_count(V.size, fraction)
    assert out.shape == V.shape
    assert np.count_nonzero(out) <= k
    # every kept entry is unchanged and at least as large as anything dropped
    kept = out != 0
    np.testing.assert_array_equal(out[kept], V[kept])
    if kept.any() and (~kept).any():
        assert np.abs(V[kept]).min() >= np.abs(V[~kept]).max()


@given(X=matrices())
@settings(max_examples=50)
def test_min_max_train_range(X):
    train, _ = min_max_normalize(X, np.zeros((X.shape[0], 0)))
    assert np.all(train >= -1e-12)
    assert np.all(train <= 1.0 + 1e-12)


@given(X=matrices())
@settings(max_examples=50)
def test_l2_column_norms(X):
    out = l2_normalize(X)
    norms = np.linalg.norm(out, axis=0)
    nonzero = np.linalg.norm(X, axis=0) > 1e-6
    np.testing.assert_allclose(norms[nonzero], 1.0, rtol=1e-9)


@given(seed=st.integers(min_value=0, max_value=2**31 - 1),
       multiplier=st.floats(min_value=0.1, max_value=10.0))
@settings(max_examples=30)
def test_median_heuristic_linear(seed, multiplier):
    rng = np.random.default_rng(seed)
    B, WX = rng.normal(size=(3, 4)), rng.normal(size=(3, 25))
    base = median_heuristic(B, WX, 1.0)
    assert base > 0
    np.testing.assert_allclose(median_heuristic(B, WX, multiplier), multiplier * base, rtol=1e-12)


@given(V=matrices())
def test_export_sizes_match_bytes(V):
    assert len(dense_bytes(V)) == dense_export_size(V)
    assert len(sparse_bytes(V)) == sparse_export_size(V)
