"""Unit tests for min-max and L2 feature normalization."""

import numpy as np
import pytest
import scipy.sparse as sp

from protonn.config import NormalizationType
from protonn.data import DataIngestType, Dataset
from protonn.normalization import l2_normalize, min_max_normalize, normalize


class TestMinMax:

    def test_train_rows_in_unit_interval(self):
        rng = np.random.default_rng(0)
        Xtrain = rng.normal(3.0, 2.0, size=(6, 40))
        train, _ = min_max_normalize(Xtrain, np.zeros((6, 0)))

        assert train.min() >= 0.0
        assert train.max() <= 1.0
        np.testing.assert_allclose(train.min(axis=1), 0.0, atol=1e-12)
        np.testing.assert_allclose(train.max(axis=1), 1.0, atol=1e-12)

    def test_test_set_uses_training_extrema(self):
        Xtrain = np.array([[0.0, 2.0, 4.0],
                           [10.0, 20.0, 30.0]])
        Xtest = np.array([[8.0, -4.0],
                          [25.0, 10.0]])
        _, test = min_max_normalize(Xtrain, Xtest)

        # not re-fitted: values outside the training range stay outside [0, 1]
        np.testing.assert_allclose(test, [[2.0, -1.0], [0.75, 0.0]])

    def test_constant_row_maps_to_zero(self):
        Xtrain = np.array([[5.0, 5.0, 5.0], [1.0, 2.0, 3.0]])
        train, _ = min_max_normalize(Xtrain, np.zeros((2, 0)))
        np.testing.assert_array_equal(train[0], 0.0)

    def test_sparse_input_stays_sparse(self):
        Xtrain = sp.csc_array(np.array([[0.0, 2.0], [4.0, 0.0]]))
        Xtest = sp.csc_array(np.array([[1.0], [2.0]]))
        train, test = min_max_normalize(Xtrain, Xtest)
        assert sp.issparse(train) and sp.issparse(test)
        np.testing.assert_allclose(train.toarray(), [[0.0, 1.0], [1.0, 0.0]])
        np.testing.assert_allclose(test.toarray(), [[0.5], [0.5]])


class TestL2:

    def test_unit_column_norms(self):
        rng = np.random.default_rng(1)
        X = rng.normal(size=(5, 12))
        out = l2_normalize(X)
        np.testing.assert_allclose(np.linalg.norm(out, axis=0), 1.0)

    def test_sparse_unit_column_norms(self):
        X = sp.csc_array(np.array([[3.0, 0.0], [4.0, 2.0]]))
        out = l2_normalize(X)
        assert sp.issparse(out)
        np.testing.assert_allclose(out.toarray(), [[0.6, 0.0], [0.8, 1.0]])

    def test_zero_column_untouched(self):
        X = np.array([[0.0, 1.0], [0.0, 1.0]])
        out = l2_normalize(X)
        np.testing.assert_array_equal(out[:, 0], 0.0)


class TestNormalizeDataset:

    @pytest.fixture
    def dataset(self):
        data = Dataset(DataIngestType.FILE, D=3, l=2)
        data.Xtrain = np.array([[1.0, 3.0], [2.0, 2.0], [0.0, 4.0]])
        data.Ytrain = np.eye(2)
        data.Xtest = np.array([[2.0], [2.0], [2.0]])
        data.Ytest = np.array([[1.0], [0.0]])
        data.finalize()
        return data

    def test_none_leaves_data(self, dataset):
        before = dataset.Xtrain.copy()
        normalize(dataset, NormalizationType.NONE)
        np.testing.assert_array_equal(dataset.Xtrain, before)

    def test_minmax_applied_to_both_splits(self, dataset):
        normalize(dataset, "minmax")
        np.testing.assert_allclose(dataset.Xtrain, [[0.0, 1.0], [0.0, 0.0], [0.0, 1.0]])
        np.testing.assert_allclose(dataset.Xtest, [[0.5], [0.0], [0.5]])

    def test_l2_applied_to_both_splits(self, dataset):
        normalize(dataset, "l2")
        np.testing.assert_allclose(np.linalg.norm(dataset.Xtrain, axis=0), 1.0)
        np.testing.assert_allclose(np.linalg.norm(dataset.Xtest, axis=0), 1.0)
