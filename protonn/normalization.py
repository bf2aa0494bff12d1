"""
Feature conditioning applied once before initialization.

Matrices are (D, N) with samples in columns, so "per feature" means per
row and "per sample" means per column. scikit-learn works with samples in
rows, hence the transposes.
"""

import numpy as np
import scipy.sparse as sp
from sklearn.preprocessing import MinMaxScaler, normalize as sk_normalize

from .config import NormalizationType
from . import jsonlog


def _dense(X) -> np.ndarray:
    return X.toarray() if sp.issparse(X) else np.asarray(X, dtype=float)


def min_max_normalize(Xtrain, Xtest):
    """
    Rescale each feature row into [0, 1] using training-set extrema.

    The affine map fitted on ``Xtrain`` is applied unchanged to ``Xtest``,
    so test entries may fall outside [0, 1]. Constant rows map to 0.
    Sparse inputs come back sparse.

    Returns:
        (Xtrain, Xtest) normalized copies
    """
    was_sparse = sp.issparse(Xtrain)
    scaler = MinMaxScaler(feature_range=(0.0, 1.0))
    train = scaler.fit_transform(_dense(Xtrain).T).T
    test = _dense(Xtest)
    if test.shape[1]:
        test = scaler.transform(test.T).T
    if was_sparse:
        return sp.csc_array(train), sp.csc_array(test)
    return train, test


def l2_normalize(X):
    """Scale every non-zero column to unit Euclidean norm."""
    if X.shape[1] == 0:
        return X
    out = sk_normalize(X.T if not sp.issparse(X) else sp.csr_array(X.T), norm="l2", axis=1)
    return sp.csc_array(out.T) if sp.issparse(out) else np.ascontiguousarray(out.T)


def normalize(dataset, kind) -> None:
    """Normalize ``dataset`` features in place according to ``kind``."""
    kind = NormalizationType(kind)
    if kind == NormalizationType.MINMAX:
        dataset.Xtrain, dataset.Xtest = min_max_normalize(dataset.Xtrain, dataset.Xtest)
        jsonlog.log("normalization_done", kind="minmax")
    elif kind == NormalizationType.L2:
        dataset.Xtrain = l2_normalize(dataset.Xtrain)
        dataset.Xtest = l2_normalize(dataset.Xtest)
        jsonlog.log("normalization_done", kind="l2")
