"""
Storage variants for model parameters.

W, B and Z can each be held densely (``numpy.ndarray``) or as a CSC
sparse matrix. The storage is a tag chosen when ``ModelParams`` is built;
both variants expose the same small interface so the rest of the code
never branches on it.
"""

from __future__ import annotations
from enum import Enum
from typing import Protocol, Union

import numpy as np
import scipy.sparse as sp


class Storage(str, Enum):
    DENSE = "dense"
    SPARSE = "sparse"


class ParamMatrix(Protocol):
    """Interface shared by dense and sparse parameter storage."""

    @property
    def rows(self) -> int: ...

    @property
    def cols(self) -> int: ...

    def multiply(self, other) -> np.ndarray:
        """Left-multiply ``other`` (dense or sparse) by this matrix."""
        ...

    def to_dense(self) -> np.ndarray: ...

    def to_sparse(self) -> sp.csc_array: ...


def matmul(A, X) -> np.ndarray:
    """
    ``A @ X`` returned as a dense ndarray, for dense A and dense or sparse X.

    ``ndarray @ sparse`` does not dispatch to scipy, so the product is
    formed as ``(X.T @ A.T).T`` when X is sparse.
    """
    if sp.issparse(X):
        return np.asarray((X.T @ A.T).T)
    return A @ X


class DenseParam:
    __slots__ = ("data",)

    def __init__(self, data):
        self.data = np.array(data, dtype=float, copy=True)
        if self.data.ndim != 2:
            raise ValueError(f"parameter must be 2-D, got shape {self.data.shape}")

    @property
    def rows(self) -> int:
        return self.data.shape[0]

    @property
    def cols(self) -> int:
        return self.data.shape[1]

    @property
    def shape(self):
        return self.data.shape

    def multiply(self, other) -> np.ndarray:
        return matmul(self.data, other)

    def to_dense(self) -> np.ndarray:
        return self.data.copy()

    def to_sparse(self) -> sp.csc_array:
        return sp.csc_array(self.data)

    def __repr__(self):
        return f"DenseParam(shape={self.data.shape})"


class SparseParam:
    __slots__ = ("data",)

    def __init__(self, data):
        if sp.issparse(data):
            self.data = sp.csc_array(data, dtype=float)
        else:
            dense = np.asarray(data, dtype=float)
            if dense.ndim != 2:
                raise ValueError(f"parameter must be 2-D, got shape {dense.shape}")
            self.data = sp.csc_array(dense)
        self.data.eliminate_zeros()

    @property
    def rows(self) -> int:
        return self.data.shape[0]

    @property
    def cols(self) -> int:
        return self.data.shape[1]

    @property
    def shape(self):
        return self.data.shape

    @property
    def nnz(self) -> int:
        return int(self.data.nnz)

    def multiply(self, other) -> np.ndarray:
        out = self.data @ other
        return out.toarray() if sp.issparse(out) else np.asarray(out)

    def to_dense(self) -> np.ndarray:
        return self.data.toarray()

    def to_sparse(self) -> sp.csc_array:
        return self.data.copy()

    def __repr__(self):
        return f"SparseParam(shape={self.data.shape}, nnz={self.data.nnz})"


def make_param(data, storage: Union[Storage, str] = Storage.DENSE) -> ParamMatrix:
    if Storage(storage) == Storage.SPARSE:
        return SparseParam(data)
    if sp.issparse(data):
        data = data.toarray()
    return DenseParam(data)
