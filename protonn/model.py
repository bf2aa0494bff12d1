from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict

import numpy as np

from .kernels import gaussian_kernel, squared_distances
from .matrix import ParamMatrix, Storage, make_param, matmul

PARAM_NAMES = ("W", "B", "Z")


@dataclass
class ModelParams:
    """
    Learned ProtoNN parameters.

    W is the (d, D) projection, B the (d, m) prototypes in projected space
    and Z the (l, m) prototype-label matrix. Each is held behind the
    ``ParamMatrix`` interface in the storage chosen at construction.
    """
    W: ParamMatrix
    B: ParamMatrix
    Z: ParamMatrix
    storage: Dict[str, Storage] = field(default_factory=lambda: {
        "W": Storage.DENSE, "B": Storage.DENSE, "Z": Storage.DENSE})

    @classmethod
    def zeros(cls, d: int, D: int, l: int, m: int,
              z_storage: Storage = Storage.DENSE) -> "ModelParams":
        storage = {"W": Storage.DENSE, "B": Storage.DENSE, "Z": Storage(z_storage)}
        return cls.from_arrays(np.zeros((d, D)), np.zeros((d, m)), np.zeros((l, m)), storage)

    @classmethod
    def from_arrays(cls, W, B, Z, storage=None) -> "ModelParams":
        storage = dict(storage or {})
        for name in PARAM_NAMES:
            storage.setdefault(name, Storage.DENSE)
        return cls(W=make_param(W, storage["W"]),
                   B=make_param(B, storage["B"]),
                   Z=make_param(Z, storage["Z"]),
                   storage=storage)

    def get(self, name: str) -> ParamMatrix:
        return getattr(self, name)

    def dense(self, name: str) -> np.ndarray:
        """Dense copy of one parameter."""
        return self.get(name).to_dense()

    def assign(self, name: str, value) -> None:
        setattr(self, name, make_param(value, self.storage[name]))

    @property
    def shapes(self):
        return {name: (self.get(name).rows, self.get(name).cols) for name in PARAM_NAMES}

    def copy(self) -> "ModelParams":
        return ModelParams.from_arrays(self.dense("W"), self.dense("B"), self.dense("Z"),
                                       dict(self.storage))


def project(W: np.ndarray, X) -> np.ndarray:
    """W @ X for dense W and dense or sparse X."""
    return matmul(W, X)


def predict_scores(W: np.ndarray, B: np.ndarray, Z: np.ndarray, gamma: float, X) -> np.ndarray:
    """Label scores ``Z K`` with shape (l, n) for the columns of X."""
    K = gaussian_kernel(squared_distances(B, project(W, X)), gamma)
    return Z @ K


def top1_accuracy(scores: np.ndarray, Y: np.ndarray) -> float:
    """
    Fraction of samples whose highest-scoring label is one of its true labels.

    For one-hot labels this is plain accuracy; for multi-label data it is
    precision@1.
    """
    n = scores.shape[1]
    if n == 0:
        return float("nan")
    pred = np.argmax(scores, axis=0)
    return float(np.mean(Y[pred, np.arange(n)] > 0))


class ProtoNNModel:
    """
    Prediction-side view of a trained model.

    >>> model = ProtoNNModel(session.params, session.hyperparams.gamma)
    >>> labels = model.predict(X_test)        # X_test is (D, n)
    """

    def __init__(self, params: ModelParams, gamma: float):
        self.params = params
        self.gamma = float(gamma)

    def scores(self, X) -> np.ndarray:
        return predict_scores(self.params.dense("W"), self.params.dense("B"),
                              self.params.dense("Z"), self.gamma, X)

    def predict(self, X) -> np.ndarray:
        return np.argmax(self.scores(X), axis=0)

    def accuracy(self, X, Y) -> float:
        return top1_accuracy(self.scores(X), np.asarray(Y))
