"""
Training and test data for ProtoNN.

Features are stored column-major in the ProtoNN sense: a (D, N) matrix
whose columns are samples, dense (``numpy.ndarray``) or CSC sparse.
Labels are an (L, N) dense matrix of indicator or soft label vectors.

Two ingestion modes exist:

* file ingestion reads a pre-split train file and test file through
  library readers (``sklearn.datasets.load_svmlight_file`` for libsvm,
  ``numpy.loadtxt`` for tab-separated files), with 1-based labels;
* interface ingestion receives one sample at a time from a caller that
  does not know the sample count in advance, with 0-based label indices.

Either way ``finalize`` freezes the matrices.
"""

from __future__ import annotations
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import scipy.sparse as sp
from sklearn.datasets import load_svmlight_file

from .errors import IngestionError
from . import jsonlog


class DataIngestType(str, Enum):
    FILE = "file"
    INTERFACE = "interface"


class DataFormat(str, Enum):
    LIBSVM = "libsvm"
    TSV = "tsv"


def labels_to_matrix(label_lists: Sequence[Sequence[int]], l: int) -> np.ndarray:
    """(l, n) indicator matrix from per-sample lists of 0-based label indices."""
    Y = np.zeros((l, len(label_lists)))
    for i, labels in enumerate(label_lists):
        for lbl in labels:
            lbl = int(lbl)
            if not 0 <= lbl < l:
                raise IngestionError(f"label index {lbl} outside [0, {l}) for sample {i}")
            Y[lbl, i] = 1.0
    return Y


def read_libsvm(path: Union[str, Path], D: int, l: int) -> Tuple[sp.csc_array, np.ndarray]:
    # feature indices are 1-based in every file; column 0 catches a stray index 0
    try:
        X, y = load_svmlight_file(str(path), n_features=D + 1, multilabel=True, zero_based=True)
    except ValueError as e:
        raise IngestionError(f"{path}: {e}") from e
    if X[:, [0]].nnz:
        raise IngestionError(f"{path}: feature index 0 found; libsvm indices start at 1")
    labels = [[int(v) - 1 for v in row] for row in y]
    return sp.csc_array(X[:, 1:].T), labels_to_matrix(labels, l)


def read_tsv(path: Union[str, Path], D: int, l: int) -> Tuple[np.ndarray, np.ndarray]:
    raw = np.loadtxt(str(path), delimiter="\t", ndmin=2)
    if raw.size == 0:
        return np.zeros((D, 0)), np.zeros((l, 0))
    if raw.shape[1] != D + 1:
        raise IngestionError(f"{path}: expected {D + 1} tab-separated columns, found {raw.shape[1]}")
    labels = [[int(v) - 1] for v in raw[:, 0]]
    return np.ascontiguousarray(raw[:, 1:].T), labels_to_matrix(labels, l)


_READERS = {DataFormat.LIBSVM: read_libsvm, DataFormat.TSV: read_tsv}


class Dataset:
    """
    Feature/label store with streaming or bulk ingestion.

    >>> data = Dataset(DataIngestType.INTERFACE, D=20, l=3)
    >>> data.feed_dense(np.ones(20), [2])
    >>> data.finalize()
    >>> data.Xtrain.shape
    (20, 1)
    """

    def __init__(self, ingest_type: DataIngestType, D: int, l: int):
        self.ingest_type = DataIngestType(ingest_type)
        self.D = int(D)
        self.l = int(l)
        self.Xtrain = None
        self.Ytrain = None
        self.Xtest = None
        self.Ytest = None
        self.is_finalized = False
        self._values: List[np.ndarray] = []
        self._indices: List[Optional[np.ndarray]] = []
        self._labels: List[List[int]] = []

    # -- interface ingestion -------------------------------------------------

    def _check_feedable(self):
        if self.ingest_type != DataIngestType.INTERFACE:
            raise IngestionError("points can only be fed to an interface-ingest data store")
        if self.is_finalized:
            raise IngestionError("data store is already finalized")

    def feed_dense(self, values, labels: Sequence[int]) -> None:
        self._check_feedable()
        values = np.asarray(values, dtype=float).ravel()
        if values.shape[0] != self.D:
            raise IngestionError(f"dense point has {values.shape[0]} features, expected {self.D}")
        self._values.append(values.copy())
        self._indices.append(None)
        self._labels.append([int(v) for v in labels])

    def feed_sparse(self, values, indices, labels: Sequence[int]) -> None:
        self._check_feedable()
        values = np.asarray(values, dtype=float).ravel()
        indices = np.asarray(indices, dtype=np.int64).ravel()
        if values.shape != indices.shape:
            raise IngestionError("sparse point needs one index per value")
        if indices.size and (indices.min() < 0 or indices.max() >= self.D):
            raise IngestionError(f"feature index outside [0, {self.D})")
        self._values.append(values.copy())
        self._indices.append(indices.copy())
        self._labels.append([int(v) for v in labels])

    @property
    def n_fed(self) -> int:
        return len(self._values)

    # -- file ingestion ------------------------------------------------------

    def load_from_files(self, train_path, test_path=None,
                        fmt: Union[DataFormat, str] = DataFormat.LIBSVM) -> None:
        if self.ingest_type != DataIngestType.FILE:
            raise IngestionError("load_from_files needs a file-ingest data store")
        reader = _READERS[DataFormat(fmt)]
        self.Xtrain, self.Ytrain = reader(train_path, self.D, self.l)
        if test_path is not None and Path(test_path).exists():
            self.Xtest, self.Ytest = reader(test_path, self.D, self.l)
        jsonlog.log("data_loaded", train=str(train_path), test=str(test_path),
                    ntrain=self.Xtrain.shape[1],
                    ntest=0 if self.Xtest is None else self.Xtest.shape[1])

    # -- finalization --------------------------------------------------------

    def _assemble_fed(self):
        n = len(self._values)
        if all(idx is None for idx in self._indices):
            X = np.column_stack(self._values) if n else np.zeros((self.D, 0))
        else:
            rows, cols, vals = [], [], []
            for i, (v, idx) in enumerate(zip(self._values, self._indices)):
                if idx is None:
                    idx = np.arange(self.D)
                rows.append(idx)
                cols.append(np.full(idx.shape[0], i, dtype=np.int64))
                vals.append(v)
            X = sp.csc_array((np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
                             shape=(self.D, n))
            X.sum_duplicates()
        return X, labels_to_matrix(self._labels, self.l)

    def finalize(self) -> None:
        if self.is_finalized:
            return
        if self.ingest_type == DataIngestType.INTERFACE:
            self.Xtrain, self.Ytrain = self._assemble_fed()
            self._values, self._indices, self._labels = [], [], []
        elif self.Xtrain is None:
            raise IngestionError("no training data loaded before finalize")

        if self.Xtest is None:
            self.Xtest = np.zeros((self.D, 0)) if not sp.issparse(self.Xtrain) \
                else sp.csc_array((self.D, 0))
            self.Ytest = np.zeros((self.l, 0))
        self.is_finalized = True

    @property
    def ntrain(self) -> int:
        return 0 if self.Xtrain is None else self.Xtrain.shape[1]

    @property
    def ntest(self) -> int:
        return 0 if self.Xtest is None else self.Xtest.shape[1]
