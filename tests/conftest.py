"""
Test configuration and fixtures for ProtoNN tests.

Provides synthetic labelled data, ready-made trainers and a fixture that
captures the JSON log instead of printing it.
"""

import io

import numpy as np
import pytest

from protonn import jsonlog
from protonn.config import HyperParams
from protonn.trainer import ProtoNNTrainer


def make_blobs(n_per_class=40, D=20, l=3, spread=5.0, noise=0.5, seed=0):
    """
    Well separated Gaussian blobs in ProtoNN orientation.

    Returns:
        X (D, n), Y (l, n) one-hot, y (n,) integer labels
    """
    rng = np.random.default_rng(seed)
    centers = rng.normal(0.0, spread, size=(l, D))
    y = np.repeat(np.arange(l), n_per_class)
    X = centers[y].T + noise * rng.normal(size=(D, y.size))
    Y = np.zeros((l, y.size))
    Y[y, np.arange(y.size)] = 1.0
    return X, Y, y


def fed_trainer(X, y, **hp_fields):
    """Interface-ingest trainer with every column of X fed and finalized."""
    D, n = X.shape
    l = int(y.max()) + 1
    fields = dict(d=5, D=D, l=l, m=6, iters=2, epochs=2, batch_size=16, seed=7)
    fields.update(hp_fields)
    trainer = ProtoNNTrainer(HyperParams(**fields))
    for i in range(n):
        trainer.feed_dense(X[:, i], [int(y[i])])
    trainer.finalize_data()
    return trainer


def write_tsv(path, X, y):
    """Rows of ``label<TAB>features`` with 1-based labels."""
    rows = np.column_stack([y + 1, X.T])
    np.savetxt(path, rows, delimiter="\t", fmt="%.10g")


@pytest.fixture(autouse=True)
def captured_log():
    """Route jsonlog records to a buffer for the duration of a test."""
    buf = io.StringIO()
    jsonlog.set_stream(buf)
    yield buf
    jsonlog.set_stream(None)


@pytest.fixture
def random_seed():
    """Fixed random seed for reproducible tests."""
    return 42


@pytest.fixture
def blobs():
    return make_blobs()


@pytest.fixture
def small_hyperparams():
    return HyperParams(d=5, D=20, l=3, m=6, iters=2, epochs=2, batch_size=16, seed=7)
