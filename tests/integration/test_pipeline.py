"""
Integration tests for complete training runs from files on disk.

Tests the full workflow: read train/test files, normalize, initialize,
train, write the results directory and seed a second run from it.
"""

import shutil

import numpy as np
import pytest

from protonn.config import HyperParams
from protonn.export import import_model
from protonn.initialization import read_matrix_tsv
from protonn.trainer import ProtoNNTrainer
from tests.conftest import make_blobs, write_tsv


def _write_split(directory, D=10, l=3, seed=0):
    X, _, y = make_blobs(n_per_class=20, D=D, l=l, seed=seed)
    order = np.random.default_rng(seed).permutation(y.size)
    X, y = X[:, order], y[order]
    write_tsv(directory / "train.txt", X[:, :45], y[:45])
    write_tsv(directory / "test.txt", X[:, 45:], y[45:])


def _write_libsvm(path, X, y):
    with open(path, "w") as fh:
        for i in range(X.shape[1]):
            feats = " ".join(f"{j + 1}:{X[j, i]:.6g}" for j in np.flatnonzero(X[:, i]))
            fh.write(f"{y[i] + 1} {feats}\n")


class TestFilePipeline:

    @pytest.mark.parametrize("normalization", ["none", "minmax", "l2"])
    def test_tsv_run(self, tmp_path, normalization):
        _write_split(tmp_path)
        hp = HyperParams(d=4, D=10, l=3, m=6, iters=2, epochs=2, batch_size=16,
                         normalization=normalization, initialization="per_class_kmeans")
        trainer = ProtoNNTrainer.from_files(hp, tmp_path, "tsv", command_line="pytest")
        stats = trainer.train()

        assert (hp.ntrain, hp.ntest) == (45, 15)
        assert len(stats) == 7
        assert np.isfinite(stats[-1].objective)
        assert 0.0 <= stats[-1].test_accuracy <= 1.0

        W = read_matrix_tsv(trainer.outdir / "W")
        assert W.shape == (10, 4)
        np.testing.assert_allclose(W.T, trainer.params.dense("W"), rtol=1e-6, atol=1e-9)
        report = (trainer.outdir / "runInfo").read_text()
        assert "Command line call: pytest" in report

    def test_declared_counts(self, tmp_path):
        _write_split(tmp_path)
        hp = HyperParams(d=4, D=10, l=3, m=6, ntrain=45, ntest=15, iters=1)
        trainer = ProtoNNTrainer.from_files(hp, tmp_path, "tsv")
        assert trainer.dataset.ntest == 15

    def test_libsvm_run(self, tmp_path):
        X, _, y = make_blobs(n_per_class=15, D=12, l=2)
        X[np.abs(X) < 1.5] = 0.0
        _write_libsvm(tmp_path / "train.txt", X, y)
        hp = HyperParams(d=3, D=12, l=2, m=4, iters=1, epochs=1, normalization="minmax")
        trainer = ProtoNNTrainer.from_files(hp, tmp_path, "libsvm")
        stats = trainer.train()
        assert hp.ntrain == 30 and hp.ntest == 0
        assert len(stats) == 4

        size = trainer.get_model_size()
        buf = bytearray(size)
        trainer.export_model(size, buf)
        gamma, W, B, Z = import_model(buf)
        assert W.shape == (3, 12) and B.shape == (3, 4) and Z.shape == (2, 4)


class TestPredefinedReseed:

    def test_results_directory_seeds_next_run(self, tmp_path):
        first_dir = tmp_path / "first"
        second_dir = tmp_path / "second"
        first_dir.mkdir()
        second_dir.mkdir()
        _write_split(first_dir)
        _write_split(second_dir)

        hp = HyperParams(d=4, D=10, l=3, m=6, iters=1, epochs=1)
        first = ProtoNNTrainer.from_files(hp, first_dir, "tsv")
        first.train()
        for name in ("W", "B", "Z", "gamma"):
            shutil.copy(first.outdir / name, second_dir / name)

        hp2 = HyperParams(d=4, D=10, l=3, m=6, iters=1, epochs=1, initialization="predefined")
        second = ProtoNNTrainer.from_files(hp2, second_dir, "tsv")
        second.initialize_model()

        for name in ("W", "B", "Z"):
            np.testing.assert_allclose(second.params.dense(name), first.params.dense(name),
                                       rtol=1e-6, atol=1e-9)
        assert hp2.gamma == pytest.approx(hp.gamma, rel=1e-6)
        assert second.outdir != first.outdir
