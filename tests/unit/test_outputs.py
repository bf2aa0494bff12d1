"""Unit tests for the run report, ASCII matrix dumps and output directories."""

from pathlib import Path

import numpy as np
import pytest

from protonn.altmin import StatRecord, TrainingStats
from protonn.config import HyperParams
from protonn.export import matrix_to_tsv, write_matrix_ascii
from protonn.filesystem import LocalFilesystem, MemoryFilesystem
from protonn.recorder import RunRecorder, format_report
from protonn.trainer import RESULTS_DIRNAME, ProtoNNTrainer
from tests.conftest import make_blobs, write_tsv


def _stats(iters):
    stats = TrainingStats()
    stats.append(StatRecord("init", -1, 1.5, 0.5, 0.25))
    for it in range(iters):
        for name in ("W", "Z", "B"):
            stats.append(StatRecord(name, it, 1.0, 0.75, 0.5))
    return stats


class TestRunReport:

    def test_fields_and_table(self):
        hp = HyperParams(d=5, D=20, l=3, m=6, gamma=0.5, iters=2,
                         initialization="per_class_kmeans", normalization="minmax")
        text = format_report(hp, "protonn train -I data", _stats(2))
        lines = text.splitlines()

        assert "d = 5" in lines
        assert "k = 2 (if this value is 0, k-means per class was not used for initialization)" in lines
        assert "initializationType = perClassKmeans" in lines
        assert "normalizationType = minmax-normalization" in lines
        assert "Command line call: protonn train -I data" in lines

        header = lines.index("param | iter | objective, training accuracy, testing accuracy")
        rows = [line for line in lines[header + 1:] if line]
        assert len(rows) == 2 * 3 + 1
        assert rows[0].startswith("init")
        assert rows[1].split("|")[0].strip() == "W"
        assert rows[-1].split("|")[1].strip() == "1"

    def test_k_is_zero_without_per_class_kmeans(self):
        hp = HyperParams(d=5, D=20, l=3, m=6)
        assert "k = 0 (if this value" in format_report(hp, "", _stats(0))

    def test_recorder_writes_through_filesystem(self):
        fs = MemoryFilesystem()
        hp = HyperParams(d=5, D=20, l=3, m=6, gamma=0.5)
        RunRecorder(fs).store(Path("out") / "runInfo", hp, "cmd", _stats(1))
        assert str(Path("out") / "runInfo") in fs.files


class TestAsciiDump:

    def test_matrix_written_transposed(self, tmp_path):
        M = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        path = write_matrix_ascii(LocalFilesystem(), M, tmp_path, "W")
        loaded = np.loadtxt(path, delimiter="\t", ndmin=2)
        np.testing.assert_array_equal(loaded, M.T)

    def test_tsv_text(self):
        assert matrix_to_tsv(np.array([[1.0, 0.5]])) == "1\t0.5\n"


class TestOutputDirectory:

    def test_subdir_name_depends_on_hyperparameters(self):
        a = HyperParams(d=5, D=20, l=3, m=6)
        b = HyperParams(d=5, D=20, l=3, m=6, seed=1)
        assert a.subdir_name() != b.subdir_name()
        assert a.subdir_name() == HyperParams(d=5, D=20, l=3, m=6).subdir_name()

    def test_file_run_writes_results(self, tmp_path):
        X, _, y = make_blobs(n_per_class=10, D=6, l=2)
        write_tsv(tmp_path / "train.txt", X, y)
        write_tsv(tmp_path / "test.txt", X[:, ::2], y[::2])
        fs = MemoryFilesystem()
        hp = HyperParams(d=3, D=6, l=2, m=4, iters=1, epochs=1)
        trainer = ProtoNNTrainer.from_files(hp, tmp_path, "tsv", fs=fs)
        stats = trainer.train()

        outdir = tmp_path / RESULTS_DIRNAME / hp.subdir_name()
        assert trainer.outdir == outdir
        assert str(outdir) in fs.dirs
        for name in ("W", "B", "Z", "gamma", "runInfo"):
            assert str(outdir / name) in fs.files
        assert hp.ntest == 10
        assert not np.isnan(stats[-1].test_accuracy)

    def test_directory_failure_skips_outputs(self, tmp_path):
        X, _, y = make_blobs(n_per_class=10, D=6, l=2)
        write_tsv(tmp_path / "train.txt", X, y)
        fs = MemoryFilesystem(fail_dirs=True)
        hp = HyperParams(d=3, D=6, l=2, m=4, iters=1, epochs=1)
        with pytest.warns(UserWarning):
            trainer = ProtoNNTrainer.from_files(hp, tmp_path, "tsv", fs=fs)
        stats = trainer.train()
        assert len(stats) == 4
        assert fs.files == {}

    def test_local_filesystem_reports_failure(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.warns(UserWarning):
            assert LocalFilesystem().ensure_dir(blocker / "sub") is False
