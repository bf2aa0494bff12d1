"""
Training session and trainer facade.

``TrainingSession`` is the explicit bundle every stage works on: the
hyperparameters and model parameters it owns, a reference to the
externally owned dataset, and the one random generator all randomized
steps draw from. ``ProtoNNTrainer`` drives a session through ingestion,
normalization, initialization, alternating minimization and output.

>>> hp = HyperParams(d=5, D=20, l=3, m=6, iters=5)
>>> trainer = ProtoNNTrainer(hp)                  # interface ingestion
>>> for x, labels in stream:
...     trainer.feed_dense(x, labels)
>>> trainer.finalize_data()
>>> stats = trainer.train()
>>> buf = bytearray(trainer.get_model_size())
>>> trainer.export_model(len(buf), buf)
"""

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np

from .altmin import TrainingStats, alternating_minimization
from .config import HyperParams, InitializationType, NormalizationType
from .data import DataFormat, DataIngestType, Dataset
from .deterministic import make_rng
from .errors import ConfigurationError, IngestionError
from .export import ModelExporter, write_matrix_ascii
from .filesystem import LocalFilesystem
from .initialization import initialize_model
from .model import ModelParams, ProtoNNModel
from .normalization import normalize
from .recorder import RunRecorder
from . import jsonlog

RESULTS_DIRNAME = "ProtoNNResults"
TRAIN_FILE = "train.txt"
TEST_FILE = "test.txt"


@dataclass
class TrainingSession:
    hyperparams: HyperParams
    dataset: Dataset
    rng: np.random.Generator
    params: Optional[ModelParams] = None
    stats: Optional[TrainingStats] = None

    @classmethod
    def create(cls, hyperparams: HyperParams, dataset: Dataset) -> "TrainingSession":
        return cls(hyperparams=hyperparams, dataset=dataset, rng=make_rng(hyperparams.seed))


class ProtoNNTrainer:
    """
    Drive one ProtoNN training run.

    Args:
        hyperparams: run configuration; the trainer owns it from here on
        ingest_type: ``INTERFACE`` to feed points one at a time, ``FILE`` to
            read ``train.txt``/``test.txt`` from ``indir``
        indir: input directory; also the root of the results directory and
            the location of predefined model files
        fs: filesystem capability used for every output (default: local disk)
        command_line: invocation string written to the run report
    """

    def __init__(self, hyperparams: HyperParams,
                 ingest_type: DataIngestType = DataIngestType.INTERFACE,
                 indir=None, fs=None, command_line: str = ""):
        self.ingest_type = DataIngestType(ingest_type)
        if self.ingest_type == DataIngestType.INTERFACE and \
                hyperparams.normalization != NormalizationType.NONE:
            raise ConfigurationError("interface ingestion expects pre-normalized data "
                                     "(normalization must be 'none')")
        self.dataset = Dataset(self.ingest_type, hyperparams.D, hyperparams.l)
        self.session = TrainingSession.create(hyperparams, self.dataset)
        self.fs = fs if fs is not None else LocalFilesystem()
        self.indir = None if indir is None else Path(indir)
        self.command_line = command_line
        self.outdir = None
        self._outdir_ok = False
        if self.indir is not None:
            self.create_output_dirs()

    @classmethod
    def from_files(cls, hyperparams: HyperParams, indir, fmt=DataFormat.LIBSVM,
                   fs=None, command_line: str = "") -> "ProtoNNTrainer":
        """File-ingest trainer with data loaded from ``indir`` and finalized."""
        trainer = cls(hyperparams, DataIngestType.FILE, indir=indir, fs=fs, command_line=command_line)
        trainer.load_files(fmt)
        trainer.finalize_data()
        return trainer

    @property
    def hyperparams(self) -> HyperParams:
        return self.session.hyperparams

    @property
    def params(self) -> Optional[ModelParams]:
        return self.session.params

    # -- setup ---------------------------------------------------------------

    def create_output_dirs(self) -> Path:
        self.outdir = self.indir / RESULTS_DIRNAME / self.hyperparams.subdir_name()
        self._outdir_ok = self.fs.ensure_dir(self.outdir)
        if self._outdir_ok:
            jsonlog.log("output_dir", path=str(self.outdir))
        return self.outdir

    def load_files(self, fmt=DataFormat.LIBSVM) -> None:
        if self.indir is None:
            raise ConfigurationError("file ingestion needs an input directory")
        self.dataset.load_from_files(self.indir / TRAIN_FILE, self.indir / TEST_FILE, fmt)

    def feed_dense(self, values, labels) -> None:
        self.dataset.feed_dense(values, labels)

    def feed_sparse(self, values, indices, labels) -> None:
        self.dataset.feed_sparse(values, indices, labels)

    def finalize_data(self) -> None:
        """
        Freeze the data and reconcile sample counts with the hyperparameters.

        Raises:
            IngestionError: declared ntrain/ntest disagree with the data
            ConfigurationError: no training data, m > ntrain, or per-class
                k-means with m not a multiple of l
        """
        hp = self.hyperparams
        self.dataset.finalize()
        if hp.ntrain == 0:
            # sample counts were not known up front
            hp.ntrain = self.dataset.ntrain
            hp.ntest = self.dataset.ntest
        else:
            if hp.ntrain != self.dataset.ntrain:
                raise IngestionError(f"declared ntrain={hp.ntrain}, data has {self.dataset.ntrain}")
            if hp.ntest != self.dataset.ntest:
                raise IngestionError(f"declared ntest={hp.ntest}, data has {self.dataset.ntest}")

        if hp.ntrain <= 0:
            raise ConfigurationError("no training samples")
        if hp.m > hp.ntrain:
            raise ConfigurationError(f"m={hp.m} prototypes exceed ntrain={hp.ntrain}")
        if hp.initialization == InitializationType.PER_CLASS_KMEANS and hp.m % hp.l != 0:
            raise ConfigurationError(f"per-class k-means needs m ({hp.m}) to be a multiple of l ({hp.l})")
        jsonlog.log("data_finalized", ntrain=hp.ntrain, ntest=hp.ntest)

    # -- training ------------------------------------------------------------

    def normalize(self) -> None:
        normalize(self.dataset, self.hyperparams.normalization)

    def initialize_model(self) -> None:
        initialize_model(self.session, self.indir)

    def train(self) -> TrainingStats:
        if not self.dataset.is_finalized:
            raise IngestionError("finalize_data() must be called before train()")
        self.normalize()
        self.initialize_model()
        self.session.stats = alternating_minimization(self.session)
        self.write_outputs()
        return self.session.stats

    def write_outputs(self) -> None:
        if self.outdir is None:
            return
        if not self._outdir_ok:
            jsonlog.log("outputs_skipped", level="warning", path=str(self.outdir))
            return
        for name in ("W", "B", "Z"):
            write_matrix_ascii(self.fs, self.params.get(name), self.outdir, name)
        write_matrix_ascii(self.fs, np.array([[self.hyperparams.gamma]]), self.outdir, "gamma")
        RunRecorder(self.fs).store(self.outdir / "runInfo", self.hyperparams,
                                   self.command_line, self.session.stats)
        jsonlog.log("outputs_written", path=str(self.outdir))

    def model(self) -> ProtoNNModel:
        return ProtoNNModel(self.params.copy(), self.hyperparams.gamma)

    # -- export --------------------------------------------------------------

    def _exporter(self) -> ModelExporter:
        if self.params is None:
            raise ConfigurationError("model is not initialized")
        return ModelExporter(self.params, self.hyperparams.gamma, self.ingest_type)

    def get_model_size(self) -> int:
        return self._exporter().model_size()

    def export_model(self, model_size: int, buffer) -> None:
        self._exporter().export_model(model_size, buffer)

    def write_model(self, path) -> int:
        """Export the whole model to ``path`` through the session filesystem."""
        return self._exporter().write_model(self.fs, path)

    def size_for_export_w_sparse(self) -> int:
        return self._exporter().size_for_sparse("W")

    def export_w_sparse(self, buffer) -> None:
        self._exporter().export_sparse("W", buffer)

    def size_for_export_b_sparse(self) -> int:
        return self._exporter().size_for_sparse("B")

    def export_b_sparse(self, buffer) -> None:
        self._exporter().export_sparse("B", buffer)

    def size_for_export_z_sparse(self) -> int:
        return self._exporter().size_for_sparse("Z")

    def export_z_sparse(self, buffer) -> None:
        self._exporter().export_sparse("Z", buffer)

    def size_for_export_w_dense(self) -> int:
        return self._exporter().size_for_dense("W")

    def export_w_dense(self, buffer) -> None:
        self._exporter().export_dense("W", buffer)

    def size_for_export_b_dense(self) -> int:
        return self._exporter().size_for_dense("B")

    def export_b_dense(self, buffer) -> None:
        self._exporter().export_dense("B", buffer)

    def size_for_export_z_dense(self) -> int:
        return self._exporter().size_for_dense("Z")

    def export_z_dense(self, buffer) -> None:
        self._exporter().export_dense("Z", buffer)
