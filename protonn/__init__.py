"""
ProtoNN: compressed prototype-based classification for resource-scarce devices.

Jointly learns a sparse projection W, prototypes B and prototype labels Z
by alternating minimization with hard-thresholding projections.
"""

from .__about__ import __version__

from .config import HyperParams, NormalizationType, InitializationType
from .errors import ProtoNNError, ConfigurationError, IngestionError, ExportSizeError
from .data import Dataset, DataIngestType, DataFormat
from .matrix import Storage, DenseParam, SparseParam
from .model import ModelParams, ProtoNNModel
from .kernels import gaussian_kernel, median_heuristic
from .altmin import alternating_minimization, StatRecord, TrainingStats
from .initialization import initialize_model
from .normalization import min_max_normalize, l2_normalize
from .export import ModelExporter, import_dense, import_sparse, import_model
from .recorder import RunRecorder
from .filesystem import LocalFilesystem, MemoryFilesystem
from .trainer import ProtoNNTrainer, TrainingSession
from .sklearn_estimator import ProtoNNClassifier

__all__ = [
    "__version__",

    # Configuration and errors
    "HyperParams", "NormalizationType", "InitializationType",
    "ProtoNNError", "ConfigurationError", "IngestionError", "ExportSizeError",

    # Data and model
    "Dataset", "DataIngestType", "DataFormat",
    "Storage", "DenseParam", "SparseParam", "ModelParams", "ProtoNNModel",

    # Training
    "gaussian_kernel", "median_heuristic", "initialize_model",
    "min_max_normalize", "l2_normalize",
    "alternating_minimization", "StatRecord", "TrainingStats",
    "ProtoNNTrainer", "TrainingSession",

    # Output
    "ModelExporter", "import_dense", "import_sparse", "import_model",
    "RunRecorder", "LocalFilesystem", "MemoryFilesystem",

    # scikit-learn
    "ProtoNNClassifier",
]
