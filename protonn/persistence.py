"""
Model persistence with integrity checks.

``save_model`` writes a directory with

- ``model.npz``: W, B, Z and gamma
- ``config.json``: hyperparameters, library version, creation time and a
  SHA256 checksum over the parameter bytes
- ``estimator.joblib``: optional pickled ``ProtoNNClassifier``

``load_model`` restores a ``ProtoNNModel`` and refuses data whose checksum
no longer matches.
"""

import hashlib
import json
import warnings
from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import joblib
import numpy as np

from . import __about__
from .config import HyperParams
from .model import PARAM_NAMES, ModelParams, ProtoNNModel


def _checksum(arrays: Dict[str, np.ndarray]) -> str:
    h = hashlib.sha256()
    for name in sorted(arrays):
        h.update(np.ascontiguousarray(arrays[name], dtype=float).tobytes())
    return h.hexdigest()


@dataclass
class ModelState:
    """
    Serializable snapshot of a trained model.

    Attributes
    ----------
    arrays : dict
        ``W``, ``B``, ``Z`` as dense arrays and ``gamma`` as a 1 x 1 array
    hyperparams : dict
        ``HyperParams.to_metadata()`` of the run
    version : str
        Library version used to create the model
    created : str
        ISO timestamp of creation
    checksum : str
        SHA256 over the arrays
    """
    arrays: Dict[str, np.ndarray]
    hyperparams: Dict[str, Any]
    version: str
    created: str
    checksum: str

    @classmethod
    def from_model(cls, params: ModelParams, hyperparams: HyperParams) -> "ModelState":
        arrays = {name: params.dense(name) for name in PARAM_NAMES}
        arrays["gamma"] = np.array([[float(hyperparams.gamma)]])
        return cls(arrays=arrays,
                   hyperparams=hyperparams.to_metadata(),
                   version=__about__.__version__,
                   created=datetime.now().isoformat(),
                   checksum=_checksum(arrays))

    def verify_integrity(self) -> bool:
        return _checksum(self.arrays) == self.checksum

    def to_dict(self) -> Dict[str, Any]:
        """Metadata without the arrays, for config.json."""
        result = asdict(self)
        result["arrays"] = {name: list(a.shape) for name, a in self.arrays.items()}
        return result


def save_model(params: ModelParams, hyperparams: HyperParams, path: Union[str, Path],
               estimator=None, compress: bool = True) -> Path:
    """
    Save a trained model to the directory ``path``.

    Parameters
    ----------
    params : ModelParams
        Trained parameters
    hyperparams : HyperParams
        Hyperparameters of the run; ``gamma`` must be set
    path : str or Path
        Target directory, created if missing
    estimator : ProtoNNClassifier, optional
        Fitted estimator to pickle next to the arrays
    compress : bool, default=True
        Whether to compress the npz file
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    state = ModelState.from_model(params, hyperparams)

    saver = np.savez_compressed if compress else np.savez
    saver(path / "model.npz", **state.arrays)
    with open(path / "config.json", "w", encoding="utf-8") as f:
        json.dump(state.to_dict(), f, indent=2)

    if estimator is not None:
        joblib.dump(estimator, path / "estimator.joblib")
    return path


def load_state(path: Union[str, Path], verify_integrity: bool = True) -> ModelState:
    path = Path(path)
    config_path = path / "config.json"
    npz_path = path / "model.npz"
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    if not npz_path.exists():
        raise FileNotFoundError(f"Model data not found: {npz_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config = json.load(f)
    with np.load(npz_path) as data:
        arrays = {name: data[name] for name in data.files}

    state = ModelState(arrays=arrays, hyperparams=config["hyperparams"],
                       version=config["version"], created=config["created"],
                       checksum=config["checksum"])
    if verify_integrity and not state.verify_integrity():
        raise ValueError("Model integrity check failed. Data may be corrupted.")
    if state.version != __about__.__version__:
        warnings.warn(f"model saved with protonn {state.version}, loading with {__about__.__version__}")
    return state


def load_model(path: Union[str, Path], verify_integrity: bool = True) -> ProtoNNModel:
    state = load_state(path, verify_integrity)
    params = ModelParams.from_arrays(state.arrays["W"], state.arrays["B"], state.arrays["Z"],
                                     {"Z": state.hyperparams.get("z_storage", "dense")})
    return ProtoNNModel(params, float(state.arrays["gamma"][0, 0]))


def load_estimator(path: Union[str, Path]):
    joblib_path = Path(path) / "estimator.joblib"
    if not joblib_path.exists():
        raise FileNotFoundError(f"No pickled estimator in {path}")
    return joblib.load(joblib_path)
