from __future__ import annotations
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt

from .matrix import Storage


class NormalizationType(str, Enum):
    NONE = "none"
    L2 = "l2"
    MINMAX = "minmax"


class InitializationType(str, Enum):
    PREDEFINED = "predefined"
    SAMPLE = "sample"
    PER_CLASS_KMEANS = "per_class_kmeans"
    OVERALL_KMEANS = "overall_kmeans"


# names used in the run report
NORMALIZATION_REPORT_NAMES = {
    NormalizationType.NONE: "none",
    NormalizationType.L2: "l2-normalization",
    NormalizationType.MINMAX: "minmax-normalization",
}

INITIALIZATION_REPORT_NAMES = {
    InitializationType.PREDEFINED: "predefined",
    InitializationType.SAMPLE: "sample",
    InitializationType.PER_CLASS_KMEANS: "perClassKmeans",
    InitializationType.OVERALL_KMEANS: "overallKmeans",
}


class HyperParams(BaseModel):
    """
    Structural and optimization knobs of one ProtoNN run.

    ``ntrain``/``ntest`` of 0 mean "not known yet" and are back-filled when
    streaming ingestion is finalized; ``m`` may shrink during per-class
    k-means initialization and ``gamma`` is set by the initializer. All
    other fields are fixed once the data is finalized.

    The sparsity fractions ``lambda_w``, ``lambda_b`` and ``lambda_z`` give
    the share of entries of W, B and Z kept after every gradient step
    (1.0 keeps the matrix dense).
    """
    model_config = ConfigDict(validate_assignment=True, use_enum_values=False)

    d: PositiveInt
    D: PositiveInt
    l: PositiveInt
    m: PositiveInt
    ntrain: NonNegativeInt = 0
    ntest: NonNegativeInt = 0

    gamma: Optional[float] = Field(None, gt=0.0)
    gamma_numerator: float = Field(1.0, gt=0.0)

    lambda_w: float = Field(1.0, gt=0.0, le=1.0)
    lambda_b: float = Field(1.0, gt=0.0, le=1.0)
    lambda_z: float = Field(1.0, gt=0.0, le=1.0)
    regularizer: float = Field(0.0, ge=0.0)

    batch_size: PositiveInt = 32
    epochs: PositiveInt = 3
    iters: PositiveInt = 20
    seed: int = 42

    normalization: NormalizationType = NormalizationType.NONE
    initialization: InitializationType = InitializationType.SAMPLE
    z_storage: Storage = Storage.DENSE

    @property
    def k(self) -> int:
        """Prototypes per class; 0 unless per-class k-means is used."""
        if self.initialization == InitializationType.PER_CLASS_KMEANS:
            return self.m // self.l
        return 0

    def lambda_for(self, name: str) -> float:
        return {"W": self.lambda_w, "B": self.lambda_b, "Z": self.lambda_z}[name]

    def subdir_name(self) -> str:
        """Results directory name, derived only from the hyperparameters."""
        parts = [
            ("d", self.d), ("m", self.m),
            ("lW", self.lambda_w), ("lZ", self.lambda_z), ("lB", self.lambda_b),
            ("gN", self.gamma_numerator), ("bs", self.batch_size),
            ("ep", self.epochs), ("it", self.iters), ("s", self.seed),
            ("init", self.initialization.value), ("norm", self.normalization.value),
        ]
        return "_".join(f"{key}_{value}" for key, value in parts)

    def to_metadata(self) -> dict:
        return self.model_dump(mode="json")

    @classmethod
    def from_yaml(cls, path: Union[str, Path], **overrides) -> "HyperParams":
        with open(path, "r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
        raw.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**raw)
