"""
Starting values for W, B, Z and gamma.

Four strategies:

* ``predefined`` loads W, B, Z and gamma from tab-separated files;
* ``sample`` draws W ~ N(0, 1) and seeds each prototype with the
  projection and label of a random training sample;
* ``per_class_kmeans`` clusters the projected training data of every
  class separately with k-means++ and uses the centroids as prototypes
  labelled with their class;
* ``overall_kmeans`` clusters all projected training data together and
  labels each centroid with the mean label vector of its members.

Every strategy except ``predefined`` finishes by setting gamma with the
median heuristic, replacing any configured value.

All random draws come from ``session.rng``.

References:
    Arthur & Vassilvitskii (2007). k-means++: The advantages of careful
    seeding. SODA.
"""

from __future__ import annotations
import warnings
from pathlib import Path
from typing import Tuple

import numpy as np
from sklearn.cluster import KMeans

from .config import InitializationType
from .errors import ConfigurationError
from .kernels import median_heuristic
from .model import ModelParams, project
from . import jsonlog

OVERALL_KMEANS_SAMPLE_CAP = 100_000
GAMMA_SCALE = 2.5


def read_matrix_tsv(path) -> np.ndarray:
    try:
        M = np.loadtxt(str(path), delimiter="\t", ndmin=2)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"cannot read predefined matrix {path}: {e}") from e
    return M


def load_predefined(session, indir) -> None:
    """
    Load W, B, Z, gamma from ``indir``.

    The files hold the transposes of the in-memory matrices: ``W`` is
    (D, d), ``B`` is (m, d), ``Z`` is (m, l) and ``gamma`` is 1 x 1.
    """
    if indir is None:
        raise ConfigurationError("predefined initialization needs an input directory")
    hp = session.hyperparams
    indir = Path(indir)
    expected = {"W": (hp.D, hp.d), "B": (hp.m, hp.d), "Z": (hp.m, hp.l)}
    loaded = {}
    for name, shape in expected.items():
        M = read_matrix_tsv(indir / name)
        if M.shape != shape:
            raise ConfigurationError(f"predefined {name} has shape {M.shape}, expected {shape}")
        loaded[name] = M.T

    gamma = read_matrix_tsv(indir / "gamma")
    if gamma.shape != (1, 1):
        raise ConfigurationError(f"predefined gamma has shape {gamma.shape}, expected (1, 1)")
    if not gamma[0, 0] > 0.0:
        raise ConfigurationError(f"predefined gamma must be positive, got {gamma[0, 0]}")

    session.params = ModelParams.from_arrays(loaded["W"], loaded["B"], loaded["Z"],
                                             {"Z": hp.z_storage})
    hp.gamma = float(gamma[0, 0])
    jsonlog.log("gamma_set", gamma=hp.gamma, source="predefined")


def _kmeans(points: np.ndarray, k: int, rng: np.random.Generator) -> KMeans:
    """k-means++ on the columns of ``points``."""
    km = KMeans(n_clusters=k, init="k-means++", n_init=1,
                random_state=int(rng.integers(2**31 - 1)))
    return km.fit(points.T)


def sample_prototypes(WX: np.ndarray, Y: np.ndarray, m: int,
                      rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
    """Prototype j is the projection and label of a uniformly drawn training column."""
    picks = rng.integers(0, WX.shape[1], size=m)
    return WX[:, picks].copy(), Y[:, picks].copy()


def kmeans_per_class(WX: np.ndarray, Y: np.ndarray, k: int,
                     rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
    """
    Cluster each class separately into ``k`` centroids.

    A sample belongs to every class with a positive label entry. Classes
    with fewer than ``k`` samples contribute one centroid per sample and
    classes without samples contribute nothing, so the number of returned
    prototypes can be below ``k * l``.
    """
    l = Y.shape[0]
    centers, labels = [], []
    for c in range(l):
        members = WX[:, Y[c] > 0]
        n_c = members.shape[1]
        if n_c == 0:
            jsonlog.log("kmeans_class_empty", level="warning", label=c)
            continue
        kk = min(k, n_c)
        centers.append(_kmeans(members, kk, rng).cluster_centers_.T)
        indicator = np.zeros((l, kk))
        indicator[c] = 1.0
        labels.append(indicator)
    if not centers:
        raise ConfigurationError("per-class k-means found no labelled training samples")
    return np.hstack(centers), np.hstack(labels)


def kmeans_overall(WX: np.ndarray, Y: np.ndarray, m: int,
                   rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
    """Cluster all (subsampled) projected points; Z columns are mean member labels."""
    n = WX.shape[1]
    if n > OVERALL_KMEANS_SAMPLE_CAP:
        cols = rng.choice(n, size=OVERALL_KMEANS_SAMPLE_CAP, replace=False)
        WX, Y = WX[:, cols], Y[:, cols]
    km = _kmeans(WX, m, rng)
    Z = np.zeros((Y.shape[0], m))
    for j in range(m):
        assigned = km.labels_ == j
        if np.any(assigned):
            Z[:, j] = Y[:, assigned].mean(axis=1)
    return km.cluster_centers_.T, Z


def initialize_model(session, indir=None) -> None:
    """Populate ``session.params`` and ``session.hyperparams.gamma``."""
    hp = session.hyperparams
    data = session.dataset
    rng = session.rng
    init = InitializationType(hp.initialization)

    if init == InitializationType.PREDEFINED:
        jsonlog.log("initialization", strategy=init.value, indir=str(indir))
        load_predefined(session, indir)
        return

    jsonlog.log("initialization", strategy=init.value,
                note="W is a standard Gaussian matrix; unnormalized data may need normalization")
    W = rng.standard_normal((hp.d, hp.D))
    WX = project(W, data.Xtrain)

    if init == InitializationType.SAMPLE:
        B, Z = sample_prototypes(WX, data.Ytrain, hp.m, rng)
    elif init == InitializationType.PER_CLASS_KMEANS:
        if hp.m % hp.l != 0:
            raise ConfigurationError(f"per-class k-means needs m ({hp.m}) to be a multiple of l ({hp.l})")
        B, Z = kmeans_per_class(WX, data.Ytrain, hp.m // hp.l, rng)
    else:
        B, Z = kmeans_overall(WX, data.Ytrain, hp.m, rng)

    if B.shape[1] != hp.m:
        warnings.warn(f"initialization produced {B.shape[1]} prototypes instead of {hp.m}; "
                      f"m is set to {B.shape[1]}")
        hp.m = B.shape[1]

    session.params = ModelParams.from_arrays(W, B, Z, {"Z": hp.z_storage})
    hp.gamma = median_heuristic(B, WX, hp.gamma_numerator * GAMMA_SCALE, rng)
    jsonlog.log("gamma_set", gamma=hp.gamma, source="median_heuristic")
