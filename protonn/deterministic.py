"""
Deterministic execution utilities for reproducible ProtoNN runs.

Training draws every random number from the one generator owned by the
training session, so fixing ``HyperParams.seed`` already fixes the
initialization, the mini-batch order and the k-means++ seeding. What the
seed cannot control is the summation order inside a multi-threaded BLAS;
``set_deterministic`` pins those libraries to one thread as well.

Threading Control:
- OpenBLAS: Matrix operations threading control
- MKL (Intel Math Kernel Library): High-performance linear algebra threading
- OMP (OpenMP): General parallel processing control
"""

import os
import numpy as np

_THREAD_VARS = ("OPENBLAS_NUM_THREADS", "OMP_NUM_THREADS", "MKL_NUM_THREADS", "NUMEXPR_NUM_THREADS")


def set_deterministic() -> None:
    """
    Pin BLAS threading to one thread.

    Note:
        The environment variables only reach BLAS libraries loaded after
        this call. numpy has usually loaded its BLAS already, so for a
        fully single-threaded run export them before starting Python.
        MKL, when importable, is pinned at runtime as well.
    """
    for var in _THREAD_VARS:
        os.environ.setdefault(var, "1")

    try:
        import mkl  # type: ignore
        mkl.set_num_threads(1)
    except (ImportError, AttributeError):
        # MKL not available - OpenBLAS/standard BLAS will be used
        pass


def make_rng(seed) -> np.random.Generator:
    """The generator shared by every randomized step of a training session."""
    return np.random.default_rng(seed)


def is_deterministic() -> bool:
    """True if BLAS threading is limited to a single thread."""
    return all(os.environ.get(var) == "1" for var in _THREAD_VARS[:3])


def get_reproducibility_info() -> dict:
    return {
        'threading': {var: os.environ.get(var, 'unset') for var in _THREAD_VARS},
        'environment': {
            'numpy_version': np.__version__,
            'deterministic_enabled': is_deterministic(),
        },
    }
