"""
Byte-level export of trained ProtoNN parameters.

Export follows a two-phase contract: the caller first asks for the exact
size of a serialization, allocates a buffer of exactly that many bytes,
then asks for the serialization to be written into it. A buffer of any
other length is rejected rather than truncated or padded.

Wire formats (little-endian):

    dense   int64 rows | int64 cols | float32 values[rows*cols] (column-major)
    sparse  int64 rows | int64 cols | int64 nnz | float32 values[nnz]
            | int64 row_indices[nnz] | int64 col_pointers[cols + 1]   (CSC)
    model   float32 gamma | (int64 length | sparse W) | (.. B) | (.. Z)

Only non-zero entries appear in a sparse serialization.
"""

from __future__ import annotations
import io
from pathlib import Path
from typing import Tuple

import numpy as np
import scipy.sparse as sp

from .data import DataIngestType
from .errors import ExportSizeError
from .model import PARAM_NAMES, ModelParams

# size promised to interface-ingest callers for the whole model
MODEL_SIZE_LIMIT = 1 << 31

_I8 = np.dtype("<i8")
_F4 = np.dtype("<f4")


def _as_sparse(M) -> sp.csc_array:
    S = M.to_sparse() if hasattr(M, "to_sparse") else sp.csc_array(M)
    S = sp.csc_array(S, dtype=float)
    S.eliminate_zeros()
    S.sort_indices()
    return S


def _as_dense(M) -> np.ndarray:
    return M.to_dense() if hasattr(M, "to_dense") else np.asarray(M, dtype=float)


def dense_export_size(M) -> int:
    rows, cols = M.shape
    return 2 * _I8.itemsize + rows * cols * _F4.itemsize


def sparse_export_size(M) -> int:
    S = _as_sparse(M)
    return (3 * _I8.itemsize + S.nnz * (_F4.itemsize + _I8.itemsize)
            + (S.shape[1] + 1) * _I8.itemsize)


def dense_bytes(M) -> bytes:
    A = _as_dense(M)
    header = np.array(A.shape, dtype=_I8).tobytes()
    return header + np.asarray(A, dtype=_F4).tobytes(order="F")


def sparse_bytes(M) -> bytes:
    S = _as_sparse(M)
    header = np.array([S.shape[0], S.shape[1], S.nnz], dtype=_I8).tobytes()
    return (header + S.data.astype(_F4).tobytes() + S.indices.astype(_I8).tobytes()
            + S.indptr.astype(_I8).tobytes())


def _fill(buffer, blob: bytes) -> None:
    view = memoryview(buffer).cast("B")
    if view.nbytes != len(blob):
        raise ExportSizeError(f"buffer holds {view.nbytes} bytes, export needs exactly {len(blob)}")
    view[:] = blob


def export_dense_matrix(M, buffer) -> None:
    _fill(buffer, dense_bytes(M))


def export_sparse_matrix(M, buffer) -> None:
    _fill(buffer, sparse_bytes(M))


def import_dense(buf) -> np.ndarray:
    raw = memoryview(buf).cast("B")
    rows, cols = np.frombuffer(raw, dtype=_I8, count=2)
    values = np.frombuffer(raw, dtype=_F4, count=int(rows * cols), offset=2 * _I8.itemsize)
    return values.astype(float).reshape((int(rows), int(cols)), order="F")


def import_sparse(buf) -> sp.csc_array:
    raw = memoryview(buf).cast("B")
    rows, cols, nnz = (int(v) for v in np.frombuffer(raw, dtype=_I8, count=3))
    offset = 3 * _I8.itemsize
    data = np.frombuffer(raw, dtype=_F4, count=nnz, offset=offset).astype(float)
    offset += nnz * _F4.itemsize
    indices = np.frombuffer(raw, dtype=_I8, count=nnz, offset=offset)
    offset += nnz * _I8.itemsize
    indptr = np.frombuffer(raw, dtype=_I8, count=cols + 1, offset=offset)
    return sp.csc_array((data, indices, indptr), shape=(rows, cols))


def import_model(buf) -> Tuple[float, sp.csc_array, sp.csc_array, sp.csc_array]:
    """Inverse of ``ModelExporter.export_model``: (gamma, W, B, Z)."""
    raw = memoryview(buf).cast("B")
    gamma = float(np.frombuffer(raw, dtype=_F4, count=1)[0])
    offset = _F4.itemsize
    mats = []
    for _ in PARAM_NAMES:
        length = int(np.frombuffer(raw, dtype=_I8, count=1, offset=offset)[0])
        offset += _I8.itemsize
        mats.append(import_sparse(raw[offset:offset + length]))
        offset += length
    return (gamma, *mats)


class ModelExporter:
    """
    Size queries and exports for one trained model.

    >>> exporter = ModelExporter(params, gamma)
    >>> buf = bytearray(exporter.size_for_sparse("B"))
    >>> exporter.export_sparse("B", buf)
    """

    def __init__(self, params: ModelParams, gamma: float,
                 ingest_type: DataIngestType = DataIngestType.FILE):
        self.params = params
        self.gamma = float(gamma)
        self.ingest_type = DataIngestType(ingest_type)

    def _matrix(self, name: str):
        if name not in PARAM_NAMES:
            raise KeyError(f"unknown parameter {name!r}; expected one of {PARAM_NAMES}")
        return self.params.get(name)

    def size_for_sparse(self, name: str) -> int:
        return sparse_export_size(self._matrix(name))

    def export_sparse(self, name: str, buffer) -> None:
        export_sparse_matrix(self._matrix(name), buffer)

    def size_for_dense(self, name: str) -> int:
        return dense_export_size(self._matrix(name))

    def export_dense(self, name: str, buffer) -> None:
        export_dense_matrix(self._matrix(name), buffer)

    def model_size(self) -> int:
        size = _F4.itemsize + sum(_I8.itemsize + self.size_for_sparse(n) for n in PARAM_NAMES)
        if self.ingest_type == DataIngestType.INTERFACE and size >= MODEL_SIZE_LIMIT:
            raise ExportSizeError(f"model needs {size} bytes, limit is {MODEL_SIZE_LIMIT}")
        return size

    def export_model(self, size: int, buffer) -> None:
        expected = self.model_size()
        if size != expected:
            raise ExportSizeError(f"model size {size} does not match queried size {expected}")
        parts = [np.array([self.gamma], dtype=_F4).tobytes()]
        for name in PARAM_NAMES:
            blob = sparse_bytes(self._matrix(name))
            parts.append(np.array([len(blob)], dtype=_I8).tobytes())
            parts.append(blob)
        _fill(buffer, b"".join(parts))

    def write_model(self, fs, path) -> int:
        """Size query, fill and ``fs.write_bytes``; returns the byte count."""
        size = self.model_size()
        buf = bytearray(size)
        self.export_model(size, buf)
        fs.write_bytes(path, bytes(buf))
        return size


def matrix_to_tsv(M: np.ndarray) -> str:
    out = io.StringIO()
    np.savetxt(out, np.atleast_2d(M), delimiter="\t", fmt="%.9g")
    return out.getvalue()


def write_matrix_ascii(fs, M, outdir, name: str) -> Path:
    """
    Dump ``M`` transposed as TSV to ``outdir/name``.

    The transposed orientation is what the predefined initializer reads,
    so a results directory can seed a later run.
    """
    path = Path(outdir) / name
    fs.write_text(path, matrix_to_tsv(_as_dense(M).T))
    return path
