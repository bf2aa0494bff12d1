"""
Filesystem capability handed to the run recorder and model exporter.

Output code never touches ``os``/``pathlib`` directly; it goes through an
object with ``ensure_dir``, ``write_text`` and ``write_bytes`` so tests can
substitute an in-memory implementation and so directory failures come back
as a value instead of an exception.
"""

from __future__ import annotations
import warnings
from pathlib import Path
from typing import Dict, Union

from . import jsonlog

PathLike = Union[str, Path]


class LocalFilesystem:
    def ensure_dir(self, path: PathLike) -> bool:
        """Create ``path`` (and parents). Returns False, with a warning, on failure."""
        path = Path(path)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            warnings.warn(f"could not create output directory {path}: {e}; "
                          f"some output may not be recorded")
            jsonlog.log("output_dir_failed", level="warning", path=str(path), error=str(e))
            return False
        return True

    def write_text(self, path: PathLike, text: str) -> None:
        Path(path).write_text(text, encoding="utf-8")

    def write_bytes(self, path: PathLike, blob: bytes) -> None:
        Path(path).write_bytes(blob)


class MemoryFilesystem:
    """Keeps written files in a dict; handy for tests and dry runs."""

    def __init__(self, fail_dirs: bool = False):
        self.files: Dict[str, Union[str, bytes]] = {}
        self.dirs = set()
        self.fail_dirs = fail_dirs

    def ensure_dir(self, path: PathLike) -> bool:
        if self.fail_dirs:
            warnings.warn(f"could not create output directory {path}")
            return False
        self.dirs.add(str(Path(path)))
        return True

    def write_text(self, path: PathLike, text: str) -> None:
        self.files[str(Path(path))] = text

    def write_bytes(self, path: PathLike, blob: bytes) -> None:
        self.files[str(Path(path))] = bytes(blob)
