"""
Structured JSON logging for ProtoNN training runs.

Each record is one JSON object per line carrying a timestamp, a level,
the event name and arbitrary fields:

    {"ts": 1640995200.0, "level": "info", "event": "gamma_set", "gamma": 0.42}

Records go to stdout unless another stream is installed with
``set_stream``. Numpy scalars are converted so that statistics can be
logged directly.
"""

import json, sys, time

_stream = None
_enabled = True


def set_stream(stream):
    """Redirect log records to ``stream`` (``None`` restores stdout)."""
    global _stream
    _stream = stream


def set_enabled(enabled: bool):
    global _enabled
    _enabled = bool(enabled)


def _default(obj):
    if hasattr(obj, "tolist"):
        return obj.tolist()
    return str(obj)


def log(event: str, level: str = "info", **fields):
    """
    Log a structured JSON event.

    Args:
        event: Event name (e.g. "normalization_done", "substep_stats")
        level: "info", "warning" or "debug"
        **fields: Extra key-value pairs for the record

    Example:
        >>> log("gamma_set", gamma=0.42, source="median_heuristic")
    """
    if not _enabled:
        return
    rec = {"ts": time.time(), "level": level, "event": event}
    rec.update(fields)
    out = _stream if _stream is not None else sys.stdout
    out.write(json.dumps(rec, default=_default) + "\n")
    out.flush()
