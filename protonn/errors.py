"""
Exception types raised by the ProtoNN trainer.

Every condition that aborts a run surfaces as one of these instead of
terminating the process. All of them subclass ``ValueError`` so callers
that already guard against bad input keep working.
"""


class ProtoNNError(Exception):
    """Base class for trainer errors."""


class ConfigurationError(ProtoNNError, ValueError):
    """Inconsistent hyperparameters or unusable predefined model files."""


class IngestionError(ProtoNNError, ValueError):
    """Declared sample counts disagree with the data that was fed."""


class ExportSizeError(ProtoNNError, ValueError):
    """Caller-provided buffer does not match the queried export size."""
