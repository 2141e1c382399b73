from __future__ import annotations

from pathlib import Path


class TomoDoseError(Exception):
    """Base class for all conversion errors."""


class SetupError(TomoDoseError):
    """Errors that abort a run before any file is processed."""


class PlanLoadError(SetupError):
    pass


class InputNotFound(SetupError):
    pass


class OffsetDecodeError(SetupError):
    pass


class FileSkipped(TomoDoseError):
    """A single candidate file could not be converted; the run continues."""

    status = "skipped"

    def __init__(self, path: Path | str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class MissingHeader(FileSkipped):
    status = "missing_header"


class InvalidHeader(FileSkipped):
    status = "invalid_header"


class NoAngleInFilename(FileSkipped):
    status = "no_angle"


class TruncatedData(FileSkipped):
    status = "truncated"


class DoseReadError(FileSkipped):
    status = "read_failed"


class WriteFailure(FileSkipped):
    status = "write_failed"


__all__ = [
    "TomoDoseError",
    "SetupError",
    "PlanLoadError",
    "InputNotFound",
    "OffsetDecodeError",
    "FileSkipped",
    "MissingHeader",
    "InvalidHeader",
    "NoAngleInFilename",
    "TruncatedData",
    "DoseReadError",
    "WriteFailure",
]
