from __future__ import annotations

import logging
import os
from pathlib import Path
from time import perf_counter
from typing import Any

import pydicom
from pydicom.dataset import FileDataset
from pydicom.errors import InvalidDicomError
from pydicom.tag import Tag

logger = logging.getLogger(__name__)


def read_dicom(path: str | os.PathLike) -> FileDataset | None:
    try:
        return pydicom.dcmread(str(path), force=True)
    except (InvalidDicomError, OSError, ValueError, EOFError) as e:
        logger.debug("Failed to read DICOM %s: %s", path, e)
        return None


def get(ds: FileDataset, tag: int | tuple[int, int] | str, default: Any = None) -> Any:
    try:
        if isinstance(tag, str):
            return getattr(ds, tag, default)
        return ds[tag].value if Tag(tag) in ds else default
    except (KeyError, ValueError, OverflowError) as e:
        logger.debug("Unable to read %s: %s", tag, e)
        return default


def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def log_progress(log: logging.Logger, label: str, completed: int, total: int, start: float) -> None:
    if total == 0:
        return
    elapsed = perf_counter() - start
    rate = completed / elapsed if elapsed > 0 else 0
    eta = (total - completed) / rate if rate > 0 else float('inf')
    log.info(
        "%s: %d/%d (%.0f%%) elapsed %.1fs ETA %.1fs",
        label,
        completed,
        total,
        100 * completed / total,
        elapsed,
        eta,
    )
