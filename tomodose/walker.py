from __future__ import annotations

import logging
import os
from collections import deque
from pathlib import Path
from typing import Iterator, List

from .record import BINARY_SUFFIX

logger = logging.getLogger(__name__)


def iter_candidate_files(root: Path | str) -> Iterator[Path]:
    """Yield every regular file below ``root``.

    Folders are expanded through a FIFO queue: the entries of a folder are
    yielded in listing order and its subfolders are queued behind everything
    already discovered. Symlinked folders are not followed.
    """
    queue = deque([Path(root)])
    while queue:
        folder = queue.popleft()
        try:
            with os.scandir(folder) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            logger.warning("Unable to list %s: %s", folder, exc)
            continue
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                queue.append(Path(entry.path))
            elif entry.is_file():
                yield Path(entry.path)


def discover_binary_files(root: Path | str) -> List[Path]:
    files = [p for p in iter_candidate_files(root) if p.suffix.lower() == BINARY_SUFFIX]
    logger.info("Found %d binary file(s) under %s", len(files), root)
    return files
