from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

from .errors import InvalidHeader

logger = logging.getLogger(__name__)

# name = value;   e.g. "x_dim = 128;" or "z_start = -15.25;"
_DECLARATION = re.compile(
    r"^\s*([a-z_]+)\s*=\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)\s*;"
)

DIM_FIELDS = ("x_dim", "y_dim", "z_dim")
START_FIELDS = ("x_start", "y_start", "z_start")
PIXDIM_FIELDS = ("x_pixdim", "y_pixdim", "z_pixdim")
REQUIRED_FIELDS = DIM_FIELDS + START_FIELDS + PIXDIM_FIELDS


@dataclass(frozen=True)
class DoseHeader:
    """Dimensions and voxel geometry of one binary dose array."""

    x_dim: int
    y_dim: int
    z_dim: int
    x_start: float
    y_start: float
    z_start: float
    x_pixdim: float
    y_pixdim: float
    z_pixdim: float

    @property
    def dims(self) -> tuple[int, int, int]:
        return (self.x_dim, self.y_dim, self.z_dim)

    @property
    def start(self) -> tuple[float, float, float]:
        return (self.x_start, self.y_start, self.z_start)

    @property
    def width(self) -> tuple[float, float, float]:
        return (self.x_pixdim, self.y_pixdim, self.z_pixdim)

    @property
    def voxel_count(self) -> int:
        return self.x_dim * self.y_dim * self.z_dim


def parse_header_text(text: str) -> Dict[str, float]:
    """Return every ``name = value;`` declaration found in ``text``.

    Lines that do not match are ignored. When a name is declared twice the
    last declaration wins.
    """
    values: Dict[str, float] = {}
    for line in text.splitlines():
        if not line.strip():
            continue
        m = _DECLARATION.match(line)
        if m is None:
            continue
        values[m.group(1)] = float(m.group(2))
    return values


def parse_header(text: str, source: Path | str = "<header>") -> DoseHeader:
    values = parse_header_text(text)
    missing = [name for name in REQUIRED_FIELDS if name not in values]
    if missing:
        raise InvalidHeader(source, f"missing required field(s): {', '.join(missing)}")

    dims = []
    for name in DIM_FIELDS:
        value = values[name]
        if value <= 0 or not float(value).is_integer():
            raise InvalidHeader(source, f"{name} must be a positive integer, got {value}")
        dims.append(int(value))
    for name in PIXDIM_FIELDS:
        if values[name] <= 0:
            raise InvalidHeader(source, f"{name} must be positive, got {values[name]}")

    header = DoseHeader(
        *dims,
        *(values[name] for name in START_FIELDS),
        *(values[name] for name in PIXDIM_FIELDS),
    )
    logger.debug("Parsed header %s: dims=%s start=%s width=%s", source, header.dims, header.start, header.width)
    return header


def read_header(path: Path | str) -> DoseHeader:
    path = Path(path)
    with open(path, "r", encoding="latin-1") as f:
        text = f.read()
    return parse_header(text, path)
