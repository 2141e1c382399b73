from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .errors import TruncatedData
from .header import DoseHeader

logger = logging.getLogger(__name__)

_DTYPES = {"big": ">f4", "little": "<f4"}


@dataclass
class DoseVolume:
    """Dense dose grid indexed (x, y, z); ``physical = start + index * width``."""

    data: np.ndarray
    start: tuple[float, float, float]
    width: tuple[float, float, float]

    @property
    def shape(self) -> tuple[int, int, int]:
        return tuple(int(n) for n in self.data.shape)

    def coordinates(self, axis: int) -> np.ndarray:
        """Physical positions of the voxel centres along ``axis``."""
        n = self.data.shape[axis]
        return self.start[axis] + np.arange(n, dtype=float) * self.width[axis]


def read_binary_dose(path: Path | str, header: DoseHeader, byte_order: str = "big") -> DoseVolume:
    """Read a raw float32 dose array laid out x-fastest.

    Exactly ``x_dim * y_dim * z_dim`` values are consumed; any trailing bytes
    are ignored. Raises TruncatedData when the file is too short.
    """
    path = Path(path)
    try:
        dtype = np.dtype(_DTYPES[byte_order])
    except KeyError:
        raise ValueError(f"Unsupported byte order {byte_order!r}") from None

    count = header.voxel_count
    expected = count * dtype.itemsize
    with open(path, "rb") as f:
        size = os.fstat(f.fileno()).st_size
        if size < expected:
            raise TruncatedData(
                path, f"expected {count} values ({expected} bytes), found {size} bytes"
            )
        raw = f.read(expected)
        if len(raw) < expected:
            raise TruncatedData(
                path, f"expected {count} values ({expected} bytes), found {len(raw)} bytes"
            )
        if f.read(1):
            logger.debug("%s has trailing data beyond %d bytes; ignored", path, expected)

    flat = np.frombuffer(raw, dtype=dtype, count=count).astype(np.float32)
    data = flat.reshape(header.dims, order="F")
    return DoseVolume(data=data, start=header.start, width=header.width)
