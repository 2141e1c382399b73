from __future__ import annotations

import logging
from typing import Optional

from .errors import OffsetDecodeError

logger = logging.getLogger(__name__)

NO_OFFSET = (0.0, 0.0, 0.0)

# The private field and the beam isocenter are both divided by this before
# being added to the header z origin.
OFFSET_UNIT_DIVISOR = 10.0


def resolve_isocenter_offset(raw: Optional[bytes]) -> tuple[float, float, float]:
    """Decode the ``x\\y\\z`` reference isocenter stored in a private element."""
    if raw is None:
        raise OffsetDecodeError("The plan has no reference isocenter private element (300D,10A9)")
    if isinstance(raw, str):
        text = raw
    else:
        text = bytes(raw).decode("latin-1")
    text = text.replace("\x00", "").strip()
    if not text:
        raise OffsetDecodeError("The reference isocenter private element is empty")

    tokens = [tok.strip() for tok in text.split("\\")]
    if len(tokens) != 3:
        raise OffsetDecodeError(f"Expected three '\\'-delimited values in reference isocenter, got {text!r}")
    try:
        x, y, z = (float(tok) for tok in tokens)
    except ValueError as exc:
        raise OffsetDecodeError(f"Unable to parse reference isocenter {text!r}: {exc}") from exc
    logger.info("Reference isocenter offset: %.4f, %.4f, %.4f", x, y, z)
    return (x, y, z)


def offset_z_start(z_start: float, offset: tuple[float, float, float], isocenter: tuple[float, float, float]) -> float:
    """IEC Y adjustment: only the z origin moves."""
    return z_start + offset[2] / OFFSET_UNIT_DIVISOR - isocenter[2] / OFFSET_UNIT_DIVISOR
