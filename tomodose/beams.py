from __future__ import annotations

import logging
from typing import Optional, Sequence

from .plan import BeamEntry

logger = logging.getLogger(__name__)

UNMATCHED = 0


def match_beam(angle: float, beams: Sequence[BeamEntry]) -> int:
    """Return the index of the first beam whose gantry angle equals ``angle``.

    Equality is exact: file names carry the same float representation as the
    plan, so a tolerance would only hide mismatches. Returns ``UNMATCHED`` (0)
    when no beam has that angle.
    """
    for beam in beams:
        if beam.gantry_angle == angle:
            return beam.index
    return UNMATCHED


def find_beam(index: int, beams: Sequence[BeamEntry]) -> Optional[BeamEntry]:
    if index == UNMATCHED:
        return None
    for beam in beams:
        if beam.index == index:
            return beam
    return None
