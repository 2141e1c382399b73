from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from .beams import UNMATCHED, find_beam, match_beam
from .binary import DoseVolume, read_binary_dose
from .errors import DoseReadError, MissingHeader, NoAngleInFilename
from .header import read_header
from .offset import NO_OFFSET, offset_z_start
from .plan import PlanMetadata

logger = logging.getLogger(__name__)

BINARY_SUFFIX = ".img"
HEADER_SUFFIX = ".header"

_ANGLE_PATTERN = re.compile(r"dose_([0-9.]+)\.img$", re.IGNORECASE)


@dataclass
class DoseRecord:
    source: Path
    angle: float
    volume: DoseVolume
    beam_index: int
    plan: PlanMetadata
    offset_applied: bool = False

    @property
    def matched(self) -> bool:
        return self.beam_index != UNMATCHED


def header_path_for(binary_path: Path | str) -> Path:
    binary_path = Path(binary_path)
    return binary_path.with_suffix(HEADER_SUFFIX)


def extract_gantry_angle(filename: Path | str) -> float:
    """``dose_180.5.img`` -> 180.5; anything else raises NoAngleInFilename."""
    name = Path(filename).name
    m = _ANGLE_PATTERN.search(name)
    if m is None:
        raise NoAngleInFilename(filename, "file name does not match dose_<angle>.img")
    try:
        return float(m.group(1))
    except ValueError:
        raise NoAngleInFilename(filename, f"{m.group(1)!r} is not a gantry angle") from None


def build_dose_record(
    binary_path: Path | str,
    plan: PlanMetadata,
    *,
    apply_offset: bool = False,
    offset: tuple[float, float, float] = NO_OFFSET,
    byte_order: str = "big",
    logger: Optional[logging.Logger] = None,
) -> DoseRecord:
    """Convert one ``dose_<angle>.img``/``.header`` pair into a DoseRecord.

    Raises a FileSkipped subclass when the file has to be skipped; the caller
    decides how to report it.
    """
    log = logger or logging.getLogger(__name__)
    binary_path = Path(binary_path)

    angle = extract_gantry_angle(binary_path)

    header_path = header_path_for(binary_path)
    if not header_path.is_file():
        raise MissingHeader(binary_path, f"the associated header {header_path.name} could not be found")

    beam_index = match_beam(angle, plan.beams)
    beam = find_beam(beam_index, plan.beams)
    if beam is None:
        log.warning("%s: no beam in the plan has gantry angle %s", binary_path.name, angle)
    else:
        log.debug("%s: gantry angle %s matches beam %d (%s)", binary_path.name, angle, beam.index, beam.beam_name)

    try:
        header = read_header(header_path)
        volume = read_binary_dose(binary_path, header, byte_order=byte_order)
    except OSError as exc:
        raise DoseReadError(binary_path, str(exc)) from exc

    offset_applied = False
    if apply_offset and beam is not None:
        z_start = offset_z_start(header.z_start, offset, beam.isocenter)
        log.debug("%s: IEC Y offset moves z_start %.4f -> %.4f", binary_path.name, header.z_start, z_start)
        volume = replace(volume, start=(header.x_start, header.y_start, z_start))
        offset_applied = True
    elif apply_offset:
        log.warning("%s: beam isocenter offset not applied (no matching beam)", binary_path.name)

    return DoseRecord(
        source=binary_path,
        angle=angle,
        volume=volume,
        beam_index=beam_index,
        plan=plan,
        offset_applied=offset_applied,
    )
