from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import pydicom

from .errors import PlanLoadError
from .utils import get, read_dicom

logger = logging.getLogger(__name__)

# Vendor private element holding the reference isocenter as "x\y\z" text.
REFERENCE_ISOCENTER_TAG = (0x300D, 0x10A9)


@dataclass(frozen=True)
class BeamEntry:
    index: int  # 1-based position in BeamSequence
    gantry_angle: float
    isocenter: tuple[float, float, float]
    beam_number: int | None = None
    beam_name: str | None = None


@dataclass(frozen=True)
class PlanMetadata:
    path: Path
    patient_id: str
    patient_name: str
    patient_birth_date: str
    study_uid: str
    frame_of_reference_uid: str
    plan_uid: str
    beams: tuple[BeamEntry, ...]
    study_description: str = ""
    structure_set_uid: str | None = None
    reference_isocenter_raw: bytes | None = None
    study_date: str = ""
    study_time: str = ""
    study_id: str = ""
    referring_physician_name: str = ""
    patient_sex: str = ""
    plan_label: str | None = None


def _raw_bytes(value) -> bytes | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("latin-1")
    # multi-valued elements were already split on backslash by pydicom
    return "\\".join(str(v) for v in value).encode("latin-1")


def _beam_entries(ds: pydicom.Dataset, path: Path) -> List[BeamEntry]:
    beams: List[BeamEntry] = []
    for idx, beam in enumerate(ds.BeamSequence, start=1):
        number = getattr(beam, "BeamNumber", None)
        name = getattr(beam, "BeamName", None)
        cps = getattr(beam, "ControlPointSequence", None)
        if not cps:
            logger.warning("Beam %d (%s) in %s has no control points; it cannot be matched", idx, name, path)
            continue
        cp0 = cps[0]
        angle = getattr(cp0, "GantryAngle", None)
        iso = getattr(cp0, "IsocenterPosition", None)
        if angle is None or iso is None or len(iso) < 3:
            logger.warning(
                "Beam %d (%s) in %s lacks gantry angle or isocenter on its first control point", idx, name, path
            )
            continue
        beams.append(
            BeamEntry(
                index=idx,
                gantry_angle=float(angle),
                isocenter=(float(iso[0]), float(iso[1]), float(iso[2])),
                beam_number=int(number) if number is not None else None,
                beam_name=str(name) if name is not None else None,
            )
        )
    return beams


def load_plan(path: Path | str) -> PlanMetadata:
    """Read the plan metadata and per-beam geometry from a DICOM RTPLAN."""
    path = Path(path)
    if not path.is_file():
        raise PlanLoadError(f"DICOM RT Plan not found: {path}")
    logger.info("Loading DICOM RT Plan %s", path)
    ds = read_dicom(path)
    if ds is None:
        raise PlanLoadError(f"Unable to read DICOM file {path}")

    if "BeamSequence" not in ds:
        raise PlanLoadError(f"The file {path} is not a DICOM RT Plan (no BeamSequence)")

    structure_set_uid: Optional[str] = None
    try:
        structure_set_uid = str(ds.ReferencedStructureSetSequence[0].ReferencedSOPInstanceUID)
    except (AttributeError, IndexError):
        logger.debug("%s has no referenced structure set", path)

    plan = PlanMetadata(
        path=path,
        patient_id=str(get(ds, (0x0010, 0x0020), "")),
        patient_name=str(get(ds, (0x0010, 0x0010), "")),
        patient_birth_date=str(get(ds, (0x0010, 0x0030), "")),
        study_uid=str(get(ds, (0x0020, 0x000D), "")).strip(),
        frame_of_reference_uid=str(get(ds, (0x0020, 0x0052), "")).strip(),
        plan_uid=str(get(ds, (0x0008, 0x0018), "")).strip(),
        beams=tuple(_beam_entries(ds, path)),
        study_description=str(get(ds, (0x0008, 0x1030), "")),
        structure_set_uid=structure_set_uid,
        reference_isocenter_raw=_raw_bytes(get(ds, REFERENCE_ISOCENTER_TAG)),
        study_date=str(get(ds, (0x0008, 0x0020), "")),
        study_time=str(get(ds, (0x0008, 0x0030), "")),
        study_id=str(get(ds, (0x0020, 0x0010), "")),
        referring_physician_name=str(get(ds, (0x0008, 0x0090), "")),
        patient_sex=str(get(ds, (0x0010, 0x0040), "")),
        plan_label=str(get(ds, (0x300A, 0x0002))) if (0x300A, 0x0002) in ds else None,
    )
    if not plan.plan_uid:
        raise PlanLoadError(f"The DICOM RT Plan {path} has no SOPInstanceUID")
    logger.info("Plan %s (%s): %d beam(s)", plan.plan_label or "", plan.plan_uid, len(plan.beams))
    return plan
