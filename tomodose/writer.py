from __future__ import annotations

import datetime
import logging
from pathlib import Path

import numpy as np
from pydicom.dataset import Dataset, FileMetaDataset
from pydicom.sequence import Sequence
from pydicom.tag import Tag
from pydicom.uid import ExplicitVRLittleEndian, generate_uid
from pydicom.valuerep import DSfloat

from . import __version__
from .config import SERIES_DESCRIPTION
from .errors import WriteFailure
from .record import DoseRecord
from .utils import ensure_dir

logger = logging.getLogger(__name__)

RTDOSE_SOP_CLASS_UID = "1.2.840.10008.5.1.4.1.1.481.2"
RTPLAN_SOP_CLASS_UID = "1.2.840.10008.5.1.4.1.1.481.5"
RTSTRUCT_SOP_CLASS_UID = "1.2.840.10008.5.1.4.1.1.481.3"

_UINT32_CEILING = 4_000_000_000


def _ds(value: float) -> DSfloat:
    return DSfloat(float(value), auto_format=True)


def dose_grid_scaling(max_dose: float) -> float:
    """Scaling so that ``max_dose`` fits in an unsigned 32-bit pixel."""
    if not np.isfinite(max_dose) or max_dose <= 0:
        return 1.0
    return float(_ds(max_dose / _UINT32_CEILING))


def to_pixel_array(volume_data: np.ndarray, scaling: float) -> np.ndarray:
    """(x, y, z) dose -> (frames, rows, columns) unsigned integers."""
    arr = np.nan_to_num(np.asarray(volume_data, dtype=np.float64), nan=0.0, posinf=0.0, neginf=0.0)
    arr = np.clip(arr, 0.0, None)
    frames = np.transpose(arr, (2, 1, 0))
    pixels = np.rint(frames / scaling)
    return np.ascontiguousarray(np.clip(pixels, 0, np.iinfo(np.uint32).max).astype("<u4"))


def build_rtdose_dataset(record: DoseRecord, series_description: str = SERIES_DESCRIPTION) -> Dataset:
    plan = record.plan
    volume = record.volume
    x_dim, y_dim, z_dim = volume.shape
    x_width, y_width, z_width = volume.width

    max_dose = float(np.nanmax(volume.data)) if volume.data.size else 0.0
    scaling = dose_grid_scaling(max_dose)
    pixels = to_pixel_array(volume.data, scaling)

    sop_uid = generate_uid()
    now = datetime.datetime.now()

    file_meta = FileMetaDataset()
    file_meta.MediaStorageSOPClassUID = RTDOSE_SOP_CLASS_UID
    file_meta.MediaStorageSOPInstanceUID = sop_uid
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = Dataset()
    ds.file_meta = file_meta
    ds.SpecificCharacterSet = "ISO_IR 100"
    ds.InstanceCreationDate = now.strftime("%Y%m%d")
    ds.InstanceCreationTime = now.strftime("%H%M%S")
    ds.SOPClassUID = RTDOSE_SOP_CLASS_UID
    ds.SOPInstanceUID = sop_uid
    ds.StudyDate = plan.study_date
    ds.StudyTime = plan.study_time
    ds.AccessionNumber = ""
    ds.Modality = "RTDOSE"
    ds.Manufacturer = ""
    ds.ReferringPhysicianName = plan.referring_physician_name
    ds.StudyDescription = plan.study_description
    ds.SeriesDescription = series_description
    ds.SoftwareVersions = f"tomodose {__version__}"

    ds.PatientName = plan.patient_name
    ds.PatientID = plan.patient_id
    ds.PatientBirthDate = plan.patient_birth_date
    ds.PatientSex = plan.patient_sex

    ds.SliceThickness = _ds(z_width)
    ds.StudyInstanceUID = plan.study_uid
    ds.SeriesInstanceUID = generate_uid()
    ds.StudyID = plan.study_id
    ds.SeriesNumber = 1
    ds.InstanceNumber = 1
    ds.ImagePositionPatient = [_ds(v) for v in volume.start]
    ds.ImageOrientationPatient = [_ds(v) for v in (1, 0, 0, 0, 1, 0)]
    ds.FrameOfReferenceUID = plan.frame_of_reference_uid
    ds.PositionReferenceIndicator = ""

    ds.SamplesPerPixel = 1
    ds.PhotometricInterpretation = "MONOCHROME2"
    ds.NumberOfFrames = z_dim
    ds.FrameIncrementPointer = Tag(0x3004, 0x000C)  # GridFrameOffsetVector
    ds.Rows = y_dim
    ds.Columns = x_dim
    ds.PixelSpacing = [_ds(y_width), _ds(x_width)]
    ds.BitsAllocated = 32
    ds.BitsStored = 32
    ds.HighBit = 31
    ds.PixelRepresentation = 0

    ds.DoseUnits = "GY"
    ds.DoseType = "PHYSICAL"
    ds.DoseSummationType = "BEAM"
    ds.GridFrameOffsetVector = [_ds(k * z_width) for k in range(z_dim)]
    ds.DoseGridScaling = _ds(scaling)

    ref_plan = Dataset()
    ref_plan.ReferencedSOPClassUID = RTPLAN_SOP_CLASS_UID
    ref_plan.ReferencedSOPInstanceUID = plan.plan_uid
    if record.matched:
        ref_beam = Dataset()
        ref_beam.ReferencedBeamNumber = record.beam_index
        ref_fraction = Dataset()
        ref_fraction.ReferencedBeamSequence = Sequence([ref_beam])
        ref_fraction.ReferencedFractionGroupNumber = 1
        ref_plan.ReferencedFractionGroupSequence = Sequence([ref_fraction])
    ds.ReferencedRTPlanSequence = Sequence([ref_plan])

    if plan.structure_set_uid:
        ref_struct = Dataset()
        ref_struct.ReferencedSOPClassUID = RTSTRUCT_SOP_CLASS_UID
        ref_struct.ReferencedSOPInstanceUID = plan.structure_set_uid
        ds.ReferencedStructureSetSequence = Sequence([ref_struct])

    ds.PixelData = pixels.tobytes()
    return ds


def write_rtdose(record: DoseRecord, path: Path | str, *, series_description: str = SERIES_DESCRIPTION) -> Path:
    """Write ``record`` as a DICOM RTDOSE file; raises WriteFailure on error."""
    path = Path(path)
    try:
        ds = build_rtdose_dataset(record, series_description=series_description)
        ensure_dir(path.parent)
        ds.save_as(str(path), enforce_file_format=True)
    except (OSError, ValueError, TypeError) as exc:
        raise WriteFailure(record.source, f"unable to write {path}: {exc}") from exc
    logger.debug("Wrote %s (beam %d)", path, record.beam_index)
    return path
