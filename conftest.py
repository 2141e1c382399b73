"""Shared fixtures: synthetic RT Plans and dose_<angle>.img/.header pairs."""

from pathlib import Path

import numpy as np
import pytest
from pydicom.dataset import Dataset, FileMetaDataset
from pydicom.sequence import Sequence
from pydicom.uid import ExplicitVRLittleEndian, generate_uid

RTPLAN_SOP_CLASS_UID = "1.2.840.10008.5.1.4.1.1.481.5"

HEADER_TEMPLATE = """\
x_dim = {x_dim};
y_dim = {y_dim};
z_dim = {z_dim};
x_start = {x_start};
y_start = {y_start};
z_start = {z_start};
x_pixdim = {x_pixdim};
y_pixdim = {y_pixdim};
z_pixdim = {z_pixdim};
"""


def header_text(dims=(4, 3, 2), start=(-10.0, -5.0, -150.0), width=(0.5, 0.25, 1.0), extra: str = "") -> str:
    text = HEADER_TEMPLATE.format(
        x_dim=dims[0], y_dim=dims[1], z_dim=dims[2],
        x_start=start[0], y_start=start[1], z_start=start[2],
        x_pixdim=width[0], y_pixdim=width[1], z_pixdim=width[2],
    )
    return extra + text


def build_plan(
    path: Path,
    angles=(0.0, 180.0, 180.0),
    isocenters=None,
    reference_isocenter: bytes | None = b"0.0\\0.0\\30.0",
) -> Path:
    if isocenters is None:
        isocenters = [(0.0, 0.0, 5.0)] * len(angles)

    file_meta = FileMetaDataset()
    file_meta.MediaStorageSOPClassUID = RTPLAN_SOP_CLASS_UID
    file_meta.MediaStorageSOPInstanceUID = generate_uid()
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = Dataset()
    ds.file_meta = file_meta
    ds.SOPClassUID = RTPLAN_SOP_CLASS_UID
    ds.SOPInstanceUID = file_meta.MediaStorageSOPInstanceUID
    ds.Modality = "RTPLAN"
    ds.StudyDate = "20160101"
    ds.StudyTime = "120000"
    ds.StudyDescription = "TomoDirect QA"
    ds.PatientName = "Phantom^Delta4"
    ds.PatientID = "QA0001"
    ds.PatientBirthDate = "19700101"
    ds.PatientSex = "O"
    ds.StudyInstanceUID = generate_uid()
    ds.SeriesInstanceUID = generate_uid()
    ds.FrameOfReferenceUID = generate_uid()
    ds.RTPlanLabel = "TD_PLAN"

    ref_struct = Dataset()
    ref_struct.ReferencedSOPClassUID = "1.2.840.10008.5.1.4.1.1.481.3"
    ref_struct.ReferencedSOPInstanceUID = generate_uid()
    ds.ReferencedStructureSetSequence = Sequence([ref_struct])

    beams = []
    for number, (angle, iso) in enumerate(zip(angles, isocenters), start=1):
        cp = Dataset()
        cp.ControlPointIndex = 0
        cp.GantryAngle = angle
        cp.IsocenterPosition = list(iso)
        beam = Dataset()
        beam.BeamNumber = number
        beam.BeamName = f"Beam {number}"
        beam.ControlPointSequence = Sequence([cp])
        beams.append(beam)
    ds.BeamSequence = Sequence(beams)

    if reference_isocenter is not None:
        ds.add_new((0x300D, 0x0010), "LO", "TOMO_HA_01")
        ds.add_new((0x300D, 0x10A9), "UN", reference_isocenter)

    path.parent.mkdir(parents=True, exist_ok=True)
    ds.save_as(str(path), enforce_file_format=True)
    return path


def write_dose_pair(folder: Path, stem: str, data: np.ndarray, start=(-10.0, -5.0, -150.0),
                    width=(0.5, 0.25, 1.0), header: bool = True, byte_order: str = ">") -> Path:
    folder.mkdir(parents=True, exist_ok=True)
    img = folder / f"{stem}.img"
    img.write_bytes(np.asarray(data).astype(f"{byte_order}f4").ravel(order="F").tobytes())
    if header:
        (folder / f"{stem}.header").write_text(header_text(data.shape, start, width))
    return img


def sample_dose(dims=(4, 3, 2)) -> np.ndarray:
    n = int(np.prod(dims))
    return (np.arange(n, dtype=np.float32) * 0.01 + 0.5).reshape(dims, order="F")


@pytest.fixture
def plan_file(tmp_path):
    return build_plan(tmp_path / "plan" / "RP.TD.dcm")
