# tomodose package initialization
# Converts TomoDirect DQA per-beam binary doses into DICOM RTDOSE files.

__version__ = "1.0.0"

__all__ = [
    "config",
    "errors",
    "header",
    "binary",
    "plan",
    "beams",
    "offset",
    "record",
    "walker",
    "writer",
    "convert",
]
