from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

SERIES_DESCRIPTION = "TomoDirect Beam Dose"
BYTE_ORDERS = ("big", "little")


@dataclass
class ConverterConfig:
    # Binary layout
    byte_order: str = "big"  # one of: big, little

    # Outputs
    output_dir: Path | None = None  # None => directory of the RTPLAN
    series_description: str = SERIES_DESCRIPTION
    report_path: Path | None = None  # optional CSV with per-file outcomes

    # Logging / progress
    logs_root: Path | None = None
    show_progress: bool = True

    def __post_init__(self) -> None:
        self.byte_order = str(self.byte_order).lower()
        if self.byte_order not in BYTE_ORDERS:
            raise ValueError(f"byte_order must be one of {BYTE_ORDERS}, got {self.byte_order!r}")
        for name in ("output_dir", "report_path", "logs_root"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, Path):
                setattr(self, name, Path(value))

    def ensure_dirs(self) -> None:
        if self.output_dir is not None:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        if self.logs_root is not None:
            self.logs_root.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "ConverterConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "ConverterConfig":
        """Load configuration from a YAML mapping; missing keys keep their defaults."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ValueError(f"Configuration file {path} is not valid YAML: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        logger.debug("Loaded configuration from %s: %s", path, data)
        return cls.from_mapping(data)
