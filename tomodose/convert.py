from __future__ import annotations

import logging
import platform
from collections import Counter
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from time import perf_counter
from typing import Callable, List, Optional

import numpy as np
import pandas as pd
import pydicom

from . import __version__
from .config import ConverterConfig
from .errors import FileSkipped, InputNotFound, NoAngleInFilename
from .offset import NO_OFFSET, resolve_isocenter_offset
from .plan import PlanMetadata, load_plan
from .record import build_dose_record
from .utils import ensure_dir, log_progress
from .walker import discover_binary_files
from .writer import write_rtdose

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
CancelCheck = Callable[[], bool]

_PROGRESS_LOG_EVERY = 25


@dataclass
class FileOutcome:
    path: Path
    status: str
    reason: str = ""
    angle: float | None = None
    beam_index: int | None = None
    offset_applied: bool = False
    output_path: Path | None = None


@dataclass
class ConversionResult:
    plan_path: Path
    binary_root: Path
    apply_offset: bool
    offset: tuple[float, float, float] = NO_OFFSET
    outcomes: List[FileOutcome] = field(default_factory=list)
    elapsed: float = 0.0
    cancelled: bool = False

    @property
    def written(self) -> List[Path]:
        return [o.output_path for o in self.outcomes if o.status == "written" and o.output_path is not None]

    @property
    def count(self) -> int:
        return len(self.written)

    @property
    def examined(self) -> int:
        return len(self.outcomes)

    @property
    def skipped(self) -> List[FileOutcome]:
        return [o for o in self.outcomes if o.status != "written"]

    def status_counts(self) -> dict[str, int]:
        return dict(Counter(o.status for o in self.outcomes))

    def to_dataframe(self) -> pd.DataFrame:
        rows = []
        for outcome in self.outcomes:
            row = asdict(outcome)
            row["path"] = str(outcome.path)
            row["output_path"] = str(outcome.output_path) if outcome.output_path else ""
            rows.append(row)
        columns = [f.name for f in fields(FileOutcome)]
        return pd.DataFrame(rows, columns=columns)


def write_report(result: ConversionResult, path: Path | str) -> Path:
    path = Path(path)
    ensure_dir(path.parent)
    result.to_dataframe().to_csv(path, index=False)
    logger.info("Wrote conversion report %s", path)
    return path


def log_banner(log: logging.Logger) -> None:
    lines = [
        "TomoDirect DICOM Beam Dose Creator",
        f"Version: {__version__}",
        f"Python: {platform.python_version()} on {platform.system()} {platform.release()}",
        f"pydicom: {pydicom.__version__}",
        f"numpy: {np.__version__}",
    ]
    separator = "-" * max(len(line) for line in lines)
    log.info("\n%s\n%s\n%s", separator, "\n".join(lines), separator)


class TomoDirectDoseConverter:
    """Convert every ``dose_<angle>.img`` under a folder into DICOM RTDOSE files.

    The plan (and, in offset mode, the reference isocenter) is resolved once
    in the constructor; setup errors propagate from there. ``run`` never
    raises for per-file problems: they end up as FileOutcome entries.
    """

    def __init__(
        self,
        plan_path: Path | str,
        binary_root: Path | str,
        *,
        apply_offset: bool,
        config: Optional[ConverterConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.log = logger or logging.getLogger(__name__)
        log_banner(self.log)
        self.config = config or ConverterConfig()
        self.plan_path = Path(plan_path)
        self.binary_root = Path(binary_root)
        self.apply_offset = bool(apply_offset)

        self.plan: PlanMetadata = load_plan(self.plan_path)
        if not self.binary_root.is_dir():
            raise InputNotFound(f"Binary dose folder not found: {self.binary_root}")

        if self.apply_offset:
            self.log.info("Applying beam isocenter offset in IEC Y (Delta4)")
            self.offset = resolve_isocenter_offset(self.plan.reference_isocenter_raw)
        else:
            self.log.info("Beam isocenter offset disabled")
            self.offset = NO_OFFSET

        self.output_dir = self.config.output_dir or self.plan_path.parent

    def output_path_for(self, binary_path: Path) -> Path:
        return self.output_dir / f"{binary_path.stem}.dcm"

    def convert_file(self, binary_path: Path) -> FileOutcome:
        try:
            record = build_dose_record(
                binary_path,
                self.plan,
                apply_offset=self.apply_offset,
                offset=self.offset,
                byte_order=self.config.byte_order,
                logger=self.log,
            )
            out = write_rtdose(
                record,
                self.output_path_for(binary_path),
                series_description=self.config.series_description,
            )
        except NoAngleInFilename as exc:
            self.log.debug("Skipping %s: %s", binary_path, exc.reason)
            return FileOutcome(binary_path, exc.status, exc.reason)
        except FileSkipped as exc:
            self.log.warning("Skipping %s: %s", binary_path, exc.reason)
            return FileOutcome(binary_path, exc.status, exc.reason)
        return FileOutcome(
            binary_path,
            "written",
            angle=record.angle,
            beam_index=record.beam_index,
            offset_applied=record.offset_applied,
            output_path=out,
        )

    def run(
        self,
        progress: Optional[ProgressCallback] = None,
        should_cancel: Optional[CancelCheck] = None,
    ) -> ConversionResult:
        self.log.info("Scanning %s for binary files", self.binary_root)
        candidates = discover_binary_files(self.binary_root)
        result = ConversionResult(
            plan_path=self.plan_path,
            binary_root=self.binary_root,
            apply_offset=self.apply_offset,
            offset=self.offset,
        )
        total = len(candidates)
        start = perf_counter()
        seen_outputs: set[Path] = set()

        for i, binary_path in enumerate(candidates, start=1):
            if should_cancel is not None and should_cancel():
                self.log.warning("Conversion cancelled after %d of %d file(s)", i - 1, total)
                result.cancelled = True
                break
            target = self.output_path_for(binary_path)
            if target in seen_outputs:
                self.log.warning("%s overwrites an output already written in this run", target)
            outcome = self.convert_file(binary_path)
            if outcome.output_path is not None:
                seen_outputs.add(outcome.output_path)
            result.outcomes.append(outcome)
            if progress is not None:
                progress(i, total)
            elif i % _PROGRESS_LOG_EVERY == 0:
                log_progress(self.log, "Conversion", i, total, start)

        result.elapsed = perf_counter() - start
        counts = ", ".join(f"{k}={v}" for k, v in sorted(result.status_counts().items())) or "none"
        self.log.info(
            "Conversion completed: %d of %d candidate(s) written as DICOM RT Dose in %.3f seconds (%s)",
            result.count,
            result.examined,
            result.elapsed,
            counts,
        )
        if self.config.report_path is not None:
            write_report(result, self.config.report_path)
        return result


def convert_directory(
    plan_path: Path | str,
    binary_root: Path | str,
    *,
    apply_offset: bool,
    config: Optional[ConverterConfig] = None,
    progress: Optional[ProgressCallback] = None,
    should_cancel: Optional[CancelCheck] = None,
    logger: Optional[logging.Logger] = None,
) -> ConversionResult:
    converter = TomoDirectDoseConverter(
        plan_path,
        binary_root,
        apply_offset=apply_offset,
        config=config,
        logger=logger,
    )
    return converter.run(progress=progress, should_cancel=should_cancel)
