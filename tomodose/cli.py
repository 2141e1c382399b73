from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from tqdm import tqdm

from .config import BYTE_ORDERS, ConverterConfig
from .convert import TomoDirectDoseConverter
from .errors import SetupError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="tomodose",
        description="Create per-beam DICOM RT Dose files from TomoDirect DQA binary dose exports",
    )
    p.add_argument("--plan", required=True, help="Path to the DICOM RT Plan")
    p.add_argument("--binary-dir", required=True, help="Folder containing dose_<angle>.img/.header files (scanned recursively)")
    offset = p.add_mutually_exclusive_group()
    offset.add_argument(
        "--offset",
        dest="offset",
        action="store_true",
        default=True,
        help="Apply the beam isocenter offset in IEC Y for Delta4 (default)",
    )
    offset.add_argument("--no-offset", dest="offset", action="store_false", help="Do not apply the beam isocenter offset")
    p.add_argument("--output-dir", default=None, help="Output directory (default: folder of the RT Plan)")
    p.add_argument("--config", default=None, help="YAML configuration file; command line options take precedence")
    p.add_argument("--byte-order", choices=BYTE_ORDERS, default=None, help="Byte order of the binary dose files (default: big)")
    p.add_argument("--report", default=None, help="Write a CSV with the outcome of every candidate file")
    p.add_argument("--logs", default=None, help="Logs directory; tomodose.log is written there")
    p.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity")
    return p


def _build_config(args: argparse.Namespace) -> ConverterConfig:
    cfg = ConverterConfig.from_yaml(args.config) if args.config else ConverterConfig()
    if args.byte_order:
        cfg.byte_order = args.byte_order
    if args.output_dir:
        cfg.output_dir = Path(args.output_dir).resolve()
    if args.report:
        cfg.report_path = Path(args.report).resolve()
    if args.logs:
        cfg.logs_root = Path(args.logs).resolve()
    if args.no_progress:
        cfg.show_progress = False
    return cfg


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = build_parser().parse_args(argv)
    level = logging.INFO if args.verbose == 0 else logging.DEBUG
    logging.basicConfig(level=level, format=LOG_FORMAT)

    try:
        cfg = _build_config(args)
    except (OSError, ValueError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    # Route logs to a file as well; non-fatal when the folder is unusable
    if cfg.logs_root is not None:
        try:
            cfg.ensure_dirs()
            fh = logging.FileHandler(cfg.logs_root / "tomodose.log", encoding="utf-8")
            fh.setLevel(level)
            fh.setFormatter(logging.Formatter(LOG_FORMAT))
            logging.getLogger().addHandler(fh)
        except OSError as exc:
            logger.warning("Unable to log to %s: %s", cfg.logs_root, exc)

    try:
        converter = TomoDirectDoseConverter(
            Path(args.plan).resolve(),
            Path(args.binary_dir).resolve(),
            apply_offset=args.offset,
            config=cfg,
        )
    except SetupError as exc:
        logger.error("%s", exc)
        return 2

    bar = None
    progress = None
    if cfg.show_progress:
        bar = tqdm(desc="Generating DICOM RT Dose images", unit="file", leave=False)

        def progress(current: int, total: int) -> None:
            bar.total = total
            bar.update(current - bar.n)

    try:
        result = converter.run(progress=progress)
    finally:
        if bar is not None:
            bar.close()

    for path in result.written:
        logger.info("Created %s", path)
    # files without a gantry angle in their name are not beam doses
    doses = [o for o in result.outcomes if o.status != "no_angle"]
    if doses and result.count == 0:
        logger.error("No DICOM RT Dose files were created from %d candidate(s)", len(doses))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
