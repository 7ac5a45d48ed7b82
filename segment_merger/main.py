import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from segment_merger.configs import Settings, settings
from segment_merger.errors import SegmentMergerError
from segment_merger.merger import run_merge

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="segment-merger",
        description="Merge TS segments from a primary feed and its backup mirrors into one file.",
        epilog="Example: segment-merger https://example.com/file1.m3u8 https://example.com/bak0_file2.m3u8",
    )
    ap.add_argument(
        "sources",
        nargs="+",
        help="M3U8 playlist URL, TS segment URL, directory of TS files, or TS file (repeatable).",
    )
    ap.add_argument("-o", "--output", default=None, help="Final output file.")
    ap.add_argument("--temp-dir", default=None, help="Staging directory; recreated on every run.")
    ap.add_argument("--keep-temp", action="store_true", help="Keep the staging directory after the run.")
    ap.add_argument(
        "--no-numbered-backups",
        action="store_true",
        help="Treat every backup feed as one 'bak' group instead of bak0, bak1, ...",
    )
    ap.add_argument("--workers", type=int, default=None, help="Probe worker pool size.")
    ap.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level.",
    )
    return ap


def apply_overrides(base: Settings, args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.output:
        overrides["output_path"] = args.output
    if args.temp_dir:
        overrides["temp_dir"] = args.temp_dir
    if args.keep_temp:
        overrides["keep_temp"] = True
    if args.no_numbered_backups:
        overrides["numbered_backups"] = False
    if args.workers is not None:
        overrides["max_workers"] = args.workers
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    return base.model_copy(update=overrides)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    run_settings = apply_overrides(settings, args)
    logging.basicConfig(
        level=run_settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    try:
        output = asyncio.run(run_merge(args.sources, run_settings))
    except (SegmentMergerError, ValueError) as e:
        logger.error(f"Merge failed: {e}")
        return 1

    logger.info(f"Done: {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
