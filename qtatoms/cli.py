"""
Command-Line Interface (CLI) setup for qtatoms.

This module uses Python's `argparse` to define and parse the command-line
arguments, configures the global loguru logger, and runs the scan pipeline
over the given files.
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from .config.common import DEFAULT_REPORT_FILE_NAME, LOGGER_FORMAT, load_user_settings
from .pipeline.quicktime_pipeline import ScanPipeline


def get_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parses command-line arguments for the atom scanner.

    Args:
        argv: Argument list to parse. Defaults to `sys.argv[1:]`.

    Returns:
        argparse.Namespace: An object containing the parsed command-line
                            arguments as attributes.
    """
    parser = argparse.ArgumentParser(
        description="Scan QuickTime/MP4 files and report their atom structure."
    )
    parser.add_argument(
        "paths", nargs="+", type=Path, help="Files to scan."
    )
    parser.add_argument(
        "--output", type=Path, default=Path(DEFAULT_REPORT_FILE_NAME),
        help="Where to write the YAML report.",
    )
    parser.add_argument(
        "--stdout", action="store_true", help="Print the YAML report instead of writing a file."
    )
    parser.add_argument(
        "--chunk-size", type=int, default=None,
        help="Bytes read from disk per chunk (overrides config.user.yaml).",
    )
    parser.add_argument(
        "--sha256", action="store_true",
        help="Also compute the SHA-256 of each file while the file is scanned.",
    )
    parser.add_argument(
        "--no-strict", action="store_true",
        help="Warn instead of failing when a decoder does not consume exactly its atom's payload.",
    )
    parser.add_argument(
        "--log-level", type=str, default=None, choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set the logging level (overrides config.user.yaml).",
    )

    args = parser.parse_args(argv)

    if args.chunk_size is not None and args.chunk_size <= 0:
        parser.error(f"--chunk-size must be positive, got {args.chunk_size}")

    return args


def main(argv: Optional[List[str]] = None) -> int:
    """
    Runs a scan from the command line.

    Returns:
        0 if every file was scanned completely, 1 otherwise.
    """
    args = get_args(argv)

    settings = load_user_settings().with_overrides(
        chunk_size=args.chunk_size,
        strict_consumption=False if args.no_strict else None,
        log_level=args.log_level,
    )

    logger.remove()
    logger.add(sys.stderr, level=settings.log_level, format=LOGGER_FORMAT)
    logger.debug(f"Parsed arguments: {args}")
    logger.debug(f"Scanner settings: {settings}")

    pipeline = ScanPipeline(settings=settings, compute_sha256=args.sha256)
    report = pipeline.run(args.paths)

    if args.stdout:
        sys.stdout.write(report.to_yaml())
    else:
        try:
            report.write(args.output.resolve())
        except OSError as e:
            logger.error(f"Could not write report to '{args.output}': {e}")
            return 1

    if report.failed:
        return 1
    logger.success("Scan finished.")
    return 0
