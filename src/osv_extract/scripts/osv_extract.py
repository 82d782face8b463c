#!/usr/bin/env python3
"""
OSV Extract Script

Inspects DJI OSV recordings and extracts their lens videos, audio, thumbnail,
raw data tracks and decoded IMU telemetry.

Usage:
    osv-extract inspect input.osv
    osv-extract extract input.osv
    osv-extract extract -o output_dir input.osv
    osv-extract e -s -c input_directory
"""

import argparse
import json
import logging
import subprocess
import sys
from pathlib import Path

from osv_extract.media_data import ExtractOptions, MetaMode
from osv_extract.processing.decode_imu import IMUDataNotFoundError
from osv_extract.processing.extract_osv_streams import process_input
from osv_extract.processing.probe import probe_streams, summarize_probe
from osv_extract.utils import setup_logging

logger = logging.getLogger(__name__)


def cmd_inspect(args: argparse.Namespace) -> int:
    probe = probe_streams(args.input, show_format=True)
    print(json.dumps(summarize_probe(probe), indent=2))
    return 0


def cmd_extract(args: argparse.Namespace) -> int:
    options = ExtractOptions(
        output_dir=args.output,
        meta=args.meta,
        mov=args.mov,
        separate=args.separate,
        csv=args.csv,
        force=args.force,
    )
    logger.debug("Input: %s", args.input)
    logger.debug("Options: %s", options.model_dump())

    processed = process_input(args.input, options)
    logger.debug("Processed %d file(s)", processed)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="osv-extract",
        description="Parse and convert DJI OSV files",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    inspect = subparsers.add_parser(
        "inspect",
        aliases=["i"],
        help="Display the streams and container tags of an OSV file",
    )
    inspect.add_argument("input", type=Path, help="OSV file")
    inspect.add_argument(
        "-v", "--verbose", action="store_true", help="Show detailed output"
    )
    inspect.set_defaults(func=cmd_inspect)

    extract = subparsers.add_parser(
        "extract",
        aliases=["e"],
        help="Extract videos, audio and metadata from an OSV file or directory",
    )
    extract.add_argument("input", type=Path, help="OSV file or directory")
    extract.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output directory (default: same as input file)",
    )
    extract.add_argument(
        "-m",
        "--meta",
        type=MetaMode,
        choices=list(MetaMode),
        default=MetaMode.DECODE,
        help="Metadata processing mode (default: decode)",
    )
    extract.add_argument(
        "--mov",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Mux each lens with audio into a MOV file (default: enabled)",
    )
    extract.add_argument(
        "-s", "--separate", action="store_true", help="Write each stream separately"
    )
    extract.add_argument(
        "-c", "--csv", action="store_true", help="Output IMU data in CSV format"
    )
    extract.add_argument(
        "-f", "--force", action="store_true", help="Overwrite existing files"
    )
    extract.add_argument(
        "-v", "--verbose", action="store_true", help="Show detailed output"
    )
    extract.set_defaults(func=cmd_extract)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    try:
        return args.func(args)
    except subprocess.CalledProcessError as exc:
        stderr = exc.stderr.decode(errors="replace").strip() if exc.stderr else ""
        logger.error("%s failed: %s", exc.cmd[0], stderr or exc)
    except (IMUDataNotFoundError, OSError, ValueError) as exc:
        logger.error("%s", exc)
    return 1


if __name__ == "__main__":
    sys.exit(main())
