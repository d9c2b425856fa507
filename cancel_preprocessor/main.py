"""
Command-line entry point.
Rewrites one or more G-code files so the printer can cancel individual objects.
"""
import argparse
import logging
import os
import sys
import tempfile
from typing import List, Optional

from cancel_preprocessor.config.processing_config import ConfigManager, ProcessingConfig
from cancel_preprocessor.core.canonical import __version__
from cancel_preprocessor.gcode_processor import GCodeProcessor
from cancel_preprocessor.utils.errors import PreprocessError

logger = logging.getLogger(__name__)

LOG_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]
ENCODING = "utf-8"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cancel-preprocess",
        description="Add cancel-object support to sliced G-code files",
    )
    parser.add_argument("files", nargs="+", help="G-code files to process")
    parser.add_argument("-o", "--output-suffix", default=None,
                        help="write to <name><suffix>.gcode instead of replacing the input")
    parser.add_argument("-O", "--output-dir", default=None,
                        help="write output files into this directory")
    parser.add_argument("-l", "--layers", default=None,
                        help="layers that contribute outline points, e.g. '*', '0-5', '*/10'")
    preset = parser.add_mutually_exclusive_group()
    preset.add_argument("--fast", action="store_true", help="outline from the first layer only")
    preset.add_argument("--bbox", action="store_true", help="publish bounding boxes instead of hulls")
    preset.add_argument("--config", default=None, help="JSON configuration file")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="increase logging (repeatable)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def config_from_args(args: argparse.Namespace) -> ProcessingConfig:
    if args.config:
        config = ConfigManager.load_config(args.config)
    elif args.fast:
        config = ConfigManager.fast()
    elif args.bbox:
        config = ConfigManager.bbox()
    else:
        config = ConfigManager.default()
    if args.layers is not None:
        config.layers = args.layers
    ConfigManager.validate(config)
    return config


def output_path(path: str, suffix: Optional[str], output_dir: Optional[str]) -> str:
    """Destination for a processed file."""
    directory, filename = os.path.split(path)
    if suffix:
        stem, ext = os.path.splitext(filename)
        filename = f"{stem}{suffix}{ext}"
    return os.path.join(output_dir if output_dir else directory, filename)


def process_file(path: str, destination: str, config: ProcessingConfig) -> bool:
    """
    Process one file through a temporary file next to the destination.

    The destination is replaced only after a successful run.

    Returns:
        True if the file was processed or passed through without a fatal error
    """
    processor = GCodeProcessor(config)
    directory = os.path.dirname(os.path.abspath(destination))
    try:
        fd, temp_path = tempfile.mkstemp(suffix=".gcode", prefix=".cancel-", dir=directory)
    except OSError as e:
        logger.error("%s: %s", destination, e)
        return False
    try:
        with open(fd, "w", encoding=ENCODING, errors="surrogateescape", newline="") as output, \
                open(path, "r", encoding=ENCODING, errors="surrogateescape", newline="") as source:
            result = processor.process(source, output)
    except (PreprocessError, OSError) as e:
        os.unlink(temp_path)
        logger.error("%s: %s", path, e)
        return False
    except BaseException:
        os.unlink(temp_path)
        raise

    for diagnostic in result.diagnostics:
        logger.info("%s: %s", path, diagnostic)

    if result.modified or os.path.abspath(destination) != os.path.abspath(path):
        os.replace(temp_path, destination)
    else:
        os.unlink(temp_path)

    summary = processor.get_summary()
    logger.info("%s: %s, %d objects (%s)", path, summary['status'],
                result.object_count, summary['dialect'] or "no dialect")
    return True


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=LOG_LEVELS[min(args.verbose, len(LOG_LEVELS) - 1)],
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = config_from_args(args)
    except PreprocessError as e:
        logger.error("%s", e)
        return 2

    if args.output_dir:
        os.makedirs(args.output_dir, exist_ok=True)

    failures = 0
    for path in args.files:
        destination = output_path(path, args.output_suffix, args.output_dir)
        if not process_file(path, destination, config):
            failures += 1
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
