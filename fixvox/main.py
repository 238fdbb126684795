from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional

from .config import Config, load_artists
from .exceptions import BatchFailure
from .fixer import TrackFixer
from .logging_setup import setup_logger
from .processor import FileProcessor
from .tempdirs import cleanup_stale_scopes
from .utils import ensure_dir


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="fixvox",
        description="Tag and rename the MP3 tracks in LibriVox zip archives.",
    )
    parser.add_argument(
        "paths",
        nargs="*",
        help="Archives or folders to search for archives (default: current directory)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    paths = args.paths or [os.getcwd()]

    try:
        cfg = Config.load()
        artists = load_artists(cfg)
    except ValueError as e:
        print(f"fixvox: invalid configuration: {e}", file=sys.stderr)
        return 2

    logger = setup_logger(cfg)
    ensure_dir(cfg.output_dir)
    cleanup_stale_scopes(cfg.temp_dir, cfg.temp_prefix, cfg.stale_scope_age_sec, logger)

    logger.info(
        "Started | output=%s | temp=%s | workers=%d",
        str(cfg.output_dir),
        str(cfg.temp_dir),
        cfg.max_workers,
    )

    failed = False
    with TrackFixer(cfg, logger, artists) as fixer, FileProcessor(cfg, logger) as processor:
        try:
            files = processor.process_files(paths, fixer.transform)
        except BatchFailure as e:
            logger.error("%s", e)
            files = e.processed
            failed = True

    for f in sorted(files, key=lambda p: str(p).casefold()):
        print(f)

    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
