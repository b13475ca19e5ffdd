#!/usr/bin/env python3
"""
CLI for watching directories and logging their changes.

Usage:
    python -m treewatch /path/to/folder1 /path/to/folder2
    python -m treewatch --adaptive ./documents
"""

import argparse
import logging
import signal
import sys
import threading
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from .config import WatcherConfig
from .watcher import Watcher


logger = logging.getLogger("treewatch.cli")


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""
    
    def __init__(self):
        self.event = threading.Event()
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)
    
    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.event.set()


def _log_change(action: str):
    def callback(path: Path) -> None:
        logger.info(f"{action}: {path}")
    return callback


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="treewatch",
        description="Watch directories and log created, modified and deleted paths",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Watch two directories, not their subdirectories
  python -m treewatch ./inbox ./outbox

  # Watch a whole tree, including directories created later
  python -m treewatch --adaptive ./documents
        """,
    )
    parser.add_argument("paths", nargs="+", help="Directories to watch")
    parser.add_argument("-r", "--recursive", action="store_true", help="Watch all subdirectories")
    parser.add_argument("-a", "--adaptive", action="store_true",
                        help="Also watch directories created while running (implies --recursive)")
    parser.add_argument("--idle-backoff", type=int, default=None,
                        help="Milliseconds to wait after an idle poll cycle")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def validate_paths(paths: List[str]) -> Optional[List[Path]]:
    """Make paths absolute, returning None if any is not an existing directory."""
    roots = [Path(p).absolute() for p in paths]
    
    for root in roots:
        if not root.exists():
            logger.error(f"Path does not exist: {root}")
            return None
        if not root.is_dir():
            logger.error(f"Path is not a directory: {root}")
            return None
    return roots


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    
    roots = validate_paths(args.paths)
    if roots is None:
        return 1
    
    try:
        base = WatcherConfig.from_env()
        config = replace(
            base,
            recursive=base.recursive or args.recursive,
            adaptive=base.adaptive or args.adaptive,
            idle_backoff_ms=base.idle_backoff_ms if args.idle_backoff is None else args.idle_backoff,
        )
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    
    shutdown = GracefulShutdown()
    
    with Watcher(
        _log_change("created"),
        _log_change("modified"),
        _log_change("deleted"),
        *roots,
        config=config,
    ) as watcher:
        watcher.start()
        
        logger.info(f"Watching {len(watcher.roots())} directory(ies) under {len(roots)} root(s)")
        for root in roots:
            logger.info(f"  - {root}")
        logger.info("Press Ctrl+C to stop")
        
        while not shutdown.event.is_set() and watcher.is_running:
            shutdown.event.wait(timeout=0.5)
    
    watcher.join(timeout=5.0)
    logger.info("Shutdown complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
