#!/usr/bin/env python3
"""
hotloop_main.py - CLI entry point for hotloop.

Watches a project tree, rebuilds it on relevant changes and restarts the
long-running target.  Bursts of edits are coalesced into one rebuild.

Usage
-----
    # Go project in the current directory (defaults)
    python -m hotloop.hotloop_main

    # Custom build/run, 300 ms quiet interval
    hotloop --root ./server --build "make build OUT={output}" \\
            --run "{output} --port 8080" --debounce 300
"""

from __future__ import annotations

import argparse
import logging
import shlex
import sys
from pathlib import Path

from hotloop.config import (
    DEFAULT_BUILD_COMMAND,
    DEFAULT_DEBOUNCE,
    DEFAULT_EXTENSIONS,
    DEFAULT_IGNORED_DIRS,
    DEFAULT_KILL_TIMEOUT,
    DEFAULT_MANIFESTS,
    DEFAULT_RUN_COMMAND,
    Config,
)
from hotloop.errors import ConfigError, WatchSetupError
from hotloop.orchestrator import Orchestrator

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
logger = logging.getLogger("hotloop")


# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

def configure_logging(verbose: bool = False) -> None:
    """Send log records to stderr; DEBUG when *verbose*."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="hotloop",
        description="hotloop - rebuild and restart a program whenever its sources change.",
    )
    parser.add_argument(
        "--root",
        default=".",
        help="Directory to watch and build in (default: current directory).",
    )
    parser.add_argument(
        "--build",
        default=shlex.join(DEFAULT_BUILD_COMMAND),
        help="Build command; {output} is the artifact path. Empty string disables "
        "the build step (default: %(default)r).",
    )
    parser.add_argument(
        "--run",
        default=shlex.join(DEFAULT_RUN_COMMAND),
        help="Command that starts the program (default: %(default)r).",
    )
    parser.add_argument(
        "--debounce",
        type=int,
        default=int(DEFAULT_DEBOUNCE * 1000),
        help="Quiet interval in milliseconds before restarting (default: %(default)s).",
    )
    parser.add_argument(
        "--ext",
        nargs="+",
        default=list(DEFAULT_EXTENSIONS),
        help="Source file extensions to watch (default: %(default)s).",
    )
    parser.add_argument(
        "--manifest",
        nargs="*",
        default=list(DEFAULT_MANIFESTS),
        help="Dependency manifest file names to watch (default: %(default)s).",
    )
    parser.add_argument(
        "--ignore",
        nargs="+",
        default=[],
        help="Extra directory names to ignore, on top of the built-in list.",
    )
    parser.add_argument(
        "--no-recursive",
        dest="recursive",
        action="store_false",
        help="Only watch the root directory itself.",
    )
    parser.add_argument(
        "--kill-timeout",
        type=float,
        default=DEFAULT_KILL_TIMEOUT,
        help="Seconds to wait for the program to stop before killing it "
        "(default: %(default)s).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every watcher event and debounce decision.",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> Config:
    """Translate parsed arguments into a validated :class:`Config`."""
    extensions = tuple(e if e.startswith(".") else f".{e}" for e in args.ext)
    config = Config(
        root=Path(args.root),
        build_command=shlex.split(args.build),
        run_command=shlex.split(args.run),
        debounce=args.debounce / 1000,
        extensions=extensions,
        manifests=tuple(args.manifest),
        ignored_dirs=DEFAULT_IGNORED_DIRS + tuple(args.ignore),
        recursive=args.recursive,
        kill_timeout=args.kill_timeout,
        verbose=args.verbose,
    )
    config.validate()
    return config


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    """Parse CLI args, run the orchestrator until interrupted."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = config_from_args(args)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1

    orchestrator = Orchestrator(config)
    try:
        return orchestrator.run()
    except WatchSetupError as exc:
        logger.error("Cannot watch %s: %s", config.root, exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
