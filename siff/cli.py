"""Command-line front door for siff.

Parses CLI options, configures logging, checks backend prerequisites and
then hands off to the interactive runtime. Environment problems are reported
before the terminal switches into raw mode.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loguru import logger

from .backends import Backend, BackendUnavailable
from .runtime import build_app, run_app
from .runtime.app import check_backend_available
from .runtime.config import load_pack_options
from .runtime.logs import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="siff",
        description="Browse a directory tree, select files, and pack them for an LLM with repomix or yek.",
    )
    parser.add_argument("path", nargs="?", default=None, help="Directory to browse. Defaults to current directory.")
    backend = parser.add_mutually_exclusive_group()
    backend.add_argument("--repomix", action="store_true", help="Use the repomix backend for this session.")
    backend.add_argument("--yek", action="store_true", help="Use the yek backend for this session.")
    parser.add_argument("--output", metavar="PATH", default=None, help="Also write packed output to PATH.")
    parser.add_argument("--verbose", action="store_true", help="Write debug logs to the log file.")
    parser.add_argument("--log-file", metavar="PATH", default=None, help="Write logs to PATH instead of the default log file.")
    return parser


def main(argv: list[str] | None = None, default_path: Path | None = None) -> None:
    """Parse CLI arguments and launch the tree browser.

    ``default_path`` is primarily for tests; when omitted the current working
    directory is used.
    """
    args = build_parser().parse_args(argv)
    log_path = configure_logging(
        verbose=args.verbose,
        log_file=Path(args.log_file) if args.log_file else None,
    )

    if default_path is None:
        default_path = Path.cwd()
    root = Path(args.path or default_path)
    if not root.exists():
        raise SystemExit(f"Path not found: {root}")
    if not root.is_dir():
        raise SystemExit(f"Not a directory: {root}")

    options = load_pack_options()
    if args.yek:
        options = options.with_changes(backend=Backend.YEK)
    elif args.repomix:
        options = options.with_changes(backend=Backend.REPOMIX)
    if args.output:
        options = options.with_changes(output_file=Path(args.output).resolve())

    try:
        check_backend_available(options.backend)
    except BackendUnavailable as exc:
        raise SystemExit(f"Error: {exc}") from exc

    if not sys.stdin.isatty() or not sys.stdout.isatty():
        raise SystemExit("siff needs an interactive terminal.")

    try:
        app = build_app(root.resolve(), options)
    except Exception as exc:
        logger.exception("Startup failed")
        raise SystemExit(f"Error: failed to initialize tokenizer: {exc}") from exc

    run_app(app)
    if log_path is not None:
        logger.info("siff exited")


if __name__ == "__main__":
    main()
