"""
ir_reachables.main
==================

Command-line front end::

    ir-reachables MODEL [--entry NAME] [--format text|json|dot]
                        [--no-callgraph] [--no-callbacks]
                        [--config FILE] [-o OUT] [-v]

Exit codes
----------
0  analysis succeeded
1  analysis failed (missing entry function, malformed call site,
   malformed program model)
2  infrastructure error (missing input file, invalid configuration)
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence, TextIO

from . import __version__
from .config import REPORT_FORMATS, ReachabilityConfig
from .errors import ConfigError, ModelError
from .passes import ReachablesPass
from .reader import load_program
from .report import render, use_color

_log = logging.getLogger("ir_reachables")

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


def _configure_logging(verbosity: int) -> None:
    """Set up the ``ir_reachables`` logger.

    0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("ir_reachables")
    root.setLevel(level)
    # drop the handler left by an earlier call in the same process
    for old in [h for h in root.handlers if isinstance(h, logging.StreamHandler)]:
        root.removeHandler(old)
    root.addHandler(handler)


def _open_output(dest: Optional[str]) -> TextIO:
    """``None`` or ``"-"`` → stdout; otherwise open *dest* for writing."""
    if dest is None or dest == "-":
        return sys.stdout
    p = Path(dest).expanduser().resolve()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "w", encoding="utf-8")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ir-reachables",
        description="List the functions reachable from an entry point, "
                    "including through function pointers and callbacks.",
    )
    parser.add_argument("model", help="Program model file (S-expression).")
    parser.add_argument("-e", "--entry", default=None,
                        help="Entry function (default: main).")
    parser.add_argument("-f", "--format", choices=REPORT_FORMATS, default=None,
                        help="Report format (default: text).")
    parser.add_argument("--config", metavar="FILE", default=None,
                        help="JSON configuration file.")
    parser.add_argument("--no-callgraph", dest="use_callgraph",
                        action="store_false", default=None,
                        help="Scan call sites instead of walking a call graph.")
    parser.add_argument("--no-callbacks", dest="resolve_callbacks",
                        action="store_false", default=None,
                        help="Ignore function values passed as arguments (unsound).")
    color = parser.add_mutually_exclusive_group()
    color.add_argument("--color", dest="color", action="store_true", default=None)
    color.add_argument("--no-color", dest="color", action="store_false")
    parser.add_argument("-o", "--output", default=None, metavar="FILE",
                        help='Output file ("-" or omit for stdout).')
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Increase log verbosity (-v INFO, -vv DEBUG).")
    parser.add_argument("--version", action="version",
                        version=f"%(prog)s {__version__}")
    return parser


def _load_config(args: argparse.Namespace) -> ReachabilityConfig:
    base = (ReachabilityConfig.from_file(args.config) if args.config
            else ReachabilityConfig())
    return base.merged(
        entry=args.entry,
        report_format=args.format,
        use_callgraph=args.use_callgraph,
        resolve_callbacks=args.resolve_callbacks,
        color=args.color,
    )


def run(args: argparse.Namespace) -> int:
    try:
        config = _load_config(args)
    except ConfigError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA

    model_path = Path(args.model).expanduser()
    if not model_path.exists():
        _log.error("model not found: %s", model_path)
        return EXIT_INFRA
    try:
        program = load_program(model_path)
        program.validate()
    except ModelError as exc:
        _log.error("%s", exc)
        return EXIT_ERROR

    result = ReachablesPass(config).run(program)
    if result is None:
        return EXIT_ERROR

    out = _open_output(args.output)
    try:
        text = render(result, config.report_format,
                      color=use_color(out, config.color))
        out.write(text + "\n")
    finally:
        if out is not sys.stdout:
            out.close()
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the CLI; returns the exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    try:
        return run(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except OSError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
