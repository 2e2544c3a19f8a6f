"""
command-line interface for docpanic.

provides commands for checking a crate for undocumented panics and for
running the lsp server.
"""

from __future__ import annotations

import argparse
import io
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from .analyser import AnalysisResult, PanicAnalyser
from .config import COLOR_CHOICES, Config
from .discovery import find_manifest_root, find_rust_files
from .reporter import make_console, render_json, render_text

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """
    create the argument parser for the cli.

    returns: `argparse.ArgumentParser`
        configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="docpanic",
        description="find public rust functions that can panic without documenting it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  docpanic check                              # analyse the crate around the cwd
  docpanic check --manifest-path a/Cargo.toml # analyse another crate
  docpanic check src/lib.rs                   # analyse specific files
  docpanic check --json -o report.json        # output as json
  docpanic lsp                                # start lsp server
        """,
    )
    _ = parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )

    subparsers = parser.add_subparsers(dest="command", help="available commands")

    check_parser = subparsers.add_parser(
        "check",
        help="analyse rust code for undocumented panics",
    )
    _ = check_parser.add_argument(
        "paths",
        nargs="*",
        default=[],
        help="files or directories to analyse (default: the crate root)",
    )
    _ = check_parser.add_argument(
        "--manifest-path",
        type=str,
        help="path to the crate's Cargo.toml",
    )
    _ = check_parser.add_argument(
        "--color",
        choices=COLOR_CHOICES,
        default=None,
        help="colourise output (default: auto)",
    )
    _ = check_parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="output in json format (default: text)",
    )
    _ = check_parser.add_argument(
        "--output",
        "-o",
        type=str,
        help="output file (default: stdout)",
    )
    _ = check_parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="verbose output",
    )
    _ = check_parser.add_argument(
        "--absolute",
        action="store_true",
        help="use absolute paths in output (default: cwd-relative for text)",
    )
    _ = check_parser.add_argument(
        "--profile",
        type=str,
        help="cargo profile describing the analysed build (default: release)",
    )
    overflow = check_parser.add_mutually_exclusive_group()
    _ = overflow.add_argument(
        "--overflow-checks",
        action="store_true",
        default=None,
        dest="overflow_checks",
        help="treat integer arithmetic as able to panic",
    )
    _ = overflow.add_argument(
        "--no-overflow-checks",
        action="store_false",
        default=None,
        dest="overflow_checks",
        help="never treat integer arithmetic as able to panic",
    )
    _ = check_parser.add_argument(
        "--include-tests",
        action="store_true",
        help="also analyse the crate's tests/ directory",
    )
    _ = check_parser.add_argument(
        "--include-examples",
        action="store_true",
        help="also analyse the crate's examples/ directory",
    )
    _ = check_parser.add_argument(
        "--include-ignored",
        action="store_true",
        help="include files that are ignored by .gitignore",
    )
    _ = check_parser.add_argument(
        "--jobs",
        "-j",
        type=int,
        help="number of worker processes",
    )
    _ = check_parser.add_argument(
        "--debug",
        action="store_true",
        help="enable debug logging for troubleshooting",
    )

    _ = subparsers.add_parser(
        "lsp",
        help="start language server protocol server",
    )

    return parser


def setup_logging(level: str, color: str = "auto") -> None:
    """
    configure the root logger.

    arguments:
        `level: str`
            logging level name (e.g. 'debug', 'info')
        `color: str`
            'never' logs plain text; otherwise rich renders the records
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        print(f"docpanic: warning: ignoring unknown log level '{level}'", file=sys.stderr)
        numeric_level = logging.WARNING

    if color == "never":
        logging.basicConfig(level=numeric_level, format="[%(name)s] %(message)s")
        return

    from rich.logging import RichHandler

    logging.basicConfig(
        level=numeric_level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=make_console(color, sys.stderr),
                show_time=False,
                show_path=False,
            )
        ],
    )


def handle_check(args: argparse.Namespace, config: Config) -> int:
    """
    handle the check command.

    arguments:
        `args: argparse.Namespace`
            parsed arguments
        `config: Config`
            configuration

    returns: `int`
        exit code (0 = no issues, 1 = issues found, 2 = error)
    """
    paths: list[str] = list(getattr(args, "paths", None) or [])
    json_output = bool(getattr(args, "json_output", False))
    verbose = bool(getattr(args, "verbose", False))
    absolute = bool(getattr(args, "absolute", False))
    output_file: str | None = getattr(args, "output", None)

    # apply cli overrides
    if getattr(args, "color", None):
        config.color = args.color
    if getattr(args, "profile", None):
        config.analysis.profile = args.profile
    if getattr(args, "overflow_checks", None) is not None:
        config.analysis.overflow_checks = args.overflow_checks
    if getattr(args, "include_tests", False):
        config.analysis.include_tests = True
    if getattr(args, "include_examples", False):
        config.analysis.include_examples = True
    if getattr(args, "include_ignored", False):
        config.respect_gitignore = False
    if getattr(args, "jobs", None) is not None:
        config.jobs = max(1, args.jobs)

    # enable logging if requested
    if getattr(args, "debug", False):
        setup_logging("debug", config.color)
    elif config.log_level != "warning":
        setup_logging(config.log_level, config.color)

    files_to_analyse: list[Path] = []
    if not paths:
        files_to_analyse.extend(_crate_files(config.project_root, config))

    for path_str in paths:
        path = Path(path_str)
        if not path.exists():
            print(
                f"docpanic: warning: skipping '{path_str}', path does not exist",
                file=sys.stderr,
            )
            continue
        if path.is_file():
            files_to_analyse.append(path)
        else:
            files_to_analyse.extend(_crate_files(path, config))

    analyser = PanicAnalyser(config)
    result = analyser.analyse_files(files_to_analyse) if files_to_analyse else AnalysisResult()

    if json_output:
        rendered = render_json(result)
        if output_file:
            _ = Path(output_file).write_text(rendered)
        else:
            print(rendered)
    else:
        render_text(result, make_console(config.color), use_absolute=absolute, verbose=verbose)
        if output_file:
            buffer = io.StringIO()
            render_text(result, make_console("never", buffer), use_absolute=absolute, verbose=verbose)
            _ = Path(output_file).write_text(buffer.getvalue())

    if result.findings:
        return 1
    if result.has_errors:
        return 2
    return 0


def _crate_files(root: Path, config: Config) -> tuple[Path, ...]:
    return find_rust_files(
        root,
        exclude=config.exclude,
        respect_gitignore=config.respect_gitignore,
        include_tests=config.analysis.include_tests,
        include_examples=config.analysis.include_examples,
    )


def handle_lsp(_args: argparse.Namespace, config: Config) -> int:
    """
    handle the lsp command.

    returns: `int`
        exit code
    """
    from .lsp_server import run_server_stdio

    setup_logging(config.log_level, "never")
    try:
        run_server_stdio(config)
    except KeyboardInterrupt:
        pass
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """
    run the cli main entry point.

    arguments:
        `argv: Sequence[str] | None`
            command-line arguments (default: sys.argv[1:])

    returns: `int`
        exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    command: str | None = getattr(args, "command", None)
    if not command:
        parser.print_help()
        return 2

    root = find_manifest_root(getattr(args, "manifest_path", None))
    config = Config.load(root)

    if command == "check":
        return handle_check(args, config)
    if command == "lsp":
        return handle_lsp(args, config)

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
