"""
CLI entrypoint for projsnap package.
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from colorama import Fore, Style

from . import __version__
from .core import (
    DEFAULT_EXCLUDE_DIRS,
    DEFAULT_EXCLUDE_FILES,
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_OUTPUT_NAME,
    build_config,
    create_snapshot,
    load_extra_patterns,
    load_gitignore,
    log,
    ConfigFileError,
    InvalidRootError,
    OutputError,
)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="projsnap",
        description="Write a single text snapshot of a project: directory tree + file contents.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="action")

    create = sub.add_parser("create", help="Create a snapshot of the project directory")
    create.add_argument("--root", type=Path, default=Path("."), help="Project root dir")
    create.add_argument(
        "--out",
        type=Path,
        default=Path(DEFAULT_OUTPUT_NAME),
        help=f"Output file (default: {DEFAULT_OUTPUT_NAME})",
    )
    create.add_argument(
        "--exclude-dirs",
        nargs="*",
        metavar="NAME",
        help="Directory names to exclude, replacing the defaults "
        f"({', '.join(DEFAULT_EXCLUDE_DIRS)})",
    )
    create.add_argument(
        "--exclude-files",
        nargs="*",
        metavar="GLOB",
        help="Filename patterns to exclude from contents, replacing the defaults "
        f"({', '.join(DEFAULT_EXCLUDE_FILES)})",
    )
    create.add_argument(
        "--max-size",
        type=int,
        default=DEFAULT_MAX_FILE_SIZE,
        help=f"Maximum file size in bytes (default {DEFAULT_MAX_FILE_SIZE})",
    )
    create.add_argument(
        "--case-sensitive",
        action="store_true",
        help="Match directory names and filename patterns case-sensitively",
    )
    create.add_argument(
        "--gitignore",
        action="store_true",
        help="Also drop files matched by the root .gitignore from contents",
    )
    create.add_argument(
        "--config",
        type=Path,
        help="Path to a file with extra ignore patterns (one per line)",
    )
    create.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")

    sub.add_parser("help", help="Show this help text")
    return p


def _error(e: Exception) -> None:
    print(Fore.RED + f"Error: {e}" + Style.RESET_ALL, file=sys.stderr)


def _run_create(ns: argparse.Namespace) -> int:
    root = ns.root.resolve()
    out_path = ns.out.resolve()

    try:
        specs = []
        if ns.gitignore:
            specs.append(load_gitignore(root))
        if ns.config:
            specs.append(load_extra_patterns(ns.config.resolve()))
            if ns.verbose:
                log(f"Loaded extra patterns from {ns.config}")
        config = build_config(
            exclude_dirs=ns.exclude_dirs,
            exclude_files=ns.exclude_files,
            max_file_size=ns.max_size,
            case_sensitive=ns.case_sensitive,
            specs=specs,
        )
    except ConfigFileError as e:
        _error(e)
        return 1

    try:
        counters, size = create_snapshot(root, out_path, config, verbose=ns.verbose)
    except (InvalidRootError, OutputError) as e:
        _error(e)
        return 1

    log(f"Snapshot written to {out_path} ({size / 1024:.2f} KB)", Fore.GREEN)
    log(
        f"{counters.total_files} files found, "
        f"{counters.processed_files} processed, "
        f"{counters.skipped_binary} skipped as binary, "
        f"{counters.errors} errors."
    )
    if counters.processed_files == 0:
        log("Warning: no files matched, the snapshot has no file contents.", Fore.YELLOW)
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    parser = _build_parser()
    try:
        ns = parser.parse_args(argv)
        if ns.action != "create":
            parser.print_help()
            sys.exit(0)
        sys.exit(_run_create(ns))
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
