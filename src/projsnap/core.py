"""
Core logic for projsnap package.
"""

from __future__ import annotations

import datetime
import enum
import functools
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import pathspec
from colorama import Fore, Style, init as colorama_init

colorama_init()

# Exceptions
class SnapshotError(Exception): ...
class InvalidRootError(SnapshotError): ...
class ConfigFileError(SnapshotError): ...
class OutputError(SnapshotError): ...
class TreeRenderError(SnapshotError): ...

# Defaults & helpers
DEFAULT_OUTPUT_NAME = "project_snapshot.txt"
DEFAULT_MAX_FILE_SIZE = 1_048_576

DEFAULT_EXCLUDE_DIRS: List[str] = [
    ".git",
    ".svn",
    ".hg",
    ".vs",
    ".vscode",
    ".idea",
    "bin",
    "obj",
    "node_modules",
    "packages",
    "__pycache__",
    ".venv",
    "venv",
    "dist",
    "build",
]

DEFAULT_EXCLUDE_FILES: List[str] = [
    "*.exe",
    "*.dll",
    "*.pdb",
    "*.so",
    "*.dylib",
    "*.pyc",
    "*.class",
    "*.jar",
    "*.cache",
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.gif",
    "*.bmp",
    "*.ico",
    "*.pdf",
    "*.zip",
    "*.7z",
    "*.rar",
    "*.tar",
    "*.gz",
]

SAMPLE_SIZE = 8192
BINARY_RATIO = 0.3
_ALLOWED_CONTROL = frozenset((0x09, 0x0A, 0x0D))

HEAVY_RULE = "=" * 80
LIGHT_RULE = "-" * 80

BINARY_PLACEHOLDER = "[BINARY FILE - Content skipped]"
EMPTY_PLACEHOLDER = "[EMPTY FILE]"


def log(msg: str, color: str = "") -> None:
    print(f"{color}[projsnap] {msg}{Style.RESET_ALL if color else ''}")


def _warn(msg: str, verbose: bool) -> None:
    if verbose:
        log(msg, Fore.YELLOW)


# Data model
@dataclass(frozen=True)
class FileEntry:
    """A regular file found by :func:`scan_files`; ``is_dir`` is always False there."""

    path: Path
    size: int
    is_dir: bool = False


@dataclass(frozen=True)
class ExclusionConfig:
    """Exclusion rules for one run.

    ``exclude_dirs`` prunes both the tree and the file contents;
    ``exclude_files``, ``extra_spec`` and ``max_file_size`` only drop files
    from the contents section.
    """

    exclude_dirs: Tuple[str, ...] = tuple(DEFAULT_EXCLUDE_DIRS)
    exclude_files: Tuple[str, ...] = tuple(DEFAULT_EXCLUDE_FILES)
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    case_sensitive: bool = False
    extra_spec: Optional[pathspec.PathSpec] = None

    def _fold(self, name: str) -> str:
        return name if self.case_sensitive else name.casefold()

    def is_excluded_dir(self, name: str) -> bool:
        folded = self._fold(name)
        return any(folded == self._fold(d) for d in self.exclude_dirs)

    def matches_file_pattern(self, name: str) -> bool:
        return any(
            compile_glob(pattern, self.case_sensitive).fullmatch(name)
            for pattern in self.exclude_files
        )


@dataclass
class RunCounters:
    total_files: int = 0
    processed_files: int = 0
    skipped_binary: int = 0
    errors: int = 0


class Classification(enum.Enum):
    TEXT = "text"
    BINARY = "binary"


@dataclass
class SnapshotDocument:
    header: List[str] = field(default_factory=list)
    tree: List[str] = field(default_factory=list)
    blocks: List[List[str]] = field(default_factory=list)

    def render(self) -> str:
        lines: List[str] = list(self.header)
        lines += ["", "", "DIRECTORY STRUCTURE", LIGHT_RULE, ""]
        lines += self.tree
        lines += ["", "", HEAVY_RULE, "FILE CONTENTS", HEAVY_RULE, ""]
        for block in self.blocks:
            lines += block
        return "\n".join(lines) + "\n"


# Ignore-file utilities
def load_gitignore(root: Path) -> pathspec.PathSpec:
    gitignore_path = root / ".gitignore"
    if not gitignore_path.exists():
        return pathspec.PathSpec.from_lines("gitwildmatch", [])
    try:
        with gitignore_path.open("r", encoding="utf-8") as fh:
            return pathspec.PathSpec.from_lines("gitwildmatch", fh)
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigFileError(f"Could not read '{gitignore_path}': {e}")


def load_extra_patterns(config_path: Path) -> pathspec.PathSpec:
    if not config_path.exists():
        raise ConfigFileError(f"Config file '{config_path}' does not exist")
    if not config_path.is_file():
        raise ConfigFileError(f"'{config_path}' is not a file")
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            lines = [
                ln.strip()
                for ln in fh
                if ln.strip() and not ln.lstrip().startswith("#")
            ]
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigFileError(f"Could not read config file '{config_path}': {e}")
    return pathspec.PathSpec.from_lines("gitwildmatch", lines)


def build_config(
    exclude_dirs: Optional[Iterable[str]] = None,
    exclude_files: Optional[Iterable[str]] = None,
    max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    case_sensitive: bool = False,
    specs: Sequence[pathspec.PathSpec] = (),
) -> ExclusionConfig:
    """Build an :class:`ExclusionConfig`, falling back to the defaults for
    any rule list left as ``None``. Several ``specs`` are merged into one."""
    if max_file_size < 0:
        raise ConfigFileError(f"Maximum file size must be non-negative, got {max_file_size}")
    extra: Optional[pathspec.PathSpec] = None
    if specs:
        extra = pathspec.PathSpec([p for spec in specs for p in spec.patterns])
    return ExclusionConfig(
        exclude_dirs=tuple(DEFAULT_EXCLUDE_DIRS if exclude_dirs is None else exclude_dirs),
        exclude_files=tuple(DEFAULT_EXCLUDE_FILES if exclude_files is None else exclude_files),
        max_file_size=max_file_size,
        case_sensitive=case_sensitive,
        extra_spec=extra,
    )


# Path helpers
@functools.lru_cache(maxsize=256)
def compile_glob(pattern: str, case_sensitive: bool = False) -> "re.Pattern[str]":
    """Compile a filename glob where ``*`` is the only wildcard.

    ``*`` matches any run of characters that does not cross a path
    separator; everything else is literal.
    """
    body = r"[^/\\]*".join(re.escape(chunk) for chunk in pattern.split("*"))
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile(body, flags)


def relativize(root: Path, path: Path) -> str:
    root_str = os.fspath(root)
    path_str = os.fspath(path)
    try:
        rel = os.path.relpath(path_str, root_str)
    except ValueError:
        # different drives, or otherwise unrelated paths
        rel = path_str
        if path_str.startswith(root_str):
            rel = path_str[len(root_str):]
        rel = rel.lstrip("/\\")
    return rel.replace("\\", "/")


def should_include(entry: FileEntry, config: ExclusionConfig, root: Path) -> bool:
    rel = relativize(root, entry.path)
    *dirs, name = rel.split("/")
    if any(config.is_excluded_dir(d) for d in dirs):
        return False
    if config.matches_file_pattern(name):
        return False
    if config.extra_spec is not None and config.extra_spec.match_file(rel):
        return False
    return entry.size <= config.max_file_size


def classify(path: Path) -> Tuple[Classification, Optional[OSError]]:
    """Classify *path* as text or binary from its first ``SAMPLE_SIZE`` bytes.

    Unreadable files come back as binary together with the error.
    """
    try:
        with path.open("rb") as fh:
            sample = fh.read(SAMPLE_SIZE)
    except OSError as e:
        return Classification.BINARY, e

    if not sample:
        return Classification.TEXT, None
    if b"\0" in sample:
        return Classification.BINARY, None
    suspicious = sum(
        1 for b in sample if (b < 0x20 and b not in _ALLOWED_CONTROL) or b > 0x7F
    )
    if suspicious / len(sample) > BINARY_RATIO:
        return Classification.BINARY, None
    return Classification.TEXT, None


def read_text_content(path: Path) -> Tuple[Optional[str], Optional[OSError]]:
    try:
        raw = path.read_bytes()
    except OSError as e:
        return None, e
    return raw.decode("utf-8-sig", errors="replace"), None


# Directory listing
def _list_children(directory: Path) -> List[Tuple[str, Path, bool, bool, bool]]:
    """Return ``(name, path, is_dir, is_link, is_file)`` for each child, directories
    first and then by name."""
    children = []
    with os.scandir(directory) as entries:
        for child in entries:
            try:
                is_dir = child.is_dir()
                is_link = child.is_symlink()
                is_file = child.is_file()
            except OSError:
                is_dir, is_link, is_file = False, False, False
            children.append((child.name, Path(child.path), is_dir, is_link, is_file))
    children.sort(key=lambda c: (not c[2], c[0]))
    return children


def render_tree(
    path: Path,
    config: ExclusionConfig,
    depth: int = 0,
    verbose: bool = False,
) -> str:
    """
    Return the directory structure below *path*, one line per entry.

    • Directories are listed before files, then by name.
    • Only ``exclude_dirs`` applies here; excluded directories vanish with
      their whole subtree.
    • Unreadable subdirectories render as empty. An unreadable *path*
      raises :class:`TreeRenderError`.
    """
    try:
        top = _list_children(path)
    except OSError as e:
        raise TreeRenderError(f"Could not list '{path}': {e}")

    lines: List[str] = []
    # each frame: (visible children, next index, depth)
    stack = [(_visible(top, config), 0, depth)]
    while stack:
        children, idx, level = stack.pop()
        if idx >= len(children):
            continue
        stack.append((children, idx + 1, level))

        name, child_path, is_dir, is_link, _ = children[idx]
        branch = "└── " if idx == len(children) - 1 else "├── "
        tag = "[DIR] " if is_dir else "[FILE] "
        lines.append(f"{'  ' * level}{branch}{tag}{name}")

        if is_dir and not is_link:
            try:
                sub = _list_children(child_path)
            except OSError as e:
                _warn(f"! Could not list {child_path}: {e}", verbose)
                continue
            stack.append((_visible(sub, config), 0, level + 1))

    return "".join(f"{ln}\n" for ln in lines)


def _visible(children, config: ExclusionConfig):
    return [c for c in children if not (c[2] and config.is_excluded_dir(c[0]))]


# File-scanning helpers
def scan_files(
    root: Path, config: ExclusionConfig, verbose: bool = False
) -> List[FileEntry]:
    try:
        root = root.resolve()
    except (OSError, RuntimeError) as e:
        raise InvalidRootError(f"Could not resolve root path '{root}': {e}")
    if not root.exists():
        raise InvalidRootError(f"Root directory '{root}' does not exist")
    if not root.is_dir():
        raise InvalidRootError(f"Root path '{root}' is not a directory")

    try:
        pending = [_list_children(root)]
    except OSError as e:
        raise InvalidRootError(f"Could not scan directory '{root}': {e}")

    found: List[FileEntry] = []
    while pending:
        for name, child_path, is_dir, is_link, is_file in pending.pop():
            if is_dir:
                if is_link or config.is_excluded_dir(name):
                    continue
                try:
                    pending.append(_list_children(child_path))
                except OSError as e:
                    _warn(f"! Could not scan {child_path}: {e}", verbose)
                continue
            if not is_file:
                # special files are listed in the tree only
                continue
            try:
                size = child_path.stat().st_size
            except OSError as e:
                # left to the read step to report
                _warn(f"! Could not stat {child_path}: {e}", verbose)
                size = 0
            found.append(FileEntry(child_path, size))
    return sorted(found, key=lambda f: f.path)


# Snapshot assembly
def _header(root: Path, now: datetime.datetime) -> List[str]:
    return [
        HEAVY_RULE,
        "PROJECT SNAPSHOT",
        HEAVY_RULE,
        f"Generated:  {now.strftime('%Y-%m-%d %H:%M:%S')}",
        f"Root Path:  {root}",
        HEAVY_RULE,
    ]


def _file_block(
    entry: FileEntry,
    rel: str,
    counters: RunCounters,
    verbose: bool,
) -> List[str]:
    block = [HEAVY_RULE, f"File: {rel}", LIGHT_RULE]

    kind, err = classify(entry.path)
    if err is not None:
        _warn(f"! Could not sample {rel}, treating as binary: {err}", verbose)

    if kind is Classification.BINARY:
        counters.skipped_binary += 1
        if verbose:
            log(f"- Skipping binary {rel}")
        block += [BINARY_PLACEHOLDER, f"Size: {entry.size / 1024:.2f} KB"]
    else:
        text, err = read_text_content(entry.path)
        if err is not None:
            counters.errors += 1
            _warn(f"! Could not read {rel}: {err}", verbose)
            block.append(f"[ERROR READING FILE: {err}]")
        elif not text.strip():
            block.append(EMPTY_PLACEHOLDER)
        else:
            block.append(text)

    block += ["", ""]
    return block


def assemble(
    root: Path,
    config: ExclusionConfig,
    output_path: Optional[Path] = None,
    now: Optional[datetime.datetime] = None,
    verbose: bool = False,
) -> Tuple[SnapshotDocument, RunCounters]:
    """Build the snapshot of *root* in memory.

    *output_path*, when it lies inside *root*, is kept out of the file
    contents so a previous snapshot is never fed back into a new one.
    """
    entries = scan_files(root, config, verbose=verbose)
    root = root.resolve()
    skip = output_path.resolve() if output_path is not None else None

    doc = SnapshotDocument(header=_header(root, now or datetime.datetime.now()))
    try:
        doc.tree = render_tree(root, config, verbose=verbose).split("\n")[:-1]
    except TreeRenderError as e:
        _warn(f"! {e}", verbose)
        doc.tree = [f"[Unable to render directory structure: {e}]"]

    counters = RunCounters(total_files=len(entries))
    for entry in entries:
        if entry.path == skip or not should_include(entry, config, root):
            continue
        counters.processed_files += 1
        rel = relativize(root, entry.path)
        doc.blocks.append(_file_block(entry, rel, counters, verbose))

    return doc, counters


# Main writer
def write_snapshot(document: SnapshotDocument, out_path: Path) -> int:
    try:
        out_path = out_path.resolve()
    except (OSError, RuntimeError) as e:
        raise OutputError(f"Could not resolve output path '{out_path}': {e}")

    if not out_path.parent.exists():
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputError(f"Could not create directory '{out_path.parent}': {e}")

    data = document.render().encode("utf-8")
    try:
        out_path.write_bytes(data)
    except OSError as e:
        raise OutputError(f"Could not write to output file '{out_path}': {e}")
    return len(data)


def create_snapshot(
    root: Path,
    out_path: Path,
    config: ExclusionConfig,
    verbose: bool = False,
) -> Tuple[RunCounters, int]:
    if verbose:
        log(f"Scanning {root} …")
    document, counters = assemble(root, config, output_path=out_path, verbose=verbose)
    size = write_snapshot(document, out_path)
    if verbose:
        log(f"Done → {out_path}.", Fore.GREEN)
    return counters, size
