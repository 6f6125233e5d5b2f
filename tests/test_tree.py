import os
from pathlib import Path

import pytest

from projsnap.core import TreeRenderError, build_config, render_tree, scan_files


def _touch(root: Path, rel: str, data: str = "x") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(data, encoding="utf-8")
    return path


def test_directories_sort_before_files(tmp_path):
    _touch(tmp_path, "a.txt")
    _touch(tmp_path, "zeta/inner.py")
    _touch(tmp_path, "Beta/b.py")
    config = build_config(exclude_dirs=[], exclude_files=[])

    assert render_tree(tmp_path, config).splitlines() == [
        "├── [DIR] Beta",
        "  └── [FILE] b.py",
        "├── [DIR] zeta",
        "  └── [FILE] inner.py",
        "└── [FILE] a.txt",
    ]


def test_nested_directories_indent_by_depth(tmp_path):
    _touch(tmp_path, "a/b/c/deep.txt")
    config = build_config(exclude_dirs=[], exclude_files=[])

    assert render_tree(tmp_path, config).splitlines() == [
        "└── [DIR] a",
        "  └── [DIR] b",
        "    └── [DIR] c",
        "      └── [FILE] deep.txt",
    ]


def test_starting_depth_offsets_indentation(tmp_path):
    _touch(tmp_path, "one.txt")
    config = build_config(exclude_dirs=[], exclude_files=[])
    assert render_tree(tmp_path, config, depth=2) == "    └── [FILE] one.txt\n"


def test_excluded_directory_and_descendants_are_hidden(tmp_path):
    _touch(tmp_path, ".git/objects/ab/cdef")
    _touch(tmp_path, "src/.git/HEAD")
    _touch(tmp_path, "src/main.py")
    config = build_config(exclude_dirs=[".git"], exclude_files=[])

    text = render_tree(tmp_path, config)
    assert ".git" not in text
    assert "objects" not in text
    assert "HEAD" not in text
    assert "[FILE] main.py" in text


def test_file_rules_do_not_apply_to_tree(tmp_path):
    _touch(tmp_path, "app.log")
    _touch(tmp_path, "big.txt", "x" * 100)
    config = build_config(exclude_dirs=[], exclude_files=["*.log"], max_file_size=10)

    text = render_tree(tmp_path, config)
    assert "[FILE] app.log" in text
    assert "[FILE] big.txt" in text


def test_empty_directory_is_listed(tmp_path):
    (tmp_path / "empty").mkdir()
    config = build_config(exclude_dirs=[], exclude_files=[])
    assert render_tree(tmp_path, config) == "└── [DIR] empty\n"


def test_missing_start_directory_raises(tmp_path):
    config = build_config()
    with pytest.raises(TreeRenderError):
        render_tree(tmp_path / "missing", config)


def test_deep_tree_does_not_hit_recursion_limit(tmp_path):
    path = tmp_path
    for _ in range(60):
        path = path / "d"
    path.mkdir(parents=True)
    (path / "leaf.txt").write_text("x", encoding="utf-8")
    config = build_config(exclude_dirs=[], exclude_files=[])

    lines = render_tree(tmp_path, config).splitlines()
    assert len(lines) == 61
    assert lines[-1] == "  " * 60 + "└── [FILE] leaf.txt"


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
def test_symlinked_directory_is_listed_but_not_followed(tmp_path):
    _touch(tmp_path, "real/file.txt")
    os.symlink(tmp_path / "real", tmp_path / "loop", target_is_directory=True)
    config = build_config(exclude_dirs=[], exclude_files=[])

    assert render_tree(tmp_path, config).splitlines() == [
        "├── [DIR] loop",
        "└── [DIR] real",
        "  └── [FILE] file.txt",
    ]
    assert [e.path.name for e in scan_files(tmp_path, config)] == ["file.txt"]


@pytest.mark.skipif(
    not hasattr(os, "geteuid") or os.geteuid() == 0,
    reason="needs a non-root POSIX user for permission checks",
)
def test_unreadable_subdirectory_renders_empty(tmp_path):
    _touch(tmp_path, "locked/secret.txt")
    _touch(tmp_path, "open.txt")
    locked = tmp_path / "locked"
    locked.chmod(0)
    try:
        config = build_config(exclude_dirs=[], exclude_files=[])
        assert render_tree(tmp_path, config).splitlines() == [
            "├── [DIR] locked",
            "└── [FILE] open.txt",
        ]
        assert [e.path.name for e in scan_files(tmp_path, config)] == ["open.txt"]
    finally:
        locked.chmod(0o755)


def test_scan_prunes_excluded_directories(tmp_path):
    _touch(tmp_path, "node_modules/pkg/index.js")
    _touch(tmp_path, "src/index.js")
    _touch(tmp_path, "README.md")
    config = build_config(exclude_dirs=["node_modules"], exclude_files=[])

    entries = scan_files(tmp_path, config)
    rels = [e.path.relative_to(tmp_path.resolve()).as_posix() for e in entries]
    assert rels == ["README.md", "src/index.js"]
    assert all(not e.is_dir for e in entries)
    assert entries[0].size == 1
