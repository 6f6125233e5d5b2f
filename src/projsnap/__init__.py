"""
projsnap - A tool for generating project snapshots for LLM ingestion.

This package walks a directory tree, filters files by directory names,
filename globs, size and optional gitignore-style rules, and writes one
text document holding the rendered tree plus every included file's content.
"""

__version__ = "0.1.0"
__author__ = "projsnap Team"
