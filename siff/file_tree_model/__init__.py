"""Domain model for the scanned file tree plus selection helpers.

This package contains non-UI tree primitives:
- path-keyed node table with traversal helpers
- filesystem scanning and text-file classification
- selection mutation and relevance derivation
- plain-text listing used by packaging backends
"""

from __future__ import annotations

from .fs import is_packaging_output, is_text_file, scan_directory, should_skip_entry
from .listing import generate_file_tree_text
from .selection import (
    directories_with_selected_descendants,
    is_relevant,
    relevant_paths,
    select_all_visible,
    selected_file_count,
    selected_files,
    set_selection_recursive,
    toggle_selection,
    unselect_all,
)
from .types import TreeNode, TreeStore

__all__ = [
    "TreeNode",
    "TreeStore",
    "scan_directory",
    "should_skip_entry",
    "is_text_file",
    "is_packaging_output",
    "generate_file_tree_text",
    "directories_with_selected_descendants",
    "is_relevant",
    "relevant_paths",
    "select_all_visible",
    "selected_file_count",
    "selected_files",
    "set_selection_recursive",
    "toggle_selection",
    "unselect_all",
]
