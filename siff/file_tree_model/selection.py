"""Selection state mutation and derived relevance for the tree store.

Relevance is recomputed from the per-node ``is_selected`` flags on every
query. A directory is relevant when it is selected itself or holds a selected
descendant; a file is relevant only when it is selected.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from .fs import is_text_file
from .types import TreeStore


def directories_with_selected_descendants(store: TreeStore) -> dict[Path, bool]:
    """Map every directory to whether some node strictly below it is selected."""
    dir_map = {path: False for path, node in store.nodes.items() if node.is_directory}
    for path, node in store.nodes.items():
        if not node.is_selected:
            continue
        for ancestor in store.ancestors(path):
            if dir_map.get(ancestor):
                # Everything above was already marked by an earlier walk.
                break
            if ancestor in dir_map:
                dir_map[ancestor] = True
    return dir_map


def is_relevant(store: TreeStore, path: Path, dir_map: dict[Path, bool]) -> bool:
    """Return whether ``path`` should hold a token-cache entry."""
    node = store.get(path)
    if node is None:
        return False
    if node.is_directory:
        return node.is_selected or dir_map.get(path, False)
    return node.is_selected


def relevant_paths(store: TreeStore, dir_map: dict[Path, bool] | None = None) -> set[Path]:
    """Return every relevant file and directory path."""
    if dir_map is None:
        dir_map = directories_with_selected_descendants(store)
    return {path for path in store.nodes if is_relevant(store, path, dir_map)}


def set_selection_recursive(store: TreeStore, path: Path, selected: bool) -> None:
    """Apply ``selected`` to ``path`` and, for directories, every descendant."""
    node = store.get(path)
    if node is None:
        return
    node.is_selected = selected
    if not node.is_directory:
        return
    for descendant in store.descendants(path):
        store.nodes[descendant].is_selected = selected


def toggle_selection(store: TreeStore, path: Path) -> bool | None:
    """Flip selection of ``path`` (recursively for directories).

    Returns the new selection value, or ``None`` when ``path`` is unknown.
    """
    node = store.get(path)
    if node is None:
        return None
    new_value = not node.is_selected
    set_selection_recursive(store, path, new_value)
    return new_value


def unselect_all(store: TreeStore) -> None:
    """Clear every selection flag, including nodes under collapsed directories."""
    for node in store.nodes.values():
        node.is_selected = False


def select_all_visible(store: TreeStore, visible: Iterable[Path]) -> None:
    """Reset selection, then recursively select each visible path."""
    unselect_all(store)
    for path in visible:
        node = store.get(path)
        if node is not None and not node.is_selected:
            set_selection_recursive(store, path, True)


def selected_files(store: TreeStore) -> list[Path]:
    """Return selected files that pass the text-file heuristic, in path order."""
    return sorted(
        path
        for path, node in store.nodes.items()
        if node.is_selected and not node.is_directory and is_text_file(path)
    )


def selected_file_count(store: TreeStore) -> int:
    """Count selected file nodes without applying the text-file heuristic."""
    return sum(1 for node in store.nodes.values() if node.is_selected and not node.is_directory)


__all__ = [
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
