"""Plain-text directory listing prepended to packaged output."""

from __future__ import annotations

from .types import TreeStore


def generate_file_tree_text(store: TreeStore) -> str:
    """Render the whole scanned tree as an indented listing.

    Directories get a trailing ``/``. The scan root is the first line and each
    level below it indents by two spaces.
    """
    root_node = store.get(store.root)
    if root_node is None:
        return ""

    lines = [f"{root_node.name}/"]
    pending = [(child, 1) for child in reversed(root_node.children)]
    while pending:
        path, level = pending.pop()
        node = store.get(path)
        if node is None:
            continue
        suffix = "/" if node.is_directory else ""
        lines.append(f"{'  ' * level}{node.name}{suffix}")
        if node.is_directory:
            pending.extend((child, level + 1) for child in reversed(node.children))
    return "\n".join(lines) + "\n"


__all__ = ["generate_file_tree_text"]
