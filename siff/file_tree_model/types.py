"""Domain datatypes for the scanned file tree.

Nodes live in one flat table keyed by absolute path; directories refer to
their children by key. Only ``is_selected`` and ``is_expanded`` change after
the scan, and only the control loop changes them.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from pathlib import Path


@dataclass
class TreeNode:
    """One filesystem entry observed during the scan."""

    path: Path
    name: str
    is_directory: bool
    depth: int
    is_selected: bool = False
    is_expanded: bool = False
    children: list[Path] = field(default_factory=list)

    @classmethod
    def for_path(cls, path: Path, is_directory: bool, depth: int) -> "TreeNode":
        """Create a node named after the last component of ``path``."""
        return cls(path=path, name=path.name or str(path), is_directory=is_directory, depth=depth)

    def toggle_expansion(self) -> None:
        """Flip expansion state; files cannot be expanded."""
        if self.is_directory:
            self.is_expanded = not self.is_expanded


@dataclass
class TreeStore:
    """Path-keyed node table rooted at the scan root."""

    root: Path
    nodes: dict[Path, TreeNode] = field(default_factory=dict)

    def __contains__(self, path: object) -> bool:
        return path in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, path: Path) -> TreeNode | None:
        return self.nodes.get(path)

    def snapshot(self) -> "TreeStore":
        """Independent copy for handing to a background thread."""
        return TreeStore(
            root=self.root,
            nodes={path: replace(node, children=list(node.children)) for path, node in self.nodes.items()},
        )

    def ancestors(self, path: Path) -> Iterator[Path]:
        """Yield parent paths of ``path`` that exist in the store, nearest first."""
        current = path.parent
        while current in self.nodes:
            yield current
            if current == self.root:
                return
            parent = current.parent
            if parent == current:
                return
            current = parent

    def descendants(self, path: Path) -> Iterator[Path]:
        """Yield every path below ``path`` (excluding it) using a work list."""
        node = self.nodes.get(path)
        if node is None:
            return
        pending = list(reversed(node.children))
        while pending:
            child_path = pending.pop()
            child = self.nodes.get(child_path)
            if child is None:
                continue
            yield child_path
            if child.is_directory:
                pending.extend(reversed(child.children))

    def visible_paths(self) -> list[Path]:
        """Flatten expanded directories depth-first, skipping the scan root itself."""
        root_node = self.nodes.get(self.root)
        if root_node is None or not root_node.is_directory or not root_node.is_expanded:
            return []

        out: list[Path] = []
        pending = list(reversed(root_node.children))
        while pending:
            path = pending.pop()
            node = self.nodes.get(path)
            if node is None:
                continue
            out.append(path)
            if node.is_directory and node.is_expanded:
                pending.extend(reversed(node.children))
        return out

    def expand_all(self) -> None:
        for node in self.nodes.values():
            if node.is_directory:
                node.is_expanded = True

    def collapse_all(self) -> None:
        """Collapse every directory but keep the scan root open."""
        for node in self.nodes.values():
            if node.is_directory:
                node.is_expanded = False
        root_node = self.nodes.get(self.root)
        if root_node is not None:
            root_node.is_expanded = True

    def expand_root(self) -> None:
        root_node = self.nodes.get(self.root)
        if root_node is not None and root_node.is_directory:
            root_node.is_expanded = True

    def set_expanded(self, path: Path, expanded: bool) -> bool:
        """Set expansion on a directory and return whether anything changed."""
        node = self.nodes.get(path)
        if node is None or not node.is_directory or node.is_expanded == expanded:
            return False
        node.is_expanded = expanded
        return True


__all__ = [
    "TreeNode",
    "TreeStore",
]
