"""Filesystem scanning and file-classification helpers for the tree store."""

from __future__ import annotations

import os
from pathlib import Path

from loguru import logger

from .types import TreeNode, TreeStore

MAX_SCANNED_FILE_BYTES = 100_000_000
MAX_EXTENSIONLESS_TEXT_BYTES = 50 * 1024 * 1024
BINARY_SNIFF_BYTES = 512

ALWAYS_SKIPPED_NAMES = frozenset({".git", ".gitignore"})
SKIPPED_NAMES_CASEFOLDED = frozenset(
    name.casefold()
    for name in (
        "target",
        "node_modules",
        "build",
        "dist",
        ".next",
        ".nuxt",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".tox",
        "venv",
        ".venv",
        "env",
        ".env",
        "coverage",
        ".coverage",
        "tmp",
        "temp",
        ".tmp",
        "logs",
        ".DS_Store",
        "Thumbs.db",
    )
)
TEXT_FILES_WITHOUT_EXTENSION = frozenset(
    name.casefold()
    for name in (
        "README",
        "LICENSE",
        "CHANGELOG",
        "CONTRIBUTING",
        "Dockerfile",
        "Makefile",
        "Gemfile",
        "Rakefile",
        "Procfile",
        "Vagrantfile",
        "Jenkinsfile",
        "BUILD",
        "WORKSPACE",
        "justfile",
        "gradlew",
        "mvnw",
    )
)


def should_skip_entry(name: str, size: int | None) -> bool:
    """Return whether a scanned entry is left out of the tree.

    Version-control metadata, common dependency/build directories and files
    above ``MAX_SCANNED_FILE_BYTES`` are skipped.
    """
    if name in ALWAYS_SKIPPED_NAMES:
        return True
    if name.casefold() in SKIPPED_NAMES_CASEFOLDED:
        return True
    return size is not None and size > MAX_SCANNED_FILE_BYTES


def is_packaging_output(name: str) -> bool:
    """Return whether ``name`` looks like a previous repomix output file."""
    return (
        name.startswith("repomix-output")
        or name.endswith("-repomix.txt")
        or name.endswith("-repomix.md")
        or name.endswith("-repomix.xml")
    )


def is_text_file(path: Path) -> bool:
    """Heuristically decide whether ``path`` should be handed to a backend.

    Files with an extension are accepted. Extensionless files are accepted
    when their name is a well-known text file, otherwise when they are not
    oversized and their first bytes contain no NUL.
    """
    name = path.name
    if is_packaging_output(name):
        return False
    if path.suffix:
        return True
    if name.casefold() in TEXT_FILES_WITHOUT_EXTENSION:
        return True

    try:
        if path.stat().st_size > MAX_EXTENSIONLESS_TEXT_BYTES:
            return False
    except OSError:
        pass

    try:
        with path.open("rb") as handle:
            head = handle.read(BINARY_SNIFF_BYTES)
    except OSError:
        return True
    return b"\x00" not in head


def _sort_children(store: TreeStore) -> None:
    """Order each directory's children: directories first, then by name."""
    for node in store.nodes.values():
        if not node.is_directory:
            continue
        node.children.sort(
            key=lambda child: (
                not store.nodes[child].is_directory,
                store.nodes[child].name.lower(),
                store.nodes[child].name,
            )
        )


def scan_directory(root: Path) -> TreeStore:
    """Walk ``root`` and build the path-keyed tree store.

    Symlinks are not followed. Unreadable directories contribute no children
    and are logged rather than raised.
    """
    root = root.resolve()
    store = TreeStore(root=root)
    store.nodes[root] = TreeNode.for_path(root, is_directory=True, depth=0)

    pending: list[tuple[Path, int]] = [(root, 0)]
    while pending:
        directory, depth = pending.pop()
        parent_node = store.nodes[directory]
        try:
            with os.scandir(directory) as entries:
                for child in entries:
                    try:
                        is_dir = child.is_dir(follow_symlinks=False)
                    except OSError:
                        is_dir = False

                    size: int | None = None
                    if not is_dir:
                        try:
                            size = int(child.stat(follow_symlinks=False).st_size)
                        except OSError:
                            size = None

                    if should_skip_entry(child.name, size):
                        continue

                    child_path = Path(child.path)
                    store.nodes[child_path] = TreeNode.for_path(child_path, is_directory=is_dir, depth=depth + 1)
                    parent_node.children.append(child_path)
                    if is_dir:
                        pending.append((child_path, depth + 1))
        except OSError as exc:
            logger.debug(f"Skipping unreadable directory {directory}: {exc}")

    _sort_children(store)
    logger.info(f"Scanned {len(store)} entries under {root}")
    return store


__all__ = [
    "MAX_SCANNED_FILE_BYTES",
    "is_packaging_output",
    "is_text_file",
    "scan_directory",
    "should_skip_entry",
]
