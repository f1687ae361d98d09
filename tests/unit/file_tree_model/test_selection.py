"""Tests for selection mutation and relevance derivation."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from siff.file_tree_model import (
    directories_with_selected_descendants,
    is_relevant,
    relevant_paths,
    scan_directory,
    select_all_visible,
    selected_file_count,
    selected_files,
    toggle_selection,
    unselect_all,
)


class SelectionTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        root = Path(self._tmp.name)
        for relative in ("src/a.py", "src/lib/b.py", "src/lib/c.py", "docs/d.md", "e.txt"):
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("content", encoding="utf-8")
        self.store = scan_directory(root)
        self.root = self.store.root

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_toggling_directory_applies_to_every_descendant(self) -> None:
        src = self.root / "src"

        self.assertTrue(toggle_selection(self.store, src))
        for path in [src, *self.store.descendants(src)]:
            self.assertTrue(self.store.nodes[path].is_selected, path)
        self.assertFalse(self.store.nodes[self.root / "e.txt"].is_selected)

        self.assertFalse(toggle_selection(self.store, src))
        self.assertFalse(any(node.is_selected for node in self.store.nodes.values()))

    def test_toggling_file_touches_only_that_file(self) -> None:
        target = self.root / "src" / "lib" / "b.py"

        toggle_selection(self.store, target)

        selected = [path for path, node in self.store.nodes.items() if node.is_selected]
        self.assertEqual(selected, [target])

    def test_unknown_path_toggle_returns_none(self) -> None:
        self.assertIsNone(toggle_selection(self.store, self.root / "missing.py"))

    def test_descendant_map_marks_every_ancestor_of_a_selected_node(self) -> None:
        toggle_selection(self.store, self.root / "src" / "lib" / "c.py")

        dir_map = directories_with_selected_descendants(self.store)

        self.assertTrue(dir_map[self.root / "src" / "lib"])
        self.assertTrue(dir_map[self.root / "src"])
        self.assertTrue(dir_map[self.root])
        self.assertFalse(dir_map[self.root / "docs"])

    def test_descendant_map_is_recomputed_from_scratch(self) -> None:
        target = self.root / "docs" / "d.md"
        toggle_selection(self.store, target)
        self.assertTrue(directories_with_selected_descendants(self.store)[self.root / "docs"])

        toggle_selection(self.store, target)
        self.assertFalse(directories_with_selected_descendants(self.store)[self.root / "docs"])

    def test_relevance_for_files_and_directories(self) -> None:
        toggle_selection(self.store, self.root / "src" / "a.py")
        dir_map = directories_with_selected_descendants(self.store)

        self.assertTrue(is_relevant(self.store, self.root / "src" / "a.py", dir_map))
        self.assertTrue(is_relevant(self.store, self.root / "src", dir_map))
        self.assertFalse(is_relevant(self.store, self.root / "src" / "lib", dir_map))
        self.assertFalse(is_relevant(self.store, self.root / "e.txt", dir_map))
        self.assertEqual(relevant_paths(self.store), {self.root, self.root / "src", self.root / "src" / "a.py"})

    def test_select_all_visible_resets_then_selects_visible_subtrees(self) -> None:
        self.store.expand_root()
        toggle_selection(self.store, self.root / "src" / "lib" / "b.py")
        # docs collapsed: its file is still selected through the recursive walk.
        select_all_visible(self.store, self.store.visible_paths())

        self.assertEqual(selected_file_count(self.store), 5)
        self.assertEqual(len(selected_files(self.store)), 5)

    def test_unselect_all_clears_nodes_under_collapsed_directories(self) -> None:
        toggle_selection(self.store, self.root / "src")
        self.store.collapse_all()

        unselect_all(self.store)

        self.assertFalse(any(node.is_selected for node in self.store.nodes.values()))

    def test_selected_files_are_sorted_and_exclude_directories(self) -> None:
        toggle_selection(self.store, self.root / "src")

        self.assertEqual(
            selected_files(self.store),
            sorted([self.root / "src" / "a.py", self.root / "src" / "lib" / "b.py", self.root / "src" / "lib" / "c.py"]),
        )


if __name__ == "__main__":
    unittest.main()
