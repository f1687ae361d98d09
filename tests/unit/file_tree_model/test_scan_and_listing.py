"""Tests for directory scanning, skip rules, ordering and listings."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from siff.file_tree_model import generate_file_tree_text, is_text_file, scan_directory, should_skip_entry
from siff.file_tree_model.fs import MAX_SCANNED_FILE_BYTES


def _write(path: Path, text: str = "x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class ScanDirectoryTests(unittest.TestCase):
    def test_scan_orders_directories_first_then_case_insensitive_names(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _write(root / "b.txt")
            _write(root / "A.txt")
            _write(root / "src" / "main.py")
            _write(root / "docs" / "guide.md")

            store = scan_directory(root)
            root_node = store.nodes[store.root]

            self.assertEqual(
                [store.nodes[child].name for child in root_node.children],
                ["docs", "src", "A.txt", "b.txt"],
            )
            self.assertEqual(store.nodes[store.root / "src" / "main.py"].depth, 2)

    def test_scan_skips_vcs_and_dependency_directories(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _write(root / ".git" / "HEAD")
            _write(root / ".gitignore")
            _write(root / "node_modules" / "pkg" / "index.js")
            _write(root / "Target" / "out.o")
            _write(root / "keep.py")

            store = scan_directory(root)
            names = {node.name for node in store.nodes.values() if node.path != store.root}

            self.assertEqual(names, {"keep.py"})

    def test_children_are_keys_whose_parent_is_the_owner(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _write(root / "a" / "b" / "c.txt")
            _write(root / "a" / "d.txt")

            store = scan_directory(root)

            for path, node in store.nodes.items():
                for child in node.children:
                    self.assertIn(child, store)
                    self.assertEqual(child.parent, path)

    def test_visible_paths_follow_expansion_and_exclude_root(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _write(root / "pkg" / "mod.py")
            _write(root / "top.txt")

            store = scan_directory(root)
            self.assertEqual(store.visible_paths(), [])

            store.expand_root()
            self.assertEqual(store.visible_paths(), [store.root / "pkg", store.root / "top.txt"])

            store.expand_all()
            self.assertEqual(
                store.visible_paths(),
                [store.root / "pkg", store.root / "pkg" / "mod.py", store.root / "top.txt"],
            )

            store.collapse_all()
            self.assertTrue(store.nodes[store.root].is_expanded)
            self.assertFalse(store.nodes[store.root / "pkg"].is_expanded)

    def test_ancestors_stop_at_scan_root(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _write(root / "a" / "b" / "c.txt")
            store = scan_directory(root)

            ancestors = list(store.ancestors(store.root / "a" / "b" / "c.txt"))

            self.assertEqual(ancestors, [store.root / "a" / "b", store.root / "a", store.root])


class SkipAndTextRulesTests(unittest.TestCase):
    def test_should_skip_entry_rules(self) -> None:
        self.assertTrue(should_skip_entry(".git", None))
        self.assertTrue(should_skip_entry("__pycache__", None))
        self.assertTrue(should_skip_entry("NODE_MODULES", None))
        self.assertTrue(should_skip_entry("huge.bin", MAX_SCANNED_FILE_BYTES + 1))
        self.assertFalse(should_skip_entry("main.rs", 10))

    def test_is_text_file_rejects_binaries_and_repomix_output(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            binary = root / "blob"
            binary.write_bytes(b"\x7fELF\x00\x00\x01")
            script = _write(root / "runme", "#!/bin/sh\necho hi\n")
            readme = _write(root / "README", "hello")
            output = _write(root / "repomix-output.xml", "<x/>")
            source = _write(root / "lib.py", "print(1)")

            self.assertFalse(is_text_file(binary))
            self.assertTrue(is_text_file(script))
            self.assertTrue(is_text_file(readme))
            self.assertFalse(is_text_file(output))
            self.assertTrue(is_text_file(source))


class FileTreeListingTests(unittest.TestCase):
    def test_listing_indents_levels_and_marks_directories(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp) / "project"
            _write(root / "src" / "app.py")
            _write(root / "README.md")

            store = scan_directory(root)

            self.assertEqual(
                generate_file_tree_text(store),
                "project/\n  src/\n    app.py\n  README.md\n",
            )


if __name__ == "__main__":
    unittest.main()
