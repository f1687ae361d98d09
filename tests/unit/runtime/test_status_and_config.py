from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from siff.backends import Backend, OutputFormat, PackOptions
from siff.runtime import config
from siff.runtime.status import StatusKind, StatusLine


class StatusLineTests(unittest.TestCase):
    def test_messages_expire_after_kind_specific_linger(self) -> None:
        now = [0.0]
        status = StatusLine(clock=lambda: now[0])

        status.set("✓ Calculated tokens for 3 files", StatusKind.COMPLETION)
        now[0] = 1.5
        self.assertFalse(status.expire())
        now[0] = 2.5
        self.assertTrue(status.expire())
        self.assertEqual(status.message, "")

        status.set("Selected all items - calculating tokens...", StatusKind.BULK)
        now[0] = 6.0
        self.assertFalse(status.expire())
        now[0] = 8.0
        self.assertTrue(status.expire())

    def test_hold_keeps_message_while_run_in_flight(self) -> None:
        now = [0.0]
        status = StatusLine(clock=lambda: now[0])
        status.set("Running Yek on 3 files...", StatusKind.RUNNING)

        now[0] = 60.0

        self.assertFalse(status.expire(hold=True))
        self.assertEqual(status.message, "Running Yek on 3 files...")
        self.assertTrue(status.expire())


class PackConfigTests(unittest.TestCase):
    def test_round_trip_keeps_unknown_keys(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "siff" / "config.json"
            config_path.parent.mkdir(parents=True)
            config_path.write_text(json.dumps({"theme": "dark"}), encoding="utf-8")
            with mock.patch("siff.runtime.config.CONFIG_PATH", config_path):
                options = PackOptions(
                    backend=Backend.YEK,
                    compress=True,
                    include_file_tree=True,
                    output_format=OutputFormat.MARKDOWN,
                )
                self.assertTrue(config.save_pack_options(options))

                loaded = config.load_pack_options()
                saved = config.load_config()

        self.assertEqual(loaded, options)
        self.assertEqual(saved["theme"], "dark")
        self.assertEqual(saved["output_format"], "markdown")
        self.assertEqual(saved["default_backend"], "yek")

    def test_malformed_values_fall_back_to_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.json"
            config_path.write_text(
                json.dumps({"compress": "yes", "output_format": "Yaml", "default_backend": 3}),
                encoding="utf-8",
            )

            loaded = config.load_pack_options(config_path)

        self.assertEqual(loaded, PackOptions())

    def test_legacy_display_names_are_accepted(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.json"
            config_path.write_text(
                json.dumps({"output_format": "PlainText", "default_backend": "Repomix", "remove_comments": True}),
                encoding="utf-8",
            )

            loaded = config.load_pack_options(config_path)

        self.assertIs(loaded.output_format, OutputFormat.PLAIN_TEXT)
        self.assertIs(loaded.backend, Backend.REPOMIX)
        self.assertTrue(loaded.remove_comments)

    def test_unreadable_or_non_object_config_is_empty(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            broken = Path(tmp) / "broken.json"
            broken.write_text("{not json", encoding="utf-8")
            listing = Path(tmp) / "list.json"
            listing.write_text("[1, 2]", encoding="utf-8")

            self.assertEqual(config.load_config(broken), {})
            self.assertEqual(config.load_config(listing), {})
            self.assertEqual(config.load_config(Path(tmp) / "missing.json"), {})

    def test_save_failure_returns_false(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            blocker = Path(tmp) / "file"
            blocker.write_text("x", encoding="utf-8")

            self.assertFalse(config.save_config({"a": 1}, blocker / "config.json"))


if __name__ == "__main__":
    unittest.main()
