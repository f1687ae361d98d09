from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from siff import cli
from siff.backends import Backend, BackendUnavailable, PackOptions


class CliMainTests(unittest.TestCase):
    def setUp(self) -> None:
        patches = [
            mock.patch("siff.cli.configure_logging", return_value=None),
            mock.patch("siff.cli.load_pack_options", return_value=PackOptions()),
        ]
        for patcher in patches:
            patcher.start()
            self.addCleanup(patcher.stop)

    def test_missing_path_exits_with_message(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            cli.main(["/definitely/not/here"])

        self.assertIn("Path not found", str(ctx.exception.code))

    def test_file_path_is_rejected(self) -> None:
        with tempfile.NamedTemporaryFile() as handle:
            with self.assertRaises(SystemExit) as ctx:
                cli.main([handle.name])

        self.assertIn("Not a directory", str(ctx.exception.code))

    def test_unavailable_backend_fails_before_tui(self) -> None:
        with tempfile.TemporaryDirectory() as tmp, mock.patch(
            "siff.cli.check_backend_available",
            side_effect=BackendUnavailable("yek not found on PATH"),
        ), mock.patch("siff.cli.run_app") as run_app:
            with self.assertRaises(SystemExit) as ctx:
                cli.main([tmp, "--yek"])

        self.assertEqual(ctx.exception.code, "Error: yek not found on PATH")
        run_app.assert_not_called()

    def test_backend_flag_and_output_are_forwarded(self) -> None:
        with tempfile.TemporaryDirectory() as tmp, mock.patch(
            "siff.cli.check_backend_available"
        ) as check, mock.patch("siff.cli.build_app") as build_app, mock.patch(
            "siff.cli.run_app"
        ) as run_app, mock.patch("siff.cli.sys.stdin") as stdin, mock.patch("siff.cli.sys.stdout") as stdout:
            stdin.isatty.return_value = True
            stdout.isatty.return_value = True

            cli.main([tmp, "--yek", "--output", str(Path(tmp) / "packed.txt")])

        check.assert_called_once_with(Backend.YEK)
        root, options = build_app.call_args.args
        self.assertEqual(root, Path(tmp).resolve())
        self.assertIs(options.backend, Backend.YEK)
        self.assertEqual(options.output_file, (Path(tmp) / "packed.txt").resolve())
        run_app.assert_called_once_with(build_app.return_value)

    def test_non_interactive_terminal_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmp, mock.patch("siff.cli.check_backend_available"), mock.patch(
            "siff.cli.sys.stdin"
        ) as stdin:
            stdin.isatty.return_value = False
            with self.assertRaises(SystemExit) as ctx:
                cli.main([tmp])

        self.assertIn("interactive terminal", str(ctx.exception.code))

    def test_backend_flags_are_mutually_exclusive(self) -> None:
        with mock.patch("sys.stderr"):
            with self.assertRaises(SystemExit):
                cli.build_parser().parse_args(["--yek", "--repomix"])


if __name__ == "__main__":
    unittest.main()
