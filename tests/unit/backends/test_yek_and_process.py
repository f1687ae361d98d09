"""Tests for the yek backend, the cancellable process runner and clipboard delivery."""

from __future__ import annotations

import sys
import tempfile
import threading
import time
import unittest
from pathlib import Path
from unittest import mock

from siff.backends import (
    Backend,
    BackendError,
    CancellationToken,
    PackOptions,
    ProcessOutput,
    RunCancelled,
    run_cancellable,
    validate_options,
)
from siff.backends import clipboard
from siff.backends.process import describe_failure
from siff.backends.yek import MAX_YEK_FILES, YekBackend, build_yek_args, validate_yek_options
from siff.file_tree_model import scan_directory


class YekBackendTests(unittest.TestCase):
    def test_args_are_relative_paths(self) -> None:
        root = Path("/work/project")

        args = build_yek_args([root / "src" / "a.rs", root / "b,c.rs"], root)

        self.assertEqual(args, ["src/a.rs", "b,c.rs"])

    def test_too_many_files_are_rejected(self) -> None:
        root = Path("/work/project")
        files = [root / f"f{index}.rs" for index in range(MAX_YEK_FILES + 1)]

        with self.assertRaises(BackendError) as ctx:
            build_yek_args(files, root)

        self.assertIn("Too many files selected (10001)", str(ctx.exception))

    def test_validation_warnings(self) -> None:
        self.assertEqual(validate_yek_options(PackOptions(), []), ["No files selected for processing"])
        many = [Path(f"/p/{index}.rs") for index in range(1001)]
        self.assertEqual(
            validate_yek_options(PackOptions(), many),
            ["Large number of files selected, May take a moment to process"],
        )
        self.assertEqual(validate_options(PackOptions(backend=Backend.YEK), many), validate_yek_options(PackOptions(), many))

    def test_run_copies_stdout(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "main.rs").write_text("fn main() {}\n", encoding="utf-8")
            store = scan_directory(root)
            seen: dict[str, object] = {}
            copied: list[str] = []

            def fake_run(args, token, *, cwd=None, env=None, input_text=None):
                seen["args"] = args
                seen["cwd"] = cwd
                return ProcessOutput(returncode=0, stdout=">>>> main.rs\nfn main() {}\n", stderr="")

            backend = YekBackend(
                binary="/usr/local/bin/yek",
                run_process=fake_run,
                copy_to_clipboard=lambda text, token: copied.append(text) or "fake",
            )
            outcome = backend.run(
                [store.root / "main.rs"],
                PackOptions(backend=Backend.YEK),
                store.root,
                store,
                CancellationToken(),
            )

        self.assertEqual(seen["args"], ["/usr/local/bin/yek", "main.rs"])
        self.assertEqual(seen["cwd"], store.root)
        self.assertEqual(copied, [">>>> main.rs\nfn main() {}\n"])
        self.assertEqual(outcome.message, "1 files processed and copied to clipboard")


class RunCancellableTests(unittest.TestCase):
    def test_successful_command_returns_output(self) -> None:
        output = run_cancellable(
            [sys.executable, "-c", "import sys; sys.stdout.write(sys.stdin.read().upper())"],
            CancellationToken(),
            input_text="hello",
        )

        self.assertEqual(output.returncode, 0)
        self.assertEqual(output.stdout, "HELLO")

    def test_cancel_kills_child_promptly(self) -> None:
        token = CancellationToken()
        timer = threading.Timer(0.1, token.cancel)
        timer.start()
        started = time.monotonic()
        try:
            with self.assertRaises(RunCancelled):
                run_cancellable([sys.executable, "-c", "import time; time.sleep(5)"], token)
        finally:
            timer.cancel()

        self.assertLess(time.monotonic() - started, 3.0)

    def test_already_cancelled_token_never_starts_process(self) -> None:
        token = CancellationToken()
        token.cancel()

        with mock.patch("siff.backends.process.subprocess.Popen") as popen:
            with self.assertRaises(RunCancelled):
                run_cancellable(["true"], token)

        popen.assert_not_called()

    def test_missing_executable_is_backend_error(self) -> None:
        with self.assertRaises(BackendError):
            run_cancellable(["siff-definitely-not-installed"], CancellationToken())

    def test_describe_failure_prefers_both_streams(self) -> None:
        self.assertEqual(describe_failure(ProcessOutput(1, "out", "err")), "stderr: err | stdout: out")
        self.assertEqual(describe_failure(ProcessOutput(1, "", "")), "Command failed with no error output")


class ClipboardTests(unittest.TestCase):
    def test_no_clipboard_tool_raises(self) -> None:
        with mock.patch("siff.backends.clipboard.shutil.which", return_value=None):
            with self.assertRaises(BackendError) as ctx:
                clipboard.copy_text_to_clipboard("text", CancellationToken())

        self.assertIn("No clipboard utility found", str(ctx.exception))

    def test_first_available_tool_receives_text(self) -> None:
        calls: list[tuple[list[str], str | None]] = []

        def fake_run(command, token, *, input_text=None):
            calls.append((command, input_text))
            return ProcessOutput(0, "", "")

        with mock.patch("siff.backends.clipboard.clipboard_commands", return_value=[["first"], ["second"]]), \
                mock.patch("siff.backends.clipboard.shutil.which", side_effect=lambda name: None if name == "first" else f"/bin/{name}"), \
                mock.patch("siff.backends.clipboard.run_cancellable", side_effect=fake_run):
            used = clipboard.copy_text_to_clipboard("payload", CancellationToken())

        self.assertEqual(used, "second")
        self.assertEqual(calls, [(["second"], "payload")])


if __name__ == "__main__":
    unittest.main()
