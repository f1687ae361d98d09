"""Tests for the cancellable execution coordinator."""

from __future__ import annotations

import threading
import time
import unittest
from pathlib import Path

from siff.backends import Backend, BackendError, BackendOutcome, PackOptions, RunCancelled
from siff.file_tree_model import TreeStore
from siff.runtime.coordinator import ExecutionCoordinator, RunOutcome, RunRequest, RunState


def _wait_for_results(coordinator: ExecutionCoordinator, timeout_seconds: float = 2.0) -> list:
    deadline = time.monotonic() + timeout_seconds
    out: list = []
    while time.monotonic() < deadline:
        out.extend(coordinator.drain_results())
        if out:
            break
        time.sleep(0.01)
    return out


def _start(coordinator: ExecutionCoordinator) -> int:
    request_id, _replaced = coordinator.run(
        backend=Backend.YEK,
        options=PackOptions(backend=Backend.YEK),
        selected_files=[Path("/p/a.py")],
        root=Path("/p"),
        tree=TreeStore(root=Path("/p")),
    )
    return request_id


class ExecutionCoordinatorTests(unittest.TestCase):
    def test_completed_run_is_reported_once(self) -> None:
        coordinator = ExecutionCoordinator(lambda request: BackendOutcome("1 files processed and copied to clipboard"))

        request_id = _start(coordinator)
        results = _wait_for_results(coordinator)

        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].request_id, request_id)
        self.assertIs(results[0].outcome, RunOutcome.COMPLETED)
        self.assertEqual(results[0].message, "1 files processed and copied to clipboard")
        self.assertIs(results[0].backend, Backend.YEK)
        self.assertIs(coordinator.state, RunState.COMPLETED)
        self.assertFalse(coordinator.is_processing)
        self.assertEqual(coordinator.drain_results(), [])

    def test_request_ids_strictly_increase(self) -> None:
        coordinator = ExecutionCoordinator(lambda request: BackendOutcome("ok"))

        first = _start(coordinator)
        second = _start(coordinator)
        _wait_for_results(coordinator)

        self.assertLess(first, second)

    def test_backend_error_becomes_failed_result(self) -> None:
        def invoke(request: RunRequest) -> BackendOutcome:
            raise BackendError("Yek failed with exit code 1: nope")

        coordinator = ExecutionCoordinator(invoke)
        _start(coordinator)
        results = _wait_for_results(coordinator)

        self.assertIs(results[0].outcome, RunOutcome.FAILED)
        self.assertIn("nope", results[0].message)
        self.assertIs(coordinator.state, RunState.FAILED)

    def test_unexpected_exception_does_not_escape_worker(self) -> None:
        def invoke(request: RunRequest) -> BackendOutcome:
            raise ValueError("surprise")

        coordinator = ExecutionCoordinator(invoke)
        _start(coordinator)
        results = _wait_for_results(coordinator)

        self.assertIs(results[0].outcome, RunOutcome.FAILED)

    def test_superseded_run_result_is_discarded(self) -> None:
        release_first = threading.Event()

        def invoke(request: RunRequest) -> BackendOutcome:
            if request.request_id == 1:
                release_first.wait(2.0)
                return BackendOutcome("A finished")
            return BackendOutcome("B finished")

        coordinator = ExecutionCoordinator(invoke)
        first = _start(coordinator)
        second, replaced = coordinator.run(
            backend=Backend.YEK,
            options=PackOptions(backend=Backend.YEK),
            selected_files=[Path("/p/b.py")],
            root=Path("/p"),
            tree=TreeStore(root=Path("/p")),
        )
        release_first.set()
        results = _wait_for_results(coordinator)
        time.sleep(0.1)
        results.extend(coordinator.drain_results())

        self.assertTrue(replaced)
        self.assertEqual(first, 1)
        self.assertEqual([(result.request_id, result.message) for result in results], [(second, "B finished")])

    def test_explicit_cancel_reports_cancelled_outcome(self) -> None:
        started = threading.Event()

        def invoke(request: RunRequest) -> BackendOutcome:
            started.set()
            request.token.wait(2.0)
            raise RunCancelled()

        coordinator = ExecutionCoordinator(invoke)
        _start(coordinator)
        self.assertTrue(started.wait(1.0))
        self.assertTrue(coordinator.is_processing)

        self.assertTrue(coordinator.cancel())
        results = _wait_for_results(coordinator)

        self.assertIs(results[0].outcome, RunOutcome.CANCELLED)
        self.assertIs(coordinator.state, RunState.CANCELLED)
        self.assertFalse(coordinator.cancel())

    def test_token_wins_race_against_unresponsive_backend(self) -> None:
        release = threading.Event()

        def invoke(request: RunRequest) -> BackendOutcome:
            release.wait(2.0)
            return BackendOutcome("too late")

        coordinator = ExecutionCoordinator(invoke)
        _start(coordinator)
        coordinator.cancel()
        results = _wait_for_results(coordinator)
        release.set()

        self.assertIs(results[0].outcome, RunOutcome.CANCELLED)
        self.assertEqual(results[0].message, "Operation cancelled")


if __name__ == "__main__":
    unittest.main()
