"""Cancellable background execution of packaging runs.

One run is current at a time. Starting a new run cancels the previous one and
forgets its id, so whatever the old run eventually reports is dropped by
``drain_results``. Backend work happens on daemon threads and comes back as
``RunResult`` messages; no exception escapes a worker thread.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from queue import Empty, Queue

from loguru import logger

from ..backends.types import (
    Backend,
    BackendError,
    BackendOutcome,
    CancellationToken,
    PackOptions,
    RunCancelled,
)
from ..file_tree_model import TreeStore


class RunState(Enum):
    IDLE = "idle"
    REQUESTED = "requested"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class RunOutcome(Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RunRequest:
    """Everything a backend needs for one run, captured at request time.

    ``tree`` is a snapshot owned by the run; the control loop keeps its own store.
    """

    request_id: int
    backend: Backend
    options: PackOptions
    selected_files: tuple[Path, ...]
    root: Path
    tree: TreeStore
    token: CancellationToken = field(compare=False)


@dataclass(frozen=True)
class RunResult:
    request_id: int
    backend: Backend
    outcome: RunOutcome
    message: str
    output_file: Path | None = None
    error: str | None = None


InvokeBackend = Callable[[RunRequest], BackendOutcome]


def _invoke_to_result(invoke_backend: InvokeBackend, request: RunRequest) -> RunResult:
    try:
        outcome = invoke_backend(request)
    except RunCancelled:
        return RunResult(request.request_id, request.backend, RunOutcome.CANCELLED, "Operation cancelled")
    except BackendError as exc:
        return RunResult(request.request_id, request.backend, RunOutcome.FAILED, str(exc), error=str(exc))
    except Exception as exc:
        logger.exception(f"{request.backend.display_name} run {request.request_id} crashed")
        return RunResult(request.request_id, request.backend, RunOutcome.FAILED, str(exc), error=repr(exc))
    return RunResult(
        request.request_id,
        request.backend,
        RunOutcome.COMPLETED,
        outcome.message,
        output_file=outcome.output_file,
    )


class ExecutionCoordinator:
    """Latest-request-wins runner for backend invocations."""

    def __init__(self, invoke_backend: InvokeBackend, poll_seconds: float = 0.05) -> None:
        self._invoke_backend = invoke_backend
        self._poll_seconds = poll_seconds
        self._lock = threading.Lock()
        self._next_request_id = 1
        self._current_id: int | None = None
        self._current_token: CancellationToken | None = None
        self._state = RunState.IDLE
        self._results: Queue[RunResult] = Queue()

    @property
    def state(self) -> RunState:
        with self._lock:
            return self._state

    @property
    def current_request_id(self) -> int | None:
        with self._lock:
            return self._current_id

    @property
    def is_processing(self) -> bool:
        with self._lock:
            return self._state in {RunState.REQUESTED, RunState.RUNNING}

    def run(
        self,
        *,
        backend: Backend,
        options: PackOptions,
        selected_files: list[Path],
        root: Path,
        tree: TreeStore,
    ) -> tuple[int, bool]:
        """Start a run and return ``(request_id, replaced_previous)``.

        A run already in flight is cancelled and its id dropped.
        """
        token = CancellationToken()
        with self._lock:
            replaced = self._state in {RunState.REQUESTED, RunState.RUNNING}
            if replaced and self._current_token is not None:
                self._current_token.cancel()
                logger.info(f"Superseding run {self._current_id}")
            request_id = self._next_request_id
            self._next_request_id += 1
            self._current_id = request_id
            self._current_token = token
            self._state = RunState.REQUESTED

        request = RunRequest(
            request_id=request_id,
            backend=backend,
            options=options,
            selected_files=tuple(selected_files),
            root=root,
            tree=tree,
            token=token,
        )
        worker = threading.Thread(
            target=self._run_worker,
            args=(request,),
            name=f"siff-run-{request_id}",
            daemon=True,
        )
        worker.start()
        return request_id, replaced

    def _run_worker(self, request: RunRequest) -> None:
        with self._lock:
            if self._current_id == request.request_id and self._state is RunState.REQUESTED:
                self._state = RunState.RUNNING

        results: Queue[RunResult] = Queue(maxsize=1)
        backend_thread = threading.Thread(
            target=lambda: results.put(_invoke_to_result(self._invoke_backend, request)),
            name=f"siff-backend-{request.request_id}",
            daemon=True,
        )
        backend_thread.start()

        while True:
            try:
                result = results.get(timeout=self._poll_seconds)
                break
            except Empty:
                if request.token.cancelled:
                    result = RunResult(request.request_id, request.backend, RunOutcome.CANCELLED, "Operation cancelled")
                    break
        logger.debug(f"Run {request.request_id} finished: {result.outcome.value}")
        self._results.put(result)

    def cancel(self) -> bool:
        """Signal the current run; its id stays current so the cancellation is reported."""
        with self._lock:
            if self._state not in {RunState.REQUESTED, RunState.RUNNING} or self._current_token is None:
                return False
            self._current_token.cancel()
            logger.info(f"Cancelling run {self._current_id}")
            return True

    def drain_results(self) -> list[RunResult]:
        """Return results for the current run; stale ones are discarded."""
        out: list[RunResult] = []
        while True:
            try:
                result = self._results.get_nowait()
            except Empty:
                break
            with self._lock:
                if result.request_id != self._current_id:
                    logger.debug(f"Discarding stale result for run {result.request_id}")
                    continue
                self._current_id = None
                self._current_token = None
                self._state = {
                    RunOutcome.COMPLETED: RunState.COMPLETED,
                    RunOutcome.FAILED: RunState.FAILED,
                    RunOutcome.CANCELLED: RunState.CANCELLED,
                }[result.outcome]
            out.append(result)
        return out

    def shutdown(self) -> None:
        with self._lock:
            if self._current_token is not None:
                self._current_token.cancel()


__all__ = [
    "ExecutionCoordinator",
    "RunOutcome",
    "RunRequest",
    "RunResult",
    "RunState",
]
