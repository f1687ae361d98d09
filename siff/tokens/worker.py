"""Background token worker fed through a request queue.

One dispatcher thread reads paths from the request queue and hands them to a
thread pool. Pool size matches the permit pool, so excess work waits on the
pool rather than piling up as threads. Every request produces exactly one
``TokenResult`` on the result queue.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from queue import Empty, Queue

from loguru import logger

from .counter import TokenCounter, TokenizationResources

_STOP = object()


@dataclass(frozen=True)
class TokenResult:
    """Completed count for one file."""

    path: Path
    count: int


class TokenCalculationWorker:
    """Compute token counts off the control loop and report them via a queue."""

    def __init__(self, resources: TokenizationResources, counter: TokenCounter | None = None) -> None:
        self._counter = counter if counter is not None else TokenCounter(resources)
        self._requests: Queue[object] = Queue()
        self._results: Queue[TokenResult] = Queue()
        self._executor = ThreadPoolExecutor(
            max_workers=resources.permit_count,
            thread_name_prefix="siff-tokens",
        )
        self._lock = threading.Lock()
        self._dispatcher: threading.Thread | None = None
        self._closed = False

    def _ensure_dispatcher(self) -> None:
        with self._lock:
            if self._dispatcher is not None:
                return
            self._dispatcher = threading.Thread(
                target=self._dispatch,
                name="siff-token-dispatch",
                daemon=True,
            )
            self._dispatcher.start()

    def _dispatch(self) -> None:
        while True:
            item = self._requests.get()
            if item is _STOP:
                return
            try:
                self._executor.submit(self._count_and_report, item)
            except RuntimeError:
                # Executor shut down while requests were still queued.
                return

    def _count_and_report(self, path: Path) -> None:
        try:
            count = self._counter.count_file_tokens(path)
        except Exception as exc:
            logger.debug(f"Token counting failed for {path}: {exc}")
            count = 0
        self._results.put(TokenResult(path=path, count=count))

    def submit(self, path: Path) -> bool:
        """Queue ``path`` for counting; returns ``False`` after shutdown."""
        if self._closed:
            return False
        self._ensure_dispatcher()
        self._requests.put(path)
        return True

    def drain_results(self) -> list[TokenResult]:
        """Drain all completed counts without blocking."""
        out: list[TokenResult] = []
        while True:
            try:
                out.append(self._results.get_nowait())
            except Empty:
                break
        return out

    def shutdown(self) -> None:
        """Stop dispatching; in-flight counts finish on daemon threads."""
        if self._closed:
            return
        self._closed = True
        self._requests.put(_STOP)
        self._executor.shutdown(wait=False, cancel_futures=True)


__all__ = [
    "TokenCalculationWorker",
    "TokenResult",
]
