"""Token accounting for the current selection.

Keeps a sparse per-path cache of token counts. File entries are computed in
the background; directory entries are always sums derived from whatever file
counts are known, so totals improve monotonically while a batch is pending.
Only the control loop calls into this module.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from pathlib import Path

from loguru import logger

from ..file_tree_model import (
    TreeStore,
    directories_with_selected_descendants,
    is_relevant,
    selected_file_count,
    selected_files,
)
from ..runtime.status import StatusKind, StatusLine
from .worker import TokenResult

MAX_FILES_FOR_TOKEN_CALC = 1000
TOKEN_REFRESH_DEBOUNCE_SECONDS = 0.3


class TokenAccountingEngine:
    """Cache, pending set and aggregated totals for selected paths.

    ``submit`` enqueues one file path for background counting and returns
    ``False`` when the worker no longer accepts requests.
    """

    def __init__(
        self,
        store: TreeStore,
        submit: Callable[[Path], bool],
        status: StatusLine,
        clock: Callable[[], float] = time.monotonic,
        debounce_seconds: float = TOKEN_REFRESH_DEBOUNCE_SECONDS,
        max_files: int = MAX_FILES_FOR_TOKEN_CALC,
    ) -> None:
        self.store = store
        self._submit = submit
        self._status = status
        self._clock = clock
        self.debounce_seconds = debounce_seconds
        self.max_files = max_files
        self.counts: dict[Path, int | None] = {}
        self.pending: set[Path] = set()
        self.total_tokens = 0
        self.is_bulk = False
        self._last_refresh_at: float | None = None
        self._had_selection = False
        self._refresh_deferred = False

    # queries

    def count_for(self, path: Path) -> int | None:
        """Return the resolved count for ``path`` or ``None`` when unknown/pending."""
        return self.counts.get(path)

    @property
    def generation_complete(self) -> bool:
        return not self.pending

    def resolved_file_count(self) -> int:
        resolved = 0
        for path, value in self.counts.items():
            node = self.store.get(path)
            if value is not None and node is not None and not node.is_directory:
                resolved += 1
        return resolved

    # refresh

    def refresh(self, selected: list[Path] | None = None) -> None:
        """Re-derive totals from the cache and queue counting for cache misses.

        Never blocks: file reads and tokenization happen on the worker.
        """
        self._last_refresh_at = self._clock()
        self._refresh_deferred = False
        if selected is None:
            selected = selected_files(self.store)

        if not selected:
            self._reset()
            return
        self._had_selection = True

        dir_map = directories_with_selected_descendants(self.store)
        self._prune(dir_map)
        self._queue_missing(selected)
        # Relevant directories get zeroed entries here and are filled by summation.
        self._recompute(dir_map)

    def refresh_debounced(self) -> bool:
        """Apply ``refresh`` unless one was applied within the debounce window.

        The first refresh after the selection becomes non-empty always runs.
        A suppressed call is remembered and applied later by ``tick``.
        """
        now = self._clock()
        if (
            self._had_selection
            and self._last_refresh_at is not None
            and now - self._last_refresh_at < self.debounce_seconds
        ):
            self._refresh_deferred = True
            return False
        self.refresh()
        return True

    def tick(self) -> bool:
        """Apply a deferred refresh once the debounce window has passed."""
        if not self._refresh_deferred:
            return False
        if self._last_refresh_at is not None and self._clock() - self._last_refresh_at < self.debounce_seconds:
            return False
        self.refresh()
        return True

    def _reset(self) -> None:
        self.counts.clear()
        self.pending.clear()
        self.total_tokens = 0
        self.is_bulk = False
        self._had_selection = False

    def _prune(self, dir_map: dict[Path, bool]) -> None:
        for path in list(self.counts):
            if not is_relevant(self.store, path, dir_map):
                del self.counts[path]
                self.pending.discard(path)
        self.pending.intersection_update(self.counts)

    def _queue_missing(self, selected: list[Path]) -> None:
        uncached = [path for path in selected if path not in self.counts]
        if len(uncached) > self.max_files:
            logger.info(f"Token ceiling reached: {len(uncached)} uncached files, queueing {self.max_files}")
            self._status.set(
                f"Processing {len(selected)} files (showing first {self.max_files})...",
                StatusKind.BULK,
            )
            uncached = uncached[: self.max_files]

        for path in uncached:
            self.counts[path] = None
            self.pending.add(path)
            if not self._submit(path):
                del self.counts[path]
                self.pending.discard(path)
                logger.warning("Token worker rejected request; stopping this generation")
                break

    # results

    def apply_result(self, path: Path, count: int) -> bool:
        """Merge one completed count; return whether nothing is pending anymore.

        Counts for paths that were pruned while in flight are dropped.
        """
        if path in self.counts:
            self.counts[path] = count
        self.pending.discard(path)
        return not self.pending

    def process_results(self, results: Iterable[TokenResult]) -> bool:
        """Merge a drained batch of results and refresh totals and progress text."""
        processed_any = False
        for result in results:
            self.apply_result(result.path, result.count)
            processed_any = True
        if not processed_any:
            return False

        self.recompute_totals()
        if self.pending:
            if self.is_bulk:
                completed = self.resolved_file_count()
                self._status.set(
                    f"Calculating tokens... {completed}/{completed + len(self.pending)}",
                    StatusKind.BULK,
                )
        elif self.is_bulk:
            self.is_bulk = False
            self._status.set(
                f"✓ Calculated tokens for {selected_file_count(self.store)} files",
                StatusKind.COMPLETION,
            )
        return True

    # aggregation

    def recompute_totals(self) -> None:
        """Rebuild the grand total and every relevant directory sum from the cache."""
        self._recompute(directories_with_selected_descendants(self.store))

    def _recompute(self, dir_map: dict[Path, bool]) -> None:
        for path, node in self.store.nodes.items():
            if node.is_directory and (node.is_selected or dir_map.get(path, False)):
                self.counts[path] = 0

        resolved_files: list[tuple[Path, int]] = []
        for path, value in self.counts.items():
            if value is None:
                continue
            node = self.store.get(path)
            if node is not None and node.is_selected and not node.is_directory:
                resolved_files.append((path, value))

        total = 0
        for path, value in resolved_files:
            total += value
            for ancestor in self.store.ancestors(path):
                if is_relevant(self.store, ancestor, dir_map):
                    self.counts[ancestor] = (self.counts.get(ancestor) or 0) + value
        self.total_tokens = total

    # bulk operations

    def begin_bulk(self) -> None:
        """Drop cached state before a select-all so every file is re-requested."""
        self.counts.clear()
        self.pending.clear()
        self.is_bulk = True

    def clear(self) -> None:
        """Forget everything after an unselect-all."""
        self._reset()
        self._refresh_deferred = False


__all__ = [
    "MAX_FILES_FOR_TOKEN_CALC",
    "TOKEN_REFRESH_DEBOUNCE_SECONDS",
    "TokenAccountingEngine",
]
