"""Runtime composition layer for siff.

``build_app`` creates the process-scoped resources (tokenizer, permit pool,
token worker, run coordinator, repomix installer) and injects them into a
``SiffApp``. ``SiffApp`` is the action surface the key and mouse handlers call;
it is only touched from the control loop thread.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path

from loguru import logger

from ..backends import (
    Backend,
    BackendUnavailable,
    BackendOutcome,
    PackOptions,
    RepomixBackend,
    RepomixInstaller,
    YekBackend,
    check_repomix_dependencies,
    check_yek_dependencies,
    validate_options,
)
from ..backends.repomix import InstallState
from ..file_tree_model import (
    TreeStore,
    directories_with_selected_descendants,
    scan_directory,
    select_all_visible,
    selected_file_count,
    selected_files,
    toggle_selection,
    unselect_all,
)
from ..input import MouseEvent
from ..render import HEADER_ROWS, RenderContext, TreeRow, is_expansion_icon_hit
from ..tokens import TokenAccountingEngine, TokenCalculationWorker, build_tokenization_resources
from .config import save_pack_options
from .coordinator import ExecutionCoordinator, RunOutcome, RunRequest, RunResult
from .status import StatusKind, StatusLine

SUCCESS_MESSAGE_LIMIT = 100


def check_backend_available(backend: Backend) -> None:
    """Raise ``BackendUnavailable`` when ``backend`` can never run here."""
    if backend is Backend.YEK:
        check_yek_dependencies()
    else:
        check_repomix_dependencies()


def _enabled(flag: bool) -> str:
    return "enabled" if flag else "disabled"


class SiffApp:
    """Tree browser state plus every user-facing action."""

    def __init__(
        self,
        store: TreeStore,
        options: PackOptions,
        status: StatusLine,
        engine: TokenAccountingEngine,
        worker: TokenCalculationWorker,
        coordinator: ExecutionCoordinator,
        installer: RepomixInstaller | None = None,
        save_options: Callable[[PackOptions], bool] = save_pack_options,
        check_backend: Callable[[Backend], None] = check_backend_available,
    ) -> None:
        self.store = store
        self.root = store.root
        self.options = options
        self.status = status
        self.engine = engine
        self.worker = worker
        self.coordinator = coordinator
        self.installer = installer
        self._save_options = save_options
        self._check_backend = check_backend
        self.visible: list[Path] = []
        self.selected_index = 0
        self.scroll_offset = 0
        self.view_rows = 20
        self.dirty = True
        self.refresh_visible()

    # navigation

    def refresh_visible(self) -> None:
        self.visible = self.store.visible_paths()
        if not self.visible:
            self.selected_index = 0
        else:
            self.selected_index = max(0, min(self.selected_index, len(self.visible) - 1))
        self.ensure_selection_visible()
        self.dirty = True

    def current_path(self) -> Path | None:
        if 0 <= self.selected_index < len(self.visible):
            return self.visible[self.selected_index]
        return None

    def set_view_rows(self, rows: int) -> None:
        if rows != self.view_rows:
            self.view_rows = max(1, rows)
            self.ensure_selection_visible()
            self.dirty = True

    def ensure_selection_visible(self) -> None:
        if self.selected_index < self.scroll_offset:
            self.scroll_offset = self.selected_index
        elif self.selected_index >= self.scroll_offset + self.view_rows:
            self.scroll_offset = self.selected_index - self.view_rows + 1
        max_offset = max(0, len(self.visible) - self.view_rows)
        self.scroll_offset = max(0, min(self.scroll_offset, max_offset))

    def move_selection(self, delta: int) -> bool:
        """Move the cursor by ``delta`` rows, wrapping at both ends."""
        if not self.visible:
            return False
        self.selected_index = (self.selected_index + delta) % len(self.visible)
        self.ensure_selection_visible()
        self.dirty = True
        return True

    def expand_current(self) -> bool:
        path = self.current_path()
        if path is None or not self.store.set_expanded(path, True):
            return False
        self.refresh_visible()
        return True

    def collapse_current(self) -> bool:
        path = self.current_path()
        if path is None or not self.store.set_expanded(path, False):
            return False
        self.refresh_visible()
        return True

    def toggle_current_expansion(self) -> bool:
        path = self.current_path()
        node = self.store.get(path) if path is not None else None
        if node is None or not node.is_directory:
            return False
        node.toggle_expansion()
        self.refresh_visible()
        return True

    def expand_all(self) -> None:
        self.store.expand_all()
        self.refresh_visible()
        self.status.set("Expanded all directories", StatusKind.BULK)

    def collapse_all(self) -> None:
        self.store.collapse_all()
        self.selected_index = 0
        self.scroll_offset = 0
        self.refresh_visible()
        self.status.set("Collapsed all directories", StatusKind.BULK)

    # selection

    def toggle_current_selection(self) -> bool:
        path = self.current_path()
        if path is None or toggle_selection(self.store, path) is None:
            return False
        self.engine.refresh_debounced()
        self.dirty = True
        return True

    def select_all(self) -> None:
        self.engine.begin_bulk()
        select_all_visible(self.store, self.visible)
        self.status.set("Selected all items - calculating tokens...", StatusKind.BULK)
        self.engine.refresh()
        self.dirty = True

    def unselect_all(self) -> None:
        unselect_all(self.store)
        self.engine.clear()
        self.status.set("Unselected all items", StatusKind.BULK)
        self.dirty = True

    # options

    def _update_options(self, options: PackOptions, message: str) -> None:
        self.options = options
        if self._save_options(options):
            self.status.set(message)
        else:
            self.status.set("Error: could not save config", StatusKind.ERROR)
        self.dirty = True

    def toggle_compress(self) -> None:
        options = self.options.with_changes(compress=not self.options.compress)
        self._update_options(options, f"Compress: {_enabled(options.compress)}")

    def toggle_remove_comments(self) -> None:
        options = self.options.with_changes(remove_comments=not self.options.remove_comments)
        self._update_options(options, f"Remove comments: {_enabled(options.remove_comments)}")

    def toggle_file_tree(self) -> None:
        options = self.options.with_changes(include_file_tree=not self.options.include_file_tree)
        self._update_options(options, f"File tree: {_enabled(options.include_file_tree)}")

    def cycle_output_format(self) -> None:
        options = self.options.with_changes(output_format=self.options.output_format.next())
        self._update_options(options, f"Output format: {options.output_format.display_name}")

    def switch_backend(self) -> None:
        target = Backend.YEK if self.options.backend is Backend.REPOMIX else Backend.REPOMIX
        try:
            self._check_backend(target)
        except BackendUnavailable as exc:
            self.status.set(f"Error: {exc}", StatusKind.ERROR)
            self.dirty = True
            return
        if target is Backend.REPOMIX and self.installer is not None:
            self.installer.start_background_install()
        self._update_options(self.options.with_changes(backend=target), f"Backend: {target.display_name}")

    # runs

    def _repomix_ready(self) -> bool:
        """Report install progress in the status line; return whether repomix can run."""
        if self.installer is None:
            return True
        state = self.installer.state
        if state is InstallState.READY:
            return True
        if state is InstallState.DOWNLOADING:
            self.status.set(f"Downloading: {self.installer.detail}", StatusKind.PROGRESS)
        elif state is InstallState.FAILED:
            detail = self.installer.detail
            self.installer.start_background_install()
            self.status.set(f"Repomix download failed: {detail}", StatusKind.ERROR)
        else:
            self.installer.start_background_install()
            self.status.set("Starting repomix download...", StatusKind.PROGRESS)
        return False

    def run_backend(self) -> int | None:
        """Start a packaging run for the current selection; return its request id."""
        files = selected_files(self.store)
        self.dirty = True
        if not files:
            self.status.set("No files selected for processing", StatusKind.WARNING)
            return None

        warnings = validate_options(self.options, files)
        if warnings:
            self.status.set(f"Warning: {', '.join(warnings)}", StatusKind.WARNING)

        if self.options.backend is Backend.REPOMIX and not self._repomix_ready():
            return None

        request_id, replaced = self.coordinator.run(
            backend=self.options.backend,
            options=self.options,
            selected_files=files,
            root=self.root,
            tree=self.store.snapshot(),
        )
        if replaced:
            logger.info(f"Run {request_id} replaces the previous run")
            self.status.set("Cancelling previous run and restarting...", StatusKind.RUNNING)
        self.status.set(
            f"Running {self.options.backend.display_name} on {len(files)} files...",
            StatusKind.RUNNING,
        )
        return request_id

    def cancel_run(self) -> bool:
        if not self.coordinator.cancel():
            return False
        self.status.set("Cancelling...", StatusKind.RUNNING)
        self.dirty = True
        return True

    def apply_run_result(self, result: RunResult) -> None:
        if result.outcome is RunOutcome.COMPLETED:
            message = result.message
            if len(message) > SUCCESS_MESSAGE_LIMIT:
                message = f"{message[:SUCCESS_MESSAGE_LIMIT]}..."
            if result.output_file is not None:
                message = f"{message} | Output: {result.output_file}"
            self.status.set(message, StatusKind.COMPLETION)
        elif result.outcome is RunOutcome.CANCELLED:
            self.status.set("Operation cancelled", StatusKind.WARNING)
        else:
            self.status.set(
                f"Error: {result.backend.value} error: {result.message}",
                StatusKind.ERROR,
            )
        self.dirty = True

    # mouse

    def handle_mouse(self, event: MouseEvent) -> bool:
        if event.kind == "WHEEL_UP":
            return self.move_selection(-1)
        if event.kind == "WHEEL_DOWN":
            return self.move_selection(1)
        if event.kind != "LEFT_DOWN":
            return False

        index = event.row - HEADER_ROWS - 1 + self.scroll_offset
        if event.row <= HEADER_ROWS or not 0 <= index < len(self.visible):
            return False
        if index - self.scroll_offset >= self.view_rows:
            return False
        self.selected_index = index
        self.dirty = True
        node = self.store.get(self.visible[index])
        if node is not None and node.is_directory and is_expansion_icon_hit(node.depth, event.col - 1):
            return self.toggle_current_expansion()
        return self.toggle_current_selection()

    # housekeeping

    def poll_background(self) -> bool:
        """Drain worker output and advance timers; return whether a redraw is needed."""
        changed = False
        if self.engine.process_results(self.worker.drain_results()):
            changed = True
        for result in self.coordinator.drain_results():
            self.apply_run_result(result)
            changed = True
        if self.installer is not None:
            update = self.installer.poll_change()
            if update is not None:
                state, detail = update
                if state is InstallState.READY:
                    self.status.set("Repomix ready!")
                elif state is InstallState.DOWNLOADING:
                    self.status.set(f"Downloading: {detail}", StatusKind.PROGRESS)
                elif state is InstallState.FAILED:
                    self.status.set(f"Repomix download failed: {detail}", StatusKind.ERROR)
                changed = True
        if self.engine.tick():
            changed = True
        if self.status.expire(hold=self.coordinator.is_processing):
            changed = True
        if changed:
            self.dirty = True
        return changed

    def render_context(self, width: int, height: int) -> RenderContext:
        dir_map = directories_with_selected_descendants(self.store)
        rows = []
        for path in self.visible:
            node = self.store.nodes[path]
            rows.append(
                TreeRow(
                    path=path,
                    name=node.name,
                    depth=node.depth,
                    is_directory=node.is_directory,
                    is_selected=node.is_selected,
                    is_expanded=node.is_expanded,
                    has_selected_descendants=dir_map.get(path, False),
                    token_count=self.engine.count_for(path),
                )
            )
        return RenderContext(
            root_name=self.root.name or str(self.root),
            selected_count=selected_file_count(self.store),
            total_tokens=self.engine.total_tokens,
            options=self.options,
            rows=tuple(rows),
            selected_index=self.selected_index,
            scroll_offset=self.scroll_offset,
            status_message=self.status.message,
            status_kind=self.status.kind,
            is_processing=self.coordinator.is_processing,
            width=width,
            height=height,
        )

    def shutdown(self) -> None:
        self.coordinator.shutdown()
        self.worker.shutdown()


def build_backend_invoker(
    backends: dict[Backend, object],
) -> Callable[[RunRequest], BackendOutcome]:
    def invoke(request: RunRequest) -> BackendOutcome:
        backend = backends[request.backend]
        return backend.run(
            list(request.selected_files),
            request.options,
            request.root,
            request.tree,
            request.token,
        )

    return invoke


def build_app(
    root: Path,
    options: PackOptions,
    *,
    tokenizer: object | None = None,
    backends: dict[Backend, object] | None = None,
    installer: RepomixInstaller | None = None,
    store: TreeStore | None = None,
    save_options: Callable[[PackOptions], bool] = save_pack_options,
    check_backend: Callable[[Backend], None] = check_backend_available,
    clock: Callable[[], float] = time.monotonic,
) -> SiffApp:
    """Assemble a ready-to-run ``SiffApp`` for ``root``.

    Raises whatever the tokenizer raises while loading; the CLI reports that
    as a startup error.
    """
    if store is None:
        store = scan_directory(root)
    store.expand_root()
    resources = build_tokenization_resources(tokenizer=tokenizer)
    worker = TokenCalculationWorker(resources)
    status = StatusLine(clock=clock)
    engine = TokenAccountingEngine(store, worker.submit, status, clock=clock)

    if backends is None:
        if installer is None:
            installer = RepomixInstaller()
        backends = {
            Backend.REPOMIX: RepomixBackend(installer),
            Backend.YEK: YekBackend(),
        }
    coordinator = ExecutionCoordinator(build_backend_invoker(backends))

    app = SiffApp(
        store,
        options,
        status,
        engine,
        worker,
        coordinator,
        installer=installer,
        save_options=save_options,
        check_backend=check_backend,
    )
    if installer is not None and options.backend is Backend.REPOMIX:
        installer.start_background_install()
    logger.info(f"siff ready: {len(store)} entries under {store.root}")
    return app


__all__ = [
    "SiffApp",
    "build_app",
    "build_backend_invoker",
    "check_backend_available",
]
