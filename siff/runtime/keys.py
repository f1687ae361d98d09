"""Key and mouse dispatch for the tree browser."""

from __future__ import annotations

from collections.abc import Callable

from ..backends import Backend
from ..input import parse_mouse_token
from .app import SiffApp

QUIT_KEYS = frozenset({"q", "ESC", "CTRL_C"})
# yek has no compression or comment stripping.
REPOMIX_ONLY_KEYS = frozenset({"c", "m"})


def _action_table(app: SiffApp) -> dict[str, Callable[[], object]]:
    return {
        "j": lambda: app.move_selection(1),
        "DOWN": lambda: app.move_selection(1),
        "k": lambda: app.move_selection(-1),
        "UP": lambda: app.move_selection(-1),
        "h": app.collapse_current,
        "LEFT": app.collapse_current,
        "l": app.expand_current,
        "RIGHT": app.expand_current,
        "SPACE": app.toggle_current_selection,
        "ENTER": app.toggle_current_expansion,
        "E": app.expand_all,
        "C": app.collapse_all,
        "A": app.select_all,
        "U": app.unselect_all,
        "r": app.run_backend,
        "x": app.cancel_run,
        "c": app.toggle_compress,
        "m": app.toggle_remove_comments,
        "t": app.toggle_file_tree,
        "f": app.cycle_output_format,
        "b": app.switch_backend,
    }


def handle_key(app: SiffApp, key: str) -> bool:
    """Apply one decoded key token to ``app``; return ``True`` to quit."""
    if key in QUIT_KEYS:
        return True

    mouse = parse_mouse_token(key)
    if mouse is not None:
        app.handle_mouse(mouse)
        return False

    if key in REPOMIX_ONLY_KEYS and app.options.backend is not Backend.REPOMIX:
        return False

    action = _action_table(app).get(key)
    if action is not None:
        action()
        app.dirty = True
    return False


__all__ = ["QUIT_KEYS", "REPOMIX_ONLY_KEYS", "handle_key"]
