"""Public runtime orchestration entry points.

Submodules import each other (tokens -> status, render -> status), so this
package only exposes lazy wrappers and never imports submodules eagerly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .loop import RuntimeLoopTiming


def build_app(*args, **kwargs):
    """Lazily import the assembly routine to avoid package-import cycles."""
    from .app import build_app as _build_app

    return _build_app(*args, **kwargs)


def run_app(*args, **kwargs):
    """Lazily import the interactive runner."""
    from .loop import run_app as _run_app

    return _run_app(*args, **kwargs)


def __getattr__(name: str):
    if name == "RuntimeLoopTiming":
        from . import loop as _loop

        return _loop.RuntimeLoopTiming
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "RuntimeLoopTiming",
    "build_app",
    "run_app",
]
