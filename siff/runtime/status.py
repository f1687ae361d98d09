"""Single status-line message with kind-based expiry."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum


class StatusKind(Enum):
    GENERIC = "generic"
    COMPLETION = "completion"
    BULK = "bulk"
    PROGRESS = "progress"
    WARNING = "warning"
    ERROR = "error"
    RUNNING = "running"


STATUS_LINGER_SECONDS: dict[StatusKind, float] = {
    StatusKind.GENERIC: 3.0,
    StatusKind.COMPLETION: 2.0,
    StatusKind.BULK: 5.0,
    StatusKind.PROGRESS: 1.0,
    StatusKind.WARNING: 3.0,
    StatusKind.ERROR: 3.0,
    StatusKind.RUNNING: 3.0,
}


@dataclass
class StatusLine:
    """Mutable status message plus the timestamp it was last set."""

    clock: Callable[[], float] = time.monotonic
    message: str = ""
    kind: StatusKind = StatusKind.GENERIC
    updated_at: float = field(default=0.0)

    def set(self, message: str, kind: StatusKind = StatusKind.GENERIC) -> None:
        self.message = message
        self.kind = kind
        self.updated_at = self.clock()

    def clear(self) -> None:
        self.message = ""
        self.kind = StatusKind.GENERIC

    def expire(self, hold: bool = False) -> bool:
        """Clear the message once its linger time passed; return whether it did.

        ``hold`` keeps the message regardless of age (used while a run is in
        flight).
        """
        if not self.message or hold:
            return False
        if self.clock() - self.updated_at <= STATUS_LINGER_SECONDS[self.kind]:
            return False
        self.clear()
        return True


__all__ = [
    "STATUS_LINGER_SECONDS",
    "StatusKind",
    "StatusLine",
]
