"""Low-level terminal input decoding.

Reads raw bytes from stdin and translates them into normalized key tokens.
Handles ESC-sequence timing and SGR mouse events.
"""

from __future__ import annotations

import os
import select
from dataclasses import dataclass

ESC_SEQUENCE_TIMEOUT_MS = 25
_PENDING_BYTES: list[bytes] = []


@dataclass(frozen=True)
class MouseEvent:
    """Decoded mouse token. ``col``/``row`` are 1-based terminal cells."""

    kind: str
    col: int
    row: int


def parse_mouse_token(key: str) -> MouseEvent | None:
    """Split a ``MOUSE_<KIND>:<col>:<row>`` token produced by ``read_key``."""
    if not key.startswith("MOUSE_"):
        return None
    try:
        kind, col_s, row_s = key[len("MOUSE_"):].split(":")
        return MouseEvent(kind=kind, col=int(col_s), row=int(row_s))
    except ValueError:
        return None


def _read_ready_byte(fd: int, timeout_ms: int) -> bytes | None:
    ready, _, _ = select.select([fd], [], [], max(0.0, timeout_ms / 1000.0))
    if not ready:
        return None
    ch = os.read(fd, 1)
    if not ch:
        return None
    return ch


def _read_utf8_tail(fd: int, lead: bytes) -> str:
    first = lead[0]
    if first >= 0xF0:
        needed = 3
    elif first >= 0xE0:
        needed = 2
    elif first >= 0xC0:
        needed = 1
    else:
        needed = 0
    data = lead
    for _ in range(needed):
        part = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
        if part is None:
            break
        data += part
    return data.decode("utf-8", errors="replace")


def _read_sgr_mouse(fd: int) -> str:
    # SGR mouse: ESC [ < btn ; col ; row (M/m)
    payload = []
    while True:
        part = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
        if part is None:
            return "ESC"
        if part in {b"M", b"m"}:
            break
        payload.append(part)
        if len(payload) > 64:
            return "ESC"
    try:
        btn_s, col_s, row_s = b"".join(payload).decode("ascii").split(";")
        btn = int(btn_s)
        col = int(col_s)
        row = int(row_s)
    except ValueError:
        return "ESC"
    button = btn & 0b11
    is_wheel = (btn & 0b0100_0000) != 0
    is_drag = (btn & 0b0010_0000) != 0
    if is_wheel:
        if button == 0:
            return f"MOUSE_WHEEL_UP:{col}:{row}"
        if button == 1:
            return f"MOUSE_WHEEL_DOWN:{col}:{row}"
        return "MOUSE"
    if button == 0 and not is_drag:
        suffix = "DOWN" if part == b"M" else "UP"
        return f"MOUSE_LEFT_{suffix}:{col}:{row}"
    return "MOUSE"


def read_key(fd: int, timeout_ms: int | None = None) -> str:
    """Read one key token; return ``""`` when ``timeout_ms`` passes without input."""
    if _PENDING_BYTES:
        ch = _PENDING_BYTES.pop(0)
    else:
        if timeout_ms is not None:
            ready, _, _ = select.select([fd], [], [], max(0.0, timeout_ms / 1000.0))
            if not ready:
                return ""

        ch = os.read(fd, 1)
        if not ch:
            return ""

    if ch == b"\x03":
        return "CTRL_C"
    if ch == b" ":
        return "SPACE"
    if ch in {b"\r", b"\n"}:
        return "ENTER"
    if ch == b"\t":
        return "TAB"

    if ch != b"\x1b":
        return _read_utf8_tail(fd, ch)

    # Escape / arrow key sequences.
    seq = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
    if seq is None:
        return "ESC"
    if seq not in {b"[", b"O"}:
        _PENDING_BYTES.append(seq)
        return "ESC"
    lead = seq
    seq = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
    if seq is None:
        return "ESC"
    if seq == b"A":
        return "UP"
    if seq == b"B":
        return "DOWN"
    if seq == b"C":
        return "RIGHT"
    if seq == b"D":
        return "LEFT"
    if seq == b"<" and lead == b"[":
        return _read_sgr_mouse(fd)
    return "ESC"


__all__ = ["MouseEvent", "parse_mouse_token", "read_key"]
