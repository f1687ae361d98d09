"""Subprocess execution raced against a cancellation token."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from .types import BackendError, CancellationToken, RunCancelled

PROCESS_POLL_SECONDS = 0.05


@dataclass(frozen=True)
class ProcessOutput:
    returncode: int
    stdout: str
    stderr: str


def run_cancellable(
    args: list[str],
    token: CancellationToken,
    *,
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
    input_text: str | None = None,
    poll_seconds: float = PROCESS_POLL_SECONDS,
) -> ProcessOutput:
    """Run ``args`` to completion unless ``token`` fires first.

    On cancellation the child is killed and its handle dropped without
    waiting, then ``RunCancelled`` is raised. A missing executable surfaces as
    ``BackendError``.
    """
    if token.cancelled:
        raise RunCancelled()
    try:
        proc = subprocess.Popen(
            args,
            cwd=str(cwd) if cwd is not None else None,
            env=env,
            stdin=subprocess.PIPE if input_text is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as exc:
        raise BackendError(f"Failed to start {args[0]}: {exc}") from exc

    pending_input = input_text
    while True:
        try:
            stdout, stderr = proc.communicate(input=pending_input, timeout=poll_seconds)
            break
        except subprocess.TimeoutExpired:
            pending_input = None
            if token.cancelled:
                logger.info(f"Cancelling {args[0]} (pid {proc.pid})")
                try:
                    proc.kill()
                except OSError:
                    pass
                raise RunCancelled() from None

    return ProcessOutput(returncode=proc.returncode, stdout=stdout or "", stderr=stderr or "")


def describe_failure(output: ProcessOutput) -> str:
    """Summarize stderr/stdout of a failed command for the status line."""
    stderr = output.stderr.strip()
    stdout = output.stdout.strip()
    if stderr and stdout:
        return f"stderr: {stderr} | stdout: {stdout}"
    if stderr:
        return stderr
    if stdout:
        return stdout
    return "Command failed with no error output"


__all__ = [
    "PROCESS_POLL_SECONDS",
    "ProcessOutput",
    "describe_failure",
    "run_cancellable",
]
