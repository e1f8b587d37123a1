"""
Supervised child processes with a hard wall-clock deadline.

The child is waited on by a dedicated watcher thread that posts its result
to a one-shot queue. The caller blocks on that queue with a deadline. On
expiry the child is SIGKILLed by PID and an optional ``on_timeout`` hook
runs (the container executor uses it to kill the container by name, since
killing the runtime CLI does not stop the workload inside it).
"""

from __future__ import annotations

import logging
import os
import queue
import signal
import subprocess
import threading
from collections.abc import Callable, Sequence
from typing import IO

from docproof.errors import SandboxInfrastructureError, SandboxTimeoutError

logger = logging.getLogger(__name__)

# How long to wait for the watcher to reap a killed child.
_REAP_GRACE_S = 5.0
_CLEANUP_TIMEOUT_S = 30.0

_KILL_SIGNAL = getattr(signal, "SIGKILL", signal.SIGTERM)

# Per-stream cap on captured output; the rest is drained and discarded.
OUTPUT_CAP_BYTES = 10 * 1024 * 1024
_READ_CHUNK_BYTES = 64 * 1024


def kill_process(pid: int) -> bool:
    """Force-kill *pid*. Returns ``False`` when the process was already gone."""
    try:
        os.kill(pid, _KILL_SIGNAL)
    except ProcessLookupError:
        return False
    except PermissionError as exc:
        logger.warning("Could not kill pid %d: %s", pid, exc)
        return False
    return True


class _CappedReader:
    """Drains one pipe to EOF, keeping at most ``cap`` bytes."""

    def __init__(self, stream: IO[bytes], cap: int) -> None:
        self._stream = stream
        self._cap = cap
        self._chunks: list[bytes] = []
        self.kept = 0
        self.total = 0

    def drain(self) -> None:
        with self._stream:
            while chunk := self._stream.read(_READ_CHUNK_BYTES):
                self.total += len(chunk)
                room = self._cap - self.kept
                if room > 0:
                    self._chunks.append(chunk[:room])
                    self.kept += min(room, len(chunk))

    def text(self, stream_name: str) -> str:
        decoded = b"".join(self._chunks).decode("utf-8", errors="replace")
        if self.total > self.kept:
            decoded += (
                f"\n[TRUNCATED_{stream_name.upper()} original_bytes={self.total} "
                f"kept_bytes={self.kept}]"
            )
        return decoded


def run_with_timeout(
    argv: Sequence[str],
    timeout_s: float,
    *,
    on_timeout: Callable[[], None] | None = None,
    output_cap_bytes: int = OUTPUT_CAP_BYTES,
) -> subprocess.CompletedProcess[str]:
    """Run *argv* to completion or raise ``SandboxTimeoutError`` after *timeout_s*.

    Spawn failures raise ``SandboxInfrastructureError``. A non-zero exit
    status is returned normally; interpreting it is the caller's job. Each of
    stdout and stderr keeps at most *output_cap_bytes*; anything beyond is
    read and dropped, and a ``[TRUNCATED_STDOUT ...]`` marker is appended.
    """
    args = list(argv)
    try:
        proc = subprocess.Popen(args, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except OSError as exc:
        raise SandboxInfrastructureError(f"Failed to spawn {args[0]!r}: {exc}") from exc

    stdout = _CappedReader(proc.stdout, output_cap_bytes)  # type: ignore[arg-type]
    stderr = _CappedReader(proc.stderr, output_cap_bytes)  # type: ignore[arg-type]
    results: queue.Queue[int | BaseException] = queue.Queue(maxsize=1)

    def _watch() -> None:
        try:
            err_thread = threading.Thread(target=stderr.drain, daemon=True)
            err_thread.start()
            stdout.drain()
            err_thread.join()
            results.put(proc.wait())
        except Exception as exc:
            results.put(exc)

    watcher = threading.Thread(target=_watch, name=f"sandbox-watch-{proc.pid}", daemon=True)
    watcher.start()

    try:
        payload = results.get(timeout=timeout_s)
    except queue.Empty:
        logger.warning(
            "Process %d (%s) exceeded %.1fs deadline, killing", proc.pid, args[0], timeout_s
        )
        kill_process(proc.pid)
        if on_timeout is not None:
            on_timeout()
        watcher.join(timeout=_REAP_GRACE_S)
        raise SandboxTimeoutError(timeout_s) from None

    if isinstance(payload, BaseException):
        raise SandboxInfrastructureError(
            f"I/O failure while waiting on {args[0]!r}: {payload}"
        ) from payload

    if stdout.total > stdout.kept or stderr.total > stderr.kept:
        logger.warning(
            "Process %d output capped at %d bytes (stdout=%d, stderr=%d)",
            proc.pid,
            output_cap_bytes,
            stdout.total,
            stderr.total,
        )
    return subprocess.CompletedProcess(args, payload, stdout.text("stdout"), stderr.text("stderr"))


def run_best_effort(argv: Sequence[str], timeout_s: float = _CLEANUP_TIMEOUT_S) -> bool:
    """Run a cleanup command, logging instead of raising on failure."""
    try:
        completed = subprocess.run(
            list(argv),
            capture_output=True,
            text=True,
            timeout=timeout_s,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("Cleanup command %s failed: %s", " ".join(argv), exc)
        return False
    return completed.returncode == 0
