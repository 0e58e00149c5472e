# cavern/systems/executor.py
"""Run untrusted phase callbacks under a hard wall-clock deadline.

The callback runs in a child process that owns a private copy of whatever
state it touches. The only way anything gets back to the engine is through
messages the child sends over a pipe, and the engine decides what to do with
each one. Killing the child on timeout therefore cannot leave engine state
half-updated: the engine keeps whatever it had applied from the last complete
message.

The ``fork`` start method is used where the platform has it so that the
callback (typically a bound method closing over the game state) does not
need to be picklable. Messages and the final result do need to be.
"""

from __future__ import annotations

import enum
import multiprocessing
import time
import traceback
from dataclasses import dataclass
from multiprocessing.connection import Connection
from typing import Any, Callable, Optional

import structlog

log = structlog.get_logger(__name__)

# Seconds to wait for a terminated child to exit before killing it outright
_TERMINATE_GRACE = 1.0

_MSG_EVENT = "event"
_MSG_RESULT = "result"
_MSG_FAULT = "fault"


class ExecutionStatus(enum.Enum):
    COMPLETED = "completed"
    FAULTED = "faulted"
    TIMED_OUT = "timed_out"


@dataclass
class ExecutionResult:
    status: ExecutionStatus
    value: Any = None
    # Formatted traceback (or exit description) when status is FAULTED
    error: Optional[str] = None
    elapsed: float = 0.0

    @property
    def completed(self) -> bool:
        return self.status is ExecutionStatus.COMPLETED

    @property
    def faulted(self) -> bool:
        return self.status is ExecutionStatus.FAULTED

    @property
    def timed_out(self) -> bool:
        return self.status is ExecutionStatus.TIMED_OUT


class Channel:
    """Child-side end of the pipe handed to the phase body."""

    def __init__(self, conn: Connection) -> None:
        self._conn = conn

    def send(self, payload: Any) -> None:
        self._conn.send((_MSG_EVENT, payload))


PhaseBody = Callable[[Channel], Any]
EventHandler = Callable[[Any], None]


def _child_main(conn: Connection, body: PhaseBody) -> None:
    channel = Channel(conn)
    try:
        value = body(channel)
    except Exception:
        conn.send((_MSG_FAULT, traceback.format_exc()))
    else:
        conn.send((_MSG_RESULT, value))
    finally:
        conn.close()


def _default_context() -> multiprocessing.context.BaseContext:
    if "fork" in multiprocessing.get_all_start_methods():
        return multiprocessing.get_context("fork")
    return multiprocessing.get_context()


class PhaseExecutor:
    """Runs one phase body at a time in an isolated child process.

    Args:
        timeout: wall-clock seconds before the child is torn down.
        context: multiprocessing context; ``fork`` where available.
    """

    def __init__(
        self,
        timeout: float,
        context: Optional[multiprocessing.context.BaseContext] = None,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.timeout = timeout
        self._ctx = context or _default_context()

    def run(self, body: PhaseBody, on_event: Optional[EventHandler] = None) -> ExecutionResult:
        """Run ``body(channel)`` in a child process and wait for it.

        Each payload the body sends through the channel is passed to
        *on_event* in the engine process, in order, while the engine waits.
        Blocks until the body returns, raises, dies or the deadline passes.
        If *on_event* raises, the child is torn down and the exception
        propagates to the caller.
        """
        parent_conn, child_conn = self._ctx.Pipe(duplex=False)
        process = self._ctx.Process(
            target=_child_main, args=(child_conn, body), name="phase-callback", daemon=True
        )
        started = time.monotonic()
        deadline = started + self.timeout
        process.start()
        # The child holds the only writable end now; closing ours lets recv
        # raise EOFError if the child dies without reporting.
        child_conn.close()
        log.debug("Phase callback started", pid=process.pid, timeout=self.timeout)

        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self._drain(parent_conn, on_event)
                    self._kill(process)
                    elapsed = time.monotonic() - started
                    log.warning("Phase callback timed out", timeout=self.timeout, elapsed=elapsed)
                    return ExecutionResult(ExecutionStatus.TIMED_OUT, elapsed=elapsed)

                if not parent_conn.poll(remaining):
                    continue
                try:
                    kind, payload = parent_conn.recv()
                except EOFError:
                    process.join(_TERMINATE_GRACE)
                    elapsed = time.monotonic() - started
                    error = f"phase callback exited without a result (exit code {process.exitcode})"
                    log.error("Phase callback died", exitcode=process.exitcode)
                    return ExecutionResult(ExecutionStatus.FAULTED, error=error, elapsed=elapsed)

                if kind == _MSG_EVENT:
                    if on_event is not None:
                        on_event(payload)
                    continue

                process.join(_TERMINATE_GRACE)
                elapsed = time.monotonic() - started
                if kind == _MSG_FAULT:
                    return ExecutionResult(ExecutionStatus.FAULTED, error=payload, elapsed=elapsed)
                return ExecutionResult(ExecutionStatus.COMPLETED, value=payload, elapsed=elapsed)
        finally:
            parent_conn.close()
            if process.is_alive():
                self._kill(process)

    @staticmethod
    def _drain(conn: Connection, on_event: Optional[EventHandler]) -> None:
        """Apply events already sitting in the pipe before the child is killed."""
        try:
            while conn.poll(0):
                kind, payload = conn.recv()
                if kind == _MSG_EVENT and on_event is not None:
                    on_event(payload)
        except EOFError:
            pass

    @staticmethod
    def _kill(process: multiprocessing.process.BaseProcess) -> None:
        process.terminate()
        process.join(_TERMINATE_GRACE)
        if process.is_alive():
            log.warning("Phase callback ignored terminate, killing", pid=process.pid)
            process.kill()
            process.join()


__all__ = [
    "Channel",
    "ExecutionResult",
    "ExecutionStatus",
    "PhaseExecutor",
]
