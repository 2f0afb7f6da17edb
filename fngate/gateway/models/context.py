"""
Invocation context model.

Per-request state owned by exactly one in-flight dispatch: deadline, cancellation
signal, trace data, and the resources released when the request completes.
"""

import logging
import threading
import time
import uuid
from contextvars import ContextVar, Token
from typing import Callable, List, Optional

from fngate.common.core.trace import TraceContext
from fngate.gateway.core.exceptions import InvocationCancelled

logger = logging.getLogger("gateway.context")


class InvocationContext:
    """
    State bundle of one invocation.

    Cancellation is cooperative. Coroutine functions are cancelled at their next
    await; plain functions running in a worker thread observe the flag through
    `cancelled`, `raise_if_cancelled()` or `wait_cancelled()`.
    """

    def __init__(
        self,
        request_id: str,
        timeout: float,
        trace: Optional[TraceContext] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.request_id = request_id
        self.timeout = timeout
        self.trace = trace
        self._clock = clock
        self.deadline = clock() + timeout
        self._cancel_event = threading.Event()
        self._cleanups: List[Callable[[], None]] = []
        self._released = False
        self._lock = threading.Lock()

    @classmethod
    def create(
        cls,
        timeout: float,
        request_id: Optional[str] = None,
        trace: Optional[TraceContext] = None,
    ) -> "InvocationContext":
        return cls(request_id=request_id or uuid.uuid4().hex, timeout=timeout, trace=trace)

    def remaining(self) -> float:
        """Seconds left before the deadline (never negative)."""
        return max(0.0, self.deadline - self._clock())

    @property
    def expired(self) -> bool:
        return self._clock() >= self.deadline

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def released(self) -> bool:
        return self._released

    def cancel(self) -> None:
        self._cancel_event.set()

    def raise_if_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise InvocationCancelled()

    def wait_cancelled(self, timeout: Optional[float] = None) -> bool:
        """
        Block the calling thread until cancellation or timeout.

        Returns True if the invocation was cancelled. Intended for plain functions
        as an interruptible replacement for time.sleep().
        """
        return self._cancel_event.wait(timeout)

    def add_cleanup(self, callback: Callable[[], None]) -> None:
        """Register a callback run when the context is released."""
        with self._lock:
            if self._released:
                raise RuntimeError("Invocation context already released")
            self._cleanups.append(callback)

    def release(self) -> None:
        """Run cleanup callbacks once, in reverse registration order."""
        with self._lock:
            if self._released:
                return
            self._released = True
            callbacks, self._cleanups = self._cleanups, []

        for callback in reversed(callbacks):
            try:
                callback()
            except Exception:
                logger.warning("Invocation cleanup callback failed", exc_info=True)

    def __repr__(self) -> str:
        return (
            f"InvocationContext(request_id={self.request_id!r}, "
            f"remaining={self.remaining():.3f}, cancelled={self.cancelled})"
        )


_invocation_var: ContextVar[Optional[InvocationContext]] = ContextVar(
    "invocation_context", default=None
)


def get_invocation_context() -> Optional[InvocationContext]:
    """Get the invocation context of the request being served, if any."""
    return _invocation_var.get()


def bind_invocation_context(context: InvocationContext) -> Token:
    return _invocation_var.set(context)


def unbind_invocation_context(token: Token) -> None:
    _invocation_var.reset(token)
