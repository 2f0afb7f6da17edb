"""
Error Log Limiter - TTL-based suppression of repeated failure logs.

A function failing on every request would otherwise write the same exception and
traceback once per request. The first occurrence of a failure signature in a window
is logged in full; repeats are only counted.
"""

import logging
import time
import traceback
from dataclasses import dataclass
from typing import Callable, Tuple

from cachetools import TTLCache

logger = logging.getLogger("gateway.error_log")

Signature = Tuple[str, str, str, int]


def failure_signature(function_name: str, exc: BaseException) -> Signature:
    """Identify a failure by exception type and the innermost frame that raised it."""
    frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
    if frames:
        filename, lineno = frames[-1].filename, frames[-1].lineno or 0
    else:
        filename, lineno = "", 0
    return (function_name, type(exc).__qualname__, filename, lineno)


@dataclass
class _Occurrences:
    """Repeats of one signature; mutated in place so the cache entry keeps its expiry."""

    repeats: int = 0


class ErrorLogLimiter:
    """
    TTL-based LRU cache of recently logged failure signatures using cachetools.

    An entry expires window_seconds after the failure that was logged in full,
    however often it repeats in between; the next occurrence is logged in full again.

    Note: This cache is designed for single-threaded async environments (FastAPI/uvicorn).
    It is only used from the event loop, so no locking is required.
    """

    def __init__(
        self,
        window_seconds: float = 60.0,
        max_signatures: int = 256,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.max_signatures = max_signatures
        # TTLCache: Handles both LRU eviction and TTL expiration automatically
        self._seen: TTLCache = TTLCache(maxsize=max_signatures, ttl=window_seconds, timer=timer)
        self.suppressed = 0

    def report(self, function_name: str, exc: BaseException) -> bool:
        """
        Log a function failure unless the same failure was logged within the window.

        Returns:
            True if the failure was logged in full
        """
        signature = failure_signature(function_name, exc)
        occurrences = self._seen.get(signature)
        if occurrences is None:
            self._seen[signature] = _Occurrences()
            logger.error(
                f"Function '{function_name}' raised {type(exc).__name__}",
                exc_info=(type(exc), exc, exc.__traceback__),
                extra={"function_name": function_name, "error_type": type(exc).__name__},
            )
            return True

        # Never reassign the key: that would restart its TTL.
        occurrences.repeats += 1
        self.suppressed += 1
        logger.debug(
            f"Suppressed repeated {type(exc).__name__} from '{function_name}' "
            f"({occurrences.repeats} within {self.window_seconds}s)"
        )
        return False

    def clear(self) -> None:
        self._seen.clear()
