import threading
from typing import Dict

_COUNTERS = (
    "invocations",
    "static_hits",
    "rejected",
    "timeouts",
    "failures",
    "abandoned",
)


class InvocationStats:
    """
    Process-wide dispatch counters.

    Created with the gateway at startup; increments are lock-protected so worker
    threads and the event loop can share one instance.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counts: Dict[str, int] = dict.fromkeys(_COUNTERS, 0)

    def increment(self, counter: str, amount: int = 1) -> None:
        if counter not in self._counts:
            raise KeyError(f"Unknown counter: {counter}")
        with self._lock:
            self._counts[counter] += amount

    def get(self, counter: str) -> int:
        with self._lock:
            return self._counts[counter]

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)
