import asyncio
import logging
from collections import deque
from typing import Deque, Optional

from fngate.gateway.core.exceptions import ResourceExhaustedError

logger = logging.getLogger("gateway.concurrency")


class InvocationThrottle:
    """
    Optional cap on concurrent invocations (MAX_CONCURRENT_REQUESTS).

    Admission is FIFO: a released slot is handed directly to the oldest waiter,
    so a newcomer never overtakes a queued request.
    """

    def __init__(self, limit: int, queue_timeout: float = 10.0):
        if limit < 1:
            raise ValueError("Throttle limit must be at least 1")
        self.limit = limit
        self.queue_timeout = queue_timeout
        self.in_flight = 0
        self._lock = asyncio.Lock()
        self._queue: Deque[asyncio.Future] = deque()

    @property
    def queued(self) -> int:
        return sum(1 for waiter in self._queue if not waiter.done())

    async def acquire(self, timeout: Optional[float] = None) -> None:
        """
        Take a slot, waiting in line when all slots are busy.

        Raises:
            ResourceExhaustedError: no slot became free within the queue timeout
        """
        async with self._lock:
            if self.in_flight < self.limit and not self._queue:
                self.in_flight += 1
                return
            ticket = asyncio.get_running_loop().create_future()
            self._queue.append(ticket)

        wait = self.queue_timeout if timeout is None else timeout
        try:
            await asyncio.wait_for(ticket, wait)
        except asyncio.TimeoutError:
            await self._leave_queue(ticket)
            logger.warning(
                f"Invocation waited {wait}s for a free slot ({self.limit} in flight)",
                extra={"limit": self.limit, "queued": self.queued},
            )
            raise ResourceExhaustedError(f"No invocation slot free within {wait}s")
        except BaseException:
            await self._leave_queue(ticket)
            raise

    async def _leave_queue(self, ticket: asyncio.Future) -> None:
        async with self._lock:
            if ticket in self._queue:
                self._queue.remove(ticket)
            elif ticket.done() and not ticket.cancelled():
                # Slot was granted while we were giving up; pass it along.
                self._pass_slot()

    def _pass_slot(self) -> None:
        while self._queue:
            ticket = self._queue.popleft()
            if not ticket.done():
                ticket.set_result(None)
                return
        self.in_flight = max(0, self.in_flight - 1)

    async def release(self) -> None:
        async with self._lock:
            self._pass_slot()

    async def __aenter__(self) -> "InvocationThrottle":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.release()
