"""
Lazy request body access.

The function receives a Starlette Request built on top of BoundedReceive, so the
body is only pulled from the server when the function reads it. Size and stall
limits are enforced chunk by chunk while it is read.
"""

import asyncio
import logging
from typing import Optional

from starlette.datastructures import Headers
from starlette.types import Message, Receive

from .exceptions import BodyReadTimeout, MalformedRequest

logger = logging.getLogger("gateway.body")


def check_declared_length(headers: Headers, max_body_size: Optional[int]) -> None:
    """
    Reject a declared Content-Length above the bound before anything is read.

    Raises:
        MalformedRequest: invalid or oversized Content-Length
    """
    declared = headers.get("content-length")
    if declared is None:
        return

    try:
        length = int(declared)
    except ValueError:
        raise MalformedRequest(f"Invalid Content-Length: {declared!r}")
    if length < 0:
        raise MalformedRequest(f"Invalid Content-Length: {declared!r}")

    if max_body_size is not None and length > max_body_size:
        raise MalformedRequest(f"Request body exceeds {max_body_size} bytes")


class BoundedReceive:
    """
    ASGI receive wrapper that bounds the body size and the wait for each chunk.
    """

    def __init__(self, receive: Receive, max_body_size: Optional[int], read_timeout: float):
        self._receive = receive
        self.max_body_size = max_body_size
        self.read_timeout = read_timeout
        self.bytes_received = 0
        self.complete = False
        self.closed = False

    async def __call__(self) -> Message:
        if self.closed:
            # Reader released with the invocation; behave like a disconnected client.
            return {"type": "http.disconnect"}

        if self.complete:
            # Body fully read; only disconnect notifications remain, no stall limit applies.
            return await self._receive()

        try:
            message = await asyncio.wait_for(self._receive(), self.read_timeout)
        except asyncio.TimeoutError:
            raise BodyReadTimeout(self.read_timeout)

        if message["type"] == "http.request":
            self.bytes_received += len(message.get("body", b""))
            if self.max_body_size is not None and self.bytes_received > self.max_body_size:
                raise MalformedRequest(f"Request body exceeds {self.max_body_size} bytes")
            if not message.get("more_body", False):
                self.complete = True

        return message

    def close(self) -> None:
        if not self.complete and self.bytes_received:
            logger.debug("Releasing partially read body after %d bytes", self.bytes_received)
        self.closed = True
