"""
Blocking view of a request for plain (non-async) HTTP functions.

Plain functions run in a worker thread, where the coroutine methods of a Starlette
Request cannot be awaited. SyncRequest runs them back on the event loop through
anyio.from_thread, so the body is still only pulled when the function asks for it
and the size and stall limits still apply.

Usage:
    def handler(request):
        payload = request.json()
        return {"received": payload}
"""

from typing import Any, AsyncIterator, Iterator, Optional, Union

from anyio import from_thread
from starlette.requests import Request


async def _next_chunk(chunks: AsyncIterator[bytes]) -> Optional[bytes]:
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return None


class SyncRequest:
    """
    Request wrapper with blocking body accessors.

    Every other attribute (method, url, headers, query_params, client, ...) is read
    from the wrapped Request.
    """

    def __init__(self, request: Request):
        self._request = request

    @property
    def request(self) -> Request:
        """The wrapped Starlette Request."""
        return self._request

    def body(self) -> bytes:
        """Read the whole body; cached after the first call."""
        return from_thread.run(self._request.body)

    def get_data(self, as_text: bool = False) -> Union[bytes, str]:
        data = self.body()
        return data.decode() if as_text else data

    def json(self) -> Any:
        return from_thread.run(self._request.json)

    def iter_chunks(self) -> Iterator[bytes]:
        """Read the body chunk by chunk without buffering it."""
        chunks = self._request.stream()
        while True:
            chunk = from_thread.run(_next_chunk, chunks)
            if chunk is None:
                return
            if chunk:
                yield chunk

    def __getattr__(self, name: str) -> Any:
        return getattr(self._request, name)

    def __repr__(self) -> str:
        return f"SyncRequest({self._request.method} {self._request.url.path})"
