"""
Gateway Utility Module
"""

import inspect
import logging
from typing import Any, Dict, Mapping, Optional

from fastapi.encoders import jsonable_encoder
from starlette.responses import JSONResponse, Response, StreamingResponse

from .exceptions import FunctionInvocationError

logger = logging.getLogger("gateway.utils")


def _is_stream(value: Any) -> bool:
    return inspect.isgenerator(value) or inspect.isasyncgen(value)


def _body_response(body: Any, status_code: int, headers: Optional[Mapping[str, str]]) -> Response:
    if isinstance(body, Response):
        body.status_code = status_code
        if headers:
            body.headers.update(headers)
        return body
    if body is None:
        return Response(status_code=status_code, headers=headers)
    if isinstance(body, (bytes, bytearray, memoryview)):
        return Response(
            content=bytes(body),
            status_code=status_code,
            headers=headers,
            media_type="application/octet-stream",
        )
    if isinstance(body, str):
        return Response(
            content=body,
            status_code=status_code,
            headers=headers,
            media_type="text/plain; charset=utf-8",
        )
    if isinstance(body, (dict, list)):
        return JSONResponse(content=jsonable_encoder(body), status_code=status_code, headers=headers)
    if _is_stream(body):
        return StreamingResponse(body, status_code=status_code, headers=headers)

    raise FunctionInvocationError(f"Unsupported function return type: {type(body).__name__}")


def to_response(result: Any) -> Response:
    """
    Convert a function return value to a response.

    Supported:
        Response                          returned as-is
        None                              empty 200
        str / bytes / dict / list         200 with a text, binary or JSON body
        generator / async generator       200 streamed chunk by chunk
        (body, status)                    explicit status
        (body, status, headers)           explicit status and headers
        (body, headers)                   explicit headers

    No caching header is ever added.

    Raises:
        FunctionInvocationError: the value cannot be turned into a response
    """
    if isinstance(result, Response):
        return result

    if isinstance(result, tuple):
        body: Any = None
        status_code = 200
        headers: Optional[Dict[str, str]] = None

        if len(result) == 3:
            body, status_code, headers = result
        elif len(result) == 2 and isinstance(result[1], Mapping):
            body, headers = result
        elif len(result) == 2:
            body, status_code = result
        else:
            raise FunctionInvocationError(
                f"Function returned a tuple of length {len(result)}; expected 2 or 3"
            )

        if not isinstance(status_code, int) or isinstance(status_code, bool):
            raise FunctionInvocationError(f"Invalid status code: {status_code!r}")
        if headers is not None:
            headers = {str(k): str(v) for k, v in dict(headers).items()}
        return _body_response(body, status_code, headers)

    return _body_response(result, 200, None)


def event_ack() -> Response:
    """Success response of event and cloudevent functions."""
    return Response(content="OK", status_code=200, media_type="text/plain; charset=utf-8")
