"""
Invocation Gateway - Service Layer

Standardizes the flow: Request -> static check -> InvocationContext -> function -> Response.
"""

import asyncio
import contextlib
import inspect
import logging
from typing import Any, AsyncIterator, Optional, Set, Tuple

from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import Response, StreamingResponse

from fngate.common.core.request_context import get_execution_id, get_trace
from fngate.gateway.config import GatewayConfig
from fngate.gateway.core.body import BoundedReceive, check_declared_length
from fngate.gateway.core.concurrency import InvocationThrottle
from fngate.gateway.core.event_builder import builder_for
from fngate.gateway.core.exceptions import (
    BodyReadTimeout,
    DispatchTimeout,
    FunctionInvocationError,
    GatewayError,
    MalformedRequest,
)
from fngate.gateway.core.utils import event_ack, to_response
from fngate.gateway.models.context import (
    InvocationContext,
    bind_invocation_context,
    unbind_invocation_context,
)
from fngate.gateway.models.function import FunctionHandle, SignatureType
from fngate.gateway.services.error_log import ErrorLogLimiter
from fngate.gateway.services.routing_table import RoutingTable
from fngate.gateway.services.stats import InvocationStats

logger = logging.getLogger("gateway.dispatcher")


class InvocationGateway:
    """
    Dispatches requests to the loaded function.

    The handle and routing table are shared read-only by every dispatch; each
    dispatch owns its InvocationContext and body reader exclusively.
    """

    def __init__(
        self,
        handle: FunctionHandle,
        routing_table: RoutingTable,
        execution_timeout: float = 60.0,
        body_read_timeout: float = 30.0,
        max_body_size: Optional[int] = None,
        throttle: Optional[InvocationThrottle] = None,
        error_log: Optional[ErrorLogLimiter] = None,
        stats: Optional[InvocationStats] = None,
    ):
        if not handle.ready:
            raise ValueError(f"Function handle '{handle.name}' has not been validated")
        self.handle = handle
        self.routing_table = routing_table
        self.execution_timeout = execution_timeout
        self.body_read_timeout = body_read_timeout
        self.max_body_size = max_body_size
        self.throttle = throttle
        self.error_log = error_log or ErrorLogLimiter()
        self.stats = stats or InvocationStats()
        self.event_builder = builder_for(handle.signature_type, blocking=not handle.is_coroutine)
        self._abandoned: Set[asyncio.Task] = set()

    @classmethod
    def from_config(
        cls,
        handle: FunctionHandle,
        gateway_config: GatewayConfig,
        routing_table: Optional[RoutingTable] = None,
    ) -> "InvocationGateway":
        if routing_table is None:
            routing_table = RoutingTable.build(
                gateway_config.RESERVED_PATHS, gateway_config.ROUTING_CONFIG_PATH
            )

        throttle = None
        if gateway_config.MAX_CONCURRENT_REQUESTS:
            throttle = InvocationThrottle(
                gateway_config.MAX_CONCURRENT_REQUESTS, gateway_config.QUEUE_TIMEOUT_SECONDS
            )

        return cls(
            handle=handle,
            routing_table=routing_table,
            execution_timeout=gateway_config.EXECUTION_TIMEOUT,
            body_read_timeout=gateway_config.BODY_READ_TIMEOUT,
            max_body_size=gateway_config.MAX_BODY_SIZE,
            throttle=throttle,
            error_log=ErrorLogLimiter(
                gateway_config.ERROR_LOG_WINDOW_SECONDS, gateway_config.ERROR_LOG_MAX_SIGNATURES
            ),
        )

    @property
    def abandoned_tasks(self) -> int:
        """Abandoned invocations that have not finished yet."""
        return sum(1 for task in self._abandoned if not task.done())

    async def dispatch(self, request: Request) -> Response:
        """
        Serve one request.

        Raises:
            MalformedRequest: 400, before the function is invoked
            BodyReadTimeout: 408, client stalled while sending the body
            ResourceExhaustedError: 429, throttle queue timed out
            FunctionInvocationError: 500 or the status declared by the function
            DispatchTimeout: 504, the function missed its deadline
        """
        # 1. Static exceptions never reach the function.
        static_route = self.routing_table.lookup(request.url.path)
        if static_route is not None:
            self.stats.increment("static_hits")
            return static_route.to_response()

        try:
            check_declared_length(request.headers, self.max_body_size)
        except MalformedRequest:
            self.stats.increment("rejected")
            raise

        slot = self.throttle if self.throttle is not None else contextlib.nullcontext()
        async with slot:
            return await self._dispatch_invocation(request)

    async def _dispatch_invocation(self, request: Request) -> Response:
        # 2. Fresh per-request state.
        context = InvocationContext.create(
            timeout=self.execution_timeout,
            request_id=get_execution_id(),
            trace=get_trace(),
        )

        # 3. The body is only pulled from the server if somebody reads it.
        body = BoundedReceive(request.receive, self.max_body_size, self.body_read_timeout)
        context.add_cleanup(body.close)
        function_request = Request(request.scope, body)

        token = bind_invocation_context(context)
        release_on_return = True
        try:
            try:
                args = await self.event_builder.build(function_request, context)
            except (MalformedRequest, BodyReadTimeout):
                self.stats.increment("rejected")
                raise

            # 4-5. Invoke under the deadline.
            result = await self._invoke(args, context)

            # 6. Headers go out as soon as the response object exists; streams stay lazy
            # but remain bound by the invocation deadline.
            response = self._to_response(result)
            if isinstance(response, StreamingResponse):
                response.body_iterator = self._stream_until_deadline(
                    response.body_iterator, context
                )
                release_on_return = False
            return response
        finally:
            unbind_invocation_context(token)
            # 7. Released on every exit path; streams release once drained.
            if release_on_return:
                context.release()

    async def _call(self, args: Tuple[Any, ...]) -> Any:
        func = self.handle.func
        if self.handle.is_coroutine:
            result = await func(*args)
        else:
            result = await run_in_threadpool(func, *args)

        # Plain callables returning an awaitable
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _invoke(self, args: Tuple[Any, ...], context: InvocationContext) -> Any:
        handle = self.handle
        if handle.accepts_context:
            args = (*args, context)

        self.stats.increment("invocations")
        task = asyncio.ensure_future(self._call(args))
        try:
            done, _ = await asyncio.wait({task}, timeout=context.remaining())
        except asyncio.CancelledError:
            # The dispatch itself was cancelled (e.g. the client went away).
            self._abandon(task, context)
            raise

        if task not in done:
            self._abandon(task, context)
            self.stats.increment("timeouts")
            logger.warning(
                f"Function '{handle.name}' exceeded {context.timeout}s; invocation abandoned",
                extra={"function_name": handle.name, "timeout": context.timeout},
            )
            raise DispatchTimeout(handle.name, context.timeout)

        if task.cancelled():
            self.stats.increment("failures")
            raise FunctionInvocationError(
                "Function invocation was cancelled", function_name=handle.name
            )

        try:
            return task.result()
        except (MalformedRequest, BodyReadTimeout):
            # Raised by the body reader while the function consumed the body.
            self.stats.increment("rejected")
            raise
        except FunctionInvocationError as e:
            self.stats.increment("failures")
            e.function_name = e.function_name or handle.name
            raise
        except StarletteHTTPException as e:
            self.stats.increment("failures")
            raise FunctionInvocationError(
                str(e.detail),
                status_code=e.status_code,
                function_name=handle.name,
                headers=e.headers,
            ) from e
        except GatewayError:
            raise
        except Exception as e:
            self.stats.increment("failures")
            self.error_log.report(handle.name, e)
            raise FunctionInvocationError(function_name=handle.name) from e

    def _to_response(self, result: Any) -> Response:
        if self.handle.signature_type is not SignatureType.HTTP:
            return event_ack()
        try:
            return to_response(result)
        except FunctionInvocationError as e:
            self.stats.increment("failures")
            e.function_name = self.handle.name
            logger.warning(f"Function '{self.handle.name}' returned an invalid value: {e.detail}")
            raise

    async def _stream_until_deadline(
        self, iterator: AsyncIterator[Any], context: InvocationContext
    ) -> AsyncIterator[Any]:
        """
        Relay a streamed body chunk by chunk until it ends or the deadline fires.

        The status line is already sent when the deadline fires, so the stream is
        cut short instead of answered with 504. The context is released either way.
        """
        try:
            while True:
                # A task, so a chunk stuck in a worker thread is abandoned, not awaited.
                step = asyncio.ensure_future(iterator.__anext__())
                try:
                    done, _ = await asyncio.wait({step}, timeout=context.remaining())
                except asyncio.CancelledError:
                    # Client went away mid-stream.
                    self._abandon(step, context)
                    raise
                if step not in done:
                    self._abandon(step, context)
                    self.stats.increment("timeouts")
                    logger.warning(
                        f"Function '{self.handle.name}' stream exceeded {context.timeout}s; "
                        "response cut short",
                        extra={"function_name": self.handle.name, "timeout": context.timeout},
                    )
                    return
                try:
                    chunk = step.result()
                except StopAsyncIteration:
                    return
                yield chunk
        finally:
            context.release()

    def _abandon(self, task: asyncio.Task, context: InvocationContext) -> None:
        """Cancel a late invocation and stop waiting for it; it is never retried."""
        context.cancel()
        task.cancel()
        self.stats.increment("abandoned")
        self._abandoned.add(task)
        task.add_done_callback(self._forget_abandoned)

    def _forget_abandoned(self, task: asyncio.Task) -> None:
        self._abandoned.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug(f"Abandoned invocation finished with {type(exc).__name__}")
        else:
            logger.debug("Abandoned invocation finished; result discarded")

    def close(self) -> None:
        """Release process-wide state at shutdown."""
        still_running = self.abandoned_tasks
        if still_running:
            logger.warning(f"{still_running} abandoned invocation(s) still running at shutdown")
        logger.info("Gateway dispatch stats", extra={"stats": self.stats.snapshot()})
        self.error_log.clear()
