import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Tuple

from cloudevents.exceptions import GenericException as CloudEventError
from cloudevents.http import CloudEvent, from_http
from pydantic import ValidationError
from starlette.datastructures import Headers
from starlette.requests import Request

from fngate.gateway.core.exceptions import MalformedRequest
from fngate.gateway.models.context import InvocationContext
from fngate.gateway.models.event import EventContext, LegacyEvent
from fngate.gateway.models.function import SignatureType
from fngate.gateway.core.sync_request import SyncRequest

logger = logging.getLogger("gateway.event_builder")

STRUCTURED_CONTENT_TYPE = "application/cloudevents+json"
BATCH_CONTENT_TYPE = "application/cloudevents-batch+json"


def cloudevent_mode(headers: Headers) -> str:
    """
    Classify a request as a binary or structured CloudEvent from its headers alone.

    Returns "binary", "structured" or "" when the request is not a CloudEvent.
    """
    if "ce-specversion" in headers:
        return "binary"
    content_type = headers.get("content-type", "").split(";", 1)[0].strip().lower()
    if content_type == STRUCTURED_CONTENT_TYPE:
        return "structured"
    return ""


def _lowered(headers: Headers) -> Dict[str, str]:
    return {key.lower(): value for key, value in headers.items()}


async def _parse_cloudevent(request: Request) -> CloudEvent:
    headers = request.headers
    content_type = headers.get("content-type", "").split(";", 1)[0].strip().lower()
    if content_type == BATCH_CONTENT_TYPE:
        raise MalformedRequest("Batched CloudEvents are not supported")

    if not cloudevent_mode(headers):
        raise MalformedRequest("Request is not a CloudEvent (no ce-* headers or structured body)")

    body = await request.body()
    try:
        return from_http(_lowered(headers), body)
    except (CloudEventError, ValueError) as e:
        raise MalformedRequest(f"Invalid CloudEvent: {e}")


class EventBuilder(ABC):
    """Builds the positional arguments passed to the function for one request."""

    @abstractmethod
    async def build(self, request: Request, context: InvocationContext) -> Tuple[Any, ...]:
        """
        Build the function arguments, excluding the trailing invocation context.

        Raises:
            MalformedRequest: the request does not fit the signature type
        """
        pass


class HttpArgumentBuilder(EventBuilder):
    """
    HTTP functions receive the request; the body stays unread.

    Plain functions run in a worker thread and get a SyncRequest, whose body
    accessors block instead of returning coroutines.
    """

    def __init__(self, blocking: bool = False):
        self.blocking = blocking

    async def build(self, request: Request, context: InvocationContext) -> Tuple[Any, ...]:
        if self.blocking:
            return (SyncRequest(request),)
        return (request,)


class CloudEventArgumentBuilder(EventBuilder):
    """CloudEvent functions receive a parsed CloudEvent (binary or structured mode)."""

    async def build(self, request: Request, context: InvocationContext) -> Tuple[Any, ...]:
        return (await _parse_cloudevent(request),)


class LegacyEventArgumentBuilder(EventBuilder):
    """
    Background event functions receive (data, context).

    The body is either a legacy JSON envelope or a CloudEvent, which is converted.
    """

    async def build(self, request: Request, context: InvocationContext) -> Tuple[Any, ...]:
        if cloudevent_mode(request.headers):
            cloud_event = await _parse_cloudevent(request)
            metadata = EventContext(
                event_id=cloud_event["id"],
                timestamp=cloud_event.get("time"),
                event_type=cloud_event["type"],
                resource=cloud_event["source"],
            )
            return (cloud_event.data, metadata)

        body = await request.body()
        try:
            envelope = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedRequest(f"Event body is not valid JSON: {e}")
        if not isinstance(envelope, dict):
            raise MalformedRequest("Event body must be a JSON object")

        try:
            event = LegacyEvent.from_envelope(envelope)
        except (ValueError, ValidationError) as e:
            raise MalformedRequest(f"Invalid event envelope: {e}")
        return (event.data, event.context)


_BUILDERS = {
    SignatureType.HTTP: HttpArgumentBuilder,
    SignatureType.CLOUDEVENT: CloudEventArgumentBuilder,
    SignatureType.EVENT: LegacyEventArgumentBuilder,
}


def builder_for(signature_type: SignatureType, blocking: bool = False) -> EventBuilder:
    if signature_type is SignatureType.HTTP:
        return HttpArgumentBuilder(blocking=blocking)
    return _BUILDERS[signature_type]()
