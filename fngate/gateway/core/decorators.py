"""
Signature type decorators.

Usage:
    import fngate

    @fngate.http
    def hello(request):
        return "Hello, World!"

    @fngate.cloud_event
    async def on_event(event, context):
        ...

A marked function is served with the marked signature type regardless of the
configured FUNCTION_SIGNATURE_TYPE.
"""

from typing import Callable, Optional, TypeVar

from ..models.function import SignatureType

F = TypeVar("F", bound=Callable)

SIGNATURE_ATTR = "__fngate_signature_type__"


def _mark(signature_type: SignatureType) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        setattr(func, SIGNATURE_ATTR, signature_type)
        return func

    return decorator


http = _mark(SignatureType.HTTP)
cloud_event = _mark(SignatureType.CLOUDEVENT)
event = _mark(SignatureType.EVENT)


def declared_signature_type(func: Callable) -> Optional[SignatureType]:
    """Return the signature type set by a decorator, if any."""
    return getattr(func, SIGNATURE_ATTR, None)
