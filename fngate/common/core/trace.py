import re
import secrets
from typing import Optional

_TRACEPARENT_RE = re.compile(r"^([0-9a-f]{2})-([0-9a-f]{32})-([0-9a-f]{16})-([0-9a-f]{2})$")
_CLOUD_TRACE_RE = re.compile(r"^([0-9a-fA-F]{32})(?:/(\d+))?(?:;o=([01]))?$")


class TraceContext:
    """
    W3C trace context:
    version-traceid-parentid-flags (e.g. 00-<32 hex>-<16 hex>-01)

    The legacy X-Cloud-Trace-Context form TRACE_ID/SPAN_ID;o=OPTIONS is also
    accepted and normalized into the same fields.
    """

    def __init__(self, trace_id: str, parent_id: str, sampled: bool = True):
        self.trace_id = trace_id
        self.parent_id = parent_id
        self.sampled = sampled

    @classmethod
    def generate(cls) -> "TraceContext":
        """Generate a new root trace."""
        return cls(trace_id=secrets.token_hex(16), parent_id=secrets.token_hex(8), sampled=True)

    @classmethod
    def parse(cls, header: str) -> "TraceContext":
        """Parse a traceparent header value."""
        match = _TRACEPARENT_RE.match(header.strip().lower())
        if not match:
            raise ValueError(f"Invalid traceparent header: {header!r}")

        version, trace_id, parent_id, flags = match.groups()
        if version == "ff" or trace_id == "0" * 32 or parent_id == "0" * 16:
            raise ValueError(f"Invalid traceparent header: {header!r}")

        return cls(trace_id=trace_id, parent_id=parent_id, sampled=bool(int(flags, 16) & 0x01))

    @classmethod
    def parse_cloud_trace(cls, header: str) -> "TraceContext":
        """Parse an X-Cloud-Trace-Context header value."""
        match = _CLOUD_TRACE_RE.match(header.strip())
        if not match:
            raise ValueError(f"Invalid X-Cloud-Trace-Context header: {header!r}")

        trace_id, span_id, options = match.groups()
        parent_id = f"{int(span_id):016x}" if span_id else ""
        # Span ids that are zero or wider than 64 bits have no traceparent form.
        if len(parent_id) != 16 or parent_id == "0" * 16:
            parent_id = secrets.token_hex(8)
        return cls(trace_id=trace_id.lower(), parent_id=parent_id, sampled=options != "0")

    @classmethod
    def from_headers(cls, headers) -> Optional["TraceContext"]:
        """
        Build a trace from request headers, preferring traceparent.

        Returns None when neither header is present.
        Raises ValueError when the present header is malformed.
        """
        traceparent = headers.get("traceparent")
        if traceparent:
            return cls.parse(traceparent)
        cloud_trace = headers.get("x-cloud-trace-context")
        if cloud_trace:
            return cls.parse_cloud_trace(cloud_trace)
        return None

    def child(self) -> "TraceContext":
        """Return a span of the same trace with a fresh parent id."""
        return TraceContext(self.trace_id, secrets.token_hex(8), self.sampled)

    def __str__(self) -> str:
        """Generate the traceparent header string."""
        flags = "01" if self.sampled else "00"
        return f"00-{self.trace_id}-{self.parent_id}-{flags}"
