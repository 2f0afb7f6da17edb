"""
Legacy background event models.

Metadata passed as the second argument to `event` signature functions.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventContext(BaseModel):
    """
    Metadata of a legacy background event.

    Accepts both the camelCase wire names and the snake_case attribute names.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    event_id: Optional[str] = Field(default=None, alias="eventId")
    timestamp: Optional[str] = None
    event_type: Optional[str] = Field(default=None, alias="eventType")
    resource: Optional[Any] = None


class LegacyEvent(BaseModel):
    """A parsed legacy event: payload plus metadata."""

    data: Any
    context: EventContext

    @classmethod
    def from_envelope(cls, envelope: Dict[str, Any]) -> "LegacyEvent":
        """
        Build from a JSON envelope.

        Metadata comes from a nested `context` object, or from top-level keys when absent.
        """
        if "data" not in envelope:
            raise ValueError("Event envelope has no 'data' field")

        metadata = envelope.get("context")
        if metadata is None:
            metadata = {
                key: envelope[key]
                for key in ("eventId", "timestamp", "eventType", "resource")
                if key in envelope
            }
        if not isinstance(metadata, dict):
            raise ValueError("Event 'context' must be an object")

        return cls(data=envelope["data"], context=EventContext.model_validate(metadata))
