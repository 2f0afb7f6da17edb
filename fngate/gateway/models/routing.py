"""
StaticRoute model.

A fixed response served for an exact path without invoking the function.
"""

from typing import Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator
from starlette.responses import Response


class StaticRoute(BaseModel):
    """
    Static routing exception.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    status_code: int = Field(default=404, ge=100, le=599)
    body: str = ""
    content_type: str = "text/plain; charset=utf-8"
    headers: Dict[str, str] = Field(default_factory=dict)

    @field_validator("path")
    @classmethod
    def _path_is_absolute(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"Static route path must start with '/': {value!r}")
        return value

    def to_response(self) -> Response:
        return Response(
            content=self.body,
            status_code=self.status_code,
            headers=self.headers,
            media_type=self.content_type,
        )
