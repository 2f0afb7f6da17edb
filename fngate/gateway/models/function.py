"""
Function domain models.

Defines the loaded, validated reference to the user function.
"""

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Callable


class SignatureType(str, Enum):
    """Calling convention of the user function."""

    HTTP = "http"
    EVENT = "event"
    CLOUDEVENT = "cloudevent"

    @property
    def base_arity(self) -> int:
        """Positional arguments the gateway always passes (before the invocation context)."""
        return 2 if self is SignatureType.EVENT else 1


@dataclass(frozen=True)
class FunctionHandle:
    """
    Core domain entity for the user function.

    Created once at startup by the function loader and never mutated afterwards.
    """

    name: str
    source: str
    signature_type: SignatureType
    func: Callable
    is_coroutine: bool = False
    accepts_context: bool = False
    ready: bool = False

    def mark_ready(self) -> "FunctionHandle":
        """Return the validated handle flagged as ready to serve."""
        return dataclasses.replace(self, ready=True)
