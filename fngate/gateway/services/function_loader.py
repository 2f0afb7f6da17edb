"""
Function loader.

Imports the user's source file and validates the target export against its
signature type. Runs once at startup, before the server listens; every failure
becomes FunctionLoadError.
"""

import importlib.util
import inspect
import logging
import math
import sys
from pathlib import Path
from typing import Callable, Optional, Tuple

from ..core.decorators import declared_signature_type
from ..core.exceptions import FunctionLoadError
from ..models.function import FunctionHandle, SignatureType

logger = logging.getLogger("gateway.function_loader")


def positional_arity(func: Callable) -> Tuple[int, float]:
    """
    Return (required, maximum) positional argument counts of a callable.

    maximum is math.inf when the callable takes *args.
    """
    signature = inspect.signature(func)
    required = 0
    maximum: float = 0
    for param in signature.parameters.values():
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            maximum += 1
            if param.default is param.empty:
                required += 1
        elif param.kind is param.VAR_POSITIONAL:
            maximum = math.inf
        elif param.kind is param.KEYWORD_ONLY and param.default is param.empty:
            # A required keyword-only parameter can never be satisfied.
            raise ValueError(f"required keyword-only parameter '{param.name}'")
    return required, maximum


def _is_coroutine_callable(func: Callable) -> bool:
    if inspect.iscoroutinefunction(func):
        return True
    # Instances with an async __call__
    return inspect.iscoroutinefunction(getattr(func, "__call__", None))


class FunctionLoader:
    def __init__(
        self,
        source: str,
        target: str,
        signature_type: SignatureType = SignatureType.HTTP,
    ):
        self.source = source
        self.target = target
        self.signature_type = SignatureType(signature_type)

    def _fail(self, reason: str) -> FunctionLoadError:
        return FunctionLoadError(self.target, self.source, reason)

    def _import_source(self, path: Path):
        module_name = path.stem
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise self._fail("not an importable Python file")

        module = importlib.util.module_from_spec(spec)
        # Sibling modules of the source are importable from the function.
        source_dir = str(path.parent)
        if source_dir not in sys.path:
            sys.path.insert(0, source_dir)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise self._fail(f"import raised {type(e).__name__}: {e}") from e
        return module

    def _validate(self, func: Callable, signature_type: SignatureType) -> bool:
        """Check the call shape; returns whether the invocation context is accepted."""
        try:
            required, maximum = positional_arity(func)
        except (TypeError, ValueError) as e:
            raise self._fail(f"incompatible signature: {e}")

        base = signature_type.base_arity
        if required > base + 1 or maximum < base:
            raise self._fail(
                f"incompatible signature for '{signature_type.value}' functions: "
                f"expected {base} positional argument(s) "
                f"(plus an optional invocation context), "
                f"got {required} required / {maximum} accepted"
            )
        return maximum >= base + 1

    def load(self) -> FunctionHandle:
        """
        Load and validate the function.

        Returns:
            FunctionHandle flagged ready

        Raises:
            FunctionLoadError: source missing, import failure, missing or invalid target
        """
        path = Path(self.source).resolve()
        if not path.is_file():
            raise self._fail("source file not found")

        module = self._import_source(path)

        func: Optional[Callable] = getattr(module, self.target, None)
        if func is None:
            raise self._fail(f"module '{module.__name__}' has no attribute '{self.target}'")
        if not callable(func):
            raise self._fail(f"'{self.target}' is not callable")

        signature_type = declared_signature_type(func) or self.signature_type
        if signature_type is not self.signature_type:
            logger.info(
                f"Function '{self.target}' is declared as '{signature_type.value}', "
                f"overriding configured '{self.signature_type.value}'"
            )
        if inspect.isasyncgenfunction(func) and signature_type is not SignatureType.HTTP:
            raise self._fail("async generators can only be served as 'http' functions")

        accepts_context = self._validate(func, signature_type)

        handle = FunctionHandle(
            name=self.target,
            source=str(path),
            signature_type=signature_type,
            func=func,
            is_coroutine=_is_coroutine_callable(func),
            accepts_context=accepts_context,
        ).mark_ready()

        logger.info(
            f"Loaded function '{handle.name}' ({handle.signature_type.value}) from {handle.source}",
            extra={
                "function_name": handle.name,
                "signature_type": handle.signature_type.value,
                "is_coroutine": handle.is_coroutine,
                "accepts_context": handle.accepts_context,
            },
        )
        return handle
