"""OpenTelemetry tracing for backend operations.

Spans are emitted only when S3COMMANDER_OTEL_ENABLED is set and the
opentelemetry package is importable.

Security:
    - Raw object keys are never exported; a SHA-256 of the key is used instead
    - No credentials, signatures or presigned URLs in span attributes
"""

from __future__ import annotations

import functools
import hashlib
import logging
import os
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar, cast

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

OTEL_ENABLED_ENV = "S3COMMANDER_OTEL_ENABLED"
TRACER_NAME = "s3commander.backend"


def _is_otel_enabled() -> bool:
    """Check if OpenTelemetry tracing is enabled."""
    return os.environ.get(OTEL_ENABLED_ENV, "").strip().lower() in ("1", "true", "yes")


def key_digest(key: str) -> str:
    """SHA-256 of a key, used to correlate spans without exposing the key."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def traced_backend_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace async backend operations with OpenTelemetry.

    The first positional argument after self, when present, is treated as the
    target path.

    Args:
        operation: Operation name (e.g., "list_folder", "delete_file").

    Returns:
        Decorated coroutine function.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            if not _is_otel_enabled():
                return await func(self, *args, **kwargs)

            try:
                from opentelemetry import trace
            except ImportError:
                return await func(self, *args, **kwargs)

            tracer = trace.get_tracer(TRACER_NAME)
            with tracer.start_as_current_span(f"s3commander.{operation}") as span:
                span.set_attribute("storage.backend", getattr(self, "backend_name", "unknown"))
                span.set_attribute("s3commander.bucket", getattr(self, "bucket", ""))
                if args:
                    span.set_attribute("s3commander.key_sha256", key_digest(str(args[0])))
                try:
                    return await func(self, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

        return cast(F, wrapper)

    return decorator
