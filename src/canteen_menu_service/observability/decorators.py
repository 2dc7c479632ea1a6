"""OpenTelemetry tracing decorators."""

import asyncio
import functools
from collections.abc import Callable
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span

from canteen_menu_service.exceptions import CanteenError

F = TypeVar("F", bound=Callable[..., Any])


def _record_failure(span: Span, error: Exception) -> None:
    span.set_attribute("success", False)
    span.set_attribute("error.type", type(error).__name__)
    span.set_attribute("error.message", str(error))

    # Expected domain failures are tagged, not recorded as exceptions.
    if isinstance(error, CanteenError):
        span.set_attribute("error.code", error.error_code)
        return
    span.record_exception(error)


def traced(
    span_name: str | None = None,
    service_name: str = "canteen-menu",
    attributes: dict[str, str] | None = None,
) -> Callable[[F], F]:
    """Decorator to wrap a function call in an OpenTelemetry span.

    Both coroutine functions and plain functions are supported. Domain errors
    (CanteenError) mark the span unsuccessful and carry their error code;
    anything else is additionally recorded as an exception event.

    Args:
        span_name: Name for the span (defaults to the function name)
        service_name: Service name for the tracer and span attributes
        attributes: Static attributes added to every span

    Example:
        @traced("menu.create", attributes={"menu.operation": "create"})
        async def create(self, principal, raw) -> MenuItem:
            ...
    """

    def decorator(func: F) -> F:
        name = span_name or func.__name__
        tracer = trace.get_tracer(service_name)

        def start(span: Span) -> None:
            span.set_attribute("service.name", service_name)
            span.set_attribute("function.name", func.__qualname__)
            for key, value in (attributes or {}).items():
                span.set_attribute(key, value)

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name, record_exception=False) as span:
                start(span)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _record_failure(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name, record_exception=False) as span:
                start(span)
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    _record_failure(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore
        return sync_wrapper  # type: ignore

    return decorator
