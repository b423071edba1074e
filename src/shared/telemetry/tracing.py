"""Span helpers for the workflow engine and services"""
import asyncio
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from functools import wraps
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

TRACER_NAME = "agency_ops"

# Keyword arguments never copied onto spans
_REDACTED_ARGS = frozenset({"password", "token", "secret", "config", "context", "data"})
_ATTRIBUTE_TYPES = (str, bool, int, float)


def _attribute_value(value: Any) -> Any:
    return value if isinstance(value, _ATTRIBUTE_TYPES) else str(value)


@contextmanager
def _span(name: str, attributes: dict[str, Any], kwargs: dict[str, Any]) -> Iterator[trace.Span]:
    tracer = trace.get_tracer(TRACER_NAME)
    with tracer.start_as_current_span(name, record_exception=False) as span:
        for key, value in attributes.items():
            span.set_attribute(key, _attribute_value(value))
        for key, value in kwargs.items():
            if value is not None and not key.startswith("_") and key not in _REDACTED_ARGS:
                span.set_attribute(f"arg.{key}", _attribute_value(value))
        try:
            yield span
        except Exception as e:
            # Domain errors carry a machine-readable code worth filtering on
            error_code = getattr(e, "error_code", None)
            if error_code:
                span.set_attribute("error.code", error_code)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise
        span.set_status(Status(StatusCode.OK))


def traced(operation_name: str | None = None, attributes: dict[str, Any] | None = None):
    """
    Wrap a function (sync or async) in a span.

    Usage:
        @traced("workflow_engine.process_event")
        async def process_event(self, event, agency_id): ...

    Keyword arguments are copied onto the span as ``arg.<name>`` unless they
    are private or carry payloads (config, context, data) or secrets.
    """
    static_attributes = dict(attributes or {})

    def decorator(func: Callable) -> Callable:
        span_name = operation_name or f"{func.__module__}.{func.__name__}"

        if asyncio.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                with _span(span_name, static_attributes, kwargs):
                    return await func(*args, **kwargs)

            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            with _span(span_name, static_attributes, kwargs):
                return func(*args, **kwargs)

        return sync_wrapper

    return decorator


def add_span_attributes(**attributes: Any) -> None:
    """Attach attributes to the current span; None values are dropped"""
    span = trace.get_current_span()
    if not span.is_recording():
        return
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(key, _attribute_value(value))


def add_span_event(name: str, attributes: dict[str, Any] | None = None) -> None:
    """Record a point-in-time event (e.g. an action failure) on the current span"""
    span = trace.get_current_span()
    if span.is_recording():
        span.add_event(
            name, attributes={k: _attribute_value(v) for k, v in (attributes or {}).items()}
        )
