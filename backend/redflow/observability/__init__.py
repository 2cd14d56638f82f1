from .langfuse_backend import LangfuseSpanBackend, build_tracer
from .spans import (
    NoopSpanBackend,
    Observation,
    Span,
    SpanBackend,
    SpanLevel,
    SpanOutcome,
    SpanState,
    SpanStateError,
    Tracer,
)

__all__ = [
    "LangfuseSpanBackend",
    "NoopSpanBackend",
    "Observation",
    "Span",
    "SpanBackend",
    "SpanLevel",
    "SpanOutcome",
    "SpanState",
    "SpanStateError",
    "Tracer",
    "build_tracer",
]
