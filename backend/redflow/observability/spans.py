"""Span handles with an explicit lifecycle.

A ``Span`` wraps one observation of the tracing backend and enforces the
``NOT_STARTED -> ACTIVE -> ENDED`` state machine. Ending a span twice is a
programming error that is logged and ignored, never raised, so that failure
paths can not crash while reporting a failure.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Protocol

from redflow.core.errors import RedflowError

logger = logging.getLogger(__name__)


class SpanState(str, Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    ENDED = "ended"


class SpanOutcome(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


class SpanLevel(str, Enum):
    """Observation levels understood by Langfuse."""

    DEBUG = "DEBUG"
    DEFAULT = "DEFAULT"
    WARNING = "WARNING"
    ERROR = "ERROR"


class SpanStateError(RedflowError, RuntimeError):
    """A span was used in a state that does not allow the operation."""


class Observation(Protocol):
    def update(self, **kwargs: Any) -> Any: ...
    def end(self) -> Any: ...


class SpanBackend(Protocol):
    """External tracing backend consumed through open/annotate/close only."""

    def start_observation(
        self, name: str, metadata: dict[str, Any], parent: Observation | None
    ) -> Observation: ...

    def flush(self) -> None: ...


class _NoopObservation:
    def update(self, **kwargs: Any) -> None:
        return None

    def end(self) -> None:
        return None


class NoopSpanBackend:
    """Backend used when no tracing service is configured."""

    def start_observation(
        self, name: str, metadata: dict[str, Any], parent: Observation | None
    ) -> Observation:
        return _NoopObservation()

    def flush(self) -> None:
        return None


class Span:
    """Tracing handle for one unit of work."""

    def __init__(
        self,
        backend: SpanBackend,
        name: str,
        metadata: dict[str, Any] | None = None,
        parent: Span | None = None,
    ) -> None:
        self.name = name
        self.metadata: dict[str, Any] = dict(metadata or {})
        self.parent = parent
        self.status_message: str | None = None
        self.level: SpanLevel | None = None
        self.output: Any = None
        self._backend = backend
        self._observation: Observation | None = None
        self._state = SpanState.NOT_STARTED
        self._cancelled = False

    def __repr__(self) -> str:
        return f"Span(name={self.name!r}, state={self._state.value}, level={self.level})"

    @property
    def state(self) -> SpanState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SpanState.ACTIVE

    @property
    def is_ended(self) -> bool:
        return self._state is SpanState.ENDED

    @property
    def outcome(self) -> SpanOutcome | None:
        """Outcome of an ended span, None while it has not ended."""
        if self._state is not SpanState.ENDED:
            return None
        if self._cancelled:
            return SpanOutcome.CANCELLED
        if self.level is SpanLevel.ERROR:
            return SpanOutcome.ERROR
        return SpanOutcome.SUCCESS

    def start(self) -> Span:
        if self._state is not SpanState.NOT_STARTED:
            raise SpanStateError(f"span {self.name!r} can not be started from state {self._state.value}")
        parent_observation = None
        if self.parent is not None:
            if not self.parent.is_active:
                raise SpanStateError(
                    f"span {self.name!r} can not start under {self.parent.state.value} parent {self.parent.name!r}"
                )
            parent_observation = self.parent._observation
        self._observation = self._backend.start_observation(
            self.name, dict(self.metadata), parent_observation
        )
        self._state = SpanState.ACTIVE
        return self

    def child(self, name: str, metadata: dict[str, Any] | None = None) -> Span:
        """Start a span nested under this one."""
        return Span(self._backend, name, metadata, parent=self).start()

    def annotate(self, **metadata: Any) -> bool:
        """Attach metadata to an active span. Returns False if the span is not active."""
        if self._state is not SpanState.ACTIVE:
            logger.warning("Ignoring annotation of %s span %r", self._state.value, self.name)
            return False
        self.metadata.update(metadata)
        assert self._observation is not None
        self._observation.update(metadata=metadata)
        return True

    def end(
        self,
        status: str | None = None,
        level: SpanLevel = SpanLevel.DEFAULT,
        output: Any = None,
    ) -> bool:
        """End the span. A second call is a no-op that logs a warning and returns False."""
        if self._state is SpanState.ENDED:
            logger.warning(
                "Span %r already ended with level %s; ignoring end(level=%s, status=%r)",
                self.name,
                self.level.value if self.level else None,
                level.value,
                status,
            )
            return False
        if self._state is SpanState.NOT_STARTED:
            raise SpanStateError(f"span {self.name!r} can not end before it started")

        self.status_message = status
        self.level = level
        self.output = output
        self._state = SpanState.ENDED

        assert self._observation is not None
        update: dict[str, Any] = {"level": level.value}
        if status is not None:
            update["status_message"] = status
        if output is not None:
            update["output"] = output
        self._observation.update(**update)
        self._observation.end()
        return True

    def cancel(self, status: str = "cancelled") -> bool:
        """End the span as cancelled, reported to the backend at WARNING level."""
        if not self.end(status=status, level=SpanLevel.WARNING):
            return False
        self._cancelled = True
        return True


class Tracer:
    """Opens spans against one backend."""

    def __init__(self, backend: SpanBackend | None = None) -> None:
        self._backend: SpanBackend = backend or NoopSpanBackend()

    @property
    def backend(self) -> SpanBackend:
        return self._backend

    def start_span(
        self,
        name: str,
        metadata: dict[str, Any] | None = None,
        parent: Span | None = None,
    ) -> Span:
        if parent is not None:
            return parent.child(name, metadata)
        return Span(self._backend, name, metadata).start()

    def flush(self) -> None:
        try:
            self._backend.flush()
        except Exception as e:
            logger.warning("Failed to flush traces: %s", e)
