import logging

import pytest

from redflow.observability.spans import (
    NoopSpanBackend,
    SpanLevel,
    SpanOutcome,
    SpanState,
    SpanStateError,
    Tracer,
)


@pytest.mark.unit
def test_span_lifecycle_success(tracer, span_backend):
    span = tracer.start_span("flow", {"flow_id": 1})

    assert span.state is SpanState.ACTIVE
    assert span.outcome is None
    assert span_backend.observations[0].metadata == {"flow_id": 1}

    assert span.end() is True
    assert span.state is SpanState.ENDED
    assert span.outcome is SpanOutcome.SUCCESS
    observation = span_backend.observations[0]
    assert observation.end_calls == 1
    assert observation.final["level"] == "DEFAULT"


@pytest.mark.unit
def test_span_end_twice_is_a_logged_noop(tracer, span_backend, caplog):
    span = tracer.start_span("task")
    span.end(status="boom", level=SpanLevel.ERROR)

    with caplog.at_level(logging.WARNING, logger="redflow.observability.spans"):
        assert span.end() is False

    assert span.outcome is SpanOutcome.ERROR
    assert span.status_message == "boom"
    assert span_backend.observations[0].end_calls == 1
    assert len(span_backend.observations[0].updates) == 1
    assert any("already ended" in r.getMessage() for r in caplog.records)


@pytest.mark.unit
def test_cancelled_span_has_its_own_outcome(tracer, span_backend):
    span = tracer.start_span("subtask")

    assert span.cancel() is True
    assert span.outcome is SpanOutcome.CANCELLED
    assert span.level is SpanLevel.WARNING
    assert span_backend.observations[0].final == {"level": "WARNING", "status_message": "cancelled"}

    assert span.cancel() is False
    assert span.end(status="late", level=SpanLevel.ERROR) is False
    assert span.outcome is SpanOutcome.CANCELLED
    assert span_backend.observations[0].end_calls == 1

@pytest.mark.unit
def test_span_can_not_restart_or_end_before_start(span_backend):
    tracer = Tracer(span_backend)
    span = tracer.start_span("flow")
    with pytest.raises(SpanStateError):
        span.start()

    span.end()
    with pytest.raises(SpanStateError):
        span.start()

    from redflow.observability.spans import Span

    unstarted = Span(span_backend, "subtask")
    with pytest.raises(SpanStateError):
        unstarted.end()


@pytest.mark.unit
def test_child_span_nests_under_active_parent(tracer, span_backend):
    parent = tracer.start_span("flow")
    child = tracer.start_span("task", {"task_id": 5}, parent=parent)

    assert child.parent is parent
    assert span_backend.observations[1].parent is span_backend.observations[0]

    child.end()
    parent.end()
    with pytest.raises(SpanStateError):
        tracer.start_span("task", parent=parent)


@pytest.mark.unit
def test_annotate_only_while_active(tracer, span_backend):
    span = tracer.start_span("subtask")
    assert span.annotate(tool="nmap") is True
    assert span.metadata["tool"] == "nmap"
    assert span_backend.observations[0].updates[0] == {"metadata": {"tool": "nmap"}}

    span.end()
    assert span.annotate(tool="curl") is False
    assert span.metadata["tool"] == "nmap"


@pytest.mark.unit
def test_noop_backend_keeps_the_state_machine():
    tracer = Tracer(NoopSpanBackend())
    span = tracer.start_span("flow")
    assert span.end(status="done") is True
    assert span.end() is False
    tracer.flush()
