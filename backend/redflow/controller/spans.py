"""Span lifecycle per execution level and the uniform error path.

Each level (flow, task, subtask) owns exactly one span for the duration of its
unit of work. ``wrap_error_end_span`` is the single place where a raw failure
is logged, wrapped with a description and used to close the active span with
an error status.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from redflow.core.errors import WrappedError
from redflow.core.logging import bind_log_context
from redflow.observability.spans import Span, SpanLevel

if TYPE_CHECKING:
    from .context import AnyContext, FlowContext, SubtaskContext, TaskContext

logger = logging.getLogger(__name__)

CANCELLED_STATUS = "cancelled"


def wrap_error_end_span(
    ctx: AnyContext | None,
    span: Span,
    description: str,
    error: BaseException,
) -> WrappedError:
    """Log ``error``, wrap it with ``description`` and end ``span`` as failed.

    The caller is expected to raise the returned error immediately. Calling
    this twice for the same span logs and wraps again but leaves the span in
    the state the first call put it in.
    """
    with bind_log_context(ctx):
        logger.error("%s: %s", description, error, exc_info=error)
    wrapped = WrappedError(description, error)
    span.end(status=str(wrapped), level=SpanLevel.ERROR)
    return wrapped


@asynccontextmanager
async def _unit_span(
    ctx: AnyContext,
    name: str,
    description: str,
    parent: Span | None,
) -> AsyncIterator[Span]:
    span = ctx.tracer.start_span(name, ctx.span_metadata(), parent=parent)
    with bind_log_context(ctx):
        try:
            yield span
        except asyncio.CancelledError:
            if not span.is_ended:
                logger.warning("%s span cancelled", name)
                span.cancel(CANCELLED_STATUS)
            raise
        except Exception as e:
            if span.is_ended:
                # Already wrapped at the point of failure
                raise
            raise wrap_error_end_span(ctx, span, description, e) from e
        else:
            if not span.is_ended:
                span.end()


def flow_span(ctx: FlowContext, description: str | None = None):
    """Open the span of a flow execution; see ``_unit_span`` for exit handling.

    Uncaught errors are wrapped as ``execute flow <id>`` unless ``description``
    is given.
    """
    return _unit_span(ctx, "flow", description or f"execute flow {ctx.flow_id}", None)


def task_span(ctx: TaskContext, parent: Span | None = None, description: str | None = None):
    return _unit_span(ctx, "task", description or f"execute task {ctx.task_id}", parent)


def subtask_span(
    ctx: SubtaskContext, parent: Span | None = None, description: str | None = None
):
    return _unit_span(ctx, "subtask", description or f"execute subtask {ctx.subtask_id}", parent)
