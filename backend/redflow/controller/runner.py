"""Flow, task and subtask execution routines.

The runner receives an already planned ``FlowPlan`` and walks it level by
level. Each level opens its span before doing any work and closes it before
returning. Collaborator failures are wrapped exactly once, at the call site,
and a parent level adds a single wrap naming the child that failed.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from redflow.core.errors import RecordingError, WrappedError
from redflow.core.logging import bind_log_context
from redflow.observability.spans import Span

from .context import (
    AnyContext,
    FlowContext,
    SubtaskContext,
    TaskContext,
    new_subtask_context,
    new_task_context,
)
from .recording import Recorder, RecordingMode, RecordingStreak
from .spans import flow_span, subtask_span, task_span, wrap_error_end_span
from .types import (
    EventKind,
    FlowEvent,
    FlowPlan,
    MsgLogKind,
    SubtaskPlan,
    TermStream,
    ToolResult,
    UnitStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class SubtaskResult:
    subtask_id: int
    result: str
    tool_result: ToolResult | None = None


@dataclass(slots=True)
class TaskResult:
    task_id: int
    subtasks: list[SubtaskResult] = field(default_factory=list)


@dataclass(slots=True)
class FlowResult:
    flow_id: int
    tasks: list[TaskResult] = field(default_factory=list)


class FlowRunner:
    """Executes a planned flow against the collaborators of its context.

    Tasks run in plan order unless ``concurrent_tasks`` is set, in which case
    they run concurrently under the flow span. When one concurrent task fails
    the others are cancelled and awaited before the flow span closes.
    """

    def __init__(self, *, concurrent_tasks: bool = False) -> None:
        self._concurrent_tasks = concurrent_tasks

    # ------------------------------------------------------------------
    # Flow level
    # ------------------------------------------------------------------
    async def execute_flow(self, ctx: FlowContext, plan: FlowPlan) -> FlowResult:
        streak = RecordingStreak()
        async with flow_span(ctx) as span:
            logger.info("Executing flow %s with %d task(s)", ctx.flow_id, len(plan.tasks))
            await self._call(
                ctx, span, "update flow status", ctx.db.update_flow_status(ctx.flow_id, UnitStatus.running)
            )
            await self._publish(ctx, span, EventKind.flow_started, {"title": ctx.flow_title})

            if self._concurrent_tasks:
                tasks = await self._run_tasks_concurrently(ctx, plan, span, streak)
            else:
                tasks = await self._run_tasks_sequentially(ctx, plan, span, streak)

            await self._call(
                ctx, span, "update flow status", ctx.db.update_flow_status(ctx.flow_id, UnitStatus.finished)
            )
            await self._publish(ctx, span, EventKind.flow_finished, {"tasks": len(tasks)})
            span.annotate(tasks=len(tasks))
            return FlowResult(flow_id=ctx.flow_id, tasks=tasks)

    async def _run_tasks_sequentially(
        self, ctx: FlowContext, plan: FlowPlan, span: Span, streak: RecordingStreak
    ) -> list[TaskResult]:
        results: list[TaskResult] = []
        for task_plan in plan.tasks:
            task_ctx = new_task_context(ctx, task_plan.task_id, task_plan.title, task_plan.input)
            try:
                results.append(
                    await self.execute_task(task_ctx, task_plan.subtasks, span, streak=streak)
                )
            except Exception as e:
                raise await self._fail(ctx, span, f"execute task {task_plan.task_id}", e) from e
        return results

    async def _run_tasks_concurrently(
        self, ctx: FlowContext, plan: FlowPlan, span: Span, streak: RecordingStreak
    ) -> list[TaskResult]:
        contexts = [
            new_task_context(ctx, task_plan.task_id, task_plan.title, task_plan.input)
            for task_plan in plan.tasks
        ]
        running = [
            asyncio.create_task(
                self.execute_task(task_ctx, task_plan.subtasks, span, streak=streak)
            )
            for task_ctx, task_plan in zip(contexts, plan.tasks)
        ]
        try:
            return list(await asyncio.gather(*running))
        except BaseException as e:
            for task in running:
                task.cancel()
            await asyncio.gather(*running, return_exceptions=True)
            if not isinstance(e, Exception):
                raise
            failed_id = next(
                (
                    task_plan.task_id
                    for task, task_plan in zip(running, plan.tasks)
                    if not task.cancelled() and task.exception() is e
                ),
                None,
            )
            raise await self._fail(ctx, span, f"execute task {failed_id}", e) from e

    # ------------------------------------------------------------------
    # Task level
    # ------------------------------------------------------------------
    async def execute_task(
        self,
        ctx: TaskContext,
        subtasks: Sequence[SubtaskPlan],
        parent: Span | None = None,
        *,
        streak: RecordingStreak | None = None,
    ) -> TaskResult:
        """Run the subtasks of a task in order.

        ``streak`` carries recording failures across the subtasks; a standalone
        call starts a fresh one.
        """
        streak = streak if streak is not None else RecordingStreak()
        async with task_span(ctx, parent) as span:
            await self._call(
                ctx, span, "update task status", ctx.db.update_task_status(ctx.task_id, UnitStatus.running)
            )
            await self._publish(ctx, span, EventKind.task_started, {"title": ctx.task_title})

            results: list[SubtaskResult] = []
            for subtask_plan in subtasks:
                subtask_ctx = new_subtask_context(
                    ctx,
                    subtask_plan.msg_chain_id,
                    subtask_plan.subtask_id,
                    subtask_plan.title,
                    subtask_plan.description,
                )
                try:
                    results.append(await self.execute_subtask(subtask_ctx, span, streak=streak))
                except Exception as e:
                    raise await self._fail(ctx, span, f"execute subtask {subtask_plan.subtask_id}", e) from e

            summary = "\n".join(r.result for r in results)
            await self._call(
                ctx,
                span,
                "update task status",
                ctx.db.update_task_status(ctx.task_id, UnitStatus.finished, summary),
            )
            await self._publish(ctx, span, EventKind.task_finished, {"subtasks": len(results)})
            span.annotate(subtasks=len(results))
            return TaskResult(task_id=ctx.task_id, subtasks=results)

    # ------------------------------------------------------------------
    # Subtask level
    # ------------------------------------------------------------------
    async def execute_subtask(
        self,
        ctx: SubtaskContext,
        parent: Span | None = None,
        *,
        streak: RecordingStreak | None = None,
    ) -> SubtaskResult:
        recorder = Recorder(ctx, streak)
        async with subtask_span(ctx, parent) as span:
            await self._call(
                ctx,
                span,
                "update subtask status",
                ctx.db.update_subtask_status(ctx.subtask_id, UnitStatus.running),
            )
            decision = await self._call(
                ctx, span, "call provider", ctx.provider.decide(ctx.msg_chain_id, self.build_prompt(ctx))
            )
            recorder.message(MsgLogKind.thoughts, decision.content)

            tool_result: ToolResult | None = None
            if decision.tool_call is not None:
                call = decision.tool_call
                span.annotate(tool=call.name)
                recorder.term_log(TermStream.stdin, f"{call.name} {json.dumps(call.arguments, sort_keys=True)}")
                tool_result = await self._call(
                    ctx, span, f"invoke tool {call.name}", ctx.executor.execute(call)
                )
                recorder.term_log(TermStream.stdout, tool_result.output)
                recorder.message(MsgLogKind.tool_call, call.name, tool_result.output)

            result = tool_result.output if tool_result is not None else decision.content
            await self._publish(
                ctx, span, EventKind.subtask_finished, {"result": result}, description="publish subtask result"
            )
            await self._call(
                ctx,
                span,
                "update subtask status",
                ctx.db.update_subtask_status(ctx.subtask_id, UnitStatus.finished, result),
            )

            if ctx.recording_policy.mode is RecordingMode.ESCALATE:
                await recorder.drain()
                try:
                    recorder.raise_if_escalated()
                except RecordingError as e:
                    raise await self._fail(ctx, span, "record subtask output", e) from e

            return SubtaskResult(subtask_id=ctx.subtask_id, result=result, tool_result=tool_result)

    @staticmethod
    def build_prompt(ctx: SubtaskContext) -> str:
        parts = [f"Task: {ctx.task_title}"]
        if ctx.task_input:
            parts.append(f"Input: {ctx.task_input}")
        parts.append(f"Subtask: {ctx.subtask_title}")
        if ctx.subtask_description:
            parts.append(ctx.subtask_description)
        return "\n".join(parts)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _call(self, ctx: AnyContext, span: Span, description: str, call: Awaitable[T]) -> T:
        """Await a collaborator call, wrapping any failure at this call site."""
        try:
            return await call
        except Exception as e:
            raise await self._fail(ctx, span, description, e) from e

    async def _publish(
        self,
        ctx: AnyContext,
        span: Span,
        kind: EventKind,
        payload: dict,
        description: str | None = None,
    ) -> None:
        event = FlowEvent(kind=kind, attribution=ctx.attribution(), payload=payload)
        await self._call(ctx, span, description or f"publish {kind.value}", ctx.publisher.publish(event))

    async def _fail(
        self, ctx: AnyContext, span: Span, description: str, error: BaseException
    ) -> WrappedError:
        await self._mark_failed(ctx, f"{description}: {error}")
        return wrap_error_end_span(ctx, span, description, error)

    async def _mark_failed(self, ctx: AnyContext, reason: str) -> None:
        """Persist the failed status; a failure here never masks the original error."""
        try:
            if isinstance(ctx, SubtaskContext):
                await ctx.db.update_subtask_status(ctx.subtask_id, UnitStatus.failed, reason)
            elif isinstance(ctx, TaskContext):
                await ctx.db.update_task_status(ctx.task_id, UnitStatus.failed, reason)
            else:
                await ctx.db.update_flow_status(ctx.flow_id, UnitStatus.failed)
        except Exception as e:
            with bind_log_context(ctx):
                logger.warning("Failed to persist failed status: %s", e)
