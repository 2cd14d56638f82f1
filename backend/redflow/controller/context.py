"""Flow, task and subtask execution contexts.

Contexts are composed by holding the parent value: a ``SubtaskContext`` holds
a ``TaskContext`` which holds a ``FlowContext`` which holds the
``CollaboratorBundle``. Ancestor fields are exposed through read-only
forwarding properties, so a callee handed any level reads ``ctx.flow_id`` or
``ctx.provider`` the same way. All contexts are frozen and validated on
construction; there is no way to swap a collaborator below the flow.
"""

from __future__ import annotations

from dataclasses import dataclass
from operator import attrgetter
from typing import Any

from redflow.core.errors import ContextConstructionError
from redflow.observability.spans import Tracer

from .interfaces import (
    FlowMsgLogWorker,
    FlowProvider,
    FlowPublisher,
    FlowScreenshotWorker,
    FlowTermLogWorker,
    FlowToolsExecutor,
    Querier,
)
from .recording import RecordingPolicy
from .types import Attribution


def _forwarded(path: str) -> property:
    getter = attrgetter(path)
    return property(lambda self: getter(self), doc=f"Read-only view of ``{path}``.")


def _require_id(level: str, name: str, value: Any) -> None:
    # bool is an int subclass; True is not an id
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ContextConstructionError(level, name, "must be a positive integer")


def _require_title(level: str, name: str, value: Any) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ContextConstructionError(level, name)


def _require_text(level: str, name: str, value: Any) -> None:
    if not isinstance(value, str):
        raise ContextConstructionError(level, name, "must be a string")


@dataclass(frozen=True, slots=True)
class CollaboratorBundle:
    """Injected dependencies shared by a flow and all of its descendants."""

    db: Querier
    executor: FlowToolsExecutor
    provider: FlowProvider
    publisher: FlowPublisher
    term_log: FlowTermLogWorker
    msg_log: FlowMsgLogWorker
    screenshot: FlowScreenshotWorker
    tracer: Tracer
    recording_policy: RecordingPolicy

    def __post_init__(self) -> None:
        for name in ("db", "executor", "provider", "publisher", "term_log", "msg_log", "screenshot"):
            if getattr(self, name) is None:
                raise ContextConstructionError("flow", name, "collaborator is required")
        if not isinstance(self.tracer, Tracer):
            raise ContextConstructionError("flow", "tracer", "must be a Tracer")
        if not isinstance(self.recording_policy, RecordingPolicy):
            raise ContextConstructionError("flow", "recording_policy", "must be a RecordingPolicy")


@dataclass(frozen=True, slots=True)
class FlowContext:
    user_id: int
    flow_id: int
    flow_title: str
    bundle: CollaboratorBundle

    db = _forwarded("bundle.db")
    executor = _forwarded("bundle.executor")
    provider = _forwarded("bundle.provider")
    publisher = _forwarded("bundle.publisher")
    term_log = _forwarded("bundle.term_log")
    msg_log = _forwarded("bundle.msg_log")
    screenshot = _forwarded("bundle.screenshot")
    tracer = _forwarded("bundle.tracer")
    recording_policy = _forwarded("bundle.recording_policy")

    def __post_init__(self) -> None:
        _require_id("flow", "user_id", self.user_id)
        _require_id("flow", "flow_id", self.flow_id)
        # Flows may be untitled until the planner names them
        _require_text("flow", "flow_title", self.flow_title)
        if not isinstance(self.bundle, CollaboratorBundle):
            raise ContextConstructionError("flow", "bundle", "must be a CollaboratorBundle")

    def attribution(self) -> Attribution:
        return Attribution(user_id=self.user_id, flow_id=self.flow_id)

    def span_metadata(self) -> dict[str, Any]:
        return {"user_id": self.user_id, "flow_id": self.flow_id, "flow_title": self.flow_title}


@dataclass(frozen=True, slots=True)
class TaskContext:
    flow: FlowContext
    task_id: int
    task_title: str
    task_input: str = ""

    user_id = _forwarded("flow.user_id")
    flow_id = _forwarded("flow.flow_id")
    flow_title = _forwarded("flow.flow_title")
    bundle = _forwarded("flow.bundle")
    db = _forwarded("flow.db")
    executor = _forwarded("flow.executor")
    provider = _forwarded("flow.provider")
    publisher = _forwarded("flow.publisher")
    term_log = _forwarded("flow.term_log")
    msg_log = _forwarded("flow.msg_log")
    screenshot = _forwarded("flow.screenshot")
    tracer = _forwarded("flow.tracer")
    recording_policy = _forwarded("flow.recording_policy")

    def __post_init__(self) -> None:
        if not isinstance(self.flow, FlowContext):
            raise ContextConstructionError("task", "flow", "requires a FlowContext parent")
        _require_id("task", "task_id", self.task_id)
        _require_title("task", "task_title", self.task_title)
        _require_text("task", "task_input", self.task_input)

    def attribution(self) -> Attribution:
        return Attribution(user_id=self.user_id, flow_id=self.flow_id, task_id=self.task_id)

    def span_metadata(self) -> dict[str, Any]:
        return {
            **self.flow.span_metadata(),
            "task_id": self.task_id,
            "task_title": self.task_title,
        }


@dataclass(frozen=True, slots=True)
class SubtaskContext:
    task: TaskContext
    msg_chain_id: int
    subtask_id: int
    subtask_title: str
    subtask_description: str = ""

    flow = _forwarded("task.flow")
    user_id = _forwarded("task.user_id")
    flow_id = _forwarded("task.flow_id")
    flow_title = _forwarded("task.flow_title")
    task_id = _forwarded("task.task_id")
    task_title = _forwarded("task.task_title")
    task_input = _forwarded("task.task_input")
    bundle = _forwarded("task.bundle")
    db = _forwarded("task.db")
    executor = _forwarded("task.executor")
    provider = _forwarded("task.provider")
    publisher = _forwarded("task.publisher")
    term_log = _forwarded("task.term_log")
    msg_log = _forwarded("task.msg_log")
    screenshot = _forwarded("task.screenshot")
    tracer = _forwarded("task.tracer")
    recording_policy = _forwarded("task.recording_policy")

    def __post_init__(self) -> None:
        if not isinstance(self.task, TaskContext):
            raise ContextConstructionError("subtask", "task", "requires a TaskContext parent")
        _require_id("subtask", "msg_chain_id", self.msg_chain_id)
        _require_id("subtask", "subtask_id", self.subtask_id)
        _require_title("subtask", "subtask_title", self.subtask_title)
        _require_text("subtask", "subtask_description", self.subtask_description)

    def attribution(self) -> Attribution:
        return Attribution(
            user_id=self.user_id,
            flow_id=self.flow_id,
            task_id=self.task_id,
            subtask_id=self.subtask_id,
        )

    def span_metadata(self) -> dict[str, Any]:
        return {
            **self.task.span_metadata(),
            "subtask_id": self.subtask_id,
            "subtask_title": self.subtask_title,
            "msg_chain_id": self.msg_chain_id,
        }


AnyContext = FlowContext | TaskContext | SubtaskContext


def new_flow_context(
    user_id: int,
    flow_id: int,
    flow_title: str,
    bundle: CollaboratorBundle,
) -> FlowContext:
    return FlowContext(user_id=user_id, flow_id=flow_id, flow_title=flow_title, bundle=bundle)


def new_task_context(
    parent: FlowContext,
    task_id: int,
    task_title: str,
    task_input: str = "",
) -> TaskContext:
    return TaskContext(flow=parent, task_id=task_id, task_title=task_title, task_input=task_input)


def new_subtask_context(
    parent: TaskContext,
    msg_chain_id: int,
    subtask_id: int,
    subtask_title: str,
    subtask_description: str = "",
) -> SubtaskContext:
    return SubtaskContext(
        task=parent,
        msg_chain_id=msg_chain_id,
        subtask_id=subtask_id,
        subtask_title=subtask_title,
        subtask_description=subtask_description,
    )
