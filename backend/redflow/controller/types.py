"""Value types exchanged with the collaborators of a flow."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class UnitStatus(str, Enum):
    """Lifecycle status shared by flows, tasks and subtasks."""

    created = "created"
    running = "running"
    finished = "finished"
    failed = "failed"


class EventKind(str, Enum):
    flow_started = "flow_started"
    flow_finished = "flow_finished"
    task_started = "task_started"
    task_finished = "task_finished"
    subtask_finished = "subtask_finished"


class TermStream(str, Enum):
    stdin = "stdin"
    stdout = "stdout"
    stderr = "stderr"


class MsgLogKind(str, Enum):
    thoughts = "thoughts"
    tool_call = "tool_call"
    answer = "answer"
    error = "error"


@dataclass(frozen=True, slots=True)
class Attribution:
    """Which flow/task/subtask produced a record."""

    user_id: int
    flow_id: int
    task_id: int | None = None
    subtask_id: int | None = None


@dataclass(frozen=True, slots=True)
class ToolCall:
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ToolResult:
    name: str
    output: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProviderDecision:
    """What the model decided for one step of a subtask.

    ``tool_call`` is None when the model answered directly.
    """

    content: str
    tool_call: ToolCall | None = None


@dataclass(frozen=True, slots=True)
class FlowEvent:
    kind: EventKind
    attribution: Attribution
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def flow_id(self) -> int:
        return self.attribution.flow_id


@dataclass(frozen=True, slots=True)
class TermLogRecord:
    attribution: Attribution
    stream: TermStream
    text: str


@dataclass(frozen=True, slots=True)
class MsgLogRecord:
    attribution: Attribution
    kind: MsgLogKind
    message: str
    result: str = ""


@dataclass(frozen=True, slots=True)
class ScreenshotRecord:
    attribution: Attribution
    name: str
    url: str


@dataclass(frozen=True, slots=True)
class SubtaskPlan:
    subtask_id: int
    title: str
    msg_chain_id: int
    description: str = ""


@dataclass(frozen=True, slots=True)
class TaskPlan:
    task_id: int
    title: str
    input: str = ""
    subtasks: tuple[SubtaskPlan, ...] = ()


@dataclass(frozen=True, slots=True)
class FlowPlan:
    """Ordered tasks of a flow; order is execution and display order."""

    tasks: tuple[TaskPlan, ...] = ()
