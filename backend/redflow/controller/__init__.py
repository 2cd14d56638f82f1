from .context import (
    AnyContext,
    CollaboratorBundle,
    FlowContext,
    SubtaskContext,
    TaskContext,
    new_flow_context,
    new_subtask_context,
    new_task_context,
)
from .recording import Recorder, RecordingMode, RecordingPolicy, RecordingStreak
from .runner import FlowResult, FlowRunner, SubtaskResult, TaskResult
from .spans import flow_span, subtask_span, task_span, wrap_error_end_span
from .types import FlowPlan, SubtaskPlan, TaskPlan

__all__ = [
    "AnyContext",
    "CollaboratorBundle",
    "FlowContext",
    "FlowPlan",
    "FlowResult",
    "FlowRunner",
    "Recorder",
    "RecordingMode",
    "RecordingPolicy",
    "RecordingStreak",
    "SubtaskContext",
    "SubtaskPlan",
    "SubtaskResult",
    "TaskContext",
    "TaskPlan",
    "TaskResult",
    "flow_span",
    "new_flow_context",
    "new_subtask_context",
    "new_task_context",
    "subtask_span",
    "task_span",
    "wrap_error_end_span",
]
