"""Capability interfaces the orchestration core depends on but never implements.

Every collaborator is supplied once, when the flow context is built, and is
shared by reference with every task and subtask context of that flow.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .types import (
    FlowEvent,
    MsgLogRecord,
    ProviderDecision,
    ScreenshotRecord,
    TermLogRecord,
    ToolCall,
    ToolResult,
    UnitStatus,
)


@runtime_checkable
class Querier(Protocol):
    """Persistence handle. Each call is independently atomic."""

    async def get_flow(self, flow_id: int) -> dict[str, Any] | None: ...
    async def update_flow_status(self, flow_id: int, status: UnitStatus) -> None: ...
    async def update_task_status(
        self, task_id: int, status: UnitStatus, result: str | None = None
    ) -> None: ...
    async def update_subtask_status(
        self, subtask_id: int, status: UnitStatus, result: str | None = None
    ) -> None: ...


@runtime_checkable
class FlowToolsExecutor(Protocol):
    """Invokes named tools. May take arbitrarily long."""

    async def execute(self, call: ToolCall) -> ToolResult: ...


@runtime_checkable
class FlowProvider(Protocol):
    """Language model provider scoped to a flow."""

    async def decide(self, msg_chain_id: int, prompt: str) -> ProviderDecision: ...


@runtime_checkable
class FlowPublisher(Protocol):
    """Delivers events to real-time subscribers of a flow, at most once."""

    async def publish(self, event: FlowEvent) -> None: ...


@runtime_checkable
class FlowTermLogWorker(Protocol):
    async def append(self, record: TermLogRecord) -> None: ...


@runtime_checkable
class FlowMsgLogWorker(Protocol):
    async def append(self, record: MsgLogRecord) -> None: ...


@runtime_checkable
class FlowScreenshotWorker(Protocol):
    async def append(self, record: ScreenshotRecord) -> None: ...
