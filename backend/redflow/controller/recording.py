"""Fire-and-forget recording of terminal output, messages and screenshots.

Appends never block the unit of work that produced them. A failed append is
logged with the producing context bound. By default the unit of work keeps
going; under ``RecordingMode.ESCALATE`` a run of consecutive failures reaching
the policy threshold makes ``Recorder.raise_if_escalated`` raise.

The run of failures is kept in a ``RecordingStreak``. Recorders created for
the units of one flow execution share a streak, so failures add up across
subtasks until an append succeeds.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable

from redflow.core.errors import RecordingError
from redflow.core.logging import bind_log_context

from .types import MsgLogKind, MsgLogRecord, ScreenshotRecord, TermLogRecord, TermStream

if TYPE_CHECKING:
    from redflow.settings import Settings

    from .context import FlowContext, SubtaskContext, TaskContext

logger = logging.getLogger(__name__)

# The event loop only keeps weak references to tasks
_background_appends: set[asyncio.Task[None]] = set()


class RecordingMode(str, Enum):
    CONTINUE = "continue"
    ESCALATE = "escalate"


@dataclass(frozen=True, slots=True)
class RecordingPolicy:
    mode: RecordingMode = RecordingMode.CONTINUE
    threshold: int = 3

    def __post_init__(self) -> None:
        if self.threshold < 1:
            raise ValueError("recording failure threshold must be at least 1")

    @classmethod
    def from_settings(cls, settings: Settings) -> RecordingPolicy:
        return cls(
            mode=RecordingMode(settings.recording_failure_policy),
            threshold=settings.recording_failure_threshold,
        )


class RecordingStreak:
    """Consecutive append failures shared by the recorders of one flow run."""

    def __init__(self) -> None:
        self.failures = 0
        self.last_error: BaseException | None = None

    def failed(self, error: BaseException) -> int:
        self.failures += 1
        self.last_error = error
        return self.failures

    def succeeded(self) -> None:
        self.failures = 0
        self.last_error = None


class Recorder:
    """Per unit of work dispatcher to the flow's recording workers."""

    def __init__(
        self,
        ctx: FlowContext | TaskContext | SubtaskContext,
        streak: RecordingStreak | None = None,
    ) -> None:
        self._ctx = ctx
        self._policy: RecordingPolicy = ctx.recording_policy
        self._streak = streak if streak is not None else RecordingStreak()
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def consecutive_failures(self) -> int:
        return self._streak.failures

    @property
    def escalated(self) -> bool:
        return (
            self._policy.mode is RecordingMode.ESCALATE
            and self._streak.failures >= self._policy.threshold
        )

    def term_log(self, stream: TermStream, text: str) -> asyncio.Task[None]:
        record = TermLogRecord(attribution=self._ctx.attribution(), stream=stream, text=text)
        return self._dispatch("term_log", self._ctx.term_log.append(record))

    def message(self, kind: MsgLogKind, message: str, result: str = "") -> asyncio.Task[None]:
        record = MsgLogRecord(
            attribution=self._ctx.attribution(), kind=kind, message=message, result=result
        )
        return self._dispatch("msg_log", self._ctx.msg_log.append(record))

    def screenshot(self, name: str, url: str) -> asyncio.Task[None]:
        record = ScreenshotRecord(attribution=self._ctx.attribution(), name=name, url=url)
        return self._dispatch("screenshot", self._ctx.screenshot.append(record))

    async def drain(self) -> None:
        """Wait for every outstanding append to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def raise_if_escalated(self) -> None:
        if self.escalated:
            raise RecordingError(self._streak.failures, self._streak.last_error)

    def _dispatch(self, worker: str, append: Awaitable[None]) -> asyncio.Task[None]:
        task = asyncio.create_task(self._run(worker, append))
        self._pending.add(task)
        _background_appends.add(task)
        task.add_done_callback(self._pending.discard)
        task.add_done_callback(_background_appends.discard)
        return task

    async def _run(self, worker: str, append: Awaitable[Any]) -> None:
        try:
            await append
        except asyncio.CancelledError:
            raise
        except Exception as e:
            failures = self._streak.failed(e)
            with bind_log_context(self._ctx):
                logger.warning(
                    "Recording to %s failed (%d in a row): %s",
                    worker,
                    failures,
                    e,
                )
            return
        self._streak.succeeded()
