"""SQLAlchemy-backed persistence handle for flow execution.

Every method runs one short transaction in a worker thread so the event loop
never blocks on the database. Multi-step transactions are out of its scope.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from redflow.controller.types import FlowPlan, SubtaskPlan, TaskPlan, UnitStatus
from redflow.core.errors import NothingToLoadError
from redflow.db import repository
from redflow.db.session import db_session, db_transaction

logger = logging.getLogger(__name__)


class SqlQuerier:
    def __init__(self, factory: sessionmaker[Session] | None = None) -> None:
        self._factory = factory

    async def get_flow(self, flow_id: int) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._get_flow, flow_id)

    async def update_flow_status(self, flow_id: int, status: UnitStatus) -> None:
        await asyncio.to_thread(self._update, repository.update_flow_status, "flow", flow_id, status)

    async def update_task_status(
        self, task_id: int, status: UnitStatus, result: str | None = None
    ) -> None:
        await asyncio.to_thread(
            self._update, repository.update_task_status, "task", task_id, status, result
        )

    async def update_subtask_status(
        self, subtask_id: int, status: UnitStatus, result: str | None = None
    ) -> None:
        await asyncio.to_thread(
            self._update, repository.update_subtask_status, "subtask", subtask_id, status, result
        )

    async def load_plan(self, flow_id: int) -> FlowPlan:
        """Rebuild the plan of the unfinished tasks and subtasks of a flow.

        Raises:
            NothingToLoadError: the flow does not exist or has nothing left to run
        """
        return await asyncio.to_thread(self._load_plan, flow_id)

    def _get_flow(self, flow_id: int) -> dict[str, Any] | None:
        with db_session(self._factory) as session:
            flow = repository.get_flow(session, flow_id)
            if flow is None:
                return None
            return {
                "id": flow.id,
                "user_id": flow.user_id,
                "title": flow.title,
                "status": flow.status,
            }

    def _update(self, update: Any, level: str, unit_id: int, *args: Any) -> None:
        with db_transaction(self._factory) as session:
            if update(session, unit_id, *args) is None:
                raise NothingToLoadError(f"{level} {unit_id} not found")

    def _load_plan(self, flow_id: int) -> FlowPlan:
        with db_session(self._factory) as session:
            flow = repository.get_flow_with_tasks(session, flow_id)
            if flow is None:
                raise NothingToLoadError(f"flow {flow_id} not found")

            tasks = []
            for task in flow.tasks:
                if task.status is UnitStatus.finished:
                    continue
                subtasks = tuple(
                    SubtaskPlan(
                        subtask_id=subtask.id,
                        title=subtask.title,
                        msg_chain_id=subtask.msg_chain_id,
                        description=subtask.description,
                    )
                    for subtask in task.subtasks
                    if subtask.status is not UnitStatus.finished
                )
                tasks.append(TaskPlan(task_id=task.id, title=task.title, input=task.input, subtasks=subtasks))

        if not tasks:
            raise NothingToLoadError(f"flow {flow_id} has no unfinished tasks")
        logger.info("Loaded %d unfinished task(s) for flow %s", len(tasks), flow_id)
        return FlowPlan(tasks=tuple(tasks))
