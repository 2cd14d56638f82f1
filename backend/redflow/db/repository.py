from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from redflow.controller.types import Attribution, MsgLogKind, TermStream, UnitStatus
from redflow.db.models import Flow, MsgLog, Screenshot, Subtask, Task, TermLog

logger = logging.getLogger(__name__)


# --- Flows, tasks and subtasks


def create_flow(session: Session, *, user_id: int, title: str = "") -> Flow:
    flow = Flow(user_id=user_id, title=title, status=UnitStatus.created)
    session.add(flow)
    session.flush()
    return flow


def create_task(session: Session, *, flow_id: int, title: str, input: str = "") -> Task:
    task = Task(flow_id=flow_id, title=title, input=input, status=UnitStatus.created)
    session.add(task)
    session.flush()
    return task


def create_subtask(
    session: Session,
    *,
    task_id: int,
    msg_chain_id: int,
    title: str,
    description: str = "",
) -> Subtask:
    subtask = Subtask(
        task_id=task_id,
        msg_chain_id=msg_chain_id,
        title=title,
        description=description,
        status=UnitStatus.created,
    )
    session.add(subtask)
    session.flush()
    return subtask


def get_flow(session: Session, flow_id: int) -> Flow | None:
    return session.get(Flow, flow_id)


def get_flow_with_tasks(session: Session, flow_id: int) -> Flow | None:
    return session.execute(
        select(Flow)
        .where(Flow.id == flow_id)
        .options(selectinload(Flow.tasks).selectinload(Task.subtasks))
    ).scalar_one_or_none()


def update_flow_status(session: Session, flow_id: int, status: UnitStatus) -> Flow | None:
    flow = session.get(Flow, flow_id)
    if flow is None:
        return None
    flow.status = status
    return flow


def update_task_status(
    session: Session, task_id: int, status: UnitStatus, result: str | None = None
) -> Task | None:
    task = session.get(Task, task_id)
    if task is None:
        return None
    task.status = status
    if result is not None:
        task.result = result
    return task


def update_subtask_status(
    session: Session, subtask_id: int, status: UnitStatus, result: str | None = None
) -> Subtask | None:
    subtask = session.get(Subtask, subtask_id)
    if subtask is None:
        return None
    subtask.status = status
    if result is not None:
        subtask.result = result
    return subtask


# --- Execution records


def create_term_log(
    session: Session, attribution: Attribution, *, stream: TermStream, text: str
) -> TermLog:
    row = TermLog(
        flow_id=attribution.flow_id,
        task_id=attribution.task_id,
        subtask_id=attribution.subtask_id,
        stream=stream,
        text=text,
    )
    session.add(row)
    return row


def create_msg_log(
    session: Session,
    attribution: Attribution,
    *,
    kind: MsgLogKind,
    message: str,
    result: str = "",
) -> MsgLog:
    row = MsgLog(
        flow_id=attribution.flow_id,
        task_id=attribution.task_id,
        subtask_id=attribution.subtask_id,
        kind=kind,
        message=message,
        result=result,
    )
    session.add(row)
    return row


def create_screenshot(
    session: Session, attribution: Attribution, *, name: str, url: str
) -> Screenshot:
    row = Screenshot(
        flow_id=attribution.flow_id,
        task_id=attribution.task_id,
        subtask_id=attribution.subtask_id,
        name=name,
        url=url,
    )
    session.add(row)
    return row


def list_term_logs(session: Session, flow_id: int) -> Sequence[TermLog]:
    return (
        session.execute(select(TermLog).where(TermLog.flow_id == flow_id).order_by(TermLog.id))
        .scalars()
        .all()
    )


def list_msg_logs(session: Session, flow_id: int) -> Sequence[MsgLog]:
    return (
        session.execute(select(MsgLog).where(MsgLog.flow_id == flow_id).order_by(MsgLog.id))
        .scalars()
        .all()
    )


def list_screenshots(session: Session, flow_id: int) -> Sequence[Screenshot]:
    return (
        session.execute(
            select(Screenshot).where(Screenshot.flow_id == flow_id).order_by(Screenshot.id)
        )
        .scalars()
        .all()
    )
