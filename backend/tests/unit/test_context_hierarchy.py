import dataclasses

import pytest

from redflow.controller.context import (
    CollaboratorBundle,
    FlowContext,
    SubtaskContext,
    TaskContext,
    new_flow_context,
    new_subtask_context,
    new_task_context,
)
from redflow.controller.recording import RecordingPolicy
from redflow.controller.types import Attribution
from redflow.core.errors import ContextConstructionError


@pytest.mark.unit
def test_task_context_exposes_flow_identity(flow_ctx):
    task = new_task_context(flow_ctx, task_id=5, task_title="recon", task_input="scan target")

    assert task.flow_id == 1
    assert task.user_id == 9
    assert task.flow_title == "pentest example.com"
    assert task.task_id == 5
    assert task.task_title == "recon"
    assert task.task_input == "scan target"
    assert task.flow is flow_ctx


@pytest.mark.unit
def test_subtask_context_exposes_every_ancestor_field(task_ctx, subtask_ctx):
    assert subtask_ctx.task is task_ctx
    assert subtask_ctx.task_id == task_ctx.task_id
    assert subtask_ctx.task_title == task_ctx.task_title
    assert subtask_ctx.task_input == task_ctx.task_input
    assert subtask_ctx.flow_id == task_ctx.flow_id
    assert subtask_ctx.user_id == task_ctx.user_id
    assert subtask_ctx.flow_title == task_ctx.flow_title
    assert subtask_ctx.msg_chain_id == 3
    assert subtask_ctx.subtask_id == 7
    assert subtask_ctx.subtask_title == "port scan"
    assert subtask_ctx.subtask_description == "run nmap against the target"


@pytest.mark.unit
def test_collaborators_are_shared_by_reference_down_the_tree(flow_ctx, task_ctx, subtask_ctx, collaborators):
    for ctx in (flow_ctx, task_ctx, subtask_ctx):
        assert ctx.bundle is flow_ctx.bundle
        assert ctx.db is collaborators.db
        assert ctx.executor is collaborators.executor
        assert ctx.provider is collaborators.provider
        assert ctx.publisher is collaborators.publisher
        assert ctx.term_log is collaborators.term_log
        assert ctx.msg_log is collaborators.msg_log
        assert ctx.screenshot is collaborators.screenshot
        assert ctx.tracer is flow_ctx.tracer


@pytest.mark.unit
def test_contexts_are_read_only(flow_ctx, task_ctx, subtask_ctx):
    with pytest.raises(dataclasses.FrozenInstanceError):
        flow_ctx.flow_id = 2  # type: ignore[misc]
    with pytest.raises(dataclasses.FrozenInstanceError):
        flow_ctx.bundle.provider = None  # type: ignore[misc]
    with pytest.raises(AttributeError):
        task_ctx.provider = None  # type: ignore[misc]
    with pytest.raises(AttributeError):
        subtask_ctx.flow_id = 2  # type: ignore[misc]


@pytest.mark.unit
@pytest.mark.parametrize(
    ("task_id", "task_title", "field_name"),
    [
        (0, "recon", "task_id"),
        (None, "recon", "task_id"),
        (-1, "recon", "task_id"),
        (True, "recon", "task_id"),
        (5, "", "task_title"),
        (5, "   ", "task_title"),
        (5, None, "task_title"),
    ],
)
def test_task_context_rejects_empty_identity(flow_ctx, task_id, task_title, field_name):
    with pytest.raises(ContextConstructionError) as exc_info:
        new_task_context(flow_ctx, task_id=task_id, task_title=task_title, task_input="x")

    assert exc_info.value.level == "task"
    assert exc_info.value.field_name == field_name


@pytest.mark.unit
def test_task_context_allows_empty_input(flow_ctx):
    task = new_task_context(flow_ctx, task_id=5, task_title="recon", task_input="")
    assert task.task_input == ""


@pytest.mark.unit
@pytest.mark.parametrize(
    ("msg_chain_id", "subtask_id", "title", "field_name"),
    [
        (3, 0, "port scan", "subtask_id"),
        (3, 7, "", "subtask_title"),
        (0, 7, "port scan", "msg_chain_id"),
    ],
)
def test_subtask_context_rejects_empty_identity(task_ctx, msg_chain_id, subtask_id, title, field_name):
    with pytest.raises(ContextConstructionError) as exc_info:
        new_subtask_context(task_ctx, msg_chain_id=msg_chain_id, subtask_id=subtask_id, subtask_title=title)

    assert exc_info.value.field_name == field_name


@pytest.mark.unit
def test_contexts_require_a_fully_formed_parent(flow_ctx, task_ctx):
    with pytest.raises(ContextConstructionError):
        TaskContext(flow=None, task_id=5, task_title="recon")  # type: ignore[arg-type]
    with pytest.raises(ContextConstructionError):
        SubtaskContext(task=flow_ctx, msg_chain_id=1, subtask_id=1, subtask_title="x")  # type: ignore[arg-type]
    with pytest.raises(ContextConstructionError):
        new_subtask_context(None, msg_chain_id=1, subtask_id=1, subtask_title="x")  # type: ignore[arg-type]


@pytest.mark.unit
def test_flow_context_validation(bundle):
    with pytest.raises(ContextConstructionError):
        new_flow_context(user_id=0, flow_id=1, flow_title="", bundle=bundle)
    with pytest.raises(ContextConstructionError):
        new_flow_context(user_id=9, flow_id=None, flow_title="", bundle=bundle)  # type: ignore[arg-type]
    with pytest.raises(ContextConstructionError):
        FlowContext(user_id=9, flow_id=1, flow_title="t", bundle=None)  # type: ignore[arg-type]

    untitled = new_flow_context(user_id=9, flow_id=1, flow_title="", bundle=bundle)
    assert untitled.flow_title == ""


@pytest.mark.unit
def test_bundle_requires_every_collaborator(collaborators, tracer):
    with pytest.raises(ContextConstructionError) as exc_info:
        CollaboratorBundle(
            db=collaborators.db,
            executor=collaborators.executor,
            provider=None,  # type: ignore[arg-type]
            publisher=collaborators.publisher,
            term_log=collaborators.term_log,
            msg_log=collaborators.msg_log,
            screenshot=collaborators.screenshot,
            tracer=tracer,
            recording_policy=RecordingPolicy(),
        )
    assert exc_info.value.field_name == "provider"


@pytest.mark.unit
def test_bundle_has_no_implicit_tracer_or_policy(collaborators, tracer):
    members = dict(
        db=collaborators.db,
        executor=collaborators.executor,
        provider=collaborators.provider,
        publisher=collaborators.publisher,
        term_log=collaborators.term_log,
        msg_log=collaborators.msg_log,
        screenshot=collaborators.screenshot,
    )
    with pytest.raises(TypeError):
        CollaboratorBundle(**members, recording_policy=RecordingPolicy())  # type: ignore[call-arg]
    with pytest.raises(TypeError):
        CollaboratorBundle(**members, tracer=tracer)  # type: ignore[call-arg]
    with pytest.raises(ContextConstructionError) as exc_info:
        CollaboratorBundle(**members, tracer=None, recording_policy=RecordingPolicy())  # type: ignore[arg-type]
    assert exc_info.value.field_name == "tracer"


@pytest.mark.unit
def test_attribution_and_span_metadata_per_level(flow_ctx, task_ctx, subtask_ctx):
    assert flow_ctx.attribution() == Attribution(user_id=9, flow_id=1)
    assert task_ctx.attribution() == Attribution(user_id=9, flow_id=1, task_id=5)
    assert subtask_ctx.attribution() == Attribution(user_id=9, flow_id=1, task_id=5, subtask_id=7)

    metadata = subtask_ctx.span_metadata()
    assert metadata["flow_id"] == 1
    assert metadata["task_id"] == 5
    assert metadata["subtask_id"] == 7
    assert metadata["msg_chain_id"] == 3
    assert "subtask_id" not in task_ctx.span_metadata()
    assert "task_id" not in flow_ctx.span_metadata()
