import asyncio
import logging

import pytest

from redflow.core.logging import ExecutionContextFilter, bind_log_context, log_context_var
from redflow.observability import LangfuseSpanBackend, NoopSpanBackend, build_tracer
from redflow.settings import Settings


@pytest.mark.unit
def test_langfuse_enabled_requires_all_keys():
    assert Settings(LANGFUSE_PUBLIC_KEY="pk", LANGFUSE_SECRET_KEY="sk").langfuse_enabled is False
    assert (
        Settings(
            LANGFUSE_PUBLIC_KEY="pk", LANGFUSE_SECRET_KEY="sk", LANGFUSE_HOST="http://localhost:3000"
        ).langfuse_enabled
        is True
    )


@pytest.mark.unit
def test_database_url_defaults_to_sqlite():
    assert Settings(DATABASE_URL="").sqlalchemy_database_url.startswith("sqlite")
    assert Settings(DATABASE_URL="postgresql+psycopg://u@h/db").sqlalchemy_database_url == (
        "postgresql+psycopg://u@h/db"
    )


@pytest.mark.unit
def test_build_tracer_without_langfuse_is_noop():
    settings = Settings(LANGFUSE_PUBLIC_KEY="", LANGFUSE_SECRET_KEY="", LANGFUSE_HOST="")
    tracer = build_tracer(settings)
    assert isinstance(tracer.backend, NoopSpanBackend)


@pytest.mark.unit
def test_langfuse_backend_nests_child_observations():
    class _Obs:
        def __init__(self, name):
            self.name = name
            self.children = []

        def start_span(self, name, metadata):
            child = _Obs(name)
            self.children.append((child, metadata))
            return child

    class _Client(_Obs):
        flushed = False

        def flush(self):
            self.flushed = True

    client = _Client("client")
    backend = LangfuseSpanBackend(client)  # type: ignore[arg-type]
    root = backend.start_observation("flow", {"flow_id": 1}, None)
    child = backend.start_observation("task", {"task_id": 5}, root)
    backend.flush()

    assert client.children[0] == (root, {"flow_id": 1})
    assert root.children[0] == (child, {"task_id": 5})
    assert client.flushed is True


@pytest.mark.unit
def test_bind_log_context_stamps_records(subtask_ctx, caplog):
    caplog.handler.addFilter(ExecutionContextFilter())
    logger = logging.getLogger("redflow.test")

    with caplog.at_level(logging.INFO, logger="redflow.test"):
        with bind_log_context(subtask_ctx):
            logger.info("inside")
        logger.info("outside")

    inside, outside = caplog.records
    assert (inside.flow_id, inside.task_id, inside.subtask_id, inside.user_id) == (1, 5, 7, 9)
    assert outside.flow_id == "-"
    assert log_context_var.get() is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_bound_context_is_isolated_between_concurrent_tasks(flow_ctx, task_ctx):
    seen = {}

    async def run(name, ctx):
        with bind_log_context(ctx):
            await asyncio.sleep(0)
            seen[name] = dict(log_context_var.get())

    await asyncio.gather(run("flow", flow_ctx), run("task", task_ctx))

    assert "task_id" not in seen["flow"]
    assert seen["task"]["task_id"] == 5
