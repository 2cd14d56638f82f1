import os
import sys

import pytest

# Ensure the backend root (containing the `redflow` package) is importable
_TESTS_DIR = os.path.dirname(__file__)
_BACKEND_ROOT = os.path.abspath(os.path.join(_TESTS_DIR, os.pardir))
if _BACKEND_ROOT not in sys.path:
    sys.path.insert(0, _BACKEND_ROOT)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: Fast unit tests with fakes only")


@pytest.fixture
def span_backend():
    from tests.fakes import RecordingSpanBackend

    return RecordingSpanBackend()


@pytest.fixture
def tracer(span_backend):
    from redflow.observability.spans import Tracer

    return Tracer(span_backend)


@pytest.fixture
def collaborators():
    from tests.fakes import Collaborators

    return Collaborators()


@pytest.fixture
def bundle(collaborators, tracer):
    return collaborators.bundle(tracer)


@pytest.fixture
def flow_ctx(bundle):
    from redflow.controller.context import new_flow_context

    return new_flow_context(user_id=9, flow_id=1, flow_title="pentest example.com", bundle=bundle)


@pytest.fixture
def task_ctx(flow_ctx):
    from redflow.controller.context import new_task_context

    return new_task_context(flow_ctx, task_id=5, task_title="recon", task_input="scan target")


@pytest.fixture
def subtask_ctx(task_ctx):
    from redflow.controller.context import new_subtask_context

    return new_subtask_context(
        task_ctx,
        msg_chain_id=3,
        subtask_id=7,
        subtask_title="port scan",
        subtask_description="run nmap against the target",
    )
