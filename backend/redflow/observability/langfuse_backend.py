"""Langfuse-backed span backend using the v3 OpenTelemetry-based SDK."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from langfuse import Langfuse, get_client

from .spans import NoopSpanBackend, Observation, Tracer

if TYPE_CHECKING:
    from redflow.settings import Settings

logger = logging.getLogger(__name__)


class LangfuseSpanBackend:
    """Maps span lifecycle calls onto Langfuse span observations."""

    def __init__(self, client: Langfuse | None = None) -> None:
        self._client = client if client is not None else get_client()

    def start_observation(
        self, name: str, metadata: dict[str, Any], parent: Observation | None
    ) -> Observation:
        if parent is not None:
            # Child spans hang off the parent observation so the trace stays nested
            return parent.start_span(name=name, metadata=metadata)  # type: ignore[attr-defined]
        return self._client.start_span(name=name, metadata=metadata)

    def flush(self) -> None:
        self._client.flush()


def build_tracer(settings: Settings) -> Tracer:
    """Build a tracer backed by Langfuse when it is configured, otherwise a no-op tracer."""
    if not settings.langfuse_enabled:
        logger.info("Langfuse keys missing - tracing disabled")
        return Tracer(NoopSpanBackend())

    client = Langfuse(
        public_key=settings.langfuse_public_key,
        secret_key=settings.langfuse_secret_key,
        host=settings.langfuse_host,
    )
    logger.info("Langfuse tracing enabled (host=%s)", settings.langfuse_host)
    return Tracer(LangfuseSpanBackend(client))
