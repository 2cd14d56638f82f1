from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from redflow.controller.context import CollaboratorBundle
from redflow.controller.recording import RecordingPolicy
from redflow.db.querier import SqlQuerier
from redflow.observability.langfuse_backend import build_tracer
from redflow.services.recording_workers import MsgLogWorker, ScreenshotWorker, TermLogWorker

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker

    from redflow.controller.interfaces import FlowProvider, FlowPublisher, FlowToolsExecutor
    from redflow.observability.spans import Tracer
    from redflow.settings import Settings


@dataclass(slots=True)
class AppContext:
    """Process-wide wiring the resolver layer builds flow bundles from."""

    settings: Settings
    tracer: Tracer
    session_factory: sessionmaker[Session] | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, session_factory: sessionmaker[Session] | None = None
    ) -> AppContext:
        return cls(settings=settings, tracer=build_tracer(settings), session_factory=session_factory)

    def build_bundle(
        self,
        *,
        executor: FlowToolsExecutor,
        provider: FlowProvider,
        publisher: FlowPublisher,
    ) -> CollaboratorBundle:
        """Bundle the database-backed collaborators with the flow-specific ones."""
        return CollaboratorBundle(
            db=SqlQuerier(self.session_factory),
            executor=executor,
            provider=provider,
            publisher=publisher,
            term_log=TermLogWorker.from_settings(self.settings, self.session_factory),
            msg_log=MsgLogWorker.from_settings(self.settings, self.session_factory),
            screenshot=ScreenshotWorker.from_settings(self.settings, self.session_factory),
            tracer=self.tracer,
            recording_policy=RecordingPolicy.from_settings(self.settings),
        )
