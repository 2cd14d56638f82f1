"""Database-backed recording workers.

Each worker appends one record per call and retries transient database
errors with exponential backoff. After the last attempt the error is raised
so the ``Recorder`` that dispatched the append can apply its failure policy.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from redflow.controller.types import MsgLogRecord, ScreenshotRecord, TermLogRecord
from redflow.db import repository
from redflow.db.session import db_transaction

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker

    from redflow.settings import Settings

logger = logging.getLogger(__name__)


class _DatabaseWorker:
    name = "record"

    def __init__(
        self,
        factory: sessionmaker[Session] | None = None,
        max_retries: int = 3,
        retry_delay: float = 0.5,
    ) -> None:
        self._factory = factory
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay

    @classmethod
    def from_settings(cls, settings: Settings, factory: sessionmaker[Session] | None = None) -> Any:
        return cls(
            factory,
            max_retries=settings.recording_max_retries,
            retry_delay=settings.recording_retry_delay,
        )

    async def _save_with_retry(self, save: Callable[[Session], Any], flow_id: int) -> None:
        last_exception: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                await asyncio.to_thread(self._save, save)
                if attempt > 0:
                    logger.info(
                        "Saved %s for flow %s on attempt %d", self.name, flow_id, attempt + 1
                    )
                return
            except SQLAlchemyError as e:
                last_exception = e
                logger.warning(
                    "Database error saving %s (attempt %d/%d): %s",
                    self.name,
                    attempt + 1,
                    self.max_retries,
                    e,
                )
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(self.retry_delay * (2**attempt))

        logger.error(
            "Failed to save %s for flow %s after %d attempts. Last error: %s",
            self.name,
            flow_id,
            self.max_retries,
            last_exception,
        )
        assert last_exception is not None
        raise last_exception

    def _save(self, save: Callable[[Session], Any]) -> None:
        with db_transaction(self._factory) as session:
            save(session)


class TermLogWorker(_DatabaseWorker):
    name = "terminal log"

    async def append(self, record: TermLogRecord) -> None:
        await self._save_with_retry(
            lambda session: repository.create_term_log(
                session, record.attribution, stream=record.stream, text=record.text
            ),
            record.attribution.flow_id,
        )


class MsgLogWorker(_DatabaseWorker):
    name = "message log"

    async def append(self, record: MsgLogRecord) -> None:
        await self._save_with_retry(
            lambda session: repository.create_msg_log(
                session,
                record.attribution,
                kind=record.kind,
                message=record.message,
                result=record.result,
            ),
            record.attribution.flow_id,
        )


class ScreenshotWorker(_DatabaseWorker):
    name = "screenshot"

    async def append(self, record: ScreenshotRecord) -> None:
        await self._save_with_retry(
            lambda session: repository.create_screenshot(
                session, record.attribution, name=record.name, url=record.url
            ),
            record.attribution.flow_id,
        )
