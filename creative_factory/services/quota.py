from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from creative_factory.config import settings
from creative_factory.db.base import SessionLocal
from creative_factory.db.repositories.quotas import WorkspaceQuotasRepository
from creative_factory.services.errors import QuotaExceededError

logger = logging.getLogger(__name__)


class QuotaManager:
    """
    Per-workspace concurrency admission.

    Each admit/release runs in its own short-lived session so the counter change is
    committed independently of the caller's request transaction.
    """

    def __init__(
        self,
        ceiling: Optional[int] = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ) -> None:
        self.ceiling = ceiling if ceiling is not None else settings.CREATIVE_MAX_CONCURRENT_RUNS
        self._session_factory = session_factory

    def admit(self, workspace_id: str) -> bool:
        session = self._session_factory()
        try:
            repo = WorkspaceQuotasRepository(session)
            repo.ensure_row(workspace_id)
            granted = repo.try_increment(workspace_id, self.ceiling)
        finally:
            session.close()
        if granted:
            logger.info("Quota admitted", extra={"workspace_id": workspace_id, "ceiling": self.ceiling})
        else:
            logger.warning("Quota denied", extra={"workspace_id": workspace_id, "ceiling": self.ceiling})
        return granted

    def release(self, workspace_id: str) -> None:
        session = self._session_factory()
        try:
            released = WorkspaceQuotasRepository(session).decrement(workspace_id)
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Quota release failed", extra={"workspace_id": workspace_id})
            return
        finally:
            session.close()
        if released:
            logger.info("Quota released", extra={"workspace_id": workspace_id})
        else:
            logger.error("Quota release found no running slot", extra={"workspace_id": workspace_id})

    def usage(self, workspace_id: str) -> int:
        session = self._session_factory()
        try:
            return WorkspaceQuotasRepository(session).current(workspace_id)
        finally:
            session.close()

    @contextmanager
    def slot(self, workspace_id: str) -> Iterator[None]:
        """Hold one concurrency slot for the body of the with-block."""
        if not self.admit(workspace_id):
            raise QuotaExceededError(workspace_id, self.ceiling)
        try:
            yield
        finally:
            self.release(workspace_id)
