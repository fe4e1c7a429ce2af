from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from creative_factory.db.enums import JobStatusEnum
from creative_factory.db.models import CreativeJob
from creative_factory.db.repositories.base import Repository


class CreativeJobsRepository(Repository):
    def get(self, workspace_id: str, job_id: str) -> Optional[CreativeJob]:
        stmt = select(CreativeJob).where(CreativeJob.workspace_id == workspace_id, CreativeJob.id == job_id)
        return self.session.scalars(stmt).first()

    def get_by_idempotency_key(self, workspace_id: str, idempotency_key: str) -> Optional[CreativeJob]:
        stmt = select(CreativeJob).where(
            CreativeJob.workspace_id == workspace_id,
            CreativeJob.idempotency_key == idempotency_key,
        )
        return self.session.scalars(stmt).first()

    def get_or_create(
        self,
        *,
        workspace_id: str,
        idempotency_key: Optional[str],
        status: JobStatusEnum = JobStatusEnum.running,
        **fields: Any,
    ) -> Tuple[CreativeJob, bool]:
        """
        Get an existing job by (workspace, idempotency key) or create a new one.

        Returns (job, created_flag).
        """
        if idempotency_key:
            existing = self.get_by_idempotency_key(workspace_id, idempotency_key)
            if existing:
                return existing, False

        now = datetime.now(timezone.utc)
        job = CreativeJob(
            workspace_id=workspace_id,
            idempotency_key=idempotency_key,
            status=status,
            started_at=now if status == JobStatusEnum.running else None,
            **fields,
        )
        self.session.add(job)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            if idempotency_key:
                existing = self.get_by_idempotency_key(workspace_id, idempotency_key)
                if existing:
                    return existing, False
            raise
        self.session.refresh(job)
        return job, True

    def update_fields(self, job: CreativeJob, *, commit: bool = True, **fields: Any) -> CreativeJob:
        for key, value in fields.items():
            setattr(job, key, value)
        job.updated_at = datetime.now(timezone.utc)
        return self._persist(job, commit=commit)

    def mark_running(self, workspace_id: str, job_id: str) -> Optional[CreativeJob]:
        now = datetime.now(timezone.utc)
        stmt = (
            update(CreativeJob)
            .where(CreativeJob.workspace_id == workspace_id, CreativeJob.id == job_id)
            .values(status=JobStatusEnum.running, started_at=now, finished_at=None, updated_at=now)
        )
        result = self.session.execute(stmt)
        self.session.commit()
        if result.rowcount != 1:
            return None
        return self.get(workspace_id, job_id)

    def mark_failed(self, workspace_id: str, job_id: str, *, error: str) -> Optional[CreativeJob]:
        now = datetime.now(timezone.utc)
        stmt = (
            update(CreativeJob)
            .where(CreativeJob.workspace_id == workspace_id, CreativeJob.id == job_id)
            .values(status=JobStatusEnum.failed, error=error, finished_at=now, updated_at=now)
        )
        result = self.session.execute(stmt)
        self.session.commit()
        if result.rowcount != 1:
            return None
        job = self.get(workspace_id, job_id)
        if job is not None:
            self.session.refresh(job)
        return job
