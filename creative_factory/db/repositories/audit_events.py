from typing import Any, List, Optional

from sqlalchemy import select

from creative_factory.db.enums import ActorTypeEnum
from creative_factory.db.models import AuditEvent
from creative_factory.db.repositories.base import Repository


class AuditEventsRepository(Repository):
    def log_event(
        self,
        *,
        workspace_id: str,
        action_type: str,
        description: str,
        actor_type: ActorTypeEnum = ActorTypeEnum.user,
        actor_id: Optional[str] = None,
        job_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        commit: bool = True,
    ) -> AuditEvent:
        event = AuditEvent(
            workspace_id=workspace_id,
            job_id=job_id,
            actor_type=actor_type,
            actor_id=actor_id,
            action_type=action_type,
            description=description,
            details=details or {},
        )
        return self._persist(event, commit=commit)

    def list_for_job(self, workspace_id: str, job_id: str) -> List[AuditEvent]:
        stmt = (
            select(AuditEvent)
            .where(AuditEvent.workspace_id == workspace_id, AuditEvent.job_id == job_id)
            .order_by(AuditEvent.created_at, AuditEvent.id)
        )
        return list(self.session.scalars(stmt).all())
