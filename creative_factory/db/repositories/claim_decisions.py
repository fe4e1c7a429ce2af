from typing import List, Optional

from sqlalchemy import select

from creative_factory.db.enums import ClaimDecisionEnum
from creative_factory.db.models import ClaimDecision
from creative_factory.db.repositories.base import Repository


class ClaimDecisionsRepository(Repository):
    """Append-only store; rows are never updated once written."""

    def add(
        self,
        *,
        workspace_id: str,
        job_id: str,
        field: str,
        original_text: str,
        decision: ClaimDecisionEnum,
        reason: str,
        rewritten_text: Optional[str] = None,
        matched_term: Optional[str] = None,
        commit: bool = True,
    ) -> ClaimDecision:
        row = ClaimDecision(
            workspace_id=workspace_id,
            job_id=job_id,
            field=field,
            original_text=original_text,
            decision=decision,
            rewritten_text=rewritten_text,
            matched_term=matched_term,
            reason=reason,
        )
        return self._persist(row, commit=commit)

    def list_for_job(self, workspace_id: str, job_id: str) -> List[ClaimDecision]:
        stmt = (
            select(ClaimDecision)
            .where(ClaimDecision.workspace_id == workspace_id, ClaimDecision.job_id == job_id)
            .order_by(ClaimDecision.created_at, ClaimDecision.id)
        )
        return list(self.session.scalars(stmt).all())
