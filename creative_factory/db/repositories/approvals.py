from typing import Any, List, Optional

from sqlalchemy import select

from creative_factory.db.enums import ApprovalStatusEnum, RiskLevelEnum
from creative_factory.db.models import ApprovalItem, WorkspaceMember
from creative_factory.db.repositories.base import Repository


class ApprovalItemsRepository(Repository):
    def add(
        self,
        *,
        workspace_id: str,
        job_id: str,
        site_id: Optional[str],
        agent_type: str,
        action_type: str,
        risk_level: RiskLevelEnum,
        action_payload: dict[str, Any],
        commit: bool = True,
    ) -> ApprovalItem:
        row = ApprovalItem(
            workspace_id=workspace_id,
            job_id=job_id,
            site_id=site_id,
            agent_type=agent_type,
            action_type=action_type,
            risk_level=risk_level,
            action_payload=action_payload,
        )
        return self._persist(row, commit=commit)

    def get_for_member(self, approval_id: str, user_id: str) -> Optional[ApprovalItem]:
        """Only items in a workspace the user belongs to are visible."""
        stmt = (
            select(ApprovalItem)
            .join(WorkspaceMember, WorkspaceMember.workspace_id == ApprovalItem.workspace_id)
            .where(ApprovalItem.id == approval_id, WorkspaceMember.user_id == user_id)
        )
        return self.session.scalars(stmt).first()

    def get_for_job(self, workspace_id: str, job_id: str) -> Optional[ApprovalItem]:
        stmt = select(ApprovalItem).where(ApprovalItem.workspace_id == workspace_id, ApprovalItem.job_id == job_id)
        return self.session.scalars(stmt).first()

    def list(self, workspace_id: str, status: Optional[ApprovalStatusEnum] = None) -> List[ApprovalItem]:
        stmt = select(ApprovalItem).where(ApprovalItem.workspace_id == workspace_id)
        if status:
            stmt = stmt.where(ApprovalItem.status == status)
        stmt = stmt.order_by(ApprovalItem.created_at.desc())
        return list(self.session.scalars(stmt).all())
