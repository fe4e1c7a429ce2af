from typing import Any, List, Optional

from sqlalchemy import select, update

from creative_factory.db.models import CreativeBlueprint
from creative_factory.db.repositories.base import Repository


class BlueprintsRepository(Repository):
    def add(
        self,
        *,
        workspace_id: str,
        job_id: str,
        aspect_ratio: str,
        variant: str,
        variant_index: int,
        blueprint: dict[str, Any],
        qa_report: dict[str, Any],
        is_approved: bool,
        commit: bool = True,
    ) -> CreativeBlueprint:
        row = CreativeBlueprint(
            workspace_id=workspace_id,
            job_id=job_id,
            aspect_ratio=aspect_ratio,
            variant=variant,
            variant_index=variant_index,
            blueprint=blueprint,
            qa_report=qa_report,
            is_approved=is_approved,
        )
        return self._persist(row, commit=commit)

    def list_for_job(
        self,
        workspace_id: str,
        job_id: str,
        *,
        variant: Optional[str] = None,
        approved_only: bool = False,
    ) -> List[CreativeBlueprint]:
        stmt = select(CreativeBlueprint).where(
            CreativeBlueprint.workspace_id == workspace_id,
            CreativeBlueprint.job_id == job_id,
        )
        if variant:
            stmt = stmt.where(CreativeBlueprint.variant == variant)
        if approved_only:
            stmt = stmt.where(CreativeBlueprint.is_approved.is_(True))
        stmt = stmt.order_by(CreativeBlueprint.variant_index, CreativeBlueprint.aspect_ratio)
        return list(self.session.scalars(stmt).all())

    def approve_all_for_job(self, workspace_id: str, job_id: str, *, commit: bool = True) -> int:
        stmt = (
            update(CreativeBlueprint)
            .where(CreativeBlueprint.workspace_id == workspace_id, CreativeBlueprint.job_id == job_id)
            .values(is_approved=True)
        )
        result = self.session.execute(stmt)
        if commit:
            self.session.commit()
        return result.rowcount
