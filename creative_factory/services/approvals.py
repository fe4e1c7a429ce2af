from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from creative_factory.db.enums import ActorTypeEnum, ApprovalStatusEnum, JobStatusEnum, RiskLevelEnum
from creative_factory.db.models import ApprovalItem, CreativeJob
from creative_factory.db.repositories.approvals import ApprovalItemsRepository
from creative_factory.db.repositories.audit_events import AuditEventsRepository
from creative_factory.db.repositories.blueprints import BlueprintsRepository
from creative_factory.db.repositories.jobs import CreativeJobsRepository
from creative_factory.schemas.copy_pack import CopyPack
from creative_factory.services.errors import ApprovalAlreadyDecidedError

logger = logging.getLogger(__name__)

AGENT_TYPE = "creative_factory"
ACTION_PUBLISH_AD_PACK = "publish_ad_pack"


class ApprovalEscalator:
    """
    Creates and resolves the human gate in front of ad-pack publication.

    Publishing is always high risk, so every job gets an approval item whatever the
    compliance verdict was.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.approvals = ApprovalItemsRepository(session)
        self.jobs = CreativeJobsRepository(session)
        self.blueprints = BlueprintsRepository(session)
        self.audit = AuditEventsRepository(session)

    def escalate(
        self,
        job: CreativeJob,
        copy: CopyPack,
        formats: Sequence[str],
        *,
        compliance_approved: bool,
        commit: bool = True,
    ) -> ApprovalItem:
        payload = {
            "job_id": job.id,
            "preview": {"hook": copy.hooks[0], "cta": copy.ctas[0], "headline": copy.headlines[0]},
            "formats": list(formats),
            "compliance_approved": compliance_approved,
        }
        item = self.approvals.add(
            workspace_id=job.workspace_id,
            job_id=job.id,
            site_id=job.site_id,
            agent_type=AGENT_TYPE,
            action_type=ACTION_PUBLISH_AD_PACK,
            risk_level=RiskLevelEnum.high,
            action_payload=payload,
            commit=commit,
        )
        logger.info(
            "Approval item created",
            extra={"job_id": job.id, "approval_id": item.id, "compliance_approved": compliance_approved},
        )
        return item

    def decide(
        self,
        item: ApprovalItem,
        *,
        reviewer_id: str,
        decision: ApprovalStatusEnum,
        reason: Optional[str] = None,
    ) -> ApprovalItem:
        if item.status != ApprovalStatusEnum.pending:
            raise ApprovalAlreadyDecidedError(item.id, item.status.value)

        now = datetime.now(timezone.utc)
        item.status = decision
        item.reviewer_id = reviewer_id
        item.decided_at = now
        item.rejection_reason = reason if decision == ApprovalStatusEnum.rejected else None

        job = self.jobs.get(item.workspace_id, item.job_id)
        job_status_before = job.status if job else None
        if job is not None:
            if decision == ApprovalStatusEnum.approved and job.status == JobStatusEnum.needs_manual_review:
                self.blueprints.approve_all_for_job(job.workspace_id, job.id, commit=False)
                self.jobs.update_fields(job, commit=False, status=JobStatusEnum.done, finished_at=now)
            elif decision == ApprovalStatusEnum.rejected and job.status in (
                JobStatusEnum.needs_manual_review,
                JobStatusEnum.queued,
            ):
                self.jobs.update_fields(
                    job,
                    commit=False,
                    status=JobStatusEnum.failed,
                    error=f"Rejected by reviewer: {reason or 'no reason given'}",
                    finished_at=now,
                )

        self.audit.log_event(
            workspace_id=item.workspace_id,
            job_id=item.job_id,
            actor_type=ActorTypeEnum.user,
            actor_id=reviewer_id,
            action_type="approval_decision",
            description=f"Ad pack {decision.value} by reviewer",
            details={
                "approval_id": item.id,
                "decision": decision.value,
                "reason": reason,
                "job_status_before": job_status_before.value if job_status_before else None,
                "job_status_after": job.status.value if job else None,
            },
            commit=False,
        )
        self.session.commit()
        self.session.refresh(item)
        logger.info(
            "Approval decided",
            extra={"approval_id": item.id, "job_id": item.job_id, "decision": decision.value},
        )
        return item
