from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from creative_factory.config import settings
from creative_factory.db.enums import ActorTypeEnum, CreativeAssetTypeEnum, JobStatusEnum
from creative_factory.db.models import CreativeJob
from creative_factory.db.repositories.assets import CreativeAssetsRepository
from creative_factory.db.repositories.audit_events import AuditEventsRepository
from creative_factory.db.repositories.blueprints import BlueprintsRepository
from creative_factory.db.repositories.claim_decisions import ClaimDecisionsRepository
from creative_factory.db.repositories.experiments import ExperimentsRepository
from creative_factory.db.repositories.jobs import CreativeJobsRepository
from creative_factory.db.repositories.sites import SitesRepository
from creative_factory.llm.client import LLMClient
from creative_factory.schemas.copy_pack import CopyPack
from creative_factory.schemas.creative import (
    ComplianceVerdictOut,
    CopywritingPreview,
    CreativeInitRequest,
    CreativeInitResponse,
)
from creative_factory.services.approvals import ApprovalEscalator
from creative_factory.services.blueprints import BlueprintGenerator
from creative_factory.services.claim_guardrail import GuardedCopy, guard_copy
from creative_factory.services.compliance import ComplianceResult, ComplianceValidator
from creative_factory.services.copywriting import BrandVoice, CopyGenerator, CreativeBrief
from creative_factory.services.errors import GenerationStageError
from creative_factory.services.generation import GenerationService
from creative_factory.services.quota import QuotaManager

logger = logging.getLogger(__name__)


def projected_cost(format_count: int) -> float:
    return round(format_count * (settings.RENDER_VIDEO_UNIT_COST + settings.RENDER_THUMBNAIL_UNIT_COST), 4)


def init_response_for(job: CreativeJob, *, replayed: bool = False) -> CreativeInitResponse:
    output = job.output or {}
    copy = output.get("copywriting") or {}
    compliance = output.get("compliance")
    return CreativeInitResponse(
        job_id=job.id,
        status=job.status,
        approval_id=job.approval_id,
        copywriting_preview=CopywritingPreview(
            hooks=copy.get("hooks") or [],
            ctas=copy.get("ctas") or [],
            headlines=copy.get("headlines") or [],
        )
        if copy
        else None,
        compliance_verdict=ComplianceVerdictOut(**compliance) if compliance else None,
        blueprints_count=int(output.get("blueprints_count") or 0),
        cost_estimate=job.cost_estimate,
        duration_ms=job.duration_ms,
        error=job.error,
        replayed=replayed,
    )


class CreativeInitService:
    """Runs copy -> guardrail -> blueprints -> compliance -> escalation for one request."""

    def __init__(self, session: Session, llm: LLMClient, quota: QuotaManager) -> None:
        self.session = session
        self.generation = GenerationService(llm)
        self.quota = quota
        self.jobs = CreativeJobsRepository(session)
        self.sites = SitesRepository(session)
        self.experiments = ExperimentsRepository(session)
        self.claims = ClaimDecisionsRepository(session)
        self.blueprints = BlueprintsRepository(session)
        self.assets = CreativeAssetsRepository(session)
        self.audit = AuditEventsRepository(session)
        self.escalator = ApprovalEscalator(session)

    def run(self, request: CreativeInitRequest, *, user_id: str) -> CreativeInitResponse:
        workspace_id = request.workspace_id
        if request.idempotency_key:
            existing = self.jobs.get_by_idempotency_key(workspace_id, request.idempotency_key)
            if existing:
                logger.info(
                    "Creative init replayed",
                    extra={"workspace_id": workspace_id, "job_id": existing.id},
                )
                return init_response_for(existing, replayed=True)

        started = time.monotonic()
        brief = self._brief(request)
        site_id, brand_voice = self._resolve_site(workspace_id, request.site_id)
        experiment_id = self._resolve_experiment(workspace_id, request.experiment_id)

        with self.quota.slot(workspace_id):
            job, created = self.jobs.get_or_create(
                workspace_id=workspace_id,
                idempotency_key=request.idempotency_key,
                status=JobStatusEnum.queued,
                site_id=site_id,
                experiment_id=experiment_id,
                created_by=user_id,
                objective=brief.objective,
                language=brief.language,
                geo=brief.geo,
                style=brief.style,
                duration_seconds=brief.duration_seconds,
                variant_name=request.variant_name,
                input=request.model_dump(mode="json", exclude={"workspace_id", "idempotency_key"}),
            )
            if not created:
                return init_response_for(job, replayed=True)

            job = self.jobs.mark_running(workspace_id, job.id) or job
            log_extra = {"workspace_id": workspace_id, "job_id": job.id}
            logger.info("Creative init started", extra=log_extra)
            try:
                self._run_pipeline(job, brief, brand_voice, user_id=user_id, started=started)
            except GenerationStageError as exc:
                self.session.rollback()
                logger.warning("Creative init stage failed", extra={**log_extra, "stage": exc.stage, "error": exc.reason})
                failed = self.jobs.mark_failed(workspace_id, job.id, error=str(exc))
                self.audit.log_event(
                    workspace_id=workspace_id,
                    job_id=job.id,
                    actor_id=user_id,
                    action_type="creative_init",
                    description=f"Creative init failed at {exc.stage} stage",
                    details={"error": str(exc)},
                )
                return init_response_for(failed or job)
            except Exception:
                self.session.rollback()
                logger.exception("Creative init crashed", extra=log_extra)
                self.jobs.mark_failed(workspace_id, job.id, error="Internal error during creative init")
                raise

        self.session.refresh(job)
        logger.info(
            "Creative init finished",
            extra={**log_extra, "status": job.status.value, "duration_ms": job.duration_ms},
        )
        return init_response_for(job)

    def _brief(self, request: CreativeInitRequest) -> CreativeBrief:
        return CreativeBrief(
            offer=request.offer,
            objective=request.objective.value,
            language=request.language,
            style=request.style or settings.CREATIVE_DEFAULT_STYLE,
            duration_seconds=request.duration_seconds or settings.CREATIVE_DEFAULT_DURATION_SECONDS,
            geo=request.geo,
            site_url=request.site_url,
            logo_url=request.logo_url,
            product_images=tuple(request.product_images),
        )

    def _resolve_site(self, workspace_id: str, site_id: Optional[str]) -> tuple[Optional[str], Optional[BrandVoice]]:
        if not site_id:
            return None, None
        site = self.sites.get(workspace_id, site_id)
        if site is None:
            logger.warning("Site not in workspace; ignoring", extra={"workspace_id": workspace_id, "site_id": site_id})
            return None, None
        return site.id, BrandVoice.from_brand_kit(self.sites.get_brand_kit(workspace_id, site.id))

    def _resolve_experiment(self, workspace_id: str, experiment_id: Optional[str]) -> Optional[str]:
        if not experiment_id:
            return None
        experiment = self.experiments.get(workspace_id, experiment_id)
        if experiment is None:
            logger.warning(
                "Experiment not in workspace; ignoring",
                extra={"workspace_id": workspace_id, "experiment_id": experiment_id},
            )
            return None
        return experiment.id

    def _run_pipeline(
        self,
        job: CreativeJob,
        brief: CreativeBrief,
        brand_voice: Optional[BrandVoice],
        *,
        user_id: str,
        started: float,
    ) -> None:
        aspect_ratios = list(settings.CREATIVE_ASPECT_RATIOS)
        variants = settings.CREATIVE_VARIANTS_PER_FORMAT

        raw_copy = CopyGenerator(self.generation).generate(brief, brand_voice)
        guarded = guard_copy(raw_copy.model_dump(mode="json"), brief.language)
        copy = CopyPack.model_validate(guarded.copy)

        blueprints = BlueprintGenerator(self.generation).generate_all(brief, copy, aspect_ratios, variants)
        compliance = ComplianceValidator(self.generation).validate(copy, blueprints)

        # Every stage succeeded; persist all outputs in one transaction.
        decisions_count = self._record_claim_decisions(job, guarded)
        for blueprint, report in zip(blueprints, compliance.blueprint_reports):
            self.blueprints.add(
                workspace_id=job.workspace_id,
                job_id=job.id,
                aspect_ratio=blueprint.aspect_ratio,
                variant=blueprint.variant,
                variant_index=blueprint.variant_index,
                blueprint=blueprint.to_storage(),
                qa_report={**report.model_dump(mode="json"), "compliance": compliance.as_verdict()},
                is_approved=compliance.approved,
                commit=False,
            )
        copy_payload = copy.model_dump(mode="json")
        self.assets.add(
            workspace_id=job.workspace_id,
            job_id=job.id,
            asset_type=CreativeAssetTypeEnum.copy_pack,
            url=None,
            meta={**copy_payload, "variant": job.variant_name},
            commit=False,
        )
        approval = self.escalator.escalate(
            job, copy, aspect_ratios, compliance_approved=compliance.approved, commit=False
        )

        status = JobStatusEnum.queued if compliance.approved else JobStatusEnum.needs_manual_review
        self.jobs.update_fields(
            job,
            commit=False,
            status=status,
            approval_id=approval.id,
            output=self._output(
                copy_payload,
                blueprints_count=len(blueprints),
                compliance=compliance,
                decisions_count=decisions_count,
            ),
            cost_estimate=projected_cost(len(aspect_ratios)),
            duration_ms=int((time.monotonic() - started) * 1000),
            finished_at=datetime.now(timezone.utc),
            error=None,
        )
        self.audit.log_event(
            workspace_id=job.workspace_id,
            job_id=job.id,
            actor_type=ActorTypeEnum.user,
            actor_id=user_id,
            action_type="creative_init",
            description=f"Creative job generated {len(blueprints)} blueprints ({status.value})",
            details={
                "approval_id": approval.id,
                "compliance_approved": compliance.approved,
                "claim_decisions": decisions_count,
            },
            commit=False,
        )
        self.session.commit()

    def _record_claim_decisions(self, job: CreativeJob, guarded: GuardedCopy) -> int:
        count = 0
        for field_name, result in guarded.results:
            for finding in result.findings:
                self.claims.add(
                    workspace_id=job.workspace_id,
                    job_id=job.id,
                    field=field_name,
                    original_text=result.original,
                    decision=finding.decision,
                    rewritten_text=result.rewritten if result.was_modified else None,
                    matched_term=finding.matched_term,
                    reason=finding.reason,
                    commit=False,
                )
                count += 1
        return count

    @staticmethod
    def _output(
        copy_payload: dict[str, Any],
        *,
        blueprints_count: int,
        compliance: ComplianceResult,
        decisions_count: int,
    ) -> dict[str, Any]:
        return {
            "copywriting": copy_payload,
            "blueprints_count": blueprints_count,
            "compliance": compliance.as_verdict(),
            "quality_report": compliance.quality.model_dump(mode="json"),
            "claim_decisions_count": decisions_count,
            "renders": [],
        }
