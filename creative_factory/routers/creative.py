from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from creative_factory.auth.dependencies import AuthContext, get_current_user, require_workspace_member
from creative_factory.db.deps import get_session
from creative_factory.db.repositories.assets import CreativeAssetsRepository
from creative_factory.db.repositories.blueprints import BlueprintsRepository
from creative_factory.db.repositories.claim_decisions import ClaimDecisionsRepository
from creative_factory.db.repositories.jobs import CreativeJobsRepository
from creative_factory.llm.client import LLMClient
from creative_factory.schemas.creative import (
    BlueprintOut,
    ClaimDecisionOut,
    CreativeAssetOut,
    CreativeExportRequest,
    CreativeExportResponse,
    CreativeInitRequest,
    CreativeInitResponse,
    CreativeJobDetail,
    CreativeJobOut,
    CreativeRenderRequest,
    CreativeRenderResponse,
    QuotaUsageOut,
)
from creative_factory.services.creative_init import CreativeInitService
from creative_factory.services.errors import JobNotFoundError
from creative_factory.services.export import ExportAssembler
from creative_factory.services.quota import QuotaManager
from creative_factory.services.render import RenderOrchestrator
from creative_factory.services.render_service_client import RenderServiceClient

router = APIRouter(prefix="/creative", tags=["creative"])


def get_llm_client() -> LLMClient:
    return LLMClient()


def get_render_client() -> RenderServiceClient:
    return RenderServiceClient()


def get_quota_manager() -> QuotaManager:
    return QuotaManager()


def get_render_orchestrator(
    session: Session = Depends(get_session),
    client: RenderServiceClient = Depends(get_render_client),
    quota: QuotaManager = Depends(get_quota_manager),
) -> RenderOrchestrator:
    return RenderOrchestrator(session, client, quota)


@router.post("/init", response_model=CreativeInitResponse)
def init_creative_job(
    payload: CreativeInitRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
    llm: LLMClient = Depends(get_llm_client),
    quota: QuotaManager = Depends(get_quota_manager),
) -> CreativeInitResponse:
    require_workspace_member(session, auth, payload.workspace_id)
    return CreativeInitService(session, llm, quota).run(payload, user_id=auth.user_id)


@router.post("/render", response_model=CreativeRenderResponse)
def render_creative_job(
    payload: CreativeRenderRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
    orchestrator: RenderOrchestrator = Depends(get_render_orchestrator),
) -> CreativeRenderResponse:
    require_workspace_member(session, auth, payload.workspace_id)
    return orchestrator.render(payload.workspace_id, payload.job_id, variant=payload.variant, user_id=auth.user_id)


@router.post("/export", response_model=CreativeExportResponse)
def export_creative_job(
    payload: CreativeExportRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> CreativeExportResponse:
    require_workspace_member(session, auth, payload.workspace_id)
    manifest = ExportAssembler(session).export(payload, user_id=auth.user_id)
    return CreativeExportResponse(export=manifest)


@router.get("/jobs/{job_id}", response_model=CreativeJobDetail)
def get_creative_job(
    job_id: str,
    workspace_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> CreativeJobDetail:
    require_workspace_member(session, auth, workspace_id)
    job = CreativeJobsRepository(session).get(workspace_id, job_id)
    if job is None:
        raise JobNotFoundError(job_id)
    return CreativeJobDetail(
        job=CreativeJobOut.model_validate(job),
        blueprints=[
            BlueprintOut.model_validate(row) for row in BlueprintsRepository(session).list_for_job(workspace_id, job_id)
        ],
        claim_decisions=[
            ClaimDecisionOut.model_validate(row)
            for row in ClaimDecisionsRepository(session).list_for_job(workspace_id, job_id)
        ],
        assets=[
            CreativeAssetOut.model_validate(row)
            for row in CreativeAssetsRepository(session).list_for_job(workspace_id, job_id)
        ],
    )


@router.get("/quota/{workspace_id}", response_model=QuotaUsageOut)
def get_quota_usage(
    workspace_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
    quota: QuotaManager = Depends(get_quota_manager),
) -> QuotaUsageOut:
    require_workspace_member(session, auth, workspace_id)
    used = quota.usage(workspace_id)
    return QuotaUsageOut(
        workspace_id=workspace_id,
        concurrent_runs=used,
        limit=quota.ceiling,
        available=max(0, quota.ceiling - used),
    )
