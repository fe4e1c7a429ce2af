from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from creative_factory.db.enums import (
    ApprovalStatusEnum,
    ClaimDecisionEnum,
    CreativeAssetTypeEnum,
    JobStatusEnum,
    ObjectiveEnum,
    RiskLevelEnum,
)


class CreativeInitRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    workspace_id: str
    site_id: Optional[str] = None
    experiment_id: Optional[str] = None
    offer: str = Field(..., min_length=1)
    objective: ObjectiveEnum
    language: str = "fr"
    geo: Optional[str] = None
    style: Optional[str] = None
    duration_seconds: Optional[int] = Field(default=None, ge=1, le=180)
    site_url: Optional[str] = None
    logo_url: Optional[str] = None
    product_images: list[str] = Field(default_factory=list)
    variant_name: str = "A"
    idempotency_key: Optional[str] = Field(default=None, min_length=1, max_length=255)


class CopywritingPreview(BaseModel):
    hooks: list[str] = []
    ctas: list[str] = []
    headlines: list[str] = []


class ComplianceVerdictOut(BaseModel):
    approved: bool
    issues: list[str] = []
    qa_score: Optional[int] = None


class CreativeInitResponse(BaseModel):
    job_id: str
    status: JobStatusEnum
    approval_id: Optional[str] = None
    copywriting_preview: Optional[CopywritingPreview] = None
    compliance_verdict: Optional[ComplianceVerdictOut] = None
    blueprints_count: int = 0
    cost_estimate: Optional[float] = None
    duration_ms: Optional[int] = None
    error: Optional[str] = None
    replayed: bool = False


class CreativeRenderRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    workspace_id: str
    job_id: str
    variant: str = "A"


class RenderResult(BaseModel):
    aspect_ratio: str
    url: str
    render_id: str


class RenderFailure(BaseModel):
    aspect_ratio: str
    error: str
    render_id: Optional[str] = None


class ThumbnailResult(BaseModel):
    aspect_ratio: str
    url: Optional[str] = None
    source: str


class CreativeRenderResponse(BaseModel):
    job_id: str
    status: JobStatusEnum
    renders: list[RenderResult] = []
    failures: list[RenderFailure] = []
    thumbnails: list[ThumbnailResult] = []
    duration_ms: int
    cost_estimate: float


class UtmOverrides(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source: Optional[str] = None
    medium: Optional[str] = None
    campaign: Optional[str] = None


class CreativeExportRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    workspace_id: str
    job_id: str
    include_utm: bool = True
    variant_override: Optional[str] = None
    experiment_id: Optional[str] = None
    utm_params: Optional[UtmOverrides] = None


class ExportedAsset(BaseModel):
    asset_id: str
    asset_type: str
    url: Optional[str] = None
    filename: str
    aspect_ratio: Optional[str] = None
    variant: Optional[str] = None
    meta: dict[str, Any] = {}


class TrackedLink(BaseModel):
    platform: str
    url: str
    utm_source: str
    utm_medium: str
    utm_campaign: str
    utm_content: str
    variant: Optional[str] = None


class ChecklistEntry(BaseModel):
    format: str
    specs: str
    ready: bool


class AuditManifest(BaseModel):
    exported_at: datetime
    exported_by: str
    job_id: str
    experiment_id: Optional[str] = None
    variants_exported: list[str]
    asset_counts: dict[str, int]
    qco_approved: Optional[bool] = None
    qco_issues: list[str] = []
    approval_id: Optional[str] = None
    approval_status: Optional[str] = None


class ExportManifest(BaseModel):
    job_id: str
    generated_at: datetime
    variant_name: str
    brand: str
    offer: str
    videos: list[ExportedAsset] = []
    thumbnails: list[ExportedAsset] = []
    subtitles: list[ExportedAsset] = []
    copy_pack: Optional[ExportedAsset] = None
    utm_links: list[TrackedLink] = []
    launch_checklist: dict[str, ChecklistEntry] = {}
    audit_manifest: AuditManifest


class CreativeExportResponse(BaseModel):
    export: ExportManifest


class BlueprintOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    aspect_ratio: str
    variant: str
    variant_index: int
    is_approved: bool
    blueprint: dict[str, Any]
    qa_report: dict[str, Any]


class ClaimDecisionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    field: str
    original_text: str
    decision: ClaimDecisionEnum
    rewritten_text: Optional[str] = None
    matched_term: Optional[str] = None
    reason: str


class CreativeAssetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    asset_type: CreativeAssetTypeEnum
    url: Optional[str] = None
    meta: dict[str, Any] = {}


class CreativeJobOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    workspace_id: str
    site_id: Optional[str] = None
    experiment_id: Optional[str] = None
    approval_id: Optional[str] = None
    status: JobStatusEnum
    objective: str
    language: str
    geo: Optional[str] = None
    style: str
    duration_seconds: int
    variant_name: str
    input: dict[str, Any]
    output: dict[str, Any]
    error: Optional[str] = None
    cost_estimate: Optional[float] = None
    duration_ms: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class CreativeJobDetail(BaseModel):
    job: CreativeJobOut
    blueprints: list[BlueprintOut] = []
    claim_decisions: list[ClaimDecisionOut] = []
    assets: list[CreativeAssetOut] = []


class QuotaUsageOut(BaseModel):
    workspace_id: str
    concurrent_runs: int
    limit: int
    available: int


class ApprovalDecisionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    decision: Literal["approved", "rejected"]
    reason: Optional[str] = None


class ApprovalItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    workspace_id: str
    job_id: str
    agent_type: str
    action_type: str
    risk_level: RiskLevelEnum
    action_payload: dict[str, Any]
    status: ApprovalStatusEnum
    reviewer_id: Optional[str] = None
    decided_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
