from __future__ import annotations

from typing import Any, Optional


class CreativePipelineError(Exception):
    """Base error surfaced to API callers with an HTTP status and a machine-readable code."""

    status_code: int = 400
    code: str = "creative_pipeline_error"

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "detail": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class QuotaExceededError(CreativePipelineError):
    status_code = 429
    code = "quota_exceeded"

    def __init__(self, workspace_id: str, ceiling: int) -> None:
        super().__init__(
            f"Concurrent run limit reached ({ceiling}). Retry once a running job finishes.",
            details={"workspace_id": workspace_id, "limit": ceiling},
        )


class WorkspaceAccessDeniedError(CreativePipelineError):
    status_code = 403
    code = "workspace_forbidden"

    def __init__(self, workspace_id: str) -> None:
        super().__init__("No access to this workspace.", details={"workspace_id": workspace_id})


class JobNotFoundError(CreativePipelineError):
    status_code = 404
    code = "job_not_found"

    def __init__(self, job_id: str) -> None:
        super().__init__("Creative job not found.", details={"job_id": job_id})


class AssetsNotFoundError(CreativePipelineError):
    status_code = 404
    code = "assets_not_found"

    def __init__(self, job_id: str) -> None:
        super().__init__("No assets found for this job.", details={"job_id": job_id})


class BlueprintsNotApprovedError(CreativePipelineError):
    status_code = 409
    code = "blueprints_not_approved"

    def __init__(self, job_id: str, variant: str) -> None:
        super().__init__(
            "No approved blueprints to render for this job.",
            details={"job_id": job_id, "variant": variant},
        )


class InvalidJobStateError(CreativePipelineError):
    status_code = 409
    code = "invalid_job_state"

    def __init__(self, job_id: str, status: str, expected: list[str]) -> None:
        super().__init__(
            f"Job is {status}; expected one of: {', '.join(expected)}.",
            details={"job_id": job_id, "status": status},
        )


class ApprovalNotFoundError(CreativePipelineError):
    status_code = 404
    code = "approval_not_found"

    def __init__(self, approval_id: str) -> None:
        super().__init__("Approval item not found.", details={"approval_id": approval_id})


class ApprovalAlreadyDecidedError(CreativePipelineError):
    status_code = 409
    code = "approval_already_decided"

    def __init__(self, approval_id: str, status: str) -> None:
        super().__init__(
            f"Approval item is already {status}.",
            details={"approval_id": approval_id, "status": status},
        )


class GenerationStageError(RuntimeError):
    """A generation stage produced nothing usable; the job fails with this reason."""

    def __init__(self, stage: str, reason: str) -> None:
        super().__init__(f"{stage} failed: {reason}")
        self.stage = stage
        self.reason = reason
