from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx
from sqlalchemy.orm import Session

from creative_factory.config import settings
from creative_factory.db.enums import VIDEO_ASSET_TYPE_BY_RATIO, ActorTypeEnum, CreativeAssetTypeEnum, JobStatusEnum
from creative_factory.db.models import CreativeBlueprint
from creative_factory.db.repositories.assets import CreativeAssetsRepository
from creative_factory.db.repositories.audit_events import AuditEventsRepository
from creative_factory.db.repositories.blueprints import BlueprintsRepository
from creative_factory.db.repositories.jobs import CreativeJobsRepository
from creative_factory.schemas.blueprint import RENDER_DIMENSIONS, SAFE_ZONES, Blueprint, SubtitleCue
from creative_factory.schemas.creative import (
    CreativeRenderResponse,
    RenderFailure,
    RenderResult,
    ThumbnailResult,
)
from creative_factory.services.errors import BlueprintsNotApprovedError, InvalidJobStateError, JobNotFoundError
from creative_factory.services.quota import QuotaManager
from creative_factory.services.render_service_client import RenderServiceClient, RenderServiceRequestError

logger = logging.getLogger(__name__)

RENDERABLE_STATUSES = (JobStatusEnum.queued, JobStatusEnum.done)
FONT_SIZES = {"large": 72, "medium": 56, "small": 42}
OVERLAY_Y = {"top": "15%", "bottom": "75%"}

THUMBNAIL_SNAPSHOT = "snapshot_extraction"
THUMBNAIL_STATIC = "static_composition_fallback"
THUMBNAIL_PENDING_MANUAL = "pending_manual"


class RenderFailedError(RuntimeError):
    def __init__(self, message: str, render_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.render_id = render_id


@dataclass(frozen=True)
class FormatOutcome:
    aspect_ratio: str
    blueprint: CreativeBlueprint
    render_id: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.url is not None and self.error is None


@dataclass(frozen=True)
class ThumbnailOutcome:
    aspect_ratio: str
    source: str
    url: Optional[str] = None
    render_id: Optional[str] = None
    snapshot_time: Optional[float] = None
    error: Optional[str] = None


def format_srt_timestamp(seconds: float) -> str:
    total_ms = max(0, int(round(seconds * 1000)))
    hours, remainder = divmod(total_ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    secs, millis = divmod(remainder, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def build_srt(cues: list[SubtitleCue]) -> str:
    blocks = []
    for index, cue in enumerate(sorted(cues, key=lambda c: (c.start, c.end)), start=1):
        blocks.append(
            f"{index}\n{format_srt_timestamp(cue.start)} --> {format_srt_timestamp(cue.end)}\n{cue.text.strip()}\n"
        )
    return "\n".join(blocks)


def blueprint_to_render_source(blueprint: Blueprint, *, logo_url: Optional[str] = None) -> dict[str, Any]:
    """Translate a blueprint into the render service's scene description."""
    ratio = blueprint.aspect_ratio
    width, height = RENDER_DIMENSIONS[ratio]
    zone = SAFE_ZONES[ratio]
    colors = blueprint.brand_colors
    elements: list[dict[str, Any]] = [
        {
            "type": "shape",
            "fill_color": colors.primary if colors else "#1a1a2e",
            "width": "100%",
            "height": "100%",
        }
    ]

    for scene in blueprint.scenes:
        scene_duration = max(0.1, scene.end_time - scene.start_time)
        if scene.asset_placeholder and scene.asset_placeholder.url:
            elements.append(
                {
                    "type": "image",
                    "source": scene.asset_placeholder.url,
                    "fit": "cover",
                    "time": scene.start_time,
                    "duration": scene_duration,
                }
            )
        overlay = scene.text_overlay
        if overlay and overlay.text:
            elements.append(
                {
                    "type": "text",
                    "text": overlay.text,
                    "font_family": "Inter",
                    "font_weight": 700,
                    "font_size": FONT_SIZES.get(overlay.font_size, FONT_SIZES["medium"]),
                    "fill_color": "#ffffff",
                    "x": "50%",
                    "y": OVERLAY_Y.get(overlay.position, "50%"),
                    "x_anchor": "50%",
                    "y_anchor": "50%",
                    "width": f"{width - zone.left - zone.right} px",
                    "text_align": "center",
                    "time": scene.start_time,
                    "duration": scene_duration,
                    "animations": [
                        {"type": "fade", "fade": "in", "duration": 0.3},
                        {"type": "fade", "fade": "out", "duration": 0.3, "start": -0.3},
                    ],
                }
            )

    if logo_url:
        elements.append(
            {
                "type": "image",
                "source": logo_url,
                "width": "30%" if ratio == "9:16" else "20%",
                "x": "50%" if ratio == "9:16" else "10%",
                "y": f"{zone.top} px",
                "x_anchor": "50%" if ratio == "9:16" else "0%",
                "y_anchor": "0%",
            }
        )

    cta = blueprint.cta_placement
    cta_start = cta.timing if cta and cta.timing else max(0.0, blueprint.duration_seconds - 3)
    elements.append(
        {
            "type": "text",
            "text": (cta.text if cta and cta.text else None) or blueprint.lead_cta or "",
            "font_family": "Inter",
            "font_weight": 700,
            "font_size": 48,
            "fill_color": "#ffffff",
            "background_color": colors.secondary if colors else "#6366f1",
            "background_x_padding": 40,
            "background_y_padding": 20,
            "background_border_radius": 12,
            "x": "50%",
            "y": f"{height - zone.cta_bottom} px",
            "x_anchor": "50%",
            "y_anchor": "100%",
            "time": cta_start,
            "duration": max(0.1, blueprint.duration_seconds - cta_start),
        }
    )

    return {
        "output_format": "mp4",
        "width": width,
        "height": height,
        "duration": blueprint.duration_seconds,
        "frame_rate": 30,
        "elements": elements,
    }


def _static_composition(source: dict[str, Any]) -> dict[str, Any]:
    """Single-frame version of a scene description: timing and animations stripped."""
    elements = [
        {key: value for key, value in element.items() if key not in ("animations", "time", "duration")}
        for element in source.get("elements", [])
    ]
    return {"output_format": "jpg", "width": source["width"], "height": source["height"], "elements": elements}


class RenderOrchestrator:
    def __init__(
        self,
        session: Session,
        client: RenderServiceClient,
        quota: QuotaManager,
        *,
        poll_interval_seconds: Optional[float] = None,
        max_poll_attempts: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session
        self.client = client
        self.quota = quota
        self.poll_interval_seconds = (
            poll_interval_seconds if poll_interval_seconds is not None else settings.RENDER_POLL_INTERVAL_SECONDS
        )
        self.max_poll_attempts = max_poll_attempts or settings.RENDER_POLL_MAX_ATTEMPTS
        self._sleep = sleep
        self.jobs = CreativeJobsRepository(session)
        self.blueprints = BlueprintsRepository(session)
        self.assets = CreativeAssetsRepository(session)
        self.audit = AuditEventsRepository(session)

    def render(self, workspace_id: str, job_id: str, *, variant: str = "A", user_id: str) -> CreativeRenderResponse:
        job = self.jobs.get(workspace_id, job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.status not in RENDERABLE_STATUSES:
            raise InvalidJobStateError(job_id, job.status.value, [s.value for s in RENDERABLE_STATUSES])
        blueprints = self.blueprints.list_for_job(workspace_id, job_id, variant=variant, approved_only=True)
        if not blueprints:
            raise BlueprintsNotApprovedError(job_id, variant)
        logo_url = (job.input or {}).get("logo_url")

        started = time.monotonic()
        log_extra = {"workspace_id": workspace_id, "job_id": job_id, "variant": variant}
        with self.quota.slot(workspace_id):
            self.jobs.mark_running(workspace_id, job_id)
            logger.info("Render started", extra={**log_extra, "formats": len(blueprints)})
            try:
                outcomes = [self._render_format(row, logo_url) for row in blueprints]
                thumbnails = [self._render_thumbnail(outcome, logo_url) for outcome in outcomes if outcome.succeeded]
                response = self._persist(job_id, workspace_id, variant, outcomes, thumbnails, started, user_id)
            except Exception:
                self.session.rollback()
                logger.exception("Render crashed", extra=log_extra)
                self.jobs.mark_failed(workspace_id, job_id, error="Internal error during render")
                raise

        logger.info(
            "Render finished",
            extra={**log_extra, "status": response.status.value, "succeeded": len(response.renders)},
        )
        return response

    def _render_format(self, row: CreativeBlueprint, logo_url: Optional[str]) -> FormatOutcome:
        try:
            blueprint = Blueprint.model_validate(row.blueprint)
            source = blueprint_to_render_source(blueprint, logo_url=logo_url)
            render_id, url = self._submit_and_wait(source)
        except RenderFailedError as exc:
            logger.warning(
                "Format render failed",
                extra={"aspect_ratio": row.aspect_ratio, "render_id": exc.render_id, "error": str(exc)},
            )
            return FormatOutcome(row.aspect_ratio, row, render_id=exc.render_id, error=str(exc))
        except Exception as exc:
            logger.exception("Format render crashed", extra={"aspect_ratio": row.aspect_ratio})
            return FormatOutcome(row.aspect_ratio, row, error=f"render error: {exc.__class__.__name__}: {exc}")
        return FormatOutcome(row.aspect_ratio, row, render_id=render_id, url=url)

    def _render_thumbnail(self, outcome: FormatOutcome, logo_url: Optional[str]) -> ThumbnailOutcome:
        blueprint = Blueprint.model_validate(outcome.blueprint.blueprint)
        snapshot_time = max(0.5, blueprint.duration_seconds * 0.25)
        width, height = RENDER_DIMENSIONS[outcome.aspect_ratio]
        snapshot_source = {
            "output_format": "jpg",
            "width": width,
            "height": height,
            "snapshot_time": snapshot_time,
            "elements": [{"type": "video", "source": outcome.url}],
        }
        try:
            render_id, url = self._submit_and_wait(snapshot_source)
            return ThumbnailOutcome(
                outcome.aspect_ratio, THUMBNAIL_SNAPSHOT, url=url, render_id=render_id, snapshot_time=snapshot_time
            )
        except RenderFailedError as exc:
            logger.warning(
                "Snapshot thumbnail failed; trying static composition",
                extra={"aspect_ratio": outcome.aspect_ratio, "error": str(exc)},
            )

        static_source = _static_composition(blueprint_to_render_source(blueprint, logo_url=logo_url))
        try:
            render_id, url = self._submit_and_wait(static_source)
            return ThumbnailOutcome(outcome.aspect_ratio, THUMBNAIL_STATIC, url=url, render_id=render_id)
        except RenderFailedError as exc:
            logger.error(
                "All thumbnail methods failed",
                extra={"aspect_ratio": outcome.aspect_ratio, "error": str(exc)},
            )
            return ThumbnailOutcome(
                outcome.aspect_ratio,
                THUMBNAIL_PENDING_MANUAL,
                error="All auto-generation methods failed, manual upload required",
            )

    def _call_client(self, action: str, call: Callable[[], Any], render_id: Optional[str] = None) -> Any:
        """Run one render service call; every error it raises becomes a RenderFailedError."""
        try:
            return call()
        except (RenderServiceRequestError, httpx.HTTPError) as exc:
            raise RenderFailedError(f"{action} failed: {exc}", render_id) from exc
        except Exception as exc:
            logger.exception("Render service %s raised unexpectedly", action, extra={"render_id": render_id})
            raise RenderFailedError(f"{action} failed: {exc.__class__.__name__}: {exc}", render_id) from exc

    def _submit_and_wait(self, source: dict[str, Any]) -> tuple[str, str]:
        """Submit one render and poll it to a terminal state; raise RenderFailedError otherwise."""
        render_id = self._call_client("submit", lambda: self.client.submit(source))

        for attempt in range(1, self.max_poll_attempts + 1):
            status = self._call_client("poll", lambda: self.client.poll(render_id), render_id)
            if status.status == "done":
                if not status.url:
                    raise RenderFailedError("render finished without an output URL", render_id)
                return render_id, status.url
            if status.status == "failed":
                raise RenderFailedError(status.error or "render failed", render_id)
            if attempt < self.max_poll_attempts:
                self._sleep(self.poll_interval_seconds)

        raise RenderFailedError(f"render timed out after {self.max_poll_attempts} poll attempts", render_id)

    def _persist(
        self,
        job_id: str,
        workspace_id: str,
        variant: str,
        outcomes: list[FormatOutcome],
        thumbnails: list[ThumbnailOutcome],
        started: float,
        user_id: str,
    ) -> CreativeRenderResponse:
        job = self.jobs.get(workspace_id, job_id)
        successes = [outcome for outcome in outcomes if outcome.succeeded]
        failures = [outcome for outcome in outcomes if not outcome.succeeded]

        for outcome in successes:
            blueprint = Blueprint.model_validate(outcome.blueprint.blueprint)
            base_meta = {"aspect_ratio": outcome.aspect_ratio, "variant": variant}
            self.assets.add(
                workspace_id=workspace_id,
                job_id=job_id,
                asset_type=VIDEO_ASSET_TYPE_BY_RATIO[outcome.aspect_ratio],
                url=outcome.url,
                meta={
                    **base_meta,
                    "render_id": outcome.render_id,
                    "blueprint_id": outcome.blueprint.id,
                    "duration_seconds": blueprint.duration_seconds,
                },
                commit=False,
            )
            if blueprint.subtitles:
                self.assets.add(
                    workspace_id=workspace_id,
                    job_id=job_id,
                    asset_type=CreativeAssetTypeEnum.srt,
                    url=None,
                    meta={**base_meta, "content": build_srt(blueprint.subtitles)},
                    commit=False,
                )
        for thumb in thumbnails:
            meta: dict[str, Any] = {"aspect_ratio": thumb.aspect_ratio, "variant": variant, "source": thumb.source}
            if thumb.snapshot_time is not None:
                meta["snapshot_time"] = thumb.snapshot_time
            if thumb.render_id:
                meta["render_id"] = thumb.render_id
            if thumb.error:
                meta["error"] = thumb.error
            self.assets.add(
                workspace_id=workspace_id,
                job_id=job_id,
                asset_type=CreativeAssetTypeEnum.thumbnail,
                url=thumb.url,
                meta=meta,
                commit=False,
            )

        produced_thumbnails = sum(1 for thumb in thumbnails if thumb.url)
        cost = round(
            len(successes) * settings.RENDER_VIDEO_UNIT_COST + produced_thumbnails * settings.RENDER_THUMBNAIL_UNIT_COST,
            4,
        )
        status = JobStatusEnum.done if successes else JobStatusEnum.failed
        duration_ms = int((time.monotonic() - started) * 1000)
        renders = [
            {"aspect_ratio": o.aspect_ratio, "url": o.url, "render_id": o.render_id} for o in successes
        ]
        render_failures = [
            {"aspect_ratio": o.aspect_ratio, "error": o.error, "render_id": o.render_id} for o in failures
        ]
        output = dict(job.output or {})
        output["renders"] = renders
        output["render_failures"] = render_failures
        output["render_variant"] = variant
        self.jobs.update_fields(
            job,
            commit=False,
            status=status,
            output=output,
            cost_estimate=cost,
            duration_ms=duration_ms,
            finished_at=datetime.now(timezone.utc),
            error=None if successes else "All formats failed to render",
        )
        self.audit.log_event(
            workspace_id=workspace_id,
            job_id=job_id,
            actor_type=ActorTypeEnum.user,
            actor_id=user_id,
            action_type="creative_render",
            description=f"Rendered {len(successes)}/{len(outcomes)} formats (variant {variant})",
            details={"renders": renders, "failures": render_failures, "cost_estimate": cost},
            commit=False,
        )
        self.session.commit()

        return CreativeRenderResponse(
            job_id=job_id,
            status=status,
            renders=[RenderResult(**render) for render in renders],
            failures=[RenderFailure(**failure) for failure in render_failures],
            thumbnails=[
                ThumbnailResult(aspect_ratio=t.aspect_ratio, url=t.url, source=t.source) for t in thumbnails
            ],
            duration_ms=duration_ms,
            cost_estimate=cost,
        )
