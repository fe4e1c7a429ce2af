from __future__ import annotations

import logging
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Callable, Hashable, Iterable, Iterator, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from sqlalchemy.orm import Session

from creative_factory.config import settings
from creative_factory.db.enums import RATIO_BY_VIDEO_ASSET_TYPE, ActorTypeEnum, CreativeAssetTypeEnum
from creative_factory.db.models import CreativeAsset, CreativeJob
from creative_factory.db.repositories.approvals import ApprovalItemsRepository
from creative_factory.db.repositories.assets import CreativeAssetsRepository
from creative_factory.db.repositories.audit_events import AuditEventsRepository
from creative_factory.db.repositories.experiments import ExperimentsRepository
from creative_factory.db.repositories.jobs import CreativeJobsRepository
from creative_factory.db.repositories.sites import SitesRepository
from creative_factory.schemas.creative import (
    AuditManifest,
    ChecklistEntry,
    CreativeExportRequest,
    ExportedAsset,
    ExportManifest,
    TrackedLink,
    UtmOverrides,
)
from creative_factory.services.errors import AssetsNotFoundError, JobNotFoundError

logger = logging.getLogger(__name__)

# (link key, utm_source, utm_content prefix)
TRACKED_DESTINATIONS = (
    ("meta_reels", "instagram", "reels"),
    ("meta_feed", "facebook", "feed"),
    ("youtube_ads", "youtube", "trueview"),
    ("tiktok", "tiktok", "infeed"),
)

# (platform, required ratio, specs); "Multiple" needs at least two produced ratios.
LAUNCH_PLATFORMS = (
    ("Instagram Reels", "9:16", "1080x1920, max 60s, captions burned-in recommended"),
    ("Facebook Stories", "9:16", "1080x1920, max 15s for stories"),
    ("Instagram Feed", "1:1", "1080x1080, max 60s"),
    ("Facebook Feed", "1:1", "1080x1080, max 240 minutes"),
    ("YouTube Ads", "16:9", "1920x1080, min 12s for skippable"),
    ("YouTube Shorts", "9:16", "Use 9:16 version, max 60s"),
    ("TikTok Ads", "9:16", "1080x1920, 9-60s recommended, captions required"),
    ("Google Display", "Multiple", "All formats supported, check aspect ratios"),
)

VIDEO_TYPES = tuple(RATIO_BY_VIDEO_ASSET_TYPE)

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def sanitize_name_part(value: str) -> str:
    return _NON_ALNUM.sub("_", value.lower())[:20]


def build_filename(
    brand: str,
    offer: str,
    ratio: str,
    asset_kind: str,
    created_at: datetime,
    *,
    index: Optional[int] = None,
    extension: str,
) -> str:
    parts = [sanitize_name_part(brand), sanitize_name_part(offer), ratio.replace(":", "x"), asset_kind]
    if index is not None:
        parts.append(f"v{index}")
    parts.append(created_at.strftime("%Y%m%d"))
    return "_".join(parts) + f".{extension}"


def tracked_url(base_url: str, *, source: str, medium: str, campaign: str, content: str) -> str:
    parts = urlsplit(base_url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if not k.startswith("utm_")]
    query.extend(
        [("utm_source", source), ("utm_medium", medium), ("utm_campaign", campaign), ("utm_content", content)]
    )
    return urlunsplit((parts.scheme, parts.netloc, parts.path or "/", urlencode(query), parts.fragment))


def build_tracked_links(
    base_url: str,
    *,
    campaign: str,
    overrides: Optional[UtmOverrides],
    variants: Iterable[str] = (),
) -> list[TrackedLink]:
    medium = (overrides.medium if overrides else None) or settings.EXPORT_DEFAULT_UTM_MEDIUM
    campaign = (overrides.campaign if overrides else None) or campaign
    forced_source = overrides.source if overrides else None

    def _links(content_suffix: str, variant: Optional[str]) -> list[TrackedLink]:
        links = []
        for key, source, content in TRACKED_DESTINATIONS:
            utm_source = forced_source or source
            utm_content = f"{content}_{content_suffix}" if content_suffix else content
            links.append(
                TrackedLink(
                    platform=key,
                    url=tracked_url(base_url, source=utm_source, medium=medium, campaign=campaign, content=utm_content),
                    utm_source=utm_source,
                    utm_medium=medium,
                    utm_campaign=campaign,
                    utm_content=utm_content,
                    variant=variant,
                )
            )
        return links

    links = _links("", None)
    for variant in variants:
        links.extend(_links(variant.lower(), variant))
    return links


def build_launch_checklist(ratios: set[str]) -> dict[str, ChecklistEntry]:
    checklist: dict[str, ChecklistEntry] = {}
    for platform, required, specs in LAUNCH_PLATFORMS:
        ready = len(ratios) >= 2 if required == "Multiple" else required in ratios
        checklist[platform] = ChecklistEntry(format=required, specs=specs, ready=ready)
    return checklist


def _asset_sort_key(asset: CreativeAsset) -> tuple:
    meta = asset.meta or {}
    return (
        asset.asset_type.value,
        str(meta.get("aspect_ratio") or ""),
        str(meta.get("variant") or ""),
        asset.created_at.isoformat() if asset.created_at else "",
        asset.id,
    )


def _repeat_indexes(
    assets: Iterable[CreativeAsset], key: Callable[[CreativeAsset], Hashable]
) -> Iterator[tuple[CreativeAsset, Optional[int]]]:
    """Number re-renders: the first asset of a group has no index, later ones get 2, 3, ..."""
    seen: Counter = Counter()
    for asset in assets:
        group = key(asset)
        seen[group] += 1
        yield asset, (seen[group] if seen[group] > 1 else None)


class ExportAssembler:
    """Builds the deliverable manifest for a job. Read-only with respect to assets."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self.jobs = CreativeJobsRepository(session)
        self.assets = CreativeAssetsRepository(session)
        self.sites = SitesRepository(session)
        self.experiments = ExperimentsRepository(session)
        self.approvals = ApprovalItemsRepository(session)
        self.audit = AuditEventsRepository(session)

    def export(self, request: CreativeExportRequest, *, user_id: str) -> ExportManifest:
        workspace_id = request.workspace_id
        job = self.jobs.get(workspace_id, request.job_id)
        if job is None:
            raise JobNotFoundError(request.job_id)
        assets = sorted(self.assets.list_for_job(workspace_id, job.id), key=_asset_sort_key)
        if not assets:
            raise AssetsNotFoundError(job.id)

        job_input = job.input or {}
        brand = self._brand_name(job)
        offer = str(job_input.get("offer") or "promo")
        variant_name = request.variant_override or job.variant_name or "A"

        def _in_variant(asset: CreativeAsset) -> bool:
            if not request.variant_override:
                return True
            return (asset.meta or {}).get("variant", job.variant_name) == request.variant_override

        def _group(asset: CreativeAsset) -> tuple[str, str, str]:
            return asset.asset_type.value, self._ratio(asset), self._variant(asset, job)

        video_assets = [a for a in assets if a.asset_type in VIDEO_TYPES and _in_variant(a)]
        videos = [
            self._video_entry(asset, brand, offer, job, index=index)
            for asset, index in _repeat_indexes(video_assets, _group)
        ]
        thumbnail_assets = [a for a in assets if a.asset_type == CreativeAssetTypeEnum.thumbnail and _in_variant(a)]
        thumbnails = []
        for index, asset in enumerate(thumbnail_assets, start=1):
            filename = build_filename(
                brand, offer, self._ratio(asset) or "all", "thumb", job.created_at, index=index, extension="jpg"
            )
            thumbnails.append(self._entry(asset, filename))
        srt_assets = [a for a in assets if a.asset_type == CreativeAssetTypeEnum.srt and _in_variant(a)]
        subtitles = []
        for asset, index in _repeat_indexes(srt_assets, _group):
            filename = build_filename(
                brand,
                offer,
                self._ratio(asset) or "all",
                f"subtitles_{self._variant(asset, job)}",
                job.created_at,
                index=index,
                extension="srt",
            )
            subtitles.append(self._entry(asset, filename))
        copy_asset = next((a for a in assets if a.asset_type == CreativeAssetTypeEnum.copy_pack), None)
        copy_pack = None
        if copy_asset is not None:
            filename = build_filename(brand, offer, "all", "copy", job.created_at, extension="json")
            copy_pack = self._entry(copy_asset, filename)

        experiment_id, experiment_variants = self._experiment(workspace_id, request.experiment_id or job.experiment_id)
        utm_links: list[TrackedLink] = []
        base_url = self._landing_url(job)
        if request.include_utm and base_url:
            utm_links = build_tracked_links(
                base_url,
                campaign=re.sub(r"\s+", "_", offer.lower()),
                overrides=request.utm_params,
                variants=experiment_variants,
            )

        produced_ratios = {video.aspect_ratio for video in videos if video.aspect_ratio}
        approval = self.approvals.get_for_job(workspace_id, job.id)
        compliance = (job.output or {}).get("compliance") or {}
        now = datetime.now(timezone.utc)
        manifest = ExportManifest(
            job_id=job.id,
            generated_at=now,
            variant_name=variant_name,
            brand=brand,
            offer=offer,
            videos=videos,
            thumbnails=thumbnails,
            subtitles=subtitles,
            copy_pack=copy_pack,
            utm_links=utm_links,
            launch_checklist=build_launch_checklist(produced_ratios),
            audit_manifest=AuditManifest(
                exported_at=now,
                exported_by=user_id,
                job_id=job.id,
                experiment_id=experiment_id,
                variants_exported=sorted({video.variant for video in videos if video.variant}),
                asset_counts={"videos": len(videos), "thumbnails": len(thumbnails), "subtitles": len(subtitles)},
                qco_approved=compliance.get("approved"),
                qco_issues=list(compliance.get("issues") or []),
                approval_id=approval.id if approval else None,
                approval_status=approval.status.value if approval else None,
            ),
        )

        self.audit.log_event(
            workspace_id=workspace_id,
            job_id=job.id,
            actor_type=ActorTypeEnum.user,
            actor_id=user_id,
            action_type="creative_export",
            description=f"Exported ad pack: {len(videos)} videos, {len(subtitles)} SRT files",
            details={
                "video_formats": sorted(produced_ratios),
                "include_utm": request.include_utm,
                "variant_override": request.variant_override,
            },
        )
        logger.info(
            "Creative export assembled",
            extra={"workspace_id": workspace_id, "job_id": job.id, "videos": len(videos), "links": len(utm_links)},
        )
        return manifest

    @staticmethod
    def _ratio(asset: CreativeAsset) -> str:
        if asset.asset_type in RATIO_BY_VIDEO_ASSET_TYPE:
            return RATIO_BY_VIDEO_ASSET_TYPE[asset.asset_type]
        return str((asset.meta or {}).get("aspect_ratio") or "")

    def _entry(self, asset: CreativeAsset, filename: str) -> ExportedAsset:
        meta = asset.meta or {}
        return ExportedAsset(
            asset_id=asset.id,
            asset_type=asset.asset_type.value,
            url=asset.url,
            filename=filename,
            aspect_ratio=self._ratio(asset) or None,
            variant=meta.get("variant"),
            meta=meta,
        )

    @staticmethod
    def _variant(asset: CreativeAsset, job: CreativeJob) -> str:
        return str((asset.meta or {}).get("variant") or job.variant_name or "A")

    def _video_entry(
        self, asset: CreativeAsset, brand: str, offer: str, job: CreativeJob, *, index: Optional[int] = None
    ) -> ExportedAsset:
        variant = self._variant(asset, job)
        filename = build_filename(
            brand, offer, self._ratio(asset), f"video_{variant}", job.created_at, index=index, extension="mp4"
        )
        entry = self._entry(asset, filename)
        return entry.model_copy(update={"variant": variant})

    def _brand_name(self, job: CreativeJob) -> str:
        if job.site_id:
            site = self.sites.get(job.workspace_id, job.site_id)
            if site and (site.name or site.domain):
                return site.name or site.domain
        return "brand"

    def _landing_url(self, job: CreativeJob) -> Optional[str]:
        site_url = (job.input or {}).get("site_url")
        if site_url:
            return site_url
        if job.site_id:
            site = self.sites.get(job.workspace_id, job.site_id)
            if site and site.domain:
                return site.domain if "://" in site.domain else f"https://{site.domain}"
        return None

    def _experiment(self, workspace_id: str, experiment_id: Optional[str]) -> tuple[Optional[str], list[str]]:
        if not experiment_id:
            return None, []
        experiment = self.experiments.get(workspace_id, experiment_id)
        if experiment is None:
            return None, []
        return experiment.id, list(experiment.variants or settings.EXPORT_DEFAULT_VARIANTS)
