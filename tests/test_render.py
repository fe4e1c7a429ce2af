import copy

from sqlalchemy import select

from creative_factory.db.enums import CreativeAssetTypeEnum, JobStatusEnum
from creative_factory.db.models import CreativeAsset, CreativeJob
from creative_factory.schemas.blueprint import Blueprint, SubtitleCue
from creative_factory.services.render import (
    RenderOrchestrator,
    blueprint_to_render_source,
    build_srt,
    format_srt_timestamp,
)
from fakes import CLEAN_BLUEPRINT, TEST_USER_ID


def _init_job(api_client, init_payload) -> str:
    response = api_client.post("/creative/init", json=init_payload())
    assert response.status_code == 200
    return response.json()["job_id"]


def _render(api_client, workspace, job_id, **extra):
    return api_client.post("/creative/render", json={"workspace_id": workspace.id, "job_id": job_id, **extra})


def _assets(db_session, job_id, asset_type):
    stmt = select(CreativeAsset).filter_by(job_id=job_id, asset_type=asset_type)
    return db_session.scalars(stmt).all()


def test_format_srt_timestamp():
    assert format_srt_timestamp(0) == "00:00:00,000"
    assert format_srt_timestamp(3.25) == "00:00:03,250"
    assert format_srt_timestamp(3661.5) == "01:01:01,500"


def test_build_srt_orders_and_numbers_cues():
    srt = build_srt(
        [
            SubtitleCue(start=3, end=6, text="Second"),
            SubtitleCue(start=0, end=3, text=" First "),
        ]
    )

    assert srt == "1\n00:00:00,000 --> 00:00:03,000\nFirst\n\n2\n00:00:03,000 --> 00:00:06,000\nSecond\n"


def test_render_source_uses_format_dimensions_and_logo():
    blueprint = Blueprint.model_validate({**copy.deepcopy(CLEAN_BLUEPRINT), "aspect_ratio": "16:9", "lead_cta": "Go"})

    source = blueprint_to_render_source(blueprint, logo_url="https://cdn.example.test/logo.png")

    assert (source["width"], source["height"]) == (1920, 1080)
    assert source["duration"] == 15
    texts = [element["text"] for element in source["elements"] if element["type"] == "text"]
    assert texts == ["Votre équipe mérite mieux", "Tout au même endroit", "Essayez gratuitement", "Go"]
    images = [element["source"] for element in source["elements"] if element["type"] == "image"]
    assert images == ["https://cdn.example.test/product.png", "https://cdn.example.test/logo.png"]
    cta = source["elements"][-1]
    assert cta["time"] == 12
    assert cta["duration"] == 3


def test_partial_render_failure_still_completes_job(api_client, db_session, init_payload, workspace, fake_render):
    job_id = _init_job(api_client, init_payload)
    fake_render.failing_dimensions.add((1920, 1080))

    response = _render(api_client, workspace, job_id)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "done"
    assert sorted(render["aspect_ratio"] for render in body["renders"]) == ["1:1", "9:16"]
    assert [failure["aspect_ratio"] for failure in body["failures"]] == ["16:9"]
    assert body["failures"][0]["error"] == "Renderer crashed"
    assert body["cost_estimate"] == 0.12

    videos = [
        asset
        for asset_type in (
            CreativeAssetTypeEnum.video_9_16,
            CreativeAssetTypeEnum.video_1_1,
            CreativeAssetTypeEnum.video_16_9,
        )
        for asset in _assets(db_session, job_id, asset_type)
    ]
    assert len(videos) == 2
    assert all(video.url.endswith(".mp4") for video in videos)
    assert all(video.meta["variant"] == "A" for video in videos)
    assert len(_assets(db_session, job_id, CreativeAssetTypeEnum.srt)) == 2
    assert len(_assets(db_session, job_id, CreativeAssetTypeEnum.thumbnail)) == 2

    job = db_session.get(CreativeJob, job_id)
    assert job.status == JobStatusEnum.done
    assert job.cost_estimate == 0.12
    assert [failure["aspect_ratio"] for failure in job.output["render_failures"]] == ["16:9"]


def test_client_error_on_one_format_does_not_abort_the_others(
    api_client, db_session, init_payload, workspace, fake_render, quota_manager
):
    job_id = _init_job(api_client, init_payload)
    fake_render.submit_errors[(1920, 1080)] = TimeoutError("socket read timed out")

    response = _render(api_client, workspace, job_id)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "done"
    assert sorted(render["aspect_ratio"] for render in body["renders"]) == ["1:1", "9:16"]
    assert [failure["aspect_ratio"] for failure in body["failures"]] == ["16:9"]
    assert "socket read timed out" in body["failures"][0]["error"]
    assert body["cost_estimate"] == 0.12
    assert len(_assets(db_session, job_id, CreativeAssetTypeEnum.video_9_16)) == 1
    assert len(_assets(db_session, job_id, CreativeAssetTypeEnum.video_1_1)) == 1
    assert _assets(db_session, job_id, CreativeAssetTypeEnum.video_16_9) == []
    assert db_session.get(CreativeJob, job_id).status == JobStatusEnum.done
    assert quota_manager.usage(workspace.id) == 0


def test_render_that_never_finishes_fails_after_the_poll_ceiling(
    api_client, db_session, init_payload, workspace, fake_render, quota_manager
):
    job_id = _init_job(api_client, init_payload)
    fake_render.stalled = True
    sleeps = []
    orchestrator = RenderOrchestrator(
        db_session, fake_render, quota_manager, poll_interval_seconds=2.0, max_poll_attempts=3, sleep=sleeps.append
    )

    response = orchestrator.render(workspace.id, job_id, user_id=TEST_USER_ID)

    assert response.status == JobStatusEnum.failed
    assert response.renders == []
    assert [failure.error for failure in response.failures] == ["render timed out after 3 poll attempts"] * 3
    assert set(fake_render.poll_counts.values()) == {3}
    assert sleeps == [2.0] * 6
    assert fake_render.submitted("jpg") == []
    assert db_session.get(CreativeJob, job_id).status == JobStatusEnum.failed
    assert quota_manager.usage(workspace.id) == 0


def test_render_writes_srt_content(api_client, db_session, init_payload, workspace):
    job_id = _init_job(api_client, init_payload)

    assert _render(api_client, workspace, job_id).status_code == 200

    srt_assets = _assets(db_session, job_id, CreativeAssetTypeEnum.srt)
    assert len(srt_assets) == 3
    assert srt_assets[0].meta["content"].startswith("1\n00:00:00,000 --> 00:00:05,000\nVos journées sont trop courtes.\n")


def test_thumbnail_falls_back_to_static_composition(api_client, db_session, init_payload, workspace, fake_render):
    job_id = _init_job(api_client, init_payload)
    fake_render.fail_snapshots = True

    body = _render(api_client, workspace, job_id).json()

    assert body["status"] == "done"
    assert {thumb["source"] for thumb in body["thumbnails"]} == {"static_composition_fallback"}
    assert all(thumb["url"].endswith(".jpg") for thumb in body["thumbnails"])
    static_sources = [s for s in fake_render.submitted("jpg") if "snapshot_time" not in s]
    assert len(static_sources) == 3
    assert all("animations" not in element for s in static_sources for element in s["elements"])


def test_thumbnail_snapshot_error_falls_back_to_static_composition(api_client, init_payload, workspace, fake_render):
    job_id = _init_job(api_client, init_payload)
    fake_render.snapshot_poll_error = ValueError("unexpected snapshot payload")

    body = _render(api_client, workspace, job_id).json()

    assert body["status"] == "done"
    assert len(body["renders"]) == 3
    assert {thumb["source"] for thumb in body["thumbnails"]} == {"static_composition_fallback"}


def test_thumbnail_marked_for_manual_upload_when_every_method_fails(
    api_client, db_session, init_payload, workspace, fake_render
):
    job_id = _init_job(api_client, init_payload)
    fake_render.fail_snapshots = True
    fake_render.fail_static = True

    body = _render(api_client, workspace, job_id).json()

    assert body["status"] == "done"
    assert {thumb["source"] for thumb in body["thumbnails"]} == {"pending_manual"}
    assert all(thumb["url"] is None for thumb in body["thumbnails"])
    assert body["cost_estimate"] == 0.15
    thumbs = _assets(db_session, job_id, CreativeAssetTypeEnum.thumbnail)
    assert all(thumb.meta["error"].startswith("All auto-generation methods failed") for thumb in thumbs)


def test_all_formats_failing_fails_job(api_client, db_session, init_payload, workspace, fake_render, quota_manager):
    job_id = _init_job(api_client, init_payload)
    fake_render.failing_dimensions.update({(1080, 1920), (1080, 1080), (1920, 1080)})

    body = _render(api_client, workspace, job_id).json()

    assert body["status"] == "failed"
    assert body["renders"] == []
    assert len(body["failures"]) == 3
    assert body["cost_estimate"] == 0
    assert db_session.get(CreativeJob, job_id).error == "All formats failed to render"
    assert quota_manager.usage(workspace.id) == 0

    retry = _render(api_client, workspace, job_id)
    assert retry.status_code == 409
    assert retry.json()["code"] == "invalid_job_state"


def test_render_requires_approved_blueprints_for_variant(api_client, init_payload, workspace):
    job_id = _init_job(api_client, init_payload)

    response = _render(api_client, workspace, job_id, variant="C")

    assert response.status_code == 409
    assert response.json()["code"] == "blueprints_not_approved"


def test_render_refuses_job_awaiting_manual_review(api_client, init_payload, workspace, fake_llm, fake_render):
    fake_llm.set_reply("creative_compliance", TimeoutError("compliance timed out"))
    job_id = _init_job(api_client, init_payload)

    response = _render(api_client, workspace, job_id)

    assert response.status_code == 409
    assert response.json()["details"]["status"] == "needs_manual_review"
    assert fake_render.sources == {}


def test_render_unknown_job_is_404(api_client, workspace):
    response = _render(api_client, workspace, "00000000-0000-0000-0000-000000000000")

    assert response.status_code == 404
    assert response.json()["code"] == "job_not_found"


def test_render_rejected_when_workspace_is_at_its_limit(
    api_client, init_payload, workspace, quota_manager, fake_render
):
    job_id = _init_job(api_client, init_payload)
    for _ in range(quota_manager.ceiling):
        quota_manager.admit(workspace.id)

    response = _render(api_client, workspace, job_id)

    assert response.status_code == 429
    assert fake_render.sources == {}
