import json

from sqlalchemy import func, select

from creative_factory.db.enums import (
    ApprovalStatusEnum,
    ClaimDecisionEnum,
    CreativeAssetTypeEnum,
    JobStatusEnum,
    RiskLevelEnum,
)
from creative_factory.db.models import ApprovalItem, AuditEvent, ClaimDecision, CreativeAsset, CreativeBlueprint, CreativeJob
from creative_factory.db.repositories.experiments import ExperimentsRepository
from creative_factory.db.repositories.sites import SitesRepository
from fakes import TEST_USER_ID


def _count(db_session, model, **filters) -> int:
    stmt = select(func.count()).select_from(model).filter_by(**filters)
    return db_session.execute(stmt).scalar_one()


def test_init_generates_blueprints_copy_pack_and_approval(api_client, db_session, init_payload, fake_llm):
    response = api_client.post("/creative/init", json=init_payload())

    assert response.status_code == 200
    body = response.json()
    job_id = body["job_id"]
    assert body["status"] == "queued"
    assert body["blueprints_count"] == 6
    assert body["compliance_verdict"] == {"approved": True, "issues": [], "qa_score": 100}
    assert body["copywriting_preview"]["hooks"][0] == "Votre équipe mérite mieux"
    assert body["cost_estimate"] == 0.18
    assert body["replayed"] is False

    blueprints = db_session.scalars(select(CreativeBlueprint).filter_by(job_id=job_id)).all()
    assert len(blueprints) == 6
    assert {(bp.aspect_ratio, bp.variant) for bp in blueprints} == {
        (ratio, variant) for ratio in ("9:16", "1:1", "16:9") for variant in ("A", "B")
    }
    assert all(bp.is_approved for bp in blueprints)
    assert all(bp.qa_report["compliance"]["approved"] is True for bp in blueprints)

    assets = db_session.scalars(select(CreativeAsset).filter_by(job_id=job_id)).all()
    assert [asset.asset_type for asset in assets] == [CreativeAssetTypeEnum.copy_pack]
    assert assets[0].meta["hooks"] == body["copywriting_preview"]["hooks"]

    approval = db_session.scalars(select(ApprovalItem).filter_by(job_id=job_id)).one()
    assert approval.id == body["approval_id"]
    assert approval.risk_level == RiskLevelEnum.high
    assert approval.status == ApprovalStatusEnum.pending
    assert approval.action_payload["formats"] == ["9:16", "1:1", "16:9"]
    assert approval.action_payload["compliance_approved"] is True

    job = db_session.get(CreativeJob, job_id)
    assert job.created_by == TEST_USER_ID
    assert job.approval_id == approval.id
    assert job.input["offer"] == "Summer Sale"

    assert len(fake_llm.calls_for("creative_copywriting")) == 1
    assert len(fake_llm.calls_for("creative_blueprint")) == 6
    assert len(fake_llm.calls_for("creative_compliance")) == 1
    assert _count(db_session, AuditEvent, job_id=job_id, action_type="creative_init") == 1


def test_init_rewrites_absolute_claims_and_records_decisions(api_client, db_session, init_payload, fake_llm):
    fake_llm.set_copy(hooks=["Le meilleur service garanti", "Une routine simple", "Gagnez du temps chaque jour"])

    response = api_client.post("/creative/init", json=init_payload())

    assert response.status_code == 200
    body = response.json()
    assert body["copywriting_preview"]["hooks"][0] == "Un excellent service conçu pour"

    decisions = db_session.scalars(select(ClaimDecision).filter_by(job_id=body["job_id"])).all()
    assert len(decisions) == 2
    assert {d.decision for d in decisions} == {ClaimDecisionEnum.rewritten}
    assert {d.matched_term for d in decisions} == {"Le meilleur", "garanti"}
    assert all(d.field == "hooks[0]" for d in decisions)
    assert all(d.rewritten_text == "Un excellent service conçu pour" for d in decisions)

    # Blueprint prompts are built from the cleaned copy.
    assert all("Le meilleur" not in prompt for prompt in fake_llm.calls_for("creative_blueprint"))


def test_compliance_network_error_routes_to_manual_review(api_client, db_session, init_payload, fake_llm):
    fake_llm.set_reply("creative_compliance", ConnectionError("connection reset by peer"))

    response = api_client.post("/creative/init", json=init_payload())

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "needs_manual_review"
    verdict = body["compliance_verdict"]
    assert verdict["approved"] is False
    assert any("manual review required" in issue for issue in verdict["issues"])

    blueprints = db_session.scalars(select(CreativeBlueprint).filter_by(job_id=body["job_id"])).all()
    assert len(blueprints) == 6
    assert not any(bp.is_approved for bp in blueprints)
    approval = db_session.scalars(select(ApprovalItem).filter_by(job_id=body["job_id"])).one()
    assert approval.status == ApprovalStatusEnum.pending
    assert approval.action_payload["compliance_approved"] is False


def test_compliance_rejection_keeps_model_issues(api_client, init_payload, fake_llm):
    fake_llm.set_reply("creative_compliance", json.dumps({"approved": False, "issues": ["Contrast too low"]}))

    body = api_client.post("/creative/init", json=init_payload()).json()

    assert body["status"] == "needs_manual_review"
    assert body["compliance_verdict"]["issues"] == ["Contrast too low"]


def test_same_idempotency_key_creates_one_job(api_client, db_session, init_payload, fake_llm, workspace):
    payload = init_payload(idempotency_key="summer-sale-2026")

    first = api_client.post("/creative/init", json=payload)
    second = api_client.post("/creative/init", json=payload)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["job_id"] == first.json()["job_id"]
    assert second.json()["replayed"] is True
    assert second.json()["status"] == first.json()["status"]
    assert _count(db_session, CreativeJob, workspace_id=workspace.id) == 1
    assert len(fake_llm.calls_for("creative_copywriting")) == 1


def test_copywriting_failure_fails_job_and_releases_quota(
    api_client, db_session, init_payload, fake_llm, quota_manager, workspace
):
    fake_llm.set_reply("creative_copywriting", "Sorry, I can't write that.")

    response = api_client.post("/creative/init", json=init_payload())

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "failed"
    assert body["error"].startswith("copywriting failed")
    assert _count(db_session, CreativeBlueprint, job_id=body["job_id"]) == 0
    assert _count(db_session, ApprovalItem, job_id=body["job_id"]) == 0
    assert quota_manager.usage(workspace.id) == 0
    assert fake_llm.calls_for("creative_blueprint") == []


def test_malformed_blueprint_fails_job_without_partial_rows(api_client, db_session, init_payload, fake_llm):
    fake_llm.set_reply("creative_blueprint", json.dumps({"duration_seconds": 15, "scenes": []}))

    body = api_client.post("/creative/init", json=init_payload()).json()

    assert body["status"] == "failed"
    assert body["error"].startswith("blueprint failed")
    assert _count(db_session, CreativeBlueprint, job_id=body["job_id"]) == 0
    assert _count(db_session, CreativeAsset, job_id=body["job_id"]) == 0
    assert _count(db_session, ClaimDecision, job_id=body["job_id"]) == 0


def test_init_rejected_when_workspace_is_at_its_limit(
    api_client, db_session, init_payload, quota_manager, workspace, fake_llm
):
    for _ in range(quota_manager.ceiling):
        assert quota_manager.admit(workspace.id)

    response = api_client.post("/creative/init", json=init_payload())

    assert response.status_code == 429
    assert response.json()["code"] == "quota_exceeded"
    assert _count(db_session, CreativeJob, workspace_id=workspace.id) == 0
    assert fake_llm.calls == []
    assert quota_manager.usage(workspace.id) == quota_manager.ceiling


def test_init_uses_brand_kit_and_experiment(api_client, db_session, init_payload, fake_llm, workspace):
    sites = SitesRepository(db_session)
    site = sites.create(workspace.id, name="Acme Shop", domain="acme.example.test")
    sites.upsert_brand_kit(
        workspace.id, site.id, tone_of_voice="chaleureux", values=["simplicité"], forbidden_words=["cheap"]
    )
    experiment = ExperimentsRepository(db_session).create(workspace.id, variants=["A", "B", "C"])

    body = api_client.post(
        "/creative/init",
        json=init_payload(site_id=site.id, experiment_id=experiment.id),
    ).json()

    prompt = fake_llm.calls_for("creative_copywriting")[0]
    assert "Tone: chaleureux" in prompt
    assert "Forbidden words: cheap" in prompt
    job = db_session.get(CreativeJob, body["job_id"])
    assert job.site_id == site.id
    assert job.experiment_id == experiment.id


def test_init_ignores_site_from_another_workspace(api_client, db_session, init_payload, other_workspace):
    foreign_site = SitesRepository(db_session).create(other_workspace.id, name="Not yours")

    body = api_client.post("/creative/init", json=init_payload(site_id=foreign_site.id)).json()

    assert body["status"] == "queued"
    assert db_session.get(CreativeJob, body["job_id"]).site_id is None


def test_init_validates_request_body(api_client, init_payload):
    assert api_client.post("/creative/init", json=init_payload(objective="world_domination")).status_code == 422
    assert api_client.post("/creative/init", json=init_payload(offer="")).status_code == 422
    assert api_client.post("/creative/init", json=init_payload(unexpected="field")).status_code == 422
