"""Creative pipeline schema"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_creative_pipeline"
down_revision = None
branch_labels = None
depends_on = None

JSON = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")

job_status_enum = sa.Enum(
    "queued", "running", "done", "failed", "needs_manual_review", name="creative_job_status"
)
claim_decision_enum = sa.Enum("rewritten", "flagged", name="claim_decision")
asset_type_enum = sa.Enum(
    "video_9_16", "video_1_1", "video_16_9", "thumbnail", "srt", "copy_pack", name="creative_asset_type"
)
risk_level_enum = sa.Enum("low", "medium", "high", name="risk_level")
approval_status_enum = sa.Enum("pending", "approved", "rejected", name="approval_status")
actor_type_enum = sa.Enum("user", "agent", name="actor_type")


def _id() -> sa.Column:
    return sa.Column("id", sa.String(36), primary_key=True)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def _workspace_fk(**kwargs) -> sa.Column:
    return sa.Column(
        "workspace_id", sa.String(36), sa.ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, **kwargs
    )


def _job_fk(**kwargs) -> sa.Column:
    return sa.Column("job_id", sa.String(36), sa.ForeignKey("creative_jobs.id", ondelete="CASCADE"), **kwargs)


def upgrade() -> None:
    op.create_table("workspaces", _id(), sa.Column("name", sa.Text(), nullable=False), _created_at())

    op.create_table(
        "workspace_members",
        _id(),
        _workspace_fk(index=True),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        _created_at(),
        sa.UniqueConstraint("workspace_id", "user_id", name="uq_workspace_members_user"),
    )

    op.create_table(
        "sites",
        _id(),
        _workspace_fk(index=True),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("domain", sa.Text(), nullable=True),
        _created_at(),
    )

    op.create_table(
        "brand_kits",
        _id(),
        _workspace_fk(index=True),
        sa.Column(
            "site_id", sa.String(36), sa.ForeignKey("sites.id", ondelete="CASCADE"), nullable=False, unique=True
        ),
        sa.Column("tone_of_voice", sa.Text(), nullable=True),
        sa.Column("values", JSON, nullable=False),
        sa.Column("forbidden_words", JSON, nullable=False),
        _created_at(),
    )

    op.create_table(
        "experiments",
        _id(),
        _workspace_fk(index=True),
        sa.Column("hypothesis", sa.Text(), nullable=True),
        sa.Column("variants", JSON, nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="planned"),
        _created_at(),
    )

    op.create_table(
        "workspace_quotas",
        sa.Column(
            "workspace_id",
            sa.String(36),
            sa.ForeignKey("workspaces.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("concurrent_runs", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("concurrent_runs >= 0", name="ck_workspace_quotas_non_negative"),
    )

    op.create_table(
        "creative_jobs",
        _id(),
        _workspace_fk(),
        sa.Column("site_id", sa.String(36), sa.ForeignKey("sites.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "experiment_id", sa.String(36), sa.ForeignKey("experiments.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("approval_id", sa.String(36), nullable=True),
        sa.Column("idempotency_key", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Text(), nullable=True),
        sa.Column("status", job_status_enum, nullable=False, server_default="queued"),
        sa.Column("objective", sa.Text(), nullable=False),
        sa.Column("language", sa.Text(), nullable=False),
        sa.Column("geo", sa.Text(), nullable=True),
        sa.Column("style", sa.Text(), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=False),
        sa.Column("variant_name", sa.Text(), nullable=False, server_default="A"),
        sa.Column("input", JSON, nullable=False),
        sa.Column("output", JSON, nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("cost_estimate", sa.Float(), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("workspace_id", "idempotency_key", name="uq_creative_jobs_idempotency_key"),
    )
    op.create_index("idx_creative_jobs_workspace_status", "creative_jobs", ["workspace_id", "status"])

    op.create_table(
        "creative_blueprints",
        _id(),
        _job_fk(nullable=False, index=True),
        _workspace_fk(),
        sa.Column("aspect_ratio", sa.String(8), nullable=False),
        sa.Column("variant", sa.String(8), nullable=False),
        sa.Column("variant_index", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("blueprint", JSON, nullable=False),
        sa.Column("qa_report", JSON, nullable=False),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.UniqueConstraint("job_id", "aspect_ratio", "variant", "version", name="uq_creative_blueprints_slot"),
    )

    op.create_table(
        "claim_decisions",
        _id(),
        _workspace_fk(),
        _job_fk(nullable=False, index=True),
        sa.Column("field", sa.Text(), nullable=False),
        sa.Column("original_text", sa.Text(), nullable=False),
        sa.Column("decision", claim_decision_enum, nullable=False),
        sa.Column("rewritten_text", sa.Text(), nullable=True),
        sa.Column("matched_term", sa.Text(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        _created_at(),
    )

    op.create_table(
        "creative_assets",
        _id(),
        _job_fk(nullable=False),
        _workspace_fk(),
        sa.Column("asset_type", asset_type_enum, nullable=False),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("meta", JSON, nullable=False),
        _created_at(),
    )
    op.create_index("idx_creative_assets_job_type", "creative_assets", ["job_id", "asset_type"])

    op.create_table(
        "approval_items",
        _id(),
        _workspace_fk(),
        sa.Column("site_id", sa.String(36), sa.ForeignKey("sites.id", ondelete="SET NULL"), nullable=True),
        _job_fk(nullable=False, unique=True),
        sa.Column("agent_type", sa.Text(), nullable=False),
        sa.Column("action_type", sa.Text(), nullable=False),
        sa.Column("risk_level", risk_level_enum, nullable=False),
        sa.Column("action_payload", JSON, nullable=False),
        sa.Column("status", approval_status_enum, nullable=False, server_default="pending"),
        sa.Column("reviewer_id", sa.Text(), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index("idx_approval_items_workspace_status", "approval_items", ["workspace_id", "status"])

    op.create_table(
        "audit_events",
        _id(),
        _workspace_fk(index=True),
        sa.Column(
            "job_id", sa.String(36), sa.ForeignKey("creative_jobs.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("actor_type", actor_type_enum, nullable=False),
        sa.Column("actor_id", sa.Text(), nullable=True),
        sa.Column("action_type", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("details", JSON, nullable=False),
        _created_at(),
    )


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_index("idx_approval_items_workspace_status", table_name="approval_items")
    op.drop_table("approval_items")
    op.drop_index("idx_creative_assets_job_type", table_name="creative_assets")
    op.drop_table("creative_assets")
    op.drop_table("claim_decisions")
    op.drop_table("creative_blueprints")
    op.drop_index("idx_creative_jobs_workspace_status", table_name="creative_jobs")
    op.drop_table("creative_jobs")
    op.drop_table("workspace_quotas")
    op.drop_table("experiments")
    op.drop_table("brand_kits")
    op.drop_table("sites")
    op.drop_table("workspace_members")
    op.drop_table("workspaces")

    bind = op.get_bind()
    for enum in (
        actor_type_enum,
        approval_status_enum,
        risk_level_enum,
        asset_type_enum,
        claim_decision_enum,
        job_status_enum,
    ):
        enum.drop(bind, checkfirst=True)
