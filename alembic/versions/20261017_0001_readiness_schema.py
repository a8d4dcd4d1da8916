"""Readiness assessment schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17

Creates tables for readiness persistence:
- readiness_assessments: one assessment per estate, versioned
- risk_flags: risks raised on each assessment
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ==========================================================================
    # readiness_assessments table
    # ==========================================================================
    op.create_table(
        "readiness_assessments",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("estate_id", sa.String(64), nullable=False),
        sa.Column("family_id", sa.String(64), nullable=True),
        # Succession context
        sa.Column("regime", sa.String(20), nullable=False),
        sa.Column("marriage_type", sa.String(20), nullable=False),
        sa.Column("religion", sa.String(30), nullable=False),
        sa.Column("is_minor_involved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("has_disputed_assets", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("estate_value_kes", sa.Float(), nullable=True),
        sa.Column("context", postgresql.JSONB(), nullable=False),
        # Score
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("filing_confidence", sa.String(20), nullable=False),
        sa.Column("critical_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("high_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("medium_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("low_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("estimated_days_to_ready", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("next_milestone", sa.Text(), nullable=False),
        sa.Column("score_calculated_at", sa.DateTime(timezone=True), nullable=False),
        # Filing guidance
        sa.Column("missing_documents", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("blocking_issues", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("recommended_strategy", sa.Text(), nullable=False, server_default=""),
        # Lifecycle
        sa.Column("last_assessed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_recalculation_trigger", sa.String(100), nullable=True),
        sa.Column("is_complete", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_recalculations", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("row_created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("row_updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_readiness_assessments_estate_id", "readiness_assessments", ["estate_id"], unique=True
    )
    op.create_index("ix_readiness_assessments_status", "readiness_assessments", ["status"])
    op.create_index("ix_readiness_assessments_is_complete", "readiness_assessments", ["is_complete"])

    # ==========================================================================
    # risk_flags table
    # ==========================================================================
    op.create_table(
        "risk_flags",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("assessment_id", sa.String(36), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("severity", sa.String(10), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("is_blocking", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("legal_basis", sa.Text(), nullable=False),
        sa.Column("detection_rule_id", sa.String(100), nullable=False),
        sa.Column("impact_score", sa.Integer(), nullable=False),
        sa.Column("source", postgresql.JSONB(), nullable=False),
        sa.Column("document_gap", postgresql.JSONB(), nullable=True),
        sa.Column("mitigation_steps", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("affected_entity_ids", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("affected_aggregate_ids", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("expected_resolution_events", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by", sa.String(100), nullable=True),
        sa.Column("resolution_method", sa.String(30), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("auto_resolve_timeout", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_reviewed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["assessment_id"], ["readiness_assessments.id"], ondelete="CASCADE"
        ),
    )
    op.create_index("ix_risk_flags_assessment_id", "risk_flags", ["assessment_id"])
    op.create_index("ix_risk_flags_severity", "risk_flags", ["severity"])
    op.create_index("ix_risk_flags_category", "risk_flags", ["category"])
    op.create_index("ix_risk_flags_status", "risk_flags", ["status"])
    op.create_index("ix_risk_flags_auto_resolve_timeout", "risk_flags", ["auto_resolve_timeout"])


def downgrade() -> None:
    op.drop_table("risk_flags")
    op.drop_table("readiness_assessments")
