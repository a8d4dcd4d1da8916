"""
Readiness Database Models
=========================

Tables:
    - readiness_assessments: one row per estate, with the context flags
      and score columns denormalized for dashboard queries
    - risk_flags: child rows, one per risk ever raised on the assessment

``version`` on readiness_assessments is the optimistic-concurrency
token.

Author: Mirathi Team
Version: 1.0.0
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mirathi.db.base import Base, TimestampMixin


class ReadinessAssessmentDB(Base, TimestampMixin):
    """Persisted readiness assessment."""

    __tablename__ = "readiness_assessments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    estate_id: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    family_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Succession context
    regime: Mapped[str] = mapped_column(String(20), nullable=False)
    marriage_type: Mapped[str] = mapped_column(String(20), nullable=False)
    religion: Mapped[str] = mapped_column(String(30), nullable=False)
    is_minor_involved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_disputed_assets: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    estate_value_kes: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    context: Mapped[Dict[str, Any]] = mapped_column(JSONB, nullable=False)

    # Score
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), index=True, nullable=False)
    filing_confidence: Mapped[str] = mapped_column(String(20), nullable=False)
    critical_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    high_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    medium_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    low_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    estimated_days_to_ready: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    next_milestone: Mapped[str] = mapped_column(Text, nullable=False)
    score_calculated_at: Mapped[datetime] = mapped_column(nullable=False)

    # Derived filing guidance
    missing_documents: Mapped[List[Dict[str, Any]]] = mapped_column(JSONB, default=list, nullable=False)
    blocking_issues: Mapped[List[str]] = mapped_column(JSONB, default=list, nullable=False)
    recommended_strategy: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # Lifecycle
    last_assessed_at: Mapped[datetime] = mapped_column(nullable=False)
    last_recalculation_trigger: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_complete: Mapped[bool] = mapped_column(Boolean, default=False, index=True, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    total_recalculations: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    risk_flags: Mapped[List["RiskFlagDB"]] = relationship(
        back_populates="assessment",
        cascade="all, delete-orphan",
        order_by="RiskFlagDB.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<ReadinessAssessmentDB(estate={self.estate_id}, score={self.score}, v={self.version})>"


class RiskFlagDB(Base):
    """Persisted risk flag."""

    __tablename__ = "risk_flags"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    assessment_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("readiness_assessments.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    severity: Mapped[str] = mapped_column(String(10), index=True, nullable=False)
    category: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    status: Mapped[str] = mapped_column(String(20), index=True, nullable=False)
    is_blocking: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    legal_basis: Mapped[str] = mapped_column(Text, nullable=False)
    detection_rule_id: Mapped[str] = mapped_column(String(100), nullable=False)
    impact_score: Mapped[int] = mapped_column(Integer, nullable=False)

    source: Mapped[Dict[str, Any]] = mapped_column(JSONB, nullable=False)
    document_gap: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONB, nullable=True)
    mitigation_steps: Mapped[List[str]] = mapped_column(JSONB, default=list, nullable=False)
    affected_entity_ids: Mapped[List[str]] = mapped_column(JSONB, default=list, nullable=False)
    affected_aggregate_ids: Mapped[List[str]] = mapped_column(JSONB, default=list, nullable=False)
    expected_resolution_events: Mapped[List[str]] = mapped_column(JSONB, default=list, nullable=False)

    resolved_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    resolved_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    resolution_method: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    resolution_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    auto_resolve_timeout: Mapped[Optional[datetime]] = mapped_column(index=True, nullable=True)
    last_reviewed_at: Mapped[datetime] = mapped_column(nullable=False)
    review_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    assessment: Mapped[ReadinessAssessmentDB] = relationship(back_populates="risk_flags")

    def __repr__(self) -> str:
        return f"<RiskFlagDB(id={self.id}, {self.severity}/{self.category}, {self.status})>"
