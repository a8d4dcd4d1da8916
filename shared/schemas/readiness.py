"""
Readiness Schemas
=================

Pydantic contracts for the readiness engine.

    - EventEnvelope: transport form of every emitted domain event
    - AssessmentSummary: read model returned by the application service
    - *Record models: shape of persisted assessment state, checked
      before an aggregate is rebuilt from storage

Author: Mirathi Team
Version: 1.0.0
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


Severity = Literal["CRITICAL", "HIGH", "MEDIUM", "LOW"]
Status = Literal["BLOCKED", "IN_PROGRESS", "READY_TO_FILE"]


# =============================================================================
# Event transport
# =============================================================================

class EventEnvelope(BaseModel):
    """
    Envelope delivered to subscribers for each readiness event.

    Example:
        {
            "event_id": "9b1f...",
            "event_type": "RiskFlagResolved",
            "aggregate_id": "a-123",
            "aggregate_type": "ReadinessAssessment",
            "version": 4,
            "occurred_at": "2026-10-17T09:00:00Z",
            "payload": {"risk_id": "r-1", "resolution_method": "MANUAL_RESOLUTION"},
            "correlation_id": "c0ffee123456"
        }
    """
    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: str = Field(..., description="Domain event class name")
    aggregate_id: str = Field(..., description="Assessment id")
    aggregate_type: str = Field(default="ReadinessAssessment")
    version: int = Field(..., ge=1, description="Aggregate version at emission")
    occurred_at: datetime
    payload: Dict[str, Any] = Field(default_factory=dict)
    correlation_id: Optional[str] = Field(None, description="Unit of work that emitted the event")
    published_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# =============================================================================
# Read model
# =============================================================================

class AssessmentSummary(BaseModel):
    """Dashboard view of one assessment."""
    assessment_id: str
    estate_id: str
    family_id: Optional[str] = None
    score: int = Field(..., ge=0, le=100)
    status: Status
    filing_confidence: str
    percentage_to_filing: int = Field(..., ge=0, le=100)
    estimated_days_to_ready: int = Field(..., ge=0)
    next_milestone: str
    message: str
    court: str
    case_classification: str
    risk_breakdown: Dict[str, int]
    blocking_issues: List[str] = Field(default_factory=list)
    missing_documents: List[str] = Field(default_factory=list)
    recommended_strategy: str
    is_complete: bool
    is_stale: bool
    version: int
    last_assessed_at: datetime


# =============================================================================
# Persisted state
# =============================================================================

class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore")


class RiskSourceRecord(_Record):
    source_type: str
    detection_method: str = Field(..., min_length=1)
    source_entity_id: Optional[str] = None
    source_entity_type: Optional[str] = None
    legal_basis: Optional[str] = None
    detected_at: datetime


class DocumentGapRecord(_Record):
    type: str
    severity: Severity
    description: str
    legal_basis: str
    obtaining_instructions: str
    estimated_time_days: int = Field(..., ge=0)
    alternative_options: Optional[str] = None
    is_waivable: bool


class SuccessionContextRecord(_Record):
    regime: str
    marriage_type: str
    religion: str
    is_minor_involved: bool
    has_disputed_assets: bool
    is_estate_insolvent: bool
    is_business_assets_involved: bool
    is_foreign_assets_involved: bool
    is_charitable_bequest: bool
    has_dependants_with_disabilities: bool
    estimated_complexity_score: int = Field(..., ge=1, le=10)
    total_beneficiaries: int = Field(..., ge=1)
    estate_value_kes: Optional[float] = Field(None, ge=0)


class ReadinessScoreRecord(_Record):
    score: int = Field(..., ge=0, le=100)
    status: Status
    critical_count: int = Field(..., ge=0)
    high_count: int = Field(..., ge=0)
    medium_count: int = Field(..., ge=0)
    low_count: int = Field(..., ge=0)
    filing_confidence: str
    estimated_days_to_ready: int = Field(..., ge=0)
    next_milestone: str
    calculated_at: datetime


class RiskFlagRecord(_Record):
    id: str
    severity: Severity
    category: str
    description: str = Field(..., min_length=1)
    source: RiskSourceRecord
    legal_basis: str
    detection_rule_id: str = Field(..., min_length=1)
    impact_score: int = Field(..., ge=1, le=10)
    mitigation_steps: List[str] = Field(default_factory=list)
    document_gap: Optional[DocumentGapRecord] = None
    affected_entity_ids: List[str] = Field(default_factory=list)
    affected_aggregate_ids: List[str] = Field(default_factory=list)
    expected_resolution_events: List[str] = Field(default_factory=list)
    status: Literal["ACTIVE", "RESOLVED", "SUPERSEDED", "EXPIRED", "DISPUTED"]
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    resolution_method: Optional[str] = None
    resolution_notes: Optional[str] = None
    auto_resolve_timeout: Optional[datetime] = None
    last_reviewed_at: datetime
    review_count: int = Field(..., ge=0)
    created_at: datetime
    updated_at: datetime


class AssessmentStateRecord(_Record):
    """Complete persisted state of one readiness assessment."""
    id: str
    estate_id: str
    family_id: Optional[str] = None
    context: SuccessionContextRecord
    score: ReadinessScoreRecord
    risk_flags: List[RiskFlagRecord] = Field(default_factory=list)
    missing_documents: List[DocumentGapRecord] = Field(default_factory=list)
    blocking_issues: List[str] = Field(default_factory=list)
    recommended_strategy: str = ""
    last_assessed_at: datetime
    last_recalculation_trigger: Optional[str] = None
    is_complete: bool = False
    completed_at: Optional[datetime] = None
    total_recalculations: int = Field(0, ge=0)
    version: int = Field(..., ge=1)
    created_at: datetime
