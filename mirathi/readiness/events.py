"""
Readiness Domain Events
=======================

Events emitted by the readiness assessment aggregate. Each event is an
additive audit record carrying the aggregate id, aggregate type, the
aggregate version at emission, a typed payload and an occurrence time.

Author: Mirathi Team
Version: 1.0.0
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Optional

from mirathi.readiness.risk_flag import ResolutionMethod, RiskCategory
from mirathi.readiness.risk_source import utc_now
from mirathi.readiness.score import ReadinessStatus
from mirathi.readiness.severity import RiskSeverity


SIGNIFICANT_SCORE_CHANGE = 10

_ENVELOPE_FIELDS = ("aggregate_id", "version", "occurred_at")


def _serialize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


@dataclass(frozen=True, kw_only=True)
class ReadinessEvent:
    """Base class for readiness assessment events."""
    aggregate_id: str
    version: int
    occurred_at: datetime = field(default_factory=utc_now)

    aggregate_type: ClassVar[str] = "ReadinessAssessment"

    @property
    def event_type(self) -> str:
        return type(self).__name__

    def payload(self) -> Dict[str, Any]:
        return {
            f.name: _serialize(getattr(self, f.name))
            for f in fields(self)
            if f.name not in _ENVELOPE_FIELDS
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "aggregate_id": self.aggregate_id,
            "aggregate_type": self.aggregate_type,
            "version": self.version,
            "occurred_at": self.occurred_at.isoformat(),
            "payload": self.payload(),
        }


@dataclass(frozen=True, kw_only=True)
class ReadinessAssessmentCreated(ReadinessEvent):
    estate_id: str
    family_id: Optional[str]
    initial_score: int
    initial_status: ReadinessStatus
    court_jurisdiction: str
    case_classification: str


@dataclass(frozen=True, kw_only=True)
class RiskFlagDetected(ReadinessEvent):
    estate_id: str
    risk_id: str
    severity: RiskSeverity
    category: RiskCategory
    description: str
    is_blocking: bool
    source_type: str
    detection_rule_id: str


@dataclass(frozen=True, kw_only=True)
class RiskFlagResolved(ReadinessEvent):
    estate_id: str
    risk_id: str
    category: RiskCategory
    resolution_method: ResolutionMethod
    resolved_by: str
    resolution_notes: Optional[str]


@dataclass(frozen=True, kw_only=True)
class RiskFlagAutoResolved(ReadinessEvent):
    estate_id: str
    risk_id: str
    category: RiskCategory
    triggered_by_event: str
    resolved_by: str


@dataclass(frozen=True, kw_only=True)
class ReadinessScoreUpdated(ReadinessEvent):
    estate_id: str
    previous_score: int
    new_score: int
    previous_status: ReadinessStatus
    new_status: ReadinessStatus
    trigger: str

    def is_improvement(self) -> bool:
        return self.new_score > self.previous_score

    def is_significant_change(self) -> bool:
        return abs(self.new_score - self.previous_score) >= SIGNIFICANT_SCORE_CHANGE


@dataclass(frozen=True, kw_only=True)
class ReadinessStatusChanged(ReadinessEvent):
    estate_id: str
    previous_status: ReadinessStatus
    new_status: ReadinessStatus
    trigger: str

    def is_improvement(self) -> bool:
        return self.new_status.rank > self.previous_status.rank

    def is_ready_milestone(self) -> bool:
        return self.new_status == ReadinessStatus.READY_TO_FILE

    def became_blocked(self) -> bool:
        return self.new_status == ReadinessStatus.BLOCKED


@dataclass(frozen=True, kw_only=True)
class DocumentGapIdentified(ReadinessEvent):
    estate_id: str
    document_type: str
    severity: RiskSeverity
    description: str
    is_blocking: bool


@dataclass(frozen=True, kw_only=True)
class RecommendedStrategyUpdated(ReadinessEvent):
    estate_id: str
    strategy: str
    trigger: str


@dataclass(frozen=True, kw_only=True)
class ReadinessAssessmentCompleted(ReadinessEvent):
    estate_id: str
    final_score: int
    final_status: ReadinessStatus
    completed_at: datetime
    total_recalculations: int
