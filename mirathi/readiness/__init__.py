"""
Readiness Module
================

Filing readiness of succession cases.

Components:
    - RiskSource / DocumentGap / SuccessionContext: value objects
    - ReadinessScore: gate-then-weight scoring
    - RiskFlag: detected risk with its resolution lifecycle
    - ReadinessAssessment: aggregate root owning risks and derived state
    - ReadinessService: load, mutate and save with conflict retries

Author: Mirathi Team
Version: 1.0.0
"""

from mirathi.readiness.assessment import ReadinessAssessment
from mirathi.readiness.document_gap import DocumentGap, DocumentGapType
from mirathi.readiness.events import (
    DocumentGapIdentified,
    ReadinessAssessmentCompleted,
    ReadinessAssessmentCreated,
    ReadinessEvent,
    ReadinessScoreUpdated,
    ReadinessStatusChanged,
    RecommendedStrategyUpdated,
    RiskFlagAutoResolved,
    RiskFlagDetected,
    RiskFlagResolved,
)
from mirathi.readiness.exceptions import (
    AssessmentAlreadyCompleteError,
    AssessmentInconsistentError,
    AssessmentNotFoundError,
    CannotCompleteAssessmentError,
    ConcurrencyConflictError,
    DuplicateRiskFlagError,
    DuplicateRiskIdError,
    InvalidRiskTransitionError,
    InvalidValueError,
    InvariantViolationError,
    NotFoundError,
    PersistedStateError,
    ReadinessError,
    RiskAlreadyResolvedError,
    RiskNotFoundError,
    RiskNotResolvedError,
)
from mirathi.readiness.risk_flag import (
    ResolutionMethod,
    RiskCategory,
    RiskFlag,
    RiskStatus,
)
from mirathi.readiness.risk_source import RiskSource, RiskSourceType
from mirathi.readiness.score import (
    READY_THRESHOLD,
    FilingConfidence,
    ReadinessScore,
    ReadinessStatus,
    RiskCounts,
)
from mirathi.readiness.severity import RiskSeverity
from mirathi.readiness.succession_context import (
    CasePriority,
    CourtJurisdiction,
    MarriageType,
    Religion,
    SuccessionContext,
    SuccessionRegime,
)

__all__ = [
    # Aggregate and entity
    "ReadinessAssessment",
    "RiskFlag",
    "RiskCategory",
    "RiskStatus",
    "ResolutionMethod",
    # Value objects
    "RiskSource",
    "RiskSourceType",
    "RiskSeverity",
    "DocumentGap",
    "DocumentGapType",
    "SuccessionContext",
    "SuccessionRegime",
    "MarriageType",
    "Religion",
    "CourtJurisdiction",
    "CasePriority",
    "ReadinessScore",
    "ReadinessStatus",
    "FilingConfidence",
    "RiskCounts",
    "READY_THRESHOLD",
    # Events
    "ReadinessEvent",
    "ReadinessAssessmentCreated",
    "RiskFlagDetected",
    "RiskFlagResolved",
    "RiskFlagAutoResolved",
    "ReadinessScoreUpdated",
    "ReadinessStatusChanged",
    "DocumentGapIdentified",
    "RecommendedStrategyUpdated",
    "ReadinessAssessmentCompleted",
    # Errors
    "ReadinessError",
    "InvalidValueError",
    "InvariantViolationError",
    "RiskAlreadyResolvedError",
    "RiskNotResolvedError",
    "DuplicateRiskFlagError",
    "DuplicateRiskIdError",
    "InvalidRiskTransitionError",
    "AssessmentAlreadyCompleteError",
    "CannotCompleteAssessmentError",
    "AssessmentInconsistentError",
    "NotFoundError",
    "RiskNotFoundError",
    "AssessmentNotFoundError",
    "ConcurrencyConflictError",
    "PersistedStateError",
]
