"""
Mirathi Shared Schemas Package
==============================

Pydantic contracts shared between the readiness engine and its
consumers.

This package provides:
    - EventEnvelope: transport schema for readiness domain events
    - AssessmentSummary: read model for dashboards and clients
    - Persisted-state records used to validate stored assessments

Author: Mirathi Team
Version: 1.0.0
"""

from shared.schemas.readiness import (
    AssessmentStateRecord,
    AssessmentSummary,
    DocumentGapRecord,
    EventEnvelope,
    ReadinessScoreRecord,
    RiskFlagRecord,
    RiskSourceRecord,
    SuccessionContextRecord,
)

__all__ = [
    # Transport
    "EventEnvelope",
    # Read model
    "AssessmentSummary",
    # Persisted state
    "AssessmentStateRecord",
    "RiskFlagRecord",
    "RiskSourceRecord",
    "DocumentGapRecord",
    "SuccessionContextRecord",
    "ReadinessScoreRecord",
]
