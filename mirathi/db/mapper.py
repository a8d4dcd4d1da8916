"""
Assessment State Mapper
=======================

Converts between the aggregate's persistable state and database rows.

Every load goes through ``rebuild_assessment``, which validates the
state against the shared pydantic records before the aggregate checks
its own invariants.

Author: Mirathi Team
Version: 1.0.0
"""

import logging
from datetime import datetime
from typing import Any, Dict, List

from pydantic import ValidationError

from mirathi.db.models import ReadinessAssessmentDB, RiskFlagDB
from mirathi.readiness.assessment import ReadinessAssessment
from mirathi.readiness.exceptions import PersistedStateError
from shared.schemas.readiness import AssessmentStateRecord


logger = logging.getLogger(__name__)


_RISK_COLUMNS = (
    "severity",
    "category",
    "status",
    "is_blocking",
    "description",
    "legal_basis",
    "detection_rule_id",
    "impact_score",
    "source",
    "document_gap",
    "mitigation_steps",
    "affected_entity_ids",
    "affected_aggregate_ids",
    "expected_resolution_events",
    "resolved_by",
    "resolution_method",
    "resolution_notes",
    "review_count",
)
_RISK_TIMESTAMPS = (
    "resolved_at",
    "auto_resolve_timeout",
    "last_reviewed_at",
    "created_at",
    "updated_at",
)


def _parse(value: Any) -> Any:
    return datetime.fromisoformat(value) if isinstance(value, str) else value


# =============================================================================
# Validation
# =============================================================================

def validate_state(state: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check persisted state against the record schema.

    Returns:
        Normalized JSON-compatible state

    Raises:
        PersistedStateError: If the state does not match the schema
    """
    try:
        record = AssessmentStateRecord.model_validate(state)
    except ValidationError as e:
        logger.error(f"Persisted assessment {state.get('id')} failed validation: {e.error_count()} error(s)")
        raise PersistedStateError(
            "Persisted assessment state is malformed",
            {"assessment_id": state.get("id"), "errors": e.errors(include_url=False)},
        ) from e
    return record.model_dump(mode="json")


def rebuild_assessment(state: Dict[str, Any]) -> ReadinessAssessment:
    """Validate persisted state and reconstruct the aggregate."""
    return ReadinessAssessment.from_persistable_state(validate_state(state))


# =============================================================================
# State -> rows
# =============================================================================

def assessment_columns(state: Dict[str, Any]) -> Dict[str, Any]:
    """Column values for readiness_assessments from aggregate state."""
    context = state["context"]
    score = state["score"]
    return {
        "id": state["id"],
        "estate_id": state["estate_id"],
        "family_id": state.get("family_id"),
        "regime": context["regime"],
        "marriage_type": context["marriage_type"],
        "religion": context["religion"],
        "is_minor_involved": context["is_minor_involved"],
        "has_disputed_assets": context["has_disputed_assets"],
        "estate_value_kes": context.get("estate_value_kes"),
        "context": context,
        "score": score["score"],
        "status": score["status"],
        "filing_confidence": score["filing_confidence"],
        "critical_count": score["critical_count"],
        "high_count": score["high_count"],
        "medium_count": score["medium_count"],
        "low_count": score["low_count"],
        "estimated_days_to_ready": score["estimated_days_to_ready"],
        "next_milestone": score["next_milestone"],
        "score_calculated_at": _parse(score["calculated_at"]),
        "missing_documents": state["missing_documents"],
        "blocking_issues": state["blocking_issues"],
        "recommended_strategy": state["recommended_strategy"],
        "last_assessed_at": _parse(state["last_assessed_at"]),
        "last_recalculation_trigger": state.get("last_recalculation_trigger"),
        "is_complete": state["is_complete"],
        "completed_at": _parse(state.get("completed_at")),
        "total_recalculations": state["total_recalculations"],
        "version": state["version"],
        "created_at": _parse(state["created_at"]),
    }


def risk_flag_rows(state: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Column values for risk_flags, one dict per risk in aggregate order."""
    rows = []
    for position, risk in enumerate(state["risk_flags"]):
        row = {
            "id": risk["id"],
            "assessment_id": state["id"],
            "position": position,
        }
        row.update({name: risk[name] for name in _RISK_COLUMNS})
        row.update({name: _parse(risk.get(name)) for name in _RISK_TIMESTAMPS})
        rows.append(row)
    return rows


def to_model(state: Dict[str, Any]) -> ReadinessAssessmentDB:
    """Build a new ORM row with its risk children."""
    row = ReadinessAssessmentDB(**assessment_columns(state))
    row.risk_flags = [RiskFlagDB(**risk) for risk in risk_flag_rows(state)]
    return row


# =============================================================================
# Rows -> state
# =============================================================================

def _risk_state(row: RiskFlagDB) -> Dict[str, Any]:
    risk = {"id": row.id}
    risk.update({name: getattr(row, name) for name in _RISK_COLUMNS})
    risk.update({name: getattr(row, name) for name in _RISK_TIMESTAMPS})
    return risk


def from_model(row: ReadinessAssessmentDB) -> Dict[str, Any]:
    """Raw aggregate state from an ORM row (not yet validated)."""
    return {
        "id": row.id,
        "estate_id": row.estate_id,
        "family_id": row.family_id,
        "context": row.context,
        "score": {
            "score": row.score,
            "status": row.status,
            "critical_count": row.critical_count,
            "high_count": row.high_count,
            "medium_count": row.medium_count,
            "low_count": row.low_count,
            "filing_confidence": row.filing_confidence,
            "estimated_days_to_ready": row.estimated_days_to_ready,
            "next_milestone": row.next_milestone,
            "calculated_at": row.score_calculated_at,
        },
        "risk_flags": [_risk_state(risk) for risk in sorted(row.risk_flags, key=lambda r: r.position)],
        "missing_documents": row.missing_documents,
        "blocking_issues": row.blocking_issues,
        "recommended_strategy": row.recommended_strategy,
        "last_assessed_at": row.last_assessed_at,
        "last_recalculation_trigger": row.last_recalculation_trigger,
        "is_complete": row.is_complete,
        "completed_at": row.completed_at,
        "total_recalculations": row.total_recalculations,
        "version": row.version,
        "created_at": row.created_at,
    }
