"""
Readiness Errors
================

Exception hierarchy for the readiness engine.

Kinds:
    - InvariantViolationError: a business rule refused the operation
    - NotFoundError: a referenced assessment or risk does not exist
    - ConcurrencyConflictError: stale version on save (retryable)
    - PersistedStateError: stored data cannot be reconstructed
    - InvalidValueError: a value object failed validation

Author: Mirathi Team
Version: 1.0.0
"""

from typing import Any, Dict, List, Optional


class ReadinessError(Exception):
    """Base error for the readiness engine."""

    code = "READINESS_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
        }


class InvalidValueError(ReadinessError, ValueError):
    """A value object or entity was constructed with invalid data."""

    code = "INVALID_VALUE"
    status_code = 400


# =============================================================================
# Invariant violations
# =============================================================================

class InvariantViolationError(ReadinessError):
    """A business rule prevented the operation."""

    code = "INVARIANT_VIOLATION"
    status_code = 409


class RiskAlreadyResolvedError(InvariantViolationError):
    code = "RISK_ALREADY_RESOLVED"

    def __init__(self, risk_id: str):
        super().__init__(
            f"Risk {risk_id} is already resolved",
            {"risk_id": risk_id},
        )
        self.risk_id = risk_id


class RiskNotResolvedError(InvariantViolationError):
    code = "RISK_NOT_RESOLVED"

    def __init__(self, risk_id: str):
        super().__init__(
            f"Risk {risk_id} is not resolved and cannot be reopened",
            {"risk_id": risk_id},
        )
        self.risk_id = risk_id


class DuplicateRiskFlagError(InvariantViolationError):
    code = "DUPLICATE_RISK_FLAG"

    def __init__(self, fingerprint: str, existing_risk_id: str):
        super().__init__(
            f"An unresolved risk with the same fingerprint already exists ({existing_risk_id})",
            {"fingerprint": fingerprint, "existing_risk_id": existing_risk_id},
        )
        self.fingerprint = fingerprint
        self.existing_risk_id = existing_risk_id


class DuplicateRiskIdError(InvariantViolationError):
    code = "DUPLICATE_RISK_ID"

    def __init__(self, risk_id: str):
        super().__init__(
            f"Risk {risk_id} is already on the assessment",
            {"risk_id": risk_id},
        )
        self.risk_id = risk_id


class InvalidRiskTransitionError(InvariantViolationError):
    """The risk's current status does not allow the requested change."""

    code = "INVALID_RISK_TRANSITION"

    def __init__(self, risk_id: str, status: str, action: str):
        super().__init__(
            f"Cannot {action} risk {risk_id} in status {status}",
            {"risk_id": risk_id, "status": status, "action": action},
        )
        self.risk_id = risk_id
        self.status = status
        self.action = action


class AssessmentAlreadyCompleteError(InvariantViolationError):
    code = "ASSESSMENT_ALREADY_COMPLETE"

    def __init__(self, assessment_id: str):
        super().__init__(
            f"Assessment {assessment_id} is complete and cannot be modified",
            {"assessment_id": assessment_id},
        )


class CannotCompleteAssessmentError(InvariantViolationError):
    code = "CANNOT_COMPLETE_ASSESSMENT"
    status_code = 400

    def __init__(self, assessment_id: str, score: int, status: str, minimum_required: int = 80):
        super().__init__(
            f"Assessment {assessment_id} is not ready to file "
            f"(score {score}, status {status}, minimum {minimum_required})",
            {
                "assessment_id": assessment_id,
                "score": score,
                "status": status,
                "minimum_required": minimum_required,
            },
        )


class AssessmentInconsistentError(InvariantViolationError):
    code = "ASSESSMENT_INCONSISTENT"
    status_code = 500

    def __init__(self, assessment_id: str, violations: List[str]):
        super().__init__(
            f"Assessment {assessment_id} failed validation: {'; '.join(violations)}",
            {"assessment_id": assessment_id, "violations": violations},
        )
        self.violations = violations


# =============================================================================
# Not found
# =============================================================================

class NotFoundError(ReadinessError):
    code = "NOT_FOUND"
    status_code = 404


class RiskNotFoundError(NotFoundError):
    code = "RISK_NOT_FOUND"

    def __init__(self, risk_id: str):
        super().__init__(f"Risk {risk_id} not found", {"risk_id": risk_id})
        self.risk_id = risk_id


class AssessmentNotFoundError(NotFoundError):
    code = "ASSESSMENT_NOT_FOUND"

    def __init__(self, identifier: str):
        super().__init__(
            f"Readiness assessment not found: {identifier}",
            {"identifier": identifier},
        )


# =============================================================================
# Infrastructure boundary
# =============================================================================

class ConcurrencyConflictError(ReadinessError):
    """Stored version differs from the version the caller loaded."""

    code = "CONCURRENCY_CONFLICT"
    status_code = 409

    def __init__(self, assessment_id: str, expected_version: int, actual_version: Optional[int]):
        super().__init__(
            f"Assessment {assessment_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})",
            {
                "assessment_id": assessment_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )
        self.expected_version = expected_version
        self.actual_version = actual_version


class PersistedStateError(ReadinessError):
    """Persisted data is malformed or internally inconsistent."""

    code = "PERSISTED_STATE_INVALID"
    status_code = 500
