"""
pytest configuration and fixtures.

Author: Mirathi Team
Version: 1.0.0
"""

from datetime import datetime, timezone

import pytest

from mirathi.audit.audit_trail import ReadinessAuditTrail
from mirathi.db.repository import InMemoryAssessmentRepository
from mirathi.readiness.risk_flag import RiskCategory, RiskFlag
from mirathi.readiness.risk_source import RiskSource
from mirathi.readiness.service import ReadinessService
from mirathi.readiness.severity import RiskSeverity
from mirathi.readiness.succession_context import MarriageType, SuccessionContext


ESTATE_ID = "estate-0001"


@pytest.fixture
def now():
    """Fixed clock for deterministic timestamps."""
    return datetime(2026, 10, 17, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def estate_id():
    return ESTATE_ID


@pytest.fixture
def simple_context():
    """Monogamous intestate case with no minors (magistrate's court)."""
    return SuccessionContext.standard_intestate(
        MarriageType.MONOGAMOUS, has_minors=False, beneficiary_count=3
    )


@pytest.fixture
def minors_context():
    return SuccessionContext.standard_intestate(
        MarriageType.MONOGAMOUS, has_minors=True, beneficiary_count=4
    )


def make_risk(
    severity: RiskSeverity,
    entity_id: str,
    category: RiskCategory = RiskCategory.DATA_INCONSISTENCY,
    rule_id: str = "RULE_TEST",
    now=None,
    expected_events=("TestResolved",),
) -> RiskFlag:
    """Generic risk for scoring scenarios."""
    return RiskFlag.create(
        severity=severity,
        category=category,
        description=f"{severity.value} test risk on {entity_id}",
        source=RiskSource.from_compliance_engine(rule_id, "Test basis", detected_at=now),
        legal_basis="Test basis",
        detection_rule_id=rule_id,
        impact_score=3,
        mitigation_steps=["Fix the data"],
        affected_entity_ids=[entity_id],
        expected_resolution_events=expected_events,
        now=now,
    )


@pytest.fixture
def risk_factory():
    return make_risk


@pytest.fixture
def repository():
    return InMemoryAssessmentRepository()


@pytest.fixture
def audit_trail():
    return ReadinessAuditTrail()


@pytest.fixture
def received_envelopes():
    return []


@pytest.fixture
def service(repository, audit_trail, received_envelopes):
    """Service wired to the in-memory repository and a recording subscriber."""
    async def record(envelope):
        received_envelopes.append(envelope)

    return ReadinessService(repository, audit_trail, subscribers=[record], max_retries=2)
