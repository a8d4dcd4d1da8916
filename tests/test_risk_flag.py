"""
Mirathi Test Suite - Risk Flags
===============================

Tests for the risk flag lifecycle and rule factories.

Author: Mirathi Team
Version: 1.0.0
"""

from dataclasses import replace
from datetime import timedelta

import pytest

from mirathi.readiness.exceptions import (
    InvalidRiskTransitionError,
    InvalidValueError,
    RiskAlreadyResolvedError,
    RiskNotResolvedError,
)
from mirathi.readiness.risk_flag import (
    ResolutionMethod,
    RiskCategory,
    RiskFlag,
    RiskStatus,
)
from mirathi.readiness.severity import RiskSeverity


class TestCreation:
    """Tests for new risk flags."""

    def test_create_sets_severity_timeout(self, risk_factory, now):
        risk = risk_factory(RiskSeverity.CRITICAL, "estate-1", now=now)

        assert risk.status == RiskStatus.ACTIVE
        assert risk.auto_resolve_timeout == now + timedelta(days=30)
        assert risk.is_blocking is True
        assert risk.is_currently_blocking() is True

    def test_low_risk_is_not_blocking(self, risk_factory, now):
        risk = risk_factory(RiskSeverity.LOW, "estate-1", now=now)

        assert risk.is_blocking is False
        assert risk.auto_resolve_timeout == now + timedelta(days=180)

    def test_impact_score_bounds(self, risk_factory):
        risk = risk_factory(RiskSeverity.LOW, "estate-1")
        with pytest.raises(InvalidValueError):
            RiskFlag.create(
                severity=RiskSeverity.LOW,
                category=RiskCategory.DATA_INCONSISTENCY,
                description="bad impact",
                source=risk.source,
                legal_basis="n/a",
                detection_rule_id="RULE_X",
                impact_score=11,
            )

    def test_category_group(self):
        assert RiskCategory.MISSING_DOCUMENT.group == "DOCUMENT"
        assert RiskCategory.KRA_PIN_MISSING.group == "TAX"


class TestTransitions:
    """Tests for resolve, reopen, dispute and supersede."""

    def test_resolve_closes_risk(self, risk_factory, now):
        risk = risk_factory(RiskSeverity.HIGH, "estate-1", now=now)
        later = now + timedelta(days=2)
        resolved = risk.resolve(ResolutionMethod.MANUAL_RESOLUTION, "advocate-1", "Filed", now=later)

        assert resolved.status == RiskStatus.RESOLVED
        assert resolved.resolved_at == later
        assert resolved.resolved_by == "advocate-1"
        assert resolved.auto_resolve_timeout is None
        assert resolved.review_count == risk.review_count + 1
        # original untouched
        assert risk.status == RiskStatus.ACTIVE

    def test_resolve_twice_fails(self, risk_factory):
        resolved = risk_factory(RiskSeverity.HIGH, "estate-1").resolve(
            ResolutionMethod.MANUAL_RESOLUTION, "user"
        )
        with pytest.raises(RiskAlreadyResolvedError):
            resolved.resolve(ResolutionMethod.MANUAL_RESOLUTION, "user")

    def test_reopen_requires_resolved(self, risk_factory):
        with pytest.raises(RiskNotResolvedError):
            risk_factory(RiskSeverity.HIGH, "estate-1").reopen("changed my mind")

    def test_reopen_gives_fresh_timeout(self, risk_factory, now):
        risk = risk_factory(RiskSeverity.MEDIUM, "estate-1", now=now)
        resolved = risk.resolve(ResolutionMethod.MANUAL_RESOLUTION, "user", now=now)
        reopen_time = now + timedelta(days=10)
        reopened = resolved.reopen("Document rejected by registry", now=reopen_time)

        assert reopened.status == RiskStatus.ACTIVE
        assert reopened.resolved_at is None
        assert reopened.resolution_method is None
        assert reopened.auto_resolve_timeout == reopen_time + timedelta(days=90)
        assert "Document rejected" in reopened.resolution_notes

    def test_disputed_risk_stays_unresolved(self, risk_factory):
        disputed = risk_factory(RiskSeverity.CRITICAL, "estate-1").dispute("Not applicable", "user-7")

        assert disputed.status == RiskStatus.DISPUTED
        assert disputed.is_unresolved is True
        assert disputed.is_blocking is True
        assert disputed.is_currently_blocking() is False
        assert disputed.should_auto_resolve() is False

    def test_superseded_risk_is_closed(self, risk_factory):
        superseded = risk_factory(RiskSeverity.HIGH, "estate-1").supersede("risk-2")

        assert superseded.status == RiskStatus.SUPERSEDED
        assert superseded.is_unresolved is False
        assert "risk-2" in superseded.resolution_notes

    def test_update_severity_same_is_noop(self, risk_factory):
        risk = risk_factory(RiskSeverity.HIGH, "estate-1")
        assert risk.update_severity(RiskSeverity.HIGH, "no change") is risk

    def test_update_severity_rederives_timeout(self, risk_factory, now):
        risk = risk_factory(RiskSeverity.LOW, "estate-1", now=now)
        later = now + timedelta(days=5)
        escalated = risk.update_severity(RiskSeverity.CRITICAL, "Registry flagged fraud", now=later)

        assert escalated.severity == RiskSeverity.CRITICAL
        assert escalated.is_blocking is True
        assert escalated.auto_resolve_timeout == later + timedelta(days=30)
        assert "LOW -> CRITICAL" in escalated.resolution_notes

    def test_add_affected_entity_deduplicates(self, risk_factory):
        risk = risk_factory(RiskSeverity.LOW, "estate-1")
        updated = risk.add_affected_entity("asset-1", "estate-1").add_affected_entity("asset-1")

        assert updated.affected_entity_ids == ("estate-1", "asset-1")
        assert updated.affects("asset-1") is True


class TestQueries:
    """Tests for derived risk values."""

    def test_fingerprint_ignores_entity_order(self, risk_factory, now):
        first = RiskFlag.create(
            severity=RiskSeverity.HIGH,
            category=RiskCategory.KRA_PIN_MISSING,
            description="PIN",
            source=risk_factory(RiskSeverity.LOW, "x").source,
            legal_basis="TPA",
            detection_rule_id="RULE_KRA",
            affected_entity_ids=["a", "b"],
        )
        second = RiskFlag.create(
            severity=RiskSeverity.LOW,
            category=RiskCategory.KRA_PIN_MISSING,
            description="PIN again",
            source=first.source,
            legal_basis="TPA",
            detection_rule_id="RULE_KRA",
            affected_entity_ids=["b", "a"],
        )
        assert first.fingerprint == second.fingerprint
        assert first.id != second.id

    def test_should_auto_resolve_after_timeout(self, risk_factory, now):
        risk = risk_factory(RiskSeverity.CRITICAL, "estate-1", now=now)

        assert risk.should_auto_resolve(now + timedelta(days=29)) is False
        assert risk.should_auto_resolve(now + timedelta(days=30)) is True
        assert risk.days_until_auto_resolve(now + timedelta(days=20)) == 10

    def test_priority_prefers_critical(self, risk_factory, now):
        critical = risk_factory(RiskSeverity.CRITICAL, "a", now=now)
        low = risk_factory(RiskSeverity.LOW, "b", now=now)

        assert critical.priority_score(now) > low.priority_score(now)

    def test_can_be_resolved_by_event(self):
        risk = RiskFlag.missing_death_certificate("estate-1")

        assert risk.can_be_resolved_by_event("DeathCertificateUploaded") is True
        assert risk.can_be_resolved_by_event("GuardianAppointed") is False


class TestFactories:
    """Tests for the rule factories."""

    def test_missing_death_certificate(self):
        risk = RiskFlag.missing_death_certificate("estate-1")

        assert risk.severity == RiskSeverity.CRITICAL
        assert risk.category == RiskCategory.MISSING_DOCUMENT
        assert risk.document_gap is not None
        assert risk.affects("estate-1")
        assert risk.source.detection_method == "RULE_DEATH_CERT_REQUIRED"

    def test_minor_without_guardian(self):
        risk = RiskFlag.minor_without_guardian("minor-123456789", "family-1", "Amani")

        assert risk.is_blocking is True
        assert risk.affects("minor-123456789")
        assert "Amani" in risk.description
        assert "GuardianAppointed" in risk.expected_resolution_events

    def test_invalid_will_signature_resolved_by_validation(self):
        risk = RiskFlag.invalid_will_signature("will-1", witness_count=1)

        assert risk.category == RiskCategory.INVALID_WILL_SIGNATURE
        assert risk.can_be_resolved_by_event("WillValidated") is True

    def test_missing_kra_pin(self):
        risk = RiskFlag.missing_kra_pin("deceased-1", "estate-1")

        assert risk.severity == RiskSeverity.HIGH
        assert risk.affects("deceased-1") and risk.affects("estate-1")


class TestClosedStates:
    """Superseded and expired risks cannot come back through other transitions."""

    @pytest.fixture
    def superseded(self, risk_factory):
        return risk_factory(RiskSeverity.HIGH, "estate-1").supersede("risk-2")

    @pytest.fixture
    def expired(self, risk_factory):
        return replace(risk_factory(RiskSeverity.MEDIUM, "estate-1"), status=RiskStatus.EXPIRED)

    @pytest.mark.parametrize("closed", ["superseded", "expired"])
    def test_closed_risk_rejects_transitions(self, closed, request):
        risk = request.getfixturevalue(closed)

        with pytest.raises(InvalidRiskTransitionError):
            risk.resolve(ResolutionMethod.MANUAL_RESOLUTION, "user")
        with pytest.raises(InvalidRiskTransitionError):
            risk.dispute("Still applies", "user-1")
        with pytest.raises(InvalidRiskTransitionError):
            risk.supersede("risk-3")
        with pytest.raises(RiskNotResolvedError):
            risk.reopen("Try again")

    def test_resolved_risk_cannot_be_disputed_or_superseded(self, risk_factory):
        resolved = risk_factory(RiskSeverity.HIGH, "estate-1").resolve(
            ResolutionMethod.MANUAL_RESOLUTION, "user"
        )

        with pytest.raises(RiskAlreadyResolvedError):
            resolved.dispute("Wrong", "user-1")
        with pytest.raises(RiskAlreadyResolvedError):
            resolved.supersede("risk-2")

    def test_disputed_risk_can_be_resolved_but_not_redisputed(self, risk_factory):
        disputed = risk_factory(RiskSeverity.CRITICAL, "estate-1").dispute("Not applicable", "user-7")

        with pytest.raises(InvalidRiskTransitionError):
            disputed.dispute("Again", "user-8")
        with pytest.raises(InvalidRiskTransitionError):
            disputed.supersede("risk-2")
        assert disputed.resolve(ResolutionMethod.MANUAL_RESOLUTION, "user").status == RiskStatus.RESOLVED

    def test_supersede_by_itself_rejected(self, risk_factory):
        risk = risk_factory(RiskSeverity.HIGH, "estate-1")

        with pytest.raises(InvalidRiskTransitionError):
            risk.supersede(risk.id)


class TestPersistence:
    """Tests for persisted state."""

    def test_round_trip_resolved_risk(self, now):
        risk = RiskFlag.missing_death_certificate("estate-1", now=now).resolve(
            ResolutionMethod.EVENT_DRIVEN, "system", "Uploaded", now=now
        )
        restored = RiskFlag.from_persistable_state(risk.to_persistable_state())

        assert restored == risk
