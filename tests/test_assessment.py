"""
Mirathi Test Suite - Readiness Assessment
=========================================

Tests for the readiness assessment aggregate.

Author: Mirathi Team
Version: 1.0.0
"""

from datetime import timedelta

import pytest

from mirathi.readiness.assessment import ReadinessAssessment
from mirathi.readiness.document_gap import DocumentGapType
from mirathi.readiness.events import (
    DocumentGapIdentified,
    ReadinessAssessmentCompleted,
    ReadinessAssessmentCreated,
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
    CannotCompleteAssessmentError,
    DuplicateRiskFlagError,
    DuplicateRiskIdError,
    InvalidRiskTransitionError,
    PersistedStateError,
    RiskAlreadyResolvedError,
    RiskNotFoundError,
)
from mirathi.readiness.risk_flag import ResolutionMethod, RiskCategory, RiskFlag, RiskStatus
from mirathi.readiness.score import ReadinessStatus
from mirathi.readiness.severity import RiskSeverity
from mirathi.readiness.succession_context import CourtJurisdiction, Religion


def _of_type(events, event_class):
    return [event for event in events if isinstance(event, event_class)]


@pytest.fixture
def blocked_assessment(estate_id, simple_context, risk_factory, now):
    """One CRITICAL and two LOW unresolved risks."""
    assessment = ReadinessAssessment.create(
        estate_id,
        simple_context,
        initial_risks=[
            RiskFlag.missing_death_certificate(estate_id, now=now),
            risk_factory(RiskSeverity.LOW, "asset-1", now=now),
            risk_factory(RiskSeverity.LOW, "asset-2", now=now),
        ],
        now=now,
    )
    assessment.pull_events()
    return assessment


@pytest.fixture
def empty_assessment(estate_id, simple_context, now):
    assessment = ReadinessAssessment.create(estate_id, simple_context, now=now)
    assessment.pull_events()
    return assessment


class TestScenarios:
    """Scoring scenarios over a whole assessment."""

    def test_critical_and_two_low_is_blocked(self, blocked_assessment):
        assert blocked_assessment.score.score == 0
        assert blocked_assessment.score.status == ReadinessStatus.BLOCKED
        assert blocked_assessment.can_file() is False

    def test_high_and_medium_is_in_progress(self, empty_assessment, risk_factory, now):
        empty_assessment.add_risk_flag(risk_factory(RiskSeverity.HIGH, "a", now=now), now=now)
        empty_assessment.add_risk_flag(risk_factory(RiskSeverity.MEDIUM, "b", now=now), now=now)

        assert empty_assessment.score.score == 70
        assert empty_assessment.score.status == ReadinessStatus.IN_PROGRESS

    def test_no_risks_is_ready(self, empty_assessment):
        assert empty_assessment.score.score == 100
        assert empty_assessment.score.status == ReadinessStatus.READY_TO_FILE
        assert empty_assessment.can_file() is True

    def test_death_certificate_upload_unblocks(self, blocked_assessment, estate_id, now):
        """Auto-resolving the critical risk leaves two LOW risks at 90."""
        resolved = blocked_assessment.auto_resolve_risk(
            estate_id, RiskCategory.MISSING_DOCUMENT, "DeathCertificateUploaded", now=now
        )
        events = blocked_assessment.pull_events()

        assert len(resolved) == 1
        assert blocked_assessment.get_risk(resolved[0]).status == RiskStatus.RESOLVED
        assert blocked_assessment.score.score == 90
        assert blocked_assessment.score.status == ReadinessStatus.READY_TO_FILE

        status_changes = _of_type(events, ReadinessStatusChanged)
        assert len(status_changes) == 1
        assert status_changes[0].previous_status == ReadinessStatus.BLOCKED
        assert status_changes[0].new_status == ReadinessStatus.READY_TO_FILE
        assert status_changes[0].is_ready_milestone() is True

        auto_resolved = _of_type(events, RiskFlagAutoResolved)
        assert auto_resolved[0].triggered_by_event == "DeathCertificateUploaded"
        assert blocked_assessment.last_recalculation_trigger == "auto_resolve_DeathCertificateUploaded"


class TestRiskOperations:
    """Tests for adding and resolving risks."""

    def test_add_risk_emits_events(self, empty_assessment, estate_id, now):
        risk = RiskFlag.missing_death_certificate(estate_id, now=now)
        empty_assessment.add_risk_flag(risk, now=now)
        events = empty_assessment.pull_events()

        assert isinstance(events[0], RiskFlagDetected)
        assert events[0].risk_id == risk.id
        assert events[0].is_blocking is True
        assert len(_of_type(events, ReadinessScoreUpdated)) == 1
        assert len(_of_type(events, ReadinessStatusChanged)) == 1
        gaps = _of_type(events, DocumentGapIdentified)
        assert [gap.document_type for gap in gaps] == ["DEATH_CERTIFICATE"]
        assert len(_of_type(events, RecommendedStrategyUpdated)) == 1

    def test_duplicate_risk_rejected(self, blocked_assessment, estate_id):
        with pytest.raises(DuplicateRiskFlagError):
            blocked_assessment.add_risk_flag(RiskFlag.missing_death_certificate(estate_id))

        assert len(blocked_assessment.risk_flags) == 3

    def test_duplicate_allowed_after_resolution(self, blocked_assessment, estate_id):
        blocked_assessment.handle_death_certificate_uploaded()
        blocked_assessment.add_risk_flag(RiskFlag.missing_death_certificate(estate_id))

        assert len(blocked_assessment.risk_flags) == 4
        assert blocked_assessment.score.status == ReadinessStatus.BLOCKED

    def test_resolve_twice_fails_without_side_effects(self, empty_assessment, risk_factory):
        risk = risk_factory(RiskSeverity.HIGH, "a")
        empty_assessment.add_risk_flag(risk)
        empty_assessment.resolve_risk_flag(risk.id, "Filed the PIN")
        score = empty_assessment.score.score
        version = empty_assessment.version
        empty_assessment.pull_events()

        with pytest.raises(RiskAlreadyResolvedError):
            empty_assessment.resolve_risk_flag(risk.id)

        assert empty_assessment.score.score == score
        assert empty_assessment.version == version
        assert empty_assessment.pull_events() == []

    def test_resolve_unknown_risk(self, empty_assessment):
        with pytest.raises(RiskNotFoundError):
            empty_assessment.resolve_risk_flag("does-not-exist")

    def test_manual_resolution_event(self, blocked_assessment):
        risk = blocked_assessment.blocking_risks()[0]
        blocked_assessment.resolve_risk_flag(risk.id, "Uploaded copy", resolved_by="advocate-1")
        events = _of_type(blocked_assessment.pull_events(), RiskFlagResolved)

        assert len(events) == 1
        assert events[0].resolution_method == ResolutionMethod.MANUAL_RESOLUTION
        assert events[0].resolved_by == "advocate-1"
        assert blocked_assessment.last_recalculation_trigger == "risk_resolved_manual"

    def test_reopen_round_trip(self, empty_assessment, risk_factory, now):
        risk = risk_factory(RiskSeverity.HIGH, "a", now=now)
        empty_assessment.add_risk_flag(risk, now=now)
        before = empty_assessment.score.score

        empty_assessment.resolve_risk_flag(risk.id, now=now)
        assert empty_assessment.score.score == 100

        reopen_time = now + timedelta(days=3)
        empty_assessment.reopen_risk_flag(risk.id, "Registry rejected it", now=reopen_time)
        reopened = empty_assessment.get_risk(risk.id)

        assert reopened.status == RiskStatus.ACTIVE
        assert reopened.auto_resolve_timeout == reopen_time + timedelta(days=60)
        assert empty_assessment.score.score == before

    def test_disputed_risk_still_counts(self, blocked_assessment):
        risk = blocked_assessment.blocking_risks()[0]
        blocked_assessment.dispute_risk_flag(risk.id, "Certificate exists", "user-1")

        assert blocked_assessment.score.status == ReadinessStatus.BLOCKED
        assert blocked_assessment.get_risk(risk.id).status == RiskStatus.DISPUTED

    def test_supersede_closes_risk(self, empty_assessment, risk_factory):
        old = risk_factory(RiskSeverity.HIGH, "a")
        new = risk_factory(RiskSeverity.MEDIUM, "b")
        empty_assessment.add_risk_flag(old)
        empty_assessment.add_risk_flag(new)
        empty_assessment.supersede_risk_flag(old.id, new.id)

        assert empty_assessment.score.score == 90
        assert empty_assessment.get_risk(old.id).status == RiskStatus.SUPERSEDED

    def test_severity_escalation_blocks(self, empty_assessment, risk_factory):
        risk = risk_factory(RiskSeverity.LOW, "a")
        empty_assessment.add_risk_flag(risk)
        empty_assessment.update_risk_severity(risk.id, RiskSeverity.CRITICAL, "Fraud suspected")

        assert empty_assessment.score.status == ReadinessStatus.BLOCKED

    def test_same_severity_is_noop(self, empty_assessment, risk_factory):
        risk = risk_factory(RiskSeverity.LOW, "a")
        empty_assessment.add_risk_flag(risk)
        version = empty_assessment.version

        empty_assessment.update_risk_severity(risk.id, RiskSeverity.LOW, "unchanged")
        assert empty_assessment.version == version


class TestAutoResolution:
    """Tests for event-driven resolution."""

    def test_redelivered_event_is_noop(self, blocked_assessment):
        assert blocked_assessment.handle_death_certificate_uploaded()
        version = blocked_assessment.version
        blocked_assessment.pull_events()

        assert blocked_assessment.handle_death_certificate_uploaded() == []
        assert blocked_assessment.version == version
        assert blocked_assessment.pull_events() == []

    def test_unexpected_event_resolves_nothing(self, blocked_assessment, estate_id):
        resolved = blocked_assessment.auto_resolve_risk(
            estate_id, RiskCategory.MISSING_DOCUMENT, "GuardianAppointed"
        )

        assert resolved == []
        assert blocked_assessment.score.status == ReadinessStatus.BLOCKED

    def test_guardian_appointed(self, empty_assessment):
        risk = RiskFlag.minor_without_guardian("minor-00000001", "family-1", "Wanjiru")
        empty_assessment.add_risk_flag(risk)

        assert empty_assessment.handle_guardian_appointed("minor-00000001") == [risk.id]
        assert empty_assessment.score.status == ReadinessStatus.READY_TO_FILE

    def test_will_validated(self, empty_assessment):
        risk = RiskFlag.invalid_will_signature("will-1", witness_count=1)
        empty_assessment.add_risk_flag(risk)

        assert empty_assessment.handle_will_validated("will-1") == [risk.id]

    def test_sweep_closes_timed_out_risks(self, empty_assessment, risk_factory, now):
        risk = risk_factory(RiskSeverity.LOW, "a", now=now)
        empty_assessment.add_risk_flag(risk, now=now)

        assert empty_assessment.sweep_expired_risks(now + timedelta(days=10)) == []
        closed = empty_assessment.sweep_expired_risks(now + timedelta(days=181))

        assert closed == [risk.id]
        assert empty_assessment.get_risk(risk.id).resolution_method == ResolutionMethod.TIME_BASED
        assert empty_assessment.score.score == 100


class TestContext:
    """Tests for context changes."""

    def test_religion_switch_moves_to_kadhis_court(self, empty_assessment, simple_context):
        score = empty_assessment.score.score
        changed = empty_assessment.update_context(
            simple_context.with_changes(religion=Religion.ISLAMIC)
        )

        assert changed is True
        assert empty_assessment.context.determine_court_jurisdiction() == CourtJurisdiction.KADHIS_COURT
        assert empty_assessment.score.score == score
        assert "Kadhi's Court" in empty_assessment.recommended_strategy

    def test_same_context_is_noop(self, empty_assessment, simple_context):
        version = empty_assessment.version

        assert empty_assessment.update_context(simple_context) is False
        assert empty_assessment.version == version

    def test_estate_value_update(self, empty_assessment):
        empty_assessment.handle_estate_value_updated(10_000_000)

        assert empty_assessment.context.estate_value_kes == 10_000_000
        assert empty_assessment.last_recalculation_trigger == "estate_value_updated"
        assert empty_assessment.context.determine_court_jurisdiction() == CourtJurisdiction.HIGH_COURT


class TestDerivedState:
    """Tests for missing documents, blocking issues and strategy."""

    def test_standard_checks(self, estate_id, simple_context):
        assessment = ReadinessAssessment.create_with_initial_risks(
            estate_id,
            "deceased-1",
            simple_context,
            has_death_certificate=False,
            has_kra_pin=False,
            has_chief_letter=False,
        )

        assert len(assessment.risk_flags) == 3
        assert {gap.type for gap in assessment.missing_documents} == {
            DocumentGapType.DEATH_CERTIFICATE,
            DocumentGapType.KRA_PIN_CERTIFICATE,
            DocumentGapType.CHIEF_LETTER,
        }
        assert assessment.blocking_issues == (
            "MISSING_DOCUMENT: Death Certificate is missing "
            "(S.56 LSA - Death Certificate is mandatory for all succession cases)",
        )

    def test_blocked_strategy(self, blocked_assessment):
        strategy = blocked_assessment.recommended_strategy

        assert strategy.startswith("BLOCKED - Cannot file in Resident Magistrate's Court")
        assert "Visit Civil Registration Office" in strategy

    def test_in_progress_strategy(self, empty_assessment, risk_factory):
        empty_assessment.add_risk_flag(risk_factory(RiskSeverity.HIGH, "a"))
        empty_assessment.add_risk_flag(risk_factory(RiskSeverity.MEDIUM, "b"))
        strategy = empty_assessment.recommended_strategy

        assert strategy.startswith("IN PROGRESS - 70% ready")
        assert "Target: 80% (10% to go)" in strategy

    def test_ready_strategy(self, empty_assessment):
        strategy = empty_assessment.recommended_strategy

        assert strategy.startswith("READY TO FILE - 100% ready")
        assert "Letters of Administration (P&A 80)" in strategy
        assert "KES 2,000" in strategy

    def test_top_priority_risks(self, blocked_assessment, now):
        top = blocked_assessment.top_priority_risks(limit=2, now=now)

        assert len(top) == 2
        assert top[0].severity == RiskSeverity.CRITICAL

    def test_is_stale(self, empty_assessment, now):
        assert empty_assessment.is_stale(now + timedelta(days=1)) is False
        assert empty_assessment.is_stale(now + timedelta(days=8)) is True


class TestCompletion:
    """Tests for the terminal transition."""

    def test_blocked_assessment_cannot_complete(self, blocked_assessment):
        with pytest.raises(CannotCompleteAssessmentError):
            blocked_assessment.mark_as_complete()

    def test_complete_then_frozen(self, empty_assessment, risk_factory):
        empty_assessment.mark_as_complete()
        events = empty_assessment.pull_events()

        assert empty_assessment.is_complete is True
        assert isinstance(events[-1], ReadinessAssessmentCompleted)
        with pytest.raises(AssessmentAlreadyCompleteError):
            empty_assessment.mark_as_complete()
        with pytest.raises(AssessmentAlreadyCompleteError):
            empty_assessment.add_risk_flag(risk_factory(RiskSeverity.LOW, "a"))


class TestVersioning:
    """Tests for aggregate versions and events."""

    def test_create_is_version_one(self, estate_id, simple_context):
        assessment = ReadinessAssessment.create(estate_id, simple_context)
        events = assessment.pull_events()

        assert assessment.version == 1
        assert assessment.persisted_version == 0
        assert assessment.has_unsaved_changes is True
        assert isinstance(events[0], ReadinessAssessmentCreated)
        assert events[0].version == 1

    def test_each_mutation_bumps_version_once(self, empty_assessment, risk_factory):
        empty_assessment.add_risk_flag(risk_factory(RiskSeverity.CRITICAL, "a"))
        events = empty_assessment.pull_events()

        assert empty_assessment.version == 2
        assert {event.version for event in events} == {2}

    def test_event_serialization(self, empty_assessment, estate_id):
        empty_assessment.add_risk_flag(RiskFlag.missing_death_certificate(estate_id))
        data = empty_assessment.pull_events()[0].to_dict()

        assert data["event_type"] == "RiskFlagDetected"
        assert data["aggregate_type"] == "ReadinessAssessment"
        assert data["payload"]["severity"] == "CRITICAL"
        assert data["payload"]["category"] == "MISSING_DOCUMENT"


class TestPersistedState:
    """Tests for rebuilding from stored state."""

    def test_round_trip(self, blocked_assessment):
        restored = ReadinessAssessment.from_persistable_state(
            blocked_assessment.to_persistable_state()
        )

        assert restored.id == blocked_assessment.id
        assert restored.score.matches(blocked_assessment.score)
        assert restored.risk_flags == blocked_assessment.risk_flags
        assert restored.version == restored.persisted_version == blocked_assessment.version
        assert restored.pending_events == ()

    def test_inconsistent_state_rejected(self, blocked_assessment):
        state = blocked_assessment.to_persistable_state()
        state["risk_flags"] = [
            risk for risk in state["risk_flags"] if risk["severity"] != "CRITICAL"
        ]

        with pytest.raises(PersistedStateError):
            ReadinessAssessment.from_persistable_state(state)

    def test_malformed_state_rejected(self, blocked_assessment):
        state = blocked_assessment.to_persistable_state()
        state["risk_flags"][0]["category"] = "NOT_A_CATEGORY"

        with pytest.raises(PersistedStateError):
            ReadinessAssessment.from_persistable_state(state)

    def test_validate_reports_violations(self, blocked_assessment):
        blocked_assessment._is_complete = True

        with pytest.raises(AssessmentInconsistentError) as exc_info:
            blocked_assessment.validate()
        assert "complete assessment is not ready to file" in exc_info.value.violations


class TestClosedRisks:
    """Superseded risks stay closed and risk ids stay unique."""

    @pytest.fixture
    def superseded(self, empty_assessment, estate_id):
        """KRA PIN risk superseded by the chief letter risk, then re-detected."""
        kra = RiskFlag.missing_kra_pin("deceased-1", estate_id)
        chief = RiskFlag.missing_chief_letter(estate_id)
        empty_assessment.add_risk_flag(kra)
        empty_assessment.add_risk_flag(chief)
        empty_assessment.supersede_risk_flag(kra.id, chief.id)
        empty_assessment.add_risk_flag(RiskFlag.missing_kra_pin("deceased-1", estate_id))
        return empty_assessment, kra, chief

    def test_superseded_risk_cannot_be_disputed(self, superseded):
        assessment, kra, _ = superseded
        version = assessment.version

        with pytest.raises(InvalidRiskTransitionError):
            assessment.dispute_risk_flag(kra.id, "Still relevant", "user-1")

        assert assessment.get_risk(kra.id).status == RiskStatus.SUPERSEDED
        assert assessment.version == version
        assessment.validate()

    def test_superseded_risk_cannot_be_resolved(self, superseded):
        assessment, kra, _ = superseded

        with pytest.raises(InvalidRiskTransitionError):
            assessment.resolve_risk_flag(kra.id)

    def test_supersede_twice_rejected(self, superseded):
        assessment, kra, chief = superseded

        with pytest.raises(InvalidRiskTransitionError):
            assessment.supersede_risk_flag(kra.id, chief.id)

    def test_supersede_by_itself_rejected(self, empty_assessment, risk_factory):
        risk = risk_factory(RiskSeverity.HIGH, "a")
        empty_assessment.add_risk_flag(risk)

        with pytest.raises(InvalidRiskTransitionError):
            empty_assessment.supersede_risk_flag(risk.id, risk.id)
        assert empty_assessment.get_risk(risk.id).status == RiskStatus.ACTIVE

    def test_disputed_risk_cannot_be_superseded(self, empty_assessment, risk_factory):
        disputed = risk_factory(RiskSeverity.HIGH, "a")
        other = risk_factory(RiskSeverity.LOW, "b")
        empty_assessment.add_risk_flag(disputed)
        empty_assessment.add_risk_flag(other)
        empty_assessment.dispute_risk_flag(disputed.id, "Not applicable", "user-1")

        with pytest.raises(InvalidRiskTransitionError):
            empty_assessment.supersede_risk_flag(disputed.id, other.id)

    def test_readding_same_risk_rejected(self, empty_assessment, estate_id):
        risk = RiskFlag.missing_kra_pin("deceased-1", estate_id)
        empty_assessment.add_risk_flag(risk)
        empty_assessment.resolve_risk_flag(risk.id)
        version = empty_assessment.version

        with pytest.raises(DuplicateRiskIdError):
            empty_assessment.add_risk_flag(risk)

        assert [r.id for r in empty_assessment.risk_flags] == [risk.id]
        assert empty_assessment.score.score == 100
        assert empty_assessment.version == version

    def test_seeding_same_risk_twice_rejected(self, estate_id, simple_context):
        risk = RiskFlag.missing_death_certificate(estate_id)

        with pytest.raises(DuplicateRiskIdError):
            ReadinessAssessment.create(estate_id, simple_context, initial_risks=[risk, risk])

    def test_stored_duplicate_ids_rejected(self, blocked_assessment):
        state = blocked_assessment.to_persistable_state()
        low = [risk for risk in state["risk_flags"] if risk["severity"] == "LOW"]
        low[1]["id"] = low[0]["id"]

        with pytest.raises(PersistedStateError):
            ReadinessAssessment.from_persistable_state(state)
