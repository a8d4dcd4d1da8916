"""
Readiness Assessment
====================

Aggregate root for a succession case's filing readiness.

The assessment owns the case's risk flags and keeps the derived
readiness state (score, missing documents, blocking issues and
recommended strategy) consistent with them. Every mutator:

    1. validates before touching state (no partial updates)
    2. swaps in new RiskFlag records
    3. recalculates all derived state from scratch
    4. bumps the aggregate version and records domain events

Concurrency is handled outside the aggregate: ``version`` is the
optimistic-concurrency token and ``persisted_version`` the token the
aggregate was loaded with.

Author: Mirathi Team
Version: 1.0.0
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import uuid4

from mirathi.readiness.document_gap import DocumentGap
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
    CannotCompleteAssessmentError,
    DuplicateRiskFlagError,
    DuplicateRiskIdError,
    PersistedStateError,
    RiskNotFoundError,
)
from mirathi.readiness.risk_flag import RiskCategory, RiskFlag, ResolutionMethod
from mirathi.readiness.risk_source import utc_now
from mirathi.readiness.score import READY_THRESHOLD, ReadinessScore, RiskCounts
from mirathi.readiness.severity import RiskSeverity
from mirathi.readiness.succession_context import (
    CourtJurisdiction,
    SuccessionContext,
    SuccessionRegime,
)


logger = logging.getLogger(__name__)


AUTO_RECALCULATE_DAYS = 7
TOP_PRIORITY_LIMIT = 3
DEFAULT_DAYS_TO_READY = 30

# Indicative court filing fees (KES)
FILING_FEES = {
    CourtJurisdiction.HIGH_COURT: 5000,
    CourtJurisdiction.MAGISTRATE_COURT: 2000,
    CourtJurisdiction.KADHIS_COURT: 3000,
    CourtJurisdiction.FAMILY_DIVISION: 5000,
}
DEFAULT_FILING_FEE = 2000

TIMEOUT_EVENT = "AutoResolveTimeout"


class ReadinessAssessment:
    """
    Filing readiness of one estate.

    Example:
        assessment = ReadinessAssessment.create(
            estate_id="estate-1",
            context=SuccessionContext.standard_intestate(
                MarriageType.MONOGAMOUS, has_minors=False, beneficiary_count=3
            ),
        )
        assessment.add_risk_flag(RiskFlag.missing_death_certificate("estate-1"))
        assessment.score.status          # ReadinessStatus.BLOCKED
        assessment.handle_death_certificate_uploaded()
        assessment.score.status          # ReadinessStatus.READY_TO_FILE
        events = assessment.pull_events()
    """

    AGGREGATE_TYPE = "ReadinessAssessment"

    def __init__(
        self,
        *,
        assessment_id: str,
        estate_id: str,
        context: SuccessionContext,
        score: ReadinessScore,
        family_id: Optional[str] = None,
        risk_flags: Sequence[RiskFlag] = (),
        missing_documents: Sequence[DocumentGap] = (),
        blocking_issues: Sequence[str] = (),
        recommended_strategy: str = "",
        last_assessed_at: Optional[datetime] = None,
        last_recalculation_trigger: Optional[str] = None,
        is_complete: bool = False,
        completed_at: Optional[datetime] = None,
        total_recalculations: int = 0,
        version: int = 0,
        created_at: Optional[datetime] = None,
    ):
        self._id = assessment_id
        self._estate_id = estate_id
        self._family_id = family_id
        self._context = context
        self._score = score
        self._risk_flags: List[RiskFlag] = list(risk_flags)
        self._missing_documents: List[DocumentGap] = list(missing_documents)
        self._blocking_issues: List[str] = list(blocking_issues)
        self._recommended_strategy = recommended_strategy
        self._last_assessed_at = last_assessed_at or utc_now()
        self._last_recalculation_trigger = last_recalculation_trigger
        self._is_complete = is_complete
        self._completed_at = completed_at
        self._total_recalculations = total_recalculations
        self._version = version
        self._persisted_version = version
        self._created_at = created_at or utc_now()
        self._pending_events: List[ReadinessEvent] = []

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def create(
        cls,
        estate_id: str,
        context: SuccessionContext,
        family_id: Optional[str] = None,
        initial_risks: Iterable[RiskFlag] = (),
        now: Optional[datetime] = None,
    ) -> "ReadinessAssessment":
        """
        Start a new assessment, optionally seeded with risks.

        Raises:
            DuplicateRiskFlagError: If two seeded risks share a fingerprint
            DuplicateRiskIdError: If two seeded risks share an id
        """
        now = now or utc_now()
        risks = list(initial_risks)

        ids = set()
        for risk in risks:
            if risk.id in ids:
                raise DuplicateRiskIdError(risk.id)
            ids.add(risk.id)

        seen: Dict[str, str] = {}
        for risk in risks:
            if risk.is_unresolved and risk.fingerprint in seen:
                raise DuplicateRiskFlagError(risk.fingerprint, seen[risk.fingerprint])
            if risk.is_unresolved:
                seen[risk.fingerprint] = risk.id

        assessment = cls(
            assessment_id=str(uuid4()),
            estate_id=estate_id,
            family_id=family_id,
            context=context,
            score=ReadinessScore.initial(context, now),
            risk_flags=risks,
            last_assessed_at=now,
            last_recalculation_trigger="created",
            created_at=now,
        )
        assessment._refresh_derived_state(now)
        assessment._version = 1

        assessment._record(ReadinessAssessmentCreated(
            aggregate_id=assessment.id,
            version=assessment.version,
            occurred_at=now,
            estate_id=estate_id,
            family_id=family_id,
            initial_score=assessment.score.score,
            initial_status=assessment.score.status,
            court_jurisdiction=context.determine_court_jurisdiction().value,
            case_classification=context.case_classification(),
        ))
        for risk in risks:
            assessment._record_detected(risk, now)
        for gap in assessment._missing_documents:
            assessment._record_gap(gap, now)

        logger.info(
            f"Created readiness assessment {assessment.id} for estate {estate_id} "
            f"(score {assessment.score.score}, {len(risks)} initial risks)"
        )
        return assessment

    @classmethod
    def create_with_initial_risks(
        cls,
        estate_id: str,
        deceased_id: str,
        context: SuccessionContext,
        has_death_certificate: bool,
        has_kra_pin: bool,
        has_chief_letter: bool,
        family_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "ReadinessAssessment":
        """Start an assessment seeded with the standard document checks."""
        risks = []
        if not has_death_certificate:
            risks.append(RiskFlag.missing_death_certificate(estate_id, now=now))
        if not has_kra_pin:
            risks.append(RiskFlag.missing_kra_pin(deceased_id, estate_id, now=now))
        if context.regime == SuccessionRegime.INTESTATE and not has_chief_letter:
            risks.append(RiskFlag.missing_chief_letter(estate_id, now=now))
        return cls.create(estate_id, context, family_id=family_id, initial_risks=risks, now=now)

    # =========================================================================
    # Read-only state
    # =========================================================================

    @property
    def id(self) -> str:
        return self._id

    @property
    def estate_id(self) -> str:
        return self._estate_id

    @property
    def family_id(self) -> Optional[str]:
        return self._family_id

    @property
    def context(self) -> SuccessionContext:
        return self._context

    @property
    def score(self) -> ReadinessScore:
        return self._score

    @property
    def risk_flags(self) -> Tuple[RiskFlag, ...]:
        return tuple(self._risk_flags)

    @property
    def missing_documents(self) -> Tuple[DocumentGap, ...]:
        return tuple(self._missing_documents)

    @property
    def blocking_issues(self) -> Tuple[str, ...]:
        return tuple(self._blocking_issues)

    @property
    def recommended_strategy(self) -> str:
        return self._recommended_strategy

    @property
    def last_assessed_at(self) -> datetime:
        return self._last_assessed_at

    @property
    def last_recalculation_trigger(self) -> Optional[str]:
        return self._last_recalculation_trigger

    @property
    def is_complete(self) -> bool:
        return self._is_complete

    @property
    def completed_at(self) -> Optional[datetime]:
        return self._completed_at

    @property
    def total_recalculations(self) -> int:
        return self._total_recalculations

    @property
    def version(self) -> int:
        return self._version

    @property
    def persisted_version(self) -> int:
        return self._persisted_version

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def pending_events(self) -> Tuple[ReadinessEvent, ...]:
        return tuple(self._pending_events)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_risk(self, risk_id: str) -> RiskFlag:
        """
        Raises:
            RiskNotFoundError: If no risk has this id
        """
        return self._risk_flags[self._index_of(risk_id)]

    def unresolved_risks(self) -> List[RiskFlag]:
        return [risk for risk in self._risk_flags if risk.is_unresolved]

    def risks_by_severity(self, severity: RiskSeverity) -> List[RiskFlag]:
        return [risk for risk in self.unresolved_risks() if risk.severity == severity]

    def risks_by_category(self, category: RiskCategory) -> List[RiskFlag]:
        return [risk for risk in self.unresolved_risks() if risk.category == category]

    def risks_by_entity(self, entity_id: str) -> List[RiskFlag]:
        return [risk for risk in self._risk_flags if risk.affects(entity_id)]

    def blocking_risks(self) -> List[RiskFlag]:
        return [risk for risk in self.unresolved_risks() if risk.is_blocking]

    def top_priority_risks(
        self,
        limit: int = TOP_PRIORITY_LIMIT,
        now: Optional[datetime] = None,
    ) -> List[RiskFlag]:
        now = now or utc_now()
        ranked = sorted(
            self.unresolved_risks(),
            key=lambda risk: risk.priority_score(now),
            reverse=True,
        )
        return ranked[:limit]

    def can_file(self) -> bool:
        return self._score.can_file()

    def is_stale(self, now: Optional[datetime] = None, max_age_days: int = AUTO_RECALCULATE_DAYS) -> bool:
        """True when the last assessment is older than the recalculation window."""
        return (now or utc_now()) - self._last_assessed_at > timedelta(days=max_age_days)

    # =========================================================================
    # Risk mutations
    # =========================================================================

    def add_risk_flag(self, risk: RiskFlag, now: Optional[datetime] = None) -> None:
        """
        Add a newly detected risk.

        Raises:
            AssessmentAlreadyCompleteError: If the assessment is complete
            DuplicateRiskFlagError: If an unresolved risk has the same fingerprint
            DuplicateRiskIdError: If a risk with this id is already present
        """
        self._ensure_not_complete()
        if any(existing.id == risk.id for existing in self._risk_flags):
            raise DuplicateRiskIdError(risk.id)
        duplicate = self._find_unresolved_duplicate(risk)
        if duplicate is not None:
            raise DuplicateRiskFlagError(risk.fingerprint, duplicate.id)

        now = now or utc_now()
        self._begin_mutation()
        self._record_detected(risk, now)
        self._recalculate(self._risk_flags + [risk], self._context, "risk_added", now)
        logger.info(
            f"Assessment {self.id}: added {risk.severity.value} risk "
            f"{risk.category.value} ({risk.id})"
        )

    def resolve_risk_flag(
        self,
        risk_id: str,
        notes: Optional[str] = None,
        resolved_by: str = "user",
        now: Optional[datetime] = None,
    ) -> None:
        """
        Manually resolve one risk.

        Raises:
            RiskNotFoundError: If no risk has this id
            RiskAlreadyResolvedError: If the risk is already resolved
        """
        self._ensure_not_complete()
        index = self._index_of(risk_id)
        now = now or utc_now()
        resolved = self._risk_flags[index].resolve(
            ResolutionMethod.MANUAL_RESOLUTION, resolved_by, notes, now=now
        )

        self._begin_mutation()
        self._record(RiskFlagResolved(
            aggregate_id=self.id,
            version=self.version,
            occurred_at=now,
            estate_id=self.estate_id,
            risk_id=risk_id,
            category=resolved.category,
            resolution_method=ResolutionMethod.MANUAL_RESOLUTION,
            resolved_by=resolved_by,
            resolution_notes=resolved.resolution_notes,
        ))
        self._recalculate(
            self._replaced(index, resolved), self._context, "risk_resolved_manual", now
        )
        logger.info(f"Assessment {self.id}: resolved risk {risk_id}")

    def auto_resolve_risk(
        self,
        entity_id: str,
        category: RiskCategory,
        event_type: str,
        resolved_by: str = "system",
        now: Optional[datetime] = None,
    ) -> List[str]:
        """
        Resolve every unresolved risk that an upstream event satisfies.

        A risk matches when it affects ``entity_id``, has ``category``
        and lists ``event_type`` among its expected resolution events.
        Redelivering the same event is a no-op.

        Returns:
            Ids of the risks resolved (empty when nothing matched)
        """
        self._ensure_not_complete()
        matches = [
            index
            for index, risk in enumerate(self._risk_flags)
            if risk.is_unresolved
            and risk.affects(entity_id)
            and risk.category == category
            and risk.can_be_resolved_by_event(event_type)
        ]
        if not matches:
            logger.debug(
                f"Assessment {self.id}: {event_type} for {entity_id} matched no open risks"
            )
            return []

        now = now or utc_now()
        risks = list(self._risk_flags)
        for index in matches:
            risks[index] = risks[index].resolve(
                ResolutionMethod.EVENT_DRIVEN,
                resolved_by,
                f"Auto-resolved by {event_type} event",
                now=now,
            )

        self._begin_mutation()
        for index in matches:
            self._record(RiskFlagAutoResolved(
                aggregate_id=self.id,
                version=self.version,
                occurred_at=now,
                estate_id=self.estate_id,
                risk_id=risks[index].id,
                category=category,
                triggered_by_event=event_type,
                resolved_by=resolved_by,
            ))
        self._recalculate(risks, self._context, f"auto_resolve_{event_type}", now)

        resolved_ids = [risks[index].id for index in matches]
        logger.info(f"Assessment {self.id}: {event_type} auto-resolved {len(resolved_ids)} risk(s)")
        return resolved_ids

    def reopen_risk_flag(self, risk_id: str, reason: str, now: Optional[datetime] = None) -> None:
        """
        Raises:
            RiskNotFoundError: If no risk has this id
            RiskNotResolvedError: If the risk is not resolved
            DuplicateRiskFlagError: If another open risk now has the same fingerprint
        """
        self._ensure_not_complete()
        index = self._index_of(risk_id)
        now = now or utc_now()
        reopened = self._risk_flags[index].reopen(reason, now=now)
        duplicate = self._find_unresolved_duplicate(reopened)
        if duplicate is not None:
            raise DuplicateRiskFlagError(reopened.fingerprint, duplicate.id)

        self._begin_mutation()
        self._recalculate(self._replaced(index, reopened), self._context, "risk_reopened", now)
        logger.info(f"Assessment {self.id}: reopened risk {risk_id}: {reason}")

    def dispute_risk_flag(
        self,
        risk_id: str,
        reason: str,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> None:
        """
        A disputed risk stays unresolved and keeps counting against the score.

        Raises:
            RiskNotFoundError: If no risk has this id
            RiskAlreadyResolvedError: If the risk is already resolved
            InvalidRiskTransitionError: If the risk is not ACTIVE
            DuplicateRiskFlagError: If another open risk has the same fingerprint
        """
        self._ensure_not_complete()
        index = self._index_of(risk_id)
        now = now or utc_now()
        disputed = self._risk_flags[index].dispute(reason, user_id, now=now)
        duplicate = self._find_unresolved_duplicate(disputed)
        if duplicate is not None:
            raise DuplicateRiskFlagError(disputed.fingerprint, duplicate.id)

        self._begin_mutation()
        self._recalculate(
            self._replaced(index, disputed),
            self._context,
            "risk_disputed",
            now,
        )

    def supersede_risk_flag(
        self,
        risk_id: str,
        superseding_risk_id: str,
        now: Optional[datetime] = None,
    ) -> None:
        """
        Close an ACTIVE risk in favour of another risk already on the assessment.

        Raises:
            RiskNotFoundError: If either risk id is unknown
            RiskAlreadyResolvedError: If the risk is already resolved
            InvalidRiskTransitionError: If the risk is not ACTIVE or supersedes itself
        """
        self._ensure_not_complete()
        index = self._index_of(risk_id)
        self._index_of(superseding_risk_id)
        now = now or utc_now()
        superseded = self._risk_flags[index].supersede(superseding_risk_id, now=now)

        self._begin_mutation()
        self._recalculate(
            self._replaced(index, superseded),
            self._context,
            "risk_superseded",
            now,
        )

    def update_risk_severity(
        self,
        risk_id: str,
        new_severity: RiskSeverity,
        reason: str,
        now: Optional[datetime] = None,
    ) -> None:
        """Reclassify a risk; no-op when the severity is unchanged."""
        self._ensure_not_complete()
        index = self._index_of(risk_id)
        risk = self._risk_flags[index]
        updated = risk.update_severity(new_severity, reason, now=now)
        if updated is risk:
            return
        now = now or utc_now()

        self._begin_mutation()
        self._recalculate(self._replaced(index, updated), self._context, "risk_severity_updated", now)

    def sweep_expired_risks(self, now: Optional[datetime] = None) -> List[str]:
        """
        Resolve ACTIVE risks whose auto-resolve timeout has passed.

        Returns:
            Ids of the risks closed by the sweep
        """
        self._ensure_not_complete()
        now = now or utc_now()
        expired = [
            index
            for index, risk in enumerate(self._risk_flags)
            if risk.should_auto_resolve(now)
        ]
        if not expired:
            return []

        risks = list(self._risk_flags)
        for index in expired:
            risks[index] = risks[index].resolve(
                ResolutionMethod.TIME_BASED,
                "system",
                "Auto-resolved after timeout",
                now=now,
            )

        self._begin_mutation()
        for index in expired:
            self._record(RiskFlagAutoResolved(
                aggregate_id=self.id,
                version=self.version,
                occurred_at=now,
                estate_id=self.estate_id,
                risk_id=risks[index].id,
                category=risks[index].category,
                triggered_by_event=TIMEOUT_EVENT,
                resolved_by="system",
            ))
        self._recalculate(risks, self._context, "auto_resolve_timeout", now)
        return [risks[index].id for index in expired]

    # =========================================================================
    # Inbound domain facts
    # =========================================================================

    def handle_asset_verified(self, asset_id: str) -> List[str]:
        return self.auto_resolve_risk(asset_id, RiskCategory.ASSET_VERIFICATION_FAILED, "AssetVerified")

    def handle_guardian_appointed(self, minor_id: str) -> List[str]:
        return self.auto_resolve_risk(minor_id, RiskCategory.MINOR_WITHOUT_GUARDIAN, "GuardianAppointed")

    def handle_death_certificate_uploaded(self) -> List[str]:
        return self.auto_resolve_risk(
            self.estate_id, RiskCategory.MISSING_DOCUMENT, "DeathCertificateUploaded"
        )

    def handle_will_validated(self, will_id: str) -> List[str]:
        return self.auto_resolve_risk(will_id, RiskCategory.INVALID_WILL_SIGNATURE, "WillValidated")

    def handle_estate_value_updated(self, new_value: float) -> bool:
        return self.update_context(
            self._context.with_estate_value(new_value), "estate_value_updated"
        )

    # =========================================================================
    # Context, recalculation and completion
    # =========================================================================

    def update_context(
        self,
        new_context: SuccessionContext,
        trigger: str = "manual_update",
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Replace the succession context and recalculate everything.

        Returns:
            False when the new context equals the current one (no-op)
        """
        self._ensure_not_complete()
        if new_context == self._context:
            return False
        now = now or utc_now()
        previous_court = self._context.determine_court_jurisdiction()

        self._begin_mutation()
        self._recalculate(self._risk_flags, new_context, trigger, now)

        new_court = new_context.determine_court_jurisdiction()
        if new_court != previous_court:
            logger.info(
                f"Assessment {self.id}: jurisdiction changed "
                f"{previous_court.value} -> {new_court.value}"
            )
        return True

    def recalculate(self, trigger: str = "manual_recalculation", now: Optional[datetime] = None) -> None:
        self._ensure_not_complete()
        now = now or utc_now()
        self._begin_mutation()
        self._recalculate(self._risk_flags, self._context, trigger, now)

    def mark_as_complete(self, now: Optional[datetime] = None) -> None:
        """
        Terminal transition once the case is ready to file.

        Raises:
            AssessmentAlreadyCompleteError: If already complete
            CannotCompleteAssessmentError: If the score does not allow filing
        """
        self._ensure_not_complete()
        if not self._score.can_file():
            raise CannotCompleteAssessmentError(
                self.id,
                self._score.score,
                self._score.status.value,
                READY_THRESHOLD,
            )
        now = now or utc_now()

        self._begin_mutation()
        self._is_complete = True
        self._completed_at = now
        self._record(ReadinessAssessmentCompleted(
            aggregate_id=self.id,
            version=self.version,
            occurred_at=now,
            estate_id=self.estate_id,
            final_score=self._score.score,
            final_status=self._score.status,
            completed_at=now,
            total_recalculations=self._total_recalculations,
        ))
        logger.info(f"Assessment {self.id} completed at score {self._score.score}")

    # =========================================================================
    # Invariants
    # =========================================================================

    def validate(self) -> None:
        """
        Check the aggregate invariants.

        Raises:
            AssessmentInconsistentError: Listing every violated rule
        """
        violations = []
        fresh = ReadinessScore.calculate(self._counts(self._risk_flags), self._context)
        if fresh.score != self._score.score:
            violations.append(f"score mismatch: stored={self._score.score}, calculated={fresh.score}")
        if fresh.status != self._score.status:
            violations.append(
                f"status mismatch: stored={self._score.status.value}, calculated={fresh.status.value}"
            )

        ids = [risk.id for risk in self._risk_flags]
        if len(ids) != len(set(ids)):
            violations.append("duplicate risk ids")

        fingerprints = [risk.fingerprint for risk in self.unresolved_risks()]
        if len(fingerprints) != len(set(fingerprints)):
            violations.append("duplicate unresolved risks")

        if self._is_complete and not self._score.can_file():
            violations.append("complete assessment is not ready to file")

        for risk in self._risk_flags:
            if risk.source is None:
                violations.append(f"risk {risk.id} has no source")

        if violations:
            raise AssessmentInconsistentError(self.id, violations)

    # =========================================================================
    # Events and persistence bookkeeping
    # =========================================================================

    def pull_events(self) -> List[ReadinessEvent]:
        """Return and clear the events recorded since the last pull."""
        events, self._pending_events = self._pending_events, []
        return events

    def mark_persisted(self) -> None:
        self._persisted_version = self._version

    @property
    def has_unsaved_changes(self) -> bool:
        return self._version != self._persisted_version

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _ensure_not_complete(self) -> None:
        if self._is_complete:
            raise AssessmentAlreadyCompleteError(self.id)

    def _index_of(self, risk_id: str) -> int:
        for index, risk in enumerate(self._risk_flags):
            if risk.id == risk_id:
                return index
        raise RiskNotFoundError(risk_id)

    def _replaced(self, index: int, risk: RiskFlag) -> List[RiskFlag]:
        risks = list(self._risk_flags)
        risks[index] = risk
        return risks

    def _find_unresolved_duplicate(self, candidate: RiskFlag) -> Optional[RiskFlag]:
        fingerprint = candidate.fingerprint
        for risk in self._risk_flags:
            if risk.id != candidate.id and risk.is_unresolved and risk.fingerprint == fingerprint:
                return risk
        return None

    def _begin_mutation(self) -> None:
        self._version += 1

    def _record(self, event: ReadinessEvent) -> None:
        self._pending_events.append(event)

    def _record_detected(self, risk: RiskFlag, now: datetime) -> None:
        self._record(RiskFlagDetected(
            aggregate_id=self.id,
            version=self.version,
            occurred_at=now,
            estate_id=self.estate_id,
            risk_id=risk.id,
            severity=risk.severity,
            category=risk.category,
            description=risk.description,
            is_blocking=risk.is_blocking,
            source_type=risk.source.source_type.value,
            detection_rule_id=risk.detection_rule_id,
        ))

    def _record_gap(self, gap: DocumentGap, now: datetime) -> None:
        self._record(DocumentGapIdentified(
            aggregate_id=self.id,
            version=self.version,
            occurred_at=now,
            estate_id=self.estate_id,
            document_type=gap.type.value,
            severity=gap.severity,
            description=gap.description,
            is_blocking=gap.is_blocking,
        ))

    @staticmethod
    def _counts(risks: Iterable[RiskFlag]) -> RiskCounts:
        return RiskCounts.from_severities(risk.severity for risk in risks if risk.is_unresolved)

    def _refresh_derived_state(self, now: datetime) -> None:
        """Recompute score, documents, blocking issues and strategy."""
        self._score = ReadinessScore.calculate(self._counts(self._risk_flags), self._context, now)

        gaps: Dict[Any, DocumentGap] = {}
        for risk in self.unresolved_risks():
            if risk.document_gap is not None and risk.document_gap.type not in gaps:
                gaps[risk.document_gap.type] = risk.document_gap
        self._missing_documents = list(gaps.values())

        self._blocking_issues = [
            f"{risk.category.value}: {risk.description} ({risk.legal_basis})"
            for risk in self.blocking_risks()
        ]
        self._recommended_strategy = self._generate_strategy(now)

    def _recalculate(
        self,
        risks: Sequence[RiskFlag],
        context: SuccessionContext,
        trigger: str,
        now: datetime,
    ) -> None:
        previous_score = self._score
        previous_gap_types = {gap.type for gap in self._missing_documents}
        previous_strategy = self._recommended_strategy

        self._risk_flags = list(risks)
        self._context = context
        self._refresh_derived_state(now)
        self._last_assessed_at = now
        self._last_recalculation_trigger = trigger
        self._total_recalculations += 1

        score_changed = previous_score.score != self._score.score
        status_changed = previous_score.status != self._score.status
        if score_changed or status_changed:
            self._record(ReadinessScoreUpdated(
                aggregate_id=self.id,
                version=self.version,
                occurred_at=now,
                estate_id=self.estate_id,
                previous_score=previous_score.score,
                new_score=self._score.score,
                previous_status=previous_score.status,
                new_status=self._score.status,
                trigger=trigger,
            ))
        if status_changed:
            self._record(ReadinessStatusChanged(
                aggregate_id=self.id,
                version=self.version,
                occurred_at=now,
                estate_id=self.estate_id,
                previous_status=previous_score.status,
                new_status=self._score.status,
                trigger=trigger,
            ))
        for gap in self._missing_documents:
            if gap.type not in previous_gap_types:
                self._record_gap(gap, now)
        if self._recommended_strategy != previous_strategy:
            self._record(RecommendedStrategyUpdated(
                aggregate_id=self.id,
                version=self.version,
                occurred_at=now,
                estate_id=self.estate_id,
                strategy=self._recommended_strategy,
                trigger=trigger,
            ))

    def _generate_strategy(self, now: datetime) -> str:
        context = self._context
        score = self._score
        court = context.determine_court_jurisdiction()
        court_name = context.court_name(court)

        blocking = self.blocking_risks()
        if blocking:
            issues = "\n\n".join(
                f"{number}. {risk.description}\n   -> {self._first_step(risk)}"
                for number, risk in enumerate(blocking, start=1)
            )
            return (
                f"BLOCKED - Cannot file in {court_name}\n\n"
                f"Critical issues ({len(blocking)}):\n"
                f"{issues}\n\n"
                "Next action: resolve all critical issues above."
            )

        if score.can_file():
            fee = FILING_FEES.get(court, DEFAULT_FILING_FEE)
            return (
                f"READY TO FILE - {score.score}% ready\n\n"
                f"Court: {court_name}\n"
                f"Application: {context.application_type()}\n"
                f"Confidence: {score.filing_confidence.value.lower()}\n\n"
                "Next steps:\n"
                "1. Review generated forms\n"
                f"2. Collect {len(self._missing_documents)} missing document(s)\n"
                f"3. Submit to the {court_name} registry\n"
                f"4. Pay estimated fees: KES {fee:,}\n\n"
                f"Note: {score.message}"
            )

        top = self.top_priority_risks(TOP_PRIORITY_LIMIT, now)
        if top:
            actions = "\n\n".join(
                f"{number}. {risk.description}\n   -> {self._first_step(risk)}"
                for number, risk in enumerate(top, start=1)
            )
        else:
            actions = "No high-priority risks. Continue gathering documents."
        days = score.estimated_days_to_ready or DEFAULT_DAYS_TO_READY
        return (
            f"IN PROGRESS - {score.score}% ready\n\n"
            f"Target: {READY_THRESHOLD}% ({READY_THRESHOLD - score.score}% to go)\n\n"
            "Priority actions:\n"
            f"{actions}\n\n"
            f"Timeline: estimated {days} days to ready"
        )

    @staticmethod
    def _first_step(risk: RiskFlag) -> str:
        return risk.mitigation_steps[0] if risk.mitigation_steps else "Review with your advocate"

    # =========================================================================
    # Persistence
    # =========================================================================

    def to_persistable_state(self) -> Dict[str, Any]:
        return {
            "id": self._id,
            "estate_id": self._estate_id,
            "family_id": self._family_id,
            "context": self._context.to_persistable_state(),
            "score": self._score.to_persistable_state(),
            "risk_flags": [risk.to_persistable_state() for risk in self._risk_flags],
            "missing_documents": [gap.to_persistable_state() for gap in self._missing_documents],
            "blocking_issues": list(self._blocking_issues),
            "recommended_strategy": self._recommended_strategy,
            "last_assessed_at": self._last_assessed_at.isoformat(),
            "last_recalculation_trigger": self._last_recalculation_trigger,
            "is_complete": self._is_complete,
            "completed_at": self._completed_at.isoformat() if self._completed_at else None,
            "total_recalculations": self._total_recalculations,
            "version": self._version,
            "created_at": self._created_at.isoformat(),
        }

    @classmethod
    def from_persistable_state(cls, state: Dict[str, Any]) -> "ReadinessAssessment":
        """
        Rebuild an assessment from stored state.

        Raises:
            PersistedStateError: If the state is malformed or violates
                an invariant
        """
        try:
            context = SuccessionContext.from_persistable_state(state["context"])
            completed_at = state.get("completed_at")
            assessment = cls(
                assessment_id=state["id"],
                estate_id=state["estate_id"],
                family_id=state.get("family_id"),
                context=context,
                score=ReadinessScore.from_persistable_state(state["score"], context),
                risk_flags=[RiskFlag.from_persistable_state(r) for r in state["risk_flags"]],
                missing_documents=[
                    DocumentGap.from_persistable_state(g) for g in state.get("missing_documents", [])
                ],
                blocking_issues=state.get("blocking_issues", []),
                recommended_strategy=state.get("recommended_strategy", ""),
                last_assessed_at=datetime.fromisoformat(state["last_assessed_at"]),
                last_recalculation_trigger=state.get("last_recalculation_trigger"),
                is_complete=state.get("is_complete", False),
                completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
                total_recalculations=state.get("total_recalculations", 0),
                version=state["version"],
                created_at=datetime.fromisoformat(state["created_at"]),
            )
            assessment.validate()
        except (KeyError, TypeError, ValueError) as e:
            raise PersistedStateError(
                f"Cannot rebuild readiness assessment: {e}",
                {"assessment_id": state.get("id") if isinstance(state, dict) else None},
            ) from e
        except AssessmentInconsistentError as e:
            raise PersistedStateError(e.message, e.details) from e
        return assessment
