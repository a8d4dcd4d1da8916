"""
Readiness Service
=================

Application service for readiness assessments.

Each command runs one unit of work:

    1. load the assessment from the repository
    2. apply one aggregate operation
    3. save with optimistic concurrency
    4. append the emitted events to the audit trail
    5. deliver EventEnvelopes to subscribers

Only ConcurrencyConflictError is retried (reload and reapply, bounded
by ``settings.concurrency_max_retries``). Every other error propagates
unchanged and nothing is saved.

Author: Mirathi Team
Version: 1.0.0
"""

from datetime import datetime
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from mirathi.audit.audit_trail import ReadinessAuditTrail
from mirathi.config import settings
from mirathi.db.repository import AssessmentRepository
from mirathi.logging import get_correlation_id, get_logger, set_correlation_id
from mirathi.readiness.assessment import ReadinessAssessment
from mirathi.readiness.events import ReadinessEvent
from mirathi.readiness.exceptions import ConcurrencyConflictError
from mirathi.readiness.risk_flag import RiskCategory, RiskFlag
from mirathi.readiness.risk_source import utc_now
from mirathi.readiness.succession_context import SuccessionContext
from shared.schemas.readiness import AssessmentSummary, EventEnvelope


logger = get_logger(__name__)

T = TypeVar("T")

EventSubscriber = Callable[[EventEnvelope], Awaitable[None]]


class ReadinessService:
    """
    Commands and queries over readiness assessments.

    Example:
        service = ReadinessService(InMemoryAssessmentRepository())
        await service.create_assessment("estate-1", context)
        await service.add_risk("estate-1", RiskFlag.missing_death_certificate("estate-1"))
        summary = await service.get_summary("estate-1")
    """

    def __init__(
        self,
        repository: AssessmentRepository,
        audit_trail: Optional[ReadinessAuditTrail] = None,
        subscribers: Sequence[EventSubscriber] = (),
        max_retries: Optional[int] = None,
    ):
        """
        Args:
            repository: Assessment persistence
            audit_trail: Hash-chained event log (a fresh one if omitted)
            subscribers: Async callables receiving each EventEnvelope
            max_retries: Conflict retries; defaults to settings
        """
        self.repository = repository
        self.audit_trail = audit_trail or ReadinessAuditTrail()
        self.subscribers: List[EventSubscriber] = list(subscribers)
        self.max_retries = (
            settings.concurrency_max_retries if max_retries is None else max_retries
        )

    def subscribe(self, subscriber: EventSubscriber) -> None:
        self.subscribers.append(subscriber)

    # =========================================================================
    # Commands
    # =========================================================================

    async def create_assessment(
        self,
        estate_id: str,
        context: SuccessionContext,
        family_id: Optional[str] = None,
        initial_risks: Iterable[RiskFlag] = (),
    ) -> ReadinessAssessment:
        """
        Start an assessment for an estate.

        Not retried: a conflict here means the estate already has one.

        Raises:
            ConcurrencyConflictError: If the estate already has an assessment
        """
        correlation_id = get_correlation_id() or set_correlation_id()
        assessment = ReadinessAssessment.create(
            estate_id, context, family_id=family_id, initial_risks=initial_risks
        )
        await self.repository.save(assessment)
        await self._publish(assessment.pull_events(), correlation_id)
        logger.info(
            "readiness_assessment_created",
            estate_id=estate_id,
            assessment_id=assessment.id,
            score=assessment.score.score,
        )
        return assessment

    async def add_risk(self, estate_id: str, risk: RiskFlag) -> ReadinessAssessment:
        assessment, _ = await self._execute(
            estate_id, "add_risk", lambda a: a.add_risk_flag(risk)
        )
        return assessment

    async def resolve_risk(
        self,
        estate_id: str,
        risk_id: str,
        notes: Optional[str] = None,
        resolved_by: str = "user",
    ) -> ReadinessAssessment:
        assessment, _ = await self._execute(
            estate_id,
            "resolve_risk",
            lambda a: a.resolve_risk_flag(risk_id, notes, resolved_by=resolved_by),
        )
        return assessment

    async def auto_resolve(
        self,
        estate_id: str,
        entity_id: str,
        category: RiskCategory,
        event_type: str,
    ) -> List[str]:
        """
        Apply an upstream domain fact.

        Completed assessments are left untouched; redelivered facts
        resolve nothing.

        Returns:
            Ids of the risks resolved
        """
        def apply(assessment: ReadinessAssessment) -> List[str]:
            if assessment.is_complete:
                logger.info(
                    "readiness_event_ignored_complete",
                    estate_id=estate_id,
                    event_type=event_type,
                )
                return []
            return assessment.auto_resolve_risk(entity_id, category, event_type)

        _, resolved = await self._execute(estate_id, "auto_resolve", apply)
        return resolved

    async def update_context(
        self,
        estate_id: str,
        context: SuccessionContext,
        trigger: str = "manual_update",
    ) -> ReadinessAssessment:
        assessment, _ = await self._execute(
            estate_id, "update_context", lambda a: a.update_context(context, trigger)
        )
        return assessment

    async def mark_complete(self, estate_id: str) -> ReadinessAssessment:
        assessment, _ = await self._execute(
            estate_id, "mark_complete", lambda a: a.mark_as_complete()
        )
        return assessment

    async def sweep_timeouts(self, now: Optional[datetime] = None) -> Dict[str, List[str]]:
        """
        Close timed-out risks across open assessments.

        An estate that keeps conflicting is skipped and picked up by the
        next sweep.

        Returns:
            Mapping of estate id to the risk ids closed
        """
        now = now or utc_now()
        swept: Dict[str, List[str]] = {}
        candidates = await self.repository.list_open(limit=settings.sweep_batch_size)

        for candidate in candidates:
            if not any(risk.should_auto_resolve(now) for risk in candidate.risk_flags):
                continue
            try:
                _, resolved = await self._execute(
                    candidate.estate_id,
                    "sweep_timeouts",
                    lambda a: [] if a.is_complete else a.sweep_expired_risks(now),
                )
            except ConcurrencyConflictError:
                logger.warning("readiness_sweep_skipped", estate_id=candidate.estate_id)
                continue
            if resolved:
                swept[candidate.estate_id] = resolved

        logger.info("readiness_sweep_finished", estates=len(swept), scanned=len(candidates))
        return swept

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_assessment(self, estate_id: str) -> ReadinessAssessment:
        return await self.repository.load(estate_id)

    async def get_summary(self, estate_id: str) -> AssessmentSummary:
        assessment = await self.repository.load(estate_id)
        return self.summarize(assessment)

    @staticmethod
    def summarize(assessment: ReadinessAssessment, now: Optional[datetime] = None) -> AssessmentSummary:
        score = assessment.score
        context = assessment.context
        return AssessmentSummary(
            assessment_id=assessment.id,
            estate_id=assessment.estate_id,
            family_id=assessment.family_id,
            score=score.score,
            status=score.status.value,
            filing_confidence=score.filing_confidence.value,
            percentage_to_filing=score.percentage_to_filing,
            estimated_days_to_ready=score.estimated_days_to_ready,
            next_milestone=score.next_milestone,
            message=score.message,
            court=context.court_name(),
            case_classification=context.case_classification(),
            risk_breakdown=score.risk_breakdown,
            blocking_issues=list(assessment.blocking_issues),
            missing_documents=[gap.type.value for gap in assessment.missing_documents],
            recommended_strategy=assessment.recommended_strategy,
            is_complete=assessment.is_complete,
            is_stale=assessment.is_stale(now, settings.auto_recalculate_days),
            version=assessment.version,
            last_assessed_at=assessment.last_assessed_at,
        )

    # =========================================================================
    # Unit of work
    # =========================================================================

    async def _execute(
        self,
        estate_id: str,
        command: str,
        mutate: Callable[[ReadinessAssessment], T],
    ) -> Tuple[ReadinessAssessment, T]:
        correlation_id = get_correlation_id() or set_correlation_id()
        attempts = self.max_retries + 1

        attempt = 0
        while True:
            attempt += 1
            assessment = await self.repository.load(estate_id)
            result = mutate(assessment)
            if not assessment.has_unsaved_changes:
                return assessment, result

            try:
                await self.repository.save(assessment)
            except ConcurrencyConflictError as e:
                if attempt >= attempts:
                    logger.error(
                        "readiness_conflict_exhausted",
                        estate_id=estate_id,
                        command=command,
                        attempts=attempt,
                    )
                    raise
                logger.warning(
                    "readiness_conflict_retry",
                    estate_id=estate_id,
                    command=command,
                    attempt=attempt,
                    expected_version=e.expected_version,
                    actual_version=e.actual_version,
                )
                continue

            await self._publish(assessment.pull_events(), correlation_id)
            logger.info(
                "readiness_command_applied",
                estate_id=estate_id,
                command=command,
                version=assessment.version,
                score=assessment.score.score,
                status=assessment.score.status.value,
            )
            return assessment, result

    async def _publish(self, events: List[ReadinessEvent], correlation_id: str) -> None:
        for event in events:
            self.audit_trail.record(event, correlation_id)
            envelope = EventEnvelope(**event.to_dict(), correlation_id=correlation_id)
            for subscriber in self.subscribers:
                try:
                    await subscriber(envelope)
                except Exception:
                    # Events are already persisted and audited
                    logger.exception(
                        "readiness_subscriber_failed",
                        event_type=envelope.event_type,
                        aggregate_id=envelope.aggregate_id,
                    )
