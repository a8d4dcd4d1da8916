"""
Readiness Score
===============

Gate-then-weight scoring of how ready a case is for filing.

Algorithm:
    1. Gate: any unresolved CRITICAL risk forces score 0 and BLOCKED.
    2. Weights: otherwise score = 100 - 20*high - 10*medium - 5*low,
       floored at 0.
    3. Status: score >= 80 is READY_TO_FILE, anything lower IN_PROGRESS.

The score is always derived from current risk counts. A stored score
is a cache and must match a fresh calculation.

Author: Mirathi Team
Version: 1.0.0
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from mirathi.readiness.exceptions import InvalidValueError, PersistedStateError
from mirathi.readiness.severity import RiskSeverity
from mirathi.readiness.succession_context import SuccessionContext


logger = logging.getLogger(__name__)


READY_THRESHOLD = 80
MAX_SCORE = 100

HIGH_PENALTY = 20
MEDIUM_PENALTY = 10
LOW_PENALTY = 5

# Working days expected to clear one open risk of each severity
DAYS_PER_RISK = {
    RiskSeverity.CRITICAL: 14,
    RiskSeverity.HIGH: 7,
    RiskSeverity.MEDIUM: 3,
    RiskSeverity.LOW: 1,
}
DISPUTE_DELAY_DAYS = 30
MINOR_DELAY_DAYS = 14


class ReadinessStatus(Enum):
    """Filing status, ordered from worst to best by ``rank``."""
    BLOCKED = "BLOCKED"
    IN_PROGRESS = "IN_PROGRESS"
    READY_TO_FILE = "READY_TO_FILE"

    @property
    def rank(self) -> int:
        return list(ReadinessStatus).index(self)


class FilingConfidence(Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    VERY_LOW = "VERY_LOW"
    BLOCKED = "BLOCKED"


@dataclass(frozen=True)
class RiskCounts:
    """Unresolved risk counts by severity."""
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    def __post_init__(self):
        for name in ("critical", "high", "medium", "low"):
            if getattr(self, name) < 0:
                raise InvalidValueError(
                    f"Risk count '{name}' cannot be negative",
                    {name: getattr(self, name)},
                )

    @property
    def total(self) -> int:
        return self.critical + self.high + self.medium + self.low

    def for_severity(self, severity: RiskSeverity) -> int:
        return getattr(self, severity.value.lower())

    @classmethod
    def from_severities(cls, severities: Iterable[RiskSeverity]) -> "RiskCounts":
        tally = {severity: 0 for severity in RiskSeverity}
        for severity in severities:
            tally[severity] += 1
        return cls(
            critical=tally[RiskSeverity.CRITICAL],
            high=tally[RiskSeverity.HIGH],
            medium=tally[RiskSeverity.MEDIUM],
            low=tally[RiskSeverity.LOW],
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
            "total": self.total,
        }


@dataclass(frozen=True)
class ReadinessScore:
    """
    Derived readiness of an assessment.

    Build with ``ReadinessScore.calculate``; fields are never edited
    by hand.
    """
    score: int
    status: ReadinessStatus
    counts: RiskCounts
    filing_confidence: FilingConfidence
    estimated_days_to_ready: int
    next_milestone: str
    calculated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def calculate(
        cls,
        counts: RiskCounts,
        context: SuccessionContext,
        now: Optional[datetime] = None,
    ) -> "ReadinessScore":
        """
        Score a case from its unresolved risk counts.

        Args:
            counts: Unresolved risks by severity
            context: Succession context (affects confidence and timing only)
            now: Calculation timestamp

        Returns:
            Fresh ReadinessScore
        """
        if counts.critical > 0:
            score = 0
            status = ReadinessStatus.BLOCKED
        else:
            score = max(
                0,
                MAX_SCORE
                - HIGH_PENALTY * counts.high
                - MEDIUM_PENALTY * counts.medium
                - LOW_PENALTY * counts.low,
            )
            status = (
                ReadinessStatus.READY_TO_FILE
                if score >= READY_THRESHOLD
                else ReadinessStatus.IN_PROGRESS
            )

        return cls(
            score=score,
            status=status,
            counts=counts,
            filing_confidence=cls._confidence(score, status, context),
            estimated_days_to_ready=cls._days_to_ready(status, counts, context),
            next_milestone=cls._milestone(score, status, counts),
            calculated_at=now or datetime.now(timezone.utc),
        )

    @classmethod
    def initial(cls, context: SuccessionContext, now: Optional[datetime] = None) -> "ReadinessScore":
        return cls.calculate(RiskCounts(), context, now)

    # =========================================================================
    # Derived values
    # =========================================================================

    @staticmethod
    def _confidence(
        score: int,
        status: ReadinessStatus,
        context: SuccessionContext,
    ) -> FilingConfidence:
        if status == ReadinessStatus.BLOCKED:
            return FilingConfidence.BLOCKED
        if score >= 90:
            confidence = FilingConfidence.HIGH
        elif score >= READY_THRESHOLD:
            confidence = FilingConfidence.MEDIUM
        elif score >= 60:
            confidence = FilingConfidence.LOW
        else:
            confidence = FilingConfidence.VERY_LOW
        # Disputed estates are routinely objected to after filing
        if context.has_disputed_assets and confidence == FilingConfidence.HIGH:
            confidence = FilingConfidence.MEDIUM
        return confidence

    @staticmethod
    def _days_to_ready(
        status: ReadinessStatus,
        counts: RiskCounts,
        context: SuccessionContext,
    ) -> int:
        if status == ReadinessStatus.READY_TO_FILE:
            return 0
        days = sum(
            DAYS_PER_RISK[severity] * counts.for_severity(severity)
            for severity in RiskSeverity
        )
        if context.has_disputed_assets:
            days += DISPUTE_DELAY_DAYS
        if context.is_minor_involved:
            days += MINOR_DELAY_DAYS
        return days

    @staticmethod
    def _milestone(score: int, status: ReadinessStatus, counts: RiskCounts) -> str:
        if status == ReadinessStatus.BLOCKED:
            return f"Resolve {counts.critical} critical issue(s) blocking filing"
        if status == ReadinessStatus.IN_PROGRESS:
            return f"Reach {READY_THRESHOLD}% readiness ({READY_THRESHOLD - score}% to go)"
        return "File the succession application"

    @property
    def risk_breakdown(self) -> Dict[str, int]:
        return self.counts.to_dict()

    @property
    def message(self) -> str:
        if self.status == ReadinessStatus.BLOCKED:
            return f"Filing is blocked by {self.counts.critical} critical issue(s)."
        if self.status == ReadinessStatus.READY_TO_FILE:
            return f"Ready to file ({self.score}%)."
        return f"{self.score}% ready; {READY_THRESHOLD - self.score}% to go before filing."

    @property
    def percentage_to_filing(self) -> int:
        """Progress toward the filing threshold, capped at 100."""
        return round(min(self.score, READY_THRESHOLD) * 100 / READY_THRESHOLD)

    def can_file(self) -> bool:
        return self.status == ReadinessStatus.READY_TO_FILE

    def is_blocked(self) -> bool:
        return self.status == ReadinessStatus.BLOCKED

    def matches(self, other: "ReadinessScore") -> bool:
        """Same score, status and counts, regardless of calculation time."""
        return (
            self.score == other.score
            and self.status == other.status
            and self.counts == other.counts
        )

    # =========================================================================
    # Persistence
    # =========================================================================

    def to_persistable_state(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "status": self.status.value,
            "critical_count": self.counts.critical,
            "high_count": self.counts.high,
            "medium_count": self.counts.medium,
            "low_count": self.counts.low,
            "filing_confidence": self.filing_confidence.value,
            "estimated_days_to_ready": self.estimated_days_to_ready,
            "next_milestone": self.next_milestone,
            "calculated_at": self.calculated_at.isoformat(),
        }

    @classmethod
    def from_persistable_state(
        cls,
        state: Dict[str, Any],
        context: SuccessionContext,
    ) -> "ReadinessScore":
        """
        Rebuild a stored score by recalculating it from its counts.

        Raises:
            PersistedStateError: If the stored score or status disagrees
                with the stored counts
        """
        counts = RiskCounts(
            critical=state["critical_count"],
            high=state["high_count"],
            medium=state["medium_count"],
            low=state["low_count"],
        )
        rebuilt = cls.calculate(
            counts,
            context,
            now=datetime.fromisoformat(state["calculated_at"]),
        )
        if rebuilt.score != state["score"] or rebuilt.status.value != state["status"]:
            logger.warning(
                f"Stored score {state['score']}/{state['status']} disagrees with "
                f"counts (expected {rebuilt.score}/{rebuilt.status.value})"
            )
            raise PersistedStateError(
                "Stored readiness score does not match its risk counts",
                {
                    "stored_score": state["score"],
                    "stored_status": state["status"],
                    "expected_score": rebuilt.score,
                    "expected_status": rebuilt.status.value,
                },
            )
        return rebuilt
