"""
Risk Flag
=========

One concrete compliance problem blocking or weakening a succession
filing.

A RiskFlag is an immutable state record. Every transition (resolve,
reopen, dispute, severity change) returns a new RiskFlag built with
``dataclasses.replace``; the owning assessment swaps the old record
for the new one. Risks are never deleted.

State machine:
    ACTIVE -> RESOLVED | SUPERSEDED | DISPUTED
    RESOLVED -> ACTIVE (reopen only)

Author: Mirathi Team
Version: 1.0.0
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple
from uuid import uuid4

from mirathi.readiness.document_gap import DocumentGap
from mirathi.readiness.exceptions import (
    InvalidRiskTransitionError,
    InvalidValueError,
    RiskAlreadyResolvedError,
    RiskNotResolvedError,
)
from mirathi.readiness.risk_source import RiskSource, utc_now
from mirathi.readiness.severity import RiskSeverity


logger = logging.getLogger(__name__)


class RiskCategory(Enum):
    """
    Legal-issue taxonomy, grouped by ``group``.
    """
    # Documents
    MISSING_DOCUMENT = "MISSING_DOCUMENT"
    INVALID_DOCUMENT = "INVALID_DOCUMENT"
    EXPIRED_DOCUMENT = "EXPIRED_DOCUMENT"
    FORGED_DOCUMENT = "FORGED_DOCUMENT"

    # Family structure
    MINOR_WITHOUT_GUARDIAN = "MINOR_WITHOUT_GUARDIAN"
    UNDEFINED_POLYGAMOUS_STRUCTURE = "UNDEFINED_POLYGAMOUS_STRUCTURE"
    DISPUTED_RELATIONSHIP = "DISPUTED_RELATIONSHIP"
    COHABITATION_CLAIM = "COHABITATION_CLAIM"
    ILLEGITIMATE_CHILD_CLAIM = "ILLEGITIMATE_CHILD_CLAIM"

    # Estate
    ASSET_VERIFICATION_FAILED = "ASSET_VERIFICATION_FAILED"
    INSOLVENT_ESTATE = "INSOLVENT_ESTATE"
    MISSING_ASSET_VALUATION = "MISSING_ASSET_VALUATION"
    ENCUMBERED_ASSET = "ENCUMBERED_ASSET"
    FRAUDULENT_ASSET_TRANSFER = "FRAUDULENT_ASSET_TRANSFER"

    # Will
    INVALID_WILL_SIGNATURE = "INVALID_WILL_SIGNATURE"
    MINOR_EXECUTOR = "MINOR_EXECUTOR"
    BENEFICIARY_AS_WITNESS = "BENEFICIARY_AS_WITNESS"
    CONTESTED_WILL = "CONTESTED_WILL"
    UNDUE_INFLUENCE = "UNDUE_INFLUENCE"

    # Jurisdiction
    WRONG_COURT = "WRONG_COURT"
    NON_RESIDENT_APPLICANT = "NON_RESIDENT_APPLICANT"
    FORUM_NON_CONVENIENS = "FORUM_NON_CONVENIENS"

    # Tax
    TAX_CLEARANCE_MISSING = "TAX_CLEARANCE_MISSING"
    KRA_PIN_MISSING = "KRA_PIN_MISSING"
    CAPITAL_GAINS_TAX_UNPAID = "CAPITAL_GAINS_TAX_UNPAID"

    # Time
    STATUTE_BARRED_DEBT = "STATUTE_BARRED_DEBT"
    DELAYED_FILING = "DELAYED_FILING"

    # Other
    FAMILY_DISPUTE = "FAMILY_DISPUTE"
    CRIMINAL_INVESTIGATION = "CRIMINAL_INVESTIGATION"
    BANKRUPTCY_PENDING = "BANKRUPTCY_PENDING"

    # System
    DATA_INCONSISTENCY = "DATA_INCONSISTENCY"
    EXTERNAL_API_FAILURE = "EXTERNAL_API_FAILURE"

    @property
    def group(self) -> str:
        return _CATEGORY_GROUPS[self]


_CATEGORY_GROUPS = {
    RiskCategory.MISSING_DOCUMENT: "DOCUMENT",
    RiskCategory.INVALID_DOCUMENT: "DOCUMENT",
    RiskCategory.EXPIRED_DOCUMENT: "DOCUMENT",
    RiskCategory.FORGED_DOCUMENT: "DOCUMENT",
    RiskCategory.MINOR_WITHOUT_GUARDIAN: "FAMILY",
    RiskCategory.UNDEFINED_POLYGAMOUS_STRUCTURE: "FAMILY",
    RiskCategory.DISPUTED_RELATIONSHIP: "FAMILY",
    RiskCategory.COHABITATION_CLAIM: "FAMILY",
    RiskCategory.ILLEGITIMATE_CHILD_CLAIM: "FAMILY",
    RiskCategory.ASSET_VERIFICATION_FAILED: "ESTATE",
    RiskCategory.INSOLVENT_ESTATE: "ESTATE",
    RiskCategory.MISSING_ASSET_VALUATION: "ESTATE",
    RiskCategory.ENCUMBERED_ASSET: "ESTATE",
    RiskCategory.FRAUDULENT_ASSET_TRANSFER: "ESTATE",
    RiskCategory.INVALID_WILL_SIGNATURE: "WILL",
    RiskCategory.MINOR_EXECUTOR: "WILL",
    RiskCategory.BENEFICIARY_AS_WITNESS: "WILL",
    RiskCategory.CONTESTED_WILL: "WILL",
    RiskCategory.UNDUE_INFLUENCE: "WILL",
    RiskCategory.WRONG_COURT: "JURISDICTION",
    RiskCategory.NON_RESIDENT_APPLICANT: "JURISDICTION",
    RiskCategory.FORUM_NON_CONVENIENS: "JURISDICTION",
    RiskCategory.TAX_CLEARANCE_MISSING: "TAX",
    RiskCategory.KRA_PIN_MISSING: "TAX",
    RiskCategory.CAPITAL_GAINS_TAX_UNPAID: "TAX",
    RiskCategory.STATUTE_BARRED_DEBT: "TIME",
    RiskCategory.DELAYED_FILING: "TIME",
    RiskCategory.FAMILY_DISPUTE: "OTHER",
    RiskCategory.CRIMINAL_INVESTIGATION: "OTHER",
    RiskCategory.BANKRUPTCY_PENDING: "OTHER",
    RiskCategory.DATA_INCONSISTENCY: "SYSTEM",
    RiskCategory.EXTERNAL_API_FAILURE: "SYSTEM",
}


class RiskStatus(Enum):
    ACTIVE = "ACTIVE"
    RESOLVED = "RESOLVED"
    SUPERSEDED = "SUPERSEDED"
    EXPIRED = "EXPIRED"
    DISPUTED = "DISPUTED"


class ResolutionMethod(Enum):
    EVENT_DRIVEN = "EVENT_DRIVEN"
    MANUAL_RESOLUTION = "MANUAL_RESOLUTION"
    SYSTEM_AUTO_RESOLVE = "SYSTEM_AUTO_RESOLVE"
    COURT_ORDER = "COURT_ORDER"
    TIME_BASED = "TIME_BASED"
    ADMIN_OVERRIDE = "ADMIN_OVERRIDE"


# Statuses that still count against the readiness score
UNRESOLVED_STATUSES = (RiskStatus.ACTIVE, RiskStatus.DISPUTED)

AGE_GRACE_DAYS = 30
MAX_AGE_BONUS = 20


def _timeout_for(severity: RiskSeverity, now: datetime) -> datetime:
    return now + timedelta(days=severity.timeout_days)


def _unique(values: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(values))


@dataclass(frozen=True)
class RiskFlag:
    """
    A detected compliance risk and its resolution history.

    Build new risks with ``RiskFlag.create`` or one of the rule
    factories; ``is_blocking`` is derived from severity.
    """
    id: str
    severity: RiskSeverity
    category: RiskCategory
    description: str
    source: RiskSource
    legal_basis: str
    detection_rule_id: str
    impact_score: int
    mitigation_steps: Tuple[str, ...] = ()
    document_gap: Optional[DocumentGap] = None
    affected_entity_ids: Tuple[str, ...] = ()
    affected_aggregate_ids: Tuple[str, ...] = ()
    expected_resolution_events: Tuple[str, ...] = ()
    status: RiskStatus = RiskStatus.ACTIVE
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    resolution_method: Optional[ResolutionMethod] = None
    resolution_notes: Optional[str] = None
    auto_resolve_timeout: Optional[datetime] = None
    last_reviewed_at: datetime = field(default_factory=utc_now)
    review_count: int = 1
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if self.source is None:
            raise InvalidValueError("Risk flag must have a source")
        if not self.description or not self.description.strip():
            raise InvalidValueError("Risk flag description cannot be empty")
        if not self.detection_rule_id:
            raise InvalidValueError("Risk flag requires a detection rule id")
        if not 1 <= self.impact_score <= 10:
            raise InvalidValueError(
                "Impact score must be between 1 and 10",
                {"impact_score": self.impact_score},
            )

    @classmethod
    def create(
        cls,
        severity: RiskSeverity,
        category: RiskCategory,
        description: str,
        source: RiskSource,
        legal_basis: str,
        detection_rule_id: str,
        impact_score: int = 5,
        mitigation_steps: Iterable[str] = (),
        document_gap: Optional[DocumentGap] = None,
        affected_entity_ids: Iterable[str] = (),
        affected_aggregate_ids: Iterable[str] = (),
        expected_resolution_events: Iterable[str] = (),
        now: Optional[datetime] = None,
        risk_id: Optional[str] = None,
    ) -> "RiskFlag":
        """
        Create a new ACTIVE risk with a severity-derived auto-resolve timeout.
        """
        now = now or utc_now()
        return cls(
            id=risk_id or str(uuid4()),
            severity=severity,
            category=category,
            description=description,
            source=source,
            legal_basis=legal_basis,
            detection_rule_id=detection_rule_id,
            impact_score=impact_score,
            mitigation_steps=tuple(mitigation_steps),
            document_gap=document_gap,
            affected_entity_ids=_unique(affected_entity_ids),
            affected_aggregate_ids=_unique(affected_aggregate_ids),
            expected_resolution_events=_unique(expected_resolution_events),
            status=RiskStatus.ACTIVE,
            auto_resolve_timeout=_timeout_for(severity, now),
            last_reviewed_at=now,
            review_count=1,
            created_at=now,
            updated_at=now,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def is_blocking(self) -> bool:
        return self.severity == RiskSeverity.CRITICAL

    @property
    def is_resolved(self) -> bool:
        return self.status == RiskStatus.RESOLVED

    @property
    def is_unresolved(self) -> bool:
        return self.status in UNRESOLVED_STATUSES

    def is_currently_blocking(self) -> bool:
        return self.status == RiskStatus.ACTIVE and self.severity == RiskSeverity.CRITICAL

    def should_auto_resolve(self, now: Optional[datetime] = None) -> bool:
        if self.status != RiskStatus.ACTIVE or self.auto_resolve_timeout is None:
            return False
        return (now or utc_now()) >= self.auto_resolve_timeout

    def can_be_resolved_by_event(self, event_type: str) -> bool:
        return event_type in self.expected_resolution_events

    def age_in_days(self, now: Optional[datetime] = None) -> int:
        return ((now or utc_now()) - self.created_at).days

    def days_until_auto_resolve(self, now: Optional[datetime] = None) -> Optional[int]:
        if self.auto_resolve_timeout is None or self.status != RiskStatus.ACTIVE:
            return None
        return max(0, (self.auto_resolve_timeout - (now or utc_now())).days)

    @property
    def fingerprint(self) -> str:
        return ":".join([
            self.category.value,
            self.detection_rule_id,
            self.source.fingerprint,
            ",".join(sorted(self.affected_entity_ids)),
        ])

    def priority_score(self, now: Optional[datetime] = None) -> int:
        """Display ordering only; higher sorts first."""
        score = self.severity.weight * 10
        if self.status == RiskStatus.ACTIVE:
            score += 20
        if self.is_currently_blocking():
            score += 30
        score += min(MAX_AGE_BONUS, max(0, self.age_in_days(now) - AGE_GRACE_DAYS))
        score += self.impact_score
        return score

    def affects(self, entity_id: str) -> bool:
        return entity_id in self.affected_entity_ids

    # =========================================================================
    # Transitions
    # =========================================================================

    def resolve(
        self,
        method: ResolutionMethod,
        resolved_by: str,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "RiskFlag":
        """
        Close the risk.

        Raises:
            RiskAlreadyResolvedError: If the risk is already resolved
            InvalidRiskTransitionError: If the risk was superseded or expired
        """
        if self.is_resolved:
            raise RiskAlreadyResolvedError(self.id)
        if not self.is_unresolved:
            raise InvalidRiskTransitionError(self.id, self.status.value, "resolve")
        now = now or utc_now()
        return replace(
            self,
            status=RiskStatus.RESOLVED,
            resolved_at=now,
            resolution_method=method,
            resolved_by=resolved_by,
            resolution_notes=notes or f"Resolved via {method.value}",
            auto_resolve_timeout=None,
            last_reviewed_at=now,
            review_count=self.review_count + 1,
            updated_at=now,
        )

    def reopen(self, reason: str, now: Optional[datetime] = None) -> "RiskFlag":
        """
        Return a resolved risk to ACTIVE with a fresh timeout.

        Raises:
            RiskNotResolvedError: If the risk is not resolved
        """
        if not self.is_resolved:
            raise RiskNotResolvedError(self.id)
        now = now or utc_now()
        return replace(
            self,
            status=RiskStatus.ACTIVE,
            resolved_at=None,
            resolution_method=None,
            resolved_by=None,
            resolution_notes=f"Reopened: {reason}",
            auto_resolve_timeout=_timeout_for(self.severity, now),
            last_reviewed_at=now,
            review_count=self.review_count + 1,
            updated_at=now,
        )

    def _require_active(self, action: str) -> None:
        if self.is_resolved:
            raise RiskAlreadyResolvedError(self.id)
        if self.status != RiskStatus.ACTIVE:
            raise InvalidRiskTransitionError(self.id, self.status.value, action)

    def supersede(self, superseding_risk_id: str, now: Optional[datetime] = None) -> "RiskFlag":
        """
        Close an ACTIVE risk in favour of another risk.

        Raises:
            RiskAlreadyResolvedError: If the risk is already resolved
            InvalidRiskTransitionError: If the risk is not ACTIVE or would
                supersede itself
        """
        self._require_active("supersede")
        if superseding_risk_id == self.id:
            raise InvalidRiskTransitionError(self.id, self.status.value, "supersede by itself")
        now = now or utc_now()
        return replace(
            self,
            status=RiskStatus.SUPERSEDED,
            resolved_at=now,
            resolution_method=ResolutionMethod.SYSTEM_AUTO_RESOLVE,
            resolved_by="system",
            resolution_notes=f"Superseded by risk {superseding_risk_id}",
            auto_resolve_timeout=None,
            last_reviewed_at=now,
            review_count=self.review_count + 1,
            updated_at=now,
        )

    def dispute(self, reason: str, user_id: str, now: Optional[datetime] = None) -> "RiskFlag":
        """Only ACTIVE risks can be disputed."""
        self._require_active("dispute")
        now = now or utc_now()
        return replace(
            self,
            status=RiskStatus.DISPUTED,
            resolution_notes=f"Disputed by user {user_id}: {reason}",
            last_reviewed_at=now,
            review_count=self.review_count + 1,
            updated_at=now,
        )

    def update_severity(
        self,
        new_severity: RiskSeverity,
        reason: str,
        now: Optional[datetime] = None,
    ) -> "RiskFlag":
        """Reclassify the risk; returns self unchanged if severity is the same."""
        if new_severity == self.severity:
            return self
        now = now or utc_now()
        note = f"Severity updated: {self.severity.value} -> {new_severity.value} - {reason}"
        notes = f"{self.resolution_notes}\n[{note}]" if self.resolution_notes else note
        timeout = (
            _timeout_for(new_severity, now)
            if self.status == RiskStatus.ACTIVE
            else self.auto_resolve_timeout
        )
        logger.debug(f"Risk {self.id}: {note}")
        return replace(
            self,
            severity=new_severity,
            resolution_notes=notes,
            auto_resolve_timeout=timeout,
            last_reviewed_at=now,
            review_count=self.review_count + 1,
            updated_at=now,
        )

    def add_affected_entity(
        self,
        entity_id: str,
        aggregate_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "RiskFlag":
        now = now or utc_now()
        aggregates = self.affected_aggregate_ids
        if aggregate_id:
            aggregates = _unique(aggregates + (aggregate_id,))
        return replace(
            self,
            affected_entity_ids=_unique(self.affected_entity_ids + (entity_id,)),
            affected_aggregate_ids=aggregates,
            last_reviewed_at=now,
            review_count=self.review_count + 1,
            updated_at=now,
        )

    def mark_reviewed(self, now: Optional[datetime] = None) -> "RiskFlag":
        now = now or utc_now()
        return replace(
            self,
            last_reviewed_at=now,
            review_count=self.review_count + 1,
            updated_at=now,
        )

    # =========================================================================
    # Rule factories
    # =========================================================================

    @classmethod
    def missing_death_certificate(
        cls,
        estate_id: str,
        source: Optional[RiskSource] = None,
        now: Optional[datetime] = None,
    ) -> "RiskFlag":
        legal_basis = "S.56 LSA - Death Certificate is mandatory for all succession cases"
        return cls.create(
            severity=RiskSeverity.CRITICAL,
            category=RiskCategory.MISSING_DOCUMENT,
            description="Death Certificate is missing",
            source=source or RiskSource.from_compliance_engine("RULE_DEATH_CERT_REQUIRED", legal_basis),
            legal_basis=legal_basis,
            detection_rule_id="RULE_DEATH_CERT_REQUIRED",
            impact_score=10,
            mitigation_steps=[
                "Visit Civil Registration Office where death was registered",
                "Bring National ID and KES 50 fee",
                "Processing takes 1-3 days",
                "If death overseas, obtain certified copy and apostille",
            ],
            document_gap=DocumentGap.death_certificate(),
            affected_entity_ids=[estate_id],
            affected_aggregate_ids=[estate_id],
            expected_resolution_events=["DeathCertificateUploaded", "DocumentVerified"],
            now=now,
        )

    @classmethod
    def minor_without_guardian(
        cls,
        minor_id: str,
        family_id: str,
        minor_name: str,
        source: Optional[RiskSource] = None,
        now: Optional[datetime] = None,
    ) -> "RiskFlag":
        legal_basis = "S.71 Children Act - Every minor must have a legal guardian for estate matters"
        return cls.create(
            severity=RiskSeverity.CRITICAL,
            category=RiskCategory.MINOR_WITHOUT_GUARDIAN,
            description=f'Minor child "{minor_name}" ({minor_id[:8]}) has no legal guardian',
            source=source or RiskSource.from_compliance_engine("RULE_MINOR_GUARDIAN_REQUIRED", legal_basis),
            legal_basis=legal_basis,
            detection_rule_id="RULE_MINOR_GUARDIAN_REQUIRED",
            impact_score=9,
            mitigation_steps=[
                "Appoint legal guardian in Family section",
                "Guardian must be adult (18+)",
                "Guardian must provide consent (Form P&A 38)",
                "If disputed, apply to Children's Court for appointment",
            ],
            affected_entity_ids=[minor_id],
            affected_aggregate_ids=[family_id],
            expected_resolution_events=["GuardianAppointed", "GuardianshipCreated"],
            now=now,
        )

    @classmethod
    def undefined_polygamous_structure(
        cls,
        family_id: str,
        wife_count: int,
        source: Optional[RiskSource] = None,
        now: Optional[datetime] = None,
    ) -> "RiskFlag":
        legal_basis = "S.40 LSA - Polygamous estate must be distributed by house, not per child"
        return cls.create(
            severity=RiskSeverity.CRITICAL,
            category=RiskCategory.UNDEFINED_POLYGAMOUS_STRUCTURE,
            description=(
                f"Polygamous marriage with {wife_count} wives detected, but houses "
                "are not defined for S.40 distribution"
            ),
            source=source or RiskSource.from_compliance_engine("RULE_POLYGAMOUS_HOUSES_REQUIRED", legal_basis),
            legal_basis=legal_basis,
            detection_rule_id="RULE_POLYGAMOUS_HOUSES_REQUIRED",
            impact_score=8,
            mitigation_steps=[
                "Define polygamous houses in Family Tree",
                "Assign each wife to a house (House A, House B, etc.)",
                "Assign children to their mother's house",
                "Document customary arrangement with elders affidavit",
                "Calculate distribution per house, not per child",
            ],
            affected_entity_ids=[family_id],
            affected_aggregate_ids=[family_id],
            expected_resolution_events=["PolygamousHouseCreated", "FamilyStructureUpdated"],
            now=now,
        )

    @classmethod
    def invalid_will_signature(
        cls,
        will_id: str,
        witness_count: int,
        source: Optional[RiskSource] = None,
        now: Optional[datetime] = None,
    ) -> "RiskFlag":
        legal_basis = "S.11 LSA - Will must be signed by testator in presence of 2 competent witnesses"
        return cls.create(
            severity=RiskSeverity.CRITICAL,
            category=RiskCategory.INVALID_WILL_SIGNATURE,
            description=(
                f"Will has only {witness_count} witness(es). "
                "Kenyan law requires 2 competent witnesses."
            ),
            source=source or RiskSource.from_compliance_engine("RULE_WILL_WITNESSES_REQUIRED", legal_basis),
            legal_basis=legal_basis,
            detection_rule_id="RULE_WILL_WITNESSES_REQUIRED",
            impact_score=10,
            mitigation_steps=[
                "Add missing witness(es) via affidavit of due execution",
                "Witnesses must be 18+ and not beneficiaries",
                "Witnesses must sign in presence of testator and each other",
                "Consider will re-execution if witnesses unavailable",
            ],
            affected_entity_ids=[will_id],
            affected_aggregate_ids=[will_id],
            expected_resolution_events=["WillValidated", "WillReexecuted", "AdditionalWitnessAdded"],
            now=now,
        )

    @classmethod
    def insolvent_estate(
        cls,
        estate_id: str,
        asset_value: float,
        debt_value: float,
        source: Optional[RiskSource] = None,
        now: Optional[datetime] = None,
    ) -> "RiskFlag":
        legal_basis = "S.45 LSA - Debts must be paid in priority order before any distribution"
        deficit = debt_value - asset_value
        return cls.create(
            severity=RiskSeverity.CRITICAL,
            category=RiskCategory.INSOLVENT_ESTATE,
            description=(
                f"Estate insolvent. Assets: KES {asset_value:,.0f}, "
                f"Debts: KES {debt_value:,.0f} (Deficit: KES {deficit:,.0f})"
            ),
            source=source or RiskSource.from_compliance_engine("RULE_ESTATE_SOLVENCY_REQUIRED", legal_basis),
            legal_basis=legal_basis,
            detection_rule_id="RULE_ESTATE_SOLVENCY_REQUIRED",
            impact_score=9,
            mitigation_steps=[
                "Review all debts for validity and priority",
                "Check for statute-barred debts (>6 years old)",
                "Consider asset liquidation to cover priority debts",
                "If insolvent, apply for insolvency administration",
                "Beneficiaries receive nothing until debts cleared",
            ],
            affected_entity_ids=[estate_id],
            affected_aggregate_ids=[estate_id],
            expected_resolution_events=["DebtSettled", "AssetAdded", "EstateRevalued"],
            now=now,
        )

    @classmethod
    def missing_kra_pin(
        cls,
        deceased_id: str,
        estate_id: str,
        source: Optional[RiskSource] = None,
        now: Optional[datetime] = None,
    ) -> "RiskFlag":
        legal_basis = "Tax Procedures Act - Required for all estate valuations and transfers"
        return cls.create(
            severity=RiskSeverity.HIGH,
            category=RiskCategory.KRA_PIN_MISSING,
            description="KRA PIN Certificate for deceased is missing",
            source=source or RiskSource.from_compliance_engine("RULE_KRA_PIN_REQUIRED", legal_basis),
            legal_basis=legal_basis,
            detection_rule_id="RULE_KRA_PIN_REQUIRED",
            impact_score=7,
            mitigation_steps=[
                "Download PIN certificate from iTax portal (www.itax.kra.go.ke)",
                "Use deceased's details: ID number, full name, date of birth",
                "If deceased had no PIN, apply for posthumous PIN",
                "Submit Death Certificate with PIN application",
            ],
            document_gap=DocumentGap.kra_pin_certificate(),
            affected_entity_ids=[deceased_id, estate_id],
            affected_aggregate_ids=[estate_id],
            expected_resolution_events=["KraPinVerified", "DocumentUploaded"],
            now=now,
        )

    @classmethod
    def missing_chief_letter(
        cls,
        estate_id: str,
        source: Optional[RiskSource] = None,
        now: Optional[datetime] = None,
    ) -> "RiskFlag":
        legal_basis = "Customary Law - Required for intestate succession in rural communities"
        return cls.create(
            severity=RiskSeverity.HIGH,
            category=RiskCategory.MISSING_DOCUMENT,
            description="Chief's letter is missing for intestate succession",
            source=source or RiskSource.from_compliance_engine("RULE_CHIEF_LETTER_REQUIRED", legal_basis),
            legal_basis=legal_basis,
            detection_rule_id="RULE_CHIEF_LETTER_REQUIRED",
            impact_score=6,
            mitigation_steps=[
                "Visit local Chief's office",
                "Provide details of deceased and family structure",
                "Obtain letter confirming family hierarchy",
                "Have letter signed and stamped by Chief",
                "Include letter with court filing documents",
            ],
            document_gap=DocumentGap.chief_letter(),
            affected_entity_ids=[estate_id],
            affected_aggregate_ids=[estate_id],
            expected_resolution_events=["ChiefLetterObtained", "DocumentUploaded"],
            now=now,
        )

    @classmethod
    def cohabitation_claim(
        cls,
        claimant_id: str,
        deceased_id: str,
        duration_months: int,
        source: Optional[RiskSource] = None,
        now: Optional[datetime] = None,
    ) -> "RiskFlag":
        legal_basis = 'S.3(5) LSA - "Wife" includes woman cohabiting with man as husband for 2+ years'
        return cls.create(
            severity=RiskSeverity.HIGH,
            category=RiskCategory.COHABITATION_CLAIM,
            description=(
                f"Cohabitation claim by {claimant_id[:8]} for {duration_months} months. "
                'Must prove "wife" status under S.3(5).'
            ),
            source=source or RiskSource.from_compliance_engine("RULE_COHABITATION_VALIDATION", legal_basis),
            legal_basis=legal_basis,
            detection_rule_id="RULE_COHABITATION_VALIDATION",
            impact_score=6,
            mitigation_steps=[
                "Gather evidence of cohabitation (lease agreements, utility bills)",
                "Obtain affidavits from neighbors/relatives",
                "Prove public acknowledgment as husband/wife",
                "Check if deceased was married to others during cohabitation",
                "Prepare for likely court challenge from legal family",
            ],
            affected_entity_ids=[claimant_id, deceased_id],
            affected_aggregate_ids=[deceased_id],
            expected_resolution_events=["CohabitationVerified", "ClaimWithdrawn"],
            now=now,
        )

    @classmethod
    def statute_barred_debt(
        cls,
        debt_id: str,
        estate_id: str,
        debt_age_years: int,
        source: Optional[RiskSource] = None,
        now: Optional[datetime] = None,
    ) -> "RiskFlag":
        legal_basis = "Limitation of Actions Act - Unsecured debts barred after 6 years"
        return cls.create(
            severity=RiskSeverity.MEDIUM,
            category=RiskCategory.STATUTE_BARRED_DEBT,
            description=f"Debt is {debt_age_years} years old. May be statute-barred (>6 years).",
            source=source or RiskSource.from_compliance_engine("RULE_DEBT_LIMITATION_CHECK", legal_basis),
            legal_basis=legal_basis,
            detection_rule_id="RULE_DEBT_LIMITATION_CHECK",
            impact_score=3,
            mitigation_steps=[
                "Verify debt acknowledgment within last 6 years",
                "Check for part-payment within limitation period",
                "Consult lawyer on debt validity",
                "May reject debt if statute-barred",
            ],
            affected_entity_ids=[debt_id],
            affected_aggregate_ids=[estate_id],
            expected_resolution_events=["DebtValidated", "DebtRejected"],
            now=now,
        )

    # =========================================================================
    # Persistence
    # =========================================================================

    def to_persistable_state(self) -> Dict[str, Any]:
        def _iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "severity": self.severity.value,
            "category": self.category.value,
            "description": self.description,
            "source": self.source.to_persistable_state(),
            "legal_basis": self.legal_basis,
            "detection_rule_id": self.detection_rule_id,
            "impact_score": self.impact_score,
            "mitigation_steps": list(self.mitigation_steps),
            "document_gap": (
                self.document_gap.to_persistable_state() if self.document_gap else None
            ),
            "affected_entity_ids": list(self.affected_entity_ids),
            "affected_aggregate_ids": list(self.affected_aggregate_ids),
            "expected_resolution_events": list(self.expected_resolution_events),
            "status": self.status.value,
            "is_blocking": self.is_blocking,
            "resolved_at": _iso(self.resolved_at),
            "resolved_by": self.resolved_by,
            "resolution_method": (
                self.resolution_method.value if self.resolution_method else None
            ),
            "resolution_notes": self.resolution_notes,
            "auto_resolve_timeout": _iso(self.auto_resolve_timeout),
            "last_reviewed_at": self.last_reviewed_at.isoformat(),
            "review_count": self.review_count,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_persistable_state(cls, state: Dict[str, Any]) -> "RiskFlag":
        def _dt(value: Optional[str]) -> Optional[datetime]:
            return datetime.fromisoformat(value) if value else None

        gap = state.get("document_gap")
        method = state.get("resolution_method")
        return cls(
            id=state["id"],
            severity=RiskSeverity(state["severity"]),
            category=RiskCategory(state["category"]),
            description=state["description"],
            source=RiskSource.from_persistable_state(state["source"]),
            legal_basis=state["legal_basis"],
            detection_rule_id=state["detection_rule_id"],
            impact_score=state["impact_score"],
            mitigation_steps=tuple(state.get("mitigation_steps") or ()),
            document_gap=DocumentGap.from_persistable_state(gap) if gap else None,
            affected_entity_ids=tuple(state.get("affected_entity_ids") or ()),
            affected_aggregate_ids=tuple(state.get("affected_aggregate_ids") or ()),
            expected_resolution_events=tuple(state.get("expected_resolution_events") or ()),
            status=RiskStatus(state["status"]),
            resolved_at=_dt(state.get("resolved_at")),
            resolved_by=state.get("resolved_by"),
            resolution_method=ResolutionMethod(method) if method else None,
            resolution_notes=state.get("resolution_notes"),
            auto_resolve_timeout=_dt(state.get("auto_resolve_timeout")),
            last_reviewed_at=datetime.fromisoformat(state["last_reviewed_at"]),
            review_count=state["review_count"],
            created_at=datetime.fromisoformat(state["created_at"]),
            updated_at=datetime.fromisoformat(state["updated_at"]),
        )

    def to_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Persisted fields plus derived display values."""
        data = self.to_persistable_state()
        data.update({
            "category_group": self.category.group,
            "is_currently_blocking": self.is_currently_blocking(),
            "should_auto_resolve": self.should_auto_resolve(now),
            "age_in_days": self.age_in_days(now),
            "days_until_auto_resolve": self.days_until_auto_resolve(now),
            "fingerprint": self.fingerprint,
            "priority_score": self.priority_score(now),
        })
        return data
