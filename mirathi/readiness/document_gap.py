"""
Document Gap
============

Describes one missing or defective document needed before filing,
with remediation instructions and whether the court may waive it.

Author: Mirathi Team
Version: 1.0.0
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from mirathi.readiness.exceptions import InvalidValueError
from mirathi.readiness.severity import RiskSeverity


class DocumentGapType(Enum):
    """Kinds of documents a succession filing may require."""
    DEATH_CERTIFICATE = "DEATH_CERTIFICATE"
    BIRTH_CERTIFICATE = "BIRTH_CERTIFICATE"
    NATIONAL_ID = "NATIONAL_ID"
    CHIEF_LETTER = "CHIEF_LETTER"
    MARRIAGE_CERTIFICATE = "MARRIAGE_CERTIFICATE"
    DIVORCE_DECREE = "DIVORCE_DECREE"
    ORIGINAL_WILL = "ORIGINAL_WILL"
    WITNESS_ID = "WITNESS_ID"
    EXECUTOR_CONSENT = "EXECUTOR_CONSENT"
    KRA_PIN_CERTIFICATE = "KRA_PIN_CERTIFICATE"
    TAX_CLEARANCE = "TAX_CLEARANCE"
    BANK_STATEMENT = "BANK_STATEMENT"
    TITLE_DEED = "TITLE_DEED"
    VALUATION_REPORT = "VALUATION_REPORT"
    VEHICLE_LOGBOOK = "VEHICLE_LOGBOOK"
    FAMILY_CONSENT = "FAMILY_CONSENT"
    AFFIDAVIT_OF_MEANS = "AFFIDAVIT_OF_MEANS"
    GUARANTEE = "GUARANTEE"
    GUARDIANSHIP_ORDER = "GUARDIANSHIP_ORDER"
    COURT_ORDER = "COURT_ORDER"
    OTHER = "OTHER"


QUICK_FIX_DAYS = 7

_PRIORITY_BY_SEVERITY = {
    RiskSeverity.CRITICAL: 100,
    RiskSeverity.HIGH: 75,
    RiskSeverity.MEDIUM: 50,
    RiskSeverity.LOW: 25,
}


@dataclass(frozen=True)
class DocumentGap:
    """A document the applicant still has to produce."""
    type: DocumentGapType
    severity: RiskSeverity
    description: str
    legal_basis: str
    obtaining_instructions: str
    estimated_time_days: int
    alternative_options: Optional[str] = None
    is_waivable: bool = False

    def __post_init__(self):
        if not self.description or not self.description.strip():
            raise InvalidValueError("Document gap description cannot be empty")
        if not self.obtaining_instructions or not self.obtaining_instructions.strip():
            raise InvalidValueError("Document gap must explain how to obtain the document")
        if self.estimated_time_days < 0:
            raise InvalidValueError(
                "Estimated time to obtain a document cannot be negative",
                {"estimated_time_days": self.estimated_time_days},
            )
        if self.severity == RiskSeverity.CRITICAL and self.is_waivable:
            raise InvalidValueError(
                f"Critical document gap {self.type.value} cannot be waivable",
                {"type": self.type.value},
            )

    @property
    def is_blocking(self) -> bool:
        return self.severity == RiskSeverity.CRITICAL

    @property
    def is_quick_fix(self) -> bool:
        return self.estimated_time_days <= QUICK_FIX_DAYS

    @property
    def priority_score(self) -> int:
        return _PRIORITY_BY_SEVERITY[self.severity]

    @property
    def urgency_message(self) -> str:
        if self.is_blocking:
            return "CRITICAL: You cannot file without this document."
        if self.severity == RiskSeverity.HIGH:
            return "HIGH PRIORITY: Filing without this will likely cause rejection."
        if self.severity == RiskSeverity.MEDIUM:
            return "RECOMMENDED: Filing without this may cause delays."
        return "OPTIONAL: Having this will strengthen your case."

    # =========================================================================
    # Standard gaps
    # =========================================================================

    @classmethod
    def death_certificate(cls) -> "DocumentGap":
        return cls(
            type=DocumentGapType.DEATH_CERTIFICATE,
            severity=RiskSeverity.CRITICAL,
            description="Death Certificate is missing",
            legal_basis="S.56 LSA - Death Certificate is mandatory for all succession cases",
            obtaining_instructions=(
                "1. Visit the Civil Registration Office where death was registered\n"
                "2. Bring your National ID and KES 50 fee\n"
                "3. Processing takes 1-3 days"
            ),
            estimated_time_days=3,
            alternative_options=(
                "If death occurred outside Kenya, obtain a certified copy from "
                "that country and have it apostilled"
            ),
        )

    @classmethod
    def chief_letter(cls) -> "DocumentGap":
        return cls(
            type=DocumentGapType.CHIEF_LETTER,
            severity=RiskSeverity.CRITICAL,
            description="Letter from Area Chief confirming next of kin",
            legal_basis="Customary requirement for Intestate cases - confirms family structure",
            obtaining_instructions=(
                "1. Visit the Chief's office in the deceased's home area\n"
                "2. Bring Death Certificate and National IDs of family members\n"
                "3. Chief will verify family tree with local elders\n"
                "4. Letter issued within 7-14 days"
            ),
            estimated_time_days=10,
            alternative_options="If Chief is unavailable, Assistant Chief or DO can issue the letter",
        )

    @classmethod
    def kra_pin_certificate(cls) -> "DocumentGap":
        return cls(
            type=DocumentGapType.KRA_PIN_CERTIFICATE,
            severity=RiskSeverity.CRITICAL,
            description="KRA PIN Certificate for deceased is missing",
            legal_basis="Tax Procedures Act - Required for all estate valuations",
            obtaining_instructions=(
                "1. Visit iTax portal (www.itax.kra.go.ke)\n"
                "2. Download PIN certificate using deceased's details\n"
                "3. If deceased had no PIN, apply for posthumous PIN with Death Certificate"
            ),
            estimated_time_days=1,
            alternative_options="Court affidavit explaining why PIN was never obtained",
        )

    @classmethod
    def original_will(cls) -> "DocumentGap":
        # A lost will is handled by affidavit, so the alternative is
        # recorded but the gap itself still blocks filing.
        return cls(
            type=DocumentGapType.ORIGINAL_WILL,
            severity=RiskSeverity.CRITICAL,
            description="Original Will document is missing",
            legal_basis="S.11 LSA - Original Will must be produced for Grant of Probate",
            obtaining_instructions=(
                "1. Check with lawyer who drafted it\n"
                "2. Check safe deposit boxes\n"
                "3. Check with named Executor\n"
                "4. If lost, file affidavit explaining circumstances"
            ),
            estimated_time_days=14,
            alternative_options=(
                "If Will is lost, court may accept certified copy with affidavit explaining loss"
            ),
        )

    @classmethod
    def marriage_certificate(cls) -> "DocumentGap":
        return cls(
            type=DocumentGapType.MARRIAGE_CERTIFICATE,
            severity=RiskSeverity.HIGH,
            description="Marriage Certificate is missing",
            legal_basis="S.35 LSA - Spouse must prove marriage to claim share",
            obtaining_instructions=(
                "1. Visit the Registrar of Marriages (AG's Chambers)\n"
                "2. Request certified copy with marriage registration number\n"
                "3. Fee: KES 1,000\n"
                "4. Processing: 3-7 days"
            ),
            estimated_time_days=7,
            alternative_options="If customary marriage, provide affidavits from elders and family",
            is_waivable=True,
        )

    @classmethod
    def valuation_report(cls) -> "DocumentGap":
        return cls(
            type=DocumentGapType.VALUATION_REPORT,
            severity=RiskSeverity.MEDIUM,
            description="Professional valuation report for assets",
            legal_basis="Court Practice Direction - Required for estates > KES 5M",
            obtaining_instructions=(
                "1. Hire a registered valuer (list available from Valuers Registration Board)\n"
                "2. Valuer inspects property\n"
                "3. Report issued within 14-21 days\n"
                "4. Cost: KES 20,000 - 50,000 depending on assets"
            ),
            estimated_time_days=21,
            alternative_options="For lower-value estates, sworn affidavit of value may suffice",
            is_waivable=True,
        )

    # =========================================================================
    # Persistence
    # =========================================================================

    def to_persistable_state(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "description": self.description,
            "legal_basis": self.legal_basis,
            "obtaining_instructions": self.obtaining_instructions,
            "estimated_time_days": self.estimated_time_days,
            "alternative_options": self.alternative_options,
            "is_waivable": self.is_waivable,
        }

    @classmethod
    def from_persistable_state(cls, state: Dict[str, Any]) -> "DocumentGap":
        return cls(
            type=DocumentGapType(state["type"]),
            severity=RiskSeverity(state["severity"]),
            description=state["description"],
            legal_basis=state["legal_basis"],
            obtaining_instructions=state["obtaining_instructions"],
            estimated_time_days=int(state["estimated_time_days"]),
            alternative_options=state.get("alternative_options"),
            is_waivable=bool(state.get("is_waivable", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Persisted fields plus derived display values."""
        data = self.to_persistable_state()
        data.update({
            "is_blocking": self.is_blocking,
            "is_quick_fix": self.is_quick_fix,
            "priority_score": self.priority_score,
            "urgency_message": self.urgency_message,
        })
        return data
