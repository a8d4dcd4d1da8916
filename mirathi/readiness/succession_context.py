"""
Succession Context
==================

The legal lens of a succession case: regime, marriage type, religion
and the circumstances that change which court hears the matter and
how urgently.

All rule methods are pure functions of the context fields. Rules are
ordered decision lists; the first matching rule wins.

Author: Mirathi Team
Version: 1.0.0
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from mirathi.readiness.exceptions import InvalidValueError


logger = logging.getLogger(__name__)


class SuccessionRegime(Enum):
    TESTATE = "TESTATE"
    INTESTATE = "INTESTATE"
    PARTIALLY_INTESTATE = "PARTIALLY_INTESTATE"
    CUSTOMARY = "CUSTOMARY"


class MarriageType(Enum):
    MONOGAMOUS = "MONOGAMOUS"
    POLYGAMOUS = "POLYGAMOUS"
    COHABITATION = "COHABITATION"
    SINGLE = "SINGLE"
    SEPARATED = "SEPARATED"


class Religion(Enum):
    STATUTORY = "STATUTORY"
    ISLAMIC = "ISLAMIC"
    HINDU = "HINDU"
    AFRICAN_CUSTOMARY = "AFRICAN_CUSTOMARY"
    CHRISTIAN = "CHRISTIAN"


class CourtJurisdiction(Enum):
    HIGH_COURT = "HIGH_COURT"
    MAGISTRATE_COURT = "MAGISTRATE_COURT"
    KADHIS_COURT = "KADHIS_COURT"
    CUSTOMARY_COURT = "CUSTOMARY_COURT"
    FAMILY_DIVISION = "FAMILY_DIVISION"
    COMMERCIAL_COURT = "COMMERCIAL_COURT"


class CasePriority(Enum):
    URGENT = "URGENT"
    HIGH = "HIGH"
    NORMAL = "NORMAL"
    LOW = "LOW"


# Section 48 LSA pecuniary limit for magistrates (KES)
MAGISTRATE_LIMIT = 7_000_000
COMMERCIAL_THRESHOLD = 100_000_000
SMALL_ESTATE_LIMIT = 100_000
MAGISTRATE_MAX_COMPLEXITY = 3
URGENT_DISPUTE_COMPLEXITY = 8
HIGH_PRIORITY_COMPLEXITY = 6
LARGE_INTESTATE_FAMILY = 5
ISLAMIC_MAX_BEQUEST = 1 / 3
COHABITATION_MIN_MONTHS = 24

COURT_NAMES = {
    CourtJurisdiction.HIGH_COURT: "High Court of Kenya",
    CourtJurisdiction.MAGISTRATE_COURT: "Resident Magistrate's Court",
    CourtJurisdiction.KADHIS_COURT: "Kadhi's Court",
    CourtJurisdiction.CUSTOMARY_COURT: "Customary Court",
    CourtJurisdiction.FAMILY_DIVISION: "High Court (Family Division)",
    CourtJurisdiction.COMMERCIAL_COURT: "Commercial & Tax Division",
}

TIMELINE_MONTHS = {
    CasePriority.URGENT: "1-2",
    CasePriority.HIGH: "3-4",
    CasePriority.NORMAL: "5-6",
    CasePriority.LOW: "7-8",
}


@dataclass(frozen=True)
class SuccessionContext:
    """
    Facts about a case that determine forum, priority and legal regime.

    Value-equal: two contexts with the same fields are the same context.
    """
    regime: SuccessionRegime
    marriage_type: MarriageType
    religion: Religion
    is_minor_involved: bool = False
    has_disputed_assets: bool = False
    is_estate_insolvent: bool = False
    is_business_assets_involved: bool = False
    is_foreign_assets_involved: bool = False
    is_charitable_bequest: bool = False
    has_dependants_with_disabilities: bool = False
    estimated_complexity_score: int = 1
    total_beneficiaries: int = 1
    estate_value_kes: Optional[float] = None

    def __post_init__(self):
        if not 1 <= self.estimated_complexity_score <= 10:
            raise InvalidValueError(
                "Complexity score must be between 1 and 10",
                {"estimated_complexity_score": self.estimated_complexity_score},
            )
        if self.total_beneficiaries < 1:
            raise InvalidValueError(
                "There must be at least one beneficiary",
                {"total_beneficiaries": self.total_beneficiaries},
            )
        if self.estate_value_kes is not None and self.estate_value_kes < 0:
            raise InvalidValueError(
                "Estate value cannot be negative",
                {"estate_value_kes": self.estate_value_kes},
            )
        if (
            self.regime == SuccessionRegime.CUSTOMARY
            and self.religion != Religion.AFRICAN_CUSTOMARY
        ):
            raise InvalidValueError(
                "Customary regime can only be used with African Customary religion",
                {"regime": self.regime.value, "religion": self.religion.value},
            )
        if self.religion == Religion.HINDU and self.marriage_type == MarriageType.POLYGAMOUS:
            raise InvalidValueError(
                "Hindu succession does not recognize polygamous marriages",
                {"marriage_type": self.marriage_type.value},
            )
        if self.regime == SuccessionRegime.TESTATE and self.religion == Religion.ISLAMIC:
            logger.debug("Islamic will: bequests to non-heirs are capped at one third")
        if self.marriage_type == MarriageType.COHABITATION and self.has_disputed_assets:
            logger.debug("Cohabitation claim with disputed assets (S.3(5) LSA)")

    @property
    def estate_value(self) -> float:
        return self.estate_value_kes or 0

    # =========================================================================
    # Jurisdiction and priority
    # =========================================================================

    def determine_court_jurisdiction(self) -> CourtJurisdiction:
        """
        Pick the court that should hear the case.

        Returns:
            First matching jurisdiction in rule order
        """
        if self.religion == Religion.ISLAMIC:
            return CourtJurisdiction.KADHIS_COURT
        if self.religion == Religion.HINDU:
            return CourtJurisdiction.HIGH_COURT
        if self.religion == Religion.AFRICAN_CUSTOMARY:
            return CourtJurisdiction.CUSTOMARY_COURT
        if self.is_business_assets_involved and self.estate_value > COMMERCIAL_THRESHOLD:
            return CourtJurisdiction.COMMERCIAL_COURT
        if self.is_minor_involved or self.has_disputed_assets:
            return CourtJurisdiction.FAMILY_DIVISION
        if (
            self.estate_value <= MAGISTRATE_LIMIT
            and self.estimated_complexity_score <= MAGISTRATE_MAX_COMPLEXITY
            and not self.has_disputed_assets
            and not self.is_minor_involved
        ):
            return CourtJurisdiction.MAGISTRATE_COURT
        return CourtJurisdiction.HIGH_COURT

    def determine_case_priority(self) -> CasePriority:
        if self.is_minor_involved and self.is_estate_insolvent:
            return CasePriority.URGENT
        if (
            self.has_disputed_assets
            and self.estimated_complexity_score >= URGENT_DISPUTE_COMPLEXITY
        ):
            return CasePriority.URGENT
        if self.is_minor_involved or self.has_dependants_with_disabilities:
            return CasePriority.HIGH
        if self.estimated_complexity_score >= HIGH_PRIORITY_COMPLEXITY:
            return CasePriority.HIGH
        if (
            self.regime == SuccessionRegime.INTESTATE
            and self.total_beneficiaries > LARGE_INTESTATE_FAMILY
        ):
            return CasePriority.NORMAL
        return CasePriority.LOW

    def court_name(self, jurisdiction: Optional[CourtJurisdiction] = None) -> str:
        return COURT_NAMES[jurisdiction or self.determine_court_jurisdiction()]

    def estimated_timeline_months(self) -> str:
        return TIMELINE_MONTHS[self.determine_case_priority()]

    def application_type(self) -> str:
        """Grant application the applicant should file."""
        if self.religion == Religion.ISLAMIC:
            return "Islamic Succession Petition"
        if self.regime == SuccessionRegime.TESTATE:
            return "Grant of Probate (P&A 1)"
        if self.regime == SuccessionRegime.INTESTATE:
            return "Letters of Administration (P&A 80)"
        return "Summary Administration (P&A 5)"

    # =========================================================================
    # Legal rules
    # =========================================================================

    def applicable_legal_regimes(self) -> List[str]:
        """Statutory provisions that shape distribution for this case."""
        regimes = []
        if self.requires_kadhis_court():
            regimes.append("Islamic law (S.2(3) LSA, Kadhis' Courts Act)")
        if self.is_section_40_applicable():
            regimes.append("S.40 LSA (polygamous distribution by house)")
        if self.requires_hotchpot_calculation():
            regimes.append("S.35(3) LSA (hotchpot of lifetime gifts)")
        if self.requires_dependant_analysis():
            regimes.append("S.29 LSA (dependants)")
        if self.regime == SuccessionRegime.CUSTOMARY:
            regimes.append("African customary law")
        if not regimes:
            regimes.append("Law of Succession Act (Cap 160)")
        return regimes

    def is_islamic_will_valid(self, bequest_fraction: float) -> bool:
        """Islamic wills may not bequeath more than a third to non-heirs."""
        if self.religion != Religion.ISLAMIC or self.regime != SuccessionRegime.TESTATE:
            return True
        return bequest_fraction <= ISLAMIC_MAX_BEQUEST

    def is_cohabitation_valid(self, duration_months: int, publicly_acknowledged: bool) -> bool:
        if self.marriage_type != MarriageType.COHABITATION:
            return False
        return duration_months >= COHABITATION_MIN_MONTHS and publicly_acknowledged

    def requires_hotchpot_calculation(self) -> bool:
        return (
            self.regime == SuccessionRegime.INTESTATE
            and self.marriage_type == MarriageType.MONOGAMOUS
            and self.is_minor_involved
        )

    def requires_kadhis_court(self) -> bool:
        return self.religion == Religion.ISLAMIC

    def is_section_40_applicable(self) -> bool:
        return self.marriage_type == MarriageType.POLYGAMOUS

    def requires_dependant_analysis(self) -> bool:
        return (
            self.marriage_type == MarriageType.COHABITATION
            or self.is_minor_involved
            or self.has_dependants_with_disabilities
            or self.regime == SuccessionRegime.INTESTATE
        )

    def requires_universal_consent(self) -> bool:
        return (
            self.regime in (SuccessionRegime.INTESTATE, SuccessionRegime.PARTIALLY_INTESTATE)
            or self.is_minor_involved
        )

    def requires_guarantee(self) -> bool:
        return self.is_minor_involved

    def requires_gazette_notice(self) -> bool:
        if self.estate_value < SMALL_ESTATE_LIMIT and not self.has_disputed_assets:
            return False
        if (
            self.religion == Religion.ISLAMIC
            and not self.has_disputed_assets
            and self.total_beneficiaries <= 3
        ):
            return False
        return True

    def is_simple_case(self) -> bool:
        return (
            self.estimated_complexity_score <= MAGISTRATE_MAX_COMPLEXITY
            and self.marriage_type == MarriageType.MONOGAMOUS
            and not self.has_disputed_assets
            and not self.is_minor_involved
            and not self.is_business_assets_involved
            and not self.is_foreign_assets_involved
        )

    def case_classification(self) -> str:
        """Compact label such as ``INTESTATE_POLYGAMOUS_MEDIUM_FAMILY_WITH_MINORS``."""
        parts = [self.regime.value]
        if self.marriage_type != MarriageType.SINGLE:
            parts.append(self.marriage_type.value)
        if self.religion != Religion.STATUTORY:
            parts.append(self.religion.value)
        if self.total_beneficiaries > 10:
            parts.append("LARGE_FAMILY")
        elif self.total_beneficiaries > LARGE_INTESTATE_FAMILY:
            parts.append("MEDIUM_FAMILY")
        if self.is_minor_involved:
            parts.append("WITH_MINORS")
        if self.has_disputed_assets:
            parts.append("DISPUTED")
        if self.is_business_assets_involved:
            parts.append("BUSINESS_ASSETS")
        if self.is_foreign_assets_involved:
            parts.append("FOREIGN_ASSETS")
        return "_".join(parts)

    # =========================================================================
    # Copies
    # =========================================================================

    def with_estate_value(self, estate_value_kes: float) -> "SuccessionContext":
        return replace(self, estate_value_kes=estate_value_kes)

    def with_changes(self, **changes: Any) -> "SuccessionContext":
        return replace(self, **changes)

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def standard_intestate(
        cls,
        marriage_type: MarriageType,
        has_minors: bool,
        beneficiary_count: int,
    ) -> "SuccessionContext":
        """The common statutory intestate case."""
        return cls(
            regime=SuccessionRegime.INTESTATE,
            marriage_type=marriage_type,
            religion=Religion.STATUTORY,
            is_minor_involved=has_minors,
            estimated_complexity_score=4 if has_minors else 2,
            total_beneficiaries=beneficiary_count,
        )

    @classmethod
    def islamic_case(
        cls,
        regime: SuccessionRegime,
        has_will: bool,
        polygamous: bool = False,
    ) -> "SuccessionContext":
        return cls(
            regime=regime,
            marriage_type=MarriageType.POLYGAMOUS if polygamous else MarriageType.MONOGAMOUS,
            religion=Religion.ISLAMIC,
            estimated_complexity_score=5 if has_will else 6,
            total_beneficiaries=8 if polygamous else 4,
        )

    @classmethod
    def polygamous_case(
        cls,
        regime: SuccessionRegime,
        number_of_houses: int,
        estate_value_kes: Optional[float] = None,
    ) -> "SuccessionContext":
        """Section 40 case; beneficiaries and disputes estimated from house count."""
        return cls(
            regime=regime,
            marriage_type=MarriageType.POLYGAMOUS,
            religion=Religion.STATUTORY,
            is_minor_involved=True,
            has_disputed_assets=number_of_houses > 2,
            estimated_complexity_score=min(10, 5 + number_of_houses),
            total_beneficiaries=max(1, number_of_houses * 3),
            estate_value_kes=estate_value_kes,
        )

    # =========================================================================
    # Persistence
    # =========================================================================

    def to_persistable_state(self) -> Dict[str, Any]:
        return {
            "regime": self.regime.value,
            "marriage_type": self.marriage_type.value,
            "religion": self.religion.value,
            "is_minor_involved": self.is_minor_involved,
            "has_disputed_assets": self.has_disputed_assets,
            "is_estate_insolvent": self.is_estate_insolvent,
            "is_business_assets_involved": self.is_business_assets_involved,
            "is_foreign_assets_involved": self.is_foreign_assets_involved,
            "is_charitable_bequest": self.is_charitable_bequest,
            "has_dependants_with_disabilities": self.has_dependants_with_disabilities,
            "estimated_complexity_score": self.estimated_complexity_score,
            "total_beneficiaries": self.total_beneficiaries,
            "estate_value_kes": self.estate_value_kes,
        }

    @classmethod
    def from_persistable_state(cls, state: Dict[str, Any]) -> "SuccessionContext":
        return cls(
            regime=SuccessionRegime(state["regime"]),
            marriage_type=MarriageType(state["marriage_type"]),
            religion=Religion(state["religion"]),
            is_minor_involved=state.get("is_minor_involved", False),
            has_disputed_assets=state.get("has_disputed_assets", False),
            is_estate_insolvent=state.get("is_estate_insolvent", False),
            is_business_assets_involved=state.get("is_business_assets_involved", False),
            is_foreign_assets_involved=state.get("is_foreign_assets_involved", False),
            is_charitable_bequest=state.get("is_charitable_bequest", False),
            has_dependants_with_disabilities=state.get("has_dependants_with_disabilities", False),
            estimated_complexity_score=state["estimated_complexity_score"],
            total_beneficiaries=state["total_beneficiaries"],
            estate_value_kes=state.get("estate_value_kes"),
        )
