"""
Mirathi Test Suite - Succession Context
=======================================

Tests for jurisdiction, priority and legal-rule decisions.

Author: Mirathi Team
Version: 1.0.0
"""

import pytest

from mirathi.readiness.exceptions import InvalidValueError
from mirathi.readiness.succession_context import (
    CasePriority,
    CourtJurisdiction,
    MarriageType,
    Religion,
    SuccessionContext,
    SuccessionRegime,
)


class TestValidation:
    """Tests for context construction rules."""

    def test_customary_regime_requires_customary_religion(self):
        with pytest.raises(InvalidValueError):
            SuccessionContext(
                regime=SuccessionRegime.CUSTOMARY,
                marriage_type=MarriageType.MONOGAMOUS,
                religion=Religion.STATUTORY,
            )

    def test_hindu_polygamy_rejected(self):
        with pytest.raises(InvalidValueError):
            SuccessionContext(
                regime=SuccessionRegime.INTESTATE,
                marriage_type=MarriageType.POLYGAMOUS,
                religion=Religion.HINDU,
            )

    @pytest.mark.parametrize("complexity", [0, 11])
    def test_complexity_bounds(self, complexity):
        with pytest.raises(InvalidValueError):
            SuccessionContext(
                regime=SuccessionRegime.INTESTATE,
                marriage_type=MarriageType.MONOGAMOUS,
                religion=Religion.STATUTORY,
                estimated_complexity_score=complexity,
            )

    def test_negative_estate_value_rejected(self):
        with pytest.raises(InvalidValueError):
            SuccessionContext.standard_intestate(
                MarriageType.MONOGAMOUS, has_minors=False, beneficiary_count=2
            ).with_estate_value(-1)


class TestJurisdiction:
    """Tests for court selection."""

    def test_simple_small_estate_goes_to_magistrate(self, simple_context):
        assert simple_context.determine_court_jurisdiction() == CourtJurisdiction.MAGISTRATE_COURT
        assert simple_context.court_name() == "Resident Magistrate's Court"

    def test_large_estate_goes_to_high_court(self, simple_context):
        context = simple_context.with_estate_value(10_000_000)
        assert context.determine_court_jurisdiction() == CourtJurisdiction.HIGH_COURT

    def test_minors_go_to_family_division(self, minors_context):
        assert minors_context.determine_court_jurisdiction() == CourtJurisdiction.FAMILY_DIVISION

    def test_islamic_case_goes_to_kadhis_court(self):
        context = SuccessionContext.islamic_case(SuccessionRegime.INTESTATE, has_will=False)
        assert context.determine_court_jurisdiction() == CourtJurisdiction.KADHIS_COURT
        assert context.application_type() == "Islamic Succession Petition"

    def test_religion_switch_changes_court(self, simple_context):
        """Switching to Islamic law moves the case to the Kadhi's court."""
        islamic = simple_context.with_changes(religion=Religion.ISLAMIC)

        assert simple_context.determine_court_jurisdiction() != CourtJurisdiction.KADHIS_COURT
        assert islamic.determine_court_jurisdiction() == CourtJurisdiction.KADHIS_COURT

    def test_large_business_estate_goes_to_commercial_court(self, simple_context):
        context = simple_context.with_changes(
            is_business_assets_involved=True, estate_value_kes=150_000_000
        )
        assert context.determine_court_jurisdiction() == CourtJurisdiction.COMMERCIAL_COURT


class TestPriority:
    """Tests for case priority."""

    def test_insolvent_estate_with_minors_is_urgent(self, minors_context):
        context = minors_context.with_changes(is_estate_insolvent=True)
        assert context.determine_case_priority() == CasePriority.URGENT
        assert context.estimated_timeline_months() == "1-2"

    def test_minors_are_high_priority(self, minors_context):
        assert minors_context.determine_case_priority() == CasePriority.HIGH

    def test_simple_case_is_low_priority(self, simple_context):
        assert simple_context.determine_case_priority() == CasePriority.LOW


class TestLegalRules:
    """Tests for statute-driven checks."""

    def test_islamic_will_bequest_cap(self):
        context = SuccessionContext.islamic_case(SuccessionRegime.TESTATE, has_will=True)

        assert context.is_islamic_will_valid(0.3) is True
        assert context.is_islamic_will_valid(0.5) is False

    def test_cohabitation_requires_two_years_and_acknowledgement(self):
        context = SuccessionContext(
            regime=SuccessionRegime.INTESTATE,
            marriage_type=MarriageType.COHABITATION,
            religion=Religion.STATUTORY,
        )

        assert context.is_cohabitation_valid(30, publicly_acknowledged=True) is True
        assert context.is_cohabitation_valid(12, publicly_acknowledged=True) is False
        assert context.is_cohabitation_valid(30, publicly_acknowledged=False) is False

    def test_polygamous_case_applies_section_40(self):
        context = SuccessionContext.polygamous_case(SuccessionRegime.INTESTATE, number_of_houses=3)

        assert context.is_section_40_applicable() is True
        assert context.has_disputed_assets is True
        assert any("S.40" in regime for regime in context.applicable_legal_regimes())

    def test_hotchpot_for_monogamous_intestate_with_minors(self, minors_context, simple_context):
        assert minors_context.requires_hotchpot_calculation() is True
        assert simple_context.requires_hotchpot_calculation() is False

    def test_guarantee_required_with_minors(self, minors_context):
        assert minors_context.requires_guarantee() is True

    def test_case_classification(self, minors_context):
        assert minors_context.case_classification() == "INTESTATE_MONOGAMOUS_WITH_MINORS"

    def test_simple_case(self, simple_context, minors_context):
        assert simple_context.is_simple_case() is True
        assert minors_context.is_simple_case() is False


class TestPersistence:
    """Tests for persisted state."""

    def test_round_trip_preserves_equality(self, minors_context):
        context = minors_context.with_estate_value(2_500_000)
        restored = SuccessionContext.from_persistable_state(context.to_persistable_state())

        assert restored == context
