"""Tests for variant_selector.py"""

import pytest
from pydantic import ValidationError

from adaptive.schemas import SelectVariantInput
from adaptive.types import ExperimentArm, LearningTrend, SelectionFactors, Variant
from adaptive.variant_selector import initial_variant, select_variant, should_offer_enrichment


def pick(**kwargs):
    return select_variant(SelectVariantInput(**kwargs))


class TestBaseTiers:

    @pytest.mark.parametrize("mastery,accuracy,expected", [
        (0.2, 0.3, Variant.COMPREHENSION),
        (0.5, 0.7, Variant.APPLICATION),
        (0.9, 0.95, Variant.ENRICHMENT),
    ])
    def test_tiers(self, mastery, accuracy, expected):
        assert pick(mastery=mastery, recent_accuracy=accuracy).variant == expected

    def test_strong_mastery_alone_does_not_lift_tier(self):
        result = pick(mastery=0.95, recent_accuracy=0.3)

        assert result.variant == Variant.COMPREHENSION
        assert result.factors.based_on_accuracy
        assert not result.factors.based_on_mastery

    def test_strong_accuracy_alone_does_not_lift_tier(self):
        result = pick(mastery=0.3, recent_accuracy=0.95)

        assert result.variant == Variant.COMPREHENSION
        assert result.factors.based_on_mastery
        assert not result.factors.based_on_accuracy

    @pytest.mark.parametrize("mastery,accuracy,expected", [
        (0.4, 0.9, Variant.COMPREHENSION),
        (0.6, 0.5, Variant.COMPREHENSION),
        (0.75, 0.9, Variant.APPLICATION),
        (0.9, 0.85, Variant.APPLICATION),
    ])
    def test_boundary_ties_go_to_lower_tier(self, mastery, accuracy, expected):
        assert pick(mastery=mastery, recent_accuracy=accuracy).variant == expected


class TestMissingInput:

    def test_missing_mastery_defaults_to_application(self):
        result = pick(recent_accuracy=0.1)

        assert result.variant == Variant.APPLICATION
        assert result.factors == SelectionFactors()

    def test_missing_accuracy_defaults_to_application(self):
        assert pick(mastery=0.99).variant == Variant.APPLICATION

    def test_nothing_given_defaults_to_application(self):
        assert pick().variant == Variant.APPLICATION

    def test_non_numeric_mastery_is_rejected_at_boundary(self):
        with pytest.raises(ValidationError):
            SelectVariantInput(mastery="high", recent_accuracy=0.5)

    def test_out_of_range_accuracy_is_rejected_at_boundary(self):
        with pytest.raises(ValidationError):
            SelectVariantInput(mastery=0.5, recent_accuracy=1.5)


class TestSignals:

    def test_forgetting_lowers_tier(self):
        fresh = pick(mastery=0.8, recent_accuracy=0.9)
        stale = pick(mastery=0.8, recent_accuracy=0.9, days_since_practice=60)

        assert fresh.variant == Variant.ENRICHMENT
        assert stale.variant == Variant.APPLICATION
        assert stale.effective_mastery < 0.8
        assert stale.factors.based_on_forgetting
        assert not fresh.factors.based_on_forgetting

    def test_improving_trend_lowers_enrichment_boundary(self):
        plain = pick(mastery=0.7, recent_accuracy=0.9)
        improving = pick(mastery=0.7, recent_accuracy=0.9, trend=LearningTrend.IMPROVING_FAST)

        assert plain.variant == Variant.APPLICATION
        assert improving.variant == Variant.ENRICHMENT
        assert improving.threshold == pytest.approx(0.65)
        assert improving.factors.based_on_trend

    def test_declining_trend_raises_enrichment_boundary(self):
        result = pick(mastery=0.8, recent_accuracy=0.9, trend=LearningTrend.DECLINING_FAST)

        assert result.variant == Variant.APPLICATION
        assert result.threshold == pytest.approx(0.85)
        assert result.factors.based_on_trend

    def test_stable_trend_changes_nothing(self):
        result = pick(mastery=0.8, recent_accuracy=0.9, trend=LearningTrend.STABLE)

        assert result.variant == Variant.ENRICHMENT
        assert not result.factors.based_on_trend

    def test_treatment_threshold_replaces_boundary(self):
        result = pick(mastery=0.7, recent_accuracy=0.9,
                      experiment_variant=ExperimentArm.TREATMENT, experiment_threshold=0.6)

        assert result.variant == Variant.ENRICHMENT
        assert result.effective_values == {"mastery": 0.7, "threshold": 0.6}
        assert result.factors.based_on_experiment

    def test_control_arm_keeps_default_boundary(self):
        result = pick(mastery=0.7, recent_accuracy=0.9,
                      experiment_variant=ExperimentArm.CONTROL, experiment_threshold=0.6)

        assert result.variant == Variant.APPLICATION
        assert result.threshold == 0.75
        assert not result.factors.based_on_experiment

    def test_weak_prerequisite_blocks_enrichment(self):
        result = pick(mastery=0.95, recent_accuracy=0.95,
                      prerequisite_mastery={"fractions": 0.2, "decimals": 0.9})

        assert result.variant == Variant.APPLICATION
        assert result.factors.based_on_prerequisites
        assert "fractions" in result.debug

    def test_prerequisite_at_floor_is_not_weak(self):
        result = pick(mastery=0.95, recent_accuracy=0.95, prerequisite_mastery={"fractions": 0.3})
        assert result.variant == Variant.ENRICHMENT

    def test_prerequisite_gate_never_blocks_despite_other_signals(self):
        result = pick(mastery=0.99, recent_accuracy=0.99, trend=LearningTrend.IMPROVING_FAST,
                      experiment_variant=ExperimentArm.TREATMENT, experiment_threshold=0.5,
                      prerequisite_mastery={"fractions": 0.1})
        assert result.variant == Variant.APPLICATION

    def test_prerequisite_gate_does_not_lower_comprehension(self):
        result = pick(mastery=0.2, recent_accuracy=0.2, prerequisite_mastery={"fractions": 0.1})

        assert result.variant == Variant.COMPREHENSION
        assert not result.factors.based_on_prerequisites


def test_choice_is_monotonic_in_mastery_and_accuracy():
    grid = [i / 20 for i in range(21)]
    context = dict(trend=LearningTrend.IMPROVING, days_since_practice=10,
                   experiment_variant=ExperimentArm.TREATMENT, experiment_threshold=0.7)

    ranks = {
        (m, a): pick(mastery=m, recent_accuracy=a, **context).variant.rank
        for m in grid for a in grid
    }

    for a in grid:
        column = [ranks[(m, a)] for m in grid]
        assert column == sorted(column)
    for m in grid:
        row = [ranks[(m, a)] for a in grid]
        assert row == sorted(row)


@pytest.mark.parametrize("mastery,expected", [
    (None, Variant.APPLICATION),
    (0.9, Variant.ENRICHMENT),
    (0.75, Variant.APPLICATION),
    (0.2, Variant.COMPREHENSION),
    (0.35, Variant.APPLICATION),
])
def test_initial_variant(mastery, expected):
    assert initial_variant(mastery) == expected


def test_should_offer_enrichment():
    assert should_offer_enrichment(0.7, 0.85, 3)
    assert not should_offer_enrichment(0.7, 0.85, 2)
    assert not should_offer_enrichment(0.69, 0.9, 5)
    assert not should_offer_enrichment(0.9, 0.8, 5)
