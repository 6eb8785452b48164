"""Tests for item_response.py"""

import pytest

from adaptive.item_response import AbilityEstimator
from adaptive.types import ItemCalibration


@pytest.fixture
def estimator():
    return AbilityEstimator()


class TestProbability:

    def test_ability_equal_to_difficulty_is_even(self, estimator):
        item = ItemCalibration(irt_difficulty=1.2, discrimination=1.8)
        assert estimator.probability_correct(1.2, item) == pytest.approx(0.5)

    def test_uncalibrated_item_uses_rasch_defaults(self, estimator):
        assert estimator.probability_correct(0.0, None) == pytest.approx(0.5)
        assert estimator.probability_correct(0.0) == estimator.probability_correct(0.0, ItemCalibration())

    def test_guessing_sets_floor(self, estimator):
        item = ItemCalibration(guessing_param=0.25)

        assert estimator.probability_correct(-30.0, item) == pytest.approx(0.25)
        # c + (1 - c) / 2
        assert estimator.probability_correct(0.0, item) == pytest.approx(0.625)

    def test_harder_items_are_less_likely(self, estimator):
        easy = ItemCalibration(irt_difficulty=-1.0)
        hard = ItemCalibration(irt_difficulty=1.0)
        assert estimator.probability_correct(0.0, easy) > estimator.probability_correct(0.0, hard)


class TestInformation:

    def test_rasch_information_peaks_at_difficulty(self, estimator):
        # a^2 * P * Q at P = 0.5
        assert estimator.fisher_information(0.0) == pytest.approx(0.25)
        assert estimator.fisher_information(2.0) < estimator.fisher_information(0.0)

    def test_discrimination_scales_information(self, estimator):
        sharp = ItemCalibration(discrimination=2.0)
        assert estimator.fisher_information(0.0, sharp) == pytest.approx(1.0)


class TestAbilityUpdate:

    def test_correct_raises_and_wrong_lowers(self, estimator):
        assert estimator.update_ability(0.0, None, True) == pytest.approx(0.15)
        assert estimator.update_ability(0.0, None, False) == pytest.approx(-0.15)

    def test_step_scaled_by_discrimination(self, estimator):
        item = ItemCalibration(discrimination=2.0)
        assert estimator.update_ability(0.0, item, True) == pytest.approx(0.3)

    def test_surprising_answer_moves_further(self, estimator):
        hard = ItemCalibration(irt_difficulty=2.0)
        easy = ItemCalibration(irt_difficulty=-2.0)

        gain_hard = estimator.update_ability(0.0, hard, True)
        gain_easy = estimator.update_ability(0.0, easy, True)
        assert gain_hard > gain_easy > 0.0

    def test_ability_is_clamped(self, estimator):
        assert estimator.update_ability(3.0, ItemCalibration(irt_difficulty=3.0), True) == 3.0
        assert estimator.update_ability(-3.0, ItemCalibration(irt_difficulty=-3.0), False) == -3.0


class TestScaleConversion:

    @pytest.mark.parametrize("ability,mastery", [(-3.0, 0.0), (0.0, 0.5), (3.0, 1.0), (1.5, 0.75)])
    def test_ability_to_mastery(self, estimator, ability, mastery):
        assert estimator.ability_to_mastery(ability) == pytest.approx(mastery)
        assert estimator.mastery_to_ability(mastery) == pytest.approx(ability)

    def test_out_of_range_is_clamped(self, estimator):
        assert estimator.ability_to_mastery(10.0) == 1.0
        assert estimator.mastery_to_ability(-0.5) == -3.0


class TestCalibrationValidation:

    @pytest.mark.parametrize("kwargs", [
        {"discrimination": 0.0},
        {"guessing_param": 1.0},
        {"guessing_param": -0.1},
        {"calibration_n": -1},
    ])
    def test_rejects_bad_parameters(self, kwargs):
        with pytest.raises(ValueError):
            ItemCalibration(**kwargs)

    def test_round_trips_through_dict(self):
        item = ItemCalibration(irt_difficulty=0.4, discrimination=1.3, guessing_param=0.2,
                               calibration_n=120, difficulty_ci=(0.1, 0.7))
        assert ItemCalibration.from_dict(item.to_dict()) == item
