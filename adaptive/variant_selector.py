"""
Variant Selector - choose the difficulty tier for a learner and item.

Two parallel gates, one on (effective) mastery and one on recent accuracy.
The tier is the lower of the two, so a single strong signal cannot lift it:

    comprehension   value <= lower boundary
    application     lower < value <= upper boundary
    enrichment      value > upper boundary

Ties go to the lower tier. Trend and the experiment arm only move the
mastery upper boundary; weak prerequisites cap the tier at application.
"""

from typing import Optional

from loguru import logger

from .forgetting import DEFAULT_FORGETTING_PARAMS, apply_forgetting
from .schemas import SelectVariantInput
from .types import (
    ExperimentArm,
    ForgettingParams,
    LearningTrend,
    SelectionFactors,
    SelectVariantOutput,
    Variant,
)

# Tier boundaries
COMPREHENSION_MASTERY = 0.4
COMPREHENSION_ACCURACY = 0.5
ENRICHMENT_MASTERY = 0.75
ENRICHMENT_ACCURACY = 0.85

# Enrichment boundary shift per trend (negative = easier to reach)
TREND_SHIFTS = {
    LearningTrend.IMPROVING_FAST: -0.1,
    LearningTrend.IMPROVING: -0.05,
    LearningTrend.DECLINING: 0.05,
    LearningTrend.DECLINING_FAST: 0.1,
}

PREREQUISITE_FLOOR = 0.3

# Start-of-session and enrichment-offer thresholds
INITIAL_ENRICHMENT_MASTERY = 0.75
INITIAL_COMPREHENSION_MASTERY = 0.35
OFFER_MASTERY = 0.7
OFFER_ACCURACY = 0.85
OFFER_CONSECUTIVE = 3


def _tier(value: float, lower: float, upper: float) -> int:
    if value <= lower:
        return Variant.COMPREHENSION.rank
    if value <= upper:
        return Variant.APPLICATION.rank
    return Variant.ENRICHMENT.rank


def _boundary(value: float) -> float:
    return max(COMPREHENSION_MASTERY, min(1.0, value))


def _rank(mastery: float, accuracy: float, upper: float, gated: bool) -> int:
    rank = min(
        _tier(mastery, COMPREHENSION_MASTERY, upper),
        _tier(accuracy, COMPREHENSION_ACCURACY, ENRICHMENT_ACCURACY),
    )
    if gated:
        rank = min(rank, Variant.APPLICATION.rank)
    return rank


def select_variant(params: SelectVariantInput,
                   forgetting: ForgettingParams = DEFAULT_FORGETTING_PARAMS,
                   prerequisite_floor: float = PREREQUISITE_FLOOR) -> SelectVariantOutput:
    """
    Pick a tier and record which signals changed the outcome.

    Missing mastery or accuracy falls back to application.
    """
    if params.mastery is None or params.recent_accuracy is None:
        return SelectVariantOutput(
            variant=Variant.APPLICATION,
            factors=SelectionFactors(),
            effective_mastery=params.mastery,
            threshold=ENRICHMENT_MASTERY,
            debug="Missing mastery or accuracy, defaulting to application",
        )

    mastery = params.mastery
    accuracy = params.recent_accuracy

    # 1. Forgetting curve
    effective = mastery
    if params.days_since_practice is not None:
        effective = apply_forgetting(mastery, params.days_since_practice, forgetting)

    # 2. Enrichment boundary: experiment override, then trend shift
    base_upper = ENRICHMENT_MASTERY
    if params.experiment_variant == ExperimentArm.TREATMENT and params.experiment_threshold is not None:
        base_upper = params.experiment_threshold
    shift = TREND_SHIFTS.get(params.trend, 0.0)
    upper = _boundary(base_upper + shift)

    # 3. Prerequisite gate
    weak = sorted(
        topic for topic, m in (params.prerequisite_mastery or {}).items()
        if m < prerequisite_floor
    )
    gated = bool(weak)

    # 4. Dual gate
    rank = _rank(effective, accuracy, upper, gated)
    ungated = _rank(effective, accuracy, upper, False)

    # 5. Explain
    factors = SelectionFactors(
        based_on_mastery=_tier(effective, COMPREHENSION_MASTERY, upper) == ungated,
        based_on_accuracy=_tier(accuracy, COMPREHENSION_ACCURACY, ENRICHMENT_ACCURACY) == ungated,
        based_on_trend=_rank(effective, accuracy, _boundary(base_upper), gated) != rank,
        based_on_forgetting=_rank(mastery, accuracy, upper, gated) != rank,
        based_on_experiment=_rank(effective, accuracy, _boundary(ENRICHMENT_MASTERY + shift), gated) != rank,
        based_on_prerequisites=gated and ungated != rank,
    )

    variant = Variant.from_rank(rank)
    debug = f"mastery={effective:.3f} accuracy={accuracy:.3f} threshold={upper:.3f}"
    if gated:
        debug += f"; weak prerequisites: {', '.join(weak)}"
    logger.debug(f"Selected {variant.value} ({debug})")

    return SelectVariantOutput(
        variant=variant,
        factors=factors,
        effective_mastery=effective,
        threshold=upper,
        debug=debug,
    )


def initial_variant(topic_mastery: Optional[float]) -> Variant:
    """Starting tier from an existing profile, before any answers this session."""
    if topic_mastery is None:
        return Variant.APPLICATION
    if topic_mastery > INITIAL_ENRICHMENT_MASTERY:
        return Variant.ENRICHMENT
    if topic_mastery < INITIAL_COMPREHENSION_MASTERY:
        return Variant.COMPREHENSION
    return Variant.APPLICATION


def should_offer_enrichment(mastery: float, recent_accuracy: float,
                            consecutive_successes: int) -> bool:
    """Whether to offer (not force) enrichment after consistent success."""
    return (
        mastery >= OFFER_MASTERY
        and recent_accuracy >= OFFER_ACCURACY
        and consecutive_successes >= OFFER_CONSECUTIVE
    )
