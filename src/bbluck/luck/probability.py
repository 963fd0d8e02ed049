from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from bbluck.contracts import CalculationMethod, LuckCategory

NEUTRAL_PROBABILITY = 0.5
DEFAULT_SIDES = 6
WIDE_DIE_TYPE = 1
WIDE_DIE_SIDES = 8
MAX_DIE_SIDES = 16


class DiceMechanic(str, Enum):
    SINGLE = "single"
    ANY = "any"
    SUM = "sum"


@dataclass(frozen=True, slots=True)
class ProbabilityInput:
    roll_type: int | None
    target: int | None
    dice: tuple[int, ...]
    die_types: tuple[int | None, ...] = ()
    reroll_available: bool = False


@dataclass(frozen=True, slots=True)
class ProbabilityResult:
    probability_success: float
    base_odds: float
    reroll_adjusted_odds: float
    calculation_method: CalculationMethod
    calculation_reason: str


@dataclass(frozen=True, slots=True)
class OutcomeResolution:
    success: bool
    deterministic: bool
    reason: str


@dataclass(frozen=True, slots=True)
class _ExplicitCalculator:
    roll_types: frozenset[int]
    multi_die: DiceMechanic
    reason: str


EXPLICIT_CALCULATORS: dict[LuckCategory, _ExplicitCalculator] = {
    LuckCategory.BLOCK: _ExplicitCalculator(frozenset({2}), DiceMechanic.ANY, "explicit block calculator (rollType 2)"),
    LuckCategory.ARMOR_BREAK: _ExplicitCalculator(frozenset({10, 34}), DiceMechanic.SUM, "explicit armor-break calculator (rollType 10/34)"),
    LuckCategory.INJURY: _ExplicitCalculator(frozenset({4, 37}), DiceMechanic.SUM, "explicit injury calculator (rollType 4/37)"),
    LuckCategory.DODGE: _ExplicitCalculator(frozenset({3, 17, 21}), DiceMechanic.ANY, "explicit dodge calculator (rollType 3/17/21)"),
    LuckCategory.BALL_HANDLING: _ExplicitCalculator(
        frozenset({11, 12, 13, 14, 15}), DiceMechanic.ANY, "explicit ball-handling calculator (rollType 11-15)"
    ),
    LuckCategory.ARGUE_CALL: _ExplicitCalculator(frozenset({71}), DiceMechanic.ANY, "explicit argue-call calculator (rollType 71)"),
    LuckCategory.MOVEMENT_RISK: _ExplicitCalculator(frozenset({1}), DiceMechanic.ANY, "explicit movement-risk calculator (rollType 1)"),
}


def clamp01(value: float) -> float:
    if not math.isfinite(value):
        return NEUTRAL_PROBABILITY
    return min(1.0, max(0.0, value))


def malformed_faces(dice: Sequence[int]) -> tuple[int, ...]:
    return tuple(value for value in dice if value > MAX_DIE_SIDES)


def estimate_sides(die_type: int | None, observed: int) -> int:
    if die_type == WIDE_DIE_TYPE:
        return min(MAX_DIE_SIDES, max(WIDE_DIE_SIDES, observed))
    return min(MAX_DIE_SIDES, max(DEFAULT_SIDES, observed))


def single_die_probability(target: int, sides: int) -> float:
    return clamp01(max(0, sides - target + 1) / sides)


def any_die_probability(target: int, sides_by_die: Sequence[int]) -> float:
    fail = 1.0
    for sides in sides_by_die:
        fail *= 1 - single_die_probability(target, sides)
    return clamp01(1 - fail)


def sum_probability(target: int, sides_by_die: Sequence[int]) -> float:
    distribution = {0: 1}
    for sides in sides_by_die:
        step: dict[int, int] = {}
        for total, ways in distribution.items():
            for face in range(1, sides + 1):
                step[total + face] = step.get(total + face, 0) + ways
        distribution = step
    outcomes = math.prod(sides_by_die)
    if outcomes <= 0:
        return NEUTRAL_PROBABILITY
    return clamp01(sum(ways for total, ways in distribution.items() if total >= target) / outcomes)


def dice_mechanic(target: int, dice_count: int, multi_die: DiceMechanic | None = None) -> DiceMechanic:
    if dice_count <= 1:
        return DiceMechanic.SINGLE
    if multi_die is not None:
        return multi_die
    if target > DEFAULT_SIDES or dice_count > 2:
        return DiceMechanic.SUM
    return DiceMechanic.ANY


def base_probability(target: int | None, dice: Sequence[int], die_types: Sequence[int | None] = (), multi_die: DiceMechanic | None = None) -> float:
    if target is None or target <= 0 or not dice:
        return NEUTRAL_PROBABILITY
    if malformed_faces(dice):
        return NEUTRAL_PROBABILITY
    sides = [estimate_sides(die_types[i] if i < len(die_types) else None, value) for i, value in enumerate(dice)]
    mechanic = dice_mechanic(target, len(dice), multi_die)
    if mechanic is DiceMechanic.SINGLE:
        return single_die_probability(target, sides[0])
    if mechanic is DiceMechanic.SUM:
        return sum_probability(target, sides)
    return any_die_probability(target, sides)


def apply_reroll(probability: float, reroll_available: bool) -> float:
    if not reroll_available:
        return clamp01(probability)
    return clamp01(1 - (1 - probability) ** 2)


def compute_probability(category: LuckCategory | None, inputs: ProbabilityInput) -> ProbabilityResult:
    malformed = malformed_faces(inputs.dice)
    if malformed:
        return ProbabilityResult(
            probability_success=NEUTRAL_PROBABILITY,
            base_odds=NEUTRAL_PROBABILITY,
            reroll_adjusted_odds=NEUTRAL_PROBABILITY,
            calculation_method=CalculationMethod.FALLBACK,
            calculation_reason=f"neutral odds (die faces {list(malformed)} exceed {MAX_DIE_SIDES} sides)",
        )
    calculator = EXPLICIT_CALCULATORS.get(category) if category is not None else None
    explicit = (
        calculator is not None
        and inputs.roll_type in calculator.roll_types
        and inputs.target is not None
        and inputs.target > 0
        and bool(inputs.dice)
    )
    if explicit:
        base = base_probability(inputs.target, inputs.dice, inputs.die_types, calculator.multi_die)
        method, reason = CalculationMethod.EXPLICIT, calculator.reason
    else:
        base = base_probability(inputs.target, inputs.dice, inputs.die_types)
        method = CalculationMethod.FALLBACK
        suffix = f" for rollType {inputs.roll_type}" if inputs.roll_type is not None else ""
        reason = f"generic fallback calculator (insufficient explicit mapping{suffix})"
    adjusted = apply_reroll(base, inputs.reroll_available)
    return ProbabilityResult(
        probability_success=adjusted,
        base_odds=clamp01(base),
        reroll_adjusted_odds=adjusted,
        calculation_method=method,
        calculation_reason=reason,
    )


def resolve_actual_success(outcome_code: int | None, dice: Sequence[int], target: int | None) -> OutcomeResolution:
    if outcome_code == 1:
        return OutcomeResolution(True, True, "outcome code 1 reports success")
    if outcome_code == 0:
        return OutcomeResolution(False, True, "outcome code 0 reports failure")
    if target is not None and dice:
        total = sum(dice)
        return OutcomeResolution(total >= target, True, f"dice total {total} vs target {target}+")
    return OutcomeResolution(False, False, "indeterminate outcome (no outcome code or dice total)")
