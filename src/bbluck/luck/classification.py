from __future__ import annotations

import re
from dataclasses import dataclass

from bbluck.contracts import LuckCategory, RollContractKind, RollTypeContract
from bbluck.replay.roll_contracts import ROLL_TYPE_CONTRACTS, RollTypeContractRegistry

DODGE_STEP_TYPE = 1
BALL_HANDLING_STEP_TYPES = frozenset({4, 5, 8, 9, 12, 13})
DODGE_ROLL_TYPES = frozenset({3, 17, 21})
BALL_HANDLING_ROLL_TYPES = frozenset({11, 12, 13, 14, 15})
ARGUE_FALLBACK_ROLL_TYPES = frozenset({42, 70})

BLOCK_SUMMARY_TAGS = frozenset({"ResultBlockRoll", "ResultBlockOutcome", "ResultPushBack"})
INJURY_SUMMARY_TAGS = frozenset({"ResultInjuryRoll", "ResultCasualtyRoll", "ResultPlayerRemoval"})
ARGUE_TAG_PATTERN = re.compile(r"argue|referee|bribe", re.IGNORECASE)

MISSING_TARGET_REASON = "excluded: missing target threshold"


@dataclass(frozen=True, slots=True)
class ClassificationContext:
    source_tag: str
    step_type: int | None = None
    roll_type: int | None = None
    requirement: int | None = None
    difficulty: int | None = None
    dice_count: int = 0


@dataclass(frozen=True, slots=True)
class RollClassification:
    category: LuckCategory | None
    scored: bool
    reason: str
    is_roll_candidate: bool
    contract: RollTypeContract | None = None


def resolve_target(requirement: int | None, difficulty: int | None) -> int | None:
    for value in (difficulty, requirement):
        if value is not None and value > 0:
            return value
    return None


def _excluded(category: LuckCategory | None, reason: str, *, candidate: bool = False, contract: RollTypeContract | None = None) -> RollClassification:
    return RollClassification(category=category, scored=False, reason=reason, is_roll_candidate=candidate, contract=contract)


def _classify_contract(contract: RollTypeContract, has_target: bool) -> RollClassification:
    category = contract.scoring_category
    if contract.kind is RollContractKind.SUMMARY:
        return _excluded(category, f"excluded: summary event {contract.label} carries no scoring threshold", contract=contract)
    if contract.kind is RollContractKind.RANDOMIZER:
        return _excluded(None, f"excluded: randomizer roll {contract.label} has no success semantics", contract=contract)
    if not has_target:
        return _excluded(category, MISSING_TARGET_REASON, candidate=True, contract=contract)
    if contract.kind is RollContractKind.SCORED_DETERMINISTIC:
        return RollClassification(
            category=category,
            scored=True,
            reason=f"scored: {contract.source_tag} {contract.label} (rollType {contract.roll_type})",
            is_roll_candidate=True,
            contract=contract,
        )
    return _excluded(
        category,
        f"excluded: deterministic roll family pending semantic confirmation ({contract.label})",
        candidate=True,
        contract=contract,
    )


def _classify_step_family(context: ClassificationContext) -> RollClassification:
    if context.step_type == DODGE_STEP_TYPE:
        if context.roll_type not in DODGE_ROLL_TYPES:
            return _excluded(LuckCategory.DODGE, "excluded: dodge step without supported roll family")
        return RollClassification(LuckCategory.DODGE, True, "scored: ResultRoll dodge stepType 1", True)

    if context.step_type in BALL_HANDLING_STEP_TYPES:
        if context.roll_type not in BALL_HANDLING_ROLL_TYPES:
            return _excluded(LuckCategory.BALL_HANDLING, "excluded: ball-handling step without supported roll family")
        return RollClassification(
            LuckCategory.BALL_HANDLING, True, f"scored: ResultRoll ball-handling stepType {context.step_type}", True
        )

    suffix = f" for rollType {context.roll_type}" if context.roll_type is not None else ""
    return _excluded(None, f"excluded: unsupported ResultRoll context{suffix}")


def classify_roll_context(context: ClassificationContext, registry: RollTypeContractRegistry = ROLL_TYPE_CONTRACTS) -> RollClassification:
    """Decide whether one extracted event can carry a luck score.

    Registry contracts win. Pairs the registry has never seen fall back to
    tag-level summaries and then to the step families whose dice semantics
    are fixed (dodge, ball handling); everything else is excluded with the
    reason recorded.
    """
    has_target = resolve_target(context.requirement, context.difficulty) is not None
    contract = registry.get(context.source_tag, context.roll_type)
    if contract is not None:
        return _classify_contract(contract, has_target)

    if context.source_tag in BLOCK_SUMMARY_TAGS:
        return _excluded(LuckCategory.BLOCK, "excluded: block outcome summary event is non-roll context")
    if context.source_tag in INJURY_SUMMARY_TAGS:
        return _excluded(LuckCategory.INJURY, "excluded: injury-chain summary event without deterministic threshold contract")
    if context.source_tag != "ResultRoll":
        if ARGUE_TAG_PATTERN.search(context.source_tag):
            return _excluded(LuckCategory.ARGUE_CALL, "excluded: argue-call context missing deterministic ResultRoll contract")
        return _excluded(None, "excluded: unsupported source tag for deterministic luck scoring")

    if context.roll_type in ARGUE_FALLBACK_ROLL_TYPES:
        if not has_target:
            return _excluded(LuckCategory.ARGUE_CALL, MISSING_TARGET_REASON)
        return _excluded(LuckCategory.ARGUE_CALL, f"excluded: unsupported ResultRoll context for rollType {context.roll_type}")

    if not has_target:
        return _excluded(None, MISSING_TARGET_REASON)

    return _classify_step_family(context)
