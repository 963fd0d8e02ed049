from __future__ import annotations

from types import MappingProxyType
from typing import Iterable

from bbluck.contracts import (
    InferenceConfidence,
    LuckCategory,
    RollContractKind,
    RollKnowledgeStatus,
    RollTypeContract,
)

REGISTRY_VERSION = "2025.2-observed"

_HIGH = InferenceConfidence.HIGH
_MEDIUM = InferenceConfidence.MEDIUM
_LOW = InferenceConfidence.LOW
_KNOWN = RollKnowledgeStatus.KNOWN
_AMBIGUOUS = RollKnowledgeStatus.AMBIGUOUS
_UNKNOWN = RollKnowledgeStatus.UNKNOWN


def _summary(tag: str, roll_type: int, label: str, category: LuckCategory, notes: str) -> RollTypeContract:
    return RollTypeContract(tag, roll_type, label, RollContractKind.SUMMARY, _HIGH, _KNOWN, notes, category)


def _scored(roll_type: int, label: str, category: LuckCategory, notes: str) -> RollTypeContract:
    return RollTypeContract("ResultRoll", roll_type, label, RollContractKind.SCORED_DETERMINISTIC, _HIGH, _KNOWN, notes, category)


def _randomizer(roll_type: int, label: str, notes: str, confidence=_HIGH, status=_KNOWN) -> RollTypeContract:
    return RollTypeContract("ResultRoll", roll_type, label, RollContractKind.RANDOMIZER, confidence, status, notes)


def _provisional(roll_type: int, confidence: InferenceConfidence, status: RollKnowledgeStatus, notes: str) -> RollTypeContract:
    return RollTypeContract(
        "ResultRoll",
        roll_type,
        f"deterministic_check_{roll_type}_provisional",
        RollContractKind.EXCLUDED_DETERMINISTIC,
        confidence,
        status,
        notes,
    )


# Observed in sanitized match recordings; extend only with fixture evidence.
OBSERVED_ROLL_TYPE_CONTRACTS: tuple[RollTypeContract, ...] = (
    _summary("ResultBlockRoll", 3, "block_dice_faces_summary", LuckCategory.BLOCK, "Outcome-only block face summary without threshold or dice payload."),
    _summary("ResultInjuryRoll", 11, "injury_chain_2d6_summary", LuckCategory.INJURY, "Damage chain summary roll emitted after armor checks."),
    _summary("ResultCasualtyRoll", 12, "casualty_chain_d6_summary", LuckCategory.INJURY, "Casualty severity chain summary roll."),
    _scored(2, "block_check", LuckCategory.BLOCK, "Single-die threshold check in block sequences."),
    _scored(10, "armor_chain_2d6_check", LuckCategory.ARMOR_BREAK, "Two-die threshold check tied to block and foul damage chains."),
    _scored(34, "armor_modified_check", LuckCategory.ARMOR_BREAK, "Single-die armor check with stable +2 modifiers."),
    _scored(4, "injury_check", LuckCategory.INJURY, "Single-die injury threshold check."),
    _scored(37, "injury_variant_check", LuckCategory.INJURY, "Single-die injury variant check in damage chains."),
    _scored(71, "argue_call_check", LuckCategory.ARGUE_CALL, "Secret-weapon argue-call check with deterministic threshold."),
    _scored(1, "movement_risk_check", LuckCategory.MOVEMENT_RISK, "Single-die 2+ movement-risk check with stable outcome semantics."),
    _randomizer(8, "kickoff_scatter_randomizer", "Three-die directional randomizer with no success threshold."),
    _randomizer(9, "kickoff_event_randomizer", "Three-die randomizer chain with outcome=2 and zero target."),
    _randomizer(25, "single_die_chain_randomizer", "Single dieType=1 randomizer with no threshold semantics."),
    _randomizer(26, "paired_kickoff_randomizer", "Paired randomizer with mixed die types and no threshold."),
    _randomizer(30, "special_randomizer_30", "Observed once as an outcome=2 special chain randomizer.", _MEDIUM, _AMBIGUOUS),
    _randomizer(87, "chain_randomizer_87", "Frequent zero-target randomizer in chainsaw sequences."),
    _provisional(5, _LOW, _UNKNOWN, "Low-frequency deterministic check chain without stable semantics."),
    _provisional(6, _LOW, _UNKNOWN, "Low-frequency deterministic check in special-action chains."),
    _provisional(7, _MEDIUM, _AMBIGUOUS, "Deterministic threshold check with mixed step contexts and modifiers."),
    _provisional(31, _LOW, _UNKNOWN, "Single observation deterministic check."),
    _provisional(33, _MEDIUM, _AMBIGUOUS, "Repeated 2+ deterministic check with unclear rule meaning."),
    _provisional(41, _LOW, _UNKNOWN, "Single observation with heavy modifiers."),
    _provisional(43, _LOW, _UNKNOWN, "Single observation deterministic check."),
    _provisional(45, _MEDIUM, _AMBIGUOUS, "Deterministic 2+ check that often precedes rollType 10 chain checks."),
    _provisional(67, _MEDIUM, _AMBIGUOUS, "Deterministic 2+ setup check immediately followed by rollType 10."),
    _provisional(73, _MEDIUM, _AMBIGUOUS, "Deterministic special-skill chain check with stable failure patterns."),
    _provisional(74, _LOW, _UNKNOWN, "Single observation within a low-frequency chain."),
    _provisional(88, _MEDIUM, _AMBIGUOUS, "Deterministic threshold check in bomb and special-action chains."),
)


class RollTypeContractRegistry:
    def __init__(self, contracts: Iterable[RollTypeContract], version: str = REGISTRY_VERSION) -> None:
        self.version = version
        self._contracts = tuple(contracts)
        self._by_key = MappingProxyType({c.key: c for c in self._contracts})

    def __len__(self) -> int:
        return len(self._contracts)

    def get(self, source_tag: str, roll_type: int | None) -> RollTypeContract | None:
        if roll_type is None:
            return None
        return self._by_key.get(f"{source_tag}|{roll_type}")

    def label_for(self, source_tag: str, roll_type: int | None, fallback: str) -> str:
        contract = self.get(source_tag, roll_type)
        return contract.label if contract else fallback

    def contracts(self) -> list[RollTypeContract]:
        return list(self._contracts)

    def keys(self) -> list[str]:
        return [c.key for c in self._contracts]

    @staticmethod
    def is_roll_candidate(contract: RollTypeContract | None) -> bool:
        if contract is None:
            return False
        return contract.kind in {RollContractKind.SCORED_DETERMINISTIC, RollContractKind.EXCLUDED_DETERMINISTIC}


ROLL_TYPE_CONTRACTS = RollTypeContractRegistry(OBSERVED_ROLL_TYPE_CONTRACTS)
