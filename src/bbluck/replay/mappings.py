from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from bbluck.contracts import UnknownCodeCategory

STEP_TYPE_LABELS: Mapping[int, str] = MappingProxyType(
    {
        0: "move",
        1: "dodge",
        2: "damage",
        3: "ball",
        4: "pickup",
        5: "pass",
        6: "block",
        10: "gfi",
        13: "throw_team_mate",
        17: "leap",
        24: "stab",
        27: "special_skill",
        29: "special_action",
        31: "chainsaw",
        32: "bomb",
    }
)

ACTION_CODE_LABELS: Mapping[int, str] = MappingProxyType(
    {
        1: "move",
        2: "blitz",
        3: "block",
        4: "pass",
        5: "handoff",
        6: "foul",
        15: "special",
        16: "special",
    }
)

ROLL_TYPE_LABELS: Mapping[int, str] = MappingProxyType(
    {
        1: "armor",
        2: "block_dice",
        3: "dodge",
        4: "injury",
        7: "ko_recovery",
        8: "kickoff_scatter",
        9: "kickoff_event",
        10: "gfi",
        11: "pickup",
        12: "catch",
        25: "interception",
        26: "touchback",
        31: "casualty",
        34: "foul_armor",
        37: "foul_injury",
        41: "regeneration",
        43: "apothecary",
        71: "secret_weapon",
        73: "bombardier",
    }
)

END_TURN_REASON_LABELS: Mapping[int, str] = MappingProxyType(
    {
        1: "manual_end",
        2: "turnover",
        3: "forced_end",
        4: "touchdown_or_half_end",
    }
)

LABEL_TABLES: Mapping[UnknownCodeCategory, Mapping[int, str]] = MappingProxyType(
    {
        UnknownCodeCategory.STEP: STEP_TYPE_LABELS,
        UnknownCodeCategory.ACTION: ACTION_CODE_LABELS,
        UnknownCodeCategory.ROLL: ROLL_TYPE_LABELS,
        UnknownCodeCategory.END_TURN_REASON: END_TURN_REASON_LABELS,
    }
)

MANUAL_END_REASON = 1


def label_for_code(table: Mapping[int, str], code: int | None, fallback: str) -> str:
    if code is None:
        return fallback
    return table.get(code, f"{fallback}_unknown_{code}")


def is_known_code(category: UnknownCodeCategory, code: int) -> bool:
    return code in LABEL_TABLES[category]
