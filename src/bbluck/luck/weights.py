from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from bbluck.contracts import LuckCategory

LUCK_CATEGORY_WEIGHTS: Mapping[LuckCategory, float] = MappingProxyType(
    {
        LuckCategory.BLOCK: 0.75,
        LuckCategory.ARMOR_BREAK: 1.0,
        LuckCategory.INJURY: 1.5,
        LuckCategory.DODGE: 1.1,
        LuckCategory.BALL_HANDLING: 1.1,
        LuckCategory.ARGUE_CALL: 0.9,
        LuckCategory.MOVEMENT_RISK: 1.0,
    }
)

CATEGORY_DISPLAY_NAMES: Mapping[LuckCategory, str] = MappingProxyType(
    {
        LuckCategory.BLOCK: "Block",
        LuckCategory.ARMOR_BREAK: "Armor break",
        LuckCategory.INJURY: "Injury",
        LuckCategory.DODGE: "Dodge",
        LuckCategory.BALL_HANDLING: "Ball handling",
        LuckCategory.ARGUE_CALL: "Argue the call",
        LuckCategory.MOVEMENT_RISK: "Movement risk",
    }
)

UNCATEGORIZED = "uncategorized"
BLESSED_MAX_PROBABILITY = 0.3
SHAFTAROONIE_MIN_PROBABILITY = 0.7
KEY_MOMENT_LIMIT = 15
REROLL_LOOKAHEAD = 4
BLOCK_MERGE_WINDOW = 6


def category_weight(category: LuckCategory | None) -> float:
    if category is None:
        return 0.0
    return LUCK_CATEGORY_WEIGHTS[category]


def category_key(category: LuckCategory | None) -> str:
    return category.value if category is not None else UNCATEGORIZED


def weight_table() -> dict[str, float]:
    return {category.value: weight for category, weight in LUCK_CATEGORY_WEIGHTS.items()}
