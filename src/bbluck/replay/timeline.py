from __future__ import annotations

import re
from types import MappingProxyType

from bbluck.contracts import ReplayModel, ReplayTurn, TimelineTurn

KEYWORD_PATTERNS = {
    "turnover": re.compile(r"\bturn ?over\b"),
    "reroll": re.compile(r"\bre ?-?roll\b"),
    "blitz": re.compile(r"\bblitz(?:ed|ing|es)?\b"),
    "dodge": re.compile(r"\bdodge(?:d|s|ing)?\b"),
    "block": re.compile(r"\bblock(?:ed|ing|s)?\b"),
}


def _turn_text(turn: ReplayTurn) -> str:
    return " ".join(turn.action_texts).replace("_", " ").lower()


def build_timeline(replay: ReplayModel) -> tuple[TimelineTurn, ...]:
    timeline: list[TimelineTurn] = []
    for turn in replay.turns:
        text = _turn_text(turn)
        timeline.append(
            TimelineTurn(
                turn_number=turn.turn_number,
                team_id=turn.team_id,
                raw_event_count=max(turn.event_count, 1),
                keyword_hits=MappingProxyType({key: len(pattern.findall(text)) for key, pattern in KEYWORD_PATTERNS.items()}),
            )
        )
    return tuple(timeline)
