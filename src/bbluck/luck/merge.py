from __future__ import annotations

from dataclasses import replace
from typing import Sequence

from bbluck.contracts import LuckCategory, LuckEvent, ScoringStatus
from bbluck.luck.weights import BLOCK_MERGE_WINDOW

BLOCK_CHAIN_MEMBER_TAGS = frozenset({"ResultBlockRoll", "ResultBlockOutcome", "ResultPushBack"})
BLOCK_ANCHOR_ROLL_TYPE = 2
MERGED_REASON_PREFIX = "excluded: merged into block anchor"


def is_block_anchor(event: LuckEvent) -> bool:
    return (
        event.scoring_status is ScoringStatus.SCORED
        and event.type is LuckCategory.BLOCK
        and event.metadata.source_tag == "ResultRoll"
        and event.metadata.roll_type == BLOCK_ANCHOR_ROLL_TYPE
    )


def _rank(anchor: LuckEvent, member: LuckEvent) -> tuple[int, int, int, int]:
    team_match = anchor.team_id == member.team_id
    player_match = member.player_id is not None and anchor.player_id == member.player_id
    target_match = member.target_id is not None and anchor.target_id == member.target_id
    distance = abs(anchor.event_index - member.event_index)
    return (0 if team_match else 1, -(int(player_match) + int(target_match)), distance, anchor.event_index)


def merge_block_chains(events: Sequence[LuckEvent], window: int = BLOCK_MERGE_WINDOW) -> tuple[LuckEvent, ...]:
    """Fold block summary events into the scored block roll they describe.

    Each summary member is claimed by the best-ranked anchor in the same turn
    within ``window`` event positions, then excluded with a reference to it.
    """
    anchors = [event for event in events if is_block_anchor(event)]
    merged: list[LuckEvent] = []
    for event in events:
        if event.metadata.source_tag not in BLOCK_CHAIN_MEMBER_TAGS:
            merged.append(event)
            continue
        candidates = [
            anchor
            for anchor in anchors
            if anchor.turn == event.turn and abs(anchor.event_index - event.event_index) <= window
        ]
        if not candidates:
            merged.append(event)
            continue
        best = min(candidates, key=lambda anchor: _rank(anchor, event))
        merged.append(
            replace(
                event,
                scoring_status=ScoringStatus.EXCLUDED,
                status_reason=f"{MERGED_REASON_PREFIX} {best.id}",
                merged_block_anchor_id=best.id,
                probability_success=0.0,
                delta=0.0,
                weighted_delta=0.0,
                tags=(),
            )
        )
    return tuple(merged)


def normalize_exclusion_reason(reason: str) -> str:
    if reason.startswith(f"{MERGED_REASON_PREFIX} "):
        return MERGED_REASON_PREFIX
    return reason
