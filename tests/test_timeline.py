from __future__ import annotations

from bbluck.replay import build_timeline, parse_replay_xml
from tests.helpers import standard_match_xml


def test_flat_turns_count_keywords_from_action_text() -> None:
    replay = parse_replay_xml(
        "<Replay><Turns>"
        "<Turn number='1' teamId='a'><Action type='Blitz'/><Action type='Dodge'/><Action type='Reroll'/></Turn>"
        "<Turn number='2' teamId='b'><TurnOver/></Turn>"
        "</Turns></Replay>"
    )
    first, second = build_timeline(replay)
    assert first.turn_number == 1
    assert first.team_id == "a"
    assert first.raw_event_count == 1
    assert first.keyword_hits["blitz"] == 1
    assert first.keyword_hits["dodge"] == 1
    assert first.keyword_hits["reroll"] == 1
    assert second.keyword_hits["turnover"] == 1
    assert second.keyword_hits["block"] == 0


def test_structured_turns_report_event_counts() -> None:
    timeline = build_timeline(parse_replay_xml(standard_match_xml()))
    assert [turn.raw_event_count for turn in timeline] == [1, 2, 2]
    assert timeline[1].keyword_hits["turnover"] == 1
    assert timeline[2].keyword_hits["block"] >= 1
