from __future__ import annotations

from bbluck.contracts import ReplayEventType, UnknownCodeCategory
from bbluck.replay import ROLL_TYPE_LABELS, STEP_TYPE_LABELS, extract_structured_turns, label_for_code, parse_payload
from tests.helpers import (
    active_gamer,
    b64,
    carrier,
    end_turn,
    payload_xml,
    roll,
    sequence,
    standard_match_xml,
    step,
)


def test_label_lookup_falls_back_for_unknown_and_missing_codes() -> None:
    assert label_for_code(ROLL_TYPE_LABELS, 3, "roll") == "dodge"
    assert label_for_code(ROLL_TYPE_LABELS, 999, "roll") == "roll_unknown_999"
    assert label_for_code(STEP_TYPE_LABELS, None, "step") == "step"


def test_parse_payload_reads_thresholds_dice_and_skills() -> None:
    payload = parse_payload(
        b64(
            roll(
                3,
                difficulty=4,
                requirement=3,
                outcome=1,
                dice=[2, 5],
                team_id="0",
                modifiers=[(12, 1), (12, 1), (-1, -1)],
            )
        )
    )
    assert payload is not None
    assert payload.root_tag == "ResultRoll"
    assert (payload.roll_type, payload.difficulty, payload.requirement, payload.outcome) == (3, 4, 3, 1)
    assert payload.dice == (2, 5)
    assert payload.die_types == (0, 0)
    assert len(payload.modifiers) == 3
    assert payload.skills_used == (12,)
    assert payload.extras["TeamId"] == "0"


def test_parse_payload_keeps_missing_die_type_as_unknown() -> None:
    payload = parse_payload(b64(roll(3, difficulty=4, dice=[4], die_type=None)))
    assert payload is not None
    assert payload.dice == (4,)
    assert payload.die_types == (None,)


def test_parse_payload_skips_dice_without_values_and_rejects_non_xml() -> None:
    xml = "<ResultRoll><RollType>2</RollType><Dice><Die><DieType>0</DieType></Die><Die><Value>6</Value></Die></Dice></ResultRoll>"
    payload = parse_payload(b64(xml))
    assert payload is not None
    assert payload.dice == (6,)
    assert parse_payload(b64("plain words")) is None
    assert parse_payload("@@@") is None


def test_standard_match_builds_three_turns_with_typed_events() -> None:
    extraction = extract_structured_turns(standard_match_xml())
    assert extraction.found_structured_data
    assert extraction.unknown_codes == ()
    assert [turn.turn_number for turn in extraction.turns] == [1, 2, 3]

    first, second, third = extraction.turns
    assert first.team_id == "0"
    assert [event.type for event in first.events] == [ReplayEventType.DODGE]
    assert first.events[0].step_label == "dodge"
    assert first.events[0].roll_label == "dodge"
    assert not first.ended_abnormally

    assert second.ended_abnormally
    assert second.end_turn_reason == 2
    assert second.end_turn_reason_label == "turnover"
    assert second.events[-1].type is ReplayEventType.TURNOVER
    assert second.events[-1].source_label == "turn_end_non_manual"

    assert [event.type for event in third.events] == [ReplayEventType.ROLL, ReplayEventType.BLOCK]
    assert third.events[1].source_tag == "ResultBlockRoll"
    assert third.events[1].target_id == "21"
    assert "block" in third.action_texts


def test_carrier_and_active_gamer_markers_feed_the_turn() -> None:
    xml = "<Replay>" + active_gamer("gamer-7") + carrier("-1") + carrier("11") + end_turn(1) + "</Replay>"
    extraction = extract_structured_turns(xml)
    turn = extraction.turns[0]
    assert turn.gamer_id == "gamer-7"
    assert turn.ball_carrier_player_id == "11"
    assert [event.source_tag for event in turn.events] == ["Carrier"]


def test_ball_step_emits_ball_state_event() -> None:
    xml = "<Replay>" + sequence(step(3, player_id="11", team_id="0", root="BallStep"), step_name="BallStep") + "</Replay>"
    turn = extract_structured_turns(xml).turns[0]
    assert turn.events[0].type is ReplayEventType.BALL_STATE
    assert turn.events[0].source_label == "ball_state_change"


def test_declared_actions_and_rerolls_map_to_event_types() -> None:
    xml = (
        "<Replay>"
        + sequence(
            step(0, player_id="11", team_id="0"),
            payload_xml("ResultUseAction", {"Action": 2, "PlayerId": "11"}),
            payload_xml("ResultUseAction", {"Action": 6, "PlayerId": "12"}),
            payload_xml("QuestionTeamRerollUsage", {"CanUseTeamReroll": 1}),
            payload_xml("ResultTouchBack", {"PlayerId": "12"}),
            payload_xml("ResultMysteryThing", {}),
        )
        + "</Replay>"
    )
    events = extract_structured_turns(xml).turns[0].events
    assert [event.type for event in events] == [
        ReplayEventType.BLITZ,
        ReplayEventType.FOUL,
        ReplayEventType.REROLL,
        ReplayEventType.BALL_STATE,
    ]
    assert events[0].action_label == "blitz"
    assert all(event.team_id == "0" for event in events)


def test_unknown_codes_are_counted_not_fatal() -> None:
    xml = (
        "<Replay>"
        + sequence(step(99, team_id="0"), roll(999, difficulty=3, outcome=1, dice=[3]), roll(999, difficulty=3, outcome=0, dice=[1]))
        + end_turn(42)
        + "</Replay>"
    )
    extraction = extract_structured_turns(xml)
    counts = {(u.category, u.code): u.occurrences for u in extraction.unknown_codes}
    assert counts == {
        (UnknownCodeCategory.ROLL, 999): 2,
        (UnknownCodeCategory.STEP, 99): 1,
        (UnknownCodeCategory.END_TURN_REASON, 42): 1,
    }
    assert extraction.unknown_codes[0].code == 999
    assert extraction.turns[0].ended_abnormally


def test_no_markers_means_no_structured_turns() -> None:
    extraction = extract_structured_turns("<Replay><Turns><Turn/></Turns></Replay>")
    assert not extraction.found_structured_data
    assert extraction.turns == ()
    assert not extract_structured_turns("not xml at all").found_structured_data


def test_non_finite_numbers_read_as_missing() -> None:
    payload = parse_payload(
        b64(payload_xml("ResultRoll", {"RollType": 3, "Difficulty": "inf", "Requirement": "1e400", "Outcome": "nan"}, dice=[4]))
    )
    assert payload is not None
    assert (payload.roll_type, payload.difficulty, payload.requirement, payload.outcome) == (3, None, None, None)
    assert payload.dice == (4,)


def test_pushed_player_is_the_target_not_the_actor() -> None:
    xml = (
        "<Replay>"
        + sequence(
            step(6, player_id="12", team_id="0"),
            roll(2, difficulty=4, outcome=1, dice=[5], team_id="0", player_id="12", target_id="21"),
            payload_xml("ResultPushBack", {"PushedPlayerId": "21"}),
        )
        + end_turn(1)
        + "</Replay>"
    )
    push = extract_structured_turns(xml).turns[0].events[-1]
    assert push.source_tag == "ResultPushBack"
    assert (push.player_id, push.target_id) == ("12", "21")
