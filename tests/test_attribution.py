from __future__ import annotations

from bbluck.contracts import ActorTeamSource, InferenceConfidence, ReplayEvent, ReplayEventType, ReplayTurn
from bbluck.replay import (
    annotate_turn_attribution,
    build_player_ownership_index,
    infer_event_team,
    infer_turn_ownership,
    parse_replay_xml,
    scope_replay_to_team,
)
from bbluck.services import parse_replay_input
from tests.helpers import carrier, end_turn, payload_xml, replay_xml, roll, sequence, standard_match_xml, step

INDEX = build_player_ownership_index({"0:11": "Griff", "0:12": "Zug", "1:21": "Varag", "1:22": "Ugroth"})


def _dodge(player_id: str | None = None, team_id: str | None = None) -> ReplayEvent:
    return ReplayEvent(
        type=ReplayEventType.DODGE,
        source_tag="ResultRoll",
        player_id=player_id,
        team_id=team_id,
        actor_team_id=team_id,
        actor_team_source=ActorTeamSource.EXPLICIT if team_id else None,
    )


def test_player_ids_claimed_by_two_teams_are_ambiguous() -> None:
    index = build_player_ownership_index({"0:11": "A", "1:11": "B", "0:12": "C", "2:11": "D", "broken": "E"})
    assert "11" not in index.player_to_team
    assert index.ambiguous_player_ids == frozenset({"11"})
    assert index.player_to_team["12"] == "0"
    assert index.team_to_players["0"] == frozenset({"11", "12"})
    assert index.team_to_players["1"] == frozenset({"11"})
    assert all("11" in index.team_to_players[team] for team in ("0", "1", "2"))


def test_event_team_prefers_explicit_then_roster() -> None:
    assert infer_event_team(_dodge("21", team_id="0"), INDEX) == ("0", ActorTeamSource.EXPLICIT)
    assert infer_event_team(_dodge("21"), INDEX) == ("1", ActorTeamSource.PLAYER_MAP)
    assert infer_event_team(_dodge("99"), INDEX) == (None, None)


def test_turn_ownership_scores_and_confidence() -> None:
    turn = ReplayTurn(turn_number=1, events=(_dodge("11"), _dodge("12"), _dodge("11")))
    inference = infer_turn_ownership(turn, INDEX)
    assert inference.team_id == "0"
    assert inference.scores["0"] == 12
    assert inference.confidence is InferenceConfidence.HIGH

    medium = infer_turn_ownership(ReplayTurn(turn_number=2, events=(_dodge("11"), _dodge("11"), _dodge("21"))), INDEX)
    assert medium.team_id == "0"
    assert medium.confidence is InferenceConfidence.MEDIUM

    carried = infer_turn_ownership(ReplayTurn(turn_number=3, team_id="1", ball_carrier_player_id="22"), INDEX)
    assert carried.scores == {"1": 6}
    assert carried.confidence is InferenceConfidence.MEDIUM


def test_tied_turn_ownership_is_unresolved() -> None:
    inference = infer_turn_ownership(ReplayTurn(turn_number=1, events=(_dodge("11"), _dodge("21"))), INDEX)
    assert inference.team_id is None
    assert inference.confidence is InferenceConfidence.LOW
    assert infer_turn_ownership(ReplayTurn(turn_number=2), INDEX).team_id is None


def test_annotation_only_adopts_confident_inference() -> None:
    low = annotate_turn_attribution(ReplayTurn(turn_number=1, events=(_dodge("11"),)), INDEX)
    assert low.team_id is None
    assert low.inferred_team_id == "0"
    assert low.team_inference_confidence is InferenceConfidence.LOW

    anonymous = ReplayEvent(type=ReplayEventType.ROLL, source_tag="ResultRoll")
    high = annotate_turn_attribution(ReplayTurn(turn_number=2, events=(_dodge("11"), _dodge("12"), _dodge("11"), anonymous)), INDEX)
    assert high.team_id == "0"
    assert high.events[-1].actor_team_id == "0"
    assert high.events[-1].actor_team_source is ActorTeamSource.TURN_INFERRED


def test_scoping_removes_opponent_events_and_names() -> None:
    replay = parse_replay_xml(standard_match_xml())
    scoped = scope_replay_to_team(replay, "0")
    assert scoped.analysis_team_id == "0"
    assert len(scoped.turns) == len(replay.turns)
    assert all(turn.team_id == "0" for turn in scoped.turns)
    assert scoped.turns[1].events == ()
    assert scoped.turns[1].inferred_team_id == "1"
    assert [event.source_tag for event in scoped.turns[2].events] == ["ResultRoll", "ResultBlockRoll"]
    assert set(scoped.player_names_by_team_and_id) == {"0:11", "0:12"}
    assert set(scoped.player_names_by_id) == {"11", "12"}


def test_scoping_drops_an_opponent_ball_carrier() -> None:
    xml = replay_xml(
        carrier("21"),
        sequence(step(1, player_id="11", team_id="0"), roll(3, difficulty=3, outcome=1, dice=[4], team_id="0", player_id="11")),
        end_turn(1),
    )
    turn = scope_replay_to_team(parse_replay_xml(xml), "0").turns[0]
    assert turn.ball_carrier_player_id is None
    assert [event.source_tag for event in turn.events] == ["ResultRoll"]


def test_parse_service_scopes_when_team_is_given() -> None:
    scoped = parse_replay_input(standard_match_xml(), team_id="1")
    assert scoped.analysis_team_id == "1"
    assert [len(turn.events) for turn in scoped.turns] == [0, 2, 0]


def test_scoped_view_never_carries_opponent_players() -> None:
    xml = replay_xml(
        sequence(
            step(6, player_id="12", team_id="0"),
            roll(2, difficulty=4, outcome=1, dice=[5], team_id="0", player_id="12", target_id="21"),
            payload_xml("ResultPushBack", {"PushedPlayerId": "21"}),
            roll(3, difficulty=3, outcome=1, dice=[4], team_id="0", player_id="22"),
        ),
        end_turn(1),
    )
    replay = parse_replay_xml(xml)
    index = build_player_ownership_index(replay.player_names_by_team_and_id)
    turn = scope_replay_to_team(replay, "0").turns[0]

    assert [(event.source_tag, event.player_id) for event in turn.events] == [
        ("ResultRoll", "12"),
        ("ResultPushBack", "12"),
    ]
    assert turn.events[1].target_id == "21"
    assert not [event for event in turn.events if index.player_to_team.get(event.player_id or "") == "1"]
