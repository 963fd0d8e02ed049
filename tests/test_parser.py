from __future__ import annotations

import pytest

from bbluck.contracts import ActorTeamSource, InferenceConfidence, ReplayValidationError, SourceFormat
from bbluck.replay import decode_readable_text, parse_replay_xml
from tests.helpers import AWAY_TEAM_NAME, HOME_TEAM_NAME, b64, end_turn, replay_xml, roll, sequence, standard_match_xml, step

FLAT_REPLAY = """
<Replay>
  <Teams>
    <Team id="a" name="Alpha" coach="Morg Thrud"/>
    <Team id="b" name="Bravo"/>
  </Teams>
  <Turns>
    <Turn number="1" teamId="a"><Action type="Blitz"/><Action type="Dodge"/></Turn>
    <Turn number="2" teamId="b"><TurnOver/></Turn>
  </Turns>
</Replay>
"""


def test_structured_replay_resolves_identity_teams_and_players() -> None:
    replay = parse_replay_xml(standard_match_xml())
    assert replay.match_id == "match-42"
    assert replay.root_tag == "Replay"
    assert replay.replay_version == "1-4-0-2"
    assert replay.source_format is SourceFormat.XML
    assert [(team.id, team.name, team.coach) for team in replay.teams] == [
        ("0", HOME_TEAM_NAME, "Coach Ada"),
        ("1", AWAY_TEAM_NAME, "Coach Bo"),
    ]
    assert replay.player_names_by_team_and_id["0:11"] == "Griff Oberwald"
    assert replay.player_names_by_id["21"] == "Varag Ghoul-Chewer"
    assert len(replay.turns) == 3


def test_structured_replay_diagnostics() -> None:
    diagnostics = parse_replay_xml(standard_match_xml()).diagnostics
    assert diagnostics.used_structured_extraction
    assert diagnostics.unknown_code_total == 0
    assert diagnostics.turn_attribution.total == 3
    assert diagnostics.turn_attribution.explicit == 3
    assert diagnostics.turn_attribution.unresolved == 0
    # The synthetic turnover carries no team and is attributed from its turn.
    assert diagnostics.event_attribution.turn_inferred == 1
    assert diagnostics.event_attribution.explicit == 4
    assert diagnostics.event_attribution.unresolved == 0


def test_turnover_event_inherits_the_turn_owner() -> None:
    replay = parse_replay_xml(standard_match_xml())
    turnover = replay.turns[1].events[-1]
    assert turnover.actor_team_id == "1"
    assert turnover.actor_team_source is ActorTeamSource.TURN_INFERRED


def test_events_without_team_ids_are_attributed_through_the_roster() -> None:
    xml = replay_xml(
        sequence(
            step(1, player_id="21"),
            roll(3, difficulty=3, outcome=1, dice=[4], player_id="21"),
            roll(3, difficulty=3, outcome=1, dice=[5], player_id="21"),
            roll(3, difficulty=3, outcome=1, dice=[6], player_id="21"),
        ),
        end_turn(1),
    )
    turn = parse_replay_xml(xml).turns[0]
    assert turn.team_id == "1"
    assert turn.team_inference_confidence is InferenceConfidence.HIGH
    assert {event.actor_team_source for event in turn.events} == {ActorTeamSource.PLAYER_MAP}


def test_unknown_codes_surface_in_model_and_diagnostics() -> None:
    xml = replay_xml(sequence(step(77, team_id="0"), roll(555, difficulty=3, outcome=1, dice=[3], team_id="0")), end_turn(1))
    replay = parse_replay_xml(xml)
    assert {(u.category.value, u.code) for u in replay.unknown_codes} == {("step", 77), ("roll", 555)}
    assert replay.diagnostics.unknown_code_total == 2
    assert replay.diagnostics.unknown_codes_by_category["roll"] == 1
    assert replay.diagnostics.unknown_codes_by_category["action"] == 0


def test_flat_layout_falls_back_to_tree_walk() -> None:
    replay = parse_replay_xml(FLAT_REPLAY)
    assert [(team.id, team.name, team.coach) for team in replay.teams] == [("a", "Alpha", "Morg Thrud"), ("b", "Bravo", None)]
    assert [turn.team_id for turn in replay.turns] == ["a", "b"]
    assert "blitz" in replay.turns[0].action_texts
    assert replay.turns[0].events == ()
    assert not replay.diagnostics.used_structured_extraction


def test_match_id_falls_back_to_stable_content_hash() -> None:
    xml = replay_xml(end_turn(1), match_id=None)
    first = parse_replay_xml(xml).match_id
    assert first.startswith("match-")
    assert parse_replay_xml(xml).match_id == first


def test_encoded_team_names_are_made_readable() -> None:
    assert decode_readable_text(b64("Griff")) == "Griff"
    assert decode_readable_text("Alpha") == "Alpha"
    assert decode_readable_text(b64("\x00\x01binary")) == b64("\x00\x01binary")


@pytest.mark.parametrize(
    ("xml", "code"),
    [
        ("", "EMPTY_INPUT"),
        ("<Replay><Unclosed></Replay>", "MALFORMED_XML"),
        ("<Replay><ReplayVersion>v2-beta</ReplayVersion></Replay>", "UNSUPPORTED_REPLAY_VERSION"),
    ],
)
def test_invalid_replay_xml_is_rejected(xml: str, code: str) -> None:
    with pytest.raises(ReplayValidationError) as excinfo:
        parse_replay_xml(xml)
    assert excinfo.value.codes == [code]
