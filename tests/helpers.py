from __future__ import annotations

import base64
from typing import Iterable, Mapping

from bbluck.contracts import (
    LuckCategory,
    LuckEvent,
    LuckEventMetadata,
    LuckExplainability,
    ScoringStatus,
)

HOME_TEAM_ID = "0"
AWAY_TEAM_ID = "1"
HOME_TEAM_NAME = "Reikland Reavers"
AWAY_TEAM_NAME = "Gouged Eye"

ROSTERS: Mapping[str, Mapping[str, str]] = {
    HOME_TEAM_ID: {"11": "Griff Oberwald", "12": "Mighty Zug"},
    AWAY_TEAM_ID: {"21": "Varag Ghoul-Chewer", "22": "Ugroth Bolgrot"},
}


def b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def payload_xml(
    root: str,
    fields: Mapping[str, object] | None = None,
    *,
    dice: Iterable[int] = (),
    die_type: int | None = 0,
    modifiers: Iterable[tuple[int, int]] = (),
) -> str:
    parts = [f"<{root}>"]
    for key, value in (fields or {}).items():
        if value is not None:
            parts.append(f"<{key}>{value}</{key}>")
    dice = list(dice)
    if dice:
        parts.append("<Dice>")
        for value in dice:
            die_type_xml = f"<DieType>{die_type}</DieType>" if die_type is not None else ""
            parts.append(f"<Die>{die_type_xml}<Value>{value}</Value></Die>")
        parts.append("</Dice>")
    modifiers = list(modifiers)
    if modifiers:
        parts.append("<Modifiers>")
        parts.extend(f"<Modifier><Skill>{skill}</Skill><Value>{value}</Value></Modifier>" for skill, value in modifiers)
        parts.append("</Modifiers>")
    parts.append(f"</{root}>")
    return "".join(parts)


def step(step_type: int, *, player_id: str | None = None, team_id: str | None = None, root: str = "PlayerStep") -> str:
    return payload_xml(root, {"StepType": step_type, "PlayerId": player_id, "TeamId": team_id})


def roll(
    roll_type: int,
    *,
    difficulty: int | None = None,
    requirement: int | None = None,
    outcome: int | None = None,
    dice: Iterable[int] = (),
    team_id: str | None = None,
    player_id: str | None = None,
    target_id: str | None = None,
    root: str = "ResultRoll",
    die_type: int | None = 0,
    modifiers: Iterable[tuple[int, int]] = (),
) -> str:
    fields = {
        "RollType": roll_type,
        "Difficulty": difficulty,
        "Requirement": requirement,
        "Outcome": outcome,
        "TeamId": team_id,
        "PlayerId": player_id,
        "TargetId": target_id,
    }
    return payload_xml(root, fields, dice=dice, die_type=die_type, modifiers=modifiers)


def sequence(step_payload: str, *result_payloads: str, step_name: str = "PlayerStep") -> str:
    results = "".join(
        f"<StringMessage><Name>{_root_tag(payload)}</Name><MessageData>{b64(payload)}</MessageData></StringMessage>"
        for payload in result_payloads
    )
    return (
        "<EventExecuteSequence><Sequence>"
        f"<Step><Name>{step_name}</Name><MessageData>{b64(step_payload)}</MessageData></Step>"
        f"{results}</Sequence></EventExecuteSequence>"
    )


def end_turn(reason: int = 1, finishing_turn_type: int | None = None) -> str:
    finishing = f"<FinishingTurnType>{finishing_turn_type}</FinishingTurnType>" if finishing_turn_type is not None else ""
    return f"<EventEndTurn><Reason>{reason}</Reason>{finishing}</EventEndTurn>"


def carrier(player_id: str) -> str:
    return f"<Carrier>{player_id}</Carrier>"


def active_gamer(gamer_id: str) -> str:
    return f"<EventActiveGamerChanged><NewActiveGamer>{gamer_id}</NewActiveGamer></EventActiveGamerChanged>"


def _root_tag(payload: str) -> str:
    return payload[1 : payload.index(">")]


def _gamer_infos() -> str:
    gamers = []
    for slot, (team_id, name, coach) in enumerate(
        ((HOME_TEAM_ID, HOME_TEAM_NAME, "Coach Ada"), (AWAY_TEAM_ID, AWAY_TEAM_NAME, "Coach Bo"))
    ):
        gamers.append(
            f"<GamerInfos><Slot>{slot}</Slot><Name>{coach}</Name>"
            f"<Roster><Name>{name}</Name><Team><TeamId>{team_id}</TeamId></Team></Roster></GamerInfos>"
        )
    return "".join(gamers)


def _team_states() -> str:
    states = []
    for team_id, players in ROSTERS.items():
        pitch = "".join(
            f"<PlayerState><Id>{player_id}</Id><Data><Name>{name}</Name></Data></PlayerState>"
            for player_id, name in players.items()
        )
        states.append(f"<TeamState><Data><TeamId>{team_id}</TeamId></Data><ListPitchPlayers>{pitch}</ListPitchPlayers></TeamState>")
    return "".join(states)


def replay_xml(*tokens: str, match_id: str | None = "match-42", replay_version: str = "1-4-0-2") -> str:
    match_xml = f"<Id>{match_id}</Id>" if match_id is not None else ""
    return (
        f"<Replay><ReplayVersion>{replay_version}</ReplayVersion>"
        "<NotificationGameJoined>"
        f"<GameInfos>{match_xml}<GamersInfos>{_gamer_infos()}</GamersInfos></GameInfos>"
        f"<InitialBoardState><ListTeams>{_team_states()}</ListTeams></InitialBoardState>"
        "</NotificationGameJoined>"
        f"<ReplaySteps>{''.join(tokens)}</ReplaySteps></Replay>"
    )


def standard_match_tokens() -> list[str]:
    """Three turns: a 4+ dodge that works, a 2+ dodge that fails, and a block with its dice summary."""
    return [
        sequence(
            step(1, player_id="11", team_id=HOME_TEAM_ID),
            roll(3, difficulty=4, outcome=1, dice=[4], team_id=HOME_TEAM_ID, player_id="11"),
        ),
        end_turn(1),
        sequence(
            step(1, player_id="21", team_id=AWAY_TEAM_ID),
            roll(3, difficulty=2, outcome=0, dice=[1], team_id=AWAY_TEAM_ID, player_id="21"),
        ),
        end_turn(2),
        sequence(
            step(6, player_id="12", team_id=HOME_TEAM_ID),
            roll(2, difficulty=4, outcome=1, dice=[5], team_id=HOME_TEAM_ID, player_id="12", target_id="21"),
            roll(3, outcome=2, team_id=HOME_TEAM_ID, player_id="12", target_id="21", root="ResultBlockRoll"),
        ),
        end_turn(1),
    ]


def standard_match_xml() -> str:
    return replay_xml(*standard_match_tokens())


def luck_event(
    event_id: str,
    *,
    turn: int = 1,
    event_index: int = 0,
    team_id: str = HOME_TEAM_ID,
    source_tag: str = "ResultRoll",
    roll_type: int | None = 2,
    category: LuckCategory | None = LuckCategory.BLOCK,
    status: ScoringStatus = ScoringStatus.SCORED,
    player_id: str | None = None,
    target_id: str | None = None,
    weighted_delta: float = 0.0,
) -> LuckEvent:
    return LuckEvent(
        id=event_id,
        turn=turn,
        event_index=event_index,
        team_id=team_id,
        team_name=f"team {team_id}",
        player_id=player_id,
        target_id=target_id,
        type=category,
        label=event_id,
        probability_success=0.5,
        actual_success=True,
        delta=weighted_delta,
        weighted_delta=weighted_delta,
        scoring_status=status,
        status_reason="scored: test" if status is ScoringStatus.SCORED else "excluded: test",
        is_roll_candidate=status is ScoringStatus.SCORED,
        explainability=LuckExplainability(
            target=4,
            weight=0.75,
            base_odds=0.5,
            reroll_adjusted_odds=0.5,
            formula_summary="",
            inputs_summary="",
        ),
        metadata=LuckEventMetadata(
            source_tag=source_tag,
            roll_type=roll_type,
            roll_label=None,
            step_type=None,
            step_label=None,
            action_code=None,
            action_label=None,
            outcome_code=None,
            requirement=None,
            difficulty=4,
            dice=(),
            die_types=(),
            modifiers=(),
            modifiers_sum=0,
            reroll_available=False,
            reroll_used=False,
            skills_used=(),
            normalization_flags=(),
            normalization_notes=(),
        ),
    )
