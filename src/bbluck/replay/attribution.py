from __future__ import annotations

from dataclasses import replace
from types import MappingProxyType
from typing import Mapping

from bbluck.contracts import (
    ActorTeamSource,
    InferenceConfidence,
    PlayerOwnershipIndex,
    ReplayEvent,
    ReplayEventType,
    ReplayModel,
    ReplayTurn,
    TurnOwnershipInference,
)

EXPLICIT_TURN_TEAM_SCORE = 3
BALL_CARRIER_SCORE = 3
EVENT_EVIDENCE_WEIGHTS: Mapping[ReplayEventType, int] = MappingProxyType(
    {
        ReplayEventType.DODGE: 4,
        ReplayEventType.BLITZ: 4,
        ReplayEventType.FOUL: 4,
        ReplayEventType.REROLL: 4,
        ReplayEventType.BLOCK: 3,
        ReplayEventType.BALL_STATE: 2,
    }
)


def _split_team_player_key(key: str) -> tuple[str, str] | None:
    team_id, sep, player_id = key.partition(":")
    if not sep or not team_id or not player_id:
        return None
    return team_id, player_id


def build_player_ownership_index(player_names_by_team_and_id: Mapping[str, str] | None) -> PlayerOwnershipIndex:
    player_to_team: dict[str, str] = {}
    team_to_players: dict[str, set[str]] = {}
    ambiguous: set[str] = set()

    for key in (player_names_by_team_and_id or {}):
        parsed = _split_team_player_key(key)
        if parsed is None:
            continue
        team_id, player_id = parsed
        if player_id not in ambiguous:
            existing = player_to_team.get(player_id)
            if existing is None:
                player_to_team[player_id] = team_id
            elif existing != team_id:
                ambiguous.add(player_id)
                del player_to_team[player_id]
        team_to_players.setdefault(team_id, set()).add(player_id)

    return PlayerOwnershipIndex(
        player_to_team=MappingProxyType(player_to_team),
        ambiguous_player_ids=frozenset(ambiguous),
        team_to_players=MappingProxyType({team: frozenset(players) for team, players in team_to_players.items()}),
    )


def infer_event_team(event: ReplayEvent, index: PlayerOwnershipIndex) -> tuple[str | None, ActorTeamSource | None]:
    if event.actor_team_id:
        return event.actor_team_id, event.actor_team_source or ActorTeamSource.EXPLICIT
    if event.team_id:
        return event.team_id, ActorTeamSource.EXPLICIT
    if event.player_id:
        owner = index.player_to_team.get(event.player_id)
        if owner:
            return owner, ActorTeamSource.PLAYER_MAP
    return None, None


def _confidence(top: int, second: int) -> InferenceConfidence:
    gap = top - second
    if top >= 10 and gap >= 5:
        return InferenceConfidence.HIGH
    if top >= 5 and gap >= 2:
        return InferenceConfidence.MEDIUM
    return InferenceConfidence.LOW


def infer_turn_ownership(turn: ReplayTurn, index: PlayerOwnershipIndex) -> TurnOwnershipInference:
    scores: dict[str, int] = {}

    def add(team_id: str | None, points: int) -> None:
        if team_id:
            scores[team_id] = scores.get(team_id, 0) + points

    add(turn.team_id, EXPLICIT_TURN_TEAM_SCORE)
    for event in turn.events:
        team_id, _ = infer_event_team(event, index)
        add(team_id, EVENT_EVIDENCE_WEIGHTS.get(event.type, 1))
    if turn.ball_carrier_player_id:
        add(index.player_to_team.get(turn.ball_carrier_player_id), BALL_CARRIER_SCORE)

    ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    if not ranked:
        return TurnOwnershipInference(team_id=None, confidence=InferenceConfidence.LOW, scores=MappingProxyType({}))
    if len(ranked) > 1 and ranked[0][1] == ranked[1][1]:
        return TurnOwnershipInference(team_id=None, confidence=InferenceConfidence.LOW, scores=MappingProxyType(scores))

    top = ranked[0][1]
    second = ranked[1][1] if len(ranked) > 1 else 0
    return TurnOwnershipInference(team_id=ranked[0][0], confidence=_confidence(top, second), scores=MappingProxyType(scores))


def _attribute_event(event: ReplayEvent, index: PlayerOwnershipIndex, fallback_team_id: str | None) -> ReplayEvent:
    team_id, source = infer_event_team(event, index)
    if team_id:
        return replace(event, actor_team_id=team_id, actor_team_source=source)
    if fallback_team_id:
        return replace(event, actor_team_id=fallback_team_id, actor_team_source=ActorTeamSource.TURN_INFERRED)
    return event


def _action_texts(events: tuple[ReplayEvent, ...]) -> tuple[str, ...]:
    texts: list[str] = []
    for event in events:
        for value in (event.type.value, event.source_tag, event.action_label, event.step_label):
            if value and value.lower() not in texts:
                texts.append(value.lower())
    return tuple(texts)


def annotate_turn_attribution(turn: ReplayTurn, index: PlayerOwnershipIndex) -> ReplayTurn:
    inferred = infer_turn_ownership(turn, index)
    events = tuple(_attribute_event(event, index, inferred.team_id) for event in turn.events)
    team_id = turn.team_id
    if team_id is None and inferred.confidence in {InferenceConfidence.HIGH, InferenceConfidence.MEDIUM}:
        team_id = inferred.team_id
    return replace(
        turn,
        team_id=team_id,
        inferred_team_id=inferred.team_id,
        team_inference_confidence=inferred.confidence,
        events=events,
    )


def _belongs_to_team(event: ReplayEvent, team_id: str, turn_team_id: str | None, index: PlayerOwnershipIndex) -> bool:
    player_team = index.player_to_team.get(event.player_id) if event.player_id else None
    if player_team and player_team != team_id:
        return False
    owner, _ = infer_event_team(event, index)
    if owner:
        return owner == team_id
    return not (turn_team_id and turn_team_id != team_id)


def scope_turn_to_team(turn: ReplayTurn, team_id: str, index: PlayerOwnershipIndex) -> ReplayTurn:
    inferred = infer_turn_ownership(turn, index)
    turn_team_id = inferred.team_id or turn.team_id
    events = tuple(
        event
        for event in (_attribute_event(e, index, turn_team_id) for e in turn.events)
        if _belongs_to_team(event, team_id, turn_team_id, index)
    )

    carrier = turn.ball_carrier_player_id
    if carrier:
        carrier_team = index.player_to_team.get(carrier)
        if carrier_team and carrier_team != team_id:
            carrier = None

    return replace(
        turn,
        team_id=team_id,
        inferred_team_id=turn_team_id,
        team_inference_confidence=inferred.confidence,
        ball_carrier_player_id=carrier,
        events=events,
        action_texts=_action_texts(events),
    )


def scope_replay_to_team(replay: ReplayModel, team_id: str) -> ReplayModel:
    """Re-derive every turn from ``team_id``'s point of view.

    Opponent events, opponent ball carriers and opponent player names are
    removed so the scoped model can be handed to coaching consumers.
    """
    index = build_player_ownership_index(replay.player_names_by_team_and_id)
    turns = tuple(scope_turn_to_team(turn, team_id, index) for turn in replay.turns)
    scoped_names = {
        key: name
        for key, name in replay.player_names_by_team_and_id.items()
        if key.partition(":")[0] == team_id
    }
    scoped_global = {
        player_id: name
        for player_id, name in replay.player_names_by_id.items()
        if index.player_to_team.get(player_id) == team_id
    }
    return replace(
        replay,
        turns=turns,
        analysis_team_id=team_id,
        player_names_by_team_and_id=MappingProxyType(scoped_names),
        player_names_by_id=MappingProxyType(scoped_global),
    )
