from __future__ import annotations

import base64
import binascii
import logging
import re
import xml.etree.ElementTree as ET
from types import MappingProxyType
from typing import Iterable

from bbluck.contracts import (
    ActorTeamSource,
    EventAttributionCounts,
    InferenceConfidence,
    ParserDiagnostics,
    ReplayModel,
    ReplayTurn,
    SourceFormat,
    Team,
    TurnAttributionCounts,
    UnknownCode,
    UnknownCodeCategory,
)
from bbluck.core import content_hash, validation_failure
from bbluck.replay.attribution import annotate_turn_attribution, build_player_ownership_index
from bbluck.replay.extract import extract_structured_turns

logger = logging.getLogger(__name__)

REPLAY_VERSION_PATTERN = re.compile(r"^\d+-\d+-\d+-\d+$")
BASE64_TEXT = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")
PRINTABLE_TEXT = re.compile(r"^[\x20-\x7E\t\r\n]+$")
PLACEHOLDER_TEAM_NAME = re.compile(r"^Team \d+$", re.IGNORECASE)
NUMERIC_LABEL = re.compile(r"^\d+$")

MATCH_ID_PATHS = (
    "NotificationGameJoined/GameInfos/Competition/CompetitionInfos/MatchId",
    "NotificationGameJoined/GameInfos/Id",
    "MatchId",
    "matchId",
    "Metadata/MatchId",
    "Game/Id",
    "id",
)
TEAM_PATHS = (
    "NotificationGameJoined/InitialBoardState/ListTeams/TeamState",
    "Teams/Team",
    "Sides/Side",
    "TeamStates/TeamState",
)
TEAM_WALK_TAGS = ("Side", "TeamState", "Team")
TURN_PATHS = ("Turns/Turn", "GameTurns/GameTurn", "TurnHistory/Turn")
TURN_WALK_TAGS = ("Turn", "GameTurn", "PlayerTurn")
MAX_ACTION_TOKENS = 4000


def decode_readable_text(value: str) -> str:
    """Return the base64-decoded form of ``value`` when it decodes to printable text."""
    normalized = value.strip()
    if not BASE64_TEXT.match(normalized) or len(normalized) % 4 != 0:
        return value
    try:
        decoded = base64.b64decode(normalized, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return value
    return decoded if PRINTABLE_TEXT.match(decoded) else value


def _field(element: ET.Element, *names: str) -> str | None:
    for name in names:
        if "/" not in name and name in element.attrib:
            value = element.attrib[name].strip()
        else:
            value = (element.findtext(name) or "").strip()
        if value:
            return value
    return None


def _dedupe(elements: Iterable[ET.Element]) -> list[ET.Element]:
    seen: set[int] = set()
    result: list[ET.Element] = []
    for element in elements:
        if id(element) not in seen:
            seen.add(id(element))
            result.append(element)
    return result


def _walk(root: ET.Element, tags: Iterable[str]) -> list[ET.Element]:
    wanted = set(tags)
    return [element for element in root.iter() if element is not root and element.tag in wanted]


def _is_placeholder(name: str) -> bool:
    return bool(PLACEHOLDER_TEAM_NAME.match(name.strip()))


def _is_numeric(value: str) -> bool:
    return bool(NUMERIC_LABEL.match(value.strip()))


def _choose_team_name(candidate: str, index: int) -> str:
    clean = candidate.strip()
    if clean and not _is_placeholder(clean) and not _is_numeric(clean):
        return clean
    return f"Team {index + 1}"


def _choose_coach_name(candidate: str) -> str | None:
    clean = candidate.strip()
    if not clean or _is_numeric(clean):
        return None
    return clean


def dedupe_teams(teams: Iterable[Team]) -> list[Team]:
    by_id: dict[str, Team] = {}
    for team in teams:
        existing = by_id.get(team.id)
        if existing is None:
            by_id[team.id] = team
        elif _is_placeholder(existing.name) and not _is_placeholder(team.name):
            by_id[team.id] = team
        elif not existing.coach and team.coach:
            by_id[team.id] = team
    return list(by_id.values())


def _teams_from_game_infos(root: ET.Element) -> list[Team]:
    teams: list[Team] = []
    for index, gamer in enumerate(root.findall("NotificationGameJoined/GameInfos/GamersInfos/GamerInfos")):
        raw_id = _field(gamer, "Roster/Team/TeamId", "TeamId", "Roster/TeamId", "Slot") or str(index)
        name = decode_readable_text(_field(gamer, "Roster/Name", "Roster/Team/Name") or "")
        coach = _choose_coach_name(decode_readable_text(_field(gamer, "Name", "Roster/Coach", "Roster/Team/Coach") or ""))
        teams.append(Team(id=raw_id, name=_choose_team_name(name, index), coach=coach))
    return dedupe_teams(teams)


def _normalize_team(element: ET.Element, index: int) -> Team:
    team_id = _field(element, "id", "teamId", "TeamId", "Data/TeamId", "ID", "SideId", "GamerSlot") or f"team-{index + 1}"
    name = _field(element, "name", "teamName", "TeamName", "Name", "Data/Name", "SideName") or f"Team {index + 1}"
    coach = _field(element, "coach", "Coach", "CoachName")
    return Team(
        id=team_id,
        name=decode_readable_text(name),
        coach=decode_readable_text(coach) if coach else None,
    )


def _fallback_teams(root: ET.Element) -> list[Team]:
    candidates = _dedupe(element for path in TEAM_PATHS for element in root.findall(path))
    if not candidates:
        joined = root.find("NotificationGameJoined")
        candidates = _dedupe(_walk(joined if joined is not None else root, TEAM_WALK_TAGS))
    deduped = dedupe_teams(_normalize_team(element, index) for index, element in enumerate(candidates))
    named = [team for team in deduped if not _is_placeholder(team.name)]
    return named if len(named) >= 2 else deduped


def _normalize_player_name(raw: str | None) -> str | None:
    if raw is None:
        return None
    decoded = decode_readable_text(raw).strip()
    if not decoded or _is_numeric(decoded):
        return None
    return decoded


def extract_player_names(root: ET.Element) -> tuple[dict[str, str], dict[str, str]]:
    by_team_and_id: dict[str, str] = {}
    by_id: dict[str, str] = {}
    conflicting: set[str] = set()

    for state in root.findall("NotificationGameJoined/InitialBoardState/ListTeams/TeamState"):
        state_team_id = _field(state, "Data/TeamId", "TeamId", "Side")
        for player in state.findall("ListPitchPlayers/PlayerState"):
            player_id = _field(player, "Id", "PlayerId", "id")
            name = _normalize_player_name(_field(player, "Data/Name", "Name"))
            team_id = _field(player, "Data/TeamId", "TeamId") or state_team_id
            if player_id is None or name is None:
                continue
            if team_id:
                by_team_and_id[f"{team_id}:{player_id}"] = name
            if player_id in conflicting:
                continue
            existing = by_id.get(player_id)
            if existing is None:
                by_id[player_id] = name
            elif existing != name:
                del by_id[player_id]
                conflicting.add(player_id)
    return by_team_and_id, by_id


def _resolve_match_id(root: ET.Element, xml: str) -> str:
    for path in MATCH_ID_PATHS:
        value = _field(root, path)
        if value:
            return decode_readable_text(value)
    return f"match-{content_hash(xml)}"


def _tokenize(raw: str) -> list[str]:
    spaced = re.sub(r"([a-z])([A-Z])", r"\1 \2", raw).lower()
    return [token for token in re.split(r"[^a-z0-9]+", spaced) if token]


def _collect_action_texts(element: ET.Element) -> tuple[str, ...]:
    tokens: list[str] = []
    for node in element.iter():
        if len(tokens) > MAX_ACTION_TOKENS:
            break
        if node is not element:
            tokens.extend(_tokenize(node.tag))
        for key, value in node.attrib.items():
            tokens.extend(_tokenize(key))
            tokens.extend(_tokenize(value))
        if node.text and node.text.strip():
            tokens.extend(_tokenize(node.text))
    return tuple(dict.fromkeys(tokens))


def _normalize_fallback_turn(element: ET.Element, index: int) -> ReplayTurn:
    raw_number = _field(element, "number", "turn", "Turn", "index", "turnNumber", "Sequence")
    try:
        turn_number = int(raw_number) if raw_number is not None else index + 1
    except ValueError:
        turn_number = index + 1
    return ReplayTurn(
        turn_number=turn_number,
        team_id=_field(element, "teamId", "TeamId", "team", "Side", "sideId"),
        action_texts=_collect_action_texts(element),
    )


def _fallback_turns(root: ET.Element) -> list[ReplayTurn]:
    candidates = _dedupe(
        [element for path in TURN_PATHS for element in root.findall(path)] + _walk(root, TURN_WALK_TAGS)
    )
    return [_normalize_fallback_turn(element, index) for index, element in enumerate(candidates)]


def build_parser_diagnostics(
    turns: Iterable[ReplayTurn],
    unknown_codes: Iterable[UnknownCode],
    explicit_turn_indexes: set[int],
    used_structured_extraction: bool,
) -> ParserDiagnostics:
    by_category = {category.value: 0 for category in UnknownCodeCategory}
    for unknown in unknown_codes:
        by_category[unknown.category.value] += unknown.occurrences

    turns = list(turns)
    inferred = unresolved = 0
    confidence = {level: 0 for level in InferenceConfidence}
    events = {source: 0 for source in ActorTeamSource}
    unresolved_events = 0
    for index, turn in enumerate(turns):
        explicit = index in explicit_turn_indexes
        if turn.inferred_team_id and not explicit:
            inferred += 1
        if not explicit and not turn.inferred_team_id:
            unresolved += 1
        if turn.team_inference_confidence is not None:
            confidence[turn.team_inference_confidence] += 1
        for event in turn.events:
            if event.actor_team_id and event.actor_team_source:
                events[event.actor_team_source] += 1
            else:
                unresolved_events += 1

    return ParserDiagnostics(
        unknown_code_total=sum(by_category.values()),
        unknown_codes_by_category=MappingProxyType(by_category),
        turn_attribution=TurnAttributionCounts(
            total=len(turns),
            explicit=len(explicit_turn_indexes),
            inferred=inferred,
            unresolved=unresolved,
            high=confidence[InferenceConfidence.HIGH],
            medium=confidence[InferenceConfidence.MEDIUM],
            low=confidence[InferenceConfidence.LOW],
        ),
        event_attribution=EventAttributionCounts(
            explicit=events[ActorTeamSource.EXPLICIT],
            player_map=events[ActorTeamSource.PLAYER_MAP],
            turn_inferred=events[ActorTeamSource.TURN_INFERRED],
            unresolved=unresolved_events,
        ),
        used_structured_extraction=used_structured_extraction,
    )


def parse_replay_xml(xml: str, *, source_format: SourceFormat = SourceFormat.XML) -> ReplayModel:
    text = (xml or "").strip()
    if not text:
        raise validation_failure("EMPTY_INPUT", "Replay XML cannot be empty.")
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise validation_failure("MALFORMED_XML", f"Replay XML parse failed: {exc}") from exc

    replay_version = _field(root, "ReplayVersion")
    if replay_version is not None and not REPLAY_VERSION_PATTERN.match(replay_version):
        raise validation_failure(
            "UNSUPPORTED_REPLAY_VERSION",
            f"Unsupported replay version format: {replay_version}",
            field_path="ReplayVersion",
        )

    structured = extract_structured_turns(text)
    joined_teams = _teams_from_game_infos(root)
    teams = joined_teams if len(joined_teams) >= 2 else _fallback_teams(root)
    by_team_and_id, by_id = extract_player_names(root)

    if structured.turns:
        base_turns = list(structured.turns)
    else:
        base_turns = _fallback_turns(root)
        logger.info("no structured replay markers found; walked %d generic turn nodes", len(base_turns))

    if structured.unknown_codes:
        logger.info(
            "replay contains %d unknown code(s): %s",
            len(structured.unknown_codes),
            ", ".join(f"{u.category.value}:{u.code}x{u.occurrences}" for u in structured.unknown_codes[:5]),
        )

    explicit_turn_indexes = {index for index, turn in enumerate(base_turns) if turn.team_id}
    index = build_player_ownership_index(by_team_and_id)
    turns = tuple(annotate_turn_attribution(turn, index) for turn in base_turns)

    return ReplayModel(
        match_id=_resolve_match_id(root, text),
        root_tag=root.tag,
        replay_version=replay_version,
        source_format=source_format,
        teams=tuple(teams),
        turns=turns,
        unknown_codes=structured.unknown_codes,
        diagnostics=build_parser_diagnostics(turns, structured.unknown_codes, explicit_turn_indexes, bool(structured.turns)),
        player_names_by_team_and_id=MappingProxyType(by_team_and_id),
        player_names_by_id=MappingProxyType(by_id),
    )
