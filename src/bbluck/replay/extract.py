from __future__ import annotations

import math
import re
import xml.etree.ElementTree as ET
from collections import Counter
from dataclasses import dataclass, field

from bbluck.contracts import (
    ActorTeamSource,
    DiceModifier,
    EventPayload,
    ReplayEvent,
    ReplayEventType,
    ReplayTurn,
    UnknownCode,
    UnknownCodeCategory,
)
from bbluck.replay.decode import looks_like_xml, peel_base64
from bbluck.replay.mappings import (
    ACTION_CODE_LABELS,
    END_TURN_REASON_LABELS,
    MANUAL_END_REASON,
    ROLL_TYPE_LABELS,
    STEP_TYPE_LABELS,
    is_known_code,
    label_for_code,
)

STRUCTURED_TOKEN = re.compile(r"<(EventExecuteSequence|EventEndTurn|EventActiveGamerChanged|Carrier)>(.*?)</\1>", re.DOTALL)
STEP_MESSAGE_DATA = re.compile(r"<Step><Name>[^<]*</Name><MessageData>([^<]*)</MessageData>")
RESULT_MESSAGE_DATA = re.compile(r"<StringMessage><Name>[^<]*</Name><MessageData>([^<]*)</MessageData></StringMessage>")
NEW_ACTIVE_GAMER = re.compile(r"<NewActiveGamer>([^<]+)</NewActiveGamer>")
END_TURN_REASON = re.compile(r"<Reason>(-?\d+)</Reason>")
FINISHING_TURN_TYPE = re.compile(r"<FinishingTurnType>(-?\d+)</FinishingTurnType>")

DODGE_STEP_TYPE = 1
BLITZ_ACTION = 2
FOUL_ACTION = 6

BLOCK_RESULT_TAGS = frozenset({"ResultBlockRoll", "ResultBlockOutcome", "ResultPushBack"})
FOUL_RESULT_TAGS = frozenset({"ResultFoulRoll", "ResultFoulOutcome"})
REROLL_TAGS = frozenset({"QuestionTeamRerollUsage", "ResultTeamRerollUsage"})
INJURY_CHAIN_TAGS = frozenset({"ResultInjuryRoll", "ResultCasualtyRoll", "ResultPlayerRemoval"})


@dataclass(frozen=True, slots=True)
class StructuredExtraction:
    turns: tuple[ReplayTurn, ...]
    unknown_codes: tuple[UnknownCode, ...]
    found_structured_data: bool


@dataclass(slots=True)
class _StepContext:
    root_tag: str | None = None
    step_type: int | None = None
    player_id: str | None = None
    target_id: str | None = None
    team_id: str | None = None
    gamer_id: str | None = None


@dataclass(slots=True)
class _TurnBuilder:
    turn_number: int
    gamer_id: str | None = None
    team_id: str | None = None
    ball_carrier_player_id: str | None = None
    ended_abnormally: bool = False
    end_turn_reason: int | None = None
    end_turn_reason_label: str | None = None
    finishing_turn_type: int | None = None
    events: list[ReplayEvent] = field(default_factory=list)

    def add_sequence(self, events: list[ReplayEvent]) -> None:
        if not events:
            return
        self.events.extend(events)
        if self.team_id is None:
            self.team_id = next((e.team_id or e.actor_team_id for e in events if e.team_id or e.actor_team_id), None)
        if self.gamer_id is None:
            self.gamer_id = next((e.gamer_id for e in events if e.gamer_id), None)

    def build(self) -> ReplayTurn:
        texts: list[str] = []
        for event in self.events:
            for value in (event.type.value, event.source_tag, event.action_label, event.step_label):
                if value and value.lower() not in texts:
                    texts.append(value.lower())
        return ReplayTurn(
            turn_number=self.turn_number,
            team_id=self.team_id,
            gamer_id=self.gamer_id,
            ball_carrier_player_id=self.ball_carrier_player_id,
            ended_abnormally=self.ended_abnormally,
            end_turn_reason=self.end_turn_reason,
            end_turn_reason_label=self.end_turn_reason_label,
            finishing_turn_type=self.finishing_turn_type,
            events=tuple(self.events),
            action_texts=tuple(texts),
        )


def _to_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        pass
    try:
        number = float(value)
    except ValueError:
        return None
    # inf, nan and overflowing exponents are malformed fields, not numbers
    if not math.isfinite(number):
        return None
    return int(number)


def _text(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def parse_payload(message_data: str) -> EventPayload | None:
    """Peel and parse one embedded message payload; ``None`` when it is not usable XML."""
    peeled = peel_base64(message_data)
    if peeled is None:
        return None
    xml, _ = peeled
    try:
        root = ET.fromstring(xml)
    except ET.ParseError:
        return None

    extras: dict[str, str] = dict(root.attrib)
    for child in root:
        if len(child) == 0 and child.text is not None and child.text.strip():
            extras[child.tag] = child.text.strip()

    dice: list[int] = []
    die_types: list[int | None] = []
    for die in root.findall("Dice/Die"):
        value = _to_int(die.findtext("Value"))
        if value is None:
            continue
        dice.append(value)
        die_types.append(_to_int(die.findtext("DieType")))

    modifiers: list[DiceModifier] = []
    skills: list[int] = []
    for node in root.findall("Modifiers/Modifier"):
        value = _to_int(node.findtext("Value"))
        skill = _to_int(node.findtext("Skill"))
        if value is not None:
            modifiers.append(DiceModifier(value=value, skill=skill))
        if skill is not None and skill >= 0 and skill not in skills:
            skills.append(skill)

    return EventPayload(
        root_tag=root.tag,
        roll_type=_to_int(extras.get("RollType")),
        requirement=_to_int(extras.get("Requirement")),
        difficulty=_to_int(extras.get("Difficulty")),
        outcome=_to_int(extras.get("Outcome")),
        dice=tuple(dice),
        die_types=tuple(die_types),
        modifiers=tuple(modifiers),
        skills_used=tuple(skills),
        extras=extras,
    )


def _result_event_type(root_tag: str, action_code: int | None, step_type: int | None) -> tuple[ReplayEventType, str] | None:
    if root_tag in BLOCK_RESULT_TAGS:
        return ReplayEventType.BLOCK, "block_resolution"
    if root_tag == "ResultUseAction" and action_code == BLITZ_ACTION:
        return ReplayEventType.BLITZ, "declared_blitz"
    if root_tag == "ResultUseAction" and action_code == FOUL_ACTION:
        return ReplayEventType.FOUL, "declared_foul"
    if root_tag in FOUL_RESULT_TAGS:
        return ReplayEventType.FOUL, "foul_resolution"
    if root_tag == "ResultRoll":
        if step_type == DODGE_STEP_TYPE:
            return ReplayEventType.DODGE, "dodge_roll"
        return ReplayEventType.ROLL, "generic_roll"
    if root_tag in REROLL_TAGS:
        return ReplayEventType.REROLL, "team_reroll"
    if root_tag in INJURY_CHAIN_TAGS:
        return ReplayEventType.CASUALTY, "injury_chain"
    if root_tag == "ResultTouchBack":
        return ReplayEventType.BALL_STATE, "touchback"
    return None


class StructuredTurnExtractor:
    """Single forward scan over the replay markers, building turns as it goes."""

    def __init__(self) -> None:
        self._unknown: Counter[tuple[UnknownCodeCategory, int]] = Counter()

    def _register(self, category: UnknownCodeCategory, code: int | None) -> None:
        if code is not None and not is_known_code(category, code):
            self._unknown[(category, code)] += 1

    def _step_context(self, block: str) -> tuple[_StepContext, EventPayload | None]:
        match = STEP_MESSAGE_DATA.search(block)
        payload = parse_payload(match.group(1)) if match else None
        if payload is None:
            return _StepContext(), None
        extras = payload.extras
        context = _StepContext(
            root_tag=payload.root_tag,
            step_type=_to_int(extras.get("StepType")),
            player_id=_text(extras.get("PlayerId")),
            target_id=_text(extras.get("TargetId")),
            team_id=_text(extras.get("TeamId")),
            gamer_id=_text(extras.get("GamerId")),
        )
        self._register(UnknownCodeCategory.STEP, context.step_type)
        return context, payload

    def collect_sequence_events(self, block: str) -> list[ReplayEvent]:
        events: list[ReplayEvent] = []
        context, step_payload = self._step_context(block)
        step_label = label_for_code(STEP_TYPE_LABELS, context.step_type, "step")

        if context.root_tag == "BallStep":
            events.append(
                ReplayEvent(
                    type=ReplayEventType.BALL_STATE,
                    source_tag="BallStep",
                    source_label="ball_state_change",
                    step_type=context.step_type,
                    step_label=step_label,
                    player_id=context.player_id,
                    target_id=context.target_id,
                    team_id=context.team_id,
                    actor_team_id=context.team_id,
                    actor_team_source=ActorTeamSource.EXPLICIT if context.team_id else None,
                    gamer_id=context.gamer_id,
                    payload=step_payload,
                )
            )

        for match in RESULT_MESSAGE_DATA.finditer(block):
            payload = parse_payload(match.group(1))
            if payload is None:
                continue
            extras = payload.extras
            action_code = _to_int(extras.get("Action"))
            self._register(UnknownCodeCategory.ACTION, action_code)
            self._register(UnknownCodeCategory.ROLL, payload.roll_type)

            resolved = _result_event_type(payload.root_tag, action_code, context.step_type)
            if resolved is None:
                continue
            event_type, source_label = resolved
            team_id = _text(extras.get("TeamId")) or context.team_id
            events.append(
                ReplayEvent(
                    type=event_type,
                    source_tag=payload.root_tag,
                    source_label=source_label,
                    player_id=_text(extras.get("PlayerId")) or context.player_id,
                    target_id=_text(extras.get("TargetId")) or _text(extras.get("PushedPlayerId")) or context.target_id,
                    team_id=team_id,
                    actor_team_id=team_id,
                    actor_team_source=ActorTeamSource.EXPLICIT if team_id else None,
                    gamer_id=_text(extras.get("GamerId")) or context.gamer_id,
                    action_code=action_code,
                    action_label=label_for_code(ACTION_CODE_LABELS, action_code, "action"),
                    step_type=context.step_type,
                    step_label=step_label,
                    roll_type=payload.roll_type,
                    roll_label=label_for_code(ROLL_TYPE_LABELS, payload.roll_type, "roll"),
                    payload=payload,
                )
            )
        return events

    def extract(self, xml: str) -> StructuredExtraction:
        turns: list[ReplayTurn] = []
        active_gamer_id: str | None = None
        current = _TurnBuilder(turn_number=1)
        found = False

        for token in STRUCTURED_TOKEN.finditer(xml):
            tag, body = token.group(1), token.group(2)
            found = True

            if tag == "EventActiveGamerChanged":
                gamer = NEW_ACTIVE_GAMER.search(body)
                if gamer:
                    active_gamer_id = gamer.group(1).strip()
                    if current.gamer_id is None:
                        current.gamer_id = active_gamer_id
                continue

            if tag == "Carrier":
                carrier_id = body.strip()
                if carrier_id and carrier_id != "-1":
                    current.ball_carrier_player_id = carrier_id
                    current.events.append(
                        ReplayEvent(
                            type=ReplayEventType.BALL_STATE,
                            source_tag="Carrier",
                            source_label="ball_carrier",
                            player_id=carrier_id,
                        )
                    )
                continue

            if tag == "EventExecuteSequence":
                current.add_sequence(self.collect_sequence_events(body))
                continue

            reason_match = END_TURN_REASON.search(body)
            finishing_match = FINISHING_TURN_TYPE.search(body)
            reason = int(reason_match.group(1)) if reason_match else None
            finishing = int(finishing_match.group(1)) if finishing_match else None
            reason_label = label_for_code(END_TURN_REASON_LABELS, reason, "end_turn_reason")
            self._register(UnknownCodeCategory.END_TURN_REASON, reason)
            current.end_turn_reason = reason
            current.end_turn_reason_label = reason_label
            current.finishing_turn_type = finishing
            if reason is not None and reason != MANUAL_END_REASON:
                current.ended_abnormally = True
                current.events.append(
                    ReplayEvent(
                        type=ReplayEventType.TURNOVER,
                        source_tag="EventEndTurn",
                        source_label="turn_end_non_manual",
                        reason_code=reason,
                        reason_label=reason_label,
                        finishing_turn_type=finishing,
                    )
                )
            turns.append(current.build())
            current = _TurnBuilder(turn_number=current.turn_number + 1, gamer_id=active_gamer_id)

        if current.events or current.ball_carrier_player_id:
            turns.append(current.build())

        unknown = sorted(
            (UnknownCode(category=c, code=code, occurrences=n) for (c, code), n in self._unknown.items()),
            key=lambda u: (-u.occurrences, u.category.value, u.code),
        )
        return StructuredExtraction(
            turns=tuple(turns) if found else (),
            unknown_codes=tuple(unknown),
            found_structured_data=found,
        )


def extract_structured_turns(xml: str) -> StructuredExtraction:
    if not looks_like_xml(xml):
        return StructuredExtraction(turns=(), unknown_codes=(), found_structured_data=False)
    return StructuredTurnExtractor().extract(xml)
