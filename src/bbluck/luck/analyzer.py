from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Mapping, Sequence

from bbluck.contracts import (
    Coverage,
    CoverageRate,
    EventPayload,
    LuckCategory,
    LuckEvent,
    LuckEventMetadata,
    LuckExplainability,
    LuckierTeam,
    LuckMomentTag,
    LuckReport,
    LuckTeamAggregate,
    LuckVerdict,
    MatchIdentity,
    ReplayEvent,
    ReplayModel,
    ReplayTurn,
    ScoringStatus,
    Team,
)
from bbluck.core import content_hash, now_utc, round_half_up
from bbluck.luck.classification import ClassificationContext, classify_roll_context, resolve_target
from bbluck.luck.explain import build_how_scored_summary, formula_summary, inputs_summary, moment_label
from bbluck.luck.merge import merge_block_chains, normalize_exclusion_reason
from bbluck.luck.probability import MAX_DIE_SIDES, ProbabilityInput, clamp01, compute_probability, malformed_faces, resolve_actual_success
from bbluck.luck.weights import (
    BLESSED_MAX_PROBABILITY,
    KEY_MOMENT_LIMIT,
    REROLL_LOOKAHEAD,
    SHAFTAROONIE_MIN_PROBABILITY,
    category_key,
    category_weight,
    weight_table,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_TEAM_NAME = re.compile(r"^Team \d+$", re.IGNORECASE)
EMPTY_PAYLOAD = EventPayload(root_tag="")


@dataclass(frozen=True, slots=True)
class RerollFlags:
    available: bool
    used: bool


def extract_reroll_flags(turn_events: Sequence[ReplayEvent], event_index: int, lookahead: int = REROLL_LOOKAHEAD) -> RerollFlags:
    available = used = False
    for following in turn_events[event_index + 1 : event_index + 1 + lookahead]:
        payload = following.payload
        if payload is None:
            continue
        if following.source_tag == "QuestionTeamRerollUsage":
            team = payload.extra_int("CanUseTeamReroll") or 0
            pro = payload.extra_int("CanUseProReroll") or 0
            available = available or team > 0 or pro > 0
        elif following.source_tag == "ResultTeamRerollUsage" and (payload.extra_int("Used") or 0) > 0:
            available = used = True
    return RerollFlags(available=available, used=used)


def resolve_event_team(turn: ReplayTurn, event: ReplayEvent) -> str | None:
    return event.actor_team_id or event.team_id or turn.team_id or turn.inferred_team_id


def _is_playable_name(name: str) -> bool:
    return not PLACEHOLDER_TEAM_NAME.match(name.strip())


def select_match_teams(replay: ReplayModel) -> tuple[Team, Team]:
    usage: Counter[str] = Counter()
    for turn in replay.turns:
        team_id = turn.team_id or turn.inferred_team_id
        if team_id:
            usage[team_id] += 1

    ranked = sorted(replay.teams, key=lambda team: -usage[team.id])
    named = [team for team in ranked if _is_playable_name(team.name)]
    if len(named) >= 2:
        return named[0], named[1]
    if len(ranked) >= 2:
        return ranked[0], ranked[1]

    home = replay.teams[0] if replay.teams else Team(id="home", name="Home Team")
    return home, Team(id="away", name="Away Team")


def _sorted_counts(counter: Mapping[str, int]) -> dict[str, int]:
    return dict(sorted(counter.items(), key=lambda item: (-item[1], item[0])))


def _rate(scored: int, excluded: int) -> CoverageRate:
    total = scored + excluded
    return CoverageRate(scored, excluded, round_half_up(scored / total, 3) if total else 0.0)


def _round_event(event: LuckEvent) -> LuckEvent:
    explain = event.explainability
    return replace(
        event,
        probability_success=round_half_up(event.probability_success, 3),
        delta=round_half_up(event.delta, 3),
        weighted_delta=round_half_up(event.weighted_delta, 3),
        explainability=replace(
            explain,
            weight=round_half_up(explain.weight, 3),
            base_odds=round_half_up(explain.base_odds, 3) if explain.base_odds is not None else None,
            reroll_adjusted_odds=round_half_up(explain.reroll_adjusted_odds, 3) if explain.reroll_adjusted_odds is not None else None,
        ),
    )


class LuckAnalyzer:
    def __init__(self, *, key_moment_limit: int = KEY_MOMENT_LIMIT) -> None:
        self.key_moment_limit = key_moment_limit

    def build_event(self, turn: ReplayTurn, event_index: int, team_id: str, team_name: str) -> LuckEvent:
        event = turn.events[event_index]
        payload = event.payload or EMPTY_PAYLOAD
        roll_type = event.roll_type if event.roll_type is not None else payload.roll_type
        reroll = extract_reroll_flags(turn.events, event_index)
        target = resolve_target(payload.requirement, payload.difficulty)

        flags: list[str] = []
        notes: list[str] = []
        if event.actor_team_id and event.team_id and event.actor_team_id != event.team_id:
            flags.append("ambiguous_team_attribution")
            notes.append(f"actor team {event.actor_team_id} differs from team {event.team_id}")
        if payload.requirement is None and payload.difficulty is None:
            flags.append("missing_target_threshold")
            notes.append("difficulty and requirement were both missing")
        if payload.dice and any(die_type is None for die_type in payload.die_types):
            flags.append("insufficient_dice_metadata")
            notes.append("one or more dice were missing die type; default die sides were inferred")
        if not reroll.available and payload.skills_used:
            flags.append("skill_modifier_present_without_explicit_reroll")
            notes.append("skill modifiers observed without explicit team reroll question")
        malformed = malformed_faces(payload.dice)
        if malformed:
            flags.append("malformed_die_face")
            notes.append(f"die faces {list(malformed)} exceed {MAX_DIE_SIDES} sides")

        classification = classify_roll_context(
            ClassificationContext(
                source_tag=event.source_tag,
                step_type=event.step_type,
                roll_type=roll_type,
                requirement=payload.requirement,
                difficulty=payload.difficulty,
                dice_count=len(payload.dice),
            )
        )
        category = classification.category
        weight = category_weight(category)
        actual = resolve_actual_success(payload.outcome, payload.dice, target)
        metadata = LuckEventMetadata(
            source_tag=event.source_tag,
            roll_type=roll_type,
            roll_label=event.roll_label,
            step_type=event.step_type,
            step_label=event.step_label,
            action_code=event.action_code,
            action_label=event.action_label,
            outcome_code=payload.outcome,
            requirement=payload.requirement,
            difficulty=payload.difficulty,
            dice=payload.dice,
            die_types=payload.die_types,
            modifiers=payload.modifiers,
            modifiers_sum=sum(modifier.value for modifier in payload.modifiers),
            reroll_available=reroll.available,
            reroll_used=reroll.used,
            skills_used=payload.skills_used,
            normalization_flags=tuple(flags),
            normalization_notes=tuple(notes),
            contract_label=classification.contract.label if classification.contract else None,
        )
        common = dict(
            id=f"{turn.turn_number}-{event_index}-{event.source_tag}",
            turn=turn.turn_number,
            event_index=event_index,
            team_id=team_id,
            team_name=team_name,
            player_id=event.player_id,
            target_id=event.target_id,
            type=category,
            is_roll_candidate=classification.is_roll_candidate,
            metadata=metadata,
        )

        if not classification.scored or not actual.deterministic or malformed:
            if not classification.scored:
                reason = classification.reason
            elif malformed:
                reason = "excluded: malformed die face"
            else:
                reason = f"excluded: {actual.reason}"
            return LuckEvent(
                **common,
                label=moment_label(category, actual.success, None, target),
                probability_success=0.0,
                actual_success=actual.success,
                delta=0.0,
                weighted_delta=0.0,
                scoring_status=ScoringStatus.EXCLUDED,
                status_reason=reason,
                explainability=LuckExplainability(
                    target=target,
                    weight=weight,
                    base_odds=None,
                    reroll_adjusted_odds=None,
                    formula_summary="not scored",
                    inputs_summary=inputs_summary(category, target, payload.dice, reroll.available, ScoringStatus.EXCLUDED),
                ),
            )

        probability = compute_probability(
            category,
            ProbabilityInput(
                roll_type=roll_type,
                target=target,
                dice=payload.dice,
                die_types=payload.die_types,
                reroll_available=reroll.available,
            ),
        )
        p = clamp01(probability.probability_success)
        delta = (1.0 if actual.success else 0.0) - p
        weighted = delta * weight
        tags: list[LuckMomentTag] = []
        if actual.success and p <= BLESSED_MAX_PROBABILITY:
            tags.append(LuckMomentTag.BLESSED)
        if not actual.success and p >= SHAFTAROONIE_MIN_PROBABILITY:
            tags.append(LuckMomentTag.SHAFTAROONIE)

        return LuckEvent(
            **common,
            label=moment_label(category, actual.success, p, target),
            probability_success=p,
            actual_success=actual.success,
            delta=delta,
            weighted_delta=weighted,
            scoring_status=ScoringStatus.SCORED,
            status_reason=f"{classification.reason}; {probability.calculation_reason}; {actual.reason}",
            tags=tuple(tags),
            calculation_method=probability.calculation_method,
            calculation_reason=probability.calculation_reason,
            explainability=LuckExplainability(
                target=target,
                weight=weight,
                base_odds=probability.base_odds,
                reroll_adjusted_odds=probability.reroll_adjusted_odds,
                formula_summary=formula_summary(actual.success, p, weight, weighted),
                inputs_summary=inputs_summary(category, target, payload.dice, reroll.available, ScoringStatus.SCORED),
            ),
        )

    def collect_events(self, replay: ReplayModel, tracked: Mapping[str, str]) -> tuple[LuckEvent, ...]:
        events: list[LuckEvent] = []
        for turn in replay.turns:
            for index, event in enumerate(turn.events):
                team_id = resolve_event_team(turn, event)
                if team_id is None or team_id not in tracked:
                    continue
                events.append(self.build_event(turn, index, team_id, tracked[team_id]))
        return merge_block_chains(events)

    def analyze(self, replay: ReplayModel, *, now: datetime | None = None) -> LuckReport:
        home_team, away_team = select_match_teams(replay)
        names = {team.id: team.name for team in replay.teams}
        tracked = {team.id: names.get(team.id, team.name) for team in (home_team, away_team)}
        events = self.collect_events(replay, tracked)

        event_counts: Counter[str] = Counter()
        scored_counts: Counter[str] = Counter()
        weight_sums: dict[str, float] = {team_id: 0.0 for team_id in tracked}
        weighted_totals: dict[str, float] = {team_id: 0.0 for team_id in tracked}
        category_totals: dict[str, dict[str, float]] = {team_id: {c.value: 0.0 for c in LuckCategory} for team_id in tracked}
        scored_by_category: Counter[str] = Counter()
        excluded_by_category: Counter[str] = Counter()
        excluded_by_reason: Counter[str] = Counter()
        scored_by_method: Counter[str] = Counter()
        scored = excluded = candidate_scored = candidate_excluded = 0

        for event in events:
            event_counts[event.team_id] += 1
            if event.scoring_status is ScoringStatus.EXCLUDED:
                excluded += 1
                candidate_excluded += int(event.is_roll_candidate)
                excluded_by_category[category_key(event.type)] += 1
                excluded_by_reason[normalize_exclusion_reason(event.status_reason)] += 1
                continue
            scored += 1
            candidate_scored += int(event.is_roll_candidate)
            scored_counts[event.team_id] += 1
            scored_by_category[category_key(event.type)] += 1
            if event.calculation_method is not None:
                scored_by_method[event.calculation_method.value] += 1
            category_totals[event.team_id][category_key(event.type)] += event.weighted_delta
            weight_sums[event.team_id] += category_weight(event.type)
            weighted_totals[event.team_id] += event.weighted_delta

        aggregates = []
        for team in (home_team, away_team):
            total_weight = weight_sums[team.id]
            luck_score = round_half_up(100 * weighted_totals[team.id] / total_weight, 1) if total_weight > 0 else 0.0
            aggregates.append(
                LuckTeamAggregate(
                    team_id=team.id,
                    team_name=tracked[team.id],
                    luck_score=luck_score,
                    category_scores={key: round_half_up(value, 3) for key, value in category_totals[team.id].items()},
                    event_count=event_counts[team.id],
                    scored_event_count=scored_counts[team.id],
                )
            )
        home, away = aggregates

        coverage = Coverage(
            all_events=_rate(scored, excluded),
            roll_candidates=_rate(candidate_scored, candidate_excluded),
            scored_by_category=_sorted_counts(scored_by_category),
            excluded_by_category=_sorted_counts(excluded_by_category),
            excluded_by_reason=_sorted_counts(excluded_by_reason),
            scored_by_method=_sorted_counts(scored_by_method),
        )
        verdict = summarize_verdict(home, away)
        key_moments = sorted(
            (event for event in events if event.scoring_status is ScoringStatus.SCORED),
            key=lambda event: -abs(event.weighted_delta),
        )[: self.key_moment_limit]

        logger.info(
            "luck analysis for %s: %d events (%d scored), verdict %s gap %.1f",
            replay.match_id,
            len(events),
            scored,
            verdict.luckier_team.value,
            verdict.score_gap,
        )
        return LuckReport(
            id=content_hash(f"{replay.match_id}:{len(events)}:{home.luck_score}:{away.luck_score}"),
            generated_at=now or now_utc(),
            match=MatchIdentity(
                id=replay.match_id,
                home_team=home.team_name,
                away_team=away.team_name,
                home_team_id=home.team_id,
                away_team_id=away.team_id,
            ),
            verdict=verdict,
            coverage=coverage,
            weight_table=weight_table(),
            how_scored_summary=build_how_scored_summary(verdict.summary, coverage, home, away),
            teams=(home, away),
            key_moments=tuple(_round_event(event) for event in key_moments),
            events=tuple(_round_event(event) for event in events),
        )


def summarize_verdict(home: LuckTeamAggregate, away: LuckTeamAggregate) -> LuckVerdict:
    home_score = round_half_up(home.luck_score, 1)
    away_score = round_half_up(away.luck_score, 1)
    gap = round_half_up(abs(home_score - away_score), 1)
    if home_score == away_score:
        return LuckVerdict(luckier_team=LuckierTeam.EVEN, score_gap=gap, summary="Nuffle called this one even.")
    luckier, side = (home, LuckierTeam.HOME) if home_score > away_score else (away, LuckierTeam.AWAY)
    if gap >= 15:
        strength = "decisively"
    elif gap >= 8:
        strength = "clearly"
    else:
        strength = "slightly"
    return LuckVerdict(luckier_team=side, score_gap=gap, summary=f"{luckier.team_name} was {strength} blessed by Nuffle.")


def analyze_replay_luck(replay: ReplayModel, *, key_moment_limit: int = KEY_MOMENT_LIMIT, now: datetime | None = None) -> LuckReport:
    return LuckAnalyzer(key_moment_limit=key_moment_limit).analyze(replay, now=now)
