from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Sequence


class ReplayEventType(str, Enum):
    BLOCK = "block"
    BLITZ = "blitz"
    FOUL = "foul"
    DODGE = "dodge"
    REROLL = "reroll"
    CASUALTY = "casualty"
    BALL_STATE = "ball_state"
    TURNOVER = "turnover"
    ROLL = "roll"


class ActorTeamSource(str, Enum):
    EXPLICIT = "explicit"
    PLAYER_MAP = "player_map"
    TURN_INFERRED = "turn_inferred"


class InferenceConfidence(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class UnknownCodeCategory(str, Enum):
    STEP = "step"
    ACTION = "action"
    ROLL = "roll"
    END_TURN_REASON = "end_turn_reason"


class SourceFormat(str, Enum):
    XML = "xml"
    BBR = "bbr"


class RollContractKind(str, Enum):
    SCORED_DETERMINISTIC = "scored_deterministic"
    EXCLUDED_DETERMINISTIC = "excluded_deterministic"
    RANDOMIZER = "randomizer"
    SUMMARY = "summary"


class RollKnowledgeStatus(str, Enum):
    KNOWN = "known"
    AMBIGUOUS = "ambiguous"
    UNKNOWN = "unknown"


class LuckCategory(str, Enum):
    BLOCK = "block"
    ARMOR_BREAK = "armor_break"
    INJURY = "injury"
    DODGE = "dodge"
    BALL_HANDLING = "ball_handling"
    ARGUE_CALL = "argue_call"
    MOVEMENT_RISK = "movement_risk"


class ScoringStatus(str, Enum):
    SCORED = "scored"
    EXCLUDED = "excluded"


class CalculationMethod(str, Enum):
    EXPLICIT = "explicit"
    FALLBACK = "fallback"


class LuckMomentTag(str, Enum):
    BLESSED = "blessed"
    SHAFTAROONIE = "shaftaroonie"


class LuckierTeam(str, Enum):
    HOME = "home"
    AWAY = "away"
    EVEN = "even"


@dataclass(frozen=True, slots=True)
class Team:
    id: str
    name: str
    coach: str | None = None


@dataclass(frozen=True, slots=True)
class DiceModifier:
    value: int
    skill: int | None = None


@dataclass(frozen=True, slots=True)
class EventPayload:
    root_tag: str
    roll_type: int | None = None
    requirement: int | None = None
    difficulty: int | None = None
    outcome: int | None = None
    dice: tuple[int, ...] = ()
    die_types: tuple[int | None, ...] = ()
    modifiers: tuple[DiceModifier, ...] = ()
    skills_used: tuple[int, ...] = ()
    extras: Mapping[str, str] = field(default_factory=dict)

    def extra_int(self, key: str) -> int | None:
        raw = self.extras.get(key)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class ReplayEvent:
    type: ReplayEventType
    source_tag: str
    source_label: str | None = None
    player_id: str | None = None
    target_id: str | None = None
    team_id: str | None = None
    actor_team_id: str | None = None
    actor_team_source: ActorTeamSource | None = None
    gamer_id: str | None = None
    action_code: int | None = None
    action_label: str | None = None
    step_type: int | None = None
    step_label: str | None = None
    roll_type: int | None = None
    roll_label: str | None = None
    reason_code: int | None = None
    reason_label: str | None = None
    finishing_turn_type: int | None = None
    payload: EventPayload | None = None

    def __post_init__(self) -> None:
        if self.actor_team_id is not None and self.actor_team_source is None:
            raise ValueError(f"event {self.source_tag} has actor_team_id without actor_team_source")


@dataclass(frozen=True, slots=True)
class ReplayTurn:
    turn_number: int
    team_id: str | None = None
    inferred_team_id: str | None = None
    team_inference_confidence: InferenceConfidence | None = None
    gamer_id: str | None = None
    ball_carrier_player_id: str | None = None
    ended_abnormally: bool = False
    end_turn_reason: int | None = None
    end_turn_reason_label: str | None = None
    finishing_turn_type: int | None = None
    events: tuple[ReplayEvent, ...] = ()
    action_texts: tuple[str, ...] = ()

    @property
    def event_count(self) -> int:
        return len(self.events)


@dataclass(frozen=True, slots=True)
class UnknownCode:
    category: UnknownCodeCategory
    code: int
    occurrences: int


@dataclass(frozen=True, slots=True)
class TurnAttributionCounts:
    total: int
    explicit: int
    inferred: int
    unresolved: int
    high: int
    medium: int
    low: int


@dataclass(frozen=True, slots=True)
class EventAttributionCounts:
    explicit: int
    player_map: int
    turn_inferred: int
    unresolved: int


@dataclass(frozen=True, slots=True)
class ParserDiagnostics:
    unknown_code_total: int
    unknown_codes_by_category: Mapping[str, int]
    turn_attribution: TurnAttributionCounts
    event_attribution: EventAttributionCounts
    used_structured_extraction: bool


@dataclass(frozen=True, slots=True)
class ReplayModel:
    match_id: str
    root_tag: str
    replay_version: str | None
    source_format: SourceFormat
    teams: tuple[Team, ...]
    turns: tuple[ReplayTurn, ...]
    unknown_codes: tuple[UnknownCode, ...]
    diagnostics: ParserDiagnostics
    player_names_by_team_and_id: Mapping[str, str] = field(default_factory=dict)
    player_names_by_id: Mapping[str, str] = field(default_factory=dict)
    analysis_team_id: str | None = None


@dataclass(frozen=True, slots=True)
class PlayerOwnershipIndex:
    player_to_team: Mapping[str, str]
    ambiguous_player_ids: frozenset[str]
    team_to_players: Mapping[str, frozenset[str]]


@dataclass(frozen=True, slots=True)
class TurnOwnershipInference:
    team_id: str | None
    confidence: InferenceConfidence
    scores: Mapping[str, int]


@dataclass(frozen=True, slots=True)
class RollTypeContract:
    source_tag: str
    roll_type: int
    label: str
    kind: RollContractKind
    confidence: InferenceConfidence
    status: RollKnowledgeStatus
    notes: str
    scoring_category: LuckCategory | None = None

    @property
    def key(self) -> str:
        return f"{self.source_tag}|{self.roll_type}"


@dataclass(frozen=True, slots=True)
class LuckExplainability:
    target: int | None
    weight: float
    base_odds: float | None
    reroll_adjusted_odds: float | None
    formula_summary: str
    inputs_summary: str


@dataclass(frozen=True, slots=True)
class LuckEventMetadata:
    source_tag: str
    roll_type: int | None
    roll_label: str | None
    step_type: int | None
    step_label: str | None
    action_code: int | None
    action_label: str | None
    outcome_code: int | None
    requirement: int | None
    difficulty: int | None
    dice: tuple[int, ...]
    die_types: tuple[int | None, ...]
    modifiers: tuple[DiceModifier, ...]
    modifiers_sum: int
    reroll_available: bool
    reroll_used: bool
    skills_used: tuple[int, ...]
    normalization_flags: tuple[str, ...]
    normalization_notes: tuple[str, ...]
    contract_label: str | None = None


@dataclass(frozen=True, slots=True)
class LuckEvent:
    id: str
    turn: int
    event_index: int
    team_id: str
    team_name: str
    player_id: str | None
    target_id: str | None
    type: LuckCategory | None
    label: str
    probability_success: float
    actual_success: bool
    delta: float
    weighted_delta: float
    scoring_status: ScoringStatus
    status_reason: str
    is_roll_candidate: bool
    explainability: LuckExplainability
    metadata: LuckEventMetadata
    tags: tuple[LuckMomentTag, ...] = ()
    calculation_method: CalculationMethod | None = None
    calculation_reason: str | None = None
    merged_block_anchor_id: str | None = None


@dataclass(frozen=True, slots=True)
class LuckTeamAggregate:
    team_id: str
    team_name: str
    luck_score: float
    category_scores: Mapping[str, float]
    event_count: int
    scored_event_count: int


@dataclass(frozen=True, slots=True)
class LuckVerdict:
    luckier_team: LuckierTeam
    score_gap: float
    summary: str


@dataclass(frozen=True, slots=True)
class CoverageRate:
    scored_count: int
    excluded_count: int
    scored_rate: float


@dataclass(frozen=True, slots=True)
class Coverage:
    all_events: CoverageRate
    roll_candidates: CoverageRate
    scored_by_category: Mapping[str, int]
    excluded_by_category: Mapping[str, int]
    excluded_by_reason: Mapping[str, int]
    scored_by_method: Mapping[str, int]


@dataclass(frozen=True, slots=True)
class MatchIdentity:
    id: str
    home_team: str
    away_team: str
    home_team_id: str
    away_team_id: str


@dataclass(frozen=True, slots=True)
class LuckReport:
    id: str
    generated_at: datetime
    match: MatchIdentity
    verdict: LuckVerdict
    coverage: Coverage
    weight_table: Mapping[str, float]
    how_scored_summary: tuple[str, ...]
    teams: tuple[LuckTeamAggregate, LuckTeamAggregate]
    key_moments: tuple[LuckEvent, ...]
    events: tuple[LuckEvent, ...]


@dataclass(frozen=True, slots=True)
class TimelineTurn:
    turn_number: int
    team_id: str | None
    raw_event_count: int
    keyword_hits: Mapping[str, int]


@dataclass(slots=True)
class ValidationIssue:
    code: str
    severity: str
    field_path: str
    entity_id: str
    message: str


class ReplayValidationError(ValueError):
    def __init__(self, issues: list[ValidationIssue]) -> None:
        message = "; ".join(i.message for i in issues)
        super().__init__(message)
        self.issues = issues

    @property
    def codes(self) -> list[str]:
        return [issue.code for issue in self.issues]


@dataclass(slots=True)
class ContractAuditCheck:
    check_id: str
    description: str
    passed: bool
    evidence: str


@dataclass(slots=True)
class ContractAuditReport:
    report_id: str
    generated_at: datetime
    scope: str
    checks: list[ContractAuditCheck]

    @property
    def passed(self) -> bool:
        return all(check.passed for check in self.checks)


@dataclass(slots=True)
class ForensicArtifact:
    artifact_id: str
    timestamp: datetime
    analysis_scope: str
    error_code: str
    message: str
    state_snapshot: Mapping[str, Any]
    context: Mapping[str, Any]
    identifiers: Mapping[str, str]
    causal_fragment: Sequence[str]
