from __future__ import annotations

from typing import Sequence

from bbluck.contracts import Coverage, LuckCategory, LuckReport, LuckTeamAggregate, ScoringStatus
from bbluck.luck.probability import clamp01
from bbluck.luck.weights import CATEGORY_DISPLAY_NAMES

HOW_TO_READ_LINES = (
    "Expected is the chance the play should work based on the replay context at roll time.",
    "Weighted delta is luck swing: (actual result - expected chance) x category weight.",
    "Explicit means we have a dedicated calculator for that roll family; fallback means we still scored it, but with generic odds.",
)

CATEGORY_EXAMPLE_LINES = (
    "Block: dice faces where stronger outcomes are less likely.",
    "Armor break: target roll to crack armor.",
    "Injury: target roll for removal/severity outcomes.",
    "Dodge: agility-style roll to escape pressure.",
    "Ball handling: pickup/catch/pass/handoff style control rolls.",
    "Argue call: referee call roll outcomes.",
    "Movement risk: going-for-it style rolls to squeeze out extra movement.",
)

TOP_SWING_LIMIT = 5
TOP_EXCLUSION_LIMIT = 3


def percent(value: float) -> str:
    return f"{clamp01(value) * 100:.1f}%"


def category_label(category: LuckCategory | None) -> str:
    if category is None:
        return "Uncategorized"
    return CATEGORY_DISPLAY_NAMES[category]


def target_label(target: int | None) -> str:
    if not target or target <= 0:
        return "unspecified target"
    return f"{target}+ target"


def moment_label(category: LuckCategory | None, actual_success: bool, probability: float | None, target: int | None) -> str:
    prefix = f"{target}+ " if target and target > 0 else ""
    action = category_label(category)
    if probability is None:
        return f"{prefix}{action} excluded from score"
    verb = "succeeded" if actual_success else "failed"
    return f"{prefix}{action} {verb} ({percent(probability)})"


def formula_summary(actual_success: bool, probability: float, weight: float, weighted_delta: float) -> str:
    return f"weighted delta = ({1 if actual_success else 0} - {probability:.3f}) x {weight:.2f} = {weighted_delta:.3f}"


def inputs_summary(
    category: LuckCategory | None,
    target: int | None,
    dice: Sequence[int],
    reroll_available: bool,
    status: ScoringStatus,
) -> str:
    dice_text = f"[{', '.join(str(d) for d in dice)}]" if dice else "none"
    return (
        f"{category_label(category)} | target {target_label(target)} | dice {dice_text} | "
        f"reroll available {'yes' if reroll_available else 'no'} | status {status.value}"
    )


def build_how_scored_summary(verdict_summary: str, coverage: Coverage, home: LuckTeamAggregate, away: LuckTeamAggregate) -> tuple[str, ...]:
    top = [f"{count} {reason}" for reason, count in list(coverage.excluded_by_reason.items())[:TOP_EXCLUSION_LIMIT]]
    candidates = coverage.roll_candidates
    all_events = coverage.all_events
    return (
        "Only deterministic roll contexts with stable thresholds and outcomes are scored.",
        f"Roll-candidate coverage: {candidates.scored_count} scored and {candidates.excluded_count} excluded "
        f"({candidates.scored_rate * 100:.1f}% scored).",
        f"All-event visibility: {all_events.scored_count} scored and {all_events.excluded_count} excluded "
        f"({all_events.scored_rate * 100:.1f}% scored).",
        f"Top exclusions: {'; '.join(top)}." if top else "Top exclusions: none.",
        f"{home.team_name} finished at {home.luck_score:.1f} versus {away.team_name} at {away.luck_score:.1f}, "
        f"so verdict is: {verdict_summary}",
    )


def render_text_report(report: LuckReport) -> str:
    home, away = report.teams
    coverage = report.coverage
    lines = [
        f"Match: {report.match.id}",
        f"Home: {home.team_name} ({home.luck_score:.1f})",
        f"Away: {away.team_name} ({away.luck_score:.1f})",
        f"Verdict: {report.verdict.summary} (gap {report.verdict.score_gap:.1f})",
        f"Coverage: {coverage.roll_candidates.scored_rate * 100:.1f}% of roll candidates scored "
        f"({coverage.roll_candidates.scored_count} scored, {coverage.roll_candidates.excluded_count} excluded)",
        "Scored by category:",
    ]
    lines.extend(f"- {category}: {count}" for category, count in coverage.scored_by_category.items())
    if not coverage.scored_by_category:
        lines.append("- none")
    lines.extend(["", "How to read:"])
    lines.extend(f"- {line}" for line in HOW_TO_READ_LINES)
    lines.extend(["", "Category examples:"])
    lines.extend(f"- {line}" for line in CATEGORY_EXAMPLE_LINES)
    lines.extend(["", "How this was scored:"])
    lines.extend(f"- {line}" for line in report.how_scored_summary)
    if coverage.excluded_by_reason:
        lines.extend(["", "Top exclusion reasons:"])
        lines.extend(
            f"- {count} x {reason}" for reason, count in list(coverage.excluded_by_reason.items())[:TOP_SWING_LIMIT]
        )
    lines.extend(["", "Top swings:"])
    for index, moment in enumerate(report.key_moments[:TOP_SWING_LIMIT], start=1):
        method = moment.calculation_method.value if moment.calculation_method else "n/a"
        lines.append(
            f"{index}. Turn {moment.turn} | {moment.team_name} | {moment.label} | "
            f"weighted delta {moment.weighted_delta:.3f} | {method} ({moment.calculation_reason}) | "
            f"{moment.explainability.formula_summary}"
        )
    if not report.key_moments:
        lines.append("- none")
    return "\n".join(lines)
