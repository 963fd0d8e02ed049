from .analyzer import LuckAnalyzer, analyze_replay_luck, extract_reroll_flags, select_match_teams, summarize_verdict
from .audit import RollContractAuditor
from .classification import ClassificationContext, RollClassification, classify_roll_context, resolve_target
from .explain import CATEGORY_EXAMPLE_LINES, HOW_TO_READ_LINES, render_text_report
from .merge import merge_block_chains, normalize_exclusion_reason
from .probability import (
    OutcomeResolution,
    ProbabilityInput,
    ProbabilityResult,
    any_die_probability,
    apply_reroll,
    base_probability,
    compute_probability,
    estimate_sides,
    malformed_faces,
    resolve_actual_success,
    single_die_probability,
    sum_probability,
)
from .weights import LUCK_CATEGORY_WEIGHTS

__all__ = [
    "CATEGORY_EXAMPLE_LINES",
    "ClassificationContext",
    "HOW_TO_READ_LINES",
    "LUCK_CATEGORY_WEIGHTS",
    "LuckAnalyzer",
    "OutcomeResolution",
    "ProbabilityInput",
    "ProbabilityResult",
    "RollClassification",
    "RollContractAuditor",
    "analyze_replay_luck",
    "any_die_probability",
    "apply_reroll",
    "base_probability",
    "classify_roll_context",
    "compute_probability",
    "estimate_sides",
    "extract_reroll_flags",
    "malformed_faces",
    "merge_block_chains",
    "normalize_exclusion_reason",
    "render_text_report",
    "resolve_actual_success",
    "resolve_target",
    "select_match_teams",
    "single_die_probability",
    "sum_probability",
    "summarize_verdict",
]
