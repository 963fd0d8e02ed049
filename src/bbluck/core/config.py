from __future__ import annotations

from dataclasses import dataclass, fields, replace

from bbluck.contracts import ReplayValidationError, ValidationIssue


@dataclass(frozen=True, slots=True)
class AnalysisLimits:
    max_replay_bytes: int = 5 * 1024 * 1024
    max_decoded_replay_chars: int = 15 * 1024 * 1024
    max_analyze_duration_ms: int = 4000
    key_moment_limit: int = 15

    def validate(self) -> None:
        issues: list[ValidationIssue] = []
        for item in fields(self):
            value = getattr(self, item.name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                issues.append(
                    ValidationIssue(
                        code="INVALID_LIMITS",
                        severity="blocking",
                        field_path=f"limits.{item.name}",
                        entity_id="analysis_limits",
                        message=f"{item.name} must be a positive integer, got {value!r}",
                    )
                )
        if issues:
            raise ReplayValidationError(issues)

    def with_overrides(self, **overrides: int | None) -> AnalysisLimits:
        updated = replace(self, **{k: v for k, v in overrides.items() if v is not None})
        updated.validate()
        return updated


def default_limits() -> AnalysisLimits:
    return AnalysisLimits()
