from __future__ import annotations

import json
import re
from dataclasses import asdict
from datetime import datetime, UTC
from pathlib import Path
from uuid import uuid4

from bbluck.contracts import ForensicArtifact, ReplayValidationError, ValidationIssue

UNIDENTIFIED_REPLAY = "<unknown>"
_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9_.-]+")


class AnalysisIntegrityError(RuntimeError):
    """A readable replay broke the luck pipeline; ``artifact`` records the stage and match."""

    def __init__(self, artifact: ForensicArtifact) -> None:
        match_id = artifact.identifiers.get("match_id", UNIDENTIFIED_REPLAY)
        stage = artifact.state_snapshot.get("stage", "analysis")
        super().__init__(f"{stage} stage failed for replay {match_id}: {artifact.message}")
        self.artifact = artifact


def validation_failure(code: str, message: str, *, field_path: str = "input", entity_id: str = "replay") -> ReplayValidationError:
    return ReplayValidationError([ValidationIssue(code, "blocking", field_path, entity_id, message)])


def build_forensic_artifact(
    analysis_scope: str,
    error_code: str,
    message: str,
    state_snapshot: dict[str, object],
    *,
    context: dict[str, object],
    identifiers: dict[str, str],
    causal_fragment: list[str],
) -> ForensicArtifact:
    return ForensicArtifact(
        artifact_id=str(uuid4()),
        timestamp=datetime.now(UTC),
        analysis_scope=analysis_scope,
        error_code=error_code,
        message=message,
        state_snapshot=state_snapshot,
        context=context,
        identifiers=identifiers,
        causal_fragment=causal_fragment,
    )


def forensic_filename(artifact: ForensicArtifact) -> str:
    match_id = artifact.identifiers.get("match_id")
    if not match_id:
        return f"forensic_{artifact.artifact_id}.json"
    slug = _UNSAFE_FILENAME.sub("_", match_id).strip("._")[:64] or "replay"
    return f"forensic_{slug}_{artifact.artifact_id}.json"


def persist_forensic_artifact(artifact: ForensicArtifact, output_dir: Path) -> Path:
    """Write the artifact as JSON under ``output_dir``, named after the failing replay."""
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / forensic_filename(artifact)
    path.write_text(json.dumps(asdict(artifact), default=str, indent=2), encoding="utf-8")
    return path
