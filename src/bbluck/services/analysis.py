from __future__ import annotations

import logging
import time
import traceback
from datetime import datetime

from bbluck.contracts import LuckReport, ReplayModel, ReplayValidationError
from bbluck.core import AnalysisIntegrityError, AnalysisLimits, build_forensic_artifact, default_limits, validation_failure
from bbluck.luck import analyze_replay_luck
from bbluck.replay import decode_replay_input, parse_replay_xml, scope_replay_to_team

logger = logging.getLogger(__name__)


def _check_input_size(raw: str | bytes, limits: AnalysisLimits) -> None:
    size = len(raw) if isinstance(raw, bytes) else len(raw.encode("utf-8"))
    if size > limits.max_replay_bytes:
        raise validation_failure(
            "INPUT_SIZE_EXCEEDED",
            f"Replay input is {size} bytes; the limit is {limits.max_replay_bytes}.",
        )


def parse_replay_input(
    raw: str | bytes,
    *,
    limits: AnalysisLimits | None = None,
    team_id: str | None = None,
) -> ReplayModel:
    """Decode and parse a replay upload; optionally scope it to one team."""
    limits = limits or default_limits()
    limits.validate()
    _check_input_size(raw, limits)
    decoded = decode_replay_input(raw, max_decoded_chars=limits.max_decoded_replay_chars)
    logger.debug("decoded replay as %s at depth %d", decoded.source_format.value, decoded.decode_depth)
    replay = parse_replay_xml(decoded.xml, source_format=decoded.source_format)
    if team_id is not None:
        replay = scope_replay_to_team(replay, team_id)
    return replay


def analyze_replay_input(
    raw: str | bytes,
    *,
    limits: AnalysisLimits | None = None,
    now: datetime | None = None,
) -> LuckReport:
    """Single entry point for every front end: decode, parse, score.

    Validation failures propagate as ``ReplayValidationError``. Anything else
    is logged and re-raised as ``AnalysisIntegrityError`` carrying a forensic
    artifact.
    """
    limits = limits or default_limits()
    started = time.perf_counter()
    replay: ReplayModel | None = None
    try:
        replay = parse_replay_input(raw, limits=limits)
        report = analyze_replay_luck(replay, key_moment_limit=limits.key_moment_limit, now=now)
    except ReplayValidationError:
        raise
    except Exception as exc:
        logger.exception("replay analysis failed unexpectedly")
        artifact = build_forensic_artifact(
            analysis_scope="luck_analysis",
            error_code="ANALYSIS_FAILURE",
            message=str(exc) or exc.__class__.__name__,
            state_snapshot={
                "stage": "analyze" if replay is not None else "parse",
                "turns": len(replay.turns) if replay is not None else 0,
            },
            context={"exception_type": exc.__class__.__name__, "input_length": len(raw)},
            identifiers={"match_id": replay.match_id} if replay is not None else {},
            causal_fragment=traceback.format_exception(exc)[-5:],
        )
        raise AnalysisIntegrityError(artifact) from exc

    elapsed_ms = (time.perf_counter() - started) * 1000
    if elapsed_ms > limits.max_analyze_duration_ms:
        logger.warning(
            "analysis of %s took %.0f ms, over the %d ms budget",
            replay.match_id,
            elapsed_ms,
            limits.max_analyze_duration_ms,
        )
    return report
