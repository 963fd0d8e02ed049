from .config import AnalysisLimits, default_limits
from .errors import AnalysisIntegrityError, build_forensic_artifact, forensic_filename, persist_forensic_artifact, validation_failure
from .ids import content_hash, make_id, now_utc, round_half_up
from .logs import configure_logging

__all__ = [
    "AnalysisIntegrityError",
    "AnalysisLimits",
    "build_forensic_artifact",
    "configure_logging",
    "forensic_filename",
    "content_hash",
    "default_limits",
    "make_id",
    "now_utc",
    "persist_forensic_artifact",
    "round_half_up",
    "validation_failure",
]
