from __future__ import annotations

import hashlib
import math
from datetime import UTC, datetime
from uuid import uuid4


def now_utc() -> datetime:
    return datetime.now(UTC)


def make_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


def content_hash(text: str, length: int = 12) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:length]


def round_half_up(value: float, digits: int) -> float:
    """Round like a scoreboard does: halves always go up, never to even."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor
