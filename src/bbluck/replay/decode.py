from __future__ import annotations

import base64
import binascii
import logging
import re
import zlib
from dataclasses import dataclass

from bbluck.contracts import SourceFormat
from bbluck.core import validation_failure

logger = logging.getLogger(__name__)

MAX_DECODE_PASSES = 2
_WHITESPACE = re.compile(r"\s+")
# CMF byte 0x78 followed by the common FLG values.
_ZLIB_HEADERS = (b"\x78\x01", b"\x78\x5e", b"\x78\x9c", b"\x78\xda")


@dataclass(frozen=True, slots=True)
class DecodedReplay:
    xml: str
    source_format: SourceFormat
    decode_depth: int


def looks_like_xml(text: str) -> bool:
    return text.lstrip().startswith("<")


def _b64decode(text: str) -> bytes | None:
    compact = _WHITESPACE.sub("", text)
    if not compact:
        return None
    try:
        raw = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError):
        return None
    if raw.startswith(_ZLIB_HEADERS):
        try:
            raw = zlib.decompress(raw)
        except zlib.error:
            return None
    return raw


def _bytes_to_text(raw: bytes) -> str | None:
    try:
        return raw.decode("utf-8").lstrip("\ufeff")
    except UnicodeDecodeError:
        return None


def peel_base64(text: str, max_passes: int = MAX_DECODE_PASSES) -> tuple[str, int] | None:
    """Decode up to ``max_passes`` base64 layers, stopping at the first XML text.

    Returns the XML and the number of passes used, or ``None`` when no pass
    yields XML. Used for both whole replays and embedded message payloads.
    """
    current = text
    for depth in range(1, max_passes + 1):
        raw = _b64decode(current)
        if raw is None:
            return None
        decoded = _bytes_to_text(raw)
        if decoded is None:
            return None
        if looks_like_xml(decoded):
            return decoded, depth
        current = decoded
    return None


def _check_budget(size: int, max_decoded_chars: int | None) -> None:
    if max_decoded_chars is not None and size > max_decoded_chars:
        raise validation_failure(
            "DECODED_SIZE_EXCEEDED",
            f"Decoded replay exceeds the {max_decoded_chars} character budget.",
        )


def decode_replay_input(raw: str | bytes, *, max_decoded_chars: int | None = None) -> DecodedReplay:
    if isinstance(raw, bytes):
        text = _bytes_to_text(raw)
        if text is None:
            raise validation_failure("INVALID_ENCODING", "Replay input is not valid UTF-8 text.")
    else:
        text = raw.lstrip("\ufeff")

    trimmed = text.strip()
    if not trimmed:
        raise validation_failure("EMPTY_INPUT", "Replay input cannot be empty.")

    if looks_like_xml(trimmed):
        _check_budget(len(trimmed), max_decoded_chars)
        logger.debug("replay input is plain xml (%d chars)", len(trimmed))
        return DecodedReplay(xml=trimmed, source_format=SourceFormat.XML, decode_depth=0)

    current = trimmed
    for depth in range(1, MAX_DECODE_PASSES + 1):
        _check_budget(len(current) * 3 // 4, max_decoded_chars)
        decoded_bytes = _b64decode(current)
        if decoded_bytes is None:
            break
        decoded = _bytes_to_text(decoded_bytes)
        if decoded is None:
            break
        _check_budget(len(decoded), max_decoded_chars)
        if looks_like_xml(decoded):
            logger.debug("recovered replay xml after %d decode pass(es)", depth)
            return DecodedReplay(xml=decoded.strip(), source_format=SourceFormat.BBR, decode_depth=depth)
        current = decoded.strip()

    raise validation_failure(
        "UNDECODABLE_INPUT",
        "Replay input is neither XML nor a supported encoded replay (.bbr).",
    )
