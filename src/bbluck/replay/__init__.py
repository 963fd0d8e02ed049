from .attribution import (
    annotate_turn_attribution,
    build_player_ownership_index,
    infer_event_team,
    infer_turn_ownership,
    scope_replay_to_team,
    scope_turn_to_team,
)
from .decode import DecodedReplay, decode_replay_input, looks_like_xml, peel_base64
from .extract import StructuredExtraction, extract_structured_turns, parse_payload
from .mappings import ACTION_CODE_LABELS, END_TURN_REASON_LABELS, ROLL_TYPE_LABELS, STEP_TYPE_LABELS, label_for_code
from .parser import decode_readable_text, parse_replay_xml
from .roll_contracts import REGISTRY_VERSION, ROLL_TYPE_CONTRACTS, RollTypeContractRegistry
from .timeline import build_timeline

__all__ = [
    "ACTION_CODE_LABELS",
    "DecodedReplay",
    "END_TURN_REASON_LABELS",
    "REGISTRY_VERSION",
    "ROLL_TYPE_CONTRACTS",
    "ROLL_TYPE_LABELS",
    "RollTypeContractRegistry",
    "STEP_TYPE_LABELS",
    "StructuredExtraction",
    "annotate_turn_attribution",
    "build_player_ownership_index",
    "build_timeline",
    "decode_readable_text",
    "decode_replay_input",
    "extract_structured_turns",
    "infer_event_team",
    "infer_turn_ownership",
    "label_for_code",
    "looks_like_xml",
    "parse_payload",
    "parse_replay_xml",
    "peel_base64",
    "scope_replay_to_team",
    "scope_turn_to_team",
]
