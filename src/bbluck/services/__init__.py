from .analysis import analyze_replay_input, parse_replay_input
from .wire import camel_case, to_json, to_wire

__all__ = [
    "analyze_replay_input",
    "camel_case",
    "parse_replay_input",
    "to_json",
    "to_wire",
]
