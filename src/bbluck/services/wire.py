from __future__ import annotations

import json
from dataclasses import fields, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping


def camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def to_wire(value: Any) -> Any:
    """Convert report and replay dataclasses into JSON-ready values with camelCase field names.

    Mapping keys are data (category names, exclusion reasons) and are kept verbatim.
    """
    if is_dataclass(value) and not isinstance(value, type):
        return {camel_case(f.name): to_wire(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(key.value if isinstance(key, Enum) else key): to_wire(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value) if isinstance(value, (set, frozenset)) else value
        return [to_wire(item) for item in items]
    return value


def to_json(value: Any, *, indent: int | None = 2) -> str:
    return json.dumps(to_wire(value), indent=indent)
