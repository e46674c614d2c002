"""
Serialization helpers for client results.

Drivers return their own receipt and conversation objects; the routes need
plain JSON. These helpers flatten dataclasses, pydantic models, enums,
datetimes and plain objects into JSON-safe structures.
"""

import json
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from json import JSONEncoder
from typing import Any


class ClientResultEncoder(JSONEncoder):
    """JSON encoder for objects returned by messaging client drivers."""

    def default(self, o: Any) -> Any:
        if is_dataclass(o) and not isinstance(o, type):
            return asdict(o)
        if isinstance(o, Enum):
            return o.value
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        if isinstance(o, bytes):
            return o.decode("utf-8", errors="replace")
        if isinstance(o, Exception):
            return {"error_type": type(o).__name__, "message": str(o)}
        if hasattr(o, "model_dump") and callable(o.model_dump):
            return o.model_dump()
        if hasattr(o, "__dict__"):
            # Public attributes only; drivers keep handles in private ones
            result = {
                k: v
                for k, v in vars(o).items()
                if not k.startswith("_") and self._is_json_serializable(v)
            }
            return result if result else str(o)
        return super().default(o)

    def _is_json_serializable(self, value: Any) -> bool:
        try:
            json.dumps(value, cls=type(self))
            return True
        except (TypeError, ValueError, OverflowError):
            return False


def to_serializable(obj: Any) -> Any:
    """Recursively convert a driver result to JSON-serializable data."""
    return json.loads(json.dumps(obj, cls=ClientResultEncoder))
