"""
State repository: typed access to the fixed set of named tide pool fields.

Values are stored as strings. Reads coerce with fixed fallbacks so a missing
or corrupt value never makes a read fail.
"""

import re
from typing import Dict, Optional

from . import dao
from .schema import TideState

DEFAULT_LOCK_MSG = "The tide is retreating. The depths are recalibrating."
DEFAULT_TIDE_WARNING = "The tide pool closes soon. The window is narrowing."
DEFAULT_TARGET = 100

DEFAULTS: Dict[str, str] = {
    "count": "0",
    "target": str(DEFAULT_TARGET),
    "ca": "",
    "launched": "false",
    "locked": "false",
    "lock_msg": DEFAULT_LOCK_MSG,
    "decree": "",
    "tide_warning": "",
    "blessed": "",
}

INT_FALLBACKS = {"count": 0, "target": DEFAULT_TARGET}

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _check_field(field: str) -> None:
    if field not in DEFAULTS:
        raise KeyError(f"Unknown state field: {field}")


def parse_int(raw: Optional[str]) -> Optional[int]:
    """Parse the leading integer of a value ("150", " 42abc"); None if there is none."""
    if raw is None:
        return None
    match = _LEADING_INT.match(str(raw))
    return int(match.group(1)) if match else None


def encode(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


class StateRepository:
    """Accessor over the durable store for the named state fields."""

    def bootstrap(self) -> int:
        """Insert defaults for absent fields; existing values are never overwritten."""
        inserted = 0
        for field, value in DEFAULTS.items():
            if dao.insert_if_absent(field, value):
                inserted += 1
        return inserted

    def get(self, field: str) -> Optional[str]:
        _check_field(field)
        return dao.get_value(field)

    def set(self, field: str, value) -> bool:
        _check_field(field)
        return dao.set_value(field, encode(value))

    def set_many(self, fields: Dict[str, object]) -> bool:
        for field in fields:
            _check_field(field)
        return dao.bulk_set_state({field: encode(value) for field, value in fields.items()})

    def get_all(self) -> Dict[str, str]:
        """All known fields, with defaults filled in for any that are missing."""
        stored = dao.get_all_values()
        return {field: stored.get(field, default) for field, default in DEFAULTS.items()}

    def get_int(self, field: str, fallback: int = None) -> int:
        if fallback is None:
            fallback = INT_FALLBACKS.get(field, 0)
        value = parse_int(self.get(field))
        return fallback if value is None else value

    def get_bool(self, field: str) -> bool:
        return (self.get(field) or "").strip().lower() == "true"

    def get_optional_int(self, field: str) -> Optional[int]:
        """Positive integer value of field, or None when unset, corrupt or not positive."""
        value = parse_int(self.get(field))
        return value if value is not None and value > 0 else None

    def get_target(self) -> int:
        target = self.get_optional_int("target")
        return DEFAULT_TARGET if target is None else target

    def get_blessed(self) -> Optional[int]:
        return self.get_optional_int("blessed")

    def snapshot(self) -> TideState:
        """Read every field once and coerce to a typed state."""
        values = self.get_all()
        count = parse_int(values["count"])
        target = parse_int(values["target"])
        blessed = parse_int(values["blessed"])
        return TideState(
            count=count if count is not None else 0,
            target=target if target and target > 0 else DEFAULT_TARGET,
            ca=values["ca"] or None,
            launched=values["launched"].strip().lower() == "true",
            locked=values["locked"].strip().lower() == "true",
            lock_msg=values["lock_msg"] or "",
            decree=values["decree"] or "",
            tide_warning=values["tide_warning"] or "",
            blessed=blessed if blessed and blessed > 0 else None,
        )
