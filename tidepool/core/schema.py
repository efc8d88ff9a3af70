"""
Typed records passed between the store, the click path and the admin channel.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class TideState:
    count: int
    target: int
    ca: Optional[str]
    launched: bool
    locked: bool
    lock_msg: str
    decree: str
    tide_warning: str
    blessed: Optional[int]


@dataclass(frozen=True)
class ClickRecord:
    identity: str
    clicked_at: datetime


@dataclass(frozen=True)
class LogEntry:
    event: str
    detail: str
    created_at: datetime


@dataclass
class PendingConfirmation:
    command: str
    expires_at: float  # epoch seconds

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass
class ClickResult:
    count: int
    target: int
    launched: bool


@dataclass(frozen=True)
class Milestone:
    kind: str  # progress, blessed, launched
    text: str
