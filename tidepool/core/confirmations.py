"""
Pending confirmations for destructive admin commands.

Two backends: process memory (single instance, dropped on restart) and the
durable store (any instance can accept the confirmation).
"""

import threading
from typing import Dict, Optional

from . import config, dao
from .schema import PendingConfirmation


class InMemoryConfirmationStore:
    """Pending confirmations keyed by chat id, held in process memory."""

    def __init__(self):
        self._pending: Dict[str, PendingConfirmation] = {}
        self._lock = threading.Lock()

    def put(self, chat_id: str, command: str, expires_at: float) -> None:
        """Create or overwrite the pending confirmation for a chat."""
        with self._lock:
            self._pending[chat_id] = PendingConfirmation(command=command, expires_at=expires_at)

    def pop(self, chat_id: str) -> Optional[PendingConfirmation]:
        with self._lock:
            return self._pending.pop(chat_id, None)

    def clear(self) -> None:
        with self._lock:
            self._pending.clear()


class StoreConfirmationStore:
    """Pending confirmations persisted in the pending_confirmations table."""

    def put(self, chat_id: str, command: str, expires_at: float) -> None:
        dao.put_pending_confirmation(chat_id, command, expires_at)

    def pop(self, chat_id: str) -> Optional[PendingConfirmation]:
        return dao.pop_pending_confirmation(chat_id)


def build_confirmation_store():
    if config.get_confirmation_backend() == "store":
        return StoreConfirmationStore()
    return InMemoryConfirmationStore()
