"""Shared fixtures: a throwaway SQLite database and a recording notifier."""

import threading

import pytest

from tidepool.core import config
from tidepool.core.db import get_db, init_db
from tidepool.core.state import StateRepository


class RecordingNotifier:
    """Notifier double that keeps every message instead of sending it."""

    def __init__(self):
        self.messages = []
        self._lock = threading.Lock()

    def send(self, text):
        with self._lock:
            self.messages.append(text)

    def flush(self, timeout=None):
        pass

    def close(self):
        pass

    def containing(self, fragment):
        return [m for m in self.messages if fragment in m]


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Point the store at a fresh database with default state seeded."""
    db_path = tmp_path / "tidepool.db"
    monkeypatch.setattr(config, "DB_PATH", str(db_path))
    init_db()
    StateRepository().bootstrap()
    return db_path


@pytest.fixture
def state(temp_db):
    return StateRepository()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def fail_inserts(temp_db):
    """Make every INSERT into a table abort, as a full disk or I/O error would."""
    def install(table):
        with get_db() as conn:
            conn.execute(
                f"CREATE TRIGGER fail_{table} BEFORE INSERT ON {table} "
                "BEGIN SELECT RAISE(ABORT, 'disk I/O error'); END"
            )
            conn.commit()
    return install
