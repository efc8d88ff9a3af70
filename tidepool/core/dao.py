"""
Durable store operations over SQLite.

Every function opens its own connection, so nothing is cached between
requests. sqlite3 failures (locked database past the busy timeout, missing
file, I/O errors) surface as TransientStoreError.
"""

import functools
import sqlite3
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .db import get_db, transaction
from .errors import TransientStoreError
from .schema import ClickRecord, LogEntry, PendingConfirmation


def _store_op(func):
    """Translate sqlite3 errors raised by a store operation."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except sqlite3.Error as e:
            raise TransientStoreError(f"{func.__name__} failed: {e}") from e
    return wrapper


@_store_op
def get_value(key: str) -> Optional[str]:
    """Get a state value, or None when the key is absent."""
    with get_db() as conn:
        row = conn.execute("SELECT value FROM state WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None


@_store_op
def set_value(key: str, value: str) -> bool:
    """Insert or overwrite a state value."""
    with get_db() as conn:
        conn.execute(
            "INSERT INTO state (key, value) VALUES (?, ?) "
            "ON CONFLICT (key) DO UPDATE SET value = excluded.value",
            (key, str(value))
        )
        conn.commit()
    return True


@_store_op
def insert_if_absent(key: str, value: str) -> bool:
    """Insert a state value unless the key already exists. Returns True if inserted."""
    with get_db() as conn:
        cursor = conn.execute(
            "INSERT INTO state (key, value) VALUES (?, ?) ON CONFLICT (key) DO NOTHING",
            (key, str(value))
        )
        conn.commit()
        return cursor.rowcount == 1


@_store_op
def get_all_values() -> Dict[str, str]:
    with get_db() as conn:
        return dict(conn.execute("SELECT key, value FROM state").fetchall())


def _increment(conn: sqlite3.Connection, key: str) -> int:
    conn.execute(
        "INSERT INTO state (key, value) VALUES (?, '0') ON CONFLICT (key) DO NOTHING",
        (key,)
    )
    conn.execute(
        "UPDATE state SET value = CAST(CAST(value AS INTEGER) + 1 AS TEXT) WHERE key = ?",
        (key,)
    )
    row = conn.execute("SELECT value FROM state WHERE key = ?", (key,)).fetchone()
    return int(row[0])


@_store_op
def atomic_increment(key: str) -> int:
    """Increment an integer state value by one and return the new value.

    The update and the read-back share one write transaction, so concurrent
    increments never lose updates. A missing or non-numeric value counts as 0.
    """
    with transaction() as conn:
        return _increment(conn, key)


@_store_op
def conditional_update(key: str, expected_old: str, new: str) -> int:
    """Set key to new only if it currently equals expected_old. Returns affected rows."""
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE state SET value = ? WHERE key = ? AND value = ?",
            (str(new), key, str(expected_old))
        )
        conn.commit()
        return cursor.rowcount


@_store_op
def bulk_set_state(fields: Dict[str, str]) -> bool:
    """Write several state values in one transaction."""
    with transaction() as conn:
        conn.executemany(
            "INSERT INTO state (key, value) VALUES (?, ?) "
            "ON CONFLICT (key) DO UPDATE SET value = excluded.value",
            [(key, str(value)) for key, value in fields.items()]
        )
    return True


@_store_op
def insert_click_record(identity: str, clicked_at: float = None) -> ClickRecord:
    ts = time.time() if clicked_at is None else clicked_at
    with get_db() as conn:
        conn.execute(
            "INSERT INTO clicks (ip, clicked_at) VALUES (?, ?)",
            (identity, ts)
        )
        conn.commit()
    return ClickRecord(identity=identity, clicked_at=datetime.fromtimestamp(ts, tz=timezone.utc))


@_store_op
def record_click(identity: str, counter_key: str = "count", clicked_at: float = None) -> int:
    """Count an accepted click: increment the counter, store the click record
    and append the audit entry in one write transaction.

    Returns the new counter value. If any step fails nothing is written.
    """
    ts = time.time() if clicked_at is None else clicked_at
    with transaction() as conn:
        n = _increment(conn, counter_key)
        conn.execute("INSERT INTO clicks (ip, clicked_at) VALUES (?, ?)", (identity, ts))
        conn.execute(
            "INSERT INTO logs (event, detail, created_at) VALUES (?, ?, ?)",
            ("click", f"IP:{identity} Count:{n}", ts)
        )
    return n


@_store_op
def has_click_record(identity: str, window_sec: float, now: float = None) -> bool:
    """Check whether identity has a click within the trailing window."""
    since = (time.time() if now is None else now) - window_sec
    with get_db() as conn:
        row = conn.execute(
            "SELECT 1 FROM clicks WHERE ip = ? AND clicked_at > ? LIMIT 1",
            (identity, since)
        ).fetchone()
        return row is not None


@_store_op
def count_clicks_since(window_sec: float, now: float = None) -> int:
    """Count clicks within the trailing window."""
    since = (time.time() if now is None else now) - window_sec
    with get_db() as conn:
        row = conn.execute("SELECT COUNT(*) FROM clicks WHERE clicked_at > ?", (since,)).fetchone()
        return row[0] if row else 0


@_store_op
def delete_all_click_records() -> int:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM clicks")
        conn.commit()
        return cursor.rowcount


@_store_op
def append_log(event: str, detail: str = "") -> None:
    """Append an audit log entry."""
    with get_db() as conn:
        conn.execute(
            "INSERT INTO logs (event, detail, created_at) VALUES (?, ?, ?)",
            (event, detail, time.time())
        )
        conn.commit()


@_store_op
def list_logs(limit: int = 20) -> List[LogEntry]:
    """List the most recent log entries, newest first."""
    if limit <= 0:
        return []

    with get_db() as conn:
        rows = conn.execute(
            "SELECT event, detail, created_at FROM logs ORDER BY created_at DESC, id DESC LIMIT ?",
            (limit,)
        ).fetchall()

    return [
        LogEntry(event=event, detail=detail or "", created_at=datetime.fromtimestamp(created_at, tz=timezone.utc))
        for event, detail, created_at in rows
    ]


@_store_op
def ping() -> bool:
    with get_db() as conn:
        conn.execute("SELECT 1").fetchone()
    return True


# Store-backed pending confirmations
@_store_op
def put_pending_confirmation(chat_id: str, command: str, expires_at: float) -> None:
    with get_db() as conn:
        conn.execute(
            "INSERT INTO pending_confirmations (chat_id, command, expires_at) VALUES (?, ?, ?) "
            "ON CONFLICT (chat_id) DO UPDATE SET command = excluded.command, expires_at = excluded.expires_at",
            (chat_id, command, expires_at)
        )
        conn.commit()


@_store_op
def pop_pending_confirmation(chat_id: str) -> Optional[PendingConfirmation]:
    """Remove and return the pending confirmation for a chat, if any."""
    with transaction() as conn:
        row = conn.execute(
            "SELECT command, expires_at FROM pending_confirmations WHERE chat_id = ?",
            (chat_id,)
        ).fetchone()
        if row:
            conn.execute("DELETE FROM pending_confirmations WHERE chat_id = ?", (chat_id,))

    if not row:
        return None
    return PendingConfirmation(command=row[0], expires_at=row[1])
