"""
SQLite connection handling and schema for the durable store.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator

from . import config


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection with a bounded busy timeout."""
    conn = sqlite3.connect(config.DB_PATH, timeout=config.DB_TIMEOUT_SEC)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction() -> Generator[sqlite3.Connection, None, None]:
    """Open a write transaction that takes the database write lock up front.

    Concurrent callers queue on the lock (up to DB_TIMEOUT_SEC) instead of
    interleaving their reads and writes.
    """
    with get_db() as conn:
        conn.isolation_level = None
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")


def init_db():
    """Initialize the database with required tables."""
    config.ensure_db_directory()
    with get_db() as conn:
        cursor = conn.cursor()

        # Readers do not block the writer (and vice versa)
        cursor.execute("PRAGMA journal_mode=WAL")

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS state (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS clicks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                ip TEXT NOT NULL,
                clicked_at REAL NOT NULL
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                event TEXT NOT NULL,
                detail TEXT,
                created_at REAL NOT NULL
            )
        ''')

        # Only used when CONFIRMATION_BACKEND=store
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS pending_confirmations (
                chat_id TEXT PRIMARY KEY,
                command TEXT NOT NULL,
                expires_at REAL NOT NULL
            )
        ''')

        cursor.execute('CREATE INDEX IF NOT EXISTS idx_clicks_ip_ts ON clicks(ip, clicked_at)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_clicks_ts ON clicks(clicked_at)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_logs_ts ON logs(created_at DESC)')

        conn.commit()


def health_check():
    """Check database health."""
    try:
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
            table_names = [table[0] for table in cursor.fetchall()]
            required_tables = ['state', 'clicks', 'logs', 'pending_confirmations']
            return all(table in table_names for table in required_tables)
    except sqlite3.Error:
        return False
