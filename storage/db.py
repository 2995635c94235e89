"""
storage/db.py

SQLite backend for Suma's on-device persistence.

Schema
------
cases     : one row per case; the full record is an encrypted JSON blob,
            ``start_time`` and ``title`` are kept in the clear for listing
settings  : small key/value table for device state
            (``activation-expiry``, ``user-role``, ``last-active-case-id``)

The blob is encrypted by storage.crypto before it reaches this module; this
layer never sees patient data in plain text.

Usage
-----
    from storage.db import init_db, insert_case, put_case, ...
    init_db()                  # call once at app startup
"""

import logging
import sqlite3
from pathlib import Path
from typing import Any

from pipelines.config import load_settings

logger = logging.getLogger(__name__)


def _db_path() -> Path:
    return load_settings().db_path


def _connect() -> sqlite3.Connection:
    """
    Open (or create) the SQLite database and return a connection.

    ``sqlite3.Row`` is the row factory so rows behave like dicts.
    """
    path = _db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    return conn


# ---------------------------------------------------------------------------
# Schema initialisation
# ---------------------------------------------------------------------------

_DDL = """
CREATE TABLE IF NOT EXISTS cases (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    start_time     TEXT    NOT NULL,           -- ISO-8601 UTC
    title          TEXT    NOT NULL,
    encrypted_blob TEXT    NOT NULL            -- Fernet token from crypto.py
);

CREATE INDEX IF NOT EXISTS idx_cases_start_time ON cases(start_time);

CREATE TABLE IF NOT EXISTS settings (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


def init_db() -> None:
    """
    Create all tables if they do not already exist.

    Safe to call multiple times (idempotent).
    """
    with _connect() as conn:
        conn.executescript(_DDL)
    logger.info("Database initialised at %s", _db_path())


# ---------------------------------------------------------------------------
# Case rows
# ---------------------------------------------------------------------------


def insert_case(start_time: str, title: str, encrypted_blob: str) -> int:
    """
    Insert a new case row and return its autoincrement id.
    """
    with _connect() as conn:
        cur = conn.execute(
            "INSERT INTO cases (start_time, title, encrypted_blob) VALUES (?, ?, ?)",
            (start_time, title, encrypted_blob),
        )
        case_id = cur.lastrowid
    logger.info("Inserted case id=%d", case_id)
    return case_id


def put_case(case_id: int, start_time: str, title: str, encrypted_blob: str) -> int:
    """
    Write the case row for *case_id*, replacing any existing row wholesale.

    Behaves like a keyed ``put``: the row is created if it does not exist.
    """
    with _connect() as conn:
        conn.execute(
            """
            INSERT INTO cases (id, start_time, title, encrypted_blob)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                start_time     = excluded.start_time,
                title          = excluded.title,
                encrypted_blob = excluded.encrypted_blob
            """,
            (case_id, start_time, title, encrypted_blob),
        )
    logger.debug("Stored case id=%d", case_id)
    return case_id


def get_case_row(case_id: int) -> dict[str, Any] | None:
    """Return the row for *case_id*, or ``None`` if it does not exist."""
    with _connect() as conn:
        row = conn.execute("SELECT * FROM cases WHERE id = ?", (case_id,)).fetchone()
    return dict(row) if row else None


def get_all_case_rows() -> list[dict[str, Any]]:
    """Return every case row in key order (oldest identity first)."""
    with _connect() as conn:
        rows = conn.execute("SELECT * FROM cases ORDER BY id").fetchall()
    return [dict(r) for r in rows]


# ---------------------------------------------------------------------------
# Device settings
# ---------------------------------------------------------------------------


def get_setting(key: str) -> str | None:
    with _connect() as conn:
        row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
    return row["value"] if row else None


def set_setting(key: str, value: str) -> None:
    with _connect() as conn:
        conn.execute(
            """
            INSERT INTO settings (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, value),
        )
    logger.debug("Setting %s updated", key)


def delete_settings(*keys: str) -> None:
    """Remove every key in *keys* in a single transaction."""
    if not keys:
        return
    with _connect() as conn:
        conn.executemany("DELETE FROM settings WHERE key = ?", [(k,) for k in keys])
    logger.debug("Settings cleared: %s", ", ".join(keys))
