"""Session record persistence with optimistic versioning."""
from __future__ import annotations

import sqlite3
from typing import Any, Dict, Iterable, List, Optional

from errors import PersistenceFailure
from interview.state import SessionRecord

from .flags import ModerationFlagPayload, insert_moderation_flag
from .sqlite import get_conn


def insert_session(record: SessionRecord) -> SessionRecord:
    """Store a brand new record and return it at version 1."""

    stored = record.model_copy(update={"version": 1})
    try:
        with get_conn() as conn:
            conn.execute(
                """INSERT INTO sessions
                   (session_id, version, record, phase, is_active, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    stored.session_id,
                    stored.version,
                    stored.model_dump_json(),
                    stored.state.phase,
                    int(stored.state.is_active),
                    stored.created_at.isoformat(),
                    stored.updated_at.isoformat(),
                ),
            )
    except sqlite3.Error as exc:
        raise PersistenceFailure(f"could not store session {record.session_id}") from exc
    return stored


def load_session(session_id: str) -> Optional[SessionRecord]:
    try:
        with get_conn() as conn:
            row = conn.execute("SELECT record, version FROM sessions WHERE session_id = ?", (session_id,)).fetchone()
    except sqlite3.Error as exc:
        raise PersistenceFailure(f"could not load session {session_id}") from exc
    if row is None:
        return None
    record = SessionRecord.model_validate_json(row[0])
    return record.model_copy(update={"version": int(row[1])})


def update_session(
    record: SessionRecord,
    *,
    expected_version: int,
    flags: Iterable[ModerationFlagPayload] = (),
) -> SessionRecord:
    """Replace the stored record if nobody else wrote it since ``expected_version``.

    The record and any moderation flags commit together or not at all.

    Raises:
        PersistenceFailure: on a version conflict or any SQLite error.
    """

    stored = record.model_copy(update={"version": expected_version + 1})
    try:
        with get_conn() as conn:
            cur = conn.execute(
                """UPDATE sessions
                   SET version = ?, record = ?, phase = ?, is_active = ?, updated_at = ?
                   WHERE session_id = ? AND version = ?""",
                (
                    stored.version,
                    stored.model_dump_json(),
                    stored.state.phase,
                    int(stored.state.is_active),
                    stored.updated_at.isoformat(),
                    stored.session_id,
                    expected_version,
                ),
            )
            if cur.rowcount != 1:
                raise PersistenceFailure(f"session {record.session_id} changed since version {expected_version}")
            for flag in flags:
                insert_moderation_flag(conn, flag, timestamp=stored.updated_at.isoformat())
    except sqlite3.Error as exc:
        raise PersistenceFailure(f"could not update session {record.session_id}") from exc
    return stored


def list_sessions(limit: int = 20, *, active_only: bool = False) -> List[Dict[str, Any]]:
    """Summaries of the most recently updated sessions."""

    query = "SELECT session_id, version, phase, is_active, created_at, updated_at FROM sessions"
    if active_only:
        query += " WHERE is_active = 1"
    query += " ORDER BY updated_at DESC LIMIT ?"
    with get_conn() as conn:
        rows = conn.execute(query, (limit,)).fetchall()
    return [
        {
            "session_id": session_id,
            "version": version,
            "phase": phase,
            "is_active": bool(is_active),
            "created_at": created_at,
            "updated_at": updated_at,
        }
        for session_id, version, phase, is_active, created_at, updated_at in rows
    ]


__all__ = ["insert_session", "list_sessions", "load_session", "update_session"]
