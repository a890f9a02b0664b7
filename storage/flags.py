"""Persistence helpers for moderation flags."""
from __future__ import annotations

import datetime as dt
import json
import sqlite3
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .sqlite import get_conn


class ModerationFlagPayload(BaseModel):
    session_id: str
    phase: str
    action: str
    severity: str
    reason: str = ""
    flagged_words: List[str] = Field(default_factory=list)
    raw_text: str
    safe_reply: str
    warning_count: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)


def insert_moderation_flag(conn: sqlite3.Connection, payload: ModerationFlagPayload, timestamp: Optional[str] = None) -> int:
    """Insert a flag row on ``conn`` without committing and return its primary key."""

    timestamp = timestamp or dt.datetime.now(dt.timezone.utc).isoformat()
    cur = conn.cursor()
    cur.execute(
        """INSERT INTO moderation_flags
           (timestamp, session_id, phase, action, severity, reason,
            flagged_words, raw_text, safe_reply, warning_count, metadata)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            timestamp,
            payload.session_id,
            payload.phase,
            payload.action,
            payload.severity,
            payload.reason,
            json.dumps(payload.flagged_words),
            payload.raw_text,
            payload.safe_reply,
            payload.warning_count,
            json.dumps(payload.metadata),
        ),
    )
    return int(cur.lastrowid)


def list_moderation_flags(session_id: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
    """Latest flags, newest first, optionally for one session."""

    query = (
        "SELECT timestamp, session_id, phase, action, severity, reason, warning_count, raw_text "
        "FROM moderation_flags"
    )
    params: list[Any] = []
    if session_id:
        query += " WHERE session_id = ?"
        params.append(session_id)
    query += " ORDER BY id DESC LIMIT ?"
    params.append(limit)
    with get_conn() as conn:
        rows = conn.execute(query, params).fetchall()
    keys = ("timestamp", "session_id", "phase", "action", "severity", "reason", "warning_count", "raw_text")
    return [dict(zip(keys, row)) for row in rows]


__all__ = ["ModerationFlagPayload", "insert_moderation_flag", "list_moderation_flags"]
