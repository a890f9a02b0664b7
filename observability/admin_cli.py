"""Lightweight CLI helpers for inspecting session and moderation tables."""
from __future__ import annotations

import argparse
from typing import Optional

from config.settings import settings
from storage.flags import list_moderation_flags
from storage.sessions import list_sessions


def tail_flags(limit: int = 20, session_id: Optional[str] = None) -> None:
    for row in list_moderation_flags(session_id=session_id, limit=limit):
        print(
            f"[{row['timestamp']}] {row['session_id']} {row['phase']} -> {row['action']}/{row['severity']} "
            f"warnings={row['warning_count']} reason={row['reason']}"
        )


def tail_sessions(limit: int = 20, active_only: bool = False) -> None:
    for row in list_sessions(limit, active_only=active_only):
        status = "active" if row["is_active"] else "ended"
        print(f"[{row['updated_at']}] {row['session_id']} phase={row['phase']} {status} v{row['version']}")


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description=f"Inspect {settings.DB_PATH}")
    parser.add_argument("--tail-flags", type=int, help="Show the latest moderation flags")
    parser.add_argument("--session", help="Restrict flags to one session id")
    parser.add_argument("--tail-sessions", type=int, help="Show the most recently updated sessions")
    parser.add_argument("--active", action="store_true", help="Only list active sessions")
    args = parser.parse_args(argv)

    if args.tail_flags:
        tail_flags(args.tail_flags, session_id=args.session)
    if args.tail_sessions:
        tail_sessions(args.tail_sessions, active_only=args.active)


if __name__ == "__main__":
    main()
