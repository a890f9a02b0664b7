"""Interview session state and orchestration."""
from .state import (
    DecisionLogEntry,
    SessionConfig,
    SessionRecord,
    SessionState,
    Turn,
    TurnMetadata,
    format_history,
    utc_now,
)

__all__ = [
    "DecisionLogEntry",
    "SessionConfig",
    "SessionRecord",
    "SessionState",
    "Turn",
    "TurnMetadata",
    "format_history",
    "utc_now",
]
