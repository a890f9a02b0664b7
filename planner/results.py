"""Result wrapper for untrusted structured planner output."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ParseFailure:
    """Planner reply that could not be turned into the expected schema."""

    reason: str
    raw: str = ""

    def truncated_raw(self, limit: int = 200) -> str:
        text = (self.raw or "").strip()
        if len(text) > limit:
            return text[: limit - 3] + "..."
        return text


@dataclass(frozen=True)
class Parsed(Generic[T]):
    """Either a validated value or a :class:`ParseFailure`, never both."""

    value: Optional[T] = None
    failure: Optional[ParseFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None and self.value is not None

    @classmethod
    def success(cls, value: T) -> "Parsed[T]":
        return cls(value=value)

    @classmethod
    def failed(cls, reason: str, raw: str = "") -> "Parsed[T]":
        return cls(failure=ParseFailure(reason=reason, raw=raw))


__all__ = ["ParseFailure", "Parsed"]
