"""Interchangeable planner providers behind one protocol."""
from __future__ import annotations

from typing import Any, Dict, Optional, Protocol, Sequence, Tuple

from config.routes import AppConfig, LlmRoute, resolve_provider_routes
from llm_gateway import HttpClient, complete, probe

OLLAMA_TAGS_ENDPOINT = "/api/tags"


class PlannerProvider(Protocol):
    """Anything that can answer chat messages with raw text."""

    name: str

    def probe(self) -> bool: ...

    def complete(self, messages: Sequence[Dict[str, str]], *, options: Optional[Dict[str, Any]] = None) -> str: ...


class RemoteProvider:
    """Hosted OpenAI-compatible chat endpoint (primary)."""

    def __init__(self, route: LlmRoute, *, client: Optional[HttpClient] = None) -> None:
        self.route = route
        self.name = route.name
        self._client = client

    def probe(self) -> bool:
        return probe(self.route, client=self._client)

    def complete(self, messages: Sequence[Dict[str, str]], *, options: Optional[Dict[str, Any]] = None) -> str:
        return complete(messages, cfg=self.route, client=self._client, options=options)


class LocalProvider:
    """Locally hosted Ollama server (secondary)."""

    def __init__(self, route: LlmRoute, *, client: Optional[HttpClient] = None) -> None:
        self.route = route.model_copy(
            update={
                "kind": "ollama",
                "probe_endpoint": route.probe_endpoint or OLLAMA_TAGS_ENDPOINT,
            }
        )
        self.name = route.name
        self._client = client

    def probe(self) -> bool:
        return probe(self.route, client=self._client)

    def complete(self, messages: Sequence[Dict[str, str]], *, options: Optional[Dict[str, Any]] = None) -> str:
        return complete(messages, cfg=self.route, client=self._client, options=options)


def build_providers(
    cfg: AppConfig, *, client: Optional[HttpClient] = None
) -> Tuple[Optional[PlannerProvider], Optional[PlannerProvider]]:
    """Instantiate the configured (primary, secondary) providers."""

    primary_route, secondary_route = resolve_provider_routes(cfg)
    primary = RemoteProvider(primary_route, client=client) if primary_route else None
    secondary = LocalProvider(secondary_route, client=client) if secondary_route else None
    return primary, secondary


__all__ = ["LocalProvider", "PlannerProvider", "RemoteProvider", "build_providers"]
