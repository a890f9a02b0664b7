"""Planner route configuration loaded from the JSON app config."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Literal, Optional, Tuple

from pydantic import BaseModel, Field

RouteKind = Literal["openai", "ollama"]


class LlmRoute(BaseModel):
    """LLM endpoint configuration."""

    name: str
    kind: RouteKind = "openai"
    base_url: str
    endpoint: str
    probe_endpoint: Optional[str] = None
    model: str
    timeout_s: float = Field(ge=0.1)
    probe_timeout_s: float = Field(default=5.0, ge=0.1)
    max_retries: int = Field(default=2, ge=0)
    api_key_env: str | None = None
    response_format: str | None = None
    extra_headers: Dict[str, str] = Field(default_factory=dict)
    sequential: bool = False
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2048, ge=1)


class ProviderRoutes(BaseModel):
    """Which routes back the primary (remote) and secondary (local) providers."""

    primary: Optional[str] = None
    secondary: Optional[str] = None


class AppConfig(BaseModel):
    """Application configuration root."""

    llm_routes: Dict[str, LlmRoute]
    providers: ProviderRoutes = Field(default_factory=ProviderRoutes)


def load_config(path: Path) -> AppConfig:
    """Load configuration from disk."""

    data = Path(path).read_text(encoding="utf-8")
    return AppConfig.model_validate_json(data)


def resolve_provider_routes(cfg: AppConfig) -> Tuple[Optional[LlmRoute], Optional[LlmRoute]]:
    """Return the (primary, secondary) routes named by the config.

    Raises:
        KeyError: If a provider names a route that is not defined.
    """

    resolved = []
    for slot in ("primary", "secondary"):
        route_id = getattr(cfg.providers, slot)
        if route_id is None:
            resolved.append(None)
            continue
        if route_id not in cfg.llm_routes:
            raise KeyError(f"Route '{route_id}' missing for provider '{slot}'")
        resolved.append(cfg.llm_routes[route_id])
    return resolved[0], resolved[1]


__all__ = ["AppConfig", "LlmRoute", "ProviderRoutes", "RouteKind", "load_config", "resolve_provider_routes"]
