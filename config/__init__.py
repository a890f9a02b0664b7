"""Configuration package for the interview orchestration service."""
from .roles import RoleCatalog, RoleSpec, role_catalog
from .routes import AppConfig, LlmRoute, ProviderRoutes, load_config, resolve_provider_routes
from .settings import Settings, settings

__all__ = [
    "AppConfig",
    "LlmRoute",
    "ProviderRoutes",
    "load_config",
    "resolve_provider_routes",
    "RoleCatalog",
    "RoleSpec",
    "role_catalog",
    "Settings",
    "settings",
]
