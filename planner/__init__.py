"""Planner access: providers, prompts and the façade used by the orchestrator."""
from .context import PlannerContext
from .facade import ActiveProvider, ProviderFacade, select_active_provider
from .providers import LocalProvider, PlannerProvider, RemoteProvider, build_providers
from .results import ParseFailure, Parsed

__all__ = [
    "ActiveProvider",
    "LocalProvider",
    "ParseFailure",
    "Parsed",
    "PlannerContext",
    "PlannerProvider",
    "ProviderFacade",
    "RemoteProvider",
    "build_providers",
    "select_active_provider",
]
