from __future__ import annotations  # Re-export llm_gateway public API

from .llm_gateway import (
    HttpClient,
    HttpResponse,
    LlmGatewayError,
    complete,
    extract_json,
    probe,
    retry_hint,
    schema_instructions,
    validate,
)

__all__ = [
    "HttpClient",
    "HttpResponse",
    "LlmGatewayError",
    "complete",
    "extract_json",
    "probe",
    "retry_hint",
    "schema_instructions",
    "validate",
]
