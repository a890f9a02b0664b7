from __future__ import annotations  # LLM request gateway module

import json
import logging
import os
import re
import threading
from typing import Any, Callable, Dict, Optional, Protocol, Sequence, Tuple, Type, TypeVar

import httpx
from pydantic import BaseModel

from config.routes import LlmRoute


logger = logging.getLogger(__name__)  # Module logger setup


_MODEL_LOCKS: Dict[str, threading.Lock] = {}
_MODEL_LOCKS_GUARD = threading.Lock()
_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")
PROBE_PROMPT = 'Hello, please respond with "OK" if you receive this message.'


class HttpClient(Protocol):  # Minimal HTTP client protocol
    def post(self, url: str, *, json: Dict[str, Any], headers: Dict[str, str], timeout: float) -> "HttpResponse": ...

    def get(self, url: str, *, headers: Dict[str, str], timeout: float) -> "HttpResponse": ...


class HttpResponse(Protocol):  # Minimal HTTP response protocol
    @property
    def status_code(self) -> int: ...

    def json(self) -> Any: ...

    @property
    def text(self) -> str: ...


class LlmGatewayError(RuntimeError):  # Base gateway error
    pass


T = TypeVar("T", bound=BaseModel)


def _lock_for(cfg: LlmRoute) -> threading.Lock:
    key = cfg.name or f"{cfg.base_url}{cfg.endpoint}"
    with _MODEL_LOCKS_GUARD:
        lock = _MODEL_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _MODEL_LOCKS[key] = lock
    return lock


def complete(
    messages: Sequence[Dict[str, str]],
    *,
    cfg: LlmRoute,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
) -> str:
    """Send chat messages to the route and return the raw reply text."""

    def _execute() -> str:
        input_messages = _normalize_messages(messages)
        payload = _build_payload(cfg, input_messages, options)
        preview = _preview(input_messages)
        if len(preview) > 120:
            preview = preview[:117] + "..."
        logger.info("LLM request send route=%s kind=%s model=%s preview=%s", cfg.name, cfg.kind, cfg.model, preview)
        try:
            response, close_cb = _post(f"{cfg.base_url}{cfg.endpoint}", payload, _headers(cfg), cfg.timeout_s, client)
        except Exception as exc:  # noqa: BLE001
            logger.error("LLM transport failure route=%s: %s", cfg.name, exc)
            raise LlmGatewayError("LLM transport failed") from exc
        try:
            if response.status_code >= 400:
                logger.error("LLM error status route=%s: %s", cfg.name, response.status_code)
                raise LlmGatewayError(f"LLM returned status {response.status_code}")
            try:
                data = response.json()
            except Exception as exc:  # noqa: BLE001
                logger.error("Invalid JSON payload from LLM route=%s: %s", cfg.name, exc)
                raise LlmGatewayError("LLM payload was not JSON") from exc
            content = _extract_content(data)
        finally:
            _close_safely(close_cb)
        logger.info("LLM request done route=%s model=%s chars=%d", cfg.name, cfg.model, len(content))
        return content

    if cfg.sequential:
        with _lock_for(cfg):
            return _execute()
    return _execute()


def probe(cfg: LlmRoute, *, client: Optional[HttpClient] = None) -> bool:
    """Return True when the route answers; never raises."""

    if cfg.probe_endpoint:
        try:
            response, close_cb = _get(f"{cfg.base_url}{cfg.probe_endpoint}", _headers(cfg), cfg.probe_timeout_s, client)
        except Exception as exc:  # noqa: BLE001
            logger.warning("LLM probe failed route=%s: %s", cfg.name, exc)
            return False
        _close_safely(close_cb)
        return response.status_code == 200
    try:
        reply = complete([{"role": "user", "content": PROBE_PROMPT}], cfg=cfg, client=client, options={"max_tokens": 8})
    except LlmGatewayError as exc:
        logger.warning("LLM probe failed route=%s: %s", cfg.name, exc)
        return False
    return bool(reply.strip())


def validate(schema: Type[T], content: str) -> T:  # Parse JSON content with schema
    """Validate reply text against ``schema``.

    Raises:
        json.JSONDecodeError, pydantic.ValidationError: when the text does not conform.
    """

    return schema.model_validate_json(extract_json(content))


def extract_json(content: str) -> str:  # Pull the JSON object out of a chatty reply
    cleaned = _strip_code_fences(content)
    if cleaned.startswith("{"):
        return cleaned
    match = _JSON_BLOCK.search(cleaned)
    if match:
        return match.group(0)
    return cleaned


def schema_instructions(schema: Type[BaseModel]) -> str:  # System prompt enforcing the JSON contract
    schema_json = json.dumps(schema.model_json_schema(), indent=2)
    return "Reply with a single JSON object matching this schema, with no extra text:\n" + schema_json


def retry_hint(error_text: Optional[str]) -> str:  # Compose retry instructions including last error
    base = "The previous reply failed validation."
    if error_text:
        truncated = error_text.splitlines()[0].strip()
        if len(truncated) > 200:
            truncated = truncated[:197] + "..."
        base += f" Reason: {truncated}."
    return base + " Return a single JSON object that matches the schema."


def _build_payload(cfg: LlmRoute, messages: list[Dict[str, str]], options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    opts = dict(options or {})
    max_tokens = int(opts.pop("max_tokens", cfg.max_tokens))
    temperature = float(opts.pop("temperature", cfg.temperature))
    if cfg.kind == "ollama":
        payload: Dict[str, Any] = {
            "model": cfg.model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        if cfg.response_format == "json_object":
            payload["format"] = "json"
    else:
        payload = {
            "model": cfg.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if cfg.response_format:
            payload["response_format"] = {"type": cfg.response_format}
    payload.update(opts)
    return payload


def _headers(cfg: LlmRoute) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if cfg.api_key_env:
        api_key = os.getenv(cfg.api_key_env)
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
    headers.update(cfg.extra_headers)
    return headers


def _post(url: str, payload: Dict[str, Any], headers: Dict[str, str], timeout: float, client: Optional[HttpClient]) -> Tuple[HttpResponse, Optional[Callable[[], None]]]:  # Dispatch HTTP request
    if client is not None:
        return client.post(url, json=payload, headers=headers, timeout=timeout), None
    http_client = httpx.Client(timeout=timeout)
    try:
        response = http_client.post(url, json=payload, headers=headers)
    except Exception:
        http_client.close()
        raise
    return response, http_client.close


def _get(url: str, headers: Dict[str, str], timeout: float, client: Optional[HttpClient]) -> Tuple[HttpResponse, Optional[Callable[[], None]]]:
    if client is not None:
        return client.get(url, headers=headers, timeout=timeout), None
    http_client = httpx.Client(timeout=timeout)
    try:
        response = http_client.get(url, headers=headers)
    except Exception:
        http_client.close()
        raise
    return response, http_client.close


def _close_safely(close_cb: Optional[Callable[[], None]]) -> None:  # Close HTTP client callback when provided
    if close_cb is not None:
        close_cb()


def _normalize_messages(messages: Sequence[Dict[str, str]]) -> list[Dict[str, str]]:  # Ensure message payload shape
    normalized: list[Dict[str, str]] = []
    for item in messages:
        if not isinstance(item, dict):
            raise TypeError("Each chat message must be a dict with role/content")
        role = str(item.get("role", "")).strip()
        content = str(item.get("content", ""))
        if not role:
            raise ValueError("Chat message missing role")
        normalized.append({"role": role, "content": content})
    return normalized


def _preview(messages: Sequence[Dict[str, str]]) -> str:  # Build preview string for logging
    for message in reversed(messages):
        text = message.get("content", "").strip()
        if text:
            return text.splitlines()[0]
    return ""


def _extract_content(data: Any) -> str:  # Extract message content from LLM response
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message") if isinstance(choices[0], dict) else None
            content = message.get("content") if isinstance(message, dict) else None
            if isinstance(content, str):
                return content
        message = data.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        content = data.get("content")
        if isinstance(content, str):
            return content
        if isinstance(content, list) and content and isinstance(content[0], dict):
            text = content[0].get("text")
            if isinstance(text, str):
                return text
        if isinstance(data.get("response"), str):
            return data["response"]
    raise LlmGatewayError("LLM response missing content")


def _strip_code_fences(content: str) -> str:  # Remove common markdown fences from LLM output
    text = content.strip()
    if text.startswith("```"):
        lines = text.splitlines()
        if lines:
            lines = lines[1:]
            while lines and lines[0].strip() == "":
                lines = lines[1:]
            while lines and lines[-1].strip() == "":
                lines = lines[:-1]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            text = "\n".join(lines).strip()
    return text
