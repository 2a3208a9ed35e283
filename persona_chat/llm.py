"""LLM client — HTTP connection to an OpenAI-compatible chat backend.

The pipeline injects a client matching the protocol:

    async def complete(self, config: AIConfig, request: ChatRequest) -> str: ...
    async def list_models(self, base_url: str, api_key: str) -> ModelListing: ...

Endpoints used:
  POST {base_url}/chat/completions
       {"model", "messages", "temperature", "max_tokens", "stream": false}
       Response: {"choices": [{"message": {"content": "..."}}]}
  GET  {base_url}/models, {base_url}/v1/models,
       {origin}/api/models, {origin}/v1/models   (model discovery, in order)

Production code constructs an HttpCompletionClient and hands it to the
moderator and reply generator. Tests use a scripted stub instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from persona_chat.models import AIConfig, ChatRequest

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ApiError(RuntimeError):
    """Raised when the backend cannot be reached or returns an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UnauthorizedError(ApiError):
    """The backend rejected the API key (HTTP 401)."""

    def __init__(self, message: str = "401 Unauthorized: check your API key") -> None:
        super().__init__(message, status_code=401)


# ---------------------------------------------------------------------------
# Protocol — every client implementation must match these signatures
# ---------------------------------------------------------------------------

@dataclass
class ModelListing:
    models: list[str] = field(default_factory=list)
    active_base_url: str = ""


class CompletionClient(Protocol):
    async def complete(self, config: AIConfig, request: ChatRequest) -> str: ...

    async def list_models(self, base_url: str, api_key: str) -> ModelListing: ...


# ---------------------------------------------------------------------------
# Model list parsing
# ---------------------------------------------------------------------------

def parse_models_from_json(data: Any) -> list[str]:
    """Extract model ids from the response shapes seen in the wild.

      {"data": {"1": ["gpt-3"], "2": ["gpt-4"]}}   NewAPI / OneAPI groups
      {"data": [{"id": "gpt-3"}, ...]}             OpenAI
      ["gpt-3", {"id": "gpt-4"}, ...]              bare list
    """
    items: list[Any]
    if isinstance(data, dict) and isinstance(data.get("data"), dict):
        items = []
        for group in data["data"].values():
            if isinstance(group, list):
                items.extend(group)
    elif isinstance(data, dict) and isinstance(data.get("data"), list):
        items = data["data"]
    elif isinstance(data, list):
        items = data
    else:
        return []

    ids: set[str] = set()
    for item in items:
        model_id = item if isinstance(item, str) else item.get("id") if isinstance(item, dict) else None
        if model_id:
            ids.add(model_id)
    return sorted(ids)


def model_list_candidates(base_url: str) -> list[tuple[str, str]]:
    """Return (listing url, derived base url) pairs to try, deduplicated in order."""
    try:
        parsed = httpx.URL(base_url)
    except httpx.InvalidURL as e:
        raise ApiError("Invalid base URL format") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ApiError("Invalid base URL format")

    clean = base_url.rstrip("/")
    origin = f"{parsed.scheme}://{parsed.netloc.decode('ascii')}"
    candidates = [
        (f"{clean}/models", clean),
        (f"{clean}/v1/models", f"{clean}/v1"),
        (f"{origin}/api/models", f"{origin}/v1"),
        (f"{origin}/v1/models", f"{origin}/v1"),
    ]
    seen: set[str] = set()
    unique = []
    for url, derived in candidates:
        if url in seen:
            continue
        seen.add(url)
        unique.append((url, derived))
    return unique


# ---------------------------------------------------------------------------
# HttpCompletionClient — connects to a real backend
# ---------------------------------------------------------------------------

class HttpCompletionClient:
    """Async HTTP client for OpenAI-compatible chat backends.

    Args:
        timeout:        HTTP timeout for completions in seconds. Defaults to 120.
        listing_timeout: HTTP timeout for each model-listing probe. Defaults to 10.
    """

    def __init__(self, timeout: float = 120.0, listing_timeout: float = 10.0) -> None:
        self._timeout = timeout
        self._listing_timeout = listing_timeout

    @staticmethod
    def _headers(api_key: str) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    @staticmethod
    def _parse_response(data: Any) -> str:
        """Extract the assistant text; a null content becomes ""."""
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices or not isinstance(choices[0], dict) or "message" not in choices[0]:
            raise ApiError("Unexpected response format from chat backend")
        return choices[0]["message"].get("content") or ""

    async def complete(self, config: AIConfig, request: ChatRequest) -> str:
        url = f"{config.base_url.rstrip('/')}/chat/completions"
        logger.debug(
            "chat call model=%s url=%s turns=%d", request.model, url, len(request.messages)
        )

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    url, json=request.model_dump(), headers=self._headers(config.api_key)
                )
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise ApiError(f"Cannot connect to chat backend at {config.base_url}") from e
        except httpx.HTTPStatusError as e:
            raise ApiError(
                f"Chat backend returned HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            raise ApiError(f"Chat backend timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise ApiError(f"Request to chat backend failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError("Chat backend returned a non-JSON body") from e
        text = self._parse_response(data)
        logger.debug("chat response model=%s len=%d", request.model, len(text))
        return text

    async def list_models(self, base_url: str, api_key: str) -> ModelListing:
        """Probe the candidate listing endpoints; the first non-empty list wins."""
        last_error: ApiError | None = None

        async with httpx.AsyncClient(timeout=self._listing_timeout) as client:
            for url, derived in model_list_candidates(base_url):
                try:
                    resp = await client.get(url, headers=self._headers(api_key))
                except httpx.HTTPError as e:
                    logger.debug("model listing failed url=%s: %s", url, e)
                    last_error = ApiError(f"Cannot reach {url}")
                    continue

                if resp.status_code == 401:
                    raise UnauthorizedError()
                if resp.status_code >= 400:
                    last_error = ApiError(
                        f"{url} returned HTTP {resp.status_code}", status_code=resp.status_code
                    )
                    continue

                try:
                    models = parse_models_from_json(resp.json())
                except ValueError:
                    models = []
                if models:
                    logger.debug("found %d models at %s", len(models), url)
                    return ModelListing(models=models, active_base_url=derived)

        raise last_error or ApiError(
            "Failed to connect to any model endpoint. Check the base URL."
        )
