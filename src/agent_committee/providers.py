"""Capability providers for the supported inference backends.

Each provider wraps one remote API behind the same small surface:
- ``run``: send one prompt, get plain text back (raises ProviderError)
- ``list_models``: model ids the backend reports (empty list on failure)
- ``best_available_model``: ranked choice over a per-instance TTL cache

Requests go through ``httpx.AsyncClient``; pass ``client=`` to share or mock it.
"""

from __future__ import annotations

import logging
import math
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

import httpx

from . import config
from .credentials import ANTHROPIC, GEMINI, GROQ, OPENAI
from .errors import ConfigurationError, ProviderError
from .failure_classifier import parse_retry_after
from .model_selection import select_best_model
from .types import GenerationOptions, ModelCacheEntry

logger = logging.getLogger(__name__)

# Raised by extract_* when a decoded body has an unexpected shape
MALFORMED_SHAPE_ERRORS = (AttributeError, TypeError, KeyError, IndexError)


class CapabilityProvider(ABC):
    """Base class for backend providers."""

    name = ""
    base_url_default = ""

    def __init__(
        self,
        api_key: str,
        *,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout_secs: float = config.HTTP_TIMEOUT_SECS,
        cache_ttl_secs: float = config.MODEL_CACHE_TTL_SECS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not api_key:
            raise ConfigurationError(f"API key is required for provider '{self.name}'")
        self._api_key = api_key
        self.model = model
        self.base_url = (base_url or self.base_url_default).rstrip("/")
        self.timeout_secs = timeout_secs
        self.cache_ttl_secs = cache_ttl_secs
        self._clock = clock
        self._client = client
        self._owns_client = client is None
        self._model_cache: Optional[ModelCacheEntry] = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model!r}, base_url={self.base_url!r})"

    # Backend specifics

    @abstractmethod
    def default_model(self) -> str:
        """Return the model id used when none is configured or listing fails."""
        pass

    @abstractmethod
    def headers(self) -> Dict[str, str]:
        """Return headers with provider-specific auth.

        Returns:
            Headers dict with auth and content-type set
        """
        pass

    @abstractmethod
    def build_request(self, prompt: str, model: str, options: GenerationOptions) -> Tuple[str, Dict[str, Any]]:
        """Build one completion call.

        Args:
            prompt: Full prompt text for a single user turn
            model: Backend model id
            options: Temperature and output token cap

        Returns:
            (path relative to base_url, JSON body)
        """
        pass

    @abstractmethod
    def extract_text(self, data: Dict[str, Any]) -> Optional[str]:
        """Pull the reply text out of a decoded completion body.

        Args:
            data: Decoded JSON response

        Returns:
            Reply text, or None when the body carries none. May raise
            AttributeError/TypeError/KeyError/IndexError on unexpected shapes;
            ``run`` reports those as ProviderError.
        """
        pass

    def models_path(self) -> str:
        return "/models"

    def extract_models(self, data: Dict[str, Any]) -> List[str]:
        """Model ids from a decoded listing body. Default: OpenAI ``data[].id`` shape."""
        items = data.get("data") or []
        return [item["id"] for item in items if isinstance(item, dict) and isinstance(item.get("id"), str)]

    # Shared behaviour

    async def run(self, prompt: str, options: Optional[GenerationOptions] = None) -> str:
        options = options or GenerationOptions()
        model = self.model or self.default_model()
        path, body = self.build_request(prompt, model, options)
        data = await self._request("POST", path, json=body)
        if not isinstance(data, dict):
            raise ProviderError(f"{self.name}: malformed response from model {model}", self.name)
        try:
            text = self.extract_text(data)
        except MALFORMED_SHAPE_ERRORS as exc:
            raise ProviderError(
                f"{self.name}: malformed response from model {model}: {type(exc).__name__}",
                self.name,
            ) from exc
        if not isinstance(text, str) or not text.strip():
            raise ProviderError(f"{self.name}: empty response from model {model}", self.name)
        return text

    async def list_models(self) -> List[str]:
        try:
            data = await self._request("GET", self.models_path())
        except ProviderError as exc:
            logger.debug("list_models failed provider=%s error=%s", self.name, exc.message)
            return []
        if not isinstance(data, dict):
            return []
        try:
            models = self.extract_models(data)
        except MALFORMED_SHAPE_ERRORS as exc:
            logger.debug("list_models malformed body provider=%s error=%r", self.name, exc)
            return []
        return [m for m in models if isinstance(m, str)]

    async def best_available_model(self, force_refresh: bool = False) -> str:
        entry = self._model_cache
        if force_refresh or entry is None or not entry.is_fresh(self._clock()):
            candidates = await self.list_models()
            if not candidates:
                return self.default_model()
            entry = ModelCacheEntry(candidates=candidates, fetched_at=self._clock(), ttl_secs=self.cache_ttl_secs)
            self._model_cache = entry
        return select_best_model(entry.candidates) or self.default_model()

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "CapabilityProvider":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_secs)
            self._owns_client = True
        return self._client

    def _redact(self, text: str) -> str:
        if self._api_key and self._api_key in text:
            return text.replace(self._api_key, "***")
        return text

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        client = self._get_client()
        try:
            response = await client.request(method, url, json=json, headers=self.headers())
        except httpx.HTTPError as exc:
            detail = str(exc) or type(exc).__name__
            raise ProviderError(self._redact(f"{self.name} request failed: {detail}"), self.name) from exc
        if response.status_code >= 400:
            raise self._error_from_response(response)
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(
                f"{self.name}: malformed response body",
                self.name,
                upstream_status=response.status_code,
            ) from exc

    def _error_from_response(self, response: httpx.Response) -> ProviderError:
        detail = ""
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            err = payload.get("error")
            if isinstance(err, dict):
                detail = str(err.get("message") or err.get("type") or "")
            elif isinstance(err, str):
                detail = err
            elif isinstance(payload.get("message"), str):
                detail = payload["message"]
        if not detail:
            detail = (response.text or "").strip()[:500] or response.reason_phrase
        message = self._redact(f"{self.name} API error ({response.status_code}): {detail}")
        retry_after = _parse_retry_after_header(response.headers.get("retry-after"))
        if retry_after is None:
            retry_after = parse_retry_after(message)
        return ProviderError(
            message,
            self.name,
            upstream_status=response.status_code,
            retry_after_secs=retry_after,
        )


def _parse_retry_after_header(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        # HTTP-date form; treat as no hint
        return None


class OpenAIProvider(CapabilityProvider):
    name = OPENAI
    base_url_default = config.OPENAI_BASE_URL

    def default_model(self) -> str:
        return "gpt-4o-mini"

    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

    def build_request(self, prompt: str, model: str, options: GenerationOptions) -> Tuple[str, Dict[str, Any]]:
        body = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
        }
        return "/chat/completions", body

    def extract_text(self, data: Dict[str, Any]) -> Optional[str]:
        choices = data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return None
        message = choices[0].get("message") or {}
        return message.get("content")


class AnthropicProvider(CapabilityProvider):
    name = ANTHROPIC
    base_url_default = config.ANTHROPIC_BASE_URL
    api_version = "2023-06-01"

    def default_model(self) -> str:
        return "claude-3-5-sonnet-20241022"

    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "x-api-key": self._api_key,
            "anthropic-version": self.api_version,
        }

    def build_request(self, prompt: str, model: str, options: GenerationOptions) -> Tuple[str, Dict[str, Any]]:
        body = {
            "model": model,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        return "/messages", body

    def extract_text(self, data: Dict[str, Any]) -> Optional[str]:
        blocks = data.get("content") or []
        parts = [b.get("text", "") for b in blocks if isinstance(b, dict) and b.get("type") == "text"]
        return "".join(parts) if parts else None


class GeminiProvider(CapabilityProvider):
    name = GEMINI
    base_url_default = config.GEMINI_BASE_URL

    def default_model(self) -> str:
        return "gemini-1.5-flash"

    def headers(self) -> Dict[str, str]:
        # Key travels in a header so it never shows up in request URLs or transport errors
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self._api_key,
        }

    def build_request(self, prompt: str, model: str, options: GenerationOptions) -> Tuple[str, Dict[str, Any]]:
        model_id = model[len("models/"):] if model.startswith("models/") else model
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": options.temperature,
                "maxOutputTokens": options.max_tokens,
            },
        }
        return f"/models/{model_id}:generateContent", body

    def extract_text(self, data: Dict[str, Any]) -> Optional[str]:
        candidates = data.get("candidates") or []
        if not candidates or not isinstance(candidates[0], dict):
            return None
        parts = (candidates[0].get("content") or {}).get("parts") or []
        texts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
        return "".join(texts) if texts else None

    def extract_models(self, data: Dict[str, Any]) -> List[str]:
        models = []
        for item in data.get("models") or []:
            if not isinstance(item, dict) or not isinstance(item.get("name"), str):
                continue
            if "generateContent" not in (item.get("supportedGenerationMethods") or []):
                continue
            name = item["name"]
            models.append(name[len("models/"):] if name.startswith("models/") else name)
        return models


# Groq prompt reduction

_AGENT_RE = re.compile(r"AGENT:\s*([^\n\(]+)\s*\(([^\)]+)\)")
_ROLE_RE = re.compile(r"Role:\s*([^\n]+)")
_AGENT_NAME_RE = re.compile(r"(?:FRONTEND|BACKEND|FULLSTACK)?\s*AGENT:\s*([^\n\(]+)")
_TASK_RE = re.compile(r"Task:\s*([^\n]+(?:\n[^\n]+)*?)(?=\n\n|\n---|\Z)")
_YOU_ARE_RE = re.compile(r"You are [^\n]+")
_TASK_LINE_RE = re.compile(r"Task: [^\n]+")

REDUCED_PROMPT_TAIL = "Provide a concise analysis and recommendations. Keep response under 250 tokens.\n"


def estimate_tokens(text: str) -> int:
    """Conservative estimate: one token per three characters."""
    if not text:
        return 0
    return math.ceil(len(text) / 3)


def reduce_prompt(prompt: str, max_input_tokens: int = config.GROQ_MAX_INPUT_TOKENS) -> str:
    """Shrink an over-budget prompt to role and task; prompts within budget pass through."""
    if estimate_tokens(prompt) <= max_input_tokens:
        return prompt

    max_chars = (max_input_tokens - 300) * 3
    agent_name = ""
    role = ""
    match = _AGENT_RE.search(prompt)
    if match:
        agent_name = match.group(1).strip()
        role = match.group(2).strip()
    else:
        role_match = _ROLE_RE.search(prompt)
        if role_match:
            role = role_match.group(1).strip()
        name_match = _AGENT_NAME_RE.search(prompt)
        if name_match:
            agent_name = name_match.group(1).strip()

    result = ""
    if agent_name and role:
        result += f"You are {agent_name}, a {role}.\n\n"
    elif role:
        result += f"You are a {role}.\n\n"
    elif agent_name:
        result += f"You are {agent_name}.\n\n"

    task_match = _TASK_RE.search(prompt)
    if task_match:
        task = task_match.group(1).strip()
        if len(task) > 400:
            task = task[:397] + "..."
        result += f"Task: {task}\n\n"
    else:
        for line in prompt.split("\n"):
            lower = line.lower()
            if "task:" in lower or "request:" in lower:
                task_line = line[:297] + "..." if len(line) > 300 else line
                result += f"{task_line}\n\n"
                break

    result += REDUCED_PROMPT_TAIL

    if len(result) > max_chars:
        result = result[: max(0, max_chars - 50)] + "\n[Truncated]"

    if estimate_tokens(result) > max_input_tokens:
        role_line = _YOU_ARE_RE.search(result)
        task_line = _TASK_LINE_RE.search(result)
        minimal = (
            f"{role_line.group(0) if role_line else ''}\n\n"
            f"{task_line.group(0) if task_line else ''}\n\nProvide brief analysis."
        )
        if estimate_tokens(minimal) <= max_input_tokens:
            return minimal
        return result[: max(0, (max_input_tokens - 100) * 3)]
    return result


class GroqProvider(OpenAIProvider):
    """OpenAI-compatible API with a small context window."""

    name = GROQ
    base_url_default = config.GROQ_BASE_URL

    def __init__(self, api_key: str, *, max_input_tokens: int = config.GROQ_MAX_INPUT_TOKENS, **kwargs: Any) -> None:
        super().__init__(api_key, **kwargs)
        self.max_input_tokens = max_input_tokens

    def default_model(self) -> str:
        return "llama-3.3-70b-versatile"

    def build_request(self, prompt: str, model: str, options: GenerationOptions) -> Tuple[str, Dict[str, Any]]:
        reduced = reduce_prompt(prompt, self.max_input_tokens)
        if reduced != prompt:
            logger.warning(
                "groq prompt reduced from ~%d to ~%d tokens",
                estimate_tokens(prompt),
                estimate_tokens(reduced),
            )
        max_tokens = min(options.max_tokens or config.GROQ_DEFAULT_OUTPUT_TOKENS, config.GROQ_MAX_OUTPUT_TOKENS)
        capped = GenerationOptions(temperature=options.temperature, max_tokens=max_tokens)
        return super().build_request(reduced, model, capped)


# Provider registry
PROVIDER_CLASSES: Dict[str, Type[CapabilityProvider]] = {
    OPENAI: OpenAIProvider,
    ANTHROPIC: AnthropicProvider,
    GEMINI: GeminiProvider,
    GROQ: GroqProvider,
}


def create_provider(provider: str, api_key: str, **kwargs: Any) -> CapabilityProvider:
    """Instantiate the provider registered under ``provider``."""
    cls = PROVIDER_CLASSES.get(provider)
    if cls is None:
        raise ConfigurationError(f"Unknown provider: {provider}")
    return cls(api_key, **kwargs)


def register_provider(name: str, cls: Type[CapabilityProvider]) -> None:
    """Register a custom provider class."""
    PROVIDER_CLASSES[name] = cls
