"""
egghead/llm/backends.py

Completion backends: one class per wire format, all exposing the same
`complete(prompt, params) -> str` coroutine.

flavor:
  "openai"  : OpenAI-compatible /completions, text at choices[0].text
  "ollama"  : Ollama /api/generate, text at `response`
  "llamacpp": llama.cpp server /completion, text at `content`
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
import openai
from openai import AsyncOpenAI

from .errors import MalformedResponse, NetworkError

DEFAULT_TIMEOUT_SECONDS = 120.0


@dataclass
class CompletionParams:
    temperature: float = 0.7
    max_tokens: int | None = None
    system: str = ""                                   # prepended to the prompt
    model: str | None = None                           # overrides the backend default
    images: list[str] = field(default_factory=list)    # base64, ignored by text-only flavors


class CompletionBackend(Protocol):
    async def complete(self, prompt: str, params: CompletionParams | None = None) -> str: ...


def build_prompt(prompt: str, params: CompletionParams) -> str:
    if not params.system:
        return prompt
    return f"{params.system.rstrip()}\n{prompt}"


def _extract_text(data: Any, key: str) -> str:
    if not isinstance(data, dict):
        raise MalformedResponse(f"expected a JSON object, got {type(data).__name__}")
    text = data.get(key)
    if not isinstance(text, str):
        raise MalformedResponse(f"response is missing string field '{key}'")
    return text


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    payload: dict[str, Any],
    timeout: float,
) -> Any:
    """POST a JSON body and decode the JSON reply, mapping failures to EggheadError."""
    try:
        response = await client.post(url, json=payload, timeout=timeout)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise NetworkError(f"POST {url} failed: {e}") from e
    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponse(f"POST {url} returned non-JSON body") from e


# ── Ollama ──────────────────────────────────────────────────────────────────

class OllamaBackend:
    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        model: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.client = client
        self.url = base_url.rstrip("/") + "/api/generate"
        self.model = model
        self.timeout = timeout

    async def complete(self, prompt: str, params: CompletionParams | None = None) -> str:
        params = params or CompletionParams()
        options: dict[str, Any] = {"temperature": params.temperature}
        if params.max_tokens:
            options["num_predict"] = params.max_tokens
        payload: dict[str, Any] = {
            "model": params.model or self.model,
            "prompt": build_prompt(prompt, params),
            "stream": False,
            "temperature": params.temperature,
            "options": options,
        }
        if params.images:
            payload["images"] = params.images
        data = await post_json(self.client, self.url, payload, self.timeout)
        return _extract_text(data, "response").strip()


# ── llama.cpp server ────────────────────────────────────────────────────────

class LlamaCppBackend:
    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.client = client
        self.url = base_url.rstrip("/") + "/completion"
        self.timeout = timeout

    async def complete(self, prompt: str, params: CompletionParams | None = None) -> str:
        params = params or CompletionParams()
        payload: dict[str, Any] = {
            "prompt": build_prompt(prompt, params),
            "temperature": params.temperature,
            "stream": False,
        }
        if params.max_tokens:
            payload["n_predict"] = params.max_tokens
        if params.images:
            payload["image_data"] = [{"data": img, "id": i} for i, img in enumerate(params.images)]
        data = await post_json(self.client, self.url, payload, self.timeout)
        return _extract_text(data, "content").strip()


# ── OpenAI-compatible ───────────────────────────────────────────────────────

class OpenAICompletionBackend:
    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        model: str,
        api_key: str = "sk-no-key-required",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.client = AsyncOpenAI(base_url=base_url, api_key=api_key, http_client=client, timeout=timeout)
        self.model = model

    async def complete(self, prompt: str, params: CompletionParams | None = None) -> str:
        params = params or CompletionParams()
        create_kw: dict[str, Any] = dict(
            model=params.model or self.model,
            prompt=build_prompt(prompt, params),
            temperature=params.temperature,
        )
        if params.max_tokens:
            create_kw["max_tokens"] = params.max_tokens
        try:
            response = await self.client.completions.create(**create_kw)
        except openai.APIError as e:
            raise NetworkError(f"completion request failed: {e}") from e
        try:
            text = response.choices[0].text
        except (AttributeError, IndexError, TypeError) as e:
            raise MalformedResponse("response has no choices[0].text") from e
        if not isinstance(text, str):
            raise MalformedResponse("choices[0].text is not a string")
        return text.strip()


# ── Factory ─────────────────────────────────────────────────────────────────

def build_backend(provider_cfg: dict[str, Any], client: httpx.AsyncClient) -> CompletionBackend:
    """
    Build a completion backend from a provider config block, e.g.

        flavor: ollama
        base_url: http://localhost:11434
        model: gemma3:270m
    """
    flavor = provider_cfg.get("flavor", "openai")
    timeout = float(provider_cfg.get("request_timeout", DEFAULT_TIMEOUT_SECONDS))
    base_url = provider_cfg["base_url"]
    model = provider_cfg.get("model", "")
    logging.info("CompletionBackend: %s → %s (model=%s)", flavor, base_url, model or "-")

    if flavor == "ollama":
        return OllamaBackend(client, base_url, model, timeout=timeout)
    if flavor == "llamacpp":
        return LlamaCppBackend(client, base_url, timeout=timeout)
    if flavor == "openai":
        return OpenAICompletionBackend(
            client,
            base_url,
            model,
            api_key=provider_cfg.get("api_key", "sk-no-key-required"),
            timeout=timeout,
        )
    raise ValueError(f"Unknown completion backend flavor: {flavor!r}")
