"""
egghead/llm/chat.py

Multi-turn chat on top of the Ollama chat API. Used for mentions and the
`ask` / `react` commands, where conversation history and attached images
matter. Single-shot prompts go through the completion backends instead.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

import httpx
from dotenv import load_dotenv
from ollama import AsyncClient, ResponseError

from .errors import MalformedResponse, NetworkError


def strip_thinking(text: str) -> str:
    return re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL).strip()


@dataclass
class ChatRequest:
    """What the chat surface hands to the core: text, prior turns, raw images."""
    prompt: str
    history: list[str] = field(default_factory=list)   # oldest first
    images: list[bytes] = field(default_factory=list)


def build_messages(request: ChatRequest, system_prompt: str = "") -> List[Dict[str, Any]]:
    messages: List[Dict[str, Any]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    for line in request.history:
        if line.strip():
            messages.append({"role": "user", "content": line})
    last: Dict[str, Any] = {"role": "user", "content": request.prompt}
    if request.images:
        last["images"] = list(request.images)
    messages.append(last)
    return messages


class OllamaChatService:
    def __init__(self, host: str, model: str, timeout: float = 120.0, **client_kwargs: Any):
        """
        host : Ollama server URL
        model: default chat model; callers may override per request
        """
        load_dotenv()

        api_key = os.getenv("OLLAMA_API_KEY")
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self.client = AsyncClient(host=host, headers=headers, timeout=timeout, **client_kwargs)
        self.model = model

    async def chat(
        self,
        request: ChatRequest,
        system_prompt: str = "",
        model: str | None = None,
        options: Dict[str, Any] | None = None,
    ) -> str:
        messages = build_messages(request, system_prompt)
        try:
            response = await self.client.chat(
                model=model or self.model,
                messages=messages,
                options=options or {},
            )
        except ResponseError as e:
            raise NetworkError(f"Ollama chat failed ({e.status_code}): {e.error}") from e
        except (httpx.HTTPError, ConnectionError) as e:
            raise NetworkError(f"Ollama chat failed: {e}") from e

        content = getattr(getattr(response, "message", None), "content", None)
        if content is None:
            raise MalformedResponse("Ollama chat response has no message content")

        logging.info(
            "OllamaChatService: %d message(s) in, %d char(s) out",
            len(messages),
            len(content),
        )
        return strip_thinking(content)
