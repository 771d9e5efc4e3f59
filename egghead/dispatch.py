"""
Command dispatcher.

Maps chat commands onto the backends. Nothing in here knows about Discord:
callers hand in plain text / ChatRequest objects and get plain strings back.
Errors propagate as EggheadError (or TimeoutError) for the chat layer to turn
into a user-facing reply.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import random
from collections import Counter
from typing import Any, Awaitable, TypeVar

import httpx

from egghead.blog.scheduler import PipelineFn
from egghead.blog.store import BlogPost, BlogStore
from egghead.config.personas import format_system_prompt
from egghead.llm.backends import CompletionBackend, CompletionParams
from egghead.llm.chat import ChatRequest, OllamaChatService, strip_thinking
from egghead.news import fetcher
from egghead.tts.fakeyou import FakeYouClient

T = TypeVar("T")

DEFAULT_RESPONSE_TIMEOUT = 120.0
DEFAULT_CHAT_TEMPERATURE = 1.3

REACT_IMAGE_PROMPT = "You are Egghead, the world's smartest computer. React to the following description: "
REACT_TEXT_PROMPT = "Respond to the following Discord message as Egghead, the world's smartest computer: "
READ_PROMPT = "Respond to the following Discord conversation as Egghead, the world's smartest computer: "

MAGIC_8_BALL = (
    "It is certain",
    "It is decidedly so",
    "Without a doubt",
    "Yes definitely",
    "You may rely on it",
    "As I see it, yes",
    "Most likely",
    "Outlook good",
    "Yes",
    "Signs point to yes",
    "Reply hazy try again",
    "Ask again later",
    "Better not tell you now",
    "Cannot predict now",
    "Concentrate and ask again",
    "Don't count on it",
    "My reply is no",
    "My sources say no",
    "Outlook not so good",
    "Very doubtful",
)

HELP_TEXT = """I'm Egghead, the world's smartest computer. My vast processing resources facilitate understanding beyond human capacity.

**USAGE**
`{p}help` - Displays this help message
`{p}ask <prompt>` - Responds to prompt (or just mention me)
`{p}magic <question>` - Consults the Magic 8-Ball
`{p}react [temp]` - Reacts to the last message (or image) at the given temperature
`{p}read <lines>` - Reads the last few lines of chat and responds
`{p}voices <query>` - Searches text-to-speech voices
`{p}say <voice>` - Reads the previous message aloud in that voice
`{p}left` / `{p}right` / `{p}green` / `{p}world` - Headlines, autocompleted
`{p}wiki [article]` - Wikipedia summary (random if no article)
`{p}hn` - Latest Hacker News comment
`{p}blog [n]` - Writes a fresh blog post and shows the latest n
`{p}posts [n]` - Shows the latest n blog posts
`{p}stats` - Command usage"""


def format_post(post: BlogPost) -> str:
    header = f"**#{post.id} · {post.location}** ({post.timestamp:%Y-%m-%d %H:%M} UTC)"
    return f"{header}\n*{post.activity}*\n{post.content}\n{post.image_url}"


class CommandCounter:
    """Per-command usage tally."""

    def __init__(self) -> None:
        self._counts: Counter[str] = Counter()
        self._lock = asyncio.Lock()

    async def increment(self, name: str) -> int:
        async with self._lock:
            self._counts[name] += 1
            return self._counts[name]

    async def snapshot(self) -> dict[str, int]:
        async with self._lock:
            return dict(self._counts)


class Dispatcher:
    def __init__(
        self,
        completion: CompletionBackend,
        http_client: httpx.AsyncClient,
        fakeyou: FakeYouClient,
        store: BlogStore,
        pipeline: PipelineFn,
        feeds: dict[str, str] | None = None,
        chat: OllamaChatService | None = None,
        system_prompt: str = "",
        response_timeout: float = DEFAULT_RESPONSE_TIMEOUT,
        chat_temperature: float = DEFAULT_CHAT_TEMPERATURE,
        command_prefix: str = "e.",
    ):
        self.completion = completion
        self.http = http_client
        self.fakeyou = fakeyou
        self.store = store
        self.pipeline = pipeline
        self.feeds = dict(feeds or {})
        self.chat = chat
        self.system_prompt = system_prompt
        self.response_timeout = response_timeout
        self.chat_temperature = chat_temperature
        self.command_prefix = command_prefix
        self.counter = CommandCounter()

    async def _timed(self, aw: Awaitable[T]) -> T:
        return await asyncio.wait_for(aw, timeout=self.response_timeout)

    async def _complete(self, prompt: str, **params: Any) -> str:
        text = await self._timed(self.completion.complete(prompt, CompletionParams(**params)))
        return strip_thinking(text)

    # ── Chat ────────────────────────────────────────────────────────────────

    async def ask(self, request: ChatRequest) -> str:
        system = format_system_prompt(self.system_prompt) if self.system_prompt else ""
        if self.chat is not None:
            return await self._timed(
                self.chat.chat(request, system_prompt=system, options={"temperature": self.chat_temperature})
            )
        prompt = "\n".join([*request.history, request.prompt])
        return await self._complete(
            prompt,
            system=system,
            temperature=self.chat_temperature,
            images=[base64.b64encode(img).decode() for img in request.images],
        )

    async def magic(self, question: str) -> str:
        answer = random.choice(MAGIC_8_BALL)
        elaboration = await self._complete(f"{question}\n{answer}", temperature=self.chat_temperature)
        return f"{answer}. {elaboration}".strip()

    async def react(self, request: ChatRequest, temperature: float = 1.0) -> str:
        system = REACT_IMAGE_PROMPT if request.images else REACT_TEXT_PROMPT
        if self.chat is not None and request.images:
            return await self._timed(
                self.chat.chat(request, system_prompt=system, options={"temperature": temperature})
            )
        return await self._complete(
            request.prompt,
            system=system,
            temperature=temperature,
            images=[base64.b64encode(img).decode() for img in request.images],
        )

    async def read(self, history: list[str]) -> str:
        lines = [line for line in history if line.strip() and not line.lstrip().startswith(self.command_prefix)]
        if not lines:
            return "There's nothing here worth reading."
        return await self._complete("\n".join(lines), system=READ_PROMPT, temperature=1.0)

    # ── Text-to-speech ──────────────────────────────────────────────────────

    async def voices(self, query: str) -> str:
        found = await self._timed(self.fakeyou.search_voices(query))
        if not found:
            return f"No voices match '{query}'."
        return "\n".join(f"`{v.title}`" for v in found)

    async def say(self, voice: str, text: str) -> str:
        """Bounded by the poller's attempt budget rather than response_timeout."""
        if not text.strip():
            return "Nothing to say."
        return await self.fakeyou.speak(voice, text)

    # ── Feeds & lookups ─────────────────────────────────────────────────────

    async def headline(self, feed: str) -> str:
        url = self.feeds.get(feed)
        if not url:
            return f"Unknown feed '{feed}'. Try one of: {', '.join(sorted(self.feeds)) or 'none configured'}."
        title = await self._timed(fetcher.random_headline(self.http, url))
        continuation = await self._complete(title, temperature=1.0)
        return f"**{title}**\n{continuation}".rstrip()

    async def wiki(self, article: str | None = None) -> str:
        return await self._timed(fetcher.wikipedia_summary(self.http, article))

    async def hn(self) -> str:
        comment = await self._timed(fetcher.latest_hn_comment(self.http))
        return comment or "Hacker News is quiet right now."

    # ── Blog ────────────────────────────────────────────────────────────────

    async def blog(self, n: int = 3) -> str:
        """Write a fresh post, persist it, and show the latest `n` posts."""
        post = await self._timed(self.pipeline())
        post_id = await asyncio.to_thread(self.store.save, post)
        logging.info("Blog command: saved post #%d", post_id)
        return await self.blog_latest(n)

    async def blog_latest(self, n: int = 3) -> str:
        posts = await asyncio.to_thread(self.store.latest, n)
        if not posts:
            return "No blog posts yet."
        return "\n\n".join(format_post(p) for p in posts)

    # ── Meta ────────────────────────────────────────────────────────────────

    def help_text(self) -> str:
        return HELP_TEXT.format(p=self.command_prefix)

    async def stats(self) -> str:
        counts = await self.counter.snapshot()
        if not counts:
            return "No commands run yet."
        return "\n".join(f"`{name}`: {count}" for name, count in sorted(counts.items(), key=lambda kv: -kv[1]))
