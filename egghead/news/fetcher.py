"""
Headline, Wikipedia and Hacker News lookups.

RSS/Atom feeds are fetched with httpx and parsed with feedparser; the
reference lookups hit public JSON endpoints and return short plain strings
ready to relay to chat.
"""

from __future__ import annotations

import html
import logging
import random
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import feedparser
import httpx

from egghead.llm.errors import FeedUnavailable, MalformedResponse, NetworkError

USER_AGENT = "egghead-bot/1.0 (+https://github.com/egghead-bot/egghead)"
WIKIPEDIA_API = "https://en.wikipedia.org/api/rest_v1"
HN_COMMENTS_URL = "https://hn.algolia.com/api/v1/search_by_date?tags=comment"
DEFAULT_HEADLINE_LIMIT = 5


def _clean(s: str) -> str:
    return re.sub(r"\s+", " ", (s or "").strip())


def _strip_html(s: str) -> str:
    return _clean(html.unescape(re.sub(r"<[^>]+>", " ", s or "")))


async def _get(client: httpx.AsyncClient, url: str, timeout: float) -> httpx.Response:
    try:
        response = await client.get(url, timeout=timeout, headers={"User-Agent": USER_AGENT})
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise NetworkError(f"GET {url} failed: {e}") from e
    return response


async def _get_json(client: httpx.AsyncClient, url: str, timeout: float) -> dict[str, Any]:
    response = await _get(client, url, timeout)
    try:
        data = response.json()
    except ValueError as e:
        raise MalformedResponse(f"GET {url} returned non-JSON body") from e
    if not isinstance(data, dict):
        raise MalformedResponse(f"GET {url} returned {type(data).__name__}, expected object")
    return data


# ── Feeds ───────────────────────────────────────────────────────────────────

async def fetch_feed_titles(client: httpx.AsyncClient, feed_url: str, timeout: float = 30.0) -> list[str]:
    """Every non-empty item title in the feed, in feed order."""
    try:
        response = await _get(client, feed_url, timeout)
    except NetworkError as e:
        raise FeedUnavailable(str(e)) from e

    parsed = feedparser.parse(response.text)
    titles = [t for t in (_clean(getattr(entry, "title", "")) for entry in parsed.entries or []) if t]
    if not titles:
        reason = getattr(parsed, "bozo_exception", None) or "no items"
        raise FeedUnavailable(f"{feed_url}: {reason}")
    return titles


async def fetch_headlines(
    client: httpx.AsyncClient,
    feed_url: str,
    limit: int = DEFAULT_HEADLINE_LIMIT,
    timeout: float = 30.0,
) -> list[str]:
    titles = await fetch_feed_titles(client, feed_url, timeout)
    return titles[:limit]


async def random_headline(client: httpx.AsyncClient, feed_url: str, timeout: float = 30.0) -> str:
    return random.choice(await fetch_feed_titles(client, feed_url, timeout))


@dataclass
class HeadlineSource:
    """The news collaborator of the blog pipeline."""
    client: httpx.AsyncClient
    feed_url: str
    limit: int = DEFAULT_HEADLINE_LIMIT
    timeout: float = 30.0

    async def fetch_headlines(self) -> list[str]:
        headlines = await fetch_headlines(self.client, self.feed_url, self.limit, self.timeout)
        logging.info("HeadlineSource: %d headline(s) from %s", len(headlines), self.feed_url)
        return headlines


# ── Reference lookups ───────────────────────────────────────────────────────

async def wikipedia_summary(
    client: httpx.AsyncClient,
    article: str | None = None,
    timeout: float = 30.0,
) -> str:
    """
    Summary of a Wikipedia article, or of a random one when no title is given.
    """
    if article and article.strip():
        url = f"{WIKIPEDIA_API}/page/summary/{quote(article.strip().replace(' ', '_'), safe='')}"
    else:
        url = f"{WIKIPEDIA_API}/page/random/summary"
    data = await _get_json(client, url, timeout)
    title = data.get("title") if isinstance(data.get("title"), str) else "Unknown"
    extract = data.get("extract") if isinstance(data.get("extract"), str) else ""
    return f"**{title}**\n{extract}".rstrip()


async def latest_hn_comment(
    client: httpx.AsyncClient,
    max_chars: int = 280,
    pool: int = 15,
    timeout: float = 30.0,
) -> str:
    data = await _get_json(client, HN_COMMENTS_URL, timeout)
    hits = [h for h in data.get("hits") or [] if isinstance(h, dict)][:pool]
    if not hits:
        return ""
    text = _strip_html(str(random.choice(hits).get("comment_text") or ""))
    return text[:max_chars]
