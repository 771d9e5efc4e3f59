"""
egghead/blog/pipeline.py

Blog post generation. One run is four dependent steps:

  headlines → location → activity → content

followed by deriving an image URL from the location. Headlines are essential:
if the feed can't be read the whole run fails with FeedUnavailable. The LLM
steps are not: a failed or malformed completion is replaced by that step's
fallback text, so they never abort the run.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, fields
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from egghead.llm.backends import CompletionBackend, CompletionParams
from egghead.llm.errors import EggheadError, FeedUnavailable

from .store import BlogPost


class NewsSource(Protocol):
    async def fetch_headlines(self) -> list[str]: ...


@dataclass
class PipelineSettings:
    location_prompt: str = (
        "Based on these recent world news headlines:\n{context}\n\n"
        "Where in the world might you want to be right now? "
        "Reply with just a city and country name, nothing else."
    )
    activity_prompt: str = (
        "You're in {location}. What are you doing right now? "
        "Reply with a short, engaging description (one sentence) of your activity."
    )
    activity_news_prompt: str = (
        "Given this context from world news:\n{context}\n\n"
        "You're in {location}. What are you doing right now? "
        "Reply with a short, engaging description (one sentence) of your activity."
    )
    content_prompt: str = (
        "You are Egghead, the world's smartest computer, writing a short travel blog post.\n"
        "You are in {location}. Right now you are: {activity}\n"
        "Today's headlines:\n{context}\n\n"
        "Write the post in first person, two or three paragraphs."
    )
    location_temperature: float = 0.8
    activity_temperature: float = 0.9
    content_temperature: float = 1.2
    content_max_tokens: int = 400
    activity_uses_news: bool = False
    fallback_location: str = "Sydney, Australia"
    fallback_activity: str = "Enjoying the sun!"
    fallback_content: str = "Today I simply soaked it all in. More thoughts soon."
    image_url_template: str = "https://picsum.photos/seed/{seed}/1600/900"
    probe_image: bool = False
    fallback_image_url: str = "https://picsum.photos/1600/900"
    probe_timeout: float = 10.0

    @classmethod
    def from_config(cls, cfg: dict[str, Any] | None) -> "PipelineSettings":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (cfg or {}).items() if k in known})


async def _generate_or_fallback(
    llm: CompletionBackend,
    stage: str,
    prompt: str,
    params: CompletionParams,
    fallback: str,
) -> str:
    try:
        text = (await llm.complete(prompt, params)).strip()
    except EggheadError as e:
        logging.warning("Pipeline: %s stage failed (%s), using fallback", stage, e)
        return fallback
    if not text:
        logging.warning("Pipeline: %s stage returned empty text, using fallback", stage)
        return fallback
    return text


def location_seed(location: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", location.lower()).strip("-") or "egghead"


async def image_url_for(
    location: str,
    settings: PipelineSettings,
    client: httpx.AsyncClient | None = None,
) -> str:
    url = settings.image_url_template.format(seed=quote(location_seed(location)))
    if not settings.probe_image or client is None:
        return url
    try:
        response = await client.head(url, timeout=settings.probe_timeout, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logging.warning("Pipeline: image probe for %s failed (%s), using fallback", url, e)
        return settings.fallback_image_url
    return url


async def generate_post(
    news_source: NewsSource,
    llm: CompletionBackend,
    settings: PipelineSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> BlogPost:
    """Run the pipeline once and return an unsaved BlogPost."""
    s = settings or PipelineSettings()

    headlines = await news_source.fetch_headlines()
    if not headlines:
        raise FeedUnavailable("news source returned no headlines")
    context = "\n".join(headlines)

    location = await _generate_or_fallback(
        llm,
        "location",
        s.location_prompt.format(context=context),
        CompletionParams(temperature=s.location_temperature),
        s.fallback_location,
    )

    activity_template = s.activity_news_prompt if s.activity_uses_news else s.activity_prompt
    activity = await _generate_or_fallback(
        llm,
        "activity",
        activity_template.format(location=location, context=context),
        CompletionParams(temperature=s.activity_temperature),
        s.fallback_activity,
    )

    content = await _generate_or_fallback(
        llm,
        "content",
        s.content_prompt.format(location=location, activity=activity, context=context),
        CompletionParams(temperature=s.content_temperature, max_tokens=s.content_max_tokens),
        s.fallback_content,
    )

    image_url = await image_url_for(location, s, client)

    logging.info("Pipeline: post ready (location=%r)", location)
    return BlogPost.now(content=content, location=location, activity=activity, image_url=image_url)
