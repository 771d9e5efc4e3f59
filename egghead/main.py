"""
Entrypoint: `python -m egghead.main` or the `egghead` console script.

Builds every collaborator once from config and hands them to the Discord
layer; nothing is kept in module-level globals.
"""

from __future__ import annotations

import asyncio
from functools import partial
import logging
import os
from typing import Any

import httpx

from egghead.blog.pipeline import PipelineSettings, generate_post
from egghead.blog.scheduler import DEFAULT_INTERVAL_MINUTES, BlogScheduler
from egghead.blog.store import BlogStore
from egghead.config.loader import get_config
from egghead.config.personas import try_load_persona
from egghead.discord.bot import create_bot
from egghead.dispatch import DEFAULT_RESPONSE_TIMEOUT, Dispatcher
from egghead.llm.backends import DEFAULT_TIMEOUT_SECONDS, build_backend
from egghead.llm.chat import OllamaChatService
from egghead.news.fetcher import HeadlineSource
from egghead.tts.fakeyou import FakeYouClient

DEFAULT_FEEDS = {
    "world": "https://www.theguardian.com/world/rss",
    "left": "https://www.pbs.org/newshour/feeds/rss/headlines",
    "right": "https://moxie.foxnews.com/google-publisher/latest.xml",
    "green": "https://www.theguardian.com/environment/rss",
}
DEFAULT_DB_PATH = "blog.db"
FAKEYOU_KEYS = ("api_base_url", "asset_base_url", "poll_interval", "max_attempts", "timeout")


def setup_logging() -> None:
    if os.environ.get("DEBUG"):
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s: %(message)s")
        logging.getLogger("httpx").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")
        logging.getLogger("httpx").setLevel(logging.WARNING)


def build_services(config: dict[str, Any], http_client: httpx.AsyncClient) -> tuple[Dispatcher, BlogScheduler | None]:
    providers = config["providers"]
    completion_name = config.get("completion_provider") or next(iter(providers))
    completion = build_backend(providers[completion_name], http_client)

    chat = None
    if chat_name := config.get("chat_provider"):
        chat_cfg = providers[chat_name]
        if chat_cfg.get("flavor") == "ollama":
            chat = OllamaChatService(
                host=chat_cfg["base_url"],
                model=chat_cfg.get("model", ""),
                timeout=float(chat_cfg.get("request_timeout", DEFAULT_TIMEOUT_SECONDS)),
            )
        else:
            logging.warning("chat_provider '%s' is not an Ollama backend; chat uses completions", chat_name)

    blog_cfg = config.get("blog") or {}
    store = BlogStore(blog_cfg.get("db_path", DEFAULT_DB_PATH))
    store.init()

    blog_llm = completion
    if (blog_provider := blog_cfg.get("provider")) and blog_provider != completion_name:
        blog_llm = build_backend(providers[blog_provider], http_client)
    news = HeadlineSource(
        client=http_client,
        feed_url=blog_cfg.get("feed_url") or DEFAULT_FEEDS["world"],
        limit=blog_cfg.get("headline_count", 5),
    )
    pipeline = partial(
        generate_post,
        news,
        blog_llm,
        PipelineSettings.from_config(blog_cfg.get("pipeline")),
        http_client,
    )

    scheduler = None
    if blog_cfg.get("enabled", True):
        scheduler = BlogScheduler(
            pipeline,
            store,
            interval_minutes=blog_cfg.get("interval_minutes", DEFAULT_INTERVAL_MINUTES),
        )

    fakeyou_cfg = config.get("fakeyou") or {}
    fakeyou = FakeYouClient(http_client, **{k: fakeyou_cfg[k] for k in FAKEYOU_KEYS if k in fakeyou_cfg})

    system_prompt = try_load_persona(config.get("persona", "egghead")) or config.get("system_prompt", "")

    dispatcher = Dispatcher(
        completion=completion,
        http_client=http_client,
        fakeyou=fakeyou,
        store=store,
        pipeline=pipeline,
        feeds={**DEFAULT_FEEDS, **(config.get("feeds") or {})},
        chat=chat,
        system_prompt=system_prompt,
        response_timeout=float(config.get("response_timeout", DEFAULT_RESPONSE_TIMEOUT)),
        command_prefix=config.get("command_prefix", "e."),
    )
    return dispatcher, scheduler


async def run_bot(config: dict[str, Any] | None = None) -> None:
    config = config or get_config()
    logging.info("🥚 Egghead starting | providers: %s", list(config["providers"].keys()))

    async with httpx.AsyncClient() as http_client:
        dispatcher, scheduler = build_services(config, http_client)
        bot = create_bot(config, dispatcher, scheduler)
        try:
            await bot.start(config["bot_token"])
        finally:
            if scheduler is not None:
                scheduler.shutdown()
            if not bot.is_closed():
                await bot.close()


def main() -> None:
    setup_logging()
    try:
        asyncio.run(run_bot())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
