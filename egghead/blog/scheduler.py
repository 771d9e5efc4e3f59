from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from egghead.llm.errors import parse_error_message

from .store import BlogPost, BlogStore, with_id

DEFAULT_INTERVAL_MINUTES = 20
JOB_ID = "blog_post_tick"

PipelineFn = Callable[[], Awaitable[BlogPost]]


class BlogScheduler:
    """
    Runs the blog pipeline on a fixed interval and persists each result.

    A failed tick is logged and dropped; the next one runs on schedule. The job
    is registered with max_instances=1, so a tick that would start while the
    previous one is still running is skipped.
    """

    def __init__(
        self,
        pipeline: PipelineFn,
        store: BlogStore,
        interval_minutes: float = DEFAULT_INTERVAL_MINUTES,
        scheduler: AsyncIOScheduler | None = None,
    ):
        self.pipeline = pipeline
        self.store = store
        self.interval_minutes = interval_minutes
        self.scheduler = scheduler or AsyncIOScheduler()

    @property
    def running(self) -> bool:
        return self.scheduler.running

    async def run_tick(self) -> BlogPost | None:
        try:
            post = await self.pipeline()
        except Exception as e:  # noqa: BLE001
            logging.warning("Blog tick: pipeline failed: %s", parse_error_message(e))
            return None
        try:
            post_id = await asyncio.to_thread(self.store.save, post)
        except Exception:  # noqa: BLE001
            logging.exception("Blog tick: failed to persist post")
            return None
        logging.info("Blog tick: saved post #%d (%s)", post_id, post.location)
        return with_id(post, post_id)

    def start(self) -> None:
        if self.scheduler.running:
            return
        self.scheduler.add_job(
            self.run_tick,
            "interval",
            minutes=self.interval_minutes,
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logging.info("Blog scheduler started: every %s minute(s)", self.interval_minutes)

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logging.info("Blog scheduler stopped")
