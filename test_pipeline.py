import os
import tempfile
import unittest

import httpx

from egghead.blog.pipeline import PipelineSettings, generate_post, image_url_for, location_seed
from egghead.blog.scheduler import BlogScheduler
from egghead.blog.store import BlogStore
from egghead.llm.backends import CompletionParams, OllamaBackend
from egghead.llm.errors import FeedUnavailable, MalformedResponse, NetworkError
from egghead.news.fetcher import HeadlineSource

EMPTY_RSS = """<?xml version="1.0"?>
<rss version="2.0"><channel><title>World news</title><link>https://example.com</link></channel></rss>"""


class FakeNews:
    def __init__(self, headlines):
        self.headlines = headlines

    async def fetch_headlines(self):
        return list(self.headlines)


class ScriptedLLM:
    """Returns (or raises) the scripted replies in order and records prompts."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: list[tuple[str, CompletionParams]] = []

    async def complete(self, prompt, params=None):
        self.calls.append((prompt, params))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class TestGeneratePost(unittest.IsolatedAsyncioTestCase):
    async def test_happy_path_chains_stage_outputs(self):
        news = FakeNews(["Storm hits coast", "Markets rally"])
        llm = ScriptedLLM("Paris, France", "Eating a croissant by the Seine.", "Bonjour from Paris!")

        post = await generate_post(news, llm)

        self.assertIsNone(post.id)
        self.assertEqual(post.location, "Paris, France")
        self.assertEqual(post.activity, "Eating a croissant by the Seine.")
        self.assertEqual(post.content, "Bonjour from Paris!")
        self.assertEqual(post.image_url, "https://picsum.photos/seed/paris-france/1600/900")
        self.assertIsNotNone(post.timestamp.tzinfo)

        (loc_prompt, loc_params), (act_prompt, act_params), (body_prompt, body_params) = llm.calls
        self.assertIn("Storm hits coast\nMarkets rally", loc_prompt)
        self.assertEqual(loc_params.temperature, 0.8)
        self.assertIn("Paris, France", act_prompt)
        self.assertNotIn("Storm hits coast", act_prompt)
        self.assertEqual(act_params.temperature, 0.9)
        self.assertIn("Eating a croissant", body_prompt)
        self.assertIn("Markets rally", body_prompt)
        self.assertEqual(body_params.max_tokens, PipelineSettings().content_max_tokens)

    async def test_activity_can_include_news(self):
        llm = ScriptedLLM("Oslo, Norway", "Skiing.", "Hei!")
        settings = PipelineSettings(activity_uses_news=True)

        await generate_post(FakeNews(["Snowfall record"]), llm, settings)

        self.assertIn("Snowfall record", llm.calls[1][0])

    async def test_llm_failures_fall_back_per_stage(self):
        settings = PipelineSettings(fallback_content="canned")
        llm = ScriptedLLM(MalformedResponse("no response"), NetworkError("down"), "   ")

        post = await generate_post(FakeNews(["x"]), llm, settings)

        self.assertEqual(post.location, "Sydney, Australia")
        self.assertEqual(post.activity, "Enjoying the sun!")
        self.assertEqual(post.content, "canned")

    async def test_malformed_ollama_replies_use_fallbacks(self):
        def handler(request):
            return httpx.Response(200, json={"model": "gemma3:270m", "done": True})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            llm = OllamaBackend(http, "http://ollama", "gemma3:270m")
            settings = PipelineSettings(fallback_location="Lisbon, Portugal", fallback_activity="Walking.")
            post = await generate_post(FakeNews(["headline"]), llm, settings)

        self.assertEqual(post.location, "Lisbon, Portugal")
        self.assertEqual(post.activity, "Walking.")
        self.assertEqual(post.content, settings.fallback_content)

    async def test_no_headlines_aborts(self):
        llm = ScriptedLLM()
        with self.assertRaises(FeedUnavailable):
            await generate_post(FakeNews([]), llm)
        self.assertEqual(llm.calls, [])

    async def test_empty_feed_fails_fast_and_persists_nothing(self):
        def handler(request):
            return httpx.Response(200, text=EMPTY_RSS, headers={"content-type": "application/rss+xml"})

        with tempfile.TemporaryDirectory() as tmp:
            store = BlogStore(os.path.join(tmp, "blog.db"))
            store.init()
            llm = ScriptedLLM()
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                news = HeadlineSource(http, "https://feeds.example.com/world/rss")
                scheduler = BlogScheduler(lambda: generate_post(news, llm), store)

                with self.assertRaises(FeedUnavailable):
                    await generate_post(news, llm)
                with self.assertLogs(level="WARNING"):
                    self.assertIsNone(await scheduler.run_tick())

            self.assertEqual(llm.calls, [])
            self.assertEqual(store.latest(10), [])


class TestImageUrl(unittest.IsolatedAsyncioTestCase):
    def test_seed_is_deterministic(self):
        self.assertEqual(location_seed("São Paulo, Brazil"), location_seed("São Paulo, Brazil"))
        self.assertEqual(location_seed("Tokyo, Japan"), "tokyo-japan")
        self.assertEqual(location_seed("!!!"), "egghead")

    async def test_probe_failure_uses_fallback(self):
        def handler(request):
            self.assertEqual(request.method, "HEAD")
            return httpx.Response(404)

        settings = PipelineSettings(probe_image=True, fallback_image_url="https://img.example.com/generic.jpg")
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            url = await image_url_for("Rome, Italy", settings, http)

        self.assertEqual(url, "https://img.example.com/generic.jpg")

    async def test_probe_success_keeps_seeded_url(self):
        settings = PipelineSettings(probe_image=True)
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200))) as http:
            url = await image_url_for("Rome, Italy", settings, http)

        self.assertEqual(url, "https://picsum.photos/seed/rome-italy/1600/900")


class TestPipelineSettings(unittest.TestCase):
    def test_from_config_ignores_unknown_keys(self):
        settings = PipelineSettings.from_config({"fallback_location": "Cairo, Egypt", "bogus": 1})
        self.assertEqual(settings.fallback_location, "Cairo, Egypt")
        self.assertEqual(PipelineSettings.from_config(None), PipelineSettings())


if __name__ == "__main__":
    unittest.main()
