import unittest
from unittest import mock

import httpx

from egghead.llm.errors import FeedUnavailable
from egghead.news import fetcher

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>World news</title>
    <link>https://example.com/world</link>
    <description>Latest</description>
    <item><title>First headline</title><link>https://example.com/1</link></item>
    <item><title>  Second
      headline </title><link>https://example.com/2</link></item>
    <item><title>Third headline</title><link>https://example.com/3</link></item>
  </channel>
</rss>"""


def client_with(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestFeeds(unittest.IsolatedAsyncioTestCase):
    async def test_fetch_headlines_respects_limit_and_cleans_titles(self):
        async with client_with(lambda r: httpx.Response(200, text=RSS)) as http:
            headlines = await fetcher.fetch_headlines(http, "https://example.com/rss", limit=2)
        self.assertEqual(headlines, ["First headline", "Second headline"])

    async def test_garbage_feed_is_unavailable(self):
        async with client_with(lambda r: httpx.Response(200, text="<html>not a feed")) as http:
            with self.assertRaises(FeedUnavailable):
                await fetcher.fetch_headlines(http, "https://example.com/rss")

    async def test_http_error_is_unavailable(self):
        async with client_with(lambda r: httpx.Response(503)) as http:
            with self.assertRaises(FeedUnavailable):
                await fetcher.fetch_headlines(http, "https://example.com/rss")

    async def test_headline_source(self):
        async with client_with(lambda r: httpx.Response(200, text=RSS)) as http:
            source = fetcher.HeadlineSource(http, "https://example.com/rss", limit=5)
            self.assertEqual(len(await source.fetch_headlines()), 3)

    async def test_random_headline_is_from_feed(self):
        async with client_with(lambda r: httpx.Response(200, text=RSS)) as http:
            headline = await fetcher.random_headline(http, "https://example.com/rss")
        self.assertIn(headline, {"First headline", "Second headline", "Third headline"})


class TestLookups(unittest.IsolatedAsyncioTestCase):
    async def test_wikipedia_named_article(self):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, json={"title": "Alan Turing", "extract": "English mathematician."})

        async with client_with(handler) as http:
            summary = await fetcher.wikipedia_summary(http, "Alan Turing")

        self.assertEqual(seen, ["/api/rest_v1/page/summary/Alan_Turing"])
        self.assertEqual(summary, "**Alan Turing**\nEnglish mathematician.")

    async def test_wikipedia_random_with_missing_fields(self):
        def handler(request):
            self.assertEqual(request.url.path, "/api/rest_v1/page/random/summary")
            return httpx.Response(200, json={})

        async with client_with(handler) as http:
            self.assertEqual(await fetcher.wikipedia_summary(http), "**Unknown**")

    async def test_hn_comment_is_stripped_and_truncated(self):
        body = {"hits": [{"comment_text": "<p>Rust is <i>great</i> &amp; fast</p>"}]}
        async with client_with(lambda r: httpx.Response(200, json=body)) as http:
            with mock.patch.object(fetcher.random, "choice", side_effect=lambda seq: seq[0]):
                comment = await fetcher.latest_hn_comment(http, max_chars=14)
        self.assertEqual(comment, "Rust is great ")

    async def test_hn_without_hits(self):
        async with client_with(lambda r: httpx.Response(200, json={"hits": []})) as http:
            self.assertEqual(await fetcher.latest_hn_comment(http), "")


if __name__ == "__main__":
    unittest.main()
