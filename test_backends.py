import json
import unittest

import httpx

from egghead.llm.backends import (
    CompletionParams,
    LlamaCppBackend,
    OllamaBackend,
    OpenAICompletionBackend,
    build_backend,
)
from egghead.llm.errors import MalformedResponse, NetworkError


class Recorder:
    def __init__(self, status=200, body=None):
        self.status = status
        self.body = body if body is not None else {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body)

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


class BackendTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncTearDown(self):
        await self.http.aclose()

    def http_for(self, recorder: Recorder) -> httpx.AsyncClient:
        self.http = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        return self.http


class TestOllamaBackend(BackendTestCase):
    async def test_reads_response_field(self):
        rec = Recorder(body={"model": "gemma3", "response": "  Paris, France\n", "done": True})
        backend = OllamaBackend(self.http_for(rec), "http://ollama:11434/", "gemma3:270m")

        text = await backend.complete("where?", CompletionParams(temperature=0.8, max_tokens=50, system="Be brief."))

        self.assertEqual(text, "Paris, France")
        self.assertEqual(str(rec.requests[-1].url), "http://ollama:11434/api/generate")
        body = rec.last_json
        self.assertEqual(body["model"], "gemma3:270m")
        self.assertFalse(body["stream"])
        self.assertEqual(body["temperature"], 0.8)
        self.assertEqual(body["options"], {"temperature": 0.8, "num_predict": 50})
        self.assertEqual(body["prompt"], "Be brief.\nwhere?")

    async def test_missing_field_is_malformed(self):
        backend = OllamaBackend(self.http_for(Recorder(body={"done": True})), "http://ollama", "m")
        with self.assertRaises(MalformedResponse):
            await backend.complete("x")

    async def test_http_error_is_network_error(self):
        backend = OllamaBackend(self.http_for(Recorder(status=500, body={"error": "oom"})), "http://ollama", "m")
        with self.assertRaises(NetworkError):
            await backend.complete("x")

    async def test_images_are_forwarded(self):
        rec = Recorder(body={"response": "a cat"})
        backend = OllamaBackend(self.http_for(rec), "http://ollama", "llava")

        await backend.complete("what is this?", CompletionParams(images=["aGVsbG8="]))

        self.assertEqual(rec.last_json["images"], ["aGVsbG8="])


class TestLlamaCppBackend(BackendTestCase):
    async def test_reads_content_field(self):
        rec = Recorder(body={"content": " hello there", "stop": True})
        backend = LlamaCppBackend(self.http_for(rec), "http://llama:8081")

        text = await backend.complete("hi", CompletionParams(temperature=1.0, max_tokens=64))

        self.assertEqual(text, "hello there")
        self.assertEqual(rec.requests[-1].url.path, "/completion")
        self.assertEqual(rec.last_json["n_predict"], 64)

    async def test_non_string_content_is_malformed(self):
        backend = LlamaCppBackend(self.http_for(Recorder(body={"content": None})), "http://llama")
        with self.assertRaises(MalformedResponse):
            await backend.complete("hi")


class TestOpenAICompletionBackend(BackendTestCase):
    async def test_reads_first_choice_text(self):
        rec = Recorder(body={
            "id": "cmpl-1",
            "object": "text_completion",
            "created": 0,
            "model": "egghead",
            "choices": [{"text": " I am Egghead.", "index": 0, "finish_reason": "stop", "logprobs": None}],
        })
        backend = OpenAICompletionBackend(self.http_for(rec), "http://serge:8080/v1", "egghead")

        text = await backend.complete("who are you?", CompletionParams(temperature=1.3))

        self.assertEqual(text, "I am Egghead.")
        self.assertEqual(rec.requests[-1].url.path, "/v1/completions")
        self.assertEqual(rec.last_json["temperature"], 1.3)
        self.assertEqual(rec.last_json["prompt"], "who are you?")

    async def test_no_choices_is_malformed(self):
        rec = Recorder(body={"id": "cmpl-1", "object": "text_completion", "created": 0, "model": "m", "choices": []})
        backend = OpenAICompletionBackend(self.http_for(rec), "http://serge:8080/v1", "m")
        with self.assertRaises(MalformedResponse):
            await backend.complete("x")


class TestBuildBackend(BackendTestCase):
    async def test_selects_by_flavor(self):
        http = self.http_for(Recorder())
        self.assertIsInstance(build_backend({"flavor": "ollama", "base_url": "http://o", "model": "m"}, http), OllamaBackend)
        self.assertIsInstance(build_backend({"flavor": "llamacpp", "base_url": "http://l"}, http), LlamaCppBackend)
        self.assertIsInstance(build_backend({"base_url": "http://s/v1", "model": "m"}, http), OpenAICompletionBackend)
        with self.assertRaises(ValueError):
            build_backend({"flavor": "bert", "base_url": "http://x"}, http)


if __name__ == "__main__":
    unittest.main()
