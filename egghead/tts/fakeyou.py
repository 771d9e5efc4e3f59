"""
egghead/tts/fakeyou.py

FakeYou text-to-speech client.

A TTS request is an async job: submit text for a voice, get a job token back,
then poll the job endpoint until it reports a terminal state. On success the
job carries a path fragment that is joined onto the asset host to form the
download URL.
"""

from __future__ import annotations

import asyncio
import difflib
import enum
import logging
import uuid
from dataclasses import dataclass
from typing import Any

import httpx

from egghead.llm.errors import JobFailed, MalformedResponse, NetworkError, PollTimeout, VoiceNotFound

API_BASE_URL = "https://api.fakeyou.com"
ASSET_BASE_URL = "https://api.fakeyou.com"
DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_MAX_ATTEMPTS = 60

_SUCCESS_STATES = {"complete_success"}
_FAILURE_STATES = {"complete_failure", "dead"}


class JobStatus(enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class Voice:
    model_token: str
    title: str


@dataclass(frozen=True)
class JobHandle:
    job_token: str


@dataclass(frozen=True)
class GenerationJob:
    job_token: str
    status: JobStatus
    result_path: str | None = None
    raw_status: str = ""

    def __post_init__(self) -> None:
        if (self.status is JobStatus.SUCCESS) != (self.result_path is not None):
            raise ValueError("result_path must be set exactly when status is SUCCESS")

    @property
    def is_terminal(self) -> bool:
        return self.status is not JobStatus.PENDING


class FakeYouClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        api_base_url: str = API_BASE_URL,
        asset_base_url: str = ASSET_BASE_URL,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timeout: float = 30.0,
    ):
        self.client = client
        self.api_base_url = api_base_url.rstrip("/")
        self.asset_base_url = asset_base_url.rstrip("/")
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.timeout = timeout

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self.api_base_url}{path}"
        try:
            response = await self.client.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e
        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponse(f"{method} {url} returned non-JSON body") from e
        if not isinstance(data, dict):
            raise MalformedResponse(f"{method} {url} returned {type(data).__name__}, expected object")
        return data

    # ── Voices ──────────────────────────────────────────────────────────────

    async def list_voices(self) -> list[Voice]:
        data = await self._request("GET", "/tts/list")
        models = data.get("models")
        if not isinstance(models, list):
            raise MalformedResponse("voice list has no 'models' array")
        voices = []
        for m in models:
            if isinstance(m, dict) and isinstance(m.get("model_token"), str):
                voices.append(Voice(model_token=m["model_token"], title=str(m.get("title", ""))))
        return voices

    async def find_voice(self, name: str) -> Voice:
        needle = name.strip().lower()
        for voice in await self.list_voices():
            if needle and needle in voice.title.lower():
                return voice
        raise VoiceNotFound(name)

    async def search_voices(self, query: str, limit: int = 10) -> list[Voice]:
        """Rank voices by how closely their title matches `query`."""
        voices = await self.list_voices()
        q = query.strip().lower()
        if not q:
            return voices[:limit]

        def score(v: Voice) -> float:
            title = v.title.lower()
            ratio = difflib.SequenceMatcher(None, q, title).ratio()
            return ratio + (1.0 if q in title else 0.0)

        ranked = sorted(voices, key=score, reverse=True)
        return [v for v in ranked if score(v) > 0.3][:limit]

    # ── Jobs ────────────────────────────────────────────────────────────────

    async def submit_job(self, voice_token: str, text: str) -> JobHandle:
        body = {
            "uuid_idempotency_token": str(uuid.uuid4()),
            "tts_model_token": voice_token,
            "inference_text": text,
        }
        data = await self._request("POST", "/tts/inference", json=body)
        token = data.get("inference_job_token") or data.get("job_token")
        if not isinstance(token, str) or not token:
            raise MalformedResponse("inference response has no job token")
        logging.info("FakeYou: submitted job %s (voice=%s, %d chars)", token, voice_token, len(text))
        return JobHandle(job_token=token)

    async def poll_once(self, handle: JobHandle) -> GenerationJob:
        data = await self._request("GET", f"/tts/job/{handle.job_token}")
        state = data.get("state")
        if not isinstance(state, dict) or not isinstance(state.get("status"), str):
            raise MalformedResponse(f"job {handle.job_token} response has no state.status")

        raw = state["status"]
        if raw in _SUCCESS_STATES:
            path = state.get("maybe_public_bucket_wav_audio_path")
            if not isinstance(path, str) or not path:
                raise MalformedResponse(f"job {handle.job_token} succeeded without an audio path")
            return GenerationJob(handle.job_token, JobStatus.SUCCESS, result_path=path, raw_status=raw)
        if raw in _FAILURE_STATES:
            return GenerationJob(handle.job_token, JobStatus.FAILED, raw_status=raw)
        return GenerationJob(handle.job_token, JobStatus.PENDING, raw_status=raw)

    async def await_completion(
        self,
        handle: JobHandle,
        interval: float | None = None,
        max_attempts: int | None = None,
    ) -> str:
        """
        Poll until the job reaches a terminal state and return the asset URL.

        Sleeps a fixed `interval` between polls. Raises JobFailed on a terminal
        failure and PollTimeout once `max_attempts` polls came back pending.
        """
        interval = self.poll_interval if interval is None else interval
        max_attempts = self.max_attempts if max_attempts is None else max_attempts

        for attempt in range(1, max_attempts + 1):
            job = await self.poll_once(handle)
            if job.status is JobStatus.SUCCESS:
                logging.info("FakeYou: job %s done after %d poll(s)", handle.job_token, attempt)
                return f"{self.asset_base_url}{job.result_path}"
            if job.status is JobStatus.FAILED:
                raise JobFailed(f"job {handle.job_token} ended with status '{job.raw_status}'")
            logging.debug("FakeYou: job %s is %s (%d/%d)", handle.job_token, job.raw_status, attempt, max_attempts)
            if attempt < max_attempts:
                await asyncio.sleep(interval)

        raise PollTimeout(f"job {handle.job_token} not finished after {max_attempts} poll(s)")

    async def speak(self, voice_name: str, text: str) -> str:
        voice = await self.find_voice(voice_name)
        handle = await self.submit_job(voice.model_token, text)
        return await self.await_completion(handle)
