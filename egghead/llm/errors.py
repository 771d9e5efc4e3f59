from __future__ import annotations

from typing import Tuple


class EggheadError(Exception):
    """Base error for backend and pipeline failures."""


class NetworkError(EggheadError):
    """Connection failure, timeout or non-2xx status from a backend."""


class MalformedResponse(EggheadError):
    """Response JSON did not have the expected shape."""


class JobFailed(EggheadError):
    pass


class PollTimeout(EggheadError):
    pass


class FeedUnavailable(EggheadError):
    pass


class VoiceNotFound(EggheadError):
    pass


def parse_error_message(error: Exception) -> str:
    """
    Map raw exceptions into short, human-readable messages.
    Used for admin notifications and logs.
    """
    s, t = str(error), type(error).__name__
    if isinstance(error, PollTimeout):
        return f"⏳ Poll Timeout: {s}"
    if isinstance(error, JobFailed):
        return f"❌ Job Failed: {s}"
    if isinstance(error, FeedUnavailable):
        return f"📰 Feed Unavailable: {s}"
    if isinstance(error, MalformedResponse):
        return f"❌ Malformed Response: {s.split(chr(10))[0][:100]}"
    if "429" in s or t == "RateLimitError":
        return "⚠️ Rate Limited: API provider is temporarily rate-limited. Please retry shortly."
    if "401" in s or "Unauthorized" in s:
        return "❌ Authentication Error: Invalid API key or credentials."
    if "404" in s or t == "NotFound":
        return "❌ Not Found: The requested resource was not found."
    if isinstance(error, NetworkError) or "Connection" in t or "ECONNREFUSED" in s or "ETIMEDOUT" in s:
        return "❌ Connection Error: Unable to connect to the backend."
    return f"❌ {t}: {s.split(chr(10))[0][:100]}"


def format_user_friendly_error(error: Exception) -> str:
    """
    Short, safe error message suitable for end users.
    """
    s, t = str(error), type(error).__name__
    if isinstance(error, VoiceNotFound):
        return f"I don't know that voice. Try `e.voices {s}` to search."
    if isinstance(error, PollTimeout):
        return "The voice service is taking too long. Try again later."
    if isinstance(error, JobFailed):
        return "The voice service couldn't finish that one."
    if isinstance(error, FeedUnavailable):
        return "The news feed is unavailable right now."
    if isinstance(error, TimeoutError) or t == "TimeoutError":
        return "My thoughts took too long to form. Try again."
    if "429" in s or t == "RateLimitError":
        return "The model is busy right now, try again shortly."
    if isinstance(error, NetworkError) or "Connection" in t:
        return "I can't reach my brain right now (backend unreachable)."
    if isinstance(error, MalformedResponse):
        return "My brain replied with gibberish. Try again."
    return "Something went wrong. The admins have been notified."


def error_messages(error: Exception) -> Tuple[str, str]:
    """
    Convenience helper returning (admin_message, user_message).
    """
    return parse_error_message(error), format_user_friendly_error(error)
