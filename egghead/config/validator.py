"""
YAML configuration validator for config.yaml.

Validates structure, required fields, and common misconfigurations.
"""

from __future__ import annotations

import logging
from typing import Any


logger = logging.getLogger(__name__)

VALID_FLAVORS = {"openai", "ollama", "llamacpp"}

# Prefix commands registered by egghead.discord.bot; feed names become aliases of `news`.
COMMAND_NAMES = frozenset(
    {"help", "ask", "magic", "react", "read", "voices", "say", "news", "wiki", "hn", "blog", "posts", "stats"}
)


class ConfigValidationError(Exception):
    """Raised when config validation fails."""
    pass


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_provider_ref(cfg: dict[str, Any], where: str, name: Any, errors: list[str]) -> None:
    providers = cfg.get("providers")
    if not isinstance(name, str):
        errors.append(f"'{where}' must be a provider name string, got {type(name).__name__}")
    elif isinstance(providers, dict) and name not in providers:
        errors.append(f"'{where}' refers to unknown provider '{name}'")


def validate_config(cfg: dict[str, Any], config_path: str = "config.yaml") -> None:
    """
    Comprehensive validation of config.yaml structure and content.

    Raises ConfigValidationError if validation fails.
    Logs detailed error messages before raising.

    Args:
        cfg: The loaded config dictionary (after environment overrides)
        config_path: Path to config file (for error messages)

    Raises:
        ConfigValidationError: If validation fails
    """
    errors: list[str] = []
    warnings: list[str] = []

    # ── Check root structure ────────────────────────────────────────────────
    if not isinstance(cfg, dict):
        errors.append(f"Config root must be a mapping, got {type(cfg).__name__}")
        cfg = {}

    # ── Check required top-level keys ───────────────────────────────────────
    for key in ("bot_token", "providers"):
        if key not in cfg:
            errors.append(f"Missing required top-level key: '{key}'")
    if "bot_token" in cfg and not cfg["bot_token"]:
        errors.append("'bot_token' is empty (set it in config.yaml or DISCORD_TOKEN)")

    # ── Validate providers section ──────────────────────────────────────────
    if "providers" in cfg:
        providers = cfg["providers"]
        if not isinstance(providers, dict):
            errors.append(f"'providers' must be a mapping, got {type(providers).__name__}")
        elif not providers:
            errors.append("'providers' section is empty (must define at least one backend)")
        else:
            for provider_name, provider_config in providers.items():
                if not isinstance(provider_config, dict):
                    errors.append(
                        f"Provider '{provider_name}' config must be a mapping, "
                        f"got {type(provider_config).__name__}"
                    )
                    continue
                if "base_url" not in provider_config:
                    errors.append(f"Provider '{provider_name}' missing required 'base_url'")
                flavor = provider_config.get("flavor", "openai")
                if flavor not in VALID_FLAVORS:
                    errors.append(
                        f"Provider '{provider_name}' has unknown flavor '{flavor}'. "
                        f"Valid flavors: {', '.join(sorted(VALID_FLAVORS))}"
                    )
                elif flavor in ("openai", "ollama") and not provider_config.get("model"):
                    warnings.append(f"Provider '{provider_name}' ({flavor}) has no 'model' set")
                if "request_timeout" in provider_config:
                    timeout = provider_config["request_timeout"]
                    if not _is_number(timeout) or timeout <= 0:
                        errors.append(f"Provider '{provider_name}' 'request_timeout' must be a positive number")
                    elif not 60 <= timeout <= 360:
                        warnings.append(
                            f"Provider '{provider_name}' request_timeout={timeout}s is outside 60-360s"
                        )

    # ── Provider references ────────────────────────────────────────────────
    for key in ("completion_provider", "chat_provider"):
        if key in cfg:
            _check_provider_ref(cfg, key, cfg[key], errors)

    if "response_timeout" in cfg:
        if not _is_number(cfg["response_timeout"]) or cfg["response_timeout"] <= 0:
            errors.append("'response_timeout' must be a positive number")

    # ── Validate blog section ──────────────────────────────────────────────
    if "blog" in cfg:
        blog = cfg["blog"]
        if not isinstance(blog, dict):
            errors.append(f"'blog' must be a mapping, got {type(blog).__name__}")
        else:
            if "interval_minutes" in blog:
                interval = blog["interval_minutes"]
                if not _is_number(interval) or interval <= 0:
                    errors.append("'blog.interval_minutes' must be a positive number")
            if "headline_count" in blog:
                count = blog["headline_count"]
                if not isinstance(count, int) or isinstance(count, bool) or count < 1:
                    errors.append("'blog.headline_count' must be a positive integer")
            if "provider" in blog:
                _check_provider_ref(cfg, "blog.provider", blog["provider"], errors)
            if "pipeline" in blog and not isinstance(blog["pipeline"], dict):
                errors.append(
                    f"'blog.pipeline' must be a mapping, got {type(blog['pipeline']).__name__}"
                )
            if blog.get("enabled", True) and not blog.get("feed_url"):
                warnings.append("'blog.feed_url' is not set; the default world news feed will be used")

    # ── Validate fakeyou section ───────────────────────────────────────────
    if "fakeyou" in cfg:
        fakeyou = cfg["fakeyou"]
        if not isinstance(fakeyou, dict):
            errors.append(f"'fakeyou' must be a mapping, got {type(fakeyou).__name__}")
        else:
            if "poll_interval" in fakeyou:
                interval = fakeyou["poll_interval"]
                if not _is_number(interval) or interval <= 0:
                    errors.append("'fakeyou.poll_interval' must be a positive number")
            if "max_attempts" in fakeyou:
                attempts = fakeyou["max_attempts"]
                if not isinstance(attempts, int) or isinstance(attempts, bool) or attempts < 1:
                    errors.append("'fakeyou.max_attempts' must be a positive integer")

    # ── Validate feeds section ─────────────────────────────────────────────
    if "feeds" in cfg:
        feeds = cfg["feeds"]
        if not isinstance(feeds, dict):
            errors.append(f"'feeds' must be a mapping, got {type(feeds).__name__}")
        else:
            for name, url in feeds.items():
                if str(name).lower() in COMMAND_NAMES:
                    errors.append(f"Feed '{name}' clashes with the '{name}' command; rename the feed")
                if not isinstance(url, str) or not url.startswith(("http://", "https://")):
                    errors.append(f"Feed '{name}' must be an http(s) URL")

    # ── Validate permissions section ───────────────────────────────────────
    if "permissions" in cfg:
        perms = cfg["permissions"]
        if not isinstance(perms, dict):
            errors.append(
                f"'permissions' must be a mapping, got {type(perms).__name__}"
            )
        else:
            users = perms.get("users", {})
            if not isinstance(users, dict):
                errors.append(f"'permissions.users' must be a mapping, got {type(users).__name__}")
            elif "admin_ids" in users and not isinstance(users["admin_ids"], list):
                errors.append(
                    f"'permissions.users.admin_ids' must be a list, "
                    f"got {type(users['admin_ids']).__name__}"
                )

    # ── Log warnings ────────────────────────────────────────────────────────
    for warning in warnings:
        logger.warning("Config warning: %s", warning)

    # ── Log errors and exit if any ──────────────────────────────────────────
    if errors:
        logger.error("=" * 70)
        logger.error("CONFIG VALIDATION FAILED (%s)", config_path)
        logger.error("=" * 70)
        for i, error in enumerate(errors, 1):
            logger.error("[%d] %s", i, error)
        logger.error("=" * 70)
        logger.error("Please fix the errors above and restart the bot.")
        logger.error("=" * 70)
        raise ConfigValidationError(f"Config validation failed with {len(errors)} error(s)")
