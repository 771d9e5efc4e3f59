"""
Egghead's personas: markdown system prompts under `personas/`, with `{date}`
and `{time}` placeholders filled in at the moment a chat reply is made.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path


PERSONAS_DIR = Path(__file__).parent / "personas"


def load_persona(name: str, base: Path = PERSONAS_DIR) -> str:
    """Read `<base>/<name>.md` and return it stripped."""
    path = base / f"{name}.md"
    if not path.is_file():
        raise FileNotFoundError(f"Persona '{name}' not found in {base}")
    return path.read_text(encoding="utf-8").strip()


def try_load_persona(name: str | None, base: Path = PERSONAS_DIR) -> str | None:
    if not name:
        return None
    try:
        return load_persona(name, base)
    except OSError as e:
        logging.warning("Failed to load persona '%s': %s", name, e)
        return None


def format_system_prompt(prompt: str, now: datetime | None = None) -> str:
    now = now or datetime.now().astimezone()
    return (
        prompt.replace("{date}", now.strftime("%B %d %Y"))
        .replace("{time}", now.strftime("%H:%M:%S %Z%z"))
        .strip()
    )
