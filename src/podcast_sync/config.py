"""
Runtime settings read from the environment.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_USER_AGENT = "podcast-sync/0.1"
DEFAULT_REQUEST_TIMEOUT = 30
DEFAULT_MAX_EPISODES = 20


@dataclass
class Settings:
    """Settings shared by the CLI and the HTTP layer."""

    data_dir: Optional[str] = None
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT
    max_episodes: int = DEFAULT_MAX_EPISODES
    episodes_to_keep: int = 0


def _int_from_env(name: str, default: int) -> int:
    """Read a non-negative integer variable, falling back to default."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            "Ignoring invalid integer for %s: %r", name, raw
        )
        return default
    if value < 0:
        logging.getLogger(__name__).warning(
            "Ignoring negative value for %s: %d", name, value
        )
        return default
    return value


def load_settings() -> Settings:
    """Build Settings from PODCAST_* environment variables."""
    return Settings(
        data_dir=os.getenv("PODCAST_DATA_DIRECTORY") or None,
        user_agent=os.getenv("PODCAST_USER_AGENT") or DEFAULT_USER_AGENT,
        request_timeout=_int_from_env(
            "PODCAST_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT
        ),
        max_episodes=_int_from_env(
            "PODCAST_MAX_EPISODES", DEFAULT_MAX_EPISODES
        ),
        episodes_to_keep=_int_from_env("PODCAST_EPISODES_TO_KEEP", 0),
    )
