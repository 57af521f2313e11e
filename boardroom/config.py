"""
Configuration for the boardroom engine and its LLM gateway.
Settings come from environment variables (and a local .env file) with defaults
matching the boardroom web app (Perplexity endpoint, 3s pacing).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv
from loguru import logger


MIN_INTERVAL_MS = 1000
MAX_INTERVAL_MS = 10000


@dataclass
class LLMConfig:
    """OpenAI-compatible chat endpoint (Perplexity by default)."""
    api_key: str = ""
    base_url: str = "https://api.perplexity.ai"
    model: str = "sonar"
    search_model: str = "sonar-pro"  # used for the moderator's fact-checking turns
    temperature: float = 0.7
    max_tokens: int = 800
    # Search options sent with fact-checking calls only; empty values are omitted.
    search_domain_filter: Tuple[str, ...] = ("perplexity.ai",)
    search_recency_filter: str = "month"


@dataclass
class EngineConfig:
    """Pacing and turn-taking settings."""
    speaking_interval_ms: int = 3000
    moderator_every: int = 4
    generation_timeout: Optional[float] = 45.0  # seconds; None disables the limit
    history_window: int = 12


@dataclass
class AppConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    transcripts_dir: str = "conversations"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load configuration from environment variables (including .env file)."""
        load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
        config = cls()

        config.llm.api_key = os.getenv("PERPLEXITY_API_KEY", config.llm.api_key)
        config.llm.base_url = os.getenv("BOARDROOM_BASE_URL", config.llm.base_url)
        config.llm.model = os.getenv("BOARDROOM_MODEL", config.llm.model)
        config.llm.search_model = os.getenv("BOARDROOM_SEARCH_MODEL", config.llm.search_model)
        config.llm.temperature = _env_float("BOARDROOM_TEMPERATURE", config.llm.temperature)
        config.llm.max_tokens = _env_int("BOARDROOM_MAX_TOKENS", config.llm.max_tokens)
        domains = os.getenv("BOARDROOM_SEARCH_DOMAINS")
        if domains is not None:
            config.llm.search_domain_filter = tuple(d.strip() for d in domains.split(",") if d.strip())
        config.llm.search_recency_filter = os.getenv("BOARDROOM_SEARCH_RECENCY", config.llm.search_recency_filter)

        config.engine.speaking_interval_ms = clamp_interval(
            _env_int("SPEAKING_INTERVAL_MS", config.engine.speaking_interval_ms)
        )
        config.engine.moderator_every = _env_int("MODERATOR_EVERY", config.engine.moderator_every)
        config.engine.history_window = _env_int("HISTORY_WINDOW", config.engine.history_window)
        timeout = os.getenv("GENERATION_TIMEOUT")
        if timeout is not None:
            value = _env_float("GENERATION_TIMEOUT", config.engine.generation_timeout or 0.0)
            config.engine.generation_timeout = value if value > 0 else None

        config.transcripts_dir = os.getenv("TRANSCRIPTS_DIR", config.transcripts_dir)
        return config


def clamp_interval(ms: int) -> int:
    """Bound a speaking interval to the range offered to users (1s-10s)."""
    return max(MIN_INTERVAL_MS, min(MAX_INTERVAL_MS, int(ms)))


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"config_invalid | {name}={raw!r} is not an integer; using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"config_invalid | {name}={raw!r} is not a number; using {default}")
        return default
