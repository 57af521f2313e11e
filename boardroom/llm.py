from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

from loguru import logger
from langchain_openai import ChatOpenAI

from .config import LLMConfig


@lru_cache(maxsize=8)
def _cached_chat(
    model: str,
    api_key: str,
    base_url: str,
    temperature: float,
    max_tokens: int,
    search_domains: Tuple[str, ...] = (),
    search_recency: str = "",
) -> ChatOpenAI:
    logger.debug(f"Initializing chat model={model} base_url={base_url} temperature={temperature}")
    extra_body: Dict[str, Any] = {}
    if search_domains:
        extra_body["search_domain_filter"] = list(search_domains)
    if search_recency:
        extra_body["search_recency_filter"] = search_recency
    return ChatOpenAI(
        model=model,
        api_key=api_key,
        base_url=base_url,
        temperature=temperature,
        max_tokens=max_tokens,
        extra_body=extra_body or None,
    )


def get_chat_model(config: LLMConfig, search: bool = False) -> Optional[ChatOpenAI]:
    """Return a cached LangChain chat client for the configured endpoint.

    ``search=True`` selects the search-enabled model used for fact-checking and
    attaches the Perplexity search filters to its requests.
    Returns None when no API key is configured.
    """
    if not config.api_key:
        logger.error("PERPLEXITY_API_KEY not set; cannot initialize chat client")
        return None
    if search:
        return _cached_chat(
            config.search_model,
            config.api_key,
            config.base_url,
            config.temperature,
            config.max_tokens,
            tuple(config.search_domain_filter),
            config.search_recency_filter,
        )
    return _cached_chat(config.model, config.api_key, config.base_url, config.temperature, config.max_tokens)
