"""Chat model construction from settings.

Any OpenAI-compatible endpoint works (OpenAI, Ollama, vLLM, LM Studio) by
pointing ``llm.base_url`` at it.
"""

from __future__ import annotations

from typing import Any

from langchain_openai import ChatOpenAI

from resonance.config.settings import Settings
from resonance.llm.langchain_client import LangChainStreamClient
from resonance.utils.logger import agent_logger


def create_chat_model(settings: Settings) -> ChatOpenAI:
    kwargs: dict[str, Any] = {
        "model": settings.llm_model,
        "temperature": settings.llm_temperature,
        "max_tokens": settings.llm_max_tokens,
        "streaming": True,
        # Retries are handled by RetryPolicy
        "max_retries": 0,
    }
    if settings.llm_base_url:
        kwargs["base_url"] = settings.llm_base_url
    if settings.llm_api_key:
        kwargs["api_key"] = settings.llm_api_key
    options = settings.llm_options
    if options:
        kwargs["model_kwargs"] = dict(options)

    agent_logger.info(
        "Initializing chat model",
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        kwargs_keys=list(kwargs.keys()),
    )
    return ChatOpenAI(**kwargs)


def create_stream_client(settings: Settings) -> LangChainStreamClient:
    return LangChainStreamClient(create_chat_model(settings), lambda: settings.tool_format)
