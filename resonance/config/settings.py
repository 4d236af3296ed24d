"""Configuration settings for the Resonance agent core.

This module provides a Settings class that wraps the ConfigManager,
providing property-based access to configuration values with hot-reload support.
The chat service reads it through the ``ChatSettings`` protocol on every turn.
"""

from __future__ import annotations

import os
from typing import Any, Protocol

from resonance.config.manager import ConfigManager
from resonance.llm.retry import RetryConfig
from resonance.tools.names import ChatMode, ToolApprovalType, ToolFormat


class ChatSettings(Protocol):
    """Settings the orchestration loop consumes."""

    @property
    def chat_mode(self) -> ChatMode: ...

    @property
    def tool_format(self) -> ToolFormat: ...

    @property
    def retry_config(self) -> RetryConfig: ...

    @property
    def max_agent_iterations(self) -> int: ...

    def auto_approve(self, approval_type: ToolApprovalType) -> bool: ...


class Settings:
    """Application settings with hot-reload support.

    Values come from the ConfigManager when one is attached, otherwise from
    environment variables, otherwise from defaults.
    """

    def __init__(self, config_manager: ConfigManager | None = None):
        self._config_manager = config_manager

    def _get(
        self,
        key: str,
        default: Any,
        env_key: str | None = None,
    ) -> Any:
        """Get config value from manager, fallback to env, then default."""
        if self._config_manager:
            return self._config_manager.get(key, default)
        if env_key and (env_val := os.getenv(env_key)):
            if isinstance(default, bool):
                return env_val.lower() in ("true", "1", "yes")
            elif isinstance(default, int):
                return int(env_val)
            elif isinstance(default, float):
                return float(env_val)
            return env_val
        return default

    # Chat behaviour
    @property
    def chat_mode(self) -> ChatMode:
        raw = self._get("chat_mode", ChatMode.AGENT.value, "RESONANCE_CHAT_MODE")
        try:
            return ChatMode(raw)
        except ValueError:
            return ChatMode.AGENT

    @property
    def tool_format(self) -> ToolFormat:
        raw = self._get("tool_format", ToolFormat.XML.value, "RESONANCE_TOOL_FORMAT")
        try:
            return ToolFormat(raw)
        except ValueError:
            return ToolFormat.XML

    @property
    def max_agent_iterations(self) -> int:
        value = self._get("max_agent_iterations", 50, "RESONANCE_MAX_AGENT_ITERATIONS")
        return value if isinstance(value, int) and value > 0 else 50

    def auto_approve(self, approval_type: ToolApprovalType) -> bool:
        value = self._get(f"tool_approval.auto_approve.{approval_type.value}", False)
        return value is True

    @property
    def retry_config(self) -> RetryConfig:
        section = self._get("retry", None)
        if not isinstance(section, dict):
            return RetryConfig()
        return RetryConfig.from_dict(section)

    @property
    def terminal_timeout(self) -> float:
        value = self._get("terminal.timeout_seconds", 30)
        if isinstance(value, bool) or not isinstance(value, int | float):
            return 30.0
        return float(value)

    # LLM Configuration
    @property
    def llm_model(self) -> str:
        return self._get("llm.model", "gpt-4o-mini", "RESONANCE_MODEL")

    @property
    def llm_api_key(self) -> str | None:
        return self._get("llm.api_key", None) or os.getenv("OPENAI_API_KEY")

    @property
    def llm_base_url(self) -> str | None:
        return self._get("llm.base_url", None) or os.getenv("OPENAI_BASE_URL")

    @property
    def llm_temperature(self) -> float:
        value = self._get("llm.temperature", 0.7)
        if isinstance(value, bool) or not isinstance(value, int | float):
            return 0.7
        return float(value)

    @property
    def llm_max_tokens(self) -> int:
        value = self._get("llm.max_tokens", 4000)
        return value if isinstance(value, int) and value > 0 else 4000

    @property
    def llm_options(self) -> dict[str, Any]:
        value = self._get("llm.options", {})
        return value if isinstance(value, dict) else {}

    # Server Configuration
    @property
    def server_host(self) -> str:
        return self._get("server_host", "localhost", "SERVER_HOST")

    @property
    def server_port(self) -> int:
        return self._get("server_port", 8765, "SERVER_PORT")

    # Logging Configuration
    @property
    def log_level(self) -> str:
        return self._get("log_level", "INFO", "LOG_LEVEL")

    @property
    def log_format(self) -> str:
        return self._get("log_format", "pretty", "LOG_FORMAT")

    @property
    def log_colors(self) -> bool:
        return self._get("log_colors", True, "LOG_COLORS")


# Global settings instance (will be initialized with config manager)
settings = Settings()
