"""Configuration manager with hot-reload support."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

from resonance.config.providers import (
    ConfigProvider,
    LayeredConfigProvider,
    LocalFileConfigProvider,
)
from resonance.config.schema import deep_merge, get_path
from resonance.utils.logger import get_logger

logger = get_logger("config.manager")

ConfigCallback = Callable[[dict[str, Any]], None]


class ConfigManager:
    """Holds the merged configuration and fans out reloads.

    Values are resolved on every read, so approval policy and retry settings
    edited on disk apply to the next tool call or LLM attempt.
    """

    def __init__(self, provider: ConfigProvider):
        self.provider = provider
        self._config: dict[str, Any] = {}
        self._change_callbacks: list[ConfigCallback] = []

    async def initialize(self) -> None:
        self._config = await self.provider.load()
        logger.info("Configuration initialized", config_keys=sorted(self._config))

    async def start_watching(self) -> None:
        await self.provider.watch(self._on_config_changed)

    async def stop_watching(self) -> None:
        await self.provider.stop_watching()

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by top-level key or dotted path (``retry.max_retries``)."""
        return get_path(self._config, key, default)

    def get_all(self) -> dict[str, Any]:
        return self._config.copy()

    async def update(self, updates: dict[str, Any]) -> None:
        """Merge ``updates`` into the config and persist them.

        Only the user's own values are written back; defaults stay implicit
        so that later default changes still reach existing installs.
        """
        self._config = deep_merge(self._config, updates)
        user_cfg = self.provider.user_config()
        await self.provider.save(deep_merge(user_cfg, updates))
        logger.info("Configuration updated", keys=sorted(updates))
        self._notify_callbacks()

    def register_change_callback(self, callback: ConfigCallback) -> None:
        self._change_callbacks.append(callback)

    def _on_config_changed(self, new_config: dict[str, Any]) -> None:
        old_config = self._config
        self._config = new_config
        changed = sorted(
            key
            for key in old_config.keys() | new_config.keys()
            if old_config.get(key) != new_config.get(key)
        )
        if changed:
            logger.info("Configuration reloaded", changed_keys=changed)
        else:
            logger.debug("Configuration reloaded with no changes")
        self._notify_callbacks()

    def _notify_callbacks(self) -> None:
        for callback in self._change_callbacks:
            try:
                callback(self._config.copy())
            except Exception as e:
                logger.error(
                    "Error in config change callback",
                    error=str(e),
                    callback=getattr(callback, "__name__", repr(callback)),
                )


def create_config_manager(
    global_config_dir: Path,
    *,
    local_config_path: Path | None = None,
    defaults: dict[str, Any] | None = None,
) -> ConfigManager:
    """Create a config manager over ``<global_config_dir>/config.json``.

    When ``local_config_path`` is given, that file (typically inside the
    workspace) overrides the global one; it is never created automatically.
    """
    config_path = global_config_dir / "config.json"
    provider: ConfigProvider = LocalFileConfigProvider(config_path, defaults=defaults)
    if local_config_path:
        provider = LayeredConfigProvider(
            [
                provider,
                LocalFileConfigProvider(
                    local_config_path, defaults={}, create_if_missing=False
                ),
            ]
        )
    logger.info(
        "Config manager created",
        config_path=str(config_path),
        local_config_path=str(local_config_path) if local_config_path else None,
    )
    return ConfigManager(provider)
