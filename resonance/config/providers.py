"""Configuration providers: where the JSON config lives and how it is watched."""

import asyncio
import json
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from resonance.config.schema import deep_merge
from resonance.utils.logger import get_logger

logger = get_logger("config.providers")

ConfigCallback = Callable[[dict[str, Any]], None]


class ConfigProvider(ABC):
    """Source of configuration values."""

    @abstractmethod
    async def load(self) -> dict[str, Any]:
        """Return the effective configuration (defaults merged under user values)."""

    @abstractmethod
    async def save(self, config: dict[str, Any]) -> None:
        """Persist the user's configuration (without defaults)."""

    @abstractmethod
    def user_config(self) -> dict[str, Any]:
        """The values the user set explicitly, as last loaded or saved."""

    @abstractmethod
    async def watch(self, callback: ConfigCallback) -> None:
        """Call ``callback`` with the new effective config on every change."""

    @abstractmethod
    async def stop_watching(self) -> None: ...


class _ConfigFileHandler(FileSystemEventHandler):
    """Forwards watchdog events for one file into the provider's event loop."""

    def __init__(self, provider: "LocalFileConfigProvider", loop: asyncio.AbstractEventLoop):
        self.provider = provider
        self.loop = loop

    def _handle(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        if Path(str(event.src_path)).resolve() != self.provider.config_path.resolve():
            return
        if not self.provider.changed_on_disk():
            return
        logger.debug("Config file changed, reloading", path=str(event.src_path))
        if not self.loop.is_closed():
            asyncio.run_coroutine_threadsafe(self.provider.reload(), self.loop)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._handle(event)

    def on_created(self, event: FileSystemEvent) -> None:
        self._handle(event)


class LocalFileConfigProvider(ConfigProvider):
    """Config stored in a local JSON file, reloaded when the file changes.

    A broken file never takes the agent down: the last valid configuration
    (or the defaults, on first load) stays in effect until the file is fixed.
    """

    def __init__(
        self,
        config_path: Path,
        defaults: dict[str, Any] | None = None,
        *,
        create_if_missing: bool = True,
    ):
        self.config_path = config_path
        self.defaults = defaults or {}
        self.create_if_missing = create_if_missing
        self._user: dict[str, Any] = {}
        self._last_valid: dict[str, Any] | None = None
        self._last_mtime: float | None = None
        self._observer: Any = None
        self._callback: ConfigCallback | None = None

    def user_config(self) -> dict[str, Any]:
        return dict(self._user)

    def changed_on_disk(self) -> bool:
        try:
            return self.config_path.stat().st_mtime != self._last_mtime
        except FileNotFoundError:
            return False

    async def load(self) -> dict[str, Any]:
        if not self.config_path.exists():
            if self.create_if_missing:
                logger.info("Config file not found, creating with defaults", path=str(self.config_path))
                await self.save(self.defaults)
            self._user = dict(self.defaults) if self.create_if_missing else {}
            self._last_valid = deep_merge(self.defaults, {})
            return dict(self._last_valid)

        try:
            user = json.loads(self.config_path.read_text(encoding="utf-8"))
            if not isinstance(user, dict):
                raise ValueError("Config root must be a JSON object")
        except json.JSONDecodeError as e:
            logger.error(
                "Invalid JSON syntax in config file",
                error=str(e),
                line=e.lineno,
                column=e.colno,
                path=str(self.config_path),
            )
            return self._fallback()
        except (OSError, ValueError) as e:
            logger.error("Failed to load config", error=str(e), path=str(self.config_path))
            return self._fallback()

        self._last_mtime = self.config_path.stat().st_mtime
        self._user = user
        self._last_valid = deep_merge(self.defaults, user)
        logger.debug("Config loaded from file", path=str(self.config_path))
        return dict(self._last_valid)

    def _fallback(self) -> dict[str, Any]:
        if self._last_valid is not None:
            logger.warning("Using last valid configuration", path=str(self.config_path))
            return dict(self._last_valid)
        logger.warning("No previous valid config, using defaults", path=str(self.config_path))
        return deep_merge(self.defaults, {})

    async def save(self, config: dict[str, Any]) -> None:
        """Write ``config`` atomically (temp file, then rename)."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.config_path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(config, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_path.replace(self.config_path)

        self._last_mtime = self.config_path.stat().st_mtime
        self._user = dict(config)
        self._last_valid = deep_merge(self.defaults, config)
        logger.debug("Config saved to file", path=str(self.config_path))

    async def reload(self) -> None:
        config = await self.load()
        if self._callback:
            self._callback(config)

    async def watch(self, callback: ConfigCallback) -> None:
        self._callback = callback
        # Watch the parent directory; watching a single file is not portable
        watch_dir = self.config_path.parent
        watch_dir.mkdir(parents=True, exist_ok=True)
        self._observer = Observer()
        self._observer.schedule(
            _ConfigFileHandler(self, asyncio.get_running_loop()), str(watch_dir), recursive=False
        )
        self._observer.start()
        logger.info("Started watching config file", path=str(self.config_path))

    async def stop_watching(self) -> None:
        if not self._observer:
            return
        observer, self._observer = self._observer, None
        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(loop.run_in_executor(None, observer.stop), timeout=2.0)
            await asyncio.wait_for(
                loop.run_in_executor(None, lambda: observer.join(timeout=1.0)), timeout=2.0
            )
            logger.info("Stopped watching config file")
        except TimeoutError:
            logger.debug("Config watcher did not stop in time")


class LayeredConfigProvider(ConfigProvider):
    """Merges several providers, lowest precedence first.

    Writes go to the primary layer (the global config); later layers hold
    workspace overrides.
    """

    def __init__(self, providers: list[ConfigProvider], *, primary_index: int = 0):
        if not providers:
            raise ValueError("LayeredConfigProvider requires at least one provider")
        if not 0 <= primary_index < len(providers):
            raise ValueError("primary_index must point to an existing provider layer")
        self.providers = providers
        self.primary = providers[primary_index]
        self._layers: list[dict[str, Any]] = [{} for _ in providers]
        self._callback: ConfigCallback | None = None

    def _merged(self) -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for layer in self._layers:
            merged = deep_merge(merged, layer)
        return merged

    def user_config(self) -> dict[str, Any]:
        return self.primary.user_config()

    async def load(self) -> dict[str, Any]:
        self._layers = [await p.load() for p in self.providers]
        return self._merged()

    async def save(self, config: dict[str, Any]) -> None:
        await self.primary.save(config)
        self._layers[self.providers.index(self.primary)] = await self.primary.load()
        if self._callback:
            self._callback(self._merged())

    async def watch(self, callback: ConfigCallback) -> None:
        self._callback = callback

        for idx, provider in enumerate(self.providers):

            def on_layer_change(new_config: dict[str, Any], idx: int = idx) -> None:
                self._layers[idx] = new_config
                callback(self._merged())

            await provider.watch(on_layer_change)

    async def stop_watching(self) -> None:
        for provider in self.providers:
            await provider.stop_watching()
