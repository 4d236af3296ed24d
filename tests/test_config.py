from __future__ import annotations

import json

import pytest

from resonance.config import (
    ConfigManager,
    LayeredConfigProvider,
    LocalFileConfigProvider,
    Settings,
    create_config_manager,
    get_default_config,
)
from resonance.config.schema import deep_merge, get_path
from resonance.llm.retry import RetryConfig
from resonance.tools.names import ChatMode, ToolApprovalType, ToolFormat


def test_deep_merge_keeps_base_for_none():
    base = {"retry": {"max_retries": 3, "initial_delay_ms": 1000}, "chat_mode": "agent"}
    merged = deep_merge(base, {"retry": {"max_retries": 5}, "chat_mode": None})
    assert merged == {"retry": {"max_retries": 5, "initial_delay_ms": 1000}, "chat_mode": "agent"}
    assert base["retry"]["max_retries"] == 3


def test_get_path():
    config = {"tool_approval": {"auto_approve": {"edits": True}}}
    assert get_path(config, "tool_approval.auto_approve.edits") is True
    assert get_path(config, "tool_approval.auto_approve.terminal", False) is False
    assert get_path(config, "tool_approval.auto_approve.edits.deeper", "d") == "d"


@pytest.mark.asyncio
async def test_provider_creates_file_with_defaults(tmp_path):
    path = tmp_path / "config.json"
    provider = LocalFileConfigProvider(path, defaults=get_default_config())

    config = await provider.load()

    assert config["chat_mode"] == "agent"
    assert json.loads(path.read_text())["retry"]["max_retries"] == 3


@pytest.mark.asyncio
async def test_provider_merges_user_file_and_survives_bad_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"tool_format": "native"}))
    provider = LocalFileConfigProvider(path, defaults=get_default_config())

    config = await provider.load()
    assert config["tool_format"] == "native"
    assert config["max_agent_iterations"] == 50

    path.write_text("{ not json")
    config = await provider.load()
    assert config["tool_format"] == "native"


@pytest.mark.asyncio
async def test_manager_update_persists_user_values_only(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"chat_mode": "gather"}))
    manager = ConfigManager(LocalFileConfigProvider(path, defaults=get_default_config()))
    await manager.initialize()
    seen: list[dict] = []
    manager.register_change_callback(seen.append)

    await manager.update({"tool_approval": {"auto_approve": {"edits": True}}})

    assert manager.get("tool_approval.auto_approve.edits") is True
    assert manager.get("tool_approval.auto_approve.terminal") is False
    on_disk = json.loads(path.read_text())
    assert on_disk == {"chat_mode": "gather", "tool_approval": {"auto_approve": {"edits": True}}}
    assert seen and seen[-1]["chat_mode"] == "gather"


@pytest.mark.asyncio
async def test_manager_reload_notifies_callbacks(tmp_path):
    manager = ConfigManager(
        LocalFileConfigProvider(tmp_path / "config.json", defaults=get_default_config())
    )
    await manager.initialize()
    seen: list[dict] = []

    def broken(_config):
        raise RuntimeError("callback bug")

    manager.register_change_callback(broken)
    manager.register_change_callback(seen.append)

    manager._on_config_changed({**manager.get_all(), "chat_mode": "normal"})

    assert manager.get("chat_mode") == "normal"
    assert seen[-1]["chat_mode"] == "normal"


@pytest.mark.asyncio
async def test_layered_provider_overrides(tmp_path):
    global_path = tmp_path / "global.json"
    local_path = tmp_path / "workspace.json"
    local_path.write_text(json.dumps({"chat_mode": "gather"}))
    provider = LayeredConfigProvider(
        [
            LocalFileConfigProvider(global_path, defaults=get_default_config()),
            LocalFileConfigProvider(local_path, defaults={}, create_if_missing=False),
        ]
    )
    config = await provider.load()
    assert config["chat_mode"] == "gather"
    assert config["tool_format"] == "xml"


@pytest.mark.asyncio
async def test_settings_read_through_manager(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "chat_mode": "gather",
                "tool_format": "native",
                "max_agent_iterations": 0,
                "tool_approval": {"auto_approve": {"terminal": True}},
                "retry": {"max_retries": 1, "initial_delay_ms": 10},
                "terminal": {"timeout_seconds": "soon"},
                "llm": {"model": "local-model", "base_url": "http://localhost:11434/v1"},
            }
        )
    )
    manager = ConfigManager(LocalFileConfigProvider(path, defaults=get_default_config()))
    await manager.initialize()
    s = Settings(manager)

    assert s.chat_mode == ChatMode.GATHER
    assert s.tool_format == ToolFormat.NATIVE
    assert s.max_agent_iterations == 50
    assert s.auto_approve(ToolApprovalType.TERMINAL) is True
    assert s.auto_approve(ToolApprovalType.EDITS) is False
    assert s.retry_config == RetryConfig(max_retries=1, initial_delay_ms=10)
    assert s.terminal_timeout == 30.0
    assert s.llm_model == "local-model"
    assert s.llm_base_url == "http://localhost:11434/v1"
    assert s.llm_temperature == 0.7

    manager._on_config_changed({**manager.get_all(), "chat_mode": "bogus"})
    assert s.chat_mode == ChatMode.AGENT


def test_settings_fall_back_to_env(monkeypatch):
    monkeypatch.setenv("RESONANCE_CHAT_MODE", "normal")
    monkeypatch.setenv("RESONANCE_MAX_AGENT_ITERATIONS", "7")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.delenv("RESONANCE_TOOL_FORMAT", raising=False)
    s = Settings()

    assert s.chat_mode == ChatMode.NORMAL
    assert s.max_agent_iterations == 7
    assert s.tool_format == ToolFormat.XML
    assert s.llm_api_key == "sk-test"
    assert s.retry_config == RetryConfig()


@pytest.mark.asyncio
async def test_create_config_manager_with_workspace_overrides(tmp_path):
    local_path = tmp_path / "workspace" / "config.json"
    local_path.parent.mkdir()
    local_path.write_text(json.dumps({"tool_approval": {"auto_approve": {"edits": True}}}))
    manager = create_config_manager(
        tmp_path / "global", local_config_path=local_path, defaults=get_default_config()
    )
    await manager.initialize()

    assert manager.get("tool_approval.auto_approve.edits") is True
    assert manager.get("tool_approval.auto_approve.terminal") is False

    await manager.update({"chat_mode": "gather"})

    assert json.loads((tmp_path / "global" / "config.json").read_text())["chat_mode"] == "gather"
    assert json.loads(local_path.read_text()) == {"tool_approval": {"auto_approve": {"edits": True}}}
