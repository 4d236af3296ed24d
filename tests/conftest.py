"""Shared pytest fixtures for all tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from fakes import FakeSettings, RecordingSleep, ScriptedLLMClient

from resonance.chat.service import ChatThreadService
from resonance.llm.retry import RetryPolicy
from resonance.tools.build_registry import build_registry
from resonance.workspace import LocalWorkspace


@pytest.fixture
def workspace(tmp_path: Path) -> LocalWorkspace:
    return LocalWorkspace(tmp_path)


@pytest.fixture
def registry(workspace: LocalWorkspace):
    return build_registry(workspace, terminal_timeout=10)


@pytest.fixture
def settings() -> FakeSettings:
    return FakeSettings()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def client() -> ScriptedLLMClient:
    return ScriptedLLMClient()


@pytest.fixture
def service(client, registry, settings, workspace, sleep) -> ChatThreadService:
    return ChatThreadService(
        client,
        registry,
        settings,
        workspace,
        retry_policy=RetryPolicy(sleep=sleep),
    )
