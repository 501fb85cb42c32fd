"""Shared test fixtures for the MemoBot test suite."""

import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from memobot.config.models.agent import AgentConfig, SessionConfig
from memobot.config.models.memory import (
    ClassificationConfig,
    RelationshipConfig,
    RetrievalConfig,
)
from memobot.memory.stores import InMemoryMemoryStore
from memobot.providers.embedding import MockEmbeddingProvider
from memobot.providers.llm import LLMExecutor, MockLLMProvider
from tests.factories.vectors import DIMENSIONS


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Factory fixture to create TOML files in the test config directory.

    Usage:
        def test_something(mock_toml_files):
            mock_toml_files({
                "default.toml": "app_name = 'test'",
                "development.toml": "debug = true",
            })
    """

    def _create_toml_files(files: dict[str, str]) -> None:
        for filename, content in files.items():
            toml_file = test_config_dir / filename
            toml_file.write_text(content)

    return _create_toml_files


class EnvOverrideContext:
    """Context manager for temporarily setting environment variables."""

    def __init__(self, overrides: dict[str, str]) -> None:
        self.overrides = overrides
        self.original_env: dict[str, str | None] = {}

    def __enter__(self) -> None:
        for key, value in self.overrides.items():
            self.original_env[key] = os.environ.get(key)
            os.environ[key] = value

    def __exit__(self, *args: Any) -> None:
        for key in self.overrides:
            if self.original_env[key] is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = self.original_env[key]


@pytest.fixture
def env_override() -> Generator[Callable[[dict[str, str]], EnvOverrideContext], None, None]:
    """Context manager for temporarily setting environment variables.

    Usage:
        def test_something(env_override):
            with env_override({"MEMOBOT_DEBUG": "true"}):
                # test code here
    """

    def _env_override(overrides: dict[str, str]) -> EnvOverrideContext:
        return EnvOverrideContext(overrides)

    yield _env_override


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the settings cache before and after each test.

    This ensures test isolation for configuration tests.
    """
    from memobot.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================================
# Domain fixtures
# ============================================================================


@pytest.fixture
def owner_id() -> str:
    return "owner-1"


@pytest.fixture
def memory_store() -> InMemoryMemoryStore:
    return InMemoryMemoryStore()


@pytest.fixture
def embedder() -> MockEmbeddingProvider:
    return MockEmbeddingProvider(dimensions=DIMENSIONS)


@pytest.fixture
def llm_provider() -> MockLLMProvider:
    return MockLLMProvider()


@pytest.fixture
def utility_llm(llm_provider: MockLLMProvider) -> LLMExecutor:
    return LLMExecutor(provider=llm_provider, model="mock-utility", step_name="utility")


@pytest.fixture
def classification_config() -> ClassificationConfig:
    return ClassificationConfig()


@pytest.fixture
def retrieval_config() -> RetrievalConfig:
    return RetrievalConfig()


@pytest.fixture
def relationship_config() -> RelationshipConfig:
    return RelationshipConfig()


@pytest.fixture
def session_config() -> SessionConfig:
    return SessionConfig()


@pytest.fixture
def agent_config() -> AgentConfig:
    return AgentConfig()


@pytest.fixture
def settings():
    from memobot.config.settings import Settings, set_toml_config

    set_toml_config({})
    return Settings()


@pytest.fixture
def scripted_llm(llm_provider: MockLLMProvider) -> MockLLMProvider:
    """Mock provider answering the utility prompts (titles, categories, tags)."""
    llm_provider.when_contains("brief title", "Title: Lunch with Sam\nSummary: Caught up over lunch.")
    llm_provider.when_contains("What category", "Social")
    llm_provider.when_contains("meaningful tags", '["friends", "food"]')
    return llm_provider


@pytest.fixture
async def services(settings, memory_store, embedder, scripted_llm):
    """Fully wired service graph over in-memory stores and mock providers."""
    from memobot.accounts.stores import InMemoryAccountStore
    from memobot.api.services import build_services
    from memobot.conversation.stores import InMemorySessionStore

    built = build_services(
        settings,
        memory_store=memory_store,
        account_store=InMemoryAccountStore(),
        session_store=InMemorySessionStore(),
        embedder=embedder,
        llm_provider=scripted_llm,
    )
    yield built
    await built.categories.drain()
