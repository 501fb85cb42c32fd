"""Fixtures for API route tests."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from memobot.accounts.stores import InMemoryAccountStore
from memobot.api.app import create_app
from memobot.api.dependencies import (
    get_account_store,
    get_memory_store,
    get_services,
    get_session_store,
)
from memobot.api.services import MemoBotServices, build_services
from memobot.conversation.stores import InMemorySessionStore
from memobot.memory.stores import InMemoryMemoryStore
from memobot.providers.embedding import MockEmbeddingProvider
from memobot.providers.llm.mock import MockLLMProvider


@pytest.fixture
def api_llm() -> MockLLMProvider:
    return MockLLMProvider(default_response="Hi from MemoBot.")


@pytest.fixture
def api_services(settings, api_llm) -> MemoBotServices:
    return build_services(
        settings,
        memory_store=InMemoryMemoryStore(),
        account_store=InMemoryAccountStore(),
        session_store=InMemorySessionStore(),
        embedder=MockEmbeddingProvider(dimensions=16),
        llm_provider=api_llm,
    )


@pytest.fixture
def app(api_services: MemoBotServices) -> FastAPI:
    """Application wired to in-memory stores and mock providers."""
    app = create_app()
    app.dependency_overrides[get_services] = lambda: api_services
    app.dependency_overrides[get_memory_store] = lambda: api_services.memory_store
    app.dependency_overrides[get_account_store] = lambda: api_services.account_store
    app.dependency_overrides[get_session_store] = lambda: api_services.session_store
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Test client."""
    return TestClient(app)
