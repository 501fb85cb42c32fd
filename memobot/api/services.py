"""Wiring of stores, providers and services into one object graph."""

from dataclasses import dataclass

from memobot.accounts import AccountLinkingService, AccountStore
from memobot.agent import AgentOrchestrator, ToolHandlers
from memobot.classification import CategoryService, TagService
from memobot.config.settings import Settings
from memobot.conversation import SessionService, SessionStore
from memobot.memory import MemoryStore
from memobot.providers.embedding import EmbeddingProvider
from memobot.providers.llm import LLMProvider, create_executors
from memobot.relationships import RelationshipBuilder
from memobot.retrieval import RetrievalEngine
from memobot.router import MessageRouter


@dataclass
class MemoBotServices:
    """Everything a request needs, built once per process."""

    memory_store: MemoryStore
    account_store: AccountStore
    session_store: SessionStore
    embedder: EmbeddingProvider
    sessions: SessionService
    categories: CategoryService
    tags: TagService
    retrieval: RetrievalEngine
    relationships: RelationshipBuilder
    handlers: ToolHandlers
    orchestrator: AgentOrchestrator
    accounts: AccountLinkingService
    router: MessageRouter


def build_services(
    settings: Settings,
    *,
    memory_store: MemoryStore,
    account_store: AccountStore,
    session_store: SessionStore,
    embedder: EmbeddingProvider,
    llm_provider: LLMProvider | None = None,
) -> MemoBotServices:
    """Build the service graph over the given stores and providers."""
    executors = create_executors(settings.providers.llm, provider=llm_provider)
    utility = executors["utility"]

    sessions = SessionService(session_store, settings.session)
    categories = CategoryService(memory_store, embedder, utility, settings.classification)
    tags = TagService(memory_store, embedder, utility, settings.classification)
    retrieval = RetrievalEngine(memory_store, embedder, settings.retrieval)
    relationships = RelationshipBuilder(memory_store, settings.relationships)
    handlers = ToolHandlers(
        memory_store=memory_store,
        sessions=sessions,
        categories=categories,
        tags=tags,
        retrieval=retrieval,
        relationships=relationships,
        embedder=embedder,
        llm=utility,
        retrieval_config=settings.retrieval,
    )
    orchestrator = AgentOrchestrator(
        handlers=handlers,
        sessions=sessions,
        reasoning=executors["reasoning"],
        fast=executors["fast"],
        config=settings.agent,
    )
    accounts = AccountLinkingService(account_store)
    router = MessageRouter(accounts=accounts, sessions=sessions, orchestrator=orchestrator)

    return MemoBotServices(
        memory_store=memory_store,
        account_store=account_store,
        session_store=session_store,
        embedder=embedder,
        sessions=sessions,
        categories=categories,
        tags=tags,
        retrieval=retrieval,
        relationships=relationships,
        handlers=handlers,
        orchestrator=orchestrator,
        accounts=accounts,
        router=router,
    )
