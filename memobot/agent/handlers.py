"""Tool handlers: execute the reasoning step's tool calls against an owner's data.

Every handler returns a JSON-serializable dict. Failures never escape
`ToolHandlers.execute`; they come back as `{"error": ...}` results the
model can read and explain.
"""

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ValidationError

from memobot.agent.prompts import parse_title_summary, render_title_summary_prompt
from memobot.agent.tools import (
    NEW_MEMORY_BUTTON,
    SAVE_MEMORY_BUTTON,
    TOOL_SPECS,
    AddToMemoryDraftArgs,
    DeleteMemoryArgs,
    FinalizeMemoryArgs,
    GenerateMemoryDraftArgs,
    GetMemoryByIdArgs,
    ListRecentMemoriesArgs,
    ListTagsArgs,
    SearchMemoriesArgs,
    SetSessionStateArgs,
    StartMemoryCaptureArgs,
    UpdateMemoryArgs,
)
from memobot.classification import CategoryService, TagService
from memobot.config.models.memory import RetrievalConfig
from memobot.conversation import (
    ConversationSession,
    ConversationState,
    MemoryDraft,
    SessionService,
)
from memobot.db.errors import NotFoundError, StoreError
from memobot.memory import MemoryStore
from memobot.memory.models import Channel, Memory, Tag, utc_now
from memobot.observability.logging import get_logger
from memobot.observability.metrics import MEMORIES_SAVED, TOOL_CALLS
from memobot.providers.embedding import EmbeddingProvider
from memobot.providers.errors import ProviderError
from memobot.providers.llm import LLMExecutor
from memobot.relationships import RelationshipBuilder
from memobot.retrieval import RetrievalEngine
from memobot.retrieval.models import make_preview

logger = get_logger(__name__)

SAVE_FAILED_MESSAGE = "Failed to save memory. Please try again."
TOOL_FAILED_MESSAGE = "Something went wrong. Please try again."
NO_DRAFT_MESSAGE = (
    "No memory draft to save. Please tell me what you'd like to remember first, "
    "and I'll help you capture it."
)


@dataclass
class ToolContext:
    """Who a tool call runs for."""

    owner_id: str
    session_id: UUID
    channel: Channel


class _SaveInProgress(Exception):
    """Another finalize holds the marker."""


class _DraftChanged(Exception):
    """The draft no longer holds the content being saved."""


Handler = Callable[[Any, ToolContext], Awaitable[dict[str, Any]]]


class ToolHandlers:
    """Dispatches tool calls by name after validating their arguments."""

    def __init__(
        self,
        *,
        memory_store: MemoryStore,
        sessions: SessionService,
        categories: CategoryService,
        tags: TagService,
        retrieval: RetrievalEngine,
        relationships: RelationshipBuilder,
        embedder: EmbeddingProvider,
        llm: LLMExecutor,
        retrieval_config: RetrievalConfig | None = None,
    ) -> None:
        self._store = memory_store
        self._sessions = sessions
        self._categories = categories
        self._tags = tags
        self._retrieval = retrieval
        self._relationships = relationships
        self._embedder = embedder
        self._llm = llm
        self._preview_length = (retrieval_config or RetrievalConfig()).content_preview_length
        self._handlers: dict[str, Handler] = {
            name: getattr(self, f"_{name}") for name in TOOL_SPECS
        }

    async def execute(
        self,
        name: str,
        arguments: str | dict[str, Any] | None,
        context: ToolContext,
    ) -> dict[str, Any]:
        """Validate and run one tool call.

        Arguments may be the raw JSON string from the model.
        """
        spec = TOOL_SPECS.get(name)
        if spec is None:
            TOOL_CALLS.labels(tool="unknown", outcome="unknown_tool").inc()
            logger.warning("unknown_tool_called", tool=name)
            return {"error": "unknown_tool", "tool": name, "message": f"Unknown tool: {name}"}

        try:
            args = self._parse_arguments(spec.arguments, arguments)
        except ValidationError as e:
            TOOL_CALLS.labels(tool=name, outcome="invalid_arguments").inc()
            details = [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]
            return {"error": "invalid_arguments", "tool": name, "details": details}
        except ValueError as e:
            TOOL_CALLS.labels(tool=name, outcome="invalid_arguments").inc()
            return {"error": "invalid_arguments", "tool": name, "details": str(e)}

        try:
            result = await self._handlers[name](args, context)
        except NotFoundError as e:
            logger.info("tool_target_not_found", tool=name, error=str(e))
            result = {"error": "not_found"}
        except (StoreError, ProviderError) as e:
            logger.warning(
                "tool_failed",
                tool=name,
                error=str(e),
                error_type=type(e).__name__,
            )
            result = {"error": f"{name} failed", "message": TOOL_FAILED_MESSAGE}
        except Exception as e:
            logger.exception("tool_crashed", tool=name, error_type=type(e).__name__)
            result = {"error": f"{name} failed", "message": TOOL_FAILED_MESSAGE}

        outcome = "error" if "error" in result else "ok"
        TOOL_CALLS.labels(tool=name, outcome=outcome).inc()
        return result

    @staticmethod
    def _parse_arguments(
        model: type[BaseModel],
        arguments: str | dict[str, Any] | None,
    ) -> BaseModel:
        if arguments is None or arguments == "":
            payload: Any = {}
        elif isinstance(arguments, str):
            try:
                payload = json.loads(arguments)
            except json.JSONDecodeError as e:
                raise ValueError(f"Arguments are not valid JSON: {e.msg}") from e
        else:
            payload = arguments
        if not isinstance(payload, dict):
            raise ValueError("Arguments must be a JSON object")
        return model.model_validate(payload)

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _require_session(self, context: ToolContext) -> ConversationSession:
        session = await self._sessions.get_session(context.session_id)
        if session is None:
            raise NotFoundError(f"Session {context.session_id} not found")
        return session

    async def generate_title_and_summary(self, content: str) -> tuple[str, str]:
        """Title and one-sentence summary for content; falls back on provider failure."""
        try:
            reply = await self._llm.generate_text(
                render_title_summary_prompt(content), max_tokens=256
            )
        except ProviderError as e:
            logger.warning("title_generation_failed", error=str(e))
            reply = ""
        return parse_title_summary(reply, content)

    async def _memory_summary(
        self,
        owner_id: str,
        memory: Memory,
        **extra: Any,
    ) -> dict[str, Any]:
        category = (
            await self._store.get_category(owner_id, memory.category_id)
            if memory.category_id
            else None
        )
        tags = await self._store.get_memory_tags(owner_id, memory.id)
        return {
            "id": str(memory.id),
            "title": memory.title,
            "content_preview": make_preview(memory.content, self._preview_length),
            "category": category.name if category else None,
            "tags": [t.name for t in tags],
            **extra,
        }

    async def _memory_detail(self, owner_id: str, memory: Memory) -> dict[str, Any]:
        category = (
            await self._store.get_category(owner_id, memory.category_id)
            if memory.category_id
            else None
        )
        tags = await self._store.get_memory_tags(owner_id, memory.id)
        return {
            "id": str(memory.id),
            "title": memory.title,
            "content": memory.content,
            "summary": memory.summary,
            "category": category.name if category else None,
            "tags": [t.name for t in tags],
            "created_at": memory.created_at.isoformat(),
        }

    # ========================================================================
    # Search & retrieval
    # ========================================================================

    async def _search_memories(
        self, args: SearchMemoriesArgs, context: ToolContext
    ) -> dict[str, Any]:
        results = await self._retrieval.search(
            context.owner_id,
            args.query,
            limit=args.limit,
            include_related=args.include_related,
        )
        if not results:
            return {"memories": [], "message": "No memories found"}
        return {"memories": [r.to_tool_result() for r in results]}

    async def _get_memory_by_id(
        self, args: GetMemoryByIdArgs, context: ToolContext
    ) -> dict[str, Any]:
        memory = await self._store.get_memory(context.owner_id, args.memory_id)
        if memory is None:
            raise NotFoundError(f"Memory {args.memory_id} not found")
        return await self._memory_detail(context.owner_id, memory)

    async def _list_recent_memories(
        self, args: ListRecentMemoriesArgs, context: ToolContext
    ) -> dict[str, Any]:
        limit = min(20, max(1, args.limit))
        category_id = None
        if args.category:
            category = await self._store.get_category_by_name(context.owner_id, args.category)
            if category is None:
                return {"memories": [], "message": f"No category named {args.category}"}
            category_id = category.id

        memories = await self._store.list_recent_memories(
            context.owner_id, limit=limit, category_id=category_id
        )
        names = {c.id: c.name for c in await self._store.list_categories(context.owner_id)}
        listed = []
        for memory in memories:
            tags = await self._store.get_memory_tags(context.owner_id, memory.id)
            listed.append({
                "id": str(memory.id),
                "title": memory.title,
                "summary": memory.summary,
                "category": names.get(memory.category_id) if memory.category_id else None,
                "tags": [t.name for t in tags],
                "created_at": memory.created_at.isoformat(),
            })
        return {"memories": listed}

    async def _list_categories(self, args: BaseModel, context: ToolContext) -> dict[str, Any]:
        categories = await self._store.list_categories(context.owner_id)
        categories.sort(key=lambda c: c.memory_count, reverse=True)
        return {
            "categories": [
                {"name": c.name, "description": c.description, "memory_count": c.memory_count}
                for c in categories
            ]
        }

    async def _list_tags(self, args: ListTagsArgs, context: ToolContext) -> dict[str, Any]:
        limit = min(50, max(1, args.limit))
        tags = await self._store.list_tags(context.owner_id, limit=limit)
        return {"tags": [{"name": t.name, "usage_count": t.usage_count} for t in tags]}

    # ========================================================================
    # Memory creation
    # ========================================================================

    async def _start_memory_capture(
        self, args: StartMemoryCaptureArgs, context: ToolContext
    ) -> dict[str, Any]:
        initial = (args.initial_content or "").strip()

        def _start(session: ConversationSession) -> None:
            session.state = ConversationState.MEMORY_CAPTURE
            session.draft = MemoryDraft(
                content_parts=[initial] if initial else [],
                started_at=utc_now(),
            )

        await self._sessions.update_session(context.session_id, _start)
        logger.info("memory_capture_started", has_content=bool(initial))
        return {
            "status": "capture_started",
            "message": (
                "Got it! Can you tell me more about this?"
                if initial
                else "What would you like to remember?"
            ),
            "suggested_buttons": [SAVE_MEMORY_BUTTON],
        }

    async def _add_to_memory_draft(
        self, args: AddToMemoryDraftArgs, context: ToolContext
    ) -> dict[str, Any]:

        def _add(session: ConversationSession) -> None:
            draft = session.draft
            draft.content_parts = [*draft.content_parts, args.content]
            if args.is_answer_to_question:
                draft.enrichment_count += 1
            if draft.started_at is None:
                draft.started_at = utc_now()
            # generated fields describe the old content
            draft.full_content = None
            draft.title = None
            draft.summary = None
            session.state = ConversationState.MEMORY_ENRICHMENT

        session = await self._sessions.update_session(context.session_id, _add)
        return {
            "status": "content_added",
            "enrichment_count": session.draft.enrichment_count,
            "total_parts": len(session.draft.content_parts),
            "suggested_buttons": [SAVE_MEMORY_BUTTON],
        }

    async def _generate_memory_draft(
        self, args: GenerateMemoryDraftArgs, context: ToolContext
    ) -> dict[str, Any]:
        session = await self._require_session(context)
        parts = [p for p in session.draft.content_parts if p.strip()]
        if not parts:
            return {
                "error": "no_draft",
                "message": (
                    "No content captured yet. Please start by telling me "
                    "what you'd like to remember."
                ),
            }

        full_content = "\n\n".join(parts)
        title, summary = await self.generate_title_and_summary(full_content)
        category = await self._categories.preview_category(context.owner_id, full_content)
        tag_names = await self._tags.extract_tag_names(context.owner_id, full_content)
        tags = await self._tags.preview_tags(context.owner_id, tag_names)

        def _draft(session: ConversationSession) -> None:
            session.state = ConversationState.MEMORY_DRAFT
            draft = session.draft
            draft.full_content = full_content
            draft.title = title
            draft.summary = summary
            draft.category_preview = category
            draft.tags_preview = tags

        await self._sessions.update_session(context.session_id, _draft)
        return {
            "status": "draft_ready",
            "draft": {
                "title": title,
                "summary": summary,
                "content_preview": make_preview(full_content, self._preview_length),
                "category": category,
                "tags": tags,
            },
        }

    async def _finalize_memory(
        self, args: FinalizeMemoryArgs, context: ToolContext
    ) -> dict[str, Any]:
        session = await self._require_session(context)
        draft = session.draft
        if draft.saving_in_progress:
            return self._saving_in_progress()

        content = draft.assemble_content() if session.in_draft else ""
        if not content:
            return await self._no_draft_result(context.owner_id, draft)

        title, summary = draft.title, draft.summary
        if not title or not summary:
            generated_title, generated_summary = await self.generate_title_and_summary(content)
            title = title or generated_title
            summary = summary or generated_summary
        if args.title and args.title.strip():
            title = args.title.strip()[:100]

        duplicate = await self._store.find_memory_by_content(context.owner_id, content)
        if duplicate is not None:
            await self._sessions.reset_draft(context.session_id, saved=duplicate)
            MEMORIES_SAVED.labels(outcome="duplicate").inc()
            logger.info("memory_duplicate_detected", memory_id=str(duplicate.id))
            return {
                "status": "memory_saved",
                "duplicate": True,
                "memory": await self._memory_summary(context.owner_id, duplicate),
                "suggested_buttons": [NEW_MEMORY_BUTTON],
            }

        def _mark(latest: ConversationSession) -> None:
            if latest.draft.saving_in_progress:
                raise _SaveInProgress()
            if not latest.in_draft or latest.draft.assemble_content() != content:
                raise _DraftChanged()
            latest.draft.saving_in_progress = True

        try:
            await self._sessions.update_session(context.session_id, _mark)
        except _SaveInProgress:
            return self._saving_in_progress()
        except _DraftChanged:
            latest = await self._require_session(context)
            return await self._no_draft_result(context.owner_id, latest.draft)

        try:
            return await self._save(args, context, content, title, summary)
        except Exception as e:
            logger.error(
                "memory_save_failed",
                session_id=str(context.session_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            MEMORIES_SAVED.labels(outcome="failed").inc()
            await self._clear_marker(context.session_id)
            return {"error": SAVE_FAILED_MESSAGE}

    async def _save(
        self,
        args: FinalizeMemoryArgs,
        context: ToolContext,
        content: str,
        title: str,
        summary: str | None,
    ) -> dict[str, Any]:
        owner_id = context.owner_id
        embedding = await self._embedder.embed_single(content)

        if args.category_override and args.category_override.strip():
            category = await self._categories.assign_category(
                owner_id, args.category_override, override=True
            )
        else:
            category = await self._categories.assign_category(owner_id, content)

        if args.tags_override is not None:
            tags = await self._tags.get_or_create_tags(owner_id, args.tags_override)
        else:
            tags = await self._tags.extract_and_assign_tags(owner_id, content)

        memory = Memory(
            owner_id=owner_id,
            title=title,
            content=content,
            summary=summary,
            embedding=embedding,
            category_id=category.id,
            source_channel=context.channel,
        )
        stored = counted = False
        try:
            await self._store.add_memory(memory)
            stored = True
            await self._store.set_memory_tags(memory.id, [t.id for t in tags])
            related_count = await self._relationships.build_for_memory(
                owner_id, memory.id, embedding
            )
            await self._categories.increment_memory_count(owner_id, category.id)
            counted = True
            await self._sessions.reset_draft(context.session_id, saved=memory)
        except Exception:
            await self._undo_save(memory, tags, stored=stored, counted=counted)
            raise

        MEMORIES_SAVED.labels(outcome="saved").inc()
        logger.info(
            "memory_saved",
            memory_id=str(memory.id),
            category=category.name,
            tags=len(tags),
            related_count=related_count,
        )
        return {
            "status": "memory_saved",
            "memory": {
                "id": str(memory.id),
                "title": memory.title,
                "content_preview": make_preview(content, self._preview_length),
                "category": category.name,
                "tags": [t.name for t in tags],
                "related_count": related_count,
            },
            "suggested_buttons": [NEW_MEMORY_BUTTON],
        }

    async def _undo_save(
        self,
        memory: Memory,
        tags: list[Tag],
        *,
        stored: bool,
        counted: bool,
    ) -> None:
        """Take back a partial save so a retry starts from a clean slate.

        Each step is attempted even when an earlier one fails; a count that
        still drifts is repaired by `CategoryService.recalculate_category_counts`.
        """
        owner_id = memory.owner_id
        steps: list[tuple[str, Callable[[], Awaitable[Any]]]] = [
            (
                "release_tags",
                lambda: self._tags.release_tags(owner_id, [t.id for t in tags]),
            ),
        ]
        if stored:
            steps += [
                ("unlink_tags", lambda: self._store.set_memory_tags(memory.id, [])),
                ("drop_edges", lambda: self._relationships.unlink_all(owner_id, memory.id)),
                ("delete_memory", lambda: self._store.soft_delete_memory(owner_id, memory.id)),
            ]
        if counted and memory.category_id is not None:
            steps.append(
                (
                    "decrement_count",
                    lambda: self._categories.decrement_memory_count(owner_id, memory.category_id),
                )
            )

        for step, undo in steps:
            try:
                await undo()
            except StoreError as e:
                logger.error(
                    "memory_save_rollback_failed",
                    memory_id=str(memory.id),
                    step=step,
                    error=str(e),
                )
        logger.warning("memory_save_rolled_back", memory_id=str(memory.id), stored=stored)

    async def _clear_marker(self, session_id: UUID) -> None:

        def _clear(session: ConversationSession) -> None:
            session.draft.saving_in_progress = False

        try:
            await self._sessions.update_session(session_id, _clear)
        except StoreError as e:
            logger.error("save_marker_clear_failed", session_id=str(session_id), error=str(e))

    @staticmethod
    def _saving_in_progress() -> dict[str, Any]:
        MEMORIES_SAVED.labels(outcome="in_progress").inc()
        return {"status": "saving_in_progress", "message": "Memory is being saved, please wait..."}

    async def _no_draft_result(self, owner_id: str, draft: MemoryDraft) -> dict[str, Any]:
        window = self._sessions.config.recent_save_window_seconds
        if draft.saved_recently(window) and draft.last_created_memory_id is not None:
            memory = await self._store.get_memory(owner_id, draft.last_created_memory_id)
            if memory is not None:
                MEMORIES_SAVED.labels(outcome="already_saved").inc()
                return {
                    "status": "already_saved",
                    "memory": await self._memory_summary(owner_id, memory),
                    "suggested_buttons": [NEW_MEMORY_BUTTON],
                }
        return {"error": "no_draft", "message": NO_DRAFT_MESSAGE}

    async def _cancel_memory_draft(self, args: BaseModel, context: ToolContext) -> dict[str, Any]:
        await self._sessions.reset_draft(context.session_id)
        logger.info("memory_draft_cancelled")
        return {"status": "draft_cancelled"}

    # ========================================================================
    # Memory management
    # ========================================================================

    async def _update_memory(
        self, args: UpdateMemoryArgs, context: ToolContext
    ) -> dict[str, Any]:
        owner_id = context.owner_id
        memory = await self._store.get_memory(owner_id, args.memory_id)
        if memory is None:
            raise NotFoundError(f"Memory {args.memory_id} not found")

        old_category_id = memory.category_id
        content_changed = args.content is not None and args.content != memory.content

        if args.title is not None:
            memory.title = args.title
        if args.summary is not None:
            memory.summary = args.summary
        if content_changed:
            memory.content = args.content
            memory.embedding = await self._embedder.embed_single(args.content)
        if args.category is not None and args.category.strip():
            category = await self._categories.assign_category(
                owner_id, args.category, override=True
            )
            memory.category_id = category.id
        memory.updated_at = utc_now()

        await self._store.update_memory(memory)
        if args.tags is not None:
            tags = await self._tags.get_or_create_tags(owner_id, args.tags)
            await self._store.set_memory_tags(memory.id, [t.id for t in tags])
        await self._categories.update_category_memory_counts(
            owner_id, old_category_id, memory.category_id
        )
        if content_changed:
            await self._relationships.build_for_memory(owner_id, memory.id, memory.embedding)

        logger.info("memory_updated", memory_id=str(memory.id), content_changed=content_changed)
        return {"status": "memory_updated", "memory": await self._memory_detail(owner_id, memory)}

    async def _delete_memory(self, args: DeleteMemoryArgs, context: ToolContext) -> dict[str, Any]:
        deleted = await self._store.soft_delete_memory(context.owner_id, args.memory_id)
        if deleted is None:
            raise NotFoundError(f"Memory {args.memory_id} not found")
        if deleted.category_id is not None:
            await self._categories.decrement_memory_count(context.owner_id, deleted.category_id)
        logger.info("memory_deleted", memory_id=str(deleted.id))
        return {"status": "memory_deleted"}

    # ========================================================================
    # Session
    # ========================================================================

    async def _get_session_state(self, args: BaseModel, context: ToolContext) -> dict[str, Any]:
        session = await self._require_session(context)
        parts = session.draft.content_parts
        return {
            "state": session.state.value,
            "has_draft": bool(parts),
            "draft_parts": len(parts),
            "draft": session.draft.model_dump(mode="json", exclude_defaults=True),
        }

    async def _set_session_state(
        self, args: SetSessionStateArgs, context: ToolContext
    ) -> dict[str, Any]:
        await self._sessions.set_state(context.session_id, args.state)
        return {"status": "state_updated", "state": args.state.value}
