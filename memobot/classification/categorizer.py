"""Category assignment, colour palette, counts and descriptions."""

import asyncio
from uuid import UUID

from memobot.classification.resolver import LabeledBucketResolver, Resolution
from memobot.config.models.memory import ClassificationConfig
from memobot.db.errors import ConflictError, StoreError
from memobot.memory.models import Category
from memobot.memory.store import MemoryStore
from memobot.observability.logging import get_logger
from memobot.providers.embedding import EmbeddingProvider
from memobot.providers.errors import ProviderError
from memobot.providers.llm import LLMExecutor

logger = get_logger(__name__)

CATEGORY_COLORS: tuple[str, ...] = (
    "neon-cyan",
    "neon-pink",
    "neon-green",
    "neon-purple",
    "neon-yellow",
    "neon-orange",
    "neon-blue",
    "neon-red",
    "neon-lime",
    "neon-magenta",
)

NAMING_PROMPT_WITH_EXISTING = (
    "You categorize content into meaningful categories. The user already has "
    "these categories: [{names}].\n\n"
    "IMPORTANT: Strongly prefer to use one of the existing categories if the "
    "content reasonably fits. Only suggest a new category name if NONE of the "
    "existing categories are even remotely appropriate.\n\n"
    "Return ONLY a single category name (1-3 words, title case). If using an "
    "existing category, return it EXACTLY as shown above."
)

NAMING_PROMPT = (
    "You categorize content into meaningful categories. Return ONLY a single "
    "category name (1-3 words, title case). Examples: \"Personal\", \"Work\", "
    "\"Family\", \"Health\", \"Travel\", \"Finance\", \"Legal Documents\", "
    "\"Goals\", \"Ideas\", \"Learning\"."
)

DESCRIPTION_PROMPT = (
    "You create brief category descriptions. Given a list of memory summaries "
    "from a category, write a concise 1-2 sentence description that captures "
    "what this category contains. Be descriptive but brief. Do not start with "
    "\"This category...\" - just describe the content directly."
)


def category_key(name: str) -> str:
    """Case-insensitive category name key."""
    return name.strip().lower()


def clean_category_name(raw: str, fallback: str) -> str:
    """Strip quotes and one trailing punctuation mark; fall back when empty or too long."""
    cleaned = raw.strip().replace('"', "").replace("'", "")
    if cleaned and cleaned[-1] in ".!?":
        cleaned = cleaned[:-1]
    cleaned = cleaned.strip()
    return cleaned if 0 < len(cleaned) <= 50 else fallback


def pick_color(categories: list[Category]) -> str:
    """First unused palette colour, else the colour holding the fewest memories."""
    usage: dict[str, int] = {}
    for category in categories:
        if category.color:
            usage[category.color] = usage.get(category.color, 0) + category.memory_count

    for color in CATEGORY_COLORS:
        if color not in usage:
            return color

    return min(usage.items(), key=lambda item: item[1])[0]


class CategoryService:
    """Assigns memories to per-owner categories and maintains their counts.

    Description regeneration runs as background tasks; `drain()` waits for
    them (shutdown, tests).
    """

    def __init__(
        self,
        store: MemoryStore,
        embedder: EmbeddingProvider,
        llm: LLMExecutor,
        config: ClassificationConfig | None = None,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._llm = llm
        self._config = config or ClassificationConfig()
        self._background: set[asyncio.Task[str]] = set()
        self._resolver: LabeledBucketResolver[Category] = LabeledBucketResolver(
            embedder,
            label=lambda c: c.name,
            embedding=lambda c: c.embedding,
            key=category_key,
            reuse_threshold=self._config.category_reuse_threshold,
            near_duplicate_threshold=self._config.category_near_duplicate_threshold,
            namer=self.suggest_category_name,
        )

    @property
    def resolver(self) -> LabeledBucketResolver[Category]:
        """The resolver used for assignment and previews."""
        return self._resolver

    async def suggest_category_name(self, content: str, existing_names: list[str]) -> str:
        """Ask the reasoning step for a 1-3 word category name."""
        if existing_names:
            system_prompt = NAMING_PROMPT_WITH_EXISTING.format(names=", ".join(existing_names))
        else:
            system_prompt = NAMING_PROMPT
        try:
            suggested = await self._llm.generate_text(
                f"What category best describes this content?\n\n{content[:1000]}",
                system_prompt=system_prompt,
                max_tokens=50,
            )
        except ProviderError as e:
            logger.warning("category_suggestion_failed", error=str(e))
            return self._config.default_category
        return clean_category_name(suggested, self._config.default_category)

    async def _resolve(self, owner_id: str, text: str) -> Resolution[Category]:
        categories = await self._store.list_categories(owner_id)
        looks_like_name = len(text) <= 80 and ". " not in text
        return await self._resolver.resolve(text, categories, try_exact=looks_like_name)

    async def assign_category(
        self,
        owner_id: str,
        text: str,
        *,
        override: bool = False,
    ) -> Category:
        """Find the best category for text, creating one when nothing fits.

        With override, text is taken as the category name: an existing
        category of that name is used, otherwise it is created.
        """
        trimmed = text.strip()
        if not trimmed:
            return await self.get_or_create_category(owner_id, self._config.empty_category)
        if override:
            return await self.get_or_create_category(owner_id, trimmed)

        try:
            resolution = await self._resolve(owner_id, trimmed)
        except ProviderError as e:
            logger.warning(
                "category_assignment_degraded",
                owner_id=owner_id,
                fallback=self._config.default_category,
                error=str(e),
            )
            return await self.get_or_create_category(owner_id, self._config.default_category)

        if resolution.match is not None:
            logger.debug(
                "category_reused",
                category=resolution.name,
                source=resolution.source,
                score=resolution.score,
            )
            return resolution.match

        return await self.get_or_create_category(
            owner_id, resolution.name, embedding=resolution.embedding
        )

    async def preview_category(self, owner_id: str, text: str) -> str:
        """Name of the category assign_category would pick, without creating it."""
        trimmed = text.strip()
        if not trimmed:
            return self._config.empty_category
        try:
            resolution = await self._resolve(owner_id, trimmed)
        except ProviderError as e:
            logger.warning("category_preview_degraded", error=str(e))
            return self._config.default_category
        return resolution.name

    async def get_or_create_category(
        self,
        owner_id: str,
        name: str,
        *,
        embedding: list[float] | None = None,
    ) -> Category:
        """Return the category with this name (any case), creating it if needed."""
        existing = await self._store.get_category_by_name(owner_id, name)
        if existing is not None:
            return existing

        if embedding is None:
            try:
                embedding = await self._embedder.embed_single(name.strip())
            except ProviderError as e:
                logger.warning("category_embedding_failed", name=name, error=str(e))

        categories = await self._store.list_categories(owner_id)
        category = Category(
            owner_id=owner_id,
            name=name.strip(),
            embedding=embedding,
            color=pick_color(categories),
        )
        try:
            await self._store.add_category(category)
        except ConflictError:
            existing = await self._store.get_category_by_name(owner_id, name)
            if existing is None:
                raise
            return existing

        logger.info(
            "category_created",
            owner_id=owner_id,
            category_id=str(category.id),
            name=category.name,
            color=category.color,
        )
        return category

    # Counts

    async def increment_memory_count(self, owner_id: str, category_id: UUID) -> None:
        """Add one memory to a category and refresh its description."""
        count = await self._store.adjust_category_count(owner_id, category_id, 1)
        if count is not None:
            self.schedule_description_refresh(owner_id, category_id)

    async def decrement_memory_count(self, owner_id: str, category_id: UUID) -> None:
        """Remove one memory from a category (never below zero) and refresh its description."""
        count = await self._store.adjust_category_count(owner_id, category_id, -1)
        if count is not None:
            self.schedule_description_refresh(owner_id, category_id)

    async def update_category_memory_counts(
        self,
        owner_id: str,
        old_category_id: UUID | None,
        new_category_id: UUID | None,
    ) -> None:
        """Move one memory's count between categories."""
        if old_category_id == new_category_id:
            return
        if old_category_id is not None:
            await self.decrement_memory_count(owner_id, old_category_id)
        if new_category_id is not None:
            await self.increment_memory_count(owner_id, new_category_id)

    async def recalculate_category_counts(self, owner_id: str) -> dict[UUID, int]:
        """Recount every category from its live memories, repairing drifted counts."""
        counts = await self._store.recalculate_category_counts(owner_id)
        logger.info("category_counts_recalculated", owner_id=owner_id, categories=len(counts))
        return counts

    # Descriptions

    async def generate_category_description(self, owner_id: str, category_id: UUID) -> str:
        """Summarize a category's recent memories into a 1-2 sentence description."""
        memories = await self._store.list_recent_memories(
            owner_id,
            limit=self._config.description_memory_limit,
            category_id=category_id,
        )
        summaries = [m.summary or m.title or "" for m in memories]
        summaries = [s for s in summaries if s][: self._config.description_summary_limit]
        if not summaries:
            return ""

        description = await self._llm.generate_text(
            "Create a brief description for a category containing these memories:\n- "
            + "\n- ".join(summaries),
            system_prompt=DESCRIPTION_PROMPT,
            max_tokens=100,
        )
        if not description:
            return ""

        category = await self._store.get_category(owner_id, category_id)
        if category is None:
            return ""
        category.description = description
        await self._store.update_category(category)
        logger.debug("category_description_updated", category_id=str(category_id))
        return description

    async def _refresh_description(self, owner_id: str, category_id: UUID) -> str:
        try:
            return await self.generate_category_description(owner_id, category_id)
        except (ProviderError, StoreError) as e:
            logger.warning(
                "category_description_failed",
                category_id=str(category_id),
                error=str(e),
            )
            return ""

    def schedule_description_refresh(self, owner_id: str, category_id: UUID) -> None:
        """Regenerate a description in the background without blocking the caller."""
        task = asyncio.create_task(self._refresh_description(owner_id, category_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self) -> None:
        """Wait for all scheduled description refreshes."""
        while self._background:
            await asyncio.gather(*list(self._background))
