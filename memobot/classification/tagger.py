"""Tag normalization, extraction and get-or-create."""

import json
import re
from uuid import UUID

import Levenshtein
from pydantic import BaseModel

from memobot.classification.resolver import LabeledBucketResolver
from memobot.config.models.memory import ClassificationConfig
from memobot.db.errors import ConflictError
from memobot.memory.models import Tag
from memobot.memory.store import MemoryStore
from memobot.observability.logging import get_logger
from memobot.providers.embedding import EmbeddingProvider
from memobot.providers.errors import ProviderError
from memobot.providers.llm import LLMExecutor

logger = get_logger(__name__)

FALLBACK_TAGS = ["general"]

_WHITESPACE = re.compile(r"\s+")
_INVALID = re.compile(r"[^a-z0-9\-_]")
_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")

# Full word -> short forms treated as the same tag when merging
ABBREVIATIONS: dict[str, tuple[str, ...]] = {
    "meeting": ("mtg", "meet"),
    "document": ("doc", "docs"),
    "information": ("info",),
    "application": ("app", "apps"),
    "development": ("dev",),
    "production": ("prod",),
    "configuration": ("config", "cfg"),
    "message": ("msg",),
    "project": ("proj",),
    "reference": ("ref",),
    "repository": ("repo",),
    "administration": ("admin",),
    "authentication": ("auth",),
    "organization": ("org",),
    "environment": ("env",),
    "temporary": ("temp", "tmp"),
    "management": ("mgmt",),
    "department": ("dept",),
    "number": ("num", "no"),
    "assistant": ("asst",),
    "account": ("acct",),
    "address": ("addr",),
    "approximate": ("approx",),
    "average": ("avg",),
    "building": ("bldg",),
    "company": ("co",),
    "corporation": ("corp",),
    "january": ("jan",),
    "february": ("feb",),
    "december": ("dec",),
}

EXTRACTION_PROMPT_WITH_EXISTING = (
    "You extract meaningful topic tags from text. The user already has these "
    "tags: [{names}].\n\n"
    "IMPORTANT: Strongly prefer to use existing tags from the list above if "
    "they are relevant to the content. Only suggest new tags if NONE of the "
    "existing tags apply.\n\n"
    "Return only a JSON array of up to {max_tags} short, relevant tags (1-3 "
    "words each). If using existing tags, return them EXACTLY as shown above. "
    "Tags should be meaningful topics, themes, or categories."
)

EXTRACTION_PROMPT = (
    "You extract meaningful topic tags from text. Return only a JSON array of "
    "{max_tags} short, relevant tags (1-3 words each). Tags should be "
    "meaningful topics, themes, or categories - NOT random words from the "
    "text. Examples of good tags: \"family\", \"travel\", \"work project\", "
    "\"health\", \"birthday\", \"legal documents\"."
)


def normalize_tag_name(name: str) -> str:
    """Canonical tag key.

    "Family Trip", "family-trip" and "FAMILY TRIP " all map to "family-trip".
    """
    normalized = _WHITESPACE.sub("-", name.strip().lower())
    normalized = _INVALID.sub("", normalized)[:50]
    return normalized or "untagged"


def parse_tag_list(text: str, max_tags: int) -> list[str]:
    """Pull the first JSON array of strings out of a model reply."""
    match = _JSON_ARRAY.search(text)
    if not match:
        return []
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return []
    if not isinstance(parsed, list):
        return []
    tags = [t.strip().lower() for t in parsed if isinstance(t, str)]
    return [t for t in tags if t][:max_tags]


def comparison_key(name: str) -> str:
    """Loose key for spotting variants: singular form, no separators."""
    key = name.strip().lower()
    if key.endswith("ies") and len(key) > 4:
        key = key[:-3] + "y"
    elif key.endswith(("sses", "xes", "zes", "ches", "shes")):
        key = key[:-2]
    elif key.endswith("s") and not key.endswith("ss") and len(key) > 3:
        key = key[:-1]
    return key.replace("-", "").replace("_", "")


class TagMerge(BaseModel):
    """One group of tags folded into a canonical tag."""

    canonical: str
    merged: list[str]


class TagService:
    """Extracts tags from content and maps names onto an owner's tags."""

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
        self._resolver: LabeledBucketResolver[Tag] = LabeledBucketResolver(
            embedder,
            label=lambda t: t.name,
            embedding=lambda t: t.embedding,
            key=normalize_tag_name,
            reuse_threshold=self._config.tag_reuse_threshold,
        )

    @property
    def resolver(self) -> LabeledBucketResolver[Tag]:
        """The resolver used for matching tag names."""
        return self._resolver

    def _unique_names(self, names: list[str]) -> list[str]:
        seen: dict[str, str] = {}
        for name in names:
            display = name.strip()[:50]
            if not display:
                continue
            seen.setdefault(normalize_tag_name(display), display)
        return list(seen.values())[: self._config.max_tags_per_request]

    async def get_or_create_tags(self, owner_id: str, names: list[str]) -> list[Tag]:
        """Resolve names to tags, incrementing usage of reused ones and creating the rest."""
        existing = await self._store.list_tags(owner_id)
        result: list[Tag] = []
        seen_ids: set[UUID] = set()

        for display in self._unique_names(names):
            normalized = normalize_tag_name(display)
            try:
                resolution = await self._resolver.resolve(display, existing)
            except ProviderError as e:
                logger.warning("tag_embedding_failed", tag=normalized, error=str(e))
                match = self._resolver.find_exact(display, existing)
                resolution = None
            else:
                match = resolution.match

            if match is not None:
                if match.id in seen_ids:
                    continue
                await self._store.increment_tag_usage(owner_id, match.id)
                match.usage_count += 1
                seen_ids.add(match.id)
                result.append(match)
                continue

            tag = Tag(
                owner_id=owner_id,
                name=display,
                normalized_name=normalized,
                embedding=resolution.embedding if resolution else None,
                usage_count=1,
            )
            try:
                await self._store.add_tag(tag)
            except ConflictError:
                raced = await self._store.get_tag_by_normalized_name(owner_id, normalized)
                if raced is None:
                    raise
                await self._store.increment_tag_usage(owner_id, raced.id)
                tag = raced
            else:
                logger.debug("tag_created", owner_id=owner_id, tag=normalized)
            existing.append(tag)
            seen_ids.add(tag.id)
            result.append(tag)

        return result

    async def preview_tags(self, owner_id: str, names: list[str]) -> list[str]:
        """Names get_or_create_tags would end up with, without writing."""
        existing = await self._store.list_tags(owner_id)
        preview: list[str] = []
        for display in self._unique_names(names):
            try:
                resolution = await self._resolver.resolve(display, existing)
                name = resolution.name
            except ProviderError:
                exact = self._resolver.find_exact(display, existing)
                name = exact.name if exact else display
            if name not in preview:
                preview.append(name)
        return preview

    async def extract_tag_names(
        self,
        owner_id: str,
        content: str,
        max_tags: int | None = None,
    ) -> list[str]:
        """Ask the reasoning step for topic tags, preferring the owner's existing ones."""
        limit = max_tags or self._config.max_tags_per_memory
        existing_names = [t.name for t in await self._store.list_tags(owner_id, limit=50)]
        if existing_names:
            system_prompt = EXTRACTION_PROMPT_WITH_EXISTING.format(
                names=", ".join(existing_names), max_tags=limit
            )
        else:
            system_prompt = EXTRACTION_PROMPT.format(max_tags=limit)

        try:
            reply = await self._llm.generate_text(
                f"Extract {limit} meaningful tags from this content:\n\n{content[:1500]}",
                system_prompt=system_prompt,
                max_tokens=100,
            )
        except ProviderError as e:
            logger.warning("tag_extraction_failed", error=str(e))
            return list(FALLBACK_TAGS)

        tags = parse_tag_list(reply, limit)
        return tags or list(FALLBACK_TAGS)

    async def extract_and_assign_tags(self, owner_id: str, content: str) -> list[Tag]:
        """Extract tag names from content and get-or-create them."""
        names = await self.extract_tag_names(owner_id, content)
        return await self.get_or_create_tags(owner_id, names)

    async def release_tags(self, owner_id: str, tag_ids: list[UUID]) -> None:
        """Give back one use of each tag, e.g. when a save is rolled back."""
        for tag_id in dict.fromkeys(tag_ids):
            await self._store.increment_tag_usage(owner_id, tag_id, -1)

    def should_merge(self, first: str, second: str) -> bool:
        """Whether two tag names are spelling variants of one another."""
        a, b = comparison_key(first), comparison_key(second)
        if a == b:
            return True
        for full, short_forms in ABBREVIATIONS.items():
            for short in short_forms:
                if a.replace(full, short) == b or b.replace(full, short) == a:
                    return True

        longest = max(len(a), len(b))
        if longest == 0:
            return True
        if min(len(a), len(b)) <= 5:
            threshold = self._config.tag_merge_short_similarity
        else:
            threshold = self._config.tag_merge_similarity
        return 1 - Levenshtein.distance(a, b) / longest >= threshold

    async def merge_similar_tags(self, owner_id: str) -> list[TagMerge]:
        """Fold near-duplicate tags into the most used tag of each group."""
        tags = await self._store.list_tags(owner_id)
        grouped: set[UUID] = set()
        merges: list[TagMerge] = []

        # list_tags is most used first, so the first tag of a group is canonical
        for i, canonical in enumerate(tags):
            if canonical.id in grouped:
                continue
            duplicates = [
                other for other in tags[i + 1:]
                if other.id not in grouped and self.should_merge(canonical.name, other.name)
            ]
            if not duplicates:
                continue
            grouped.add(canonical.id)
            grouped.update(d.id for d in duplicates)

            await self._store.merge_tags(owner_id, canonical.id, [d.id for d in duplicates])
            merges.append(
                TagMerge(canonical=canonical.name, merged=[d.name for d in duplicates])
            )
            logger.info(
                "tags_merged",
                owner_id=owner_id,
                canonical=canonical.normalized_name,
                merged=len(duplicates),
            )
        return merges
