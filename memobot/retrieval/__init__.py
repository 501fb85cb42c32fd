"""Memory retrieval."""

from memobot.retrieval.engine import RetrievalEngine
from memobot.retrieval.models import RetrievedMemory, SearchTier, make_preview

__all__ = ["RetrievalEngine", "RetrievedMemory", "SearchTier", "make_preview"]
