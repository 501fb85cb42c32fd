"""Prometheus metrics for MemoBot."""

from prometheus_client import Counter, Histogram

TURN_COUNT = Counter(
    "memobot_turns_total",
    "Inbound messages processed",
    labelnames=["channel", "outcome"],
)

TURN_LATENCY = Histogram(
    "memobot_turn_latency_seconds",
    "End-to-end latency of one inbound message",
    labelnames=["channel"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 40.0),
)

REASONING_ITERATIONS = Histogram(
    "memobot_reasoning_iterations",
    "Reasoning calls per turn",
    buckets=(1, 2, 3, 4, 5, 6, 8, 12),
)

TOOL_CALLS = Counter(
    "memobot_tool_calls_total",
    "Tool invocations by outcome",
    labelnames=["tool", "outcome"],
)

MEMORIES_SAVED = Counter(
    "memobot_memories_saved_total",
    "Finalize outcomes",
    labelnames=["outcome"],
)

RETRIEVAL_TIER = Counter(
    "memobot_retrieval_tier_total",
    "Which search tier served a query",
    labelnames=["tier"],
)

EMBEDDING_CACHE = Counter(
    "memobot_embedding_cache_total",
    "Embedding cache lookups",
    labelnames=["result"],
)

LLM_TOKENS = Counter(
    "memobot_llm_tokens_total",
    "LLM tokens used",
    labelnames=["model", "direction"],
)
