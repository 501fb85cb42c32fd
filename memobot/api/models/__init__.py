"""API request and response models."""

from memobot.api.models.chat import (
    ChatRequest,
    LinkCodeRequest,
    LinkCodeResponse,
    LinkedAccountResponse,
)
from memobot.api.models.errors import ErrorBody, ErrorCode, ErrorDetail, ErrorResponse
from memobot.api.models.graph import (
    CategoryCount,
    MergeTagsResponse,
    RecalculateCountsResponse,
    RecomputeRelationsResponse,
    RelateRequest,
    RelateResponse,
)
from memobot.api.models.health import ComponentHealth, HealthResponse

__all__ = [
    "CategoryCount",
    "ChatRequest",
    "ComponentHealth",
    "ErrorBody",
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    "LinkCodeRequest",
    "LinkCodeResponse",
    "LinkedAccountResponse",
    "MergeTagsResponse",
    "RecalculateCountsResponse",
    "RecomputeRelationsResponse",
    "RelateRequest",
    "RelateResponse",
]
