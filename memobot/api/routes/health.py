"""Health check and metrics endpoints."""

import time
from datetime import UTC, datetime
from typing import Literal

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from memobot.api.dependencies import (
    AccountStoreDep,
    MemoryStoreDep,
    SessionStoreDep,
)
from memobot.api.models.health import ComponentHealth, HealthResponse
from memobot.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()
metrics_router = APIRouter()


async def _check_store_health(store: object, name: str) -> ComponentHealth:
    """Check a store, using its health_check() where it has one."""
    start = time.perf_counter()
    check = getattr(store, "health_check", None)
    if check is None:
        return ComponentHealth(
            name=name,
            status="healthy",
            latency_ms=(time.perf_counter() - start) * 1000,
        )
    try:
        healthy = await check()
    except Exception as e:
        logger.warning("health_check_failed", component=name, error=str(e))
        return ComponentHealth(
            name=name,
            status="unhealthy",
            latency_ms=(time.perf_counter() - start) * 1000,
            message=str(e),
        )
    return ComponentHealth(
        name=name,
        status="healthy" if healthy else "unhealthy",
        latency_ms=(time.perf_counter() - start) * 1000,
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(
    memory_store: MemoryStoreDep,
    account_store: AccountStoreDep,
    session_store: SessionStoreDep,
) -> HealthResponse:
    """Overall service status with the status of each store."""
    components = [
        await _check_store_health(memory_store, "memory_store"),
        await _check_store_health(account_store, "account_store"),
        await _check_store_health(session_store, "session_store"),
    ]

    overall_status: Literal["healthy", "degraded", "unhealthy"]
    if all(c.status == "unhealthy" for c in components):
        overall_status = "unhealthy"
    elif any(c.status != "healthy" for c in components):
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    logger.debug("health_check_completed", status=overall_status)

    return HealthResponse(
        status=overall_status,
        version="0.1.0",
        components=components,
        timestamp=datetime.now(UTC),
    )


@metrics_router.get("/metrics")
async def get_metrics() -> Response:
    """Prometheus metrics in text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
