"""API route registration."""

from fastapi import APIRouter, FastAPI

from memobot.observability.logging import get_logger

logger = get_logger(__name__)


def create_v1_router() -> APIRouter:
    """Create the v1 API router with all routes."""
    router = APIRouter(prefix="/v1")

    from memobot.api.routes.accounts import router as accounts_router
    from memobot.api.routes.graph import router as graph_router
    from memobot.api.routes.messages import router as messages_router

    router.include_router(messages_router, tags=["Messages"])
    router.include_router(accounts_router, tags=["Accounts"])
    router.include_router(graph_router, tags=["Graph"])

    logger.debug("v1_router_created", routes=["messages", "accounts", "graph"])

    return router


def register_routes(app: FastAPI, *, metrics_enabled: bool = True) -> None:
    """Register all routes with the FastAPI application."""
    app.include_router(create_v1_router())

    from memobot.api.routes.health import metrics_router
    from memobot.api.routes.health import router as health_router

    app.include_router(health_router, tags=["Health"])
    if metrics_enabled:
        app.include_router(metrics_router, tags=["Health"])

    logger.info("routes_registered", metrics_enabled=metrics_enabled)
