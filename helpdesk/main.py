"""REST API for the helpdesk: tickets, comments, ratings, notifications, knowledge base."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from helpdesk.activity import get_recent as activity_get_recent, start_redis_subscriber
from helpdesk.config import CORS_ORIGINS, SEED_DEMO_DATA
from helpdesk.errors import HelpdeskError
from helpdesk.routes import articles, auth, notifications, reports, tickets, users
from helpdesk.seed import seed_demo_data
from helpdesk.store.base import Store
from helpdesk.store.factory import create_store

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())[1:]) or "body"
        parts.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return "; ".join(parts) or "Invalid request"


def create_app(store: Optional[Store] = None, seed: Optional[bool] = None) -> FastAPI:
    """
    Build the API. With no store, one is created from config at startup and closed at shutdown.
    seed defaults to SEED_DEMO_DATA and only fills an empty store.
    """
    do_seed = SEED_DEMO_DATA if seed is None else seed

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.store is None
        if owned:
            app.state.store = create_store()
        if do_seed and seed_demo_data(app.state.store):
            logger.info("Demo data loaded.")
        if start_redis_subscriber():
            logger.info("Activity feed mirrored through Redis.")
        try:
            yield
        finally:
            if owned:
                app.state.store.close()
                app.state.store = None

    app = FastAPI(
        title="Helpdesk API",
        description="Support tickets with lifecycle, notifications and a knowledge base.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.store = store
    if store is not None and do_seed:
        seed_demo_data(store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["Content-Type", "Authorization", "X-User-Id"],
    )

    @app.exception_handler(HelpdeskError)
    async def helpdesk_error_handler(request: Request, exc: HelpdeskError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": _validation_message(exc)})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    for module in (tickets, users, notifications, articles, reports, auth):
        app.include_router(module.router)

    @app.get("/health")
    def health() -> dict:
        """Health check (includes the store backend)."""
        current = app.state.store
        return {"status": "ok", "store": current.backend if current is not None else None}

    @app.get("/activity")
    def get_activity(limit: int = 100) -> dict:
        """Recent domain events (ticket created, status changed, commented, rated...)."""
        if limit < 1 or limit > 200:
            limit = 100
        return {"events": activity_get_recent(limit=limit)}

    return app


app = create_app()
