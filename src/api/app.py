"""FastAPI application factory"""

import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from src.api.error import register_exception_handlers
from src.api.routes import billing_periods, invoices, jobs, pending_items, projects, webhooks

logger = logging.getLogger(__name__)


def create_app(config) -> FastAPI:
    """
    Build the billing API

    Args:
        config: ApplicationConfig (or any object with the same attributes)

    Returns:
        Configured FastAPI application
    """
    logging.getLogger().setLevel(str(config.LOG_LEVEL).upper())

    app = FastAPI(
        title="Billing Ledger Service",
        description="Pending items, invoice composition and payment reconciliation",
        version="1.0.0",
    )

    if config.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.CORS_ORIGINS,
            allow_credentials=config.CORS_ALLOW_CREDENTIALS,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    if config.ENABLE_LOGGING_MIDDLEWARE:

        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            start_time = time.time()
            response = await call_next(request)
            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms}ms)")
            return response

    register_exception_handlers(app, production=str(config.ENVIRONMENT).lower() == "production")

    for router in (
        billing_periods.router,
        pending_items.router,
        invoices.router,
        projects.router,
        jobs.router,
        webhooks.router,
    ):
        app.include_router(router, prefix=config.API_PREFIX)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app
