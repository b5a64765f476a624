"""
CloudMart Functions — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application hosting the storefront
       storage functions.
How:   create_app(settings) returns a configured FastAPI instance; settings are
       stored on app.state and reach handlers only through dependencies.
Who:   uvicorn (cloudmart.main:app) or the Azure Functions ASGI entry point
       (function_app.py).

Application Architecture:
    ┌─────────────────────────────────────────────────────────────┐
    │                        FastAPI App                          │
    │                                                             │
    │  Middleware:  Request Context (ID + access log) → CORS      │
    │                                                             │
    │  Routes:                                                    │
    │   /api/AddProduct  /api/GetAllProducts  /api/GetProduct/{k} │
    │   /api/UpdateProduct/{k}  /api/DeleteProduct/{k}            │
    │   /api/QueueOrder  /api/UploadBlob  /api/WriteToFileShare   │
    │   /health                                                   │
    │                                                             │
    │  Exception Handlers:                                        │
    │   Decode/Validation → 400 │ Configuration → 500 │ else 500  │
    └─────────────────────────────────────────────────────────────┘
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from cloudmart import __version__
from cloudmart.config import Settings
from cloudmart.exceptions import CloudMartError, ErrorKind
from cloudmart.middleware.request_context import (
    REQUEST_ID_HEADER,
    RequestContextMiddleware,
    RequestIdFilter,
    request_id_var,
)
from cloudmart.routes import health, orders, products, reviews, uploads
from cloudmart.services.response_mapper import UNEXPECTED_ERROR_MESSAGE, error_response

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s"


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s
    The request ID is filled in by RequestIdFilter ("-" outside a request).
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # The SDK's HTTP logging policy logs every request/response header at INFO
    logging.getLogger("azure.core.pipeline.policies.http_logging_policy").setLevel(logging.WARNING)
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings
    setup_logging(settings.log_level)
    logger.info("CloudMart Functions %s starting up...", __version__)

    if not settings.storage_configured:
        # Not fatal: /health still answers and storage routes report 500.
        logger.error("AzureWebJobsStorage is not set; storage endpoints will fail.")

    logger.info(
        "Storage targets: table=%s queue=%s container=%s share=%s/%s",
        settings.products_table,
        settings.orders_queue,
        settings.images_container,
        settings.reviews_share,
        settings.reviews_directory,
    )

    yield

    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map raised errors to responses.

    Handler hierarchy:
        CloudMartError   → status from its ErrorKind (see response_mapper)
        Exception        → 500 generic message, stack trace logged

    Response bodies never contain stack traces or SDK messages.
    """

    @app.exception_handler(CloudMartError)
    async def handle_cloudmart_error(request: Request, exc: CloudMartError):
        rid = request_id_var.get("")
        if exc.kind in (ErrorKind.DECODE, ErrorKind.VALIDATION):
            logger.warning("[%s] %s error: %s", rid, exc.kind.value, exc.message)
        else:
            logger.error("[%s] %s error: %s | Context: %s", rid, exc.kind.value, exc.message, exc.context)
        return error_response(exc)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        # Runs outside RequestContextMiddleware, after the ContextVar is reset.
        rid = getattr(request.state, "request_id", "")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return PlainTextResponse(
            UNEXPECTED_ERROR_MESSAGE,
            status_code=500,
            headers={REQUEST_ID_HEADER: rid} if rid else None,
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Explicit configuration (tests pass their own). Defaults to
                  Settings() read from the environment once, here.
    """
    settings = settings or Settings()

    app = FastAPI(
        title="CloudMart Functions",
        description=(
            "Storefront storage functions: product catalogue (Table Storage), "
            "order queue (Queue Storage), product images (Blob Storage) and "
            "customer reviews (Azure Files)."
        ),
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Middleware executes in REVERSE order of addition
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(RequestContextMiddleware)

    register_exception_handlers(app)

    app.include_router(products.router)
    app.include_router(orders.router)
    app.include_router(uploads.router)
    app.include_router(reviews.router)
    app.include_router(health.router)

    return app


app = create_app()
