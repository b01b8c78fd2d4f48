"""FastAPI application factory: entry point for BookLoop."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bookloop.api.routes.admin import router as admin_router
from bookloop.api.routes.books import router as books_router
from bookloop.api.routes.recommendations import router as recommendations_router
from bookloop.api.routes.rentals import router as rentals_router
from bookloop.config import settings
from bookloop.database import create_tables
from bookloop.domain.errors import (
    BookLoopError,
    DependencyFailure,
    ForbiddenError,
    InvalidSubmission,
    NotFoundError,
    PartialUpdateFailure,
    ValidationError,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

# Most specific first.
_ERROR_STATUS: list[tuple[type[BookLoopError], int]] = [
    (InvalidSubmission, 422),
    (ValidationError, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (DependencyFailure, status.HTTP_503_SERVICE_UNAVAILABLE),
    (PartialUpdateFailure, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


async def handle_domain_error(request: Request, exc: BookLoopError) -> JSONResponse:
    """Translate service-layer errors into JSON responses."""
    status_code = next(
        (code for cls, code in _ERROR_STATUS if isinstance(exc, cls)),
        status.HTTP_400_BAD_REQUEST,
    )
    body: dict = {"detail": exc.message}
    if isinstance(exc, PartialUpdateFailure):
        body.update(transaction_id=exc.transaction_id, book_id=exc.book_id)
        logger.error("Partial update on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=body)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown events."""
    logger.info("BookLoop starting up...")
    logger.info("Embedding provider: %s", settings.embedding_provider.value)
    logger.info("Emotion provider: %s", settings.emotion_provider.value)
    logger.info("Similarity backend: %s", settings.search_backend.value)
    if settings.create_tables:
        await create_tables()
    yield
    logger.info("BookLoop shutting down...")


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="BookLoop",
        description="Peer-to-peer book lending with vibe search and recommendations",
        version="1.0.0",
        lifespan=lifespan,
    )

    # ── Middleware ──────────────────────────────────
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Errors ─────────────────────────────────────
    application.add_exception_handler(BookLoopError, handle_domain_error)

    # ── Routes ─────────────────────────────────────
    application.include_router(books_router)
    application.include_router(rentals_router)
    application.include_router(admin_router)
    application.include_router(recommendations_router)

    # ── Health Check ───────────────────────────────
    @application.get("/health", tags=["System"])
    async def health() -> dict[str, str]:
        return {"status": "healthy", "service": "bookloop"}

    return application


app = create_app()
