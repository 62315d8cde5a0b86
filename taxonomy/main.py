"""Taxonomy service -- FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taxonomy.api.v1.router import api_v1_router
from taxonomy.config import settings
from taxonomy.core.exceptions import (
    CycleDetectedError,
    DuplicateSiblingNameError,
    HasChildrenError,
    HasLinkedItemsError,
    InvalidIdentifierError,
    NotFoundError,
    ParentNotFoundError,
    TaxonomyException,
)
from taxonomy.db.bootstrap import init_database
from taxonomy.db.session import engine
from taxonomy.schemas import ErrorDetail, ErrorResponse
from taxonomy.services.cache_service import get_cache_service

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.DEBUG else logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    NotFoundError: 404,
    ParentNotFoundError: 400,
    InvalidIdentifierError: 400,
    DuplicateSiblingNameError: 409,
    CycleDetectedError: 409,
    HasChildrenError: 409,
    HasLinkedItemsError: 409,
}


def status_code_for(exc: TaxonomyException) -> int:
    for exc_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(exc, exc_type):
            return status_code
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    logger.info("Starting taxonomy API server...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    try:
        replayed = await init_database()
        logger.info("Database tables verified/created")
        if replayed:
            logger.warning(f"Replayed {len(replayed)} pending path rewrites")
    except Exception as e:
        logger.error(f"Database init failed: {e}", exc_info=True)

    cache = get_cache_service()
    if await cache.health_check():
        logger.info("Redis cache connected successfully")
    else:
        logger.warning("Redis cache connection failed (will operate without caching)")

    yield

    logger.info("Shutting down taxonomy API server...")
    await cache.close()
    await engine.dispose()


app = FastAPI(
    title="Materials Taxonomy API",
    description="Category hierarchy for materials and products",
    version="0.1.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL, "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TaxonomyException)
async def taxonomy_exception_handler(request: Request, exc: TaxonomyException):
    """Render domain errors in the standard error envelope."""
    status_code = status_code_for(exc)
    logger.info(f"{request.method} {request.url.path} -> {status_code} {exc.code}: {exc.message}")
    body = ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message))
    return JSONResponse(status_code=status_code, content=body.model_dump())


app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Materials Taxonomy API",
        "version": "0.1.0",
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/v1/health",
    }
