"""
FieldQuote API - Main Application Entry Point
Quote lifecycle backend for field-service businesses.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles

from app.core.config import settings
from app.core.database import init_db, close_db
from app.core.errors import WorkflowError
from app.api.v1.router import api_router


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    # Initialize database tables (for development)
    if settings.is_development:
        await init_db()

    yield

    logger.info("Shutting down")
    await close_db()


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="""
## FieldQuote API

Quote lifecycle backend for field-service businesses.

### Features:

* **Authentication** - Registration, login, JWT tokens
* **Customers** - Customer records used as quote recipients
* **Quotes** - Draft quotes with line items and derived totals
* **Workflow** - Send, sign, approve/reject, schedule and convert quotes to jobs
* **Documents** - PDF quotes
* **Accounting** - Export quotes to QuickBooks as estimates, invoices or sales receipts
* **Metrics** - Time in stage and conversion rate
    """,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    openapi_url="/openapi.json" if settings.is_development else None,
    lifespan=lifespan,
)


# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors with per-field messages."""
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Request validation failed",
            "errors": errors,
        },
    )


@app.exception_handler(WorkflowError)
async def workflow_exception_handler(request: Request, exc: WorkflowError):
    """Map typed workflow errors to their HTTP status."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.message,
            "error": exc.to_dict(),
        },
    )


# Include API router
app.include_router(api_router, prefix="/api/v1")

# Rendered quote documents
app.mount(
    "/documents",
    StaticFiles(directory=settings.DOCUMENT_STORAGE_PATH, check_dir=False),
    name="documents",
)


# Health check endpoint
@app.get(
    "/health",
    tags=["Health"],
    summary="Server health check",
)
async def health_check():
    """Check if the API is running."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


# Root endpoint
@app.get(
    "/",
    tags=["Info"],
    summary="API information",
)
async def root():
    """Get API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "description": "Quote lifecycle backend for field-service businesses",
        "docs": "/docs" if settings.is_development else "Disabled in production",
        "health": "/health",
    }


# For running with uvicorn directly
if __name__ == "__main__":
    import os
    import uvicorn

    port = int(os.getenv("PORT", "8000"))

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=port,
        reload=settings.is_development,
    )
