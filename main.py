#!/usr/bin/env python3
"""
go-starter-api: FastAPI service that generates Go project skeletons.
No authentication; every endpoint is public.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from starter.api.generate import error_response
from starter.api.generate import router as generate_router
from starter.api.libraries import router as libraries_router
from starter.api.metrics import router as metrics_router
from starter.core.config import get_service_config
from starter.core.logging import get_logger, setup_logging
from starter.core.reaper import reaper
from starter.core.request_logging import RequestLoggingMiddleware

# =============================================================================
# Configuration from environment
# =============================================================================
CONFIG = get_service_config()
VERSION = "1.0.0"

# Setup structured JSON logging
setup_logging(CONFIG.log_level)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the reaper on startup and stop it on shutdown."""
    CONFIG.temp_dir.mkdir(parents=True, exist_ok=True)
    reaper.start()
    logger.info(f"service_started version={VERSION} temp_dir={CONFIG.temp_dir}")
    try:
        yield
    finally:
        await reaper.stop()
        logger.info("service_stopped")


# Create app
app = FastAPI(
    title="go-starter-api",
    description="Generates downloadable Go project skeletons",
    version=VERSION,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed /api bodies get the same error shape as selection failures."""
    if request.url.path.startswith("/api/"):
        logger.info(f"request_body_invalid path={request.url.path} errors={len(exc.errors())}")
        return error_response(400, "Invalid request body")
    return await request_validation_exception_handler(request, exc)


app.add_middleware(
    CORSMiddleware,
    allow_origins=list(CONFIG.cors_origins),
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Archive-SHA256", "X-Request-Id"],
)

# Added last so it is outermost and sees every request
app.add_middleware(RequestLoggingMiddleware)

# Include routes
app.include_router(generate_router)
app.include_router(libraries_router)
app.include_router(metrics_router)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/")
def root():
    """Service metadata."""
    return {
        "name": "go-starter-api",
        "version": VERSION,
        "endpoints": {
            "generate": "POST /api/generate",
            "libraries": "GET /api/libraries",
            "health": "GET /health",
            "metrics": "GET /metrics",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=CONFIG.listen_host, port=CONFIG.port)
