"""
FastAPI application for Enclave Control Tower.
"""

from __future__ import annotations

import importlib.metadata
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import configure_logging, get_settings
from .db.base import init_database
from .enclaves.routes import router as enclaves_router
from .errors import EnclaveError
from .providers.registry import build_default_registry
from .providers.routes import router as providers_router

# Initialize structured logging
logger = structlog.get_logger()

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    configure_logging(settings)
    logger.info("startup", app=settings.app_name, environment=settings.environment)

    try:
        await init_database()
        app.state.registry = build_default_registry()
        logger.info(
            "providers_registered",
            providers=[p.id for p in app.state.registry.all()],
        )
    except Exception as e:
        logger.error("startup_failed", error=str(e))
        raise

    yield

    logger.info("shutdown_complete")


app = FastAPI(
    title="Enclave Control Tower",
    description="Lifecycle control and log/attestation aggregation for secure enclaves",
    version=importlib.metadata.version("enclave-control-tower"),
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EnclaveError)
async def enclave_error_handler(request: Request, exc: EnclaveError) -> JSONResponse:
    """Render domain errors as ``{error, code, ...}`` with their status code."""
    if exc.status_code >= 500:
        logger.error(
            "request_failed", path=request.url.path, code=exc.code, error=exc.message
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Health and Info Endpoints
@app.get("/healthz")
def healthz() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/version")
def version() -> dict[str, str]:
    """Return the version of the application."""
    return {"version": importlib.metadata.version("enclave-control-tower")}


app.include_router(providers_router)
app.include_router(enclaves_router)
