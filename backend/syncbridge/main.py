"""
SyncBridge - FastAPI application.
CORS, API versioning (/api/v1), health check, error handling.
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest

from syncbridge.api.v1.routes import api_router
from syncbridge.core.config import get_settings
from syncbridge.services.connection_store import get_connection_store
from syncbridge.services.gateway import GatewayError
from syncbridge.services.transformer import TransformConfigError

# Route package logs (engine run log included) to stdout
_log_handler = logging.StreamHandler(sys.stdout)
_log_handler.setLevel(logging.INFO)
_log_handler.setFormatter(logging.Formatter("%(levelname)s:     %(message)s"))
_package_logger = logging.getLogger("syncbridge")
_package_logger.setLevel(logging.INFO)
if not _package_logger.handlers:
    _package_logger.addHandler(_log_handler)
logger = logging.getLogger(__name__)

_settings = get_settings()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request (method + path + status)."""

    async def dispatch(self, request: StarletteRequest, call_next: Callable) -> Response:
        response = await call_next(request)
        logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    logger.info("Starting SyncBridge API")
    logger.info("CORS_ORIGINS=%s", _settings.cors_origins)
    if _settings.ENVIRONMENT == "production":
        _settings.validate_for_production()
    # Build the store now so environment tokens are seeded before the first request
    get_connection_store()
    yield
    logger.info("Shutting down")


app = FastAPI(
    title="SyncBridge API",
    version="1.0.0",
    description="Backend API: Attio ↔ Airtable field mapping and record sync.",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    logger.warning("Upstream error on %s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=502, content={"detail": exc.message})


@app.exception_handler(TransformConfigError)
async def transform_config_error_handler(request: Request, exc: TransformConfigError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# Error handling middleware
@app.middleware("http")
async def catch_exceptions(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as exc:
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )


# Root and health (outside versioning)
@app.get("/")
def root():
    return {
        "message": "SyncBridge API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "connections": "/api/v1/connections",
            "schema": "/api/v1/schema",
            "mappings": "/api/v1/mappings",
            "sync": "/api/v1/sync",
        },
    }


@app.get("/health")
def health():
    return {"status": "healthy"}


# API v1
app.include_router(api_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "8080"))
    uvicorn.run("syncbridge.main:app", host="0.0.0.0", port=port)
