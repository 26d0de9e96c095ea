# src/x4pn_meter/main.py
"""Main entry point for the X4PN metering service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from x4pn_meter.api.v1 import (
    auth_router,
    ledger_router,
    nodes_router,
    sessions_router,
    system_router,
    users_router,
)
from x4pn_meter.core.errors import SettlementError
from x4pn_meter.core.settings import settings
from x4pn_meter.services.sweeper import SettlementSweepWorker

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="X4PN Meter API",
    description="Pay-per-second metering and settlement for a decentralized VPN marketplace",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(ledger_router, prefix="/api/v1")
app.include_router(nodes_router, prefix="/api/v1")
app.include_router(sessions_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.exception_handler(SettlementError)
async def settlement_error_handler(request: Request, exc: SettlementError) -> JSONResponse:
    """Translate service-layer errors into their HTTP status and stable code."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )


@app.on_event("startup")
async def on_startup() -> None:
    worker = SettlementSweepWorker()
    await worker.start()
    app.state.sweep_worker = worker


@app.on_event("shutdown")
async def on_shutdown() -> None:
    worker: SettlementSweepWorker | None = getattr(app.state, "sweep_worker", None)
    if worker:
        await worker.stop()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "X4PN Meter API",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("x4pn_meter.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
