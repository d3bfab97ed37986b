"""FastAPI application serving Superstore reports."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from superstore_brain.action.routers.reports import router as reports_router

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

app = FastAPI(title="Superstore Brain API", version=VERSION)

app.include_router(reports_router)


@app.exception_handler(Exception)
async def _global_error_handler(request: Request, exc: Exception):
    """Catch-all: ensure every unhandled error returns JSON, not raw HTML."""
    logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={
            "detail": f"Server error: {exc}",
            "error": str(exc),
            "status": "failed",
        },
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "version": VERSION}
