"""
FastAPI Application Entry Point.

Usage:
    uvicorn aurora_tts.main:app --host 0.0.0.0 --port 8000

Set AURORA_TTS_SKIP_WARMUP=1 to start without loading the backend.
"""
from __future__ import annotations

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from aurora_tts import __version__
from aurora_tts.api.dependencies import warmup_manager
from aurora_tts.api.routes import router
from aurora_tts.core.logging import configure_logging, get_logger, info
from aurora_tts.services.errors import InvalidRequest
from aurora_tts.services.job_manager import reset_manager

_LOG = get_logger("aurora-tts.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if os.getenv("AURORA_TTS_SKIP_WARMUP", "0") != "1":
        warmup_manager()
    info(_LOG, "service_started", version=__version__)
    yield
    reset_manager()


async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies get the same 400 shape as failed validation."""
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg', 'invalid value')}" if field else "Invalid request body"
    return JSONResponse(status_code=400, content=InvalidRequest(message).to_dict())


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

        1. Configure structured logging (AURORA_TTS_LOG_LEVEL)
        2. Register the job routes
        3. Warm up the backend on startup
    """
    configure_logging()

    app = FastAPI(title="aurora-tts", version=__version__, lifespan=lifespan)
    app.include_router(router)
    app.add_exception_handler(RequestValidationError, _invalid_body)
    return app


app = create_app()
