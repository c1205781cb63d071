"""
crl/deployment/server/middleware.py
===================================
CORS, request logging, and the mapping of engine errors to HTTP 422.
"""
from __future__ import annotations
import time
import logging
from typing import Sequence
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crl.core.exceptions import CRLError

logger = logging.getLogger(__name__)

def setup_middleware(app: FastAPI, allow_origins: Sequence[str] = ("*",)) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(allow_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        t0 = time.perf_counter()
        response = await call_next(request)
        ms = (time.perf_counter() - t0) * 1000
        logger.info(f"{request.method} {request.url.path} → {response.status_code} ({ms:.1f}ms)")
        return response

    @app.exception_handler(CRLError)
    async def crl_error_handler(request: Request, exc: CRLError):
        strategy = getattr(exc, "strategy", None)
        logger.warning(f"{request.method} {request.url.path} rejected ({type(exc).__name__}): {exc}")
        body = {
            "error":   type(exc).__name__,
            "message": str(exc),
            "context": {k: str(v) for k, v in exc.context.items()},
        }
        if strategy is not None:
            body["strategy"] = strategy
        return JSONResponse(status_code=422, content=body)
