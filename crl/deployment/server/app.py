"""
crl/deployment/server/app.py
============================
FastAPI server for CRL-Core.
Exposes the exploration and continual learning engines as REST endpoints.
Requires: pip install fastapi uvicorn
"""
from __future__ import annotations
import logging
import uvicorn
from fastapi import FastAPI
from crl.deployment.server.routes import router
from crl.deployment.server.middleware import setup_middleware
from crl.version import FRAMEWORK_NAME, FRAMEWORK_SLUG, __version__

logger = logging.getLogger(__name__)

app = FastAPI(
    title=f"{FRAMEWORK_NAME} Server",
    description="Continual reinforcement learning and exploration strategies",
    version=__version__,
)

setup_middleware(app)
app.include_router(router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "ok", "framework": FRAMEWORK_SLUG, "version": __version__}


def serve(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    logger.info(f"Starting {FRAMEWORK_NAME} {__version__} on {host}:{port}")
    uvicorn.run("crl.deployment.server.app:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    serve()
