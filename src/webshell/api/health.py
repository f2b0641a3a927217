"""Health, readiness, and status probes."""

import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    """Liveness probe -- always returns OK if the process is running."""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request) -> JSONResponse:
    """Readiness probe -- checks that the sandbox backend is reachable.

    Returns HTTP 200 with ``{"status": "ready"}`` when the backend is
    healthy, or HTTP 503 with ``{"status": "not_ready"}`` otherwise.
    """
    service = getattr(request.app.state, "service", None)
    if service is not None and (await service.status())["sandbox_backend"]:
        return JSONResponse(content={"status": "ready"}, status_code=200)
    return JSONResponse(content={"status": "not_ready"}, status_code=503)


@router.get("/api/status")
async def status(request: Request) -> dict:
    """Server status used by the terminal client before it starts a session."""
    snapshot = await request.app.state.service.status()
    return {
        "status": "ok",
        "message": "Server is running",
        "timestamp": int(time.time() * 1000),
        "sessions": snapshot["sessions"],
    }
