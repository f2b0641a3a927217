"""Start-session, command, and end-session endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from webshell.errors import ProvisionError, SessionNotFound
from webshell.models import CommandStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["sessions"])

# Exit status reported for a timed-out command, as coreutils ``timeout`` does.
TIMEOUT_EXIT_STATUS = 124


# ---------------------------------------------------------------------------
# Request / response schemas
# ---------------------------------------------------------------------------


class StartSessionResponse(BaseModel):
    """Response body for ``POST /api/start-session``."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")


class CommandRequest(BaseModel):
    """Request body for ``POST /api/command``."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str | None = Field(default=None, alias="sessionId")
    command: str = Field(default="", description="Command line to run in the sandbox.")


class CommandResponse(BaseModel):
    """Response body for ``POST /api/command``."""

    stdout: str
    stderr: str
    status: int


class EndSessionRequest(BaseModel):
    """Request body for ``POST /api/end-session``."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str | None = Field(default=None, alias="sessionId")


def _session_not_found() -> JSONResponse:
    return JSONResponse(content={"error": "Session not found"}, status_code=404)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/start-session", response_model=StartSessionResponse)
async def start_session(request: Request):
    """Provision a sandbox and return the new session id."""
    service = request.app.state.service
    try:
        session_id = await service.start_session()
    except ProvisionError:
        logger.exception("Could not start session")
        return JSONResponse(content={"error": "Failed to create container"}, status_code=500)
    return StartSessionResponse(session_id=session_id)


@router.post("/command", response_model=CommandResponse)
async def run_command(body: CommandRequest, request: Request):
    """Run one command in the session's sandbox.

    * 200 -- the command ran; ``status`` is its exit code.
    * 403 -- the admission policy rejected it; ``stderr`` carries the reason.
    * 404 -- unknown or expired session.
    * 408 -- the command exceeded its time budget.
    """
    if not body.session_id:
        return _session_not_found()

    service = request.app.state.service
    try:
        outcome = await service.run_command(body.session_id, body.command)
    except ProvisionError:
        logger.exception("Sandbox failure for session %s", body.session_id)
        return JSONResponse(content={"error": "Sandbox unavailable"}, status_code=500)

    if outcome.status is CommandStatus.SESSION_EXPIRED:
        return _session_not_found()
    if outcome.status is CommandStatus.REJECTED:
        return JSONResponse(
            content=CommandResponse(stdout="", stderr=outcome.reason, status=1).model_dump(),
            status_code=403,
        )
    if outcome.status is CommandStatus.TIMED_OUT:
        return JSONResponse(
            content=CommandResponse(
                stdout="",
                stderr="Command execution timed out",
                status=TIMEOUT_EXIT_STATUS,
            ).model_dump(),
            status_code=408,
        )
    return CommandResponse(stdout=outcome.stdout, stderr=outcome.stderr, status=outcome.exit_code)


@router.post("/end-session")
async def end_session(body: EndSessionRequest, request: Request):
    """End the session and destroy its sandbox."""
    if not body.session_id:
        return _session_not_found()

    try:
        await request.app.state.service.end_session(body.session_id)
    except SessionNotFound:
        return _session_not_found()
    return {"success": True}
