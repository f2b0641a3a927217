"""FastAPI application entry point.

Creates the app with a lifespan that initialises the sandbox provider,
the session registry, the command validator, the shell service, and the
background janitor task.  Everything is stored in ``app.state`` and torn
down cleanly on shutdown: the janitor is cancelled and every live session
is drained so that no sandbox outlives the process.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from webshell import __version__
from webshell.admission import CommandValidator
from webshell.api.router import api_router
from webshell.config import Settings
from webshell.sandbox import DockerSandboxProvider, SandboxProvider, SecurityPolicy
from webshell.service import ShellService
from webshell.sessions import SessionJanitor, SessionRegistry

logger = logging.getLogger(__name__)


def _build_provider(settings: Settings) -> SandboxProvider:
    return DockerSandboxProvider(
        image=settings.sandbox_image,
        name_prefix=settings.container_name_prefix,
        policy=SecurityPolicy(
            memory_limit_mb=settings.memory_limit_mb,
            pids_limit=settings.pids_limit,
        ),
        max_output_bytes=settings.max_output_bytes,
    )


def create_app(
    settings: Settings | None = None,
    provider: SandboxProvider | None = None,
) -> FastAPI:
    """Build the application.

    Parameters
    ----------
    settings:
        Configuration; loaded from the environment when omitted.
    provider:
        Sandbox backend; a :class:`DockerSandboxProvider` built from
        *settings* when omitted.
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan -- set up and tear down shared resources.

        On startup:
            1. Configure logging.
            2. Create the sandbox provider and remove orphaned sandboxes
               left by a previous process.
            3. Create :class:`SessionRegistry`, :class:`CommandValidator`,
               and :class:`ShellService`.
            4. Start the :class:`SessionJanitor` task.

        On shutdown:
            1. Cancel the janitor.
            2. Drain the registry, destroying every live sandbox.
        """
        logging.basicConfig(
            level=getattr(logging, settings.log_level.upper(), logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        logger.info("Starting webshell (log_level=%s)", settings.log_level)

        # ---- Sandbox backend -------------------------------------------------
        sandbox = provider or _build_provider(settings)
        await sandbox.reap_orphans()

        # ---- Sessions and admission control ----------------------------------
        registry = SessionRegistry(sandbox)
        validator = CommandValidator(home_prefix=settings.sandbox_home_prefix)
        service = ShellService(
            registry=registry,
            provider=sandbox,
            validator=validator,
            command_timeout_seconds=settings.command_timeout_seconds,
        )
        janitor = SessionJanitor(
            registry,
            idle_timeout_seconds=settings.session_idle_timeout_seconds,
            interval_seconds=settings.janitor_interval_seconds,
        )

        # ---- Store in app.state ----------------------------------------------
        app.state.settings = settings
        app.state.registry = registry
        app.state.service = service
        app.state.janitor = janitor

        janitor_task = asyncio.create_task(janitor.run(), name="session-janitor")

        logger.info("Application startup complete")

        try:
            yield
        finally:
            logger.info("Shutting down webshell")

            janitor_task.cancel()
            try:
                await janitor_task
            except asyncio.CancelledError:
                pass

            await registry.close()

            logger.info("Shutdown complete")

    app = FastAPI(
        title="webshell",
        description="Sandboxed remote shell with command admission control.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    app.include_router(api_router)
    return app


# ---------------------------------------------------------------------------
# Application instance
# ---------------------------------------------------------------------------

app = create_app()
