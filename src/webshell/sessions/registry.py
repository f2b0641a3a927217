"""In-memory session table binding session ids to sandbox handles.

Provides :class:`SessionRegistry`, the single owner of the session
identity space.  It is shared by the request path and the janitor; every
mutation of the table happens under one ``asyncio.Lock`` so that start,
touch, and end on the same id are mutually atomic.  Removing a session
from the table is what entitles a caller to tear its sandbox down, which
guarantees at most one ``destroy`` per handle.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import AsyncIterator, Callable

from webshell.errors import ProvisionError, SessionNotFound, TeardownError
from webshell.models.session import Session
from webshell.sandbox.base import SandboxHandle, SandboxProvider

logger = logging.getLogger(__name__)

# 32 random bytes -> 43 url-safe characters.
_SESSION_TOKEN_BYTES = 32


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionRegistry:
    """Owns live sessions and the sandboxes bound to them.

    Parameters
    ----------
    provider:
        Backend used to create and destroy sandboxes.
    clock:
        Returns the current UTC time.  Injectable for tests.
    """

    def __init__(
        self,
        provider: SandboxProvider,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._provider = provider
        self._clock = clock
        self._lock = asyncio.Lock()
        self._sessions: dict[str, Session] = {}
        # Serializes command execution per session; teardown waits on it.
        self._exec_locks: dict[str, asyncio.Lock] = {}
        self._handle_owners: dict[str, str] = {}
        self._closed = False
        # Teardowns outlive a cancelled caller; close() waits for all of them.
        self._teardowns: set[asyncio.Task[None]] = set()

    def __len__(self) -> int:
        return len(self._sessions)

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> Session:
        """Provision a sandbox and register a new session for it.

        Raises
        ------
        ProvisionError
            If the provider cannot create a sandbox, or the registry is
            shutting down.  No session is registered in either case.
        """
        handle = await self._provider.create()

        async with self._lock:
            refused = self._closed or handle.sandbox_id in self._handle_owners
            if not refused:
                session_id = secrets.token_urlsafe(_SESSION_TOKEN_BYTES)
                while session_id in self._sessions:
                    session_id = secrets.token_urlsafe(_SESSION_TOKEN_BYTES)
                now = self._clock()
                session = Session(
                    id=session_id,
                    sandbox_handle=handle,
                    created_at=now,
                    last_activity=now,
                )
                self._sessions[session_id] = session
                self._exec_locks[session_id] = asyncio.Lock()
                self._handle_owners[handle.sandbox_id] = session_id

        if refused:
            if self._closed:
                # Only release a handle nobody else owns.
                await self._release(handle)
                raise ProvisionError("Session registry is shut down")
            raise ProvisionError(f"Sandbox {handle.name} is already bound to a session")

        logger.info("Session started: id=%s sandbox=%s", session.id, handle.name)
        return session

    async def lookup(self, session_id: str) -> Session:
        """Return the live session for *session_id*.

        Raises
        ------
        SessionNotFound
            If the id is unknown or the session has ended.
        """
        async with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    async def touch(self, session_id: str) -> Session:
        """Refresh the idle clock of a live session.

        Never creates a session.

        Raises
        ------
        SessionNotFound
            If the id is unknown or the session has ended.
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            session.last_activity = self._clock()
        return session

    async def end(self, session_id: str) -> None:
        """Remove the session and destroy its sandbox.

        A racing second caller gets :class:`SessionNotFound`; the sandbox
        is destroyed once.
        """
        async with self._lock:
            claimed = self._claim(session_id)
        if claimed is None:
            raise SessionNotFound(session_id)
        await asyncio.shield(self._spawn_teardown([claimed], cause="ended"))

    async def expire_idle(self, idle_timeout_seconds: float) -> list[str]:
        """Remove and tear down every session idle longer than the timeout.

        Uses the same teardown path as :meth:`end`.  A teardown failure for
        one session is logged and does not stop the others.

        Returns the ids of the reaped sessions.
        """
        async with self._lock:
            now = self._clock()
            idle_ids = [
                sid
                for sid, session in self._sessions.items()
                if session.idle_for(now) > idle_timeout_seconds
            ]
            claimed = [self._claim(sid) for sid in idle_ids]

        if claimed:
            await asyncio.shield(self._spawn_teardown(claimed, cause="idle"))
        return idle_ids

    async def close(self) -> None:
        """Drain every live session.  Further :meth:`start` calls are refused."""
        async with self._lock:
            self._closed = True
            claimed = [self._claim(sid) for sid in list(self._sessions)]

        if claimed:
            self._spawn_teardown(claimed, cause="shutdown")
        # Includes teardowns whose callers were cancelled mid-way.
        while pending := [task for task in self._teardowns if not task.done()]:
            await asyncio.gather(*pending)

    # ------------------------------------------------------------------
    # Execution exclusivity
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def exclusive(self, session_id: str) -> AsyncIterator[Session]:
        """Hold the session's execution slot for the duration of the block.

        Only one holder per session at a time.  The session is re-checked
        after the slot is acquired, so a session ended while waiting
        raises :class:`SessionNotFound` instead of yielding a dead handle.
        """
        exec_lock = self._exec_locks.get(session_id)
        if exec_lock is None:
            raise SessionNotFound(session_id)
        async with exec_lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            yield session

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _claim(self, session_id: str) -> tuple[Session, asyncio.Lock] | None:
        """Detach a session from the table.  Caller must hold ``self._lock``."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return None
        exec_lock = self._exec_locks.pop(session_id)
        self._handle_owners.pop(session.sandbox_handle.sandbox_id, None)
        return session, exec_lock

    def _spawn_teardown(
        self,
        claimed: list[tuple[Session, asyncio.Lock]],
        cause: str,
    ) -> asyncio.Task[None]:
        """Tear down claimed sessions in a task the caller cannot cancel.

        Once a session is claimed it is no longer in the table, so an
        interrupted teardown would leak its sandbox for good.
        """
        task = asyncio.create_task(self._teardown_all(claimed, cause))
        self._teardowns.add(task)
        task.add_done_callback(self._teardowns.discard)
        return task

    async def _teardown_all(self, claimed: list[tuple[Session, asyncio.Lock]], cause: str) -> None:
        for session, exec_lock in claimed:
            await self._teardown(session, exec_lock, cause)

    async def _teardown(self, session: Session, exec_lock: asyncio.Lock, cause: str) -> None:
        # Let an in-flight command finish before pulling the sandbox away.
        async with exec_lock:
            await self._release(session.sandbox_handle)
        logger.info("Session %s: id=%s", cause, session.id)

    async def _release(self, handle: SandboxHandle) -> None:
        try:
            await self._provider.destroy(handle)
        except TeardownError:
            logger.exception("Teardown failed for sandbox %s", handle.name)
        except Exception:
            logger.exception("Unexpected error tearing down sandbox %s", handle.name)
