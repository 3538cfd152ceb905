"""Agent pool registry: the live view of agent sessions.

The pool keeps no state of its own beyond the listing taken at the start of
a reconciliation pass; spawns and kills made through it update that listing
so later phases in the same pass see them without another backend call.
"""

from __future__ import annotations

import structlog

from kollaborate.errors import SessionError, SessionExistsError, SessionNotFoundError, SpawnError
from kollaborate.protocol.models import AgentKind, classify_agent
from kollaborate.sessions.base import SessionBackend

log = structlog.get_logger(__name__)


class AgentPool:
    def __init__(self, backend: SessionBackend) -> None:
        self.backend = backend
        self._names: set[str] | None = None

    async def refresh(self) -> list[str]:
        names = set(await self.backend.list_sessions())
        self._names = names
        return sorted(names)

    def invalidate(self) -> None:
        self._names = None

    def forget(self, name: str) -> None:
        """Drop *name* from the cached listing after it was found gone."""
        if self._names is not None:
            self._names.discard(name)

    async def _listing(self) -> set[str]:
        names = self._names
        if names is None:
            names = set(await self.backend.list_sessions())
            self._names = names
        return names

    async def names(self) -> list[str]:
        return sorted(await self._listing())

    async def _of_kind(self, kind: AgentKind) -> list[str]:
        return sorted(n for n in await self._listing() if classify_agent(n) is kind)

    async def list_worker_agents(self) -> list[str]:
        return await self._of_kind(AgentKind.WORKER)

    async def list_spec_agents(self) -> list[str]:
        return await self._of_kind(AgentKind.SPEC)

    async def generator_alive(self) -> bool:
        return bool(await self._of_kind(AgentKind.GENERATOR))

    async def exists(self, name: str) -> bool:
        return name in await self._listing()

    async def spawn(self, name: str, instructions: str) -> None:
        """Create the session and deliver *instructions*.

        Raises SessionExistsError when the name is taken and SpawnError for
        any other failure; a half-started session is torn down first.
        """
        listing = await self._listing()
        try:
            await self.backend.create_session(name)
        except SessionExistsError:
            listing.add(name)
            raise
        except SessionError as exc:
            raise SpawnError(name, str(exc)) from exc
        listing.add(name)

        try:
            await self.backend.send_input(name, instructions)
        except SessionError as exc:
            try:
                await self.backend.kill_session(name)
            except SessionError as kill_exc:
                log.warning("pool.teardown_failed", agent=name, error=str(kill_exc))
            listing.discard(name)
            raise SpawnError(name, f"instructions not delivered: {exc}") from exc

    async def kill(self, name: str) -> bool:
        """Kill *name*; returns False when the session was already gone."""
        listing = await self._listing()
        try:
            await self.backend.kill_session(name)
        except SessionNotFoundError:
            listing.discard(name)
            return False
        listing.discard(name)
        return True

    async def send(self, name: str, text: str) -> None:
        await self.backend.send_input(name, text)
