"""Session backend interface.

The watcher never owns agent processes directly; it drives a terminal
multiplexer (or anything shaped like one) through these six calls.
Failures surface as :class:`kollaborate.errors.SessionError` subclasses,
never as text the caller has to interpret.
"""

from __future__ import annotations

from typing import Protocol


class SessionBackend(Protocol):
    async def session_exists(self, name: str) -> bool: ...

    async def create_session(self, name: str) -> None:
        """Start a session running the agent CLI; SessionExistsError if taken."""
        ...

    async def kill_session(self, name: str) -> None: ...

    async def list_sessions(self) -> list[str]: ...

    async def send_input(self, name: str, text: str) -> None:
        """Type *text* into the session, then submit it with a separate Enter."""
        ...

    async def capture_output(self, name: str, max_lines: int) -> str: ...
