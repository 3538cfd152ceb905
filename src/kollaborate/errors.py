"""Kollaborate error hierarchy."""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCategory(StrEnum):
    """Category of error for classification and handling."""

    SESSION = "session"
    SPAWN = "spawn"
    LEDGER = "ledger"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


class KollaborateError(Exception):
    """Base error for all watcher exceptions."""

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        retryable: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.retryable = retryable
        self.details: dict[str, Any] = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r}, category={self.category!r})"


class SessionError(KollaborateError):
    """Error reported by the session backend (tmux or similar)."""

    def __init__(
        self,
        message: str,
        *,
        session: str | None = None,
        retryable: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, category=ErrorCategory.SESSION, retryable=retryable, **kwargs)
        self.session = session


class SessionExistsError(SessionError):
    """A session with the requested name is already running."""

    def __init__(self, session: str) -> None:
        super().__init__(f"Session already exists: {session}", session=session, retryable=False)


class SessionNotFoundError(SessionError):
    """The named session does not exist."""

    def __init__(self, session: str) -> None:
        super().__init__(f"Session not found: {session}", session=session, retryable=False)


class SessionCommandError(SessionError):
    """A backend command exited non-zero."""

    def __init__(
        self,
        session: str | None,
        command: list[str],
        returncode: int,
        stderr: str = "",
    ) -> None:
        detail = stderr.strip()[:500]
        message = f"{' '.join(command[:3])} exited {returncode}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(
            message,
            session=session,
            details={"command": command, "returncode": returncode, "stderr": detail},
        )
        self.returncode = returncode


class SpawnError(KollaborateError):
    """An agent could not be brought up with its instructions."""

    def __init__(self, agent: str, reason: str) -> None:
        super().__init__(
            f"Failed to spawn {agent}: {reason}",
            category=ErrorCategory.SPAWN,
            retryable=True,
            details={"agent": agent},
        )
        self.agent = agent


class LedgerError(KollaborateError):
    """The task ledger could not be read or written."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message, category=ErrorCategory.LEDGER, retryable=True)
        self.path = path


class ConfigurationError(KollaborateError):
    """Invalid or missing configuration."""

    def __init__(self, message: str) -> None:
        super().__init__(message, category=ErrorCategory.CONFIGURATION, retryable=False)
