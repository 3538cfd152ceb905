"""tmux-backed session backend.

Sessions are project scoped: agent ``R12`` in project ``shop`` lives in the
tmux session ``shop-R12``.  Targets are always given with tmux's ``=``
exact-match prefix, otherwise ``-t shop-R1`` would happily resolve to
``shop-R12``.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import structlog

from kollaborate.errors import (
    SessionCommandError,
    SessionError,
    SessionExistsError,
    SessionNotFoundError,
)

log = structlog.get_logger(__name__)

# Env vars that interfere with nested agent processes (e.g. a watcher started
# from inside another agent CLI session makes the nested CLI refuse to launch).
_STRIP_ENV_VARS = {
    "CLAUDECODE", "CLAUDE_CODE_ENTRYPOINT", "CLAUDE_REPL",
    "CLAUDE_CODE_PACKAGE_DIR",
}

_NO_SERVER_MARKERS = ("no server running", "no sessions", "error connecting")


class TmuxSessionBackend:
    def __init__(
        self,
        agent_command: str,
        *,
        project_name: str = "",
        working_dir: str | Path = ".",
        init_delay_seconds: float = 3.0,
        submit_delay_seconds: float = 0.5,
        binary: str = "tmux",
    ) -> None:
        self.working_dir = Path(working_dir).resolve()
        self.project_name = project_name or self.working_dir.name
        self.agent_command = agent_command
        self.init_delay_seconds = init_delay_seconds
        self.submit_delay_seconds = submit_delay_seconds
        self.binary = binary
        self._env = {k: v for k, v in os.environ.items() if k not in _STRIP_ENV_VARS}

    # ------------------------------------------------------------------
    # Naming
    # ------------------------------------------------------------------

    def full_name(self, name: str) -> str:
        return f"{self.project_name}-{name}"

    def _session_target(self, name: str) -> str:
        return f"={self.full_name(name)}"

    def _pane_target(self, name: str) -> str:
        return f"={self.full_name(name)}:"

    # ------------------------------------------------------------------
    # SessionBackend
    # ------------------------------------------------------------------

    async def session_exists(self, name: str) -> bool:
        rc, _, _ = await self._tmux("has-session", "-t", self._session_target(name), check=False)
        return rc == 0

    async def create_session(self, name: str) -> None:
        if await self.session_exists(name):
            raise SessionExistsError(self.full_name(name))
        await self._tmux(
            "new-session", "-d", "-s", self.full_name(name), "-c", str(self.working_dir),
            session=name,
        )
        try:
            await self._type_and_submit(name, self.agent_command)
            await asyncio.sleep(self.init_delay_seconds)
            if not await self.session_exists(name):
                raise SessionError(
                    f"Session exited during start-up: {self.full_name(name)}",
                    session=self.full_name(name),
                )
        except SessionError:
            await self._tmux("kill-session", "-t", self._session_target(name), check=False)
            raise
        log.debug("tmux.session_created", session=self.full_name(name), command=self.agent_command)

    async def kill_session(self, name: str) -> None:
        if not await self.session_exists(name):
            raise SessionNotFoundError(self.full_name(name))
        await self._tmux("kill-session", "-t", self._session_target(name), session=name)

    async def list_sessions(self) -> list[str]:
        rc, out, err = await self._tmux("list-sessions", "-F", "#S", check=False)
        if rc != 0:
            if any(marker in err.lower() for marker in _NO_SERVER_MARKERS):
                return []
            raise SessionCommandError(None, [self.binary, "list-sessions"], rc, err)
        prefix = f"{self.project_name}-"
        return [
            line[len(prefix):]
            for line in out.splitlines()
            if line.startswith(prefix) and len(line) > len(prefix)
        ]

    async def send_input(self, name: str, text: str) -> None:
        if not await self.session_exists(name):
            raise SessionNotFoundError(self.full_name(name))
        await self._type_and_submit(name, text)

    async def capture_output(self, name: str, max_lines: int) -> str:
        if not await self.session_exists(name):
            raise SessionNotFoundError(self.full_name(name))
        _, out, _ = await self._tmux(
            "capture-pane", "-t", self._pane_target(name), "-p", "-S", f"-{max_lines}",
            session=name,
        )
        return out

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _type_and_submit(self, name: str, text: str) -> None:
        await self._tmux("send-keys", "-t", self._pane_target(name), "-l", text, session=name)
        await asyncio.sleep(self.submit_delay_seconds)
        await self._tmux("send-keys", "-t", self._pane_target(name), "Enter", session=name)

    async def _tmux(
        self,
        *args: str,
        session: str | None = None,
        check: bool = True,
    ) -> tuple[int, str, str]:
        cmd = [self.binary, *args]
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._env,
            )
        except FileNotFoundError as exc:
            raise SessionError(f"'{self.binary}' not found. Install it or add it to PATH.") from exc
        stdout_bytes, stderr_bytes = await proc.communicate()
        out = (stdout_bytes or b"").decode("utf-8", errors="replace")
        err = (stderr_bytes or b"").decode("utf-8", errors="replace")
        rc = proc.returncode if proc.returncode is not None else -1
        if check and rc != 0:
            full = self.full_name(session) if session else None
            raise SessionCommandError(full, cmd, rc, err)
        return rc, out, err
