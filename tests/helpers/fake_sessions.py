"""In-memory session backend with scripted pane output."""

from __future__ import annotations

from collections import defaultdict

from kollaborate.errors import SessionCommandError, SessionExistsError, SessionNotFoundError


class FakeSessionBackend:
    """Stands in for tmux.

    ``script(name, *outputs)`` queues capture results: each capture pops the
    next one and the last keeps repeating, so a single output means "idle"
    and two different outputs mean "active" for one poll.
    """

    def __init__(self) -> None:
        self.sessions: set[str] = set()
        self.inputs: dict[str, list[str]] = defaultdict(list)
        self.created: list[str] = []
        self.killed: list[str] = []
        self.fail_create: set[str] = set()
        self.fail_send: set[str] = set()
        self.fail_kill: set[str] = set()
        self.fail_capture: set[str] = set()
        self.vanish_on_capture: set[str] = set()
        self.capture_calls: list[str] = []
        self.list_calls = 0
        self._outputs: dict[str, list[str]] = {}

    def add(self, *names: str) -> None:
        self.sessions.update(names)

    def script(self, name: str, *outputs: str) -> None:
        self._outputs[name] = list(outputs)

    async def session_exists(self, name: str) -> bool:
        return name in self.sessions

    async def create_session(self, name: str) -> None:
        if name in self.sessions:
            raise SessionExistsError(name)
        if name in self.fail_create:
            raise SessionCommandError(name, ["tmux", "new-session", "-d"], 1, "create failed")
        self.sessions.add(name)
        self.created.append(name)

    async def kill_session(self, name: str) -> None:
        if name not in self.sessions:
            raise SessionNotFoundError(name)
        if name in self.fail_kill:
            raise SessionCommandError(name, ["tmux", "kill-session"], 1, "kill failed")
        self.sessions.discard(name)
        self.killed.append(name)

    async def list_sessions(self) -> list[str]:
        self.list_calls += 1
        return sorted(self.sessions)

    async def send_input(self, name: str, text: str) -> None:
        if name not in self.sessions:
            raise SessionNotFoundError(name)
        if name in self.fail_send:
            raise SessionCommandError(name, ["tmux", "send-keys"], 1, "send failed")
        self.inputs[name].append(text)

    async def capture_output(self, name: str, max_lines: int) -> str:
        if name not in self.sessions:
            raise SessionNotFoundError(name)
        self.capture_calls.append(name)
        if name in self.fail_capture:
            raise SessionCommandError(name, ["tmux", "capture-pane"], 1, "capture failed")
        if name in self.vanish_on_capture:
            self.sessions.discard(name)
        queue = self._outputs.get(name)
        if not queue:
            return ""
        if len(queue) > 1:
            return queue.pop(0)
        return queue[0]
