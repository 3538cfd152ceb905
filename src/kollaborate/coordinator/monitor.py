"""Activity monitor for worker agents.

An agent is polled by capturing its recent output twice, a fixed wait
apart, and comparing digests of the two captures.  The strike policy that
turns verdicts into actions lives in :func:`decide`, which only touches the
per-agent :class:`AgentBookkeeping` handed to it.
"""

from __future__ import annotations

import asyncio
import hashlib
from dataclasses import dataclass
from enum import StrEnum
from typing import Iterable

from kollaborate.errors import SessionNotFoundError
from kollaborate.sessions.base import SessionBackend


class Verdict(StrEnum):
    IDLE = "idle"
    ACTIVE = "active"
    VANISHED = "vanished"


class Action(StrEnum):
    NONE = "none"
    WARN = "warn"
    RECYCLE = "recycle"
    NUDGE = "nudge"
    DEMOTE = "demote"


@dataclass(slots=True)
class AgentBookkeeping:
    idle_strikes: int = 0
    last_reminder_at: float | None = None
    spec_started_at: float | None = None
    violations: int = 0


@dataclass(slots=True)
class Decision:
    action: Action
    strikes: int = 0
    remaining: int = 0


def output_digest(text: str) -> str:
    """Digest of a capture with trailing whitespace and blank tail lines ignored."""
    lines = [line.rstrip() for line in text.splitlines()]
    while lines and not lines[-1]:
        lines.pop()
    return hashlib.sha256("\n".join(lines).encode("utf-8")).hexdigest()


def decide(
    verdict: Verdict,
    book: AgentBookkeeping,
    *,
    now: float,
    strike_limit: int = 3,
    reminder_interval: float = 120.0,
) -> Decision:
    if verdict is Verdict.VANISHED:
        return Decision(Action.DEMOTE)

    if verdict is Verdict.IDLE:
        book.idle_strikes += 1
        if book.idle_strikes >= strike_limit:
            strikes = book.idle_strikes
            book.idle_strikes = 0
            return Decision(Action.RECYCLE, strikes=strikes)
        return Decision(
            Action.WARN,
            strikes=book.idle_strikes,
            remaining=strike_limit - book.idle_strikes,
        )

    book.idle_strikes = 0
    if book.last_reminder_at is None or now - book.last_reminder_at >= reminder_interval:
        book.last_reminder_at = now
        return Decision(Action.NUDGE)
    return Decision(Action.NONE)


class ActivityMonitor:
    def __init__(
        self,
        backend: SessionBackend,
        *,
        poll_wait_seconds: float = 4.0,
        capture_lines: int = 100,
    ) -> None:
        self.backend = backend
        self.poll_wait_seconds = poll_wait_seconds
        self.capture_lines = capture_lines

    async def poll(self, name: str) -> Verdict:
        try:
            first = await self.backend.capture_output(name, self.capture_lines)
            await asyncio.sleep(self.poll_wait_seconds)
            second = await self.backend.capture_output(name, self.capture_lines)
        except SessionNotFoundError:
            return Verdict.VANISHED
        if output_digest(first) == output_digest(second):
            return Verdict.IDLE
        return Verdict.ACTIVE

    async def poll_many(self, names: Iterable[str]) -> dict[str, Verdict | Exception]:
        """Poll all agents concurrently; per-agent failures come back as values."""
        names = list(names)
        results = await asyncio.gather(*(self.poll(n) for n in names), return_exceptions=True)
        out: dict[str, Verdict | Exception] = {}
        for name, result in zip(names, results):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            out[name] = result
        return out
