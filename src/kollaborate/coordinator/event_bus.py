"""Watcher event log.

The engine reports what it did to the pool and the ledger as
:class:`WatcherEvent` records.  Listeners get them synchronously; with a
persist path every event is also appended to a JSONL file so an operator
can replay a night of watcher activity after the fact.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Callable

import structlog

from kollaborate.protocol.io import append_jsonl

log = structlog.get_logger(__name__)


class EventType(StrEnum):
    AGENT_SPAWNED = "agent.spawned"
    AGENT_KILLED = "agent.killed"
    AGENT_WARNED = "agent.warned"
    TASK_TRANSITION = "task.transition"
    SPEC_DELETED = "spec.deleted"
    CYCLE_ERROR = "cycle.error"


Listener = Callable[["WatcherEvent"], Any]


@dataclass(slots=True)
class WatcherEvent:
    event_type: EventType
    timestamp: float = field(default_factory=time.time)
    task_id: str = ""
    agent: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    message: str = ""

    def to_record(self) -> dict[str, Any]:
        record = asdict(self)
        record["event_type"] = str(self.event_type)
        return record


class EventBus:
    """Fan-out of watcher events to listeners, a bounded backlog and an optional JSONL file."""

    def __init__(self, persist_path: str | Path | None = None, history_limit: int = 1000) -> None:
        self._listeners: list[Listener] = []
        self._persist_path = Path(persist_path) if persist_path else None
        self._backlog: deque[WatcherEvent] = deque(maxlen=history_limit)

    def emit(self, event: WatcherEvent) -> None:
        self._backlog.append(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:
                log.debug("event_bus.listener_failed", event_type=str(event.event_type), error=str(exc))
        if self._persist_path is None:
            return
        try:
            append_jsonl(self._persist_path, event.to_record())
        except OSError as exc:
            log.warning("event_bus.persist_failed", path=str(self._persist_path), error=str(exc))

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        self._listeners = [fn for fn in self._listeners if fn is not listener]

    @property
    def history(self) -> list[WatcherEvent]:
        return list(self._backlog)

    def recent(self, n: int = 20) -> list[WatcherEvent]:
        return list(self._backlog)[-n:] if n > 0 else []

    def of_type(self, event_type: EventType | str) -> list[WatcherEvent]:
        return [e for e in self._backlog if e.event_type == event_type]
