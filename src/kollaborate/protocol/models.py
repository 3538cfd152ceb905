"""Ledger and agent-pool protocol types for kollaborate."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

TYPE_TAGS = "FRBTDPASHMICEUVWX"

GENERATOR_AGENT = "TASK-GENERATOR"
SPEC_AGENT_PREFIX = "SPEC-"

TASK_ID_RE = re.compile(rf"^(?P<tag>[{TYPE_TAGS}])(?P<ordinal>[1-9][0-9]*)$")


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class TaskState(StrEnum):
    NEW = "NEW"
    WORKING = "WORKING"
    DONE = "DONE"
    QA = "QA"
    BLOCKED = "BLOCKED"


# Worker agents on tasks in these states have nothing left to do.
FINISHED_STATES: frozenset[TaskState] = frozenset({TaskState.DONE, TaskState.QA, TaskState.BLOCKED})


class AgentKind(StrEnum):
    WORKER = "worker"
    SPEC = "spec"
    GENERATOR = "generator"
    FOREIGN = "foreign"


def is_task_id(value: str) -> bool:
    return TASK_ID_RE.match(value) is not None


def split_task_id(task_id: str) -> tuple[str, int]:
    """Split ``R12`` into ``("R", 12)``; raises ValueError for anything else."""
    m = TASK_ID_RE.match(task_id)
    if m is None:
        raise ValueError(f"Not a task id: {task_id!r}")
    return m.group("tag"), int(m.group("ordinal"))


def spec_agent_name(task_id: str) -> str:
    return f"{SPEC_AGENT_PREFIX}{task_id}"


def classify_agent(name: str) -> AgentKind:
    if name == GENERATOR_AGENT:
        return AgentKind.GENERATOR
    if name.startswith(SPEC_AGENT_PREFIX) and is_task_id(name[len(SPEC_AGENT_PREFIX):]):
        return AgentKind.SPEC
    if is_task_id(name):
        return AgentKind.WORKER
    return AgentKind.FOREIGN


def task_id_for_agent(name: str) -> str | None:
    """Return the task id an agent works on, or None for generator/foreign agents."""
    kind = classify_agent(name)
    if kind is AgentKind.WORKER:
        return name
    if kind is AgentKind.SPEC:
        return name[len(SPEC_AGENT_PREFIX):]
    return None


@dataclass(slots=True)
class TaskRecord:
    task_id: str
    state: TaskState
    description: str
    file_target: str | None = None
    block_reason: str | None = None

    @property
    def type_tag(self) -> str:
        return self.task_id[0]

    @property
    def ordinal(self) -> int:
        return split_task_id(self.task_id)[1]

    def summary(self) -> str:
        text = f"{self.task_id} - {self.description}"
        if self.file_target:
            text += f" (file: {self.file_target})"
        return text


@dataclass(slots=True)
class LedgerSnapshot:
    """Per-cycle view of the ledger, grouped by state."""

    new: list[TaskRecord]
    working: list[str]
    qa: list[str]
    done: list[str]
    blocked: list[str]

    def state_of(self, task_id: str) -> TaskState | None:
        if any(r.task_id == task_id for r in self.new):
            return TaskState.NEW
        if task_id in self.working:
            return TaskState.WORKING
        if task_id in self.qa:
            return TaskState.QA
        if task_id in self.done:
            return TaskState.DONE
        if task_id in self.blocked:
            return TaskState.BLOCKED
        return None

    @property
    def pending_count(self) -> int:
        return len(self.new)


@dataclass(slots=True)
class WatcherState:
    """JSON snapshot of the watcher written once per cycle."""

    cycle: int = 0
    phase: str = "init"
    updated_at: str = field(default_factory=utc_now_iso)
    ledger_path: str = ""
    tasks: dict[str, int] = field(default_factory=dict)
    limits: dict[str, int] = field(default_factory=dict)
    workers: list[str] = field(default_factory=list)
    spec_agents: list[str] = field(default_factory=list)
    generator_alive: bool = False
    bookkeeping: dict[str, dict[str, Any]] = field(default_factory=dict)
    blocked_spawns: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
