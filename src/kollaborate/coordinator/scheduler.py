"""Spawn ordering and project-specific blocking rules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Collection, Iterable, Protocol

from kollaborate.config.schema import BlockingRuleConfig
from kollaborate.protocol.models import TaskRecord, split_task_id


class BlockingRule(Protocol):
    def blocks(self, task: TaskRecord, open_ids: Collection[str]) -> str | None:
        """Return a reason string when *task* must wait, else None."""
        ...


@dataclass(slots=True)
class OrdinalRangeRule:
    """Tasks ``<tag><n>`` with ``n >= block_from`` wait while any open task of
    the same tag has an ordinal in ``[wait_from, wait_to]``."""

    type_tag: str
    block_from: int
    wait_from: int
    wait_to: int

    def blocks(self, task: TaskRecord, open_ids: Collection[str]) -> str | None:
        if task.type_tag != self.type_tag or task.ordinal < self.block_from:
            return None
        waiting: list[str] = []
        for other in open_ids:
            tag, ordinal = split_task_id(other)
            if tag == self.type_tag and self.wait_from <= ordinal <= self.wait_to:
                waiting.append(other)
        if not waiting:
            return None
        return (
            f"{self.type_tag}{self.wait_from}-{self.type_tag}{self.wait_to} must complete first "
            f"({', '.join(sorted(waiting, key=lambda i: split_task_id(i)[1]))} open)"
        )


def rules_from_config(configs: Iterable[BlockingRuleConfig]) -> list[BlockingRule]:
    return [
        OrdinalRangeRule(
            type_tag=c.type_tag,
            block_from=c.block_from,
            wait_from=c.wait_from,
            wait_to=c.wait_to,
        )
        for c in configs
    ]


@dataclass(slots=True)
class ScheduleDecision:
    ready: list[TaskRecord]
    blocked: dict[str, str]


def order_pending_tasks(
    pending: list[TaskRecord],
    open_ids: Collection[str],
    rules: Iterable[BlockingRule] = (),
) -> ScheduleDecision:
    """Split pending tasks into spawnable (ledger order kept) and blocked ones."""
    rules = list(rules)
    ready: list[TaskRecord] = []
    blocked: dict[str, str] = {}
    for task in pending:
        reason = next((r for r in (rule.blocks(task, open_ids) for rule in rules) if r), None)
        if reason is None:
            ready.append(task)
        else:
            blocked[task.task_id] = reason
    return ScheduleDecision(ready=ready, blocked=blocked)
