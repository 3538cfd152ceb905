"""Tests for pending-task ordering and blocking rules."""

from __future__ import annotations

from kollaborate.config.schema import BlockingRuleConfig
from kollaborate.coordinator.scheduler import OrdinalRangeRule, order_pending_tasks, rules_from_config
from kollaborate.protocol.models import TaskRecord, TaskState


def _new(task_id: str) -> TaskRecord:
    return TaskRecord(task_id=task_id, state=TaskState.NEW, description=f"task {task_id}")


class TestOrdinalRangeRule:
    rule = OrdinalRangeRule(type_tag="R", block_from=108, wait_from=92, wait_to=107)

    def test_blocks_while_range_open(self) -> None:
        reason = self.rule.blocks(_new("R108"), ["R95", "R108", "F1"])
        assert reason is not None
        assert "R92-R107" in reason
        assert "R95" in reason

    def test_releases_when_range_clear(self) -> None:
        assert self.rule.blocks(_new("R108"), ["R91", "R108", "F100"]) is None

    def test_other_tags_and_lower_ordinals_unaffected(self) -> None:
        assert self.rule.blocks(_new("F200"), ["R95"]) is None
        assert self.rule.blocks(_new("R107"), ["R95"]) is None


class TestOrderPendingTasks:
    def test_keeps_ledger_order_without_rules(self) -> None:
        pending = [_new("F3"), _new("B1"), _new("R2")]
        decision = order_pending_tasks(pending, ["F3", "B1", "R2"])
        assert [t.task_id for t in decision.ready] == ["F3", "B1", "R2"]
        assert decision.blocked == {}

    def test_splits_blocked_from_ready(self) -> None:
        rules = rules_from_config([BlockingRuleConfig(type_tag="R", block_from=108, wait_from=92, wait_to=107)])
        pending = [_new("R108"), _new("R109"), _new("F1")]
        decision = order_pending_tasks(pending, ["R108", "R109", "F1", "R100"], rules)
        assert [t.task_id for t in decision.ready] == ["F1"]
        assert set(decision.blocked) == {"R108", "R109"}
