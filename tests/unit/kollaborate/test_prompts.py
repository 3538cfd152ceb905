"""Tests for the task-type classifier and prompt builders."""

from __future__ import annotations

import pytest

from kollaborate.prompts.builder import (
    build_generator_prompt,
    build_prompt,
    build_spec_prompt,
    idle_warning,
    progress_nudge,
    protocol_violation,
)
from kollaborate.prompts.categories import CATEGORIES, classify_type
from kollaborate.protocol.models import TYPE_TAGS


class TestClassifier:
    def test_covers_every_type_tag_in_order(self) -> None:
        assert "".join(CATEGORIES) == TYPE_TAGS
        assert len(CATEGORIES) == 17

    @pytest.mark.parametrize(
        ("tag", "name"),
        [("F", "FEATURE"), ("R", "REFACTOR"), ("B", "BUG FIX"), ("H", "HOTFIX"), ("X", "EXPLORATION")],
    )
    def test_names(self, tag: str, name: str) -> None:
        assert classify_type(tag).name == name

    def test_categories_have_distinct_contracts(self) -> None:
        blocks = {(c.prohibited, c.mandatory) for c in CATEGORIES.values()}
        assert len(blocks) == 17

    def test_unknown_tag(self) -> None:
        with pytest.raises(ValueError):
            classify_type("Z")

    def test_behavioural_constraints(self) -> None:
        assert any(">80% coverage" in m for m in classify_type("T").mandatory)
        hotfix = classify_type("H").mandatory
        assert any("Minimal invasive change" in m for m in hotfix)
        assert any("rollback plan" in m for m in hotfix)
        migration = classify_type("M").mandatory
        assert any("Idempotent" in m for m in migration)
        assert any("rollback/downgrade" in m for m in migration)


class TestWorkerPrompt:
    def test_interpolates_task_and_category(self) -> None:
        prompt = build_prompt(
            "T4",
            "cover the parser",
            classify_type("T"),
            ledger_path="TASK_TRACKING.md",
            specs_dir="specs",
            file_target="tests/test_parser.py",
        )
        assert "Assigned Task: T4 - cover the parser (file: tests/test_parser.py)" in prompt
        assert "Task Type: TEST IMPLEMENTATION" in prompt
        assert "Achieve >80% coverage for target module" in prompt
        assert "specs/T4-*.md" in prompt
        assert "WORKING -> DONE" in prompt

    def test_steps_are_numbered_consecutively(self) -> None:
        prompt = build_prompt("R2", "tidy", classify_type("R"))
        numbers = [int(line.split(".", 1)[0]) for line in prompt.splitlines() if line[:1].isdigit()]
        assert numbers == list(range(1, len(numbers) + 1))
        assert "BUILD VERIFICATION" in prompt

    def test_build_step_omitted_for_docs(self) -> None:
        assert "BUILD VERIFICATION" not in build_prompt("D1", "docs", classify_type("D"))

    def test_hotfix_handoff_mentions_rollback(self) -> None:
        assert "rollback plan" in build_prompt("H1", "prod down", classify_type("H")).split("HANDOFF:")[1]


class TestOtherPrompts:
    def test_spec_prompt_names_output_file(self) -> None:
        prompt = build_spec_prompt("F3", "add login", spec_path="specs/F3-add_login.md", min_lines=50)
        assert "Identifier: F3" in prompt
        assert "Persist specification to: specs/F3-add_login.md" in prompt
        assert "50 lines" in prompt

    def test_generator_prompt_lists_all_types(self) -> None:
        prompt = build_generator_prompt(ledger_path="TASK_TRACKING.md", batch_size=5)
        for tag in TYPE_TAGS:
            assert f"* {tag}##" in prompt
        assert "Generate 5 atomic tasks" in prompt
        assert "NEW: [TYPE]## -" in prompt
        assert "ORPHAN TASK RECONCILIATION" in prompt

    def test_messages(self) -> None:
        assert "1 warning(s) remaining" in idle_warning("R5", 1, ledger_path="L.md")
        assert "L.md" in idle_warning("R5", 1, ledger_path="L.md")
        assert "TEMPORAL CHECKPOINT" in progress_nudge()
        assert "WORKING: R9 - " in protocol_violation("R9", ledger_path="L.md")
