"""Tests for ledger parsing and in-place state rewrites."""

from __future__ import annotations

from pathlib import Path

import pytest

from kollaborate.errors import LedgerError
from kollaborate.protocol.ledger import LedgerDocument, LedgerStore, parse_description
from kollaborate.protocol.models import TaskState

SAMPLE = """\
# Project: Demo
NEW: F## - template line (file: path)

NEW: F3 - add login (file: src/auth/login.py)
WORKING: R1 - extract helpers
WORKING: R12 - split module
QA: T4 - cover parser
DONE: D2 - write README
BLOCKED: B7 - fix crash on save (blocked: needs upstream patch)
notes: R1 is tricky
"""


class TestParse:
    def test_groups_records_by_state(self) -> None:
        snap = LedgerDocument.parse(SAMPLE).snapshot()
        assert [r.task_id for r in snap.new] == ["F3"]
        assert snap.working == ["R1", "R12"]
        assert snap.qa == ["T4"]
        assert snap.done == ["D2"]
        assert snap.blocked == ["B7"]
        assert snap.pending_count == 1

    def test_file_hint_split_from_description(self) -> None:
        rec = LedgerDocument.parse(SAMPLE).find("F3")
        assert rec is not None
        assert rec.description == "add login"
        assert rec.file_target == "src/auth/login.py"
        assert rec.type_tag == "F"
        assert rec.ordinal == 3

    def test_block_reason_only_on_blocked(self) -> None:
        doc = LedgerDocument.parse(SAMPLE)
        blocked = doc.find("B7")
        assert blocked is not None
        assert blocked.block_reason == "needs upstream patch"
        assert blocked.description == "fix crash on save"
        doc2 = LedgerDocument.parse("NEW: B8 - odd (blocked: stale)\n")
        rec = doc2.find("B8")
        assert rec is not None and rec.block_reason is None

    def test_template_and_prose_lines_are_not_records(self) -> None:
        doc = LedgerDocument.parse(SAMPLE)
        assert doc.find("F") is None
        assert len(doc.records) == 6
        assert doc.malformed == [(2, "NEW: F## - template line (file: path)")]

    @pytest.mark.parametrize(
        "line",
        [
            "NEW: R0 - zero ordinal",
            "NEW: Z1 - unknown tag",
            "NEW: R1 no dash",
            "NEW: R1- glued dash",
            "new: R1 - lowercase state",
            "PENDING: R1 - unknown state",
        ],
    )
    def test_malformed_lines_are_skipped(self, line: str) -> None:
        doc = LedgerDocument.parse(line + "\n")
        assert doc.records == []
        assert doc.render() == line + "\n"

    def test_empty_description_allowed(self) -> None:
        rec = LedgerDocument.parse("NEW: C9 -\n").find("C9")
        assert rec is not None
        assert rec.description == ""

    def test_duplicate_ids_reported(self) -> None:
        doc = LedgerDocument.parse("NEW: F1 - a\nWORKING: F1 - a again\n")
        assert doc.duplicates == ["F1"]

    def test_parse_description_without_hints(self) -> None:
        assert parse_description("plain text  ") == ("plain text", None, None)


class TestRewrite:
    def test_render_is_lossless(self) -> None:
        assert LedgerDocument.parse(SAMPLE).render() == SAMPLE

    def test_crlf_and_missing_final_newline_preserved(self) -> None:
        text = "# head\r\nWORKING: R5 - fix bug\r\nNEW: F1 - x"
        doc = LedgerDocument.parse(text)
        assert doc.set_state("R5", TaskState.NEW)
        assert doc.render() == "# head\r\nNEW: R5 - fix bug\r\nNEW: F1 - x"

    def test_prefix_ids_are_not_touched(self) -> None:
        text = "WORKING: R12 - b\nWORKING: R100 - c\nWORKING: R1 - a\n"
        doc = LedgerDocument.parse(text)
        assert doc.set_state("R1", TaskState.NEW)
        assert doc.render() == "WORKING: R12 - b\nWORKING: R100 - c\nNEW: R1 - a\n"

    def test_only_state_keyword_changes(self) -> None:
        doc = LedgerDocument.parse("WORKING:  R5\t-  fix   bug (file: a.py)\n")
        assert doc.set_state("R5", TaskState.NEW)
        assert doc.render() == "NEW:  R5\t-  fix   bug (file: a.py)\n"

    def test_missing_id_is_noop(self) -> None:
        doc = LedgerDocument.parse(SAMPLE)
        assert not doc.set_state("X99", TaskState.NEW)
        assert doc.render() == SAMPLE

    def test_from_states_guard(self) -> None:
        doc = LedgerDocument.parse(SAMPLE)
        assert not doc.set_state("D2", TaskState.NEW, from_states={TaskState.WORKING})
        assert doc.find("D2").state is TaskState.DONE  # type: ignore[union-attr]

    def test_same_state_reports_no_change(self) -> None:
        doc = LedgerDocument.parse(SAMPLE)
        assert not doc.set_state("R1", TaskState.WORKING)


class TestLedgerStore:
    def test_transition_writes_file(self, tmp_path: Path) -> None:
        path = tmp_path / "TASK_TRACKING.md"
        path.write_text(SAMPLE, encoding="utf-8")
        store = LedgerStore(path)
        assert store.transition("R12", TaskState.NEW, from_states={TaskState.WORKING})
        text = path.read_text(encoding="utf-8")
        assert "NEW: R12 - split module\n" in text
        assert "WORKING: R1 - extract helpers\n" in text
        assert text.replace("NEW: R12", "WORKING: R12") == SAMPLE

    def test_second_identical_transition_is_noop(self, tmp_path: Path) -> None:
        path = tmp_path / "TASK_TRACKING.md"
        path.write_text(SAMPLE, encoding="utf-8")
        store = LedgerStore(path)
        assert store.transition("R1", TaskState.NEW, from_states={TaskState.WORKING})
        before = path.read_bytes()
        assert not store.transition("R1", TaskState.NEW, from_states={TaskState.WORKING})
        assert path.read_bytes() == before

    def test_picks_up_out_of_band_edits(self, tmp_path: Path) -> None:
        path = tmp_path / "TASK_TRACKING.md"
        path.write_text("WORKING: R1 - a\n", encoding="utf-8")
        store = LedgerStore(path)
        with path.open("a", encoding="utf-8") as fh:
            fh.write("NEW: F9 - added by hand\n")
        assert store.transition("R1", TaskState.NEW)
        assert path.read_text(encoding="utf-8") == "NEW: R1 - a\nNEW: F9 - added by hand\n"

    def test_undecodable_bytes_survive_rewrite(self, tmp_path: Path) -> None:
        path = tmp_path / "TASK_TRACKING.md"
        raw = b"notes: caf\xe9 au lait\nWORKING: B2 - fix crash\nNEW: F1 - na\xefve \xff\n"
        path.write_bytes(raw)
        store = LedgerStore(path)
        snap = store.snapshot()
        assert snap.working == ["B2"]
        assert [r.task_id for r in snap.new] == ["F1"]
        assert store.transition("B2", TaskState.NEW, from_states={TaskState.WORKING})
        assert path.read_bytes() == raw.replace(b"WORKING: B2", b"NEW: B2")

    def test_missing_file_raises_ledger_error(self, tmp_path: Path) -> None:
        store = LedgerStore(tmp_path / "nope.md")
        assert not store.exists()
        with pytest.raises(LedgerError):
            store.snapshot()
