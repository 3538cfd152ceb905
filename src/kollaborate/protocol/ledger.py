"""Task ledger parsing, in-place state rewrites and file persistence.

The ledger is a human-edited text file.  Lines of the form::

    STATE: ID - description (file: path/hint)

are task records; every other line (headers, prose, blank lines, template
lines such as ``NEW: F## - ...``) is carried through untouched.  A rewrite
only replaces the state keyword of one record line, so the rest of the
document round-trips byte-for-byte, line endings included.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

import structlog

from kollaborate.errors import LedgerError
from kollaborate.protocol.io import read_text, write_text_atomic
from kollaborate.protocol.models import (
    TYPE_TAGS,
    LedgerSnapshot,
    TaskRecord,
    TaskState,
)

log = structlog.get_logger(__name__)

_STATES = "|".join(s.value for s in TaskState)

_RECORD_RE = re.compile(
    rf"^(?P<state>{_STATES}):(?P<tail>[ \t]+(?P<id>[{TYPE_TAGS}][1-9][0-9]*)[ \t]+-(?:[ \t]+(?P<rest>.*)|[ \t]*))$"
)
_STATE_PREFIX_RE = re.compile(rf"^(?:{_STATES}):")
_SUFFIX_RE = re.compile(r"\s*\((?P<key>file|blocked):\s*(?P<value>[^()]*?)\s*\)\s*$")


@dataclass(slots=True)
class _Line:
    text: str
    ending: str
    record: TaskRecord | None = None
    tail: str = ""

    def render(self) -> str:
        if self.record is None:
            return self.text + self.ending
        return f"{self.record.state.value}:{self.tail}{self.ending}"


def parse_description(rest: str) -> tuple[str, str | None, str | None]:
    """Split trailing ``(file: ...)`` / ``(blocked: ...)`` hints off a description."""
    text = rest.rstrip()
    file_target: str | None = None
    block_reason: str | None = None
    while True:
        m = _SUFFIX_RE.search(text)
        if m is None:
            break
        if m.group("key") == "file" and file_target is None:
            file_target = m.group("value") or None
        elif m.group("key") == "blocked" and block_reason is None:
            block_reason = m.group("value") or None
        else:
            break
        text = text[: m.start()].rstrip()
    return text, file_target, block_reason


def _split_lines(text: str) -> list[tuple[str, str]]:
    out: list[tuple[str, str]] = []
    for chunk in text.splitlines(keepends=True):
        body = chunk.rstrip("\r\n")
        out.append((body, chunk[len(body):]))
    return out


class LedgerDocument:
    """Typed view over the ledger text that serializes back losslessly."""

    def __init__(self, lines: list[_Line]) -> None:
        self._lines = lines
        self.malformed: list[tuple[int, str]] = []
        self.duplicates: list[str] = []

    @classmethod
    def parse(cls, text: str) -> "LedgerDocument":
        lines: list[_Line] = []
        malformed: list[tuple[int, str]] = []
        seen: set[str] = set()
        duplicates: list[str] = []
        for lineno, (body, ending) in enumerate(_split_lines(text), start=1):
            m = _RECORD_RE.match(body)
            if m is None:
                if _STATE_PREFIX_RE.match(body):
                    malformed.append((lineno, body))
                lines.append(_Line(text=body, ending=ending))
                continue
            task_id = m.group("id")
            description, file_target, block_reason = parse_description(m.group("rest") or "")
            state = TaskState(m.group("state"))
            record = TaskRecord(
                task_id=task_id,
                state=state,
                description=description,
                file_target=file_target,
                block_reason=block_reason if state is TaskState.BLOCKED else None,
            )
            if task_id in seen:
                duplicates.append(task_id)
            seen.add(task_id)
            lines.append(_Line(text=body, ending=ending, record=record, tail=m.group("tail")))
        doc = cls(lines)
        doc.malformed = malformed
        doc.duplicates = duplicates
        return doc

    @property
    def records(self) -> list[TaskRecord]:
        return [ln.record for ln in self._lines if ln.record is not None]

    def find(self, task_id: str) -> TaskRecord | None:
        for ln in self._lines:
            if ln.record is not None and ln.record.task_id == task_id:
                return ln.record
        return None

    def set_state(
        self,
        task_id: str,
        state: TaskState,
        *,
        from_states: frozenset[TaskState] | set[TaskState] | None = None,
    ) -> bool:
        """Flip the state keyword of the line for *task_id*.

        Returns False (and changes nothing) when no line for the id exists,
        or when its current state is not in *from_states*.
        """
        for ln in self._lines:
            rec = ln.record
            if rec is None or rec.task_id != task_id:
                continue
            if from_states is not None and rec.state not in from_states:
                continue
            if rec.state is state:
                return False
            rec.state = state
            if state is not TaskState.BLOCKED:
                rec.block_reason = None
            return True
        return False

    def snapshot(self) -> LedgerSnapshot:
        snap = LedgerSnapshot(new=[], working=[], qa=[], done=[], blocked=[])
        for rec in self.records:
            if rec.state is TaskState.NEW:
                snap.new.append(rec)
            elif rec.state is TaskState.WORKING:
                snap.working.append(rec.task_id)
            elif rec.state is TaskState.QA:
                snap.qa.append(rec.task_id)
            elif rec.state is TaskState.DONE:
                snap.done.append(rec.task_id)
            else:
                snap.blocked.append(rec.task_id)
        return snap

    def render(self) -> str:
        return "".join(ln.render() for ln in self._lines)


class LedgerStore:
    """File-backed ledger.  Every mutation is a fresh read-modify-write."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> LedgerDocument:
        try:
            text = read_text(self.path)
        except OSError as exc:
            raise LedgerError(f"Cannot read ledger {self.path}: {exc}", path=str(self.path)) from exc
        doc = LedgerDocument.parse(text)
        for lineno, body in doc.malformed:
            log.debug("ledger.malformed_line", path=str(self.path), line=lineno, text=body[:120])
        for task_id in doc.duplicates:
            log.warning("ledger.duplicate_id", path=str(self.path), task_id=task_id)
        return doc

    def snapshot(self) -> LedgerSnapshot:
        return self.load().snapshot()

    def transition(
        self,
        task_id: str,
        state: TaskState,
        *,
        from_states: frozenset[TaskState] | set[TaskState] | None = None,
    ) -> bool:
        doc = self.load()
        if not doc.set_state(task_id, state, from_states=from_states):
            return False
        try:
            write_text_atomic(self.path, doc.render())
        except OSError as exc:
            raise LedgerError(f"Cannot write ledger {self.path}: {exc}", path=str(self.path)) from exc
        return True
