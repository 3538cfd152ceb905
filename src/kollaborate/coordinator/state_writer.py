"""Watcher state snapshot persistence."""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Mapping

from kollaborate.coordinator.monitor import AgentBookkeeping
from kollaborate.protocol.io import write_json_atomic
from kollaborate.protocol.models import LedgerSnapshot, WatcherState


def write_state(
    state_path: str,
    *,
    cycle: int,
    phase: str,
    ledger_path: str,
    snapshot: LedgerSnapshot,
    limits: dict[str, int],
    workers: list[str],
    spec_agents: list[str],
    generator_alive: bool,
    bookkeeping: Mapping[str, AgentBookkeeping],
    blocked_spawns: dict[str, str],
) -> None:
    payload = WatcherState(
        cycle=cycle,
        phase=phase,
        ledger_path=ledger_path,
        tasks={
            "new": len(snapshot.new),
            "working": len(snapshot.working),
            "qa": len(snapshot.qa),
            "done": len(snapshot.done),
            "blocked": len(snapshot.blocked),
        },
        limits=limits,
        workers=workers,
        spec_agents=spec_agents,
        generator_alive=generator_alive,
        bookkeeping={name: asdict(book) for name, book in sorted(bookkeeping.items())},
        blocked_spawns=blocked_spawns,
    )
    write_json_atomic(Path(state_path), payload.to_dict())
