"""Reconciliation engine: the watcher's control loop.

Every cycle re-derives what should be running from the ledger and the live
session listing, then nudges the pool towards it.  Phases run in a fixed
order (cleanup, reconcile, activity, spec cleanup, spawn, spec, backlog);
a failure while handling one task or agent is logged and the phase moves on
to the next item, so the next cycle retries by re-evaluating from scratch.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import structlog

from kollaborate.config.schema import KollaborateConfig
from kollaborate.coordinator.event_bus import EventBus, EventType, WatcherEvent
from kollaborate.coordinator.monitor import (
    Action,
    ActivityMonitor,
    AgentBookkeeping,
    Verdict,
    decide,
)
from kollaborate.coordinator.pool import AgentPool
from kollaborate.coordinator.scheduler import order_pending_tasks, rules_from_config
from kollaborate.coordinator.state_writer import write_state
from kollaborate.errors import ConfigurationError, KollaborateError, SessionExistsError
from kollaborate.prompts.builder import (
    build_generator_prompt,
    build_prompt,
    build_spec_prompt,
    idle_warning,
    progress_nudge,
    protocol_violation,
)
from kollaborate.prompts.categories import classify_type
from kollaborate.protocol.ledger import LedgerStore
from kollaborate.protocol.models import (
    FINISHED_STATES,
    GENERATOR_AGENT,
    LedgerSnapshot,
    TaskRecord,
    TaskState,
    spec_agent_name,
    task_id_for_agent,
)
from kollaborate.sessions.base import SessionBackend
from kollaborate.specs.gate import SpecGate

log = structlog.get_logger(__name__)

_WORKING = frozenset({TaskState.WORKING})
_NEW = frozenset({TaskState.NEW})


@dataclass(slots=True)
class CycleReport:
    cycle: int
    killed: list[str] = field(default_factory=list)
    demoted: list[str] = field(default_factory=list)
    recycled: list[str] = field(default_factory=list)
    warned: list[str] = field(default_factory=list)
    nudged: list[str] = field(default_factory=list)
    spawned: list[str] = field(default_factory=list)
    adopted: list[str] = field(default_factory=list)
    spec_spawned: list[str] = field(default_factory=list)
    specs_deleted: list[str] = field(default_factory=list)
    blocked: dict[str, str] = field(default_factory=dict)
    generator_spawned: bool = False
    errors: list[str] = field(default_factory=list)


class ReconciliationEngine:
    def __init__(
        self,
        config: KollaborateConfig,
        backend: SessionBackend,
        *,
        clock: Callable[[], float] = time.monotonic,
        event_bus: EventBus | None = None,
    ) -> None:
        self.config = config
        self.ledger = LedgerStore(config.ledger.path)
        self.gate = SpecGate(config.specs.dir, config.specs.completeness_threshold)
        self.pool = AgentPool(backend)
        self.monitor = ActivityMonitor(
            backend,
            poll_wait_seconds=config.monitor.poll_wait_seconds,
            capture_lines=config.monitor.capture_lines,
        )
        self.rules = rules_from_config(config.blocking)
        self.events = event_bus or EventBus(config.output.events_path or None)
        self.bookkeeping: dict[str, AgentBookkeeping] = {}
        self.cycle = 0
        self._clock = clock
        self._stop = asyncio.Event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def preflight(self) -> None:
        """Fail fast on a missing ledger or an unusable spec directory."""
        if not self.ledger.exists():
            raise ConfigurationError(f"Task ledger not found: {self.ledger.path}")
        self.gate.ensure_dir()

    def request_stop(self) -> None:
        self._stop.set()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    async def run_forever(self) -> None:
        self.preflight()
        log.info(
            "watcher.started",
            phase="init",
            ledger=str(self.ledger.path),
            specs_dir=str(self.gate.specs_dir),
            max_workers=self.config.pool.max_workers,
            max_spec_agents=self.config.pool.max_spec_agents,
            interval=self.config.loop.check_interval_seconds,
        )
        while not self._stop.is_set():
            try:
                await self.run_cycle()
            except Exception as exc:
                log.exception("cycle.failed", phase="cycle", cycle=self.cycle)
                self._emit(EventType.CYCLE_ERROR, message=f"{type(exc).__name__}: {exc}")
            if self._stop.is_set():
                break
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.config.loop.check_interval_seconds)
            except TimeoutError:
                pass
        log.info("watcher.stopped", phase="cycle", cycles=self.cycle)

    async def run_cycle(self) -> CycleReport:
        self.cycle += 1
        report = CycleReport(cycle=self.cycle)
        self.pool.invalidate()
        snapshot = self.ledger.snapshot()
        await self.pool.refresh()
        await self._log_stat(snapshot)

        phases = (
            lambda: self.cleanup_phase(snapshot, report),
            lambda: self.reconcile_phase(report),
            lambda: self.activity_phase(report),
            lambda: self.spec_cleanup_phase(report),
            lambda: self.spawn_phase(report),
            lambda: self.spec_phase(report),
            lambda: self.backlog_phase(report),
        )
        for run_phase in phases:
            if self._stop.is_set():
                log.info("cycle.interrupted", phase="cycle", cycle=self.cycle)
                break
            await run_phase()

        await self._write_state(report)
        return report

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def cleanup_phase(self, snapshot: LedgerSnapshot, report: CycleReport) -> None:
        """Stop workers whose task is finished, and a generator that has done its job."""
        for agent in await self.pool.list_worker_agents():
            state = snapshot.state_of(agent)
            if state not in FINISHED_STATES:
                continue
            if await self._kill_agent(agent, phase="cleanup", reason=f"task {state}", report=report):
                report.killed.append(agent)

        threshold = self.config.loop.replenish_threshold
        if await self.pool.generator_alive():
            if snapshot.pending_count >= threshold:
                reason = f"queue replenished ({snapshot.pending_count} >= {threshold})"
                if await self._kill_agent(GENERATOR_AGENT, phase="cleanup", reason=reason, report=report):
                    report.killed.append(GENERATOR_AGENT)
            else:
                log.debug("generator.working", phase="cleanup", pending=snapshot.pending_count, threshold=threshold)

    async def reconcile_phase(self, report: CycleReport) -> None:
        """Demote WORKING tasks that have no live agent."""
        snapshot = self.ledger.snapshot()
        for task_id in snapshot.working:
            if await self.pool.exists(task_id):
                continue
            try:
                if self._transition(task_id, TaskState.NEW, from_states=_WORKING, phase="reconcile", reason="no live agent"):
                    report.demoted.append(task_id)
            except (KollaborateError, OSError) as exc:
                self._item_failed("reconcile", task_id, exc, report)
            self.bookkeeping.pop(task_id, None)

    async def activity_phase(self, report: CycleReport) -> None:
        snapshot = self.ledger.snapshot()
        to_poll: list[str] = []
        for agent in await self.pool.list_worker_agents():
            state = snapshot.state_of(agent)
            if state is TaskState.WORKING:
                self._book(agent).violations = 0
                to_poll.append(agent)
            elif state is None:
                await self._handle_violation(agent, report)

        if not to_poll:
            return
        log.debug("monitor.polling", phase="monitor", agents=to_poll)
        verdicts = await self.monitor.poll_many(to_poll)
        for agent, verdict in verdicts.items():
            if isinstance(verdict, Exception):
                self._item_failed("monitor", agent, verdict, report)
                continue
            try:
                await self._apply_verdict(agent, verdict, report)
            except (KollaborateError, OSError) as exc:
                self._item_failed("monitor", agent, exc, report)

    async def spec_cleanup_phase(self, report: CycleReport) -> None:
        snapshot = self.ledger.snapshot()
        live = set(await self.pool.names())
        for record in snapshot.new:
            try:
                if self.gate.delete_if_placeholder_and_unattended(record.task_id, live):
                    report.specs_deleted.append(record.task_id)
                    self._emit(EventType.SPEC_DELETED, task_id=record.task_id)
            except OSError as exc:
                self._item_failed("spec", record.task_id, exc, report)

    async def spawn_phase(self, report: CycleReport) -> None:
        snapshot = self.ledger.snapshot()
        free = self.config.pool.max_workers - len(await self.pool.list_worker_agents())
        open_ids = [r.task_id for r in snapshot.new] + snapshot.working
        schedule = order_pending_tasks(snapshot.new, open_ids, self.rules)
        for task_id, reason in schedule.blocked.items():
            log.info("spawn.blocked", phase="spawn", task_id=task_id, reason=reason)
        report.blocked.update(schedule.blocked)

        stagger = self.config.loop.spawn_stagger_seconds
        for record in schedule.ready:
            try:
                if await self.pool.exists(record.task_id):
                    self._adopt(record.task_id, report)
                    continue
                if not self.gate.has_complete_spec(record.task_id):
                    log.info("spawn.waiting_for_spec", phase="spawn", task_id=record.task_id)
                    await self._ensure_spec_agent(record, report)
                    continue
                if free <= 0:
                    continue
                if await self._spawn_worker(record, report):
                    free -= 1
                    if free > 0 and stagger > 0:
                        await asyncio.sleep(stagger)
            except (KollaborateError, OSError) as exc:
                self._item_failed("spawn", record.task_id, exc, report)

    async def spec_phase(self, report: CycleReport) -> None:
        """Retire finished or timed-out spec agents, then start new ones."""
        now = self._clock()
        timeout = self.config.specs.timeout_seconds
        for agent in await self.pool.list_spec_agents():
            task_id = task_id_for_agent(agent)
            if task_id is None:
                continue
            try:
                if self.gate.has_complete_spec(task_id):
                    if await self._kill_agent(agent, phase="spec", reason="spec complete", report=report):
                        report.killed.append(agent)
                    continue
                book = self._book(agent)
                if book.spec_started_at is None:
                    book.spec_started_at = now
                    log.info("spec.tracking", phase="spec", agent=agent)
                elif now - book.spec_started_at >= timeout:
                    reason = f"no complete spec after {timeout:.0f}s"
                    if await self._kill_agent(agent, phase="spec", reason=reason, report=report):
                        report.killed.append(agent)
            except (KollaborateError, OSError) as exc:
                self._item_failed("spec", agent, exc, report)

        snapshot = self.ledger.snapshot()
        by_id = {r.task_id: r for r in snapshot.new}
        for task_id in self.gate.list_tasks_missing_specs(by_id):
            if len(await self.pool.list_spec_agents()) >= self.config.pool.max_spec_agents:
                log.debug("spec.capacity_full", phase="spec", max_spec_agents=self.config.pool.max_spec_agents)
                break
            try:
                await self._ensure_spec_agent(by_id[task_id], report)
            except (KollaborateError, OSError) as exc:
                self._item_failed("spec", task_id, exc, report)

    async def backlog_phase(self, report: CycleReport) -> None:
        snapshot = self.ledger.snapshot()
        threshold = self.config.loop.replenish_threshold
        if snapshot.pending_count >= threshold or await self.pool.generator_alive():
            return
        log.info("generator.spawning", phase="backlog", pending=snapshot.pending_count, threshold=threshold)
        prompt = build_generator_prompt(ledger_path=str(self.ledger.path), batch_size=threshold)
        try:
            await self.pool.spawn(GENERATOR_AGENT, prompt)
        except SessionExistsError:
            return
        except KollaborateError as exc:
            self._item_failed("backlog", GENERATOR_AGENT, exc, report)
            return
        report.generator_spawned = True
        self._emit(EventType.AGENT_SPAWNED, agent=GENERATOR_AGENT, data={"kind": "generator"})

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def strikes(self, agent: str) -> int:
        book = self.bookkeeping.get(agent)
        return book.idle_strikes if book else 0

    def _book(self, agent: str) -> AgentBookkeeping:
        return self.bookkeeping.setdefault(agent, AgentBookkeeping())

    async def _apply_verdict(self, agent: str, verdict: Verdict, report: CycleReport) -> None:
        book = self._book(agent)
        decision = decide(
            verdict,
            book,
            now=self._clock(),
            strike_limit=self.config.monitor.idle_strike_limit,
            reminder_interval=self.config.monitor.reminder_interval_seconds,
        )
        if decision.action is Action.DEMOTE:
            self.pool.forget(agent)
            self.bookkeeping.pop(agent, None)
            if self._transition(agent, TaskState.NEW, from_states=_WORKING, phase="monitor", reason="agent vanished"):
                report.demoted.append(agent)
        elif decision.action is Action.RECYCLE:
            log.info("monitor.idle_limit", phase="monitor", agent=agent, strikes=decision.strikes)
            self._transition(agent, TaskState.NEW, from_states=_WORKING, phase="monitor", reason="idle strike limit")
            await self._kill_agent(agent, phase="monitor", reason="idle strike limit", report=report)
            self.bookkeeping.pop(agent, None)
            report.recycled.append(agent)
        elif decision.action is Action.WARN:
            log.info(
                "monitor.idle",
                phase="monitor",
                agent=agent,
                strikes=decision.strikes,
                limit=self.config.monitor.idle_strike_limit,
            )
            await self.pool.send(agent, idle_warning(agent, decision.remaining, ledger_path=str(self.ledger.path)))
            report.warned.append(agent)
            self._emit(EventType.AGENT_WARNED, agent=agent, data={"strikes": decision.strikes})
        elif decision.action is Action.NUDGE:
            log.info("monitor.nudge", phase="monitor", agent=agent)
            await self.pool.send(agent, progress_nudge())
            report.nudged.append(agent)
        else:
            log.debug("monitor.active", phase="monitor", agent=agent)

    async def _handle_violation(self, agent: str, report: CycleReport) -> None:
        book = self._book(agent)
        book.violations += 1
        limit = self.config.monitor.violation_limit
        log.warning("monitor.no_ledger_entry", phase="monitor", agent=agent, violations=book.violations, limit=limit)
        try:
            if book.violations >= limit:
                if await self._kill_agent(agent, phase="monitor", reason="no ledger entry", report=report):
                    report.killed.append(agent)
            else:
                await self.pool.send(agent, protocol_violation(agent, ledger_path=str(self.ledger.path)))
                report.warned.append(agent)
                self._emit(EventType.AGENT_WARNED, agent=agent, data={"violations": book.violations})
        except (KollaborateError, OSError) as exc:
            self._item_failed("monitor", agent, exc, report)

    def _adopt(self, task_id: str, report: CycleReport) -> None:
        if self._transition(task_id, TaskState.WORKING, from_states=_NEW, phase="spawn", reason="agent already running"):
            report.adopted.append(task_id)

    async def _spawn_worker(self, record: TaskRecord, report: CycleReport) -> bool:
        category = classify_type(record.type_tag)
        prompt = build_prompt(
            record.task_id,
            record.description,
            category,
            ledger_path=str(self.ledger.path),
            specs_dir=str(self.gate.specs_dir),
            file_target=record.file_target,
        )
        log.info("spawn.worker", phase="spawn", task_id=record.task_id, category=category.name)
        try:
            await self.pool.spawn(record.task_id, prompt)
        except SessionExistsError:
            self._adopt(record.task_id, report)
            return False
        self.bookkeeping[record.task_id] = AgentBookkeeping(last_reminder_at=self._clock())
        self._emit(EventType.AGENT_SPAWNED, agent=record.task_id, task_id=record.task_id, data={"kind": "worker"})
        report.spawned.append(record.task_id)
        if not self._transition(record.task_id, TaskState.WORKING, from_states=_NEW, phase="spawn", reason="worker spawned"):
            log.warning("spawn.ledger_changed", phase="spawn", task_id=record.task_id)
        return True

    async def _ensure_spec_agent(self, record: TaskRecord, report: CycleReport) -> bool:
        name = spec_agent_name(record.task_id)
        if await self.pool.exists(name):
            return False
        max_spec = self.config.pool.max_spec_agents
        if len(await self.pool.list_spec_agents()) >= max_spec:
            log.info("spec.deferred", phase="spec", task_id=record.task_id, max_spec_agents=max_spec)
            return False
        spec_path = self.gate.target_path(record.task_id, record.description)
        prompt = build_spec_prompt(
            record.task_id,
            record.description,
            spec_path=str(spec_path),
            min_lines=self.gate.threshold,
        )
        try:
            await self.pool.spawn(name, prompt)
        except SessionExistsError:
            return False
        self.bookkeeping[name] = AgentBookkeeping(spec_started_at=self._clock())
        log.info("spec.spawned", phase="spec", task_id=record.task_id, path=str(spec_path))
        self._emit(EventType.AGENT_SPAWNED, agent=name, task_id=record.task_id, data={"kind": "spec"})
        report.spec_spawned.append(name)
        return True

    async def _kill_agent(self, agent: str, *, phase: str, reason: str, report: CycleReport) -> bool:
        try:
            was_running = await self.pool.kill(agent)
        except KollaborateError as exc:
            self._item_failed(phase, agent, exc, report)
            return False
        self.bookkeeping.pop(agent, None)
        log.info("agent.killed", phase=phase, agent=agent, reason=reason, was_running=was_running)
        self._emit(EventType.AGENT_KILLED, agent=agent, data={"reason": reason})
        return True

    def _transition(
        self,
        task_id: str,
        state: TaskState,
        *,
        from_states: frozenset[TaskState],
        phase: str,
        reason: str,
    ) -> bool:
        changed = self.ledger.transition(task_id, state, from_states=from_states)
        if changed:
            log.info("task.transition", phase=phase, task_id=task_id, to_state=state.value, reason=reason)
            self._emit(
                EventType.TASK_TRANSITION,
                task_id=task_id,
                data={"to_state": state.value, "reason": reason},
            )
        return changed

    def _item_failed(self, phase: str, item: str, exc: BaseException, report: CycleReport) -> None:
        log.warning("item.failed", phase=phase, item=item, error=str(exc), error_type=type(exc).__name__)
        report.errors.append(f"{phase}:{item}: {exc}")

    def _emit(self, event_type: EventType, **kwargs: Any) -> None:
        self.events.emit(WatcherEvent(event_type=event_type, **kwargs))

    async def _log_stat(self, snapshot: LedgerSnapshot) -> None:
        workers = await self.pool.list_worker_agents()
        specs = await self.pool.list_spec_agents()
        log.info(
            "cycle.stat",
            phase="cycle",
            cycle=self.cycle,
            agents=f"{len(workers)}/{self.config.pool.max_workers}",
            specs=f"{len(specs)}/{self.config.pool.max_spec_agents}",
            working=len(snapshot.working),
            qa=len(snapshot.qa),
            pending=snapshot.pending_count,
        )

    async def _write_state(self, report: CycleReport) -> None:
        path = self.config.output.state_path
        if not path:
            return
        try:
            write_state(
                path,
                cycle=self.cycle,
                phase="stopping" if self._stop.is_set() else "idle",
                ledger_path=str(self.ledger.path),
                snapshot=self.ledger.snapshot(),
                limits={
                    "max_workers": self.config.pool.max_workers,
                    "max_spec_agents": self.config.pool.max_spec_agents,
                },
                workers=await self.pool.list_worker_agents(),
                spec_agents=await self.pool.list_spec_agents(),
                generator_alive=await self.pool.generator_alive(),
                bookkeeping=self.bookkeeping,
                blocked_spawns=report.blocked,
            )
        except (KollaborateError, OSError) as exc:
            log.warning("state.write_failed", phase="cycle", path=path, error=str(exc))
