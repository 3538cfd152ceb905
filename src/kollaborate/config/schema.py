"""Configuration schema for the kollaborate watcher."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class LedgerConfig:
    path: str = "./TASK_TRACKING.md"


@dataclass(slots=True)
class SpecConfig:
    dir: str = "./specs"
    completeness_threshold: int = 50  # a spec with <= this many lines is a placeholder
    timeout_seconds: float = 300.0  # spec agents get 5 min to produce a complete spec


@dataclass(slots=True)
class PoolConfig:
    max_workers: int = 3
    max_spec_agents: int = 2


@dataclass(slots=True)
class MonitorConfig:
    idle_strike_limit: int = 3
    reminder_interval_seconds: float = 120.0
    poll_wait_seconds: float = 4.0
    capture_lines: int = 100
    violation_limit: int = 2


@dataclass(slots=True)
class LoopConfig:
    check_interval_seconds: float = 60.0
    replenish_threshold: int = 5
    spawn_stagger_seconds: float = 2.0


@dataclass(slots=True)
class SessionConfig:
    backend: str = "tmux"
    agent_command: str = "glm"
    project_name: str = ""  # empty string = basename of the working directory
    init_delay_seconds: float = 3.0


@dataclass(slots=True)
class BlockingRuleConfig:
    type_tag: str
    block_from: int
    wait_from: int
    wait_to: int


@dataclass(slots=True)
class OutputConfig:
    state_path: str = ""
    events_path: str = ""


@dataclass(slots=True)
class LoggingConfig:
    debug: bool = False
    json: bool = False


@dataclass(slots=True)
class KollaborateConfig:
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    specs: SpecConfig = field(default_factory=SpecConfig)
    pool: PoolConfig = field(default_factory=PoolConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)
    sessions: SessionConfig = field(default_factory=SessionConfig)
    blocking: list[BlockingRuleConfig] = field(default_factory=list)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
