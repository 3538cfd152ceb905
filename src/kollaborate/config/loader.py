"""YAML + environment config loader for kollaborate."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from kollaborate.config.schema import (
    BlockingRuleConfig,
    KollaborateConfig,
    LedgerConfig,
    LoggingConfig,
    LoopConfig,
    MonitorConfig,
    OutputConfig,
    PoolConfig,
    SessionConfig,
    SpecConfig,
)
from kollaborate.errors import ConfigurationError

DEFAULT_CONFIG_FILE = "kollaborate.yaml"

ENV_CONFIG = "KOLLABORATE_CONFIG"
ENV_LEDGER = "KOLLABORATE_MD"
ENV_SPECS_DIR = "SPECS_DIR"


def load_config(
    path: str | Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> KollaborateConfig:
    """Load config from YAML, then apply environment overrides.

    Resolution order for the YAML file: explicit *path*, then
    ``$KOLLABORATE_CONFIG``, then ``./kollaborate.yaml`` if present.
    A missing file yields all defaults.
    """
    environ = os.environ if env is None else env
    if path is None:
        path = environ.get(ENV_CONFIG) or DEFAULT_CONFIG_FILE
    cfg = load_config_yaml(path)

    if environ.get(ENV_LEDGER):
        cfg.ledger.path = environ[ENV_LEDGER]
    if environ.get(ENV_SPECS_DIR):
        cfg.specs.dir = environ[ENV_SPECS_DIR]
    return cfg


def load_config_yaml(path: str | Path) -> KollaborateConfig:
    p = Path(path)
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) if p.exists() else {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {p}: {exc}") from exc
    if not isinstance(raw, dict):
        raw = {}

    ledger = LedgerConfig(**_pick(_section(raw, "ledger"), LedgerConfig))
    specs = SpecConfig(**_pick(_section(raw, "specs"), SpecConfig))
    pool = PoolConfig(**_pick(_section(raw, "pool"), PoolConfig))
    monitor = MonitorConfig(**_pick(_section(raw, "monitor"), MonitorConfig))
    loop = LoopConfig(**_pick(_section(raw, "loop"), LoopConfig))
    sessions = SessionConfig(**_pick(_section(raw, "sessions"), SessionConfig))
    output = OutputConfig(**_pick(_section(raw, "output"), OutputConfig))
    logging_cfg = LoggingConfig(**_pick(_section(raw, "logging"), LoggingConfig))

    blocking: list[BlockingRuleConfig] = []
    raw_rules = raw.get("blocking", [])
    if isinstance(raw_rules, list):
        for item in raw_rules:
            if not isinstance(item, dict):
                continue
            if not {"type_tag", "block_from", "wait_from", "wait_to"} <= item.keys():
                continue
            blocking.append(BlockingRuleConfig(**_pick(item, BlockingRuleConfig)))

    return KollaborateConfig(
        ledger=ledger,
        specs=specs,
        pool=pool,
        monitor=monitor,
        loop=loop,
        sessions=sessions,
        blocking=blocking,
        output=output,
        logging=logging_cfg,
    )


def validate_config(cfg: KollaborateConfig) -> None:
    """Reject values the engine cannot run with."""
    if cfg.pool.max_workers < 0:
        raise ConfigurationError("pool.max_workers must be >= 0")
    if cfg.pool.max_spec_agents < 0:
        raise ConfigurationError("pool.max_spec_agents must be >= 0")
    if cfg.monitor.idle_strike_limit < 1:
        raise ConfigurationError("monitor.idle_strike_limit must be >= 1")
    if cfg.monitor.violation_limit < 1:
        raise ConfigurationError("monitor.violation_limit must be >= 1")
    if cfg.monitor.capture_lines < 1:
        raise ConfigurationError("monitor.capture_lines must be >= 1")
    if cfg.loop.check_interval_seconds <= 0:
        raise ConfigurationError("loop.check_interval_seconds must be > 0")
    if not cfg.sessions.agent_command.strip():
        raise ConfigurationError("sessions.agent_command must not be empty")


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key, {})
    return value if isinstance(value, dict) else {}


def _pick(raw: dict[str, Any], model_type: type[Any]) -> dict[str, Any]:
    allowed = set(model_type.__dataclass_fields__.keys())
    return {k: v for k, v in raw.items() if k in allowed}
