"""Workspace factory for watcher tests: ledger, spec dir and fast config."""

from __future__ import annotations

from pathlib import Path

from kollaborate.config.schema import KollaborateConfig

LEDGER_HEADER = """\
# Project: Demo shop
Goal: ship the checkout flow

## Template
NEW: F## - description (file: path)

## Tasks
"""


def make_config(root: Path, **pool: int) -> KollaborateConfig:
    """Config rooted at *root* with every wait set to zero."""
    cfg = KollaborateConfig()
    cfg.ledger.path = str(root / "TASK_TRACKING.md")
    cfg.specs.dir = str(root / "specs")
    cfg.monitor.poll_wait_seconds = 0.0
    cfg.loop.spawn_stagger_seconds = 0.0
    cfg.loop.check_interval_seconds = 0.01
    cfg.sessions.init_delay_seconds = 0.0
    for key, value in pool.items():
        setattr(cfg.pool, key, value)
    return cfg


def write_ledger(cfg: KollaborateConfig, *lines: str, header: str = LEDGER_HEADER) -> Path:
    path = Path(cfg.ledger.path)
    path.write_text(header + "".join(f"{line}\n" for line in lines), encoding="utf-8")
    return path


def read_ledger(cfg: KollaborateConfig) -> str:
    return Path(cfg.ledger.path).read_text(encoding="utf-8")


def task_lines(cfg: KollaborateConfig) -> list[str]:
    """Ledger lines after the header."""
    return read_ledger(cfg)[len(LEDGER_HEADER):].splitlines()


def write_spec(cfg: KollaborateConfig, task_id: str, lines: int, slug: str = "spec") -> Path:
    specs = Path(cfg.specs.dir)
    specs.mkdir(parents=True, exist_ok=True)
    path = specs / f"{task_id}-{slug}.md"
    path.write_text("".join(f"line {i}\n" for i in range(lines)), encoding="utf-8")
    return path
