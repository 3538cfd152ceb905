"""Session backend registry for built-in backends."""

from __future__ import annotations

from pathlib import Path

from kollaborate.config.schema import SessionConfig
from kollaborate.errors import ConfigurationError
from kollaborate.sessions.base import SessionBackend
from kollaborate.sessions.tmux import TmuxSessionBackend


def get_backend(cfg: SessionConfig, *, working_dir: str | Path = ".") -> SessionBackend:
    b = cfg.backend.lower()
    if b == "tmux":
        return TmuxSessionBackend(
            cfg.agent_command,
            project_name=cfg.project_name,
            working_dir=working_dir,
            init_delay_seconds=cfg.init_delay_seconds,
        )
    raise ConfigurationError(f"Unsupported session backend: {cfg.backend}")
