"""CLI entrypoint for the kollaborate watcher daemon."""

from __future__ import annotations

import asyncio
import contextlib
import signal
from pathlib import Path

import click
import structlog

from kollaborate.config.loader import load_config, validate_config
from kollaborate.config.schema import KollaborateConfig
from kollaborate.coordinator.loop import ReconciliationEngine
from kollaborate.errors import ConfigurationError
from kollaborate.sessions.registry import get_backend
from kollaborate.utilities.logger import setup_logging

log = structlog.get_logger(__name__)


async def _serve(cfg: KollaborateConfig) -> None:
    backend = get_backend(cfg.sessions, working_dir=Path.cwd())
    engine = ReconciliationEngine(cfg, backend)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, engine.request_stop)
    await engine.run_forever()


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("max_workers", type=click.IntRange(min=0), required=False)
@click.argument("max_spec_agents", type=click.IntRange(min=0), required=False)
def main(max_workers: int | None, max_spec_agents: int | None) -> None:
    """Watch the task ledger and keep the agent pool in step with it.

    MAX_WORKERS defaults to 3 and MAX_SPEC_AGENTS to 2.  The ledger path and
    spec directory come from $KOLLABORATE_MD and $SPECS_DIR, other settings
    from kollaborate.yaml (or $KOLLABORATE_CONFIG).
    """
    try:
        cfg = load_config()
        if max_workers is not None:
            cfg.pool.max_workers = max_workers
        if max_spec_agents is not None:
            cfg.pool.max_spec_agents = max_spec_agents
        validate_config(cfg)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc

    setup_logging(debug=cfg.logging.debug, json_output=cfg.logging.json)
    try:
        asyncio.run(_serve(cfg))
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc
    except KeyboardInterrupt:
        log.info("watcher.interrupted", phase="cycle")


if __name__ == "__main__":
    main()
