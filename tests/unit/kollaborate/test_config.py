"""Tests for YAML config loading, environment overrides and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from kollaborate.config.loader import load_config, load_config_yaml, validate_config
from kollaborate.config.schema import KollaborateConfig
from kollaborate.errors import ConfigurationError


class TestLoadConfig:
    def test_defaults_when_file_missing(self, tmp_path: Path) -> None:
        cfg = load_config(tmp_path / "missing.yaml", env={})
        assert cfg.ledger.path == "./TASK_TRACKING.md"
        assert cfg.specs.dir == "./specs"
        assert cfg.pool.max_workers == 3
        assert cfg.pool.max_spec_agents == 2
        assert cfg.monitor.idle_strike_limit == 3
        assert cfg.loop.check_interval_seconds == 60.0
        assert cfg.loop.replenish_threshold == 5
        assert cfg.specs.timeout_seconds == 300.0
        assert cfg.blocking == []

    def test_sections_and_unknown_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "kollaborate.yaml"
        path.write_text(
            "pool:\n"
            "  max_workers: 6\n"
            "  colour: blue\n"
            "monitor:\n"
            "  reminder_interval_seconds: 30\n"
            "sessions:\n"
            "  agent_command: claude --dangerously-skip-permissions\n"
            "  project_name: shop\n"
            "logging:\n"
            "  json: true\n"
            "unrelated: 1\n",
            encoding="utf-8",
        )
        cfg = load_config_yaml(path)
        assert cfg.pool.max_workers == 6
        assert cfg.pool.max_spec_agents == 2
        assert cfg.monitor.reminder_interval_seconds == 30
        assert cfg.sessions.agent_command.startswith("claude")
        assert cfg.sessions.project_name == "shop"
        assert cfg.logging.json is True

    def test_blocking_rules(self, tmp_path: Path) -> None:
        path = tmp_path / "kollaborate.yaml"
        path.write_text(
            "blocking:\n"
            "  - {type_tag: R, block_from: 108, wait_from: 92, wait_to: 107}\n"
            "  - {type_tag: F, block_from: 5}\n"
            "  - not-a-rule\n",
            encoding="utf-8",
        )
        cfg = load_config_yaml(path)
        assert len(cfg.blocking) == 1
        rule = cfg.blocking[0]
        assert (rule.type_tag, rule.block_from, rule.wait_from, rule.wait_to) == ("R", 108, 92, 107)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "kollaborate.yaml"
        path.write_text("pool: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config_yaml(path)

    def test_non_mapping_document_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "kollaborate.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        assert load_config_yaml(path).pool.max_workers == 3

    def test_environment_overrides(self, tmp_path: Path) -> None:
        path = tmp_path / "kollaborate.yaml"
        path.write_text("ledger:\n  path: from-yaml.md\n", encoding="utf-8")
        cfg = load_config(
            env={
                "KOLLABORATE_CONFIG": str(path),
                "KOLLABORATE_MD": "/work/TASKS.md",
                "SPECS_DIR": "/work/specs",
            }
        )
        assert cfg.ledger.path == "/work/TASKS.md"
        assert cfg.specs.dir == "/work/specs"

    def test_empty_environment_values_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "kollaborate.yaml"
        path.write_text("ledger:\n  path: from-yaml.md\n", encoding="utf-8")
        cfg = load_config(path, env={"KOLLABORATE_MD": ""})
        assert cfg.ledger.path == "from-yaml.md"


class TestValidateConfig:
    def test_defaults_are_valid(self) -> None:
        validate_config(KollaborateConfig())

    def test_zero_workers_allowed(self) -> None:
        cfg = KollaborateConfig()
        cfg.pool.max_workers = 0
        validate_config(cfg)

    @pytest.mark.parametrize(
        ("section", "key", "value"),
        [
            ("pool", "max_workers", -1),
            ("pool", "max_spec_agents", -1),
            ("monitor", "idle_strike_limit", 0),
            ("monitor", "violation_limit", 0),
            ("monitor", "capture_lines", 0),
            ("loop", "check_interval_seconds", 0),
            ("sessions", "agent_command", "   "),
        ],
    )
    def test_rejects_unusable_values(self, section: str, key: str, value: object) -> None:
        cfg = KollaborateConfig()
        setattr(getattr(cfg, section), key, value)
        with pytest.raises(ConfigurationError):
            validate_config(cfg)
