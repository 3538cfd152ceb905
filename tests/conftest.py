"""Global test fixtures for kollaborate."""

from __future__ import annotations

from pathlib import Path

import pytest

from kollaborate.config.schema import KollaborateConfig
from tests.helpers.fake_sessions import FakeSessionBackend
from tests.helpers.fixtures import make_config


@pytest.fixture
def tmp_workdir(tmp_path: Path) -> Path:
    """Provide a temporary working directory for file operation tests."""
    return tmp_path


@pytest.fixture
def backend() -> FakeSessionBackend:
    return FakeSessionBackend()


@pytest.fixture
def config(tmp_path: Path) -> KollaborateConfig:
    return make_config(tmp_path)
