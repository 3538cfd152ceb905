"""Shared test helpers for the kollaborate test suite."""

from __future__ import annotations

from tests.helpers.fake_sessions import FakeSessionBackend
from tests.helpers.fixtures import make_config, write_ledger, write_spec

__all__ = ["FakeSessionBackend", "make_config", "write_ledger", "write_spec"]
