"""Pytest configuration for test isolation.

The CLI configures the ``loop_ledger`` package logger once per process (a
module-level flag plus ``propagate = False``). Tests that drive the CLI would
otherwise leave that configuration behind and hide package log records from
``caplog`` in later tests, so every test starts and ends with the package
logger reset.

Environment variables read by :func:`loop_ledger.config.load_config` are
cleared as well so a developer's local ``.env`` or shell cannot leak into
assertions; each test runs from its own temporary working directory.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from loop_ledger.db.client import dispose_engines
from loop_ledger.logging_setup import reset_logging

_ENV_VARS = (
    "DATABASE_URL",
    "LOOP_LEDGER_USER_ID",
    "LOOP_LEDGER_MAPS_API_KEY",
    "LOOP_LEDGER_MAPS_URL",
    "LOOP_LEDGER_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in _ENV_VARS:
        # setenv first so teardown also removes values a test loads from .env
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    reset_logging()
    yield
    reset_logging()
    dispose_engines()


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    """URL of a fresh file-backed SQLite database for this test."""

    return f"sqlite+pysqlite:///{tmp_path / 'ledger.db'}"
