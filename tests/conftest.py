# forkguard - Self-Supervising Process Watchdog
# Copyright (C) 2026 forkguard Authors
# SPDX-License-Identifier: Apache-2.0
"""Global test fixtures for forkguard.

Supervisor behaviour is exercised against real forked children, so these
tests require a POSIX platform with ``os.fork``.
"""

from __future__ import annotations

import os
import signal
import sys
from collections.abc import Iterator

import pytest
import structlog

import forkguard
from forkguard.supervisor.channel import Channel


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if hasattr(os, "fork") and sys.platform != "win32":
        return
    skip = pytest.mark.skip(reason="forkguard requires os.fork")
    for item in items:
        item.add_marker(skip)


# ── Fixtures ──────────────────────────────────────────────


@pytest.fixture
def channel() -> Iterator[Channel]:
    """A fresh supervisor/worker channel, closed after the test."""
    chan = Channel.create()
    yield chan
    chan.close()


@pytest.fixture(autouse=True)
def _reset_watchdog_state(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Isolate the module-level worker and structlog context per test."""
    monkeypatch.setattr(forkguard, "_worker", None)
    for name in ("FORKGUARD_AUTORESTART", "FORKGUARD_HEARTBEAT", "FORKGUARD_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture(autouse=True)
def _restore_signal_handlers() -> Iterator[None]:
    """Guard against a test leaking supervisor signal dispositions."""
    watched = (signal.SIGHUP, signal.SIGINT, signal.SIGTERM, signal.SIGCHLD)
    saved = {sig: signal.getsignal(sig) for sig in watched}
    yield
    for sig, handler in saved.items():
        if handler is not None:
            signal.signal(sig, handler)
