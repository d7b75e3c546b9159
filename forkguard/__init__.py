# forkguard - Self-Supervising Process Watchdog
# Copyright (C) 2026 forkguard Authors
# SPDX-License-Identifier: Apache-2.0
"""
Self-supervising process watchdog.

Activated as the first thing in the main program, forkguard forks the
process: the child continues to run the program as the *worker*, while
the parent stays behind as its *supervisor*. The worker can then ask to
be restarted, opt into restart-on-crash, and enable heartbeat
enforcement::

    import forkguard

    forkguard.activate("autorestart", "heartbeat=300")
    ...
    forkguard.restart()   # e.g. to pick up new code

Only the current worker is tracked at module level; the supervisor state
lives in the :class:`~forkguard.supervisor.SupervisorSession` owned by
the fork loop.
"""

from __future__ import annotations

import asyncio
from typing import Any, NoReturn

from forkguard.bootstrap import Bootstrap
from forkguard.config import WatchdogOptions, parse_option_strings, validate_options
from forkguard.exceptions import (
    ChannelError,
    ConfigError,
    ConfigValidationError,
    ForkGuardError,
    NotActivatedError,
    WorkerError,
)
from forkguard.worker import Worker

__version__ = "0.1.0"

_worker: Worker | None = None


def activate(*option_strings: str, **options: Any) -> Worker:
    """Split into supervisor and worker, then apply *options* in the worker.

    Options are validated before forking, so a bad option never leaves a
    supervisor behind. Calling again in the same worker only applies the
    new options.

    Args:
        *option_strings: ``"autorestart"``, ``"autorestart=0"``,
            ``"heartbeat"``, ``"heartbeat=120"``.
        **options: ``autorestart=`` / ``heartbeat=``, overriding the strings.

    Raises:
        ConfigValidationError: On an unknown or invalid option.
        ChannelError: If the supervisor channel cannot be created.
    """
    global _worker
    parsed = parse_option_strings(option_strings).merged(validate_options(options))
    if _worker is None:
        _worker = Bootstrap().run()
    _worker.apply_options(parsed)
    return _worker


def current_worker() -> Worker:
    if _worker is None:
        raise NotActivatedError("forkguard.activate() has not been called")
    return _worker


def restart(timeout: float | None = None) -> NoReturn:
    current_worker().restart(timeout)


def autorestart(enabled: bool = True) -> None:
    current_worker().autorestart(enabled)


def heartbeat(
    interval: float | None = None,
    *,
    event_loop: asyncio.AbstractEventLoop | None = None,
) -> int:
    return current_worker().heartbeat(interval, event_loop=event_loop)


def attach(event_loop: asyncio.AbstractEventLoop | None = None) -> bool:
    return current_worker().attach(event_loop)


__all__ = [
    "ChannelError",
    "ConfigError",
    "ConfigValidationError",
    "ForkGuardError",
    "NotActivatedError",
    "WatchdogOptions",
    "Worker",
    "WorkerError",
    "activate",
    "attach",
    "autorestart",
    "current_worker",
    "heartbeat",
    "restart",
]
