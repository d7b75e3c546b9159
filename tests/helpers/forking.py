# forkguard - Self-Supervising Process Watchdog
# Copyright (C) 2026 forkguard Authors
# SPDX-License-Identifier: Apache-2.0
"""Helpers for running scripted workers in forked children."""

from __future__ import annotations

import os
import signal
import time
from collections.abc import Callable

from forkguard.protocol import ControlMessage, encode
from forkguard.supervisor.channel import Channel

# Exit code used when a scripted child body raises.
CHILD_CRASHED = 70


def fork_worker(channel: Channel, body: Callable[[Channel], int | None]) -> int:
    """Fork a child that runs *body* with the worker end of *channel*.

    The child never returns into pytest: it leaves through ``os._exit``
    with the body's return value (default 0).
    """
    pid = os.fork()
    if pid == 0:
        code = CHILD_CRASHED
        try:
            channel.close_supervisor_end()
            code = body(channel) or 0
        finally:
            os._exit(code)
    channel.close_worker_end()
    return pid


def sends(*messages: ControlMessage, then_exit: int = 0, linger: float = 0.0):
    """Body that sends *messages*, optionally lingers, then exits."""

    def body(chan: Channel) -> int:
        if messages:
            chan.send(encode(*messages))
        if linger:
            time.sleep(linger)
        return then_exit

    return body


def hangs(*prefix: bytes, seconds: float = 30.0):
    """Body that writes raw *prefix* bytes and then stops responding."""

    def body(chan: Channel) -> int:
        for chunk in prefix:
            chan.send(chunk)
        time.sleep(seconds)
        return 0

    return body


def dies_by(sig: int, *messages: ControlMessage):
    """Body that sends *messages* and then kills itself with *sig*."""

    def body(chan: Channel) -> int:
        if messages:
            chan.send(encode(*messages))
        signal.signal(sig, signal.SIG_DFL)
        os.kill(os.getpid(), sig)
        time.sleep(30)
        return 0

    return body
