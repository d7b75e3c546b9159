# forkguard - Self-Supervising Process Watchdog
# Copyright (C) 2026 forkguard Authors
# SPDX-License-Identifier: Apache-2.0
"""
Worker-side control API.

The worker is the original program, continuing after the fork. It drives
its supervisor by writing control messages to its end of the channel.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Callable
from datetime import datetime, timezone
from typing import NoReturn

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from forkguard.config import WatchdogOptions
from forkguard.exceptions import WorkerError
from forkguard.protocol import DEFAULT_HEARTBEAT_INTERVAL, ControlMessage, clamp_seconds, encode
from forkguard.supervisor.channel import Channel

logger = logging.getLogger(__name__)


# ── Heartbeat Emitter ────────────────────────────────────────────────

class HeartbeatEmitter:
    """
    Periodic heartbeat job on the worker's asyncio event loop.

    The job is a coroutine, so it only runs when the loop gets a chance
    to schedule it. A wedged loop stops the pings, which is exactly what
    the supervisor's deadline detects.
    """

    JOB_ID = "forkguard_heartbeat"

    def __init__(self, send: Callable[[], None]):
        self._send = send
        self.scheduler: AsyncIOScheduler | None = None
        self.interval: int | None = None

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    @property
    def period(self) -> float | None:
        return self.interval / 2 if self.interval is not None else None

    def arm(self, interval: int, event_loop: asyncio.AbstractEventLoop) -> None:
        """Emit a heartbeat now and then every ``interval / 2`` seconds."""
        self.interval = interval
        if self.scheduler is None:
            self.scheduler = AsyncIOScheduler(event_loop=event_loop)

        self.scheduler.add_job(
            self._tick,
            IntervalTrigger(seconds=interval / 2),
            id=self.JOB_ID,
            name="forkguard heartbeat",
            replace_existing=True,
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        logger.debug("Heartbeat emitter armed (period=%.1fs)", interval / 2)

    async def _tick(self) -> None:
        try:
            self._send()
        except WorkerError as e:
            logger.warning("Heartbeat not delivered: %s", e)

    def shutdown(self) -> None:
        """Stop the heartbeat job, also after its event loop has finished."""
        scheduler, self.scheduler = self.scheduler, None
        if scheduler is None or not scheduler.running:
            return
        if scheduler._eventloop.is_closed():
            # Nothing left to cancel, and shutdown() would call into the loop
            logger.debug("Event loop closed; dropping heartbeat scheduler")
            return
        scheduler.shutdown(wait=False)


# ── Worker ──────────────────────────────────────────────────────────

class Worker:
    """
    Handle held by the worker process of one generation.

    Usage:
        worker = forkguard.activate()
        worker.autorestart()
        worker.heartbeat(120)
        ...
        worker.restart()        # does not return
    """

    def __init__(self, channel: Channel, generation: int = 0):
        self.channel = channel
        self.generation = generation
        self.emitter = HeartbeatEmitter(self._send_heartbeat)
        self._pending_heartbeat: int | None = None

    def _send(self, *messages: ControlMessage) -> None:
        self.channel.send(encode(*messages))

    def _send_heartbeat(self) -> None:
        self._send(ControlMessage.heartbeat())

    # ── Control API ─────────────────────────────────────────────

    def restart(self, timeout: float | None = None) -> NoReturn:
        """Ask the supervisor for a restart, then exit cleanly.

        The supervisor waits up to *timeout* seconds (1-255, default 60)
        for this process to exit before killing it.
        """
        message = ControlMessage.restart(timeout)
        logger.info("Restart requested (timeout=%ds)", message.payload)
        self._send(ControlMessage.autorestart(True), message)
        sys.exit(0)

    def autorestart(self, enabled: bool = True) -> None:
        """Enable or disable restarting after the program dies.

        A worker stopped by SIGINT or SIGTERM is never restarted.
        """
        self._send(ControlMessage.autorestart(enabled))

    def heartbeat(
        self,
        interval: float | None = None,
        *,
        event_loop: asyncio.AbstractEventLoop | None = None,
    ) -> int:
        """Have the supervisor kill this process if it stops reacting.

        Sends the interval (1-255, default 60) and arms a heartbeat job
        running twice as often on *event_loop*, or on the running loop.
        Without either, the job is armed later by :meth:`attach`.
        Once enabled, the heartbeat cannot be switched off.

        Returns:
            The clamped interval that was sent.
        """
        seconds = clamp_seconds(interval, DEFAULT_HEARTBEAT_INTERVAL)
        self._send(ControlMessage.set_heartbeat(seconds))

        loop = event_loop or _running_loop()
        if loop is None:
            self._pending_heartbeat = seconds
            logger.debug("No running event loop; heartbeat emitter pending attach()")
        else:
            self._pending_heartbeat = None
            self.emitter.arm(seconds, loop)
        return seconds

    def attach(self, event_loop: asyncio.AbstractEventLoop | None = None) -> bool:
        """Start a pending heartbeat emitter on the given or running loop.

        Returns:
            True if an emitter was armed.
        """
        if self._pending_heartbeat is None:
            return False
        loop = event_loop or _running_loop()
        if loop is None:
            raise WorkerError("attach() needs an event loop to run the heartbeat on")
        self.emitter.arm(self._pending_heartbeat, loop)
        self._pending_heartbeat = None
        return True

    def apply_options(self, options: WatchdogOptions) -> None:
        if options.autorestart is not None:
            self.autorestart(options.autorestart)
        if options.heartbeat is not None:
            self.heartbeat(options.heartbeat)

    @property
    def heartbeat_pending(self) -> bool:
        return self._pending_heartbeat is not None

    def close(self) -> None:
        self.emitter.shutdown()
        self.channel.close_worker_end()


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
