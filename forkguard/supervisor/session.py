"""
Supervisor session - owns one worker generation's lifecycle.
"""

# forkguard - Self-Supervising Process Watchdog
# Copyright (C) 2026 forkguard Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import os
import signal
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import NoReturn

from forkguard.protocol import Opcode, decode_opcode
from forkguard.supervisor.channel import Channel

logger = logging.getLogger(__name__)

# Signals meant for the worker; the supervisor ignores them while supervising.
MASKED_SIGNALS = (signal.SIGHUP, signal.SIGINT, signal.SIGTERM)

# A worker killed by one of these was stopped on purpose and is never restarted.
STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


# ── Outcome ──────────────────────────────────────────────────────

class OutcomeAction(Enum):
    """What the supervisor does once the worker is gone."""
    RESTART = "restart"    # Fork the next generation
    EXIT = "exit"          # Exit with the worker's exit code
    SIGNAL = "signal"      # Die by the worker's terminating signal


@dataclass(frozen=True)
class Outcome:
    """Result of a supervisor session."""
    action: OutcomeAction
    status: int
    exit_code: int | None = None
    signal: int | None = None


@contextmanager
def masked_signals(signals: tuple[int, ...] = MASKED_SIGNALS) -> Iterator[None]:
    """Ignore *signals* for the duration of the block, then restore them."""
    previous = {sig: signal.signal(sig, signal.SIG_IGN) for sig in signals}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)


# ── Supervisor Session ─────────────────────────────────────────────

class SupervisorSession:
    """
    Supervisor side of one worker generation.

    Reads control messages from the worker, enforces the heartbeat
    deadline, and turns the worker's termination into an :class:`Outcome`.

    Responsibilities:
    - Autorestart flag (reset for every generation)
    - Heartbeat interval (first value sticks for the generation)
    - Forceful kill on restart timeout, heartbeat timeout, or bad input
    - Translation of the wait status into restart / exit / signal
    """

    def __init__(self, pid: int, channel: Channel, generation: int = 0):
        self.pid = pid
        self.channel = channel
        self.generation = generation

        self.autorestart = False
        self.heartbeat: int | None = None
        self.expected = False
        self.kills = 0

    def run(self) -> Outcome:
        """Supervise the worker until it exits. Runs exactly once."""
        logger.debug("Supervising worker PID %d (generation %d)", self.pid, self.generation)
        with masked_signals():
            try:
                self._control_loop()
            finally:
                self.channel.close_supervisor_end()
            return self._reap()

    # ── Control loop ─────────────────────────────────────────────

    def _control_loop(self) -> None:
        while True:
            if self.heartbeat is not None:
                if not self.channel.wait_readable(self.heartbeat):
                    self.expected = True
                    logger.warning("heartbeat failed. killing worker PID %d.", self.pid)
                    self._kill()
                    return

            raw = self.channel.read_byte()
            if raw is None:
                return

            opcode = decode_opcode(raw)
            if opcode is None:
                logger.warning("unexpected program output (0x%02x). killing.", raw)
                self._kill()
                return

            if opcode is Opcode.DISABLE_AUTORESTART:
                self.autorestart = False

            elif opcode is Opcode.ENABLE_AUTORESTART:
                self.autorestart = True

            elif opcode is Opcode.RESTART:
                timeout = self.channel.read_byte()
                if timeout is None:
                    return
                self._await_restart(timeout)
                return

            elif opcode is Opcode.SET_HEARTBEAT:
                interval = self.channel.read_byte()
                if interval is None:
                    return
                if self.heartbeat is None:
                    self.heartbeat = interval
                    logger.debug("Heartbeat interval set to %ds", interval)

            elif opcode is Opcode.HEARTBEAT:
                # Any received byte already restarts the bounded wait above.
                pass

    def _await_restart(self, timeout: int) -> None:
        """Give the worker *timeout* seconds to exit after a restart request."""
        if not self.channel.wait_readable(timeout):
            logger.warning(
                "program attempted restart, but failed to do so within %d seconds. killing.",
                timeout,
            )
            self._kill()

        if self.channel.read_byte() is not None:
            logger.warning("unexpected program output after restart request. killing.")
            self._kill()

        self.expected = True

    def _kill(self) -> None:
        try:
            os.kill(self.pid, signal.SIGKILL)
        except ProcessLookupError:
            logger.debug("Worker PID %d already gone", self.pid)
        self.kills += 1

    # ── Exit handling ────────────────────────────────────────────

    def _reap(self) -> Outcome:
        _, status = os.waitpid(self.pid, 0)

        termsig = os.WTERMSIG(status) if os.WIFSIGNALED(status) else None
        exit_code = os.WEXITSTATUS(status) if os.WIFEXITED(status) else None

        if termsig in STOP_SIGNALS:
            self.autorestart = False
            self.expected = True

        if not self.expected and exit_code:
            logger.warning("program exited unexpectedly with status %d.", exit_code)

        if self.autorestart:
            logger.warning("attempting automatic restart.")
            return Outcome(OutcomeAction.RESTART, status, exit_code=exit_code, signal=termsig)

        if termsig:
            return Outcome(OutcomeAction.SIGNAL, status, signal=termsig)
        return Outcome(OutcomeAction.EXIT, status, exit_code=exit_code or 0)


def replicate_exit(outcome: Outcome) -> NoReturn:
    """Terminate the supervisor exactly the way its worker terminated."""
    if outcome.action is OutcomeAction.SIGNAL and outcome.signal:
        for sig in signal.valid_signals():
            try:
                signal.signal(sig, signal.SIG_DFL)
            except (OSError, ValueError):
                # SIGKILL, SIGSTOP and realtime slots cannot be reset
                continue
        signal.pthread_sigmask(signal.SIG_UNBLOCK, [outcome.signal])
        os.kill(os.getpid(), outcome.signal)
        os._exit(127)
    os._exit(outcome.exit_code or 0)
