# forkguard - Self-Supervising Process Watchdog
# Copyright (C) 2026 forkguard Authors
# SPDX-License-Identifier: Apache-2.0
"""Fork loop that splits the process into supervisor and worker.

Each pass creates a fresh channel and forks. The child restores the
descriptor offsets captured before the first fork and returns to the host
program as the worker. The parent supervises that worker and either forks
the next generation or terminates the way the worker did.
"""

from __future__ import annotations

import logging
import os
import signal
import time

from forkguard.logging_config import set_process_role
from forkguard.offsets import OffsetSnapshot, sync_open_streams
from forkguard.supervisor.channel import Channel
from forkguard.supervisor.session import OutcomeAction, SupervisorSession, replicate_exit
from forkguard.worker import Worker

logger = logging.getLogger(__name__)

FORK_RETRY_DELAY = 1.0


class Bootstrap:
    """Repeatedly fork until this process image becomes a worker."""

    def __init__(
        self,
        snapshot: OffsetSnapshot | None = None,
        fork_retry_delay: float = FORK_RETRY_DELAY,
    ) -> None:
        self.snapshot = snapshot
        self.fork_retry_delay = fork_retry_delay
        self.generation = 0

    def run(self) -> Worker:
        """Return only in the worker; the supervisor never returns.

        Raises:
            ChannelError: If the channel cannot be created.
        """
        if self.snapshot is None:
            self.snapshot = OffsetSnapshot.capture()

        while True:
            channel = Channel.create()

            # Pending output must reach the kernel once, not once per process.
            sync_open_streams()
            previous_sigchld = signal.signal(signal.SIGCHLD, signal.SIG_DFL)

            try:
                pid = os.fork()
            except OSError as e:
                logger.warning("fork failed: '%s', retrying in one second...", e)
                channel.close()
                _restore_sigchld(previous_sigchld)
                time.sleep(self.fork_retry_delay)
                continue

            if pid == 0:
                set_process_role("worker", self.generation)
                self.snapshot.restore()
                channel.close_supervisor_end()
                _restore_sigchld(previous_sigchld)
                return Worker(channel, generation=self.generation)

            channel.close_worker_end()
            set_process_role("supervisor", self.generation)
            session = SupervisorSession(pid, channel, generation=self.generation)
            outcome = session.run()
            _restore_sigchld(previous_sigchld)

            if outcome.action is not OutcomeAction.RESTART:
                replicate_exit(outcome)

            self.generation += 1
            logger.info("Forking worker generation %d", self.generation)


def _restore_sigchld(handler) -> None:
    # None means the handler was installed outside Python
    signal.signal(signal.SIGCHLD, handler if handler is not None else signal.SIG_DFL)
