"""
Duplex channel between supervisor and worker, built on a Unix socket pair.
"""

# forkguard - Self-Supervising Process Watchdog
# Copyright (C) 2026 forkguard Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import select
import socket

from forkguard.exceptions import ChannelError, WorkerError

logger = logging.getLogger(__name__)


class Channel:
    """
    Bidirectional byte stream created before each fork.

    Both processes inherit both endpoints; each side closes the one it
    does not own right after the fork. The supervisor observes the
    worker's exit as end-of-stream on its endpoint.
    """

    def __init__(self, supervisor_end: socket.socket, worker_end: socket.socket):
        self.supervisor_end: socket.socket | None = supervisor_end
        self.worker_end: socket.socket | None = worker_end

    @classmethod
    def create(cls) -> Channel:
        """Create a connected pair, raising ChannelError on failure."""
        try:
            supervisor_end, worker_end = socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)
        except OSError as e:
            raise ChannelError(f"unable to create restarter channel: {e}") from e
        logger.debug(
            "Channel created (supervisor fd=%d, worker fd=%d)",
            supervisor_end.fileno(), worker_end.fileno(),
        )
        return cls(supervisor_end, worker_end)

    # ── Ownership ──────────────────────────────────────────────

    def close_worker_end(self) -> None:
        if self.worker_end is not None:
            self.worker_end.close()
            self.worker_end = None

    def close_supervisor_end(self) -> None:
        if self.supervisor_end is not None:
            self.supervisor_end.close()
            self.supervisor_end = None

    def close(self) -> None:
        self.close_worker_end()
        self.close_supervisor_end()

    # ── Supervisor side ────────────────────────────────────────

    def wait_readable(self, timeout: float) -> bool:
        """Wait up to *timeout* seconds for data or end-of-stream."""
        if self.supervisor_end is None:
            raise RuntimeError("supervisor end is closed")
        readable, _, _ = select.select([self.supervisor_end], [], [], timeout)
        return bool(readable)

    def read_byte(self) -> int | None:
        """Read one byte; ``None`` means the worker closed its end."""
        if self.supervisor_end is None:
            raise RuntimeError("supervisor end is closed")
        try:
            data = self.supervisor_end.recv(1)
        except ConnectionResetError:
            return None
        if not data:
            return None
        return data[0]

    # ── Worker side ────────────────────────────────────────────

    def send(self, data: bytes) -> None:
        """Write *data* to the supervisor in a single call."""
        if self.worker_end is None:
            raise WorkerError("worker end of the channel is closed")
        try:
            self.worker_end.sendall(data)
        except OSError as e:
            raise WorkerError(f"supervisor channel write failed: {e}") from e
