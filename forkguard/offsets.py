# forkguard - Self-Supervising Process Watchdog
# Copyright (C) 2026 forkguard Authors
# SPDX-License-Identifier: Apache-2.0
"""Descriptor offset preservation across restart generations.

Every worker generation is forked from the same supervisor image, but
file offsets live in the kernel and are shared between all processes
holding the descriptor. Without intervention a second generation would
start reading the program's input files where the first one stopped.

The snapshot is taken once, before the first fork, and re-applied in
each new worker:

- :func:`sync_open_streams` flushes buffered writers so that pending data
  reaches the kernel exactly once instead of once per generation.
- :func:`snapshot_offsets` records ``lseek(fd, 0, SEEK_CUR)`` for every
  open, seekable descriptor.
- :func:`restore_offsets` seeks each recorded descriptor back.

Buffered readers need no special treatment: their in-memory read-ahead is
copied by ``fork()`` together with the rest of the image, so restoring the
raw offset puts each generation back into the exact state of the snapshot.
"""

from __future__ import annotations

import gc
import io
import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

MAX_FD = 1024


def sync_open_streams() -> int:
    """Flush every live, writable Python I/O stream.

    Returns:
        Number of streams flushed.
    """
    flushed = 0
    for obj in gc.get_objects():
        try:
            if not isinstance(obj, io.IOBase):
                continue
            if obj.closed or not obj.writable():
                continue
            obj.flush()
        except (OSError, ValueError, ReferenceError):
            # Detached wrappers, broken pipes and dead proxies
            continue
        flushed += 1
    return flushed


def snapshot_offsets(max_fd: int = MAX_FD) -> dict[int, int]:
    """Record the current offset of every open, seekable descriptor."""
    offsets: dict[int, int] = {}
    for fd in range(max_fd):
        try:
            offsets[fd] = os.lseek(fd, 0, os.SEEK_CUR)
        except OSError:
            # EBADF for closed slots, ESPIPE for pipes/sockets/ttys
            continue
    return offsets


def restore_offsets(offsets: dict[int, int]) -> list[int]:
    """Seek each descriptor back to its recorded offset.

    Descriptors that were closed or replaced by something unseekable in
    the meantime are skipped silently.

    Returns:
        The descriptors that were restored.
    """
    restored: list[int] = []
    for fd, offset in offsets.items():
        try:
            os.lseek(fd, offset, os.SEEK_SET)
        except OSError:
            continue
        restored.append(fd)
    return restored


@dataclass
class OffsetSnapshot:
    """Descriptor offsets captured in the pre-fork process image."""

    offsets: dict[int, int] = field(default_factory=dict)

    @classmethod
    def capture(cls, max_fd: int = MAX_FD) -> OffsetSnapshot:
        flushed = sync_open_streams()
        snapshot = cls(offsets=snapshot_offsets(max_fd))
        logger.debug(
            "Captured %d descriptor offsets (%d streams flushed)",
            len(snapshot.offsets), flushed,
        )
        return snapshot

    def restore(self) -> list[int]:
        return restore_offsets(self.offsets)

    def __contains__(self, fd: object) -> bool:
        return fd in self.offsets

    def __len__(self) -> int:
        return len(self.offsets)
