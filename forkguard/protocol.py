"""
Control protocol spoken by the worker to its supervisor.

Every message is a single opcode byte, optionally followed by one payload
byte carrying a number of seconds (1-255).
"""

# forkguard - Self-Supervising Process Watchdog
# Copyright (C) 2026 forkguard Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

# ── Constants ──────────────────────────────────────────────────
MIN_SECONDS = 1
MAX_SECONDS = 255
DEFAULT_RESTART_TIMEOUT = 60
DEFAULT_HEARTBEAT_INTERVAL = 60


class Opcode(IntEnum):
    """Opcodes understood by the supervisor. Bytes >= 5 are invalid."""

    DISABLE_AUTORESTART = 0
    ENABLE_AUTORESTART = 1
    RESTART = 2
    SET_HEARTBEAT = 3
    HEARTBEAT = 4

    @property
    def has_payload(self) -> bool:
        return self in (Opcode.RESTART, Opcode.SET_HEARTBEAT)


def clamp_seconds(value: float | None, default: int = DEFAULT_RESTART_TIMEOUT) -> int:
    """Clamp a timeout or interval to the single-byte range [1, 255].

    ``None`` selects *default*. Fractional values are truncated.
    """
    if value is None:
        value = default
    seconds = int(value)
    if seconds < MIN_SECONDS:
        return MIN_SECONDS
    if seconds > MAX_SECONDS:
        return MAX_SECONDS
    return seconds


# ── Protocol Types ──────────────────────────────────────────────────

@dataclass(frozen=True)
class ControlMessage:
    """A single worker-to-supervisor message."""

    opcode: Opcode
    payload: int | None = None

    def __post_init__(self) -> None:
        if self.opcode.has_payload and self.payload is None:
            raise ValueError(f"{self.opcode.name} requires a payload byte")
        if not self.opcode.has_payload and self.payload is not None:
            raise ValueError(f"{self.opcode.name} carries no payload")
        if self.payload is not None and not MIN_SECONDS <= self.payload <= MAX_SECONDS:
            raise ValueError(f"payload out of range: {self.payload}")

    def to_bytes(self) -> bytes:
        """Serialize to wire bytes."""
        if self.payload is None:
            return bytes((self.opcode,))
        return bytes((self.opcode, self.payload))

    # ── Constructors ────────────────────────────────────────

    @classmethod
    def autorestart(cls, enabled: bool = True) -> ControlMessage:
        return cls(Opcode.ENABLE_AUTORESTART if enabled else Opcode.DISABLE_AUTORESTART)

    @classmethod
    def restart(cls, timeout: float | None = None) -> ControlMessage:
        return cls(Opcode.RESTART, clamp_seconds(timeout, DEFAULT_RESTART_TIMEOUT))

    @classmethod
    def set_heartbeat(cls, interval: float | None = None) -> ControlMessage:
        return cls(Opcode.SET_HEARTBEAT, clamp_seconds(interval, DEFAULT_HEARTBEAT_INTERVAL))

    @classmethod
    def heartbeat(cls) -> ControlMessage:
        return cls(Opcode.HEARTBEAT)


def encode(*messages: ControlMessage) -> bytes:
    """Concatenate messages so they are sent with a single write."""
    return b"".join(message.to_bytes() for message in messages)


def decode_opcode(value: int) -> Opcode | None:
    """Map a received byte to an opcode, or ``None`` for a protocol violation."""
    try:
        return Opcode(value)
    except ValueError:
        return None
