# forkguard - Self-Supervising Process Watchdog
# Copyright (C) 2026 forkguard Authors
# SPDX-License-Identifier: Apache-2.0
"""
Supervisor side of the watchdog.

The supervisor is the parent half of each fork: it owns the channel to
its single worker and decides whether to refork, exit, or die by signal
once that worker is gone.
"""

from __future__ import annotations

from forkguard.supervisor.channel import Channel
from forkguard.supervisor.session import (
    Outcome,
    OutcomeAction,
    SupervisorSession,
    masked_signals,
    replicate_exit,
)

__all__ = [
    "Channel",
    "Outcome",
    "OutcomeAction",
    "SupervisorSession",
    "masked_signals",
    "replicate_exit",
]
