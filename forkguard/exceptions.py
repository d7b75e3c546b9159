from __future__ import annotations
# forkguard - Self-Supervising Process Watchdog
# Copyright (C) 2026 forkguard Authors
# SPDX-License-Identifier: Apache-2.0

"""Unified exception hierarchy for forkguard.

All domain-specific exceptions derive from :class:`ForkGuardError`,
enabling callers to catch the entire family with a single clause::

    try:
        forkguard.activate("heartbeat=120")
    except ForkGuardError as e:
        logger.error("Watchdog error: %s", e)

Protocol violations, heartbeat timeouts, fork failures and worker crashes
are resolved inside the supervisor and are never raised.
"""


class ForkGuardError(Exception):
    """Base exception for all forkguard errors."""


# ── Setup ────────────────────────────────────────────────────


class ChannelError(ForkGuardError):
    """The supervisor/worker channel could not be created."""


# ── Worker ───────────────────────────────────────────────────


class WorkerError(ForkGuardError):
    """Worker-side control API errors."""


class NotActivatedError(WorkerError):
    """Control API used before the watchdog was activated."""


# ── Configuration ────────────────────────────────────────────


class ConfigError(ForkGuardError):
    """Configuration errors."""


class ConfigValidationError(ConfigError):
    """Unknown or invalid watchdog option."""
