# forkguard - Self-Supervising Process Watchdog
# Copyright (C) 2026 forkguard Authors
# SPDX-License-Identifier: Apache-2.0

"""Watchdog startup options.

Options map one-to-one onto the worker control calls:

- ``autorestart[=bool]`` -> :meth:`Worker.autorestart`
- ``heartbeat[=seconds]`` -> :meth:`Worker.heartbeat`

They can be given as ``name[=value]`` strings, as keyword arguments, or
through ``FORKGUARD_*`` environment variables. Any other option name is
rejected before the program proceeds.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from forkguard.exceptions import ConfigValidationError
from forkguard.protocol import DEFAULT_HEARTBEAT_INTERVAL

logger = logging.getLogger(__name__)

ENV_PREFIX = "FORKGUARD_"

# Value used when an option is given without ``=value``
_BARE_OPTION_VALUES: dict[str, Any] = {
    "autorestart": True,
    "heartbeat": DEFAULT_HEARTBEAT_INTERVAL,
}


class WatchdogOptions(BaseModel):
    """Options applied in every worker generation.  None = leave untouched."""

    autorestart: bool | None = None
    heartbeat: int | None = None  # seconds, clamped to 1-255 when sent

    model_config = {"extra": "forbid"}

    def merged(self, override: WatchdogOptions) -> WatchdogOptions:
        """Return a copy where fields explicitly set on *override* win."""
        data = self.model_dump()
        data.update(override.model_dump(exclude_unset=True))
        return WatchdogOptions.model_validate(data)


def validate_options(raw: Mapping[str, Any]) -> WatchdogOptions:
    """Validate a mapping of options, raising ConfigValidationError."""
    try:
        return WatchdogOptions.model_validate(dict(raw))
    except ValidationError as exc:
        raise ConfigValidationError(f"Invalid watchdog options {dict(raw)!r}: {exc}") from exc


def parse_option_strings(items: Iterable[str]) -> WatchdogOptions:
    """Parse ``name[=value]`` strings such as ``"heartbeat=120"``."""
    raw: dict[str, Any] = {}
    for item in items:
        name, sep, value = item.partition("=")
        name = name.strip()
        if name not in _BARE_OPTION_VALUES:
            raise ConfigValidationError(f"'{item}' is not a valid watchdog option")
        raw[name] = value.strip() if sep else _BARE_OPTION_VALUES[name]
    return validate_options(raw)


def load_options_from_env(environ: Mapping[str, str] | None = None) -> WatchdogOptions:
    """Read ``FORKGUARD_AUTORESTART`` / ``FORKGUARD_HEARTBEAT``.

    Empty or unset variables are ignored.
    """
    if environ is None:
        environ = os.environ
    raw: dict[str, Any] = {}
    for name in _BARE_OPTION_VALUES:
        value = environ.get(ENV_PREFIX + name.upper(), "").strip()
        if value:
            raw[name] = value
    if raw:
        logger.debug("Watchdog options from environment: %s", raw)
    return validate_options(raw)
