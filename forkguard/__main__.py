# forkguard - Self-Supervising Process Watchdog
# Copyright (C) 2026 forkguard Authors
# SPDX-License-Identifier: Apache-2.0

from forkguard.cli import cli_main

if __name__ == "__main__":  # pragma: no cover - CLI bootstrap
    cli_main()
