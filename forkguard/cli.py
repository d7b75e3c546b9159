# forkguard - Self-Supervising Process Watchdog
# Copyright (C) 2026 forkguard Authors
# SPDX-License-Identifier: Apache-2.0
"""Run a Python program under the watchdog.

Usage:
    python -m forkguard --autorestart --heartbeat 120 server.py --port 8080
    python -m forkguard -m mypackage.main
"""

from __future__ import annotations

import argparse
import os
import runpy
import sys
from pathlib import Path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="forkguard",
        description="Run a Python program under a self-supervising watchdog",
    )
    parser.add_argument(
        "--autorestart",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Restart the program whenever it dies (default: FORKGUARD_AUTORESTART)",
    )
    parser.add_argument(
        "--heartbeat", type=int, default=None, metavar="SECONDS",
        help=(
            "Kill the program if its event loop stalls this long (1-255). "
            "The program must call forkguard.attach() from inside its running "
            "asyncio loop, or it is killed after one interval"
        ),
    )
    parser.add_argument(
        "--log-level", default=os.environ.get("FORKGUARD_LOG_LEVEL", "INFO"),
    )
    parser.add_argument(
        "--log-dir", type=Path, default=None,
        help="Also write JSON logs to this directory",
    )
    parser.add_argument(
        "-m", dest="module", default=None, metavar="MODULE",
        help="Run library module as a script",
    )
    parser.add_argument(
        "argv", nargs=argparse.REMAINDER,
        help="Script path and its arguments (or module arguments with -m)",
    )
    return parser


def cli_main(argv: list[str] | None = None) -> None:
    from dotenv import find_dotenv, load_dotenv

    load_dotenv(find_dotenv(usecwd=True))

    import forkguard
    from forkguard.config import WatchdogOptions, load_options_from_env, validate_options
    from forkguard.logging_config import setup_logging

    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.module and not args.argv:
        parser.error("a script path or -m MODULE is required")

    setup_logging(level=args.log_level, log_dir=args.log_dir)

    cli_options = {
        name: value
        for name, value in (("autorestart", args.autorestart), ("heartbeat", args.heartbeat))
        if value is not None
    }
    options: WatchdogOptions = load_options_from_env().merged(validate_options(cli_options))

    forkguard.activate(**options.model_dump(exclude_none=True))

    if args.module:
        sys.argv = [args.module, *args.argv]
        runpy.run_module(args.module, run_name="__main__", alter_sys=True)
    else:
        script = args.argv[0]
        sys.argv = list(args.argv)
        sys.path.insert(0, str(Path(script).resolve().parent))
        runpy.run_path(script, run_name="__main__")
