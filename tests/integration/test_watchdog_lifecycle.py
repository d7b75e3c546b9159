# forkguard - Self-Supervising Process Watchdog
# Copyright (C) 2026 forkguard Authors
# SPDX-License-Identifier: Apache-2.0
"""Integration tests: whole programs running under the watchdog.

Each test starts a fresh interpreter so the supervisor's final exit
status can be observed from the outside, the way a shell would see it.
"""

from __future__ import annotations

import os
import signal
import subprocess
import sys
import textwrap
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]


def run_program(tmp_path: Path, source: str, timeout: float = 60) -> subprocess.CompletedProcess:
    script = tmp_path / "program.py"
    script.write_text(textwrap.dedent(source))
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(REPO_ROOT), env.get("PYTHONPATH")]))
    return subprocess.run(
        [sys.executable, str(script)],
        cwd=tmp_path,
        env=env,
        capture_output=True,
        text=True,
        timeout=timeout,
    )


def generations(tmp_path: Path) -> list[str]:
    return (tmp_path / "generations.log").read_text().split()


def test_crashing_worker_is_reforked_until_it_gives_up(tmp_path: Path):
    result = run_program(tmp_path, """
        import sys
        import forkguard

        worker = forkguard.activate("autorestart")
        with open("generations.log", "a") as log:
            log.write(f"{worker.generation}\\n")
        if worker.generation < 2:
            sys.exit(1)
        forkguard.autorestart(False)
        sys.exit(7)
    """)

    assert result.returncode == 7
    assert generations(tmp_path) == ["0", "1", "2"]
    assert "attempting automatic restart" in result.stderr


def test_restart_request_starts_next_generation(tmp_path: Path):
    result = run_program(tmp_path, """
        import forkguard

        worker = forkguard.activate()
        with open("generations.log", "a") as log:
            log.write(f"{worker.generation}\\n")
        if worker.generation == 0:
            forkguard.restart(5)
        raise SystemExit(0)
    """)

    assert result.returncode == 0
    assert generations(tmp_path) == ["0", "1"]
    assert "exited unexpectedly" not in result.stderr


def test_terminate_signal_is_replicated_not_restarted(tmp_path: Path):
    result = run_program(tmp_path, """
        import os
        import signal
        import forkguard

        worker = forkguard.activate("autorestart")
        with open("generations.log", "a") as log:
            log.write(f"{worker.generation}\\n")
        os.kill(os.getpid(), signal.SIGTERM)
    """)

    assert result.returncode == -signal.SIGTERM
    assert generations(tmp_path) == ["0"]


def test_stalled_worker_is_killed_by_heartbeat(tmp_path: Path):
    result = run_program(tmp_path, """
        import time
        import forkguard

        forkguard.activate("heartbeat=1")
        # No event loop ever runs, so no heartbeat reaches the supervisor.
        time.sleep(30)
    """)

    assert result.returncode == -signal.SIGKILL
    assert "heartbeat failed" in result.stderr


def test_asyncio_worker_keeps_heartbeat_alive(tmp_path: Path):
    result = run_program(tmp_path, """
        import asyncio
        import forkguard

        forkguard.activate("heartbeat=1")

        async def main():
            forkguard.attach()
            await asyncio.sleep(3)

        asyncio.run(main())
        raise SystemExit(5)
    """)

    assert result.returncode == 5, result.stderr
    assert "heartbeat failed" not in result.stderr


def test_input_offset_is_restored_for_each_generation(tmp_path: Path):
    (tmp_path / "input.txt").write_text("a\nb\nc\nd\n")
    result = run_program(tmp_path, """
        import os
        import sys
        import forkguard

        fd = os.open("input.txt", os.O_RDONLY)
        os.read(fd, 2)

        worker = forkguard.activate("autorestart")
        line = os.read(fd, 2).decode().strip()
        with open("generations.log", "a") as log:
            log.write(f"{worker.generation}:{line}\\n")
        if worker.generation < 2:
            sys.exit(1)
        forkguard.autorestart(False)
    """)

    assert result.returncode == 0
    assert generations(tmp_path) == ["0:b", "1:b", "2:b"]


def test_unknown_option_fails_before_forking(tmp_path: Path):
    result = run_program(tmp_path, """
        import forkguard

        forkguard.activate("restart-on-crash")
    """)

    assert result.returncode == 1
    assert "ConfigValidationError" in result.stderr


@pytest.mark.parametrize("flag", ["--autorestart", "--no-autorestart"])
def test_cli_runs_script_under_watchdog(tmp_path: Path, flag: str):
    target = tmp_path / "target.py"
    target.write_text(textwrap.dedent("""
        import sys
        import forkguard

        worker = forkguard.current_worker()
        with open("generations.log", "a") as log:
            log.write(f"{worker.generation}\\n")
        if worker.generation == 0 and sys.argv[1] == "--autorestart":
            sys.exit(3)
        forkguard.autorestart(False)
        sys.exit(4)
    """))
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(REPO_ROOT), env.get("PYTHONPATH")]))

    result = subprocess.run(
        [sys.executable, "-m", "forkguard", flag, str(target), flag],
        cwd=tmp_path,
        env=env,
        capture_output=True,
        text=True,
        timeout=60,
    )

    assert result.returncode == 4
    expected = ["0", "1"] if flag == "--autorestart" else ["0"]
    assert generations(tmp_path) == expected
