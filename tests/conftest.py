"""Shared fixtures and query doubles for prodh tests."""

import asyncio
import os
import stat
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from prodh.errors import QueryError
from prodh.models import ProcessRecord

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell scripts")


def make_record(pid: int, command: str = "node server.js") -> ProcessRecord:
    """Build a ProcessRecord with fixed usage columns."""
    return ProcessRecord(pid=pid, port=None, command_line=command, cpu_percent="1.5", memory_percent="0.7")


class FakeQuery:
    """In-memory stand-in for ProcessQuery that records every call."""

    def __init__(
        self,
        listeners: dict[int, int] | None = None,
        processes: list[ProcessRecord] | None = None,
        fail: bool = False,
    ) -> None:
        self.listeners = dict(listeners or {})
        self.processes = list(processes or [])
        self.fail = fail
        self.list_calls = 0
        self.port_calls: list[int] = []
        # When set, list_processes waits for it before answering
        self.gate: asyncio.Event | None = None

    async def list_processes(self) -> list[ProcessRecord]:
        self.list_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise QueryError("ps exploded")
        return list(self.processes)

    async def find_listener_pid(self, port: int) -> int | None:
        self.port_calls.append(port)
        if self.fail:
            raise QueryError("lsof exploded")
        return self.listeners.get(port)

    async def describe_listener(self, port: int) -> ProcessRecord | None:
        pid = self.listeners.get(port)
        if pid is None:
            return None
        return ProcessRecord(pid=pid, port=port, command_line="node", cpu_percent="0.0", memory_percent="0.0")

    async def docker_running(self) -> bool:
        return False

    async def docker_containers(self) -> list[str]:
        return []


class SignalRecorder:
    """Stand-in for send_kill that records PIDs instead of signalling them."""

    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.pids: list[int] = []

    def __call__(self, pid: int) -> bool:
        self.pids.append(pid)
        return self.accept


@pytest.fixture
def fake_query() -> FakeQuery:
    """Query double with pid 111 listening on port 3000."""
    return FakeQuery(
        listeners={3000: 111},
        processes=[make_record(111, "node dev-server.js"), make_record(222, "node worker.js")],
    )


@pytest.fixture
def signal_recorder() -> SignalRecorder:
    return SignalRecorder()


@pytest.fixture
def fake_bin(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Callable[[str, str], Path]:
    """
    Directory of fake executables placed first on PATH.

    Returns a function that writes an executable shell script and returns its path.
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")

    def write(name: str, body: str) -> Path:
        script = bin_dir / name
        script.write_text(f"#!/bin/sh\n{body}\n")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return write
