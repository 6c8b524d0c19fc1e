"""Verification Test: Real listeners - Port reconciliation and termination.

A child process opens a TCP listener on an ephemeral port. The real lsof
query must find it, the port must be reported in use, and force-killing it
must free the port again.
"""

import asyncio
import shutil
import socket
import subprocess
import sys

import pytest

from prodh.ports import kill_port, observe_ports, terminate
from prodh.query import ProcessQuery

pytestmark = pytest.mark.skipif(shutil.which("lsof") is None, reason="needs lsof")

LISTENER = """\
import socket, sys, time
server = socket.socket()
server.bind(("127.0.0.1", 0))
server.listen()
print(server.getsockname()[1], flush=True)
time.sleep(60)
"""


@pytest.fixture
def listener():
    """Child process listening on a free port; yields (process, port)."""
    proc = subprocess.Popen([sys.executable, "-c", LISTENER], stdout=subprocess.PIPE, text=True)
    try:
        port = int(proc.stdout.readline())
        yield proc, port
    finally:
        if proc.poll() is None:
            proc.kill()
        proc.wait(timeout=5)
        proc.stdout.close()


def free_port() -> int:
    """Get a port number that nothing listens on."""
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def wait_until_free(query: ProcessQuery, port: int, timeout: float = 5.0) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if await query.find_listener_pid(port) is None:
            return True
        await asyncio.sleep(0.1)
    return False


class TestRealListeners:
    """Port verification suite tests."""

    @pytest.mark.asyncio
    async def test_listener_is_found(self, listener):
        """Test lsof reports the child as the port's listener."""
        proc, port = listener
        query = ProcessQuery()

        assert await query.find_listener_pid(port) == proc.pid

        owner = await query.describe_listener(port)
        assert owner is not None
        assert owner.pid == proc.pid
        assert owner.port == port

    @pytest.mark.asyncio
    async def test_observe_mixed_ports(self, listener):
        """Test taken and free ports are told apart in one pass."""
        _, port = listener
        other = free_port()

        observations = await observe_ports([port, other], ProcessQuery())

        assert observations == {port: True, other: False}

    @pytest.mark.asyncio
    async def test_kill_frees_port(self, listener):
        """Test force-killing the listener frees the port."""
        proc, port = listener
        query = ProcessQuery()

        assert await kill_port(port, query)
        assert proc.wait(timeout=5) == -9
        assert await wait_until_free(query, port)

        outcome = await terminate(port, query)
        assert not outcome.succeeded

    @pytest.mark.asyncio
    async def test_many_free_ports(self):
        """Test a wide port sweep completes and reports every port."""
        ports = [free_port() for _ in range(25)]

        observations = await asyncio.wait_for(observe_ports(ports, ProcessQuery()), timeout=30)

        assert set(observations) == set(ports)
        assert not any(observations.values())
