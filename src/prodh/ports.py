"""Port occupancy checks and port-owner termination."""

import asyncio
import logging
from collections.abc import Callable, Iterable

import psutil

from prodh.models import TerminationOutcome
from prodh.query import ProcessQuery

logger = logging.getLogger(__name__)


async def observe_ports(ports: Iterable[int], query: ProcessQuery) -> dict[int, bool]:
    """
    Check every port for a TCP listener concurrently.

    The returned mapping has exactly one key per distinct port, in the given
    order. A check that raises counts as not in use.
    """
    unique_ports = list(dict.fromkeys(ports))
    results = await asyncio.gather(
        *(query.find_listener_pid(port) for port in unique_ports),
        return_exceptions=True,
    )

    observations: dict[int, bool] = {}
    for port, result in zip(unique_ports, results):
        if isinstance(result, BaseException):
            logger.debug("Port %d check failed: %r", port, result)
            observations[port] = False
        else:
            observations[port] = result is not None
    return observations


def send_kill(pid: int) -> bool:
    """
    Send SIGKILL to a process.

    Returns False when the process is already gone or may not be signalled.
    """
    try:
        psutil.Process(pid).kill()
    except (psutil.NoSuchProcess, psutil.AccessDenied) as exc:
        logger.info("Kill of pid %d rejected: %s", pid, exc)
        return False
    return True


async def kill_port(
    port: int,
    query: ProcessQuery,
    signal_process: Callable[[int], bool] = send_kill,
) -> bool:
    """
    Force-kill the process listening on a port.

    Exactly one signal is sent per call, and none when nothing listens.

    Args:
        port: TCP port whose listener should be killed.
        query: Query layer used to resolve the listener PID.
        signal_process: Callable that signals a PID and reports acceptance.

    Returns:
        True if a listener was found and the signal was accepted.
    """
    pid = await query.find_listener_pid(port)
    if pid is None:
        logger.info("No listener on port %d, nothing to kill", port)
        return False

    succeeded = signal_process(pid)
    if succeeded:
        logger.info("Killed pid %d listening on port %d", pid, port)
    return succeeded


async def terminate(
    port: int,
    query: ProcessQuery,
    signal_process: Callable[[int], bool] = send_kill,
) -> TerminationOutcome:
    """Run kill_port and wrap its result for display."""
    succeeded = await kill_port(port, query, signal_process)
    return TerminationOutcome(port=port, succeeded=succeeded)
