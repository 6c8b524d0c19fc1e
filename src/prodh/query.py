"""OS process and port inspection for prodh."""

import asyncio
import contextlib
import logging

from prodh.errors import QueryError
from prodh.models import ProcessRecord

logger = logging.getLogger(__name__)

# ps aux columns: USER PID %CPU %MEM VSZ RSS TTY STAT START TIME COMMAND
PS_COMMAND_COLUMN = 10


def parse_ps_output(
    output: str,
    keyword: str,
    exclude_pids: frozenset[int] = frozenset(),
) -> list[ProcessRecord]:
    """
    Parse `ps aux` output into records whose command mentions keyword.

    Lines that are too short or whose PID column is not a number (such as
    the header) are skipped. Rows for excluded PIDs and grep invocations are
    dropped so the query never reports itself.
    """
    records: list[ProcessRecord] = []
    for line in output.splitlines():
        parts = line.split(None, PS_COMMAND_COLUMN)
        if len(parts) <= PS_COMMAND_COLUMN:
            continue

        command = parts[PS_COMMAND_COLUMN].strip()
        if keyword not in command or command.split()[0].endswith("grep"):
            continue

        try:
            pid = int(parts[1])
        except ValueError:
            continue
        if pid in exclude_pids:
            continue

        records.append(
            ProcessRecord(
                pid=pid,
                port=None,
                command_line=command,
                cpu_percent=parts[2],
                memory_percent=parts[3],
            )
        )
    return records


def parse_lsof_pids(output: str) -> list[int]:
    """Parse the PID-per-line output of `lsof -t`."""
    pids: list[int] = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            pid = int(line)
        except ValueError:
            continue
        if pid not in pids:
            pids.append(pid)
    return pids


def parse_lsof_listener(output: str, port: int) -> ProcessRecord | None:
    """Parse the first data row of full `lsof -Pi :port` output."""
    lines = output.strip().splitlines()
    if len(lines) < 2:
        return None

    parts = lines[1].split()
    if len(parts) < 2:
        return None
    try:
        pid = int(parts[1])
    except ValueError:
        return None

    return ProcessRecord(
        pid=pid,
        port=port,
        command_line=parts[0],
        cpu_percent="0.0",
        memory_percent="0.0",
    )


class ProcessQuery:
    """
    Runs OS inspection commands and turns their output into records.

    Every public method is fail-soft: a missing command, a permission error,
    a non-zero exit or a timeout is logged and mapped to an empty result.
    """

    def __init__(self, keyword: str = "node", command_timeout: float | None = None) -> None:
        """
        Initialize the ProcessQuery.

        Args:
            keyword: Substring a command line must contain to be listed.
            command_timeout: Optional limit for each external command (seconds).
                None leaves the bound to the command itself.
        """
        self.keyword = keyword
        self.command_timeout = command_timeout

    async def list_processes(self) -> list[ProcessRecord]:
        """List processes whose command line mentions the runtime keyword."""
        try:
            output, own_pid = await self._run_with_pid("ps", "aux")
        except QueryError as exc:
            logger.debug("Process listing unavailable: %s", exc)
            return []
        return parse_ps_output(output, self.keyword, exclude_pids=frozenset({own_pid}))

    async def find_listener_pid(self, port: int) -> int | None:
        """Get the PID listening on a TCP port, or None if there is none."""
        try:
            output = await self._run("lsof", "-Pi", f":{port}", "-sTCP:LISTEN", "-t")
        except QueryError as exc:
            logger.debug("No listener resolved for port %d: %s", port, exc)
            return None
        pids = parse_lsof_pids(output)
        return pids[0] if pids else None

    async def describe_listener(self, port: int) -> ProcessRecord | None:
        """Get the command name and PID of the listener on a port."""
        try:
            output = await self._run("lsof", "-Pi", f":{port}", "-sTCP:LISTEN")
        except QueryError as exc:
            logger.debug("No listener described for port %d: %s", port, exc)
            return None
        return parse_lsof_listener(output, port)

    async def docker_running(self) -> bool:
        """Check if the docker daemon answers `docker ps`."""
        try:
            await self._run("docker", "ps")
        except QueryError as exc:
            logger.debug("Docker unavailable: %s", exc)
            return False
        return True

    async def docker_containers(self) -> list[str]:
        """Get the names of running docker containers."""
        try:
            output = await self._run("docker", "ps", "--format", "{{.Names}}")
        except QueryError as exc:
            logger.debug("Docker containers unavailable: %s", exc)
            return []
        return [name for name in output.splitlines() if name.strip()]

    async def _run(self, *argv: str) -> str:
        output, _ = await self._run_with_pid(*argv)
        return output

    async def _run_with_pid(self, *argv: str) -> tuple[str, int]:
        """
        Run a command and return its stdout together with its PID.

        Raises:
            QueryError: If the command cannot be started, times out or exits
                with a non-zero status.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            raise QueryError.command_missing(argv[0]) from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.command_timeout)
        except asyncio.TimeoutError as exc:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            raise QueryError.timed_out(list(argv), self.command_timeout or 0) from exc

        if proc.returncode != 0:
            raise QueryError.command_failed(
                list(argv), proc.returncode or 0, stderr.decode("utf-8", errors="replace")
            )
        return stdout.decode("utf-8", errors="replace"), proc.pid
