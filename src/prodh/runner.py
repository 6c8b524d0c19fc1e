"""Package-manager script runner for prodh."""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from datetime import datetime

from prodh.errors import RunStateError
from prodh.models import CommandRun, RunStatus

logger = logging.getLogger(__name__)

# Bytes read from a child stream at a time; lines may be any length
READ_CHUNK_SIZE = 64 * 1024


class CommandRunner:
    """
    Runs `<package manager> run <command> [args...]` once and streams output.

    Output lines from stdout and stderr are appended to a CommandRun as they
    arrive. When the child exits, the run finishes as SUCCESS (exit code 0)
    or ERROR (anything else, including a launch failure), and on_complete is
    scheduled after completion_delay so the result can be read on screen.
    """

    def __init__(
        self,
        command: str,
        package_manager: str,
        args: Sequence[str] = (),
        on_update: Callable[[CommandRun], None] | None = None,
        on_complete: Callable[[int], None] | None = None,
        completion_delay: float = 2.0,
    ) -> None:
        """
        Initialize the CommandRunner.

        Args:
            command: Script name to run.
            package_manager: Executable of the package manager (npm, pnpm, ...).
            args: Extra arguments passed after the script name.
            on_update: Called with the run after every output line and on finish.
            on_complete: Called with the exit code once the display delay passed.
            completion_delay: Seconds between finishing and on_complete.
        """
        self._args = list(args)
        self._on_update = on_update
        self._on_complete = on_complete
        self._completion_delay = max(0.0, completion_delay)
        self._command_run = CommandRun(command=command, package_manager=package_manager)
        self._completion: asyncio.TimerHandle | None = None
        self._started = False

    @property
    def command_run(self) -> CommandRun:
        """Get the run record."""
        return self._command_run

    @property
    def argv(self) -> list[str]:
        """Get the full command line that is spawned."""
        run = self._command_run
        return [run.package_manager, "run", run.command, *self._args]

    @property
    def completion_pending(self) -> bool:
        """Check if on_complete is scheduled and has not fired yet."""
        return self._completion is not None

    async def run(self) -> CommandRun:
        """
        Spawn the command and wait for it to exit.

        Waits without a time limit. Returns the finished run; on_complete
        fires later, after the completion delay.

        Raises:
            RunStateError: If this runner was already used.
        """
        if self._started:
            raise RunStateError.already_started(self._command_run.command)
        self._started = True

        argv = self.argv
        self._command_run.started_at = datetime.now()
        started = time.monotonic()
        logger.info("Running %s", " ".join(argv))

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            self._append(f"Error: {exc}")
            self._finish(RunStatus.ERROR, started, None)
            return self._command_run

        try:
            await asyncio.gather(self._pump(proc.stdout), self._pump(proc.stderr))
        except OSError as exc:
            logger.warning("Reading output of %s failed: %s", " ".join(argv), exc)
            self._append(f"Error: {exc}")
        returncode = await proc.wait()

        if returncode == 0:
            self._finish(RunStatus.SUCCESS, started, returncode)
        else:
            self._append(f"Error: Command failed with exit code {returncode}: {' '.join(argv)}")
            self._finish(RunStatus.ERROR, started, returncode)
        return self._command_run

    def cancel(self) -> None:
        """Drop a pending on_complete call, e.g. when the view is closed early."""
        if self._completion is not None:
            self._completion.cancel()
            self._completion = None

    async def _pump(self, stream: asyncio.StreamReader | None) -> None:
        """Append every non-empty line of a child stream in arrival order."""
        if stream is None:
            return
        buffer = b""
        while chunk := await stream.read(READ_CHUNK_SIZE):
            *lines, buffer = (buffer + chunk).split(b"\n")
            for raw in lines:
                self._append_raw(raw)
        self._append_raw(buffer)

    def _append_raw(self, raw: bytes) -> None:
        line = raw.decode("utf-8", errors="replace").rstrip("\r")
        if line:
            self._append(line)

    def _append(self, line: str) -> None:
        self._command_run.output_lines.append(line)
        self._notify()

    def _finish(self, status: RunStatus, started: float, exit_code: int | None) -> None:
        duration_ms = int((time.monotonic() - started) * 1000)
        self._command_run.finish(status, duration_ms, exit_code)
        logger.info(
            "%s run %s finished with %s in %s",
            self._command_run.package_manager,
            self._command_run.command,
            status.value,
            self._command_run.duration_display,
        )
        self._notify()

        final_code = exit_code if exit_code is not None else 0
        loop = asyncio.get_running_loop()
        self._completion = loop.call_later(self._completion_delay, self._complete, final_code)

    def _complete(self, exit_code: int) -> None:
        self._completion = None
        if self._on_complete is not None:
            self._on_complete(exit_code)

    def _notify(self) -> None:
        if self._on_update is not None:
            self._on_update(self._command_run)
