"""Data models for prodh."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from prodh.errors import RunStateError


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable snapshot of one row of the OS process table."""

    pid: int
    port: int | None
    command_line: str
    cpu_percent: str  # As printed by ps, e.g. '0.3'
    memory_percent: str


@dataclass(slots=True, frozen=True)
class PortObservation:
    """Occupancy of a single port of interest."""

    port: int
    in_use: bool


@dataclass(slots=True, frozen=True)
class MonitorSnapshot:
    """
    Live view of monitored processes and ports at one point in time.

    Replaced wholesale on every refresh, never mutated in place.
    """

    processes: tuple[ProcessRecord, ...]
    port_observations: dict[int, bool]
    captured_at: datetime | None
    is_refreshing: bool = False

    @classmethod
    def empty(cls, ports: list[int]) -> "MonitorSnapshot":
        """Create the placeholder snapshot shown before the first refresh."""
        return cls(
            processes=(),
            port_observations={port: False for port in ports},
            captured_at=None,
        )

    def observations(self) -> list[PortObservation]:
        """Get the port map as an ordered list of observations."""
        return [PortObservation(port, in_use) for port, in_use in self.port_observations.items()]


@dataclass(slots=True, frozen=True)
class TerminationOutcome:
    """Result of a single kill attempt on a port."""

    port: int
    succeeded: bool


class RunStatus(Enum):
    """Lifecycle states of a command run."""

    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(slots=True)
class CommandRun:
    """State of one package-manager script invocation."""

    command: str
    package_manager: str
    status: RunStatus = RunStatus.RUNNING
    output_lines: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    duration_ms: int | None = None
    exit_code: int | None = None

    @property
    def is_finished(self) -> bool:
        """Check if the run reached a terminal status."""
        return self.status is not RunStatus.RUNNING

    @property
    def duration_display(self) -> str:
        """Get the duration in seconds with two decimals, e.g. '1.23s'."""
        if self.duration_ms is None:
            return ""
        return f"{self.duration_ms / 1000:.2f}s"

    def tail(self, count: int = 15) -> list[str]:
        """Get the trailing window of output lines used for display."""
        if count <= 0:
            return []
        return self.output_lines[-count:]

    def finish(self, status: RunStatus, duration_ms: int, exit_code: int | None) -> None:
        """
        Move the run into a terminal status.

        Raises:
            RunStateError: If the run already finished or status is RUNNING.
        """
        if self.is_finished:
            raise RunStateError.already_finished(self.command, self.status.value)
        if status is RunStatus.RUNNING:
            raise RunStateError.not_terminal(self.command)
        self.status = status
        self.duration_ms = duration_ms
        self.exit_code = exit_code
