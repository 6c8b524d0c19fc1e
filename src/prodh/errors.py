"""Exception types for prodh."""


class ProdhError(Exception):
    """Base class for prodh errors."""


class QueryError(ProdhError):
    """Raised when an OS inspection command cannot produce usable output."""

    @classmethod
    def command_missing(cls, program: str) -> "QueryError":
        """Create error for a command that is not installed or not executable."""
        return cls(f"{program} is not available on this system")

    @classmethod
    def command_failed(cls, argv: list[str], returncode: int, stderr: str = "") -> "QueryError":
        """Create error for a command that exited with a non-zero status."""
        msg = f"{' '.join(argv)} exited with status {returncode}"
        if stderr:
            msg += f": {stderr.strip()}"
        return cls(msg)

    @classmethod
    def timed_out(cls, argv: list[str], timeout: float) -> "QueryError":
        """Create error for a command that did not finish in time."""
        return cls(f"{' '.join(argv)} did not finish within {timeout:g}s")


class ConfigurationError(ProdhError):
    """Raised when configuration values are malformed."""

    @classmethod
    def invalid_value(cls, name: str, received_value: str, expected: str = "") -> "ConfigurationError":
        """Create error for an environment variable that cannot be used."""
        msg = f"{name} has invalid value (received {received_value!r})"
        if expected:
            msg += f". Expected {expected}"
        return cls(msg)


class RunStateError(ProdhError):
    """Raised on an illegal command run status transition."""

    @classmethod
    def already_started(cls, command: str) -> "RunStateError":
        return cls(f"Run of {command!r} was already started")

    @classmethod
    def already_finished(cls, command: str, status: str) -> "RunStateError":
        return cls(f"Run of {command!r} already finished with status {status}")

    @classmethod
    def not_terminal(cls, command: str) -> "RunStateError":
        return cls(f"Run of {command!r} can only finish with a terminal status")
