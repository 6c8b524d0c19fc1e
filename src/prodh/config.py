"""Runtime settings and logging setup for prodh."""

import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

from textual.logging import TextualHandler

from prodh.errors import ConfigurationError

T = TypeVar("T")

ENV_PREFIX = "PRODH_"

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _positive_float(raw: str) -> float:
    value = float(raw)
    if value < 0:
        raise ValueError(raw)
    return value


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value <= 0:
        raise ValueError(raw)
    return value


def _log_level(raw: str) -> str:
    level = raw.strip().upper()
    if level not in logging.getLevelNamesMapping():
        raise ValueError(raw)
    return level


@dataclass(slots=True, frozen=True)
class Settings:
    """Tunable values for the monitor, the runner and the UI."""

    refresh_interval: float = 5.0
    completion_delay: float = 2.0
    status_clear_delay: float = 2.0
    output_window: int = 15
    process_keyword: str = "node"
    process_table_limit: int = 10
    command_timeout: float | None = None
    log_level: str = "WARNING"
    log_file: Path | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Build settings from PRODH_* environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Raises:
            ConfigurationError: If a variable is set to an unusable value.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def read(name: str, cast: Callable[[str], T], default: T, expected: str) -> T:
            key = ENV_PREFIX + name
            raw = env.get(key)
            if raw is None or not raw.strip():
                return default
            try:
                return cast(raw.strip())
            except (TypeError, ValueError) as exc:
                raise ConfigurationError.invalid_value(key, raw, expected) from exc

        timeout = read("COMMAND_TIMEOUT", _positive_float, -1.0, "a non-negative number")
        log_file = env.get(ENV_PREFIX + "LOG_FILE", "").strip()

        return cls(
            refresh_interval=read(
                "REFRESH_INTERVAL", _positive_float, defaults.refresh_interval, "a non-negative number"
            ),
            completion_delay=read(
                "COMPLETION_DELAY", _positive_float, defaults.completion_delay, "a non-negative number"
            ),
            status_clear_delay=read(
                "STATUS_CLEAR_DELAY", _positive_float, defaults.status_clear_delay, "a non-negative number"
            ),
            output_window=read("OUTPUT_WINDOW", _positive_int, defaults.output_window, "a positive integer"),
            process_keyword=env.get(ENV_PREFIX + "PROCESS_KEYWORD", "").strip() or defaults.process_keyword,
            process_table_limit=read(
                "PROCESS_LIMIT", _positive_int, defaults.process_table_limit, "a positive integer"
            ),
            command_timeout=None if timeout < 0 else timeout,
            log_level=read("LOG_LEVEL", _log_level, defaults.log_level, "a logging level name"),
            log_file=Path(log_file) if log_file else None,
        )


def configure_logging(settings: Settings) -> None:
    """
    Route log records to the Textual devtools console and an optional file.

    The terminal belongs to the TUI, so nothing is written to stderr.
    """
    handlers: list[logging.Handler] = [TextualHandler()]
    if settings.log_file is not None:
        file_handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        handlers.append(file_handler)

    logging.basicConfig(level=settings.log_level, handlers=handlers, force=True)
