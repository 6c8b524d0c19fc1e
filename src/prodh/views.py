"""Textual screens for prodh."""

import asyncio
from collections.abc import Callable

from rich.markup import escape
from rich.text import Text
from textual import events
from textual.app import ComposeResult
from textual.containers import Container, Vertical
from textual.css.query import NoMatches
from textual.message import Message
from textual.screen import Screen
from textual.widgets import DataTable, Footer, OptionList, Static
from textual.widgets.option_list import Option

from prodh.config import Settings
from prodh.detection import ProjectInfo, ProjectType, WorkspaceType
from prodh.models import CommandRun, MonitorSnapshot, ProcessRecord, RunStatus, TerminationOutcome
from prodh.monitor import ProcessMonitor
from prodh.ports import send_kill, terminate
from prodh.query import ProcessQuery
from prodh.runner import CommandRunner

COMMAND_WIDTH = 50

PROJECT_TYPE_COLORS = {
    ProjectType.ANGULAR: "red",
    ProjectType.REACT: "cyan",
    ProjectType.NEXT: "white",
    ProjectType.NEST: "magenta",
    ProjectType.VUE: "green",
    ProjectType.NUXT: "green",
    ProjectType.VITE: "yellow",
}

STATUS_COLORS = {
    RunStatus.RUNNING: "yellow",
    RunStatus.SUCCESS: "green",
    RunStatus.ERROR: "red",
}

STATUS_ICONS = {
    RunStatus.RUNNING: "…",
    RunStatus.SUCCESS: "✓",
    RunStatus.ERROR: "✗",
}


def project_rows(info: ProjectInfo) -> list[tuple[str, str]]:
    """Get (label, markup value) pairs describing a project."""
    color = PROJECT_TYPE_COLORS.get(info.project_type, "grey50")
    rows = [
        ("Project Type", f"[bold {color}]{info.project_type.value.upper()}[/]"),
        ("Package Manager", f"[yellow]{info.package_manager.value}[/]"),
    ]
    if info.workspace_type is not WorkspaceType.NONE:
        rows.append(("Workspace", f"[magenta]{info.workspace_type.value}[/]"))
    if info.node_version:
        rows.append(("Node Version", escape(info.node_version)))
    rows.append(("Docker", "[green]✓ Available[/]" if info.has_docker else "[grey50]✗ Not found[/]"))
    rows.append(
        ("Environment", "[green]✓ .env.example[/]" if info.has_env_example else "[grey50]✗ No template[/]")
    )
    rows.append(("Common Ports", f"[blue]{', '.join(str(port) for port in info.ports)}[/]"))
    return rows


def truncate_command(command: str, width: int = COMMAND_WIDTH) -> str:
    """Cut a command line to width characters, marking the cut with '...'."""
    if len(command) <= width:
        return command
    return command[:width] + "..."


def format_last_updated(snapshot: MonitorSnapshot) -> str:
    """Get the 'last updated' line of the monitor header."""
    when = snapshot.captured_at.strftime("%H:%M:%S") if snapshot.captured_at else "never"
    suffix = " [yellow]refreshing…[/]" if snapshot.is_refreshing else ""
    return f"[dim]Last updated: {when}[/]{suffix}"


def format_port_status(snapshot: MonitorSnapshot) -> str:
    """Get one line per monitored port showing whether it is taken."""
    lines = []
    for observation in snapshot.observations():
        state = "[red]🔴 In Use[/]" if observation.in_use else "[green]🟢 Available[/]"
        lines.append(f"Port {observation.port:<6} {state}")
    return "\n".join(lines)


def format_outcome(outcome: TerminationOutcome) -> str:
    """Get the message shown after a kill attempt."""
    if outcome.succeeded:
        return f"[green]✓ Successfully killed process on port {outcome.port}[/]"
    return f"[red]✗ No process found on port {outcome.port}[/]"


class ProjectPanel(Static):
    """Bordered panel summarising the detected project."""

    DEFAULT_CSS = """
    ProjectPanel {
        height: auto;
        border: round $accent;
        padding: 0 1;
    }
    """

    def __init__(self, info: ProjectInfo, *args, **kwargs) -> None:
        """Initialize ProjectPanel."""
        lines = ["[bold]🚀 Project Information[/]", ""]
        lines.extend(f"[dim]{label + ':':<20}[/]{value}" for label, value in project_rows(info))
        super().__init__("\n".join(lines), *args, **kwargs)


class MenuScreen(Screen):
    """Main menu listing the actions available for the project."""

    BINDINGS = [("q", "app.quit", "Quit")]

    def __init__(self, info: ProjectInfo, items: list[tuple[str, str]]) -> None:
        """
        Initialize MenuScreen.

        Args:
            info: Detected project facts.
            items: (label, action value) pairs in display order.
        """
        super().__init__()
        self._project_info = info
        self._items = items

    def compose(self) -> ComposeResult:
        """Compose the menu layout."""
        yield Static("[bold cyan]PRODH - Production Helper[/]", classes="title")
        yield ProjectPanel(self._project_info)
        yield Static("[dim]Use ↑↓ arrows to navigate, Enter to select[/]", classes="hint")
        yield OptionList(*(Option(label, id=value) for label, value in self._items), id="menu")
        yield Footer()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        """Hand the selected action to the app."""
        if event.option.id is not None:
            self.app.open_action(event.option.id)


class BackScreen(Screen):
    """Base for screens that return to the menu on q or escape."""

    BINDINGS = [
        ("q", "back", "Back"),
        ("escape", "back", "Back"),
    ]

    def action_back(self) -> None:
        """Return to the menu."""
        self.app.pop_screen()


class InfoScreen(BackScreen):
    """Project information and package.json scripts."""

    def __init__(self, info: ProjectInfo, scripts: list[str]) -> None:
        """Initialize InfoScreen."""
        super().__init__()
        self._project_info = info
        self._project_scripts = scripts

    def compose(self) -> ComposeResult:
        """Compose the info layout."""
        yield ProjectPanel(self._project_info)
        yield Static("[bold cyan]Available Scripts:[/]", classes="title")
        if self._project_scripts:
            body = "\n".join(f"• [green]{escape(script)}[/]" for script in self._project_scripts)
        else:
            body = "[dim]No scripts found in package.json[/]"
        yield Static(body, id="scripts")
        yield Footer()


class PlaceholderScreen(Screen):
    """Screen for features without a dedicated view. Any key returns."""

    def __init__(self, title: str, lines: list[str] | None = None) -> None:
        """Initialize PlaceholderScreen."""
        super().__init__()
        self._heading = title
        self._body_lines = lines

    def compose(self) -> ComposeResult:
        """Compose the placeholder layout."""
        yield Static(f"[bold cyan]{escape(self._heading)}[/]", classes="title")
        body = "\n".join(escape(line) for line in self._body_lines) if self._body_lines else "Coming soon..."
        yield Static(f"[dim]{body}[/]", id="placeholder-body")
        yield Static("[dim]Press any key to return to menu[/]", classes="hint")

    def on_key(self, event: events.Key) -> None:
        """Return to the menu on any key."""
        event.stop()
        self.app.pop_screen()


class DockerScreen(BackScreen):
    """Docker daemon status and running containers."""

    def __init__(self, query: ProcessQuery) -> None:
        """Initialize DockerScreen."""
        super().__init__()
        self._process_query = query

    def compose(self) -> ComposeResult:
        """Compose the docker layout."""
        yield Static("[bold cyan]🐳 Docker Commands[/]", classes="title")
        yield Static("[dim]Checking docker...[/]", id="docker-status")
        yield Footer()

    def on_mount(self) -> None:
        """Query docker in the background."""
        self.run_worker(self._load(), exclusive=True)

    async def _load(self) -> None:
        running, containers = await asyncio.gather(
            self._process_query.docker_running(),
            self._process_query.docker_containers(),
        )
        if not running:
            text = "[red]✗ Docker is not running[/]"
        elif containers:
            names = "\n".join(f"• [green]{escape(name)}[/]" for name in containers)
            text = f"[green]✓ Docker is running[/]\n\n{names}"
        else:
            text = "[green]✓ Docker is running[/]\n\n[dim]No containers running[/]"
        try:
            self.query_one("#docker-status", Static).update(text)
        except NoMatches:
            pass  # Screen closed before docker answered


class ProcessTable(Container):
    """Container for the monitored process table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: round $success;
    }
    """

    def __init__(self, *args, limit: int = 10, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._limit = limit
        self._current_pids: set[int] = set()

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("CPU", key="cpu", width=8)
        table.add_column("Memory", key="mem", width=10)
        table.add_column("Command", key="command")

    def update_processes(self, processes: tuple[ProcessRecord, ...] | list[ProcessRecord]) -> None:
        """
        Update the table with the first rows of a process listing.

        Uses update_cell for existing rows to avoid re-rendering the whole table.
        """
        table = self.query_one("#process-table", DataTable)
        shown = list(processes)[: self._limit]
        new_pids = {proc.pid for proc in shown}

        for pid in self._current_pids - new_pids:
            table.remove_row(str(pid))

        for proc in shown:
            row_key = str(proc.pid)
            if proc.pid in self._current_pids:
                table.update_cell(row_key, "cpu", f"{proc.cpu_percent}%")
                table.update_cell(row_key, "mem", f"{proc.memory_percent}%")
                table.update_cell(row_key, "command", truncate_command(proc.command_line))
            else:
                table.add_row(
                    str(proc.pid),
                    f"{proc.cpu_percent}%",
                    f"{proc.memory_percent}%",
                    truncate_command(proc.command_line),
                    key=row_key,
                )

        self._current_pids = new_pids


class MonitorScreen(BackScreen):
    """Live view of port occupancy and runtime processes."""

    def __init__(self, monitor: ProcessMonitor, keyword: str, limit: int = 10) -> None:
        """
        Initialize MonitorScreen.

        Args:
            monitor: View model owned by this screen; started on mount, stopped on unmount.
            keyword: Runtime name used in the process section title.
            limit: Maximum number of process rows shown.
        """
        super().__init__()
        self._monitor = monitor
        self._keyword = keyword
        self._limit = limit
        self._shown: MonitorSnapshot | None = None

    @property
    def monitor(self) -> ProcessMonitor:
        """Get the monitor driving this screen."""
        return self._monitor

    def compose(self) -> ComposeResult:
        """Compose the monitor layout."""
        yield Static("[bold cyan]📊 Process Monitor[/]", classes="title")
        yield Static(format_last_updated(self._monitor.snapshot), id="last-updated")
        yield Vertical(
            Static("[bold]Port Status[/]"),
            Static(format_port_status(self._monitor.snapshot), id="port-status"),
            id="port-panel",
        )
        yield Static(self._process_title(self._monitor.snapshot), id="process-title")
        yield ProcessTable(limit=self._limit)
        yield Footer()

    def on_mount(self) -> None:
        """Start the monitor and poll it for new snapshots."""
        self._monitor.start()
        self.set_interval(0.25, self._check_for_updates)

    def on_unmount(self) -> None:
        """Stop the monitor when leaving the view."""
        self._monitor.stop()

    def _process_title(self, snapshot: MonitorSnapshot) -> str:
        if snapshot.captured_at is not None and not snapshot.processes:
            return f"[bold]{escape(self._keyword)} processes (0)[/] [dim]none running[/]"
        return f"[bold]{escape(self._keyword)} processes ({len(snapshot.processes)})[/]"

    def _check_for_updates(self) -> None:
        """Render the monitor's snapshot if it changed since the last render."""
        snapshot = self._monitor.snapshot
        if snapshot is self._shown:
            return
        self._shown = snapshot
        try:
            self.query_one("#last-updated", Static).update(format_last_updated(snapshot))
            self.query_one("#port-status", Static).update(format_port_status(snapshot))
            self.query_one("#process-title", Static).update(self._process_title(snapshot))
            self.query_one(ProcessTable).update_processes(snapshot.processes)
        except NoMatches:
            pass  # Screen is being torn down


class PortScreen(BackScreen):
    """Pick a port and force-kill the process listening on it."""

    def __init__(
        self,
        ports: list[int],
        query: ProcessQuery,
        status_clear_delay: float = 2.0,
        signal_process: Callable[[int], bool] = send_kill,
    ) -> None:
        """Initialize PortScreen."""
        super().__init__()
        self._ports = ports
        self._process_query = query
        self._status_clear_delay = status_clear_delay
        self._signal_process = signal_process
        self.last_outcome: TerminationOutcome | None = None

    def compose(self) -> ComposeResult:
        """Compose the port management layout."""
        yield Static("[bold cyan]🔌 Port Management[/]", classes="title")
        yield Static("[dim]Select a port to kill the process[/]", id="port-hint")
        yield Static("", id="port-owners")
        options = [Option(f"🔌 Kill process on port {port}", id=str(port)) for port in self._ports]
        options.append(Option("⬅️  Back to menu", id="back"))
        yield OptionList(*options, id="port-options")
        yield Static("", id="kill-status")
        yield Footer()

    def on_mount(self) -> None:
        """Look up the current owner of each port."""
        self.query_one("#kill-status", Static).display = False
        self.run_worker(self._load_owners(), group="owners")

    async def _load_owners(self) -> None:
        owners = await asyncio.gather(*(self._process_query.describe_listener(port) for port in self._ports))
        lines = []
        for port, owner in zip(self._ports, owners):
            if owner is None:
                lines.append(f"Port {port}: [green]free[/]")
            else:
                lines.append(f"Port {port}: [red]{escape(owner.command_line)}[/] (pid {owner.pid})")
        try:
            self.query_one("#port-owners", Static).update("\n".join(lines))
        except NoMatches:
            pass  # Screen closed before lsof answered

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        """Kill the selected port's listener or go back."""
        event.stop()
        if event.option.id == "back":
            self.app.pop_screen()
            return
        port = int(event.option.id or 0)
        self._show_status(f"Killing process on port {port}...")
        self.run_worker(self._kill(port), exclusive=True, group="kill")

    async def _kill(self, port: int) -> None:
        outcome = await terminate(port, self._process_query, self._signal_process)
        self.last_outcome = outcome
        self._show_status(format_outcome(outcome))
        self.set_timer(self._status_clear_delay, self._clear_status)
        self.run_worker(self._load_owners(), group="owners")

    def _show_status(self, text: str) -> None:
        try:
            status = self.query_one("#kill-status", Static)
            options = self.query_one("#port-options", OptionList)
        except NoMatches:
            return
        status.update(text)
        status.display = True
        options.display = False

    def _clear_status(self) -> None:
        try:
            self.query_one("#kill-status", Static).display = False
            options = self.query_one("#port-options", OptionList)
        except NoMatches:
            return
        options.display = True
        options.focus()


class CommandScreen(Screen):
    """Runs one package.json script and shows its output."""

    class Finished(Message):
        """Posted once the completion delay after the run has passed."""

        def __init__(self, exit_code: int) -> None:
            self.exit_code = exit_code
            super().__init__()

    def __init__(
        self,
        command: str,
        package_manager: str,
        settings: Settings,
        args: list[str] | None = None,
    ) -> None:
        """Initialize CommandScreen."""
        super().__init__()
        self._window = settings.output_window
        self._runner = CommandRunner(
            command,
            package_manager,
            args or [],
            on_update=self._render_run,
            on_complete=lambda exit_code: self.post_message(self.Finished(exit_code)),
            completion_delay=settings.completion_delay,
        )
        self.exit_code: int | None = None

    @property
    def runner(self) -> CommandRunner:
        """Get the runner owned by this screen."""
        return self._runner

    def compose(self) -> ComposeResult:
        """Compose the command layout."""
        yield Static(self._status_line(self._runner.command_run), id="run-status")
        yield Static("", id="run-output")
        yield Static("", id="run-summary")

    def on_mount(self) -> None:
        """Spawn the command."""
        self.run_worker(self._runner.run(), exclusive=True)

    def on_unmount(self) -> None:
        """Drop a pending completion so it cannot fire after the screen is gone."""
        self._runner.cancel()

    def on_key(self, event: events.Key) -> None:
        """Return early once the run has finished."""
        if self._runner.command_run.is_finished:
            event.stop()
            self._runner.cancel()
            self.app.pop_screen()

    def on_command_screen_finished(self, message: Finished) -> None:
        """Return to the menu after the completion delay."""
        self.exit_code = message.exit_code
        if self.is_current:
            self.app.pop_screen()

    def _status_line(self, run: CommandRun) -> str:
        color = STATUS_COLORS[run.status]
        icon = STATUS_ICONS[run.status]
        command = escape(f"{run.package_manager} run {run.command}")
        return f"[bold {color}]{icon} Running: {command}[/]"

    def _render_run(self, run: CommandRun) -> None:
        try:
            self.query_one("#run-status", Static).update(self._status_line(run))
            style = "dim" if run.is_finished else ""
            self.query_one("#run-output", Static).update(Text("\n".join(run.tail(self._window)), style=style))
            if run.is_finished:
                color = STATUS_COLORS[run.status]
                verdict = "✓ Completed" if run.status is RunStatus.SUCCESS else "✗ Failed"
                self.query_one("#run-summary", Static).update(
                    f"[{color}]{verdict} in {run.duration_display}[/]\n\n"
                    "[dim]Press any key to return to menu...[/]"
                )
        except NoMatches:
            pass  # Screen is being torn down
