"""prodh - Main Textual application."""

import argparse
from collections.abc import Callable
from enum import Enum
from functools import partial
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from textual.app import App

from prodh.config import Settings, configure_logging
from prodh.detection import ProjectInfo, ProjectType, angular_apps, available_scripts, detect_project
from prodh.errors import ConfigurationError
from prodh.monitor import ProcessMonitor
from prodh.query import ProcessQuery
from prodh.views import (
    CommandScreen,
    DockerScreen,
    InfoScreen,
    MenuScreen,
    MonitorScreen,
    PlaceholderScreen,
    PortScreen,
    project_rows,
)


class MenuAction(Enum):
    """Entries of the main menu."""

    DEV = "dev"
    BUILD = "build"
    TEST = "test"
    LINT = "lint"
    ANGULAR = "angular"
    PORT = "port"
    DOCKER = "docker"
    MONITOR = "monitor"
    DEPS = "deps"
    GIT = "git"
    INFO = "info"
    EXIT = "exit"


SCRIPT_ACTIONS = (MenuAction.DEV, MenuAction.BUILD, MenuAction.TEST, MenuAction.LINT)


def build_menu_items(info: ProjectInfo, scripts: list[str]) -> list[tuple[str, MenuAction]]:
    """Get the menu entries for a project in display order."""
    items = [("🚀 Start Development", MenuAction.DEV)]

    if "build" in scripts:
        items.append(("🔨 Build Project", MenuAction.BUILD))
    if "test" in scripts:
        items.append(("🧪 Run Tests", MenuAction.TEST))
    if "lint" in scripts:
        items.append(("🔍 Lint Code", MenuAction.LINT))
    if info.project_type is ProjectType.ANGULAR:
        items.append(("🅰️  Angular Commands", MenuAction.ANGULAR))

    items.append(("🔌 Port Management", MenuAction.PORT))
    if info.has_docker:
        items.append(("🐳 Docker Commands", MenuAction.DOCKER))

    items.extend(
        [
            ("📊 Process Monitor", MenuAction.MONITOR),
            ("📦 Dependency Management", MenuAction.DEPS),
            ("🌿 Git Status", MenuAction.GIT),
            ("ℹ️  Project Information", MenuAction.INFO),
            ("❌ Exit", MenuAction.EXIT),
        ]
    )
    return items


class ProdhApp(App):
    """Main prodh application."""

    TITLE = "prodh"
    SUB_TITLE = "Production Helper"

    CSS = """
    Screen {
        layout: vertical;
        padding: 0 1;
    }

    .title {
        margin: 1 0 0 0;
    }

    .hint {
        margin: 1 0;
    }

    #menu {
        height: auto;
        max-height: 1fr;
    }

    #port-panel {
        height: auto;
        border: round $warning;
        padding: 0 1;
        margin: 1 0;
    }

    #run-output {
        border: round $primary;
        padding: 0 1;
        min-height: 3;
    }

    #kill-status {
        border: round $warning;
        padding: 0 1;
    }
    """

    BINDINGS = [("q", "quit", "Quit")]

    def __init__(
        self,
        info: ProjectInfo,
        scripts: list[str],
        root: Path,
        settings: Settings | None = None,
        query: ProcessQuery | None = None,
        initial_action: MenuAction | None = None,
    ) -> None:
        """
        Initialize the ProdhApp.

        Args:
            info: Detected project facts.
            scripts: Script names from package.json.
            root: Project directory.
            settings: Runtime settings. Defaults to Settings().
            query: Query layer shared by all views.
            initial_action: Menu action opened right after start.
        """
        super().__init__()
        self._project_info = info
        self._project_scripts = scripts
        self._project_root = root
        self._runtime_settings = settings or Settings()
        self._process_query = query or ProcessQuery(
            keyword=self._runtime_settings.process_keyword,
            command_timeout=self._runtime_settings.command_timeout,
        )
        self._start_action = initial_action

        self._menu_routes: dict[MenuAction, Callable[[], None]] = {
            MenuAction.ANGULAR: self._open_angular,
            MenuAction.PORT: self._open_ports,
            MenuAction.DOCKER: self._open_docker,
            MenuAction.MONITOR: self._open_monitor,
            MenuAction.DEPS: partial(self._open_placeholder, "📦 Dependency Management"),
            MenuAction.GIT: partial(self._open_placeholder, "🌿 Git Status"),
            MenuAction.INFO: self._open_info,
            MenuAction.EXIT: self.exit,
        }
        for action in SCRIPT_ACTIONS:
            self._menu_routes[action] = partial(self.run_script, action.value)

    @property
    def settings(self) -> Settings:
        """Get the runtime settings."""
        return self._runtime_settings

    def on_mount(self) -> None:
        """Show the menu, then the requested start screen if any."""
        menu = build_menu_items(self._project_info, self._project_scripts)
        items = [(label, action.value) for label, action in menu]
        self.push_screen(MenuScreen(self._project_info, items))
        if self._start_action is not None:
            self.open_action(self._start_action)

    def open_action(self, action: MenuAction | str) -> None:
        """Open the view for a menu action."""
        try:
            action = MenuAction(action)
        except ValueError:
            self.notify(f"Unknown menu entry: {action}", severity="warning")
            return
        self._menu_routes[action]()

    def run_script(self, command: str, args: list[str] | None = None) -> None:
        """Run a package.json script on the command screen."""
        package_manager = self._project_info.package_manager.value
        self.push_screen(CommandScreen(command, package_manager, self._runtime_settings, args=args))

    def _open_monitor(self) -> None:
        settings = self._runtime_settings
        ports = self._project_info.ports
        monitor = ProcessMonitor(ports, self._process_query, interval=settings.refresh_interval)
        self.push_screen(MonitorScreen(monitor, settings.process_keyword, limit=settings.process_table_limit))

    def _open_ports(self) -> None:
        delay = self._runtime_settings.status_clear_delay
        self.push_screen(PortScreen(self._project_info.ports, self._process_query, status_clear_delay=delay))

    def _open_docker(self) -> None:
        self.push_screen(DockerScreen(self._process_query))

    def _open_info(self) -> None:
        self.push_screen(InfoScreen(self._project_info, self._project_scripts))

    def _open_angular(self) -> None:
        apps = angular_apps(self._project_root)
        lines = [f"• {name}" for name in apps] if apps else None
        self.push_screen(PlaceholderScreen("🅰️  Angular Commands", lines))

    def _open_placeholder(self, title: str) -> None:
        self.push_screen(PlaceholderScreen(title))


def print_project_info(info: ProjectInfo, scripts: list[str], console: Console | None = None) -> None:
    """Print project facts and scripts without starting the TUI."""
    console = console or Console()
    table = Table(title="🚀 Project Information", show_header=False, title_justify="left")
    table.add_column("Field", style="dim")
    table.add_column("Value")
    for label, value in project_rows(info):
        table.add_row(label, value)
    console.print(table)

    console.print("[bold cyan]Available Scripts:[/]")
    if scripts:
        for script in scripts:
            console.print(f"  • [green]{escape(script)}[/]", highlight=False)
    else:
        console.print("  [dim]No scripts found in package.json[/]")


def build_parser() -> argparse.ArgumentParser:
    """Create the command line parser."""
    parser = argparse.ArgumentParser(
        prog="prodh",
        description="Interactive helper for running and monitoring a local web project.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=["info", "monitor"],
        help="info: print project information; monitor: open the process monitor",
    )
    parser.add_argument(
        "--path",
        type=Path,
        default=Path.cwd(),
        help="project directory (default: current directory)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for prodh application."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env()
    except ConfigurationError as exc:
        parser.error(str(exc))

    root = args.path.resolve()
    info = detect_project(root)
    scripts = available_scripts(root)

    if args.command == "info":
        print_project_info(info, scripts)
        return

    configure_logging(settings)
    initial_action = MenuAction.MONITOR if args.command == "monitor" else None
    app = ProdhApp(info, scripts, root, settings=settings, initial_action=initial_action)
    app.run()


if __name__ == "__main__":
    main()
