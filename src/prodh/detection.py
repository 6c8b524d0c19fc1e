"""Project toolchain detection from manifest and lock files."""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class PackageManager(Enum):
    """Supported JavaScript package managers."""

    NPM = "npm"
    PNPM = "pnpm"
    YARN = "yarn"
    BUN = "bun"


class ProjectType(Enum):
    """Frameworks recognised from package.json dependencies."""

    ANGULAR = "angular"
    REACT = "react"
    NEXT = "next"
    NEST = "nest"
    VUE = "vue"
    NUXT = "nuxt"
    VITE = "vite"
    UNKNOWN = "unknown"


class WorkspaceType(Enum):
    """Monorepo tooling."""

    NX = "nx"
    TURBO = "turbo"
    LERNA = "lerna"
    WORKSPACES = "workspaces"
    NONE = "none"


# Checked in order; frameworks that build on React or Vite come first
_PROJECT_DEPENDENCIES: list[tuple[str, ProjectType]] = [
    ("@angular/core", ProjectType.ANGULAR),
    ("next", ProjectType.NEXT),
    ("@nestjs/core", ProjectType.NEST),
    ("nuxt", ProjectType.NUXT),
    ("vue", ProjectType.VUE),
    ("vite", ProjectType.VITE),
    ("react", ProjectType.REACT),
]

_LOCK_FILES: list[tuple[str, PackageManager]] = [
    ("pnpm-lock.yaml", PackageManager.PNPM),
    ("yarn.lock", PackageManager.YARN),
    ("bun.lockb", PackageManager.BUN),
]

_WORKSPACE_FILES: list[tuple[str, WorkspaceType]] = [
    ("nx.json", WorkspaceType.NX),
    ("turbo.json", WorkspaceType.TURBO),
    ("lerna.json", WorkspaceType.LERNA),
]

COMMON_PORTS: dict[ProjectType, list[int]] = {
    ProjectType.ANGULAR: [4200, 4300],
    ProjectType.REACT: [3000, 3001],
    ProjectType.NEXT: [3000, 3001],
    ProjectType.NEST: [3000, 3001],
    ProjectType.VUE: [8080, 8081],
    ProjectType.NUXT: [3000, 3001],
    ProjectType.VITE: [5173, 5174],
    ProjectType.UNKNOWN: [3000, 8080, 5173],
}


@dataclass(slots=True, frozen=True)
class ProjectInfo:
    """Toolchain facts about a project directory."""

    package_manager: PackageManager
    project_type: ProjectType
    workspace_type: WorkspaceType
    has_docker: bool
    has_env_example: bool
    ports: list[int]
    node_version: str | None = None


def _read_json(path: Path) -> dict[str, Any] | None:
    """Read a JSON object from path, or None if missing or unreadable."""
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.debug("Cannot read %s: %s", path, exc)
        return None
    return data if isinstance(data, dict) else None


def detect_package_manager(root: Path) -> PackageManager:
    """Detect the package manager from lock files, defaulting to npm."""
    for filename, manager in _LOCK_FILES:
        if (root / filename).exists():
            return manager
    return PackageManager.NPM


def detect_project_type(root: Path) -> ProjectType:
    """Detect the framework from package.json dependencies."""
    pkg = _read_json(root / "package.json")
    if pkg is None:
        return ProjectType.UNKNOWN

    deps: dict[str, Any] = {}
    for section in ("dependencies", "devDependencies"):
        if isinstance(pkg.get(section), dict):
            deps.update(pkg[section])

    for dependency, project_type in _PROJECT_DEPENDENCIES:
        if deps.get(dependency):
            return project_type
    return ProjectType.UNKNOWN


def detect_workspace_type(root: Path) -> WorkspaceType:
    """Detect monorepo tooling."""
    for filename, workspace_type in _WORKSPACE_FILES:
        if (root / filename).exists():
            return workspace_type

    pkg = _read_json(root / "package.json")
    if pkg is not None and pkg.get("workspaces"):
        return WorkspaceType.WORKSPACES
    return WorkspaceType.NONE


def node_version(root: Path) -> str | None:
    """Get the engines.node requirement from package.json."""
    pkg = _read_json(root / "package.json")
    if pkg is None:
        return None
    engines = pkg.get("engines")
    if not isinstance(engines, dict):
        return None
    version = engines.get("node")
    return str(version) if version else None


def common_ports(project_type: ProjectType) -> list[int]:
    """Get the ports a dev server of this project type usually binds."""
    return list(COMMON_PORTS.get(project_type, [3000]))


def detect_project(root: Path) -> ProjectInfo:
    """Collect all project facts for a directory."""
    project_type = detect_project_type(root)
    return ProjectInfo(
        package_manager=detect_package_manager(root),
        project_type=project_type,
        workspace_type=detect_workspace_type(root),
        has_docker=(root / "docker-compose.yml").exists() or (root / "Dockerfile").exists(),
        has_env_example=(root / ".env.example").exists(),
        ports=common_ports(project_type),
        node_version=node_version(root),
    )


def available_scripts(root: Path) -> list[str]:
    """Get the script names declared in package.json."""
    pkg = _read_json(root / "package.json")
    if pkg is None or not isinstance(pkg.get("scripts"), dict):
        return []
    return list(pkg["scripts"])


def angular_apps(root: Path) -> list[str]:
    """Get the project names declared in angular.json."""
    config = _read_json(root / "angular.json")
    if config is None or not isinstance(config.get("projects"), dict):
        return []
    return list(config["projects"])
