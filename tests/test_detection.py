"""Tests for project detection."""

import json

import pytest

from prodh.detection import (
    PackageManager,
    ProjectType,
    WorkspaceType,
    angular_apps,
    available_scripts,
    common_ports,
    detect_package_manager,
    detect_project,
    detect_project_type,
    detect_workspace_type,
)


def write_package_json(root, **content):
    (root / "package.json").write_text(json.dumps(content))


@pytest.mark.parametrize(
    ("lock_file", "expected"),
    [
        ("pnpm-lock.yaml", PackageManager.PNPM),
        ("yarn.lock", PackageManager.YARN),
        ("bun.lockb", PackageManager.BUN),
        ("package-lock.json", PackageManager.NPM),
    ],
)
def test_package_manager_from_lock_file(tmp_path, lock_file, expected):
    """Test the lock file decides the package manager."""
    (tmp_path / lock_file).write_text("")

    assert detect_package_manager(tmp_path) is expected


def test_pnpm_wins_over_yarn(tmp_path):
    """Test lock files are checked in priority order."""
    (tmp_path / "yarn.lock").write_text("")
    (tmp_path / "pnpm-lock.yaml").write_text("")

    assert detect_package_manager(tmp_path) is PackageManager.PNPM


@pytest.mark.parametrize(
    ("deps", "expected"),
    [
        ({"@angular/core": "^17"}, ProjectType.ANGULAR),
        ({"next": "14", "react": "18"}, ProjectType.NEXT),
        ({"@nestjs/core": "10"}, ProjectType.NEST),
        ({"nuxt": "3", "vue": "3"}, ProjectType.NUXT),
        ({"vue": "3", "vite": "5"}, ProjectType.VUE),
        ({"vite": "5", "react": "18"}, ProjectType.VITE),
        ({"react": "18"}, ProjectType.REACT),
        ({"express": "4"}, ProjectType.UNKNOWN),
    ],
)
def test_project_type_from_dependencies(tmp_path, deps, expected):
    """Test framework dependencies decide the project type."""
    write_package_json(tmp_path, dependencies=deps)

    assert detect_project_type(tmp_path) is expected


def test_project_type_from_dev_dependencies(tmp_path):
    """Test devDependencies are considered too."""
    write_package_json(tmp_path, devDependencies={"vite": "5"})

    assert detect_project_type(tmp_path) is ProjectType.VITE


def test_project_type_without_manifest(tmp_path):
    """Test a missing or broken package.json means unknown."""
    assert detect_project_type(tmp_path) is ProjectType.UNKNOWN

    (tmp_path / "package.json").write_text("{not json")
    assert detect_project_type(tmp_path) is ProjectType.UNKNOWN


@pytest.mark.parametrize(
    ("marker", "expected"),
    [
        ("nx.json", WorkspaceType.NX),
        ("turbo.json", WorkspaceType.TURBO),
        ("lerna.json", WorkspaceType.LERNA),
    ],
)
def test_workspace_from_marker_file(tmp_path, marker, expected):
    """Test monorepo marker files decide the workspace type."""
    (tmp_path / marker).write_text("{}")

    assert detect_workspace_type(tmp_path) is expected


def test_workspace_from_package_json(tmp_path):
    """Test a workspaces key marks a workspace."""
    write_package_json(tmp_path, workspaces=["packages/*"])

    assert detect_workspace_type(tmp_path) is WorkspaceType.WORKSPACES


def test_common_ports():
    """Test the usual dev-server ports per project type."""
    assert common_ports(ProjectType.ANGULAR) == [4200, 4300]
    assert common_ports(ProjectType.VITE) == [5173, 5174]
    assert common_ports(ProjectType.VUE) == [8080, 8081]
    assert common_ports(ProjectType.UNKNOWN) == [3000, 8080, 5173]


def test_detect_project(tmp_path):
    """Test all facts are collected for a project directory."""
    write_package_json(
        tmp_path,
        dependencies={"next": "14"},
        engines={"node": ">=18"},
        scripts={"dev": "next dev", "build": "next build"},
    )
    (tmp_path / "yarn.lock").write_text("")
    (tmp_path / "Dockerfile").write_text("FROM node:20")
    (tmp_path / ".env.example").write_text("PORT=3000")

    info = detect_project(tmp_path)

    assert info.package_manager is PackageManager.YARN
    assert info.project_type is ProjectType.NEXT
    assert info.workspace_type is WorkspaceType.NONE
    assert info.has_docker
    assert info.has_env_example
    assert info.ports == [3000, 3001]
    assert info.node_version == ">=18"


def test_detect_empty_directory(tmp_path):
    """Test an empty directory yields defaults."""
    info = detect_project(tmp_path)

    assert info.package_manager is PackageManager.NPM
    assert info.project_type is ProjectType.UNKNOWN
    assert not info.has_docker
    assert not info.has_env_example
    assert info.node_version is None


def test_available_scripts(tmp_path):
    """Test script names are listed in declaration order."""
    assert available_scripts(tmp_path) == []

    write_package_json(tmp_path, scripts={"dev": "vite", "build": "vite build", "lint": "eslint ."})
    assert available_scripts(tmp_path) == ["dev", "build", "lint"]


def test_angular_apps(tmp_path):
    """Test angular.json project names are listed."""
    assert angular_apps(tmp_path) == []

    (tmp_path / "angular.json").write_text(json.dumps({"projects": {"shop": {}, "admin": {}}}))
    assert angular_apps(tmp_path) == ["shop", "admin"]
