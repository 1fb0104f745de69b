"""Directory layout helpers for the theme store and project working copies."""

from __future__ import annotations

from pathlib import Path

from themeforge.themes.constants import (
    LATEST_DIRNAME,
    THEME_JSON,
    UPDATES_DIRNAME,
)


def theme_dir(themes_root: Path, theme_id: str) -> Path:
    """Return the base directory of a theme."""
    return Path(themes_root) / theme_id


def theme_json_path(themes_root: Path, theme_id: str) -> Path:
    return theme_dir(themes_root, theme_id) / THEME_JSON


def updates_dir(themes_root: Path, theme_id: str) -> Path:
    return theme_dir(themes_root, theme_id) / UPDATES_DIRNAME


def version_dir(themes_root: Path, theme_id: str, version: str) -> Path:
    """Return the directory of one incremental update layer."""
    return updates_dir(themes_root, theme_id) / version


def latest_dir(themes_root: Path, theme_id: str) -> Path:
    """Return the materialized snapshot directory of a theme."""
    return theme_dir(themes_root, theme_id) / LATEST_DIRNAME


def project_dir(projects_root: Path, folder_name: str) -> Path:
    return Path(projects_root) / folder_name


def project_theme_json_path(projects_root: Path, folder_name: str) -> Path:
    return project_dir(projects_root, folder_name) / THEME_JSON
