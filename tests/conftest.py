"""Shared fixtures: on-disk theme trees and in-memory theme packages."""

from __future__ import annotations

import io
import json
import zipfile
from pathlib import Path
from typing import Callable

import pytest

from themeforge.core.projects import SqliteProjectRepository
from themeforge.themes.registry import ThemeStore


def write_json(path: Path, data: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def read_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def theme_document(version: str, settings: dict | None = None, **extra: object) -> dict:
    doc: dict = {"name": "Shop", "version": version, "author": "tests", "description": "test theme"}
    if settings is not None:
        doc["settings"] = settings
    doc.update(extra)
    return doc


def package_files(root: str = "shop", version: str = "1.0.0") -> dict[str, str | bytes]:
    """Minimal valid package contents keyed by archive path."""
    return {
        f"{root}/theme.json": json.dumps(theme_document(version)),
        f"{root}/screenshot.png": b"\x89PNG",
        f"{root}/layout.liquid": "<html>{{ content }}</html>",
        f"{root}/assets/style.css": "body {}",
        f"{root}/templates/index.json": json.dumps({"name": "Home"}),
        f"{root}/widgets/hero/widget.liquid": "<section></section>",
    }


def build_zip(files: dict[str, str | bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def themes_root(tmp_path: Path) -> Path:
    root = tmp_path / "themes"
    root.mkdir()
    return root


@pytest.fixture
def projects_root(tmp_path: Path) -> Path:
    root = tmp_path / "projects"
    root.mkdir()
    return root


@pytest.fixture
def store(themes_root: Path) -> ThemeStore:
    return ThemeStore(themes_root)


@pytest.fixture
def repo(tmp_path: Path):
    repository = SqliteProjectRepository(tmp_path / "projects.db")
    repository.open()
    yield repository
    repository.close()


@pytest.fixture
def make_theme(themes_root: Path) -> Callable[..., Path]:
    """Create a base theme directory with the files every theme carries."""

    def factory(theme_id: str = "shop", version: str = "1.0.0", settings: dict | None = None) -> Path:
        theme_dir = themes_root / theme_id
        write_json(theme_dir / "theme.json", theme_document(version, settings))
        (theme_dir / "screenshot.png").write_bytes(b"\x89PNG")
        (theme_dir / "layout.liquid").write_text("layout v1", encoding="utf-8")
        (theme_dir / "assets").mkdir()
        (theme_dir / "assets" / "style.css").write_text("v1", encoding="utf-8")
        write_json(theme_dir / "templates" / "index.json", {"name": "Home"})
        (theme_dir / "widgets" / "hero").mkdir(parents=True)
        (theme_dir / "widgets" / "hero" / "widget.liquid").write_text("hero", encoding="utf-8")
        (theme_dir / "widgets" / "global").mkdir()
        write_json(theme_dir / "menus" / "main.json", {"name": "Main", "items": []})
        return theme_dir

    return factory


@pytest.fixture
def add_layer(themes_root: Path) -> Callable[..., Path]:
    """Create ``updates/<version>/`` with a theme.json and optional files."""

    def factory(
        theme_id: str,
        version: str,
        files: dict[str, str] | None = None,
        *,
        declared: str | None = None,
        settings: dict | None = None,
        with_theme_json: bool = True,
    ) -> Path:
        layer = themes_root / theme_id / "updates" / version
        layer.mkdir(parents=True, exist_ok=True)
        if with_theme_json:
            write_json(layer / "theme.json", theme_document(declared or version, settings))
        for relative, content in (files or {}).items():
            target = layer / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        return layer

    return factory
