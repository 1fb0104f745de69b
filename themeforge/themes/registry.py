"""Filesystem theme store: versions, source resolution and persistence."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from themeforge import paths
from themeforge.core.fileops import copy_children, remove_ignored_files, remove_path
from themeforge.core.snapshot import SnapshotBuilder
from themeforge.core.versions import is_newer_version, is_valid_version, latest_version, sort_versions
from themeforge.errors import ErrorCode, ThemeForgeError
from themeforge.themes.constants import (
    GLOBAL_WIDGETS_DIRNAME,
    STAGING_PREFIX,
    STORE_INTERNAL_DIRS,
    THEME_JSON,
    WIDGETS_DIRNAME,
)
from themeforge.themes.loader import MetadataCache, parse_metadata
from themeforge.themes.models import ThemeSummary

if TYPE_CHECKING:
    from themeforge.core.projects import ProjectRepository

logger = logging.getLogger(__name__)

_MAX_THEME_DIR_CANDIDATES = 512


class ThemeStore:
    """Themes stored as ``<root>/<theme_id>/`` with ``updates/<version>/`` layers.

    The directory tree is the only source of truth for which versions exist;
    ``latest/`` is a derived snapshot rebuilt by :class:`SnapshotBuilder`.
    """

    def __init__(self, themes_root: Path, *, cache: MetadataCache | None = None) -> None:
        self._root = Path(themes_root)
        self._cache = cache if cache is not None else MetadataCache()
        self._snapshots = SnapshotBuilder(self)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def cache(self) -> MetadataCache:
        return self._cache

    def ensure_root(self) -> Path:
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ThemeForgeError(
                ErrorCode.FILE_ACCESS_DENIED,
                f"Failed to create themes directory: {exc}",
                path=self._root,
            ) from exc
        return self._root

    # -- single theme ---------------------------------------------------

    def theme_dir(self, theme_id: str) -> Path:
        return paths.theme_dir(self._root, theme_id)

    def exists(self, theme_id: str) -> bool:
        return self.theme_dir(theme_id).is_dir()

    def base_version(self, theme_id: str) -> str | None:
        """Version declared by the base theme.json, or None if unreadable/invalid."""
        json_path = paths.theme_json_path(self._root, theme_id)
        try:
            version = self._cache.load(json_path).get("version")
        except FileNotFoundError:
            if self.exists(theme_id):
                logger.warning("Could not read base theme.json for %s: file missing", theme_id)
            return None
        except (OSError, ThemeForgeError) as exc:
            logger.warning("Could not read base theme.json for %s: %s", theme_id, exc)
            return None
        return version if is_valid_version(version) else None

    def update_versions(self, theme_id: str) -> list[str]:
        updates = paths.updates_dir(self._root, theme_id)
        if not updates.is_dir():
            return []
        try:
            names = [entry.name for entry in updates.iterdir() if entry.is_dir() and is_valid_version(entry.name)]
        except OSError as exc:
            logger.warning("Could not read updates directory for %s: %s", theme_id, exc)
            return []
        return sort_versions(names)

    def versions(self, theme_id: str) -> list[str]:
        """Base version plus every update layer version, ascending."""
        found: list[str] = []
        base = self.base_version(theme_id)
        if base is not None:
            found.append(base)
        for version in self.update_versions(theme_id):
            if version not in found:
                found.append(version)
        return sort_versions(found)

    def list(self, theme_id: str) -> list[str]:
        return self.versions(theme_id)

    def source_dir(self, theme_id: str) -> Path:
        latest = paths.latest_dir(self._root, theme_id)
        if latest.is_dir():
            return latest
        return self.theme_dir(theme_id)

    def source_version(self, theme_id: str) -> str | None:
        """Version declared by the theme.json of the current source directory."""
        try:
            version = self._cache.load(self.source_dir(theme_id) / THEME_JSON).get("version")
        except (OSError, ThemeForgeError) as exc:
            logger.debug("Could not read source theme.json for %s: %s", theme_id, exc)
            return None
        return version if isinstance(version, str) else None

    def latest_version(self, theme_id: str) -> str | None:
        return latest_version(self.versions(theme_id))

    def has_updates(self, theme_id: str) -> bool:
        return len(self.versions(theme_id)) > 1

    def has_pending_updates(self, theme_id: str) -> bool:
        """True when a version newer than the current source has not been built yet."""
        versions = self.versions(theme_id)
        if len(versions) <= 1:
            return False
        current = self.source_version(theme_id)
        if current is None:
            return False
        return is_newer_version(current, versions[-1])

    def copy_to_project(self, theme_id: str, project_dir: Path, exclude: Iterable[str] = ()) -> str | None:
        """Copy the theme's source files into *project_dir*.

        Store internals (``updates/``, ``latest/``, ``presets/``) are always left
        out. Returns the version that was copied.
        """
        if not self.exists(theme_id):
            raise ThemeForgeError(ErrorCode.THEME_NOT_FOUND, f"Theme '{theme_id}' not found")
        source = self.source_dir(theme_id)
        try:
            copied = copy_children(source, project_dir, exclude=STORE_INTERNAL_DIRS | set(exclude))
        except OSError as exc:
            raise ThemeForgeError(
                ErrorCode.FILE_COPY_FAILED,
                f"Failed to copy theme files: {exc}",
                path=project_dir,
                details={"theme": theme_id},
            ) from exc
        logger.info("Copied theme %s into %s (%d entries)", theme_id, project_dir, len(copied))
        return self.source_version(theme_id)

    # -- versioned store interface -------------------------------------

    def put_base(self, theme_id: str, src_dir: Path) -> Path:
        """Move *src_dir* into the store as the base of a new theme."""
        target = self.theme_dir(theme_id)
        if target.exists():
            raise ThemeForgeError(
                ErrorCode.VERSION_CONFLICT,
                f"Theme '{theme_id}' already exists.",
                path=target,
            )
        self.ensure_root()
        shutil.move(str(src_dir), str(target))
        remove_ignored_files(target)
        self._cache.invalidate(paths.theme_json_path(self._root, theme_id))
        logger.info("Stored base of theme %s", theme_id)
        return target

    def put_version(self, theme_id: str, version: str, src_dir: Path) -> Path:
        """Move *src_dir* into ``updates/<version>/``; existing versions are never replaced."""
        if not is_valid_version(version):
            raise ThemeForgeError(ErrorCode.VERSION_INVALID, f"Invalid version format: \"{version}\"")
        if not self.exists(theme_id):
            raise ThemeForgeError(ErrorCode.THEME_NOT_FOUND, f"Theme '{theme_id}' not found")
        target = paths.version_dir(self._root, theme_id, version)
        if version in self.versions(theme_id) or target.exists():
            raise ThemeForgeError(
                ErrorCode.VERSION_CONFLICT,
                f"Version {version} already exists for theme '{theme_id}'.",
                path=target,
            )
        base = self.base_version(theme_id)
        if base is not None and not is_newer_version(base, version):
            raise ThemeForgeError(
                ErrorCode.VERSION_CONFLICT,
                f"Version {version} is not newer than base version {base} of theme '{theme_id}'.",
                path=target,
                details={"base": base, "version": version},
            )
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(src_dir), str(target))
        remove_ignored_files(target)
        logger.info("Stored version %s of theme %s", version, theme_id)
        return target

    def materialize(self, theme_id: str) -> list[str]:
        return self._snapshots.build(theme_id)

    # -- store-wide -----------------------------------------------------

    def theme_ids(self) -> list[str]:
        if not self._root.is_dir():
            return []
        try:
            candidates = sorted(
                entry.name
                for entry in self._root.iterdir()
                if entry.is_dir()
                and not entry.is_symlink()
                and not entry.name.startswith((".", STAGING_PREFIX))
            )
        except OSError as exc:
            logger.warning("Failed to list themes in %s: %s", self._root, exc)
            return []
        if len(candidates) > _MAX_THEME_DIR_CANDIDATES:
            logger.warning(
                "Theme directory limit exceeded in %s; only first %d folders were scanned.",
                self._root,
                _MAX_THEME_DIR_CANDIDATES,
            )
            candidates = candidates[:_MAX_THEME_DIR_CANDIDATES]
        return candidates

    def summary(self, theme_id: str) -> ThemeSummary:
        if not self.exists(theme_id):
            raise ThemeForgeError(ErrorCode.THEME_NOT_FOUND, f"Theme '{theme_id}' not found")
        source = self.source_dir(theme_id)
        json_path = source / THEME_JSON
        try:
            document = self._cache.load(json_path)
        except FileNotFoundError as exc:
            raise ThemeForgeError(ErrorCode.METADATA_INVALID, "Missing theme.json", path=json_path) from exc
        metadata = parse_metadata(document, context=str(json_path))
        versions = self.versions(theme_id)
        newest = latest_version(versions)
        return ThemeSummary(
            theme_id=theme_id,
            name=metadata.name,
            description=metadata.description,
            author=metadata.author,
            version=metadata.version,
            versions=tuple(versions),
            latest_version=newest,
            has_pending_update=newest is not None and is_newer_version(metadata.version, newest),
            widgets=self._widget_count(source),
            source_dir=source,
        )

    def summaries(self) -> list[ThemeSummary]:
        rows: list[ThemeSummary] = []
        for theme_id in self.theme_ids():
            try:
                rows.append(self.summary(theme_id))
            except ThemeForgeError as exc:
                logger.warning("Skipping theme %s: %s", theme_id, exc.message)
        return sorted(rows, key=lambda row: row.name.lower())

    def pending_update_count(self) -> int:
        return sum(1 for theme_id in self.theme_ids() if self.has_pending_updates(theme_id))

    def delete_theme(self, theme_id: str, projects: ProjectRepository) -> None:
        if not self.exists(theme_id):
            raise ThemeForgeError(ErrorCode.THEME_NOT_FOUND, f"Theme '{theme_id}' not found")
        users = [record.name for record in projects.list_projects() if record.theme == theme_id]
        if users:
            raise ThemeForgeError(
                ErrorCode.THEME_IN_USE,
                f"Theme '{theme_id}' is used by {len(users)} project(s): {', '.join(users)}",
                details={"projects": users},
            )
        remove_path(self.theme_dir(theme_id))
        self._cache.clear()
        logger.info("Deleted theme %s", theme_id)

    def _widget_count(self, source: Path) -> int:
        widgets = source / WIDGETS_DIRNAME
        try:
            return sum(
                1 for entry in widgets.iterdir() if entry.is_dir() and entry.name != GLOBAL_WIDGETS_DIRNAME
            )
        except OSError:
            return 0
