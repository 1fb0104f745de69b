"""Composes a theme's base and update layers into its ``latest/`` snapshot."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

from themeforge import paths
from themeforge.core.fileops import copy_children, remove_path, staging_path, swap_into_place
from themeforge.core.versions import sort_versions
from themeforge.errors import ErrorCode, ThemeForgeError
from themeforge.themes.constants import DELETED_DIRNAME, STORE_INTERNAL_DIRS, THEME_JSON
from themeforge.themes.loader import declared_version

if TYPE_CHECKING:
    from themeforge.themes.registry import ThemeStore

logger = logging.getLogger(__name__)

_LAYER_EXCLUDES = STORE_INTERNAL_DIRS | {DELETED_DIRNAME}


class SnapshotBuilder:
    """Builds ``latest/`` as base overlaid by every update, oldest first.

    Layers are validated before anything is written. The new snapshot is
    assembled in a staging directory next to ``latest/`` and swapped in only
    once complete, so a failed build leaves the previous snapshot in place.

    An update layer may carry a ``deleted/`` subtree. Each leaf in it (a file,
    or an empty directory) names a path to remove from the snapshot before
    that layer's own files are copied.
    """

    def __init__(self, store: ThemeStore) -> None:
        self._store = store

    def build(self, theme_id: str) -> list[str]:
        store = self._store
        latest = paths.latest_dir(store.root, theme_id)
        versions = store.versions(theme_id)

        if len(versions) <= 1:
            if latest.exists():
                remove_path(latest)
                logger.info("Removed stale latest/ for %s", theme_id)
            logger.debug("No updates for %s, skipping latest/ build", theme_id)
            return []

        base = store.base_version(theme_id)
        update_versions = sort_versions(v for v in versions if v != base)
        self._validate_layers(theme_id, update_versions)

        logger.info("Building latest/ for %s with versions: %s", theme_id, ", ".join(versions))
        staged = staging_path(latest)
        try:
            staged.mkdir(parents=True)
            copy_children(store.theme_dir(theme_id), staged, exclude=STORE_INTERNAL_DIRS)
            for version in update_versions:
                removed = self._apply_layer(paths.version_dir(store.root, theme_id, version), staged)
                logger.debug("Applied version %s to latest/ for %s (%d deletions)", version, theme_id, removed)
            swap_into_place(staged, latest)
        except Exception:
            logger.exception("Snapshot build failed for %s; previous latest/ kept", theme_id)
            if staged.exists():
                remove_path(staged)
            raise
        finally:
            store.cache.invalidate(latest / THEME_JSON)

        logger.info("Built latest/ for %s", theme_id)
        return versions

    def _validate_layers(self, theme_id: str, update_versions: list[str]) -> None:
        missing: list[str] = []
        mismatches: list[tuple[str, object]] = []

        for version in update_versions:
            json_path = paths.version_dir(self._store.root, theme_id, version) / THEME_JSON
            try:
                declared = declared_version(json_path)
            except FileNotFoundError:
                missing.append(version)
                continue
            except ThemeForgeError:
                missing.append(f"{version} (invalid JSON)")
                continue
            if declared != version:
                mismatches.append((version, declared))

        if not missing and not mismatches:
            return

        problems: list[str] = []
        if missing:
            problems.append(
                f"Theme '{theme_id}' has version folder(s) missing theme.json: {', '.join(missing)}. "
                "Each version folder must include a theme.json file."
            )
        if mismatches:
            detail = "; ".join(f"folder '{folder}' has theme.json version '{declared}'" for folder, declared in mismatches)
            problems.append(
                f"Theme '{theme_id}' has version mismatch: {detail}. Folder name must match theme.json version."
            )
        message = " ".join(problems)
        logger.error("Snapshot build aborted: %s", message)
        raise ThemeForgeError(
            ErrorCode.SNAPSHOT_INCONSISTENT,
            message,
            path=paths.updates_dir(self._store.root, theme_id),
            details={
                "missing": missing,
                "mismatches": [{"folder": folder, "declared": declared} for folder, declared in mismatches],
            },
        )

    def _apply_layer(self, layer_dir: Path, snapshot_dir: Path) -> int:
        removed = 0
        deleted_root = layer_dir / DELETED_DIRNAME
        if deleted_root.is_dir():
            for leaf in _deletion_leaves(deleted_root):
                if remove_path(snapshot_dir / leaf.relative_to(deleted_root)):
                    removed += 1
        copy_children(layer_dir, snapshot_dir, exclude=_LAYER_EXCLUDES)
        return removed


def _deletion_leaves(root: Path) -> Iterator[Path]:
    for path in sorted(root.rglob("*")):
        if path.is_file():
            yield path
        elif path.is_dir() and not any(path.iterdir()):
            yield path
