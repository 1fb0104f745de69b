"""Filesystem helpers shared by the snapshot builder, installer and updater."""

from __future__ import annotations

import shutil
import uuid
from pathlib import Path
from typing import Iterable

from themeforge.themes.constants import IGNORED_FILE_NAMES, STAGING_PREFIX


def remove_path(path: Path) -> bool:
    """Remove a file, symlink or directory tree. Returns False if nothing was there."""
    if path.is_symlink() or path.is_file():
        path.unlink()
        return True
    if path.is_dir():
        shutil.rmtree(path)
        return True
    return False


def copy_entry(source: Path, target: Path) -> None:
    """Copy a file or directory tree onto *target*, overwriting on collision.

    Directories are merged: files already under *target* that the source does
    not contain are kept.
    """
    if source.is_dir():
        if target.exists() and not target.is_dir():
            target.unlink()
        shutil.copytree(source, target, dirs_exist_ok=True)
        return
    if target.is_dir():
        shutil.rmtree(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, target)


def copy_children(source_dir: Path, target_dir: Path, *, exclude: Iterable[str] = ()) -> list[str]:
    """Copy every direct child of *source_dir* into *target_dir* except *exclude*."""
    skipped = set(exclude)
    copied: list[str] = []
    target_dir.mkdir(parents=True, exist_ok=True)
    for entry in sorted(source_dir.iterdir()):
        if entry.name in skipped or entry.name.startswith(STAGING_PREFIX):
            continue
        copy_entry(entry, target_dir / entry.name)
        copied.append(entry.name)
    return copied


def staging_path(target: Path) -> Path:
    """Return an unused sibling path for staging a replacement of *target*."""
    return target.parent / f"{STAGING_PREFIX}{target.name}-{uuid.uuid4().hex[:8]}"


def swap_into_place(staged: Path, target: Path) -> None:
    """Replace *target* with *staged*.

    The old target is moved aside first so that a failing rename leaves it
    restorable; the window where neither exists is a single rename.
    """
    backup: Path | None = None
    if target.exists() or target.is_symlink():
        backup = staging_path(target)
        target.rename(backup)
    try:
        staged.rename(target)
    except OSError:
        if backup is not None:
            backup.rename(target)
        raise
    if backup is not None:
        remove_path(backup)


def replace_path(source: Path, target: Path) -> None:
    """Replace *target* with a fresh copy of *source* via a staged sibling."""
    target.parent.mkdir(parents=True, exist_ok=True)
    staged = staging_path(target)
    try:
        if source.is_dir():
            shutil.copytree(source, staged)
        else:
            shutil.copy2(source, staged)
        swap_into_place(staged, target)
    finally:
        if staged.exists():
            remove_path(staged)


def remove_ignored_files(root: Path, names: Iterable[str] = IGNORED_FILE_NAMES) -> int:
    """Delete platform cruft files (``.DS_Store`` and friends) under *root*."""
    wanted = set(names)
    removed = 0
    if not root.is_dir():
        return removed
    for path in sorted(root.rglob("*")):
        if path.is_file() and path.name in wanted:
            path.unlink()
            removed += 1
    return removed
