"""Validation and installation of uploaded theme packages (zip archives).

A package holds one root folder named after the theme id::

    my-theme/
      theme.json  screenshot.png  layout.liquid
      assets/  templates/  widgets/
      updates/<version>/theme.json   (optional update layers)

Nothing is written to the store until the whole package has been validated.
"""

from __future__ import annotations

import io
import logging
import shutil
import uuid
import zipfile
from pathlib import Path
from typing import BinaryIO, Iterable, Union

from themeforge.core.fileops import remove_ignored_files, remove_path
from themeforge.core.versions import is_newer_version, is_valid_version, sort_versions
from themeforge.errors import ErrorCode, ThemeForgeError
from themeforge.themes.constants import (
    IGNORED_ARCHIVE_PREFIXES,
    IGNORED_FILE_NAMES,
    LATEST_DIRNAME,
    REQUIRED_PACKAGE_DIRS,
    REQUIRED_PACKAGE_FILES,
    STAGING_PREFIX,
    THEME_JSON,
    UPDATES_DIRNAME,
)
from themeforge.themes.loader import parse_json_document, parse_metadata
from themeforge.themes.models import ThemeMetadata, UploadPlan, UploadResult
from themeforge.themes.registry import ThemeStore

logger = logging.getLogger(__name__)

ArchiveSource = Union[str, Path, bytes, BinaryIO]

_STRUCTURE_MESSAGE = "Zip file structure is invalid. Expecting a single root folder containing the theme."


def open_archive(source: ArchiveSource) -> zipfile.ZipFile:
    try:
        if isinstance(source, (bytes, bytearray)):
            return zipfile.ZipFile(io.BytesIO(source))
        if isinstance(source, (str, Path)):
            return zipfile.ZipFile(Path(source))
        return zipfile.ZipFile(source)
    except FileNotFoundError as exc:
        raise ThemeForgeError(ErrorCode.FILE_NOT_FOUND, f"Theme archive not found: {source}") from exc
    except zipfile.BadZipFile as exc:
        raise ThemeForgeError(ErrorCode.UPLOAD_INVALID, "Uploaded file is not a valid zip archive.") from exc


def _upload_error(message: str, **details: object) -> ThemeForgeError:
    return ThemeForgeError(ErrorCode.UPLOAD_INVALID, message, details=dict(details))


class ThemeUploadValidator:
    """Checks a package's structure and metadata and classifies it against the store."""

    def __init__(self, store: ThemeStore, *, ignored_names: Iterable[str] = ()) -> None:
        self._store = store
        self._ignored_names = frozenset(IGNORED_FILE_NAMES | set(ignored_names))

    def validate(self, archive: ArchiveSource) -> UploadPlan:
        with open_archive(archive) as zf:
            return self.inspect(zf)

    def relevant_entries(self, zf: zipfile.ZipFile) -> list[zipfile.ZipInfo]:
        return [info for info in zf.infolist() if self._is_relevant(info.filename)]

    def inspect(self, zf: zipfile.ZipFile) -> UploadPlan:
        if not zf.infolist():
            raise _upload_error("Uploaded zip file is empty.")
        for info in zf.infolist():
            _check_entry_name(info.filename)
        entries = self.relevant_entries(zf)
        if not entries:
            raise _upload_error("Zip file contains no relevant theme content after filtering.")

        root = _single_root(entries)
        names = {info.filename for info in entries}

        for filename in REQUIRED_PACKAGE_FILES:
            if f"{root}/{filename}" not in names:
                raise _upload_error(f"Invalid theme: Missing '{filename}' in the root directory.", missing=filename)
        for dirname in REQUIRED_PACKAGE_DIRS:
            prefix = f"{root}/{dirname}/"
            if not any(name.startswith(prefix) and len(name) > len(prefix) for name in names):
                raise _upload_error(f"Invalid theme: Missing '{dirname}' directory.", missing=dirname)

        metadata = _read_package_metadata(zf, f"{root}/{THEME_JSON}")
        update_versions = _validate_update_folders(zf, root, names, metadata.version)
        return self._classify(root, metadata, update_versions)

    def _is_relevant(self, name: str) -> bool:
        if name == "/" or name.startswith(IGNORED_ARCHIVE_PREFIXES):
            return False
        parts = [part for part in name.split("/") if part]
        if not parts:
            return False
        if any(part.startswith(".") for part in parts):
            return False
        return parts[-1] not in self._ignored_names

    def _classify(self, theme_id: str, metadata: ThemeMetadata, update_versions: list[str]) -> UploadPlan:
        package_versions = tuple(sort_versions([metadata.version, *update_versions]))
        if not self._store.exists(theme_id):
            return UploadPlan(
                theme_id=theme_id,
                metadata=metadata,
                is_update=False,
                package_versions=package_versions,
                new_versions=package_versions,
            )

        store_base = self._store.base_version(theme_id)
        if store_base != metadata.version:
            raise ThemeForgeError(
                ErrorCode.BASE_VERSION_MISMATCH,
                f"Theme '{theme_id}' is installed with base version {store_base or 'unknown'}, "
                f"but the package declares base version {metadata.version}.",
                details={"installed": store_base, "uploaded": metadata.version},
            )

        existing = set(self._store.versions(theme_id))
        new_versions = tuple(v for v in update_versions if v not in existing)
        if not new_versions:
            raise ThemeForgeError(
                ErrorCode.VERSION_CONFLICT,
                f"Theme '{theme_id}' is already up to date: version(s) "
                f"{', '.join(package_versions)} already exist.",
                details={"existing": sort_versions(existing)},
            )
        return UploadPlan(
            theme_id=theme_id,
            metadata=metadata,
            is_update=True,
            package_versions=package_versions,
            new_versions=new_versions,
        )


def _check_entry_name(name: str) -> None:
    normalized = name.replace("\\", "/")
    parts = normalized.split("/")
    if normalized.startswith("/") or ".." in parts or ":" in parts[0]:
        raise _upload_error(f"Zip file contains an unsafe path: {name}")


def _single_root(entries: list[zipfile.ZipInfo]) -> str:
    first = entries[0]
    parts = first.filename.split("/")
    root = parts[0]
    if not root or (not first.is_dir() and len(parts) == 1):
        raise _upload_error(_STRUCTURE_MESSAGE)
    if not all(info.filename.startswith(f"{root}/") for info in entries):
        raise _upload_error(_STRUCTURE_MESSAGE)
    return root


def _read_entry_json(zf: zipfile.ZipFile, name: str) -> dict:
    try:
        content = zf.read(name).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise _upload_error(f"Invalid theme.json: Failed to parse JSON ({name}: {exc})") from exc
    return parse_json_document(content, context=name)


def _read_package_metadata(zf: zipfile.ZipFile, name: str) -> ThemeMetadata:
    try:
        return parse_metadata(_read_entry_json(zf, name), context=name)
    except ThemeForgeError as exc:
        if exc.code is ErrorCode.UPLOAD_INVALID:
            raise
        raise _upload_error(exc.message, **exc.details) from exc


def _validate_update_folders(
    zf: zipfile.ZipFile, root: str, names: set[str], base_version: str
) -> list[str]:
    prefix = f"{root}/{UPDATES_DIRNAME}/"
    folders = sorted(
        {name[len(prefix):].split("/")[0] for name in names if name.startswith(prefix) and len(name) > len(prefix)}
    )
    for folder in folders:
        if not is_valid_version(folder):
            raise _upload_error(
                f"Invalid update folder name: '{folder}'. Update folders must be named "
                "with a semantic version (e.g., 1.1.0).",
                folder=folder,
            )
        if folder == base_version:
            raise _upload_error(f"Update folder '{folder}' duplicates the base version.", folder=folder)
        if not is_newer_version(base_version, folder):
            raise _upload_error(
                f"Update folder '{folder}' is older than the base version {base_version}.",
                folder=folder,
                base=base_version,
            )

        json_name = f"{prefix}{folder}/{THEME_JSON}"
        if json_name not in names:
            raise _upload_error(f"Update folder '{folder}' is missing required theme.json.", folder=folder)
        try:
            declared = _read_entry_json(zf, json_name).get("version")
        except ThemeForgeError as exc:
            raise _upload_error(
                f"Update folder '{folder}' has an invalid theme.json: Failed to parse JSON.", folder=folder
            ) from exc
        if declared != folder:
            raise _upload_error(
                f"Update folder '{folder}' has version mismatch: theme.json declares '{declared}'.",
                folder=folder,
                declared=declared,
            )
    return sort_versions(folders)


class ThemeInstaller:
    """Writes a validated package into the store and rebuilds the snapshot."""

    def __init__(self, store: ThemeStore, validator: ThemeUploadValidator | None = None) -> None:
        self._store = store
        self._validator = validator if validator is not None else ThemeUploadValidator(store)

    def install(self, archive: ArchiveSource) -> UploadResult:
        with open_archive(archive) as zf:
            plan = self._validator.inspect(zf)
            self._write(zf, plan)

        try:
            summary = self._store.summary(plan.theme_id)
        except ThemeForgeError as exc:
            logger.warning("Installed theme %s but could not summarize it: %s", plan.theme_id, exc.message)
            summary = None
        result = UploadResult(
            theme_id=plan.theme_id,
            is_update=plan.is_update,
            added_versions=list(plan.new_versions),
            summary=summary,
        )
        logger.info(result.message)
        return result

    def _write(self, zf: zipfile.ZipFile, plan: UploadPlan) -> None:
        store = self._store
        store.ensure_root()
        staging = store.root / f"{STAGING_PREFIX}upload-{uuid.uuid4().hex[:8]}"
        written: list[Path] = []
        try:
            extracted = self._extract(zf, plan.theme_id, staging)
            remove_ignored_files(extracted)
            if plan.is_update:
                for version in plan.new_versions:
                    layer = extracted / UPDATES_DIRNAME / version
                    written.append(store.put_version(plan.theme_id, version, layer))
            else:
                written.append(store.put_base(plan.theme_id, extracted))
            if len(plan.package_versions) > 1:
                store.materialize(plan.theme_id)
        except Exception:
            logger.exception("Failed to install theme package %s; rolling back", plan.theme_id)
            for path in reversed(written):
                remove_path(path)
            store.cache.clear()
            raise
        finally:
            if staging.exists():
                remove_path(staging)

    def _extract(self, zf: zipfile.ZipFile, theme_id: str, staging: Path) -> Path:
        target_root = staging / theme_id
        target_root.mkdir(parents=True)
        skip_prefix = f"{theme_id}/{LATEST_DIRNAME}/"
        for info in self._validator.relevant_entries(zf):
            if info.filename.startswith(skip_prefix):
                continue
            relative = info.filename[len(theme_id) + 1:]
            if not relative:
                continue
            destination = target_root / relative
            if info.is_dir():
                destination.mkdir(parents=True, exist_ok=True)
                continue
            destination.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as source, open(destination, "wb") as handle:
                shutil.copyfileobj(source, handle)
        return target_root
