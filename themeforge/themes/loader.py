"""theme.json parsing, validation and cached reads."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Callable, Mapping

from themeforge.core.settings_merge import clone_settings
from themeforge.core.versions import is_valid_version
from themeforge.errors import ErrorCode, ThemeForgeError
from themeforge.themes.constants import REQUIRED_METADATA_FIELDS
from themeforge.themes.models import ThemeMetadata

_MAX_THEME_JSON_BYTES = 4 * 1024 * 1024
_MAX_SHORT_FIELD_LEN = 120
_MAX_DESC_LEN = 1000

Fingerprint = Callable[[Path], tuple[int, ...]]


def load_json_document(path: Path, *, max_bytes: int = _MAX_THEME_JSON_BYTES) -> dict[str, Any]:
    """Read a JSON object from *path*.

    Raises FileNotFoundError when the file is missing so callers can tell
    "absent" apart from "broken"; every other problem is a METADATA_INVALID
    ThemeForgeError.
    """
    try:
        size = path.stat().st_size
    except FileNotFoundError:
        raise
    except OSError as exc:
        raise ThemeForgeError(ErrorCode.METADATA_INVALID, f"Unable to stat {path}: {exc}", path=path) from exc
    if size > max_bytes:
        raise ThemeForgeError(
            ErrorCode.METADATA_INVALID,
            f"{path.name} exceeds max size ({max_bytes} bytes)",
            path=path,
        )
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except (OSError, UnicodeDecodeError) as exc:
        raise ThemeForgeError(ErrorCode.METADATA_INVALID, f"Unable to read {path}: {exc}", path=path) from exc
    return parse_json_document(content, context=str(path))


def parse_json_document(content: str, *, context: str) -> dict[str, Any]:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ThemeForgeError(
            ErrorCode.METADATA_INVALID,
            f"Invalid theme.json: Failed to parse JSON ({context}: {exc})",
        ) from exc
    if not isinstance(data, dict):
        raise ThemeForgeError(ErrorCode.METADATA_INVALID, f"Expected JSON object in {context}")
    return data


def write_json_document(path: Path, data: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def parse_metadata(data: Mapping[str, object], *, context: str = "theme.json") -> ThemeMetadata:
    """Validate the required metadata fields of a theme.json document."""
    missing = [key for key in REQUIRED_METADATA_FIELDS if not _is_present(data.get(key))]
    if missing:
        raise ThemeForgeError(
            ErrorCode.METADATA_INVALID,
            f"Invalid theme.json: Missing required fields: {', '.join(missing)}",
            details={"context": context, "missing": missing},
        )

    version = data.get("version")
    if not isinstance(version, str) or not is_valid_version(version):
        raise ThemeForgeError(
            ErrorCode.VERSION_INVALID,
            f'Invalid version format: "{version}". Must be semantic version (e.g., 1.0.0)',
            details={"context": context},
        )

    description = data.get("description")
    return ThemeMetadata(
        name=_required_str(data, "name", context, max_len=_MAX_SHORT_FIELD_LEN),
        version=version,
        author=_required_str(data, "author", context, max_len=_MAX_SHORT_FIELD_LEN),
        description=description.strip()[:_MAX_DESC_LEN] if isinstance(description, str) else "",
    )


def declared_version(path: Path) -> str | None:
    """Return the ``version`` declared by a theme.json, or None if it has none."""
    version = load_json_document(path).get("version")
    return version if isinstance(version, str) else None


def _is_present(value: object) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _required_str(data: Mapping[str, object], key: str, context: str, *, max_len: int) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ThemeForgeError(
            ErrorCode.METADATA_INVALID,
            f"Invalid theme.json: field {key!r} must be a non-empty string",
            details={"context": context},
        )
    cleaned = value.strip()
    if len(cleaned) > max_len:
        raise ThemeForgeError(
            ErrorCode.METADATA_INVALID,
            f"Invalid theme.json: field {key!r} exceeds max length {max_len}",
            details={"context": context},
        )
    if any(ch in cleaned for ch in ("\n", "\r", "\t")):
        raise ThemeForgeError(
            ErrorCode.METADATA_INVALID,
            f"Invalid theme.json: field {key!r} must be a single line string",
            details={"context": context},
        )
    return cleaned


def stat_fingerprint(path: Path) -> tuple[int, ...]:
    stat = path.stat()
    return stat.st_mtime_ns, stat.st_size, stat.st_ino


class MetadataCache:
    """Caches parsed theme.json documents per path and file fingerprint.

    The fingerprint function decides when an entry is stale; the default
    compares modification time, size and inode. Callers receive clones, so cached
    documents are never mutated.
    """

    def __init__(self, fingerprint: Fingerprint = stat_fingerprint) -> None:
        self._fingerprint = fingerprint
        self._entries: dict[Path, tuple[tuple[int, ...], dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def load(self, path: Path) -> dict[str, Any]:
        key = path.absolute()
        fingerprint = self._fingerprint(path)
        with self._lock:
            cached = self._entries.get(key)
        if cached is not None and cached[0] == fingerprint:
            return clone_settings(cached[1])

        document = load_json_document(path)
        with self._lock:
            self._entries[key] = (fingerprint, document)
        return clone_settings(document)

    def invalidate(self, path: Path) -> None:
        with self._lock:
            self._entries.pop(path.absolute(), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
