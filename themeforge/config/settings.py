"""Application settings backed by a YAML file."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from themeforge.errors import ErrorCode, ThemeForgeError

logger = logging.getLogger(__name__)

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def default_data_root() -> Path:
    override = os.environ.get("THEMEFORGE_DATA_ROOT")
    if override:
        return Path(override)
    base = Path(os.environ.get("APPDATA", Path.home() / ".config"))
    return base / "themeforge"


class AppSettings:
    """Wraps ``config.yaml`` for persistent configuration.

    Missing keys fall back to defaults under the data root. The
    ``THEMEFORGE_THEMES_DIR`` and ``THEMEFORGE_PROJECTS_DIR`` environment
    variables win over the file.
    """

    def __init__(self, config_path: Path | None = None, *, data_root: Path | None = None) -> None:
        self._data_root = Path(data_root) if data_root is not None else default_data_root()
        env_config = os.environ.get("THEMEFORGE_CONFIG")
        if config_path is not None:
            self._config_path = Path(config_path)
        elif env_config:
            self._config_path = Path(env_config)
        else:
            self._config_path = self._data_root / "config.yaml"
        self._values: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        if not self._config_path.exists():
            logger.debug("No config file at %s; using defaults", self._config_path)
            return {}
        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ThemeForgeError(
                ErrorCode.CONFIG_INVALID,
                f"Could not parse config file: {exc}",
                path=self._config_path,
            ) from exc
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ThemeForgeError(
                ErrorCode.CONFIG_INVALID,
                "Config file must contain a mapping at the top level",
                path=self._config_path,
            )
        return raw

    def save(self) -> Path:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        self._config_path.write_text(
            yaml.safe_dump(self._values, default_flow_style=False, sort_keys=True),
            encoding="utf-8",
        )
        return self._config_path

    @property
    def config_path(self) -> Path:
        return self._config_path

    @property
    def data_root(self) -> Path:
        return self._data_root

    # -- directories --

    @property
    def themes_dir(self) -> Path:
        return self._path_value("themes_dir", "THEMEFORGE_THEMES_DIR", self._data_root / "themes")

    @themes_dir.setter
    def themes_dir(self, value: str | Path) -> None:
        self._values["themes_dir"] = str(self._require_path(value, "themes_dir"))

    @property
    def projects_dir(self) -> Path:
        return self._path_value("projects_dir", "THEMEFORGE_PROJECTS_DIR", self._data_root / "projects")

    @projects_dir.setter
    def projects_dir(self, value: str | Path) -> None:
        self._values["projects_dir"] = str(self._require_path(value, "projects_dir"))

    @property
    def db_path(self) -> Path:
        return self._path_value("db_path", None, self._data_root / "projects.db")

    @db_path.setter
    def db_path(self, value: str | Path) -> None:
        self._values["db_path"] = str(self._require_path(value, "db_path"))

    @property
    def logs_dir(self) -> Path:
        return self._data_root / "logs"

    # -- logging --

    @property
    def log_level(self) -> str:
        raw = self._values.get("log_level", "INFO")
        level = str(raw or "").strip().upper()
        if level in _LOG_LEVELS:
            return level
        return "INFO"

    @log_level.setter
    def log_level(self, value: str) -> None:
        level = (value or "").strip().upper()
        if level not in _LOG_LEVELS:
            raise ThemeForgeError(ErrorCode.CONFIG_INVALID, f"Unknown log level: {value!r}")
        self._values["log_level"] = level

    # -- uploads --

    @property
    def ignored_names(self) -> tuple[str, ...]:
        raw = self._values.get("ignored_names", [])
        if not isinstance(raw, list):
            return ()
        return tuple(item for item in raw if isinstance(item, str) and item.strip())

    @ignored_names.setter
    def ignored_names(self, value: list[str] | tuple[str, ...]) -> None:
        cleaned = [item.strip() for item in value if isinstance(item, str) and item.strip()]
        self._values["ignored_names"] = cleaned

    # -- helpers --

    def _path_value(self, key: str, env_name: str | None, default: Path) -> Path:
        if env_name:
            override = os.environ.get(env_name)
            if override:
                return Path(override)
        raw = self._values.get(key)
        if isinstance(raw, str) and raw.strip():
            return Path(raw.strip()).expanduser()
        return default

    @staticmethod
    def _require_path(value: str | Path, key: str) -> Path:
        text = str(value).strip() if value is not None else ""
        if not text:
            raise ThemeForgeError(ErrorCode.CONFIG_INVALID, f"{key} must not be empty")
        return Path(text).expanduser()
