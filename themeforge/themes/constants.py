"""Theme store constants."""

from __future__ import annotations

THEME_JSON = "theme.json"
SCREENSHOT_FILE = "screenshot.png"
LAYOUT_FILE = "layout.liquid"

UPDATES_DIRNAME = "updates"
LATEST_DIRNAME = "latest"
PRESETS_DIRNAME = "presets"
DELETED_DIRNAME = "deleted"
MENUS_DIRNAME = "menus"
PAGES_DIRNAME = "pages"
TEMPLATES_DIRNAME = "templates"
WIDGETS_DIRNAME = "widgets"
GLOBAL_WIDGETS_DIRNAME = "global"

# Staging directories live beside the directories they replace.
STAGING_PREFIX = ".staging-"

REQUIRED_METADATA_FIELDS: tuple[str, ...] = ("name", "version", "author")

REQUIRED_PACKAGE_FILES: tuple[str, ...] = (
    THEME_JSON,
    SCREENSHOT_FILE,
    LAYOUT_FILE,
)

REQUIRED_PACKAGE_DIRS: tuple[str, ...] = (
    "assets",
    TEMPLATES_DIRNAME,
    WIDGETS_DIRNAME,
)

# Never part of a snapshot or a project working copy.
STORE_INTERNAL_DIRS: frozenset[str] = frozenset({UPDATES_DIRNAME, LATEST_DIRNAME, PRESETS_DIRNAME})

# Replaced wholesale in a project on every theme update.
THEME_OWNED_PATHS: tuple[str, ...] = (
    LAYOUT_FILE,
    "assets",
    WIDGETS_DIRNAME,
    "snippets",
    SCREENSHOT_FILE,
)

IGNORED_ARCHIVE_PREFIXES: tuple[str, ...] = ("__MACOSX/",)
IGNORED_FILE_NAMES: frozenset[str] = frozenset({".DS_Store", "Thumbs.db", "desktop.ini"})
