"""Command line bootstrap."""

from __future__ import annotations

import argparse
import json
import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path

from themeforge.config.settings import AppSettings
from themeforge.core.projects import SqliteProjectRepository
from themeforge.errors import ThemeForgeError
from themeforge.themes.registry import ThemeStore
from themeforge.themes.service import ServiceResult, ThemeService

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(settings: AppSettings, *, stderr: bool = True) -> logging.Logger:
    logger = logging.getLogger("themeforge")
    if logger.handlers:
        return logger

    logger.setLevel(settings.log_level)
    log_dir = settings.logs_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / "themeforge.log",
        maxBytes=512_000,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(handler)
    if stderr:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(logging.WARNING)
        console.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        logger.addHandler(console)
    logger.propagate = False
    return logger


def build_service(settings: AppSettings) -> tuple[ThemeService, SqliteProjectRepository]:
    """Wire the store, project repository and service from settings."""
    store = ThemeStore(settings.themes_dir)
    store.ensure_root()
    settings.projects_dir.mkdir(parents=True, exist_ok=True)
    projects = SqliteProjectRepository(settings.db_path)
    projects.open()
    service = ThemeService(store, projects, settings.projects_dir, ignored_names=settings.ignored_names)
    return service, projects


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="themeforge", description="Theme versioning and update tool")
    parser.add_argument("--config", type=Path, default=None, help="path to config.yaml")
    sub = parser.add_subparsers(dest="command", required=True)

    versions = sub.add_parser("versions", help="list the versions of a theme")
    versions.add_argument("theme")

    sub.add_parser("list", help="list installed themes")

    upload = sub.add_parser("upload", help="install a theme package or update")
    upload.add_argument("archive", type=Path)

    build = sub.add_parser("build", help="rebuild a theme's latest/ snapshot")
    build.add_argument("theme")

    check = sub.add_parser("check", help="check a project for a theme update")
    check.add_argument("project")

    apply = sub.add_parser("apply", help="apply the theme update to a project")
    apply.add_argument("project")
    return parser


def _dispatch(service: ThemeService, args: argparse.Namespace) -> ServiceResult:
    if args.command == "versions":
        return service.get_versions(args.theme)
    if args.command == "list":
        return service.list_themes()
    if args.command == "upload":
        return service.upload_theme(args.archive)
    if args.command == "build":
        return service.build_latest_snapshot(args.theme)
    if args.command == "check":
        return service.check_for_updates(args.project)
    return service.apply_theme_update(args.project)


def main(argv: list[str] | None = None) -> int:
    """Run one command and print its result as JSON."""
    args = build_parser().parse_args(argv)
    try:
        settings = AppSettings(args.config)
    except ThemeForgeError as exc:
        print(json.dumps({"ok": False, "message": exc.message, "error": exc.to_dict()}, indent=2))
        return 1

    logger = configure_logging(settings)
    logger.debug("command=%s config=%s", args.command, settings.config_path)
    service, projects = build_service(settings)
    try:
        result = _dispatch(service, args)
    finally:
        projects.close()

    print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0 if result.ok else 1
