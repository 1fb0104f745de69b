"""Applies a newer theme version to one project without touching user content."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any, Callable

from themeforge import paths
from themeforge.core.fileops import replace_path
from themeforge.core.projects import (
    ProjectRecord,
    ProjectRepository,
    read_project_theme,
    save_project_theme,
    utc_now,
)
from themeforge.core.settings_merge import merge_theme_settings
from themeforge.core.templates import process_templates_recursive
from themeforge.core.versions import is_newer_version
from themeforge.errors import ErrorCode, ThemeForgeError
from themeforge.themes.constants import (
    MENUS_DIRNAME,
    PAGES_DIRNAME,
    TEMPLATES_DIRNAME,
    THEME_JSON,
    THEME_OWNED_PATHS,
)
from themeforge.themes.loader import load_json_document, write_json_document
from themeforge.themes.models import StepOutcome, UpdateCheck, UpdateResult
from themeforge.themes.registry import ThemeStore

logger = logging.getLogger(__name__)

UNKNOWN_VERSION = "unknown"


class UpdateApplier:
    """Propagates a theme's current source version into a project.

    Theme-owned paths are replaced outright. Menus and pages are only added
    where the project has nothing of that name. Settings values are merged
    into the new schema. The project's recorded version is updated last.
    """

    def __init__(
        self,
        store: ThemeStore,
        projects: ProjectRepository,
        projects_root: Path,
        *,
        clock: Callable[[], str] = utc_now,
    ) -> None:
        self._store = store
        self._projects = projects
        self._projects_root = Path(projects_root)
        self._clock = clock

    def check_for_updates(self, project_id: str) -> UpdateCheck:
        project = self._get_project(project_id)
        current = project.theme_version
        source = self._store.source_version(project.theme) if self._store.exists(project.theme) else None
        if not current or not source:
            return UpdateCheck(
                has_update=False,
                current_version=current or UNKNOWN_VERSION,
                latest_version=source or UNKNOWN_VERSION,
            )
        return UpdateCheck(
            has_update=is_newer_version(current, source),
            current_version=current,
            latest_version=source,
        )

    def apply_theme_update(self, project_id: str) -> UpdateResult:
        project = self._get_project(project_id)
        previous = project.theme_version
        check = self.check_for_updates(project_id)
        if not check.has_update:
            return UpdateResult(
                success=False,
                previous_version=previous,
                new_version=previous,
                message="No update available",
            )

        new_version = check.latest_version
        project_dir = paths.project_dir(self._projects_root, project.folder_name)
        source = self._store.source_dir(project.theme)
        logger.info("Updating project %s from %s to %s", project_id, previous, new_version)

        steps: list[StepOutcome] = []
        steps.extend(self._replace_theme_owned(source, project_dir))
        steps.append(self._run_step("menus", lambda: self._import_menus(source, project_dir)))
        steps.append(self._run_step("pages", lambda: self._import_pages(source, project_dir)))
        steps.append(self._run_step("settings", lambda: self._merge_settings(source, project)))

        now = self._clock()
        self._projects.update_project(
            project_id,
            {
                "theme_version": new_version,
                "last_theme_update_at": now,
                "last_theme_update_version": new_version,
                "updated": now,
            },
        )

        result = UpdateResult(
            success=True,
            previous_version=previous,
            new_version=new_version,
            steps=steps,
        )
        if result.partial:
            failed = ", ".join(step.step for step in result.failed_steps)
            result.message = f"Updated to {new_version} with failed steps: {failed}"
            logger.warning("Project %s updated to %s with failed steps: %s", project_id, new_version, failed)
        else:
            result.message = f"Updated from {previous} to {new_version}"
            logger.info("Project %s updated to %s", project_id, new_version)
        return result

    def toggle_theme_updates(self, project_id: str, enabled: bool) -> ProjectRecord:
        self._get_project(project_id)
        record = self._projects.update_project(
            project_id,
            {"receive_theme_updates": bool(enabled), "updated": self._clock()},
        )
        if record is None:
            raise ThemeForgeError(ErrorCode.PROJECT_NOT_FOUND, f"Project not found: {project_id}")
        return record

    def _get_project(self, project_id: str) -> ProjectRecord:
        project = self._projects.get_project_by_id(project_id)
        if project is None:
            raise ThemeForgeError(ErrorCode.PROJECT_NOT_FOUND, f"Project not found: {project_id}")
        return project

    def _run_step(self, name: str, action: Callable[[], StepOutcome]) -> StepOutcome:
        try:
            outcome = action()
        except Exception as exc:  # best-effort step
            logger.warning("Update step %s failed: %s", name, exc)
            return StepOutcome(step=name, status="failed", error=str(exc))
        if outcome.status == "failed":
            logger.warning("Update step %s failed: %s", name, outcome.error)
        return outcome

    def _replace_theme_owned(self, source: Path, project_dir: Path) -> list[StepOutcome]:
        outcomes: list[StepOutcome] = []
        for name in THEME_OWNED_PATHS:
            step = f"replace:{name}"
            source_path = source / name
            if not source_path.exists():
                logger.debug("Skipping %s - not in theme", name)
                outcomes.append(StepOutcome(step=step, status="skipped", detail="not in theme"))
                continue
            try:
                replace_path(source_path, project_dir / name)
            except OSError as exc:
                logger.warning("Failed to update %s: %s", name, exc)
                outcomes.append(StepOutcome(step=step, status="failed", error=str(exc)))
                continue
            outcomes.append(StepOutcome(step=step))
        return outcomes

    def _import_menus(self, source: Path, project_dir: Path) -> StepOutcome:
        theme_menus = source / MENUS_DIRNAME
        if not theme_menus.is_dir():
            return StepOutcome(step="menus", status="skipped", detail="theme has no menus")
        project_menus = project_dir / MENUS_DIRNAME
        project_menus.mkdir(parents=True, exist_ok=True)

        added: list[str] = []
        errors: list[str] = []
        for menu_file in sorted(theme_menus.glob("*.json")):
            target = project_menus / menu_file.name
            if target.exists():
                continue
            try:
                menu = load_json_document(menu_file)
                now = self._clock()
                enriched = {
                    **menu,
                    "id": menu_file.stem,
                    "uuid": menu.get("uuid") or str(uuid.uuid4()),
                    "created": now,
                    "updated": now,
                }
                write_json_document(target, enriched)
            except (OSError, ThemeForgeError) as exc:
                logger.warning("Failed to add menu %s: %s", menu_file.name, exc)
                errors.append(f"{menu_file.name}: {exc}")
                continue
            logger.info("Added new menu: %s", menu_file.name)
            added.append(menu_file.name)

        return _collect("menus", added, errors, noun="menu")

    def _import_pages(self, source: Path, project_dir: Path) -> StepOutcome:
        added: list[str] = []
        errors: list[str] = []

        def add_page(template: dict[str, Any], slug: str, target: Path) -> None:
            if target.exists():
                return
            now = self._clock()
            page = {**template, "id": slug, "slug": slug, "created": now, "updated": now}
            try:
                write_json_document(target, page)
            except OSError as exc:
                logger.warning("Failed to add page %s: %s", slug, exc)
                errors.append(f"{slug}: {exc}")
                return
            logger.info("Added new page from template: %s", slug)
            added.append(slug)

        def skip_template(path: Path, exc: Exception) -> None:
            logger.warning("Failed to read template %s: %s", path.name, exc)
            errors.append(f"{path.name}: {exc}")

        templates = source / TEMPLATES_DIRNAME
        if not templates.is_dir():
            return StepOutcome(step="pages", status="skipped", detail="theme has no templates")
        process_templates_recursive(templates, project_dir / PAGES_DIRNAME, add_page, on_error=skip_template)
        return _collect("pages", added, errors, noun="page")

    def _merge_settings(self, source: Path, project: ProjectRecord) -> StepOutcome:
        user_doc = read_project_theme(self._projects_root, project.folder_name)
        new_doc = load_json_document(source / THEME_JSON)
        save_project_theme(self._projects_root, project.folder_name, merge_theme_settings(user_doc, new_doc))
        logger.info("Merged theme.json for project %s", project.id)
        return StepOutcome(step="settings", detail="merged")


def _collect(step: str, added: list[str], errors: list[str], *, noun: str) -> StepOutcome:
    detail = f"added {len(added)} {noun}(s)"
    if errors:
        return StepOutcome(step=step, status="failed", detail=detail, error="; ".join(errors))
    return StepOutcome(step=step, detail=detail)
