"""Theme operations exposed to callers as structured results."""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping

from themeforge import paths
from themeforge.core.projects import ProjectRecord, ProjectRepository, read_project_theme, save_project_theme
from themeforge.core.updater import UpdateApplier
from themeforge.errors import ErrorCode, ThemeForgeError, classify_exception
from themeforge.themes.registry import ThemeStore
from themeforge.themes.upload import ArchiveSource, ThemeInstaller, ThemeUploadValidator

logger = logging.getLogger(__name__)


@dataclass
class ServiceResult:
    ok: bool
    message: str = ""
    data: Any = None
    error: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"ok": self.ok, "message": self.message, "data": self.data, "error": self.error}


def _failure(exc: Exception) -> ServiceResult:
    error = classify_exception(exc)
    return ServiceResult(ok=False, message=error.message, error=error.to_dict())


class ThemeService:
    """Theme store, upload and project update operations.

    Every public method returns a :class:`ServiceResult`; errors never
    propagate to the caller.
    """

    def __init__(
        self,
        store: ThemeStore,
        projects: ProjectRepository,
        projects_root: Path,
        *,
        ignored_names: tuple[str, ...] = (),
    ) -> None:
        self._store = store
        self._projects = projects
        self._projects_root = Path(projects_root)
        self._installer = ThemeInstaller(store, ThemeUploadValidator(store, ignored_names=ignored_names))
        self._applier = UpdateApplier(store, projects, projects_root)

    @property
    def store(self) -> ThemeStore:
        return self._store

    def _run(self, label: str, action: Callable[[], ServiceResult]) -> ServiceResult:
        try:
            return action()
        except ThemeForgeError as exc:
            logger.warning("%s failed: %s", label, exc.message)
            return _failure(exc)
        except Exception as exc:  # pragma: no cover - boundary
            logger.exception("%s failed unexpectedly", label)
            return _failure(exc)

    # -- themes --

    def get_versions(self, theme_id: str) -> ServiceResult:
        return self._run(
            "get_versions",
            lambda: ServiceResult(ok=True, data=self._store.versions(theme_id)),
        )

    def list_themes(self) -> ServiceResult:
        return self._run(
            "list_themes",
            lambda: ServiceResult(ok=True, data=[row.to_dict() for row in self._store.summaries()]),
        )

    def upload_theme(self, archive: ArchiveSource) -> ServiceResult:
        def action() -> ServiceResult:
            result = self._installer.install(archive)
            return ServiceResult(ok=True, message=result.message, data=result.to_dict())

        return self._run("upload_theme", action)

    def build_latest_snapshot(self, theme_id: str) -> ServiceResult:
        def action() -> ServiceResult:
            built = self._store.materialize(theme_id)
            message = (
                f"Built latest/ for '{theme_id}' from {len(built)} version(s)"
                if built
                else f"Theme '{theme_id}' has no updates; nothing to build"
            )
            return ServiceResult(ok=True, message=message, data={"versions": built})

        return self._run("build_latest_snapshot", action)

    def update_theme(self, theme_id: str) -> ServiceResult:
        """Build the snapshot when the theme has versions newer than its source."""

        def action() -> ServiceResult:
            if not self._store.exists(theme_id):
                raise ThemeForgeError(ErrorCode.THEME_NOT_FOUND, f"Theme '{theme_id}' not found")
            if not self._store.has_pending_updates(theme_id):
                raise ThemeForgeError(ErrorCode.NO_UPDATE_AVAILABLE, f"Theme '{theme_id}' has no pending updates")
            self._store.materialize(theme_id)
            summary = self._store.summary(theme_id)
            return ServiceResult(
                ok=True,
                message=f"Theme '{theme_id}' updated to version {summary.version}",
                data=summary.to_dict(),
            )

        return self._run("update_theme", action)

    def delete_theme(self, theme_id: str) -> ServiceResult:
        def action() -> ServiceResult:
            self._store.delete_theme(theme_id, self._projects)
            return ServiceResult(ok=True, message=f"Theme '{theme_id}' deleted")

        return self._run("delete_theme", action)

    def pending_update_count(self) -> ServiceResult:
        return self._run(
            "pending_update_count",
            lambda: ServiceResult(ok=True, data={"count": self._store.pending_update_count()}),
        )

    # -- projects --

    def copy_theme_to_project(self, theme_id: str, folder_name: str) -> ServiceResult:
        def action() -> ServiceResult:
            target = paths.project_dir(self._projects_root, folder_name)
            version = self._store.copy_to_project(theme_id, target)
            return ServiceResult(
                ok=True,
                message=f"Copied theme '{theme_id}' into {folder_name}",
                data={"version": version, "path": str(target)},
            )

        return self._run("copy_theme_to_project", action)

    def check_for_updates(self, project_id: str) -> ServiceResult:
        return self._run(
            "check_for_updates",
            lambda: ServiceResult(ok=True, data=self._applier.check_for_updates(project_id).to_dict()),
        )

    def apply_theme_update(self, project_id: str) -> ServiceResult:
        def action() -> ServiceResult:
            result = self._applier.apply_theme_update(project_id)
            error = None
            if not result.success:
                error = ThemeForgeError(ErrorCode.NO_UPDATE_AVAILABLE, result.message).to_dict()
            return ServiceResult(ok=result.success, message=result.message, data=result.to_dict(), error=error)

        return self._run("apply_theme_update", action)

    def toggle_theme_updates(self, project_id: str, enabled: bool) -> ServiceResult:
        def action() -> ServiceResult:
            record = self._applier.toggle_theme_updates(project_id, enabled)
            state = "enabled" if record.receive_theme_updates else "disabled"
            return ServiceResult(
                ok=True,
                message=f"Theme updates {state}",
                data={"receiveThemeUpdates": record.receive_theme_updates},
            )

        return self._run("toggle_theme_updates", action)

    def read_project_theme(self, project_id: str) -> ServiceResult:
        def action() -> ServiceResult:
            project = self._project(project_id)
            return ServiceResult(ok=True, data=read_project_theme(self._projects_root, project.folder_name))

        return self._run("read_project_theme", action)

    def save_project_theme(self, project_id: str, document: Mapping[str, Any]) -> ServiceResult:
        def action() -> ServiceResult:
            project = self._project(project_id)
            save_project_theme(self._projects_root, project.folder_name, document)
            return ServiceResult(ok=True, message="Theme settings saved successfully")

        return self._run("save_project_theme", action)

    def _project(self, project_id: str) -> ProjectRecord:
        project = self._projects.get_project_by_id(project_id)
        if project is None:
            raise ThemeForgeError(ErrorCode.PROJECT_NOT_FOUND, f"Project not found: {project_id}")
        return project


class AsyncThemeService:
    """Coroutine wrapper running each :class:`ThemeService` call in a worker thread."""

    def __init__(self, service: ThemeService) -> None:
        self._service = service

    async def _call(self, method: Callable[..., ServiceResult], *args: Any) -> ServiceResult:
        return await asyncio.to_thread(functools.partial(method, *args))

    async def get_versions(self, theme_id: str) -> ServiceResult:
        return await self._call(self._service.get_versions, theme_id)

    async def list_themes(self) -> ServiceResult:
        return await self._call(self._service.list_themes)

    async def upload_theme(self, archive: ArchiveSource) -> ServiceResult:
        return await self._call(self._service.upload_theme, archive)

    async def build_latest_snapshot(self, theme_id: str) -> ServiceResult:
        return await self._call(self._service.build_latest_snapshot, theme_id)

    async def update_theme(self, theme_id: str) -> ServiceResult:
        return await self._call(self._service.update_theme, theme_id)

    async def delete_theme(self, theme_id: str) -> ServiceResult:
        return await self._call(self._service.delete_theme, theme_id)

    async def pending_update_count(self) -> ServiceResult:
        return await self._call(self._service.pending_update_count)

    async def copy_theme_to_project(self, theme_id: str, folder_name: str) -> ServiceResult:
        return await self._call(self._service.copy_theme_to_project, theme_id, folder_name)

    async def check_for_updates(self, project_id: str) -> ServiceResult:
        return await self._call(self._service.check_for_updates, project_id)

    async def apply_theme_update(self, project_id: str) -> ServiceResult:
        return await self._call(self._service.apply_theme_update, project_id)

    async def toggle_theme_updates(self, project_id: str, enabled: bool) -> ServiceResult:
        return await self._call(self._service.toggle_theme_updates, project_id, enabled)

    async def read_project_theme(self, project_id: str) -> ServiceResult:
        return await self._call(self._service.read_project_theme, project_id)

    async def save_project_theme(self, project_id: str, document: Mapping[str, Any]) -> ServiceResult:
        return await self._call(self._service.save_project_theme, project_id, document)
