"""Theme store models."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class ThemeMetadata:
    """Theme metadata parsed from theme.json."""

    name: str
    version: str
    author: str
    description: str = ""


@dataclass(frozen=True, slots=True)
class ThemeSummary:
    """Display-ready theme listing row."""

    theme_id: str
    name: str
    description: str
    author: str
    version: str
    versions: tuple[str, ...]
    latest_version: str | None
    has_pending_update: bool
    widgets: int
    source_dir: Path

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.theme_id,
            "name": self.name,
            "description": self.description,
            "author": self.author,
            "version": self.version,
            "versions": list(self.versions),
            "latestVersion": self.latest_version,
            "hasPendingUpdate": self.has_pending_update,
            "widgets": self.widgets,
        }


@dataclass(frozen=True, slots=True)
class UploadPlan:
    """Outcome of validating an uploaded package, before anything is written."""

    theme_id: str
    metadata: ThemeMetadata
    is_update: bool
    package_versions: tuple[str, ...]
    new_versions: tuple[str, ...]


@dataclass
class UploadResult:
    theme_id: str
    is_update: bool
    added_versions: list[str]
    summary: ThemeSummary | None = None

    @property
    def message(self) -> str:
        if self.is_update:
            joined = ", ".join(self.added_versions)
            return f"Theme update '{self.theme_id}' v{joined} imported successfully."
        version = self.summary.version if self.summary else ""
        return f"Theme '{self.theme_id}' v{version} installed successfully."

    def to_dict(self) -> dict[str, Any]:
        data = self.summary.to_dict() if self.summary else {"id": self.theme_id}
        data["isUpdate"] = self.is_update
        data["addedVersions"] = list(self.added_versions)
        return data


@dataclass(frozen=True, slots=True)
class UpdateCheck:
    has_update: bool
    current_version: str
    latest_version: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "hasUpdate": self.has_update,
            "currentVersion": self.current_version,
            "latestVersion": self.latest_version,
        }


@dataclass
class StepOutcome:
    """Result of one best-effort step of a project update."""

    step: str
    status: str = "ok"  # ok, skipped, failed
    detail: str = ""
    error: str = ""


@dataclass
class UpdateResult:
    success: bool
    previous_version: str | None
    new_version: str | None
    message: str = ""
    steps: list[StepOutcome] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return any(step.status == "failed" for step in self.steps)

    @property
    def failed_steps(self) -> list[StepOutcome]:
        return [step for step in self.steps if step.status == "failed"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "previousVersion": self.previous_version,
            "newVersion": self.new_version,
            "message": self.message,
            "partial": self.partial,
            "steps": [
                {"step": s.step, "status": s.status, "detail": s.detail, "error": s.error}
                for s in self.steps
            ],
        }
