"""Error codes and error handling utilities for themeforge."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import Any


class ErrorCode(Enum):
    """Standardized error codes for theme store and update operations."""

    # Validation errors
    UPLOAD_INVALID = auto()
    METADATA_INVALID = auto()
    VERSION_INVALID = auto()

    # Conflict errors
    VERSION_CONFLICT = auto()
    BASE_VERSION_MISMATCH = auto()
    NO_UPDATE_AVAILABLE = auto()
    THEME_IN_USE = auto()

    # Consistency errors
    SNAPSHOT_INCONSISTENT = auto()

    # Lookup errors
    THEME_NOT_FOUND = auto()
    PROJECT_NOT_FOUND = auto()

    # File system errors
    FILE_NOT_FOUND = auto()
    FILE_ACCESS_DENIED = auto()
    FILE_COPY_FAILED = auto()
    DISK_FULL = auto()

    # Operation errors
    OPERATION_FAILED = auto()
    OPERATION_PARTIAL = auto()

    # Configuration errors
    CONFIG_INVALID = auto()
    CONFIG_MISSING = auto()


_FAMILIES: dict[ErrorCode, str] = {
    ErrorCode.UPLOAD_INVALID: "validation",
    ErrorCode.METADATA_INVALID: "validation",
    ErrorCode.VERSION_INVALID: "validation",
    ErrorCode.VERSION_CONFLICT: "conflict",
    ErrorCode.BASE_VERSION_MISMATCH: "conflict",
    ErrorCode.NO_UPDATE_AVAILABLE: "conflict",
    ErrorCode.THEME_IN_USE: "conflict",
    ErrorCode.SNAPSHOT_INCONSISTENT: "consistency",
    ErrorCode.THEME_NOT_FOUND: "lookup",
    ErrorCode.PROJECT_NOT_FOUND: "lookup",
    ErrorCode.FILE_NOT_FOUND: "filesystem",
    ErrorCode.FILE_ACCESS_DENIED: "filesystem",
    ErrorCode.FILE_COPY_FAILED: "filesystem",
    ErrorCode.DISK_FULL: "filesystem",
    ErrorCode.OPERATION_FAILED: "operation",
    ErrorCode.OPERATION_PARTIAL: "operation",
    ErrorCode.CONFIG_INVALID: "config",
    ErrorCode.CONFIG_MISSING: "config",
}


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.UPLOAD_INVALID: "The uploaded theme package is invalid.",
    ErrorCode.METADATA_INVALID: "The theme.json metadata document is invalid.",
    ErrorCode.VERSION_INVALID: "Version must be a semantic version such as 1.0.0.",

    ErrorCode.VERSION_CONFLICT: "This theme version already exists.",
    ErrorCode.BASE_VERSION_MISMATCH: "The package base version does not match the installed theme.",
    ErrorCode.NO_UPDATE_AVAILABLE: "No update available.",
    ErrorCode.THEME_IN_USE: "The theme is in use by one or more projects.",

    ErrorCode.SNAPSHOT_INCONSISTENT: "Theme update folders are inconsistent. Fix the package and rebuild.",

    ErrorCode.THEME_NOT_FOUND: "Theme not found.",
    ErrorCode.PROJECT_NOT_FOUND: "Project not found.",

    ErrorCode.FILE_NOT_FOUND: "The file was not found. It may have been moved or deleted.",
    ErrorCode.FILE_ACCESS_DENIED: "Access denied. Check file and folder permissions.",
    ErrorCode.FILE_COPY_FAILED: "Copying theme files failed.",
    ErrorCode.DISK_FULL: "The destination disk is full. Free up space and try again.",

    ErrorCode.OPERATION_FAILED: "Operation failed. See details for more information.",
    ErrorCode.OPERATION_PARTIAL: "Operation completed with some errors. Review the log.",

    ErrorCode.CONFIG_INVALID: "Configuration is invalid. Fix or remove the config file.",
    ErrorCode.CONFIG_MISSING: "Configuration file not found. Using defaults.",
}


@dataclass
class ThemeForgeError(Exception):
    """Base exception for themeforge with error code and context."""

    code: ErrorCode
    message: str = ""
    path: Path | None = None
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = ERROR_MESSAGES.get(self.code, "An unexpected error occurred.")
        if not self.suggestion and self.code in ERROR_MESSAGES:
            self.suggestion = ERROR_MESSAGES[self.code]

    def __str__(self) -> str:
        parts = [self.message]
        if self.path:
            parts.append(f"\nFile: {self.path}")
        if self.details:
            details_str = " | ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"\nDetails: {details_str}")
        return "".join(parts)

    @property
    def family(self) -> str:
        """Error family: validation, conflict, consistency, lookup, filesystem, operation or config."""
        return _FAMILIES.get(self.code, "operation")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging or API responses."""
        return {
            "code": self.code.name,
            "family": self.family,
            "message": self.message,
            "path": str(self.path) if self.path else None,
            "details": self.details,
            "suggestion": self.suggestion,
        }


def classify_exception(exc: Exception, path: Path | None = None) -> ThemeForgeError:
    """Classify a generic exception into a ThemeForgeError with appropriate code."""
    if isinstance(exc, ThemeForgeError):
        return exc

    exc_name = type(exc).__name__
    exc_str = str(exc).lower()

    if isinstance(exc, FileNotFoundError) or "no such file" in exc_str:
        return ThemeForgeError(ErrorCode.FILE_NOT_FOUND, path=path, details={"original": exc_str})
    if isinstance(exc, PermissionError) or "permission denied" in exc_str or "access is denied" in exc_str:
        return ThemeForgeError(ErrorCode.FILE_ACCESS_DENIED, path=path, details={"original": exc_str})
    if "no space left" in exc_str or "disk full" in exc_str:
        return ThemeForgeError(ErrorCode.DISK_FULL, path=path, details={"original": exc_str})
    if isinstance(exc, json.JSONDecodeError):
        return ThemeForgeError(
            ErrorCode.METADATA_INVALID,
            message=f"Failed to parse JSON: {exc}",
            path=path,
            details={"original": exc_str},
        )
    if isinstance(exc, OSError):
        return ThemeForgeError(ErrorCode.FILE_COPY_FAILED, path=path, details={"original": exc_str})

    return ThemeForgeError(
        ErrorCode.OPERATION_FAILED,
        message=f"{exc_name}: {exc}",
        path=path,
        details={"original": exc_str},
    )


def format_error_for_user(error: ThemeForgeError | Exception) -> str:
    """Format an error for display with actionable suggestions."""
    if isinstance(error, ThemeForgeError):
        parts = [error.message]
        if error.suggestion and error.suggestion != error.message:
            parts.append(f"\n\n{error.suggestion}")
        if error.path:
            parts.append(f"\n\nFile: {error.path.name}")
        return "".join(parts)

    classified = classify_exception(error)
    return format_error_for_user(classified)
