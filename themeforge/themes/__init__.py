"""Theme store exports."""

from themeforge.themes.constants import THEME_JSON, THEME_OWNED_PATHS
from themeforge.themes.models import (
    StepOutcome,
    ThemeMetadata,
    ThemeSummary,
    UpdateCheck,
    UpdateResult,
    UploadPlan,
    UploadResult,
)

__all__ = [
    "THEME_JSON",
    "THEME_OWNED_PATHS",
    "StepOutcome",
    "ThemeMetadata",
    "ThemeSummary",
    "UpdateCheck",
    "UpdateResult",
    "UploadPlan",
    "UploadResult",
]
