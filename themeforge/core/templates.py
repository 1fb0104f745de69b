"""Walks a theme's templates tree and hands each page template to a callback."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

from themeforge.errors import ThemeForgeError
from themeforge.themes.loader import load_json_document

logger = logging.getLogger(__name__)

TemplateProcessor = Callable[[dict[str, Any], str, Path], None]
TemplateErrorHandler = Callable[[Path, Exception], None]


def template_slug(template: dict[str, Any], source: Path) -> str:
    """Slug from the template, or the file stem when it has none or an unsafe one."""
    slug = template.get("slug")
    if not isinstance(slug, str) or not slug.strip():
        return source.stem
    slug = slug.strip()
    if "/" in slug or "\\" in slug or slug.startswith("."):
        logger.warning("Ignoring unsafe slug %r in %s", slug, source.name)
        return source.stem
    return slug


def process_templates_recursive(
    source_dir: Path,
    target_dir: Path,
    processor: TemplateProcessor,
    *,
    on_error: TemplateErrorHandler | None = None,
) -> int:
    """Call *processor(template, slug, target_path)* for every ``*.json`` template.

    Subdirectories map onto subdirectories of *target_dir*; each template's
    target is ``<slug>.json``. Returns how many templates were visited. A
    missing *source_dir* visits nothing.

    A template that cannot be read is passed to *on_error* and skipped; with
    no handler the error propagates.
    """
    if not source_dir.is_dir():
        return 0
    target_dir.mkdir(parents=True, exist_ok=True)

    visited = 0
    for entry in sorted(source_dir.iterdir()):
        if entry.is_dir():
            visited += process_templates_recursive(entry, target_dir / entry.name, processor, on_error=on_error)
        elif entry.is_file() and entry.suffix == ".json":
            try:
                template = load_json_document(entry)
            except (OSError, ThemeForgeError) as exc:
                if on_error is None:
                    raise
                on_error(entry, exc)
                continue
            slug = template_slug(template, entry)
            processor(template, slug, target_dir / f"{slug}.json")
            visited += 1
    return visited
