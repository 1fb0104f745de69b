"""Schema-shaped merge of a project's settings values into a newer theme schema.

The new document decides the structure. The user's document only contributes
values: scalars it set, and the ``value`` of setting definitions whose ``id``
still exists. Settings the new schema dropped disappear from the result.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

logger = logging.getLogger(__name__)

_SCALARS = (str, int, float, bool, type(None))


def clone_settings(value: Any) -> Any:
    """Structural copy of a JSON-shaped value.

    Tuples come back as lists. Anything that is not a mapping, sequence or
    JSON scalar raises TypeError rather than being dropped silently.
    """
    if isinstance(value, _SCALARS):
        return value
    if isinstance(value, Mapping):
        return {str(key): clone_settings(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [clone_settings(item) for item in value]
    raise TypeError(f"Cannot clone settings value of type {type(value).__name__}")


def merge_theme_settings(user_doc: Mapping[str, Any], new_doc: Mapping[str, Any]) -> dict[str, Any]:
    merged = clone_settings(new_doc)
    user_settings = user_doc.get("settings")
    new_settings = new_doc.get("settings")
    if isinstance(user_settings, Mapping) and isinstance(new_settings, Mapping):
        merged["settings"] = merge_settings_object(user_settings, new_settings)
    return merged


def merge_settings_object(user_obj: Mapping[str, Any], new_obj: Mapping[str, Any]) -> dict[str, Any]:
    merged = clone_settings(new_obj)
    for key, new_value in new_obj.items():
        if key not in user_obj:
            continue
        user_value = user_obj[key]
        if isinstance(new_value, list):
            merged[key] = merge_settings_array(user_value, new_value)
        elif isinstance(new_value, Mapping):
            if isinstance(user_value, Mapping):
                merged[key] = merge_settings_object(user_value, new_value)
        else:
            merged[key] = clone_settings(user_value)
    return merged


def merge_settings_array(user_list: Any, new_list: list[Any]) -> list[Any]:
    """Carry ``value`` from user items onto new items with the same ``id``."""
    if not isinstance(user_list, list):
        return clone_settings(new_list)

    user_by_id: dict[Any, Mapping[str, Any]] = {}
    for item in user_list:
        if isinstance(item, Mapping) and item.get("id"):
            user_by_id[item["id"]] = item

    merged: list[Any] = []
    for item in new_list:
        copy = clone_settings(item)
        if isinstance(item, Mapping) and item.get("id"):
            user_item = user_by_id.get(item["id"])
            if user_item is not None and "value" in user_item:
                copy["value"] = clone_settings(user_item["value"])
        merged.append(copy)
    return merged


def flatten_theme_settings(doc: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Return ``{category: {id: value}}`` for the ``settings.global`` section.

    An item's ``value`` wins over its ``default``; items with neither map to
    None.
    """
    settings = doc.get("settings")
    if not isinstance(settings, Mapping):
        return {}
    global_section = settings.get("global")
    if not isinstance(global_section, Mapping):
        return {}

    flat: dict[str, dict[str, Any]] = {}
    for category, items in global_section.items():
        if not isinstance(items, list):
            logger.warning("Skipping settings category %s: expected a list", category)
            continue
        values: dict[str, Any] = {}
        for item in items:
            if not isinstance(item, Mapping) or not item.get("id"):
                logger.warning("Skipping settings item without id in category %s", category)
                continue
            if "value" in item:
                values[item["id"]] = clone_settings(item["value"])
            elif "default" in item:
                values[item["id"]] = clone_settings(item["default"])
            else:
                values[item["id"]] = None
        flat[category] = values
    return flat
