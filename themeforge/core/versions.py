"""Three-part numeric version parsing, comparison and ordering.

Components compare as integers, so ``"10.0.0"`` sorts after ``"2.0.0"``.
Strings that do not parse are "invalid": they compare equal to each other and
sort after every valid version.
"""

from __future__ import annotations

import re
from functools import cmp_to_key
from typing import Iterable

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")


def parse_version(version: object) -> tuple[int, int, int] | None:
    """Return ``(major, minor, patch)`` or None when *version* is not valid."""
    if not isinstance(version, str):
        return None
    match = _VERSION_RE.match(version)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def is_valid_version(version: object) -> bool:
    return parse_version(version) is not None


def compare_versions(a: object, b: object) -> int:
    """Negative if a < b, positive if a > b, zero if equal."""
    parsed_a = parse_version(a)
    parsed_b = parse_version(b)

    if parsed_a is None and parsed_b is None:
        return 0
    if parsed_a is None:
        return 1
    if parsed_b is None:
        return -1

    for left, right in zip(parsed_a, parsed_b):
        if left != right:
            return left - right
    return 0


def is_newer_version(current: object, candidate: object) -> bool:
    """True when *candidate* is strictly newer than *current*.

    Invalid versions cannot be ordered against anything, so a comparison
    involving one is never "newer".
    """
    if not is_valid_version(current) or not is_valid_version(candidate):
        return False
    return compare_versions(candidate, current) > 0


def sort_versions(versions: Iterable[str]) -> list[str]:
    """Return a new list sorted ascending; invalid versions go last."""
    return sorted(versions, key=cmp_to_key(compare_versions))


def latest_version(versions: Iterable[str]) -> str | None:
    ordered = sort_versions(versions)
    if not ordered:
        return None
    return ordered[-1]
