"""Dotted version parsing with two to four numeric components."""

from __future__ import annotations

import re

Version = tuple[int, ...]

_VERSION_RE = re.compile(r"^\d+(?:\.\d+){1,3}$")


def parse_version(value: str | None) -> Version | None:
    """Parse ``"4.86"``/``"441.87.0"`` style strings; anything else is None."""
    if value is None:
        return None
    value = value.strip()
    if not _VERSION_RE.match(value):
        return None
    return tuple(int(part) for part in value.split("."))


def format_version(version: Version) -> str:
    return ".".join(str(part) for part in version)
