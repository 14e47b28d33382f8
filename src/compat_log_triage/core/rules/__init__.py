"""Diagnostic rules over extracted log facts."""

from .build_age import build_age_notes, classify_build_age, describe_time_delta, parse_build_time
from .engine import RuleContext, build_notes, render_notes, sort_notes
from .integrity import (
    NOT_CHECKED,
    HttpIrdClient,
    IntegrityCheck,
    IntegrityLookup,
    IrdManifest,
    check_broken_files,
)
from .licenses import missing_license_lines
from .versions import format_version, parse_version

__all__ = [
    "NOT_CHECKED",
    "HttpIrdClient",
    "IntegrityCheck",
    "IntegrityLookup",
    "IrdManifest",
    "RuleContext",
    "build_age_notes",
    "build_notes",
    "check_broken_files",
    "classify_build_age",
    "describe_time_delta",
    "format_version",
    "missing_license_lines",
    "parse_build_time",
    "parse_version",
    "render_notes",
    "sort_notes",
]
