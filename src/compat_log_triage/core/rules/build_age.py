"""Build age classification."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from ..models import DiagnosticNote, FactField, FactSet, NoteSeverity

OLD_BUILD = timedelta(days=30)
VERY_OLD_BUILD = timedelta(days=60)
VERY_VERY_OLD_BUILD = timedelta(days=90)
ANCIENT_BUILD = timedelta(days=180)
PREHISTORIC_BUILD = timedelta(days=365)

# Checked from the oldest bucket down.
_AGE_BUCKETS: tuple[tuple[timedelta, NoteSeverity], ...] = (
    (PREHISTORIC_BUILD, NoteSeverity.CRITICAL),
    (ANCIENT_BUILD, NoteSeverity.CRITICAL),
    (VERY_VERY_OLD_BUILD, NoteSeverity.WARNING),
    (VERY_OLD_BUILD, NoteSeverity.WARNING),
    (OLD_BUILD, NoteSeverity.ADVISORY),
)

MAIN_BRANCHES = frozenset({"head", "master", "spu_perf"})

_BUILD_TIME_FORMATS = (
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
)


def parse_build_time(value: str | None) -> datetime | None:
    """Parse a build timestamp fact as UTC."""
    if not value:
        return None
    for fmt in _BUILD_TIME_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).replace(tzinfo=UTC)
        except ValueError:
            continue
    return None


def classify_build_age(age: timedelta) -> NoteSeverity:
    for threshold, severity in _AGE_BUCKETS:
        if age > threshold:
            return severity
    return NoteSeverity.INFO


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}" if n == 1 else f"{n} {unit}s"


def describe_time_delta(delta: timedelta) -> str:
    """Human description such as ``"3 months"`` or ``"1 year and 2 months"``."""
    if delta < timedelta(0):
        delta = timedelta(0)
    days = delta.days
    if days >= 365:
        years, rest = divmod(days, 365)
        months = rest // 30
        if months:
            return f"{_plural(years, 'year')} and {_plural(months, 'month')}"
        return _plural(years, "year")
    if days >= 30:
        return _plural(days // 30, "month")
    if days >= 7:
        return _plural(days // 7, "week")
    if days >= 1:
        return _plural(days, "day")
    hours = delta.seconds // 3600
    if hours >= 1:
        return _plural(hours, "hour")
    return "less than an hour"


def build_age_notes(facts: FactSet, now: datetime) -> list[DiagnosticNote]:
    branch = (facts.get(FactField.BUILD_BRANCH) or "").lower()
    if branch not in MAIN_BRANCHES:
        return []
    built = parse_build_time(facts.get(FactField.BUILD_TIME))
    if built is None:
        return []

    age = now - built
    severity = classify_build_age(age)
    text = f"This RPCS3 build is {describe_time_delta(age)} old"
    if severity > NoteSeverity.INFO:
        text += ", please consider updating it"
    notes = [DiagnosticNote(severity, text)]
    if branch == "spu_perf":
        notes.append(
            DiagnosticNote(
                NoteSeverity.INFO,
                f"`{branch}` build is obsolete, current master build offers at least the same "
                "level of performance and includes many additional improvements",
            )
        )
    return notes
