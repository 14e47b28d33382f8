"""Runtime configuration resolved from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_MAX_LOG_SIZE = 64 * 1024 * 1024
DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_PIPE_CAPACITY = 16
DEFAULT_MAX_LINE_LENGTH = 4096
DEFAULT_CONTEXT_LINES = 5
DEFAULT_IRD_TIMEOUT = 10.0

# Literal phrases that end extraction immediately.
DEFAULT_PIRACY_TRIGGERS: tuple[str, ...] = (
    "-DUPLEX",
    "DUPLEX.rap",
    "PS3-DUPLEX",
)


def default_concurrency() -> int:
    """Half of the detected cores, at least one."""
    return max(1, (os.cpu_count() or 1) // 2)


def default_ird_cache_dir() -> Path:
    return Path.home() / ".cache" / "compat-log-triage" / "ird"


@dataclass(frozen=True, slots=True)
class AnalyzerSettings:
    max_concurrent_runs: int = field(default_factory=default_concurrency)
    max_log_size: int = DEFAULT_MAX_LOG_SIZE
    chunk_size: int = DEFAULT_CHUNK_SIZE
    pipe_capacity: int = DEFAULT_PIPE_CAPACITY
    max_line_length: int = DEFAULT_MAX_LINE_LENGTH
    context_lines: int = DEFAULT_CONTEXT_LINES
    piracy_triggers: tuple[str, ...] = DEFAULT_PIRACY_TRIGGERS
    ird_cache_dir: Path = field(default_factory=default_ird_cache_dir)
    ird_base_url: str | None = None
    ird_timeout: float = DEFAULT_IRD_TIMEOUT


def _env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _env_int(name: str, default: int, *, minimum: int = 1) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc
    if value <= 0:
        raise ValueError(f"{name} must be > 0")
    return value


def resolve_settings() -> AnalyzerSettings:
    """Return settings with COMPAT_LOG_* environment overrides applied."""
    triggers = DEFAULT_PIRACY_TRIGGERS
    raw_triggers = _env("COMPAT_LOG_PIRACY_TRIGGERS")
    if raw_triggers is not None:
        triggers = tuple(t.strip() for t in raw_triggers.split(",") if t.strip())

    cache_dir = _env("COMPAT_LOG_IRD_CACHE_DIR")

    return AnalyzerSettings(
        max_concurrent_runs=_env_int("COMPAT_LOG_MAX_CONCURRENT_RUNS", default_concurrency()),
        max_log_size=_env_int("COMPAT_LOG_MAX_SIZE", DEFAULT_MAX_LOG_SIZE),
        chunk_size=_env_int("COMPAT_LOG_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
        pipe_capacity=_env_int("COMPAT_LOG_PIPE_CAPACITY", DEFAULT_PIPE_CAPACITY),
        piracy_triggers=triggers,
        ird_cache_dir=Path(cache_dir) if cache_dir else default_ird_cache_dir(),
        ird_base_url=_env("COMPAT_LOG_IRD_BASE_URL"),
        ird_timeout=_env_float("COMPAT_LOG_IRD_TIMEOUT", DEFAULT_IRD_TIMEOUT),
    )
