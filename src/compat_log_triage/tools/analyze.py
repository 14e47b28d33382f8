"""MCP tool implementations.

This module contains the *implementation* behind the exposed MCP tools.
Keep this layer thin: validate inputs, translate them into core calls, and
return JSON-serializable data structures.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from compat_log_triage.core.analysis import AnalysisResult, analyze_attachment
from compat_log_triage.core.models import Attachment, DiagnosticNote, DisplaySegment
from compat_log_triage.core.pager import MAX_FIELD_TITLE_LENGTH, trim_text

DEFAULT_LINES_PER_FIELD = 10
MAX_LINES_PER_FIELD = 100


def _note_to_dict(note: DiagnosticNote) -> dict[str, Any]:
    return {
        "severity": note.severity.name.lower(),
        "text": note.text,
        "rendered": note.render(),
    }


def _segment_to_dict(segment: DisplaySegment) -> dict[str, str]:
    return {"title": segment.title, "body": segment.body}


def result_to_dict(result: AnalysisResult, *, include_facts: bool = False) -> dict[str, Any]:
    """Convert an AnalysisResult into a JSON-serializable dict."""
    d: dict[str, Any] = {
        "status": result.status.value,
        "message": result.message,
        "handler": result.handler,
        "piracy_flagged": result.piracy_flagged,
        "notes": [_note_to_dict(n) for n in result.notes],
        "units": [[_segment_to_dict(s) for s in unit] for unit in result.units],
    }
    state = result.state
    if state is not None:
        d["outcome"] = state.outcome.value
        d["bytes_read"] = state.bytes_read
        d["runs_seen"] = state.runs_seen
        if state.piracy_trigger is not None:
            # The trigger context is delivered paged through "units".
            d["piracy"] = {"trigger": trim_text(state.piracy_trigger, MAX_FIELD_TITLE_LENGTH)}
        if include_facts:
            d["facts"] = state.facts.as_dict()
    return d


async def analyze_log_impl(
    *,
    log_path: str,
    max_lines_per_field: int | None = None,
    include_facts: bool = False,
) -> dict[str, Any]:
    """Implementation for the `analyze_log` MCP tool.

    Notes
    -----
    - The attachment may be a plain log or a gz/zip/rar/7z container.
    - max_lines_per_field is capped at MAX_LINES_PER_FIELD.
    - Rejected, skipped and failed runs are reported through ``status``;
      only invalid arguments raise.
    """
    if max_lines_per_field is None:
        max_lines_per_field = DEFAULT_LINES_PER_FIELD
    if max_lines_per_field <= 0:
        raise ValueError("max_lines_per_field must be > 0")
    max_lines_per_field = min(max_lines_per_field, MAX_LINES_PER_FIELD)

    path = Path(log_path).expanduser()
    if path.is_dir():
        raise ValueError(f"log_path is a directory: {path}")
    attachment = Attachment.from_path(path)

    result = await analyze_attachment(attachment, max_lines_per_field=max_lines_per_field)
    return result_to_dict(result, include_facts=include_facts)
