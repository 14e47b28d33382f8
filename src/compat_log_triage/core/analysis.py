"""Per-attachment pipeline: intake, streaming extraction, notes and layout.

One call handles one attachment from admission to display segments. Failures
stay inside the run: every path returns an :class:`AnalysisResult` and the
intake slot is always released.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from .errors import IntakeRejected
from .extractor import LogExtractor
from .limiter import IntakeLimiter, get_intake_limiter
from .models import (
    Attachment,
    DiagnosticNote,
    DisplaySegment,
    FactField,
    LogParseState,
    NoteSeverity,
    ParseOutcome,
)
from .pager import MAX_DESCRIPTION_LENGTH, MAX_FIELD_LENGTH, break_in_units, page_section, trim_text
from .pipe import BytePipe
from .rules import (
    NOT_CHECKED,
    HttpIrdClient,
    IntegrityLookup,
    RuleContext,
    build_notes,
    check_broken_files,
    missing_license_lines,
    render_notes,
)
from .settings import AnalyzerSettings, resolve_settings
from .sources import HandlerRegistry, SourceHandler, default_registry

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = (
    "Log analysis failed, most likely cause is a truncated/invalid log.\n"
    "Please run the game again and re-upload a new copy."
)
PIRACY_MESSAGE = "Pirated content detected"
SKIPPED_MESSAGE = "Attachment is not a recognized log format"


class AnalysisStatus(str, Enum):
    OK = "ok"
    REJECTED = "rejected"
    SKIPPED = "skipped"
    FAILED = "failed"
    PIRACY = "piracy"


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    status: AnalysisStatus
    message: str | None = None
    notes: list[DiagnosticNote] = field(default_factory=list)
    sections: list[DisplaySegment] = field(default_factory=list)
    units: list[list[DisplaySegment]] = field(default_factory=list)
    state: LogParseState | None = None
    handler: str | None = None

    @property
    def piracy_flagged(self) -> bool:
        if self.status == AnalysisStatus.PIRACY:
            return True
        return any(note.severity == NoteSeverity.PIRACY for note in self.notes)


def default_lookup(settings: AnalyzerSettings) -> IntegrityLookup | None:
    """HTTP manifest client, or None when no service is configured."""
    if not settings.ird_base_url:
        return None
    return HttpIrdClient(settings.ird_base_url, timeout=settings.ird_timeout)


async def _produce(
    handler: SourceHandler,
    attachment: Attachment,
    pipe: BytePipe,
    stop: asyncio.Event,
) -> None:
    try:
        await handler.stream_into(attachment, pipe, stop)
    except Exception as exc:
        await pipe.close(exc)
    else:
        await pipe.close()


async def _relay_cancel(cancel: asyncio.Event, stop: asyncio.Event) -> None:
    await cancel.wait()
    stop.set()


async def _extract(
    handler: SourceHandler,
    attachment: Attachment,
    settings: AnalyzerSettings,
    cancel: asyncio.Event | None,
) -> LogParseState:
    """Run producer and extractor concurrently over one bounded pipe."""
    pipe = BytePipe(settings.pipe_capacity)
    stop = asyncio.Event()
    extractor = LogExtractor(
        triggers=settings.piracy_triggers,
        max_log_size=settings.max_log_size,
        max_line_length=settings.max_line_length,
        context_lines=settings.context_lines,
    )
    producer = asyncio.create_task(_produce(handler, attachment, pipe, stop))
    relay = asyncio.create_task(_relay_cancel(cancel, stop)) if cancel is not None else None
    try:
        return await extractor.read_pipe(pipe, cancel=cancel)
    finally:
        # The reader may stop early (ceiling, trigger); unblock the producer.
        if relay is not None:
            relay.cancel()
        stop.set()
        pipe.abandon()
        try:
            await producer
        except asyncio.CancelledError:
            producer.cancel()
            raise


def _compose_sections(
    state: LogParseState,
    notes: list[DiagnosticNote],
    max_lines_per_field: int,
) -> list[DisplaySegment]:
    facts = state.facts
    sections: list[DisplaySegment] = []

    fatal = facts.get(FactField.FATAL_ERROR)
    if fatal:
        # Fence markers count against the field ceiling.
        body = trim_text(fatal, MAX_FIELD_LENGTH - 8)
        sections.append(DisplaySegment(title="Fatal Error", body=f"```\n{body}\n```"))

    licenses = missing_license_lines(facts)
    if licenses:
        sections.extend(page_section("\n".join(licenses), "Missing Licenses", max_lines_per_field))

    if notes:
        sections.extend(page_section(render_notes(notes), "Notes", max_lines_per_field))
    return sections


def _piracy_result(state: LogParseState, handler: str, max_lines_per_field: int) -> AnalysisResult:
    message = trim_text(f"{PIRACY_MESSAGE}: `{state.piracy_trigger}`", MAX_DESCRIPTION_LENGTH)
    sections = page_section(state.piracy_context or "", "Trigger Context", max_lines_per_field)
    return AnalysisResult(
        status=AnalysisStatus.PIRACY,
        message=message,
        sections=sections,
        units=list(break_in_units(sections)),
        state=state,
        handler=handler,
    )


async def analyze_attachment(
    attachment: Attachment,
    *,
    registry: HandlerRegistry | None = None,
    limiter: IntakeLimiter | None = None,
    lookup: IntegrityLookup | None = None,
    settings: AnalyzerSettings | None = None,
    now: datetime | None = None,
    cancel: asyncio.Event | None = None,
    max_lines_per_field: int = 10,
) -> AnalysisResult:
    """Analyze one attachment end to end."""
    settings = settings or resolve_settings()
    limiter = limiter or get_intake_limiter(settings.max_concurrent_runs)
    registry = registry or default_registry(settings.chunk_size)
    if lookup is None:
        lookup = default_lookup(settings)

    try:
        with limiter.admit():
            return await _analyze_admitted(
                attachment,
                registry=registry,
                lookup=lookup,
                settings=settings,
                now=now or datetime.now(UTC),
                cancel=cancel,
                max_lines_per_field=max_lines_per_field,
            )
    except IntakeRejected as exc:
        logger.info("Rejected %s: %s", attachment.name, exc)
        return AnalysisResult(status=AnalysisStatus.REJECTED, message=str(exc))


async def _analyze_admitted(
    attachment: Attachment,
    *,
    registry: HandlerRegistry,
    lookup: IntegrityLookup | None,
    settings: AnalyzerSettings,
    now: datetime,
    cancel: asyncio.Event | None,
    max_lines_per_field: int,
) -> AnalysisResult:
    handler = registry.select(attachment)
    if handler is None:
        logger.debug("No handler for %s", attachment.name)
        return AnalysisResult(status=AnalysisStatus.SKIPPED, message=SKIPPED_MESSAGE)

    started = time.perf_counter()
    logger.debug("Parsing %s with %s handler", attachment.name, handler.name)
    try:
        state = await _extract(handler, attachment, settings, cancel)
    except Exception:
        logger.exception("Log pipeline failed for %s", attachment.name)
        return AnalysisResult(status=AnalysisStatus.FAILED, message=FAILURE_MESSAGE, handler=handler.name)
    logger.debug(
        "Parsed %s: %s, %s bytes, %s run(s) in %.3fs",
        attachment.name,
        state.outcome.value,
        state.bytes_read,
        state.runs_seen,
        time.perf_counter() - started,
    )

    if state.outcome == ParseOutcome.FAILURE:
        return AnalysisResult(
            status=AnalysisStatus.FAILED,
            message=FAILURE_MESSAGE,
            state=state,
            handler=handler.name,
        )
    if state.outcome == ParseOutcome.PIRACY_DETECTED:
        logger.warning("Piracy trigger %r matched in %s", state.piracy_trigger, attachment.name)
        return _piracy_result(state, handler.name, max_lines_per_field)

    try:
        integrity = NOT_CHECKED
        if lookup is not None:
            integrity = await check_broken_files(state.facts, lookup, settings.ird_cache_dir, cancel=cancel)
        if cancel is not None and cancel.is_set():
            logger.info("Run for %s was cancelled", attachment.name)
            return AnalysisResult(
                status=AnalysisStatus.FAILED,
                message=FAILURE_MESSAGE,
                state=state,
                handler=handler.name,
            )
        notes = build_notes(RuleContext(state=state, integrity=integrity, now=now))
        sections = _compose_sections(state, notes, max_lines_per_field)
        units = list(break_in_units(sections))
    except Exception:
        logger.exception("Failed to build notes for %s", attachment.name)
        return AnalysisResult(
            status=AnalysisStatus.FAILED,
            message=FAILURE_MESSAGE,
            state=state,
            handler=handler.name,
        )

    logger.debug("Analyzed %s in %.3fs", attachment.name, time.perf_counter() - started)
    return AnalysisResult(
        status=AnalysisStatus.OK,
        notes=notes,
        sections=sections,
        units=units,
        state=state,
        handler=handler.name,
    )
