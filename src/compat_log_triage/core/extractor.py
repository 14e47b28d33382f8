"""Streaming fact extraction.

Reads decompressed log bytes chunk by chunk and scrapes the last emulator run
into a :class:`FactSet`. Logs are appended to on every relaunch, so a build
banner line starts a new run and the previous facts only survive as the
"last completed run" fallback used when the size ceiling is hit.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterable, AsyncIterator, Iterator, Sequence

from .cancel import race_cancel
from .errors import RunCancelled, SizeLimitExceeded, StreamError
from .models import FactSet, LogParseState, ParseOutcome
from .patterns import DEFAULT_PATTERNS, LinePattern, is_run_boundary
from .settings import (
    DEFAULT_CONTEXT_LINES,
    DEFAULT_MAX_LINE_LENGTH,
    DEFAULT_MAX_LOG_SIZE,
    DEFAULT_PIRACY_TRIGGERS,
)

logger = logging.getLogger(__name__)


async def _pull(iterator: AsyncIterator[bytes]) -> bytes | None:
    try:
        return await anext(iterator)
    except StopAsyncIteration:
        return None


async def _next_chunk(iterator: AsyncIterator[bytes], cancel: asyncio.Event | None) -> bytes | None:
    """Next chunk, or None at end of stream.

    Waits on the stream and on ``cancel`` together, so a stalled producer
    cannot hold the run once it is cancelled.
    """
    if cancel is not None and cancel.is_set():
        raise RunCancelled("cancelled")
    return await race_cancel(_pull(iterator), cancel)


class _TriggerHit(Exception):
    def __init__(self, trigger: str, context: str) -> None:
        super().__init__(trigger)
        self.trigger = trigger
        self.context = context


class LogExtractor:
    """Single-use extractor: one instance produces exactly one LogParseState."""

    def __init__(
        self,
        *,
        patterns: Sequence[LinePattern] = DEFAULT_PATTERNS,
        triggers: Sequence[str] = DEFAULT_PIRACY_TRIGGERS,
        max_log_size: int = DEFAULT_MAX_LOG_SIZE,
        max_line_length: int = DEFAULT_MAX_LINE_LENGTH,
        context_lines: int = DEFAULT_CONTEXT_LINES,
        encoding: str = "utf-8",
    ) -> None:
        if max_log_size < 1:
            raise ValueError("max_log_size must be >= 1")
        if max_line_length < 1:
            raise ValueError("max_line_length must be >= 1")
        self.patterns = tuple(patterns)
        self.triggers = tuple(t for t in triggers if t)
        self._trigger_bytes = tuple((t, t.encode(encoding)) for t in self.triggers)
        # Bytes of a capped line kept around so a trigger split across reads is still seen.
        self._overlap = max((len(b) for _, b in self._trigger_bytes), default=1) - 1
        self.max_log_size = max_log_size
        self.max_line_length = max_line_length
        self.encoding = encoding

        self._current = FactSet()
        self._completed: FactSet | None = None
        self._context: deque[str] = deque(maxlen=max(0, context_lines))
        self._partial = bytearray()
        self._overflow_tail = b""
        self._overflowing = False
        self._bytes_read = 0
        self._runs_seen = 0
        self._state: LogParseState | None = None

    @property
    def state(self) -> LogParseState | None:
        return self._state

    async def read_pipe(
        self,
        chunks: AsyncIterable[bytes],
        cancel: asyncio.Event | None = None,
    ) -> LogParseState:
        """Consume the stream and return the terminal parse state."""
        if self._state is not None:
            raise RuntimeError("LogExtractor instances are single-use")

        iterator = aiter(chunks)
        try:
            while True:
                chunk = await _next_chunk(iterator, cancel)
                if chunk is None:
                    break
                self._consume(chunk)
            if self._partial:
                self._feed_line(self._take_partial())
        except _TriggerHit as hit:
            return self._finish(
                ParseOutcome.PIRACY_DETECTED,
                self._current,
                trigger=hit.trigger,
                context=hit.context,
            )
        except SizeLimitExceeded as exc:
            logger.debug("Log truncated at %s bytes after %s run(s)", exc.limit, self._runs_seen)
            facts = self._completed if self._completed is not None else self._current
            return self._finish(ParseOutcome.TRUNCATED, facts)
        except StreamError as exc:
            logger.warning("Log stream failed after %s bytes: %s", self._bytes_read, exc)
            return self._finish(ParseOutcome.FAILURE, self._current)

        return self._finish(ParseOutcome.SUCCESS, self._current)

    def _finish(
        self,
        outcome: ParseOutcome,
        facts: FactSet,
        *,
        trigger: str | None = None,
        context: str | None = None,
    ) -> LogParseState:
        self._state = LogParseState(
            outcome=outcome,
            facts=facts.freeze(),
            piracy_trigger=trigger,
            piracy_context=context,
            bytes_read=self._bytes_read,
            runs_seen=self._runs_seen,
        )
        return self._state

    def _consume(self, chunk: bytes) -> None:
        remaining = self.max_log_size - self._bytes_read
        over = len(chunk) > remaining
        if over:
            chunk = chunk[:remaining]
        self._bytes_read += len(chunk)
        for raw in self._split(chunk):
            self._feed_line(raw)
        if over:
            # The cut-off partial line is dropped with the rest.
            raise SizeLimitExceeded(self.max_log_size)

    def _split(self, chunk: bytes) -> Iterator[bytes]:
        start = 0
        while True:
            nl = chunk.find(b"\n", start)
            if nl < 0:
                self._append_partial(chunk[start:])
                return
            self._append_partial(chunk[start:nl])
            yield self._take_partial()
            start = nl + 1

    def _append_partial(self, data: bytes) -> None:
        if not data:
            return
        room = self.max_line_length - len(self._partial)
        if room > 0:
            self._partial += data[:room]
            data = data[room:]
            if not data:
                return
        self._scan_overflow(data)

    def _scan_overflow(self, data: bytes) -> None:
        """Look for triggers in the part of a line that is not stored."""
        if not self._trigger_bytes:
            return
        if self._overflowing:
            head = self._overflow_tail
        else:
            head = bytes(self._partial[max(0, len(self._partial) - self._overlap) :])
        window = head + data
        for trigger, needle in self._trigger_bytes:
            if needle in window:
                raise _TriggerHit(trigger, self._context_with(self._decode(bytes(self._partial))))
        self._overflow_tail = window[max(0, len(window) - self._overlap) :]
        self._overflowing = True

    def _take_partial(self) -> bytes:
        raw = bytes(self._partial)
        self._partial.clear()
        self._overflow_tail = b""
        self._overflowing = False
        return raw

    def _decode(self, raw: bytes) -> str:
        return raw.decode(self.encoding, errors="replace").rstrip("\r")

    def _context_with(self, line: str) -> str:
        return "\n".join([*self._context, line])

    def _feed_line(self, raw: bytes) -> None:
        line = self._decode(raw)

        for trigger in self.triggers:
            if trigger in line:
                raise _TriggerHit(trigger, self._context_with(line))
        self._context.append(line)

        if is_run_boundary(line):
            if len(self._current):
                self._completed = self._current
            self._current = FactSet()
            self._runs_seen += 1

        for pattern in self.patterns:
            pattern.apply(line, self._current)


async def extract_facts(
    chunks: AsyncIterable[bytes],
    *,
    cancel: asyncio.Event | None = None,
    **extractor_kwargs,
) -> LogParseState:
    """Convenience wrapper: run a fresh extractor over a chunk stream."""
    return await LogExtractor(**extractor_kwargs).read_pipe(chunks, cancel=cancel)
