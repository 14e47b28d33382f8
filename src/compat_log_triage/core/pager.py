"""Split long text into display segments that fit the chat platform limits."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from .models import DisplaySegment, TitleMaker

MAX_DESCRIPTION_LENGTH = 2048
MAX_FIELD_LENGTH = 1024
MAX_FIELD_TITLE_LENGTH = 256
MAX_FIELDS = 25

_ELLIPSIS = "…"
_UNTITLED = "…"


def trim_text(text: str, max_length: int) -> str:
    """Cut text to ``max_length`` characters, marking the cut with an ellipsis."""
    if len(text) <= max_length:
        return text
    if max_length <= len(_ELLIPSIS):
        return text[:max_length]
    return text[: max_length - len(_ELLIPSIS)] + _ELLIPSIS


def make_title(first: str, last: str) -> str:
    """Compact range label for a segment spanning ``first``..``last``.

    Never blank: the platform rejects empty field titles.
    """
    first, last = first.strip(), last.strip()
    if not first or not last:
        return trim_text(first + last, MAX_FIELD_TITLE_LENGTH) or _UNTITLED
    if first == last:
        return first[0]
    if last.startswith(first):
        return trim_text(f"{first} - {last}", MAX_FIELD_TITLE_LENGTH)

    max_prefix = min(len(first), len(last), MAX_FIELD_TITLE_LENGTH // 2)
    prefix = ""
    for i in range(max_prefix):
        if first[i] != last[i]:
            return f"{(prefix + first[i]).rstrip()}-{(prefix + last[i]).rstrip()}"
        prefix += first[i]
    return prefix


def break_in_field_content(
    lines: Iterable[str],
    max_lines_per_field: int = 10,
    title_maker: TitleMaker | None = None,
) -> Iterator[DisplaySegment]:
    """Group lines into segments of at most ``max_lines_per_field`` lines.

    A segment is also closed early when the next line would push the body past
    ``MAX_FIELD_LENGTH``; a single line longer than that is truncated into a
    segment of its own.
    """
    if max_lines_per_field < 1:
        raise ValueError(f"Expected a number greater than 0, but was {max_lines_per_field}")
    title_of = title_maker or make_title

    buffer: list[str] = []
    size = 0
    first = last = ""

    def flush() -> Iterator[DisplaySegment]:
        body = "\n".join(buffer)
        if body.strip():
            yield DisplaySegment(
                title=trim_text(title_of(first, last), MAX_FIELD_TITLE_LENGTH),
                body=body,
            )

    for line in lines:
        if len(buffer) == max_lines_per_field:
            yield from flush()
            buffer, size = [], 0

        added = len(line) + (1 if buffer else 0)
        if size + added > MAX_FIELD_LENGTH:
            if buffer:
                yield from flush()
                buffer, size = [], 0
            if len(line) > MAX_FIELD_LENGTH:
                yield DisplaySegment(
                    title=trim_text(title_of(line, line), MAX_FIELD_TITLE_LENGTH),
                    body=trim_text(line, MAX_FIELD_LENGTH),
                )
                continue
            added = len(line)

        if not buffer:
            first = line
        buffer.append(line)
        size += added
        last = line

    if buffer:
        yield from flush()


def break_in_units(
    segments: Iterable[DisplaySegment],
    max_fields: int = MAX_FIELDS,
) -> Iterator[list[DisplaySegment]]:
    """Fold segments into message units of at most ``max_fields`` fields each."""
    if max_fields < 1:
        raise ValueError("max_fields must be >= 1")
    unit: list[DisplaySegment] = []
    for segment in segments:
        if len(unit) == max_fields:
            yield unit
            unit = []
        unit.append(
            DisplaySegment(
                title=trim_text(segment.title.upper(), MAX_FIELD_TITLE_LENGTH),
                body=segment.body,
            )
        )
    if unit:
        yield unit


def page_section(content: str, section_name: str, max_lines_per_field: int = 100) -> list[DisplaySegment]:
    """Lay out one named section, numbering its parts when it needs several fields."""
    if not content.strip():
        return []
    parts = list(break_in_field_content(content.splitlines(), max_lines_per_field))
    if len(parts) == 1:
        return [DisplaySegment(title=trim_text(section_name, MAX_FIELD_TITLE_LENGTH), body=parts[0].body)]
    total = len(parts)
    return [
        DisplaySegment(
            title=trim_text(f"{section_name} #{idx} of {total}", MAX_FIELD_TITLE_LENGTH),
            body=part.body,
        )
        for idx, part in enumerate(parts, start=1)
    ]
