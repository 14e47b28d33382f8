"""Missing license (``.rap``) summary."""

from __future__ import annotations

from pathlib import PurePosixPath

from ..models import FactField, FactSet

KNOWN_BOGUS_LICENSES = frozenset(
    {
        "UP0700-NPUB30932_00-NNKDLFULLGAMEPTB.rap",
        "EP0700-NPEB01158_00-NNKDLFULLGAMEPTB.rap",
    }
)


def missing_license_lines(facts: FactSet, limit: int = 5) -> list[str]:
    names = [PurePosixPath(p.replace("\\", "/")).name for p in facts.values(FactField.RAP_FILE)]
    names = [n for n in dict.fromkeys(names) if n not in KNOWN_BOGUS_LICENSES]
    lines = [f"`{n}`" for n in names]
    if len(lines) > limit:
        other = len(lines) - limit + 1
        lines = lines[: limit - 1]
        lines.append(f"and {other} other license{'' if other == 1 else 's'}")
    return lines
