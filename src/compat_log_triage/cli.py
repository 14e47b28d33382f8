from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TextIO

from compat_log_triage.core.analysis import AnalysisStatus, analyze_attachment
from compat_log_triage.core.models import Attachment, DisplaySegment
from compat_log_triage.core.settings import resolve_settings


def _positive_int(s: str) -> int:
    try:
        value = int(s)
    except ValueError as e:
        raise argparse.ArgumentTypeError("must be an integer") from e
    if value < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return value


def _print_units(units: list[list[DisplaySegment]], out: TextIO) -> None:
    for unit in units:
        for segment in unit:
            print(f"== {segment.title} ==", file=out)
            print(segment.body, file=out)
            print(file=out)


def main() -> None:
    p = argparse.ArgumentParser(description="Analyze an RPCS3 log (plain or archived) and print diagnostic notes.")
    p.add_argument("log_path")
    p.add_argument("--lines-per-field", type=_positive_int, default=10, help="Note lines per display field")
    p.add_argument("--facts", action="store_true", help="Also print the extracted facts")
    p.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging on stderr")

    args = p.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = resolve_settings()
        attachment = Attachment.from_path(Path(args.log_path))
        result = asyncio.run(
            analyze_attachment(
                attachment,
                settings=settings,
                max_lines_per_field=args.lines_per_field,
            )
        )
    except FileNotFoundError as e:
        print(str(e), file=sys.stderr)
        raise SystemExit(2)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(2)

    if result.status != AnalysisStatus.OK:
        print(result.message or result.status.value, file=sys.stderr)
        _print_units(result.units, sys.stderr)
        raise SystemExit(1)

    if args.facts and result.state is not None:
        for key, value in result.state.facts.as_dict().items():
            print(f"{key}: {value}")
        print()

    _print_units(result.units, sys.stdout)

    print(f"{len(result.notes)} note(s), outcome: {result.state.outcome.value if result.state else '-'}")


if __name__ == "__main__":
    main()
