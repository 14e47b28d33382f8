"""Source handler interface and shared streaming helpers."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from pathlib import PurePosixPath
from typing import Protocol

from ..errors import RunCancelled
from ..models import Attachment
from ..pipe import BytePipe

SIGNATURE_BYTES = 8
DEFAULT_CHUNK_SIZE = 64 * 1024

Emit = Callable[[bytes], None]


class SourceHandler(Protocol):
    """Container format detector + decompressing producer."""

    name: str

    def can_handle(self, attachment: Attachment) -> bool:
        """Cheap check on filename suffix or leading signature bytes."""
        ...

    async def stream_into(
        self,
        attachment: Attachment,
        pipe: BytePipe,
        cancel: asyncio.Event | None = None,
    ) -> None:
        """Write decompressed log bytes into the pipe as they become available."""
        ...


def check_cancel(cancel: asyncio.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise RunCancelled("cancelled")


def is_tty_log(name: str) -> bool:
    return PurePosixPath(name.replace("\\", "/")).name.lower() == "tty.log"


def pick_log_member(names: Iterable[str]) -> str | None:
    """First archive member that looks like an emulator log."""
    for name in names:
        if name.lower().endswith(".log") and not is_tty_log(name):
            return name
    return None


async def pump_in_thread(
    produce: Callable[[Emit], None],
    pipe: BytePipe,
    cancel: asyncio.Event | None = None,
) -> None:
    """Run a blocking producer in a worker thread, feeding the pipe with backpressure."""
    loop = asyncio.get_running_loop()

    def emit(chunk: bytes) -> None:
        check_cancel(cancel)
        pipe.write_threadsafe(chunk, loop)

    await asyncio.to_thread(produce, emit)
