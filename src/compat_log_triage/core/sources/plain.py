"""Uncompressed text logs."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import aiofiles

from ..models import Attachment
from ..pipe import BytePipe
from .base import DEFAULT_CHUNK_SIZE, SIGNATURE_BYTES, check_cancel
from .gz import GZIP_MAGIC


@dataclass(frozen=True, slots=True)
class PlainTextHandler:
    """Stream ``.log``/``.txt`` files as-is."""

    suffixes: tuple[str, ...] = (".log", ".txt")
    chunk_size: int = DEFAULT_CHUNK_SIZE
    name: str = "plain"

    def can_handle(self, attachment: Attachment) -> bool:
        if not attachment.name.lower().endswith(self.suffixes):
            return False
        # A gzip payload with a .log name is not text.
        return not attachment.read_head(SIGNATURE_BYTES).startswith(GZIP_MAGIC)

    async def stream_into(
        self,
        attachment: Attachment,
        pipe: BytePipe,
        cancel: asyncio.Event | None = None,
    ) -> None:
        async with aiofiles.open(attachment.path, "rb") as f:
            while True:
                check_cancel(cancel)
                chunk = await f.read(self.chunk_size)
                if not chunk:
                    break
                await pipe.write(chunk)
