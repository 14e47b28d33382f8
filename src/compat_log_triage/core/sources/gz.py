"""Gzip-compressed logs (the emulator's own ``RPCS3.log.gz``)."""

from __future__ import annotations

import asyncio
import zlib
from dataclasses import dataclass

import aiofiles

from ..errors import StreamError
from ..models import Attachment
from ..pipe import BytePipe
from .base import DEFAULT_CHUNK_SIZE, SIGNATURE_BYTES, check_cancel

GZIP_MAGIC = b"\x1f\x8b"
_GZIP_WBITS = 16 + zlib.MAX_WBITS


@dataclass(frozen=True, slots=True)
class GzipHandler:
    """Inflate gzip members incrementally while reading the file."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    name: str = "gzip"

    def can_handle(self, attachment: Attachment) -> bool:
        if attachment.name.lower().endswith(".gz"):
            return True
        return attachment.read_head(SIGNATURE_BYTES).startswith(GZIP_MAGIC)

    async def stream_into(
        self,
        attachment: Attachment,
        pipe: BytePipe,
        cancel: asyncio.Event | None = None,
    ) -> None:
        d = zlib.decompressobj(_GZIP_WBITS)
        started = False
        try:
            async with aiofiles.open(attachment.path, "rb") as f:
                while True:
                    check_cancel(cancel)
                    buf = await f.read(self.chunk_size)
                    if not buf:
                        break
                    while True:
                        if not started:
                            # Members may be followed by NUL padding.
                            buf = buf.lstrip(b"\x00")
                            if not buf:
                                break
                            started = True
                        # Bounded output per call keeps decompression bombs in check.
                        out = d.decompress(buf, self.chunk_size)
                        if out:
                            await pipe.write(out)
                        if d.eof:
                            # Concatenated members follow in the same buffer.
                            buf = d.unused_data
                            d = zlib.decompressobj(_GZIP_WBITS)
                            started = False
                            if not buf:
                                break
                            continue
                        buf = d.unconsumed_tail
                        if not buf and not out:
                            break
        except zlib.error as exc:
            raise StreamError(f"corrupt gzip stream: {exc}") from exc

        if started and not d.eof:
            raise StreamError("gzip stream ended unexpectedly")
