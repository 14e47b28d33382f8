"""Zip archives containing a log file."""

from __future__ import annotations

import asyncio
import zipfile
import zlib
from dataclasses import dataclass

from ..errors import StreamError
from ..models import Attachment
from ..pipe import BytePipe
from .base import DEFAULT_CHUNK_SIZE, SIGNATURE_BYTES, Emit, pick_log_member, pump_in_thread

ZIP_MAGIC = b"PK\x03\x04"


@dataclass(frozen=True, slots=True)
class ZipHandler:
    chunk_size: int = DEFAULT_CHUNK_SIZE
    name: str = "zip"

    def can_handle(self, attachment: Attachment) -> bool:
        if attachment.name.lower().endswith(".zip"):
            return True
        return attachment.read_head(SIGNATURE_BYTES).startswith(ZIP_MAGIC)

    def _produce(self, attachment: Attachment, emit: Emit) -> None:
        try:
            with attachment.open() as raw, zipfile.ZipFile(raw) as zf:
                member = pick_log_member(i.filename for i in zf.infolist() if not i.is_dir())
                if member is None:
                    raise StreamError("zip archive contains no .log file")
                with zf.open(member) as src:
                    while chunk := src.read(self.chunk_size):
                        emit(chunk)
        except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError) as exc:
            raise StreamError(f"corrupt zip archive: {exc}") from exc

    async def stream_into(
        self,
        attachment: Attachment,
        pipe: BytePipe,
        cancel: asyncio.Event | None = None,
    ) -> None:
        await pump_in_thread(lambda emit: self._produce(attachment, emit), pipe, cancel)
