"""RAR archives containing a log file.

Decompression is delegated to ``rarfile``, which needs an ``unrar``-compatible
tool on PATH for compressed members.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import rarfile

from ..errors import StreamError
from ..models import Attachment
from ..pipe import BytePipe
from .base import DEFAULT_CHUNK_SIZE, SIGNATURE_BYTES, Emit, pick_log_member, pump_in_thread

RAR_MAGIC = b"Rar!\x1a\x07"


@dataclass(frozen=True, slots=True)
class RarHandler:
    chunk_size: int = DEFAULT_CHUNK_SIZE
    name: str = "rar"

    def can_handle(self, attachment: Attachment) -> bool:
        if attachment.name.lower().endswith(".rar"):
            return True
        return attachment.read_head(SIGNATURE_BYTES).startswith(RAR_MAGIC)

    def _produce(self, attachment: Attachment, emit: Emit) -> None:
        try:
            with rarfile.RarFile(attachment.path) as rf:
                member = pick_log_member(i.filename for i in rf.infolist() if not i.is_dir())
                if member is None:
                    raise StreamError("rar archive contains no .log file")
                with rf.open(member) as src:
                    while chunk := src.read(self.chunk_size):
                        emit(chunk)
        except rarfile.Error as exc:
            raise StreamError(f"corrupt rar archive: {exc}") from exc

    async def stream_into(
        self,
        attachment: Attachment,
        pipe: BytePipe,
        cancel: asyncio.Event | None = None,
    ) -> None:
        await pump_in_thread(lambda emit: self._produce(attachment, emit), pipe, cancel)
