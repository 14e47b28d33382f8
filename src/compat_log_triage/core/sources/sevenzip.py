"""7-Zip archives containing a log file."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import py7zr
from py7zr.exceptions import ArchiveError
from py7zr.io import Py7zIO, WriterFactory

from ..errors import StreamError
from ..models import Attachment
from ..pipe import BytePipe
from .base import DEFAULT_CHUNK_SIZE, SIGNATURE_BYTES, Emit, pick_log_member, pump_in_thread

SEVENZIP_MAGIC = b"7z\xbc\xaf\x27\x1c"


class _EmitIO(Py7zIO):
    """Write-only sink forwarding decompressed data as it is produced."""

    def __init__(self, emit: Emit, chunk_size: int) -> None:
        self._emit = emit
        self._chunk_size = chunk_size
        self._size = 0

    def write(self, s: bytes | bytearray) -> int:
        view = memoryview(s)
        for start in range(0, len(view), self._chunk_size):
            self._emit(bytes(view[start : start + self._chunk_size]))
        self._size += len(view)
        return len(view)

    def read(self, size: int | None = None) -> bytes:
        return b""

    def seek(self, offset: int, whence: int = 0) -> int:
        return self._size

    def flush(self) -> None:
        return None

    def size(self) -> int:
        return self._size


class _EmitFactory(WriterFactory):
    def __init__(self, emit: Emit, chunk_size: int) -> None:
        self._emit = emit
        self._chunk_size = chunk_size

    def create(self, filename: str) -> Py7zIO:
        return _EmitIO(self._emit, self._chunk_size)


@dataclass(frozen=True, slots=True)
class SevenZipHandler:
    chunk_size: int = DEFAULT_CHUNK_SIZE
    name: str = "7z"

    def can_handle(self, attachment: Attachment) -> bool:
        if attachment.name.lower().endswith(".7z"):
            return True
        return attachment.read_head(SIGNATURE_BYTES).startswith(SEVENZIP_MAGIC)

    def _produce(self, attachment: Attachment, emit: Emit) -> None:
        try:
            with py7zr.SevenZipFile(attachment.path, mode="r") as archive:
                member = pick_log_member(
                    f.filename for f in archive.list() if not f.is_directory
                )
                if member is None:
                    raise StreamError("7z archive contains no .log file")
                archive.extract(targets=[member], factory=_EmitFactory(emit, self.chunk_size))
        except (ArchiveError, EOFError) as exc:
            raise StreamError(f"corrupt 7z archive: {exc}") from exc

    async def stream_into(
        self,
        attachment: Attachment,
        pipe: BytePipe,
        cancel: asyncio.Event | None = None,
    ) -> None:
        await pump_in_thread(lambda emit: self._produce(attachment, emit), pipe, cancel)
