"""Ordered handler selection."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from ..models import Attachment
from .base import DEFAULT_CHUNK_SIZE, SourceHandler, is_tty_log
from .gz import GzipHandler
from .plain import PlainTextHandler
from .rar import RarHandler
from .sevenzip import SevenZipHandler
from .zipped import ZipHandler

logger = logging.getLogger(__name__)


def default_handlers(chunk_size: int = DEFAULT_CHUNK_SIZE) -> list[SourceHandler]:
    """Handlers in detection order.

    Gzip must precede plain text: ``RPCS3.log.gz`` and gzip payloads renamed to
    ``.log`` would otherwise be streamed as raw bytes.
    """
    return [
        GzipHandler(chunk_size=chunk_size),
        PlainTextHandler(chunk_size=chunk_size),
        ZipHandler(chunk_size=chunk_size),
        RarHandler(chunk_size=chunk_size),
        SevenZipHandler(chunk_size=chunk_size),
    ]


@dataclass(frozen=True, slots=True)
class HandlerRegistry:
    """Try handlers in order and return the first that recognizes the attachment."""

    handlers: Sequence[SourceHandler]

    def select(self, attachment: Attachment) -> SourceHandler | None:
        if is_tty_log(attachment.name):
            return None
        for handler in self.handlers:
            try:
                if handler.can_handle(attachment):
                    return handler
            except OSError as exc:
                logger.warning("Cannot inspect %s: %s", attachment.name, exc)
                return None
        return None


def default_registry(chunk_size: int = DEFAULT_CHUNK_SIZE) -> HandlerRegistry:
    return HandlerRegistry(handlers=default_handlers(chunk_size))
