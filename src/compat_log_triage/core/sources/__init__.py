"""Container format detection and decompressing producers."""

from __future__ import annotations

from .base import SourceHandler, pick_log_member
from .gz import GzipHandler
from .plain import PlainTextHandler
from .rar import RarHandler
from .registry import HandlerRegistry, default_handlers, default_registry
from .sevenzip import SevenZipHandler
from .zipped import ZipHandler

__all__ = [
    "GzipHandler",
    "HandlerRegistry",
    "PlainTextHandler",
    "RarHandler",
    "SevenZipHandler",
    "SourceHandler",
    "ZipHandler",
    "default_handlers",
    "default_registry",
    "pick_log_member",
]
