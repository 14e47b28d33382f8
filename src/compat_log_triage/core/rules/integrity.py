"""Disc dump integrity check against per-title IRD manifests.

The manifest service is an external collaborator; this module only queries it
and caches its answers on disk. Any lookup failure means "no data".
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import aiofiles
import httpx
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ..cancel import race_cancel
from ..errors import ExternalLookupError, RunCancelled
from ..models import FactField, FactSet

logger = logging.getLogger(__name__)

_PRODUCT_CODE_RE = re.compile(r"^[A-Z]{4}\d{5}$")


class IrdManifest(BaseModel):
    """File listing of one IRD for a disc title."""

    product_code: str | None = Field(default=None, description="Disc serial, e.g. BLUS30443.")
    files: list[str] = Field(default_factory=list, description="Paths relative to the disc root.")

    def filenames(self) -> list[str]:
        return list(self.files)


_MANIFESTS = TypeAdapter(list[IrdManifest])


class IntegrityLookup(Protocol):
    async def fetch(
        self,
        product_code: str,
        cache_dir: Path,
        cancel: asyncio.Event | None = None,
    ) -> list[IrdManifest]:
        """Return manifests for a product code or raise on failure.

        Implementations stop and raise once ``cancel`` is set.
        """
        ...


class HttpIrdClient:
    """Fetch IRD manifests as JSON over HTTP with an on-disk cache."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        user_agent: str = "compat-log-triage/0.1",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport

    async def fetch(
        self,
        product_code: str,
        cache_dir: Path,
        cancel: asyncio.Event | None = None,
    ) -> list[IrdManifest]:
        if not _PRODUCT_CODE_RE.match(product_code):
            raise ExternalLookupError(f"Invalid product code: {product_code!r}")

        cache_file = Path(cache_dir) / f"{product_code}.json"
        if cache_file.is_file():
            try:
                async with aiofiles.open(cache_file, encoding="utf-8") as f:
                    return _MANIFESTS.validate_json(await f.read())
            except (OSError, ValidationError) as exc:
                logger.warning("Ignoring unreadable IRD cache %s: %s", cache_file, exc)

        if cancel is not None and cancel.is_set():
            raise ExternalLookupError(f"IRD lookup for {product_code} was cancelled")
        try:
            manifests = await race_cancel(self._download(product_code), cancel)
        except RunCancelled as exc:
            raise ExternalLookupError(f"IRD lookup for {product_code} was cancelled") from exc
        except (httpx.HTTPError, ValidationError) as exc:
            raise ExternalLookupError(f"IRD lookup failed for {product_code}: {exc}") from exc

        try:
            cache_file.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(cache_file, "w", encoding="utf-8") as f:
                await f.write(_MANIFESTS.dump_json(manifests).decode("utf-8"))
        except OSError as exc:
            logger.warning("Could not cache IRD manifest for %s: %s", product_code, exc)
        return manifests

    async def _download(self, product_code: str) -> list[IrdManifest]:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent},
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            resp = await client.get(f"{self.base_url}/{product_code}")
            resp.raise_for_status()
            payload = resp.text
        return _MANIFESTS.validate_json(payload)


@dataclass(frozen=True, slots=True)
class IntegrityCheck:
    checked: bool = False
    broken: bool = False


NOT_CHECKED = IntegrityCheck()


def _normalize(path: str) -> str:
    return path.replace("\\", "/").strip("/").lower()


async def check_broken_files(
    facts: FactSet,
    lookup: IntegrityLookup | None,
    cache_dir: Path,
    cancel: asyncio.Event | None = None,
) -> IntegrityCheck:
    """Compare files/dirs the game failed to open with the disc manifest."""
    product_code = facts.get(FactField.SERIAL)
    if lookup is None or not product_code:
        return NOT_CHECKED
    # Only disc releases have IRDs.
    if not product_code.startswith(("B", "M")):
        return NOT_CHECKED

    missing_files = {_normalize(p) for p in facts.values(FactField.BROKEN_FILENAME)}
    missing_dirs = {_normalize(p) for p in facts.values(FactField.BROKEN_DIRECTORY)}
    if not missing_files and not missing_dirs:
        return NOT_CHECKED

    try:
        manifests = await lookup.fetch(product_code, cache_dir, cancel)
    except Exception as exc:
        logger.warning("Failed to get IRD files for %s: %s", product_code, exc)
        return NOT_CHECKED

    known_files = {_normalize(name) for m in manifests for name in m.filenames()}
    if not known_files:
        return NOT_CHECKED
    if missing_files & known_files:
        return IntegrityCheck(checked=True, broken=True)

    known_dirs: set[str] = set()
    for name in known_files:
        parent = posixpath.dirname(name)
        while parent and parent not in known_dirs:
            known_dirs.add(parent)
            parent = posixpath.dirname(parent)
    return IntegrityCheck(checked=True, broken=bool(missing_dirs & known_dirs))
