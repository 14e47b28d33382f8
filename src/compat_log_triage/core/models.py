"""Core data models for log analysis."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, IntEnum
from pathlib import Path
from typing import BinaryIO


@dataclass(frozen=True, slots=True)
class Attachment:
    """User-submitted file: name, byte size and a content accessor."""

    name: str
    size: int
    path: Path

    @classmethod
    def from_path(cls, path: str | Path, *, name: str | None = None) -> Attachment:
        """Build an attachment descriptor for a local file."""
        p = Path(path)
        if not p.is_file():
            raise FileNotFoundError(f"Attachment not found: {p}")
        return cls(name=name or p.name, size=p.stat().st_size, path=p)

    def open(self) -> BinaryIO:
        """Open the content for random-access binary reads."""
        return self.path.open("rb")

    def read_head(self, n: int) -> bytes:
        """Return at most ``n`` leading bytes (for signature checks)."""
        with self.open() as f:
            return f.read(n)


class FactField(str, Enum):
    """Every fact the extractor may record.

    Multi-valued fields accumulate newline-joined values; all other fields are
    scalar and last-write-wins.
    """

    BUILD_VERSION = "build_version"
    BUILD_BRANCH = "build_branch"
    BUILD_TIME = "build_time"
    OS_TYPE = "os_type"
    CPU_MODEL = "cpu_model"
    THREAD_COUNT = "thread_count"
    MEMORY_AMOUNT = "memory_amount"
    FW_VERSION_INSTALLED = "fw_version_installed"
    FW_MISSING_MSG = "fw_missing_msg"
    FW_MISSING_SOMETHING = "fw_missing_something"
    ELF_BOOT_PATH = "elf_boot_path"
    HOST_ROOT_IN_BOOT = "host_root_in_boot"
    SERIAL = "serial"
    GAME_TITLE = "game_title"
    GAME_CATEGORY = "game_category"
    LDR_DISC = "ldr_disc"
    LDR_GAME_SERIAL = "ldr_game_serial"
    PPU_DECODER = "ppu_decoder"
    RENDERER = "renderer"
    VSYNC = "vsync"
    THREAD_SCHEDULER = "thread_scheduler"
    DISABLE_VERTEX_CACHE = "disable_vertex_cache"
    GPU_INFO = "gpu_info"
    OPENGL_VERSION = "opengl_version"
    GLSL_VERSION = "glsl_version"
    DRIVER_VERSION_INFO = "driver_version_info"
    FATAL_ERROR = "fatal_error"
    FAILED_TO_DECRYPT = "failed_to_decrypt"
    FAILED_TO_BOOT = "failed_to_boot"
    EDAT_BLOCK_OFFSET = "edat_block_offset"
    SHADER_COMPILE_ERROR = "shader_compile_error"
    NATIVE_UI_INPUT = "native_ui_input"
    XAUDIO_INIT_ERROR = "xaudio_init_error"
    PPU_HASH_PATCH = "ppu_hash_patch"
    SPU_HASH_PATCH = "spu_hash_patch"
    BROKEN_FILENAME = "broken_filename"
    BROKEN_DIRECTORY = "broken_directory"
    RAP_FILE = "rap_file"

    @property
    def multi_valued(self) -> bool:
        return self in _MULTI_VALUED


_MULTI_VALUED = frozenset(
    {
        FactField.PPU_HASH_PATCH,
        FactField.SPU_HASH_PATCH,
        FactField.BROKEN_FILENAME,
        FactField.BROKEN_DIRECTORY,
        FactField.RAP_FILE,
    }
)


class FactSet:
    """Facts of one emulator run, keyed by :class:`FactField`."""

    __slots__ = ("_items", "_frozen")

    def __init__(self) -> None:
        self._items: dict[FactField, str] = {}
        self._frozen = False

    def set(self, name: FactField, value: str) -> None:
        if self._frozen:
            raise RuntimeError("FactSet is frozen")
        if name.multi_valued and name in self._items:
            self._items[name] = f"{self._items[name]}\n{value}"
        else:
            self._items[name] = value

    def get(self, name: FactField) -> str | None:
        return self._items.get(name)

    def values(self, name: FactField) -> list[str]:
        """Deduplicated values of a field, in first-seen order."""
        raw = self._items.get(name)
        if raw is None:
            return []
        return list(dict.fromkeys(raw.split("\n")))

    def freeze(self) -> FactSet:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def as_dict(self) -> dict[str, str]:
        return {k.value: v for k, v in self._items.items()}

    def __contains__(self, name: object) -> bool:
        return name in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"FactSet({self.as_dict()!r})"


class ParseOutcome(str, Enum):
    """Terminal state of one extraction run."""

    SUCCESS = "success"
    TRUNCATED = "truncated"
    PIRACY_DETECTED = "piracy_detected"
    FAILURE = "failure"


@dataclass(frozen=True, slots=True)
class LogParseState:
    """Extraction result: outcome plus the facts of the retained run."""

    outcome: ParseOutcome
    facts: FactSet
    piracy_trigger: str | None = None
    piracy_context: str | None = None
    bytes_read: int = 0
    runs_seen: int = 0


class NoteSeverity(IntEnum):
    """Ordered note severity; PIRACY always sorts after CRITICAL."""

    INFO = 0
    ADVISORY = 1
    WARNING = 2
    CRITICAL = 3
    PIRACY = 4

    @property
    def glyph(self) -> str:
        return _GLYPHS[self]


_GLYPHS = {
    NoteSeverity.INFO: "ℹ",
    NoteSeverity.ADVISORY: "⚠",
    NoteSeverity.WARNING: "❗",
    NoteSeverity.CRITICAL: "❌",
    NoteSeverity.PIRACY: "🔨",
}


@dataclass(frozen=True, slots=True)
class DiagnosticNote:
    severity: NoteSeverity
    text: str

    def render(self) -> str:
        return f"{self.severity.glyph} {self.text}"


@dataclass(frozen=True, slots=True)
class DisplaySegment:
    """Title + body pair sized for the messaging platform."""

    title: str
    body: str


TitleMaker = Callable[[str, str], str]

