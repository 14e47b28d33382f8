"""Line pattern catalog for fact extraction.

Each pattern carries cheap literal needles checked before the regex runs, the
same prefilter-then-parse approach used for raw log scanning. Named groups
must be :class:`FactField` values.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from .models import FactField, FactSet

RUN_BOUNDARY = "RPCS3 v"


@dataclass(frozen=True, slots=True)
class LinePattern:
    needles: tuple[str, ...]
    regex: re.Pattern[str]

    def __post_init__(self) -> None:
        for group in self.regex.groupindex:
            FactField(group)  # fails fast on typos

    def apply(self, line: str, facts: FactSet) -> bool:
        """Record every non-empty named group; return True on match."""
        if not any(n in line for n in self.needles):
            return False
        m = self.regex.search(line)
        if m is None:
            return False
        for group, value in m.groupdict().items():
            if value is None:
                continue
            value = value.strip()
            if value:
                facts.set(FactField(group), value)
        return True


def _p(needles: str | Sequence[str], pattern: str, flags: int = 0) -> LinePattern:
    if isinstance(needles, str):
        needles = (needles,)
    return LinePattern(needles=tuple(needles), regex=re.compile(pattern, flags))


DEFAULT_PATTERNS: tuple[LinePattern, ...] = (
    # Build banner, first line of every run.
    _p(
        RUN_BOUNDARY,
        r"^RPCS3 v(?P<build_version>\S+?)(?: Alpha)?(?: \| (?P<build_branch>[^|\s]+))?\s*(?:\||$)",
    ),
    _p("Build date:", r"Build date: (?P<build_time>\d{4}-\d{2}-\d{2}(?:[T ]\d{2}:\d{2}(?::\d{2})?)?)"),
    _p("Operating system:", r"Operating system: (?P<os_type>\w+)"),
    _p(
        "Physical CPU:",
        r"Physical CPU: (?P<cpu_model>[^|]+?)\s*\|\s*(?P<thread_count>\d+) Threads?"
        r"(?:\s*\|\s*(?P<memory_amount>[\d.]+ ?\w+) RAM)?",
    ),
    # System firmware.
    _p("Firmware version:", r"Firmware version: (?P<fw_version_installed>\S+)"),
    _p("Firmware", r"(?P<fw_missing_msg>Firmware (?:is )?not (?:found|installed))"),
    _p("Could not load", r"(?P<fw_missing_something>Could not load (?:module|library) \S+\.sprx)"),
    # Game being booted.
    _p("Elf path:", r"Elf path: (?P<elf_boot_path>.+?)\s*$"),
    _p("Elf path: /host_root/", r"Elf path: (?P<host_root_in_boot>/host_root/)"),
    _p("Title:", r"\bTitle: (?P<game_title>.+?)\s*$"),
    _p("Serial:", r"\bSerial: (?P<serial>[A-Z]{4}\d{5})"),
    _p("Category:", r"\bCategory: (?P<game_category>[A-Z0-9]{2})\b"),
    _p("LDR: Disc:", r"LDR: Disc: (?P<ldr_disc>.+?)\s*$"),
    _p("LDR: Path:", r"LDR: Path: /dev_hdd0/game/(?P<ldr_game_serial>[A-Z]{4}\d{5})/"),
    # Emulator settings dump.
    _p("PPU Decoder:", r"PPU Decoder: (?P<ppu_decoder>.+?)\s*$"),
    _p("Renderer:", r"^\s*Renderer: (?P<renderer>\w+)"),
    _p("VSync:", r"VSync: (?P<vsync>true|false)"),
    _p("Enable thread scheduler:", r"Enable thread scheduler: (?P<thread_scheduler>true|false)"),
    _p("Disable Vertex Cache:", r"Disable Vertex Cache: (?P<disable_vertex_cache>true|false)"),
    # GPU and driver.
    _p("GL RENDERER:", r"GL RENDERER: (?P<gpu_info>.+?)\s*$"),
    _p(
        "GL VERSION:",
        r"GL VERSION: (?P<opengl_version>\d+\.\d+(?:\.\d+)?)"
        r"(?:\S*\s+\w+\s+(?P<driver_version_info>\d+(?:\.\d+)+))?",
    ),
    _p("GLSL VERSION:", r"GLSL VERSION: (?P<glsl_version>\d+\.\d+)"),
    _p(
        "vulkan-compatible GPU",
        r"Found vulkan-compatible GPU: '(?P<gpu_info>[^']+)' running on driver "
        r"(?P<driver_version_info>\d+(?:\.\d+)+)",
    ),
    # Errors.
    _p("·F ", r"^·F \S+ (?P<fatal_error>.+?)\s*$"),
    _p("Failed to decrypt", r"(?P<failed_to_decrypt>Failed to decrypt)"),
    _p("Failed to boot", r"(?P<failed_to_boot>Failed to boot)"),
    _p("EDAT: Block at offset", r"EDAT: Block at offset (?P<edat_block_offset>0x[0-9a-fA-F]+)"),
    _p(
        ("Shader compilation failed", "Failed to compile shader"),
        r"(?P<shader_compile_error>(?:Shader compilation failed|Failed to compile shader).*?)\s*$",
    ),
    _p("Native UI", r"(?P<native_ui_input>Native UI.+failed.*?)\s*$"),
    _p("XAudio2", r"(?P<xaudio_init_error>XAudio2.*?(?:failed|error).*?)\s*$", re.IGNORECASE),
    _p("Applied patch", r"Applied patch \(hash='(?P<ppu_hash_patch>PPU-[0-9a-fA-F]+)'"),
    _p("Applied patch", r"Applied patch \(hash='(?P<spu_hash_patch>SPU-[0-9a-fA-F]+)'"),
    # Missing content.
    _p(
        "CELL_ENOENT",
        r'sys_fs_open\(path="/dev_bdvd/(?P<broken_filename>[^"]+)".*failed: CELL_ENOENT',
    ),
    _p(
        "CELL_ENOENT",
        r'sys_fs_opendir\(path="/dev_bdvd/(?P<broken_directory>[^"]+)".*failed: CELL_ENOENT',
    ),
    _p("Rap file not found", r"Rap file not found: (?P<rap_file>\S+\.rap)"),
)


def is_run_boundary(line: str) -> bool:
    return line.startswith(RUN_BOUNDARY)
