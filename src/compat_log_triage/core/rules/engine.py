"""Diagnostic notes over the facts of one emulator run.

Rules run in a fixed order. Most are independent; the GPU rules share the
``supported_gpu`` flag so that later notes (shader errors) can soften or
sharpen their wording.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import PurePosixPath

from ..models import (
    DiagnosticNote,
    FactField,
    FactSet,
    LogParseState,
    NoteSeverity,
    ParseOutcome,
)
from .build_age import build_age_notes
from .integrity import NOT_CHECKED, IntegrityCheck
from .versions import Version, format_version, parse_version

MINIMUM_FIRMWARE_VERSION: Version = (4, 80)
MINIMUM_OPENGL_VERSION: Version = (4, 3)
NVIDIA_RECOMMENDED_OLD_WINDOWS_VERSION: Version = (399, 41)
NVIDIA_FULLSCREEN_BUG_MIN_VERSION: Version = (400, 0)
NVIDIA_FULLSCREEN_BUG_MAX_VERSION: Version = (499, 99)
MIN_THREAD_COUNT = 4

KNOWN_DISABLE_VERTEX_CACHE_IDS = frozenset({"NPEB00258", "NPUB30162", "NPJB00068"})
DISABLED = "false"

INTEL_GPU_MODEL = re.compile(
    r"Intel\s?(?:\(R\)|®)?\s+(?P<gpu_family>[\w ]+?Graphics)(?: (?P<gpu_model_number>P?\d+))?",
    re.IGNORECASE,
)
_NVIDIA_MARKERS = ("nvidia", "geforce", "quadro", "titan", "gtx", "rtx")
_OLD_INTEL_FAMILIES = ("Core2", "Celeron", "Atom", "Pentium")


@dataclass(frozen=True, slots=True)
class RuleContext:
    """Inputs of one rule evaluation."""

    state: LogParseState
    integrity: IntegrityCheck = NOT_CHECKED
    now: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def facts(self) -> FactSet:
        return self.state.facts


@dataclass(slots=True)
class _Run:
    ctx: RuleContext
    notes: list[DiagnosticNote] = field(default_factory=list)
    supported_gpu: bool = True

    def get(self, name: FactField) -> str | None:
        return self.ctx.facts.get(name)

    def add(self, severity: NoteSeverity, text: str) -> None:
        self.notes.append(DiagnosticNote(severity, text))


def _is_nvidia(gpu_info: str) -> bool:
    lowered = gpu_info.lower()
    return any(marker in lowered for marker in _NVIDIA_MARKERS)


def _is_eboot(path: str) -> bool:
    return path.upper().endswith("EBOOT.BIN")


def _fatal_error(run: _Run) -> None:
    fatal = run.get(FactField.FATAL_ERROR)
    if fatal is None:
        return
    if "psf.cpp" in fatal or "invalid map<K, T>" in fatal:
        run.add(NoteSeverity.ADVISORY, "Game save data might be corrupted")
    elif "Could not bind OpenGL context" in fatal:
        run.add(NoteSeverity.CRITICAL, "GPU or installed GPU drivers do not support OpenGL 4.3")


def _boot_failures(run: _Run) -> None:
    if run.get(FactField.FAILED_TO_DECRYPT):
        run.add(NoteSeverity.CRITICAL, "Failed to decrypt game content, license file might be corrupted")
    if run.get(FactField.FAILED_TO_BOOT):
        run.add(NoteSeverity.CRITICAL, "Failed to boot the game, the dump might be encrypted or corrupted")


def _broken_dump(run: _Run) -> None:
    integrity = run.ctx.integrity
    if integrity.broken or run.get(FactField.EDAT_BLOCK_OFFSET):
        run.add(NoteSeverity.CRITICAL, "Some game files are missing or corrupted, please re-dump and validate.")
    elif integrity.checked:
        run.add(NoteSeverity.INFO, "Checked missing files against IRD")


def _firmware(run: _Run) -> None:
    fw = run.get(FactField.FW_VERSION_INSTALLED)
    if not fw:
        return
    version = parse_version(fw)
    if version is None:
        run.add(NoteSeverity.ADVISORY, "Custom firmware is not supported, please use the latest official one")
    elif version < MINIMUM_FIRMWARE_VERSION:
        run.add(
            NoteSeverity.ADVISORY,
            f"Firmware version {format_version(MINIMUM_FIRMWARE_VERSION)} or later is recommended",
        )


def _boot_path(run: _Run) -> None:
    elf_path = run.get(FactField.ELF_BOOT_PATH) or ""
    if not elf_path:
        return
    if run.get(FactField.HOST_ROOT_IN_BOOT) and _is_eboot(elf_path):
        run.add(
            NoteSeverity.CRITICAL,
            "Retail game booted as an ELF through the `/root_host/`, probably due to passing path as "
            "an argument; please boot through the game library list for now",
        )
    if run.get(FactField.SERIAL) and not _is_eboot(elf_path):
        name = PurePosixPath(elf_path.replace("\\", "/")).name
        run.add(NoteSeverity.ADVISORY, f"Retail game booted directly through `{name}`, which is not recommended")


def _log_contents(run: _Run) -> None:
    fw = run.get(FactField.FW_VERSION_INSTALLED)
    if not run.get(FactField.SERIAL) and not run.get(FactField.GAME_TITLE) and fw:
        run.add(NoteSeverity.INFO, f"The log contains only installation of firmware {fw}")
        run.add(NoteSeverity.INFO, "Please boot the game and upload a new log")
    if not run.get(FactField.PPU_DECODER) or not run.get(FactField.RENDERER):
        run.add(NoteSeverity.INFO, "The log is empty")
        run.add(NoteSeverity.INFO, "Please boot the game and upload a new log")


def _cpu(run: _Run) -> None:
    cpu = run.get(FactField.CPU_MODEL)
    if cpu:
        if cpu.startswith("AMD"):
            if "Ryzen" in cpu:
                if run.get(FactField.OS_TYPE) != "Linux" and run.get(FactField.THREAD_SCHEDULER) == DISABLED:
                    run.add(NoteSeverity.ADVISORY, "Please enable `Thread scheduler` option in the CPU Settings")
            else:
                run.add(NoteSeverity.ADVISORY, "AMD CPUs before Ryzen are too weak for PS3 emulation")
        elif cpu.startswith("Intel") and any(family in cpu for family in _OLD_INTEL_FAMILIES):
            run.add(NoteSeverity.ADVISORY, "This CPU is too old and/or too weak for PS3 emulation")

    threads = run.get(FactField.THREAD_COUNT)
    if threads and threads.isdigit() and int(threads) < MIN_THREAD_COUNT:
        count = int(threads)
        run.add(
            NoteSeverity.ADVISORY,
            f"This CPU only has {count} hardware thread{'' if count == 1 else 's'} enabled",
        )


def _opengl(run: _Run) -> None:
    gl_raw = run.get(FactField.OPENGL_VERSION)
    glsl_raw = run.get(FactField.GLSL_VERSION)
    gl = parse_version(gl_raw)
    glsl = parse_version(glsl_raw)
    if glsl is not None and len(glsl) >= 2:
        # GLSL 4.60 corresponds to OpenGL 4.6.
        glsl = (glsl[0], glsl[1] // 10)
        if gl is None or glsl > gl:
            gl = glsl

    if gl is None:
        if gl_raw or glsl_raw:
            run.add(NoteSeverity.ADVISORY, "Could not determine the OpenGL version supported by the GPU")
        return
    if gl < MINIMUM_OPENGL_VERSION:
        run.add(
            NoteSeverity.CRITICAL,
            f"GPU only supports OpenGL {gl[0]}.{gl[1]}, which is below the minimum requirement "
            f"of {format_version(MINIMUM_OPENGL_VERSION)}",
        )
        run.supported_gpu = False


def _gpu_model_and_driver(run: _Run) -> None:
    gpu_info = run.get(FactField.GPU_INFO)
    if not run.supported_gpu or not gpu_info:
        return

    intel = INTEL_GPU_MODEL.search(gpu_info)
    if intel is not None:
        model = (intel.group("gpu_model_number") or "").removeprefix("P")
        model_number = int(model) if model.isdigit() else 0
        if model_number < 500 or model_number > 1000:
            run.add(NoteSeverity.CRITICAL, "Intel iGPUs before Skylake do not fully comply with OpenGL 4.3")
            run.supported_gpu = False
        else:
            run.add(NoteSeverity.ADVISORY, "Intel iGPUs are not officially supported, visual glitches are to be expected")

    os_type = run.get(FactField.OS_TYPE)
    driver_raw = run.get(FactField.DRIVER_VERSION_INFO)
    if not os_type or os_type == "Linux" or not _is_nvidia(gpu_info) or not driver_raw:
        return
    driver = parse_version(driver_raw)
    if driver is None:
        run.add(NoteSeverity.ADVISORY, f"Could not determine the nVidia driver version from `{driver_raw}`")
        return
    if driver < NVIDIA_RECOMMENDED_OLD_WINDOWS_VERSION:
        run.add(
            NoteSeverity.WARNING,
            f"Please update your nVidia driver to at least {format_version(NVIDIA_RECOMMENDED_OLD_WINDOWS_VERSION)}",
        )
    if (
        NVIDIA_FULLSCREEN_BUG_MIN_VERSION <= driver < NVIDIA_FULLSCREEN_BUG_MAX_VERSION
        and run.get(FactField.RENDERER) == "Vulkan"
        and run.get(FactField.VSYNC) == DISABLED
    ):
        run.add(
            NoteSeverity.ADVISORY,
            "**400 series** nVidia drivers can cause random screen freeze when playing in "
            "**fullscreen** using **Vulkan** renderer with **vsync disabled**",
        )


def _shader_errors(run: _Run) -> None:
    if not run.get(FactField.SHADER_COMPILE_ERROR):
        return
    if run.supported_gpu:
        run.add(NoteSeverity.CRITICAL, "Shader compilation error might indicate shader cache corruption")
    else:
        run.add(NoteSeverity.CRITICAL, "Shader compilation error on unsupported GPU")


def _game_specific(run: _Run) -> None:
    if run.get(FactField.PPU_HASH_PATCH) or run.get(FactField.SPU_HASH_PATCH):
        run.add(NoteSeverity.INFO, "Game-specific patches were applied")
    serial = run.get(FactField.SERIAL)
    if serial in KNOWN_DISABLE_VERTEX_CACHE_IDS and run.get(FactField.DISABLE_VERTEX_CACHE) == DISABLED:
        run.add(NoteSeverity.ADVISORY, "This game requires disabling `Vertex Cache` in the GPU tab of the Settings")


def _disc_installation(run: _Run) -> None:
    category = run.get(FactField.GAME_CATEGORY)
    serial = (run.get(FactField.SERIAL) or "").upper()
    ldr_disc = run.get(FactField.LDR_DISC)
    ldr_serial = (run.get(FactField.LDR_GAME_SERIAL) or "").upper()
    digital_serial = serial.startswith("NP")

    disc_inside_game = False
    disc_as_pkg = False
    if category == "DG":
        disc_inside_game = bool(ldr_disc) and not digital_serial
        disc_as_pkg = digital_serial or ldr_serial.startswith("NP")
    if category == "HG" and not digital_serial:
        disc_as_pkg = True

    if disc_inside_game:
        run.add(NoteSeverity.CRITICAL, f"Disc game inside `{ldr_disc}`")
    if disc_as_pkg:
        run.add(NoteSeverity.PIRACY, "Disc game installed as a PKG")


def _system_errors(run: _Run) -> None:
    if run.get(FactField.NATIVE_UI_INPUT):
        run.add(NoteSeverity.ADVISORY, "Pad initialization problem detected; try disabling `Native UI`")
    if run.get(FactField.XAUDIO_INIT_ERROR):
        run.add(NoteSeverity.CRITICAL, "XAudio initialization failed; make sure you have audio output device working")
    if run.get(FactField.FW_MISSING_MSG) or run.get(FactField.FW_MISSING_SOMETHING):
        run.add(NoteSeverity.CRITICAL, "PS3 firmware is missing or corrupted")


def _build_age(run: _Run) -> None:
    run.notes.extend(build_age_notes(run.ctx.facts, run.ctx.now))


def _truncation(run: _Run) -> None:
    if run.ctx.state.outcome == ParseOutcome.TRUNCATED:
        run.add(NoteSeverity.INFO, "The log was too large, so only the last processed run is shown")


RULES: tuple[Callable[[_Run], None], ...] = (
    _fatal_error,
    _boot_failures,
    _broken_dump,
    _firmware,
    _boot_path,
    _log_contents,
    _cpu,
    _opengl,
    _gpu_model_and_driver,
    _shader_errors,
    _game_specific,
    _disc_installation,
    _system_errors,
    _build_age,
    _truncation,
)


def sort_notes(notes: Iterable[DiagnosticNote]) -> list[DiagnosticNote]:
    """Order by severity, least severe first; ties keep discovery order."""
    return sorted(notes, key=lambda n: n.severity)


def build_notes(ctx: RuleContext) -> list[DiagnosticNote]:
    """Evaluate every rule and return deduplicated, severity-sorted notes."""
    run = _Run(ctx=ctx)
    for rule in RULES:
        rule(run)
    unique = list(dict.fromkeys(run.notes))
    return sort_notes(unique)


def render_notes(notes: Iterable[DiagnosticNote]) -> str:
    return "\n".join(note.render() for note in notes)
