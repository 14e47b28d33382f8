from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

RUN_LINES = [
    "RPCS3 v0.0.33-17000-abcdef12 Alpha | master",
    "·! 0:00:00.000000 SYS: Build date: 2026-10-01 12:00:00",
    "·! 0:00:00.000100 SYS: Operating system: Windows, Major: 10, Minor: 0, Build: 22631",
    "·! 0:00:00.000200 SYS: Physical CPU: AMD Ryzen 7 5800X 8-Core Processor | 16 Threads | 31.9 GiB RAM",
    "·! 0:00:00.000300 SYS: Firmware version: 4.91",
    "·! 0:00:01.000000 LDR: Elf path: /dev_bdvd/PS3_GAME/USRDIR/EBOOT.BIN",
    "·! 0:00:01.000100 SYS: Title: Demon's Souls",
    "·! 0:00:01.000200 SYS: Serial: BLUS30443",
    "·! 0:00:01.000300 SYS: Category: DG",
    "Core:",
    "  PPU Decoder: Recompiler (LLVM)",
    "Video:",
    "  Renderer: Vulkan",
    "  VSync: true",
    "·! 0:00:02.000000 RSX: Found vulkan-compatible GPU: 'NVIDIA GeForce RTX 3070' running on driver 531.79.0",
]


def run_lines(*, serial: str = "BLUS30443", extra: list[str] | None = None) -> list[str]:
    lines = [line.replace("BLUS30443", serial) for line in RUN_LINES]
    return lines + (extra or [])


@pytest.fixture
def sample_lines() -> list[str]:
    return run_lines()


@pytest.fixture
def make_run() -> Callable[..., list[str]]:
    return run_lines


@pytest.fixture
def write_log() -> Callable[[Path, list[str]], None]:
    def _write(path: Path, lines: list[str]) -> None:
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    return _write

