from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from compat_log_triage.core.models import (
    DiagnosticNote,
    FactField,
    FactSet,
    LogParseState,
    NoteSeverity,
    ParseOutcome,
)
from compat_log_triage.core.rules import (
    NOT_CHECKED,
    IntegrityCheck,
    RuleContext,
    build_notes,
    classify_build_age,
    describe_time_delta,
    missing_license_lines,
    parse_version,
    sort_notes,
)

NOW = datetime(2026, 10, 19, tzinfo=UTC)

BASE = {
    FactField.PPU_DECODER: "Recompiler (LLVM)",
    FactField.RENDERER: "Vulkan",
    FactField.SERIAL: "BLUS30443",
    FactField.GAME_TITLE: "Demon's Souls",
}


def _facts(values: dict[FactField, str | list[str]], *, base: bool = True) -> FactSet:
    facts = FactSet()
    merged = {**BASE, **values} if base else dict(values)
    for name, value in merged.items():
        for item in [value] if isinstance(value, str) else value:
            facts.set(name, item)
    return facts.freeze()


def _notes(
    values: dict[FactField, str | list[str]],
    *,
    base: bool = True,
    outcome: ParseOutcome = ParseOutcome.SUCCESS,
    integrity: IntegrityCheck = NOT_CHECKED,
) -> list[DiagnosticNote]:
    state = LogParseState(outcome=outcome, facts=_facts(values, base=base))
    return build_notes(RuleContext(state=state, integrity=integrity, now=NOW))


def _texts(notes: list[DiagnosticNote]) -> list[str]:
    return [n.text for n in notes]


def test_clean_log_has_no_notes() -> None:
    assert _notes({FactField.FW_VERSION_INSTALLED: "4.91"}) == []


def test_old_firmware_yields_exactly_one_advisory_naming_minimum() -> None:
    notes = _notes({FactField.FW_VERSION_INSTALLED: "0.0.1"})

    assert notes == [DiagnosticNote(NoteSeverity.ADVISORY, "Firmware version 4.80 or later is recommended")]


def test_unparsable_firmware_is_custom() -> None:
    notes = _notes({FactField.FW_VERSION_INSTALLED: "4.86-rebug"})

    assert _texts(notes) == ["Custom firmware is not supported, please use the latest official one"]


def test_notes_are_sorted_with_piracy_last() -> None:
    notes = _notes(
        {
            FactField.GAME_CATEGORY: "HG",
            FactField.FATAL_ERROR: "Could not bind OpenGL context",
            FactField.FW_VERSION_INSTALLED: "4.50",
            FactField.BUILD_TIME: "2026-10-12",
            FactField.BUILD_BRANCH: "master",
        }
    )

    severities = [n.severity for n in notes]
    assert severities == sorted(severities)
    assert severities[0] == NoteSeverity.INFO
    assert notes[-1] == DiagnosticNote(NoteSeverity.PIRACY, "Disc game installed as a PKG")


def test_sort_is_stable_within_severity() -> None:
    notes = [
        DiagnosticNote(NoteSeverity.CRITICAL, "first"),
        DiagnosticNote(NoteSeverity.INFO, "info"),
        DiagnosticNote(NoteSeverity.CRITICAL, "second"),
    ]

    assert _texts(sort_notes(notes)) == ["info", "first", "second"]


def test_fatal_error_variants() -> None:
    assert _notes({FactField.FATAL_ERROR: "psf.cpp: bad header"}) == [
        DiagnosticNote(NoteSeverity.ADVISORY, "Game save data might be corrupted")
    ]
    assert _notes({FactField.FATAL_ERROR: "something unrelated"}) == []


def test_install_only_and_empty_log_notes_are_deduplicated() -> None:
    notes = _notes({FactField.FW_VERSION_INSTALLED: "4.91"}, base=False)

    assert _texts(notes) == [
        "The log contains only installation of firmware 4.91",
        "Please boot the game and upload a new log",
        "The log is empty",
    ]
    assert all(n.severity == NoteSeverity.INFO for n in notes)


def test_old_opengl_marks_gpu_unsupported() -> None:
    notes = _notes(
        {
            FactField.OPENGL_VERSION: "3.3",
            FactField.GLSL_VERSION: "3.30",
            FactField.GPU_INFO: "Intel(R) HD Graphics 4000",
            FactField.SHADER_COMPILE_ERROR: "Shader compilation failed",
        }
    )

    assert _texts(notes) == [
        "GPU only supports OpenGL 3.3, which is below the minimum requirement of 4.3",
        "Shader compilation error on unsupported GPU",
    ]


def test_glsl_version_can_lift_opengl_version() -> None:
    notes = _notes({FactField.OPENGL_VERSION: "4.2", FactField.GLSL_VERSION: "4.60"})

    assert notes == []


def test_unparsable_opengl_version() -> None:
    notes = _notes({FactField.OPENGL_VERSION: "unknown"})

    assert [n.severity for n in notes] == [NoteSeverity.ADVISORY]


def test_shader_error_on_supported_gpu() -> None:
    notes = _notes({FactField.OPENGL_VERSION: "4.6", FactField.SHADER_COMPILE_ERROR: "Failed to compile shader"})

    assert _texts(notes) == ["Shader compilation error might indicate shader cache corruption"]


@pytest.mark.parametrize(
    ("gpu", "severity"),
    [
        ("Intel(R) HD Graphics 4000", NoteSeverity.CRITICAL),
        ("Intel(R) UHD Graphics 630", NoteSeverity.ADVISORY),
        ("Intel(R) HD Graphics", NoteSeverity.CRITICAL),
    ],
)
def test_intel_igpu_range(gpu: str, severity: NoteSeverity) -> None:
    notes = _notes({FactField.GPU_INFO: gpu})

    assert [n.severity for n in notes] == [severity]


def test_nvidia_driver_floor_only_off_linux() -> None:
    values = {
        FactField.GPU_INFO: "NVIDIA GeForce GTX 1060 6GB",
        FactField.DRIVER_VERSION_INFO: "388.13",
    }

    windows = _notes({**values, FactField.OS_TYPE: "Windows"})
    linux = _notes({**values, FactField.OS_TYPE: "Linux"})

    assert _texts(windows) == ["Please update your nVidia driver to at least 399.41"]
    assert windows[0].severity == NoteSeverity.WARNING
    assert linux == []


def test_nvidia_400_series_vulkan_without_vsync() -> None:
    notes = _notes(
        {
            FactField.OS_TYPE: "Windows",
            FactField.GPU_INFO: "NVIDIA GeForce RTX 2070",
            FactField.DRIVER_VERSION_INFO: "441.87",
            FactField.VSYNC: "false",
        }
    )

    assert len(notes) == 1
    assert notes[0].severity == NoteSeverity.ADVISORY
    assert "400 series" in notes[0].text


@pytest.mark.parametrize(
    ("values", "expected"),
    [
        ({FactField.CPU_MODEL: "AMD FX-8350 Eight-Core Processor"}, "AMD CPUs before Ryzen are too weak for PS3 emulation"),
        (
            {FactField.CPU_MODEL: "AMD Ryzen 5 1600", FactField.OS_TYPE: "Windows", FactField.THREAD_SCHEDULER: "false"},
            "Please enable `Thread scheduler` option in the CPU Settings",
        ),
        ({FactField.CPU_MODEL: "Intel(R) Pentium(R) CPU G4560"}, "This CPU is too old and/or too weak for PS3 emulation"),
        ({FactField.THREAD_COUNT: "2"}, "This CPU only has 2 hardware threads enabled"),
    ],
)
def test_cpu_notes(values: dict[FactField, str], expected: str) -> None:
    assert _texts(_notes(values)) == [expected]


def test_ryzen_on_linux_needs_no_scheduler_note() -> None:
    notes = _notes(
        {FactField.CPU_MODEL: "AMD Ryzen 5 1600", FactField.OS_TYPE: "Linux", FactField.THREAD_SCHEDULER: "false"}
    )

    assert notes == []


def test_disc_game_inside_another_title() -> None:
    notes = _notes({FactField.GAME_CATEGORY: "DG", FactField.LDR_DISC: "/dev_hdd0/game/BLUS30443"})

    assert notes == [DiagnosticNote(NoteSeverity.CRITICAL, "Disc game inside `/dev_hdd0/game/BLUS30443`")]


def test_disc_game_installed_as_pkg_is_piracy() -> None:
    notes = _notes({FactField.GAME_CATEGORY: "DG", FactField.SERIAL: "NPUB31234"})

    assert notes == [DiagnosticNote(NoteSeverity.PIRACY, "Disc game installed as a PKG")]


def test_boot_path_notes() -> None:
    host_root = _notes(
        {
            FactField.ELF_BOOT_PATH: "/host_root/D:/Games/BLUS30443/PS3_GAME/USRDIR/EBOOT.BIN",
            FactField.HOST_ROOT_IN_BOOT: "/host_root/",
        }
    )
    direct = _notes({FactField.ELF_BOOT_PATH: "/dev_hdd0/game/BLUS30443/USRDIR/game.self"})

    assert [n.severity for n in host_root] == [NoteSeverity.CRITICAL]
    assert _texts(direct) == ["Retail game booted directly through `game.self`, which is not recommended"]


def test_vertex_cache_and_patches() -> None:
    notes = _notes(
        {
            FactField.SERIAL: "NPUB30162",
            FactField.DISABLE_VERTEX_CACHE: "false",
            FactField.PPU_HASH_PATCH: ["PPU-0123abcd", "PPU-4567ef01"],
        }
    )

    assert _texts(notes) == [
        "Game-specific patches were applied",
        "This game requires disabling `Vertex Cache` in the GPU tab of the Settings",
    ]


def test_system_error_notes() -> None:
    notes = _notes(
        {
            FactField.NATIVE_UI_INPUT: "Native UI pad init failed",
            FactField.XAUDIO_INIT_ERROR: "XAudio2 init failed",
            FactField.FW_MISSING_MSG: "Firmware not found",
        }
    )

    assert [n.severity for n in notes] == [NoteSeverity.ADVISORY, NoteSeverity.CRITICAL, NoteSeverity.CRITICAL]


def test_integrity_results() -> None:
    broken = _notes({}, integrity=IntegrityCheck(checked=True, broken=True))
    checked = _notes({}, integrity=IntegrityCheck(checked=True, broken=False))
    edat = _notes({FactField.EDAT_BLOCK_OFFSET: "0x1000"})

    assert [n.severity for n in broken] == [NoteSeverity.CRITICAL]
    assert _texts(checked) == ["Checked missing files against IRD"]
    assert edat == broken


def test_truncated_outcome_note() -> None:
    notes = _notes({}, outcome=ParseOutcome.TRUNCATED)

    assert notes == [
        DiagnosticNote(NoteSeverity.INFO, "The log was too large, so only the last processed run is shown")
    ]


def test_build_age_notes() -> None:
    ancient = _notes({FactField.BUILD_TIME: "2025-01-01", FactField.BUILD_BRANCH: "master"})
    fresh = _notes({FactField.BUILD_TIME: "2026-10-12 08:00:00", FactField.BUILD_BRANCH: "HEAD"})
    fork = _notes({FactField.BUILD_TIME: "2025-01-01", FactField.BUILD_BRANCH: "my-fork"})
    unknown = _notes({FactField.BUILD_TIME: "2025-01-01"})

    assert ancient == [
        DiagnosticNote(
            NoteSeverity.CRITICAL,
            "This RPCS3 build is 1 year and 9 months old, please consider updating it",
        )
    ]
    assert fresh == [DiagnosticNote(NoteSeverity.INFO, "This RPCS3 build is 6 days old")]
    assert fork == []
    assert unknown == []


def test_spu_perf_branch_is_obsolete() -> None:
    notes = _notes({FactField.BUILD_TIME: "2026-10-18", FactField.BUILD_BRANCH: "spu_perf"})

    assert len(notes) == 2
    assert "obsolete" in notes[1].text


@pytest.mark.parametrize(
    ("days", "severity"),
    [
        (10, NoteSeverity.INFO),
        (31, NoteSeverity.ADVISORY),
        (61, NoteSeverity.WARNING),
        (91, NoteSeverity.WARNING),
        (181, NoteSeverity.CRITICAL),
        (366, NoteSeverity.CRITICAL),
    ],
)
def test_classify_build_age(days: int, severity: NoteSeverity) -> None:
    assert classify_build_age(timedelta(days=days)) == severity


@pytest.mark.parametrize(
    ("delta", "expected"),
    [
        (timedelta(minutes=5), "less than an hour"),
        (timedelta(hours=3), "3 hours"),
        (timedelta(days=1), "1 day"),
        (timedelta(days=15), "2 weeks"),
        (timedelta(days=65), "2 months"),
        (timedelta(days=365), "1 year"),
    ],
)
def test_describe_time_delta(delta: timedelta, expected: str) -> None:
    assert describe_time_delta(delta) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("4.80", (4, 80)),
        ("531.79.0", (531, 79, 0)),
        ("1.2.3.4", (1, 2, 3, 4)),
        ("4", None),
        ("1.2.3.4.5", None),
        ("4.80-custom", None),
        (None, None),
    ],
)
def test_parse_version(raw: str | None, expected: tuple[int, ...] | None) -> None:
    assert parse_version(raw) == expected


def test_missing_licenses_are_summarized() -> None:
    raps = [f"/dev_hdd0/home/00000001/exdata/UP0001-NPUB3000{i}_00-GAME000000000000.rap" for i in range(7)]
    raps.append("/dev_hdd0/home/00000001/exdata/UP0700-NPUB30932_00-NNKDLFULLGAMEPTB.rap")
    raps.append(raps[0])

    lines = missing_license_lines(_facts({FactField.RAP_FILE: raps}))

    assert len(lines) == 5
    assert lines[0] == "`UP0001-NPUB30000_00-GAME000000000000.rap`"
    assert lines[-1] == "and 3 other licenses"
