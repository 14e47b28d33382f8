from __future__ import annotations

from pathlib import Path

import pytest

from compat_log_triage.core.models import (
    Attachment,
    DiagnosticNote,
    FactField,
    FactSet,
    NoteSeverity,
)


def test_scalar_facts_keep_last_value() -> None:
    facts = FactSet()
    facts.set(FactField.SERIAL, "BLUS30443")
    facts.set(FactField.SERIAL, "BCES00001")

    assert facts.get(FactField.SERIAL) == "BCES00001"
    assert FactField.SERIAL in facts
    assert len(facts) == 1


def test_multi_valued_facts_append_and_dedupe() -> None:
    facts = FactSet()
    for value in ["PPU-1", "PPU-2", "PPU-1"]:
        facts.set(FactField.PPU_HASH_PATCH, value)

    assert facts.get(FactField.PPU_HASH_PATCH) == "PPU-1\nPPU-2\nPPU-1"
    assert facts.values(FactField.PPU_HASH_PATCH) == ["PPU-1", "PPU-2"]
    assert facts.values(FactField.RAP_FILE) == []


def test_frozen_facts_reject_writes() -> None:
    facts = FactSet().freeze()

    with pytest.raises(RuntimeError):
        facts.set(FactField.OS_TYPE, "Linux")


def test_severity_order_and_rendering() -> None:
    assert NoteSeverity.INFO < NoteSeverity.ADVISORY < NoteSeverity.WARNING < NoteSeverity.CRITICAL
    assert NoteSeverity.PIRACY > NoteSeverity.CRITICAL
    assert DiagnosticNote(NoteSeverity.CRITICAL, "Broken").render() == "❌ Broken"


def test_attachment_from_path(tmp_path: Path) -> None:
    path = tmp_path / "RPCS3.log"
    path.write_bytes(b"RPCS3 v0.0.33\n")

    attachment = Attachment.from_path(path)

    assert attachment.name == "RPCS3.log"
    assert attachment.size == 14
    assert attachment.read_head(5) == b"RPCS3"
    with pytest.raises(FileNotFoundError):
        Attachment.from_path(tmp_path / "missing.log")
