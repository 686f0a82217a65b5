from __future__ import annotations

from models import ScanPhase, ScanState


def test_every_phase_has_status_text() -> None:
    texts = {phase: ScanState(phase).status_text for phase in ScanPhase}

    assert all(texts.values())
    assert len(set(texts.values())) == len(ScanPhase)


def test_error_message_replaces_status_text() -> None:
    assert ScanState.error("Camera unavailable").status_text == "Camera unavailable"
    assert ScanState(ScanPhase.ERROR).status_text == "Error"


def test_busy_phases() -> None:
    assert ScanState.processing().is_busy
    assert not ScanState.scanning().is_busy
