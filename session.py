"""
session.py — Scan session state machine.

ScanSession owns the scanning lifecycle:

    Idle ──start──▶ Scanning ──frame──▶ Processing ──strong hint──▶ CardDetected
      ▲               ▲  │                  │                          │
      └───pause/resume┘  │                  └── no hint / OCR error ──▶ Scanning
                         │                                              │
                         └──────── clear ◀── ShowingResults / NoResults ◀┘

"Busy" means the state is Processing or CardDetected; there is no separate
flag. A single lock guards only the check-and-set of the state. It is never
held while OCR or a network lookup runs, so a frame that arrives mid-search
sees a busy state and is dropped rather than queued.
"""

import dataclasses
import logging
import threading
import time
from typing import Optional

from errors import LookupFailure, RecognitionError, SearchUnavailableError, SessionBusyError
from hints import extract_hint, manual_hint
from models import (
    FRAME_ACCEPTING_PHASES, RESULT_PHASES, ScanPhase, ScanResult, ScanState,
    SessionSnapshot,
)
from search import search

logger = logging.getLogger("session")

CAMERA_FAILED_MESSAGE = "Camera failed to start"
DEGRADED_NOTICE = "Card lookup is unavailable right now. Still scanning; try again shortly."


class ScanSession:
    """
    Args:
        recognizer: object with recognize(image) -> [RecognizedFragment]
        lookup: lookup collaborator (see models.LookupCollaborator)
        camera: optional camera.Camera; frames can also be pushed with
            handle_frame() directly (phone uploads, tests)
        auto_confirm_single_match: a lone match is selected immediately
            instead of waiting for the user to pick it
    """

    def __init__(self, recognizer, lookup, camera=None, *, auto_confirm_single_match: bool):
        self.recognizer = recognizer
        self.lookup = lookup
        self.camera = camera
        self.auto_confirm = auto_confirm_single_match

        self._lock = threading.Lock()
        self._state = ScanState.idle()
        self._hint = None
        self._matches = ()
        self._selected = None
        self._attempted = ()
        self._warning = None
        self._notice = None
        self._last_scan: Optional[ScanResult] = None

    def __repr__(self):
        return f"ScanSession(state={self._state.phase.value}, lookup={self.lookup!r})"

    # ─────────────────────────────────────────────────────────
    # STATE HELPERS
    # ─────────────────────────────────────────────────────────

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._state.is_busy

    @property
    def last_scan(self) -> Optional[ScanResult]:
        return self._last_scan

    def _set_state(self, state: ScanState) -> None:
        # Caller holds self._lock
        if state != self._state:
            logger.debug("State: %s → %s", self._state.phase.value, state.phase.value)
        self._state = state

    def _pause_camera(self):
        if self.camera is not None:
            self.camera.pause()

    def _resume_camera(self):
        if self.camera is not None:
            self.camera.resume()

    def _back_to_scanning(self, notice: Optional[str] = None) -> None:
        with self._lock:
            self._set_state(ScanState.scanning())
            if notice is not None:
                self._notice = notice
        self._resume_camera()

    def _release_if_busy(self) -> None:
        """Whatever happened, never leave the session stuck in a busy state."""
        with self._lock:
            stuck = self._state.is_busy
            if stuck:
                self._set_state(ScanState.scanning())
        if stuck:
            self._resume_camera()

    # ─────────────────────────────────────────────────────────
    # FRAMES
    # ─────────────────────────────────────────────────────────

    def handle_frame(self, image) -> bool:
        """
        Process one camera frame.

        Returns False (and does nothing) unless the session is Scanning or
        Idle; a frame arriving at any other time is dropped.
        """
        with self._lock:
            if self._state.phase not in FRAME_ACCEPTING_PHASES:
                logger.debug("Frame dropped in state %s", self._state.phase.value)
                return False
            self._set_state(ScanState.processing())
        self._pause_camera()

        try:
            self._process_frame(image)
        finally:
            self._release_if_busy()
        return True

    def _process_frame(self, image) -> None:
        t0 = time.time()
        try:
            fragments = self.recognizer.recognize(image)
        except RecognitionError as e:
            logger.debug("No text this frame: %s", e)
            self._back_to_scanning()
            return

        hint = extract_hint(fragments)
        scan = ScanResult(
            recognized=tuple(fragments),
            hint=hint,
            processing_ms=round((time.time() - t0) * 1000, 1),
        )
        with self._lock:
            self._last_scan = scan

        if not hint.has_strong_hint:
            self._back_to_scanning()
            return

        logger.info("Card detected: %s", hint.describe())
        with self._lock:
            self._set_state(ScanState.card_detected(hint))

        try:
            outcome = search(hint, self.lookup)
        except SearchUnavailableError as e:
            logger.warning("Search unavailable, resuming scan: %s", e)
            with self._lock:
                self._attempted = e.attempted_queries
            self._back_to_scanning(notice=DEGRADED_NOTICE)
            return

        self._apply_outcome(hint, outcome)

    def _apply_outcome(self, hint, outcome) -> None:
        matches = tuple(outcome.matches)
        with self._lock:
            self._hint = hint
            self._matches = matches
            self._attempted = outcome.attempted_queries
            self._warning = outcome.warning
            self._notice = outcome.warning
            self._selected = None

            if not matches:
                self._set_state(ScanState.no_results())
            else:
                if len(matches) == 1 and self.auto_confirm:
                    self._selected = matches[0]
                self._set_state(ScanState.showing_results())

        if not matches:
            logger.info("No results after %d queries: %s",
                        len(outcome.attempted_queries), ", ".join(outcome.attempted_queries))
        elif self._selected is not None:
            logger.info("Auto-confirmed %s (%s)", matches[0].id, matches[0].card.name)
        else:
            logger.info("%d candidate(s), top: %s", len(matches), matches[0].id)

    # ─────────────────────────────────────────────────────────
    # COMMANDS
    # ─────────────────────────────────────────────────────────

    def manual_search(self, text: str) -> SessionSnapshot:
        """
        Search for user-typed text.

        Raises:
            SessionBusyError: a frame or another search is in flight.
        """
        with self._lock:
            if self._state.is_busy:
                raise SessionBusyError("A scan is already in progress")
            self._set_state(ScanState.processing())
        self._pause_camera()

        try:
            hint = manual_hint(text)
            with self._lock:
                self._set_state(ScanState.card_detected(hint))
            logger.info("Manual search: %r → %s", text, hint.describe())

            try:
                outcome = search(hint, self.lookup)
            except SearchUnavailableError as e:
                logger.warning("Manual search failed: %s", e)
                with self._lock:
                    self._hint = hint
                    self._attempted = e.attempted_queries
                self._back_to_scanning(notice=f"Search failed: {e}")
            else:
                self._apply_outcome(hint, outcome)
        finally:
            self._release_if_busy()

        return self.snapshot()

    def start(self) -> bool:
        """Start scanning. A camera that will not open puts the session in Error."""
        with self._lock:
            if self._state.phase not in (ScanPhase.IDLE, ScanPhase.ERROR):
                return False
            self._set_state(ScanState.scanning())
            self._notice = None

        if self.camera is not None and not self.camera.start(on_frame=self.handle_frame):
            logger.error(CAMERA_FAILED_MESSAGE)
            with self._lock:
                self._set_state(ScanState.error(CAMERA_FAILED_MESSAGE))
            return False

        logger.info("Scanning started")
        return True

    def stop(self) -> None:
        if self.camera is not None:
            self.camera.stop()
        with self._lock:
            self._set_state(ScanState.idle())
        logger.info("Scanning stopped")

    def pause(self) -> bool:
        with self._lock:
            if self._state.phase is not ScanPhase.SCANNING:
                return False
            self._set_state(ScanState.idle())
        self._pause_camera()
        return True

    def resume(self) -> bool:
        with self._lock:
            if self._state.phase is not ScanPhase.IDLE:
                return False
            self._set_state(ScanState.scanning())
        self._resume_camera()
        return True

    def toggle_pause(self) -> bool:
        if self._state.phase is ScanPhase.SCANNING:
            return self.pause()
        return self.resume()

    def clear_results(self) -> bool:
        """Drop the current results and go back to scanning."""
        with self._lock:
            if self._state.phase not in RESULT_PHASES:
                return False
            self._hint = None
            self._matches = ()
            self._selected = None
            self._attempted = ()
            self._warning = None
            self._notice = None
            self._last_scan = None
            self._set_state(ScanState.scanning())
        self._resume_camera()
        return True

    def select_match(self, match_id: str):
        """
        Pick one of the current matches for detail display.

        Returns the match (refreshed with the full card record when the
        lookup can provide one), or None for an unknown id.
        """
        with self._lock:
            match = next((m for m in self._matches if m.id == match_id), None)
        if match is None:
            return None

        get_card = getattr(self.lookup, "get_card", None)
        if get_card is not None:
            try:
                card = get_card(match_id)
            except LookupFailure as e:
                logger.warning("Could not refresh %s: %s", match_id, e)
                card = None
            if card is not None:
                match = dataclasses.replace(match, card=card)

        with self._lock:
            self._selected = match
        return match

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            scan = self._last_scan
            return SessionSnapshot(
                state=self._state,
                hint=self._hint,
                matches=self._matches,
                selected=self._selected,
                attempted_queries=self._attempted,
                warning=self._warning,
                recognized_lines=tuple(scan.lines) if scan else (),
                notice=self._notice,
                auto_confirm=self.auto_confirm,
                last_processing_ms=scan.processing_ms if scan else None,
            )
