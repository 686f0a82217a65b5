"""
camera.py — Frame source for the live scanner

Two capture backends behind one interface:
  1. device mode — a local webcam / USB camera via cv2.VideoCapture
  2. mock mode   — cycles through static card images from a directory,
                   for development without a camera

start(on_frame) also runs a delivery thread that hands frames to the
callback no faster than FRAME_INTERVAL_SECONDS. Delivery stops while the
camera is paused; read()/read_jpeg() keep working for the live preview.

Usage:
    from camera import Camera

    cam = Camera(mode="mock", mock_dir="test_images/")
    cam.start(on_frame=session.handle_frame)
    cam.pause()                             # results on screen
    cam.resume()
    jpg = cam.read_jpeg()                   # MJPEG preview
    cam.stop()
"""

import glob
import logging
import os
import threading
from pathlib import Path
from typing import Callable, Optional

import cv2
import numpy as np

from config import (
    CAMERA_DEVICE, CAMERA_WIDTH, CAMERA_HEIGHT, FRAME_INTERVAL_SECONDS,
    MOCK_EXTENSIONS,
)

logger = logging.getLogger(__name__)

CAMERA_MODES = ("device", "mock")


class Camera:
    """
    Unified camera interface for a capture device and mock mode.

    Attributes:
        mode: "device" or "mock"
        is_running: Whether the camera/mock feed is active
        is_paused: Whether frame delivery to the callback is suspended
        resolution: Tuple (width, height) of the current frame size
    """

    def __init__(
        self,
        mode: Optional[str] = None,
        mock_dir: Optional[str] = None,
        device: int = CAMERA_DEVICE,
        width: int = CAMERA_WIDTH,
        height: int = CAMERA_HEIGHT,
        interval: float = FRAME_INTERVAL_SECONDS,
    ):
        # ── Mode: mock when a mock directory is given, else device ──
        if mode is None:
            mode = "mock" if mock_dir else "device"
        self.mode = mode.lower()
        if self.mode not in CAMERA_MODES:
            raise ValueError(f"Invalid camera mode: '{mode}'. Use 'device' or 'mock'.")

        # ── State ──
        self.is_running = False
        self.resolution = (width, height)
        self.interval = interval
        self._cap: Optional[cv2.VideoCapture] = None
        self._device = device
        self._read_lock = threading.Lock()

        # ── Delivery thread ──
        self._on_frame: Optional[Callable] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._resume_event = threading.Event()
        self._resume_event.set()

        # ── Mock config ──
        self._mock_images: list[str] = []
        self._mock_index = 0
        self._mock_dir = mock_dir

    # ─────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────

    @property
    def is_paused(self) -> bool:
        return not self._resume_event.is_set()

    def start(self, on_frame: Optional[Callable] = None) -> bool:
        """
        Open the camera (or load mock images) and, if on_frame is given,
        start delivering frames to it.

        Returns:
            True if started successfully, False otherwise.
        """
        if not self.is_running:
            started = self._start_device() if self.mode == "device" else self._start_mock()
            if not started:
                return False

        self._resume_event.set()
        if on_frame is not None and self._thread is None:
            self._on_frame = on_frame
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._deliver_frames, name="camera-frames", daemon=True,
            )
            self._thread.start()
            logger.info("Frame delivery started (every %.2fs)", self.interval)
        return True

    def stop(self) -> None:
        """Stop delivery and release the camera or clear mock state."""
        self._stop_event.set()
        self._resume_event.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(self.interval * 2, 1.0))
        self._on_frame = None

        with self._read_lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None
                logger.info("Camera released")
            if self.mode == "mock":
                logger.info("Mock camera stopped (%d images unloaded)", len(self._mock_images))
                self._mock_images = []
                self._mock_index = 0

        self.is_running = False

    def pause(self) -> None:
        """Suspend frame delivery. The preview stream keeps running."""
        if not self.is_paused:
            self._resume_event.clear()
            logger.debug("Frame delivery paused")

    def resume(self) -> None:
        if self.is_paused:
            self._resume_event.set()
            logger.debug("Frame delivery resumed")

    def _start_device(self) -> bool:
        logger.info("Opening camera device %d", self._device)
        cap = cv2.VideoCapture(self._device)
        if not cap.isOpened():
            logger.error("Failed to open camera device %d", self._device)
            cap.release()
            return False

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.resolution[0])
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.resolution[1])
        self._cap = cap
        self.is_running = True
        logger.info("Camera started: device %d @ %dx%d", self._device, *self.resolution)
        return True

    def _start_mock(self) -> bool:
        """Load mock images from the specified directory."""
        mock_dir = self._resolve_mock_dir()
        if mock_dir is None:
            return False

        images = []
        for ext in MOCK_EXTENSIONS:
            images.extend(glob.glob(os.path.join(mock_dir, "**", ext), recursive=True))

        if not images:
            logger.error("No images found in mock directory: %s", mock_dir)
            return False

        self._mock_images = sorted(images)
        self._mock_index = 0
        self.is_running = True
        logger.info("Mock camera started: %d images from %s", len(self._mock_images), mock_dir)
        return True

    def _resolve_mock_dir(self) -> Optional[str]:
        if self._mock_dir:
            p = Path(self._mock_dir)
            if p.is_dir():
                return str(p)
            logger.error("Mock directory not found: %s", self._mock_dir)
            return None

        default = Path(__file__).parent / "test_images"
        if default.is_dir():
            return str(default)
        logger.error("No mock directory found. Pass mock_dir= or create %s", default)
        return None

    # ─────────────────────────────────────────────────────────
    # FRAME DELIVERY
    # ─────────────────────────────────────────────────────────

    def _deliver_frames(self) -> None:
        """Throttled loop: one frame to the callback per interval, never while paused."""
        while not self._stop_event.is_set():
            self._resume_event.wait()
            if self._stop_event.is_set():
                break

            frame = self.read()
            callback = self._on_frame
            if frame is not None and callback is not None:
                try:
                    callback(frame)
                except Exception:
                    logger.exception("Frame handler failed")
            self.advance()

            self._stop_event.wait(self.interval)

    # ─────────────────────────────────────────────────────────
    # FRAME CAPTURE
    # ─────────────────────────────────────────────────────────

    def read(self) -> Optional[np.ndarray]:
        """
        Read a single frame.

        Returns:
            numpy.ndarray (H, W, 3) BGR uint8, or None if unavailable.
        """
        if not self.is_running:
            return None

        with self._read_lock:
            if self.mode == "device":
                if self._cap is None:
                    return None
                ret, frame = self._cap.read()
                if not ret:
                    logger.warning("Camera frame read failed")
                    return None
                return frame

            if not self._mock_images:
                return None
            path = self._mock_images[self._mock_index]
            frame = cv2.imread(path)
            if frame is None:
                logger.warning("Failed to read mock image: %s", path)
            return frame

    def advance(self) -> None:
        """Move to the next mock image. No-op for a live device."""
        with self._read_lock:
            if self.mode == "mock" and self._mock_images:
                self._mock_index = (self._mock_index + 1) % len(self._mock_images)

    def read_jpeg(self, quality: int = 80) -> Optional[bytes]:
        """Read a frame and return it as JPEG bytes, for the MJPEG preview."""
        frame = self.read()
        if frame is None:
            return None

        success, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, quality])
        if not success:
            logger.warning("JPEG encode failed")
            return None
        return buffer.tobytes()

    # ─────────────────────────────────────────────────────────
    # STATUS / INFO
    # ─────────────────────────────────────────────────────────

    @property
    def current_mock_path(self) -> Optional[str]:
        if self.mode == "mock" and self._mock_images:
            return self._mock_images[self._mock_index]
        return None

    def status(self) -> dict:
        info = {
            "mode": self.mode,
            "running": self.is_running,
            "paused": self.is_paused,
            "delivering": self._thread is not None,
            "interval": self.interval,
            "resolution": list(self.resolution),
        }
        if self.mode == "mock":
            info["mock_count"] = len(self._mock_images)
            current = self.current_mock_path
            info["mock_current"] = os.path.basename(current) if current else None
        return info

    def __repr__(self) -> str:
        state = "running" if self.is_running else "stopped"
        if self.is_paused:
            state += ", paused"
        if self.mode == "mock":
            return f"Camera(mode=mock, {state}, images={len(self._mock_images)})"
        return f"Camera(mode=device, {state}, device={self._device})"
