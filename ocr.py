"""
ocr.py — Text recognition for camera frames via EasyOCR.

TextRecognizer turns a frame into RecognizedFragments:
  - boxes normalized to 0..1 of the frame, origin top-left
  - fragments under OCR_MIN_CONFIDENCE dropped
  - sorted top to bottom, then left to right (reading order)

The EasyOCR model takes several seconds to load, so the reader is created
on first use unless one is passed in.
"""

import logging
import time
from pathlib import Path

import cv2
import numpy as np

from config import OCR_LANGUAGES, OCR_GPU, OCR_MIN_CONFIDENCE
from errors import RecognitionError
from models import BoundingBox, RecognizedFragment

logger = logging.getLogger("ocr")


def load_image(image):
    """
    Accept a BGR array, a path, or encoded image bytes; return a BGR array.

    Raises:
        RecognitionError: nothing usable was given.
    """
    if image is None:
        raise RecognitionError("No image")

    if isinstance(image, (str, Path)):
        frame = cv2.imread(str(image))
        if frame is None:
            raise RecognitionError(f"Could not read image: {image}")
        return frame

    if isinstance(image, (bytes, bytearray)):
        if not image:
            raise RecognitionError("Empty image data")
        frame = cv2.imdecode(np.frombuffer(image, dtype=np.uint8), cv2.IMREAD_COLOR)
        if frame is None:
            raise RecognitionError("Could not decode image data")
        return frame

    if isinstance(image, np.ndarray):
        if image.size == 0 or image.ndim < 2:
            raise RecognitionError("Empty frame")
        return image

    raise RecognitionError(f"Unsupported image type: {type(image).__name__}")


def _normalize_box(bbox, width, height) -> BoundingBox:
    # EasyOCR boxes are four [x, y] corner points in pixels
    xs = [float(p[0]) for p in bbox]
    ys = [float(p[1]) for p in bbox]
    left, top = min(xs), min(ys)
    return BoundingBox(
        x=max(0.0, left / width),
        y=max(0.0, top / height),
        width=(max(xs) - left) / width,
        height=(max(ys) - top) / height,
    )


class TextRecognizer:
    """Recognizer collaborator: recognize(image) -> [RecognizedFragment]."""

    def __init__(self, reader=None, languages=None, gpu: bool = OCR_GPU,
                 min_confidence: float = OCR_MIN_CONFIDENCE):
        self._reader = reader
        self.languages = list(languages or OCR_LANGUAGES)
        self.gpu = gpu
        self.min_confidence = min_confidence

    @property
    def reader(self):
        if self._reader is None:
            import easyocr

            logger.info("Loading EasyOCR model (%s, gpu=%s)...", ",".join(self.languages), self.gpu)
            t0 = time.time()
            self._reader = easyocr.Reader(self.languages, gpu=self.gpu, verbose=False)
            logger.info("EasyOCR ready in %.1fs", time.time() - t0)
        return self._reader

    def recognize(self, image) -> list:
        """
        Raises:
            RecognitionError: unreadable input, or the reader itself failed.
        """
        frame = load_image(image)
        height, width = frame.shape[:2]

        try:
            results = self.reader.readtext(frame)
        except Exception as e:
            raise RecognitionError(f"OCR failed: {e}") from e

        fragments = []
        for bbox, text, conf in results:
            text = text.strip()
            if not text or conf < self.min_confidence:
                continue
            fragments.append(RecognizedFragment(
                text=text,
                confidence=float(conf),
                bounding_box=_normalize_box(bbox, width, height),
            ))

        fragments.sort(key=lambda f: (f.bounding_box.top, f.bounding_box.x))
        logger.debug("OCR: %d/%d fragments kept", len(fragments), len(results))
        return fragments
