from __future__ import annotations

import numpy as np
import pytest

from errors import RecognitionError
from ocr import TextRecognizer, load_image


def _box(x: float, y: float, w: float = 40, h: float = 10) -> list:
    return [[x, y], [x + w, y], [x + w, y + h], [x, y + h]]


class FakeReader:
    def __init__(self, results=None, error=None) -> None:
        self.results = results or []
        self.error = error

    def readtext(self, frame):
        if self.error is not None:
            raise self.error
        return self.results


FRAME = np.zeros((100, 200, 3), dtype=np.uint8)


def test_fragments_sorted_filtered_and_normalized() -> None:
    reader = FakeReader([
        (_box(100, 90), "4/102", 0.8),
        (_box(20, 5), "CHARIZARD", 0.95),
        (_box(150, 5), "120 HP", 0.9),
        (_box(0, 50), "smudge", 0.1),
        (_box(0, 60), "   ", 0.99),
    ])

    fragments = TextRecognizer(reader=reader, min_confidence=0.3).recognize(FRAME)

    assert [f.text for f in fragments] == ["CHARIZARD", "120 HP", "4/102"]
    box = fragments[0].bounding_box
    assert box.x == pytest.approx(0.1)
    assert box.y == pytest.approx(0.05)
    assert box.width == pytest.approx(0.2)
    assert box.height == pytest.approx(0.1)


def test_reader_failure_is_recognition_error() -> None:
    recognizer = TextRecognizer(reader=FakeReader(error=RuntimeError("cuda")))

    with pytest.raises(RecognitionError):
        recognizer.recognize(FRAME)


def test_bad_inputs_raise_recognition_error() -> None:
    with pytest.raises(RecognitionError):
        load_image(None)
    with pytest.raises(RecognitionError):
        load_image(b"")
    with pytest.raises(RecognitionError):
        load_image(b"not an image")
    with pytest.raises(RecognitionError):
        load_image(np.zeros((0, 0), dtype=np.uint8))
    with pytest.raises(RecognitionError):
        load_image(12)


def test_missing_file_raises(tmp_path) -> None:
    with pytest.raises(RecognitionError):
        load_image(tmp_path / "nope.jpg")


def test_array_passes_through() -> None:
    assert load_image(FRAME) is FRAME
