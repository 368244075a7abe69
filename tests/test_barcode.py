import os
import sys
from types import SimpleNamespace

import numpy as np
import pytest

sys.path.insert(0, os.path.abspath("src"))

from scan_basket.domain.errors import BarcodeDecodeFailure
from scan_basket.domain.models import CapturedFrame
from scan_basket.orchestrator.barcode import decode_frame, decode_from_stream


class _Stream:
    def __init__(self, n):
        self.remaining = n
        self.reads = 0

    def read_frame(self):
        if self.remaining == 0:
            return None
        self.remaining -= 1
        self.reads += 1
        return CapturedFrame(pixels=np.zeros((2, 2, 3), dtype=np.uint8))


def test_returns_first_decoded_code():
    stream = _Stream(10)
    answers = iter([None, None, "ABC-123"])
    code = decode_from_stream(stream, decoder=lambda frame: next(answers))
    assert code == "ABC-123"
    assert stream.reads == 3


def test_stream_end_without_code_fails():
    with pytest.raises(BarcodeDecodeFailure):
        decode_from_stream(_Stream(2), decoder=lambda frame: None)


def test_cancellation_stops_the_loop():
    stream = _Stream(100)
    with pytest.raises(BarcodeDecodeFailure):
        decode_from_stream(stream, is_cancelled=lambda: stream.reads >= 5, decoder=lambda frame: None)
    assert stream.reads == 5


@pytest.fixture
def zbar_calls(monkeypatch):
    zbar = pytest.importorskip("pyzbar.pyzbar")
    calls = {"images": [], "symbols": []}

    def fake_decode(image):
        calls["images"].append(image)
        return calls["symbols"]

    monkeypatch.setattr(zbar, "decode", fake_decode)
    return calls


def test_decode_frame_converts_to_gray_and_skips_blank_symbols(zbar_calls):
    zbar_calls["symbols"] = [
        SimpleNamespace(data=b"  ", type="EAN13"),
        SimpleNamespace(data=b"4006381333931", type="EAN13"),
        SimpleNamespace(data=b"9780201379624", type="EAN13"),
    ]
    frame = CapturedFrame(pixels=np.full((4, 6, 3), 90, dtype=np.uint8))
    assert decode_frame(frame) == "4006381333931"
    (image,) = zbar_calls["images"]
    assert image.shape == (4, 6)
    assert image.dtype == np.uint8


def test_decode_frame_passes_gray_frames_through(zbar_calls):
    zbar_calls["symbols"] = [SimpleNamespace(data=b" QR-42 \n", type="QRCODE")]
    pixels = np.zeros((5, 5), dtype=np.uint8)
    assert decode_frame(CapturedFrame(pixels=pixels)) == "QR-42"
    assert zbar_calls["images"][0] is pixels


def test_decode_frame_without_readable_symbol_is_none(zbar_calls):
    zbar_calls["symbols"] = [SimpleNamespace(data=b"", type="CODE128"), SimpleNamespace(data=b" ", type="EAN8")]
    frame = CapturedFrame(pixels=np.zeros((3, 3, 3), dtype=np.uint8))
    assert decode_frame(frame) is None
    zbar_calls["symbols"] = []
    assert decode_frame(frame) is None
