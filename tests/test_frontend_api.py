from __future__ import annotations

import os
import sys

import cv2
import numpy as np
from starlette.testclient import TestClient

sys.path.insert(0, os.path.abspath("src"))

from scan_basket.config import ScanConfig
from scan_basket.domain.errors import PermissionDenied
from scan_basket.domain.models import CapturedFrame, RecognizedText
from scan_basket.frontend import create_app
from scan_basket.orchestrator.session import ScanSession


class _Stream:
    def __init__(self):
        self.released = False

    def read_frame(self):
        return CapturedFrame(pixels=np.full((8, 8, 3), 30, dtype=np.uint8))

    def release(self):
        self.released = True


class _Recognizer:
    def __init__(self, text):
        self.text = text

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        pass

    def recognize(self, image):
        return RecognizedText(text=self.text, confidence=91.5)

    def close(self):
        pass


def _client(text="£3.10", *, deny=False):
    streams = []

    def camera(config, *, facing, width=None, height=None):
        if deny:
            raise PermissionDenied()
        streams.append(_Stream())
        return streams[-1]

    session = ScanSession(
        ScanConfig(),
        camera_factory=camera,
        recognizer_factory=lambda cfg: _Recognizer(text),
        barcode_decoder=lambda stream, *, is_cancelled: "9780201379624",
    )
    return TestClient(create_app(session=session, allow_origins=["*"])), streams


def test_manual_catalog_totals_and_remove():
    client, _ = _client()

    assert client.get("/api/health").json()["status"] == "ok"
    assert len(client.get("/api/catalog").json()["items"]) == 6

    r = client.post("/api/basket/catalog/1")
    assert r.status_code == 201
    assert r.json()["item"]["name"] == "Apple"
    assert client.post("/api/basket/catalog/nope").status_code == 404

    r = client.post("/api/basket/manual", json={"price": "0.30"})
    assert r.status_code == 201
    assert r.json()["item"]["price"] == "0.30"

    bad = client.post("/api/basket/manual", json={"price": "zero"})
    assert bad.status_code == 400
    assert bad.json() == {"error": "invalid_manual_input", "detail": "Please enter a valid price", "manual_entry": True}

    basket = client.get("/api/basket", params={"discount": "10"}).json()
    assert [it["index"] for it in basket["items"]] == [0, 1]
    assert basket["totals"] == {"subtotal": "0.80", "discount_amount": "0.08", "tax_amount": "0.06", "total": "0.78"}

    # discount is clamped at the point of entry
    clamped = client.get("/api/basket", params={"discount": "150"}).json()
    assert clamped["discount"] == "100"
    assert clamped["totals"]["total"] == "0.00"

    removed = client.delete("/api/basket/0")
    assert removed.status_code == 200
    assert removed.json()["removed"]["name"] == "Apple"
    assert client.delete("/api/basket/5").status_code == 404
    assert [it["name"] for it in client.get("/api/basket").json()["items"]] == ["Manual Item"]


def test_scan_image_upload():
    client, _ = _client("£3.10")
    ok, buf = cv2.imencode(".png", np.full((10, 20, 3), 220, dtype=np.uint8))
    assert ok
    r = client.post("/api/basket/scan-image", content=buf.tobytes(), headers={"content-type": "image/png"})
    assert r.status_code == 201
    payload = r.json()
    assert payload["item"]["price"] == "3.10"
    assert payload["recognized_text"] == "£3.10"
    assert client.post("/api/basket/scan-image", content=b"not an image").status_code == 400


def test_scan_image_without_price_reports_manual_fallback():
    client, _ = _client("...")
    ok, buf = cv2.imencode(".png", np.zeros((4, 4, 3), dtype=np.uint8))
    r = client.post("/api/basket/scan-image", content=buf.tobytes())
    assert r.status_code == 422
    assert r.json()["error"] == "no_price_found"
    assert r.json()["manual_entry"] is True


def test_camera_capture_flow():
    client, streams = _client("$12.50 item #4821")
    assert client.post("/api/camera/capture").status_code == 409
    assert client.post("/api/camera/open").json() == {"camera_open": True}
    r = client.post("/api/camera/capture")
    assert r.status_code == 201
    assert r.json()["item"]["price"] == "12.50"
    assert streams[0].released
    assert client.get("/api/health").json()["camera_open"] is False
    assert client.post("/api/camera/close").json() == {"camera_open": False}


def test_camera_permission_denied():
    client, _ = _client(deny=True)
    r = client.post("/api/camera/open")
    assert r.status_code == 403
    assert r.json()["error"] == "permission_denied"
    assert r.json()["manual_entry"] is True


def test_barcode_scan_adds_placeholder_item():
    client, streams = _client()
    r = client.post("/api/barcode/scan")
    assert r.status_code == 201
    assert r.json()["item"] == {"id": r.json()["item"]["id"], "name": "Item (9780201379624)", "price": "9.99"}
    assert streams[0].released


def test_huge_manual_price_keeps_basket_usable():
    client, _ = _client()
    r = client.post("/api/basket/manual", json={"price": "1E+30"})
    assert r.status_code == 201
    assert r.json()["item"]["price"] == "1000000000000000000000000000000.00"
    r = client.get("/api/basket")
    assert r.status_code == 200
    body = r.json()
    assert len(body["items"]) == 1
    assert body["totals"]["subtotal"] == "1000000000000000000000000000000.00"


def test_camera_read_error_reports_recognition_failure():
    client, streams = _client()
    assert client.post("/api/camera/open").status_code == 200

    def unplugged():
        raise cv2.error("device unplugged")

    streams[0].read_frame = unplugged
    r = client.post("/api/camera/capture")
    assert r.status_code == 502
    assert r.json()["error"] == "recognition_failure"
    assert r.json()["manual_entry"] is True
    assert client.get("/api/health").json()["camera_open"] is True
