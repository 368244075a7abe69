"""Barcode decoding from a live camera stream (zbar via pyzbar)."""

from __future__ import annotations

from typing import Callable, List, Optional

import cv2
import numpy as np

from ..domain.errors import BarcodeDecodeFailure
from ..domain.models import CapturedFrame
from ..logging import get_logger
from .camera import CameraStream

LOG = get_logger("orchestrator-barcode")


def decode_frame(frame: CapturedFrame) -> Optional[str]:
    """Return the first symbol zbar finds in the frame, if any."""
    from pyzbar.pyzbar import decode

    pixels: np.ndarray = frame.pixels
    gray = cv2.cvtColor(pixels, cv2.COLOR_BGR2GRAY) if pixels.ndim == 3 else pixels
    results: List = decode(gray)
    for r in results:
        txt = r.data.decode("utf-8", errors="replace").strip()
        if txt:
            LOG.debug(f"Decoded {r.type} symbol {txt!r}")
            return txt
    return None


def decode_from_stream(
    stream: CameraStream,
    *,
    is_cancelled: Callable[[], bool] = lambda: False,
    decoder: Callable[[CapturedFrame], Optional[str]] = decode_frame,
) -> str:
    """Block until a barcode is read from ``stream``.

    Raises BarcodeDecodeFailure when the stream ends, errors, or the caller
    cancels.
    """
    frames = 0
    while not is_cancelled():
        try:
            frame = stream.read_frame()
        except cv2.error as exc:
            LOG.error(f"Barcode scanning error: {exc}")
            raise BarcodeDecodeFailure() from exc
        if frame is None:
            LOG.warning(f"Video stream ended after {frames} frame(s) without a barcode")
            raise BarcodeDecodeFailure()
        frames += 1
        code = decoder(frame)
        if code:
            LOG.info(f"Barcode {code!r} read after {frames} frame(s)")
            return code
    LOG.info("Barcode scan cancelled")
    raise BarcodeDecodeFailure("Barcode scan cancelled")
