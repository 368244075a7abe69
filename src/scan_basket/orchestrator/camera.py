"""Scoped camera access via OpenCV."""

from __future__ import annotations

from typing import Optional

import cv2

from ..config import ScanConfig
from ..domain.errors import PermissionDenied
from ..domain.models import CapturedFrame
from ..logging import get_logger

LOG = get_logger("orchestrator-camera")

FACING_ENVIRONMENT = "environment"
FACING_USER = "user"


class CameraStream:
    """Live video stream; release() is idempotent and runs on context exit."""

    def __init__(self, capture: "cv2.VideoCapture", *, device_index: int) -> None:
        self._capture = capture
        self.device_index = device_index
        self.released = False

    def __enter__(self) -> "CameraStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()

    def read_frame(self) -> Optional[CapturedFrame]:
        """Grab one frame, or None when the stream has ended."""
        if self.released:
            return None
        ok, pixels = self._capture.read()
        if not ok or pixels is None:
            LOG.debug(f"Camera {self.device_index} returned no frame")
            return None
        return CapturedFrame(pixels=pixels)

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        try:
            self._capture.release()
        except cv2.error as exc:
            LOG.warning(f"Releasing camera {self.device_index} failed: {exc}")
        LOG.info(f"Camera {self.device_index} released")


def device_for_facing(config: ScanConfig, facing: str) -> int:
    if facing == FACING_USER:
        return config.front_camera_index
    return config.camera_index


def open_camera(
    config: ScanConfig,
    *,
    facing: str = FACING_ENVIRONMENT,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> CameraStream:
    """Acquire the camera for ``facing``; resolution values are hints only.

    Raises PermissionDenied when the device cannot be opened (missing,
    busy, or access refused by the OS).
    """
    index = device_for_facing(config, facing)
    LOG.info(f"Opening camera {index} (facing={facing})")
    capture = cv2.VideoCapture(index)
    if not capture.isOpened():
        capture.release()
        LOG.error(f"Camera {index} could not be opened")
        raise PermissionDenied()
    if width:
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    if height:
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    return CameraStream(capture, device_index=index)
