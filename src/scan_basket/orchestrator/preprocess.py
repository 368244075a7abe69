"""Global binarization of camera frames ahead of OCR."""

from __future__ import annotations

import numpy as np

from ..domain.models import CapturedFrame, PreprocessedImage
from ..logging import get_logger

LOG = get_logger("orchestrator-preprocess")

CHANNEL_MIN = 0
CHANNEL_MAX = 255
# Midpoint of the 8-bit channel range; a pixel must be strictly brighter.
THRESHOLD = 128


def binarize_pixels(pixels: np.ndarray) -> np.ndarray:
    """Return a two-level copy of ``pixels`` (H×W or H×W×C uint8).

    The unweighted mean of the colour channels decides each pixel. A fourth
    (alpha) channel is averaged out and copied through untouched.
    """
    if pixels.ndim == 2:
        colour = pixels[:, :, np.newaxis]
    elif pixels.ndim == 3:
        colour = pixels[:, :, :3]
    else:
        raise ValueError(f"Expected a 2-D or 3-D pixel array, got shape {pixels.shape}")

    avg = colour.astype(np.float32).mean(axis=2)
    level = np.where(avg > THRESHOLD, CHANNEL_MAX, CHANNEL_MIN).astype(pixels.dtype)

    out = pixels.copy()
    if pixels.ndim == 2:
        out[:, :] = level
    else:
        out[:, :, : colour.shape[2]] = level[:, :, np.newaxis]
    return out


def binarize_frame(frame: CapturedFrame) -> PreprocessedImage:
    """Binarize a captured frame; the frame itself is left unmodified."""
    pixels = binarize_pixels(frame.pixels)
    LOG.debug(f"Binarized {frame.width}x{frame.height} frame")
    return PreprocessedImage(pixels=pixels)
