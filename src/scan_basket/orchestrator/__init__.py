"""Pipeline stages and the session that wires them together."""

from .preprocess import binarize_frame, binarize_pixels
from .camera import CameraStream, open_camera
from .recognize import TesseractRecognizer, TextRecognizer
from .barcode import decode_from_stream
from .session import ScanOutcome, ScanSession

__all__ = [
    "binarize_frame",
    "binarize_pixels",
    "CameraStream",
    "open_camera",
    "TesseractRecognizer",
    "TextRecognizer",
    "decode_from_stream",
    "ScanOutcome",
    "ScanSession",
]
