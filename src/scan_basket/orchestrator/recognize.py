"""Text recognition adapter backed by Tesseract (pytesseract)."""

from __future__ import annotations

from typing import Dict, List, Optional, Protocol, Tuple

import pytesseract
from pytesseract import Output

from ..config import ScanConfig
from ..domain.errors import RecognitionFailure
from ..domain.models import PreprocessedImage, RecognizedText
from ..domain.price import OCR_CHAR_WHITELIST
from ..logging import get_logger

LOG = get_logger("orchestrator-recognize")

# 6 = assume a single uniform block of text
PAGE_SEGMENTATION_MODE = 6


class TextRecognizer(Protocol):
    def recognize(self, image: PreprocessedImage) -> RecognizedText: ...

    def close(self) -> None: ...

    def __enter__(self) -> "TextRecognizer": ...

    def __exit__(self, *exc_info) -> None: ...


def build_tesseract_config(whitelist: str = OCR_CHAR_WHITELIST, psm: int = PAGE_SEGMENTATION_MODE) -> str:
    return f"--psm {psm} -c tessedit_char_whitelist={whitelist}"


def _join_words(data: Dict[str, List]) -> Tuple[str, Optional[float]]:
    """Rebuild line-ordered text and mean confidence from image_to_data output."""
    lines: Dict[Tuple[int, int, int], List[str]] = {}
    confs: List[float] = []
    for i, word in enumerate(data.get("text", [])):
        word = (word or "").strip()
        if not word:
            continue
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        lines.setdefault(key, []).append(word)
        try:
            conf = float(data["conf"][i])
        except (TypeError, ValueError):
            continue
        if conf >= 0:
            confs.append(conf)
    text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
    confidence = sum(confs) / len(confs) if confs else None
    return text, confidence


class TesseractRecognizer:
    """One recognition session; closing it makes further calls fail fast."""

    def __init__(self, config: Optional[ScanConfig] = None) -> None:
        cfg = config or ScanConfig()
        if cfg.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = cfg.tesseract_cmd
        self.lang = cfg.ocr_lang
        self.tess_config = build_tesseract_config()
        self.closed = False

    def __enter__(self) -> "TesseractRecognizer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def recognize(self, image: PreprocessedImage) -> RecognizedText:
        if self.closed:
            raise RecognitionFailure("Recognizer already closed")
        LOG.info(f"Running OCR on {image.width}x{image.height} image")
        try:
            data = pytesseract.image_to_data(
                image.pixels, lang=self.lang, config=self.tess_config, output_type=Output.DICT
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, RuntimeError, OSError) as exc:
            LOG.error(f"OCR Error: {exc}")
            raise RecognitionFailure() from exc
        text, confidence = _join_words(data)
        LOG.debug(f"Recognized {text!r} (confidence={confidence})")
        return RecognizedText(text=text, confidence=confidence)

    def close(self) -> None:
        self.closed = True
