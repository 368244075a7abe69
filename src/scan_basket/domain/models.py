from __future__ import annotations

import re
import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

import numpy as np


@dataclass(frozen=True)
class CapturedFrame:
    """Single frame grabbed from a video source (BGR or grayscale uint8)."""

    pixels: np.ndarray
    captured_at: float = field(default_factory=time.time)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass(frozen=True)
class PreprocessedImage:
    """Binarized frame; every colour sample is 0 or 255."""

    pixels: np.ndarray

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass(frozen=True)
class RecognizedText:
    text: str
    confidence: Optional[float] = None  # mean word confidence 0-100


@dataclass(frozen=True)
class CurrencyPattern:
    currency: str
    pattern: re.Pattern[str]

    @classmethod
    def for_symbol(cls, currency: str, symbol: str = "") -> "CurrencyPattern":
        prefix = re.escape(symbol) + r"\s*" if symbol else ""
        # ASCII digits only
        return cls(currency, re.compile(prefix + r"([0-9]+(?:\.[0-9]{2})?)"))


def new_item_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Item:
    name: str
    price: Decimal
    id: str = field(default_factory=new_item_id)


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal
