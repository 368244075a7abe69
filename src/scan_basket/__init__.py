"""
Scan Basket – price-tag scanning and billing helpers.

The package turns camera frames into prices (binarize, OCR, extract), keeps
an in-session basket and computes bills with discount and tax.
"""

__all__ = [
    "config",
    "logging",
]
