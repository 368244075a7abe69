from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from decimal import Decimal, InvalidOperation
from typing import Sequence

from ..config import load_scan_config
from ..domain.basket import Basket, clamp_discount, format_amount, totals_as_dict
from ..domain.errors import ScanError
from ..domain.models import CapturedFrame, Item
from ..domain.price import extract_price, parse_manual_price
from ..logging import get_logger

LOG = get_logger("cli-main")

MANUAL_NAME = "Manual Item"


def _handle_price(ns: argparse.Namespace) -> int:
    price = extract_price(ns.text)
    if price is None:
        LOG.error("Could not detect a valid price in the given text.")
        return 1
    print(format_amount(price))
    return 0


def _handle_image(ns: argparse.Namespace) -> int:
    import cv2

    from ..orchestrator.session import ScanSession

    pixels = cv2.imread(ns.source)
    if pixels is None:
        LOG.error(f"Could not read image: {ns.source}")
        return 2
    session = ScanSession(load_scan_config(os.getcwd()))
    outcome = asyncio.run(session.scan_frame(CapturedFrame(pixels=pixels)))
    out = {
        "recognized_text": outcome.recognized.text if outcome.recognized else None,
        "confidence": outcome.recognized.confidence if outcome.recognized else None,
        "price": format_amount(outcome.item.price) if outcome.item else None,
    }
    if outcome.error is not None:
        out["error"] = outcome.error.kind
        out["detail"] = outcome.error.detail
    print(json.dumps(out, ensure_ascii=False))
    return 0 if outcome.item else 1


def _handle_bill(ns: argparse.Namespace) -> int:
    cfg = load_scan_config(os.getcwd())
    basket = Basket()
    for raw in ns.prices or []:
        try:
            basket.add(Item(name=MANUAL_NAME, price=parse_manual_price(raw)))
        except ScanError as exc:
            LOG.error(f"{exc.detail}: {raw!r}")
            return 2
    if ns.tax_rate is not None:
        try:
            tax_rate = Decimal(ns.tax_rate)
        except InvalidOperation:
            LOG.error(f"Invalid tax rate: {ns.tax_rate!r}")
            return 2
    else:
        tax_rate = cfg.tax_rate
    discount = clamp_discount(ns.discount)
    totals = basket.totals(discount, tax_rate)
    out = {
        "items": [format_amount(it.price) for it in basket],
        "discount": str(discount),
        "tax_rate": str(tax_rate),
        "totals": totals_as_dict(totals),
    }
    print(json.dumps(out, ensure_ascii=False))
    return 0


def _handle_serve(ns: argparse.Namespace) -> int:
    from ..frontend import create_app
    import uvicorn

    allow_origins = ns.allow_origins
    if allow_origins and len(allow_origins) == 1 and allow_origins[0] == "*":
        allow_origins = ["*"]

    app = create_app(load_scan_config(os.getcwd()), allow_origins=allow_origins)
    uvicorn.run(app, host=ns.host, port=ns.port, log_level=ns.log_level)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scan-basket",
        description="Scan price tags into a basket and compute the bill.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    price = subparsers.add_parser("price", help="Extract a price from OCR or typed text.")
    price.add_argument("--text", required=True)
    price.set_defaults(handler=_handle_price)

    image = subparsers.add_parser("image", help="Binarize an image file, OCR it and extract the price.")
    image.add_argument("--source", required=True, help="Path to a photo of a price tag")
    image.set_defaults(handler=_handle_image)

    bill = subparsers.add_parser("bill", help="Compute subtotal, discount, tax and total for prices.")
    bill.add_argument("--price", action="append", dest="prices", help="Item price (repeatable)")
    bill.add_argument("--discount", default="0", help="Discount percent, clamped to 0-100")
    bill.add_argument("--tax-rate", help="Tax rate as a fraction (defaults to env/.env, 0.08)")
    bill.set_defaults(handler=_handle_bill)

    serve = subparsers.add_parser("serve", help="Run the JSON API.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8002)
    serve.add_argument("--log-level", default="info")
    serve.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origins",
        help="Allowed CORS origin (can be provided multiple times, use '*' for any).",
    )
    serve.set_defaults(handler=_handle_serve)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.debug(f"CLI invoked with arguments: {provided}")
    args = build_parser().parse_args(provided)
    code = args.handler(args)
    LOG.debug(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
