"""Async scan session: camera view, OCR price capture, barcodes, manual entry."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

import cv2

from ..config import ScanConfig
from ..domain.basket import Basket, find_catalog_item
from ..domain.errors import (
    BarcodeDecodeFailure,
    CameraNotOpen,
    NoPriceFound,
    PermissionDenied,
    RecognitionFailure,
    ScanError,
    ScanInProgress,
)
from ..domain.models import CapturedFrame, Item, PreprocessedImage, RecognizedText, Totals
from ..domain.price import extract_price, parse_manual_price
from ..logging import get_logger
from .barcode import decode_from_stream
from .camera import FACING_ENVIRONMENT, CameraStream, open_camera
from .preprocess import binarize_frame
from .recognize import TesseractRecognizer, TextRecognizer

LOG = get_logger("orchestrator-session")

SCANNED_ITEM_NAME = "Scanned Item"
MANUAL_ITEM_NAME = "Manual Item"

CameraFactory = Callable[..., CameraStream]
RecognizerFactory = Callable[[ScanConfig], TextRecognizer]
BarcodeDecoder = Callable[..., str]


@dataclass
class ScanOutcome:
    """Result of one user action. ``stale`` marks a result that arrived after
    the camera view it belonged to was closed; it never touches the basket."""

    item: Optional[Item] = None
    error: Optional[ScanError] = None
    stale: bool = False
    recognized: Optional[RecognizedText] = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.stale

    @property
    def manual_entry(self) -> bool:
        return bool(self.error is not None and self.error.manual_entry)


class ScanSession:
    """Owns the basket and the (single) camera view of one shopper session.

    Blocking camera, OCR and zbar work runs in worker threads. Every time the
    camera view opens or closes the generation counter moves on, so results
    from an older view are recognised and dropped.
    """

    def __init__(
        self,
        config: Optional[ScanConfig] = None,
        *,
        basket: Optional[Basket] = None,
        camera_factory: CameraFactory = open_camera,
        recognizer_factory: RecognizerFactory = TesseractRecognizer,
        barcode_decoder: BarcodeDecoder = decode_from_stream,
    ) -> None:
        self.config = config or ScanConfig()
        self.basket = basket if basket is not None else Basket()
        self._camera_factory = camera_factory
        self._recognizer_factory = recognizer_factory
        self._barcode_decoder = barcode_decoder
        self._camera: Optional[CameraStream] = None
        self._generation = 0
        self.is_scanning = False
        self.is_decoding = False

    # ------------------------------------------------------------------
    # Camera view
    # ------------------------------------------------------------------
    @property
    def camera_open(self) -> bool:
        return self._camera is not None

    @property
    def generation(self) -> int:
        return self._generation

    async def open_camera(self, *, width: Optional[int] = None, height: Optional[int] = None) -> ScanOutcome:
        if self._camera is not None:
            return ScanOutcome()
        try:
            stream = await asyncio.to_thread(
                self._camera_factory,
                self.config,
                facing=FACING_ENVIRONMENT,
                width=width or self.config.frame_width,
                height=height or self.config.frame_height,
            )
        except PermissionDenied as exc:
            LOG.error(f"Camera access denied: {exc}")
            return ScanOutcome(error=exc)
        self._generation += 1
        self._camera = stream
        LOG.info(f"Camera view opened (generation {self._generation})")
        return ScanOutcome()

    def close_camera(self) -> None:
        """Release the stream now; in-flight results become stale."""
        self._generation += 1
        stream, self._camera = self._camera, None
        if stream is not None:
            stream.release()
            LOG.info(f"Camera view closed (generation {self._generation})")

    # ------------------------------------------------------------------
    # Price capture
    # ------------------------------------------------------------------
    def _recognize(self, image: PreprocessedImage) -> RecognizedText:
        try:
            with self._recognizer_factory(self.config) as recognizer:
                return recognizer.recognize(image)
        except RecognitionFailure:
            raise
        except Exception as exc:
            LOG.error(f"OCR Error: {exc}")
            raise RecognitionFailure() from exc

    async def _price_from_frame(self, frame: CapturedFrame) -> RecognizedText:
        image = binarize_frame(frame)
        return await asyncio.to_thread(self._recognize, image)

    def _accept_price(self, recognized: RecognizedText) -> ScanOutcome:
        price = extract_price(recognized.text)
        if price is None:
            LOG.warning(f"No price in recognized text {recognized.text!r}")
            return ScanOutcome(error=NoPriceFound(), recognized=recognized)
        item = self.basket.add(Item(name=SCANNED_ITEM_NAME, price=price))
        return ScanOutcome(item=item, recognized=recognized)

    async def capture_price(self) -> ScanOutcome:
        """Grab a frame from the open camera view and add its price.

        On success the camera view is closed. NoPriceFound and
        RecognitionFailure leave it open for another attempt.
        """
        # One reader per VideoCapture: a barcode scan holds the same stream.
        if self.is_scanning or self.is_decoding:
            return ScanOutcome(error=ScanInProgress())
        stream = self._camera
        if stream is None:
            return ScanOutcome(error=CameraNotOpen())

        generation = self._generation
        self.is_scanning = True
        try:
            try:
                frame = await asyncio.to_thread(stream.read_frame)
            except cv2.error as exc:
                LOG.error(f"Camera read error: {exc}")
                raise RecognitionFailure("Camera returned no frame") from exc
            if frame is None:
                raise RecognitionFailure("Camera returned no frame")
            recognized = await self._price_from_frame(frame)
        except RecognitionFailure as exc:
            if generation != self._generation:
                return ScanOutcome(stale=True)
            return ScanOutcome(error=exc)
        finally:
            self.is_scanning = False

        if generation != self._generation:
            LOG.info("Discarding recognition result from a closed camera view")
            return ScanOutcome(stale=True, recognized=recognized)

        outcome = self._accept_price(recognized)
        if outcome.ok:
            self.close_camera()
        return outcome

    async def scan_frame(self, frame: CapturedFrame) -> ScanOutcome:
        """Run the price pipeline on a frame that did not come from the camera view."""
        if self.is_scanning:
            return ScanOutcome(error=ScanInProgress())
        self.is_scanning = True
        try:
            recognized = await self._price_from_frame(frame)
        except RecognitionFailure as exc:
            return ScanOutcome(error=exc)
        finally:
            self.is_scanning = False
        return self._accept_price(recognized)

    # ------------------------------------------------------------------
    # Barcodes
    # ------------------------------------------------------------------
    async def scan_barcode(self) -> ScanOutcome:
        """Decode a barcode from the camera view and add a placeholder-priced item.

        The camera view is opened if needed and always closed afterwards.
        """
        if self.is_decoding or self.is_scanning:
            return ScanOutcome(error=ScanInProgress())
        self.is_decoding = True
        stream: Optional[CameraStream] = None
        try:
            if self._camera is None:
                opened = await self.open_camera()
                if opened.error is not None:
                    return opened
            stream = self._camera
            generation = self._generation

            def _cancelled() -> bool:
                return generation != self._generation

            try:
                code = await asyncio.to_thread(self._barcode_decoder, stream, is_cancelled=_cancelled)
            except BarcodeDecodeFailure as exc:
                if _cancelled():
                    return ScanOutcome(stale=True)
                return ScanOutcome(error=exc)

            if _cancelled():
                LOG.info(f"Discarding barcode {code!r} from a closed camera view")
                return ScanOutcome(stale=True)
            # Price lookup by code is not implemented; every code gets the placeholder.
            item = self.basket.add(Item(name=f"Item ({code})", price=self.config.barcode_placeholder_price))
            return ScanOutcome(item=item)
        finally:
            self.is_decoding = False
            if stream is not None and self._camera is stream:
                self.close_camera()

    # ------------------------------------------------------------------
    # Manual entry and catalog
    # ------------------------------------------------------------------
    def add_manual_price(self, text: str) -> ScanOutcome:
        try:
            price = parse_manual_price(text)
        except ScanError as exc:
            LOG.info(f"Rejected manual price {text!r}")
            return ScanOutcome(error=exc)
        return ScanOutcome(item=self.basket.add(Item(name=MANUAL_ITEM_NAME, price=price)))

    def add_catalog_item(self, item_id: str) -> Item:
        """Add a copy of a catalog entry; raises KeyError for unknown ids."""
        entry = find_catalog_item(item_id)
        if entry is None:
            raise KeyError(item_id)
        return self.basket.add(Item(name=entry.name, price=entry.price))

    def remove_item(self, index: int) -> Item:
        return self.basket.remove(index)

    def totals(self, discount_percent: Decimal) -> Totals:
        return self.basket.totals(discount_percent, self.config.tax_rate)
