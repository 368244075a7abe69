from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import cv2
import numpy as np
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..config import ScanConfig
from ..domain.basket import SAMPLE_ITEMS, clamp_discount, format_amount, totals_as_dict
from ..domain.errors import (
    BarcodeDecodeFailure,
    CameraNotOpen,
    InvalidManualInput,
    NoPriceFound,
    PermissionDenied,
    RecognitionFailure,
    ScanError,
    ScanInProgress,
)
from ..domain.models import CapturedFrame, Item
from ..logging import get_logger
from ..orchestrator.session import ScanOutcome, ScanSession


LOG = get_logger("frontend-api")

_STATUS_BY_ERROR = {
    PermissionDenied: 403,
    InvalidManualInput: 400,
    NoPriceFound: 422,
    RecognitionFailure: 502,
    BarcodeDecodeFailure: 422,
    ScanInProgress: 409,
    CameraNotOpen: 409,
}


def _item_json(item: Item, index: Optional[int] = None) -> Dict[str, Any]:
    data: Dict[str, Any] = {"id": item.id, "name": item.name, "price": format_amount(item.price)}
    if index is not None:
        data["index"] = index
    return data


def _error_response(exc: ScanError) -> JSONResponse:
    status = _STATUS_BY_ERROR.get(type(exc), 400)
    return JSONResponse(
        {"error": exc.kind, "detail": exc.detail, "manual_entry": exc.manual_entry},
        status_code=status,
    )


def _outcome_response(outcome: ScanOutcome) -> JSONResponse:
    if outcome.stale:
        return JSONResponse(
            {"error": "stale", "detail": "Result discarded because the camera view was closed.", "manual_entry": False},
            status_code=409,
        )
    if outcome.error is not None:
        return _error_response(outcome.error)
    payload: Dict[str, Any] = {"item": _item_json(outcome.item) if outcome.item else None}
    if outcome.recognized is not None:
        payload["recognized_text"] = outcome.recognized.text
        payload["confidence"] = outcome.recognized.confidence
    return JSONResponse(payload, status_code=201 if outcome.item else 200)


def _decode_image(body: bytes) -> CapturedFrame:
    if not body:
        raise HTTPException(status_code=400, detail="Request body must contain an image")
    buf = np.frombuffer(body, dtype=np.uint8)
    pixels = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    if pixels is None:
        raise HTTPException(status_code=400, detail="Could not decode image")
    return CapturedFrame(pixels=pixels)


def create_app(
    config: Optional[ScanConfig] = None,
    *,
    session: Optional[ScanSession] = None,
    allow_origins: Optional[List[str]] = None,
) -> Starlette:
    """Create a Starlette app exposing the basket and scan pipeline as JSON."""

    cfg = config or ScanConfig()
    sess = session or ScanSession(cfg)

    async def health(_: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "camera_open": sess.camera_open, "basket_size": len(sess.basket)})

    async def catalog(_: Request) -> JSONResponse:
        return JSONResponse({"items": [_item_json(it) for it in SAMPLE_ITEMS]})

    async def basket(request: Request) -> JSONResponse:
        discount = clamp_discount(request.query_params.get("discount", "0"))
        totals = sess.totals(discount)
        return JSONResponse(
            {
                "items": [_item_json(it, idx) for idx, it in enumerate(sess.basket)],
                "discount": str(discount),
                "tax_rate": str(sess.config.tax_rate),
                "totals": totals_as_dict(totals),
            }
        )

    async def add_manual(request: Request) -> JSONResponse:
        try:
            body = await request.json()
        except json.JSONDecodeError as exc:
            raise HTTPException(status_code=400, detail="Body must be JSON") from exc
        raw = body.get("price") if isinstance(body, dict) else None
        outcome = sess.add_manual_price("" if raw is None else str(raw))
        return _outcome_response(outcome)

    async def add_catalog(request: Request) -> JSONResponse:
        item_id = request.path_params["item_id"]
        try:
            item = sess.add_catalog_item(item_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Catalog item not found") from exc
        return JSONResponse({"item": _item_json(item)}, status_code=201)

    async def remove(request: Request) -> JSONResponse:
        index = int(request.path_params["index"])
        try:
            item = sess.remove_item(index)
        except IndexError as exc:
            raise HTTPException(status_code=404, detail="No item at that position") from exc
        return JSONResponse({"removed": _item_json(item)})

    async def scan_image(request: Request) -> JSONResponse:
        frame = _decode_image(await request.body())
        return _outcome_response(await sess.scan_frame(frame))

    async def camera_open(_: Request) -> JSONResponse:
        outcome = await sess.open_camera()
        if outcome.error is not None:
            return _error_response(outcome.error)
        return JSONResponse({"camera_open": True})

    async def camera_capture(_: Request) -> JSONResponse:
        return _outcome_response(await sess.capture_price())

    async def camera_close(_: Request) -> JSONResponse:
        sess.close_camera()
        return JSONResponse({"camera_open": False})

    async def barcode_scan(_: Request) -> JSONResponse:
        return _outcome_response(await sess.scan_barcode())

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/catalog", catalog, methods=["GET"]),
        Route("/api/basket", basket, methods=["GET"]),
        Route("/api/basket/manual", add_manual, methods=["POST"]),
        Route("/api/basket/catalog/{item_id:str}", add_catalog, methods=["POST"]),
        Route("/api/basket/scan-image", scan_image, methods=["POST"]),
        Route("/api/basket/{index:int}", remove, methods=["DELETE"]),
        Route("/api/camera/open", camera_open, methods=["POST"]),
        Route("/api/camera/capture", camera_capture, methods=["POST"]),
        Route("/api/camera/close", camera_close, methods=["POST"]),
        Route("/api/barcode/scan", barcode_scan, methods=["POST"]),
    ]

    app = Starlette(debug=False, routes=routes)
    app.state.session = sess

    origins = allow_origins or ["http://localhost:5173", "http://127.0.0.1:5173"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if "*" in origins else origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    LOG.info("Scan basket API ready (tax rate %s)", cfg.tax_rate)
    return app


__all__ = ["create_app"]
