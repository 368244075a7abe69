from __future__ import annotations


class ScanError(Exception):
    """Recoverable failure on the way from camera/keyboard to the basket.

    ``kind`` is a stable identifier for API clients, ``message`` is what the
    shopper sees, ``manual_entry`` tells the caller to offer the typed-price
    fallback.
    """

    kind = "scan_error"
    message = "Something went wrong. Please try again."
    manual_entry = False

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.message)
        self.detail = detail or self.message


class PermissionDenied(ScanError):
    kind = "permission_denied"
    message = "Camera access is required for item scanning."
    manual_entry = True


class RecognitionFailure(ScanError):
    kind = "recognition_failure"
    message = "Error processing the image. Please try again or enter manually."
    manual_entry = True


class NoPriceFound(ScanError):
    kind = "no_price_found"
    message = "Could not detect a valid price. Please try again or enter manually."
    manual_entry = True


class InvalidManualInput(ScanError):
    kind = "invalid_manual_input"
    message = "Please enter a valid price"
    manual_entry = True


class BarcodeDecodeFailure(ScanError):
    kind = "barcode_failure"
    message = "Failed to scan barcode. Please try again."


class ScanInProgress(ScanError):
    kind = "scan_in_progress"
    message = "A scan is already running. Please wait for it to finish."


class CameraNotOpen(ScanError):
    kind = "camera_not_open"
    message = "Open the camera before capturing a price."
