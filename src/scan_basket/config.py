import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

from .logging import get_logger

log = get_logger("config")


DEFAULT_TAX_RATE = Decimal("0.08")
DEFAULT_BARCODE_PRICE = Decimal("9.99")


@dataclass(frozen=True)
class ScanConfig:
    tax_rate: Decimal = DEFAULT_TAX_RATE
    camera_index: int = 0
    front_camera_index: int = 1
    frame_width: int = 1920
    frame_height: int = 1080
    tesseract_cmd: Optional[str] = None
    ocr_lang: str = "eng"
    barcode_placeholder_price: Decimal = DEFAULT_BARCODE_PRICE


def _find_upwards(start_dir: str, filename: str) -> Optional[str]:
    """Return first matching file found when walking up from start_dir.

    Running the CLI from a subdirectory (e.g. `src/`) still finds the
    repository-level `.env`.
    """
    d = os.path.abspath(start_dir or ".")
    while True:
        candidate = os.path.join(d, filename)
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(d)
        if parent == d:
            return None
        d = parent


def _read_dotenv(dotenv_dir: str) -> Dict[str, str]:
    """Minimal .env reader.

    - Reads key=value pairs, ignores comments (#/;) and blank lines.
    - Trims single/double quotes around the value.
    - Returns mapping; does not mutate environment.
    """
    env: Dict[str, str] = {}
    path = _find_upwards(dotenv_dir, ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir)}")
        return env
    try:
        with open(path, "r", encoding="utf-8") as f:
            for raw in f:
                line = raw.strip()
                if not line or line.startswith("#") or line.startswith(";"):
                    continue
                if "=" not in line:
                    continue
                k, v = line.split("=", 1)
                k = k.strip()
                v = v.strip()
                if (v.startswith('"') and v.endswith('"')) or (v.startswith("'") and v.endswith("'")):
                    v = v[1:-1]
                env[k] = v.strip()
        log.debug(f"Loaded {len(env)} key(s) from .env at {path}")
    except OSError as e:
        log.warning(f"Failed reading .env: {e}")
    return env


def _lookup(key: str, env: Dict[str, str]) -> Optional[str]:
    v = os.environ.get(key)
    if v is None:
        v = env.get(key)
    if v is None:
        return None
    v = v.strip()
    return v or None


def _int_setting(key: str, env: Dict[str, str], default: int) -> int:
    raw = _lookup(key, env)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning(f"{key}={raw!r} is not an integer; using {default}")
        return default


def _decimal_setting(key: str, env: Dict[str, str], default: Decimal) -> Decimal:
    raw = _lookup(key, env)
    if raw is None:
        return default
    try:
        value = Decimal(raw)
    except InvalidOperation:
        log.warning(f"{key}={raw!r} is not a number; using {default}")
        return default
    if not value.is_finite() or value < 0:
        log.warning(f"{key}={raw!r} must be a non-negative number; using {default}")
        return default
    return value


def load_scan_config(dotenv_dir: str) -> ScanConfig:
    """Build the scan configuration from env vars, then `.env`, then defaults."""
    env = _read_dotenv(dotenv_dir)
    cfg = ScanConfig(
        tax_rate=_decimal_setting("SCAN_BASKET_TAX_RATE", env, DEFAULT_TAX_RATE),
        camera_index=_int_setting("SCAN_BASKET_CAMERA_INDEX", env, 0),
        front_camera_index=_int_setting("SCAN_BASKET_FRONT_CAMERA_INDEX", env, 1),
        frame_width=_int_setting("SCAN_BASKET_FRAME_WIDTH", env, 1920),
        frame_height=_int_setting("SCAN_BASKET_FRAME_HEIGHT", env, 1080),
        tesseract_cmd=_lookup("TESSERACT_CMD", env),
        ocr_lang=_lookup("OCR_LANG", env) or "eng",
        barcode_placeholder_price=_decimal_setting("SCAN_BASKET_BARCODE_PRICE", env, DEFAULT_BARCODE_PRICE),
    )
    log.debug(f"Scan configuration: {cfg}")
    return cfg
