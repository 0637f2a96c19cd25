import hashlib
import hmac
import time
from decimal import Decimal
from typing import Mapping
from urllib.parse import urlencode


def map_to_url_query(params: Mapping[str, str]) -> str:
    """Canonical query string: keys sorted, values URL-encoded."""
    return urlencode(sorted((k, str(v)) for k, v in params.items()))


def compute_hmac256(message: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def compute_hmac384(secret: str, message: str) -> str:
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha384).hexdigest()


def compute_md5(message: str) -> str:
    return hashlib.md5(message.encode("utf-8")).hexdigest()


def nonce_ms() -> str:
    return str(int(time.time() * 1000))


def nonce_s() -> str:
    return str(int(time.time()))


def format_float(value: float) -> str:
    """Shortest round-trip decimal, never in exponent form (1e-08 -> '0.00000001')."""
    s = format(Decimal(repr(float(value))), "f")
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return s or "0"
