"""VERACODE-HMAC-SHA-256 request signing.

The header proves possession of the API secret without sending it:

    VERACODE-HMAC-SHA-256 id=<key id>,ts=<ms>,nonce=<HEX>,sig=<HEX>

The signing key is derived through four chained HMAC-SHA256 rounds, each
round's digest keying the next one:

    r1  = HMAC(key=secret, msg=nonce)
    r2  = HMAC(key=r1,     msg=timestamp)
    r3  = HMAC(key=r2,     msg="vcode_request_version_1")
    sig = HMAC(key=r3,     msg="id=..&host=..&url=..&method=..")
"""

import binascii
import hashlib
import hmac
import os
import time
from typing import Optional, Tuple
from urllib.parse import urlsplit

from veracodetui.core.errors import ConfigurationError

AUTH_SCHEME = "VERACODE-HMAC-SHA-256"
REQUEST_VERSION = b"vcode_request_version_1"
NONCE_SIZE = 16


def _hmac256(message: bytes, key: bytes) -> bytes:
    return hmac.new(key, message, hashlib.sha256).digest()


def decode_secret(key_secret_hex: str) -> bytes:
    """Strict hex decoding: no whitespace, even length, non-empty."""
    if not key_secret_hex:
        raise ConfigurationError("API key secret is empty")
    try:
        return binascii.unhexlify(key_secret_hex)
    except (binascii.Error, ValueError) as exc:
        raise ConfigurationError(f"API key secret is not valid hex: {exc}") from exc


def request_target(url: str) -> Tuple[str, str]:
    """Split a full URL into (host, request URI) as the server canonicalises them."""
    parts = urlsplit(url)
    host = parts.hostname or ""
    uri = parts.path or "/"
    if parts.query:
        uri = f"{uri}?{parts.query}"
    return host, uri


def signing_data(key_id: str, host: str, request_uri: str, method: str) -> str:
    return f"id={key_id}&host={host}&url={request_uri}&method={method}"


def calculate_signature(key: bytes, nonce: bytes, timestamp: bytes, data: bytes) -> bytes:
    encrypted_nonce = _hmac256(nonce, key)
    encrypted_timestamp = _hmac256(timestamp, encrypted_nonce)
    signing_key = _hmac256(REQUEST_VERSION, encrypted_timestamp)
    return _hmac256(data, signing_key)


def sign(
    key_id: str,
    key_secret_hex: str,
    method: str,
    url: str,
    *,
    nonce: Optional[bytes] = None,
    timestamp_ms: Optional[int] = None,
) -> str:
    """Build the Authorization header value for one request.

    ``nonce`` and ``timestamp_ms`` are generated when omitted; tests pass
    them explicitly to get a reproducible signature.
    """
    host, request_uri = request_target(url)
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    ts = str(timestamp_ms)
    if nonce is None:
        nonce = os.urandom(NONCE_SIZE)
    key = decode_secret(key_secret_hex)

    data = signing_data(key_id, host, request_uri, method)
    signature = calculate_signature(key, nonce, ts.encode("ascii"), data.encode("utf-8"))

    return (f"{AUTH_SCHEME} id={key_id},ts={ts},"
            f"nonce={nonce.hex().upper()},sig={signature.hex().upper()}")
