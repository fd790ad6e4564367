"""Tests for VERACODE-HMAC-SHA-256 request signing."""

import hashlib
import hmac
import re

import pytest

from veracodetui.core.errors import ConfigurationError
from veracodetui.core.signer import (
    AUTH_SCHEME, decode_secret, request_target, sign, signing_data,
)

SECRET = "0123456789abcdef0123456789abcdef"
NONCE = bytes(range(16))
TS = 1700000000000

HEADER_RE = re.compile(
    r"^VERACODE-HMAC-SHA-256 id=(?P<id>[^,]+),ts=(?P<ts>\d+),"
    r"nonce=(?P<nonce>[0-9A-F]+),sig=(?P<sig>[0-9A-F]{64})$"
)


def _reference_signature(key_id, secret_hex, method, host, uri, nonce, ts):
    """Independent recomputation of the four-round HMAC chain."""
    def mac(key, msg):
        return hmac.new(key, msg, hashlib.sha256).digest()

    r1 = mac(bytes.fromhex(secret_hex), nonce)
    r2 = mac(r1, str(ts).encode())
    r3 = mac(r2, b"vcode_request_version_1")
    data = f"id={key_id}&host={host}&url={uri}&method={method}".encode()
    return mac(r3, data).hex().upper()


def test_header_grammar():
    header = sign("my-id", SECRET, "GET", "https://api.veracode.com/appsec/v1/applications")
    m = HEADER_RE.match(header)
    assert m, header
    assert m.group("id") == "my-id"
    assert len(m.group("nonce")) == 32
    assert header.startswith(AUTH_SCHEME + " ")


def test_deterministic_with_fixed_nonce_and_timestamp():
    url = "https://api.veracode.com/appsec/v1/applications?page=1&size=100"
    a = sign("my-id", SECRET, "GET", url, nonce=NONCE, timestamp_ms=TS)
    b = sign("my-id", SECRET, "GET", url, nonce=NONCE, timestamp_ms=TS)
    assert a == b


def test_signature_matches_reference_chain():
    url = "https://api.veracode.com/appsec/v2/applications/abc/findings?scan_type=STATIC"
    header = sign("my-id", SECRET, "GET", url, nonce=NONCE, timestamp_ms=TS)
    expected = _reference_signature("my-id", SECRET, "GET", "api.veracode.com",
                                    "/appsec/v2/applications/abc/findings?scan_type=STATIC",
                                    NONCE, TS)
    m = HEADER_RE.match(header)
    assert m.group("sig") == expected
    assert m.group("ts") == str(TS)
    assert m.group("nonce") == NONCE.hex().upper()


def test_known_signature_vector():
    url = "https://api.veracode.com/appsec/v2/applications/abc/findings?scan_type=STATIC"
    header = sign("my-id", SECRET, "GET", url, nonce=NONCE, timestamp_ms=TS)
    assert header == (
        "VERACODE-HMAC-SHA-256 id=my-id,ts=1700000000000,"
        "nonce=000102030405060708090A0B0C0D0E0F,"
        "sig=0548E843C8B45EFC9BB18CAF5B6D41AA92DD53EFF3FD18297DCF07826C81CF12"
    )


def test_query_string_is_signed():
    base = "https://api.veracode.com/appsec/v1/applications"
    plain = sign("id", SECRET, "GET", base, nonce=NONCE, timestamp_ms=TS)
    with_query = sign("id", SECRET, "GET", base + "?page=2", nonce=NONCE, timestamp_ms=TS)
    assert plain != with_query


def test_method_is_signed():
    url = "https://api.veracode.com/appsec/v2/applications/abc/annotations"
    get = sign("id", SECRET, "GET", url, nonce=NONCE, timestamp_ms=TS)
    post = sign("id", SECRET, "POST", url, nonce=NONCE, timestamp_ms=TS)
    assert get != post


def test_fresh_nonce_per_call():
    url = "https://api.veracode.com/"
    first = HEADER_RE.match(sign("id", SECRET, "GET", url)).group("nonce")
    second = HEADER_RE.match(sign("id", SECRET, "GET", url)).group("nonce")
    assert first != second


@pytest.mark.parametrize("secret", ["not-hex", "abc", ""])
def test_bad_secret_is_configuration_error(secret):
    with pytest.raises(ConfigurationError):
        sign("id", secret, "GET", "https://api.veracode.com/")


def test_decode_secret():
    assert decode_secret("00ff") == b"\x00\xff"


def test_request_target():
    assert request_target("https://api.veracode.com") == ("api.veracode.com", "/")
    assert request_target("https://api.veracode.com/a/b?x=1&y=2") == \
        ("api.veracode.com", "/a/b?x=1&y=2")


def test_signing_data_layout():
    assert signing_data("k", "h", "/u?q=1", "GET") == "id=k&host=h&url=/u?q=1&method=GET"
