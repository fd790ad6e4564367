"""Signed HTTP transport for the Veracode REST APIs."""

from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from urllib.parse import urlencode

import httpx

from veracodetui.core.config import Credentials
from veracodetui.core.errors import HTTPError, TransportError
from veracodetui.core.signer import sign

APPSEC_API_URL = "https://api.veracode.com"
HEALTHCHECK_PATH = "/healthcheck/status"
REQUEST_TIMEOUT = 30.0

ParamValue = Union[str, int, bool, Iterable[str]]
Params = Union[Dict[str, ParamValue], List[Tuple[str, str]], None]


def encode_query(params: Params) -> str:
    """Encode query parameters with sorted keys and repeated list values."""
    if not params:
        return ""
    if isinstance(params, dict):
        pairs: List[Tuple[str, str]] = []
        for key in sorted(params):
            value = params[key]
            if isinstance(value, (list, tuple)):
                pairs.extend((key, str(v)) for v in value)
            else:
                pairs.append((key, str(value)))
    else:
        pairs = sorted(params, key=lambda kv: kv[0])
    return urlencode(pairs)


class Transport:
    """Executes one signed request at a time and normalises the outcome.

    Every request gets a fresh Authorization header computed over the
    final URL, query string included.
    """

    def __init__(self, credentials: Credentials, base_url: str = APPSEC_API_URL,
                 timeout: float = REQUEST_TIMEOUT, client: Optional[httpx.Client] = None,
                 logger=None):
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self.logger = logger
        self.client = client or httpx.Client(timeout=timeout)

    def build_url(self, path: str, params: Params = None) -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        url = f"{self.base_url}{path}"
        query = encode_query(params)
        if query:
            url = f"{url}?{query}"
        return url

    def request(self, method: str, path: str, params: Params = None,
                body: Optional[bytes] = None) -> bytes:
        url = self.build_url(path, params)
        return self._send(method, url, body)

    def health_check(self) -> None:
        """Raises unless the authentication service answers 2xx."""
        self.request("GET", HEALTHCHECK_PATH)

    def close(self):
        self.client.close()

    # ── internals ──────────────────────────────────────────────

    def _headers(self, method: str, url: str, has_body: bool) -> Dict[str, str]:
        headers = {
            "Authorization": sign(self.credentials.key_id, self.credentials.key_secret,
                                  method, url),
            "Accept": "application/json",
        }
        if has_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _send(self, method: str, url: str, body: Optional[bytes]) -> bytes:
        headers = self._headers(method, url, body is not None)
        if self.logger:
            self.logger.request(method, url, _redacted(headers), body)

        try:
            resp = self.client.request(method, url, headers=headers, content=body)
        except httpx.TimeoutException as exc:
            raise TransportError(f"request timed out: {exc}", url=url) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"request failed: {exc}", url=url) from exc

        content = resp.content
        if self.logger:
            self.logger.response(resp.status_code, dict(resp.headers), content)

        if not 200 <= resp.status_code < 300:
            status = f"{resp.status_code} {resp.reason_phrase}".strip()
            raise HTTPError(resp.status_code, status, content, url=url)
        return content


def _redacted(headers: Dict[str, Any]) -> Dict[str, Any]:
    shown = dict(headers)
    if "Authorization" in shown:
        scheme, _, rest = shown["Authorization"].partition(" ")
        key_part = rest.split(",", 1)[0]
        shown["Authorization"] = f"{scheme} {key_part},..."
    return shown
