"""Shared plumbing for the resource clients."""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from veracodetui.core.errors import DecodeError, ValidationError
from veracodetui.core.models import ResultPage

MAX_PAGE_SIZE = 500

T = TypeVar("T")


class BaseService:
    """Every resource client talks to a transport exposing
    ``request(method, path, params=None, body=None) -> bytes``.
    """

    name: str = "Unnamed Service"

    def __init__(self, transport):
        self.transport = transport

    # ── shared helpers ──────────────────────────────────────────

    @staticmethod
    def require(**values: Any) -> None:
        """Fail fast, before any network call, when an identifier is empty."""
        for key, value in values.items():
            if value in (None, "", 0):
                raise ValidationError(f"{key} is required")

    @staticmethod
    def check_page(page: int, size: int) -> None:
        if page < 0:
            raise ValidationError(f"page must be non-negative, got {page}")
        if size < 0 or size > MAX_PAGE_SIZE:
            raise ValidationError(f"size must be between 1 and {MAX_PAGE_SIZE}, got {size}")

    def get(self, path: str, params: Optional[List[Tuple[str, str]]] = None) -> bytes:
        return self.transport.request("GET", path, params or None)

    def post_json(self, path: str, payload: Dict[str, Any],
                  params: Optional[List[Tuple[str, str]]] = None) -> bytes:
        body = json.dumps(payload).encode("utf-8")
        return self.transport.request("POST", path, params or None, body)

    def decode(self, body: bytes, what: str) -> Dict[str, Any]:
        """Decode a JSON object body; anything else is a contract violation."""
        try:
            data = json.loads(body)
        except (ValueError, UnicodeDecodeError) as exc:
            raise DecodeError(f"failed to parse {what} response", body, exc) from exc
        if not isinstance(data, dict):
            raise DecodeError(f"failed to parse {what} response: expected a JSON object", body)
        return data

    def parse(self, body: bytes, what: str, build: Callable[[Dict[str, Any]], T]) -> T:
        """Decode ``body`` and build a model from it.

        A JSON value of the wrong type anywhere in the payload is reported
        as a DecodeError carrying the raw body, the same as invalid JSON.
        """
        data = self.decode(body, what)
        try:
            return build(data)
        except (TypeError, ValueError, AttributeError) as exc:
            raise DecodeError(f"failed to parse {what} response", body, exc) from exc

    def parse_page(self, body: bytes, what: str, item_cls: type) -> ResultPage:
        """One HAL page whose items sit under ``_embedded.<what>``."""
        return self.parse(body, what, lambda data: ResultPage.from_hal(data, what, item_cls))
