"""Error taxonomy shared by the signer, transport, services and session."""

from typing import Optional


class VeracodeError(Exception):
    """Base error for everything raised by veracodetui."""


class ConfigurationError(VeracodeError):
    """Missing or malformed credentials. Fatal, raised before any request."""


class ValidationError(VeracodeError):
    """A required call parameter is missing. Never reaches the network."""


class TransportError(VeracodeError):
    """Network or timeout failure below the HTTP layer."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url


class HTTPError(VeracodeError):
    """The request completed but the server answered outside 2xx."""

    def __init__(self, status_code: int, status: str, body: bytes, url: str = ""):
        self.status_code = status_code
        self.status = status
        self.body = body
        self.url = url
        super().__init__(f"HTTP {status_code}: {self.text}")

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class DecodeError(VeracodeError):
    """Response body is not the JSON document the endpoint promises."""

    def __init__(self, message: str, body: bytes = b"", cause: Optional[Exception] = None):
        super().__init__(f"{message}: {cause}" if cause else message)
        self.body = body
        self.cause = cause
