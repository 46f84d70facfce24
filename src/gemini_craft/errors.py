"""Error taxonomy for gemini-craft.

Every failure surfaced by the library is a ``GeminiCraftError`` tagged with an
``ErrorKind``.  Callers branch on ``err.kind`` rather than on subclasses.
"""

from __future__ import annotations

import enum


class ErrorKind(enum.Enum):
    """Discriminant for ``GeminiCraftError``."""

    # HTTP status derived
    AUTHENTICATION = "authentication"  # 401
    AUTHORIZATION = "authorization"  # 403
    NOT_FOUND = "not_found"  # 404
    RATE_LIMIT = "rate_limit"  # 429
    CLIENT = "client"  # 400
    SERVER = "server"  # 5xx
    API = "api"  # any other status

    # Transport
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    STREAMING = "streaming"

    # Local
    RESPONSE = "response"
    CONFIGURATION = "configuration"


_STATUS_KINDS = frozenset({
    ErrorKind.AUTHENTICATION,
    ErrorKind.AUTHORIZATION,
    ErrorKind.NOT_FOUND,
    ErrorKind.RATE_LIMIT,
    ErrorKind.CLIENT,
    ErrorKind.SERVER,
    ErrorKind.API,
})


class GeminiCraftError(Exception):
    """Raised for every gemini-craft failure.

    Parameters
    ----------
    kind:
        Which branch of the taxonomy this error belongs to.
    message:
        Human-readable description.
    status:
        Originating HTTP status for API errors, else ``None``.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status

    @property
    def is_api_error(self) -> bool:
        return self.kind in _STATUS_KINDS

    @property
    def retryable(self) -> bool:
        """Transport failures that a unary request may retry."""
        return self.kind in (ErrorKind.TIMEOUT, ErrorKind.CONNECTION)

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.kind.value} ({self.status}): {self.message}"
        return f"{self.kind.value}: {self.message}"

    def __repr__(self) -> str:
        return (
            f"GeminiCraftError(kind={self.kind!r}, message={self.message!r}, "
            f"status={self.status!r})"
        )
