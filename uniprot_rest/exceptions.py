"""Exception hierarchy shared by the UniProt REST clients.

Three failure families are distinguished:

* :class:`InvalidInputError` - the caller supplied an unusable argument (empty
  query, empty accession list, out of range page size).  Raised before any
  network traffic happens.
* :class:`TransportError` - the HTTP request itself could not be completed
  (DNS failure, refused connection, timeout).
* :class:`UniProtError` - the API answered with an application level error.
  The HTTP status and raw body are attached so callers can tell client and
  server errors apart.
"""

from __future__ import annotations

__all__ = ["InvalidInputError", "TransportError", "UniProtError"]


class UniProtError(Exception):
    """Base exception for all errors raised by :mod:`uniprot_rest`.

    Parameters
    ----------
    message:
        Human readable description of the failure.
    http_status:
        HTTP status code of the offending response. ``0`` means the error did
        not originate from an HTTP response.
    api_response:
        Raw response body as returned by the server, kept for debugging.
    api_error_code:
        Optional machine readable error code reported by the API.
    api_error_message:
        Optional error message extracted from the API payload.
    """

    def __init__(
        self,
        message: str = "",
        *,
        http_status: int = 0,
        api_response: str | None = None,
        api_error_code: str | None = None,
        api_error_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.api_response = api_response
        self.api_error_code = api_error_code
        self.api_error_message = api_error_message

    @property
    def is_client_error(self) -> bool:
        """Return ``True`` for 4xx responses."""

        return 400 <= self.http_status < 500

    @property
    def is_server_error(self) -> bool:
        """Return ``True`` for 5xx responses."""

        return 500 <= self.http_status < 600

    @property
    def is_transport_error(self) -> bool:
        """Return ``True`` when no HTTP status is associated with the error."""

        return self.http_status == 0

    def detailed_message(self) -> str:
        """Return the message enriched with status and API details."""

        parts = [self.message]
        if self.http_status > 0:
            parts.append(f"HTTP Status: {self.http_status}")
        if self.api_error_code is not None:
            parts.append(f"Error Code: {self.api_error_code}")
        if self.api_error_message is not None:
            parts.append(f"API Message: {self.api_error_message}")
        return " | ".join(parts)


class InvalidInputError(UniProtError, ValueError):
    """Raised when arguments are rejected before contacting the API."""


class TransportError(UniProtError):
    """Raised when the HTTP request could not be performed at all."""
