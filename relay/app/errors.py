"""
Relay error types.

Every failure a handler reports to the browser is raised as a RelayError
subclass and rendered by the exception handler registered in main.py as
``{"error": ..., "details": ...}``.
"""

from typing import Any, Optional

from fastapi import status


class RelayError(Exception):
    """Base error carrying the HTTP status and JSON body for the caller."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        error: str,
        details: Optional[Any] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(error)
        self.error = error
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.details is not None:
            body["details"] = self.details
        return body


class ClientInputError(RelayError):
    """Missing or malformed request fields. Never retried."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConfigurationError(RelayError):
    """The relay itself is misconfigured (e.g. no client secret)."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class UpstreamError(RelayError):
    """
    A third-party call failed.

    The upstream status is forwarded when there is one; transport failures
    keep the default 500.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class UserLookupError(UpstreamError):
    """Every candidate user endpoint failed; message is the last failure."""
