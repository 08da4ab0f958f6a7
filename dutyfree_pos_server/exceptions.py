"""Errors raised by the POS core and the API client."""

from typing import Any, Optional


class PosError(Exception):
    """Base class for POS errors."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CheckoutValidationError(PosError):
    """Raised locally before anything is sent (empty cart, unknown product...)."""

    kind = "validation"


class TransportError(PosError):
    """The API could not be reached or failed on its side (network, timeout, 5xx)."""

    kind = "transport"

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RejectionError(PosError):
    """The API answered with a structured rejection (4xx)."""

    kind = "rejection"

    def __init__(
        self, message: str, status_code: int, payload: Optional[Any] = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class AuthenticationError(RejectionError):
    """The API rejected the bearer token or the credentials."""


class ConfigurationError(PosError):
    """Invalid environment configuration."""

    kind = "configuration"
