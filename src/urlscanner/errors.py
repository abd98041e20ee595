"""
Exceptions raised by the scanner.

Only input and configuration mistakes are raised. HTTP error statuses and
transport failures are captured on the scan result instead.
"""
from __future__ import annotations


class ScanError(Exception):
    """Base class for all url-scanner errors."""


class ValidationError(ScanError, ValueError):
    """The value given as a scan target is not usable."""

    def __init__(self, message: str, value: object = None) -> None:
        super().__init__(message)
        self.value = value


class EmptyInputError(ValidationError):
    """Target is None, empty or only whitespace."""


class MalformedUriError(ValidationError):
    """Target cannot be parsed as an absolute URI."""


class UnsupportedSchemeError(ValidationError):
    """Target parsed fine but its scheme is not http or https."""

    def __init__(self, message: str, value: object = None, scheme: str = "") -> None:
        super().__init__(message, value)
        self.scheme = scheme


class InvalidConfigurationError(ScanError, ValueError):
    """A client setting was rejected; the previous setting is kept."""
