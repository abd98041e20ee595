"""
Single-page web scanner: fetches a URL, records whether it was reachable
and extracts the hyperlinks from the returned markup.
"""
from urlscanner.core import Scanner, TargetReference, create_scanner, extract_hyperlinks, validate_target
from urlscanner.errors import (
    EmptyInputError,
    InvalidConfigurationError,
    MalformedUriError,
    ScanError,
    UnsupportedSchemeError,
    ValidationError,
)
from urlscanner.fetcher import (
    FetchResult,
    HttpClient,
    TransportOutcome,
    get_client,
    get_timeout_seconds,
    init_client,
    set_timeout_seconds,
)

__version__ = "1.0.0"
__all__ = [
    "Scanner",
    "TargetReference",
    "create_scanner",
    "extract_hyperlinks",
    "validate_target",
    "FetchResult",
    "HttpClient",
    "TransportOutcome",
    "get_client",
    "get_timeout_seconds",
    "init_client",
    "set_timeout_seconds",
    "ScanError",
    "ValidationError",
    "EmptyInputError",
    "MalformedUriError",
    "UnsupportedSchemeError",
    "InvalidConfigurationError",
]
