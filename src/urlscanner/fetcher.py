"""
Page fetching over a shared HTTP session.

A single ``HttpClient`` is kept per process so every scan reuses the same
connection pool and the same timeout policy. Fetching never raises on HTTP
error statuses or transport failures; both are captured on a ``FetchResult``.
"""
from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from dataclasses import dataclass
from email.message import Message
from enum import Enum
from typing import TYPE_CHECKING, Mapping, Optional

import requests
from requests.structures import CaseInsensitiveDict
from urllib3.exceptions import LocationParseError

from urlscanner.errors import InvalidConfigurationError

if TYPE_CHECKING:
    from urlscanner.core import TargetReference

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 100.0
DEFAULT_USER_AGENT = "UrlScanner/1.0"

# urllib3 reports the negotiated protocol as an integer
_HTTP_VERSIONS = {9: "HTTP/0.9", 10: "HTTP/1.0", 11: "HTTP/1.1", 20: "HTTP/2", 30: "HTTP/3"}


class TransportOutcome(str, Enum):
    """Whether the HTTP exchange completed at all."""
    COMPLETED = "completed"
    TRANSPORT_FAILURE = "transport_failure"


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Outcome of a single GET attempt."""
    url: str
    outcome: TransportOutcome
    status_code: Optional[int] = None
    reason_phrase: Optional[str] = None
    protocol_version: Optional[str] = None
    headers: Optional[CaseInsensitiveDict] = None
    body: Optional[bytes] = None
    encoding: Optional[str] = None
    final_url: Optional[str] = None
    error_message: Optional[str] = None
    exception: Optional[Exception] = None
    elapsed_s: float = 0.0

    @property
    def completed(self) -> bool:
        return self.outcome is TransportOutcome.COMPLETED

    @property
    def is_success(self) -> bool:
        """True for a completed exchange with a 2xx status."""
        return self.completed and self.status_code is not None and 200 <= self.status_code < 300

    def decode_body(self) -> Optional[str]:
        """Decode the body with the response encoding, replacing bad bytes."""
        if self.body is None:
            return None
        try:
            return self.body.decode(self.encoding or "utf-8", errors="replace")
        except LookupError:
            # Unknown charset label in the response headers
            return self.body.decode("utf-8", errors="replace")


def validate_timeout(seconds: object) -> float:
    """Return *seconds* as a float, or raise if it is not a usable timeout."""
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        raise InvalidConfigurationError(f"Timeout must be a number of seconds, got {seconds!r}")
    if not math.isfinite(seconds) or seconds <= 0:
        raise InvalidConfigurationError(f"Timeout must be a positive number of seconds, got {seconds!r}")
    return float(seconds)


def http_error_message(status_code: int, reason: Optional[str]) -> str:
    """Format the message recorded for a non-2xx response."""
    return f"HTTP {status_code} {reason or ''}".rstrip()


def declared_charset(headers: Optional[Mapping[str, str]]) -> Optional[str]:
    """
    Charset named by the Content-Type header, or None when it names none.

    Unlike ``response.encoding`` this does not assume ISO-8859-1 for text
    types without a charset parameter.
    """
    content_type = headers.get("Content-Type") if headers else None
    if not content_type:
        return None
    msg = Message()
    msg["Content-Type"] = content_type
    return msg.get_content_charset()


def _protocol_version(resp: requests.Response) -> Optional[str]:
    version = getattr(resp.raw, "version", None)
    if isinstance(version, int):
        return _HTTP_VERSIONS.get(version, f"HTTP/{version // 10}.{version % 10}")
    return None


class HttpClient:
    """
    Thin wrapper around a ``requests.Session`` holding the timeout policy.

    The timeout is read once when a fetch starts, so changing it affects
    every later fetch and never one that is already running.
    """

    def __init__(self, timeout_s: float = DEFAULT_TIMEOUT_S, user_agent: str = DEFAULT_USER_AGENT) -> None:
        self._timeout_s = validate_timeout(timeout_s)
        self._session = requests.Session()
        self._session.headers["User-Agent"] = user_agent
        self._lock = threading.Lock()
        self._in_flight = 0
        self._close_pending = False

    @property
    def session(self) -> requests.Session:
        return self._session

    @property
    def timeout_s(self) -> float:
        return self._timeout_s

    @property
    def user_agent(self) -> str:
        return self._session.headers["User-Agent"]

    def set_timeout(self, seconds: float) -> None:
        """Set the timeout for all subsequent fetches."""
        self._timeout_s = validate_timeout(seconds)
        logger.debug("HTTP timeout set to %.1fs", self._timeout_s)

    def get(self, url: str) -> FetchResult:
        """Issue one GET for *url* and capture whatever happens."""
        with self._lock:
            self._in_flight += 1
        try:
            return self._get(url)
        finally:
            self._release()

    def _get(self, url: str) -> FetchResult:
        timeout_s = self._timeout_s
        start = time.monotonic()
        logger.debug("GET %s (timeout %.1fs)", url, timeout_s)

        try:
            resp = self._session.get(url, timeout=timeout_s, allow_redirects=True)
        except (requests.RequestException, LocationParseError) as e:
            # urllib3 raises LocationParseError for hosts it refuses to connect to
            message = str(e) or type(e).__name__
            logger.warning("Fetch failed for %s: %s", url, message)
            return FetchResult(
                url=url,
                outcome=TransportOutcome.TRANSPORT_FAILURE,
                error_message=message,
                exception=e,
                elapsed_s=time.monotonic() - start,
            )

        body = resp.content or b""
        error_message = None
        if 200 <= resp.status_code < 300:
            logger.debug("%s returned %s (%d bytes)", url, resp.status_code, len(body))
        else:
            error_message = http_error_message(resp.status_code, resp.reason)
            logger.info("%s returned %s", url, error_message)

        return FetchResult(
            url=url,
            outcome=TransportOutcome.COMPLETED,
            status_code=resp.status_code,
            reason_phrase=resp.reason,
            protocol_version=_protocol_version(resp),
            headers=CaseInsensitiveDict(resp.headers),
            body=body,
            encoding=resp.encoding or resp.apparent_encoding,
            final_url=resp.url or url,
            error_message=error_message,
            elapsed_s=time.monotonic() - start,
        )

    async def fetch(self, target: "TargetReference") -> FetchResult:
        """Fetch a validated target without blocking the event loop."""
        return await asyncio.to_thread(self.get, target.url)

    def _release(self) -> None:
        with self._lock:
            self._in_flight -= 1
            close_now = self._close_pending and self._in_flight == 0
        if close_now:
            self._session.close()

    def close(self) -> None:
        """Close the session now, or once the last running fetch finishes."""
        with self._lock:
            self._close_pending = True
            close_now = self._in_flight == 0
        if close_now:
            self._session.close()
        else:
            logger.debug("Deferring session close until %d fetch(es) finish", self._in_flight)


# Process-wide client shared by every scan
_client: Optional[HttpClient] = None
_client_lock = threading.Lock()


def get_client() -> HttpClient:
    """Return the shared client, creating it with defaults on first use."""
    global _client
    with _client_lock:
        if _client is None:
            _client = HttpClient()
        return _client


def init_client(timeout_s: float = DEFAULT_TIMEOUT_S, user_agent: str = DEFAULT_USER_AGENT) -> HttpClient:
    """
    Replace the shared client with a freshly configured one.

    Fetches already running on the old client finish on its session, which
    is closed after the last of them. Raises ``InvalidConfigurationError``
    for a bad timeout, keeping the old client.
    """
    global _client
    client = HttpClient(timeout_s=timeout_s, user_agent=user_agent)
    with _client_lock:
        previous, _client = _client, client
    if previous is not None:
        previous.close()
    return client


def close_client() -> None:
    """Close and forget the shared client."""
    global _client
    with _client_lock:
        previous, _client = _client, None
    if previous is not None:
        previous.close()


def set_timeout_seconds(seconds: float) -> None:
    """Set the timeout used by every fetch issued after this call."""
    get_client().set_timeout(seconds)


def get_timeout_seconds() -> float:
    return get_client().timeout_s
