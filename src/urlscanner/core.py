"""
Target validation, the Scanner and hyperlink extraction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Union
from urllib.parse import ParseResult, SplitResult, urlsplit, urlunsplit

from bs4 import BeautifulSoup, ParserRejectedMarkup, SoupStrainer
from requests.structures import CaseInsensitiveDict

from urlscanner.errors import EmptyInputError, MalformedUriError, UnsupportedSchemeError
from urlscanner.fetcher import FetchResult, HttpClient, TransportOutcome, declared_charset, get_client

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES: frozenset[str] = frozenset(("http", "https"))

# SoupStrainer to parse only <a> tags that carry an href
LINK_STRAINER = SoupStrainer("a", href=True)

TargetInput = Union[str, "TargetReference", SplitResult, ParseResult]


@dataclass(frozen=True, slots=True)
class TargetReference:
    """A validated absolute http(s) URL."""
    url: str
    scheme: str
    host: str

    def __str__(self) -> str:
        return self.url


def _valid_hostname(hostname: str) -> bool:
    """Every dot-separated label must hold 1 to 63 characters; one trailing dot is allowed."""
    try:
        hostname.encode("idna")
    except UnicodeError:
        return False
    labels = hostname[:-1].split(".") if hostname.endswith(".") else hostname.split(".")
    return all(0 < len(label) <= 63 for label in labels)


def validate_target(value: Optional[TargetInput]) -> TargetReference:
    """
    Validate and normalize a scan target.

    - Accepts a string, a ``urlsplit``/``urlparse`` result or a TargetReference
    - Strips surrounding whitespace
    - Lowercases scheme and host
    - Only http and https are allowed

    Raises EmptyInputError, MalformedUriError or UnsupportedSchemeError.
    Never touches the network.
    """
    if isinstance(value, TargetReference):
        return value
    if isinstance(value, (SplitResult, ParseResult)):
        value = value.geturl()
    if value is None:
        raise EmptyInputError("URL must not be empty", value)
    if not isinstance(value, str):
        raise MalformedUriError(f"Expected a URL string, got {type(value).__name__}", value)

    text = value.strip()
    if not text:
        raise EmptyInputError("URL must not be empty", value)
    if any(ch.isspace() for ch in text):
        raise MalformedUriError(f"Invalid URI: {value}", value)

    try:
        parts = urlsplit(text)
        hostname = parts.hostname
        parts.port  # raises ValueError for a non-numeric or out of range port
    except ValueError as e:
        raise MalformedUriError(f"Invalid URI: {value} ({e})", value) from e

    if not parts.scheme:
        raise MalformedUriError(f"Invalid URI: {value} (not an absolute URI)", value)
    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise UnsupportedSchemeError(
            f"Unsupported scheme '{scheme}' in {value}: only http and https are allowed",
            value,
            scheme=scheme,
        )
    if not hostname:
        raise MalformedUriError(f"Invalid URI: {value} (missing host)", value)
    if ":" not in hostname and not _valid_hostname(hostname):
        raise MalformedUriError(f"Invalid URI: {value} (invalid host '{hostname}')", value)

    # Keep userinfo and port as written, only the host part is case-folded
    userinfo, _, hostport = parts.netloc.rpartition("@")
    netloc = f"{userinfo}@{hostport.lower()}" if userinfo else hostport.lower()
    url = urlunsplit((scheme, netloc, parts.path or "/", parts.query, parts.fragment))
    return TargetReference(url=url, scheme=scheme, host=hostname)


def extract_links(html: Union[str, bytes], from_encoding: Optional[str] = None) -> List[str]:
    """
    Extract all non-empty href values from <a> tags, in document order.

    Raw bytes are decoded by BeautifulSoup, which honours a ``<meta charset>``
    in the document unless *from_encoding* names the charset.
    """
    kwargs = {"from_encoding": from_encoding} if from_encoding and isinstance(html, bytes) else {}
    for features in ("lxml", "html.parser"):
        try:
            soup = BeautifulSoup(html, features, parse_only=LINK_STRAINER, **kwargs)
        except (ParserRejectedMarkup, UnicodeError) as e:
            logger.debug("%s parser rejected markup: %s", features, e)
            continue
        return [a["href"] for a in soup.find_all("a", href=True) if a.get("href")]
    return []


def extract_hyperlinks(source: Union["Scanner", str, bytes, None]) -> List[str]:
    """
    Return the raw href of every anchor in a scanned page.

    Hrefs are returned exactly as written: not resolved against the page
    address, not deduplicated and not filtered. Malformed markup never
    raises; anything unparseable gives an empty list.
    """
    charset = None
    if isinstance(source, Scanner):
        charset = declared_charset(source.result.headers)
        source = source.body_as_bytes()
    if not source or not source.strip():
        return []
    return extract_links(source, from_encoding=charset)


class Scanner:
    """
    One page scan: a validated target bound to the result of fetching it.

    Build with ``await Scanner.create(url)``; the initializer only assembles
    an already fetched result. Everything is read-only afterward.
    """

    def __init__(self, target: TargetReference, result: FetchResult) -> None:
        self._target = target
        self._result = result
        self._text: Optional[str] = None
        self._text_decoded = False

    @classmethod
    async def create(cls, value: TargetInput, client: Optional[HttpClient] = None) -> "Scanner":
        """Validate *value*, fetch it once and return the populated Scanner."""
        target = validate_target(value)
        if client is None:
            client = get_client()
        result = await client.fetch(target)
        return cls(target, result)

    def __repr__(self) -> str:
        if self._result.completed:
            state = str(self._result.status_code)
        else:
            state = "transport failure"
        return f"<Scanner {self._target.url} [{state}]>"

    @property
    def target(self) -> TargetReference:
        return self._target

    @property
    def url(self) -> str:
        return self._target.url

    @property
    def result(self) -> FetchResult:
        return self._result

    @property
    def outcome(self) -> TransportOutcome:
        return self._result.outcome

    @property
    def status_code(self) -> Optional[int]:
        return self._result.status_code

    @property
    def reason_phrase(self) -> Optional[str]:
        return self._result.reason_phrase

    @property
    def protocol_version(self) -> Optional[str]:
        return self._result.protocol_version

    @property
    def headers(self) -> Optional[CaseInsensitiveDict]:
        """A copy of the response headers, or None if nothing came back."""
        if self._result.headers is None:
            return None
        return self._result.headers.copy()

    @property
    def is_success(self) -> bool:
        return self._result.is_success

    @property
    def error_message(self) -> Optional[str]:
        return self._result.error_message

    @property
    def exception(self) -> Optional[Exception]:
        return self._result.exception

    def is_success_status(self) -> bool:
        """True when a response came back with a 2xx status."""
        status = self._result.status_code
        return status is not None and 200 <= status < 300

    def body_as_bytes(self) -> Optional[bytes]:
        return self._result.body

    def body_as_text(self) -> Optional[str]:
        """Decoded body, or None if the fetch never got a response."""
        if not self._text_decoded:
            self._text = self._result.decode_body()
            self._text_decoded = True
        return self._text

    def extract_hyperlinks(self) -> List[str]:
        return extract_hyperlinks(self)


async def create_scanner(value: TargetInput, client: Optional[HttpClient] = None) -> Scanner:
    """Validate, fetch and return a Scanner for *value*."""
    return await Scanner.create(value, client=client)
