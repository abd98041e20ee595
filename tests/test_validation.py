"""Tests for scan target validation."""
from __future__ import annotations

from urllib.parse import urlparse, urlsplit

import pytest

from urlscanner import Scanner
from urlscanner.core import TargetReference, validate_target
from urlscanner.errors import (
    EmptyInputError,
    MalformedUriError,
    UnsupportedSchemeError,
    ValidationError,
)


class TestValidateTarget:
    def test_accepts_http_and_https(self) -> None:
        assert validate_target("http://example.com/a").scheme == "http"
        assert validate_target("https://example.com/a").scheme == "https"

    def test_normalizes_scheme_and_host_case(self) -> None:
        target = validate_target("HTTPS://Example.COM/Path?Q=1")
        assert target.url == "https://example.com/Path?Q=1"
        assert target.host == "example.com"

    def test_strips_surrounding_whitespace(self) -> None:
        assert validate_target("  https://example.com/x \n").url == "https://example.com/x"

    def test_bare_host_gets_root_path(self) -> None:
        assert validate_target("https://example.com").url == "https://example.com/"

    def test_keeps_port_userinfo_and_fragment(self) -> None:
        target = validate_target("http://User@Example.com:8080/p#frag")
        assert target.url == "http://User@example.com:8080/p#frag"

    def test_accepts_parsed_uris(self) -> None:
        assert validate_target(urlsplit("https://example.com/a")).url == "https://example.com/a"
        assert validate_target(urlparse("https://example.com/b")).url == "https://example.com/b"

    def test_target_reference_passes_through(self) -> None:
        target = validate_target("https://example.com/")
        assert validate_target(target) is target

    def test_target_reference_is_immutable(self) -> None:
        target = validate_target("https://example.com/")
        with pytest.raises(AttributeError):
            target.url = "https://other.example/"  # type: ignore[misc]

    @pytest.mark.parametrize("value", [None, "", "   ", "\t\n"])
    def test_empty_input(self, value) -> None:
        with pytest.raises(EmptyInputError):
            validate_target(value)

    @pytest.mark.parametrize("value", [
        "example.com",
        "/relative/path",
        "//example.com/no-scheme",
        "http://",
        "https:///path-only",
        "http://exa mple.com/",
        "http://example.com:notaport/",
        "http://[::1/",
    ])
    def test_malformed_uri(self, value: str) -> None:
        with pytest.raises(MalformedUriError):
            validate_target(value)

    @pytest.mark.parametrize("value", [
        "ftp://example.com",
        "file:///etc/passwd",
        "mailto:someone@example.com",
        "javascript:alert(1)",
        "FTP://example.com/upper",
    ])
    def test_unsupported_scheme(self, value: str) -> None:
        with pytest.raises(UnsupportedSchemeError) as exc_info:
            validate_target(value)
        assert exc_info.value.scheme == value.split(":", 1)[0].lower()

    def test_errors_are_value_errors(self) -> None:
        with pytest.raises(ValueError):
            validate_target("ftp://example.com")
        with pytest.raises(ValidationError) as exc_info:
            validate_target("nope")
        assert exc_info.value.value == "nope"

    def test_non_string_rejected(self) -> None:
        with pytest.raises(MalformedUriError):
            validate_target(42)  # type: ignore[arg-type]

    @pytest.mark.parametrize("value", [
        "http://a..b/",
        "http://.example.com/",
        "https://" + "a" * 64 + ".com/",
        "https://www." + "b" * 70 + "/path",
    ])
    def test_bad_host_labels(self, value: str) -> None:
        with pytest.raises(MalformedUriError):
            validate_target(value)

    @pytest.mark.parametrize("value, host", [
        ("https://example.com./", "example.com."),
        ("https://" + "a" * 63 + ".com/", "a" * 63 + ".com"),
        ("http://127.0.0.1:8000/", "127.0.0.1"),
        ("http://[::1]/", "::1"),
        ("https://bücher.example/", "bücher.example"),
    ])
    def test_good_hosts(self, value: str, host: str) -> None:
        assert validate_target(value).host == host


class TestValidationBeforeFetch:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", ["", "not a url", "example.com", "ftp://example.com"])
    async def test_invalid_input_never_reaches_the_network(self, stub, value: str) -> None:
        with pytest.raises(ValidationError):
            await Scanner.create(value)
        assert stub.sent == []

    @pytest.mark.asyncio
    async def test_empty_host_label_is_rejected_before_fetch(self, stub) -> None:
        with pytest.raises(MalformedUriError):
            await Scanner.create("http://a..b/")
        assert stub.sent == []

    def test_validate_returns_target_reference(self) -> None:
        assert isinstance(validate_target("https://example.com"), TargetReference)
