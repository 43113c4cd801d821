"""
Unit tests for identifier normalization in social.graze.openid.urinorm

Tests cover URL normalization, failure on malformed input, idempotency, and
identifier classification.
"""

import pytest

from social.graze.openid.errors import DiscoveryFailure, NormalizationFailure
from social.graze.openid.urinorm import (
    IdentifierType,
    identifier_scheme,
    normalize_url,
    normalize_xri,
    parse_identifier,
    remove_dot_segments,
    urinorm,
)


class TestNormalizeUrl:
    """Test suite for normalize_url."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("http://example.com", "http://example.com/"),
            ("HTTP://Example.COM/", "http://example.com/"),
            ("http://example.com:80/", "http://example.com/"),
            ("https://example.com:443/", "https://example.com/"),
            ("http://example.com:/", "http://example.com/"),
            ("http://example.com:8080/", "http://example.com:8080/"),
            ("https://example.com:80/", "https://example.com:80/"),
            ("http://example.com/a/./b/../c", "http://example.com/a/c"),
            ("http://example.com/%7Euser", "http://example.com/~user"),
            ("http://example.com/%2f", "http://example.com/%2F"),
            ("http://example.com/%c3%a9", "http://example.com/%C3%A9"),
            ("http://example.com/é", "http://example.com/%C3%A9"),
            ("http://%65xample.com/", "http://example.com/"),
            ("http://ex%41mple.com/", "http://example.com/"),
            ("http://example.com/path#fragment", "http://example.com/path"),
            ("http://example.com/?q=1", "http://example.com/?q=1"),
        ],
    )
    def test_normalizes(self, raw, expected):
        """Test normalization produces the canonical form."""
        assert normalize_url(raw) == expected

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("http://[::1]:8080/path", "http://[::1]:8080/path"),
            ("http://[FE80::1]/", "http://[fe80::1]/"),
            ("https://[::1]:443/", "https://[::1]/"),
            ("http://[::ffff:192.0.2.1]", "http://[::ffff:192.0.2.1]/"),
        ],
    )
    def test_ip_literal_host(self, raw, expected):
        """Test bracketed IPv6 hosts keep their brackets and are lower-cased."""
        assert normalize_url(raw) == expected

    def test_international_host(self):
        """Test non-ASCII host names are IDNA encoded."""
        assert normalize_url("http://éxample.com/").startswith("http://xn--")

    @pytest.mark.parametrize(
        "raw",
        [
            "http://example.com/",
            "https://user@example.com:8443/a/b?c=d",
            "http://example.com/%2F/%C3%A9",
            "HTTP://Example.COM:80/a/../b/./c#x",
            "http://ex%41mple.com/",
            "http://[::1]:8080/path",
        ],
    )
    def test_idempotent(self, raw):
        """Test normalizing twice gives the same result as normalizing once."""
        once = normalize_url(raw)
        assert normalize_url(once) == once

    @pytest.mark.parametrize(
        "raw",
        [
            "example.com",
            "ftp://example.com/",
            "http:/example.com",
            "http://",
            "http://exa mple.com/",
            "http://example.com:abc/",
            "http://example.com/<script>",
            "http://good.com%2F.evil.com/",
            "http://good.com%40evil.com/",
            "http://[example.com/",
            "http://[not-an-address]/",
        ],
    )
    def test_malformed_fails(self, raw):
        """Test malformed input raises NormalizationFailure carrying the input."""
        with pytest.raises(NormalizationFailure) as exc_info:
            normalize_url(raw)
        assert exc_info.value.value == raw

    def test_failure_is_discovery_failure(self):
        """Test NormalizationFailure can be handled as a DiscoveryFailure."""
        with pytest.raises(DiscoveryFailure):
            normalize_url("gopher://example.com/")


class TestUrinorm:
    """Test suite for urinorm."""

    def test_keeps_fragment(self):
        """Test urinorm keeps the fragment that normalize_url drops."""
        assert urinorm("http://Example.com/a#b") == "http://example.com/a#b"

    def test_keeps_user_info(self):
        """Test user info is carried through."""
        assert urinorm("http://user@example.com/") == "http://user@example.com/"


class TestRemoveDotSegments:
    """Test suite for remove_dot_segments."""

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/a/b/c/./../../g", "/a/g"),
            ("mid/content=5/../6", "mid/6"),
            ("/..", "/"),
            ("/.", "/"),
            ("", ""),
        ],
    )
    def test_remove_dot_segments(self, path, expected):
        """Test RFC 3986 section 5.2.4 examples."""
        assert remove_dot_segments(path) == expected


class TestIdentifierClassification:
    """Test suite for identifier_scheme, parse_identifier, and normalize_xri."""

    @pytest.mark.parametrize(
        "identifier",
        ["=example", "@example*foo", "+tag", "$dns*example.com", "!1234", "(=x)", "xri://=example"],
    )
    def test_xri(self, identifier):
        """Test XRI global context symbols and the xri:// prefix classify as XRI."""
        assert identifier_scheme(identifier) == IdentifierType.xri

    @pytest.mark.parametrize(
        "identifier", ["example.com", "http://example.com/", "https://=example.com/"]
    )
    def test_url(self, identifier):
        """Test everything else classifies as a URL."""
        assert identifier_scheme(identifier) == IdentifierType.url

    def test_parse_identifier_prepends_http(self):
        """Test schemeless URLs get http:// and whitespace is stripped."""
        parsed = parse_identifier("  example.com/user  ")
        assert parsed.identifier_type == IdentifierType.url
        assert parsed.identifier == "http://example.com/user"

    def test_parse_identifier_keeps_scheme(self):
        """Test URLs with a scheme are left alone."""
        parsed = parse_identifier("https://example.com/")
        assert parsed.identifier == "https://example.com/"

    def test_parse_identifier_xri(self):
        """Test XRIs are not given an http:// prefix."""
        parsed = parse_identifier("=example")
        assert parsed.identifier_type == IdentifierType.xri
        assert parsed.identifier == "=example"

    def test_normalize_xri(self):
        """Test normalize_xri strips only the xri:// prefix."""
        assert normalize_xri("xri://=example") == "=example"
        assert normalize_xri("XRI://@example") == "@example"
        assert normalize_xri("=example") == "=example"
