"""
Unit tests for XRDS parsing in social.graze.openid.yadis.xrds

Tests cover document validation, service ordering, URI expansion, and
CanonicalID verification.
"""

import pytest

from social.graze.openid.yadis.xrds import (
    XRDSError,
    XRDSFraud,
    apply_filter,
    get_canonical_id,
    get_type_uris,
    get_yadis_xrd,
    iter_services,
    parse_xrds,
)
from tests.test_helpers import make_service, make_xrds

XRDS_HEADER = (
    '<xrds:XRDS xmlns:xrds="xri://$xrds" xmlns="xri://$xrd*($v*2.0)">'
)


class TestParseXrds:
    """Test suite for parse_xrds."""

    def test_valid(self):
        tree = parse_xrds(make_xrds(make_service("urn:a", uri="http://a/")))
        assert get_yadis_xrd(tree) is not None

    def test_accepts_bytes(self):
        tree = parse_xrds(make_xrds().encode("utf-8"))
        assert list(iter_services(tree)) == []

    def test_not_xml(self):
        with pytest.raises(XRDSError) as exc_info:
            parse_xrds("<html><body>unclosed")
        assert exc_info.value.reason is not None

    def test_wrong_root(self):
        with pytest.raises(XRDSError):
            parse_xrds("<html><head></head></html>")

    def test_none(self):
        with pytest.raises(XRDSError):
            parse_xrds(None)

    def test_no_xrd(self):
        tree = parse_xrds(XRDS_HEADER + "</xrds:XRDS>")
        with pytest.raises(XRDSError):
            get_yadis_xrd(tree)

    def test_last_xrd_is_used(self):
        document = (
            XRDS_HEADER
            + "<XRD><Service><Type>urn:first</Type></Service></XRD>"
            + "<XRD><Service><Type>urn:last</Type></Service></XRD>"
            + "</xrds:XRDS>"
        )
        services = list(iter_services(parse_xrds(document)))
        assert [get_type_uris(s) for s in services] == [["urn:last"]]


class TestServiceOrdering:
    """Test suite for priority ordering and URI expansion."""

    def test_priority_order(self):
        document = make_xrds(
            make_service("urn:none", uri="http://none/"),
            make_service("urn:ten", uri="http://ten/", priority=10),
            make_service("urn:zero", uri="http://zero/", priority=0),
            make_service("urn:also-none", uri="http://also-none/"),
        )
        elements = apply_filter("http://example.com/", document)
        assert [e.uri for e in elements] == [
            "http://zero/",
            "http://ten/",
            "http://none/",
            "http://also-none/",
        ]

    def test_uri_priority_and_expansion(self):
        service = (
            "<Service><Type>urn:a</Type>"
            '<URI priority="20">http://second/</URI>'
            '<URI priority="10">http://first/</URI>'
            "</Service>"
        )
        elements = apply_filter("http://example.com/", make_xrds(service))
        assert [e.uri for e in elements] == ["http://first/", "http://second/"]
        assert all(e.type_uris == ("urn:a",) for e in elements)
        assert all(e.yadis_url == "http://example.com/" for e in elements)

    def test_service_without_uri(self):
        elements = apply_filter("http://example.com/", make_xrds(make_service("urn:a")))
        assert len(elements) == 1
        assert elements[0].uri is None

    def test_match_types(self):
        (element,) = apply_filter(
            "http://example.com/",
            make_xrds(make_service("urn:a", "urn:b", uri="http://a/")),
        )
        assert element.match_types(("urn:b", "urn:c", "urn:a")) == ["urn:b", "urn:a"]

    def test_empty_types_dropped(self):
        document = make_xrds(make_service("", "  ", "urn:a", uri="http://a/"))
        (service,) = iter_services(parse_xrds(document))
        assert get_type_uris(service) == ["urn:a"]


class TestCanonicalId:
    """Test suite for get_canonical_id."""

    def test_authoritative(self):
        tree = parse_xrds(make_xrds(canonical_id="=!1234"))
        assert get_canonical_id("=example", tree) == "=!1234"

    def test_missing(self):
        assert get_canonical_id("=example", parse_xrds(make_xrds())) is None

    def test_wrong_root(self):
        tree = parse_xrds(make_xrds(canonical_id="@!1234"))
        with pytest.raises(XRDSFraud):
            get_canonical_id("=example", tree)

    def test_chain(self):
        document = (
            XRDS_HEADER
            + "<XRD><CanonicalID>=!1234</CanonicalID></XRD>"
            + "<XRD><CanonicalID>=!1234!5678</CanonicalID></XRD>"
            + "</xrds:XRDS>"
        )
        assert get_canonical_id("=example*foo", parse_xrds(document)) == "=!1234!5678"

    def test_broken_chain(self):
        document = (
            XRDS_HEADER
            + "<XRD><CanonicalID>=!9999</CanonicalID></XRD>"
            + "<XRD><CanonicalID>=!1234!5678</CanonicalID></XRD>"
            + "</xrds:XRDS>"
        )
        with pytest.raises(XRDSFraud):
            get_canonical_id("=example*foo", parse_xrds(document))
