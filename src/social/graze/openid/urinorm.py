"""Identifier normalization.

Canonicalizes user supplied identifiers so that the same identity is always
represented by the same string, both before discovery and after a provider
hands a claimed identifier back.

URLs are normalized following RFC 3986 section 6 for the http and https
schemes. XRIs are only stripped of their ``xri://`` prefix; their validity is
established by resolution.
"""

import re
from enum import IntEnum
from urllib.parse import quote, unquote, urldefrag

from pydantic import BaseModel

from social.graze.openid.errors import NormalizationFailure

XRI_AUTHORITIES = ("!", "=", "@", "+", "$", "(")

URI_RE = re.compile(r"^(([^:/?#]+):)?(//([^/?#]*))?([^?#]*)(\?([^#]*))?(#(.*))?$", re.S)
REST_RE = re.compile(r"^([^?#]*)(\?[^#]*)?(#.*)?$", re.S)
AUTHORITY_RE = re.compile(r"^([^@]*@)?(\[[^\]]*\]|[^:]*)(:.*)?$", re.S)
PCT_ENCODED_RE = re.compile(r"%([0-9A-Fa-f]{2})")
ILLEGAL_CHAR_RE = re.compile(r"[^-A-Za-z0-9:/?#\[\]@!$&'()*+,;=._~%]")
NON_ASCII_RE = re.compile(r"[^\x00-\x7f]")
ILLEGAL_HOST_CHAR_RE = re.compile(r"[^-A-Za-z0-9._~!$&'()*+,;=]")
IP_LITERAL_RE = re.compile(
    r"^\[(?:[0-9A-Fa-f:.]+|[vV][0-9A-Fa-f]+\.[-A-Za-z0-9._~!$&'()*+,;=:]+)\]$"
)

UNRESERVED = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"
)

DEFAULT_PORTS = {"http": ":80", "https": ":443"}


class IdentifierType(IntEnum):
    """Which discovery path an identifier is routed to."""

    url = 1
    xri = 2


class ParsedIdentifier(BaseModel):
    """A classified identifier, with ``http://`` assumed for bare URLs."""

    identifier_type: IdentifierType
    identifier: str


def _pct_encoded_replace_unreserved(mo: re.Match[str]) -> str:
    char = chr(int(mo.group(1), 16))
    if char in UNRESERVED:
        return char
    return "%" + mo.group(1).upper()


def _escape_non_ascii(mo: re.Match[str]) -> str:
    return quote(mo.group(0), safe="")


def remove_dot_segments(path: str) -> str:
    """Remove ``.`` and ``..`` segments (RFC 3986 section 5.2.4)."""
    result_segments = []

    while path:
        if path.startswith("../"):
            path = path[3:]
        elif path.startswith("./"):
            path = path[2:]
        elif path.startswith("/./"):
            path = path[2:]
        elif path == "/.":
            path = "/"
        elif path.startswith("/../"):
            path = path[3:]
            if result_segments:
                result_segments.pop()
        elif path == "/..":
            path = "/"
            if result_segments:
                result_segments.pop()
        elif path in ("..", "."):
            path = ""
        else:
            i = 1 if path[0] == "/" else 0
            i = path.find("/", i)
            if i == -1:
                i = len(path)
            result_segments.append(path[:i])
            path = path[i:]

    return "".join(result_segments)


def _normalize_host(uri: str, host: str) -> str:
    if host.startswith("["):
        if not IP_LITERAL_RE.match(host):
            raise NormalizationFailure(uri, "invalid IP literal")
        return host.lower()

    if "%" in host:
        try:
            host = unquote(host, errors="strict")
        except UnicodeError as e:
            raise NormalizationFailure(uri, f"invalid host escape: {e}") from e
    host = host.lower()
    if NON_ASCII_RE.search(host):
        try:
            host = host.encode("idna").decode("ascii")
        except UnicodeError as e:
            raise NormalizationFailure(uri, f"invalid host name: {e}") from e
    if not host:
        raise NormalizationFailure(uri, "no host specified")
    if ILLEGAL_HOST_CHAR_RE.search(host):
        raise NormalizationFailure(uri, "illegal characters in host")
    return host


def urinorm(uri: str) -> str:
    """Normalize an absolute http or https URI, keeping any fragment.

    Raises:
        NormalizationFailure: when the URI is malformed or not http(s)
    """
    if isinstance(uri, bytes):
        uri = uri.decode("utf-8")

    uri_mo = URI_RE.match(uri)
    if uri_mo is None:
        raise NormalizationFailure(uri, "not a URI")

    scheme = uri_mo.group(2)
    if scheme is None:
        raise NormalizationFailure(uri, "no scheme specified")
    scheme = scheme.lower()
    if scheme not in ("http", "https"):
        raise NormalizationFailure(uri, "not an absolute HTTP or HTTPS URI")

    authority = uri_mo.group(4)
    if authority is None:
        raise NormalizationFailure(uri, "not an absolute URI")

    authority_mo = AUTHORITY_RE.match(authority)
    if authority_mo is None:
        raise NormalizationFailure(uri, "URI does not have a valid authority")

    userinfo, host, port = authority_mo.groups()
    userinfo = userinfo or ""
    if ILLEGAL_CHAR_RE.search(NON_ASCII_RE.sub(_escape_non_ascii, userinfo)):
        raise NormalizationFailure(uri, "illegal characters in user info")
    host = _normalize_host(uri, host)

    if port:
        if port != ":" and not port[1:].isdigit():
            raise NormalizationFailure(uri, f"invalid port {port[1:]!r}")
        if port == ":" or DEFAULT_PORTS[scheme] == port:
            port = ""
    else:
        port = ""

    rest = NON_ASCII_RE.sub(_escape_non_ascii, uri[uri_mo.start(5):])
    illegal_mo = ILLEGAL_CHAR_RE.search(rest)
    if illegal_mo:
        raise NormalizationFailure(
            uri, f"illegal character {illegal_mo.group(0)!r} in URI"
        )

    path, query, fragment = REST_RE.match(rest).groups("")
    path = PCT_ENCODED_RE.sub(_pct_encoded_replace_unreserved, path)
    path = remove_dot_segments(path)
    if not path:
        path = "/"

    return f"{scheme}://{userinfo}{host}{port}{path}{query}{fragment}"


def normalize_url(url: str) -> str:
    """Normalize an http(s) URL and strip its fragment.

    Idempotent: ``normalize_url(normalize_url(u)) == normalize_url(u)``.

    Raises:
        NormalizationFailure: when the URL is malformed
    """
    normalized = urinorm(url)
    defragged, _ = urldefrag(normalized)
    return defragged


def normalize_xri(xri: str) -> str:
    """Strip an optional ``xri://`` scheme prefix."""
    if xri.lower().startswith("xri://"):
        return xri[6:]
    return xri


def identifier_scheme(identifier: str) -> IdentifierType:
    """Classify an identifier as XRI or URL."""
    if identifier.lower().startswith("xri://"):
        return IdentifierType.xri
    if identifier.startswith(XRI_AUTHORITIES):
        return IdentifierType.xri
    return IdentifierType.url


def parse_identifier(identifier: str) -> ParsedIdentifier:
    """Classify an identifier, assuming ``http://`` for schemeless URLs."""
    identifier = identifier.strip()

    if identifier_scheme(identifier) == IdentifierType.xri:
        return ParsedIdentifier(
            identifier_type=IdentifierType.xri, identifier=identifier
        )

    if "://" not in identifier:
        identifier = "http://" + identifier

    return ParsedIdentifier(identifier_type=IdentifierType.url, identifier=identifier)
