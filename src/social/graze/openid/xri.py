"""XRI helpers used by proxy resolution.

See XRI Syntax v2.0 from the OASIS XRI Technical Committee.
"""

import re
from urllib.parse import quote

from social.graze.openid.urinorm import (
    XRI_AUTHORITIES,
    IdentifierType,
    identifier_scheme,
    normalize_xri,
)

XREF_RE = re.compile(r"\((.*?)\)")


def is_iname(identifier: str) -> bool:
    return identifier_scheme(identifier) == IdentifierType.xri


def _escape_xref(match: re.Match[str]) -> str:
    # Cross-references may carry characters that delimit URL parts
    return (
        match.group(0).replace("/", "%2F").replace("?", "%3F").replace("#", "%23")
    )


def url_escape(xri: str) -> str:
    """Escape an XRI so it can be appended to a proxy resolver URL."""
    xri = quote(
        normalize_xri(xri), safe="".join(XRI_AUTHORITIES) + ")/?#*:;,&=~'%"
    )
    return XREF_RE.sub(_escape_xref, xri)


def root_authority(xri: str) -> str:
    """Return the root authority for an XRI.

    ``root_authority("@example") == "@"``
    """
    authority = normalize_xri(xri).split("/", 1)[0]
    if not authority:
        return authority

    if authority[0] == "(":
        # Cross-reference. Nested cross-references are not supported.
        close = authority.find(")")
        return authority[: close + 1] if close != -1 else authority
    elif authority[0] in XRI_AUTHORITIES:
        return authority[0]

    # IRI reference
    return authority.split("!")[0].split("*")[0]


def provider_is_authoritative(provider_id: str, canonical_id: str) -> bool:
    """Check that ``provider_id`` may issue ``canonical_id``."""
    if "!" not in canonical_id:
        return False
    return canonical_id.rsplit("!", 1)[0].lower() == provider_id.lower()
