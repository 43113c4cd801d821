"""Yadis content-negotiated discovery.

Fetches an identifier URL asking for an XRDS document, and follows the Yadis
location pointer (``X-XRDS-Location`` header or ``<meta http-equiv>``) when the
response is not itself the XRDS.
"""

import logging
from typing import Optional
from urllib.parse import urljoin

from pydantic import BaseModel

from social.graze.openid.errors import DiscoveryFailure
from social.graze.openid.yadis.accept import generate_accept_header
from social.graze.openid.yadis.fetchers import (
    MAX_REDIRECTS,
    Fetcher,
    FetchingError,
    HTTPResponse,
)
from social.graze.openid.yadis.html import YADIS_HEADER_NAME, find_html_meta

logger = logging.getLogger(__name__)

YADIS_CONTENT_TYPE = "application/xrds+xml"

YADIS_ACCEPT_HEADER = generate_accept_header(
    ("text/html", 0.3),
    ("application/xhtml+xml", 0.5),
    (YADIS_CONTENT_TYPE, 1.0),
)

OK_STATUSES = (200, 206)


class DiscoveryResult(BaseModel):
    """The result of fetching an identifier URL for Yadis discovery."""

    request_uri: str
    """The URI that was asked for."""

    normalized_uri: Optional[str] = None
    """The URI the response came from, after redirects."""

    xrds_uri: Optional[str] = None
    """The URI the XRDS document was fetched from, if one was located."""

    content_type: Optional[str] = None
    """Content type of the document in response_text."""

    response_text: Optional[str] = None
    """The XRDS document, or the identifier's own body when none was located."""

    def used_yadis_location(self) -> bool:
        """Was a location pointer to a separate document followed?"""
        return self.xrds_uri is not None and self.normalized_uri != self.xrds_uri

    def is_xrds(self) -> bool:
        """Is response_text expected to be an XRDS document?"""
        return self.used_yadis_location() or _media_type(self.content_type) == (
            YADIS_CONTENT_TYPE
        )


def _media_type(content_type: Optional[str]) -> Optional[str]:
    if content_type is None:
        return None
    return content_type.split(";", 1)[0].strip().lower()


def where_is_yadis(resp: HTTPResponse) -> Optional[str]:
    """Locate the XRDS document for a response.

    Returns the response's own URL when it is an XRDS, the URL from the Yadis
    header or HTML meta element otherwise, or None.
    """
    if _media_type(resp.headers.get("content-type")) == YADIS_CONTENT_TYPE:
        return resp.final_url

    yadis_loc = resp.headers.get(YADIS_HEADER_NAME) or find_html_meta(resp.body)
    if not yadis_loc:
        return None
    return urljoin(resp.final_url, yadis_loc.strip())


async def _fetch(
    fetcher: Fetcher,
    uri: str,
    headers: Optional[dict] = None,
    redirect_limit: int = MAX_REDIRECTS,
) -> HTTPResponse:
    try:
        return await fetcher.fetch(uri, headers=headers, redirect_limit=redirect_limit)
    except FetchingError as e:
        raise DiscoveryFailure(str(e)) from e


async def discover(
    fetcher: Fetcher, uri: str, redirect_limit: int = MAX_REDIRECTS
) -> DiscoveryResult:
    """Fetch ``uri`` for Yadis discovery.

    Raises:
        DiscoveryFailure: when the identifier or the XRDS it points to cannot be
            fetched, or does not answer with 200 or 206
    """
    result = DiscoveryResult(request_uri=uri)

    resp = await _fetch(
        fetcher, uri, headers={"Accept": YADIS_ACCEPT_HEADER}, redirect_limit=redirect_limit
    )
    if resp.status not in OK_STATUSES:
        raise DiscoveryFailure(
            "HTTP Response status from identity URL host is not 200. "
            f"Got status {resp.status!r}",
            resp,
        )

    result.normalized_uri = resp.final_url
    result.content_type = resp.headers.get("content-type")
    result.xrds_uri = where_is_yadis(resp)

    if result.used_yadis_location():
        logger.debug(f"Following Yadis location {result.xrds_uri} for {uri}")
        resp = await _fetch(fetcher, result.xrds_uri, redirect_limit=redirect_limit)
        if resp.status not in OK_STATUSES:
            exc = DiscoveryFailure(
                "HTTP Response status from Yadis host is not 200. "
                f"Got status {resp.status!r}",
                resp,
            )
            exc.identity_url = result.normalized_uri
            raise exc
        result.content_type = resp.headers.get("content-type")

    result.response_text = resp.body
    return result
