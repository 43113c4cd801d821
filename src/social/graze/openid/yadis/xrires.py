"""XRI resolution through a proxy resolver."""

import logging
from typing import List, Optional, Tuple
from urllib.parse import urlencode

from lxml import etree

from social.graze.openid.urinorm import normalize_xri
from social.graze.openid.xri import url_escape
from social.graze.openid.yadis.fetchers import MAX_REDIRECTS, Fetcher
from social.graze.openid.yadis.xrds import get_canonical_id, iter_services, parse_xrds

logger = logging.getLogger(__name__)

XRDS_RESPONSE_TYPE = "application/xrds+xml;sep=false"


class XRIHTTPError(Exception):
    """The proxy resolver did not answer with a usable response."""

    def __init__(self, xri: str, status: Optional[int], message: str) -> None:
        super().__init__(message)
        self.xri = xri
        self.status = status


class ProxyResolver:
    """Resolves XRIs through an HTTP proxy resolver such as xri.net."""

    def __init__(
        self, fetcher: Fetcher, proxy_url: str, redirect_limit: int = MAX_REDIRECTS
    ) -> None:
        if not proxy_url.endswith("/"):
            proxy_url += "/"
        self._fetcher = fetcher
        self._proxy_url = proxy_url
        self._redirect_limit = redirect_limit

    def query_url(self, xri: str) -> str:
        """Build the proxy URL that resolves ``xri`` to a full XRDS."""
        query = urlencode({"_xrd_r": XRDS_RESPONSE_TYPE})
        return f"{self._proxy_url}{url_escape(normalize_xri(xri))}?{query}"

    async def query(self, xri: str) -> Tuple[Optional[str], List[etree._Element]]:
        """Resolve ``xri`` to its CanonicalID and service elements.

        Raises:
            XRIHTTPError: when the proxy does not answer with 200 or 206
            XRDSError: when the answer is not a valid XRDS
            FetchingError: on transport errors
        """
        url = self.query_url(xri)
        logger.debug(f"Querying proxy resolver {url}")

        response = await self._fetcher.fetch(url, redirect_limit=self._redirect_limit)
        if response.status not in (200, 206):
            raise XRIHTTPError(
                xri,
                response.status,
                f"Proxy resolver returned status {response.status} for {xri}",
            )

        tree = parse_xrds(response.body)
        canonical_id = get_canonical_id(xri, tree)
        return canonical_id, list(iter_services(tree))
