"""Identifier discovery.

``discover`` turns a user-supplied identifier into a claimed identifier and
the ranked OpenID endpoints that can vouch for it:

- XRIs are resolved through the configured proxy resolver.
- URLs go through Yadis discovery, falling back to HTML ``<link>`` markers
  when no XRDS with OpenID services is found.

All fetches for one call are made one after another.
"""

import logging
from time import time
from typing import List, Optional, Tuple
from urllib.parse import urlsplit

import sentry_sdk

from social.graze.openid.config import DEFAULT_DISCOVERY_CONFIG, DiscoveryConfig
from social.graze.openid.consumer.endpoint import (
    EndpointSource,
    ServiceEndpoint,
    get_op_or_user_services,
)
from social.graze.openid.errors import DiscoveryFailure, NormalizationFailure
from social.graze.openid.metrics import MetricsClient, NoOpMetricsClient
from social.graze.openid.urinorm import (
    IdentifierType,
    identifier_scheme,
    normalize_url,
    normalize_xri,
)
from social.graze.openid.yadis import discovery as yadis_discovery
from social.graze.openid.yadis.fetchers import Fetcher, FetchingError
from social.graze.openid.yadis.xrds import (
    XRDSError,
    apply_filter,
    expand_service,
)
from social.graze.openid.yadis.xrires import ProxyResolver, XRIHTTPError

logger = logging.getLogger(__name__)


def _endpoints_from_xrds(
    yadis_url: str, text: Optional[str], config: DiscoveryConfig
) -> List[ServiceEndpoint]:
    try:
        elements = apply_filter(yadis_url, text)
    except XRDSError as e:
        logger.debug(f"No XRDS services for {yadis_url}: {e}")
        return []

    endpoints = []
    for element in elements:
        endpoint = ServiceEndpoint.from_service_element(
            element, config.preferred_types
        )
        if endpoint is not None:
            endpoints.append(endpoint)
    return endpoints


async def discover_no_yadis(
    fetcher: Fetcher, uri: str, config: DiscoveryConfig = DEFAULT_DISCOVERY_CONFIG
) -> Tuple[str, List[ServiceEndpoint]]:
    """Fetch ``uri`` as plain HTML and look for OpenID link markers."""
    try:
        resp = await fetcher.fetch(uri, redirect_limit=config.max_redirects)
    except FetchingError as e:
        raise DiscoveryFailure(str(e)) from e

    if resp.status not in yadis_discovery.OK_STATUSES:
        raise DiscoveryFailure(
            "HTTP Response status from identity URL host is not 200. "
            f"Got status {resp.status!r}",
            resp,
        )

    claimed_id = resp.final_url
    return claimed_id, ServiceEndpoint.from_html(claimed_id, resp.body)


async def discover_yadis(
    fetcher: Fetcher, uri: str, config: DiscoveryConfig = DEFAULT_DISCOVERY_CONFIG
) -> Tuple[str, List[ServiceEndpoint]]:
    """Discover OpenID endpoints for a URL with Yadis, falling back to HTML.

    Returns the URL the identifier resolved to and its ranked endpoints.

    Raises:
        DiscoveryFailure: when the identifier cannot be fetched
    """
    response = await yadis_discovery.discover(
        fetcher, uri, redirect_limit=config.max_redirects
    )
    yadis_url = response.normalized_uri
    body = response.response_text

    openid_services = _endpoints_from_xrds(yadis_url, body, config)

    if not openid_services:
        if response.used_yadis_location():
            # The body is the pointed-to XRDS, not the identifier's HTML.
            yadis_url, openid_services = await discover_no_yadis(fetcher, uri, config)
        else:
            openid_services = ServiceEndpoint.from_html(yadis_url, body)

    return yadis_url, get_op_or_user_services(openid_services, config.preferred_types)


async def discover_xri(
    fetcher: Fetcher, iname: str, config: DiscoveryConfig = DEFAULT_DISCOVERY_CONFIG
) -> Tuple[str, List[ServiceEndpoint]]:
    """Resolve an XRI through the proxy resolver.

    Resolution and document errors are reported and produce no endpoints.
    """
    iname = normalize_xri(iname)
    resolver = ProxyResolver(fetcher, config.proxy_url, config.max_redirects)

    endpoints: List[ServiceEndpoint] = []
    try:
        canonical_id, services = await resolver.query(iname)
        if canonical_id is None:
            raise XRDSError(f"No CanonicalID found for XRI {iname!r}")

        for service_element in services:
            for element in expand_service(iname, service_element):
                endpoint = ServiceEndpoint.from_service_element(
                    element, config.preferred_types, source=EndpointSource.xri
                )
                if endpoint is None:
                    continue
                endpoints.append(
                    endpoint.model_copy(
                        update={
                            "canonical_id": canonical_id,
                            "claimed_id": canonical_id,
                            "display_identifier": iname,
                        }
                    )
                )
    except (XRDSError, XRIHTTPError, FetchingError) as e:
        logger.warning(f"XRI resolution failed for {iname}: {e}")
        sentry_sdk.capture_exception(e)
        endpoints = []

    return iname, get_op_or_user_services(endpoints, config.preferred_types)


async def discover_uri(
    fetcher: Fetcher, uri: str, config: DiscoveryConfig = DEFAULT_DISCOVERY_CONFIG
) -> Tuple[str, List[ServiceEndpoint]]:
    """Discover endpoints for a URL identifier.

    Raises:
        DiscoveryFailure: for non-HTTP schemes, malformed URLs and fetch errors
    """
    if "://" not in uri:
        uri = "http://" + uri

    try:
        scheme = urlsplit(uri).scheme.lower()
    except ValueError as e:
        raise NormalizationFailure(uri, str(e)) from e

    if scheme not in ("http", "https"):
        raise DiscoveryFailure(f"URI scheme {scheme!r} is not HTTP or HTTPS")

    uri = normalize_url(uri)
    claimed_id, openid_services = await discover_yadis(fetcher, uri, config)
    return normalize_url(claimed_id), openid_services


async def discover(
    fetcher: Fetcher,
    identifier: str,
    config: DiscoveryConfig = DEFAULT_DISCOVERY_CONFIG,
    metrics_client: Optional[MetricsClient] = None,
) -> Tuple[str, List[ServiceEndpoint]]:
    """Discover the claimed identifier and ranked endpoints for ``identifier``.

    Raises:
        NormalizationFailure: when the identifier is not a valid URL
        DiscoveryFailure: when a URL identifier cannot be fetched
    """
    metrics_client = metrics_client or NoOpMetricsClient()
    identifier = identifier.strip()

    if identifier_scheme(identifier) == IdentifierType.xri:
        strategy = "xri"
        discover_fn = discover_xri
    else:
        strategy = "uri"
        discover_fn = discover_uri

    start_time = time()
    result = "error"
    try:
        claimed_id, services = await discover_fn(fetcher, identifier, config)
        result = "found" if services else "empty"
        logger.debug(f"Discovered {len(services)} endpoints for {claimed_id}")
        return claimed_id, services
    finally:
        metrics_client.increment(
            "openid.discovery.count",
            1,
            tag_dict={"strategy": strategy, "result": result},
        )
        metrics_client.timer(
            "openid.discovery.time",
            time() - start_time,
            tag_dict={"strategy": strategy},
        )
