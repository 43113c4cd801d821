"""OpenID service endpoints and their ranking.

A ``ServiceEndpoint`` is one candidate provider binding for an identifier. It is
built by exactly one discovery strategy, recorded in ``source``, and is never
modified afterwards. Endpoints are stored between the begin and complete steps
of an authentication handshake through ``to_flat_map`` / ``from_flat_map``.
"""

import json
import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import urldefrag

from lxml import etree
from pydantic import BaseModel, ConfigDict, model_validator

from social.graze.openid.errors import DiscoveryFailure
from social.graze.openid.yadis.html import find_first_href, parse_link_attrs
from social.graze.openid.yadis.xrds import (
    DELEGATE_TAG,
    LOCAL_ID_TAG,
    ServiceElement,
)

logger = logging.getLogger(__name__)

OPENID_IDP_2_0_TYPE = "http://specs.openid.net/auth/2.0/server"
OPENID_2_0_TYPE = "http://specs.openid.net/auth/2.0/signon"
OPENID_1_1_TYPE = "http://openid.net/signon/1.1"
OPENID_1_0_TYPE = "http://openid.net/signon/1.0"

OPENID1_NS = "http://openid.net/signon/1.0"
OPENID2_NS = "http://specs.openid.net/auth/2.0"

OPENID_TYPE_URIS: Tuple[str, ...] = (
    OPENID_IDP_2_0_TYPE,
    OPENID_2_0_TYPE,
    OPENID_1_1_TYPE,
    OPENID_1_0_TYPE,
)
"""OpenID service type URIs, listed in order of preference."""

FLAT_MAP_VERSION = "1"

HTML_DISCOVERY_TYPES = (
    (OPENID_2_0_TYPE, "openid2.provider", "openid2.local_id"),
    (OPENID_1_1_TYPE, "openid.server", "openid.delegate"),
)


class EndpointSource(str, Enum):
    """The discovery strategy that built an endpoint."""

    xrds = "xrds"
    html = "html"
    xri = "xri"
    op_endpoint = "op_endpoint"


def _load_type_uris(value: str) -> Tuple[str, ...]:
    type_uris = json.loads(value)
    if not isinstance(type_uris, list) or not all(
        isinstance(type_uri, str) for type_uri in type_uris
    ):
        raise ValueError(f"Malformed type_uris: {value!r}")
    return tuple(type_uris)


def _display_identifier(claimed_id: Optional[str]) -> Optional[str]:
    if claimed_id is None:
        return None
    defragged, _ = urldefrag(claimed_id)
    return defragged


class ServiceEndpoint(BaseModel):
    """One candidate OpenID provider binding."""

    model_config = ConfigDict(frozen=True)

    source: EndpointSource
    server_url: Optional[str] = None
    type_uris: Tuple[str, ...] = ()
    claimed_id: Optional[str] = None
    local_id: Optional[str] = None
    canonical_id: Optional[str] = None
    used_yadis: bool = False
    display_identifier: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def default_display_identifier(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("display_identifier") is None:
            data = dict(data)
            data["display_identifier"] = _display_identifier(data.get("claimed_id"))
        return data

    def is_op_identifier(self) -> bool:
        return OPENID_IDP_2_0_TYPE in self.type_uris

    def uses_extension(self, extension_uri: str) -> bool:
        return extension_uri in self.type_uris

    def supports_type(self, type_uri: str) -> bool:
        """Does this endpoint support this type?

        OP-identifier endpoints implicitly support 2.0 signon.
        """
        return type_uri in self.type_uris or (
            type_uri == OPENID_2_0_TYPE and self.is_op_identifier()
        )

    def preferred_namespace(self) -> str:
        if OPENID_IDP_2_0_TYPE in self.type_uris or OPENID_2_0_TYPE in self.type_uris:
            return OPENID2_NS
        return OPENID1_NS

    def compatibility_mode(self) -> bool:
        return self.preferred_namespace() != OPENID2_NS

    def get_local_id(self) -> Optional[str]:
        """The identifier to send to the provider as openid.identity."""
        if self.local_id is None and self.canonical_id is None:
            return self.claimed_id
        return self.local_id or self.canonical_id

    def to_flat_map(self) -> Dict[str, str]:
        """Serialize to a flat string mapping for session storage."""
        flat = {
            "version": FLAT_MAP_VERSION,
            "source": self.source.value,
            "type_uris": json.dumps(list(self.type_uris)),
            "used_yadis": "true" if self.used_yadis else "false",
        }
        for name in (
            "server_url",
            "claimed_id",
            "local_id",
            "canonical_id",
            "display_identifier",
        ):
            value = getattr(self, name)
            if value is not None:
                flat[name] = value
        return flat

    @classmethod
    def from_flat_map(cls, flat: Mapping[str, str]) -> "ServiceEndpoint":
        """Restore an endpoint stored with ``to_flat_map``.

        Raises:
            ValueError: when the mapping was written by an unknown schema version
                or its type_uris are malformed
        """
        version = flat.get("version")
        if version != FLAT_MAP_VERSION:
            raise ValueError(f"Unsupported endpoint schema version: {version!r}")

        return cls(
            source=EndpointSource(flat["source"]),
            server_url=flat.get("server_url"),
            type_uris=_load_type_uris(flat.get("type_uris", "[]")),
            claimed_id=flat.get("claimed_id"),
            local_id=flat.get("local_id"),
            canonical_id=flat.get("canonical_id"),
            used_yadis=flat.get("used_yadis") == "true",
            display_identifier=flat.get("display_identifier"),
        )

    @classmethod
    def from_service_element(
        cls,
        service: ServiceElement,
        preferred_types: Sequence[str] = OPENID_TYPE_URIS,
        source: EndpointSource = EndpointSource.xrds,
    ) -> Optional["ServiceEndpoint"]:
        """Build an endpoint from an XRDS service, if it is an OpenID service.

        Raises:
            DiscoveryFailure: when the service carries conflicting local IDs
        """
        if not service.match_types(tuple(preferred_types)) or not service.uri:
            return None

        if OPENID_IDP_2_0_TYPE in service.type_uris:
            return cls(
                source=source,
                server_url=service.uri,
                type_uris=service.type_uris,
                used_yadis=True,
            )

        return cls(
            source=source,
            server_url=service.uri,
            type_uris=service.type_uris,
            claimed_id=service.yadis_url,
            local_id=find_op_local_identifier(service.element, service.type_uris),
            used_yadis=True,
        )

    @classmethod
    def from_html(cls, uri: str, html: str) -> List["ServiceEndpoint"]:
        """Parse an HTML document for OpenID ``<link rel=...>`` markers."""
        link_attrs = parse_link_attrs(html)
        services = []
        for type_uri, op_endpoint_rel, local_id_rel in HTML_DISCOVERY_TYPES:
            op_endpoint_url = find_first_href(link_attrs, op_endpoint_rel)
            if op_endpoint_url is None:
                continue

            services.append(
                cls(
                    source=EndpointSource.html,
                    server_url=op_endpoint_url,
                    type_uris=(type_uri,),
                    claimed_id=uri,
                    local_id=find_first_href(link_attrs, local_id_rel),
                    used_yadis=False,
                )
            )

        return services

    @classmethod
    def from_op_endpoint_url(cls, op_endpoint_url: str) -> "ServiceEndpoint":
        """Build an OP-identifier endpoint for a known provider URL."""
        return cls(
            source=EndpointSource.op_endpoint,
            server_url=op_endpoint_url,
            type_uris=(OPENID_IDP_2_0_TYPE,),
        )

    def __str__(self) -> str:
        return (
            f"<{type(self).__name__} server_url={self.server_url} "
            f"claimed_id={self.claimed_id} local_id={self.local_id} "
            f"canonical_id={self.canonical_id} used_yadis={self.used_yadis}>"
        )


def find_op_local_identifier(
    service_element: etree._Element, type_uris: Sequence[str]
) -> Optional[str]:
    """Find the OP-Local Identifier of an XRDS service element.

    ``openid:Delegate`` is consulted when an OpenID 1.x type is present and
    ``xrd:LocalID`` when the OpenID 2.0 type is. Every consulted tag must carry
    the same value.

    Raises:
        DiscoveryFailure: when the tags disagree
    """
    local_id_tags = []
    if OPENID_1_1_TYPE in type_uris or OPENID_1_0_TYPE in type_uris:
        local_id_tags.append(DELEGATE_TAG)

    if OPENID_2_0_TYPE in type_uris:
        local_id_tags.append(LOCAL_ID_TAG)

    local_id = None
    for local_id_tag in local_id_tags:
        for local_id_element in service_element.findall(local_id_tag):
            text = (local_id_element.text or "").strip()
            if local_id is None:
                local_id = text
            elif local_id != text:
                raise DiscoveryFailure(
                    f"More than one {local_id_tag} tag found in one service element"
                )

    return local_id


def best_matching_service(
    service: ServiceEndpoint, preferred_types: Sequence[str]
) -> int:
    """Index of the first preferred type the service supports, else len(preferred_types)."""
    for index, type_uri in enumerate(preferred_types):
        if type_uri in service.type_uris:
            return index
    return len(preferred_types)


def arrange_by_type(
    service_list: Sequence[ServiceEndpoint], preferred_types: Sequence[str]
) -> List[ServiceEndpoint]:
    """Order services by preferred type, keeping input order among equals."""
    prio_services = sorted(
        enumerate(service_list),
        key=lambda pair: (best_matching_service(pair[1], preferred_types), pair[0]),
    )
    return [service for _, service in prio_services]


def get_op_or_user_services(
    openid_services: Sequence[ServiceEndpoint],
    preferred_types: Sequence[str] = OPENID_TYPE_URIS,
) -> List[ServiceEndpoint]:
    """Return the OP-identifier services if there are any, otherwise every
    service sorted by ``preferred_types``."""
    op_services = [
        service
        for service in arrange_by_type(openid_services, [OPENID_IDP_2_0_TYPE])
        if OPENID_IDP_2_0_TYPE in service.type_uris
    ]
    if op_services:
        return op_services

    return arrange_by_type(openid_services, preferred_types)
