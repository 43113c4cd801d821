"""XRDS document parsing.

Turns a Yadis document into service elements. An XRDS holds one or more XRD
elements; the last one describes the identifier that was resolved, earlier ones
describe the authorities it was resolved through (XRI only).
"""

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from lxml import etree

from social.graze.openid.xri import provider_is_authoritative, root_authority

logger = logging.getLogger(__name__)

XRD_NS_2_0 = "xri://$xrd*($v*2.0)"
XRDS_NS = "xri://$xrds"
OPENID_1_0_NS = "http://openid.net/xmlns/1.0"

XRDS_TAG = f"{{{XRDS_NS}}}XRDS"
XRD_TAG = f"{{{XRD_NS_2_0}}}XRD"
SERVICE_TAG = f"{{{XRD_NS_2_0}}}Service"
TYPE_TAG = f"{{{XRD_NS_2_0}}}Type"
URI_TAG = f"{{{XRD_NS_2_0}}}URI"
LOCAL_ID_TAG = f"{{{XRD_NS_2_0}}}LocalID"
CANONICAL_ID_TAG = f"{{{XRD_NS_2_0}}}CanonicalID"
DELEGATE_TAG = f"{{{OPENID_1_0_NS}}}Delegate"


_PARSER = etree.XMLParser(
    resolve_entities=False, no_network=True, remove_comments=True, huge_tree=False
)


class XRDSError(Exception):
    """The document is not a usable XRDS."""

    def __init__(self, message: str, reason: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.reason = reason


class XRDSFraud(XRDSError):
    """A CanonicalID is not authoritative for the identifier it claims."""


@dataclass(frozen=True)
class ServiceElement:
    """One (service, URI) pair from an XRDS document."""

    yadis_url: str
    uri: Optional[str]
    type_uris: Tuple[str, ...]
    element: etree._Element

    def match_types(self, type_uris: Tuple[str, ...]) -> List[str]:
        """Return the given types that this service advertises, in given order."""
        return [type_uri for type_uri in type_uris if type_uri in self.type_uris]


def parse_xrds(text: str) -> etree._Element:
    """Parse text into an XRDS root element.

    Raises:
        XRDSError: when the text is not XML or not an XRDS
    """
    if text is None:
        raise XRDSError("No XRDS document")

    data = text.encode("utf-8") if isinstance(text, str) else text
    try:
        root = etree.fromstring(data, parser=_PARSER)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise XRDSError("Error parsing document as XML", e) from e

    if root is None or root.tag != XRDS_TAG:
        raise XRDSError(f"Not an XRDS document: root is {getattr(root, 'tag', None)!r}")

    return root


def get_yadis_xrd(xrds_tree: etree._Element) -> etree._Element:
    """Return the XRD element that describes the resolved identifier."""
    xrds = xrds_tree.findall(XRD_TAG)
    if not xrds:
        raise XRDSError("No XRD present in tree")
    return xrds[-1]


def _priority(element: etree._Element) -> float:
    value = element.get("priority")
    if value is None:
        return float("inf")
    try:
        return int(value)
    except ValueError:
        return float("inf")


def prio_sort(elements: List[etree._Element]) -> List[etree._Element]:
    """Sort by priority attribute, missing priority last, ties in document order."""
    return sorted(elements, key=_priority)


def iter_services(xrds_tree: etree._Element) -> Iterator[etree._Element]:
    xrd = get_yadis_xrd(xrds_tree)
    return iter(prio_sort(xrd.findall(SERVICE_TAG)))


def get_type_uris(service_element: etree._Element) -> List[str]:
    type_uris = [
        (type_element.text or "").strip()
        for type_element in service_element.findall(TYPE_TAG)
    ]
    return [type_uri for type_uri in type_uris if type_uri]


def get_uris(service_element: etree._Element) -> List[str]:
    return [
        (uri_element.text or "").strip()
        for uri_element in prio_sort(service_element.findall(URI_TAG))
    ]


def get_canonical_id(iname: str, xrds_tree: etree._Element) -> Optional[str]:
    """Return the CanonicalID of the resolved XRI.

    Each XRD's CanonicalID must be issued by the authority of the XRD before it,
    and the first by the root authority of ``iname``.

    Raises:
        XRDSFraud: when a CanonicalID is not authoritative
    """
    xrd_list = list(reversed(xrds_tree.findall(XRD_TAG)))
    if not xrd_list:
        return None

    canonical_elements = xrd_list[0].findall(CANONICAL_ID_TAG)
    if not canonical_elements or not canonical_elements[0].text:
        return None

    canonical_id = canonical_elements[0].text.strip()
    child_id = canonical_id.lower()

    for xrd in xrd_list[1:]:
        if "!" not in child_id:
            raise XRDSFraud(f"{child_id!r} has no parent authority")
        parent_sought = child_id[: child_id.rindex("!")]
        parent = (xrd.findtext(CANONICAL_ID_TAG) or "").strip()
        if parent_sought != parent.lower():
            raise XRDSFraud(f"{child_id!r} can not come from {parent!r}")
        child_id = parent_sought

    root = root_authority(iname)
    if not provider_is_authoritative(root, child_id):
        raise XRDSFraud(f"{child_id!r} can not come from root {root!r}")

    return canonical_id


def expand_service(yadis_url: str, service_element: etree._Element) -> List[ServiceElement]:
    """Produce one ServiceElement per URI, or one without a URI."""
    type_uris = tuple(get_type_uris(service_element))
    uris = get_uris(service_element) or [None]
    return [
        ServiceElement(
            yadis_url=yadis_url,
            uri=uri,
            type_uris=type_uris,
            element=service_element,
        )
        for uri in uris
    ]


def apply_filter(yadis_url: str, text: str) -> List[ServiceElement]:
    """Parse an XRDS document and list its services in priority order.

    Raises:
        XRDSError: when the document does not parse
    """
    tree = parse_xrds(text)
    elements: List[ServiceElement] = []
    for service_element in iter_services(tree):
        elements.extend(expand_service(yadis_url, service_element))
    return elements

