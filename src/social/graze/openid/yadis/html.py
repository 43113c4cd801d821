"""HTML scanning for discovery markers.

Two things are looked for in HTML documents:
- ``<link rel="...">`` elements carrying legacy OpenID provider markers
- ``<meta http-equiv="X-XRDS-Location">`` pointing at a Yadis document

Only the document head is scanned when one is present.
"""

import logging
from typing import Dict, List, Optional

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

YADIS_HEADER_NAME = "X-XRDS-Location"


def _head(html: str) -> Tag:
    soup = BeautifulSoup(html or "", "html.parser")
    return soup.head or soup


def parse_link_attrs(html: str) -> List[Dict[str, str]]:
    """Return the attributes of every ``<link>`` element, in document order.

    ``rel`` is normalized to a lower-cased, space separated string.
    """
    links = []
    for link in _head(html).find_all("link"):
        attrs: Dict[str, str] = {}
        for name, value in link.attrs.items():
            if isinstance(value, list):
                value = " ".join(value)
            attrs[name.lower()] = value
        if "rel" in attrs:
            attrs["rel"] = " ".join(attrs["rel"].lower().split())
        links.append(attrs)
    return links


def find_links_rel(link_attrs: List[Dict[str, str]], target_rel: str) -> List[Dict[str, str]]:
    target_rel = target_rel.lower()
    return [
        attrs for attrs in link_attrs if target_rel in attrs.get("rel", "").split()
    ]


def find_first_href(link_attrs: List[Dict[str, str]], target_rel: str) -> Optional[str]:
    """Return the href of the first link with ``target_rel``, if any."""
    for attrs in find_links_rel(link_attrs, target_rel):
        href = attrs.get("href")
        if href:
            return href.strip()
    return None


def find_html_meta(html: str) -> Optional[str]:
    """Return the content of the X-XRDS-Location meta element, if any."""
    for meta in _head(html).find_all("meta"):
        http_equiv = meta.get("http-equiv")
        if http_equiv is None or http_equiv.lower() != YADIS_HEADER_NAME.lower():
            continue
        content = meta.get("content")
        if content:
            return content.strip()
    return None
