"""Trust root (realm) parsing and matching.

A relying party registers a realm such as ``https://*.example.com/app`` and may
only request authorization for return URLs that fall under it. Parsing and
validation never raise to callers; anything malformed is simply untrusted.
"""

import logging
from typing import Collection, Optional, Tuple
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict

from social.graze.openid.errors import TrustRootParseFailure

logger = logging.getLogger(__name__)

TOP_LEVEL_DOMAINS = frozenset(
    "com|edu|gov|int|mil|net|org|biz|info|name|museum|coop|aero|ac|ad|ae|af|ag|"
    "ai|al|am|an|ao|aq|ar|as|at|au|aw|az|ba|bb|bd|be|bf|bg|bh|bi|bj|bm|bn|bo|br|"
    "bs|bt|bv|bw|by|bz|ca|cc|cd|cf|cg|ch|ci|ck|cl|cm|cn|co|cr|cu|cv|cx|cy|cz|de|"
    "dj|dk|dm|do|dz|ec|ee|eg|eh|er|es|et|fi|fj|fk|fm|fo|fr|ga|gd|ge|gf|gg|gh|gi|"
    "gl|gm|gn|gp|gq|gr|gs|gt|gu|gw|gy|hk|hm|hn|hr|ht|hu|id|ie|il|im|in|io|iq|ir|"
    "is|it|je|jm|jo|jp|ke|kg|kh|ki|km|kn|kp|kr|kw|ky|kz|la|lb|lc|li|lk|lr|ls|lt|"
    "lu|lv|ly|ma|mc|md|mg|mh|mk|ml|mm|mn|mo|mp|mq|mr|ms|mt|mu|mv|mw|mx|my|mz|na|"
    "nc|ne|nf|ng|ni|nl|no|np|nr|nu|nz|om|pa|pe|pf|pg|ph|pk|pl|pm|pn|pr|ps|pt|pw|"
    "py|qa|re|ro|ru|rw|sa|sb|sc|sd|se|sg|sh|si|sj|sk|sl|sm|sn|so|sr|st|sv|sy|sz|"
    "tc|td|tf|tg|th|tj|tk|tm|tn|to|tp|tr|tt|tv|tw|tz|ua|ug|uk|um|us|uy|uz|va|vc|"
    "ve|vg|vi|vn|vu|wf|ws|ye|yt|yu|za|zm|zw".split("|")
)

DEFAULT_PORTS = {"http": 80, "https": 443}

WILDCARD_MARKER = "://*."


def _parse_url(url: str) -> Tuple[str, str, int, str]:
    """Split a URL into (scheme, host, port, path).

    Raises:
        TrustRootParseFailure: when the URL is not a usable http(s) URL
    """
    try:
        parsed = urlsplit(url)
        port = parsed.port
    except ValueError as e:
        raise TrustRootParseFailure(url, str(e)) from e

    proto = parsed.scheme.lower()
    if proto not in DEFAULT_PORTS:
        raise TrustRootParseFailure(url, f"unsupported scheme {proto!r}")

    host = parsed.hostname
    if not host:
        raise TrustRootParseFailure(url, "no host")

    if port is None:
        port = DEFAULT_PORTS[proto]

    return proto, host, port, parsed.path or "/"


class TrustRoot(BaseModel):
    """A parsed realm. Immutable once parsed."""

    model_config = ConfigDict(frozen=True)

    unparsed: str
    proto: str
    wildcard: bool
    host: str
    port: int
    path: str

    @classmethod
    def parse(cls, trust_root: str) -> Optional["TrustRoot"]:
        """Parse a realm, returning None when it is not a valid http(s) URL."""
        if not isinstance(trust_root, str):
            return None

        unparsed = trust_root
        wildcard = WILDCARD_MARKER in trust_root
        if wildcard:
            trust_root = trust_root.replace("*.", "", 1)

        try:
            proto, host, port, path = _parse_url(trust_root)
        except TrustRootParseFailure as e:
            logger.debug("Rejecting trust root: %s", e)
            return None

        return cls(
            unparsed=unparsed,
            proto=proto,
            wildcard=wildcard,
            host=host,
            port=port,
            path=path,
        )

    def is_sane(self, top_level_domains: Collection[str] = TOP_LEVEL_DOMAINS) -> bool:
        """Reject realms that would match a whole top-level domain.

        The check requires a known top-level label and at least one label
        beneath what looks like the public suffix. Two letter country codes
        take a second level of three letters or fewer as part of the suffix
        (``co.uk``); three letter TLDs take none. Longer TLDs never pass.
        """
        if self.host == "localhost":
            return True

        host_parts = self.host.split(".")
        if host_parts[-1] not in top_level_domains:
            return False

        host: list[str] = []
        if len(host_parts[-1]) == 2 and len(host_parts) > 1:
            if len(host_parts[-2]) <= 3:
                host = host_parts[:-2]
        elif len(host_parts[-1]) == 3:
            host = host_parts[:-1]

        return len(host) > 0

    def validate_url(self, url: str) -> bool:
        """Check whether ``url`` falls under this trust root."""
        try:
            proto, host, port, path = _parse_url(url)
        except TrustRootParseFailure:
            return False

        if proto != self.proto:
            return False
        if port != self.port:
            return False
        if not path.startswith(self.path):
            return False

        if self.wildcard:
            return host == self.host or host.endswith("." + self.host)
        return host == self.host


def check_sanity(
    trust_root: str, top_level_domains: Collection[str] = TOP_LEVEL_DOMAINS
) -> bool:
    parsed = TrustRoot.parse(trust_root)
    if parsed is None:
        return False
    return parsed.is_sane(top_level_domains)


def trust_root_validate(realm: str, return_url: str) -> bool:
    """Check that ``return_url`` may be used with ``realm``. Never raises."""
    parsed = TrustRoot.parse(realm)
    if parsed is None:
        return False
    return parsed.validate_url(return_url)
