"""
OpenID Discovery

This package resolves user-supplied OpenID identifiers (URLs and XRIs) into a
claimed identifier and a ranked list of provider endpoints, and checks return
URLs against relying-party trust roots (realms).

Key Components:
- urinorm: Identifier classification and RFC 3986 URL normalization
- yadis: Yadis content negotiation, XRDS parsing, HTML scanning, XRI proxy resolution
- consumer: Service endpoints, ranking, and the top-level ``discover`` entry point
- trustroot: Realm parsing, sanity checks, and return URL validation
- session: Storage of the chosen endpoint between authentication steps
- config / metrics: Settings, logging, error reporting, and metrics backends

Discovery Flow:
1. Classify the identifier as an XRI or a URL
2. XRIs are resolved through a proxy resolver to an XRDS document
3. URLs are normalized and fetched asking for an XRDS document, following any
   Yadis location pointer
4. When no OpenID services are found, HTML ``<link>`` markers are used instead
5. OP identifier endpoints displace all others; the rest are ranked by protocol
   version preference
"""
