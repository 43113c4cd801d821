"""
Yadis Discovery

This package implements the Yadis protocol used to find service documents for
an identifier, and the XRI proxy resolution that produces the same documents
for XRIs.

Key Components:
- accept.py: Accept header generation and matching
- fetchers.py: The fetch contract and its aiohttp implementation
- discovery.py: Content negotiated fetch and X-XRDS-Location following
- html.py: HTML ``<link>`` and ``<meta http-equiv>`` scanning
- xrds.py: XRDS parsing, service ordering, and CanonicalID verification
- xrires.py: XRI proxy resolver client
"""
