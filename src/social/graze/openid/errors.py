"""Exceptions that cross the discovery boundary.

Only ``DiscoveryFailure`` (and its ``NormalizationFailure`` subclass) are raised
to callers of ``discover``. Everything else is degraded to an empty result
inside the engine.
"""

from typing import Any, Optional


class DiscoveryFailure(Exception):
    """Discovery exhausted every strategy or hit an unrecoverable error.

    Carries the last HTTP response (if any) for diagnostics.
    """

    def __init__(self, message: str, http_response: Optional[Any] = None) -> None:
        super().__init__(message)
        self.http_response = http_response
        self.identity_url: Optional[str] = None


class NormalizationFailure(DiscoveryFailure):
    """An identifier could not be normalized."""

    def __init__(self, value: str, reason: str) -> None:
        super().__init__(f"Error normalizing {value!r}: {reason}")
        self.value = value
        self.reason = reason


class TrustRootParseFailure(ValueError):
    """A realm is not a well-formed http or https URL."""

    def __init__(self, trust_root: str, reason: str) -> None:
        super().__init__(f"Invalid trust root {trust_root!r}: {reason}")
        self.trust_root = trust_root
