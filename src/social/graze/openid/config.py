"""
Configuration Module for OpenID Discovery

This module defines configuration for the discovery engine, using Pydantic for
settings validation.

Two layers are kept apart:
1. ``Settings`` is loaded from environment variables with defaults suitable for
   development, and describes the process (proxy resolver, Redis, metrics,
   error reporting).
2. ``DiscoveryConfig`` is immutable data handed to every discovery call. It
   carries the Preference Table, the XRI proxy resolver and the redirect cap,
   so tests and callers can substitute their own values without touching any
   process-wide state.
"""

import json
import logging
import os
from logging.config import dictConfig
from typing import Literal, Optional, Tuple

import sentry_sdk
from aiohttp import ClientTimeout
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, RedisDsn
from pydantic_settings import BaseSettings

from social.graze.openid.consumer.endpoint import OPENID_TYPE_URIS

logger = logging.getLogger(__name__)

DEFAULT_PROXY_URL = "https://xri.net/"
"""Public XRI proxy resolver."""

MAX_REDIRECTS = 5
"""Hard cap on redirect hops followed by a single fetch."""

ENDPOINT_SESSION_TTL = 600
"""Seconds an endpoint session is kept by default."""


class DiscoveryConfig(BaseModel):
    """Immutable configuration injected into each discovery call."""

    model_config = ConfigDict(frozen=True)

    preferred_types: Tuple[str, ...] = OPENID_TYPE_URIS
    """Protocol type URIs in order of preference, used for ranking."""

    proxy_url: str = DEFAULT_PROXY_URL
    """Base URL of the XRI proxy resolver, with a trailing slash."""

    max_redirects: int = Field(default=MAX_REDIRECTS, ge=0)
    """Maximum number of redirects followed by one fetch."""


DEFAULT_DISCOVERY_CONFIG: DiscoveryConfig = DiscoveryConfig()


class Settings(BaseSettings):
    """
    Process settings for OpenID discovery.

    Values are read from environment variables, with aliases provided where a
    conventional variable name already exists (for example ``REDIS_URL``).
    """

    debug: bool = False
    """
    Enable debug mode for verbose logging.
    Set with DEBUG=true environment variable.
    """

    xri_proxy_url: str = DEFAULT_PROXY_URL
    """
    XRI proxy resolver used for XRI identifiers.
    Set with XRI_PROXY_URL environment variable.
    """

    max_redirects: int = MAX_REDIRECTS
    """
    Maximum number of redirects followed while fetching an identifier.
    Set with MAX_REDIRECTS environment variable.
    """

    fetch_timeout: float = 30.0
    """
    Total timeout in seconds for a single fetch.
    Set with FETCH_TIMEOUT environment variable.
    """

    user_agent: str = "graze-openid-discovery/1.0"
    """
    User-Agent header sent with discovery requests.
    Set with USER_AGENT environment variable.
    """

    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. Optional, no error reporting if not set.
    Set with SENTRY_DSN environment variable.
    """

    redis_dsn: RedisDsn = Field(
        "redis://valkey:6379/1?decode_responses=True",
        validation_alias=AliasChoices("redis_dsn", "redis_url"),
    )  # type: ignore
    """
    Redis connection string for the endpoint session store.
    Set with REDIS_DSN or REDIS_URL environment variables.
    """

    endpoint_session_ttl: int = ENDPOINT_SESSION_TTL
    """
    Seconds a discovered endpoint is kept between the begin and complete
    steps of an authentication handshake.
    Set with ENDPOINT_SESSION_TTL environment variable.
    """

    metrics_backend: Literal["telegraf", "none"] = "none"
    """
    Metrics backend, either 'telegraf' or 'none'.
    Set with METRICS_BACKEND environment variable.
    """

    statsd_host: str = Field(alias="TELEGRAF_HOST", default="telegraf")
    """
    StatsD/Telegraf host for metrics collection.
    Set with TELEGRAF_HOST environment variable.
    """

    statsd_port: int = Field(alias="TELEGRAF_PORT", default=8125)
    """
    StatsD/Telegraf port for metrics collection.
    Set with TELEGRAF_PORT environment variable.
    """

    def discovery_config(self) -> DiscoveryConfig:
        return DiscoveryConfig(
            proxy_url=self.xri_proxy_url, max_redirects=self.max_redirects
        )

    def client_timeout(self) -> ClientTimeout:
        return ClientTimeout(total=self.fetch_timeout)


def configure_logging() -> None:
    """Load logging configuration from LOGGING_CONFIG_FILE, if set."""
    logging_config_file = os.getenv("LOGGING_CONFIG_FILE", "")

    if len(logging_config_file) > 0:
        with open(logging_config_file) as fl:
            dictConfig(json.load(fl))
        return

    logging.basicConfig()
    logging.getLogger().setLevel(logging.DEBUG)


def configure_sentry(settings: Settings) -> None:
    if settings.sentry_dsn:
        sentry_sdk.init(dsn=settings.sentry_dsn, send_default_pii=False)
