from typing import List, Optional
import argparse
import aiohttp
import asyncio
import logging

logger = logging.getLogger(__name__)

from aio_statsd import TelegrafStatsdClient

from social.graze.openid.config import (
    DiscoveryConfig,
    Settings,
    configure_logging,
    configure_sentry,
)
from social.graze.openid.consumer.discover import discover
from social.graze.openid.errors import DiscoveryFailure
from social.graze.openid.metrics import create_metrics_client
from social.graze.openid.yadis.fetchers import AiohttpFetcher


async def realMain(argv: Optional[List[str]] = None) -> None:
    settings = Settings()
    configure_sentry(settings)
    defaults = settings.discovery_config()

    parser = argparse.ArgumentParser(
        prog="openid", description="Discover OpenID endpoints"
    )
    parser.add_argument("identifier", nargs="+", help="The identifier(s) to discover.")
    parser.add_argument(
        "--proxy-url",
        default=defaults.proxy_url,
        help="The XRI proxy resolver to use for XRI identifiers.",
    )
    parser.add_argument(
        "--max-redirects",
        type=int,
        default=defaults.max_redirects,
        help="The maximum number of redirects followed by each fetch.",
    )

    args = vars(parser.parse_args(argv))

    identifiers: List[str] = args.get("identifier", [])
    config = DiscoveryConfig(
        preferred_types=defaults.preferred_types,
        proxy_url=args.get("proxy_url"),
        max_redirects=args.get("max_redirects"),
    )

    telegraf_client = None
    if settings.metrics_backend == "telegraf":
        telegraf_client = TelegrafStatsdClient(
            host=settings.statsd_host, port=settings.statsd_port, debug=settings.debug
        )
        await telegraf_client.connect()
    metrics_client = create_metrics_client(
        settings.metrics_backend,
        settings.statsd_host,
        settings.statsd_port,
        telegraf_client=telegraf_client,
        debug=settings.debug,
    )

    try:
        async with aiohttp.ClientSession(timeout=settings.client_timeout()) as session:
            fetcher = AiohttpFetcher(session, user_agent=settings.user_agent)
            for identifier in identifiers:
                try:
                    claimed_id, services = await discover(
                        fetcher, identifier, config, metrics_client=metrics_client
                    )
                except DiscoveryFailure:
                    logging.exception("Exception discovering identifier %s", identifier)
                    continue

                print(f"claimed_id {claimed_id}")
                for service in services:
                    print(f"  {service}")
    finally:
        await metrics_client.close()


def main() -> None:
    configure_logging()
    asyncio.run(realMain())


if __name__ == "__main__":
    main()
