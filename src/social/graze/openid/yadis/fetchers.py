"""The fetch contract used by discovery.

Discovery only needs an HTTP GET with caller supplied headers and bounded
redirect following. Anything that implements ``Fetcher`` can be used; the
default implementation wraps a shared ``aiohttp.ClientSession``.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Protocol

import aiohttp
from multidict import CIMultiDict, CIMultiDictProxy

logger = logging.getLogger(__name__)

MAX_REDIRECTS = 5


class FetchingError(Exception):
    """The fetch could not produce a response."""

    def __init__(self, url: str, why: str) -> None:
        super().__init__(f"Error fetching {url}: {why}")
        self.url = url
        self.why = why


@dataclass
class HTTPResponse:
    status: int
    final_url: str
    body: str = ""
    headers: CIMultiDictProxy[str] = field(
        default_factory=lambda: CIMultiDictProxy(CIMultiDict())
    )

    @staticmethod
    def from_raw(
        status: int,
        final_url: str,
        body: str = "",
        headers: Optional[Mapping[str, str]] = None,
    ) -> "HTTPResponse":
        return HTTPResponse(
            status=status,
            final_url=final_url,
            body=body,
            headers=CIMultiDictProxy(CIMultiDict(headers or {})),
        )


class Fetcher(Protocol):
    async def fetch(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[str] = None,
        redirect_limit: int = MAX_REDIRECTS,
    ) -> HTTPResponse: ...


class AiohttpFetcher:
    """Fetcher backed by an aiohttp ClientSession.

    The session is owned by the caller, who also controls timeouts through it.
    """

    def __init__(
        self, session: aiohttp.ClientSession, user_agent: Optional[str] = None
    ) -> None:
        self._session = session
        self._user_agent = user_agent

    async def fetch(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[str] = None,
        redirect_limit: int = MAX_REDIRECTS,
    ) -> HTTPResponse:
        request_headers = dict(headers or {})
        if self._user_agent is not None:
            request_headers.setdefault("User-Agent", self._user_agent)

        method = "POST" if body is not None else "GET"

        # aiohttp raises once the redirect count reaches max_redirects, and treats
        # 0 as unlimited
        allow_redirects = redirect_limit > 0

        logger.debug(f"Fetching {method} {url} (redirect limit {redirect_limit})")

        try:
            async with self._session.request(
                method,
                url,
                headers=request_headers,
                data=body,
                allow_redirects=allow_redirects,
                max_redirects=redirect_limit + 1,
            ) as resp:
                text = await resp.text(errors="replace")
                return HTTPResponse(
                    status=resp.status,
                    final_url=str(resp.url),
                    body=text,
                    headers=resp.headers,
                )
        except aiohttp.TooManyRedirects as e:
            raise FetchingError(url, f"more than {redirect_limit} redirects") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchingError(url, f"{type(e).__name__}: {e}") from e
