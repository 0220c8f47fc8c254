from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx

from siteqa.config import CRAWL
from siteqa.core.errors import FetchError


@dataclass(frozen=True)
class FetchResponse:
    url: str
    status_code: int
    text: str
    content_type: str = ""


class BaseFetcher(ABC):
    """Async page fetcher. ``session()`` scopes the connections used by one crawl."""

    @asynccontextmanager
    async def session(self) -> AsyncIterator["BaseFetcher"]:
        yield self

    @abstractmethod
    async def fetch(self, url: str) -> FetchResponse:
        """Fetch a page; raise FetchError on transport errors and non-2xx status."""
        pass


class HttpSession(BaseFetcher):
    """Fetches through one AsyncClient; opened and closed by ``HttpFetcher.session()``."""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def fetch(self, url: str) -> FetchResponse:
        try:
            resp = await self._client.get(url)
        except httpx.TimeoutException as exc:
            raise FetchError(url, "request timed out") from exc
        except httpx.HTTPError as exc:
            raise FetchError(url, f"{type(exc).__name__}: {exc}") from exc

        if not resp.is_success:
            raise FetchError(url, f"HTTP {resp.status_code}", status_code=resp.status_code)

        return FetchResponse(
            url=str(resp.url),
            status_code=resp.status_code,
            text=resp.text,
            content_type=resp.headers.get("content-type", ""),
        )

    async def head(self, url: str) -> int:
        try:
            resp = await self._client.head(url)
        except httpx.HTTPError as exc:
            raise FetchError(url, f"{type(exc).__name__}: {exc}") from exc
        return resp.status_code


class HttpFetcher(BaseFetcher):
    """
    Shared fetch configuration. Each ``session()`` gets its own AsyncClient,
    so concurrent crawls never share or close each other's connections.
    """

    def __init__(
        self,
        timeout: float = CRAWL["request_timeout"],
        connect_timeout: float = CRAWL["connect_timeout"],
        user_agent: str = CRAWL["user_agent"],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.user_agent = user_agent
        self._transport = transport

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
            transport=self._transport,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[HttpSession]:
        client = self._build_client()
        try:
            yield HttpSession(client)
        finally:
            await client.aclose()

    async def fetch(self, url: str) -> FetchResponse:
        async with self.session() as session:
            return await session.fetch(url)

    async def head(self, url: str) -> int:
        """Status code of a HEAD request, used to check that a URL is reachable."""
        async with self.session() as session:
            return await session.head(url)
