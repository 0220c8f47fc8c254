from siteqa.ingestion.base import BaseIngester, Chunk, CrawlResult, PageContent
from siteqa.ingestion.fetcher import BaseFetcher, FetchResponse, HttpFetcher
from siteqa.ingestion.website import WebsiteIngester

__all__ = [
    "BaseIngester",
    "Chunk",
    "CrawlResult",
    "PageContent",
    "BaseFetcher",
    "FetchResponse",
    "HttpFetcher",
    "WebsiteIngester",
]
