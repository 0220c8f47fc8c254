from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from siteqa.config import CRAWL
from siteqa.core.errors import FetchError, InputValidationError
from siteqa.core.pipeline import RAGPipeline
from siteqa.ingestion.fetcher import HttpFetcher
from siteqa.ingestion.links import validate_and_normalize_url
from siteqa.routers.dependencies import get_pipeline

router = APIRouter(prefix="/ingest", tags=["ingestion"])


class WebsiteRequest(BaseModel):
    url: str
    depth: int = CRAWL["default_depth"]


class IngestResponse(BaseModel):
    url: str
    title: str
    chunks_created: int
    pages_crawled: int
    crawled_urls: List[str]
    paragraphs: int
    metadata: Dict[str, str]


class UrlRequest(BaseModel):
    url: str


class ValidateUrlResponse(BaseModel):
    url: str
    message: str


@router.post("/website", response_model=IngestResponse)
async def ingest_website(request: WebsiteRequest, pipeline: RAGPipeline = Depends(get_pipeline)):
    """Crawl a website (depth clamped to 0..3) and index its content."""
    try:
        report = await pipeline.ingest_website(request.url, request.depth)
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FetchError as e:
        print(f"[ERROR] Root page fetch failed: {e}", flush=True)
        raise HTTPException(status_code=502, detail=f"Failed to process URL: {e.reason}")

    crawl = report.crawl
    return IngestResponse(
        url=report.url,
        title=crawl.title,
        chunks_created=len(report.chunks),
        pages_crawled=len(crawl.pages),
        crawled_urls=sorted(crawl.crawled_urls),
        paragraphs=len(crawl.paragraphs),
        metadata=crawl.metadata,
    )


@router.post("/validate-url", response_model=ValidateUrlResponse)
async def validate_url(request: UrlRequest):
    """Check that a URL is well formed and answers a HEAD request."""
    try:
        url = validate_and_normalize_url(request.url)
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        status_code = await HttpFetcher().head(url)
    except FetchError:
        raise HTTPException(status_code=400, detail="Could not access the URL")

    if status_code >= 400:
        raise HTTPException(status_code=400, detail=f"URL returned status code {status_code}")

    return ValidateUrlResponse(url=url, message="URL is valid and accessible")
