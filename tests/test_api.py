import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import FakeFetcher, page, sentence
from siteqa.core.embedder import HashEmbedder
from siteqa.core.pipeline import RAGPipeline
from siteqa.core.vector_store import InMemoryVectorStore
from siteqa.ingestion.fetcher import HttpFetcher
from siteqa.ingestion.website import WebsiteIngester
from siteqa.main import create_app

ROOT = "https://example.com"
PROSE = " ".join([sentence("lorem"), sentence("ipsum"), sentence("zebra")])


@pytest.fixture
def client():
    site = {
        ROOT: page("Example", PROSE, links=["/about"]),
        f"{ROOT}/about": page("About", "About us."),
    }
    pipeline = RAGPipeline(
        embedder=HashEmbedder(dimensions=16),
        vector_store=InMemoryVectorStore(dimensions=16),
        ingester=WebsiteIngester(fetcher=FakeFetcher(site)),
    )
    with TestClient(create_app(pipeline)) as c:
        yield c


def test_ingest_website(client):
    response = client.post("/api/ingest/website", json={"url": "example.com", "depth": 1})
    assert response.status_code == 200
    data = response.json()
    assert data["url"] == ROOT
    assert data["title"] == "Example"
    assert data["chunks_created"] == 2
    assert data["pages_crawled"] == 2
    assert data["crawled_urls"] == [ROOT, f"{ROOT}/about"]
    assert data["metadata"]["title"] == "Example"


def test_ingest_invalid_url_is_400(client):
    response = client.post("/api/ingest/website", json={"url": ""})
    assert response.status_code == 400


def test_ingest_unreachable_root_is_502(client):
    response = client.post("/api/ingest/website", json={"url": "https://nowhere.test"})
    assert response.status_code == 502


def test_query_and_chat(client):
    client.post("/api/ingest/website", json={"url": ROOT})

    response = client.post("/api/chat/query", json={"query": "zebra", "url": ROOT})
    assert response.status_code == 200
    data = response.json()
    assert data["chunks"][0]["metadata"]["chunk_index"] == 1
    assert data["context"].startswith("[Chunk 1/2 from Example]")

    response = client.post("/api/chat", json={"query": "zebra", "url": ROOT})
    assert response.status_code == 200
    assert response.json()["answer"].startswith("I found the following information about your query:")


def test_query_unknown_url_is_404(client):
    response = client.post("/api/chat/query", json={"query": "zebra", "url": "https://missing.test"})
    assert response.status_code == 404
    assert response.json()["detail"] == "No content found for the provided URL"


def test_empty_query_is_400(client):
    response = client.post("/api/chat", json={"query": " "})
    assert response.status_code == 400


def test_library_lists_and_clears(client):
    client.post("/api/ingest/website", json={"url": ROOT})

    response = client.get("/api/library")
    assert response.json() == {"sources": [{"url": ROOT, "title": "Example", "chunks": 2}]}

    assert client.delete("/api/library").status_code == 200
    assert client.get("/api/library").json() == {"sources": []}


def test_validate_url(client, monkeypatch):
    def handler(request):
        return httpx.Response(200 if request.url.path != "/gone" else 404)

    monkeypatch.setattr(
        "siteqa.routers.ingest.HttpFetcher",
        lambda: HttpFetcher(transport=httpx.MockTransport(handler)),
    )

    ok = client.post("/api/ingest/validate-url", json={"url": "example.com"})
    assert ok.status_code == 200
    assert ok.json()["url"] == ROOT

    gone = client.post("/api/ingest/validate-url", json={"url": "example.com/gone"})
    assert gone.status_code == 400

    blank = client.post("/api/ingest/validate-url", json={"url": "  "})
    assert blank.status_code == 400


def test_health_reports_chunk_count(client):
    assert client.get("/api/health").json() == {"status": "ok", "chunks": 0}
    client.post("/api/ingest/website", json={"url": ROOT})
    assert client.get("/api/health").json()["chunks"] == 2
