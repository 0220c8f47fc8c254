import os
from contextlib import asynccontextmanager
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from siteqa.core.pipeline import RAGPipeline, build_pipeline
from siteqa.routers import chat_router, ingest_router
from siteqa.routers.dependencies import get_pipeline

# Load environment variables
load_dotenv()


# Library endpoints
class SourceItem(BaseModel):
    url: str
    title: str
    chunks: int


class LibraryResponse(BaseModel):
    sources: List[SourceItem]


library_router = APIRouter(tags=["library"])


@library_router.get("/library", response_model=LibraryResponse)
def get_library(pipeline: RAGPipeline = Depends(get_pipeline)):
    """List ingested websites with their chunk counts."""
    return LibraryResponse(sources=[SourceItem(**s) for s in pipeline.library()])


@library_router.delete("/library")
def clear_library(pipeline: RAGPipeline = Depends(get_pipeline)):
    pipeline.clear()
    return {"message": "Cleared all stored content"}


@library_router.get("/health")
def health(pipeline: RAGPipeline = Depends(get_pipeline)):
    return {"status": "ok", "chunks": pipeline.vector_store.count()}


def create_app(pipeline: Optional[RAGPipeline] = None) -> FastAPI:
    """Build the API; a pipeline is built from the environment unless one is given."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        print("[DEBUG] Starting up SiteQA API...", flush=True)
        app.state.pipeline = pipeline or build_pipeline()
        app.state.pipeline.open()
        try:
            yield
        finally:
            app.state.pipeline.close()
            print("[DEBUG] Pipeline closed", flush=True)

    app = FastAPI(
        title="SiteQA API",
        description="Ask questions about a website's content",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        print(f"[MIDDLEWARE] Incoming request: {request.method} {request.url}", flush=True)
        response = await call_next(request)
        print(f"[MIDDLEWARE] Response status: {response.status_code}", flush=True)
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,  # must be False when allow_origins=["*"]
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(ingest_router, prefix="/api")
    app.include_router(chat_router, prefix="/api")
    app.include_router(library_router, prefix="/api")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
