from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from siteqa.core.errors import InputValidationError, NoContentError
from siteqa.core.pipeline import RAGPipeline
from siteqa.ingestion.base import Chunk
from siteqa.routers.dependencies import get_pipeline

router = APIRouter(prefix="/chat", tags=["chat"])


class ChatRequest(BaseModel):
    query: str
    url: Optional[str] = None   # absent means search across all stored content


class ChunkMetadata(BaseModel):
    url: str
    title: str
    chunk_index: int
    total_chunks: int


class ChunkInfo(BaseModel):
    id: str
    content: str
    metadata: ChunkMetadata


class QueryResponse(BaseModel):
    query: str
    url: str
    chunks: List[ChunkInfo]
    context: str


class ChatResponse(BaseModel):
    query: str
    url: str
    answer: str
    chunks: List[ChunkInfo]


def _chunk_info(chunk: Chunk) -> ChunkInfo:
    return ChunkInfo(id=chunk.id, content=chunk.content, metadata=ChunkMetadata(**chunk.metadata))


@router.post("/query", response_model=QueryResponse)
def query(request: ChatRequest, pipeline: RAGPipeline = Depends(get_pipeline)):
    """Return the relevant chunks and assembled context for a query."""
    try:
        result = pipeline.query(request.query, request.url)
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NoContentError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return QueryResponse(
        query=request.query,
        url=request.url or "all",
        chunks=[_chunk_info(c) for c in result.chunks],
        context=result.context,
    )


@router.post("", response_model=ChatResponse)
def chat(request: ChatRequest, pipeline: RAGPipeline = Depends(get_pipeline)):
    """Answer a question from the stored website content."""
    try:
        result = pipeline.chat(request.query, request.url)
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NoContentError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return ChatResponse(
        query=request.query,
        url=request.url or "all",
        answer=result.answer,
        chunks=[_chunk_info(c) for c in result.chunks],
    )
