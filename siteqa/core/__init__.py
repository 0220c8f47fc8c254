from siteqa.core.embedder import BaseEmbedder, HashEmbedder, JinaEmbedder
from siteqa.core.vector_store import BaseVectorStore, InMemoryVectorStore, MilvusVectorStore
from siteqa.core.llm import LLMWrapper
from siteqa.core.retriever import Retriever

__all__ = [
    "BaseEmbedder",
    "HashEmbedder",
    "JinaEmbedder",
    "BaseVectorStore",
    "InMemoryVectorStore",
    "MilvusVectorStore",
    "LLMWrapper",
    "Retriever",
]
