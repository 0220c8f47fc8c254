import hashlib
import re
from typing import Iterator, List

from siteqa.config import CHUNKING
from siteqa.ingestion.base import Chunk
from siteqa.ingestion.extractor import clean_text

DEFAULT_CHUNK_SIZE = CHUNKING["website"]["size"]
SENTENCE_BOUNDARY = re.compile(CHUNKING["website"]["sentence_boundary"])


def split_sentences(text: str) -> List[str]:
    return [s for s in SENTENCE_BOUNDARY.split(text) if s]


def iter_chunks(text: str, max_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[str]:
    """
    Yield sentence-aligned chunks of at most ``max_size`` characters.

    Sentences are packed greedily, joined by one space. A single sentence
    longer than ``max_size`` is yielded whole rather than cut.
    """
    if len(text) <= max_size:
        yield text
        return

    current = ""
    for sentence in split_sentences(text):
        if not current:
            current = sentence
        elif len(current) + 1 + len(sentence) <= max_size:
            current = f"{current} {sentence}"
        else:
            yield current
            current = sentence

    if current:
        yield current


def chunk_text(text: str, max_size: int = DEFAULT_CHUNK_SIZE) -> List[str]:
    return list(iter_chunks(text, max_size))


def chunk_id_prefix(url: str) -> str:
    digest = hashlib.md5(url.encode("utf-8")).hexdigest()[:12]
    return f"chunk-{digest}"


def build_chunks(
    url: str, title: str, content: str, max_size: int = DEFAULT_CHUNK_SIZE
) -> List[Chunk]:
    """Clean and chunk a page's text into Chunk records keyed by url + index."""
    cleaned = clean_text(content)
    if not cleaned:
        return []

    pieces = chunk_text(cleaned, max_size)
    prefix = chunk_id_prefix(url)
    return [
        Chunk(
            id=f"{prefix}-{index}",
            content=piece,
            metadata={
                "url": url,
                "title": title,
                "chunk_index": index,
                "total_chunks": len(pieces),
            },
        )
        for index, piece in enumerate(pieces)
    ]
