CRAWL = {
    "default_depth": 0,
    "max_depth": 3,          # requested depth is clamped to [0, max_depth]
    "page_budget": 20,       # distinct pages fetched per crawl, shared across the whole traversal
    "request_timeout": 20,
    "connect_timeout": 10,
    "max_crawl_seconds": 120,
    "user_agent": "SiteQA-Scraper/1.0",
}

EXTRACTION = {
    "fallback_title": "Untitled Page",
    "strip_selectors": "script, style, nav, footer, header, aside, iframe, noscript",
    "content_selectors": [
        "main",
        "article",
        "#content",
        ".content",
        ".main",
        ".article",
        ".post",
        ".post-content",
        ".entry-content",
    ],
    # A content container is only accepted when its cleaned text is longer than this.
    "min_main_content_chars": 200,
    "paragraph_selectors": "p, h1, h2, h3, h4, h5, h6, li",
}

LINKS = {
    "allowed_schemes": ("http", "https"),
    "skip_extensions": (
        ".pdf", ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp", ".ico",
        ".mp4", ".mp3", ".wav", ".zip", ".tar", ".gz", ".exe", ".dmg",
    ),
}

CHUNKING = {
    "website": {
        "size": 1000,
        # Approximate sentence boundary: terminal punctuation followed by whitespace.
        "sentence_boundary": r"(?<=[.!?])\s+",
    },
}

EMBEDDING = {
    "dimensions": 384,
    "cache_size": 10000,     # HashEmbedder LRU entries
    "jina": {
        "model": "jina-embeddings-v3",
        "task_doc": "retrieval.passage",
        "task_query": "retrieval.query",
        "batch_size": 50,
        "dimensions": 1024,
        "timeout": 60.0,
        "max_retries": 5,
    },
}

VECTOR_DB = {
    "store_path": "./tmp/vector_store.json",
    "collection_docs": "siteqa_chunks",
    "query_batch": 1000,     # rows per query_iterator page
}

RETRIEVAL = {
    "limit": 5,
    "fallback_chunks": 3,
}

LLM = {
    "max_tokens": 500,
    "temperature": 0.5,
    "timeout": 60.0,
}

ANSWER_FALLBACK_PREFIX = "I found the following information about your query:\n\n"
NO_CONTENT_MESSAGE = "No content found for the provided URL"
