from typing import Optional


class SiteQAError(RuntimeError):
    pass


class FetchError(SiteQAError):
    """A page could not be fetched: transport error or non-2xx status."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Failed to fetch {url}: {reason}")


class InputValidationError(SiteQAError, ValueError):
    pass


class DimensionMismatchError(SiteQAError, ValueError):
    """Embedding length differs from the configured dimensionality."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Embedding dimension mismatch: expected {expected}, got {actual}")


class StoreError(SiteQAError):
    pass


class NoContentError(SiteQAError):
    pass


class EmbeddingError(SiteQAError):
    pass


class LLMError(SiteQAError):
    pass
