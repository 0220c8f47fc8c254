from typing import List, Set
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from siteqa.config import CRAWL, LINKS
from siteqa.core.errors import InputValidationError


# ---------------------------------------------------------------------------
# URL normalisation
# ---------------------------------------------------------------------------

def normalize_url(url: str) -> str:
    """Default the scheme to https and strip one trailing slash."""
    normalized = (url or "").strip()
    if not normalized.startswith(("http://", "https://")):
        normalized = "https://" + normalized
    if normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized


def validate_and_normalize_url(url: str) -> str:
    if not url or not url.strip():
        raise InputValidationError("URL is required")

    normalized = normalize_url(url)
    try:
        parsed = urlparse(normalized)
        hostname = parsed.hostname
    except ValueError as exc:
        raise InputValidationError(f"Invalid URL provided: {url!r}") from exc

    if parsed.scheme not in LINKS["allowed_schemes"]:
        raise InputValidationError("URL must use HTTP or HTTPS protocol")
    if not hostname:
        raise InputValidationError("Invalid URL - could not determine domain.")
    return normalized


def clamp_depth(depth) -> int:
    try:
        value = int(depth)
    except (TypeError, ValueError):
        value = CRAWL["default_depth"]
    return max(0, min(value, CRAWL["max_depth"]))


# ---------------------------------------------------------------------------
# Link extraction
# ---------------------------------------------------------------------------

def _is_content_link(absolute_url: str, base_host: str) -> bool:
    parsed = urlparse(absolute_url)
    if parsed.scheme not in LINKS["allowed_schemes"]:
        return False
    if parsed.hostname != base_host:
        return False
    if parsed.fragment or "#" in absolute_url:
        return False
    path_lower = parsed.path.lower()
    return not any(path_lower.endswith(ext) for ext in LINKS["skip_extensions"])


def extract_ordered_links(html: str, base_url: str) -> List[str]:
    """Same-domain content links of a page as normalised absolute URLs, in document order."""
    try:
        base_host = urlparse(base_url).hostname
    except ValueError:
        return []
    if not base_host:
        return []

    soup = BeautifulSoup(html or "", "html.parser")
    seen: Set[str] = set()
    links: List[str] = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href:
            continue
        try:
            absolute_url = urljoin(base_url, href)
            if not _is_content_link(absolute_url, base_host):
                continue
        except ValueError:
            # malformed href, e.g. an unterminated IPv6 literal
            continue
        # Same form as the crawl root, so "/" resolves to an already-visited URL.
        absolute_url = normalize_url(absolute_url)
        if absolute_url not in seen:
            seen.add(absolute_url)
            links.append(absolute_url)
    return links


def extract_links(html: str, base_url: str) -> Set[str]:
    return set(extract_ordered_links(html, base_url))
