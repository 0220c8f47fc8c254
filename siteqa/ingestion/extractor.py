"""
Page text extraction
====================
Turns raw HTML into a title, the cleaned main-body text, a paragraph list and
page metadata.

Extraction is best effort: markup that lacks the expected elements yields the
fallback title, an empty string or an empty list, never an exception.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from siteqa.config import EXTRACTION

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class ExtractedPage:
    title: str
    main_text: str
    paragraphs: List[str] = field(default_factory=list)
    metadata: Dict[str, str] = field(default_factory=dict)


def clean_text(text: str) -> str:
    """Collapse every whitespace run (newlines included) to one space and trim."""
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def _parse(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _strip_non_content(soup: BeautifulSoup) -> BeautifulSoup:
    for element in soup.select(EXTRACTION["strip_selectors"]):
        element.decompose()
    return soup


def _title_from(soup: BeautifulSoup) -> str:
    for tag in soup.find_all("title"):
        title = tag.get_text().strip()
        if title:
            return title
    return EXTRACTION["fallback_title"]


def _meta_content(soup: BeautifulSoup, selector: str) -> Optional[str]:
    tag = soup.select_one(selector)
    if tag is None:
        return None
    content = tag.get("content")
    return content or None


def _metadata_from(soup: BeautifulSoup) -> Dict[str, str]:
    metadata = {"title": _title_from(soup)}

    description = (
        _meta_content(soup, 'meta[name="description"]')
        or _meta_content(soup, 'meta[property="og:description"]')
    )
    if description:
        metadata["description"] = description

    keywords = _meta_content(soup, 'meta[name="keywords"]')
    if keywords:
        metadata["keywords"] = keywords

    return metadata


def _main_text_from(soup: BeautifulSoup) -> str:
    threshold = EXTRACTION["min_main_content_chars"]
    for selector in EXTRACTION["content_selectors"]:
        matches = soup.select(selector)
        if not matches:
            continue
        candidate = clean_text(" ".join(el.get_text(" ") for el in matches))
        if len(candidate) > threshold:
            return candidate

    root = soup.body if soup.body is not None else soup
    return clean_text(root.get_text(" "))


def _paragraphs_from(soup: BeautifulSoup) -> List[str]:
    paragraphs = []
    for element in soup.select(EXTRACTION["paragraph_selectors"]):
        text = clean_text(element.get_text(" "))
        if text:
            paragraphs.append(text)
    return paragraphs


def extract_title(html: str) -> str:
    return _title_from(_parse(html))


def extract_metadata(html: str) -> Dict[str, str]:
    return _metadata_from(_parse(html))


def extract_main_content(html: str) -> str:
    return _main_text_from(_strip_non_content(_parse(html)))


def extract_paragraphs(html: str) -> List[str]:
    return _paragraphs_from(_strip_non_content(_parse(html)))


def extract(html: str) -> ExtractedPage:
    """Run every extractor over a single parse of the document."""
    soup = _parse(html)
    # Title and meta tags are read before non-content elements are removed.
    metadata = _metadata_from(soup)
    _strip_non_content(soup)
    return ExtractedPage(
        title=metadata["title"],
        main_text=_main_text_from(soup),
        paragraphs=_paragraphs_from(soup),
        metadata=metadata,
    )
