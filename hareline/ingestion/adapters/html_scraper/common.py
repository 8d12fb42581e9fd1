"""
Shared helpers for the publisher-specific HTML extractors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from hareline.ingestion.adapters.base_adapter import FetchOptions, ScrapeResult
from hareline.ingestion.runtime.http import HttpClient

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

ARTICLE_SELECTOR = "article.post, article.type-post, article[class*='post-'], .hentry"
TITLE_LINK_SELECTOR = ".entry-title a, h2.entry-title a, h2 a, h1.entry-title a"
TITLE_SELECTOR = ".entry-title, h2"
BODY_SELECTOR = ".entry-content, .post-content"


@dataclass
class Post:
    """A blog post reduced to what title/body grammars need."""
    index: int
    title: str
    body_html: str
    url: str


def fetch_page(
    http: HttpClient, url: str, result: ScrapeResult, options: FetchOptions
) -> Optional[str]:
    """GET a page; on failure record a fetch error on ``result`` and return None."""
    res = http.get(url, headers=BROWSER_HEADERS, cancel=options.cancel)
    if res.ok:
        return res.text
    if res.status_code:
        message = f"HTTP {res.status_code} fetching {url}"
    else:
        message = f"Fetch failed for {url}: {res.short_error()}"
    result.add_fetch_error(url, message, status=res.status_code)
    return None


def absolute_url(href: Optional[str], base_url: str) -> str:
    if not href:
        return base_url
    return href if href.startswith("http") else urljoin(base_url, href)


def iter_wordpress_articles(html: str, base_url: str) -> Iterator[Post]:
    """Posts from a WordPress theme's article listing."""
    soup = BeautifulSoup(html, "lxml")
    for i, article in enumerate(soup.select(ARTICLE_SELECTOR)):
        link = article.select_one(TITLE_LINK_SELECTOR)
        title = link.get_text(" ", strip=True) if link else ""
        if not title:
            heading = article.select_one(TITLE_SELECTOR)
            title = heading.get_text(" ", strip=True) if heading else ""
        body = article.select_one(BODY_SELECTOR)
        yield Post(
            index=i,
            title=title,
            body_html=body.decode_contents() if body else "",
            url=absolute_url(link.get("href") if link else None, base_url),
        )
