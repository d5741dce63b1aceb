"""HTML collaborators: navigation link extraction and page-to-markdown conversion."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence
from urllib.parse import urldefrag, urljoin, urlsplit

from bs4 import BeautifulSoup, Tag
from markdownify import markdownify
from soupsieve import SelectorSyntaxError

from .errors import ContentNotFoundError

logger = logging.getLogger(__name__)

FALLBACK_NAV_SELECTORS = (
    "nav a",
    ".menu a",
    ".sidebar a",
    ".navigation a",
    ".nav-list a",
    ".docs-nav a",
    "ul.nav a",
    ".site-nav a",
)
MAX_FALLBACK_LINKS = 50
ALWAYS_STRIPPED = ("script", "style", "noscript", "template", "iframe")


def _split_selectors(selector: str) -> List[str]:
    return [s.strip() for s in selector.split(",") if s.strip()]


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def _collect(anchors: Iterable[Tag], base_url: str, links: List[str], seen: set, skip_self: bool = False) -> None:
    origin = _origin(base_url)
    start = urldefrag(base_url)[0]
    for a in anchors:
        href = a.get("href")
        if not href or href.startswith(("mailto:", "javascript:", "tel:")):
            continue
        absolute = urldefrag(urljoin(base_url, href))[0]
        if _origin(absolute) != origin or absolute in seen:
            continue
        if skip_self and absolute == start:
            continue
        seen.add(absolute)
        links.append(absolute)


def extract_links(html: str, base_url: str, navigation_selector: str) -> List[str]:
    """Return unique same-origin links found under the navigation selector.

    Order follows the document. When the selector finds nothing, common
    navigation containers are tried one at a time, and as a last resort any
    same-origin link on the page is used (capped at 50)."""
    soup = BeautifulSoup(html, "html.parser")
    links: List[str] = []
    seen: set = set()

    for selector in _split_selectors(navigation_selector):
        try:
            containers = soup.select(selector)
        except SelectorSyntaxError:
            logger.warning("Skipping invalid navigation selector %r", selector)
            continue
        for container in containers:
            _collect(container.select("a[href]"), base_url, links, seen)
    if links:
        return links

    for selector in FALLBACK_NAV_SELECTORS:
        _collect(soup.select(selector), base_url, links, seen)
        if links:
            logger.info("Found %d links using fallback selector %s", len(links), selector)
            return links

    _collect(soup.select("a[href]"), base_url, links, seen, skip_self=True)
    if len(links) > MAX_FALLBACK_LINKS:
        logger.info("Limited same-domain fallback to the first %d links", MAX_FALLBACK_LINKS)
        del links[MAX_FALLBACK_LINKS:]
    return links


@dataclass(frozen=True)
class ConvertedPage:
    url: str
    title: str
    markdown: str
    metadata: Dict[str, str] = field(default_factory=dict)


def _meta(soup: BeautifulSoup, *names: str) -> str:
    for name in names:
        tag = soup.find("meta", attrs={"name": name}) or soup.find("meta", attrs={"property": name})
        if tag and tag.get("content"):
            return tag["content"].strip()
    return ""


def extract_metadata(soup: BeautifulSoup, url: str) -> Dict[str, str]:
    title_tag = soup.find("title")
    h1 = soup.find("h1")
    title = (title_tag.get_text(strip=True) if title_tag else "") or (h1.get_text(strip=True) if h1 else "")
    time_tag = soup.find("time")
    metadata = {
        "url": url,
        "title": title,
        "author": _meta(soup, "author", "article:author"),
        "date": _meta(soup, "date", "article:published_time")
        or (time_tag.get("datetime", "") if time_tag else ""),
        "description": _meta(soup, "description", "og:description"),
        "extracted_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
    }
    return {k: v for k, v in metadata.items() if v}


def _select_content(soup: BeautifulSoup, content_selector: str) -> Optional[Tag]:
    for selector in _split_selectors(content_selector):
        try:
            found = soup.select_one(selector)
        except SelectorSyntaxError:
            logger.warning("Skipping invalid content selector %r", selector)
            continue
        if found is not None and found.get_text(strip=True):
            return found
    return None


def convert_page(html: str, url: str, content_selector: str, exclude_selectors: Sequence[str] = ()) -> ConvertedPage:
    """Convert the page's main content to markdown.

    Raises ContentNotFoundError when no content selector matches."""
    soup = BeautifulSoup(html, "html.parser")
    metadata = extract_metadata(soup, url)
    content = _select_content(soup, content_selector)
    if content is None:
        raise ContentNotFoundError(f"Content not found using selectors: {content_selector}", url=url)

    for tag in content.find_all(ALWAYS_STRIPPED):
        tag.decompose()
    for selector in exclude_selectors:
        try:
            for tag in content.select(selector):
                tag.decompose()
        except SelectorSyntaxError:
            logger.warning("Skipping invalid exclude selector %r", selector)

    _absolutize(content, url)
    markdown = to_markdown(content)
    if not markdown:
        raise ContentNotFoundError(f"Content not found using selectors: {content_selector}", url=url)
    return ConvertedPage(url=url, title=metadata.get("title", ""), markdown=markdown, metadata=metadata)


_LANG_RE = re.compile(r"(?:language|lang|highlight)-([\w+-]+)")
_BLANK_RUNS = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")


def _absolutize(content: Tag, base_url: str) -> None:
    for a in content.find_all("a", href=True):
        if not a["href"].startswith("#"):
            a["href"] = urljoin(base_url, a["href"])
    for img in content.find_all("img", src=True):
        img["src"] = urljoin(base_url, img["src"])


def _code_language(pre: Tag) -> str:
    for candidate in (pre.find("code"), pre):
        if candidate is None:
            continue
        match = _LANG_RE.search(" ".join(candidate.get("class", [])))
        if match:
            return match.group(1)
    return ""


def to_markdown(content: Tag) -> str:
    text = markdownify(
        str(content),
        heading_style="ATX",
        bullets="-",
        newline_style="backslash",
        code_language_callback=_code_language,
    )
    text = "\n".join(line.rstrip() for line in text.splitlines())
    return _BLANK_RUNS.sub("\n\n", text).strip()
