"""Sitemap, link and page metadata extraction."""

import gzip
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urljoin
from xml.etree import ElementTree as ET

from bs4 import BeautifulSoup

from sitesnap.core.models import (
    HEADER_TAGS,
    LIKES_UNAVAILABLE,
    NO_DESCRIPTION,
    NO_TITLE,
    PageMetadata,
)
from sitesnap.scrape.normalizer import is_valid, same_site, strip_fragment

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"

_COUNT_PATTERN = re.compile(r"\d[\d,]*")

# Tags whose text is never a like counter
_SKIP_LIKE_TAGS = {"html", "head", "body", "script", "style", "main", "article"}


@dataclass
class SitemapEntry:
    """A ``<loc>`` entry plus its informational siblings."""

    loc: str
    lastmod: Optional[str] = None
    changefreq: Optional[str] = None
    priority: Optional[float] = None


@dataclass
class SitemapDocument:
    """Parsed sitemap: either a ``urlset`` or a ``sitemapindex``."""

    kind: str  # "urlset", "sitemapindex" or "empty"
    entries: List[SitemapEntry] = field(default_factory=list)

    @property
    def is_index(self) -> bool:
        return self.kind == "sitemapindex"

    @property
    def locs(self) -> List[str]:
        return [entry.loc for entry in self.entries]


def _local_name(tag: str) -> str:
    """Strip the ``{namespace}`` prefix ElementTree puts on tag names."""
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


class SitemapParser:
    """Parses sitemap protocol documents (urlset and sitemapindex)."""

    def parse(self, content: bytes, source: str = "") -> SitemapDocument:
        """
        Parse a sitemap document.

        Gzip-compressed bodies are decompressed transparently. Malformed XML
        is logged and yields an empty document.

        Args:
            content: Raw response body
            source: Document URL, used in log messages

        Returns:
            SitemapDocument
        """
        if not content:
            return SitemapDocument(kind="empty")

        if content[:2] == GZIP_MAGIC:
            try:
                content = gzip.decompress(content)
            except OSError as e:
                logger.warning(f"Could not decompress sitemap {source}: {e}")
                return SitemapDocument(kind="empty")

        try:
            root = ET.fromstring(content)
        except ET.ParseError as e:
            logger.warning(f"Malformed sitemap XML at {source}: {e}")
            return SitemapDocument(kind="empty")

        kind = _local_name(root.tag)
        if kind == "urlset":
            child_tag = "url"
        elif kind == "sitemapindex":
            child_tag = "sitemap"
        else:
            logger.warning(f"Unexpected sitemap root <{kind}> at {source}")
            return SitemapDocument(kind="empty")

        entries = []
        for child in root:
            if _local_name(child.tag) != child_tag:
                continue
            entry = self._parse_entry(child)
            if entry is not None:
                entries.append(entry)

        logger.debug(f"Parsed {len(entries)} {child_tag} entries from {source or 'sitemap'}")
        return SitemapDocument(kind=kind, entries=entries)

    def _parse_entry(self, element: ET.Element) -> Optional[SitemapEntry]:
        fields = {}
        for sub in element:
            text = (sub.text or "").strip()
            if text:
                fields[_local_name(sub.tag)] = text

        loc = fields.get("loc")
        if not loc:
            return None

        priority = None
        if "priority" in fields:
            try:
                priority = float(fields["priority"])
            except ValueError:
                pass

        return SitemapEntry(
            loc=loc,
            lastmod=fields.get("lastmod"),
            changefreq=fields.get("changefreq"),
            priority=priority,
        )


class LinkExtractor:
    """Extracts links under a base URL from HTML."""

    def __init__(self, base_url: str):
        """
        Initialize link extractor.

        Args:
            base_url: Normalized base URL; only links under it are kept
        """
        self.base_url = base_url

    def extract_links(self, html: str, page_url: Optional[str] = None) -> List[str]:
        """
        Extract links from HTML.

        Args:
            html: HTML content
            page_url: URL the HTML came from, for resolving relative links

        Returns:
            Unique absolute URLs under the base URL, in document order
        """
        soup = BeautifulSoup(html, "html.parser")
        links = []
        seen_urls = set()

        for tag in soup.find_all("a", href=True):
            href = tag.get("href", "").strip()
            if not href or href.startswith(("#", "mailto:", "tel:", "javascript:")):
                continue

            full_url = strip_fragment(urljoin(page_url or self.base_url, href))
            if not is_valid(full_url) or not same_site(full_url, self.base_url):
                continue

            if full_url in seen_urls:
                continue
            seen_urls.add(full_url)
            links.append(full_url)

        logger.debug(f"Extracted {len(links)} links from {page_url or self.base_url}")
        return links


class MetadataExtractor:
    """Extracts title, description, header tags and like count from HTML."""

    def extract(self, html: str) -> PageMetadata:
        """
        Extract structured metadata from HTML.

        Args:
            html: Raw HTML

        Returns:
            PageMetadata with sentinels for anything missing
        """
        soup = BeautifulSoup(html, "html.parser")
        return PageMetadata(
            title=self.extract_title(soup),
            description=self.extract_description(soup),
            header_tags=self.extract_header_tags(soup),
            like_count=self.extract_like_count(soup),
        )

    def extract_title(self, soup: BeautifulSoup) -> str:
        title_tag = soup.find("title")
        if title_tag:
            title = title_tag.get_text(strip=True)
            if title:
                return title
        return NO_TITLE

    def extract_description(self, soup: BeautifulSoup) -> str:
        # Meta description, then Open Graph
        for attrs in ({"name": "description"}, {"property": "og:description"}):
            tag = soup.find("meta", attrs=attrs)
            if tag:
                content = (tag.get("content") or "").strip()
                if content:
                    return content
        return NO_DESCRIPTION

    def extract_header_tags(self, soup: BeautifulSoup) -> Dict[str, List[str]]:
        headers = {}
        for name in HEADER_TAGS:
            texts = (tag.get_text(" ", strip=True) for tag in soup.find_all(name.lower()))
            headers[name] = [text for text in texts if text]
        return headers

    def extract_like_count(self, soup: BeautifulSoup):
        """
        Find a like counter.

        Looks at elements whose ``data-hook``, ``class`` or ``aria-label``
        mentions "like" and returns the first integer in their text or label.

        Returns:
            int, or "Not Available" if no counter is found
        """
        for tag in soup.find_all(True):
            if tag.name in _SKIP_LIKE_TAGS:
                continue

            classes = tag.get("class") or []
            if isinstance(classes, str):
                classes = [classes]
            label = tag.get("aria-label") or ""
            markers = " ".join([tag.get("data-hook") or "", " ".join(classes), label]).lower()
            if "like" not in markers:
                continue

            for text in (tag.get_text(" ", strip=True), label):
                match = _COUNT_PATTERN.search(text)
                if match:
                    return int(match.group(0).replace(",", ""))

        return LIKES_UNAVAILABLE
