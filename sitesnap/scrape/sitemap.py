"""Page discovery from sitemap documents, with a crawl fallback."""

import logging
import posixpath
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set
from urllib.parse import urljoin, urlsplit

from sitesnap.config import SitesnapConfig
from sitesnap.core.errors import DiscoveryFailed, MalformedUrl
from sitesnap.core.models import DiscoveredUrl
from sitesnap.scrape.extractor import LinkExtractor, SitemapParser
from sitesnap.scrape.fetcher import PageFetcher
from sitesnap.scrape.normalizer import normalize

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryBatch:
    """URLs found by one discovery step and whether the host answered."""

    urls: List[DiscoveredUrl] = field(default_factory=list)
    reached: bool = False
    attempts: int = 0


def document_name(url: str) -> str:
    """Filename part of a sitemap URL (``.../blog-posts-sitemap.xml`` -> ``blog-posts-sitemap.xml``)."""
    return posixpath.basename(urlsplit(url).path) or url


def _normalize_all(locs: Iterable[str], source: Optional[str]) -> List[DiscoveredUrl]:
    urls = []
    for loc in locs:
        try:
            urls.append(DiscoveredUrl(url=normalize(loc), source=source))
        except MalformedUrl as e:
            logger.warning(f"Skipping sitemap entry: {e.message}")
    return urls


class SiteCrawler:
    """Breadth-first crawler bounded by depth and page count."""

    def __init__(self, fetcher: PageFetcher, config: SitesnapConfig):
        """
        Initialize crawler.

        Args:
            fetcher: PageFetcher instance
            config: SitesnapConfig instance (crawl_max_depth, crawl_max_pages)
        """
        self.fetcher = fetcher
        self.config = config

    def crawl(self, base_url: str) -> DiscoveryBatch:
        """
        Crawl a website from its base URL.

        Pages are fetched up to ``crawl_max_depth`` links away from the base.
        Links are only followed when they resolve under the base URL. Pages
        that fail to fetch are logged and skipped.

        Args:
            base_url: Starting URL (normalized here)

        Returns:
            DiscoveryBatch of successfully fetched pages
        """
        base_url = normalize(base_url)
        max_depth = self.config.crawl_max_depth
        max_pages = self.config.crawl_max_pages
        logger.info(f"Starting crawl of {base_url} (max depth {max_depth})")

        link_extractor = LinkExtractor(base_url)
        batch = DiscoveryBatch()
        queue = deque([(base_url, 0)])  # (url, depth)
        queued: Set[str] = {base_url}

        while queue and batch.attempts < max_pages:
            url, depth = queue.popleft()

            batch.attempts += 1
            result = self.fetcher.fetch(url)
            batch.reached = batch.reached or result.reached

            if not result.success:
                logger.warning(f"Crawl skipped {url}: {result.error.message if result.error else 'fetch failed'}")
                continue

            batch.urls.append(DiscoveredUrl(url=url))

            if depth >= max_depth:
                continue

            added = 0
            for link in link_extractor.extract_links(result.text or "", page_url=url):
                try:
                    link = normalize(link)
                except MalformedUrl:
                    continue
                if link in queued:
                    continue
                queued.add(link)
                queue.append((link, depth + 1))
                added += 1

            logger.debug(f"Queued {added} links from {url} (depth {depth})")

        if queue:
            logger.info(f"Crawl stopped at page limit ({max_pages}); {len(queue)} links left unexplored")
        logger.info(f"Crawl complete: {len(batch.urls)} pages found")
        return batch


class SitemapSource:
    """Resolves the set of page URLs for a site."""

    def __init__(
        self,
        fetcher: Optional[PageFetcher] = None,
        config: Optional[SitesnapConfig] = None,
        parser: Optional[SitemapParser] = None,
        crawler: Optional[SiteCrawler] = None,
    ):
        self.config = config or SitesnapConfig.from_env()
        self.fetcher = fetcher or PageFetcher(self.config)
        self.parser = parser or SitemapParser()
        self.crawler = crawler or SiteCrawler(self.fetcher, self.config)

    def resolve(self, base_url: str) -> Set[str]:
        """
        Discover the page URLs of a site.

        Args:
            base_url: Site base URL (normalized internally)

        Returns:
            Deduplicated set of normalized URLs

        Raises:
            MalformedUrl: If base_url is invalid
            DiscoveryFailed: If the host could not be reached at all
        """
        return {item.url for item in self.discover(base_url)}

    def discover(self, base_url: str) -> List[DiscoveredUrl]:
        """
        Discover page URLs tagged with the sitemap document they came from.

        Sitemap candidates are tried in order until one yields URLs. The crawl
        runs when none did, or always when ``crawl_mode`` is "always". Sitemap
        provenance wins for URLs found by both.

        Returns:
            DiscoveredUrl list sorted by URL
        """
        base = normalize(base_url)
        found: Dict[str, DiscoveredUrl] = {}
        reached = False
        attempts = 0

        for candidate in self.config.sitemap_candidates:
            batch = self.fetch_candidate(base, candidate)
            reached = reached or batch.reached
            attempts += batch.attempts
            if batch.urls:
                for item in batch.urls:
                    found.setdefault(item.url, item)
                logger.info(f"Sitemap {candidate} yielded {len(found)} URLs for {base}")
                break
            logger.info(f"Sitemap {candidate} yielded no URLs for {base}")

        if not found or self.config.crawl_mode == "always":
            if not found:
                logger.info(f"No sitemap URLs for {base}, falling back to crawl")
            batch = self.crawler.crawl(base)
            reached = reached or batch.reached
            attempts += batch.attempts
            for item in batch.urls:
                found.setdefault(item.url, item)

        if not found and not reached:
            raise DiscoveryFailed(base, attempts=attempts)

        logger.info(f"Discovered {len(found)} URLs for {base}")
        return sorted(found.values(), key=lambda item: item.url)

    def fetch_candidate(self, base_url: str, candidate: str) -> DiscoveryBatch:
        """
        Fetch and parse one candidate sitemap.

        Index documents are followed one level deep; each child's URLs are
        tagged with the child's filename.

        Args:
            base_url: Normalized base URL
            candidate: Sitemap filename, relative to the base URL

        Returns:
            DiscoveryBatch (empty when missing, malformed or unreachable)
        """
        sitemap_url = urljoin(base_url.rstrip("/") + "/", candidate)
        result = self.fetcher.fetch(sitemap_url)
        batch = DiscoveryBatch(reached=result.reached, attempts=result.attempts)

        if not result.success:
            return batch

        document = self.parser.parse(result.content or b"", source=sitemap_url)
        if not document.is_index:
            batch.urls = _normalize_all(document.locs, document_name(sitemap_url))
            return batch

        logger.info(f"{sitemap_url} is a sitemap index with {len(document.entries)} children")
        for child_url in document.locs:
            child = self.fetcher.fetch(child_url)
            batch.attempts += child.attempts
            if not child.success:
                logger.warning(f"Skipping child sitemap {child_url}")
                continue

            child_document = self.parser.parse(child.content or b"", source=child_url)
            if child_document.is_index:
                logger.warning(f"Nested sitemap index {child_url} ignored")
                continue
            batch.urls.extend(_normalize_all(child_document.locs, document_name(child_url)))

        return batch
