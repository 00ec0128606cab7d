"""Discovery utilities: URL normalization, fetching, sitemap parsing and crawling."""

from .extractor import LinkExtractor, MetadataExtractor, SitemapDocument, SitemapEntry, SitemapParser
from .fetcher import FetchResult, PageFetcher
from .metadata import HttpMetadataFetcher
from .normalizer import ParsedUrl, is_valid, normalize, parse, same_site
from .sitemap import DiscoveryBatch, SiteCrawler, SitemapSource

__all__ = [
    "DiscoveryBatch",
    "FetchResult",
    "HttpMetadataFetcher",
    "LinkExtractor",
    "MetadataExtractor",
    "PageFetcher",
    "ParsedUrl",
    "SiteCrawler",
    "SitemapDocument",
    "SitemapEntry",
    "SitemapParser",
    "SitemapSource",
    "is_valid",
    "normalize",
    "parse",
    "same_site",
]
