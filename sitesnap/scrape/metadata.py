"""Default metadata collaborator: fetch a page over HTTP and extract its fields."""

import logging
from typing import Optional

from sitesnap.core.models import PageMetadata
from sitesnap.scrape.extractor import MetadataExtractor
from sitesnap.scrape.fetcher import PageFetcher

logger = logging.getLogger(__name__)


class HttpMetadataFetcher:
    """
    Callable metadata collaborator.

    A failed fetch is not an error here: the result carries the
    "Error Fetching ..." sentinels so a record can still be built.
    """

    def __init__(self, fetcher: PageFetcher, extractor: Optional[MetadataExtractor] = None):
        self.fetcher = fetcher
        self.extractor = extractor or MetadataExtractor()

    def __call__(self, url: str) -> PageMetadata:
        result = self.fetcher.fetch(url)
        if not result.success:
            reason = result.error.message if result.error else "unknown error"
            logger.warning(f"Metadata fetch failed for {url}: {reason}")
            return PageMetadata.failed()

        return self.extractor.extract(result.text or "")
