"""Hierarchy level inference for URLs."""

import logging
import posixpath
import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit

from sitesnap.classify.rules import LEVEL_RULES, SOURCE_OVERRIDES, LevelRule
from sitesnap.core.errors import MalformedUrl
from sitesnap.core.models import MAX_LEVEL, MIN_LEVEL, DiscoveredUrl
from sitesnap.scrape.normalizer import parse

logger = logging.getLogger(__name__)

_DOCUMENT_STEM = re.compile(r"^(?P<stem>.+?)-sitemap\d*\.xml(?:\.gz)?$")


def document_stem(source_document: str) -> str:
    """
    Reduce a sitemap document name or URL to its stem.

    Examples:
        >>> document_stem("blog-posts-sitemap.xml")
        'blog-posts'
        >>> document_stem("https://example.com/pages-sitemap2.xml")
        'pages'
    """
    name = posixpath.basename(urlsplit(source_document.strip()).path) or source_document.strip()
    name = name.lower()
    match = _DOCUMENT_STEM.match(name)
    if match:
        return match.group("stem")
    for suffix in (".xml.gz", ".xml"):
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


def classification_path(url: str) -> str:
    """Lower-cased path with the trailing slash removed; the root is ``/``."""
    path = parse(url).path.lower()
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


class UrlClassifier:
    """
    Assigns a hierarchy level (1-9) to a URL.

    Resolution order: sitemap-document override, then the first matching
    rule in ascending level order, then the number of path segments.
    ``classify`` is a pure function of its arguments.
    """

    def __init__(
        self,
        rules: Sequence[LevelRule] = LEVEL_RULES,
        overrides: Optional[Dict[str, int]] = None,
    ):
        self.rules: Tuple[LevelRule, ...] = tuple(sorted(rules, key=lambda rule: rule.level))
        overrides = SOURCE_OVERRIDES if overrides is None else overrides
        # Longest key first so the most specific stem wins
        self._overrides = sorted(overrides.items(), key=lambda item: (-len(item[0]), item[0]))

    def classify(self, url: str, source_document: Optional[str] = None) -> int:
        """
        Classify a URL.

        Args:
            url: Page URL
            source_document: Sitemap document the URL was listed in, if any

        Returns:
            Level in [1, 9]

        Raises:
            MalformedUrl: If the URL is invalid
        """
        path = classification_path(url)

        if source_document:
            override = self.source_level(source_document)
            if override is not None:
                return override

        for rule in self.rules:
            if rule.matches(path):
                return rule.level

        segments = [segment for segment in path.split("/") if segment]
        return min(MAX_LEVEL, max(MIN_LEVEL, len(segments)))

    def source_level(self, source_document: str) -> Optional[int]:
        """Level forced by a sitemap document, or None if it is not a known one."""
        stem = document_stem(source_document)
        for key, level in self._overrides:
            if stem == key or stem.startswith(f"{key}-"):
                return level
        return None

    def classify_many(self, discovered: Iterable[DiscoveredUrl]) -> List[Tuple[DiscoveredUrl, int]]:
        """Classify discovered URLs, skipping malformed ones."""
        results = []
        for item in discovered:
            try:
                results.append((item, self.classify(item.url, item.source)))
            except MalformedUrl as e:
                logger.warning(f"Skipping unclassifiable URL: {e.message}")
        return results
