"""Builds versioned UrlRecords from a classified URL and its metadata."""

import random
from datetime import datetime, timezone
from typing import Mapping, Optional, Tuple

from sitesnap.core.models import (
    ARTICLE_LEVEL,
    DESCRIPTION_ERROR,
    HEADER_TAGS,
    LIKES_UNAVAILABLE,
    NO_DESCRIPTION,
    NO_TITLE,
    NOT_APPLICABLE,
    Metric,
    PageMetadata,
    TITLE_ERROR,
    UrlRecord,
    empty_header_tags,
    version_for,
)
from sitesnap.scrape.normalizer import normalize


class RecordBuilder:
    """
    Combines a classified URL with fetched metadata into a UrlRecord.

    Target likes are drawn from ``rng`` so callers needing determinism can
    pass a seeded ``random.Random``.
    """

    def __init__(self, target_likes_range: Tuple[int, int] = (50, 100), rng: Optional[random.Random] = None):
        low, high = target_likes_range
        if low > high:
            raise ValueError(f"Invalid target likes range: {low} > {high}")
        self.target_likes_range = (low, high)
        self.rng = rng or random.Random()

    def build(
        self,
        url: str,
        level: int,
        top_level_count: int,
        metadata: Optional[PageMetadata],
        now: datetime,
    ) -> UrlRecord:
        """
        Build a record.

        Args:
            url: Page URL (normalized here)
            level: Classified level
            top_level_count: Level-1 URL count known at build time
            metadata: Collaborator output; None or missing fields become sentinels
            now: Ingestion run timestamp

        Returns:
            UrlRecord

        Raises:
            MalformedUrl: If url is invalid
        """
        url = normalize(url)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        metadata = metadata or PageMetadata.failed()

        if level == ARTICLE_LEVEL:
            like_count = _like_count(metadata.like_count)
            target_likes: Metric = self.rng.randint(*self.target_likes_range)
        else:
            like_count = NOT_APPLICABLE
            target_likes = NOT_APPLICABLE

        return UrlRecord(
            url=url,
            title=metadata.title or NO_TITLE,
            description=metadata.description or _missing_description(metadata),
            header_tags=_header_tags(metadata.header_tags),
            version=version_for(now),
            timestamp=now,
            top_level_count=top_level_count,
            level=level,
            like_count=like_count,
            target_likes=target_likes,
        )


def _missing_description(metadata: PageMetadata) -> str:
    return DESCRIPTION_ERROR if metadata.title == TITLE_ERROR else NO_DESCRIPTION


def _header_tags(headers) -> dict:
    if not isinstance(headers, Mapping):
        return empty_header_tags()
    tags = {}
    for tag in HEADER_TAGS:
        texts = headers.get(tag, headers.get(tag.lower(), []))
        if isinstance(texts, str):
            texts = [texts]
        elif not isinstance(texts, (list, tuple)):
            texts = []
        tags[tag] = [str(text) for text in texts]
    return tags


def _like_count(value) -> Metric:
    if isinstance(value, bool):
        return LIKES_UNAVAILABLE
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return LIKES_UNAVAILABLE
