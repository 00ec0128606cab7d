"""Records and metadata exchanged between discovery, builder and store."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

# Sentinel values written in place of fields that could not be fetched
NO_TITLE = "No Title Found"
TITLE_ERROR = "Error Fetching Title"
NO_DESCRIPTION = "No Description Found"
DESCRIPTION_ERROR = "Error Fetching Description"
LIKES_UNAVAILABLE = "Not Available"
NOT_APPLICABLE = "N/A"

# Level assigned to article/detail pages; only these carry like metrics
ARTICLE_LEVEL = 4
TOP_LEVEL = 1
MIN_LEVEL = 1
MAX_LEVEL = 9

HEADER_TAGS = ("H1", "H2", "H3", "H4", "H5", "H6")

# Persisted row layout. Order is significant.
ROW_COLUMNS = (
    "url",
    "title",
    "description",
    "header_tags",
    "version",
    "timestamp",
    "top_level_count",
    "level",
    "like_count",
    "target_likes",
)

Metric = Union[int, str]


def utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


def empty_header_tags() -> Dict[str, List[str]]:
    return {tag: [] for tag in HEADER_TAGS}


def version_for(when: datetime) -> str:
    """Version label for an ingestion run started at ``when``."""
    return f"Version {when.isoformat()}"


@dataclass
class PageMetadata:
    """Fields returned by a metadata collaborator for one URL."""

    title: str = NO_TITLE
    description: str = NO_DESCRIPTION
    header_tags: Dict[str, List[str]] = field(default_factory=empty_header_tags)
    like_count: Metric = LIKES_UNAVAILABLE

    @classmethod
    def failed(cls) -> "PageMetadata":
        """Metadata for a page whose fetch failed."""
        return cls(
            title=TITLE_ERROR,
            description=DESCRIPTION_ERROR,
            header_tags=empty_header_tags(),
            like_count=LIKES_UNAVAILABLE,
        )


@dataclass
class UrlRecord:
    """One observation of a page at a point in time."""

    url: str
    title: str
    description: str
    header_tags: Dict[str, List[str]]
    version: str
    timestamp: datetime
    top_level_count: int
    level: int
    like_count: Metric = NOT_APPLICABLE
    target_likes: Metric = NOT_APPLICABLE

    def to_row(self) -> List[Any]:
        """Convert to the persisted row layout (see ROW_COLUMNS)."""
        return [
            self.url,
            self.title,
            self.description,
            json.dumps(self.header_tags, ensure_ascii=False),
            self.version,
            self.timestamp.isoformat(),
            self.top_level_count,
            self.level,
            self.like_count,
            self.target_likes,
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "header_tags": self.header_tags,
            "version": self.version,
            "timestamp": self.timestamp.isoformat(),
            "top_level_count": self.top_level_count,
            "level": self.level,
            "like_count": self.like_count,
            "target_likes": self.target_likes,
        }

    @classmethod
    def from_row(cls, row: Any) -> "UrlRecord":
        """Create from a persisted row (sequence in ROW_COLUMNS order)."""
        (url, title, description, header_json, version, timestamp_str,
         top_level_count, level, like_count, target_likes) = row

        return cls(
            url=url,
            title=title,
            description=description,
            header_tags=json.loads(header_json) if header_json else empty_header_tags(),
            version=version,
            timestamp=datetime.fromisoformat(timestamp_str),
            top_level_count=int(top_level_count),
            level=int(level),
            like_count=_metric(like_count),
            target_likes=_metric(target_likes),
        )


def _metric(value: Any) -> Metric:
    """Restore an int-or-sentinel metric that may have been stored as text."""
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.lstrip("-").isdigit():
        return int(value)
    return value if value is not None else NOT_APPLICABLE


@dataclass(frozen=True)
class DiscoveredUrl:
    """A URL found during discovery, with the sitemap document it came from."""

    url: str
    source: Optional[str] = None
