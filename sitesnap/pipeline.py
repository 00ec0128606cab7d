"""
Batch ingestion pipeline.

Orchestrates one ingestion run for a property:
- Discover URLs (sitemaps, crawl fallback)
- Classify each URL into a level
- Fetch page metadata and build versioned records
- Merge records into the snapshot, one sub-batch at a time

A failing URL never aborts the run; only discovery failure or a storage
fault does. Cancellation is cooperative and checked between sub-batches.
"""

import logging
import random
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

from sitesnap.classify import UrlClassifier
from sitesnap.config import SitesnapConfig
from sitesnap.core.errors import DiscoveryFailed, InvalidInputError, MalformedUrl
from sitesnap.core.models import DiscoveredUrl, PageMetadata, UrlRecord, utc_now, version_for
from sitesnap.scrape.fetcher import PageFetcher
from sitesnap.scrape.metadata import HttpMetadataFetcher
from sitesnap.scrape.sitemap import SitemapSource
from sitesnap.snapshot.builder import RecordBuilder
from sitesnap.snapshot.store import SnapshotStore

logger = logging.getLogger(__name__)

MetadataSource = Callable[[str], Union[PageMetadata, Mapping[str, Any]]]


class ProgressSink(Protocol):
    """Where the pipeline reports progress and errors."""

    def progress(self, fraction: float, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class LoggingProgressSink:
    """Default sink: progress goes to the log."""

    def progress(self, fraction: float, message: str) -> None:
        logger.info(f"[{fraction:.0%}] {message}")

    def error(self, message: str) -> None:
        logger.error(message)


class CancelToken:
    """Cooperative stop signal for one ingestion run."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class IngestReport:
    """Outcome of one ingestion run."""

    property: str
    base_url: str
    version: str
    started_at: datetime
    discovered: int = 0
    processed: int = 0
    merged: int = 0
    failed: Dict[str, str] = field(default_factory=dict)
    rejected: List[str] = field(default_factory=list)
    cancelled: bool = False
    error: Optional[str] = None
    finished_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "property": self.property,
            "base_url": self.base_url,
            "version": self.version,
            "success": self.success,
            "discovered": self.discovered,
            "processed": self.processed,
            "merged": self.merged,
            "failed": self.failed,
            "rejected": self.rejected,
            "cancelled": self.cancelled,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


def coerce_metadata(value: Union[PageMetadata, Mapping[str, Any], None]) -> Optional[PageMetadata]:
    """Accept either PageMetadata or a ``{title, description, headerTags, likeCount}`` mapping."""
    if value is None or isinstance(value, PageMetadata):
        return value

    defaults = PageMetadata()
    return PageMetadata(
        title=value.get("title") or defaults.title,
        description=value.get("description") or defaults.description,
        header_tags=value.get("headerTags", value.get("header_tags")) or defaults.header_tags,
        like_count=value.get("likeCount", value.get("like_count", defaults.like_count)),
    )


class BatchPipeline:
    """Runs discovery, classification, enrichment and merge for a property."""

    def __init__(
        self,
        store: SnapshotStore,
        source: SitemapSource,
        metadata: MetadataSource,
        classifier: Optional[UrlClassifier] = None,
        builder: Optional[RecordBuilder] = None,
        sink: Optional[ProgressSink] = None,
        config: Optional[SitesnapConfig] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            store: Snapshot store (also holds the property index)
            source: URL discovery
            metadata: Callable returning page metadata for a URL
            classifier: Level classifier (default rule table if None)
            builder: Record builder (configured target likes range if None)
            sink: Progress/error sink (logging if None)
            config: Settings for batch size and worker count
        """
        self.config = config or SitesnapConfig.from_env()
        self.store = store
        self.source = source
        self.metadata = metadata
        self.classifier = classifier or UrlClassifier()
        self.builder = builder or RecordBuilder(self.config.target_likes_range)
        self.sink = sink or LoggingProgressSink()

    def ingest(
        self,
        property_name: str,
        base_url: Optional[str] = None,
        cancel: Optional[CancelToken] = None,
        now: Optional[datetime] = None,
    ) -> IngestReport:
        """
        Run one ingestion for a property.

        Args:
            property_name: Property to ingest; added to the index on first use
            base_url: Site base URL (defaults to the indexed one)
            cancel: Stop signal checked between sub-batches
            now: Run timestamp (defaults to the current UTC time)

        Returns:
            IngestReport

        Raises:
            InvalidInputError: If the property is unknown and no base URL is given
            MalformedUrl: If base_url is invalid
            StorageError: If the snapshot store fails
        """
        cancel = cancel or CancelToken()
        now = now or utc_now()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        if base_url is not None:
            entry = self.store.index.add(property_name, base_url)
        else:
            entry = self.store.index.get(property_name)
            if entry is None:
                raise InvalidInputError("base_url", f"unknown property '{property_name}' and no base URL given")

        report = IngestReport(
            property=property_name,
            base_url=entry.base_url,
            version=version_for(now),
            started_at=utc_now(),
        )
        logger.info(f"Ingesting {property_name} from {entry.base_url} ({report.version})")

        try:
            discovered = self.source.discover(entry.base_url)
        except DiscoveryFailed as e:
            logger.error(f"Discovery failed for {property_name}: {e.message}")
            self.sink.error(e.message)
            report.error = e.message
            report.finished_at = utc_now()
            return report

        report.discovered = total = len(discovered)
        if total == 0:
            self.sink.progress(1.0, f"No pages discovered for {property_name}")

        batch_size = self.config.batch_size
        for start in range(0, total, batch_size):
            if cancel.cancelled:
                report.cancelled = True
                logger.warning(
                    f"Ingestion of {property_name} stopped after {report.processed}/{total} URLs"
                )
                break

            chunk = discovered[start:start + batch_size]
            records = self._build_records(property_name, chunk, now, report)
            if records:
                result = self.store.merge(property_name, records)
                report.merged += result.merged
                report.rejected.extend(error.message for error in result.rejected)

            report.processed += len(chunk)
            self.sink.progress(report.processed / total, f"Processed {report.processed}/{total} URLs")

        self.store.index.touch(property_name)
        report.finished_at = utc_now()
        logger.info(
            f"Finished {property_name}: {report.merged} merged, {len(report.failed)} failed"
            + (" (cancelled)" if report.cancelled else "")
        )
        return report

    def _build_records(
        self,
        property_name: str,
        chunk: Sequence[DiscoveredUrl],
        now: datetime,
        report: IngestReport,
    ) -> List[UrlRecord]:
        """Classify, fetch and build one sub-batch. Failing URLs are recorded and skipped."""
        top_level_count = self.store.top_level_count(property_name)

        if self.config.max_workers > 1 and len(chunk) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                outcomes = list(pool.map(self._enrich, chunk))
        else:
            outcomes = [self._enrich(item) for item in chunk]

        records = []
        for item, (level, metadata, error) in zip(chunk, outcomes):
            if error is not None:
                logger.warning(f"Skipping {item.url}: {error}")
                report.failed[item.url] = error
                continue
            try:
                records.append(self.builder.build(item.url, level, top_level_count, metadata, now))
            except MalformedUrl as e:
                logger.warning(f"Skipping {item.url}: {e.message}")
                report.failed[item.url] = e.message
            except Exception as e:
                logger.warning(f"Skipping {item.url}: could not build record: {e}")
                report.failed[item.url] = f"{type(e).__name__}: {e}"
        return records

    def _enrich(self, item: DiscoveredUrl) -> Tuple[Optional[int], Optional[PageMetadata], Optional[str]]:
        """Classify and fetch metadata for one URL; returns (level, metadata, error)."""
        try:
            level = self.classifier.classify(item.url, item.source)
            metadata = coerce_metadata(self.metadata(item.url))
        except Exception as e:
            return None, None, f"{type(e).__name__}: {e}"
        return level, metadata, None


def build_pipeline(
    config: Optional[SitesnapConfig] = None,
    store: Optional[SnapshotStore] = None,
    sink: Optional[ProgressSink] = None,
    rng: Optional[random.Random] = None,
) -> BatchPipeline:
    """
    Wire a pipeline with the default HTTP collaborators.

    Args:
        config: Settings (loaded from the environment if None)
        store: Snapshot store (opened at ``config.db_path`` if None)
        sink: Progress sink
        rng: Random source for target likes

    Returns:
        BatchPipeline
    """
    config = config or SitesnapConfig.from_env()
    fetcher = PageFetcher(config)
    return BatchPipeline(
        store=store or SnapshotStore(config.db_path),
        source=SitemapSource(fetcher=fetcher, config=config),
        metadata=HttpMetadataFetcher(fetcher),
        builder=RecordBuilder(config.target_likes_range, rng=rng),
        sink=sink,
        config=config,
    )
