"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timezone

import pytest

from sitesnap.config import ENV_PREFIX, SitesnapConfig
from sitesnap.core.errors import TerminalFetchError, TransientFetchError
from sitesnap.core.models import PageMetadata, UrlRecord, empty_header_tags, version_for
from sitesnap.scrape.fetcher import FetchResult
from sitesnap.snapshot.store import SnapshotStore


class FakeFetcher:
    """In-memory stand-in for PageFetcher.

    ``pages`` maps URL -> body (str or bytes) or an HTTP status int.
    Unknown URLs answer 404 unless ``unreachable`` is set, in which case
    every URL fails as a transport error.
    """

    def __init__(self, pages=None, unreachable=False):
        self.pages = dict(pages or {})
        self.unreachable = unreachable
        self.calls = []

    def fetch(self, url):
        self.calls.append(url)
        if self.unreachable:
            return FetchResult(url=url, error=TransientFetchError(url, "transport error"), attempts=3)

        body = self.pages.get(url, 404)
        if isinstance(body, int):
            if body >= 500:
                return FetchResult(url=url, status_code=body,
                                   error=TransientFetchError(url, "server error", status_code=body), attempts=3)
            return FetchResult(url=url, status_code=body,
                               error=TerminalFetchError(url, "not found", status_code=body), attempts=1)

        content = body.encode("utf-8") if isinstance(body, str) else body
        text = body if isinstance(body, str) else body.decode("utf-8", errors="replace")
        return FetchResult(url=url, content=content, text=text, status_code=200, success=True, attempts=1)


@pytest.fixture(autouse=True, scope="session")
def clean_env():
    """Keep SITESNAP_* variables from the developer shell out of tests."""
    with pytest.MonkeyPatch.context() as mp:
        for key in list(os.environ):
            if key.startswith(ENV_PREFIX):
                mp.delenv(key, raising=False)
        yield


@pytest.fixture
def config():
    """Config with retries but no real sleeping."""
    return SitesnapConfig(backoff_base=0.0, crawl_max_depth=2, batch_size=10)


@pytest.fixture
def fake_fetcher():
    """Factory for FakeFetcher instances."""
    return FakeFetcher


@pytest.fixture
def store(tmp_path):
    """SnapshotStore backed by a temporary SQLite file."""
    snapshot_store = SnapshotStore(tmp_path / "snapshots.db")
    yield snapshot_store
    snapshot_store.close()


@pytest.fixture
def make_record():
    """Factory for UrlRecords with sensible defaults."""

    def _make(url="https://example.com/", when=None, level=1, title="Home", **overrides):
        when = when or datetime(2024, 1, 1, tzinfo=timezone.utc)
        values = dict(
            url=url,
            title=title,
            description="A page",
            header_tags=empty_header_tags(),
            version=version_for(when),
            timestamp=when,
            top_level_count=0,
            level=level,
        )
        values.update(overrides)
        return UrlRecord(**values)

    return _make


@pytest.fixture
def page_metadata():
    return PageMetadata(
        title="Launch Day",
        description="We launched",
        header_tags={"H1": ["Launch Day"], "H2": ["Details"]},
        like_count=12,
    )
