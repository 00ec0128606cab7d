"""Tests for record building."""

import random
from datetime import datetime, timezone

import pytest

from sitesnap.core.errors import MalformedUrl
from sitesnap.core.models import (
    DESCRIPTION_ERROR,
    LIKES_UNAVAILABLE,
    NO_DESCRIPTION,
    NO_TITLE,
    NOT_APPLICABLE,
    PageMetadata,
    TITLE_ERROR,
)
from sitesnap.snapshot.builder import RecordBuilder

NOW = datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)


class TestRecordBuilder:
    """Test record assembly."""

    def test_article_gets_likes_and_target(self, page_metadata):
        builder = RecordBuilder((50, 100), rng=random.Random(7))
        record = builder.build("www.example.com/blog/launch", 4, 3, page_metadata, NOW)

        assert record.url == "https://example.com/blog/launch"
        assert record.like_count == 12
        assert isinstance(record.target_likes, int)
        assert 50 <= record.target_likes <= 100
        assert record.top_level_count == 3
        assert record.level == 4

    def test_seeded_rng_is_reproducible(self, page_metadata):
        first = RecordBuilder(rng=random.Random(42)).build("https://example.com/blog/a", 4, 0, page_metadata, NOW)
        second = RecordBuilder(rng=random.Random(42)).build("https://example.com/blog/a", 4, 0, page_metadata, NOW)
        assert first.target_likes == second.target_likes

    @pytest.mark.parametrize("level", [1, 2, 3, 5, 9])
    def test_non_article_levels_are_not_applicable(self, page_metadata, level):
        record = RecordBuilder().build("https://example.com/x", level, 0, page_metadata, NOW)
        assert record.like_count == NOT_APPLICABLE
        assert record.target_likes == NOT_APPLICABLE

    def test_article_without_counter(self):
        record = RecordBuilder().build("https://example.com/blog/a", 4, 0, PageMetadata(), NOW)
        assert record.like_count == LIKES_UNAVAILABLE
        assert isinstance(record.target_likes, int)

    def test_version_and_timestamp(self, page_metadata):
        record = RecordBuilder().build("https://example.com/", 1, 1, page_metadata, NOW)
        assert record.version == "Version 2024-03-01T12:30:00+00:00"
        assert record.timestamp == NOW

    def test_naive_timestamp_treated_as_utc(self, page_metadata):
        record = RecordBuilder().build("https://example.com/", 1, 1, page_metadata, datetime(2024, 3, 1, 12, 30))
        assert record.timestamp == NOW

    def test_missing_metadata_uses_error_sentinels(self):
        record = RecordBuilder().build("https://example.com/", 1, 0, None, NOW)
        assert record.title == TITLE_ERROR
        assert record.description == DESCRIPTION_ERROR
        assert record.header_tags == {tag: [] for tag in ("H1", "H2", "H3", "H4", "H5", "H6")}

    def test_empty_fields_use_not_found_sentinels(self):
        metadata = PageMetadata(title="", description="", header_tags={"h2": ["Lower"]})
        record = RecordBuilder().build("https://example.com/", 1, 0, metadata, NOW)
        assert record.title == NO_TITLE
        assert record.description == NO_DESCRIPTION
        assert record.header_tags["H2"] == ["Lower"]

    @pytest.mark.parametrize(
        "headers, expected_h1",
        [
            (["Welcome"], []),
            ("Welcome", []),
            ({"H1": "Welcome"}, ["Welcome"]),
            ({"H1": 42}, []),
        ],
    )
    def test_odd_header_tags_are_tolerated(self, headers, expected_h1):
        metadata = PageMetadata(title="Home", header_tags=headers)
        record = RecordBuilder().build("https://example.com/", 1, 0, metadata, NOW)
        assert record.header_tags["H1"] == expected_h1
        assert set(record.header_tags) == {"H1", "H2", "H3", "H4", "H5", "H6"}

    def test_invalid_url(self, page_metadata):
        with pytest.raises(MalformedUrl):
            RecordBuilder().build("not a url", 1, 0, page_metadata, NOW)

    def test_inverted_range_rejected(self):
        with pytest.raises(ValueError):
            RecordBuilder((100, 50))
