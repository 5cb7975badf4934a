"""
Unit tests for the FPDS ATOM page parser
"""

import hashlib
from datetime import datetime, timezone

import pytest

from core.exceptions import FeedParseError
from ingestion.extractors.atom_parser import SkipReason, entry_identity, parse_page

NEXT_URL = "https://www.fpds.gov/ezsearch/FEEDS/ATOM?FEEDNAME=PUBLIC&start=10"


class TestEntryIdentity:
    """Stable entry identity hash"""

    def test_hash_of_title_and_millisecond_timestamp(self):
        modified = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
        expected = hashlib.sha256(b"Award A-2024-01-15T10:00:00.000+00:00").hexdigest()

        assert entry_identity("Award A", modified) == expected

    def test_different_modified_time_changes_identity(self):
        first = entry_identity("Award A", datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc))
        second = entry_identity("Award A", datetime(2024, 1, 15, 10, 0, 1, tzinfo=timezone.utc))

        assert first != second


class TestParsePage:
    """Page parsing with per-entry skips"""

    def test_well_formed_page(self, feed_factory):
        body = feed_factory.page(
            [
                feed_factory.entry(title="Award A"),
                feed_factory.entry(title="Award B", content=feed_factory.award(piid="B1")),
            ],
            next_href=NEXT_URL,
        )

        result = parse_page(body)

        assert [e.title for e in result.entries] == ["Award A", "Award B"]
        assert result.skipped == []
        assert result.next_href == NEXT_URL
        assert result.recovered is False
        assert result.entry_count == 2

    def test_entry_fields_are_normalized(self, feed_factory):
        result = parse_page(feed_factory.page([feed_factory.entry()]))
        entry = result.entries[0]

        assert entry.record_type == "award"
        assert entry.modified == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
        assert entry.entry_id == entry_identity(entry.title, entry.modified)
        assert entry.fields["piid"] == "W91QUZ24C0001"
        assert entry.references["uei"] == "ABCDEF123456"
        assert len(entry.content_sha256) == 64

    def test_last_page_has_no_next_link(self, feed_factory):
        result = parse_page(feed_factory.page([feed_factory.entry()]))
        assert result.next_href is None

    def test_empty_feed(self, feed_factory):
        result = parse_page(feed_factory.page([]))

        assert result.entries == []
        assert result.entry_count == 0

    def test_missing_modified_is_skipped(self, feed_factory):
        body = feed_factory.page([
            feed_factory.entry(title="Good"),
            feed_factory.entry(title="No date", modified=None),
        ])

        result = parse_page(body)

        assert [e.title for e in result.entries] == ["Good"]
        assert len(result.skipped) == 1
        assert result.skipped[0].reason == SkipReason.MISSING_MODIFIED
        assert result.skipped[0].index == 1

    def test_unparseable_modified_is_skipped(self, feed_factory):
        result = parse_page(feed_factory.page([feed_factory.entry(modified="yesterday")]))

        assert result.entries == []
        assert result.skipped[0].reason == SkipReason.MISSING_MODIFIED
        assert result.skipped[0].detail == "yesterday"

    def test_updated_is_used_when_modified_is_absent(self, feed_factory):
        entry = feed_factory.entry(modified=None).replace(
            "<entry>", "<entry><updated>2024-01-15T10:00:00Z</updated>", 1
        )

        result = parse_page(feed_factory.page([entry]))

        assert len(result.entries) == 1
        assert result.entries[0].modified == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)

    def test_missing_title_is_skipped(self, feed_factory):
        result = parse_page(feed_factory.page([feed_factory.entry(title=None)]))

        assert result.entries == []
        assert result.skipped[0].reason == SkipReason.MISSING_TITLE

    def test_missing_content_is_skipped(self, feed_factory):
        result = parse_page(feed_factory.page([feed_factory.entry(content="")]))

        assert result.entries == []
        assert result.skipped[0].reason == SkipReason.MISSING_CONTENT

    def test_duplicate_entry_in_page(self, feed_factory):
        entry = feed_factory.entry(title="Same")

        result = parse_page(feed_factory.page([entry, entry]))

        assert len(result.entries) == 1
        assert result.skipped[0].reason == SkipReason.DUPLICATE_IN_PAGE
        assert result.entry_count == 2

    def test_malformed_entry_does_not_drop_the_page(self, feed_factory):
        broken = feed_factory.entry(title="Broken").replace("<title>Broken</title>", "<title>Broken <b></title>")
        body = feed_factory.page(
            [feed_factory.entry(title="Good"), broken, feed_factory.entry(title="Also good")],
            next_href=NEXT_URL,
        )

        result = parse_page(body)

        assert result.recovered is True
        assert [e.title for e in result.entries] == ["Good", "Also good"]
        assert [s.reason for s in result.skipped] == [SkipReason.MALFORMED_XML]
        assert result.skipped[0].index == 1
        # Fragments keep the feed's namespace prefixes bound
        assert result.entries[0].record_type == "award"
        assert result.next_href == NEXT_URL

    def test_next_link_with_bare_ampersand_is_kept_intact(self, feed_factory):
        body = feed_factory.page([feed_factory.entry(title="Good")], next_href=NEXT_URL)
        body = body.replace("FEEDNAME=PUBLIC&amp;start=10", "FEEDNAME=PUBLIC&start=10")

        result = parse_page(body)

        assert result.recovered is True
        assert [e.title for e in result.entries] == ["Good"]
        assert result.next_href == NEXT_URL

    def test_content_hash_ignores_whitespace_around_content(self, feed_factory):
        compact = parse_page(feed_factory.page([feed_factory.entry(title="A")])).entries[0]
        spaced_entry = feed_factory.entry(title="A").replace("</content>", "\n    </content>")
        spaced = parse_page(feed_factory.page([spaced_entry])).entries[0]

        assert spaced.content_sha256 == compact.content_sha256

    def test_body_that_is_not_xml_raises(self):
        with pytest.raises(FeedParseError):
            parse_page(b"Service Unavailable", url="https://example.test/feed")

    def test_bytes_body(self, feed_factory):
        result = parse_page(feed_factory.page([feed_factory.entry()]).encode("utf-8"))
        assert len(result.entries) == 1
