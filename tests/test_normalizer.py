"""
Tests for the entry normalizer
"""
import copy

import pytest

from models import Entry
from services.normalizer import (
    DEFAULT_CATEGORY,
    channel_id_for,
    derive_id,
    detect_quality,
    to_categories,
    to_channels,
    to_streams,
)


class TestDeriveId:
    """Tests for identifier derivation"""

    def test_derive_id(self):
        """Test lowercase with one '-' per non-alphanumeric run"""
        assert derive_id("News AT HD") == "news-at-hd"
        assert derive_id("  Hello,   World!  ") == "hello-world"
        assert derive_id("ÄRD & Co") == "rd-co"

    def test_derive_id_empty(self):
        """Test labels without alphanumerics derive to an empty id"""
        assert derive_id("!!!") == ""
        assert derive_id(None) == ""

    def test_channel_id_prefers_tvg_id(self):
        """Test tvg-id wins over the title"""
        assert channel_id_for(Entry(title="Some Name", url="http://x", tvg_id="tvg.1")) == "tvg.1"
        assert channel_id_for(Entry(title="Some Name", url="http://x")) == "some-name"
        assert channel_id_for(Entry(title="***", url="http://x")) == "channel"


class TestDetectQuality:
    """Tests for quality label detection"""

    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Movie 4K", "4K"),
            ("Nature UHD", "4K"),
            ("Sports FHD", "1080p"),
            ("Sports 1080p", "1080p"),
            ("News HD", "720p"),
            ("News 720P", "720p"),
            ("Local SD", "SD"),
            ("Plain Channel", None),
            (None, None),
        ],
    )
    def test_detect_quality(self, title, expected):
        """Test each marker group maps to its label"""
        assert detect_quality(title) == expected

    def test_priority_beats_position(self):
        """Test the highest-priority marker wins wherever it appears"""
        assert detect_quality("SD Feed (4K)") == "4K"
        assert detect_quality("HD Mirror 1080p") == "1080p"


class TestToChannels:
    """Tests for channel folding"""

    def test_sample_yields_two_channels(self, sample_entries):
        """Test three entries fold into two channels"""
        channels = to_channels(sample_entries)

        assert [c.id for c in channels] == ["news.at", "music-24"]

    def test_first_entry_sets_identity_later_entries_add_labels(self, sample_entries):
        """Test folding keeps the first name and merges categories/languages"""
        news = to_channels(sample_entries)[0]

        assert news.name == "News AT HD"
        assert news.country == "AT"
        assert news.logo == "http://img.example.com/news.png"
        assert news.categories == ["News", "Politics"]
        assert news.languages == ["German"]

    def test_defaults(self, sample_entries):
        """Test missing group and country get defaults"""
        music = to_channels(sample_entries)[1]

        assert music.categories == [DEFAULT_CATEGORY]
        assert music.country == "Unknown"
        assert music.languages == []

    def test_no_duplicate_labels(self):
        """Test repeated categories are not added twice"""
        entries = [
            Entry(title="A", url="http://a/1", tvg_id="a", group="News", language="en"),
            Entry(title="A", url="http://a/2", tvg_id="a", group="News", language="en"),
        ]

        channel = to_channels(entries)[0]

        assert channel.categories == ["News"]
        assert channel.languages == ["en"]

    def test_repeated_folding_is_stable(self, sample_entries):
        """Test folding twice gives equal channels and leaves the entries alone"""
        before = copy.deepcopy(sample_entries)

        first = to_channels(sample_entries)
        second = to_channels(sample_entries)

        assert first == second
        assert len(second) == 2
        assert sample_entries == before


class TestToStreams:
    """Tests for stream mapping"""

    def test_one_stream_per_entry(self, sample_entries):
        """Test entries map one-to-one onto streams"""
        streams = to_streams(sample_entries)

        assert len(streams) == 3
        assert [s.channel for s in streams] == ["news.at", "news.at", "music-24"]

    def test_stream_fields(self, sample_entries):
        """Test referrer and quality are carried over"""
        streams = to_streams(sample_entries)

        assert streams[0].quality == "720p"
        assert streams[1].quality == "SD"
        assert streams[1].http_referrer == "http://news.example.com/"
        assert streams[2].quality is None


class TestToCategories:
    """Tests for category extraction"""

    def test_distinct_categories(self, sample_entries):
        """Test each group label becomes one category"""
        categories = to_categories(sample_entries)

        assert [(c.id, c.name) for c in categories] == [
            ("news", "News"),
            ("politics", "Politics"),
            ("general", "General"),
        ]

    def test_same_derived_id_collapses(self):
        """Test labels deriving to the same id are kept once"""
        entries = [
            Entry(title="A", url="http://a", group="Kids & Family"),
            Entry(title="B", url="http://b", group="Kids Family"),
        ]

        categories = to_categories(entries)

        assert len(categories) == 1
        assert categories[0].name == "Kids & Family"
